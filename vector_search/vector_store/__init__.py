"""Vector database client contract.

Primary components:
- ``base``: abstract ``QueryClient`` interface, ``SparseVector`` and response
  helpers shared by retrievers.

Guidance:
- Any object with a ``query(table, query_config)`` method works; subclassing
  ``QueryClient`` is optional but documents intent.
"""

from .base import DISTANCE_KEY, ID_KEY, QueryClient, SparseVector

__all__ = ["DISTANCE_KEY", "ID_KEY", "QueryClient", "SparseVector"]
