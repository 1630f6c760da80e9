"""Query capability contract.

Defines the one operation the engine needs from a vector database client,
independent of the transport behind it (HTTP, embedded, cloud).

A client exposes ``query(table, query_config)``, either as a coroutine
function or as a plain blocking call. The response is a mapping shaped like
the database's REST answer::

    {"statusCode": 200, "message": "...", "result": [record, ...]}

where each record maps field names to values and carries ``@distance`` when
``withDistance`` was requested.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Dict, List, Mapping, Optional, Sequence, Union

# Reserved keys in query records and candidate dicts.
DISTANCE_KEY = "@distance"
ID_KEY = "@id"

STATUS_OK = 200


@dataclass(frozen=True)
class SparseVector:
    """Sparse query vector: parallel ``indices`` and ``values``."""

    indices: Sequence[int]
    values: Sequence[float]

    def __post_init__(self):
        if len(self.indices) != len(self.values):
            raise ValueError(
                f"Sparse vector indices ({len(self.indices)}) and values "
                f"({len(self.values)}) must have the same length"
            )
        object.__setattr__(self, "indices", tuple(int(i) for i in self.indices))
        object.__setattr__(self, "values", tuple(float(v) for v in self.values))

    def to_dict(self) -> Dict[str, List[Any]]:
        return {"indices": list(self.indices), "values": list(self.values)}


QueryVector = Union[Sequence[float], SparseVector]
QueryResponse = Mapping[str, Any]


class QueryClient(ABC):
    """Abstract base class for query-capable database clients.

    Implementations may return an error response instead of raising; the
    retriever treats a non-200 ``statusCode`` or a non-list ``result`` as a
    failure. A missing ``result`` means no matches.
    """

    @abstractmethod
    async def query(self, table: str, query_config: Dict[str, Any]) -> QueryResponse:
        """Run one query against ``table``.

        Parameters
        - table: Target table name
        - query_config: Wire payload (``query``, ``queryIndex``, ``queryField``,
          ``queryVector``, ``response``, ``limit``, ``filter``, ``withDistance``)

        Returns
        - Response mapping with a ``result`` list of records
        """
        pass


def serialize_vector(vector: Optional[QueryVector]) -> Any:
    """Convert a query vector to its JSON-compatible wire form."""
    if vector is None:
        return None
    if isinstance(vector, SparseVector):
        return vector.to_dict()
    return [float(v) for v in vector]


def response_error(response: Any) -> Optional[str]:
    """Return an error message when ``response`` is not a successful result.

    Exceptions returned in place of a response (a pattern some clients use)
    count as errors too.
    """
    if isinstance(response, BaseException):
        return str(response) or type(response).__name__
    if not isinstance(response, Mapping):
        return f"unexpected response type {type(response).__name__}"

    status = response.get("statusCode")
    if status is not None and status != STATUS_OK:
        return f"status {status}: {response.get('message') or 'Unknown error'}"

    result = response.get("result")
    if result is not None and not isinstance(result, list):
        return f"unexpected result type {type(result).__name__}"
    return None
