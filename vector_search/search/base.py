"""Core search types and exceptions.

``Candidate`` is the unit every retriever produces and every reranker
consumes. Candidates are immutable: fusion builds new rankings from them but
never edits their payload.
"""

from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any, Dict, List, Mapping, Optional, Union

from ..vector_store.base import DISTANCE_KEY, ID_KEY

CandidateId = Union[str, int]


class SearchEngineError(Exception):
    """Base exception for search engine operations."""
    pass


class ConfigurationError(SearchEngineError, ValueError):
    """Engine or reranker is misconfigured; raised before any query is sent."""
    pass


class RetrievalError(SearchEngineError):
    """The query capability failed or returned an error response."""

    def __init__(self, message: str, table: Optional[str] = None):
        super().__init__(message)
        self.table = table


class MissingKeyError(RetrievalError):
    """A returned record lacks the configured primary-key field."""

    def __init__(self, primary_key_field: str, table: Optional[str] = None):
        super().__init__(
            f"Primary key field {primary_key_field} not found in the response "
            f"from table {table}",
            table=table,
        )
        self.primary_key_field = primary_key_field


@dataclass(frozen=True)
class Candidate:
    """A single search hit.

    Attributes
    - id: Record identity, copied from the configured primary-key field
    - record: Read-only view of the record as returned by the database
    - distance: Similarity distance, ``None`` for keyword-only matches
    """

    id: CandidateId
    record: Mapping[str, Any] = field(hash=False)
    distance: Optional[float] = None

    def __post_init__(self):
        if self.id is None:
            raise ValueError("Candidate id is required")
        if not isinstance(self.record, MappingProxyType):
            object.__setattr__(self, "record", MappingProxyType(dict(self.record)))

    @classmethod
    def from_record(
        cls,
        record: Mapping[str, Any],
        primary_key_field: str,
        table: Optional[str] = None,
    ) -> "Candidate":
        """Build a candidate from a raw query record.

        Raises
        - ``MissingKeyError`` when ``primary_key_field`` is absent or null
        - ``RetrievalError`` when ``@distance`` is not a number
        """
        if record.get(primary_key_field) is None:
            raise MissingKeyError(primary_key_field, table=table)

        distance = record.get(DISTANCE_KEY)
        if distance is not None:
            try:
                distance = float(distance)
            except (TypeError, ValueError) as e:
                raise RetrievalError(
                    f"Invalid {DISTANCE_KEY} value {distance!r} in the response from table {table}",
                    table=table,
                ) from e

        return cls(id=record[primary_key_field], record=record, distance=distance)

    @property
    def identity(self) -> str:
        """Key used to merge the same record across ranked lists."""
        return str(self.id)

    def __getitem__(self, key: str) -> Any:
        if key == ID_KEY:
            return self.id
        if key == DISTANCE_KEY and self.distance is not None:
            return self.distance
        return self.record[key]

    def get(self, key: str, default: Any = None) -> Any:
        try:
            return self[key]
        except KeyError:
            return default

    def to_dict(self) -> Dict[str, Any]:
        """Record fields plus the reserved ``@id`` (and ``@distance``) keys."""
        data = dict(self.record)
        data[ID_KEY] = self.id
        if self.distance is not None:
            data[DISTANCE_KEY] = self.distance
        return data


RankedList = List[Candidate]
