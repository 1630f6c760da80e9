"""Result fusion algorithms for multi-source search.

Every algorithm consumes N ranked candidate lists (rank 0 = best) and returns
one fused list. Scores are accumulated per candidate identity in an insertion
ordered dict, so candidates with equal aggregate scores keep the order in
which they were first seen; the final sort is stable.
"""

import math
from enum import Enum
from typing import Dict, Iterable, List, Optional, Sequence, Tuple, Union

import structlog

from ..search.base import Candidate, ConfigurationError

logger = structlog.get_logger("vector_search.fusion")

ScoredCandidate = Tuple[Candidate, float]
ScaleRange = Tuple[float, float]

DEFAULT_RRF_K = 50.0


class RerankerType(str, Enum):
    """Supported fusion algorithms."""
    RRF = "rrf"
    RSF = "rsf"
    DBSF = "dbsf"

    @classmethod
    def from_kind(cls, kind: Union[str, "RerankerType"]) -> "RerankerType":
        """Resolve a short or long algorithm name (case-insensitive)."""
        if isinstance(kind, RerankerType):
            return kind
        if isinstance(kind, str):
            resolved = _KIND_ALIASES.get(kind.strip().lower())
            if resolved is not None:
                return resolved
        raise ConfigurationError(f"Invalid reranker type: {kind}")


_KIND_ALIASES = {
    "rrf": RerankerType.RRF,
    "reciprocal_rank_fusion": RerankerType.RRF,
    "rsf": RerankerType.RSF,
    "relative_score_fusion": RerankerType.RSF,
    "dbsf": RerankerType.DBSF,
    "distribution_based_score_fusion": RerankerType.DBSF,
}


def _check_limit(limit: Optional[int]) -> Optional[int]:
    if limit is None:
        return None
    if isinstance(limit, bool) or not isinstance(limit, int) or limit < 0:
        raise ConfigurationError(f"limit must be a non-negative integer, got {limit!r}")
    return limit


def _aggregate(
    scored_lists: Iterable[Iterable[ScoredCandidate]],
    limit: Optional[int],
) -> List[ScoredCandidate]:
    """Sum scores per identity and sort descending.

    The first candidate seen for an identity supplies the payload.
    """
    scores: Dict[str, List] = {}
    for scored in scored_lists:
        for candidate, score in scored:
            entry = scores.get(candidate.identity)
            if entry is None:
                scores[candidate.identity] = [candidate, score]
            else:
                entry[1] += score

    ranked = sorted(
        ((candidate, score) for candidate, score in scores.values()),
        key=lambda item: item[1],
        reverse=True,
    )
    if limit is not None:
        ranked = ranked[:limit]
    return ranked


class Reranker:
    """Base class for rank fusion algorithms.

    Subclasses implement ``score``; ``rerank`` drops the scores. ``validate``
    lets the engine reject a reranker that cannot handle the number of
    retrievers before any query is sent.
    """

    algorithm = "base"

    def __init__(self, limit: Optional[int] = None):
        self.limit = _check_limit(limit)

    def validate(self, list_count: int) -> None:
        """Raise ``ConfigurationError`` if ``list_count`` lists cannot be fused."""
        pass

    def score(self, candidate_lists: Sequence[Sequence[Candidate]]) -> List[ScoredCandidate]:
        """Fuse ranked lists into ``(candidate, score)`` pairs, best first."""
        raise NotImplementedError

    def rerank(self, candidate_lists: Sequence[Sequence[Candidate]]) -> List[Candidate]:
        """Fuse ranked lists into one ranked list."""
        return [candidate for candidate, _ in self.score(candidate_lists)]


class ReciprocalRankFusion(Reranker):
    """Reciprocal Rank Fusion (RRF).

    score(c) = sum_i weight_i / (k + rank_i(c) + 1), with 0-based ranks.
    Only positions matter, so sources with incomparable distance scales
    contribute equally. Larger ``k`` flattens the curve.
    """

    algorithm = "rrf"

    def __init__(
        self,
        weights: Optional[Sequence[float]] = None,
        k: float = DEFAULT_RRF_K,
        limit: Optional[int] = None,
    ):
        super().__init__(limit)
        if not isinstance(k, (int, float)) or isinstance(k, bool) or not k >= 0:
            raise ConfigurationError(f"k must be non-negative, got {k!r}")
        self.k = float(k)
        self.weights = [float(w) for w in weights] if weights else None
        if self.weights and not all(math.isfinite(w) for w in self.weights):
            raise ConfigurationError("weights must be finite numbers")

    def validate(self, list_count: int) -> None:
        if self.weights is not None and len(self.weights) != list_count:
            raise ConfigurationError(
                "The length of weights should be equal to the number of candidate "
                f"lists: got {len(self.weights)} weights for {list_count} lists"
            )

    def score(self, candidate_lists: Sequence[Sequence[Candidate]]) -> List[ScoredCandidate]:
        self.validate(len(candidate_lists))
        weights = self.weights or [1.0] * len(candidate_lists)

        fused = _aggregate(
            (
                [
                    (candidate, weight / (self.k + rank + 1))
                    for rank, candidate in enumerate(candidates)
                ]
                for weight, candidates in zip(weights, candidate_lists)
            ),
            self.limit,
        )

        logger.debug(
            "RRF fusion completed",
            list_count=len(candidate_lists),
            fused_count=len(fused),
            k_parameter=self.k,
        )
        return fused


def relative_scores(candidates: Sequence[Candidate]) -> List[float]:
    """Min-max normalize distances within one list, inverted so 1 is best.

    Lists with fewer than two members, or without spread, score 1 throughout.
    A missing distance counts as the list maximum.
    """
    if len(candidates) < 2:
        return [1.0] * len(candidates)

    present = [c.distance for c in candidates if c.distance is not None]
    if not present:
        return [1.0] * len(candidates)

    max_distance = max(present)
    min_distance = min(present)
    if max_distance == min_distance:
        return [1.0] * len(candidates)

    spread = max_distance - min_distance
    return [
        1.0 - ((c.distance if c.distance is not None else max_distance) - min_distance) / spread
        for c in candidates
    ]


class RelativeScoreFusion(Reranker):
    """Relative Score Fusion (RSF).

    Normalizes each list against its own observed distance range, then sums
    the normalized scores per candidate.
    """

    algorithm = "rsf"

    def score(self, candidate_lists: Sequence[Sequence[Candidate]]) -> List[ScoredCandidate]:
        fused = _aggregate(
            (zip(candidates, relative_scores(candidates)) for candidates in candidate_lists),
            self.limit,
        )

        logger.debug(
            "Relative score fusion completed",
            list_count=len(candidate_lists),
            fused_count=len(fused),
        )
        return fused


def distribution_scores(scale_range: ScaleRange, candidates: Sequence[Candidate]) -> List[float]:
    """Normalize distances against a fixed ``(min, max)`` range, inverted.

    Values are clamped to [0, 1]; a degenerate range normalizes everything to
    0 (score 1). A missing distance counts as the range maximum (score 0).
    """
    min_scale, max_scale = scale_range
    scores = []
    for candidate in candidates:
        normalized = 0.0
        if max_scale != min_scale:
            distance = candidate.distance if candidate.distance is not None else max_scale
            normalized = (distance - min_scale) / (max_scale - min_scale)
            normalized = max(0.0, min(1.0, normalized))
        scores.append(1.0 - normalized)
    return scores


class DistributionBasedScoreFusion(Reranker):
    """Distribution-Based Score Fusion (DBSF).

    Like RSF, but each source is normalized against a caller-supplied expected
    distance range (e.g. from that embedding space's statistics) rather than
    the range observed in one result list.
    """

    algorithm = "dbsf"

    def __init__(
        self,
        scale_ranges: Optional[Sequence[Sequence[float]]] = None,
        limit: Optional[int] = None,
    ):
        super().__init__(limit)
        self.scale_ranges: List[ScaleRange] = []
        for scale_range in scale_ranges or []:
            if len(scale_range) != 2:
                raise ConfigurationError(
                    f"Each scale range must be a [min, max] pair, got {list(scale_range)!r}"
                )
            self.scale_ranges.append((float(scale_range[0]), float(scale_range[1])))

    def validate(self, list_count: int) -> None:
        if len(self.scale_ranges) != list_count:
            raise ConfigurationError(
                "The length of scaleRanges should be equal to the number of candidate "
                f"lists: got {len(self.scale_ranges)} ranges for {list_count} lists"
            )

    def score(self, candidate_lists: Sequence[Sequence[Candidate]]) -> List[ScoredCandidate]:
        self.validate(len(candidate_lists))

        fused = _aggregate(
            (
                zip(candidates, distribution_scores(scale_range, candidates))
                for scale_range, candidates in zip(self.scale_ranges, candidate_lists)
            ),
            self.limit,
        )

        logger.debug(
            "Distribution-based score fusion completed",
            list_count=len(candidate_lists),
            fused_count=len(fused),
        )
        return fused


def create_reranker(
    kind: Union[str, RerankerType],
    weights: Optional[Sequence[float]] = None,
    scale_ranges: Optional[Sequence[Sequence[float]]] = None,
    k: float = DEFAULT_RRF_K,
    limit: Optional[int] = None,
) -> Reranker:
    """Create a fusion algorithm instance.

    Parameters not used by the selected algorithm are ignored, so callers can
    switch ``kind`` without reshaping their arguments.
    """
    reranker_type = RerankerType.from_kind(kind)

    if reranker_type is RerankerType.RRF:
        return ReciprocalRankFusion(weights=weights, k=k, limit=limit)
    elif reranker_type is RerankerType.RSF:
        return RelativeScoreFusion(limit=limit)
    else:
        return DistributionBasedScoreFusion(scale_ranges=scale_ranges, limit=limit)
