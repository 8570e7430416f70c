"""
Ranking scores for the home-page carousels.

Two families of rankings live here:

* Trending / popular: every metric (views, ratings, comments, follows) is
  normalized to [0, 1], either against the observed maximum or against a
  percentile-truncated maximum so a single viral outlier does not flatten
  everyone else, then blended with a weight per metric.
* Top rated: Bayesian-smoothed average rating,
  ``WR = (v/(v+m))*R + (m/(v+m))*C``, which pulls books with few ratings
  toward the global average C.

This module is pure: callers gather ``BookMetrics`` from the database
(see ``readowl.services.metrics``) and hand them in.
"""
import enum
import logging
import math
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Optional, Sequence
from uuid import UUID

logger = logging.getLogger(__name__)

DEFAULT_LIMIT = 16
DEFAULT_PRIOR_WEIGHT = 5.0
DEFAULT_PERCENTILE = 0.95

METRIC_NAMES = ("views", "ratings", "comments", "follows")


@dataclass
class BookMetrics:
    """Raw activity counts for one book, optionally restricted to a time window."""
    book_id: UUID
    views: int = 0
    rating_count: int = 0
    rating_sum: int = 0
    comments: int = 0
    follows: int = 0

    @property
    def rating_average(self) -> float:
        if self.rating_count <= 0:
            return 0.0
        return self.rating_sum / self.rating_count

    def metric(self, name: str) -> float:
        # The ratings signal is the score total, i.e. the count weighted by how good the ratings are
        if name == "ratings":
            return float(self.rating_sum)
        return float(getattr(self, name))

    def is_empty(self) -> bool:
        return not (self.views or self.rating_count or self.comments or self.follows)


@dataclass(frozen=True)
class RankingWeights:
    views: float = 0.0
    ratings: float = 0.0
    comments: float = 0.0
    follows: float = 0.0

    def as_dict(self) -> Dict[str, float]:
        return {name: getattr(self, name) for name in METRIC_NAMES}

    @property
    def total(self) -> float:
        return sum(self.as_dict().values())


ENGAGEMENT_WEIGHTS = RankingWeights(views=0.2, ratings=0.45, comments=0.35)
POPULARITY_WEIGHTS = RankingWeights(views=0.5, ratings=0.2, comments=0.2, follows=0.1)


class Normalization(str, enum.Enum):
    MAX = "max"
    PERCENTILE = "percentile"


@dataclass
class RankedBook:
    book_id: UUID
    score: float
    components: Dict[str, float] = field(default_factory=dict)
    rating_count: int = 0
    rating_average: float = 0.0


def percentile(values: Sequence[float], p: float) -> float:
    """
    Value at fraction ``p`` of the sorted input, interpolating linearly
    between the two closest ranks (the same rule as numpy's default).
    """
    if not 0.0 <= p <= 1.0:
        raise ValueError(f"percentile must be within [0, 1], got {p}")
    if not values:
        return 0.0
    ordered = sorted(values)
    position = (len(ordered) - 1) * p
    lower = math.floor(position)
    upper = math.ceil(position)
    if lower == upper:
        return float(ordered[lower])
    fraction = position - lower
    return ordered[lower] + (ordered[upper] - ordered[lower]) * fraction


def normalize(
    values: Sequence[float],
    mode: Normalization = Normalization.MAX,
    p: float = DEFAULT_PERCENTILE,
) -> List[float]:
    """
    Map each value into [0, 1]; anything above the cap is truncated to 1.

    A percentile cap of 0 over a metric that does have activity (most books
    at zero) falls back to the observed maximum.
    """
    if not values:
        return []
    cap = float(max(values))
    if mode == Normalization.PERCENTILE:
        cap = percentile(values, p) or cap
    if cap <= 0:
        return [0.0 for _ in values]
    return [min(max(value, 0) / cap, 1.0) for value in values]


def trending_scores(
    metrics: Iterable[BookMetrics],
    weights: RankingWeights = ENGAGEMENT_WEIGHTS,
    normalization: Normalization = Normalization.PERCENTILE,
    p: float = DEFAULT_PERCENTILE,
    limit: int = DEFAULT_LIMIT,
) -> List[RankedBook]:
    """
    Weighted blend of normalized metrics, best first, at most ``limit`` books.

    Books without any activity are left out; ties go to the book with more
    raw views, then to the lower book id.
    """
    if limit <= 0:
        return []
    active = [m for m in metrics if not m.is_empty()]
    if not active:
        return []

    weight_map = weights.as_dict()
    normalized: Dict[str, List[float]] = {
        name: normalize([m.metric(name) for m in active], normalization, p)
        for name in METRIC_NAMES
    }

    ranked = []
    for index, m in enumerate(active):
        components = {name: normalized[name][index] for name in METRIC_NAMES}
        score = sum(weight_map[name] * components[name] for name in METRIC_NAMES)
        ranked.append(RankedBook(
            book_id=m.book_id,
            score=round(score, 6),
            components=components,
            rating_count=m.rating_count,
            rating_average=m.rating_average,
        ))

    views_by_id = {m.book_id: m.views for m in active}
    ranked.sort(key=lambda r: (-r.score, -views_by_id[r.book_id], str(r.book_id)))
    return ranked[:limit]


def global_average(metrics: Iterable[BookMetrics]) -> float:
    """Mean of every individual rating (not the mean of per-book averages)."""
    total_sum = 0
    total_count = 0
    for m in metrics:
        total_sum += m.rating_sum
        total_count += m.rating_count
    if total_count == 0:
        return 0.0
    return total_sum / total_count


def weighted_rating(v: float, R: float, m: float = DEFAULT_PRIOR_WEIGHT, C: float = 0.0) -> float:
    """Bayesian average: ``(v/(v+m))*R + (m/(v+m))*C``."""
    if v < 0 or m < 0:
        raise ValueError("rating count and prior weight must be non-negative")
    if v + m == 0:
        return C
    return (v / (v + m)) * R + (m / (v + m)) * C


def top_rated(
    metrics: Iterable[BookMetrics],
    m: float = DEFAULT_PRIOR_WEIGHT,
    C: Optional[float] = None,
    limit: int = DEFAULT_LIMIT,
) -> List[RankedBook]:
    """Rank rated books by Bayesian-smoothed average; unrated books are skipped."""
    if limit <= 0:
        return []
    metrics = list(metrics)
    prior = global_average(metrics) if C is None else C
    ranked = [
        RankedBook(
            book_id=item.book_id,
            score=round(weighted_rating(item.rating_count, item.rating_average, m, prior), 6),
            components={"rating_average": item.rating_average, "prior": prior},
            rating_count=item.rating_count,
            rating_average=item.rating_average,
        )
        for item in metrics
        if item.rating_count > 0
    ]
    ranked.sort(key=lambda r: (-r.score, -r.rating_count, str(r.book_id)))
    logger.debug("top_rated: %d rated books, prior=%.3f, m=%.1f", len(ranked), prior, m)
    return ranked[:limit]
