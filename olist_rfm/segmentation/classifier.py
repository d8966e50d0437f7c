"""Rule-based RFM segment classification.

Segments are assigned by walking an ordered rule ladder and returning the
label of the first rule whose predicate holds. Several predicates overlap
(a customer matching "Champions" also matches "Recent Customers"), so the
order of :data:`SEGMENT_RULES` is part of the contract.

Rules are expressed in score points on a fixed 1..5 scale where higher is
better. Bucket ranks produced by :func:`olist_rfm.foundation.rfm.score_customers`
put the best customers in bucket 1 and may use any bucket count, so
:func:`classify_customer` maps ranks onto the point scale before walking the
ladder.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Callable, Iterable

from olist_rfm.foundation.rfm import DEFAULT_BUCKET_COUNT, CustomerScored


class SegmentName(str, Enum):
    """Closed set of customer segment labels."""

    CHAMPIONS = "Champions"
    LOYAL_CUSTOMERS = "Loyal Customers"
    RECENT_CUSTOMERS = "Recent Customers"
    HIGH_FREQUENCY_SHOPPERS = "High Frequency Shoppers"
    HIGH_VALUE_SHOPPERS = "High Value Shoppers"
    HIBERNATING = "Hibernating"
    AT_RISK_CUSTOMERS = "At-Risk Customers"
    STANDARD = "Standard"


@dataclass(frozen=True)
class SegmentRule:
    """A labelled predicate over (recency, frequency, monetary) points."""

    label: SegmentName
    predicate: Callable[[int, int, int], bool]
    description: str

    def matches(self, r: int, f: int, m: int) -> bool:
        return self.predicate(r, f, m)

    def __str__(self) -> str:
        return f"{self.label.value}: {self.description}"


SEGMENT_RULES: tuple[SegmentRule, ...] = (
    SegmentRule(
        SegmentName.CHAMPIONS, lambda r, f, m: r >= 4 and f >= 4, "r >= 4 and f >= 4"
    ),
    SegmentRule(
        SegmentName.LOYAL_CUSTOMERS,
        lambda r, f, m: r >= 3 and f >= 3,
        "r >= 3 and f >= 3",
    ),
    SegmentRule(SegmentName.RECENT_CUSTOMERS, lambda r, f, m: r >= 4, "r >= 4"),
    SegmentRule(SegmentName.HIGH_FREQUENCY_SHOPPERS, lambda r, f, m: f >= 4, "f >= 4"),
    SegmentRule(SegmentName.HIGH_VALUE_SHOPPERS, lambda r, f, m: m >= 4, "m >= 4"),
    SegmentRule(
        SegmentName.HIBERNATING, lambda r, f, m: r <= 2 and f <= 2, "r <= 2 and f <= 2"
    ),
    SegmentRule(
        SegmentName.AT_RISK_CUSTOMERS,
        lambda r, f, m: r <= 2 and f >= 3,
        "r <= 2 and f >= 3",
    ),
)

# Fallback when no rule matches
DEFAULT_SEGMENT = SegmentName.STANDARD

# Rule thresholds are written against this many points
POINT_SCALE = 5


@dataclass(frozen=True)
class CustomerSegment:
    """A scored customer together with its segment label."""

    scored: CustomerScored
    segment_name: SegmentName

    @property
    def customer_id(self) -> str:
        return self.scored.customer_id


def classify_scores(
    r: int,
    f: int,
    m: int,
    rules: Iterable[SegmentRule] = SEGMENT_RULES,
) -> SegmentName:
    """Return the label of the first rule matching the given score points.

    Parameters
    ----------
    r, f, m:
        Recency, frequency and monetary points (higher is better)
    rules:
        Ordered rule ladder (default: :data:`SEGMENT_RULES`)

    Examples
    --------
    >>> classify_scores(5, 5, 1).value
    'Champions'
    >>> classify_scores(4, 1, 5).value
    'Recent Customers'
    >>> classify_scores(1, 1, 1).value
    'Hibernating'
    """
    for rule in rules:
        if rule.matches(r, f, m):
            return rule.label
    return DEFAULT_SEGMENT


def rank_to_points(rank: int, bucket_count: int = DEFAULT_BUCKET_COUNT) -> int:
    """Map a bucket rank (1 = best) onto the rules' point scale (5 = best).

    The rank is flipped so higher is better, then stretched or squeezed onto
    :data:`POINT_SCALE` points, rounding up. With five buckets this is the
    plain flip; the best bucket always earns full points.

    Examples
    --------
    >>> [rank_to_points(rank) for rank in range(1, 6)]
    [5, 4, 3, 2, 1]
    >>> [rank_to_points(rank, bucket_count=2) for rank in (1, 2)]
    [5, 3]
    >>> [rank_to_points(rank, bucket_count=10) for rank in range(1, 11)]
    [5, 5, 4, 4, 3, 3, 2, 2, 1, 1]
    """
    if not 1 <= rank <= bucket_count:
        raise ValueError(f"Bucket rank must be between 1 and {bucket_count}: {rank}")
    flipped = bucket_count + 1 - rank
    return -(-flipped * POINT_SCALE // bucket_count)


def classify_customer(
    scored: CustomerScored, bucket_count: int = DEFAULT_BUCKET_COUNT
) -> CustomerSegment:
    """Assign a segment to one scored customer."""
    segment_name = classify_scores(
        rank_to_points(scored.r_score, bucket_count),
        rank_to_points(scored.f_score, bucket_count),
        rank_to_points(scored.m_score, bucket_count),
    )
    return CustomerSegment(scored=scored, segment_name=segment_name)


def classify_customers(
    scored_customers: Iterable[CustomerScored],
    bucket_count: int = DEFAULT_BUCKET_COUNT,
) -> list[CustomerSegment]:
    """Assign segments to every scored customer, preserving input order."""
    return [classify_customer(scored, bucket_count) for scored in scored_customers]
