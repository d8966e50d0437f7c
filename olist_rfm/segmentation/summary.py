"""Segment summary and end-to-end segmentation pipeline.

The pipeline runs Aggregator → Scorer → Classifier → Summary over a fixed
snapshot of order facts. Nothing is cached between runs; each call
recomputes every stage from its input.
"""

from __future__ import annotations

import logging
from collections import defaultdict
from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal, ROUND_HALF_UP
from typing import Iterable, Sequence

from olist_rfm.foundation.order_facts import CustomerOrderFact
from olist_rfm.foundation.rfm import (
    DEFAULT_BUCKET_COUNT,
    aggregate_customers,
    score_customers,
)
from olist_rfm.segmentation.classifier import (
    CustomerSegment,
    SegmentName,
    classify_customers,
)

logger = logging.getLogger(__name__)

# Snapshot date of the Olist public dataset
DEFAULT_REFERENCE_DATE = date(2018, 10, 17)

RECENCY_PRECISION = Decimal("1")
AVERAGE_PRECISION = Decimal("0.01")


@dataclass(frozen=True)
class SegmentationConfig:
    """Configuration for a segmentation run.

    Attributes
    ----------
    reference_date:
        "As of" date used for recency.
    bucket_count:
        Number of quantile buckets per dimension.
    """

    reference_date: date = DEFAULT_REFERENCE_DATE
    bucket_count: int = DEFAULT_BUCKET_COUNT

    def __post_init__(self) -> None:
        if self.bucket_count < 1:
            raise ValueError(f"bucket_count must be at least 1: {self.bucket_count}")


@dataclass(frozen=True)
class SegmentSummary:
    """Size and average RFM values of one segment.

    Attributes
    ----------
    segment_name:
        Segment label
    customer_count:
        Number of customers in the segment
    avg_recency_days:
        Mean recency in days, rounded to whole days
    avg_frequency:
        Mean number of orders, rounded to 2 decimals
    avg_monetary:
        Mean total payment value, rounded to 2 decimals
    """

    segment_name: SegmentName
    customer_count: int
    avg_recency_days: Decimal
    avg_frequency: Decimal
    avg_monetary: Decimal

    def __post_init__(self) -> None:
        if self.customer_count <= 0:
            raise ValueError(
                f"Segment must contain customers: {self.customer_count} "
                f"(segment={self.segment_name.value})"
            )


@dataclass
class SegmentationResult:
    """Output of :func:`run_segmentation`."""

    config: SegmentationConfig
    segments: list[CustomerSegment] = field(default_factory=list)
    summary: list[SegmentSummary] = field(default_factory=list)

    @property
    def total_customers(self) -> int:
        return len(self.segments)


def summarize_segments(segments: Iterable[CustomerSegment]) -> list[SegmentSummary]:
    """Group classified customers by segment and average their RFM values.

    Returns one row per non-empty segment, largest segment first. Segments of
    equal size are ordered by name.
    """
    grouped: dict[SegmentName, list[CustomerSegment]] = defaultdict(list)
    for segment in segments:
        grouped[segment.segment_name].append(segment)

    summary: list[SegmentSummary] = []
    for segment_name, members in grouped.items():
        count = Decimal(len(members))
        total_recency = sum(Decimal(m.scored.recency_days) for m in members)
        total_frequency = sum(Decimal(m.scored.frequency) for m in members)
        total_monetary = sum((m.scored.monetary for m in members), Decimal("0"))
        summary.append(
            SegmentSummary(
                segment_name=segment_name,
                customer_count=len(members),
                avg_recency_days=(total_recency / count).quantize(
                    RECENCY_PRECISION, rounding=ROUND_HALF_UP
                ),
                avg_frequency=(total_frequency / count).quantize(
                    AVERAGE_PRECISION, rounding=ROUND_HALF_UP
                ),
                avg_monetary=(total_monetary / count).quantize(
                    AVERAGE_PRECISION, rounding=ROUND_HALF_UP
                ),
            )
        )

    summary.sort(key=lambda s: (-s.customer_count, s.segment_name.value))
    return summary


def run_segmentation(
    facts: Sequence[CustomerOrderFact] | Iterable[CustomerOrderFact],
    config: SegmentationConfig | None = None,
) -> SegmentationResult:
    """Run the full RFM segmentation over a snapshot of order facts.

    Parameters
    ----------
    facts:
        Qualifying order payment rows (delivered orders with a valid timeline)
    config:
        Reference date and bucket count (default: :class:`SegmentationConfig`)

    Returns
    -------
    SegmentationResult
        Per-customer segments sorted by customer_id and the per-segment
        summary sorted by customer count descending

    Examples
    --------
    >>> from datetime import datetime
    >>> from decimal import Decimal
    >>> facts = [
    ...     CustomerOrderFact("C1", "O1", datetime(2018, 10, 1), Decimal("120.00")),
    ...     CustomerOrderFact("C2", "O2", datetime(2017, 2, 1), Decimal("35.00")),
    ... ]
    >>> result = run_segmentation(facts)
    >>> [s.scored.rfm_score for s in result.segments]
    ['111', '222']
    >>> result.summary[0].customer_count
    2
    """
    config = config or SegmentationConfig()

    aggregates = aggregate_customers(facts)
    logger.info(f"Aggregated {len(aggregates)} customers")

    scored = score_customers(
        aggregates,
        reference_date=config.reference_date,
        bucket_count=config.bucket_count,
    )
    segments = classify_customers(scored, bucket_count=config.bucket_count)
    summary = summarize_segments(segments)

    logger.info(
        f"Classified {len(segments)} customers into {len(summary)} segments "
        f"(reference_date={config.reference_date}, buckets={config.bucket_count})"
    )
    return SegmentationResult(config=config, segments=segments, summary=summary)
