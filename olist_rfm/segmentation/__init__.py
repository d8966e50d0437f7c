"""RFM customer segmentation.

Classifies scored customers with a first-match-wins rule ladder and
summarises the resulting segments:

1. Classifier - ordered (label, predicate) rules
2. Summary - per-segment size and average recency/frequency/monetary
3. Pipeline - Aggregator → Scorer → Classifier → Summary in one call
"""

from .classifier import (
    SEGMENT_RULES,
    CustomerSegment,
    SegmentName,
    SegmentRule,
    classify_customer,
    classify_customers,
    classify_scores,
    rank_to_points,
)
from .summary import (
    DEFAULT_REFERENCE_DATE,
    SegmentationConfig,
    SegmentationResult,
    SegmentSummary,
    run_segmentation,
    summarize_segments,
)

__all__ = [
    # Classifier
    "SEGMENT_RULES",
    "CustomerSegment",
    "SegmentName",
    "SegmentRule",
    "classify_customer",
    "classify_customers",
    "classify_scores",
    "rank_to_points",
    # Summary
    "DEFAULT_REFERENCE_DATE",
    "SegmentationConfig",
    "SegmentationResult",
    "SegmentSummary",
    "run_segmentation",
    "summarize_segments",
]
