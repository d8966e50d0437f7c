"""Pandas DataFrame adapters for RFM segmentation results."""

from typing import Dict, Optional, Sequence

import pandas as pd  # type: ignore

from olist_rfm.segmentation.classifier import CustomerSegment
from olist_rfm.segmentation.summary import (
    SegmentationConfig,
    SegmentSummary,
    run_segmentation,
)
from .order_facts import dataframe_to_order_facts
from ._utils import decimal_to_float

SEGMENT_COLUMNS = [
    "customer_id",
    "last_purchase_ts",
    "recency_days",
    "frequency",
    "monetary",
    "r_score",
    "f_score",
    "m_score",
    "rfm_score",
    "segment_name",
]

SUMMARY_COLUMNS = [
    "segment_name",
    "customer_count",
    "avg_recency_days",
    "avg_frequency",
    "avg_monetary",
]


def segments_to_dataframe(segments: Sequence[CustomerSegment]) -> pd.DataFrame:
    """Convert classified customers to a DataFrame sorted by customer_id.

    Example:
        >>> result = run_segmentation(facts)
        >>> segments_df = segments_to_dataframe(result.segments)
        >>> segments_df[segments_df["segment_name"] == "Champions"]
    """
    if not segments:
        return pd.DataFrame(columns=SEGMENT_COLUMNS)

    rows = [
        {
            "customer_id": s.scored.customer_id,
            "last_purchase_ts": s.scored.last_purchase_ts,
            "recency_days": s.scored.recency_days,
            "frequency": s.scored.frequency,
            "monetary": decimal_to_float(s.scored.monetary),
            "r_score": s.scored.r_score,
            "f_score": s.scored.f_score,
            "m_score": s.scored.m_score,
            "rfm_score": s.scored.rfm_score,
            "segment_name": s.segment_name.value,
        }
        for s in segments
    ]
    df = pd.DataFrame(rows, columns=SEGMENT_COLUMNS)
    return df.sort_values("customer_id").reset_index(drop=True)


def summary_to_dataframe(summary: Sequence[SegmentSummary]) -> pd.DataFrame:
    """Convert segment summary rows to a DataFrame, preserving their order.

    Decimal averages are converted to floats.
    """
    if not summary:
        return pd.DataFrame(columns=SUMMARY_COLUMNS)

    rows = [
        {
            "segment_name": s.segment_name.value,
            "customer_count": s.customer_count,
            "avg_recency_days": decimal_to_float(s.avg_recency_days),
            "avg_frequency": decimal_to_float(s.avg_frequency),
            "avg_monetary": decimal_to_float(s.avg_monetary),
        }
        for s in summary
    ]
    return pd.DataFrame(rows, columns=SUMMARY_COLUMNS)


def run_segmentation_df(
    facts_df: pd.DataFrame,
    config: Optional[SegmentationConfig] = None,
    customer_id_col: str = "customer_id",
    order_id_col: str = "order_id",
    purchase_ts_col: str = "purchase_ts",
    payment_value_col: str = "payment_value",
) -> Dict[str, pd.DataFrame]:
    """Run RFM segmentation on a DataFrame of order facts.

    Convenience function that combines conversion and the core pipeline.

    Args:
        facts_df: DataFrame with one row per qualifying order payment
        config: Reference date and bucket count
        *_col: Column name mappings for flexibility

    Returns:
        Dictionary with keys:
        - 'segments': one row per customer with scores and segment
        - 'summary': one row per segment, largest first

    Example:
        >>> facts_df = load_olist_order_facts("data/olist")
        >>> dfs = run_segmentation_df(facts_df)
        >>> dfs["summary"].head()
    """
    facts = dataframe_to_order_facts(
        facts_df,
        customer_id_col=customer_id_col,
        order_id_col=order_id_col,
        purchase_ts_col=purchase_ts_col,
        payment_value_col=payment_value_col,
    )
    result = run_segmentation(facts, config)
    return {
        "segments": segments_to_dataframe(result.segments),
        "summary": summary_to_dataframe(result.summary),
    }
