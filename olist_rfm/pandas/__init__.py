"""Pandas DataFrame adapters for customer segmentation components."""

from .order_facts import (
    build_order_facts_df,
    load_olist_order_facts,
    dataframe_to_order_facts,
)
from .segmentation import (
    segments_to_dataframe,
    summary_to_dataframe,
    run_segmentation_df,
)

__all__ = [
    # Order fact adapters
    "build_order_facts_df",
    "load_olist_order_facts",
    "dataframe_to_order_facts",
    # Segmentation adapters
    "segments_to_dataframe",
    "summary_to_dataframe",
    "run_segmentation_df",
]
