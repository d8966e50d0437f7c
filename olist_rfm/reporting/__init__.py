"""Reporting utilities for segmentation results.

Exports segment summaries to JSON, CSV and Markdown.
"""

from .exports import (
    export_segment_summary_csv,
    export_segment_summary_json,
    export_segment_summary_markdown,
    summary_payload,
)
from .markdown_tables import format_segment_rules_table, format_segment_summary_table

__all__ = [
    "export_segment_summary_csv",
    "export_segment_summary_json",
    "export_segment_summary_markdown",
    "summary_payload",
    "format_segment_rules_table",
    "format_segment_summary_table",
]
