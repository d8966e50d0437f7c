"""Export segmentation results to various formats.

This module provides utilities for saving the per-segment summary of a
segmentation run for dashboards, spreadsheets and written reports.
"""

from __future__ import annotations

import json
import logging
from datetime import datetime
from pathlib import Path
from typing import Any

from olist_rfm.pandas.segmentation import summary_to_dataframe
from olist_rfm.reporting.markdown_tables import (
    format_segment_rules_table,
    format_segment_summary_table,
)
from olist_rfm.segmentation.classifier import SEGMENT_RULES
from olist_rfm.segmentation.summary import SegmentationResult

logger = logging.getLogger(__name__)


def summary_payload(
    result: SegmentationResult, metadata: dict[str, Any] | None = None
) -> dict[str, Any]:
    """Return a JSON-serialisable representation of a segmentation run."""
    return {
        "metadata": metadata or {},
        "config": {
            "reference_date": result.config.reference_date.isoformat(),
            "bucket_count": result.config.bucket_count,
        },
        "total_customers": result.total_customers,
        "segments": [
            {
                "segment_name": row.segment_name.value,
                "customer_count": row.customer_count,
                "avg_recency_days": float(row.avg_recency_days),
                "avg_frequency": float(row.avg_frequency),
                "avg_monetary": float(row.avg_monetary),
            }
            for row in result.summary
        ],
    }


def export_segment_summary_json(
    result: SegmentationResult,
    output_path: str | Path,
    metadata: dict[str, Any] | None = None,
) -> None:
    """Export the segment summary to JSON format.

    Parameters
    ----------
    result:
        Output of :func:`olist_rfm.segmentation.run_segmentation`
    output_path:
        Path where JSON file will be saved
    metadata:
        Optional metadata to include in report (e.g., data source)

    Examples
    --------
    >>> result = run_segmentation(facts)
    >>> export_segment_summary_json(
    ...     result, "segments.json", metadata={"data_source": "olist-2018"}
    ... )
    """
    output_path = Path(output_path)
    output_path.parent.mkdir(parents=True, exist_ok=True)

    report_data = summary_payload(result, metadata)
    report_data["timestamp"] = datetime.now().isoformat()

    with open(output_path, "w") as f:
        json.dump(report_data, f, indent=2)

    logger.info(f"Segment summary exported to {output_path}")


def export_segment_summary_csv(
    result: SegmentationResult,
    output_path: str | Path,
) -> None:
    """Export the segment summary to CSV format, one row per segment."""
    output_path = Path(output_path)
    output_path.parent.mkdir(parents=True, exist_ok=True)

    df = summary_to_dataframe(result.summary)
    df.to_csv(output_path, index=False)

    logger.info(f"Segment summary exported to {output_path}")


def export_segment_summary_markdown(
    result: SegmentationResult,
    output_path: str | Path,
    title: str = "RFM Customer Segmentation",
    metadata: dict[str, Any] | None = None,
) -> None:
    """Export the segment summary to Markdown format.

    Parameters
    ----------
    result:
        Output of :func:`olist_rfm.segmentation.run_segmentation`
    output_path:
        Path where Markdown file will be saved
    title:
        Report title (default: "RFM Customer Segmentation")
    metadata:
        Optional metadata to include in report header
    """
    output_path = Path(output_path)
    output_path.parent.mkdir(parents=True, exist_ok=True)

    lines = []
    lines.append(f"# {title}\n")
    lines.append(f"**Generated:** {datetime.now().strftime('%Y-%m-%d %H:%M:%S')}")
    lines.append(f"**Reference Date:** {result.config.reference_date.isoformat()}")
    lines.append(f"**Buckets per Dimension:** {result.config.bucket_count}\n")

    if metadata:
        lines.append("## Metadata\n")
        for key, value in metadata.items():
            lines.append(f"- **{key}:** {value}")
        lines.append("")

    lines.append("## Summary\n")
    lines.append(f"- **Total Customers:** {result.total_customers:,}")
    lines.append(f"- **Segments:** {len(result.summary)}\n")

    lines.append("## Segments\n")
    lines.append(format_segment_summary_table(result.summary))

    lines.append("## Segment Rules\n")
    lines.append(
        "Scores are points from 1 (worst) to 5 (best); the first matching rule wins.\n"
    )
    lines.append(format_segment_rules_table(SEGMENT_RULES))

    with open(output_path, "w") as f:
        f.write("\n".join(lines))

    logger.info(f"Segment summary exported to {output_path}")
