"""Markdown table formatters for segmentation results.

Formats segment summaries as clean markdown tables suitable for reports
and markdown renderers.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Sequence

from olist_rfm.segmentation.classifier import DEFAULT_SEGMENT, SegmentRule

if TYPE_CHECKING:
    from olist_rfm.segmentation.summary import SegmentSummary


def format_segment_summary_table(summary: Sequence[SegmentSummary]) -> str:
    """Format segment summary rows as a markdown table.

    Parameters
    ----------
    summary:
        Segment summary rows, already ordered

    Returns
    -------
    str:
        Markdown-formatted table with one line per segment

    Examples
    --------
    >>> from decimal import Decimal
    >>> from olist_rfm.segmentation import SegmentName, SegmentSummary
    >>> rows = [
    ...     SegmentSummary(
    ...         segment_name=SegmentName.CHAMPIONS,
    ...         customer_count=1200,
    ...         avg_recency_days=Decimal("95"),
    ...         avg_frequency=Decimal("1.12"),
    ...         avg_monetary=Decimal("210.40"),
    ...     )
    ... ]
    >>> print(format_segment_summary_table(rows))
    """
    if not summary:
        return "_No customers to segment._\n"

    table = "| Segment | Customers | Avg Recency (days) | Avg Frequency | Avg Monetary |\n"
    table += "|---------|-----------|--------------------|---------------|--------------|\n"
    for row in summary:
        table += (
            f"| {row.segment_name.value} | {row.customer_count:,} | "
            f"{row.avg_recency_days} | {row.avg_frequency} | "
            f"${row.avg_monetary:,.2f} |\n"
        )
    return table


def format_segment_rules_table(rules: Sequence[SegmentRule]) -> str:
    """Format the segment rule ladder as a markdown table, first match first."""
    table = "| Order | Segment | Condition |\n"
    table += "|-------|---------|-----------|\n"
    for position, rule in enumerate(rules, start=1):
        table += f"| {position} | {rule.label.value} | `{rule.description}` |\n"
    table += f"| {len(rules) + 1} | {DEFAULT_SEGMENT.value} | _otherwise_ |\n"
    return table
