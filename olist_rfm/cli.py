"""Command line entry points for the Olist RFM segmentation toolkit."""

from __future__ import annotations

import argparse
import json
import logging
import sys
from datetime import date
from pathlib import Path

from olist_rfm.pandas.order_facts import (
    dataframe_to_order_facts,
    load_olist_order_facts,
)
from olist_rfm.reporting.exports import (
    export_segment_summary_csv,
    export_segment_summary_json,
    export_segment_summary_markdown,
    summary_payload,
)
from olist_rfm.segmentation.summary import (
    DEFAULT_REFERENCE_DATE,
    SegmentationConfig,
    run_segmentation,
)

logger = logging.getLogger(__name__)

OUTPUT_FORMATS = ("csv", "json", "markdown")


def _resolve_output_path(path: Path) -> Path:
    output_path = path.resolve()
    cwd = Path.cwd().resolve()
    try:
        output_path.relative_to(cwd)
    except ValueError:
        raise ValueError(
            f"Output path {output_path} must reside within the current working directory"
        )
    return output_path


def segment_customers_cli(argv: list[str] | None = None) -> int:
    """Segment Olist customers with RFM scoring and report segment sizes.

    This command runs the complete segmentation pipeline:
    1. Loads the Olist orders, customers and payments CSV files
    2. Keeps delivered orders with a consistent purchase/delivery timeline
    3. Aggregates recency, frequency and monetary value per customer
    4. Scores each dimension into quantile buckets and assigns segments
    5. Writes the per-segment summary as JSON, CSV or Markdown

    Args:
        argv: Command line arguments (defaults to sys.argv)

    Returns:
        Exit code (0 for success, non-zero for error)
    """
    parser = argparse.ArgumentParser(
        description="Segment customers by Recency, Frequency and Monetary value"
    )
    parser.add_argument(
        "data_dir", type=Path, help="Directory holding the Olist CSV export"
    )
    parser.add_argument(
        "--reference-date",
        type=str,
        default=DEFAULT_REFERENCE_DATE.isoformat(),
        help=(
            "Reference date for recency (ISO format: YYYY-MM-DD). "
            f"Defaults to {DEFAULT_REFERENCE_DATE.isoformat()}."
        ),
    )
    parser.add_argument(
        "--buckets",
        type=int,
        default=5,
        help="Number of quantile buckets per dimension (default: 5)",
    )
    parser.add_argument(
        "--format",
        dest="output_format",
        choices=OUTPUT_FORMATS,
        default="json",
        help="Output format (default: json)",
    )
    parser.add_argument(
        "--output",
        type=Path,
        help="Optional path for the report; JSON is written to stdout otherwise.",
    )
    parser.add_argument(
        "--log-level",
        default="INFO",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Logging verbosity (default: INFO)",
    )

    args = parser.parse_args(argv)
    logging.basicConfig(
        level=getattr(logging, args.log_level),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        stream=sys.stderr,
    )

    config = SegmentationConfig(
        reference_date=date.fromisoformat(args.reference_date),
        bucket_count=args.buckets,
    )

    facts_df = load_olist_order_facts(args.data_dir)
    if facts_df.empty:
        logger.error("No qualifying orders found in input data")
        return 1

    logger.info(f"Segmenting customers from {len(facts_df)} order payments")
    result = run_segmentation(dataframe_to_order_facts(facts_df), config)
    if not result.segments:
        logger.error("No customers with complete order data")
        return 1

    metadata = {"data_source": str(args.data_dir)}
    if args.output:
        output_path = _resolve_output_path(args.output)
        if args.output_format == "csv":
            export_segment_summary_csv(result, output_path)
        elif args.output_format == "markdown":
            export_segment_summary_markdown(result, output_path, metadata=metadata)
        else:
            export_segment_summary_json(result, output_path, metadata=metadata)
    else:  # stdout fallback enables piping in shell usage.
        json.dump(summary_payload(result, metadata), fp=sys.stdout, indent=2)
        print()

    for row in result.summary:
        logger.info(
            f"{row.segment_name.value}: {row.customer_count} customers, "
            f"avg recency {row.avg_recency_days} days, "
            f"avg monetary ${row.avg_monetary}"
        )
    return 0


def main() -> None:
    raise SystemExit(segment_customers_cli())


if __name__ == "__main__":  # pragma: no cover
    main()
