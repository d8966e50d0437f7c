"""Integration tests for the segmentation CLI.

Tests the complete workflow from Olist CSV files through the CLI command
to final output files (JSON, CSV and Markdown segment summaries).
"""

import json
from datetime import date

import pandas as pd
import pytest

from olist_rfm.cli import segment_customers_cli
from olist_rfm.synthetic import OlistScenarioConfig, generate_olist_tables


def _write_tables(tables, data_dir):
    data_dir.mkdir(parents=True, exist_ok=True)
    pd.DataFrame(tables.orders).to_csv(data_dir / "olist_orders_dataset.csv", index=False)
    pd.DataFrame(tables.customers).to_csv(
        data_dir / "olist_customers_dataset.csv", index=False
    )
    pd.DataFrame(tables.payments).to_csv(
        data_dir / "olist_order_payments_dataset.csv", index=False
    )


@pytest.fixture
def olist_dir(tmp_path, monkeypatch):
    """Synthetic Olist export inside a temporary working directory."""
    monkeypatch.chdir(tmp_path)
    tables = generate_olist_tables(
        120,
        date(2017, 1, 1),
        date(2018, 8, 31),
        scenario=OlistScenarioConfig(seed=2024, mean_orders_per_customer=1.5),
    )
    data_dir = tmp_path / "olist"
    _write_tables(tables, data_dir)
    return data_dir


class TestSegmentCustomersCLI:
    def test_writes_json_report(self, olist_dir, tmp_path):
        exit_code = segment_customers_cli(
            [str(olist_dir), "--output", "out/segments.json"]
        )

        assert exit_code == 0
        data = json.loads((tmp_path / "out" / "segments.json").read_text())
        assert data["config"] == {"reference_date": "2018-10-17", "bucket_count": 5}
        assert data["total_customers"] > 0
        assert (
            sum(row["customer_count"] for row in data["segments"])
            == data["total_customers"]
        )

    def test_writes_csv_report(self, olist_dir, tmp_path):
        exit_code = segment_customers_cli(
            [str(olist_dir), "--format", "csv", "--output", "segments.csv"]
        )

        assert exit_code == 0
        df = pd.read_csv(tmp_path / "segments.csv")
        counts = list(df["customer_count"])
        assert counts == sorted(counts, reverse=True)

    def test_writes_markdown_report(self, olist_dir, tmp_path):
        exit_code = segment_customers_cli(
            [
                str(olist_dir),
                "--format",
                "markdown",
                "--output",
                "segments.md",
                "--reference-date",
                "2018-09-30",
                "--buckets",
                "4",
            ]
        )

        assert exit_code == 0
        content = (tmp_path / "segments.md").read_text()
        assert "**Reference Date:** 2018-09-30" in content
        assert "**Buckets per Dimension:** 4" in content

    def test_stdout_fallback(self, olist_dir, capsys):
        exit_code = segment_customers_cli([str(olist_dir)])

        assert exit_code == 0
        payload = json.loads(capsys.readouterr().out)
        assert payload["metadata"] == {"data_source": str(olist_dir)}

    def test_output_outside_cwd_rejected(self, olist_dir, tmp_path_factory):
        outside = tmp_path_factory.mktemp("elsewhere") / "segments.json"
        with pytest.raises(ValueError, match="must reside within the current working directory"):
            segment_customers_cli([str(olist_dir), "--output", str(outside)])

    def test_no_qualifying_orders_returns_error(self, tmp_path, monkeypatch):
        monkeypatch.chdir(tmp_path)
        tables = generate_olist_tables(
            10,
            date(2018, 1, 1),
            date(2018, 3, 31),
            scenario=OlistScenarioConfig(seed=3, delivered_rate=0.0),
        )
        data_dir = tmp_path / "olist"
        _write_tables(tables, data_dir)

        assert segment_customers_cli([str(data_dir)]) == 1
