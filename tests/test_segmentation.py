"""Tests for the segment summary and the end-to-end segmentation pipeline."""

from datetime import date, datetime, timedelta
from decimal import Decimal

import pytest

from olist_rfm.foundation.order_facts import CustomerOrderFact
from olist_rfm.foundation.rfm import CustomerScored
from olist_rfm.segmentation import (
    DEFAULT_REFERENCE_DATE,
    CustomerSegment,
    SegmentationConfig,
    SegmentName,
    SegmentSummary,
    run_segmentation,
    summarize_segments,
)

REFERENCE_DATE = date(2018, 10, 17)


def _orders(customer_id, last_days_ago, frequency, value="50.00"):
    """One payment per order, orders spaced ten days apart."""
    last = datetime(2018, 10, 17, 9, 30) - timedelta(days=last_days_ago)
    return [
        CustomerOrderFact(
            customer_id=customer_id,
            order_id=f"{customer_id}-O{n}",
            purchase_ts=last - timedelta(days=10 * n),
            payment_value=Decimal(value),
        )
        for n in range(frequency)
    ]


def _segment(customer_id, segment_name, recency_days, frequency, monetary):
    scored = CustomerScored(
        customer_id=customer_id,
        last_purchase_ts=datetime(2018, 1, 1),
        frequency=frequency,
        monetary=Decimal(monetary),
        recency_days=recency_days,
        r_score=1,
        f_score=1,
        m_score=1,
        rfm_score="111",
    )
    return CustomerSegment(scored=scored, segment_name=segment_name)


@pytest.fixture
def ten_customer_facts():
    """Two recent heavy buyers, seven middling customers and one lapsed one-timer."""
    facts = []
    facts += _orders("C01", last_days_ago=5, frequency=5)
    facts += _orders("C02", last_days_ago=3, frequency=6)
    for idx, (days_ago, frequency) in enumerate(
        [(30, 2), (45, 3), (60, 4), (90, 2), (120, 3), (150, 4), (200, 2)], start=3
    ):
        facts += _orders(f"C{idx:02d}", last_days_ago=days_ago, frequency=frequency)
    facts += _orders("C10", last_days_ago=400, frequency=1, value="10.00")
    return facts


class TestSegmentationConfig:
    """Test SegmentationConfig defaults and validation."""

    def test_defaults(self):
        config = SegmentationConfig()
        assert config.reference_date == DEFAULT_REFERENCE_DATE == date(2018, 10, 17)
        assert config.bucket_count == 5

    def test_invalid_bucket_count_raises_error(self):
        with pytest.raises(ValueError, match="bucket_count must be at least 1"):
            SegmentationConfig(bucket_count=0)


class TestSegmentSummary:
    """Test SegmentSummary validation."""

    def test_empty_segment_raises_error(self):
        with pytest.raises(ValueError, match="Segment must contain customers"):
            SegmentSummary(
                segment_name=SegmentName.STANDARD,
                customer_count=0,
                avg_recency_days=Decimal("0"),
                avg_frequency=Decimal("0"),
                avg_monetary=Decimal("0"),
            )


class TestSummarizeSegments:
    """Test summarize_segments function."""

    def test_empty_input_returns_empty_list(self):
        assert summarize_segments([]) == []

    def test_counts_and_averages(self):
        segments = [
            _segment("C1", SegmentName.CHAMPIONS, 10, 3, "100.00"),
            _segment("C2", SegmentName.CHAMPIONS, 11, 2, "50.01"),
            _segment("C3", SegmentName.HIBERNATING, 300, 1, "20.00"),
        ]

        summary = summarize_segments(segments)

        champions = summary[0]
        assert champions.segment_name is SegmentName.CHAMPIONS
        assert champions.customer_count == 2
        assert champions.avg_recency_days == Decimal("11")  # 10.5 rounds half up
        assert champions.avg_frequency == Decimal("2.50")
        assert champions.avg_monetary == Decimal("75.01")  # 75.005 rounds half up

        hibernating = summary[1]
        assert hibernating.customer_count == 1
        assert hibernating.avg_recency_days == Decimal("300")
        assert hibernating.avg_monetary == Decimal("20.00")

    def test_ordered_by_count_descending(self):
        segments = [
            _segment("C1", SegmentName.STANDARD, 1, 1, "1"),
            _segment("C2", SegmentName.HIBERNATING, 1, 1, "1"),
            _segment("C3", SegmentName.HIBERNATING, 1, 1, "1"),
            _segment("C4", SegmentName.HIBERNATING, 1, 1, "1"),
            _segment("C5", SegmentName.CHAMPIONS, 1, 1, "1"),
            _segment("C6", SegmentName.CHAMPIONS, 1, 1, "1"),
        ]

        summary = summarize_segments(segments)

        assert [(s.segment_name, s.customer_count) for s in summary] == [
            (SegmentName.HIBERNATING, 3),
            (SegmentName.CHAMPIONS, 2),
            (SegmentName.STANDARD, 1),
        ]

    def test_equal_counts_ordered_by_name(self):
        segments = [
            _segment("C1", SegmentName.STANDARD, 1, 1, "1"),
            _segment("C2", SegmentName.AT_RISK_CUSTOMERS, 1, 1, "1"),
        ]
        summary = summarize_segments(segments)
        assert [s.segment_name for s in summary] == [
            SegmentName.AT_RISK_CUSTOMERS,
            SegmentName.STANDARD,
        ]


class TestRunSegmentation:
    """Test the full Aggregator → Scorer → Classifier → Summary pipeline."""

    def test_empty_input(self):
        result = run_segmentation([])
        assert result.segments == []
        assert result.summary == []
        assert result.total_customers == 0

    def test_recent_heavy_buyers_are_champions(self, ten_customer_facts):
        result = run_segmentation(
            ten_customer_facts, SegmentationConfig(reference_date=REFERENCE_DATE)
        )
        by_id = {s.customer_id: s for s in result.segments}

        for customer_id in ("C01", "C02"):
            scored = by_id[customer_id].scored
            assert (scored.r_score, scored.f_score) == (1, 1)
            assert by_id[customer_id].segment_name is SegmentName.CHAMPIONS

    def test_lapsed_one_time_buyer_is_hibernating(self, ten_customer_facts):
        result = run_segmentation(
            ten_customer_facts, SegmentationConfig(reference_date=REFERENCE_DATE)
        )
        lapsed = next(s for s in result.segments if s.customer_id == "C10")

        assert lapsed.scored.recency_days == 400
        assert lapsed.scored.frequency == 1
        assert (lapsed.scored.r_score, lapsed.scored.f_score) == (5, 5)
        assert lapsed.segment_name is SegmentName.HIBERNATING

    def test_summary_covers_every_customer(self, ten_customer_facts):
        result = run_segmentation(ten_customer_facts)

        assert result.total_customers == 10
        assert sum(s.customer_count for s in result.summary) == 10
        counts = [s.customer_count for s in result.summary]
        assert counts == sorted(counts, reverse=True)

    def test_champions_summary_values(self, ten_customer_facts):
        result = run_segmentation(ten_customer_facts)
        champions = next(
            s for s in result.summary if s.segment_name is SegmentName.CHAMPIONS
        )

        assert champions.customer_count == 2
        assert champions.avg_recency_days == Decimal("4")
        assert champions.avg_frequency == Decimal("5.50")
        assert champions.avg_monetary == Decimal("275.00")

    def test_rerun_is_idempotent(self, ten_customer_facts):
        config = SegmentationConfig(reference_date=REFERENCE_DATE)

        first = run_segmentation(ten_customer_facts, config)
        second = run_segmentation(list(reversed(ten_customer_facts)), config)

        assert first.summary == second.summary
        assert first.segments == second.segments

    def test_custom_bucket_count(self, ten_customer_facts):
        result = run_segmentation(ten_customer_facts, SegmentationConfig(bucket_count=2))
        assert {s.scored.r_score for s in result.segments} == {1, 2}

    @pytest.mark.parametrize("bucket_count", [2, 3, 4, 10])
    def test_top_customer_is_champion_for_any_bucket_count(
        self, ten_customer_facts, bucket_count
    ):
        """The most recent and most frequent buyer keeps its label when buckets change."""
        result = run_segmentation(
            ten_customer_facts, SegmentationConfig(bucket_count=bucket_count)
        )
        top = next(s for s in result.segments if s.customer_id == "C02")

        assert top.scored.rfm_score[:2] == "11"
        assert top.segment_name is SegmentName.CHAMPIONS

    def test_ten_buckets_do_not_inflate_champions(self, ten_customer_facts):
        result = run_segmentation(ten_customer_facts, SegmentationConfig(bucket_count=10))
        champions = [s for s in result.segments if s.segment_name is SegmentName.CHAMPIONS]
        assert {s.customer_id for s in champions} <= {"C01", "C02", "C03", "C04"}

    def test_reference_date_inside_data_range(self):
        """Customers buying after the reference date are still segmented."""
        facts = [
            CustomerOrderFact("C1", "O1", datetime(2018, 1, 5), Decimal("20.00")),
            CustomerOrderFact("C2", "O2", datetime(2018, 3, 5), Decimal("40.00")),
        ]

        result = run_segmentation(
            facts, SegmentationConfig(reference_date=date(2018, 2, 1))
        )

        assert [s.scored.recency_days for s in result.segments] == [27, -32]
        assert result.segments[1].scored.r_score == 1
        assert sum(s.customer_count for s in result.summary) == 2

    def test_reference_date_changes_recency_only(self, ten_customer_facts):
        base = run_segmentation(ten_customer_facts)
        later = run_segmentation(
            ten_customer_facts, SegmentationConfig(reference_date=date(2018, 11, 16))
        )

        for before, after in zip(base.segments, later.segments):
            assert after.scored.recency_days == before.scored.recency_days + 30
            assert after.scored.rfm_score == before.scored.rfm_score
