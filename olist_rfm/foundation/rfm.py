"""RFM (Recency-Frequency-Monetary) aggregation and scoring utilities.

RFM analysis describes each customer along three dimensions:
- Recency: How recently did the customer make a purchase?
- Frequency: How many distinct orders did they place?
- Monetary: How much did they pay in total?

Scoring is population-relative. Every customer is ranked against the whole
population on each dimension and the ranking is cut into equally sized
quantile buckets (SQL ``NTILE`` semantics), so no score is final until the
full population has been aggregated.
"""

from __future__ import annotations

import logging
import multiprocessing
import os
from dataclasses import dataclass
from datetime import date, datetime
from decimal import Decimal, ROUND_HALF_UP
from typing import Iterable, Optional, Sequence

import numpy as np
import pandas as pd  # Used for population-wide ranking

from olist_rfm.foundation.order_facts import CustomerOrderFact

logger = logging.getLogger(__name__)

DEFAULT_BUCKET_COUNT = 5


@dataclass(frozen=True)
class CustomerAggregate:
    """Recency/frequency/monetary inputs for a single customer.

    Attributes
    ----------
    customer_id:
        Unique customer identifier
    last_purchase_ts:
        Latest purchase timestamp across the customer's qualifying orders
    frequency:
        Number of distinct qualifying orders
    monetary:
        Sum of all payment values across qualifying orders
    """

    customer_id: str
    last_purchase_ts: datetime
    frequency: int
    monetary: Decimal

    def __post_init__(self) -> None:
        """Validate aggregate values."""
        if self.frequency <= 0:
            raise ValueError(
                f"Frequency must be positive: {self.frequency} (customer_id={self.customer_id})"
            )
        if self.monetary < 0:
            raise ValueError(
                f"Monetary value cannot be negative: {self.monetary} (customer_id={self.customer_id})"
            )


@dataclass(frozen=True)
class CustomerScored:
    """Quantile scores for a single customer.

    Scores are bucket ranks: 1 holds the most favourable customers on that
    dimension (most recent, most frequent, highest spend) and
    ``bucket_count`` the least favourable.

    Attributes
    ----------
    customer_id:
        Unique customer identifier
    last_purchase_ts:
        Latest purchase timestamp
    frequency:
        Number of distinct qualifying orders
    monetary:
        Total payment value
    recency_days:
        Whole days between the last purchase date and the reference date;
        negative when the purchase falls after the reference date
    r_score:
        Recency bucket (1 = most recent)
    f_score:
        Frequency bucket (1 = most orders)
    m_score:
        Monetary bucket (1 = highest spend)
    rfm_score:
        Concatenated bucket string (e.g., "125")
    """

    customer_id: str
    last_purchase_ts: datetime
    frequency: int
    monetary: Decimal
    recency_days: int
    r_score: int
    f_score: int
    m_score: int
    rfm_score: str

    def __post_init__(self) -> None:
        """Validate scores."""
        for name, score in (
            ("r_score", self.r_score),
            ("f_score", self.f_score),
            ("m_score", self.m_score),
        ):
            if score < 1:
                raise ValueError(
                    f"{name} must be at least 1: {score} (customer_id={self.customer_id})"
                )
        expected = f"{self.r_score}{self.f_score}{self.m_score}"
        if self.rfm_score != expected:
            raise ValueError(
                f"RFM score string ({self.rfm_score}) does not match scores ({expected})"
            )


def _aggregate_customer_chunk(
    customer_data_chunk: dict[str, dict],
) -> list[CustomerAggregate]:
    """Reduce grouped fact data into aggregates for a chunk of customers.

    Called directly for serial runs and by multiprocessing workers for
    large populations.
    """
    aggregates: list[CustomerAggregate] = []
    for customer_id, data in customer_data_chunk.items():
        aggregates.append(
            CustomerAggregate(
                customer_id=customer_id,
                last_purchase_ts=data["last_purchase_ts"],
                frequency=len(data["order_ids"]),
                monetary=data["monetary"].quantize(
                    Decimal("0.01"), rounding=ROUND_HALF_UP
                ),
            )
        )
    return aggregates


def aggregate_customers(
    facts: Iterable[CustomerOrderFact],
    *,
    parallel: bool = True,
    parallel_threshold: int = 10_000_000,
    n_workers: Optional[int] = None,
) -> list[CustomerAggregate]:
    """Collapse order facts into one aggregate per customer.

    Frequency counts distinct order identifiers, so an order paid in several
    installments or with several instruments is counted once while all of its
    payment values contribute to the monetary total.

    **Incomplete rows**: facts without a purchase timestamp or payment value
    are skipped. A customer whose facts are all incomplete does not appear in
    the output.

    **Parallel Processing**: When the number of distinct customers reaches
    ``parallel_threshold`` and ``parallel`` is enabled, the per-customer
    reduction is split into chunks processed by a multiprocessing pool. The
    output is identical to the serial path.

    Parameters
    ----------
    facts:
        Qualifying order payment rows
    parallel:
        Enable parallel processing for large populations (default: True)
    parallel_threshold:
        Number of customers above which to use the process pool
        (default: 10,000,000)
    n_workers:
        Number of worker processes. If None (default), uses CPU count.

    Returns
    -------
    list[CustomerAggregate]
        One aggregate per customer, sorted by customer_id

    Examples
    --------
    >>> from datetime import datetime
    >>> from decimal import Decimal
    >>> facts = [
    ...     CustomerOrderFact("C1", "O1", datetime(2018, 1, 5), Decimal("40.00")),
    ...     CustomerOrderFact("C1", "O1", datetime(2018, 1, 5), Decimal("10.00")),
    ...     CustomerOrderFact("C1", "O2", datetime(2018, 3, 1), Decimal("25.50")),
    ... ]
    >>> aggregates = aggregate_customers(facts)
    >>> aggregates[0].frequency
    2
    >>> aggregates[0].monetary
    Decimal('75.50')
    """
    customer_data: dict[str, dict] = {}
    skipped = 0
    for fact in facts:
        if not fact.is_complete:
            skipped += 1
            continue

        data = customer_data.get(fact.customer_id)
        if data is None:
            data = customer_data[fact.customer_id] = {
                "last_purchase_ts": fact.purchase_ts,
                "order_ids": set(),
                "monetary": Decimal("0"),
            }

        if fact.purchase_ts > data["last_purchase_ts"]:
            data["last_purchase_ts"] = fact.purchase_ts
        data["order_ids"].add(fact.order_id)
        data["monetary"] += fact.payment_value

    if skipped:
        logger.warning(
            f"Skipped {skipped} order facts with a missing purchase timestamp or payment value"
        )

    if not customer_data:
        return []

    num_customers = len(customer_data)
    use_parallel = parallel and num_customers >= parallel_threshold

    if use_parallel:
        if n_workers is None:
            workers = os.cpu_count() or 1
        else:
            workers = max(1, n_workers)

        customer_items = list(customer_data.items())
        chunk_size = max(1, num_customers // workers)
        chunks = [
            (dict(customer_items[i : i + chunk_size]),)
            for i in range(0, num_customers, chunk_size)
        ]

        logger.info(
            f"Aggregating {num_customers} customers in {len(chunks)} chunks "
            f"with {workers} workers"
        )
        with multiprocessing.Pool(processes=workers) as pool:
            chunk_results = pool.starmap(_aggregate_customer_chunk, chunks)

        aggregates: list[CustomerAggregate] = []
        for chunk_result in chunk_results:
            aggregates.extend(chunk_result)
    else:
        aggregates = _aggregate_customer_chunk(customer_data)

    aggregates.sort(key=lambda a: a.customer_id)
    return aggregates


def ntile(n_rows: int, bucket_count: int = DEFAULT_BUCKET_COUNT) -> np.ndarray:
    """Return the NTILE bucket (1-based) for each rank position ``0..n_rows-1``.

    The first ``n_rows % bucket_count`` buckets hold one extra row, so any two
    buckets differ in size by at most one. With fewer rows than buckets only
    buckets ``1..n_rows`` are used.

    >>> ntile(7, 5).tolist()
    [1, 1, 2, 2, 3, 4, 5]
    >>> ntile(3, 5).tolist()
    [1, 2, 3]
    """
    if bucket_count < 1:
        raise ValueError(f"bucket_count must be at least 1: {bucket_count}")
    if n_rows < 0:
        raise ValueError(f"n_rows cannot be negative: {n_rows}")

    positions = np.arange(n_rows)
    base, remainder = divmod(n_rows, bucket_count)
    large_rows = remainder * (base + 1)
    buckets = np.where(
        positions < large_rows,
        positions // (base + 1),
        remainder + (positions - large_rows) // max(base, 1),
    )
    return (buckets + 1).astype(int)


def _recency_days(last_purchase_ts: datetime, reference_date: date) -> int:
    # Calendar-day difference, ignoring the time of day
    return (reference_date - last_purchase_ts.date()).days


def score_customers(
    aggregates: Sequence[CustomerAggregate],
    reference_date: date,
    bucket_count: int = DEFAULT_BUCKET_COUNT,
) -> list[CustomerScored]:
    """Assign quantile bucket scores to a customer population.

    Each dimension is ranked independently, most favourable first:
    recency by ``last_purchase_ts`` descending, frequency and monetary by
    value descending. Ties are ordered by ``customer_id`` so the same
    population always yields the same buckets.

    Parameters
    ----------
    aggregates:
        The full customer population. Scores are relative to it, so passing
        a subset changes every score.
    reference_date:
        Fixed "as of" date for recency. Never derived from the clock, to keep
        runs reproducible.
    bucket_count:
        Number of quantile buckets (default: 5)

    Returns
    -------
    list[CustomerScored]
        One scored row per aggregate, sorted by customer_id

    Raises
    ------
    ValueError
        If bucket_count < 1
    """
    if bucket_count < 1:
        raise ValueError(f"bucket_count must be at least 1: {bucket_count}")
    if not aggregates:
        return []

    if isinstance(reference_date, datetime):
        reference_date = reference_date.date()

    recency = [_recency_days(a.last_purchase_ts, reference_date) for a in aggregates]
    future_count = sum(1 for days in recency if days < 0)
    if future_count:
        logger.warning(
            f"{future_count} customers purchased after reference_date "
            f"({reference_date}); their recency_days is negative"
        )

    df = pd.DataFrame(
        {
            "customer_id": [a.customer_id for a in aggregates],
            "last_purchase_ts": [pd.Timestamp(a.last_purchase_ts) for a in aggregates],
            "frequency": [a.frequency for a in aggregates],
            "monetary": [float(a.monetary) for a in aggregates],
        }
    )

    buckets = ntile(len(df), bucket_count)
    for column, score_column in (
        ("last_purchase_ts", "r_score"),
        ("frequency", "f_score"),
        ("monetary", "m_score"),
    ):
        ranked = df.sort_values(
            [column, "customer_id"], ascending=[False, True], kind="mergesort"
        ).index
        df[score_column] = pd.Series(buckets, index=ranked)

    scored: list[CustomerScored] = []
    for aggregate, days, r_score, f_score, m_score in zip(
        aggregates, recency, df["r_score"], df["f_score"], df["m_score"]
    ):
        scored.append(
            CustomerScored(
                customer_id=aggregate.customer_id,
                last_purchase_ts=aggregate.last_purchase_ts,
                frequency=aggregate.frequency,
                monetary=aggregate.monetary,
                recency_days=days,
                r_score=int(r_score),
                f_score=int(f_score),
                m_score=int(m_score),
                rfm_score=f"{int(r_score)}{int(f_score)}{int(m_score)}",
            )
        )

    scored.sort(key=lambda s: s.customer_id)
    return scored
