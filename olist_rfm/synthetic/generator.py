from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime, timedelta
import math
import random
from typing import Dict, List, Optional


@dataclass(frozen=True)
class OlistScenarioConfig:
    """Configuration for the synthetic Olist table generator.

    Attributes
    ----------
    mean_orders_per_customer: Average number of orders per unique customer.
    delivered_rate: Share of orders that end in the ``delivered`` status.
    invalid_timeline_rate: Share of delivered orders whose delivery date is
        recorded before the purchase timestamp.
    split_payment_rate: Share of orders paid with two payment rows.
    mean_order_value: Average total payment value of an order.
    value_variability: Coefficient in (0, 1] controlling order value variance.
    seed: Optional RNG seed for reproducibility.
    """

    mean_orders_per_customer: float = 1.1
    delivered_rate: float = 0.97
    invalid_timeline_rate: float = 0.01
    split_payment_rate: float = 0.05
    mean_order_value: float = 160.0
    value_variability: float = 0.6
    seed: Optional[int] = None


@dataclass
class OlistTables:
    """Raw rows shaped like the Olist orders, customers and payments tables."""

    orders: List[Dict[str, object]] = field(default_factory=list)
    customers: List[Dict[str, object]] = field(default_factory=list)
    payments: List[Dict[str, object]] = field(default_factory=list)


_NON_DELIVERED_STATUSES = ("shipped", "canceled", "unavailable", "invoiced", "processing")


def _sample_order_count(rng: random.Random, mean: float) -> int:
    # 1 + Poisson(mean - 1) keeps every customer with at least one order
    lam = max(0.0, mean - 1.0)
    L = math.exp(-lam)
    k = 0
    p = 1.0
    while p > L:
        k += 1
        p *= rng.random()
    return max(1, k)


def _sample_value(rng: random.Random, mean: float, variability: float) -> float:
    variability = min(max(variability, 0.01), 1.0)
    sigma = variability
    mu = math.log(max(mean, 0.01)) - 0.5 * sigma * sigma
    value = math.exp(rng.normalvariate(mu, sigma))
    return round(max(value, 0.01), 2)


def generate_olist_tables(
    n_customers: int,
    start: date,
    end: date,
    *,
    scenario: Optional[OlistScenarioConfig] = None,
) -> OlistTables:
    """Generate Olist-like tables for ``n_customers`` unique customers.

    Like the public dataset, every order gets its own order-level
    ``customer_id`` while ``customer_unique_id`` stays stable per person.
    Purchase timestamps are uniform between ``start`` and ``end``.
    """

    if start > end:
        raise ValueError("start date must be <= end date")
    tables = OlistTables()
    if n_customers <= 0:
        return tables

    scenario = scenario or OlistScenarioConfig()
    rng = random.Random(scenario.seed)
    total_seconds = ((end - start).days + 1) * 86400 - 1
    base = datetime(start.year, start.month, start.day)

    order_seq = 1
    for i in range(n_customers):
        unique_id = f"U-{i + 1}"
        for _ in range(_sample_order_count(rng, scenario.mean_orders_per_customer)):
            order_id = f"O-{order_seq}"
            customer_id = f"C-{order_seq}"
            order_seq += 1

            purchase_ts = base + timedelta(seconds=rng.randrange(total_seconds + 1))
            if rng.random() < scenario.delivered_rate:
                status = "delivered"
                if rng.random() < scenario.invalid_timeline_rate:
                    delivered_ts = purchase_ts - timedelta(days=1 + rng.randrange(5))
                else:
                    delivered_ts = purchase_ts + timedelta(
                        days=2 + rng.randrange(25), hours=rng.randrange(24)
                    )
            else:
                status = rng.choice(_NON_DELIVERED_STATUSES)
                delivered_ts = None

            tables.customers.append(
                {"customer_id": customer_id, "customer_unique_id": unique_id}
            )
            tables.orders.append(
                {
                    "order_id": order_id,
                    "customer_id": customer_id,
                    "order_status": status,
                    "order_purchase_timestamp": purchase_ts,
                    "order_delivered_customer_date": delivered_ts,
                }
            )

            value = _sample_value(
                rng, scenario.mean_order_value, scenario.value_variability
            )
            if rng.random() < scenario.split_payment_rate and value > 1:
                first = round(value * rng.uniform(0.2, 0.8), 2)
                amounts = [first, round(value - first, 2)]
            else:
                amounts = [value]
            for seq, amount in enumerate(amounts, start=1):
                tables.payments.append(
                    {
                        "order_id": order_id,
                        "payment_sequential": seq,
                        "payment_value": amount,
                    }
                )

    return tables
