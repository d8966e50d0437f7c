"""Order fact preparation for customer-level RFM analyses.

The segmentation engine works on a flat collection of qualifying order
payments. This module builds that collection from the raw Olist tables
(orders, customers, order payments) by applying the two cleaning rules
every downstream report relies on:

- only orders in a fulfilled status (``delivered`` by default) are kept;
- an order must have a consistent timeline, i.e. it was purchased strictly
  before it was delivered, or it has no delivery date yet.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from typing import Iterable, Mapping, Sequence

logger = logging.getLogger(__name__)

DEFAULT_VALID_STATUSES = ("delivered",)


@dataclass(frozen=True)
class CustomerOrderFact:
    """One payment row of a qualifying order.

    Attributes
    ----------
    customer_id:
        Deduplicated customer identifier (Olist ``customer_unique_id``).
    order_id:
        Order identifier. An order paid with several instruments yields
        several facts sharing the same ``order_id``.
    purchase_ts:
        Order purchase timestamp, or None when the source value is missing.
    payment_value:
        Amount of this payment, or None when the source value is missing.
    """

    customer_id: str
    order_id: str
    purchase_ts: datetime | None
    payment_value: Decimal | None

    def __post_init__(self) -> None:
        if self.payment_value is not None and self.payment_value < 0:
            raise ValueError(
                f"Payment value cannot be negative: {self.payment_value} "
                f"(order_id={self.order_id})"
            )

    @property
    def is_complete(self) -> bool:
        """True when both the timestamp and the payment value are present."""
        return self.purchase_ts is not None and self.payment_value is not None


def is_valid_timeline(
    purchase_ts: datetime | None, delivered_ts: datetime | None
) -> bool:
    """Return True if an order's purchase precedes its delivery.

    Orders that have not been delivered yet are considered valid.
    """
    if delivered_ts is None:
        return True
    if purchase_ts is None:
        return False
    return purchase_ts < delivered_ts


def _coerce_ts(value: object, field_name: str, idx: int) -> datetime | None:
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value
    if isinstance(value, str):
        try:
            return datetime.fromisoformat(value)
        except ValueError:
            raise ValueError(
                f"{field_name} is not a valid timestamp",
                {"index": idx, "value": value},
            )
    raise TypeError(
        f"{field_name} must be a datetime or ISO string",
        {"index": idx, "value": value},
    )


def _coerce_amount(value: object) -> Decimal | None:
    if value is None or value == "":
        return None
    if isinstance(value, float) and math.isnan(value):
        return None
    return Decimal(str(value))


class OrderFactBuilder:
    """Build CustomerOrderFact rows from raw order, customer and payment records."""

    def __init__(self, valid_statuses: Sequence[str] | None = None):
        if valid_statuses is None:
            valid_statuses = DEFAULT_VALID_STATUSES
        self.valid_statuses = tuple(dict.fromkeys(valid_statuses))

    def build(
        self,
        orders: Iterable[Mapping[str, object]],
        customers: Iterable[Mapping[str, object]],
        payments: Iterable[Mapping[str, object]],
    ) -> list[CustomerOrderFact]:
        unique_ids = self._index_customers(customers)
        qualifying = self._qualifying_orders(orders)
        payments_by_order = self._group_payments(payments)

        facts: list[CustomerOrderFact] = []
        unmatched_customers = 0
        unpaid_orders = 0
        for order_id, (customer_id, purchase_ts) in qualifying.items():
            unique_id = unique_ids.get(customer_id)
            if unique_id is None:
                unmatched_customers += 1
                continue
            order_payments = payments_by_order.get(order_id)
            if not order_payments:
                unpaid_orders += 1
                continue
            for payment_value in order_payments:
                facts.append(
                    CustomerOrderFact(
                        customer_id=unique_id,
                        order_id=order_id,
                        purchase_ts=purchase_ts,
                        payment_value=payment_value,
                    )
                )

        if unmatched_customers or unpaid_orders:
            logger.info(
                f"Dropped {unmatched_customers} orders without a known customer "
                f"and {unpaid_orders} orders without payments"
            )
        logger.info(f"Built {len(facts)} order facts from {len(qualifying)} orders")

        facts.sort(key=lambda fact: (fact.customer_id, fact.order_id))
        return facts

    @staticmethod
    def _index_customers(
        customers: Iterable[Mapping[str, object]],
    ) -> dict[str, str]:
        index: dict[str, str] = {}
        for idx, record in enumerate(customers):
            try:
                index[str(record["customer_id"])] = str(record["customer_unique_id"])
            except KeyError as exc:
                raise KeyError(
                    f"Customer record at index {idx} missing key {exc.args[0]}"
                ) from exc
        return index

    def _qualifying_orders(
        self, orders: Iterable[Mapping[str, object]]
    ) -> dict[str, tuple[str, datetime | None]]:
        qualifying: dict[str, tuple[str, datetime | None]] = {}
        wrong_status = 0
        bad_timeline = 0
        for idx, order in enumerate(orders):
            try:
                order_id = str(order["order_id"])
                customer_id = str(order["customer_id"])
                status = order["order_status"]
            except KeyError as exc:
                raise KeyError(
                    f"Order at index {idx} missing key {exc.args[0]}"
                ) from exc

            if status not in self.valid_statuses:
                wrong_status += 1
                continue

            purchase_ts = _coerce_ts(
                order.get("order_purchase_timestamp"), "order_purchase_timestamp", idx
            )
            delivered_ts = _coerce_ts(
                order.get("order_delivered_customer_date"),
                "order_delivered_customer_date",
                idx,
            )
            if not is_valid_timeline(purchase_ts, delivered_ts):
                bad_timeline += 1
                continue

            qualifying[order_id] = (customer_id, purchase_ts)

        logger.info(
            f"Kept {len(qualifying)} orders; skipped {wrong_status} with status "
            f"outside {list(self.valid_statuses)} and {bad_timeline} with an "
            f"invalid timeline"
        )
        return qualifying

    @staticmethod
    def _group_payments(
        payments: Iterable[Mapping[str, object]],
    ) -> dict[str, list[Decimal | None]]:
        grouped: dict[str, list[Decimal | None]] = {}
        for idx, payment in enumerate(payments):
            try:
                order_id = str(payment["order_id"])
            except KeyError as exc:
                raise KeyError(
                    f"Payment at index {idx} missing key {exc.args[0]}"
                ) from exc
            grouped.setdefault(order_id, []).append(
                _coerce_amount(payment.get("payment_value"))
            )
        return grouped
