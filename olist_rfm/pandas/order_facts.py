"""Pandas loaders and adapters for Olist order facts."""

import logging
from pathlib import Path
from typing import List, Sequence, Union

import pandas as pd  # type: ignore

from olist_rfm.foundation.order_facts import (
    DEFAULT_VALID_STATUSES,
    CustomerOrderFact,
)
from ._utils import optional_datetime, optional_decimal

logger = logging.getLogger(__name__)

ORDERS_FILE = "olist_orders_dataset.csv"
CUSTOMERS_FILE = "olist_customers_dataset.csv"
PAYMENTS_FILE = "olist_order_payments_dataset.csv"

ORDER_FACT_COLUMNS = ["customer_id", "order_id", "purchase_ts", "payment_value"]

_ORDER_COLUMNS = [
    "order_id",
    "customer_id",
    "order_status",
    "order_purchase_timestamp",
    "order_delivered_customer_date",
]
_CUSTOMER_COLUMNS = ["customer_id", "customer_unique_id"]
_PAYMENT_COLUMNS = ["order_id", "payment_value"]


def _require_columns(df: pd.DataFrame, columns: Sequence[str], name: str) -> None:
    missing_cols = set(columns) - set(df.columns)
    if missing_cols:
        raise ValueError(f"{name} DataFrame missing required columns: {missing_cols}")


def _parse_timestamps(values: pd.Series, column: str, checked: pd.Series) -> pd.Series:
    # Malformed values only count on rows selected by `checked`
    parsed = pd.to_datetime(values, errors="coerce")
    malformed = values[
        checked & values.notna() & (values.astype(str) != "") & parsed.isna()
    ]
    if not malformed.empty:
        raise ValueError(
            f"{column} has {len(malformed)} values that are not valid timestamps: "
            f"{malformed.head(3).tolist()}"
        )
    return parsed


def build_order_facts_df(
    orders_df: pd.DataFrame,
    customers_df: pd.DataFrame,
    payments_df: pd.DataFrame,
    valid_statuses: Sequence[str] = DEFAULT_VALID_STATUSES,
) -> pd.DataFrame:
    """Join Olist orders, customers and payments into order facts.

    Applies the same cleaning as
    :class:`olist_rfm.foundation.order_facts.OrderFactBuilder`: delivered
    status, purchase strictly before delivery (or no delivery date), inner
    joins to customers and payments.

    Args:
        orders_df: Olist orders table
        customers_df: Olist customers table
        payments_df: Olist order payments table
        valid_statuses: Order statuses to keep (default: delivered)

    Returns:
        DataFrame with columns customer_id (the customer_unique_id),
        order_id, purchase_ts, payment_value; one row per payment

    Raises:
        ValueError: If an input DataFrame is missing required columns
            or holds a timestamp that cannot be parsed

    Example:
        >>> facts_df = build_order_facts_df(orders, customers, payments)
        >>> facts_df.groupby("customer_id")["order_id"].nunique()
    """
    _require_columns(orders_df, _ORDER_COLUMNS, "Orders")
    _require_columns(customers_df, _CUSTOMER_COLUMNS, "Customers")
    _require_columns(payments_df, _PAYMENT_COLUMNS, "Payments")

    orders = orders_df[_ORDER_COLUMNS].copy()
    status_ok = orders["order_status"].isin(list(valid_statuses))
    purchase_ts = _parse_timestamps(
        orders["order_purchase_timestamp"], "order_purchase_timestamp", status_ok
    )
    delivered_ts = _parse_timestamps(
        orders["order_delivered_customer_date"],
        "order_delivered_customer_date",
        status_ok,
    )
    orders["purchase_ts"] = purchase_ts

    timeline_ok = delivered_ts.isna() | (purchase_ts < delivered_ts)
    qualifying = orders[status_ok & timeline_ok]
    logger.info(
        f"Kept {len(qualifying)} of {len(orders)} orders "
        f"({int((~status_ok).sum())} outside {list(valid_statuses)}, "
        f"{int((status_ok & ~timeline_ok).sum())} with an invalid timeline)"
    )

    facts = qualifying.merge(
        customers_df[_CUSTOMER_COLUMNS], on="customer_id", how="inner"
    ).merge(payments_df[_PAYMENT_COLUMNS], on="order_id", how="inner")

    facts = facts.drop(columns=["customer_id"]).rename(
        columns={"customer_unique_id": "customer_id"}
    )
    facts["customer_id"] = facts["customer_id"].astype(str)
    facts["order_id"] = facts["order_id"].astype(str)

    return (
        facts[ORDER_FACT_COLUMNS]
        .sort_values(["customer_id", "order_id"], kind="mergesort")
        .reset_index(drop=True)
    )


def load_olist_order_facts(
    data_dir: Union[str, Path],
    valid_statuses: Sequence[str] = DEFAULT_VALID_STATUSES,
) -> pd.DataFrame:
    """Read the Olist CSV export from ``data_dir`` and build order facts.

    Expects the standard Kaggle file names (olist_orders_dataset.csv,
    olist_customers_dataset.csv, olist_order_payments_dataset.csv).

    Raises:
        FileNotFoundError: If one of the CSV files is absent
    """
    data_dir = Path(data_dir)
    paths = {name: data_dir / name for name in (ORDERS_FILE, CUSTOMERS_FILE, PAYMENTS_FILE)}
    for path in paths.values():
        if not path.is_file():
            raise FileNotFoundError(f"Olist table not found: {path}")

    logger.info(f"Loading Olist tables from {data_dir}")
    orders_df = pd.read_csv(paths[ORDERS_FILE], dtype={"order_id": str, "customer_id": str})
    customers_df = pd.read_csv(
        paths[CUSTOMERS_FILE], dtype={"customer_id": str, "customer_unique_id": str}
    )
    payments_df = pd.read_csv(paths[PAYMENTS_FILE], dtype={"order_id": str})

    return build_order_facts_df(orders_df, customers_df, payments_df, valid_statuses)


def dataframe_to_order_facts(
    facts_df: pd.DataFrame,
    customer_id_col: str = "customer_id",
    order_id_col: str = "order_id",
    purchase_ts_col: str = "purchase_ts",
    payment_value_col: str = "payment_value",
) -> List[CustomerOrderFact]:
    """Convert a DataFrame of order facts to CustomerOrderFact objects.

    Missing timestamps (NaT) and payment values (NaN) become None so the
    aggregator can skip those rows instead of failing.

    Args:
        facts_df: DataFrame with one row per order payment
        *_col: Column name mappings for flexibility

    Returns:
        List of CustomerOrderFact in DataFrame row order

    Raises:
        ValueError: If DataFrame missing required columns or has a negative payment
    """
    required_cols = [customer_id_col, order_id_col, purchase_ts_col, payment_value_col]
    _require_columns(facts_df, required_cols, "Order facts")

    if facts_df.empty:
        return []

    facts = []
    for record in facts_df[required_cols].to_dict("records"):
        facts.append(
            CustomerOrderFact(
                customer_id=str(record[customer_id_col]),
                order_id=str(record[order_id_col]),
                purchase_ts=optional_datetime(record[purchase_ts_col]),
                payment_value=optional_decimal(record[payment_value_col]),
            )
        )
    return facts
