"""Foundational building blocks for customer segmentation.

This package exposes the order fact preparation step as well as the
RFM (Recency-Frequency-Monetary) aggregation and scoring utilities.
"""

from .order_facts import CustomerOrderFact, OrderFactBuilder, is_valid_timeline
from .rfm import (
    CustomerAggregate,
    CustomerScored,
    aggregate_customers,
    ntile,
    score_customers,
)

__all__ = [
    "CustomerOrderFact",
    "OrderFactBuilder",
    "is_valid_timeline",
    "CustomerAggregate",
    "CustomerScored",
    "aggregate_customers",
    "ntile",
    "score_customers",
]
