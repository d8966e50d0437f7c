"""Shared utilities for pandas conversion operations."""

from decimal import Decimal
from typing import Optional

import pandas as pd  # type: ignore


def decimal_to_float(value: Decimal) -> float:
    """Convert Decimal to float for pandas compatibility."""
    return float(value)


def float_to_decimal(value: float) -> Decimal:
    """Convert float to Decimal, avoiding precision issues.

    Warning:
        Floats with >15 significant digits may lose precision due to
        float representation limits. Payment values carry cents, well
        within that range.

    Args:
        value: Float value to convert

    Returns:
        Decimal representation of the float

    Raises:
        TypeError: If value is not numeric

    Example:
        >>> float_to_decimal(123.45)
        Decimal('123.45')
    """
    if not isinstance(value, (int, float)):
        raise TypeError(f"Expected numeric type, got {type(value)}")
    return Decimal(str(value))


def optional_decimal(value: object) -> Optional[Decimal]:
    """Convert a numeric cell to Decimal, mapping NaN/None to None."""
    if value is None or pd.isna(value):
        return None
    return float_to_decimal(float(value))


def optional_datetime(value: object):
    """Convert a timestamp cell to a python datetime, mapping NaT/None to None."""
    if value is None or pd.isna(value):
        return None
    return pd.to_datetime(value).to_pydatetime()
