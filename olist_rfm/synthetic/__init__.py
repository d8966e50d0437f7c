"""Synthetic data generation utilities.

This package produces realistic-but-fake Olist tables to exercise the
segmentation pipeline without the real dataset.
"""

from .generator import OlistScenarioConfig, OlistTables, generate_olist_tables

__all__ = [
    "OlistScenarioConfig",
    "OlistTables",
    "generate_olist_tables",
]
