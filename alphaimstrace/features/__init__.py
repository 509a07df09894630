"""Tabular export of traces and mobilograms (pandas)."""

from .feature_table import (
    FEATURE_TABLE_COLUMNS,
    mobilograms_to_table,
    traces_to_feature_table,
)

__all__ = [
    'FEATURE_TABLE_COLUMNS',
    'mobilograms_to_table',
    'traces_to_feature_table',
]
