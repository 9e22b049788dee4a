"""Summary and aggregation package."""

from autoledger.reports.aggregation import (
    UNKNOWN_KEY,
    PeriodAggregator,
    aggregate,
    period_key,
    period_title,
)

__all__ = [
    "UNKNOWN_KEY",
    "PeriodAggregator",
    "aggregate",
    "period_key",
    "period_title",
]
