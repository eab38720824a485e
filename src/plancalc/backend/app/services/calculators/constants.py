"""Calendar and target constants shared by the derivers."""

from __future__ import annotations

MONTHS_PER_YEAR = 12
WEEKS_PER_YEAR = 52
WEEKS_PER_CYCLE = 4
BASE_WORK_DAYS_PER_WEEK = 7

TARGET_NET_DEFAULT = 50000.0
TARGET_NET_BASIS_VALUES = ("year", "week", "month", "avgWeek", "avgMonth")
TARGET_INCOME_MODES = ("net", "gross")
TAX_MODE_VALUES = ("simple", "dutch2025")

DEFAULT_SESSION_LENGTH = 1.5
SESSION_LENGTH_RANGE = (0.25, 12.0)

# Spellings accepted for the averaged bases in addition to the canonical ones.
BASIS_ALIASES = {
    "yearly": "year",
    "weekly": "week",
    "monthly": "month",
    "averageWeek": "avgWeek",
    "average_week": "avgWeek",
    "averageMonth": "avgMonth",
    "average_month": "avgMonth",
}

__all__ = [
    "BASE_WORK_DAYS_PER_WEEK",
    "BASIS_ALIASES",
    "DEFAULT_SESSION_LENGTH",
    "MONTHS_PER_YEAR",
    "SESSION_LENGTH_RANGE",
    "TARGET_INCOME_MODES",
    "TARGET_NET_BASIS_VALUES",
    "TARGET_NET_DEFAULT",
    "TAX_MODE_VALUES",
    "WEEKS_PER_CYCLE",
    "WEEKS_PER_YEAR",
]
