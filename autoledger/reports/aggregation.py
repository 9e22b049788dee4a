"""
Period Aggregation Engine

DESIGN DECISION: Aggregation is DETERMINISTIC and PURE.
It takes the full transaction list and a period, and returns freshly
built groups. Nothing is cached and nothing handed in is mutated, so it
is safe to re-run on every change to the ledger or the period selector.

Grouping keys are fixed-width so that descending string order is also
newest-first chronological order:
- day:   YYYY-MM-DD
- month: YYYY-MM (zero-padded)
- year:  YYYY

Transactions whose date cannot be read are collected under the
"unknown" key, which is always the LAST group. Aggregation never raises
for a bad date.
"""

from datetime import date, datetime
from decimal import Decimal
from typing import Any, Iterable, Optional, Sequence

import structlog

from autoledger.models.category import Category, TransactionType
from autoledger.models.transaction import (
    DEFAULT_RATIO_EPSILON,
    CategoryTotal,
    LedgerTotals,
    Period,
    PeriodGroup,
    Transaction,
)


logger = structlog.get_logger(__name__)

UNKNOWN_KEY = "unknown"

_WEEKDAYS_ZH = ("周一", "周二", "周三", "周四", "周五", "周六", "周日")
_WEEKDAYS_EN = ("Mon", "Tue", "Wed", "Thu", "Fri", "Sat", "Sun")
_MONTHS_EN = (
    "January", "February", "March", "April", "May", "June",
    "July", "August", "September", "October", "November", "December",
)

_UNKNOWN_TITLES = {
    "zh-CN": "未知日期",
    "en-US": "Unknown date",
}


def coerce_date(value: Any) -> Optional[date]:
    """Read a transaction date, returning None when it is unusable."""
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if isinstance(value, str):
        candidate = value.strip()
        if len(candidate) == 10:
            try:
                return date.fromisoformat(candidate)
            except ValueError:
                return None
    return None


def _as_decimal(value: Any) -> Decimal:
    if isinstance(value, Decimal):
        return value
    return Decimal(str(value))


def _is_income(transaction: Transaction) -> bool:
    return transaction.type == TransactionType.INCOME


def period_title(day: date, period: Period, locale: str = "zh-CN") -> str:
    """Localized label for the period containing `day`."""
    period = Period(period)
    if locale == "en-US":
        if period == Period.DAY:
            return f"{_MONTHS_EN[day.month - 1]} {day.day}, {_WEEKDAYS_EN[day.weekday()]}"
        if period == Period.MONTH:
            return f"{_MONTHS_EN[day.month - 1]} {day.year}"
        return f"{day.year}"

    if period == Period.DAY:
        return f"{day.month}月{day.day}日{_WEEKDAYS_ZH[day.weekday()]}"
    if period == Period.MONTH:
        return f"{day.year}年{day.month}月"
    return f"{day.year}年"


def period_key(day: date, period: Period) -> str:
    """Fixed-width, sortable grouping key."""
    period = Period(period)
    if period == Period.DAY:
        return day.isoformat()
    if period == Period.MONTH:
        return f"{day.year:04d}-{day.month:02d}"
    return f"{day.year:04d}"


class PeriodAggregator:
    """
    Builds period groups and overall totals from a transaction list.

    GUARANTEES:
    - Every input transaction lands in exactly one group
    - Group totals are exact Decimal sums
    - Groups are ordered newest first, unknown dates last
    - Transactions keep their input order inside each group
    """

    def __init__(
        self,
        locale: str = "zh-CN",
        ratio_epsilon: Decimal = DEFAULT_RATIO_EPSILON,
    ):
        self._locale = locale
        self._ratio_epsilon = _as_decimal(ratio_epsilon)

    def aggregate(
        self,
        transactions: Sequence[Transaction],
        period: Period,
    ) -> list[PeriodGroup]:
        """Group transactions by day, month or year."""
        period = Period(period)
        buckets: dict[str, dict] = {}
        unknown_count = 0

        for transaction in transactions:
            day = coerce_date(transaction.date)
            if day is None:
                key = UNKNOWN_KEY
                title = _UNKNOWN_TITLES.get(self._locale, _UNKNOWN_TITLES["zh-CN"])
                unknown_count += 1
            else:
                key = period_key(day, period)
                title = period_title(day, period, self._locale)

            bucket = buckets.get(key)
            if bucket is None:
                bucket = {
                    "title": title,
                    "income": Decimal("0"),
                    "expense": Decimal("0"),
                    "transactions": [],
                }
                buckets[key] = bucket

            amount = _as_decimal(transaction.amount)
            if _is_income(transaction):
                bucket["income"] += amount
            else:
                bucket["expense"] += amount
            bucket["transactions"].append(transaction)

        if unknown_count:
            logger.warning(
                "unparseable_transaction_dates",
                count=unknown_count,
                period=period.value,
            )

        ordered_keys = sorted((k for k in buckets if k != UNKNOWN_KEY), reverse=True)
        if UNKNOWN_KEY in buckets:
            ordered_keys.append(UNKNOWN_KEY)

        return [
            PeriodGroup(
                key=key,
                title=buckets[key]["title"],
                total_income=buckets[key]["income"],
                total_expense=buckets[key]["expense"],
                transactions=tuple(buckets[key]["transactions"]),
                ratio_epsilon=self._ratio_epsilon,
            )
            for key in ordered_keys
        ]

    def ledger_totals(self, transactions: Iterable[Transaction]) -> LedgerTotals:
        """Overall income, expense and count."""
        income = Decimal("0")
        expense = Decimal("0")
        count = 0
        for transaction in transactions:
            amount = _as_decimal(transaction.amount)
            if _is_income(transaction):
                income += amount
            else:
                expense += amount
            count += 1
        return LedgerTotals(
            total_income=income,
            total_expense=expense,
            transaction_count=count,
        )

    def category_breakdown(
        self,
        transactions: Iterable[Transaction],
        transaction_type: Optional[TransactionType] = None,
    ) -> list[CategoryTotal]:
        """
        Sum per category, in first-seen order.

        Pass a transaction_type to restrict the breakdown (the overview
        chart shows expenses only).
        """
        totals: dict[Category, list] = {}
        for transaction in transactions:
            if transaction_type is not None and transaction.type != transaction_type:
                continue
            entry = totals.setdefault(Category(transaction.category), [Decimal("0"), 0])
            entry[0] += _as_decimal(transaction.amount)
            entry[1] += 1

        return [
            CategoryTotal(category=category, total=total, count=count)
            for category, (total, count) in totals.items()
        ]


def aggregate(
    transactions: Sequence[Transaction],
    period: Period,
    locale: str = "zh-CN",
) -> list[PeriodGroup]:
    """Convenience wrapper around PeriodAggregator.aggregate."""
    return PeriodAggregator(locale=locale).aggregate(transactions, period)
