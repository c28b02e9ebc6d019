"""
Calendar -- Pure contract-period arithmetic.

Responsibility:
    Day differences on a UTC day grid, month arithmetic with end-of-month
    clamping, payment-schedule intervals, and the human-readable contract
    duration shown on reservation screens.

Architecture position:
    Kernel > Domain -- pure functional core, zero I/O, no dependencies
    outside the standard library and ``tenancy_kernel.exceptions``.

Invariants enforced:
    - ``days_between(a, b) == -days_between(b, a)`` for all inputs.
    - ``add_months`` never overflows a month: Jan 31 + 1 month is the last
      day of February.
    - Month borrowing: a period whose end day-of-month is earlier than its
      start day-of-month is one month shorter than the raw month delta.

Failure modes:
    - InvalidScheduleError for schedule types outside the known cadences.
    - ValueError for unsupported locale families in ``human_period``.
"""

from __future__ import annotations

import calendar
from dataclasses import dataclass
from datetime import date, datetime, timezone
from enum import Enum

from tenancy_kernel.exceptions import InvalidScheduleError

# Installment interval per payment schedule, in months.
SCHEDULE_INTERVAL_MONTHS: dict[str, int] = {
    "monthly": 1,
    "quarterly": 3,
    "triannual": 4,
    "biannual": 6,
    "annual": 12,
}


def _as_utc_date(value: date | datetime) -> date:
    """Project a date or datetime onto the UTC day grid."""
    if isinstance(value, datetime):
        if value.tzinfo is None:
            return value.date()
        return value.astimezone(timezone.utc).date()
    return value


def days_between(a: date | datetime, b: date | datetime) -> int:
    """
    Whole days from ``a`` to ``b`` on the UTC day grid.

    Positive when ``b`` is after ``a``.  Datetimes are normalized to their
    UTC calendar date first, so a daylight-saving shift can never produce an
    off-by-one.
    """
    return _as_utc_date(b).toordinal() - _as_utc_date(a).toordinal()


def add_months(value: date, months: int) -> date:
    """Add ``months`` calendar months, clamping to the last day of the month."""
    month_index = value.year * 12 + (value.month - 1) + months
    year, month = divmod(month_index, 12)
    month += 1
    last_day = calendar.monthrange(year, month)[1]
    return date(year, month, min(value.day, last_day))


def _schedule_key(schedule_type: str | Enum) -> str:
    return schedule_type.value if isinstance(schedule_type, Enum) else str(schedule_type)


def interval_months(schedule_type: str | Enum) -> int:
    """Installment interval in months for a payment schedule type."""
    key = _schedule_key(schedule_type)
    try:
        return SCHEDULE_INTERVAL_MONTHS[key]
    except KeyError:
        raise InvalidScheduleError(key) from None


def add_interval(value: date, schedule_type: str | Enum) -> date:
    """Advance ``value`` by one installment interval of ``schedule_type``."""
    return add_months(value, interval_months(schedule_type))


def whole_months_between(start: date, end: date) -> int:
    """Complete calendar months from ``start`` to ``end`` (day-borrow rule)."""
    months = (end.year - start.year) * 12 + (end.month - start.month)
    if end.day < start.day:
        months -= 1
    return months


def covering_months(start: date, end: date) -> int:
    """
    Months needed to cover ``start``..``end``: whole months plus one if any
    days remain.  This is the month count installment counts derive from.
    """
    months = whole_months_between(start, end)
    if add_months(start, months) < end:
        months += 1
    return max(months, 0)


@dataclass(frozen=True)
class PeriodBreakdown:
    """A contract duration decomposed into years and months."""
    years: int
    months: int

    @property
    def total_months(self) -> int:
        return self.years * 12 + self.months


def period_breakdown(start: date, end: date) -> PeriodBreakdown:
    """
    Decompose ``start``..``end`` into whole years and months.

    2024-01-31 -> 2024-03-01 is 0 years 1 month: the end day (1) is before
    the start day (31), so the second month is borrowed back.
    """
    months = max(whole_months_between(start, end), 0)
    return PeriodBreakdown(years=months // 12, months=months % 12)


# ---------------------------------------------------------------------------
# Human-readable durations
# ---------------------------------------------------------------------------


def _english_unit(count: int, singular: str, plural: str) -> str:
    return f"{count} {singular if count == 1 else plural}"


def _arabic_years(count: int) -> str:
    if count == 1:
        return "سنة واحدة"
    if count == 2:
        return "سنتان"
    if 3 <= count <= 10:
        return f"{count} سنوات"
    return f"{count} سنة"


def _arabic_months(count: int) -> str:
    if count == 1:
        return "شهر واحد"
    if count == 2:
        return "شهران"
    if 3 <= count <= 10:
        return f"{count} أشهر"
    return f"{count} شهرًا"


def _locale_family(locale: str) -> str:
    family = locale.replace("_", "-").split("-")[0].lower()
    if family not in ("en", "ar"):
        raise ValueError(f"Unsupported locale: {locale!r}")
    return family


def human_period(start: date, end: date, locale: str = "en") -> str:
    """
    Format the contract duration for display.

    Supports the ``en`` and ``ar`` locale families (``ar-SA``, ``en_US`` ...).
    Arabic uses the dual for two and the plural only for three to ten.
    """
    family = _locale_family(locale)
    breakdown = period_breakdown(start, end)

    parts: list[str] = []
    if family == "ar":
        if breakdown.years:
            parts.append(_arabic_years(breakdown.years))
        if breakdown.months:
            parts.append(_arabic_months(breakdown.months))
        return " و ".join(parts) if parts else "أقل من شهر"

    if breakdown.years:
        parts.append(_english_unit(breakdown.years, "year", "years"))
    if breakdown.months:
        parts.append(_english_unit(breakdown.months, "month", "months"))
    return " and ".join(parts) if parts else "less than a month"
