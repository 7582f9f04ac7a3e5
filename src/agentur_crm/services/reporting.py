"""Aggregation over bookkeeping, appointment and customer lists.

All functions are pure and work on already-loaded records. Money is
accumulated as unrounded ``Decimal``; rounding to whole currency units
happens only in ``display_round``.
"""

from __future__ import annotations

from collections import Counter
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta
from decimal import ROUND_HALF_UP, Decimal
from enum import Enum
from typing import Any, Iterable, Protocol, Sequence
from uuid import UUID

from agentur_crm.domain import ACTIVE_ACTION_STEPS, SUCCESS_STAGES, PipelineStage
from agentur_crm.services.pipeline import parse_stage

ZERO = Decimal("0")

TAX_NOT_REQUIRED_NOTICE = (
    "Da Ihre Ausgaben höher als oder gleich Ihren Einnahmen sind, "
    "ist keine Steuerrücklage erforderlich."
)


class DatedAmount(Protocol):
    amount: Any
    date: Any


def _as_decimal(value: Any) -> Decimal:
    if value is None:
        return ZERO
    if isinstance(value, Decimal):
        return value
    return Decimal(str(value))


def _as_date(value: Any) -> date:
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    return date.fromisoformat(str(value)[:10])


# =============================================================================
# Sums and Windows
# =============================================================================


def total(records: Iterable[DatedAmount]) -> Decimal:
    """Unrounded sum of ``amount``."""
    return sum((_as_decimal(r.amount) for r in records), ZERO)


def average(records: Sequence[DatedAmount]) -> Decimal:
    """Unrounded mean of ``amount``; 0 for an empty list."""
    if not records:
        return ZERO
    return total(records) / len(records)


def filter_since(records: Iterable[DatedAmount], cutoff: date) -> list[Any]:
    """Records dated on or after ``cutoff``."""
    return [r for r in records if _as_date(r.date) >= cutoff]


def filter_on(records: Iterable[DatedAmount], day: date) -> list[Any]:
    """Records dated exactly ``day``."""
    return [r for r in records if _as_date(r.date) == day]


class ReportWindow(str, Enum):
    """Reporting period relative to a given day."""

    TODAY = "today"
    WEEK = "week"
    MONTH = "month"
    YEAR = "year"
    ALL = "all"

    def cutoff(self, today: date) -> date | None:
        """First day inside the window (None for all-time)."""
        if self is ReportWindow.ALL:
            return None
        return today - timedelta(days=_WINDOW_DAYS[self])


_WINDOW_DAYS = {
    ReportWindow.TODAY: 0,
    ReportWindow.WEEK: 7,
    ReportWindow.MONTH: 30,
    ReportWindow.YEAR: 365,
}


def in_window(records: Iterable[DatedAmount], window: ReportWindow, today: date) -> list[Any]:
    cutoff = window.cutoff(today)
    if cutoff is None:
        return list(records)
    if window is ReportWindow.TODAY:
        return filter_on(records, today)
    return filter_since(records, cutoff)


def window_total(records: Iterable[DatedAmount], window: ReportWindow, today: date) -> Decimal:
    """Sum of the records inside ``window``."""
    return total(in_window(records, window, today))


def display_round(value: Decimal | int | float) -> int:
    """Round to whole currency units, halves away from zero."""
    return int(_as_decimal(value).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


# =============================================================================
# Tax and Financial Summary
# =============================================================================


def tax_reserve(net_profit: Decimal, tax_rate: Decimal | float) -> Decimal:
    """Amount to set aside for tax: ``max(0, net) * rate / 100``."""
    if net_profit <= 0:
        return ZERO
    return net_profit * _as_decimal(tax_rate) / Decimal("100")


@dataclass(frozen=True)
class WindowFigures:
    revenue: Decimal
    expenses: Decimal

    @property
    def profit(self) -> Decimal:
        return self.revenue - self.expenses


@dataclass(frozen=True)
class FinancialSummary:
    """Totals, tax reserve and per-window figures."""

    total_revenue: Decimal
    total_expenses: Decimal
    tax_rate: Decimal
    tax_reserve: Decimal
    notice: str | None = None
    windows: dict[ReportWindow, WindowFigures] = field(default_factory=dict)

    @property
    def net_profit(self) -> Decimal:
        return self.total_revenue - self.total_expenses

    def to_display(self) -> dict[str, Any]:
        """Whole-unit figures for presentation."""
        return {
            "total_revenue": display_round(self.total_revenue),
            "total_expenses": display_round(self.total_expenses),
            "net_profit": display_round(self.net_profit),
            "tax_rate": float(self.tax_rate),
            "tax_reserve": display_round(self.tax_reserve),
            "notice": self.notice,
            "windows": {
                window.value: {
                    "revenue": display_round(figures.revenue),
                    "expenses": display_round(figures.expenses),
                    "profit": display_round(figures.profit),
                }
                for window, figures in self.windows.items()
            },
        }


def financial_summary(
    revenues: Sequence[DatedAmount],
    expenses: Sequence[DatedAmount],
    tax_rate: Decimal | float,
    today: date,
) -> FinancialSummary:
    """Everything the financial overview shows, unrounded."""
    revenue_total = total(revenues)
    expense_total = total(expenses)
    net = revenue_total - expense_total
    return FinancialSummary(
        total_revenue=revenue_total,
        total_expenses=expense_total,
        tax_rate=_as_decimal(tax_rate),
        tax_reserve=tax_reserve(net, tax_rate),
        notice=TAX_NOT_REQUIRED_NOTICE if net <= 0 else None,
        windows={
            window: WindowFigures(
                revenue=window_total(revenues, window, today),
                expenses=window_total(expenses, window, today),
            )
            for window in ReportWindow
        },
    )


# =============================================================================
# Appointments and Customers
# =============================================================================


def stage_counts(appointments: Iterable[Any]) -> dict[PipelineStage, int]:
    """Number of appointments per stage, every stage present."""
    counts = Counter(parse_stage(a.result) for a in appointments)
    return {stage: counts.get(stage, 0) for stage in PipelineStage}


@dataclass(frozen=True)
class TopPerformer:
    member_id: UUID
    name: str
    count: int


def top_performer(appointments: Iterable[Any], members: Iterable[Any]) -> TopPerformer | None:
    """Member with the most attended or completed appointments.

    Equal counts go to the alphabetically first name. Appointments
    without an assignee, or assigned to an unknown member, are ignored.
    """
    names = {m.id: m.name for m in members}
    counts = Counter(
        a.team_member_id
        for a in appointments
        if a.team_member_id in names and parse_stage(a.result) in SUCCESS_STAGES
    )
    if not counts:
        return None

    member_id, count = min(
        counts.items(),
        key=lambda item: (-item[1], names[item[0]].casefold(), str(item[0])),
    )
    return TopPerformer(member_id=member_id, name=names[member_id], count=count)


def active_customer_count(customers: Iterable[Any]) -> int:
    """Customers whose action step marks them as active."""
    active = {step.value for step in ACTIVE_ACTION_STEPS}
    return sum(1 for c in customers if c.action_step in active)
