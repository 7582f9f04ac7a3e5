"""Role dashboards for admins, members and customer portal accounts."""

from __future__ import annotations

import datetime as dt
from typing import Any
from uuid import UUID

from pydantic import BaseModel, Field
from sqlalchemy.exc import SQLAlchemyError

from agentur_crm.core.exceptions import PermissionDeniedError, StoreError, UnauthorizedError
from agentur_crm.core.log_setup import get_logger
from agentur_crm.domain import PipelineStage
from agentur_crm.services import permissions
from agentur_crm.services.factory import ServiceFactory
from agentur_crm.services.permissions import Capability
from agentur_crm.services.reporting import (
    ReportWindow,
    active_customer_count,
    display_round,
    financial_summary,
    stage_counts,
    top_performer,
)

log = get_logger(__name__)


class AppointmentCard(BaseModel):
    id: UUID
    date: dt.date
    time: str | None = None
    type: str
    description: str | None = None
    result: str
    customer_id: UUID | None = None
    team_member_id: UUID | None = None

    @classmethod
    def from_model(cls, model: Any) -> "AppointmentCard":
        return cls(
            id=model.id,
            date=model.date,
            time=model.time.strftime("%H:%M") if model.time else None,
            type=model.type,
            description=model.description,
            result=model.result,
            customer_id=model.customer_id,
            team_member_id=model.team_member_id,
        )


class BoardColumn(BaseModel):
    stage: str
    label: str
    appointments: list[AppointmentCard] = Field(default_factory=list)


class AdminDashboard(BaseModel):
    """Company-wide figures, rounded to whole currency units."""

    revenue_today: int
    revenue_month: int
    revenue_year: int
    profit_year: int
    active_customers: int
    top_performer: str | None = None
    top_performer_count: int = 0
    open_todos: int
    stage_counts: dict[str, int]


class MemberDashboard(BaseModel):
    """A member's own appointments and the open to-dos."""

    member_id: UUID
    stage_counts: dict[str, int]
    upcoming: list[AppointmentCard] = Field(default_factory=list)
    open_todos: int
    team_notice: str | None = None


class CustomerDashboard(BaseModel):
    """Portal view of one customer."""

    customer_id: UUID
    customer_name: str
    dashboard_name: str | None = None
    board: list[BoardColumn]
    revenue_total: int
    completed_appointments: int
    pending_appointments: int
    upcoming: list[AppointmentCard] = Field(default_factory=list)


def _stage_map(counts: dict[PipelineStage, int]) -> dict[str, int]:
    return {stage.value: count for stage, count in counts.items()}


async def admin_dashboard(services: ServiceFactory, today: dt.date | None = None) -> AdminDashboard:
    """Revenue windows, profit, active customers and top performer."""
    services.ctx.require(Capability.MANAGE_REVENUES)
    today = today or dt.date.today()

    revenues = await services.revenues().fetch_all()
    expenses = await services.expenses().fetch_all()
    customers = await services.customers().fetch_all()
    appointments = await services.appointments().fetch_all()
    members = await services.team().fetch_all()
    tax_rate = await services.settings_store().tax_rate()

    try:
        open_todos = await services.todo_repo.open_count()
    except SQLAlchemyError as e:
        log.error("Open to-do count failed", error=str(e))
        raise StoreError("Aufgaben konnten nicht geladen werden.", cause=e) from e

    summary = financial_summary(revenues, expenses, tax_rate, today)
    best = top_performer(appointments, members)
    return AdminDashboard(
        revenue_today=display_round(summary.windows[ReportWindow.TODAY].revenue),
        revenue_month=display_round(summary.windows[ReportWindow.MONTH].revenue),
        revenue_year=display_round(summary.windows[ReportWindow.YEAR].revenue),
        profit_year=display_round(summary.windows[ReportWindow.YEAR].profit),
        active_customers=active_customer_count(customers),
        top_performer=best.name if best else None,
        top_performer_count=best.count if best else 0,
        open_todos=open_todos,
        stage_counts=_stage_map(stage_counts(appointments)),
    )


async def member_dashboard(services: ServiceFactory, today: dt.date | None = None) -> MemberDashboard:
    """Own appointments by stage, upcoming ones and open to-dos."""
    ctx = services.ctx
    ctx.require(Capability.ACCESS_MAIN_NAVIGATION)
    today = today or dt.date.today()

    appointments = await services.appointments(team_member_id=ctx.actor_id).fetch_all()
    todos = await services.todos().fetch_all()
    notice = await services.settings_store().team_notice()

    upcoming = [
        a for a in appointments
        if a.date >= today and a.result == PipelineStage.TERMIN_AUSSTEHEND.value
    ][:5]
    return MemberDashboard(
        member_id=ctx.actor_id,
        stage_counts=_stage_map(stage_counts(appointments)),
        upcoming=[AppointmentCard.from_model(a) for a in upcoming],
        open_todos=sum(1 for t in todos if not t.completed),
        team_notice=notice.text if notice.visible else None,
    )


async def customer_dashboard(
    services: ServiceFactory,
    customer_id: UUID | str | None = None,
    today: dt.date | None = None,
) -> CustomerDashboard:
    """Pipeline board, revenue total and upcoming appointments of a customer.

    A ``kunde`` account always gets its own linked customer.
    """
    ctx = services.ctx
    if ctx.user is None:
        raise UnauthorizedError("Bitte melden Sie sich an.")
    if permissions.is_customer(ctx.user):
        customer_id = ctx.user.customer_id
    if customer_id is None or not permissions.can_view_dashboard_of(ctx.user, customer_id):
        raise PermissionDeniedError(details={"customer_id": str(customer_id)})
    today = today or dt.date.today()

    board = services.board(customer_id=customer_id)
    columns = await board.load()

    try:
        customer = await services.customer_repo.get_or_raise(customer_id)
        revenue_total = await services.revenue_repo.total_for_customer(customer_id)
        upcoming = await services.appointment_repo.upcoming(today, customer_id=customer_id)
    except SQLAlchemyError as e:
        log.error("Customer dashboard fetch failed", customer_id=str(customer_id), error=str(e))
        raise StoreError("Dashboard konnte nicht geladen werden.", cause=e) from e

    counts = stage_counts(board.store.records)
    return CustomerDashboard(
        customer_id=customer.id,
        customer_name=customer.name,
        dashboard_name=ctx.user.customer_dashboard_name if permissions.is_customer(ctx.user) else None,
        board=[
            BoardColumn(
                stage=column.stage.value,
                label=column.label,
                appointments=[AppointmentCard.from_model(a) for a in column.appointments],
            )
            for column in columns
        ],
        revenue_total=display_round(revenue_total),
        completed_appointments=counts[PipelineStage.TERMIN_ABGESCHLOSSEN],
        pending_appointments=counts[PipelineStage.TERMIN_AUSSTEHEND],
        upcoming=[AppointmentCard.from_model(a) for a in upcoming],
    )


async def dashboard_for(services: ServiceFactory, today: dt.date | None = None) -> BaseModel:
    """The dashboard matching the signed-in user's role."""
    user = services.ctx.user
    if permissions.is_admin(user):
        return await admin_dashboard(services, today)
    if permissions.is_member(user):
        return await member_dashboard(services, today)
    return await customer_dashboard(services, today=today)
