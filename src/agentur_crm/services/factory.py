"""Builds repositories and stores for one database session and one user.

The API creates one factory per request, the CLI one per command.
"""

from __future__ import annotations

from functools import cached_property
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from agentur_crm.config import Settings, get_settings
from agentur_crm.db.repositories import (
    AppointmentHistoryRepository,
    AppointmentRepository,
    AuditLogRepository,
    CustomerRepository,
    ExpenseRepository,
    HotLeadRepository,
    RevenueRepository,
    SettingRepository,
    TeamMemberRepository,
    TodoRepository,
)
from agentur_crm.services.audit_trail import AuditTrail
from agentur_crm.services.pipeline import PipelineBoard
from agentur_crm.services.session import AuthService, SessionContext, SessionStorage
from agentur_crm.services.stores import (
    AppointmentStore,
    CustomerStore,
    ExpenseStore,
    HotLeadStore,
    RevenueStore,
    SettingsStore,
    TeamMemberStore,
    TodoStore,
)


class ServiceFactory:
    """Per-session wiring of repositories, audit trail and stores.

    Repositories are shared across the stores a factory builds, so all
    of them work in the same session. Stores are created fresh on every
    call and each holds its own local list.
    """

    def __init__(
        self,
        db: AsyncSession,
        ctx: SessionContext,
        settings: Settings | None = None,
    ) -> None:
        self.db = db
        self.ctx = ctx
        self.settings = settings or get_settings()

    # ========================================================================
    # Repositories
    # ========================================================================

    @cached_property
    def customer_repo(self) -> CustomerRepository:
        return CustomerRepository(self.db)

    @cached_property
    def hot_lead_repo(self) -> HotLeadRepository:
        return HotLeadRepository(self.db)

    @cached_property
    def appointment_repo(self) -> AppointmentRepository:
        return AppointmentRepository(self.db)

    @cached_property
    def history_repo(self) -> AppointmentHistoryRepository:
        return AppointmentHistoryRepository(self.db)

    @cached_property
    def team_repo(self) -> TeamMemberRepository:
        return TeamMemberRepository(self.db)

    @cached_property
    def revenue_repo(self) -> RevenueRepository:
        return RevenueRepository(self.db)

    @cached_property
    def expense_repo(self) -> ExpenseRepository:
        return ExpenseRepository(self.db)

    @cached_property
    def todo_repo(self) -> TodoRepository:
        return TodoRepository(self.db)

    @cached_property
    def setting_repo(self) -> SettingRepository:
        return SettingRepository(self.db)

    @cached_property
    def audit(self) -> AuditTrail:
        return AuditTrail(
            AuditLogRepository(self.db),
            read_limit=self.settings.audit.read_limit,
        )

    # ========================================================================
    # Stores
    # ========================================================================

    def customers(self) -> CustomerStore:
        return CustomerStore(self.customer_repo, self.ctx, self.audit)

    def appointments(
        self,
        *,
        customer_id: UUID | str | None = None,
        team_member_id: UUID | str | None = None,
        require_team_member: bool = False,
    ) -> AppointmentStore:
        return AppointmentStore(
            self.appointment_repo,
            self.ctx,
            self.audit,
            customer_repo=self.customer_repo,
            team_repo=self.team_repo,
            history_repo=self.history_repo,
            customer_id=customer_id,
            team_member_id=team_member_id,
            require_team_member=require_team_member,
        )

    def board(
        self,
        *,
        customer_id: UUID | str | None = None,
        team_member_id: UUID | str | None = None,
    ) -> PipelineBoard:
        return PipelineBoard(
            self.appointments(customer_id=customer_id, team_member_id=team_member_id)
        )

    def revenues(self) -> RevenueStore:
        return RevenueStore(self.revenue_repo, self.ctx, self.audit)

    def expenses(self) -> ExpenseStore:
        return ExpenseStore(self.expense_repo, self.ctx, self.audit)

    def team(self) -> TeamMemberStore:
        return TeamMemberStore(self.team_repo, self.ctx, self.audit)

    def todos(self) -> TodoStore:
        return TodoStore(self.todo_repo, self.ctx, self.audit)

    def hot_leads(self) -> HotLeadStore:
        return HotLeadStore(
            self.hot_lead_repo,
            self.ctx,
            self.audit,
            customer_repo=self.customer_repo,
        )

    def settings_store(self) -> SettingsStore:
        return SettingsStore(
            self.setting_repo,
            self.ctx,
            self.audit,
            default_tax_rate=self.settings.finance.default_tax_rate,
        )

    def auth(self, storage: SessionStorage | None = None) -> AuthService:
        return AuthService(self.team_repo, self.audit, storage)
