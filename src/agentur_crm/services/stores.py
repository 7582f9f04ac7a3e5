"""Domain stores: per-entity record lists with audited writes.

A store owns one local list of records for one consumer (a view, a CLI
command, a request). Every write follows the same order:

1. capability check
2. payload validation
3. database write plus audit entry, one commit
4. local list patch (prepend, replace or remove)

When step 3 fails the session is rolled back, the failure is logged and
a ``StoreError`` with a generic message is raised. The local list is
left as it was.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal, InvalidOperation
from typing import Any, ClassVar, Generic, NoReturn, Sequence, TypeVar
from uuid import UUID

from pydantic import BaseModel
from sqlalchemy.exc import SQLAlchemyError

from agentur_crm.core.exceptions import (
    BusinessError,
    PermissionDeniedError,
    RecordAlreadyExistsError,
    RecordNotFoundError,
    StoreError,
    UnauthorizedError,
    ValidationError,
    wrap_exception,
)
from agentur_crm.core.log_setup import get_logger
from agentur_crm.core.security import hash_password
from agentur_crm.db.base import Base
from agentur_crm.db.models.core import AppointmentModel
from agentur_crm.db.models.crm import CustomerModel, HotLeadModel
from agentur_crm.db.models.finance import ExpenseModel, RevenueModel
from agentur_crm.db.models.office import SettingModel, TodoModel
from agentur_crm.db.models.team import TeamMemberModel
from agentur_crm.db.repositories.appointments import (
    AppointmentHistoryRepository,
    AppointmentRepository,
)
from agentur_crm.db.repositories.base import BaseRepository, as_uuid
from agentur_crm.db.repositories.customers import CustomerRepository, HotLeadRepository
from agentur_crm.db.repositories.finance import ExpenseRepository, RevenueRepository
from agentur_crm.db.repositories.office import SettingRepository, TodoRepository
from agentur_crm.db.repositories.team import TeamMemberRepository
from agentur_crm.domain import AuditAction, DeletionPolicy
from agentur_crm.services import permissions
from agentur_crm.services.audit_trail import AuditTrail, snapshot
from agentur_crm.services.permissions import Capability
from agentur_crm.services.schemas import (
    AppointmentCreate,
    AppointmentUpdate,
    BookingCreate,
    CustomerCreate,
    CustomerUpdate,
    ExpenseCreate,
    HotLeadCreate,
    HotLeadUpdate,
    RevenueCreate,
    TeamMemberCreate,
    TeamMemberUpdate,
    TodoCreate,
    TodoUpdate,
    validate_payload,
)
from agentur_crm.services.session import SessionContext

log = get_logger(__name__)

ModelT = TypeVar("ModelT", bound=Base)


class RecordStore(Generic[ModelT]):
    """Base store with fetch/add/update/delete over one repository.

    Subclasses set the labels, capabilities and schemas, and override
    the ``_prepare_*`` / ``_after_*`` hooks for side effects that belong
    in the same unit of work.
    """

    entity_label: ClassVar[str] = "Eintrag"
    plural_label: ClassVar[str] = "Einträge"
    table_name: ClassVar[str] = ""
    deletion_policy: ClassVar[DeletionPolicy] = DeletionPolicy.DETACHED

    view_capability: ClassVar[Capability | None] = None
    create_capability: ClassVar[Capability | None] = None
    update_capability: ClassVar[Capability | None] = None
    delete_capability: ClassVar[Capability | None] = None

    create_schema: ClassVar[type[BaseModel] | None] = None
    update_schema: ClassVar[type[BaseModel] | None] = None

    def __init__(
        self,
        repository: BaseRepository[ModelT],
        ctx: SessionContext,
        audit: AuditTrail,
    ) -> None:
        self._repo = repository
        self._ctx = ctx
        self._audit = audit
        self.records: list[ModelT] = []
        self._alive = True

    @property
    def repository(self) -> BaseRepository[ModelT]:
        return self._repo

    @property
    def ctx(self) -> SessionContext:
        return self._ctx

    @property
    def alive(self) -> bool:
        return self._alive

    def close(self) -> None:
        """Stop applying results; fetches finishing later are discarded."""
        self._alive = False

    def get(self, record_id: UUID | str) -> ModelT | None:
        """Look up a record in the local list."""
        wanted = as_uuid(record_id)
        return next((r for r in self.records if r.id == wanted), None)

    # ========================================================================
    # Read
    # ========================================================================

    async def fetch_all(self) -> list[ModelT]:
        """Reload the local list in the store's fixed order."""
        self._authorize_view()
        try:
            rows = await self._load()
        except SQLAlchemyError as e:
            await self._repo.rollback()
            log.error("Fetch failed", table=self.table_name, error=str(e))
            raise StoreError(
                f"{self.plural_label} konnten nicht geladen werden.",
                cause=e,
            ) from e

        if not self._alive:
            log.debug("Discarding fetch result of closed store", table=self.table_name)
            return self.records

        self.records = [self._repo.detach(row) for row in rows]
        return self.records

    async def _load(self) -> Sequence[ModelT]:
        return await self._repo.list_ordered()

    # ========================================================================
    # Write
    # ========================================================================

    async def add(self, payload: BaseModel | dict[str, Any]) -> ModelT:
        """Create a record and prepend it to the local list."""
        self._authorize(self.create_capability)
        data = validate_payload(self._schema(self.create_schema), payload)

        try:
            values = await self._prepare_create(data)
            record = await self._repo.create_from(values)
            await self._after_create(record, data)
            await self._audit.record(
                self._ctx,
                AuditAction.INSERT,
                self.table_name,
                record_id=record.id,
                new_values=snapshot(record),
            )
            await self._repo.commit()
        except SQLAlchemyError as e:
            await self._fail(e, "hinzugefügt")

        self.records.insert(0, self._repo.detach(record))
        log.info("Record created", table=self.table_name, record_id=str(record.id))
        return record

    async def update(self, record_id: UUID | str, patch: BaseModel | dict[str, Any]) -> ModelT:
        """Apply a partial edit and replace the record in the local list."""
        self._authorize_update_attempt()
        changes = self._changes(patch)
        return await self._write_update(record_id, changes)

    async def delete(self, record_id: UUID | str) -> None:
        """Delete a record according to the store's ``deletion_policy``."""
        self._authorize(self.delete_capability)

        try:
            current = await self._repo.get(record_id)
            if current is None:
                raise self._not_found(record_id)
            old_values = snapshot(current)

            if self.deletion_policy is DeletionPolicy.CASCADE:
                removed = await self._delete_cascade(current)
            else:
                await self._repo.delete(current.id)
                removed = {self.table_name: 1}

            await self._audit.record(
                self._ctx,
                AuditAction.DELETE,
                self.table_name,
                record_id=current.id,
                old_values=old_values,
            )
            await self._repo.commit()
        except SQLAlchemyError as e:
            await self._fail(e, "gelöscht")

        self.records = [r for r in self.records if r.id != current.id]
        log.info("Record deleted", table=self.table_name, record_id=str(current.id), removed=removed)

    async def _write_update(self, record_id: UUID | str, changes: dict[str, Any]) -> ModelT:
        try:
            current = await self._repo.get(record_id)
            if current is None:
                raise self._not_found(record_id)
            self._authorize_record_update(current, changes)
            if not changes:
                return self._repo.detach(current)

            old_values = snapshot(current)
            values = await self._prepare_update(current, changes)
            updated = await self._repo.update(current.id, values)
            await self._audit.record(
                self._ctx,
                AuditAction.UPDATE,
                self.table_name,
                record_id=current.id,
                old_values=old_values,
                new_values=snapshot(updated),
            )
            await self._repo.commit()
        except SQLAlchemyError as e:
            await self._fail(e, "aktualisiert")

        self._repo.detach(updated)
        self.records = [updated if r.id == updated.id else r for r in self.records]
        log.info("Record updated", table=self.table_name, record_id=str(updated.id), fields=sorted(values))
        return updated

    # ========================================================================
    # Hooks
    # ========================================================================

    async def _prepare_create(self, data: BaseModel) -> dict[str, Any]:
        return data.model_dump()

    async def _after_create(self, record: ModelT, data: BaseModel) -> None:
        return None

    async def _prepare_update(self, current: ModelT, changes: dict[str, Any]) -> dict[str, Any]:
        return changes

    async def _delete_cascade(self, record: ModelT) -> dict[str, int]:
        raise NotImplementedError(f"{type(self).__name__} has no cascade")

    # ========================================================================
    # Helpers
    # ========================================================================

    def _authorize(self, capability: Capability | None) -> None:
        if capability is not None:
            self._ctx.require(capability)

    def _authorize_view(self) -> None:
        self._authorize(self.view_capability)

    def _authorize_update_attempt(self) -> None:
        self._authorize(self.update_capability)

    def _authorize_record_update(self, record: ModelT, changes: dict[str, Any]) -> None:
        return None

    def _schema(self, schema: type[BaseModel] | None) -> type[BaseModel]:
        if schema is None:
            raise BusinessError(f"{self.plural_label} können nicht bearbeitet werden.")
        return schema

    def _changes(self, patch: BaseModel | dict[str, Any]) -> dict[str, Any]:
        data = validate_payload(self._schema(self.update_schema), patch)
        return data.model_dump(exclude_unset=True)

    def _not_found(self, record_id: UUID | str) -> RecordNotFoundError:
        return RecordNotFoundError(
            f"{self.entity_label} wurde nicht gefunden.",
            details={"table": self.table_name, "id": str(record_id)},
        )

    async def _fail(self, exc: SQLAlchemyError, verb: str) -> NoReturn:
        await self._repo.rollback()
        log.error(
            "Store write failed",
            table=self.table_name,
            operation=verb,
            error=str(exc),
        )
        raise wrap_exception(
            exc,
            StoreError,
            f"{self.entity_label} konnte nicht {verb} werden.",
            table=self.table_name,
        ) from exc


# ============================================================================
# Customers
# ============================================================================


class CustomerStore(RecordStore[CustomerModel]):
    """Customers, newest first. Deleting leaves appointments and revenues."""

    entity_label = "Kunde"
    plural_label = "Kunden"
    table_name = "customers"
    deletion_policy = DeletionPolicy.DETACHED

    view_capability = Capability.VIEW_CUSTOMERS
    create_capability = Capability.CREATE_CUSTOMERS
    update_capability = Capability.EDIT_CUSTOMERS
    delete_capability = Capability.DELETE_CUSTOMERS

    create_schema = CustomerCreate
    update_schema = CustomerUpdate

    def __init__(self, repository: CustomerRepository, ctx: SessionContext, audit: AuditTrail) -> None:
        super().__init__(repository, ctx, audit)
        self._customers = repository

    async def _load(self) -> Sequence[CustomerModel]:
        return await self._customers.list_recent()

    async def _prepare_create(self, data: BaseModel) -> dict[str, Any]:
        values = data.model_dump()
        values["booked_appointments"] = 0
        values["completed_appointments"] = 0
        return values

    async def search(self, term: str) -> Sequence[CustomerModel]:
        self._authorize_view()
        try:
            return await self._customers.search(term)
        except SQLAlchemyError as e:
            log.error("Customer search failed", error=str(e))
            raise StoreError("Kunden konnten nicht geladen werden.", cause=e) from e


# ============================================================================
# Appointments
# ============================================================================


class AppointmentStore(RecordStore[AppointmentModel]):
    """Appointments in date order, optionally scoped to a customer or member.

    A ``kunde`` account is always scoped to its linked customer. It may
    read those appointments and change their stage, nothing else.
    """

    entity_label = "Termin"
    plural_label = "Termine"
    table_name = "appointments"
    deletion_policy = DeletionPolicy.DETACHED

    view_capability = Capability.MANAGE_APPOINTMENTS
    create_capability = Capability.MANAGE_APPOINTMENTS
    update_capability = Capability.MANAGE_APPOINTMENTS
    delete_capability = Capability.MANAGE_APPOINTMENTS

    create_schema = AppointmentCreate
    update_schema = AppointmentUpdate

    # Only field a customer portal account may change
    CUSTOMER_EDITABLE = frozenset({"result"})

    def __init__(
        self,
        repository: AppointmentRepository,
        ctx: SessionContext,
        audit: AuditTrail,
        *,
        customer_repo: CustomerRepository,
        team_repo: TeamMemberRepository,
        history_repo: AppointmentHistoryRepository,
        customer_id: UUID | str | None = None,
        team_member_id: UUID | str | None = None,
        require_team_member: bool = False,
    ) -> None:
        super().__init__(repository, ctx, audit)
        self._appointments = repository
        self._customer_repo = customer_repo
        self._team_repo = team_repo
        self._history_repo = history_repo
        self.customer_id = as_uuid(customer_id) if customer_id is not None else None
        self.team_member_id = as_uuid(team_member_id) if team_member_id is not None else None
        self.require_team_member = require_team_member

        if permissions.is_customer(ctx.user):
            self.customer_id = ctx.user.customer_id

    def _is_portal_user(self) -> bool:
        return permissions.is_customer(self._ctx.user)

    def _authorize_view(self) -> None:
        if self._is_portal_user():
            if self.customer_id is None:
                raise PermissionDeniedError(details={"reason": "no linked customer"})
            return
        super()._authorize_view()

    def _authorize_update_attempt(self) -> None:
        if self._ctx.user is None:
            raise UnauthorizedError("Bitte melden Sie sich an.")
        if not self._is_portal_user():
            super()._authorize_update_attempt()

    def _authorize_record_update(self, record: AppointmentModel, changes: dict[str, Any]) -> None:
        if not self._is_portal_user():
            return
        own = self._ctx.user.customer_id
        if own is None or record.customer_id != own or not set(changes) <= self.CUSTOMER_EDITABLE:
            raise PermissionDeniedError(details={"appointment_id": str(record.id)})

    async def _load(self) -> Sequence[AppointmentModel]:
        return await self._appointments.list_for_board(
            customer_id=self.customer_id,
            team_member_id=self.team_member_id,
        )

    async def _prepare_create(self, data: BaseModel) -> dict[str, Any]:
        values = data.model_dump()
        if self.require_team_member and values.get("team_member_id") is None:
            raise ValidationError(
                "Bitte füllen Sie alle Pflichtfelder aus.",
                details={"field": "team_member_id"},
            )
        return values

    async def _after_create(self, record: AppointmentModel, data: BaseModel) -> None:
        """Booking side effects on customer, member and history."""
        if record.customer_id is not None:
            await self._customer_repo.record_booking(record.customer_id, record.result)
        if record.team_member_id is not None:
            await self._team_repo.record_booking(record.team_member_id)
        author = self._ctx.user.name if self._ctx.user is not None else None
        await self._history_repo.add_entry(
            record.id,
            "Termin erstellt",
            team_member_id=record.team_member_id,
            created_by=author,
        )

    async def history(self, appointment_id: UUID | str) -> Sequence[Any]:
        """History lines of one appointment, newest first."""
        self._authorize_view()
        try:
            return await self._history_repo.get_by_appointment(appointment_id)
        except SQLAlchemyError as e:
            log.error("Appointment history fetch failed", error=str(e))
            raise StoreError("Verlauf konnte nicht geladen werden.", cause=e) from e


# ============================================================================
# Bookkeeping
# ============================================================================


class RevenueStore(RecordStore[RevenueModel]):
    """Revenues, latest date first. Create and delete only."""

    entity_label = "Einnahme"
    plural_label = "Einnahmen"
    table_name = "revenues"

    view_capability = Capability.MANAGE_REVENUES
    create_capability = Capability.MANAGE_REVENUES
    update_capability = Capability.MANAGE_REVENUES
    delete_capability = Capability.MANAGE_REVENUES

    create_schema = RevenueCreate

    def __init__(self, repository: RevenueRepository, ctx: SessionContext, audit: AuditTrail) -> None:
        super().__init__(repository, ctx, audit)
        self._revenues = repository

    async def _load(self) -> Sequence[RevenueModel]:
        return await self._revenues.list_recent()


class ExpenseStore(RecordStore[ExpenseModel]):
    """Expenses, latest date first. Create and delete only."""

    entity_label = "Ausgabe"
    plural_label = "Ausgaben"
    table_name = "expenses"

    view_capability = Capability.MANAGE_REVENUES
    create_capability = Capability.MANAGE_REVENUES
    update_capability = Capability.MANAGE_REVENUES
    delete_capability = Capability.MANAGE_REVENUES

    create_schema = ExpenseCreate

    def __init__(self, repository: ExpenseRepository, ctx: SessionContext, audit: AuditTrail) -> None:
        super().__init__(repository, ctx, audit)
        self._expenses = repository

    async def _load(self) -> Sequence[ExpenseModel]:
        return await self._expenses.list_recent()


async def clear_financial_data(
    ctx: SessionContext,
    revenue_repo: RevenueRepository,
    expense_repo: ExpenseRepository,
    audit: AuditTrail,
) -> dict[str, int]:
    """Delete every revenue and expense, audited once per table.

    Returns:
        Number of deleted rows per table
    """
    ctx.require(Capability.MANAGE_REVENUES)
    counts: dict[str, int] = {}
    try:
        for table_name, repo in (("revenues", revenue_repo), ("expenses", expense_repo)):
            counts[table_name] = await repo.bulk_delete()
            await audit.record(
                ctx,
                AuditAction.DELETE,
                table_name,
                old_values={"deleted_count": counts[table_name]},
            )
        await revenue_repo.commit()
    except SQLAlchemyError as e:
        await revenue_repo.rollback()
        log.error("Clearing financial data failed", error=str(e))
        raise StoreError("Finanzdaten konnten nicht gelöscht werden.", cause=e) from e

    log.info("Financial data cleared", **counts)
    return counts


# ============================================================================
# Team
# ============================================================================


class TeamMemberStore(RecordStore[TeamMemberModel]):
    """Team member accounts. Deleting cascades over all referencing rows."""

    entity_label = "Teammitglied"
    plural_label = "Teammitglieder"
    table_name = "team_members"
    deletion_policy = DeletionPolicy.CASCADE

    view_capability = Capability.VIEW_TEAM_MEMBERS
    create_capability = Capability.MANAGE_TEAM_MEMBERS
    update_capability = Capability.MANAGE_TEAM_MEMBERS
    delete_capability = Capability.MANAGE_TEAM_MEMBERS

    create_schema = TeamMemberCreate
    update_schema = TeamMemberUpdate

    def __init__(self, repository: TeamMemberRepository, ctx: SessionContext, audit: AuditTrail) -> None:
        super().__init__(repository, ctx, audit)
        self._members = repository

    async def _load(self) -> Sequence[TeamMemberModel]:
        return await self._members.list_recent()

    async def _prepare_create(self, data: BaseModel) -> dict[str, Any]:
        values = data.model_dump()
        password = values.pop("password", None)
        if await self._members.find_by_email(values["email"]) is not None:
            raise RecordAlreadyExistsError(
                "Diese Email-Adresse wird bereits verwendet.",
                details={"email": values["email"]},
            )
        values["password_hash"] = hash_password(password) if password else None
        return values

    async def _prepare_update(self, current: TeamMemberModel, changes: dict[str, Any]) -> dict[str, Any]:
        values = dict(changes)
        password = values.pop("password", None)
        email = values.get("email")
        if email and email != current.email:
            other = await self._members.find_by_email(email)
            if other is not None and other.id != current.id:
                raise RecordAlreadyExistsError(
                    "Diese Email-Adresse wird bereits verwendet.",
                    details={"email": email},
                )
        if password:
            values["password_hash"] = hash_password(password)
        return values

    async def _delete_cascade(self, record: TeamMemberModel) -> dict[str, int]:
        return await self._members.delete_cascade(record.id)

    # ========================================================================
    # Per-member bookkeeping
    # ========================================================================

    async def earnings(self, member_id: UUID | str) -> Sequence[Any]:
        self._authorize_view()
        return await self._read_bookings(self._members.get_team_member_earnings, member_id)

    async def expenses(self, member_id: UUID | str) -> Sequence[Any]:
        self._authorize_view()
        return await self._read_bookings(self._members.get_team_member_expenses, member_id)

    async def add_earning(self, member_id: UUID | str, payload: BaseModel | dict[str, Any]) -> Any:
        """Book an earning for a member (commission, bonus)."""
        return await self._add_booking(
            "team_member_earnings",
            self._members.add_team_member_earning,
            member_id,
            payload,
        )

    async def add_expense(self, member_id: UUID | str, payload: BaseModel | dict[str, Any]) -> Any:
        """Book an expense against a member."""
        return await self._add_booking(
            "team_member_expenses",
            self._members.add_team_member_expense,
            member_id,
            payload,
        )

    async def _read_bookings(self, procedure: Any, member_id: UUID | str) -> Sequence[Any]:
        try:
            return await procedure(member_id)
        except SQLAlchemyError as e:
            log.error("Member bookings fetch failed", member_id=str(member_id), error=str(e))
            raise StoreError("Buchungen konnten nicht geladen werden.", cause=e) from e

    async def _add_booking(
        self,
        table_name: str,
        procedure: Any,
        member_id: UUID | str,
        payload: BaseModel | dict[str, Any],
    ) -> Any:
        self._authorize(Capability.MANAGE_TEAM_MEMBERS)
        data = validate_payload(BookingCreate, payload)
        try:
            if not await self._members.exists(member_id):
                raise self._not_found(member_id)
            row = await procedure(member_id, data.amount, data.description, data.date)
            await self._audit.record(
                self._ctx,
                AuditAction.INSERT,
                table_name,
                record_id=row.id,
                new_values=snapshot(row),
            )
            await self._members.commit()
        except SQLAlchemyError as e:
            await self._members.rollback()
            log.error("Member booking failed", table=table_name, error=str(e))
            raise StoreError("Buchung konnte nicht gespeichert werden.", cause=e) from e
        return row


# ============================================================================
# To-dos
# ============================================================================


class TodoStore(RecordStore[TodoModel]):
    """To-dos by due date, undated last."""

    entity_label = "Aufgabe"
    plural_label = "Aufgaben"
    table_name = "todos"

    view_capability = Capability.VIEW_TODOS
    create_capability = Capability.CREATE_TODOS
    update_capability = Capability.CREATE_TODOS
    delete_capability = Capability.CREATE_TODOS

    create_schema = TodoCreate
    update_schema = TodoUpdate

    def __init__(self, repository: TodoRepository, ctx: SessionContext, audit: AuditTrail) -> None:
        super().__init__(repository, ctx, audit)
        self._todos = repository

    async def _load(self) -> Sequence[TodoModel]:
        return await self._todos.list_by_due_date()

    async def set_completed(self, todo_id: UUID | str, completed: bool = True) -> TodoModel:
        """Tick a to-do off (or reopen it); open to everyone who sees to-dos."""
        self._authorize(Capability.COMPLETE_TODOS)
        return await self._write_update(todo_id, {"completed": bool(completed)})


# ============================================================================
# Hot leads
# ============================================================================


@dataclass
class LeadPromotion:
    """Outcome of promoting a lead to a customer.

    ``lead_removed`` is False when the customer was created but the lead
    could not be deleted afterwards; pass the object to
    ``HotLeadStore.complete_promotion`` to retry the removal.
    """

    lead_id: UUID
    customer: CustomerModel
    lead_removed: bool


class HotLeadStore(RecordStore[HotLeadModel]):
    """Hot leads, newest first, promotable into customers."""

    entity_label = "Lead"
    plural_label = "Leads"
    table_name = "hot_leads"

    view_capability = Capability.MANAGE_HOT_LEADS
    create_capability = Capability.MANAGE_HOT_LEADS
    update_capability = Capability.MANAGE_HOT_LEADS
    delete_capability = Capability.MANAGE_HOT_LEADS

    create_schema = HotLeadCreate
    update_schema = HotLeadUpdate

    # Lead columns copied onto the new customer
    PROMOTED_FIELDS = ("name", "contact", "email", "phone", "priority", "notes")

    def __init__(
        self,
        repository: HotLeadRepository,
        ctx: SessionContext,
        audit: AuditTrail,
        *,
        customer_repo: CustomerRepository,
    ) -> None:
        super().__init__(repository, ctx, audit)
        self._leads = repository
        self._customer_repo = customer_repo

    async def _load(self) -> Sequence[HotLeadModel]:
        return await self._leads.list_recent()

    async def promote(self, lead_id: UUID | str) -> LeadPromotion:
        """Turn a lead into a customer in two steps.

        Step one creates the customer and commits. Only then is the lead
        deleted in a second commit. If step one fails the lead stays and
        ``StoreError`` is raised. If step two fails the customer stays
        and the returned promotion has ``lead_removed=False``.
        """
        self._authorize(Capability.MANAGE_HOT_LEADS)

        try:
            lead = await self._leads.get(lead_id)
            if lead is None:
                raise self._not_found(lead_id)
            data = validate_payload(
                CustomerCreate,
                {name: getattr(lead, name) for name in self.PROMOTED_FIELDS},
            )
            values = data.model_dump()
            values["booked_appointments"] = 0
            values["completed_appointments"] = 0
            customer = await self._customer_repo.create_from(values)
            await self._audit.record(
                self._ctx,
                AuditAction.INSERT,
                CustomerStore.table_name,
                record_id=customer.id,
                new_values=snapshot(customer),
            )
            await self._customer_repo.commit()
        except SQLAlchemyError as e:
            await self._customer_repo.rollback()
            log.error("Lead promotion failed", lead_id=str(lead_id), error=str(e))
            raise StoreError(
                "Lead konnte nicht in einen Kunden umgewandelt werden.",
                cause=e,
            ) from e

        self._customer_repo.detach(customer)
        log.info("Lead promoted", lead_id=str(lead.id), customer_id=str(customer.id))
        promotion = LeadPromotion(lead_id=lead.id, customer=customer, lead_removed=False)
        return await self.complete_promotion(promotion)

    async def complete_promotion(self, promotion: LeadPromotion) -> LeadPromotion:
        """Delete the promoted lead; safe to call again after a failure."""
        if promotion.lead_removed:
            return promotion
        self._authorize(Capability.MANAGE_HOT_LEADS)

        try:
            lead = await self._leads.get(promotion.lead_id)
            if lead is not None:
                old_values = snapshot(lead)
                await self._leads.delete(lead.id)
                await self._audit.record(
                    self._ctx,
                    AuditAction.DELETE,
                    self.table_name,
                    record_id=promotion.lead_id,
                    old_values=old_values,
                )
                await self._leads.commit()
        except SQLAlchemyError as e:
            await self._leads.rollback()
            log.error(
                "Promoted lead could not be removed",
                lead_id=str(promotion.lead_id),
                customer_id=str(promotion.customer.id),
                error=str(e),
            )
            return promotion

        self.records = [r for r in self.records if r.id != promotion.lead_id]
        promotion.lead_removed = True
        return promotion


# ============================================================================
# Settings
# ============================================================================

TAX_RATE_KEY = "tax_rate"
TEAM_NOTICE_KEY = "team_notice"
TEAM_NOTICE_VISIBLE_KEY = "team_notice_visible"


@dataclass(frozen=True)
class TeamNotice:
    """Banner text shown to the team."""

    text: str
    visible: bool


class SettingsStore:
    """Key-value settings with upsert semantics.

    Reads are open to every signed-in role. Writes need ACCESS_SETTINGS.
    """

    table_name = "settings"

    def __init__(
        self,
        repository: SettingRepository,
        ctx: SessionContext,
        audit: AuditTrail,
        *,
        default_tax_rate: float | Decimal = Decimal("19"),
    ) -> None:
        self._repo = repository
        self._ctx = ctx
        self._audit = audit
        self.default_tax_rate = Decimal(str(default_tax_rate))
        self.records: list[SettingModel] = []

    async def fetch_all(self) -> list[SettingModel]:
        try:
            rows = await self._repo.list_ordered()
        except SQLAlchemyError as e:
            log.error("Settings fetch failed", error=str(e))
            raise StoreError("Einstellungen konnten nicht geladen werden.", cause=e) from e
        self.records = [self._repo.detach(row) for row in rows]
        return self.records

    async def get(self, key: str, default: str | None = None) -> str | None:
        """Stored value of ``key``; ``default`` when unset."""
        try:
            value = await self._repo.get_value(key)
        except SQLAlchemyError as e:
            log.error("Setting read failed", key=key, error=str(e))
            raise StoreError("Einstellungen konnten nicht geladen werden.", cause=e) from e
        return default if value is None else value

    async def upsert(self, key: str, value: str | None) -> SettingModel:
        """Insert or overwrite a setting, audited as INSERT or UPDATE."""
        self._ctx.require(Capability.ACCESS_SETTINGS)
        key = (key or "").strip()
        if not key:
            raise ValidationError("Bitte füllen Sie alle Pflichtfelder aus.", details={"field": "key"})

        try:
            created = await self._repo.get_by_key(key) is None
            setting, previous = await self._repo.upsert(key, value)
            await self._audit.record(
                self._ctx,
                AuditAction.INSERT if created else AuditAction.UPDATE,
                self.table_name,
                record_id=setting.id,
                old_values=None if created else {"key": key, "value": previous},
                new_values={"key": key, "value": value},
            )
            await self._repo.commit()
        except SQLAlchemyError as e:
            await self._repo.rollback()
            log.error("Setting write failed", key=key, error=str(e))
            raise StoreError("Einstellung konnte nicht gespeichert werden.", cause=e) from e

        self._repo.detach(setting)
        self.records = [r for r in self.records if r.key != key] + [setting]
        self.records.sort(key=lambda s: s.key)
        log.info("Setting saved", key=key)
        return setting

    async def tax_rate(self) -> Decimal:
        """Tax rate in percent; falls back to the default on bad values."""
        raw = await self.get(TAX_RATE_KEY)
        if raw is None:
            return self.default_tax_rate
        try:
            rate = Decimal(raw.strip().replace(",", "."))
        except (InvalidOperation, AttributeError):
            log.warning("Invalid tax rate setting, using default", value=raw)
            return self.default_tax_rate
        if not rate.is_finite() or rate < 0 or rate > 100:
            log.warning("Invalid tax rate setting, using default", value=raw)
            return self.default_tax_rate
        return rate

    async def team_notice(self) -> TeamNotice:
        text = await self.get(TEAM_NOTICE_KEY, "") or ""
        visible = (await self.get(TEAM_NOTICE_VISIBLE_KEY, "false") or "").strip().lower()
        return TeamNotice(text=text, visible=visible in ("true", "1", "yes", "ja") and bool(text))


__all__ = [
    "RecordStore",
    "CustomerStore",
    "AppointmentStore",
    "RevenueStore",
    "ExpenseStore",
    "TeamMemberStore",
    "TodoStore",
    "HotLeadStore",
    "LeadPromotion",
    "SettingsStore",
    "TeamNotice",
    "clear_financial_data",
    "TAX_RATE_KEY",
    "TEAM_NOTICE_KEY",
    "TEAM_NOTICE_VISIBLE_KEY",
]
