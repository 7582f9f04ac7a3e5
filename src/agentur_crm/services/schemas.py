"""Pydantic payload schemas for store writes.

Validation runs before any database call. Validator messages are the
German texts shown to the user; ``validate_payload`` turns the first
failure into a ``ValidationError`` carrying that text.
"""

from __future__ import annotations

import datetime as dt
from decimal import Decimal, InvalidOperation
from typing import Any, ClassVar, TypeVar
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator
from pydantic import ValidationError as PydanticValidationError

from agentur_crm.core.exceptions import ValidationError
from agentur_crm.domain import (
    DEFAULT_STAGE,
    ActionStep,
    PaymentStatus,
    Priority,
    Role,
    TodoPriority,
)
from agentur_crm.services.pipeline import parse_stage

REQUIRED_FIELDS_MESSAGE = "Bitte füllen Sie alle Pflichtfelder aus."
DESCRIPTION_MESSAGE = "Bitte geben Sie eine Beschreibung ein."
AMOUNT_MESSAGE = "Bitte geben Sie einen gültigen Betrag ein."
DATE_MESSAGE = "Bitte wählen Sie ein Datum aus."

SchemaT = TypeVar("SchemaT", bound=BaseModel)


def validate_payload(schema: type[SchemaT], payload: BaseModel | dict[str, Any]) -> SchemaT:
    """Validate ``payload`` against ``schema``.

    Raises:
        ValidationError: With the message of the first failing check
    """
    if isinstance(payload, schema):
        return payload
    if isinstance(payload, BaseModel):
        payload = payload.model_dump(exclude_unset=True)

    try:
        return schema.model_validate(payload)
    except PydanticValidationError as e:
        first = e.errors()[0]
        message = REQUIRED_FIELDS_MESSAGE
        if first.get("type") == "value_error":
            message = str(first.get("ctx", {}).get("error", message))
        raise ValidationError(
            message,
            details={"field": ".".join(str(p) for p in first.get("loc", ()))},
        ) from e


def _blank_to_none(value: Any) -> Any:
    if isinstance(value, str):
        value = value.strip()
        return value or None
    return value


def _stage_value(value: Any) -> Any:
    if value is None:
        return None
    try:
        return parse_stage(value).value
    except ValidationError as e:
        raise ValueError(e.message) from e


class _Payload(BaseModel):
    model_config = ConfigDict(use_enum_values=True, str_strip_whitespace=True)


class _Patch(_Payload):
    """Partial edit. Fields in ``not_null_fields`` may be left out but not cleared."""

    not_null_fields: ClassVar[tuple[str, ...]] = ()

    @model_validator(mode="after")
    def required_not_cleared(self) -> "_Patch":
        for name in self.not_null_fields:
            if name in self.model_fields_set and getattr(self, name) is None:
                raise ValueError(REQUIRED_FIELDS_MESSAGE)
        return self


# ============================================================================
# Customers and Leads
# ============================================================================


class CustomerCreate(_Payload):
    """New customer; counters always start at zero."""

    name: str = Field(min_length=1, max_length=255)
    contact: str | None = None
    email: str | None = None
    phone: str | None = None
    notes: str | None = None
    priority: Priority = Priority.MITTEL
    payment_status: PaymentStatus = PaymentStatus.AUSSTEHEND
    action_step: ActionStep = ActionStep.IN_VORBEREITUNG
    pipeline_stage: str = DEFAULT_STAGE.value
    satisfaction: int = Field(default=5, ge=1, le=10)
    statuses: list[str] = Field(default_factory=list)
    is_active: bool = True

    @field_validator("pipeline_stage", mode="before")
    @classmethod
    def known_stage(cls, v: Any) -> Any:
        return _stage_value(v)


class CustomerUpdate(_Patch):
    """Partial customer edit."""

    not_null_fields = (
        "name",
        "priority",
        "payment_status",
        "action_step",
        "pipeline_stage",
        "satisfaction",
        "statuses",
        "booked_appointments",
        "completed_appointments",
        "is_active",
    )

    name: str | None = Field(default=None, min_length=1, max_length=255)
    contact: str | None = None
    email: str | None = None
    phone: str | None = None
    notes: str | None = None
    priority: Priority | None = None
    payment_status: PaymentStatus | None = None
    action_step: ActionStep | None = None
    pipeline_stage: str | None = None
    satisfaction: int | None = Field(default=None, ge=1, le=10)
    statuses: list[str] | None = None
    booked_appointments: int | None = Field(default=None, ge=0)
    completed_appointments: int | None = Field(default=None, ge=0)
    is_active: bool | None = None

    @field_validator("pipeline_stage", mode="before")
    @classmethod
    def known_stage(cls, v: Any) -> Any:
        return _stage_value(v)


class HotLeadCreate(_Payload):
    """New prospect."""

    name: str = Field(min_length=1, max_length=255)
    contact: str | None = None
    email: str | None = None
    phone: str | None = None
    priority: Priority = Priority.MITTEL
    source: str | None = None
    notes: str | None = None


class HotLeadUpdate(_Patch):
    not_null_fields = ("name", "priority")

    name: str | None = Field(default=None, min_length=1, max_length=255)
    contact: str | None = None
    email: str | None = None
    phone: str | None = None
    priority: Priority | None = None
    source: str | None = None
    notes: str | None = None


# ============================================================================
# Appointments
# ============================================================================


class AppointmentCreate(_Payload):
    """New appointment; customer and date are mandatory."""

    customer_id: UUID | None = None
    team_member_id: UUID | None = None
    date: dt.date | None = None
    time: dt.time | None = None
    type: str = "Termin"
    description: str | None = None
    notes: str | None = None
    result: str = DEFAULT_STAGE.value

    @field_validator("result", mode="before")
    @classmethod
    def known_stage(cls, v: Any) -> Any:
        return _stage_value(v) or DEFAULT_STAGE.value

    @model_validator(mode="after")
    def require_customer_and_date(self) -> "AppointmentCreate":
        if self.customer_id is None or self.date is None:
            raise ValueError(REQUIRED_FIELDS_MESSAGE)
        return self


class AppointmentUpdate(_Patch):
    """Partial appointment edit; ``result`` must stay a known stage."""

    not_null_fields = ("date", "type", "result")

    customer_id: UUID | None = None
    team_member_id: UUID | None = None
    date: dt.date | None = None
    time: dt.time | None = None
    type: str | None = None
    description: str | None = None
    notes: str | None = None
    result: str | None = None

    @field_validator("result", mode="before")
    @classmethod
    def known_stage(cls, v: Any) -> Any:
        return _stage_value(v)


# ============================================================================
# Bookkeeping
# ============================================================================


class BookingCreate(_Payload):
    """Dated monetary amount with a description."""

    description: str | None = Field(default=None, validate_default=True)
    amount: Decimal | None = Field(default=None, validate_default=True)
    date: dt.date | None = Field(default=None, validate_default=True)

    @field_validator("description", mode="before")
    @classmethod
    def description_present(cls, v: Any) -> str:
        v = _blank_to_none(v)
        if v is None:
            raise ValueError(DESCRIPTION_MESSAGE)
        return v

    @field_validator("amount", mode="before")
    @classmethod
    def amount_positive(cls, v: Any) -> Decimal:
        v = _blank_to_none(v)
        if v is None or isinstance(v, bool):
            raise ValueError(AMOUNT_MESSAGE)
        try:
            amount = Decimal(str(v))
        except InvalidOperation as e:
            raise ValueError(AMOUNT_MESSAGE) from e
        if not amount.is_finite() or amount <= 0:
            raise ValueError(AMOUNT_MESSAGE)
        return amount

    @field_validator("date", mode="before")
    @classmethod
    def date_present(cls, v: Any) -> Any:
        v = _blank_to_none(v)
        if v is None:
            raise ValueError(DATE_MESSAGE)
        return v


class RevenueCreate(BookingCreate):
    customer_id: UUID | None = None


class ExpenseCreate(BookingCreate):
    reference: str | None = None


# ============================================================================
# Team
# ============================================================================


class TeamMemberCreate(_Payload):
    """New account. ``password`` is hashed by the store, never stored."""

    name: str = Field(min_length=1, max_length=255)
    email: str = Field(min_length=3, max_length=255)
    role: str = "Mitarbeiter"
    user_role: Role = Role.MEMBER
    password: str | None = None
    is_active: bool = True
    customer_dashboard_name: str | None = None
    customer_id: UUID | None = None
    active_since: dt.date | None = None

    @field_validator("email")
    @classmethod
    def normalize_email(cls, v: str) -> str:
        if "@" not in v:
            raise ValueError("Bitte geben Sie eine gültige Email-Adresse ein.")
        return v.lower()


class TeamMemberUpdate(_Patch):
    not_null_fields = ("name", "email", "role", "user_role", "is_active", "payouts", "performance")

    name: str | None = Field(default=None, min_length=1, max_length=255)
    email: str | None = None
    role: str | None = None
    user_role: Role | None = None
    password: str | None = None
    is_active: bool | None = None
    customer_dashboard_name: str | None = None
    customer_id: UUID | None = None
    active_since: dt.date | None = None
    payouts: Decimal | None = Field(default=None, ge=0)
    performance: int | None = None

    @field_validator("email")
    @classmethod
    def normalize_email(cls, v: str | None) -> str | None:
        if v is None:
            return v
        if "@" not in v:
            raise ValueError("Bitte geben Sie eine gültige Email-Adresse ein.")
        return v.lower()


# ============================================================================
# To-dos
# ============================================================================


class TodoCreate(_Payload):
    title: str = Field(min_length=1, max_length=255)
    description: str | None = None
    due_date: dt.date | None = None
    priority: TodoPriority = TodoPriority.MITTEL
    completed: bool = False
    assignee_id: UUID | None = None


class TodoUpdate(_Patch):
    not_null_fields = ("title", "priority", "completed")

    title: str | None = Field(default=None, min_length=1, max_length=255)
    description: str | None = None
    due_date: dt.date | None = None
    priority: TodoPriority | None = None
    completed: bool | None = None
    assignee_id: UUID | None = None


__all__ = [
    "REQUIRED_FIELDS_MESSAGE",
    "DESCRIPTION_MESSAGE",
    "AMOUNT_MESSAGE",
    "DATE_MESSAGE",
    "validate_payload",
    "CustomerCreate",
    "CustomerUpdate",
    "HotLeadCreate",
    "HotLeadUpdate",
    "AppointmentCreate",
    "AppointmentUpdate",
    "BookingCreate",
    "RevenueCreate",
    "ExpenseCreate",
    "TeamMemberCreate",
    "TeamMemberUpdate",
    "TodoCreate",
    "TodoUpdate",
]
