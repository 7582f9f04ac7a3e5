"""Tests for the domain stores (customers, appointments, bookkeeping, to-dos, settings)."""

from __future__ import annotations

from datetime import date
from decimal import Decimal
from unittest.mock import AsyncMock, patch
from uuid import uuid4

import pytest

from agentur_crm.core.exceptions import (
    BusinessError,
    PermissionDeniedError,
    RecordNotFoundError,
    StoreError,
    UnauthorizedError,
    ValidationError,
)
from agentur_crm.services.schemas import (
    AMOUNT_MESSAGE,
    DATE_MESSAGE,
    DESCRIPTION_MESSAGE,
    REQUIRED_FIELDS_MESSAGE,
)
from agentur_crm.services.stores import clear_financial_data


# ============================================================================
# Customer Store Tests
# ============================================================================


class TestCustomerStore:
    """Tests for CustomerStore."""

    @pytest.mark.asyncio
    async def test_add_prepends_and_audits(self, admin_services, audit_repository, sample_customer):
        store = admin_services.customers()
        await store.fetch_all()

        customer = await store.add({
            "name": "Friseur Kamm",
            "contact": "Kai Kamm",
            "priority": "Niedrig",
            "booked_appointments": 7,
        })

        assert store.records[0].id == customer.id
        assert [c.id for c in store.records] == [customer.id, sample_customer.id]
        assert customer.booked_appointments == 0
        assert customer.completed_appointments == 0
        assert customer.priority == "Niedrig"

        entries = await audit_repository.list_ordered(table_name="customers")
        assert [e.action for e in entries] == ["INSERT"]
        assert entries[0].record_id == str(customer.id)
        assert entries[0].new_values["name"] == "Friseur Kamm"
        assert entries[0].old_values is None

    @pytest.mark.asyncio
    async def test_add_without_name_is_rejected(self, admin_services, customer_repository, audit_repository):
        store = admin_services.customers()

        with pytest.raises(ValidationError) as exc_info:
            await store.add({"contact": "Niemand"})

        assert exc_info.value.message == REQUIRED_FIELDS_MESSAGE
        assert await customer_repository.count() == 0
        assert await audit_repository.count() == 0

    @pytest.mark.asyncio
    async def test_add_unknown_pipeline_stage(self, admin_services):
        with pytest.raises(ValidationError) as exc_info:
            await admin_services.customers().add({"name": "X", "pipeline_stage": "verloren"})

        assert exc_info.value.message == "Unbekannter Pipeline-Status: verloren"

    @pytest.mark.asyncio
    async def test_member_cannot_create(self, staff_services, audit_repository):
        with pytest.raises(PermissionDeniedError):
            await staff_services.customers().add({"name": "Nicht erlaubt"})

        assert await audit_repository.count() == 0

    @pytest.mark.asyncio
    async def test_anonymous_cannot_read(self, make_services, anonymous_ctx):
        with pytest.raises(UnauthorizedError):
            await make_services(anonymous_ctx).customers().fetch_all()

    @pytest.mark.asyncio
    async def test_failed_add_leaves_list_unchanged(
        self, admin_services, customer_repository, audit_repository, sample_customer, db_failure
    ):
        store = admin_services.customers()
        await store.fetch_all()

        with patch.object(admin_services.customer_repo, "commit", AsyncMock(side_effect=db_failure)):
            with pytest.raises(StoreError) as exc_info:
                await store.add({"name": "Geht schief"})

        assert exc_info.value.message == "Kunde konnte nicht hinzugefügt werden."
        assert exc_info.value.cause is db_failure
        assert [c.id for c in store.records] == [sample_customer.id]
        assert await customer_repository.count() == 1
        assert await audit_repository.count() == 0

    @pytest.mark.asyncio
    async def test_failed_fetch_raises_load_message(self, admin_services, db_failure):
        store = admin_services.customers()

        with patch.object(admin_services.customer_repo, "list_recent", AsyncMock(side_effect=db_failure)):
            with pytest.raises(StoreError) as exc_info:
                await store.fetch_all()

        assert exc_info.value.message == "Kunden konnten nicht geladen werden."

    @pytest.mark.asyncio
    async def test_closed_store_discards_late_results(self, admin_services, sample_customer):
        store = admin_services.customers()
        store.close()

        records = await store.fetch_all()

        assert records == []
        assert store.alive is False

    @pytest.mark.asyncio
    async def test_update_replaces_record_and_audits_both_sides(
        self, admin_services, audit_repository, sample_customer
    ):
        store = admin_services.customers()
        await store.fetch_all()

        updated = await store.update(sample_customer.id, {"payment_status": "Bezahlt", "satisfaction": 9})

        assert updated.payment_status == "Bezahlt"
        assert store.get(sample_customer.id).satisfaction == 9
        entries = await audit_repository.list_ordered(table_name="customers")
        assert entries[0].action == "UPDATE"
        assert entries[0].old_values["payment_status"] == "Ausstehend"
        assert entries[0].new_values["payment_status"] == "Bezahlt"

    @pytest.mark.asyncio
    async def test_empty_update_writes_nothing(self, admin_services, audit_repository, sample_customer):
        customer = await admin_services.customers().update(sample_customer.id, {})

        assert customer.id == sample_customer.id
        assert await audit_repository.count() == 0

    @pytest.mark.asyncio
    async def test_update_missing_customer(self, admin_services):
        with pytest.raises(RecordNotFoundError) as exc_info:
            await admin_services.customers().update(uuid4(), {"notes": "x"})

        assert exc_info.value.message == "Kunde wurde nicht gefunden."

    @pytest.mark.asyncio
    @pytest.mark.parametrize("field", ["name", "priority", "pipeline_stage", "is_active"])
    async def test_required_field_cannot_be_cleared(
        self, admin_services, customer_repository, audit_repository, sample_customer, field
    ):
        with pytest.raises(ValidationError) as exc_info:
            await admin_services.customers().update(sample_customer.id, {field: None})

        assert exc_info.value.message == REQUIRED_FIELDS_MESSAGE
        stored = await customer_repository.get(sample_customer.id)
        assert stored.name == "Bäckerei Schmidt"
        assert await audit_repository.count() == 0

    @pytest.mark.asyncio
    async def test_optional_field_can_be_cleared(self, admin_services, sample_customer):
        customer = await admin_services.customers().update(sample_customer.id, {"phone": None})

        assert customer.phone is None

    @pytest.mark.asyncio
    async def test_delete_leaves_appointments_behind(
        self, admin_services, appointment_repository, audit_repository, sample_customer, sample_appointment
    ):
        store = admin_services.customers()
        await store.fetch_all()

        await store.delete(sample_customer.id)

        assert store.records == []
        orphan = await appointment_repository.get(sample_appointment.id)
        assert orphan is not None
        assert orphan.customer_id == sample_customer.id

        entries = await audit_repository.list_ordered(table_name="customers")
        assert entries[0].action == "DELETE"
        assert entries[0].old_values["name"] == "Bäckerei Schmidt"
        assert entries[0].new_values is None

    @pytest.mark.asyncio
    async def test_search(self, admin_services, sample_customer, other_customer):
        found = await admin_services.customers().search("weber")

        assert [c.id for c in found] == [other_customer.id]


# ============================================================================
# Appointment Store Tests
# ============================================================================


class TestAppointmentStore:
    """Tests for AppointmentStore."""

    @pytest.mark.asyncio
    async def test_create_books_customer_member_and_history(
        self, admin_services, customer_repository, team_repository, sample_customer, staff_member
    ):
        store = admin_services.appointments()

        appointment = await store.add({
            "customer_id": str(sample_customer.id),
            "team_member_id": str(staff_member.id),
            "date": "2026-04-02",
            "time": "14:00",
            "type": "Onboarding",
            "result": "termin_erschienen",
        })

        assert appointment.result == "termin_erschienen"
        customer = await customer_repository.get(sample_customer.id)
        assert customer.booked_appointments == 1
        assert customer.pipeline_stage == "termin_erschienen"
        member = await team_repository.get(staff_member.id)
        assert member.appointment_count == 1

        history = await store.history(appointment.id)
        assert [h.message for h in history] == ["Termin erstellt"]
        assert history[0].created_by == "Anna Admin"

    @pytest.mark.asyncio
    async def test_result_defaults_to_pending(self, admin_services, sample_customer):
        appointment = await admin_services.appointments().add({
            "customer_id": sample_customer.id,
            "date": date(2026, 4, 2),
        })

        assert appointment.result == "termin_ausstehend"

    @pytest.mark.asyncio
    @pytest.mark.parametrize("missing", ["customer_id", "date"])
    async def test_customer_and_date_required(self, admin_services, sample_customer, missing):
        payload = {"customer_id": sample_customer.id, "date": "2026-04-02"}
        del payload[missing]

        with pytest.raises(ValidationError) as exc_info:
            await admin_services.appointments().add(payload)

        assert exc_info.value.message == REQUIRED_FIELDS_MESSAGE

    @pytest.mark.asyncio
    async def test_team_member_required_when_configured(self, admin_services, sample_customer):
        store = admin_services.appointments(require_team_member=True)

        with pytest.raises(ValidationError) as exc_info:
            await store.add({"customer_id": sample_customer.id, "date": "2026-04-02"})

        assert exc_info.value.details == {"field": "team_member_id"}

    @pytest.mark.asyncio
    async def test_list_in_date_order(self, admin_services, sample_appointment, other_appointment):
        records = await admin_services.appointments().fetch_all()

        assert [a.id for a in records] == [sample_appointment.id, other_appointment.id]

    @pytest.mark.asyncio
    async def test_kunde_cannot_create(self, portal_services, sample_customer):
        with pytest.raises(PermissionDeniedError):
            await portal_services.appointments().add({"customer_id": sample_customer.id, "date": "2026-04-02"})

    @pytest.mark.asyncio
    @pytest.mark.parametrize("field", ["result", "date", "type"])
    async def test_update_cannot_clear_required_field(
        self, admin_services, appointment_repository, sample_appointment, field
    ):
        store = admin_services.appointments()
        await store.fetch_all()

        with pytest.raises(ValidationError) as exc_info:
            await store.update(sample_appointment.id, {field: None})

        assert exc_info.value.message == REQUIRED_FIELDS_MESSAGE
        stored = await appointment_repository.get(sample_appointment.id)
        assert stored.result == sample_appointment.result
        assert store.get(sample_appointment.id).result == sample_appointment.result


# ============================================================================
# Bookkeeping Tests
# ============================================================================


class TestBookkeeping:
    """Tests for RevenueStore, ExpenseStore and clear_financial_data."""

    @pytest.mark.asyncio
    async def test_add_revenue(self, admin_services, sample_customer):
        store = admin_services.revenues()

        revenue = await store.add({
            "description": "Logo-Design",
            "amount": "350.00",
            "date": "2026-05-04",
            "customer_id": str(sample_customer.id),
        })

        assert revenue.amount == Decimal("350.00")
        assert store.records[0].id == revenue.id

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "payload,message",
        [
            ({"amount": "10", "date": "2026-05-04"}, DESCRIPTION_MESSAGE),
            ({"description": "  ", "amount": "10", "date": "2026-05-04"}, DESCRIPTION_MESSAGE),
            ({"description": "Miete", "amount": "0", "date": "2026-05-04"}, AMOUNT_MESSAGE),
            ({"description": "Miete", "amount": "-5", "date": "2026-05-04"}, AMOUNT_MESSAGE),
            ({"description": "Miete", "amount": "abc", "date": "2026-05-04"}, AMOUNT_MESSAGE),
            ({"description": "Miete", "date": "2026-05-04"}, AMOUNT_MESSAGE),
            ({"description": "Miete", "amount": "10"}, DATE_MESSAGE),
        ],
    )
    async def test_expense_validation_messages(self, admin_services, payload, message):
        with pytest.raises(ValidationError) as exc_info:
            await admin_services.expenses().add(payload)

        assert exc_info.value.message == message

    @pytest.mark.asyncio
    async def test_bookings_cannot_be_edited(self, admin_services, sample_bookings):
        with pytest.raises(BusinessError):
            await admin_services.revenues().update(sample_bookings[0].id, {"amount": "1"})

    @pytest.mark.asyncio
    async def test_member_has_no_access(self, staff_services):
        with pytest.raises(PermissionDeniedError):
            await staff_services.revenues().fetch_all()

    @pytest.mark.asyncio
    async def test_delete_expense(self, admin_services, sample_bookings):
        store = admin_services.expenses()
        await store.fetch_all()

        await store.delete(sample_bookings[2].id)

        assert store.records == []

    @pytest.mark.asyncio
    async def test_clear_financial_data(self, admin_services, admin_ctx, audit_repository, sample_bookings):
        counts = await clear_financial_data(
            admin_ctx,
            admin_services.revenue_repo,
            admin_services.expense_repo,
            admin_services.audit,
        )

        assert counts == {"revenues": 2, "expenses": 1}
        assert await admin_services.revenue_repo.count() == 0
        assert await admin_services.expense_repo.count() == 0

        entries = await audit_repository.list_ordered(action="DELETE")
        assert {e.table_name: e.old_values["deleted_count"] for e in entries} == {
            "revenues": 2,
            "expenses": 1,
        }

    @pytest.mark.asyncio
    async def test_clear_financial_data_needs_admin(self, staff_services, staff_ctx, sample_bookings):
        with pytest.raises(PermissionDeniedError):
            await clear_financial_data(
                staff_ctx,
                staff_services.revenue_repo,
                staff_services.expense_repo,
                staff_services.audit,
            )

        assert await staff_services.revenue_repo.count() == 2


# ============================================================================
# To-do Tests
# ============================================================================


class TestTodoStore:
    """Tests for TodoStore."""

    @pytest.mark.asyncio
    async def test_sorted_by_due_date_undated_last(self, admin_services):
        store = admin_services.todos()
        await store.add({"title": "Ohne Datum"})
        await store.add({"title": "Später", "due_date": "2026-07-01"})
        await store.add({"title": "Bald", "due_date": "2026-06-01"})

        records = await store.fetch_all()

        assert [t.title for t in records] == ["Bald", "Später", "Ohne Datum"]

    @pytest.mark.asyncio
    async def test_member_completes_but_cannot_create(self, admin_services, staff_services, audit_repository):
        todo = await admin_services.todos().add({"title": "Angebot schreiben", "priority": "hoch"})

        with pytest.raises(PermissionDeniedError):
            await staff_services.todos().add({"title": "Eigene Aufgabe"})

        done = await staff_services.todos().set_completed(todo.id)

        assert done.completed is True
        entries = await audit_repository.list_ordered(table_name="todos", action="UPDATE")
        assert entries[0].new_values["completed"] is True

    @pytest.mark.asyncio
    async def test_unknown_priority_rejected(self, admin_services):
        with pytest.raises(ValidationError):
            await admin_services.todos().add({"title": "X", "priority": "dringend"})


# ============================================================================
# Settings Tests
# ============================================================================


class TestSettingsStore:
    """Tests for SettingsStore."""

    @pytest.mark.asyncio
    async def test_tax_rate_default(self, admin_services):
        assert await admin_services.settings_store().tax_rate() == Decimal("19")

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "raw,expected",
        [
            ("16", Decimal("16")),
            ("7,5", Decimal("7.5")),
            ("abc", Decimal("19")),
            ("-3", Decimal("19")),
            ("100", Decimal("100")),
            ("150", Decimal("19")),
        ],
    )
    async def test_tax_rate_from_setting(self, admin_services, raw, expected):
        store = admin_services.settings_store()
        await store.upsert("tax_rate", raw)

        assert await store.tax_rate() == expected

    @pytest.mark.asyncio
    async def test_upsert_audits_insert_then_update(self, admin_services, audit_repository):
        store = admin_services.settings_store()

        await store.upsert("team_notice", "Freitag Teammeeting")
        await store.upsert("team_notice", "Montag Teammeeting")

        entries = await audit_repository.list_ordered(table_name="settings")
        assert sorted(e.action for e in entries) == ["INSERT", "UPDATE"]
        update = next(e for e in entries if e.action == "UPDATE")
        assert update.old_values == {"key": "team_notice", "value": "Freitag Teammeeting"}
        assert update.new_values == {"key": "team_notice", "value": "Montag Teammeeting"}
        assert [s.key for s in store.records] == ["team_notice"]

    @pytest.mark.asyncio
    async def test_member_cannot_write(self, staff_services):
        with pytest.raises(PermissionDeniedError):
            await staff_services.settings_store().upsert("tax_rate", "0")

    @pytest.mark.asyncio
    async def test_team_notice_visibility(self, admin_services, staff_services):
        admin_store = admin_services.settings_store()
        await admin_store.upsert("team_notice", "Büro geschlossen")

        assert (await staff_services.settings_store().team_notice()).visible is False

        await admin_store.upsert("team_notice_visible", "true")
        notice = await staff_services.settings_store().team_notice()

        assert notice.visible is True
        assert notice.text == "Büro geschlossen"
