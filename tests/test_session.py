"""Tests for session storage, login/logout and the audit trail."""

from __future__ import annotations

from unittest.mock import AsyncMock, patch

import pytest

from agentur_crm.core.exceptions import (
    AuthenticationFailedError,
    PermissionDeniedError,
    StoreError,
    ValidationError,
)
from agentur_crm.db.repositories.team import (
    AUTH_ERROR_INACTIVE,
    AUTH_ERROR_NOT_FOUND,
    AUTH_ERROR_PASSWORD,
)
from agentur_crm.domain import AuditAction
from agentur_crm.services.session import (
    CurrentUser,
    SessionContext,
    SessionStorage,
    login_error_message,
)

TEST_PASSWORD = "geheim123"


class TestSessionStorage:
    """Tests for the durable user file."""

    def test_missing_file(self, tmp_path):
        assert SessionStorage(tmp_path / "session.json").load() is None

    def test_save_and_load(self, tmp_path, staff_member):
        storage = SessionStorage(tmp_path / "session.json")
        user = CurrentUser.model_validate(staff_member)

        storage.save(user)

        assert storage.load() == user

    def test_corrupt_file_is_discarded(self, tmp_path):
        path = tmp_path / "session.json"
        path.write_text("{kein json", encoding="utf-8")

        assert SessionStorage(path).load() is None
        assert not path.exists()

    def test_clear(self, tmp_path, staff_member):
        storage = SessionStorage(tmp_path / "session.json")
        storage.save(CurrentUser.model_validate(staff_member))

        storage.clear()
        storage.clear()

        assert storage.load() is None


class TestSessionContext:
    def test_start_and_end(self, staff_member):
        ctx = SessionContext()
        assert not ctx.is_authenticated
        assert ctx.actor_id is None

        ctx.start(CurrentUser.model_validate(staff_member))
        assert ctx.actor_id == staff_member.id

        ctx.end()
        assert ctx.user is None


class TestLoginMessages:
    @pytest.mark.parametrize(
        "error,expected",
        [
            (AUTH_ERROR_NOT_FOUND, "Diese Email-Adresse ist nicht registriert."),
            (AUTH_ERROR_PASSWORD, "Das eingegebene Passwort ist falsch."),
            (
                AUTH_ERROR_INACTIVE,
                "Ihr Account wurde deaktiviert. Bitte kontaktieren Sie den Administrator.",
            ),
            (None, "Ungültige Email oder Passwort."),
            ("", "Ungültige Email oder Passwort."),
            ("Unbekannter Fehler", "Unbekannter Fehler"),
        ],
    )
    def test_mapping(self, error, expected):
        assert login_error_message(error) == expected


class TestAuthService:
    """Tests for login and logout."""

    @pytest.mark.asyncio
    async def test_login_starts_session(
        self, make_services, anonymous_ctx, staff_member, audit_repository, tmp_path
    ):
        storage = SessionStorage(tmp_path / "session.json")
        auth = make_services(anonymous_ctx).auth(storage)

        user = await auth.login(anonymous_ctx, "  MAX@agentur.de ", TEST_PASSWORD)

        assert user.id == staff_member.id
        assert anonymous_ctx.actor_id == staff_member.id
        assert storage.load() == user
        assert auth.restore().actor_id == staff_member.id

        entry = (await audit_repository.list_ordered(table_name="user_sessions"))[0]
        assert entry.action == "LOGIN"
        assert entry.user_id == staff_member.id
        assert entry.new_values["user_email"] == "max@agentur.de"

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "email,password",
        [("", TEST_PASSWORD), ("   ", TEST_PASSWORD), ("max@agentur.de", "")],
    )
    async def test_missing_credentials(self, make_services, anonymous_ctx, email, password):
        with pytest.raises(ValidationError) as exc_info:
            await make_services(anonymous_ctx).auth().login(anonymous_ctx, email, password)

        assert exc_info.value.message == "Bitte geben Sie Email und Passwort ein."

    @pytest.mark.asyncio
    async def test_unknown_email(self, make_services, anonymous_ctx, staff_member):
        with pytest.raises(AuthenticationFailedError) as exc_info:
            await make_services(anonymous_ctx).auth().login(anonymous_ctx, "wer@agentur.de", TEST_PASSWORD)

        assert exc_info.value.message == "Diese Email-Adresse ist nicht registriert."
        assert not anonymous_ctx.is_authenticated

    @pytest.mark.asyncio
    async def test_wrong_password(self, make_services, anonymous_ctx, staff_member):
        with pytest.raises(AuthenticationFailedError) as exc_info:
            await make_services(anonymous_ctx).auth().login(anonymous_ctx, "max@agentur.de", "falsch")

        assert exc_info.value.message == "Das eingegebene Passwort ist falsch."

    @pytest.mark.asyncio
    async def test_inactive_account(self, admin_services, make_services, anonymous_ctx, staff_member):
        await admin_services.team().update(staff_member.id, {"is_active": False})

        with pytest.raises(AuthenticationFailedError) as exc_info:
            await make_services(anonymous_ctx).auth().login(anonymous_ctx, "max@agentur.de", TEST_PASSWORD)

        assert "deaktiviert" in exc_info.value.message

    @pytest.mark.asyncio
    async def test_database_down(self, make_services, anonymous_ctx, db_failure):
        services = make_services(anonymous_ctx)

        with patch.object(services.team_repo, "authenticate_user", AsyncMock(side_effect=db_failure)):
            with pytest.raises(StoreError) as exc_info:
                await services.auth().login(anonymous_ctx, "max@agentur.de", TEST_PASSWORD)

        assert exc_info.value.message == "Es gab ein Problem bei der Verbindung zur Datenbank."

    @pytest.mark.asyncio
    async def test_logout(self, staff_services, staff_ctx, staff_member, audit_repository, tmp_path):
        storage = SessionStorage(tmp_path / "session.json")
        storage.save(staff_ctx.user)

        await staff_services.auth(storage).logout(staff_ctx)

        assert not staff_ctx.is_authenticated
        assert storage.load() is None
        entry = (await audit_repository.list_ordered(table_name="user_sessions"))[0]
        assert entry.action == "LOGOUT"
        assert entry.user_id == staff_member.id


class TestAuditTrail:
    """Tests for reading and clearing the audit log."""

    @pytest.mark.asyncio
    async def test_recent_resolves_actor(self, admin_services, admin_ctx):
        await admin_services.customers().add({"name": "Blumen Meier"})

        entries = await admin_services.audit.recent(admin_ctx)

        assert len(entries) == 1
        assert entries[0].action == "INSERT"
        assert entries[0].table_name == "customers"
        assert entries[0].actor_label == "Anna Admin"
        assert entries[0].ip_address == "127.0.0.1"

    @pytest.mark.asyncio
    async def test_recent_newest_first_with_limit(self, admin_services, admin_ctx):
        customers = admin_services.customers()
        for name in ("Erster", "Zweiter", "Dritter"):
            await customers.add({"name": name})

        entries = await admin_services.audit.recent(admin_ctx, limit=2)

        assert [e.new_values["name"] for e in entries] == ["Dritter", "Zweiter"]

    @pytest.mark.asyncio
    async def test_system_actor(self, admin_services, admin_ctx):
        await admin_services.audit.record(None, AuditAction.UPDATE, "settings")
        await admin_services.audit.commit()

        entries = await admin_services.audit.recent(admin_ctx)

        assert entries[0].actor_label == "System"

    @pytest.mark.asyncio
    async def test_member_cannot_read(self, staff_services, staff_ctx):
        with pytest.raises(PermissionDeniedError):
            await staff_services.audit.recent(staff_ctx)

    @pytest.mark.asyncio
    async def test_read_failure_carries_cause(self, admin_services, admin_ctx, db_failure):
        repository = admin_services.audit.repository

        with patch.object(repository, "recent_with_actor", AsyncMock(side_effect=db_failure)):
            with pytest.raises(StoreError) as exc_info:
                await admin_services.audit.recent(admin_ctx)

        assert exc_info.value.message.startswith("Fehler beim Laden der Audit-Logs: ")
        assert "database is locked" in exc_info.value.message

    @pytest.mark.asyncio
    async def test_clear_leaves_marker(self, admin_services, admin_ctx, audit_repository):
        customers = admin_services.customers()
        await customers.add({"name": "Blumen Meier"})
        await customers.add({"name": "Schreinerei Holz"})

        deleted = await admin_services.audit.clear_all(admin_ctx)

        assert deleted == 2
        remaining = await audit_repository.list_ordered()
        assert len(remaining) == 1
        assert remaining[0].action == "CLEAR_LOGS"
        assert remaining[0].new_values == {"deleted_count": 2}

    @pytest.mark.asyncio
    async def test_member_cannot_clear(self, staff_services, staff_ctx):
        with pytest.raises(PermissionDeniedError):
            await staff_services.audit.clear_all(staff_ctx)
