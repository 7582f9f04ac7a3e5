"""HTTP API tests against the FastAPI app with an in-memory database."""

from __future__ import annotations

import pytest
from fastapi.testclient import TestClient

from agentur_crm.core.security import hash_password
from agentur_crm.db.repositories.team import TeamMemberRepository
from agentur_crm.db.session import get_db_context
from agentur_crm.main import create_app

PASSWORD = "geheim123"


def _create_member(client: TestClient, name: str, email: str, user_role: str) -> str:
    async def create() -> str:
        async with get_db_context() as db:
            member = await TeamMemberRepository(db).create_from({
                "name": name,
                "email": email,
                "user_role": user_role,
                "password_hash": hash_password(PASSWORD),
            })
            return str(member.id)

    return client.portal.call(create)


@pytest.fixture
def client():
    with TestClient(create_app()) as test_client:
        yield test_client


@pytest.fixture
def admin_headers(client):
    member_id = _create_member(client, "Anna Admin", "anna@agentur.de", "admin")
    return {"X-User-Id": member_id}


@pytest.fixture
def staff_headers(client):
    member_id = _create_member(client, "Max Mitarbeiter", "max@agentur.de", "member")
    return {"X-User-Id": member_id}


class TestHealth:
    def test_health(self, client):
        response = client.get("/health")

        assert response.status_code == 200
        assert response.json()["checks"]["database"] == "ok"

    def test_live(self, client):
        assert client.get("/live").json() == {"status": "alive"}


class TestAuthEndpoints:
    """Tests for login and request identity."""

    def test_login(self, client, admin_headers):
        response = client.post("/api/v1/auth/login", json={"email": "ANNA@agentur.de", "password": PASSWORD})

        assert response.status_code == 200
        body = response.json()
        assert body["user"]["id"] == admin_headers["X-User-Id"]
        assert body["permissions"]["manage_revenues"] is True
        assert body["permissions"]["view_own_dashboard"] is False

    def test_login_wrong_password(self, client, admin_headers):
        response = client.post("/api/v1/auth/login", json={"email": "anna@agentur.de", "password": "falsch"})

        assert response.status_code == 401
        assert response.json()["message"] == "Das eingegebene Passwort ist falsch."

    def test_login_missing_fields(self, client):
        response = client.post("/api/v1/auth/login", json={})

        assert response.status_code == 400
        assert response.json()["message"] == "Bitte geben Sie Email und Passwort ein."

    def test_me(self, client, staff_headers):
        response = client.get("/api/v1/auth/me", headers=staff_headers)

        assert response.status_code == 200
        assert response.json()["user"]["user_role"] == "member"

    def test_anonymous_request(self, client):
        response = client.get("/api/v1/customers")

        assert response.status_code == 401
        assert response.json()["message"] == "Bitte melden Sie sich an."

    def test_malformed_user_header(self, client):
        response = client.get("/api/v1/customers", headers={"X-User-Id": "kein-uuid"})

        assert response.status_code == 401
        assert response.json()["message"] == "Ihre Sitzung ist ungültig. Bitte melden Sie sich erneut an."


class TestCustomerEndpoints:
    def test_crud(self, client, admin_headers):
        created = client.post("/api/v1/customers", json={"name": "Blumen Meier"}, headers=admin_headers)
        assert created.status_code == 201
        customer_id = created.json()["id"]

        listed = client.get("/api/v1/customers", headers=admin_headers).json()
        assert [c["name"] for c in listed] == ["Blumen Meier"]

        patched = client.patch(
            f"/api/v1/customers/{customer_id}",
            json={"priority": "Hoch"},
            headers=admin_headers,
        )
        assert patched.json()["priority"] == "Hoch"

        assert client.delete(f"/api/v1/customers/{customer_id}", headers=admin_headers).status_code == 204
        missing = client.get(f"/api/v1/customers/{customer_id}", headers=admin_headers)
        assert missing.status_code == 404
        assert missing.json()["message"] == "Kunde wurde nicht gefunden."

    def test_validation_message(self, client, admin_headers):
        response = client.post("/api/v1/customers", json={"contact": "Niemand"}, headers=admin_headers)

        assert response.status_code == 400
        assert response.json()["message"] == "Bitte füllen Sie alle Pflichtfelder aus."

    def test_member_cannot_create(self, client, staff_headers):
        response = client.post("/api/v1/customers", json={"name": "Blumen Meier"}, headers=staff_headers)

        assert response.status_code == 403
        assert response.json()["error"] == "FORBIDDEN"


class TestPipelineEndpoints:
    """Tests for appointments and the kanban board."""

    def test_move_card(self, client, admin_headers):
        customer = client.post("/api/v1/customers", json={"name": "Blumen Meier"}, headers=admin_headers).json()
        appointment = client.post(
            "/api/v1/appointments",
            json={"customer_id": customer["id"], "date": "2026-03-10", "time": "09:00"},
            headers=admin_headers,
        )
        assert appointment.status_code == 201
        appointment_id = appointment.json()["id"]

        columns = client.get("/api/v1/pipeline", headers=admin_headers).json()
        assert [c["stage"] for c in columns][0] == "termin_ausstehend"
        assert len(columns) == 6
        assert columns[0]["appointments"][0]["time"] == "09:00"

        moved = client.post(
            "/api/v1/pipeline/move",
            json={"appointment_id": appointment_id, "destination": "termin_erschienen"},
            headers=admin_headers,
        ).json()
        assert moved == {
            "appointment_id": appointment_id,
            "source": "termin_ausstehend",
            "destination": "termin_erschienen",
            "moved": True,
        }

        columns = client.get("/api/v1/pipeline", headers=admin_headers).json()
        assert columns[1]["appointments"][0]["id"] == appointment_id

        history = client.get(f"/api/v1/appointments/{appointment_id}/history", headers=admin_headers).json()
        assert [h["message"] for h in history] == ["Termin erstellt"]

    def test_missing_customer(self, client, admin_headers):
        response = client.post("/api/v1/appointments", json={"date": "2026-03-10"}, headers=admin_headers)

        assert response.status_code == 400
        assert response.json()["message"] == "Bitte füllen Sie alle Pflichtfelder aus."


class TestFinanceEndpoints:
    def test_summary(self, client, admin_headers):
        for amount, day in (("1500", "2026-01-15"), ("499.50", "2026-02-01")):
            response = client.post(
                "/api/v1/finance/revenues",
                json={"description": "Pauschale", "amount": amount, "date": day},
                headers=admin_headers,
            )
            assert response.status_code == 201
        client.post(
            "/api/v1/finance/expenses",
            json={"description": "Hosting", "amount": "120", "date": "2026-02-03"},
            headers=admin_headers,
        )

        summary = client.get("/api/v1/finance/summary", params={"today": "2026-02-01"}, headers=admin_headers).json()

        assert summary["total_revenue"] == 2000
        assert summary["total_expenses"] == 120
        assert summary["net_profit"] == 1880
        assert summary["tax_rate"] == 19.0
        assert summary["windows"]["today"]["revenue"] == 500

    def test_member_denied(self, client, staff_headers):
        assert client.get("/api/v1/finance/revenues", headers=staff_headers).status_code == 403

    def test_invalid_amount(self, client, admin_headers):
        response = client.post(
            "/api/v1/finance/revenues",
            json={"description": "Pauschale", "amount": "abc", "date": "2026-02-01"},
            headers=admin_headers,
        )

        assert response.status_code == 400
        assert response.json()["message"] == "Bitte geben Sie einen gültigen Betrag ein."


class TestOfficeEndpoints:
    def test_audit_log(self, client, admin_headers):
        client.post("/api/v1/customers", json={"name": "Blumen Meier"}, headers=admin_headers)

        entries = client.get("/api/v1/audit-logs", headers=admin_headers).json()
        assert entries[0]["action"] == "INSERT"
        assert entries[0]["user_name"] == "Anna Admin"

        cleared = client.delete("/api/v1/audit-logs", headers=admin_headers).json()
        assert cleared == {"success": True, "deleted_count": 1}

    def test_tax_rate_setting(self, client, admin_headers):
        response = client.put("/api/v1/settings/tax_rate", json={"value": "25"}, headers=admin_headers)
        assert response.status_code == 200

        assert client.get("/api/v1/settings", headers=admin_headers).json()["tax_rate"] == "25"

    def test_dashboard(self, client, admin_headers):
        response = client.get("/api/v1/dashboard", params={"today": "2026-02-01"}, headers=admin_headers)

        assert response.status_code == 200
        assert response.json()["revenue_year"] == 0
        assert "stage_counts" in response.json()
