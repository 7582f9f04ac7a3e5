"""Pytest configuration and fixtures for Agentur CRM tests."""

from __future__ import annotations

import os
import sys
from datetime import date, time
from decimal import Decimal
from pathlib import Path
from typing import AsyncGenerator

import pytest
import pytest_asyncio

# Add src to path
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

# Set test environment
os.environ["CRM_ENV"] = "test"
os.environ["CRM_DEBUG"] = "true"
os.environ["CRM_DATABASE__URL"] = "sqlite+aiosqlite:///:memory:"

TEST_PASSWORD = "geheim123"


@pytest.fixture
def settings():
    """Settings built from defaults and the CRM_* test environment."""
    from agentur_crm.config import Settings

    return Settings(environment="test", debug=True)


# ============================================================================
# Async Database Fixtures
# ============================================================================


@pytest_asyncio.fixture
async def db_engine():
    """Fresh in-memory SQLite database with all tables per test."""
    from agentur_crm.db.session import create_test_engine

    engine = await create_test_engine()
    yield engine
    await engine.dispose()


@pytest_asyncio.fixture
async def db_session(db_engine) -> AsyncGenerator:
    """Session on the test engine.

    Rolled back after the test so nothing leaks between tests.
    """
    from agentur_crm.db.session import make_session_factory

    session_factory = make_session_factory(db_engine)
    async with session_factory() as session:
        yield session
        await session.rollback()


async def _seed(session, obj):
    """Persist a fixture row and detach it from the session.

    Detached rows keep their loaded values, so a rollback inside the
    test never expires them.
    """
    session.add(obj)
    await session.commit()
    await session.refresh(obj)
    session.expunge(obj)
    return obj


# ============================================================================
# Repository Fixtures
# ============================================================================


@pytest.fixture
def customer_repository(db_session):
    from agentur_crm.db.repositories import CustomerRepository

    return CustomerRepository(db_session)


@pytest.fixture
def appointment_repository(db_session):
    from agentur_crm.db.repositories import AppointmentRepository

    return AppointmentRepository(db_session)


@pytest.fixture
def team_repository(db_session):
    from agentur_crm.db.repositories import TeamMemberRepository

    return TeamMemberRepository(db_session)


@pytest.fixture
def todo_repository(db_session):
    from agentur_crm.db.repositories import TodoRepository

    return TodoRepository(db_session)


@pytest.fixture
def setting_repository(db_session):
    from agentur_crm.db.repositories import SettingRepository

    return SettingRepository(db_session)


@pytest.fixture
def audit_repository(db_session):
    from agentur_crm.db.repositories import AuditLogRepository

    return AuditLogRepository(db_session)


# ============================================================================
# Sample Data Fixtures
# ============================================================================


@pytest_asyncio.fixture
async def sample_customer(db_session):
    """A customer in trial."""
    from agentur_crm.db.models.crm import CustomerModel

    return await _seed(
        db_session,
        CustomerModel(
            name="Bäckerei Schmidt",
            contact="Hans Schmidt",
            email="info@baeckerei-schmidt.de",
            phone="+49711123456",
            priority="Hoch",
            action_step="testphase_aktiv",
        ),
    )


@pytest_asyncio.fixture
async def other_customer(db_session):
    from agentur_crm.db.models.crm import CustomerModel

    return await _seed(
        db_session,
        CustomerModel(name="Autohaus Weber", contact="Petra Weber", action_step="pausiert"),
    )


async def _member(session, name: str, email: str, user_role: str, **extra):
    from agentur_crm.core.security import hash_password
    from agentur_crm.db.models.team import TeamMemberModel

    return await _seed(
        session,
        TeamMemberModel(
            name=name,
            email=email,
            user_role=user_role,
            password_hash=hash_password(TEST_PASSWORD),
            **extra,
        ),
    )


@pytest_asyncio.fixture
async def admin_member(db_session):
    return await _member(db_session, "Anna Admin", "anna@agentur.de", "admin", role="Geschäftsführung")


@pytest_asyncio.fixture
async def staff_member(db_session):
    return await _member(db_session, "Max Mitarbeiter", "max@agentur.de", "member")


@pytest_asyncio.fixture
async def portal_member(db_session, sample_customer):
    """Customer portal account linked to ``sample_customer``."""
    return await _member(
        db_session,
        "Hans Schmidt",
        "hans@baeckerei-schmidt.de",
        "kunde",
        role="Kunde",
        customer_id=sample_customer.id,
        customer_dashboard_name="Bäckerei Schmidt Portal",
    )


@pytest_asyncio.fixture
async def sample_appointment(db_session, sample_customer, staff_member):
    """Pending appointment of ``sample_customer`` handled by ``staff_member``."""
    from agentur_crm.db.models.core import AppointmentModel

    return await _seed(
        db_session,
        AppointmentModel(
            customer_id=sample_customer.id,
            team_member_id=staff_member.id,
            date=date(2026, 3, 10),
            time=time(10, 30),
            type="Beratung",
            description="Website-Relaunch besprechen",
        ),
    )


@pytest_asyncio.fixture
async def other_appointment(db_session, other_customer, staff_member):
    from agentur_crm.db.models.core import AppointmentModel

    return await _seed(
        db_session,
        AppointmentModel(
            customer_id=other_customer.id,
            team_member_id=staff_member.id,
            date=date(2026, 3, 12),
            type="Termin",
        ),
    )


@pytest_asyncio.fixture
async def sample_lead(db_session):
    from agentur_crm.db.models.crm import HotLeadModel

    return await _seed(
        db_session,
        HotLeadModel(
            name="Café Sonnenschein",
            contact="Lisa Sonne",
            email="lisa@cafe-sonnenschein.de",
            priority="Hoch",
            source="Empfehlung",
            notes="Interesse an Social Media Betreuung",
        ),
    )


@pytest_asyncio.fixture
async def sample_bookings(db_session, sample_customer):
    """Two revenues and one expense."""
    from agentur_crm.db.models.finance import ExpenseModel, RevenueModel

    return [
        await _seed(
            db_session,
            RevenueModel(
                description="Setup-Gebühr",
                amount=Decimal("1500.00"),
                date=date(2026, 1, 15),
                customer_id=sample_customer.id,
            ),
        ),
        await _seed(
            db_session,
            RevenueModel(description="Monatspauschale", amount=Decimal("499.50"), date=date(2026, 2, 1)),
        ),
        await _seed(
            db_session,
            ExpenseModel(description="Hosting", amount=Decimal("120.00"), date=date(2026, 2, 3)),
        ),
    ]


# ============================================================================
# Session and Service Fixtures
# ============================================================================


def _context(member):
    from agentur_crm.services.session import CurrentUser, SessionContext

    return SessionContext(CurrentUser.model_validate(member), ip_address="127.0.0.1")


@pytest.fixture
def admin_ctx(admin_member):
    return _context(admin_member)


@pytest.fixture
def staff_ctx(staff_member):
    return _context(staff_member)


@pytest.fixture
def portal_ctx(portal_member):
    return _context(portal_member)


@pytest.fixture
def anonymous_ctx():
    from agentur_crm.services.session import SessionContext

    return SessionContext()


@pytest.fixture
def make_services(db_session, settings):
    """Build a ServiceFactory for a given session context."""
    from agentur_crm.services.factory import ServiceFactory

    def factory(ctx):
        return ServiceFactory(db_session, ctx, settings)

    return factory


@pytest.fixture
def admin_services(make_services, admin_ctx):
    return make_services(admin_ctx)


@pytest.fixture
def staff_services(make_services, staff_ctx):
    return make_services(staff_ctx)


@pytest.fixture
def portal_services(make_services, portal_ctx):
    return make_services(portal_ctx)


@pytest.fixture
def db_failure():
    """Error raised by patched repository calls to simulate an outage."""
    from sqlalchemy.exc import OperationalError

    return OperationalError("COMMIT", {}, Exception("database is locked"))
