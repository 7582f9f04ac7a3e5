"""Role dashboards."""

from __future__ import annotations

from datetime import date
from typing import Any
from uuid import UUID

from fastapi import APIRouter, Query

from agentur_crm.dependencies import ServicesDep
from agentur_crm.services.dashboards import CustomerDashboard, customer_dashboard, dashboard_for


router = APIRouter(prefix="/dashboard")


@router.get("")
async def get_dashboard(
    services: ServicesDep,
    today: date | None = Query(default=None),
) -> dict[str, Any]:
    """Admin, member or customer dashboard depending on the caller's role."""
    dashboard = await dashboard_for(services, today)
    return dashboard.model_dump(mode="json")


@router.get("/customers/{customer_id}")
async def get_customer_dashboard(
    customer_id: UUID,
    services: ServicesDep,
    today: date | None = Query(default=None),
) -> CustomerDashboard:
    return await customer_dashboard(services, customer_id, today)
