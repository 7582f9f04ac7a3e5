"""Customer and hot lead endpoints."""

from __future__ import annotations

from typing import Any
from uuid import UUID

from fastapi import APIRouter, Body, Query, status

from agentur_crm.core.exceptions import RecordNotFoundError
from agentur_crm.dependencies import ServicesDep


router = APIRouter()


# ============================================================================
# Customers
# ============================================================================


@router.get("/customers")
async def list_customers(
    services: ServicesDep,
    search: str | None = Query(default=None, max_length=100),
) -> list[dict[str, Any]]:
    """All customers, newest first, or the matches of ``search``."""
    store = services.customers()
    records = await store.search(search) if search else await store.fetch_all()
    return [c.to_dict() for c in records]


@router.post("/customers", status_code=status.HTTP_201_CREATED)
async def create_customer(
    services: ServicesDep,
    payload: dict[str, Any] = Body(...),
) -> dict[str, Any]:
    customer = await services.customers().add(payload)
    return customer.to_dict()


@router.get("/customers/{customer_id}")
async def get_customer(customer_id: UUID, services: ServicesDep) -> dict[str, Any]:
    store = services.customers()
    await store.fetch_all()
    customer = store.get(customer_id)
    if customer is None:
        raise RecordNotFoundError("Kunde wurde nicht gefunden.", details={"id": str(customer_id)})
    return customer.to_dict()


@router.patch("/customers/{customer_id}")
async def update_customer(
    customer_id: UUID,
    services: ServicesDep,
    payload: dict[str, Any] = Body(...),
) -> dict[str, Any]:
    customer = await services.customers().update(customer_id, payload)
    return customer.to_dict()


@router.delete("/customers/{customer_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_customer(customer_id: UUID, services: ServicesDep) -> None:
    """Delete the customer row only; its appointments and revenues stay."""
    await services.customers().delete(customer_id)


@router.get("/customers/{customer_id}/appointments")
async def list_customer_appointments(customer_id: UUID, services: ServicesDep) -> list[dict[str, Any]]:
    records = await services.appointments(customer_id=customer_id).fetch_all()
    return [a.to_dict() for a in records]


# ============================================================================
# Hot Leads
# ============================================================================


@router.get("/hot-leads")
async def list_hot_leads(services: ServicesDep) -> list[dict[str, Any]]:
    records = await services.hot_leads().fetch_all()
    return [lead.to_dict() for lead in records]


@router.post("/hot-leads", status_code=status.HTTP_201_CREATED)
async def create_hot_lead(
    services: ServicesDep,
    payload: dict[str, Any] = Body(...),
) -> dict[str, Any]:
    lead = await services.hot_leads().add(payload)
    return lead.to_dict()


@router.patch("/hot-leads/{lead_id}")
async def update_hot_lead(
    lead_id: UUID,
    services: ServicesDep,
    payload: dict[str, Any] = Body(...),
) -> dict[str, Any]:
    lead = await services.hot_leads().update(lead_id, payload)
    return lead.to_dict()


@router.delete("/hot-leads/{lead_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_hot_lead(lead_id: UUID, services: ServicesDep) -> None:
    await services.hot_leads().delete(lead_id)


@router.post("/hot-leads/{lead_id}/promote")
async def promote_hot_lead(lead_id: UUID, services: ServicesDep) -> dict[str, Any]:
    """Turn a lead into a customer.

    ``lead_removed`` is false when the customer exists but the lead
    could not be deleted; calling this endpoint again finishes the move.
    """
    store = services.hot_leads()
    promotion = await store.promote(lead_id)
    return {
        "lead_id": str(promotion.lead_id),
        "lead_removed": promotion.lead_removed,
        "customer": promotion.customer.to_dict(),
    }
