"""Team member endpoints, including per-member bookings."""

from __future__ import annotations

from typing import Any
from uuid import UUID

from fastapi import APIRouter, Body, status

from agentur_crm.dependencies import ServicesDep


router = APIRouter(prefix="/team-members")


@router.get("")
async def list_members(services: ServicesDep) -> list[dict[str, Any]]:
    records = await services.team().fetch_all()
    return [m.to_dict() for m in records]


@router.post("", status_code=status.HTTP_201_CREATED)
async def create_member(
    services: ServicesDep,
    payload: dict[str, Any] = Body(...),
) -> dict[str, Any]:
    """Create an account; ``password`` is stored hashed."""
    member = await services.team().add(payload)
    return member.to_dict()


@router.patch("/{member_id}")
async def update_member(
    member_id: UUID,
    services: ServicesDep,
    payload: dict[str, Any] = Body(...),
) -> dict[str, Any]:
    member = await services.team().update(member_id, payload)
    return member.to_dict()


@router.delete("/{member_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_member(member_id: UUID, services: ServicesDep) -> None:
    """Delete a member together with everything that references it."""
    await services.team().delete(member_id)


@router.get("/{member_id}/earnings")
async def list_earnings(member_id: UUID, services: ServicesDep) -> list[dict[str, Any]]:
    rows = await services.team().earnings(member_id)
    return [row.to_dict() for row in rows]


@router.post("/{member_id}/earnings", status_code=status.HTTP_201_CREATED)
async def add_earning(
    member_id: UUID,
    services: ServicesDep,
    payload: dict[str, Any] = Body(...),
) -> dict[str, Any]:
    row = await services.team().add_earning(member_id, payload)
    return row.to_dict()


@router.get("/{member_id}/expenses")
async def list_member_expenses(member_id: UUID, services: ServicesDep) -> list[dict[str, Any]]:
    rows = await services.team().expenses(member_id)
    return [row.to_dict() for row in rows]


@router.post("/{member_id}/expenses", status_code=status.HTTP_201_CREATED)
async def add_member_expense(
    member_id: UUID,
    services: ServicesDep,
    payload: dict[str, Any] = Body(...),
) -> dict[str, Any]:
    row = await services.team().add_expense(member_id, payload)
    return row.to_dict()
