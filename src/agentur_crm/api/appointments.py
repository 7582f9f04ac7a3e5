"""Appointment and pipeline endpoints.

The pipeline board groups appointments by their ``result`` stage.
Customer portal accounts see only their own customer's board and may
move cards but not edit anything else.
"""

from __future__ import annotations

from typing import Any
from uuid import UUID

from fastapi import APIRouter, Body, Query, status
from pydantic import BaseModel

from agentur_crm.dependencies import ServicesDep
from agentur_crm.services.dashboards import AppointmentCard, BoardColumn


router = APIRouter()


class MoveRequest(BaseModel):
    """Drop of a card onto a board column."""

    appointment_id: UUID
    destination: str


class MoveResponse(BaseModel):
    appointment_id: UUID
    source: str
    destination: str
    moved: bool


# ============================================================================
# Appointments
# ============================================================================


@router.get("/appointments")
async def list_appointments(
    services: ServicesDep,
    customer_id: UUID | None = Query(default=None),
    team_member_id: UUID | None = Query(default=None),
) -> list[dict[str, Any]]:
    """Appointments in date order, optionally filtered."""
    store = services.appointments(customer_id=customer_id, team_member_id=team_member_id)
    records = await store.fetch_all()
    return [a.to_dict() for a in records]


@router.post("/appointments", status_code=status.HTTP_201_CREATED)
async def create_appointment(
    services: ServicesDep,
    payload: dict[str, Any] = Body(...),
) -> dict[str, Any]:
    appointment = await services.appointments().add(payload)
    return appointment.to_dict()


@router.patch("/appointments/{appointment_id}")
async def update_appointment(
    appointment_id: UUID,
    services: ServicesDep,
    payload: dict[str, Any] = Body(...),
) -> dict[str, Any]:
    appointment = await services.appointments().update(appointment_id, payload)
    return appointment.to_dict()


@router.delete("/appointments/{appointment_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_appointment(appointment_id: UUID, services: ServicesDep) -> None:
    await services.appointments().delete(appointment_id)


@router.get("/appointments/{appointment_id}/history")
async def appointment_history(appointment_id: UUID, services: ServicesDep) -> list[dict[str, Any]]:
    entries = await services.appointments().history(appointment_id)
    return [entry.to_dict() for entry in entries]


# ============================================================================
# Pipeline
# ============================================================================


@router.get("/pipeline")
async def get_pipeline(
    services: ServicesDep,
    customer_id: UUID | None = Query(default=None),
    team_member_id: UUID | None = Query(default=None),
) -> list[BoardColumn]:
    """Board columns in stage order, every stage present."""
    board = services.board(customer_id=customer_id, team_member_id=team_member_id)
    columns = await board.load()
    return [
        BoardColumn(
            stage=column.stage.value,
            label=column.label,
            appointments=[AppointmentCard.from_model(a) for a in column.appointments],
        )
        for column in columns
    ]


@router.post("/pipeline/move")
async def move_card(body: MoveRequest, services: ServicesDep) -> MoveResponse:
    """Move a card; dropping it on its own column changes nothing."""
    board = services.board()
    await board.load()
    result = await board.move(body.appointment_id, body.destination)
    return MoveResponse(
        appointment_id=result.appointment_id,
        source=result.source.value,
        destination=result.destination.value,
        moved=result.moved,
    )
