"""To-dos, settings and the audit log."""

from __future__ import annotations

from typing import Any
from uuid import UUID

from fastapi import APIRouter, Body, Query, status
from pydantic import BaseModel

from agentur_crm.dependencies import ServicesDep
from agentur_crm.services.audit_trail import AuditEntryView
from agentur_crm.services.stores import TEAM_NOTICE_KEY, TEAM_NOTICE_VISIBLE_KEY


router = APIRouter()


class SettingValue(BaseModel):
    value: str | None = None


class TeamNoticeBody(BaseModel):
    text: str = ""
    visible: bool = False


# ============================================================================
# To-dos
# ============================================================================


@router.get("/todos")
async def list_todos(services: ServicesDep) -> list[dict[str, Any]]:
    """To-dos by due date, undated last."""
    records = await services.todos().fetch_all()
    return [t.to_dict() for t in records]


@router.post("/todos", status_code=status.HTTP_201_CREATED)
async def create_todo(
    services: ServicesDep,
    payload: dict[str, Any] = Body(...),
) -> dict[str, Any]:
    todo = await services.todos().add(payload)
    return todo.to_dict()


@router.patch("/todos/{todo_id}")
async def update_todo(
    todo_id: UUID,
    services: ServicesDep,
    payload: dict[str, Any] = Body(...),
) -> dict[str, Any]:
    todo = await services.todos().update(todo_id, payload)
    return todo.to_dict()


@router.post("/todos/{todo_id}/complete")
async def complete_todo(
    todo_id: UUID,
    services: ServicesDep,
    completed: bool = Query(default=True),
) -> dict[str, Any]:
    todo = await services.todos().set_completed(todo_id, completed)
    return todo.to_dict()


@router.delete("/todos/{todo_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_todo(todo_id: UUID, services: ServicesDep) -> None:
    await services.todos().delete(todo_id)


# ============================================================================
# Settings
# ============================================================================


@router.get("/settings")
async def list_settings(services: ServicesDep) -> dict[str, str | None]:
    records = await services.settings_store().fetch_all()
    return {s.key: s.value for s in records}


@router.put("/settings/{key}")
async def put_setting(key: str, body: SettingValue, services: ServicesDep) -> dict[str, Any]:
    setting = await services.settings_store().upsert(key, body.value)
    return setting.to_dict()


@router.get("/settings/tax-rate")
async def get_tax_rate(services: ServicesDep) -> dict[str, float]:
    rate = await services.settings_store().tax_rate()
    return {"tax_rate": float(rate)}


@router.get("/team-notice")
async def get_team_notice(services: ServicesDep) -> dict[str, Any]:
    notice = await services.settings_store().team_notice()
    return {"text": notice.text, "visible": notice.visible}


@router.put("/team-notice")
async def put_team_notice(body: TeamNoticeBody, services: ServicesDep) -> dict[str, Any]:
    store = services.settings_store()
    await store.upsert(TEAM_NOTICE_KEY, body.text)
    await store.upsert(TEAM_NOTICE_VISIBLE_KEY, "true" if body.visible else "false")
    notice = await store.team_notice()
    return {"text": notice.text, "visible": notice.visible}


# ============================================================================
# Audit Log
# ============================================================================


@router.get("/audit-logs")
async def list_audit_logs(
    services: ServicesDep,
    limit: int | None = Query(default=None, ge=1, le=1000),
) -> list[AuditEntryView]:
    """Most recent entries, newest first, with the actor resolved."""
    return await services.audit.recent(services.ctx, limit)


@router.delete("/audit-logs")
async def clear_audit_logs(services: ServicesDep) -> dict[str, Any]:
    """Delete all entries; the clearing itself stays on record."""
    deleted = await services.audit.clear_all(services.ctx)
    return {"success": True, "deleted_count": deleted}
