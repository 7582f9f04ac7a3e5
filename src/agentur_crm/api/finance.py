"""Revenue, expense and financial overview endpoints (admin only)."""

from __future__ import annotations

from datetime import date
from typing import Any
from uuid import UUID

from fastapi import APIRouter, Body, Query, status

from agentur_crm.dependencies import ServicesDep
from agentur_crm.services.reporting import financial_summary
from agentur_crm.services.stores import clear_financial_data


router = APIRouter(prefix="/finance")


@router.get("/revenues")
async def list_revenues(services: ServicesDep) -> list[dict[str, Any]]:
    records = await services.revenues().fetch_all()
    return [r.to_dict() for r in records]


@router.post("/revenues", status_code=status.HTTP_201_CREATED)
async def create_revenue(
    services: ServicesDep,
    payload: dict[str, Any] = Body(...),
) -> dict[str, Any]:
    revenue = await services.revenues().add(payload)
    return revenue.to_dict()


@router.delete("/revenues/{revenue_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_revenue(revenue_id: UUID, services: ServicesDep) -> None:
    await services.revenues().delete(revenue_id)


@router.get("/expenses")
async def list_expenses(services: ServicesDep) -> list[dict[str, Any]]:
    records = await services.expenses().fetch_all()
    return [e.to_dict() for e in records]


@router.post("/expenses", status_code=status.HTTP_201_CREATED)
async def create_expense(
    services: ServicesDep,
    payload: dict[str, Any] = Body(...),
) -> dict[str, Any]:
    expense = await services.expenses().add(payload)
    return expense.to_dict()


@router.delete("/expenses/{expense_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_expense(expense_id: UUID, services: ServicesDep) -> None:
    await services.expenses().delete(expense_id)


@router.get("/summary")
async def get_summary(
    services: ServicesDep,
    today: date | None = Query(default=None, description="Reference day, defaults to today"),
) -> dict[str, Any]:
    """Totals, profit, tax reserve and window figures in whole units."""
    revenues = await services.revenues().fetch_all()
    expenses = await services.expenses().fetch_all()
    tax_rate = await services.settings_store().tax_rate()
    summary = financial_summary(revenues, expenses, tax_rate, today or date.today())
    return summary.to_display()


@router.post("/clear")
async def clear_all(services: ServicesDep) -> dict[str, Any]:
    """Delete every revenue and expense."""
    counts = await clear_financial_data(
        services.ctx,
        services.revenue_repo,
        services.expense_repo,
        services.audit,
    )
    return {"success": True, "deleted": counts}
