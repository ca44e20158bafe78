"""
Weekly Finance API
"""
from typing import Optional

from fastapi import APIRouter, Depends, Query

from app.api.deps import get_billing_service
from app.schemas.billing import DailyExpense, ExpenseUpdate, WeekSummary
from app.services.billing_service import BillingService

router = APIRouter(prefix="/weekly", tags=["Weekly Finance"])


@router.get("", response_model=WeekSummary)
async def get_week(
    offset: int = Query(0, description="Weeks relative to the current week"),
    service: BillingService = Depends(get_billing_service),
):
    return await service.weekly(offset)


@router.put("/expenses", response_model=Optional[DailyExpense])
async def save_expense(
    expense: ExpenseUpdate,
    service: BillingService = Depends(get_billing_service),
):
    """Save one expense slot; an empty name with a zero amount clears it"""
    return await service.save_expense(expense.date, expense.slot_index, expense.name, expense.amount)
