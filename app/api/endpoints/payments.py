"""
Payment History API
"""
from typing import List, Optional

from fastapi import APIRouter, Depends, Query

from app.api.deps import get_billing_service
from app.schemas.billing import MonthPayments, MonthRevenue
from app.services.billing_service import BillingService

router = APIRouter(prefix="/payments", tags=["Payments"])


@router.get("", response_model=List[MonthPayments])
async def list_payments(
    search: Optional[str] = Query(None, description="Patient name or YYYY-MM fragment"),
    service: BillingService = Depends(get_billing_service),
):
    return await service.payment_history(search)


@router.get("/revenue", response_model=List[MonthRevenue])
async def get_revenue(
    months: int = Query(12, ge=1, le=60),
    service: BillingService = Depends(get_billing_service),
):
    """Recorded vs. paid amounts per month, oldest first"""
    return await service.revenue(months)
