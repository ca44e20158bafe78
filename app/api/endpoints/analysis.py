"""
Financial Analysis API
Monthly gross / VAT / commission / net report and its per-therapist settings
"""
from fastapi import APIRouter, Depends, Query

from app.api.deps import get_billing_service
from app.schemas.billing import AnalysisResponse, AnalysisSettings
from app.services.billing_service import BillingService

router = APIRouter(prefix="/analysis", tags=["Analysis"])


@router.get("/settings", response_model=AnalysisSettings)
async def get_analysis_settings(service: BillingService = Depends(get_billing_service)):
    return await service.get_analysis_settings()


@router.put("/settings", response_model=AnalysisSettings)
async def update_analysis_settings(
    analysis_settings: AnalysisSettings,
    service: BillingService = Depends(get_billing_service),
):
    """Save the VAT rate and global deductions"""
    return await service.save_analysis_settings(analysis_settings)


@router.get("/{month}", response_model=AnalysisResponse)
async def get_month_analysis(
    month: str,
    include_refunds: bool = Query(False),
    net_after_refunds: bool = Query(False),
    service: BillingService = Depends(get_billing_service),
):
    """
    Financial report for the payments received during a month
    """
    return await service.analysis(month, include_refunds=include_refunds, net_after_refunds=net_after_refunds)
