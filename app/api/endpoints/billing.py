"""
Monthly Billing API
Billing view per month, paid toggles, price overrides, label aliases and ignores
"""
import logging
from typing import List, Optional

from fastapi import APIRouter, Depends, Query, status

from app.api.deps import get_billing_service
from app.schemas.billing import (
    AliasCreate,
    BillingMessageResponse,
    EventAlias,
    IgnoreCreate,
    IgnoredEventName,
    MonthBillingResponse,
    OverrideUpdate,
    RenameResult,
    SessionOverride,
    ToggleResponse,
)
from app.services.billing_service import BillingService

router = APIRouter(prefix="/billing", tags=["Billing"])
logger = logging.getLogger(__name__)


# Label aliases ---------------------------------------------------------------

@router.get("/aliases", response_model=List[EventAlias])
async def list_aliases(service: BillingService = Depends(get_billing_service)):
    return await service.aliases.list()


@router.post("/aliases", response_model=EventAlias, status_code=status.HTTP_201_CREATED)
async def create_alias(
    alias: AliasCreate,
    service: BillingService = Depends(get_billing_service),
):
    """Link a calendar label to an existing patient"""
    return await service.add_alias(alias.event_name, alias.patient_id)


@router.delete("/aliases", status_code=status.HTTP_204_NO_CONTENT)
async def delete_alias(
    event_name: str = Query(..., min_length=1),
    service: BillingService = Depends(get_billing_service),
):
    await service.remove_alias(event_name)


# Ignored labels --------------------------------------------------------------

@router.get("/ignored", response_model=List[str])
async def list_ignored(service: BillingService = Depends(get_billing_service)):
    return await service.ignored.list()


@router.post("/ignored", response_model=IgnoredEventName, status_code=status.HTTP_201_CREATED)
async def ignore_label(
    body: IgnoreCreate,
    service: BillingService = Depends(get_billing_service),
):
    """Stop suggesting a calendar label as a new patient"""
    return IgnoredEventName(event_name=await service.ignore_label(body.event_name))


@router.delete("/ignored", status_code=status.HTTP_204_NO_CONTENT)
async def unignore_label(
    event_name: str = Query(..., min_length=1),
    service: BillingService = Depends(get_billing_service),
):
    await service.unignore_label(event_name)


# Price overrides -------------------------------------------------------------

@router.put("/overrides/{event_id}", response_model=Optional[SessionOverride])
async def set_override(
    event_id: str,
    body: OverrideUpdate,
    service: BillingService = Depends(get_billing_service),
):
    """
    Set a custom price for one session
    Returns null when the price equals the patient's default (override removed)
    """
    return await service.set_override(event_id, body.patient_id, body.custom_price)


@router.delete("/overrides/{event_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_override(
    event_id: str,
    service: BillingService = Depends(get_billing_service),
):
    await service.delete_override(event_id)


# Monthly view ----------------------------------------------------------------

@router.get("/{month}", response_model=MonthBillingResponse)
async def get_month_billing(
    month: str,
    sync: bool = Query(False, description="Re-read paid colors even if this month was already synced"),
    service: BillingService = Depends(get_billing_service),
):
    """
    Billing lines of a month

    Sessions painted "paid" in the calendar are recorded as paid on first load.
    """
    return await service.load_month(month, force_sync=sync)


@router.post(
    "/{month}/patients/{patient_id}/sessions/{event_id}/toggle-paid",
    response_model=ToggleResponse,
)
async def toggle_session_paid(
    month: str,
    patient_id: str,
    event_id: str,
    service: BillingService = Depends(get_billing_service),
):
    return await service.toggle_paid(month, patient_id, event_id)


@router.post("/{month}/patients/{patient_id}/toggle-all-paid", response_model=ToggleResponse)
async def toggle_all_sessions_paid(
    month: str,
    patient_id: str,
    service: BillingService = Depends(get_billing_service),
):
    return await service.toggle_all_paid(month, patient_id)


@router.get("/{month}/patients/{patient_id}/message", response_model=BillingMessageResponse)
async def get_billing_message(
    month: str,
    patient_id: str,
    service: BillingService = Depends(get_billing_service),
):
    """Monthly summary text and WhatsApp link for the patient"""
    message = await service.billing_message(month, patient_id)
    return BillingMessageResponse(text=message.text, url=message.url)


@router.post("/{month}/patients/{patient_id}/rename-calendar", response_model=RenameResult)
async def rename_calendar_label(
    month: str,
    patient_id: str,
    service: BillingService = Depends(get_billing_service),
):
    """Retitle calendar events that still use an alias label to the patient's name"""
    return await service.rename_label_in_calendar(month, patient_id)
