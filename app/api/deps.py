"""
Shared FastAPI dependencies
Therapist identity, calendar provider and per-request services
"""
from typing import AsyncIterator, Optional

from fastapi import Depends, Header, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.services.billing_service import BillingService
from app.services.calendar import CalendarProvider, GoogleCalendarProvider
from app.services.patient_service import PatientService
from database import get_async_session


async def get_therapist_id(x_therapist_id: Optional[str] = Header(None)) -> str:
    """Therapist identity as forwarded by the authenticating gateway"""
    if not x_therapist_id or not x_therapist_id.strip():
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Missing X-Therapist-Id header",
        )
    return x_therapist_id.strip()


async def get_calendar_provider(
    x_calendar_token: Optional[str] = Header(None),
) -> AsyncIterator[Optional[CalendarProvider]]:
    """Google Calendar client for the request; None when no token was sent"""
    if not x_calendar_token:
        yield None
        return

    provider = GoogleCalendarProvider(x_calendar_token)
    try:
        yield provider
    finally:
        await provider.aclose()


def get_billing_service(
    db: AsyncSession = Depends(get_async_session),
    therapist_id: str = Depends(get_therapist_id),
    calendar: Optional[CalendarProvider] = Depends(get_calendar_provider),
) -> BillingService:
    return BillingService(db, therapist_id, calendar)


def get_patient_service(
    db: AsyncSession = Depends(get_async_session),
    therapist_id: str = Depends(get_therapist_id),
    calendar: Optional[CalendarProvider] = Depends(get_calendar_provider),
) -> PatientService:
    return PatientService(db, therapist_id, calendar)
