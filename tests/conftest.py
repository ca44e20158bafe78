"""
Pytest configuration and fixtures
"""
import os

# Must be set before config/database are imported
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")

import pytest
from datetime import datetime, timezone
from typing import AsyncGenerator, List, Optional, Sequence
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine, async_sessionmaker
from sqlalchemy.pool import StaticPool

from database import Base
from app.models import BillingType, CommissionType
from app.schemas.billing import (
    CalendarEvent,
    ColorUpdateResult,
    EventColor,
    EventRef,
    Patient,
    RenameResult,
)
from app.services.calendar import CalendarProvider


# Test database URL (use in-memory SQLite for testing)
TEST_DATABASE_URL = os.getenv(
    "TEST_DATABASE_URL",
    "sqlite+aiosqlite:///:memory:"
)

THERAPIST_ID = "therapist-1"


@pytest.fixture(scope="function")
async def db_session() -> AsyncGenerator[AsyncSession, None]:
    """
    Create a test database session
    """
    engine = create_async_engine(
        TEST_DATABASE_URL,
        connect_args={"check_same_thread": False} if "sqlite" in TEST_DATABASE_URL else {},
        poolclass=StaticPool if "sqlite" in TEST_DATABASE_URL else None,
        echo=False,
    )

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    async_session_maker = async_sessionmaker(
        engine, class_=AsyncSession, expire_on_commit=False
    )

    async with async_session_maker() as session:
        yield session

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)

    await engine.dispose()


def make_patient(
    id: str,
    name: str,
    price: float = 300,
    billing_type: BillingType = BillingType.MONTHLY,
    parent: Optional[str] = None,
    commission: Optional[float] = None,
    commission_type: CommissionType = CommissionType.PERCENT,
    phone: str = "",
) -> Patient:
    return Patient(
        id=id,
        name=name,
        phone=phone,
        session_price=price,
        billing_type=billing_type,
        parent_patient_id=parent,
        commission_enabled=commission is not None,
        commission_type=commission_type,
        commission_value=commission,
    )


def make_event(
    id: str,
    summary: str,
    start: datetime = datetime(2024, 3, 5, 10, 0, tzinfo=timezone.utc),
    color: EventColor = EventColor.NEEDS_BILLING,
    calendar_id: str = "primary",
) -> CalendarEvent:
    return CalendarEvent(id=id, calendar_id=calendar_id, summary=summary, start=start, color=color)


class FakeCalendar(CalendarProvider):
    """In-memory calendar recording every write request"""

    def __init__(self, events: Optional[List[CalendarEvent]] = None, fail_repaint: bool = False):
        self.events = list(events or [])
        self.fail_repaint = fail_repaint
        self.color_calls: List[tuple] = []
        self.rename_calls: List[tuple] = []

    async def list_events(self, month: str) -> List[CalendarEvent]:
        return [
            event for event in self.events
            if event.start is not None and f"{event.start.year:04d}-{event.start.month:02d}" == month
        ]

    async def patch_event_color(self, calendar_id: str, event_id: str, color_id: Optional[str]) -> bool:
        self.color_calls.append(([EventRef(calendar_id=calendar_id, event_id=event_id)], color_id))
        return not self.fail_repaint

    async def patch_event_colors(self, refs: Sequence[EventRef], color_id: Optional[str]) -> ColorUpdateResult:
        refs = list(refs)
        self.color_calls.append((refs, color_id))
        if self.fail_repaint:
            return ColorUpdateResult(updated=0, failed=len(refs), total=len(refs))
        return ColorUpdateResult(updated=len(refs), failed=0, total=len(refs))

    async def rename_events(self, old_name: str, new_name: str) -> RenameResult:
        self.rename_calls.append((old_name, new_name))
        matched = [event for event in self.events if event.summary.strip() == old_name.strip()]
        return RenameResult(updated=len(matched), failed=0)


@pytest.fixture
def therapist_id() -> str:
    return THERAPIST_ID


async def seed_patients(db: AsyncSession, *patients: Patient, therapist_id: str = THERAPIST_ID):
    """Insert roster rows built with make_patient"""
    from app.services.stores import PatientStore

    store = PatientStore(db, therapist_id)
    for patient in patients:
        await store.create(patient.model_dump())
