"""
Billing stores
SQLAlchemy persistence for the roster, label aliases / ignores, price
overrides, payments, daily expenses and analysis settings.

Every store is bound to one therapist and only ever sees that therapist's rows.
Stores flush but never commit; the request session (get_db) owns the transaction.
"""
import logging
from datetime import date, datetime, timezone
from typing import Any, Dict, List, Optional

from sqlalchemy import and_, delete, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.models import (
    AnalysisSettingsRecord,
    DailyExpenseRecord,
    EventAliasRecord,
    IgnoredEventRecord,
    PatientRecord,
    PaymentRecord,
    SessionOverrideRecord,
)
from app.schemas.billing import (
    AnalysisSettings,
    DailyExpense,
    EventAlias,
    GlobalDeduction,
    Patient,
    Payment,
    PaymentMutation,
    SessionOverride,
)
from app.services.billing.normalizer import normalize_name
from config import settings

logger = logging.getLogger(__name__)


def as_utc(moment: Optional[datetime]) -> Optional[datetime]:
    """Some backends (SQLite) hand back naive datetimes; stored values are UTC"""
    if moment is None or moment.tzinfo is not None:
        return moment
    return moment.replace(tzinfo=timezone.utc)


class TherapistStore:
    """Base for stores scoped to one therapist"""

    def __init__(self, db: AsyncSession, therapist_id: str):
        self.db = db
        self.therapist_id = therapist_id


class PatientStore(TherapistStore):

    async def list_records(self) -> List[PatientRecord]:
        query = (
            select(PatientRecord)
            .where(PatientRecord.therapist_id == self.therapist_id)
            .order_by(PatientRecord.name, PatientRecord.created_at)
        )
        result = await self.db.execute(query)
        return list(result.scalars().all())

    async def list(self) -> List[Patient]:
        """The roster, ordered by name"""
        return [Patient.model_validate(record) for record in await self.list_records()]

    async def get(self, patient_id: str) -> Optional[PatientRecord]:
        query = select(PatientRecord).where(
            and_(
                PatientRecord.id == patient_id,
                PatientRecord.therapist_id == self.therapist_id,
            )
        )
        result = await self.db.execute(query)
        return result.scalar_one_or_none()

    async def create(self, data: Dict[str, Any]) -> PatientRecord:
        record = PatientRecord(therapist_id=self.therapist_id, **data)
        self.db.add(record)
        await self.db.flush()
        await self.db.refresh(record)
        return record

    async def update(self, record: PatientRecord, changes: Dict[str, Any]) -> PatientRecord:
        for field, value in changes.items():
            setattr(record, field, value)
        await self.db.flush()
        await self.db.refresh(record)
        return record

    async def delete(self, record: PatientRecord):
        await self.db.delete(record)
        await self.db.flush()


class AliasStore(TherapistStore):

    async def _get(self, event_name: str) -> Optional[EventAliasRecord]:
        query = select(EventAliasRecord).where(
            and_(
                EventAliasRecord.therapist_id == self.therapist_id,
                EventAliasRecord.event_key == normalize_name(event_name),
            )
        )
        result = await self.db.execute(query)
        return result.scalar_one_or_none()

    async def list(self) -> List[EventAlias]:
        query = (
            select(EventAliasRecord)
            .where(EventAliasRecord.therapist_id == self.therapist_id)
            .order_by(EventAliasRecord.created_at)
        )
        result = await self.db.execute(query)
        return [EventAlias.model_validate(record) for record in result.scalars().all()]

    async def for_patient(self, patient_id: str) -> List[EventAlias]:
        return [alias for alias in await self.list() if alias.patient_id == patient_id]

    async def add(self, event_name: str, patient_id: str) -> EventAlias:
        """
        Link a label to a patient

        Labels are keyed by their normalized form, so re-linking "dana" after
        "Dana" moves the existing alias and keeps the latest spelling.
        """
        record = await self._get(event_name)
        if record is None:
            record = EventAliasRecord(
                therapist_id=self.therapist_id,
                event_name=event_name,
                event_key=normalize_name(event_name),
                patient_id=patient_id,
            )
            self.db.add(record)
        else:
            record.event_name = event_name
            record.patient_id = patient_id
        await self.db.flush()
        return EventAlias.model_validate(record)

    async def remove(self, event_name: str) -> bool:
        result = await self.db.execute(
            delete(EventAliasRecord).where(
                and_(
                    EventAliasRecord.therapist_id == self.therapist_id,
                    EventAliasRecord.event_key == normalize_name(event_name),
                )
            )
        )
        return result.rowcount > 0


class IgnoreStore(TherapistStore):

    async def list(self) -> List[str]:
        query = (
            select(IgnoredEventRecord.event_name)
            .where(IgnoredEventRecord.therapist_id == self.therapist_id)
            .order_by(IgnoredEventRecord.created_at)
        )
        result = await self.db.execute(query)
        return list(result.scalars().all())

    async def add(self, event_name: str) -> str:
        if event_name not in await self.list():
            self.db.add(IgnoredEventRecord(therapist_id=self.therapist_id, event_name=event_name))
            await self.db.flush()
        return event_name

    async def remove(self, event_name: str) -> bool:
        result = await self.db.execute(
            delete(IgnoredEventRecord).where(
                and_(
                    IgnoredEventRecord.therapist_id == self.therapist_id,
                    IgnoredEventRecord.event_name == event_name,
                )
            )
        )
        return result.rowcount > 0


class OverrideStore(TherapistStore):

    async def _get(self, event_id: str) -> Optional[SessionOverrideRecord]:
        query = select(SessionOverrideRecord).where(
            and_(
                SessionOverrideRecord.therapist_id == self.therapist_id,
                SessionOverrideRecord.event_id == event_id,
            )
        )
        result = await self.db.execute(query)
        return result.scalar_one_or_none()

    async def list(self) -> List[SessionOverride]:
        query = select(SessionOverrideRecord).where(SessionOverrideRecord.therapist_id == self.therapist_id)
        result = await self.db.execute(query)
        return [SessionOverride.model_validate(record) for record in result.scalars().all()]

    async def set(self, event_id: str, patient_id: str, custom_price: float) -> SessionOverride:
        record = await self._get(event_id)
        if record is None:
            record = SessionOverrideRecord(
                therapist_id=self.therapist_id,
                event_id=event_id,
                patient_id=patient_id,
                custom_price=custom_price,
            )
            self.db.add(record)
        else:
            record.patient_id = patient_id
            record.custom_price = custom_price
        await self.db.flush()
        return SessionOverride.model_validate(record)

    async def delete(self, event_id: str) -> bool:
        result = await self.db.execute(
            delete(SessionOverrideRecord).where(
                and_(
                    SessionOverrideRecord.therapist_id == self.therapist_id,
                    SessionOverrideRecord.event_id == event_id,
                )
            )
        )
        return result.rowcount > 0


def payment_from_record(record: PaymentRecord) -> Payment:
    payment = Payment.model_validate(record)
    return payment.model_copy(update={"paid_at": as_utc(payment.paid_at)})


class PaymentStore(TherapistStore):

    async def _get_record(self, patient_id: str, month: str) -> Optional[PaymentRecord]:
        query = select(PaymentRecord).where(
            and_(
                PaymentRecord.therapist_id == self.therapist_id,
                PaymentRecord.patient_id == patient_id,
                PaymentRecord.month == month,
            )
        )
        result = await self.db.execute(query)
        return result.scalar_one_or_none()

    async def get(self, patient_id: str, month: str) -> Optional[Payment]:
        record = await self._get_record(patient_id, month)
        return payment_from_record(record) if record else None

    async def list_for_month(self, month: str) -> List[Payment]:
        query = select(PaymentRecord).where(
            and_(
                PaymentRecord.therapist_id == self.therapist_id,
                PaymentRecord.month == month,
            )
        )
        result = await self.db.execute(query)
        return [payment_from_record(record) for record in result.scalars().all()]

    async def list_all(self) -> List[Payment]:
        """Every payment of the therapist, newest month first"""
        query = (
            select(PaymentRecord)
            .where(PaymentRecord.therapist_id == self.therapist_id)
            .order_by(PaymentRecord.month.desc(), PaymentRecord.created_at)
        )
        result = await self.db.execute(query)
        return [payment_from_record(record) for record in result.scalars().all()]

    async def list_paid_between(self, start: datetime, end: datetime) -> List[Payment]:
        """Payments with start <= paid_at < end, oldest first"""
        query = (
            select(PaymentRecord)
            .where(
                and_(
                    PaymentRecord.therapist_id == self.therapist_id,
                    PaymentRecord.paid_at >= start,
                    PaymentRecord.paid_at < end,
                )
            )
            .order_by(PaymentRecord.paid_at)
        )
        result = await self.db.execute(query)
        return [payment_from_record(record) for record in result.scalars().all()]

    async def apply(self, mutation: PaymentMutation) -> Payment:
        """
        Persist a create-or-update instruction

        Rows are keyed by (patient, month), so a "create" for a row that
        already exists updates it instead of duplicating it.
        """
        payment = mutation.payment
        record = await self._get_record(payment.patient_id, payment.month)
        if record is None:
            record = PaymentRecord(
                therapist_id=self.therapist_id,
                patient_id=payment.patient_id,
                month=payment.month,
            )
            self.db.add(record)

        record.amount = payment.amount
        record.session_count = payment.session_count
        record.paid = payment.paid
        record.paid_at = payment.paid_at
        # A new list object so the JSON column is flagged dirty
        record.paid_event_ids = list(payment.paid_event_ids)
        record.status = payment.status
        if payment.notes is not None:
            record.notes = payment.notes

        await self.db.flush()
        return payment_from_record(record)


class ExpenseStore(TherapistStore):

    async def _get(self, day: date, slot_index: int) -> Optional[DailyExpenseRecord]:
        query = select(DailyExpenseRecord).where(
            and_(
                DailyExpenseRecord.therapist_id == self.therapist_id,
                DailyExpenseRecord.date == day,
                DailyExpenseRecord.slot_index == slot_index,
            )
        )
        result = await self.db.execute(query)
        return result.scalar_one_or_none()

    async def list_between(self, first: date, last: date) -> List[DailyExpense]:
        """Expenses dated first..last inclusive"""
        query = (
            select(DailyExpenseRecord)
            .where(
                and_(
                    DailyExpenseRecord.therapist_id == self.therapist_id,
                    DailyExpenseRecord.date >= first,
                    DailyExpenseRecord.date <= last,
                )
            )
            .order_by(DailyExpenseRecord.date, DailyExpenseRecord.slot_index)
        )
        result = await self.db.execute(query)
        return [DailyExpense.model_validate(record) for record in result.scalars().all()]

    async def save(self, expense: DailyExpense) -> DailyExpense:
        record = await self._get(expense.date, expense.slot_index)
        if record is None:
            record = DailyExpenseRecord(
                therapist_id=self.therapist_id,
                date=expense.date,
                slot_index=expense.slot_index,
            )
            self.db.add(record)
        record.name = expense.name
        record.amount = expense.amount
        await self.db.flush()
        return DailyExpense.model_validate(record)

    async def delete(self, day: date, slot_index: int) -> bool:
        result = await self.db.execute(
            delete(DailyExpenseRecord).where(
                and_(
                    DailyExpenseRecord.therapist_id == self.therapist_id,
                    DailyExpenseRecord.date == day,
                    DailyExpenseRecord.slot_index == slot_index,
                )
            )
        )
        return result.rowcount > 0


class AnalysisSettingsStore(TherapistStore):

    async def _get(self) -> Optional[AnalysisSettingsRecord]:
        query = select(AnalysisSettingsRecord).where(AnalysisSettingsRecord.therapist_id == self.therapist_id)
        result = await self.db.execute(query)
        return result.scalar_one_or_none()

    async def get(self) -> AnalysisSettings:
        """Stored settings, or the defaults when the therapist saved none"""
        record = await self._get()
        if record is None:
            return AnalysisSettings(vat_rate=settings.DEFAULT_VAT_RATE)
        return AnalysisSettings(
            vat_rate=float(record.vat_rate),
            deductions=[GlobalDeduction.model_validate(item) for item in record.deductions or []],
        )

    async def save(self, analysis_settings: AnalysisSettings) -> AnalysisSettings:
        record = await self._get()
        if record is None:
            record = AnalysisSettingsRecord(therapist_id=self.therapist_id)
            self.db.add(record)
        record.vat_rate = analysis_settings.vat_rate
        record.deductions = [deduction.model_dump(mode="json") for deduction in analysis_settings.deductions]
        await self.db.flush()
        logger.info(f"Saved analysis settings for therapist {self.therapist_id}")
        return analysis_settings
