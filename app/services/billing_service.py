"""
Billing Service
Orchestrates calendar reads, the billing engine and the therapist's stores
for one request
"""
import logging
from datetime import date, datetime, timezone
from typing import Callable, Dict, List, Optional, Tuple

from sqlalchemy.ext.asyncio import AsyncSession

from config import settings
from app.core.cache import SyncedMonthsCache, synced_months_cache
from app.core.error_handling import (
    CalendarNotConnectedException,
    CalendarUnavailableException,
    NotFoundException,
    ValidationException,
    log_error,
)
from app.schemas.billing import (
    AnalysisResponse,
    AnalysisSettings,
    BillingLineResponse,
    CalendarEvent,
    ColorUpdateResult,
    DailyExpense,
    EventRef,
    MonthBilling,
    MonthBillingResponse,
    MonthPayments,
    MonthRevenue,
    PatientBilling,
    RenameResult,
    SessionOverride,
    ToggleResponse,
    WeekSummary,
)
from app.services import billing as engine
from app.services.billing.months import month_bounds, parse_month, to_local
from app.services.billing.normalizer import normalize_name
from app.services.billing.weekly import is_empty_expense
from app.services.calendar import CalendarAPIError, CalendarProvider
from app.services.stores import (
    AliasStore,
    AnalysisSettingsStore,
    ExpenseStore,
    IgnoreStore,
    OverrideStore,
    PatientStore,
    PaymentStore,
)

logger = logging.getLogger(__name__)


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class BillingService:
    """
    Billing operations for one therapist

    The calendar provider is optional: without one, anything that needs
    calendar events raises CalendarNotConnectedException.
    """

    def __init__(
        self,
        db: AsyncSession,
        therapist_id: str,
        calendar: Optional[CalendarProvider] = None,
        cache: SyncedMonthsCache = synced_months_cache,
        clock: Callable[[], datetime] = utc_now,
        tz: Optional[str] = None,
    ):
        self.db = db
        self.therapist_id = therapist_id
        self.calendar = calendar
        self.cache = cache
        self.clock = clock
        self.tz = tz or settings.CALENDAR_TIMEZONE

        self.patients = PatientStore(db, therapist_id)
        self.aliases = AliasStore(db, therapist_id)
        self.ignored = IgnoreStore(db, therapist_id)
        self.overrides = OverrideStore(db, therapist_id)
        self.payments = PaymentStore(db, therapist_id)
        self.expenses = ExpenseStore(db, therapist_id)
        self.analysis_settings = AnalysisSettingsStore(db, therapist_id)

    # ------------------------------------------------------------------
    # Calendar access
    # ------------------------------------------------------------------

    def _require_calendar(self) -> CalendarProvider:
        if self.calendar is None:
            raise CalendarNotConnectedException(details={"therapist_id": self.therapist_id})
        return self.calendar

    async def fetch_events(self, month: str) -> List[CalendarEvent]:
        calendar = self._require_calendar()
        try:
            return await calendar.list_events(month)
        except CalendarAPIError as e:
            log_error(e, context={"month": month, "therapist_id": self.therapist_id})
            raise CalendarUnavailableException(details={"month": month, "message": e.message})

    async def repaint(self, refs: List[EventRef], mark_paid: bool) -> ColorUpdateResult:
        """Best-effort color update; never undoes the local payment state"""
        if not refs:
            return ColorUpdateResult()
        if self.calendar is None:
            return ColorUpdateResult(failed=len(refs), total=len(refs))
        color_id = settings.PAID_COLOR_ID if mark_paid else None
        try:
            return await self.calendar.patch_event_colors(refs, color_id)
        except CalendarAPIError as e:
            log_error(e, context={"events": [ref.event_id for ref in refs]})
            return ColorUpdateResult(failed=len(refs), total=len(refs))

    # ------------------------------------------------------------------
    # Monthly billing
    # ------------------------------------------------------------------

    async def _matching_inputs(self):
        patients = await self.patients.list()
        alias_map = engine.build_alias_map(await self.aliases.list())
        override_map = engine.build_override_map(await self.overrides.list())
        return patients, alias_map, override_map

    async def build_month(self, month: str) -> MonthBilling:
        month = parse_month(month)
        events = await self.fetch_events(month)
        patients, alias_map, override_map = await self._matching_inputs()
        ignored = await self.ignored.list()
        return engine.assemble_month(
            events, patients, alias_map, override_map, ignored,
            now=self.clock(), tz=self.tz,
        )

    async def load_month(self, month: str, force_sync: bool = False) -> MonthBillingResponse:
        """
        Billing view of a month

        Sessions painted "paid" in the calendar are folded into payment rows
        the first time a month is loaded (or whenever force_sync is set).
        """
        month = parse_month(month)
        billing = await self.build_month(month)
        payments = await self.payments.list_for_month(month)

        try:
            mutations = engine.sync_month(
                month, billing.lines, payments,
                cache=self.cache, scope=self.therapist_id, now=self.clock(), force=force_sync,
            )
            for mutation in mutations:
                await self.payments.apply(mutation)
        except Exception:
            self.cache.invalidate(month, self.therapist_id)
            raise

        if mutations:
            payments = await self.payments.list_for_month(month)

        by_patient = {payment.patient_id: payment for payment in payments}
        lines = []
        for line in billing.lines:
            payment = by_patient.get(line.patient.id)
            lines.append(BillingLineResponse(
                billing=line,
                payment=payment,
                paid_count=len(set(payment.paid_event_ids) & {s.event_id for s in line.sessions}) if payment else 0,
                paid_amount=engine.paid_amount(line, payment),
                calendar_event_name=billing.calendar_name_by_patient.get(line.patient.id),
            ))

        return MonthBillingResponse(
            month=month,
            lines=lines,
            unmatched=billing.unmatched,
            calendar_name_by_patient=billing.calendar_name_by_patient,
            billed_total=engine.billed_total(billing.lines),
            paid_total=engine.paid_total(billing.lines, payments),
            synced_mutations=len(mutations),
        )

    async def _patient_line(self, month: str, patient_id: str) -> Tuple[MonthBilling, PatientBilling]:
        billing = await self.build_month(month)
        line = next((line for line in billing.lines if line.patient.id == patient_id), None)
        if line is None:
            raise NotFoundException(
                "Patient has no billed sessions this month",
                details={"patient_id": patient_id, "month": month},
            )
        return billing, line

    async def toggle_paid(self, month: str, patient_id: str, event_id: str) -> ToggleResponse:
        month = parse_month(month)
        _, line = await self._patient_line(month, patient_id)
        existing = await self.payments.get(patient_id, month)

        outcome = engine.toggle_paid(line, month, event_id, existing, now=self.clock())
        payment = await self.payments.apply(outcome.mutation)
        logger.info(
            f"Session {event_id} of patient {patient_id} marked "
            f"{'paid' if outcome.mark_paid else 'unpaid'} for {month}"
        )

        repaint = await self.repaint(outcome.refs, outcome.mark_paid)
        return ToggleResponse(payment=payment, repaint=repaint)

    async def toggle_all_paid(self, month: str, patient_id: str) -> ToggleResponse:
        month = parse_month(month)
        _, line = await self._patient_line(month, patient_id)
        existing = await self.payments.get(patient_id, month)

        outcome = engine.toggle_all_paid(line, month, existing, now=self.clock())
        payment = await self.payments.apply(outcome.mutation)
        logger.info(
            f"All {len(line.sessions)} sessions of patient {patient_id} marked "
            f"{'paid' if outcome.mark_paid else 'unpaid'} for {month}"
        )

        repaint = await self.repaint(outcome.refs, outcome.mark_paid)
        return ToggleResponse(payment=payment, repaint=repaint)

    async def billing_message(self, month: str, patient_id: str) -> engine.BillingMessage:
        _, line = await self._patient_line(parse_month(month), patient_id)
        return engine.build_billing_message(line)

    # ------------------------------------------------------------------
    # Overrides, aliases, ignored labels
    # ------------------------------------------------------------------

    async def _existing_patient(self, patient_id: str):
        record = await self.patients.get(patient_id)
        if record is None:
            raise NotFoundException("Patient not found", details={"patient_id": patient_id})
        return record

    async def set_override(self, event_id: str, patient_id: str, custom_price: float) -> Optional[SessionOverride]:
        """
        Custom price for one event

        A price equal to the patient's default removes the override.
        """
        if custom_price < 0:
            raise ValidationException("Price cannot be negative", details={"custom_price": custom_price})
        patient = await self._existing_patient(patient_id)

        if float(custom_price) == float(patient.session_price):
            await self.overrides.delete(event_id)
            return None
        return await self.overrides.set(event_id, patient_id, custom_price)

    async def delete_override(self, event_id: str):
        if not await self.overrides.delete(event_id):
            raise NotFoundException("Override not found", details={"event_id": event_id})

    async def add_alias(self, event_name: str, patient_id: str):
        await self._existing_patient(patient_id)
        label = event_name.strip()
        if not normalize_name(label):
            raise ValidationException("Event name is empty", details={"event_name": event_name})
        alias = await self.aliases.add(label, patient_id)
        logger.info(f"Linked calendar label '{label}' to patient {patient_id}")
        return alias

    async def remove_alias(self, event_name: str):
        if not await self.aliases.remove(event_name.strip()):
            raise NotFoundException("Alias not found", details={"event_name": event_name})

    async def ignore_label(self, event_name: str) -> str:
        label = event_name.strip()
        if not label:
            raise ValidationException("Event name is empty", details={"event_name": event_name})
        return await self.ignored.add(label)

    async def unignore_label(self, event_name: str):
        if not await self.ignored.remove(event_name.strip()):
            raise NotFoundException("Ignored label not found", details={"event_name": event_name})

    async def rename_label_in_calendar(self, month: str, patient_id: str) -> RenameResult:
        """Retitle the calendar events still using an alias label to the patient's name"""
        month = parse_month(month)
        billing = await self.build_month(month)
        label = billing.calendar_name_by_patient.get(patient_id)
        if label is None:
            raise NotFoundException(
                "No calendar label differs from the patient name this month",
                details={"patient_id": patient_id, "month": month},
            )
        patient = await self._existing_patient(patient_id)
        return await self._require_calendar().rename_events(label, patient.name)

    # ------------------------------------------------------------------
    # Analysis
    # ------------------------------------------------------------------

    async def get_analysis_settings(self) -> AnalysisSettings:
        return await self.analysis_settings.get()

    async def save_analysis_settings(self, analysis_settings: AnalysisSettings) -> AnalysisSettings:
        return await self.analysis_settings.save(analysis_settings)

    async def _session_dates(self, month: str) -> Dict[str, List[str]]:
        if self.calendar is None:
            return {}
        try:
            events = await self.calendar.list_events(month)
        except CalendarAPIError as e:
            log_error(e, context={"month": month, "therapist_id": self.therapist_id})
            return {}
        patients, alias_map, _ = await self._matching_inputs()
        return engine.session_dates_by_patient(events, patients, alias_map, now=self.clock(), tz=self.tz)

    async def analysis(self, month: str, include_refunds: bool = False, net_after_refunds: bool = False) -> AnalysisResponse:
        month = parse_month(month)
        start, end = month_bounds(month, self.tz)
        payments = engine.select_month_payments(await self.payments.list_paid_between(start, end), month, self.tz)
        patients = await self.patients.list()
        analysis_settings = await self.analysis_settings.get()

        result = engine.compute_analysis(
            payments,
            patients,
            analysis_settings.vat_rate,
            analysis_settings.deductions,
            include_refunds=include_refunds,
            net_after_refunds=net_after_refunds,
        )
        return AnalysisResponse(
            month=month,
            analysis=result,
            settings=analysis_settings,
            session_dates=await self._session_dates(month),
        )

    # ------------------------------------------------------------------
    # Weekly finance
    # ------------------------------------------------------------------

    async def weekly(self, offset: int = 0) -> WeekSummary:
        now = self.clock()
        dates = engine.week_dates(to_local(now, self.tz).date(), offset)

        events: List[CalendarEvent] = []
        for month in engine.months_spanned(dates):
            events.extend(await self.fetch_events(month))

        patients, alias_map, override_map = await self._matching_inputs()
        sessions = engine.sessions_by_day(events, dates, patients, alias_map, override_map, now=now, tz=self.tz)
        expenses = await self.expenses.list_between(dates[0], dates[-1])
        analysis_settings = await self.analysis_settings.get()
        return engine.daily_totals(dates, sessions, expenses, analysis_settings.vat_rate)

    async def save_expense(self, day: date, slot_index: int, name: str, amount: float) -> Optional[DailyExpense]:
        """Store one expense slot; a blank slot is deleted instead"""
        if is_empty_expense(name, amount):
            await self.expenses.delete(day, slot_index)
            return None
        return await self.expenses.save(DailyExpense(date=day, slot_index=slot_index, name=name, amount=amount))

    # ------------------------------------------------------------------
    # Payment history
    # ------------------------------------------------------------------

    async def payment_history(self, search: Optional[str] = None) -> List[MonthPayments]:
        """All payments grouped by month, optionally filtered by patient name or month"""
        payments = await self.payments.list_all()
        patients = await self.patients.list()
        return engine.payment_history(payments, patients, search)

    async def revenue(self, months: int = engine.REVENUE_MONTHS) -> List[MonthRevenue]:
        return engine.revenue_by_month(await self.payments.list_all(), months)
