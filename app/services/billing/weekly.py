"""
Weekly finance
Sunday..Saturday view of past sessions (net of commission), VAT and daily expenses
"""
from datetime import date, datetime, timedelta
from typing import Dict, Iterable, List, Optional

from app.models import CommissionType
from app.schemas.billing import (
    CalendarEvent,
    DailyExpense,
    DaySession,
    DayTotals,
    EventColor,
    Patient,
    WeekSummary,
)
from app.services.billing.analysis import split_vat
from app.services.billing.assembler import has_occurred
from app.services.billing.matcher import PatientMatcher
from app.services.billing.months import DEFAULT_TIMEZONE, month_key, to_local

EXPENSE_SLOTS = 4


def week_dates(today: date, offset: int = 0) -> List[date]:
    """The seven dates of the week (Sunday first) `offset` weeks from today's"""
    days_since_sunday = (today.weekday() + 1) % 7
    sunday = today - timedelta(days=days_since_sunday) + timedelta(weeks=offset)
    return [sunday + timedelta(days=i) for i in range(7)]


def months_spanned(dates: Iterable[date]) -> List[str]:
    months: List[str] = []
    for day in dates:
        key = month_key(day)
        if key not in months:
            months.append(key)
    return months


def session_commission(patient: Patient, price: float) -> float:
    if not patient.commission_enabled or patient.commission_value is None:
        return 0
    if patient.commission_type == CommissionType.PERCENT:
        return price * (patient.commission_value / 100)
    return patient.commission_value


def sessions_by_day(
    events: Iterable[CalendarEvent],
    dates: List[date],
    patients: Iterable[Patient],
    alias_map: Dict[str, str],
    override_map: Dict[str, float],
    now: datetime,
    tz: str = DEFAULT_TIMEZONE,
) -> List[List[DaySession]]:
    """Past, matched, non-cancelled sessions for each date, net of commission"""
    matcher = PatientMatcher(patients, alias_map)
    index_of = {day: i for i, day in enumerate(dates)}
    result: List[List[DaySession]] = [[] for _ in dates]

    for event in events:
        if event.color == EventColor.CANCELLED or not has_occurred(event, now):
            continue
        day_index = index_of.get(to_local(event.start, tz).date())
        if day_index is None:
            continue

        match = matcher.match(event.summary)
        if match is None:
            continue

        patient = match.patient
        base_price = override_map.get(event.id, patient.session_price)
        result[day_index].append(DaySession(
            price=base_price - session_commission(patient, base_price),
            summary=event.summary or "",
        ))
    return result


def daily_totals(
    dates: List[date],
    sessions: List[List[DaySession]],
    expenses: Iterable[DailyExpense],
    vat_rate: float,
) -> WeekSummary:
    by_slot = {(expense.date, expense.slot_index): expense for expense in expenses}

    days = []
    for day, day_sessions in zip(dates, sessions):
        gross = sum(session.price for session in day_sessions)
        _, after_vat = split_vat(gross, vat_rate)
        day_expenses = [
            by_slot.get((day, slot)) or DailyExpense(date=day, slot_index=slot)
            for slot in range(EXPENSE_SLOTS)
        ]
        total_expenses = sum(expense.amount for expense in day_expenses)
        days.append(DayTotals(
            date=day,
            sessions=day_sessions,
            gross=gross,
            after_vat=after_vat,
            expenses=day_expenses,
            total_expenses=total_expenses,
            remaining=after_vat - total_expenses,
        ))

    return WeekSummary(
        days=days,
        gross=sum(d.gross for d in days),
        after_vat=sum(d.after_vat for d in days),
        total_expenses=sum(d.total_expenses for d in days),
        remaining=sum(d.remaining for d in days),
    )


def is_empty_expense(name: Optional[str], amount: float) -> bool:
    """An expense slot saved blank is removed instead of stored"""
    return not (name or "").strip() and amount == 0
