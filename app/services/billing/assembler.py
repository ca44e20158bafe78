"""
Billing Assembler
Turns one month of calendar events into per-patient billing lines
"""
import logging
from collections import OrderedDict
from datetime import datetime
from typing import Dict, Iterable, List, Optional, Set

from app.schemas.billing import (
    BillingSession,
    CalendarEvent,
    EventColor,
    MonthBilling,
    Patient,
    PatientBilling,
    Payment,
    UnmatchedLabel,
)
from app.services.billing.institutions import InstitutionAggregator
from app.services.billing.matcher import PatientMatcher, suggest_partial_matches
from app.services.billing.months import DEFAULT_TIMEZONE, format_session_date
from app.services.billing.normalizer import normalize_name
from app.services.billing.pricing import price_of

logger = logging.getLogger(__name__)


def has_occurred(event: CalendarEvent, now: Optional[datetime]) -> bool:
    """False for events that start after `now` (or have no start at all)"""
    if now is None:
        return True
    if event.start is None:
        return False
    return event.start <= now


def assemble_month(
    events: Iterable[CalendarEvent],
    patients: Iterable[Patient],
    alias_map: Dict[str, str],
    override_map: Dict[str, float],
    ignored: Iterable[str],
    now: Optional[datetime] = None,
    tz: str = DEFAULT_TIMEZONE,
) -> MonthBilling:
    """
    Build the billing view of a month

    Each event label is resolved once against the whole roster (exact name
    first, then alias) and billed under its owner: the patient itself, or
    the institution of a child patient. Cancelled events are never billed.
    When `now` is given, events that have not happened yet are left out.

    Lines are sorted by total, highest first; equal totals keep roster order.
    """
    roster = list(patients)
    aggregator = InstitutionAggregator(roster)
    matcher = PatientMatcher(roster, alias_map)
    ignored_keys: Set[str] = {normalize_name(name) for name in ignored}

    sessions_by_owner: Dict[str, List[BillingSession]] = OrderedDict(
        (patient.id, []) for patient in aggregator.standalone
    )
    calendar_name_by_patient: Dict[str, str] = {}
    unmatched_counts: Dict[str, int] = OrderedDict()

    for event in events:
        label = (event.summary or "").strip()
        if not label:
            continue

        result = matcher.match(label)
        if result is None:
            unmatched_counts[label] = unmatched_counts.get(label, 0) + 1
            continue

        if not event.color.is_billable or not has_occurred(event, now):
            continue

        matched = result.patient
        owner = aggregator.billing_owner(matched)
        if owner is None:
            logger.debug(f"Event {event.id} matched '{matched.name}' whose parent is not an institution; not billed")
            continue

        if result.via_alias and label != matched.name.strip():
            calendar_name_by_patient[matched.id] = label

        sessions_by_owner[owner.id].append(BillingSession(
            event_id=event.id,
            calendar_id=event.calendar_id,
            date=format_session_date(event.start, tz),
            start=event.start,
            summary=event.summary,
            price=price_of(event, matched, override_map),
            color=event.color,
            child_patient_name=matched.name if matched.id != owner.id else None,
        ))

    lines = []
    for owner in aggregator.standalone:
        sessions = sessions_by_owner[owner.id]
        if not sessions:
            continue
        lines.append(PatientBilling(
            patient=owner,
            sessions=sessions,
            total=sum(session.price for session in sessions),
            child_patients=aggregator.children(owner),
        ))
    lines.sort(key=lambda line: -line.total)

    unmatched = []
    for label, count in unmatched_counts.items():
        key = normalize_name(label)
        if key in ignored_keys or key in alias_map:
            continue
        unmatched.append(UnmatchedLabel(
            label=label,
            count=count,
            suggestions=suggest_partial_matches(label, roster),
        ))

    return MonthBilling(
        lines=lines,
        unmatched=unmatched,
        calendar_name_by_patient=calendar_name_by_patient,
    )


def billed_total(lines: Iterable[PatientBilling]) -> float:
    return sum(line.total for line in lines)


def paid_total(lines: Iterable[PatientBilling], payments: Iterable[Payment]) -> float:
    """Total of the lines whose payment row is fully paid"""
    fully_paid = {payment.patient_id for payment in payments if payment.paid}
    return sum(line.total for line in lines if line.patient.id in fully_paid)


def paid_amount(line: PatientBilling, payment: Optional[Payment]) -> float:
    if payment is None:
        return 0
    paid_ids = set(payment.paid_event_ids)
    return sum(session.price for session in line.sessions if session.event_id in paid_ids)


def session_dates_by_patient(
    events: Iterable[CalendarEvent],
    patients: Iterable[Patient],
    alias_map: Dict[str, str],
    now: datetime,
    tz: str = DEFAULT_TIMEZONE,
) -> Dict[str, List[str]]:
    """Dates of past, non-cancelled sessions per matched patient"""
    matcher = PatientMatcher(patients, alias_map)
    dates: Dict[str, List[str]] = {}
    for event in events:
        if event.color == EventColor.CANCELLED or not has_occurred(event, now):
            continue
        result = matcher.match(event.summary)
        if result is None:
            continue
        dates.setdefault(result.patient.id, []).append(format_session_date(event.start, tz))
    return dates
