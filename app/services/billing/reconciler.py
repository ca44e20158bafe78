"""
Payment Reconciler
Folds the calendar's "paid" color into persisted payment rows and applies
manual paid/unpaid toggles
"""
import logging
from datetime import datetime, timezone
from typing import Hashable, Iterable, List, NamedTuple, Optional

from app.core.cache import SyncedMonthsCache
from app.core.error_handling import NotFoundException
from app.models import PaymentStatus
from app.schemas.billing import EventColor, EventRef, PatientBilling, Payment, PaymentMutation

logger = logging.getLogger(__name__)

_EXTERNAL_STATUSES = (PaymentStatus.REFUNDED, PaymentStatus.CANCELED)


class ToggleOutcome(NamedTuple):
    """Payment change plus the calendar events to repaint"""
    mutation: PaymentMutation
    refs: List[EventRef]
    mark_paid: bool


def _dedupe(event_ids: Iterable[str]) -> List[str]:
    seen = set()
    ordered = []
    for event_id in event_ids:
        if event_id not in seen:
            seen.add(event_id)
            ordered.append(event_id)
    return ordered


def recompute_payment(
    billing: PatientBilling,
    month: str,
    paid_event_ids: Iterable[str],
    existing: Optional[Payment],
    now: datetime,
) -> Payment:
    """
    Payment state derived from a set of paid event ids

    amount only counts sessions present in this month's billing;
    paid means every billed session is covered.
    """
    ids = _dedupe(paid_event_ids)
    id_set = set(ids)
    amount = sum(session.price for session in billing.sessions if session.event_id in id_set)
    all_covered = bool(billing.sessions) and all(session.event_id in id_set for session in billing.sessions)

    if existing is not None and existing.status in _EXTERNAL_STATUSES:
        status = existing.status
    else:
        status = PaymentStatus.PAID if ids else PaymentStatus.PENDING

    base = existing or Payment(patient_id=billing.patient.id, month=month)
    return base.model_copy(update={
        "paid_event_ids": ids,
        "session_count": len(ids),
        "amount": amount,
        "paid": all_covered,
        "paid_at": now if ids else None,
        "status": status,
    })


def _mutation(payment: Payment, existing: Optional[Payment]) -> PaymentMutation:
    return PaymentMutation(action="update" if existing is not None else "create", payment=payment)


def sync_month(
    month: str,
    billing_data: Iterable[PatientBilling],
    existing_payments: Iterable[Payment],
    cache: Optional[SyncedMonthsCache] = None,
    scope: Hashable = None,
    now: Optional[datetime] = None,
    force: bool = False,
) -> List[PaymentMutation]:
    """
    Create-or-update instructions for sessions newly painted "paid"

    Only adds ids to paid_event_ids, never removes them. A month already
    recorded in `cache` yields nothing unless `force` is set.
    """
    if cache is not None and not force and cache.is_synced(month, scope):
        return []

    now = now or datetime.now(timezone.utc)
    by_patient = {payment.patient_id: payment for payment in existing_payments if payment.month == month}

    mutations = []
    for billing in billing_data:
        existing = by_patient.get(billing.patient.id)
        recorded = list(existing.paid_event_ids) if existing else []
        recorded_set = set(recorded)
        newly_paid = [
            session.event_id for session in billing.sessions
            if session.color == EventColor.PAID and session.event_id not in recorded_set
        ]
        if not newly_paid:
            continue

        payment = recompute_payment(billing, month, recorded + newly_paid, existing, now)
        mutations.append(_mutation(payment, existing))
        logger.info(
            f"Paid color sync: patient {billing.patient.id} month {month} "
            f"+{len(newly_paid)} session(s), paid={payment.paid}"
        )

    if cache is not None:
        cache.mark_synced(month, scope)
    return mutations


def toggle_paid(
    billing: PatientBilling,
    month: str,
    event_id: str,
    existing: Optional[Payment],
    now: Optional[datetime] = None,
) -> ToggleOutcome:
    """Flip one session between paid and unpaid"""
    session = next((s for s in billing.sessions if s.event_id == event_id), None)
    if session is None:
        raise NotFoundException(
            "Session not found in this month's billing",
            details={"event_id": event_id, "patient_id": billing.patient.id, "month": month},
        )

    now = now or datetime.now(timezone.utc)
    current = list(existing.paid_event_ids) if existing else []
    was_paid = event_id in current
    new_ids = [i for i in current if i != event_id] if was_paid else current + [event_id]

    payment = recompute_payment(billing, month, new_ids, existing, now)
    return ToggleOutcome(
        mutation=_mutation(payment, existing),
        refs=[EventRef(calendar_id=session.calendar_id, event_id=session.event_id)],
        mark_paid=not was_paid,
    )


def toggle_all_paid(
    billing: PatientBilling,
    month: str,
    existing: Optional[Payment],
    now: Optional[datetime] = None,
) -> ToggleOutcome:
    """Mark every session paid, or clear them all when they already are"""
    now = now or datetime.now(timezone.utc)
    current = set(existing.paid_event_ids) if existing else set()
    all_paid = bool(billing.sessions) and all(s.event_id in current for s in billing.sessions)

    new_ids = [] if all_paid else [session.event_id for session in billing.sessions]
    payment = recompute_payment(billing, month, new_ids, existing, now)
    return ToggleOutcome(
        mutation=_mutation(payment, existing),
        refs=[EventRef(calendar_id=s.calendar_id, event_id=s.event_id) for s in billing.sessions],
        mark_paid=not all_paid,
    )
