"""
Payment history and monthly revenue across months
"""
from typing import Dict, Iterable, List, Optional

from app.schemas.billing import MonthPayments, MonthRevenue, Patient, Payment, PaymentHistoryEntry

REVENUE_MONTHS = 12


def is_partial(payment: Payment) -> bool:
    return not payment.paid and bool(payment.paid_event_ids)


def payment_history(
    payments: Iterable[Payment],
    patients: Iterable[Patient],
    search: Optional[str] = None,
) -> List[MonthPayments]:
    """
    Payments grouped by month, newest month first

    `search` keeps payments whose patient name or month key contains it.
    """
    names = {patient.id: patient.name for patient in patients}
    query = (search or "").strip()

    groups: Dict[str, MonthPayments] = {}
    for payment in payments:
        name = names.get(payment.patient_id)
        if query and query not in (name or "") and query not in payment.month:
            continue
        group = groups.setdefault(payment.month, MonthPayments(month=payment.month))
        group.payments.append(PaymentHistoryEntry(
            payment=payment,
            patient_name=name,
            partial=is_partial(payment),
        ))
        group.total += payment.amount

    return [groups[month] for month in sorted(groups, reverse=True)]


def revenue_by_month(payments: Iterable[Payment], months: int = REVENUE_MONTHS) -> List[MonthRevenue]:
    """
    Recorded and paid amounts per month for the last `months` months with payments, oldest first

    A payment counts as paid once any of its sessions is recorded paid.
    """
    totals: Dict[str, MonthRevenue] = {}
    for payment in payments:
        row = totals.setdefault(payment.month, MonthRevenue(month=payment.month))
        row.total += payment.amount
        if payment.paid_event_ids:
            row.paid += payment.amount

    ordered = [totals[month] for month in sorted(totals)]
    return ordered[-months:] if months > 0 else []
