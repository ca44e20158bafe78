"""
Financial Analyzer
Monthly gross, VAT, commissions, global deductions and net income
"""
import logging
from typing import Dict, Iterable, List, Tuple

from app.models import CommissionType, DeductionType, PaymentStatus
from app.schemas.billing import (
    DeductionResult,
    GlobalDeduction,
    MonthAnalysis,
    Patient,
    PatientAnalysis,
    Payment,
)
from app.services.billing.months import DEFAULT_TIMEZONE, month_bounds

logger = logging.getLogger(__name__)

_REFUND_STATUSES = (PaymentStatus.REFUNDED, PaymentStatus.CANCELED)


def is_refund(payment: Payment) -> bool:
    return payment.status in _REFUND_STATUSES


def split_vat(gross: float, vat_rate: float) -> Tuple[float, float]:
    """
    (vat, base) for a VAT-inclusive gross amount

    vat = gross * r / (1 + r), never gross * r.
    """
    r = vat_rate / 100
    vat = gross * r / (1 + r)
    return vat, gross - vat


def commission_for(patient: Patient, base: float) -> float:
    if not patient.commission_enabled or patient.commission_value is None:
        return 0
    if patient.commission_type == CommissionType.PERCENT:
        return base * (patient.commission_value / 100)
    return float(patient.commission_value)


def deduction_amount(deduction: GlobalDeduction, month_base: float) -> float:
    if deduction.type == DeductionType.PERCENT:
        return month_base * (deduction.value / 100)
    return deduction.value


def select_month_payments(
    payments: Iterable[Payment],
    month: str,
    tz: str = DEFAULT_TIMEZONE,
) -> List[Payment]:
    """Payments whose paid_at falls inside the local month, oldest first"""
    start, end = month_bounds(month, tz)
    selected = [p for p in payments if p.paid_at is not None and start <= p.paid_at < end]
    return sorted(selected, key=lambda p: p.paid_at)


def compute_analysis(
    payments: Iterable[Payment],
    patients: Iterable[Patient],
    vat_rate: float,
    deductions: Iterable[GlobalDeduction],
    include_refunds: bool,
    net_after_refunds: bool,
) -> MonthAnalysis:
    """
    Monthly financial report from a month's payments

    Without include_refunds only "paid" rows count. With it, refunded and
    canceled rows are kept and, when net_after_refunds is set, subtracted
    from the patient's gross by their absolute amount.
    """
    payments = list(payments)
    filtered = payments if include_refunds else [p for p in payments if p.status == PaymentStatus.PAID]

    by_patient: Dict[str, List[Payment]] = {}
    for payment in filtered:
        by_patient.setdefault(payment.patient_id, []).append(payment)

    refunds_by_patient: Dict[str, Tuple[int, float]] = {}
    for payment in payments:
        if is_refund(payment):
            count, amount = refunds_by_patient.get(payment.patient_id, (0, 0.0))
            refunds_by_patient[payment.patient_id] = (count + 1, amount + abs(payment.amount))

    patient_map = {patient.id: patient for patient in patients}
    analyses: List[PatientAnalysis] = []
    total_gross = 0.0
    commissions_total = 0.0
    total_refund_count = 0
    total_refund_amount = 0.0

    for patient_id, patient_payments in by_patient.items():
        patient = patient_map.get(patient_id)
        if patient is None:
            logger.warning(f"Skipping {len(patient_payments)} payment(s) of unknown patient {patient_id}")
            continue

        gross = 0.0
        for payment in patient_payments:
            if net_after_refunds and is_refund(payment):
                gross -= abs(payment.amount)
            else:
                gross += payment.amount

        refund_count, refund_amount = refunds_by_patient.get(patient_id, (0, 0.0))
        total_refund_count += refund_count
        total_refund_amount += refund_amount

        vat, base = split_vat(gross, vat_rate)
        commission = commission_for(patient, base)

        total_gross += gross
        commissions_total += commission

        analyses.append(PatientAnalysis(
            patient=patient,
            gross=gross,
            vat=vat,
            base=base,
            commission=commission,
            net_after_commission=base - commission,
            payments=patient_payments,
            refund_count=refund_count,
            refund_amount=refund_amount,
        ))

    analyses.sort(key=lambda analysis: -analysis.gross)

    total_vat, month_base = split_vat(total_gross, vat_rate)

    deduction_results = []
    global_deductions_total = 0.0
    for deduction in deductions:
        if not deduction.enabled:
            continue
        amount = deduction_amount(deduction, month_base)
        deduction_results.append(DeductionResult(name=deduction.name, amount=amount))
        global_deductions_total += amount

    return MonthAnalysis(
        total_gross=total_gross,
        total_vat=total_vat,
        month_base_after_vat=month_base,
        deduction_results=deduction_results,
        global_deductions_total=global_deductions_total,
        commissions_total=commissions_total,
        net=month_base - global_deductions_total - commissions_total,
        patient_analyses=analyses,
        payment_count=len(filtered),
        total_refund_count=total_refund_count,
        total_refund_amount=total_refund_amount,
    )
