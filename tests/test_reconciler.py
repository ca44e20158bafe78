"""
Payment reconciliation tests
Paid-color sync idempotence and manual paid toggles
"""
import pytest
from datetime import datetime, timezone

from app.core.cache import SyncedMonthsCache
from app.core.error_handling import NotFoundException
from app.models import PaymentStatus
from app.schemas.billing import BillingSession, EventColor, PatientBilling, Payment
from app.services.billing.reconciler import sync_month, toggle_all_paid, toggle_paid
from conftest import make_patient

MONTH = "2024-03"
NOW = datetime(2024, 3, 31, 12, 0, tzinfo=timezone.utc)


def billing_line(*sessions, patient_id="dana"):
    patient = make_patient(patient_id, "דנה", price=200)
    items = [
        BillingSession(
            event_id=event_id,
            calendar_id="primary",
            date="1/3/24",
            summary="דנה",
            price=price,
            color=color,
        )
        for event_id, price, color in sessions
    ]
    return PatientBilling(patient=patient, sessions=items, total=sum(s.price for s in items))


@pytest.mark.unit
def test_paid_color_creates_payment_row():
    line = billing_line(("e1", 200, EventColor.PAID))
    mutations = sync_month(MONTH, [line], [], now=NOW)

    assert len(mutations) == 1
    mutation = mutations[0]
    assert mutation.action == "create"
    assert mutation.payment.paid_event_ids == ["e1"]
    assert mutation.payment.paid is True
    assert mutation.payment.amount == 200
    assert mutation.payment.session_count == 1
    assert mutation.payment.paid_at == NOW
    assert mutation.payment.status == PaymentStatus.PAID


@pytest.mark.unit
def test_partial_payment_is_not_marked_paid():
    line = billing_line(("e1", 200, EventColor.PAID), ("e2", 200, EventColor.NEEDS_BILLING))
    payment = sync_month(MONTH, [line], [], now=NOW)[0].payment
    assert payment.paid is False
    assert payment.amount == 200


@pytest.mark.unit
def test_sync_is_idempotent_by_set_difference():
    line = billing_line(("e1", 200, EventColor.PAID))
    first = sync_month(MONTH, [line], [], now=NOW)
    existing = [first[0].payment]
    assert sync_month(MONTH, [line], existing, now=NOW) == []


@pytest.mark.unit
def test_synced_month_cache_short_circuits():
    cache = SyncedMonthsCache()
    line = billing_line(("e1", 200, EventColor.PAID))

    assert len(sync_month(MONTH, [line], [], cache=cache, scope="t1", now=NOW)) == 1
    assert cache.is_synced(MONTH, "t1")
    assert sync_month(MONTH, [line], [], cache=cache, scope="t1", now=NOW) == []
    # Another therapist is tracked separately
    assert len(sync_month(MONTH, [line], [], cache=cache, scope="t2", now=NOW)) == 1
    # force re-reads colors
    assert len(sync_month(MONTH, [line], [], cache=cache, scope="t1", now=NOW, force=True)) == 1


@pytest.mark.unit
def test_sync_only_adds_ids():
    line = billing_line(("e1", 200, EventColor.PAID), ("e2", 150, EventColor.NEEDS_BILLING))
    existing = Payment(
        id="pay-1", patient_id="dana", month=MONTH,
        paid_event_ids=["e2"], amount=150, session_count=1, status=PaymentStatus.PAID,
    )
    mutations = sync_month(MONTH, [line], [existing], now=NOW)

    assert mutations[0].action == "update"
    payment = mutations[0].payment
    assert payment.id == "pay-1"
    assert payment.paid_event_ids == ["e2", "e1"]
    assert payment.amount == 350
    assert payment.paid is True


@pytest.mark.unit
def test_payments_of_other_months_are_ignored():
    line = billing_line(("e1", 200, EventColor.PAID))
    other = Payment(patient_id="dana", month="2024-02", paid_event_ids=["e1"])
    mutations = sync_month(MONTH, [line], [other], now=NOW)
    assert mutations[0].action == "create"


@pytest.mark.unit
def test_refunded_status_is_preserved():
    line = billing_line(("e1", 200, EventColor.PAID))
    existing = Payment(patient_id="dana", month=MONTH, status=PaymentStatus.REFUNDED)
    payment = sync_month(MONTH, [line], [existing], now=NOW)[0].payment
    assert payment.status == PaymentStatus.REFUNDED
    assert payment.paid_event_ids == ["e1"]


@pytest.mark.unit
def test_toggle_paid_flips_one_session():
    line = billing_line(("e1", 200, EventColor.NEEDS_BILLING), ("e2", 200, EventColor.NEEDS_BILLING))

    marked = toggle_paid(line, MONTH, "e1", None, now=NOW)
    assert marked.mark_paid is True
    assert marked.mutation.action == "create"
    assert marked.mutation.payment.paid_event_ids == ["e1"]
    assert marked.mutation.payment.paid is False
    assert [ref.event_id for ref in marked.refs] == ["e1"]

    unmarked = toggle_paid(line, MONTH, "e1", marked.mutation.payment, now=NOW)
    assert unmarked.mark_paid is False
    assert unmarked.mutation.action == "update"
    assert unmarked.mutation.payment.paid_event_ids == []
    assert unmarked.mutation.payment.amount == 0
    assert unmarked.mutation.payment.status == PaymentStatus.PENDING
    assert unmarked.mutation.payment.paid_at is None


@pytest.mark.unit
def test_toggle_unknown_session_raises():
    line = billing_line(("e1", 200, EventColor.NEEDS_BILLING))
    with pytest.raises(NotFoundException):
        toggle_paid(line, MONTH, "missing", None, now=NOW)


@pytest.mark.unit
def test_toggle_all_marks_then_clears():
    line = billing_line(("e1", 200, EventColor.NEEDS_BILLING), ("e2", 100, EventColor.NEEDS_BILLING))

    marked = toggle_all_paid(line, MONTH, None, now=NOW)
    assert marked.mark_paid is True
    assert marked.mutation.payment.paid is True
    assert marked.mutation.payment.amount == 300
    assert marked.mutation.payment.session_count == 2
    assert len(marked.refs) == 2

    cleared = toggle_all_paid(line, MONTH, marked.mutation.payment, now=NOW)
    assert cleared.mark_paid is False
    assert cleared.mutation.payment.paid is False
    assert cleared.mutation.payment.paid_event_ids == []


@pytest.mark.unit
def test_toggle_all_completes_partial_payment():
    line = billing_line(("e1", 200, EventColor.NEEDS_BILLING), ("e2", 100, EventColor.NEEDS_BILLING))
    partial = Payment(patient_id="dana", month=MONTH, paid_event_ids=["e1"])
    outcome = toggle_all_paid(line, MONTH, partial, now=NOW)
    assert outcome.mark_paid is True
    assert outcome.mutation.payment.paid_event_ids == ["e1", "e2"]
