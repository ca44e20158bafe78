"""
Payment history and revenue rollup tests
"""
import pytest

from app.services.billing.history import is_partial, payment_history, revenue_by_month
from app.schemas.billing import Payment
from conftest import make_patient


def payment(patient_id, month, amount, paid=False, paid_event_ids=None):
    return Payment(
        patient_id=patient_id,
        month=month,
        amount=amount,
        paid=paid,
        paid_event_ids=paid_event_ids or [],
    )


PATIENTS = [make_patient("dana", "דנה"), make_patient("yossi", "יוסי")]

PAYMENTS = [
    payment("dana", "2024-01", 400, paid=True, paid_event_ids=["a", "b"]),
    payment("yossi", "2024-03", 300),
    payment("dana", "2024-03", 200, paid_event_ids=["c"]),
    payment("gone", "2024-02", 100, paid=True, paid_event_ids=["d"]),
]


@pytest.mark.unit
def test_history_groups_by_month_newest_first():
    history = payment_history(PAYMENTS, PATIENTS)

    assert [group.month for group in history] == ["2024-03", "2024-02", "2024-01"]
    march = history[0]
    assert march.total == 500
    assert [entry.patient_name for entry in march.payments] == ["יוסי", "דנה"]
    assert history[1].payments[0].patient_name is None


@pytest.mark.unit
def test_history_search_by_name_or_month():
    by_name = payment_history(PAYMENTS, PATIENTS, search=" דנה ")
    assert [group.month for group in by_name] == ["2024-03", "2024-01"]
    assert all(entry.payment.patient_id == "dana" for group in by_name for entry in group.payments)

    by_month = payment_history(PAYMENTS, PATIENTS, search="2024-02")
    assert [group.month for group in by_month] == ["2024-02"]

    assert payment_history(PAYMENTS, PATIENTS, search="") == payment_history(PAYMENTS, PATIENTS)
    assert payment_history(PAYMENTS, PATIENTS, search="רון") == []


@pytest.mark.unit
def test_partial_payment_flag():
    assert is_partial(payment("dana", "2024-03", 200, paid_event_ids=["c"])) is True
    assert is_partial(payment("dana", "2024-03", 200, paid=True, paid_event_ids=["c"])) is False
    assert is_partial(payment("dana", "2024-03", 200)) is False

    march = payment_history(PAYMENTS, PATIENTS)[0]
    assert [entry.partial for entry in march.payments] == [False, True]


@pytest.mark.unit
def test_revenue_counts_payments_with_paid_sessions():
    revenue = revenue_by_month(PAYMENTS)

    assert [row.month for row in revenue] == ["2024-01", "2024-02", "2024-03"]
    assert [(row.total, row.paid) for row in revenue] == [(400, 400), (100, 100), (500, 200)]


@pytest.mark.unit
def test_revenue_keeps_the_latest_months():
    payments = [payment("dana", f"2023-{m:02d}", 100) for m in range(1, 13)]
    payments.append(payment("dana", "2024-01", 50))

    revenue = revenue_by_month(payments)
    assert len(revenue) == 12
    assert revenue[0].month == "2023-02"
    assert revenue[-1].month == "2024-01"

    assert [row.month for row in revenue_by_month(payments, months=2)] == ["2023-12", "2024-01"]
    assert revenue_by_month(payments, months=0) == []
    assert revenue_by_month([]) == []
