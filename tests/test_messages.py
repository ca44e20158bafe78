"""
Billing message tests
"""
import pytest
from urllib.parse import unquote

from app.schemas.billing import BillingSession, EventColor, PatientBilling
from app.services.billing.messages import build_billing_message, format_amount, international_phone
from conftest import make_patient


@pytest.mark.unit
@pytest.mark.parametrize("phone,expected", [
    ("050-123-4567", "972501234567"),
    ("+972 50 123 4567", "972501234567"),
    ("", ""),
])
def test_international_phone(phone, expected):
    assert international_phone(phone) == expected


@pytest.mark.unit
def test_format_amount():
    assert format_amount(600.0) == "600"
    assert format_amount(150.5) == "150.5"


@pytest.mark.unit
def test_billing_message_text_and_link():
    patient = make_patient("dana", "דנה", price=300, phone="050-1234567")
    sessions = [
        BillingSession(event_id=f"e{i}", calendar_id="primary", date=d, summary="דנה", price=300, color=EventColor.NEEDS_BILLING)
        for i, d in enumerate(["5/3/24", "12/3/24"])
    ]
    billing = PatientBilling(patient=patient, sessions=sessions, total=600)

    message = build_billing_message(billing)

    assert message.text.startswith("היי דנה,")
    assert "מפגשים: 5/3/24, 12/3/24" in message.text
    assert "₪600" in message.text
    assert message.url.startswith("https://wa.me/972501234567?text=")
    assert unquote(message.url.split("?text=", 1)[1]) == message.text
