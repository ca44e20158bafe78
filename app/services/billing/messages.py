"""
Monthly billing message for patients (WhatsApp link)
"""
import re
from typing import NamedTuple
from urllib.parse import quote

from app.schemas.billing import PatientBilling

WHATSAPP_URL = "https://wa.me"
COUNTRY_CODE = "972"


class BillingMessage(NamedTuple):
    text: str
    url: str


def format_amount(amount: float) -> str:
    return str(int(amount)) if float(amount).is_integer() else str(amount)


def international_phone(phone: str) -> str:
    """Digits only; a leading 0 is replaced by the country code"""
    digits = re.sub(r"\D", "", phone or "")
    if digits.startswith("0"):
        return COUNTRY_CODE + digits[1:]
    return digits


def build_billing_message(billing: PatientBilling) -> BillingMessage:
    dates = ", ".join(session.date for session in billing.sessions)
    text = (
        f"היי {billing.patient.name}, מעדכן לגבי החודש.\n"
        f"מפגשים: {dates}\n"
        f"סה״כ: ₪{format_amount(billing.total)}\n"
        f"תודה! 🙏"
    )
    url = f"{WHATSAPP_URL}/{international_phone(billing.patient.phone)}?text={quote(text, safe='')}"
    return BillingMessage(text=text, url=url)
