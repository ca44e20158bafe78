"""
Calendar color mapping tests
"""
import pytest

from app.schemas.billing import EventColor
from app.services.billing.colors import color_from_google, google_color_id


@pytest.mark.unit
@pytest.mark.parametrize("color_id,expected", [
    (None, EventColor.NEEDS_BILLING),
    ("", EventColor.NEEDS_BILLING),
    ("5", EventColor.NEEDS_BILLING_ANNOTATED),
    ("3", EventColor.PAID),
    ("4", EventColor.CANCELLED),
    ("11", EventColor.OTHER),
])
def test_color_from_google(color_id, expected):
    assert color_from_google(color_id) == expected


@pytest.mark.unit
def test_google_color_id_round_trips_paid():
    assert google_color_id(EventColor.PAID) == "3"
    assert google_color_id(EventColor.NEEDS_BILLING) is None


@pytest.mark.unit
def test_cancelled_is_not_billable():
    assert not EventColor.CANCELLED.is_billable
    assert EventColor.OTHER.is_billable
