"""
Month key helpers tests
"""
import pytest
from datetime import date, datetime, timezone

from app.core.error_handling import ValidationException
from app.services.billing.months import (
    format_session_date,
    month_bounds,
    month_key,
    month_of,
    parse_month,
    shift_month,
)


@pytest.mark.unit
@pytest.mark.parametrize("value", ["2024-3", "2024-13", "2024-00", "24-03", "march", ""])
def test_parse_month_rejects_malformed_keys(value):
    with pytest.raises(ValidationException) as exc_info:
        parse_month(value)
    assert exc_info.value.status_code == 422


@pytest.mark.unit
def test_parse_month_accepts_padded_key():
    assert parse_month("2024-03") == "2024-03"


@pytest.mark.unit
def test_shift_month_crosses_years():
    assert shift_month("2024-12", 1) == "2025-01"
    assert shift_month("2024-01", -1) == "2023-12"
    assert shift_month("2024-05", -17) == "2022-12"


@pytest.mark.unit
def test_month_keys_sort_as_strings():
    keys = [month_key(date(2024, m, 1)) for m in (11, 2, 10)]
    assert sorted(keys) == ["2024-02", "2024-10", "2024-11"]


@pytest.mark.unit
def test_month_bounds_are_local_midnights():
    start, end = month_bounds("2024-03")
    # UTC+2 before daylight saving, UTC+3 once it starts on March 29th
    assert start == datetime(2024, 2, 29, 22, 0, tzinfo=timezone.utc)
    assert end == datetime(2024, 3, 31, 21, 0, tzinfo=timezone.utc)


@pytest.mark.unit
def test_month_of_uses_local_date():
    assert month_of(datetime(2024, 3, 31, 22, 30, tzinfo=timezone.utc)) == "2024-04"
    assert month_of(datetime(2024, 3, 31, 20, 30, tzinfo=timezone.utc)) == "2024-03"


@pytest.mark.unit
def test_format_session_date():
    assert format_session_date(datetime(2024, 3, 5, 10, 0, tzinfo=timezone.utc)) == "5/3/24"
    assert format_session_date(datetime(2009, 11, 20, 9, 0)) == "20/11/09"
    assert format_session_date(None) == ""
