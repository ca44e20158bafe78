"""
Google Calendar provider tests
HTTP traffic is served by httpx.MockTransport
"""
import json
import pytest
import httpx
from datetime import datetime, timezone

from app.schemas.billing import EventColor, EventRef
from app.services.calendar import CalendarAPIError, GoogleCalendarProvider
from app.services.calendar.google_calendar import parse_event_start

BASE_URL = "https://calendar.test/calendar/v3"


def make_provider(handler, **kwargs) -> GoogleCalendarProvider:
    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    options = dict(batch_delay_ms=0, backoff_ms=0, max_retries=2, batch_size=2, rename_batch_size=2)
    options.update(kwargs)
    return GoogleCalendarProvider("token-123", client=client, base_url=BASE_URL, **options)


def calendar_list(*calendars):
    return httpx.Response(200, json={"items": list(calendars)})


@pytest.mark.unit
def test_parse_event_start_forms():
    utc = parse_event_start({"dateTime": "2024-03-05T10:00:00Z"}, "Asia/Jerusalem")
    assert utc == datetime(2024, 3, 5, 10, 0, tzinfo=timezone.utc)

    offset = parse_event_start({"dateTime": "2024-03-05T12:00:00+02:00"}, "Asia/Jerusalem")
    assert offset == utc

    all_day = parse_event_start({"date": "2024-03-05"}, "Asia/Jerusalem")
    assert all_day == datetime(2024, 3, 4, 22, 0, tzinfo=timezone.utc)

    assert parse_event_start(None, "Asia/Jerusalem") is None
    assert parse_event_start({}, "Asia/Jerusalem") is None


@pytest.mark.integration
async def test_list_events_merges_calendars_and_skips_failures():
    seen_params = {}

    def handler(request: httpx.Request) -> httpx.Response:
        assert request.headers["Authorization"] == "Bearer token-123"
        path = request.url.path
        if path.endswith("/users/me/calendarList"):
            return calendar_list({"id": "primary"}, {"id": "work"}, {"id": "broken"})
        if "/calendars/primary/" in path:
            seen_params.update(dict(request.url.params))
            return httpx.Response(200, json={"items": [
                {"id": "p1", "summary": "דנה", "start": {"dateTime": "2024-03-12T09:00:00Z"}, "colorId": "3"},
            ]})
        if "/calendars/work/" in path:
            return httpx.Response(200, json={"items": [
                {"id": "w1", "summary": "יוסי", "start": {"dateTime": "2024-03-02T09:00:00Z"}},
            ]})
        return httpx.Response(500, json={"error": {"message": "backend error"}})

    provider = make_provider(handler)
    events = await provider.list_events("2024-03")

    assert [event.id for event in events] == ["w1", "p1"]
    assert events[1].color == EventColor.PAID
    assert events[0].color == EventColor.NEEDS_BILLING
    assert events[1].calendar_id == "primary"
    assert seen_params["timeMin"] == "2024-02-29T22:00:00Z"
    assert seen_params["singleEvents"] == "true"


@pytest.mark.integration
async def test_list_events_raises_when_calendar_list_fails():
    def handler(request):
        return httpx.Response(401, json={"error": {"message": "Invalid Credentials"}})

    provider = make_provider(handler)
    with pytest.raises(CalendarAPIError) as exc_info:
        await provider.list_events("2024-03")
    assert exc_info.value.status_code == 401


@pytest.mark.integration
async def test_color_patch_retries_rate_limits():
    attempts = []

    def handler(request):
        attempts.append(request)
        if len(attempts) < 3:
            return httpx.Response(403, json={"error": {
                "message": "Rate Limit Exceeded",
                "errors": [{"reason": "rateLimitExceeded"}],
            }})
        return httpx.Response(200, json={"id": "e1", "colorId": "3"})

    provider = make_provider(handler)
    assert await provider.patch_event_color("primary", "e1", "3") is True
    assert len(attempts) == 3
    assert attempts[-1].method == "PATCH"
    assert json.loads(attempts[-1].content) == {"colorId": "3"}


@pytest.mark.integration
async def test_color_patch_gives_up_after_retries():
    attempts = []

    def handler(request):
        attempts.append(request)
        return httpx.Response(429, json={"error": {"message": "Too Many Requests"}})

    provider = make_provider(handler, max_retries=1)
    assert await provider.patch_event_color("primary", "e1", "3") is False
    assert len(attempts) == 2


@pytest.mark.integration
async def test_color_batch_counts_failures():
    def handler(request):
        if request.url.path.endswith("/events/bad"):
            return httpx.Response(404, json={"error": {"message": "Not Found"}})
        return httpx.Response(200, json={})

    provider = make_provider(handler)
    refs = [EventRef(calendar_id="primary", event_id=i) for i in ("a", "bad", "c")]
    result = await provider.patch_event_colors(refs, None)

    assert result.updated == 2
    assert result.failed == 1
    assert result.total == 3


@pytest.mark.integration
async def test_rename_only_touches_writable_calendars():
    patched = []

    def handler(request: httpx.Request) -> httpx.Response:
        path = request.url.path
        if path.endswith("/users/me/calendarList"):
            return calendar_list(
                {"id": "primary", "accessRole": "owner"},
                {"id": "holidays", "accessRole": "reader"},
            )
        if request.method == "GET" and "/calendars/primary/" in path:
            assert request.url.params["q"] == "דני"
            return httpx.Response(200, json={"items": [
                {"id": "e1", "summary": " דני "},
                {"id": "e2", "summary": "דני כהן"},
                {"id": "e3", "summary": "דני"},
            ]})
        if request.method == "PATCH":
            patched.append((path.rsplit("/", 1)[-1], json.loads(request.content)["summary"]))
            return httpx.Response(200, json={})
        raise AssertionError(f"unexpected request {request.method} {path}")

    provider = make_provider(handler)
    result = await provider.rename_events("דני", "דניאל לוי")

    assert result.updated == 2
    assert result.failed == 0
    assert sorted(patched) == [("e1", "דניאל לוי"), ("e3", "דניאל לוי")]


@pytest.mark.integration
async def test_rename_without_calendar_list_reports_nothing():
    def handler(request):
        raise httpx.ConnectError("offline")

    provider = make_provider(handler)
    result = await provider.rename_events("דני", "דניאל")
    assert result.updated == 0
    assert result.failed == 0
