"""
Google Calendar Provider
Reads month events and patches colors / titles through the Calendar v3 REST API
"""
import asyncio
import logging
from datetime import date, datetime, time
from typing import Any, Dict, List, Optional, Sequence
from urllib.parse import quote
from zoneinfo import ZoneInfo

import httpx

from config import settings
from app.schemas.billing import CalendarEvent, ColorUpdateResult, EventRef, RenameResult
from app.services.billing.colors import color_from_google
from app.services.billing.months import month_bounds
from app.services.calendar.base import CalendarProvider

logger = logging.getLogger(__name__)

RATE_LIMIT_REASONS = ("rateLimitExceeded", "userRateLimitExceeded")
WRITABLE_ROLES = ("owner", "writer")
RENAME_SEARCH_LIMIT = 250


class CalendarAPIError(Exception):
    """Google Calendar returned an error or could not be reached"""
    def __init__(self, message: str, status_code: Optional[int] = None, reason: Optional[str] = None):
        self.message = message
        self.status_code = status_code
        self.reason = reason
        super().__init__(message)


class RateLimitError(CalendarAPIError):
    """Request rejected by Google's rate limiter; safe to retry later"""


def parse_event_start(start: Optional[Dict[str, Any]], tz: str) -> Optional[datetime]:
    """
    Aware start instant of a Google event

    Timed events carry `dateTime` (RFC 3339); all-day events only a `date`,
    taken as local midnight.
    """
    if not start:
        return None
    if start.get("dateTime"):
        value = start["dateTime"]
        if value.endswith("Z"):
            value = value[:-1] + "+00:00"
        moment = datetime.fromisoformat(value)
        if moment.tzinfo is None:
            moment = moment.replace(tzinfo=ZoneInfo(start.get("timeZone") or tz))
        return moment
    if start.get("date"):
        return datetime.combine(date.fromisoformat(start["date"]), time(0), tzinfo=ZoneInfo(tz))
    return None


def event_from_google(item: Dict[str, Any], calendar_id: str, tz: str) -> CalendarEvent:
    return CalendarEvent(
        id=item["id"],
        calendar_id=calendar_id,
        summary=item.get("summary") or "",
        start=parse_event_start(item.get("start"), tz),
        color=color_from_google(item.get("colorId")),
    )


def _error_from_response(response: httpx.Response) -> CalendarAPIError:
    try:
        error = response.json().get("error", {})
    except ValueError:
        error = {}
    if not isinstance(error, dict):
        error = {"message": str(error)}

    errors = error.get("errors") or [{}]
    reason = errors[0].get("reason")
    message = error.get("message") or response.reason_phrase

    if response.status_code == 429 or (response.status_code == 403 and reason in RATE_LIMIT_REASONS):
        return RateLimitError(message, response.status_code, reason)
    return CalendarAPIError(message, response.status_code, reason)


class GoogleCalendarProvider(CalendarProvider):
    """
    Calendar v3 client bound to one OAuth access token

    Pass `client` to reuse a connection pool (or a mock transport in tests);
    otherwise the provider owns its own httpx.AsyncClient.
    """

    def __init__(
        self,
        access_token: str,
        client: Optional[httpx.AsyncClient] = None,
        base_url: Optional[str] = None,
        timezone_name: Optional[str] = None,
        batch_size: Optional[int] = None,
        batch_delay_ms: Optional[int] = None,
        max_retries: Optional[int] = None,
        backoff_ms: Optional[int] = None,
        rename_batch_size: Optional[int] = None,
    ):
        self.access_token = access_token
        self.base_url = (base_url or settings.GOOGLE_CALENDAR_API).rstrip("/")
        self.tz = timezone_name or settings.CALENDAR_TIMEZONE
        self.batch_size = batch_size or settings.COLOR_BATCH_SIZE
        self.batch_delay_ms = settings.COLOR_BATCH_DELAY_MS if batch_delay_ms is None else batch_delay_ms
        self.max_retries = settings.COLOR_MAX_RETRIES if max_retries is None else max_retries
        self.backoff_ms = settings.RATE_LIMIT_BACKOFF_MS if backoff_ms is None else backoff_ms
        self.rename_batch_size = rename_batch_size or settings.RENAME_BATCH_SIZE

        self._owns_client = client is None
        self.client = client or httpx.AsyncClient(timeout=settings.CALENDAR_TIMEOUT)

    async def aclose(self):
        if self._owns_client:
            await self.client.aclose()

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc, tb):
        await self.aclose()

    # ------------------------------------------------------------------
    # HTTP
    # ------------------------------------------------------------------

    def _events_url(self, calendar_id: str, event_id: Optional[str] = None) -> str:
        url = f"{self.base_url}/calendars/{quote(calendar_id, safe='')}/events"
        if event_id is not None:
            url += f"/{quote(event_id, safe='')}"
        return url

    async def _request(self, method: str, url: str, **kwargs) -> Dict[str, Any]:
        headers = {"Authorization": f"Bearer {self.access_token}"}
        try:
            response = await self.client.request(method, url, headers=headers, **kwargs)
        except httpx.HTTPError as e:
            raise CalendarAPIError(f"Request to Google Calendar failed: {e}") from e

        if response.is_error:
            raise _error_from_response(response)
        if not response.content:
            return {}
        return response.json()

    async def list_calendars(self) -> List[Dict[str, Any]]:
        data = await self._request("GET", f"{self.base_url}/users/me/calendarList")
        return data.get("items", [])

    # ------------------------------------------------------------------
    # Reading
    # ------------------------------------------------------------------

    async def _calendar_events(self, calendar: Dict[str, Any], time_min: str, time_max: str) -> List[CalendarEvent]:
        calendar_id = calendar["id"]
        try:
            data = await self._request(
                "GET",
                self._events_url(calendar_id),
                params={
                    "timeMin": time_min,
                    "timeMax": time_max,
                    "singleEvents": "true",
                    "orderBy": "startTime",
                },
            )
        except CalendarAPIError as e:
            logger.error(f"Failed to list events of calendar {calendar_id}: {e.message}")
            return []
        return [event_from_google(item, calendar_id, self.tz) for item in data.get("items", [])]

    async def list_events(self, month: str) -> List[CalendarEvent]:
        """
        Every event of every calendar within the month's local bounds

        A calendar whose events cannot be read contributes nothing; a
        failing calendar list raises CalendarAPIError.
        """
        start, end = month_bounds(month, self.tz)
        time_min = start.isoformat().replace("+00:00", "Z")
        time_max = end.isoformat().replace("+00:00", "Z")

        calendars = await self.list_calendars()
        per_calendar = await asyncio.gather(
            *(self._calendar_events(calendar, time_min, time_max) for calendar in calendars)
        )

        events = [event for events in per_calendar for event in events]
        events.sort(key=lambda event: (event.start is None, event.start or datetime.min))
        logger.info(f"Fetched {len(events)} events from {len(calendars)} calendars for {month}")
        return events

    # ------------------------------------------------------------------
    # Repainting
    # ------------------------------------------------------------------

    async def patch_event_color(self, calendar_id: str, event_id: str, color_id: Optional[str]) -> bool:
        for attempt in range(self.max_retries + 1):
            try:
                await self._request(
                    "PATCH",
                    self._events_url(calendar_id, event_id),
                    params={"fields": "id,colorId"},
                    json={"colorId": color_id},
                )
                return True
            except RateLimitError as e:
                if attempt >= self.max_retries:
                    logger.error(f"Rate limited updating color of event {event_id} in {calendar_id}, giving up: {e.message}")
                    return False
                backoff = (attempt + 1) * self.backoff_ms
                logger.warning(f"Rate limited updating event {event_id}, retrying in {backoff}ms")
                await asyncio.sleep(backoff / 1000)
            except CalendarAPIError as e:
                logger.error(f"Failed to update color of event {event_id} in {calendar_id}: {e.message}")
                return False
        return False

    async def patch_event_colors(self, refs: Sequence[EventRef], color_id: Optional[str]) -> ColorUpdateResult:
        """Repaint events in small concurrent batches, pausing between batches"""
        refs = list(refs)
        updated = 0
        for i in range(0, len(refs), self.batch_size):
            batch = refs[i:i + self.batch_size]
            results = await asyncio.gather(
                *(self.patch_event_color(ref.calendar_id, ref.event_id, color_id) for ref in batch)
            )
            updated += sum(1 for ok in results if ok)
            if i + self.batch_size < len(refs) and self.batch_delay_ms:
                await asyncio.sleep(self.batch_delay_ms / 1000)

        result = ColorUpdateResult(updated=updated, failed=len(refs) - updated, total=len(refs))
        if result.failed:
            logger.warning(f"Color update: {result.failed} of {result.total} events failed")
        return result

    # ------------------------------------------------------------------
    # Renaming
    # ------------------------------------------------------------------

    async def _find_titled(self, calendar: Dict[str, Any], title: str) -> List[EventRef]:
        # No singleEvents here: patching a recurring master renames every instance
        try:
            data = await self._request(
                "GET",
                self._events_url(calendar["id"]),
                params={"q": title, "maxResults": RENAME_SEARCH_LIMIT},
            )
        except CalendarAPIError as e:
            logger.error(f"Event search failed in calendar {calendar['id']}: {e.message}")
            return []
        return [
            EventRef(calendar_id=calendar["id"], event_id=item["id"])
            for item in data.get("items", [])
            if (item.get("summary") or "").strip() == title.strip()
        ]

    async def _rename_one(self, ref: EventRef, new_name: str) -> bool:
        try:
            await self._request("PATCH", self._events_url(ref.calendar_id, ref.event_id), json={"summary": new_name})
            return True
        except CalendarAPIError as e:
            logger.error(f"Failed to rename event {ref.event_id} in {ref.calendar_id}: {e.message}")
            return False

    async def rename_events(self, old_name: str, new_name: str) -> RenameResult:
        try:
            calendars = await self.list_calendars()
        except CalendarAPIError as e:
            logger.error(f"Cannot rename '{old_name}': calendar list failed: {e.message}")
            return RenameResult()

        writable = [calendar for calendar in calendars if calendar.get("accessRole") in WRITABLE_ROLES]
        found = await asyncio.gather(*(self._find_titled(calendar, old_name) for calendar in writable))
        refs = [ref for refs in found for ref in refs]

        updated = 0
        for i in range(0, len(refs), self.rename_batch_size):
            batch = refs[i:i + self.rename_batch_size]
            results = await asyncio.gather(*(self._rename_one(ref, new_name) for ref in batch))
            updated += sum(1 for ok in results if ok)

        logger.info(
            f"Renamed {updated} of {len(refs)} events '{old_name}' -> '{new_name}' "
            f"across {len(writable)} writable calendars"
        )
        return RenameResult(updated=updated, failed=len(refs) - updated)
