"""
Calendar provider interface
"""
from abc import ABC, abstractmethod
from typing import List, Optional, Sequence

from app.schemas.billing import CalendarEvent, ColorUpdateResult, EventRef, RenameResult


class CalendarProvider(ABC):
    """
    External calendar the billing engine reads from and repaints

    Write operations are best-effort: failures are logged and reported as
    counts, never raised to the caller.
    """

    @abstractmethod
    async def list_events(self, month: str) -> List[CalendarEvent]:
        """All events of every calendar inside the month, sorted by start"""

    @abstractmethod
    async def patch_event_color(self, calendar_id: str, event_id: str, color_id: Optional[str]) -> bool:
        """Set one event's color id (None resets to the default color)"""

    @abstractmethod
    async def patch_event_colors(self, refs: Sequence[EventRef], color_id: Optional[str]) -> ColorUpdateResult:
        pass

    @abstractmethod
    async def rename_events(self, old_name: str, new_name: str) -> RenameResult:
        """Rename every event titled `old_name` in the writable calendars"""
