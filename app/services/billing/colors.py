"""
Mapping between Google Calendar color ids and billing status
"""
from typing import Optional

from app.schemas.billing import EventColor

# Google Calendar event palette ids
GOOGLE_COLOR_IDS = {
    "5": EventColor.NEEDS_BILLING_ANNOTATED,  # banana
    "3": EventColor.PAID,                     # grape
    "4": EventColor.CANCELLED,                # flamingo
}


def color_from_google(color_id: Optional[str]) -> EventColor:
    """Unset means the calendar's default color, i.e. still to be billed"""
    if not color_id:
        return EventColor.NEEDS_BILLING
    return GOOGLE_COLOR_IDS.get(str(color_id), EventColor.OTHER)


def google_color_id(color: EventColor) -> Optional[str]:
    """Raw id to write for a status; None resets the event to its default color"""
    for color_id, mapped in GOOGLE_COLOR_IDS.items():
        if mapped == color:
            return color_id
    return None
