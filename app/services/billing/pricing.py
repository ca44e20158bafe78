"""
Session pricing
"""
from typing import Dict, Iterable

from app.schemas.billing import CalendarEvent, Patient, SessionOverride


def build_override_map(overrides: Iterable[SessionOverride]) -> Dict[str, float]:
    """event id -> custom price"""
    return {override.event_id: float(override.custom_price) for override in overrides}


def price_of(event: CalendarEvent, matched_patient: Patient, override_map: Dict[str, float]) -> float:
    """Per-event override if one exists, otherwise the matched patient's session price"""
    if event.id in override_map:
        return override_map[event.id]
    return float(matched_patient.session_price)
