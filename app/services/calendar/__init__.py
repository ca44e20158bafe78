"""
Calendar Services
External calendar access for the billing engine
"""

from .base import CalendarProvider
from .google_calendar import GoogleCalendarProvider, CalendarAPIError, RateLimitError

__all__ = ['CalendarProvider', 'GoogleCalendarProvider', 'CalendarAPIError', 'RateLimitError']
