from .google_calendar import GoogleCalendarClient, parse_event
from .zoom import ZOOM_OAUTH_URL, ZoomClient

__all__ = ["GoogleCalendarClient", "parse_event", "ZOOM_OAUTH_URL", "ZoomClient"]
