"""Google Calendar API client for syncing and cancelling meetings."""

from google.oauth2.credentials import Credentials
from googleapiclient.discovery import build
from datetime import datetime, timezone
from typing import Optional
from models import Meeting, Attendee, MeetingStatus
from config import get_settings
import logging
import re
import uuid

logger = logging.getLogger(__name__)

ZOOM_MEETING_ID = re.compile(r"zoom\.us/j/(\d+)")
AGENDA_MIN_DESCRIPTION_LENGTH = 20

EVENT_STATUS_MAP = {
    "confirmed": MeetingStatus.SCHEDULED,
    "tentative": MeetingStatus.SCHEDULED,
    "cancelled": MeetingStatus.CANCELLED,
}


def _parse_datetime(value: str) -> datetime:
    return datetime.fromisoformat(value.replace("Z", "+00:00"))


def _rfc3339(moment: datetime) -> str:
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=timezone.utc)
    return moment.astimezone(timezone.utc).isoformat().replace("+00:00", "Z")


def parse_event(event: dict, organizer_id: str) -> Optional[Meeting]:
    """
    Parse a calendar event into a Meeting owned by `organizer_id`.

    Returns None for events that are not meetings: all-day events, events
    marked as free time and events whose end precedes their start.
    """
    start = event.get("start", {})
    end = event.get("end", {})

    # Skip all-day events without specific times
    if "dateTime" not in start or "dateTime" not in end:
        return None

    if event.get("transparency") == "transparent":
        return None

    start_time = _parse_datetime(start["dateTime"])
    end_time = _parse_datetime(end["dateTime"])
    if end_time < start_time:
        logger.warning(f"Skipping event {event.get('id')}: ends before it starts")
        return None

    attendees = []
    for attendee in event.get("attendees", []):
        attendees.append(Attendee(
            email=attendee.get("email", ""),
            name=attendee.get("displayName"),
            response_status=attendee.get("responseStatus"),
            is_optional=attendee.get("optional", False),
        ))

    description = event.get("description") or ""
    haystack = " ".join([description, event.get("location") or "", event.get("hangoutLink") or ""])
    for entry_point in event.get("conferenceData", {}).get("entryPoints", []):
        haystack += " " + entry_point.get("uri", "")
    zoom = ZOOM_MEETING_ID.search(haystack)

    recurring_event_id = event.get("recurringEventId")
    recurrence = event.get("recurrence") or []

    return Meeting(
        id=str(uuid.uuid4()),
        external_id=event["id"],
        title=event.get("summary", "Untitled Meeting"),
        description=event.get("description"),
        start_time=start_time,
        end_time=end_time,
        organizer_id=organizer_id,
        organizer=event.get("organizer", {}).get("email"),
        is_recurring=bool(recurring_event_id or recurrence),
        recurrence_id=recurring_event_id,
        recurrence_rule=recurrence[0] if recurrence else None,
        invitee_count=len(attendees),
        attendees=attendees,
        has_agenda=len(description) > AGENDA_MIN_DESCRIPTION_LENGTH,
        status=EVENT_STATUS_MAP.get(event.get("status", "confirmed"), MeetingStatus.SCHEDULED),
        location=event.get("location"),
        zoom_meeting_id=zoom.group(1) if zoom else None,
    )


class GoogleCalendarClient:
    """Client for interacting with the Google Calendar API."""

    SCOPES = [
        "https://www.googleapis.com/auth/calendar.readonly",
        "https://www.googleapis.com/auth/calendar.events",
        "https://www.googleapis.com/auth/userinfo.email",
        "https://www.googleapis.com/auth/userinfo.profile",
    ]

    def __init__(self, access_token: str, refresh_token: Optional[str] = None):
        settings = get_settings()
        self.credentials = Credentials(
            token=access_token,
            refresh_token=refresh_token,
            token_uri="https://oauth2.googleapis.com/token",
            client_id=settings.google_client_id,
            client_secret=settings.google_client_secret,
        )
        self.service = build("calendar", "v3", credentials=self.credentials)

    def list_events_in_range(
        self,
        organizer_id: str,
        start_time: datetime,
        end_time: datetime,
        max_results: int = 250,
    ) -> list[Meeting]:
        """
        Fetch every timed meeting between start_time and end_time.

        Follows pagination; API errors propagate so sync can report them.
        """
        meetings = []
        page_token = None

        while True:
            events_result = self.service.events().list(
                calendarId="primary",
                timeMin=_rfc3339(start_time),
                timeMax=_rfc3339(end_time),
                maxResults=max_results,
                singleEvents=True,
                orderBy="startTime",
                pageToken=page_token,
            ).execute()

            for event in events_result.get("items", []):
                meeting = parse_event(event, organizer_id)
                if meeting:
                    meetings.append(meeting)

            page_token = events_result.get("nextPageToken")
            if not page_token:
                break

        return meetings

    def delete_event(self, event_id: str, notify_attendees: bool = True) -> None:
        """Delete (cancel) an event on the primary calendar."""
        self.service.events().delete(
            calendarId="primary",
            eventId=event_id,
            sendUpdates="all" if notify_attendees else "none",
        ).execute()
        logger.info(f"Deleted calendar event {event_id}")
