"""Pull Google Calendar events into the meeting store."""

from datetime import datetime, timedelta, timezone
from typing import Optional
import httpx
import logging

from data_source import DataSource
from integrations import GoogleCalendarClient, ZoomClient
from models import Meeting
from audit.weeks import week_start

logger = logging.getLogger(__name__)


class GoogleNotConnectedError(Exception):
    """The user has no stored Google token."""


async def recompute_week_hours(store: DataSource, user_id: str, now: Optional[datetime] = None):
    """Overwrite the current week's total_meeting_hours from stored meetings."""
    now = now or datetime.now(timezone.utc)
    start = week_start(now)
    meetings = await store.list_meetings(
        user_id,
        start=start,
        end=start + timedelta(days=7, microseconds=-1),
        include_flags=False,
    )
    hours = sum(m.duration_hours for m in meetings if not m.is_cancelled)
    return await store.set_weekly_snapshot(user_id, now, total_meeting_hours=hours)


async def fill_attendance(
    meetings: list[Meeting],
    zoom: ZoomClient,
    now: datetime,
) -> list[Meeting]:
    """
    Set attended_count from Zoom for ended meetings that have a Zoom link.

    A failed lookup is logged and leaves the meeting's count unset.
    """
    result = []
    for meeting in meetings:
        if meeting.zoom_meeting_id and meeting.attended_count is None and meeting.end_time < now:
            try:
                count = await zoom.get_participants_count(meeting.zoom_meeting_id)
            except httpx.HTTPError as e:
                logger.warning(f"No Zoom data for meeting {meeting.zoom_meeting_id}: {e}")
                count = None
            if count is not None:
                meeting = meeting.model_copy(update={"attended_count": count})
        result.append(meeting)
    return result


async def sync_calendar(
    store: DataSource,
    user_id: str,
    lookback_days: int = 30,
    lookahead_days: int = 30,
    calendar: Optional[GoogleCalendarClient] = None,
    now: Optional[datetime] = None,
    zoom: Optional[ZoomClient] = None,
) -> dict:
    """
    Upsert the user's Google events in [now - lookback, now + lookahead].

    When the user has connected Zoom, past meetings get their attendance
    from Zoom's reports. Returns {"synced": n}. Google API errors propagate
    to the caller.
    """
    now = now or datetime.now(timezone.utc)

    if calendar is None:
        token = await store.get_oauth_token(user_id, "google")
        if not token:
            raise GoogleNotConnectedError(f"Google not connected for {user_id}")
        calendar = GoogleCalendarClient(token.access_token, token.refresh_token)

    meetings = calendar.list_events_in_range(
        user_id,
        now - timedelta(days=lookback_days),
        now + timedelta(days=lookahead_days),
    )

    if zoom is None:
        zoom_token = await store.get_oauth_token(user_id, "zoom")
        if zoom_token:
            zoom = ZoomClient(zoom_token.access_token)
    if zoom:
        meetings = await fill_attendance(meetings, zoom, now)

    for meeting in meetings:
        await store.upsert_meeting(meeting)

    await recompute_week_hours(store, user_id, now)
    logger.info(f"Synced {len(meetings)} calendar events for {user_id}")

    return {"synced": len(meetings)}
