"""
Pytest configuration and shared fixtures.
"""

import sys
from datetime import datetime, timedelta, timezone
from pathlib import Path

import pytest

# Add backend to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent / "backend"))

from models import Attendee, Meeting, UserProfile  # noqa: E402
from demo_data import DemoDataSource  # noqa: E402

# A Monday
MONDAY = datetime(2024, 3, 4, tzinfo=timezone.utc)


def make_meeting(
    id: str,
    title: str = "Meeting",
    start: datetime = MONDAY.replace(hour=9),
    minutes: float = 30,
    attendees: int = 2,
    has_agenda: bool = True,
    organizer_id: str = "user-1",
    **fields,
) -> Meeting:
    return Meeting(
        id=id,
        title=title,
        start_time=start,
        end_time=start + timedelta(minutes=minutes),
        organizer_id=organizer_id,
        attendees=[Attendee(email=f"person{i}@company.com") for i in range(attendees)],
        invitee_count=attendees,
        has_agenda=has_agenda,
        **fields,
    )


@pytest.fixture
def monday():
    return MONDAY


@pytest.fixture
def store():
    """Empty in-memory store with a single user."""
    source = DemoDataSource(seed=False)
    source.users["user-1"] = UserProfile(id="user-1", email="user@company.com", average_hourly_cost=100)
    return source
