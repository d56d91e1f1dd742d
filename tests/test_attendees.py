"""Tests for attendee recommendations."""

from datetime import timedelta

from audit.attendees import recommend_attendees
from models import Attendee
from conftest import MONDAY, make_meeting


def with_attendees(meeting, *emails):
    return meeting.model_copy(update={"attendees": [Attendee(email=e) for e in emails]})


def test_organizer_is_never_recommended():
    meeting = with_attendees(make_meeting("a", "Planning", organizer="boss@co.com"), "boss@co.com")

    assert recommend_attendees(meeting, []) == []


def test_attendee_without_similar_meetings_is_removed():
    meeting = with_attendees(make_meeting("a", "Planning"), "new@co.com")

    recommendations = recommend_attendees(meeting, [])

    assert [(r.attendee.email, r.recommendation) for r in recommendations] == [("new@co.com", "REMOVE")]


def test_nearby_meeting_makes_attendee_optional():
    meeting = with_attendees(make_meeting("a", "Planning", MONDAY.replace(hour=9)), "busy@co.com")
    nearby = with_attendees(make_meeting("b", "Interview", MONDAY.replace(hour=10)), "busy@co.com")

    recommendations = recommend_attendees(meeting, [nearby])

    assert recommendations[0].recommendation == "OPTIONAL"
    assert recommendations[0].reason == "Has 1 other meetings around this time"


def test_regular_participant_is_kept():
    meeting = with_attendees(make_meeting("a", "Planning", MONDAY.replace(hour=9)), "regular@co.com")
    earlier = with_attendees(
        make_meeting("b", "Planning", MONDAY.replace(hour=9) - timedelta(days=7)),
        "regular@co.com",
    )

    assert recommend_attendees(meeting, [meeting, earlier]) == []


def test_large_meeting_infrequent_participant_is_optional():
    emails = [f"p{i}@co.com" for i in range(9)]
    meeting = with_attendees(make_meeting("a", "Roadmap", MONDAY.replace(hour=9)), *emails)
    earlier = with_attendees(
        make_meeting("b", "Roadmap", MONDAY.replace(hour=9) - timedelta(days=7)),
        *emails,
    )

    recommendations = recommend_attendees(meeting, [earlier])

    assert len(recommendations) == 9
    assert {r.recommendation for r in recommendations} == {"OPTIONAL"}
