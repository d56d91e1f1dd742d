"""Heuristic attendee recommendations for a single meeting."""

from datetime import timedelta

from models import AttendeeRecommendation, Meeting

CONFLICT_WINDOW = timedelta(hours=2)
LARGE_MEETING_SIZE = 8
FREQUENT_PARTICIPANT_MEETINGS = 3


def _attends(meeting: Meeting, email: str) -> bool:
    return any(a.email == email for a in meeting.attendees)


def _titles_related(a: str, b: str) -> bool:
    return a in b or b in a


def _near(meeting: Meeting, other: Meeting) -> bool:
    """Other meeting starts or ends within two hours of this one."""
    window_start = meeting.start_time - CONFLICT_WINDOW
    window_end = meeting.end_time + CONFLICT_WINDOW
    return (
        window_start <= other.start_time <= window_end
        or window_start <= other.end_time <= window_end
    )


def recommend_attendees(
    meeting: Meeting,
    other_meetings: list[Meeting],
) -> list[AttendeeRecommendation]:
    """
    Suggest attendees who could be optional or removed.

    Args:
        meeting: The meeting under review
        other_meetings: The organizer's other meetings (excluding `meeting`)

    Returns:
        One recommendation per attendee that should change, organizer excluded
    """
    others = [m for m in other_meetings if m.id != meeting.id]
    recommendations = []

    for attendee in meeting.attendees:
        if meeting.organizer and attendee.email == meeting.organizer:
            continue

        similar = [
            m for m in others
            if _titles_related(m.title, meeting.title) and _attends(m, attendee.email)
        ]
        conflicting = [
            m for m in others
            if _attends(m, attendee.email) and _near(meeting, m)
        ]

        if conflicting:
            recommendations.append(AttendeeRecommendation(
                attendee=attendee,
                recommendation="OPTIONAL",
                reason=f"Has {len(conflicting)} other meetings around this time",
            ))
        elif not similar:
            recommendations.append(AttendeeRecommendation(
                attendee=attendee,
                recommendation="REMOVE",
                reason="Not involved in similar meetings",
            ))
        elif len(meeting.attendees) > LARGE_MEETING_SIZE and len(similar) < FREQUENT_PARTICIPANT_MEETINGS:
            recommendations.append(AttendeeRecommendation(
                attendee=attendee,
                recommendation="OPTIONAL",
                reason="Large meeting and not a frequent participant in similar topics",
            ))

    return recommendations
