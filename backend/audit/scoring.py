"""Cancellation scoring for upcoming meetings."""

from datetime import datetime, timezone
from typing import Optional

from models import CancellationCandidate, Meeting, Recommendation

NO_AGENDA_POINTS = 30
MANY_ATTENDEES_POINTS = 20
MANY_ATTENDEES_THRESHOLD = 10
FLAG_POINTS = 15
LONG_DURATION_POINTS = 25
LONG_DURATION_MINUTES = 120
RECURRING_POINTS = 10

CANDIDATE_MIN_SCORE = 50
CANCEL_MIN_SCORE = 80


def score_meeting(meeting: Meeting) -> tuple[int, list[str]]:
    """Additive risk score and the reasons that contributed to it."""
    score = 0
    reasons = []

    if not meeting.has_agenda:
        score += NO_AGENDA_POINTS
        reasons.append("No agenda set")

    if meeting.attendee_count > MANY_ATTENDEES_THRESHOLD:
        score += MANY_ATTENDEES_POINTS
        reasons.append("Too many attendees")

    flag_count = len(meeting.unresolved_flags)
    if flag_count > 0:
        score += flag_count * FLAG_POINTS
        reasons.append("Has efficiency flags")

    if meeting.duration_minutes > LONG_DURATION_MINUTES:
        score += LONG_DURATION_POINTS
        reasons.append("Very long duration")

    if meeting.is_recurring:
        score += RECURRING_POINTS
        reasons.append("Recurring meeting (review frequency)")

    return score, reasons


def select_upcoming(meetings: list[Meeting], now: Optional[datetime] = None) -> list[Meeting]:
    """Future, non-cancelled meetings in their original order."""
    now = now or datetime.now(timezone.utc)
    return [m for m in meetings if m.start_time >= now and not m.is_cancelled]


def suggest_cancellations(meetings: list[Meeting]) -> list[CancellationCandidate]:
    """
    Score meetings and return the likely cancellation candidates.

    Only meetings scoring at least 50 are returned, highest score first. The
    sort is stable, so equal scores keep their input order.
    """
    candidates = []
    for meeting in meetings:
        score, reasons = score_meeting(meeting)
        if score < CANDIDATE_MIN_SCORE:
            continue

        candidates.append(CancellationCandidate(
            meeting=meeting,
            score=score,
            reasons=reasons,
            estimated_savings=meeting.duration_hours,
            recommendation=Recommendation.CANCEL if score >= CANCEL_MIN_SCORE else Recommendation.REVIEW,
        ))

    return sorted(candidates, key=lambda c: c.score, reverse=True)
