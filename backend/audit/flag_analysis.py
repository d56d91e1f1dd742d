"""
Per-meeting flag rules.

Unlike the detectors, which look at the calendar as a whole, these rules look
at one meeting at a time (plus its look-alikes) and produce flag drafts that
are attached directly to that meeting.
"""

import re
from dataclasses import dataclass

from models import Attendee, IssueType, Meeting, Severity

LOW_ATTENDANCE_RATIO = 0.7
LARGE_INVITEE_COUNT = 8
REDUNDANT_TITLE_SIMILARITY = 0.7
REDUNDANT_ATTENDEE_OVERLAP = 0.7


@dataclass
class FlagDraft:
    """A flag that has not been persisted yet."""
    meeting_id: str
    issue_type: IssueType
    description: str
    severity: Severity


def title_similarity(title1: str, title2: str) -> float:
    t1 = title1.lower()
    t2 = title2.lower()

    # One title containing the other counts as near-identical
    if t1 in t2 or t2 in t1:
        return 0.9

    words1 = re.split(r"\s+", t1)
    words2 = re.split(r"\s+", t2)
    common = sum(1 for w in words1 if len(w) > 3 and w in words2)

    unique = set(words1) | set(words2)
    return common / len(unique)


def attendee_overlap(attendees1: list[Attendee], attendees2: list[Attendee]) -> float:
    """Jaccard overlap of attendee emails."""
    if not attendees1 or not attendees2:
        return 0.0

    emails1 = [a.email for a in attendees1]
    emails2 = [a.email for a in attendees2]
    common = sum(1 for e in emails1 if e in emails2)

    return common / len(set(emails1) | set(emails2))


def find_similar_meetings(meeting: Meeting, meetings: list[Meeting]) -> list[Meeting]:
    return [
        other for other in meetings
        if other.id != meeting.id
        and title_similarity(other.title, meeting.title) > REDUNDANT_TITLE_SIMILARITY
        and attendee_overlap(other.attendees, meeting.attendees) > REDUNDANT_ATTENDEE_OVERLAP
    ]


def analyze_meeting(meeting: Meeting, meetings: list[Meeting]) -> list[FlagDraft]:
    flags = []

    if not meeting.has_agenda and meeting.is_recurring:
        flags.append(FlagDraft(
            meeting_id=meeting.id,
            issue_type=IssueType.NO_AGENDA,
            description="Recurring meeting with no agenda",
            severity=Severity.MEDIUM,
        ))

    if (
        meeting.invitee_count
        and meeting.attended_count
        and meeting.attended_count < meeting.invitee_count * LOW_ATTENDANCE_RATIO
    ):
        rate = round(meeting.attended_count / meeting.invitee_count * 100)
        flags.append(FlagDraft(
            meeting_id=meeting.id,
            issue_type=IssueType.LOW_ATTENDANCE,
            description=f"Low attendance rate ({rate}%)",
            severity=Severity.HIGH,
        ))

    if meeting.invitee_count > LARGE_INVITEE_COUNT:
        flags.append(FlagDraft(
            meeting_id=meeting.id,
            issue_type=IssueType.LARGE_MEETING,
            description=f"Large meeting with {meeting.invitee_count} invitees",
            severity=Severity.LOW,
        ))

    similar = find_similar_meetings(meeting, meetings)
    if similar:
        flags.append(FlagDraft(
            meeting_id=meeting.id,
            issue_type=IssueType.REDUNDANT_MEETING,
            description=f"Similar to {len(similar)} other meeting(s)",
            severity=Severity.HIGH,
        ))

    return flags


def analyze_meetings(meetings: list[Meeting]) -> dict[str, list[FlagDraft]]:
    """Flag drafts keyed by meeting id, only for meetings with at least one flag."""
    flagged = {}
    for meeting in meetings:
        drafts = analyze_meeting(meeting, meetings)
        if drafts:
            flagged[meeting.id] = drafts
    return flagged
