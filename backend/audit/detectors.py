"""
Meeting audit detectors.

Each detector is a pure function over an already-loaded list of meetings and
returns a list of AuditFinding. Detectors are independent: findings are
concatenated by run_detectors() and never deduplicated across detectors, so a
single meeting may show up in several findings.

Savings are always expressed in hours.
"""

import re
from collections import defaultdict
from datetime import timedelta
from typing import Callable

from models import AuditFinding, IssueType, Meeting, Severity

# Heuristic thresholds. Tunable, not contractual.
BACK_TO_BACK_BUFFER = timedelta(minutes=15)
BACK_TO_BACK_SAVINGS_HOURS = 0.25
NO_AGENDA_EFFICIENCY_LOSS = 0.25
NO_AGENDA_HIGH_HOURS = 5
LARGE_MEETING_MIN_ATTENDEES = 8  # strictly more than this
LARGE_MEETING_HIGH_ATTENDEES = 15
OPTIMAL_MEETING_SIZE = 6
DAILY_OVERLOAD_HOURS = 6
DAILY_CRITICAL_HOURS = 8
DAILY_TARGET_HOURS = 4
RECURRING_MIN_OCCURRENCES = 4
RECURRING_REDUCTION = 0.3
RECURRING_MEDIUM_HOURS = 2
LONG_MEETING_MINUTES = 90
LONG_MEETING_HIGH_MINUTES = 180
LONG_MEETING_SAVED_FRACTION = 0.5

# Words that don't distinguish one meeting from another ("Standup" vs "Standup Sync")
DUPLICATE_TITLE_NOISE_WORDS = {"sync", "meeting", "call", "weekly", "daily"}

_DIGITS = re.compile(r"\d+")


def normalize_title(title: str) -> str:
    """Lowercase, strip digits and filler words, collapse whitespace."""
    stripped = _DIGITS.sub("", title.lower())
    words = [w for w in stripped.split() if w not in DUPLICATE_TITLE_NOISE_WORDS]
    return " ".join(words)


def duplicate_key(meeting: Meeting) -> tuple[str, int, int]:
    """Grouping key for duplicate detection: (title, weekday, hour)."""
    start = meeting.start_time
    return normalize_title(meeting.title), start.weekday(), start.hour


def detect_duplicate_meetings(meetings: list[Meeting]) -> list[AuditFinding]:
    groups: dict[tuple, list[Meeting]] = defaultdict(list)
    for meeting in meetings:
        groups[duplicate_key(meeting)].append(meeting)

    results = []
    for group in groups.values():
        if len(group) < 2:
            continue

        estimated_savings = (len(group) - 1) * group[0].duration_hours
        results.append(AuditFinding(
            type=IssueType.DUPLICATE_MEETINGS,
            severity=Severity.HIGH if estimated_savings > 2 else Severity.MEDIUM,
            title=f"Potential Duplicate Meetings: {group[0].title}",
            description=(
                f"Found {len(group)} similar meetings that might be duplicates. "
                "Consider consolidating them."
            ),
            affected_meetings=[m.id for m in group],
            suggestions=[
                "Review if all instances are necessary",
                "Consolidate duplicate meetings into one",
                "Update recurring meeting settings if needed",
            ],
            estimated_savings=estimated_savings,
        ))

    return results


def detect_overbooked_periods(meetings: list[Meeting]) -> list[AuditFinding]:
    """
    Compare each pair of adjacent meetings (by start time) for overlaps and
    missing buffers.

    Pairs that share a duplicate key are reported by the duplicate detector
    instead of here.
    """
    active = sorted(
        (m for m in meetings if not m.is_cancelled),
        key=lambda m: m.start_time,
    )

    results = []
    for current, following in zip(active, active[1:]):
        if duplicate_key(current) == duplicate_key(following):
            continue

        gap = following.start_time - current.end_time

        if current.end_time > following.start_time:
            results.append(AuditFinding(
                type=IssueType.OVERBOOKED,
                severity=Severity.HIGH,
                title="Overlapping Meetings Detected",
                description=f'Meeting "{current.title}" overlaps with "{following.title}"',
                affected_meetings=[current.id, following.id],
                suggestions=[
                    "Reschedule one of the conflicting meetings",
                    "Reduce duration of the first meeting",
                    "Decline one of the meetings if not essential",
                ],
                estimated_savings=current.duration_hours,
            ))
        elif gap < BACK_TO_BACK_BUFFER:
            minutes = round(gap.total_seconds() / 60)
            results.append(AuditFinding(
                type=IssueType.BACK_TO_BACK,
                severity=Severity.MEDIUM,
                title="Back-to-Back Meetings",
                description=(
                    f'Only {minutes} minutes between "{current.title}" '
                    f'and "{following.title}"'
                ),
                affected_meetings=[current.id, following.id],
                suggestions=[
                    "Add 15-minute buffer between meetings",
                    "End meetings 5 minutes early",
                    "Start meetings 5 minutes late to allow transition time",
                ],
                estimated_savings=BACK_TO_BACK_SAVINGS_HOURS,
            ))

    return results


def detect_meetings_without_agendas(meetings: list[Meeting]) -> list[AuditFinding]:
    without_agenda = [m for m in meetings if not m.has_agenda and not m.is_cancelled]
    if not without_agenda:
        return []

    total_hours = sum(m.duration_hours for m in without_agenda)
    estimated_savings = total_hours * NO_AGENDA_EFFICIENCY_LOSS

    return [AuditFinding(
        type=IssueType.NO_AGENDA_MEETINGS,
        severity=Severity.HIGH if estimated_savings > NO_AGENDA_HIGH_HOURS else Severity.MEDIUM,
        title=f"{len(without_agenda)} Meetings Without Agendas",
        description=(
            "Meetings without clear agendas tend to be 25% less efficient "
            "and often run over time."
        ),
        affected_meetings=[m.id for m in without_agenda],
        suggestions=[
            "Create agendas for all upcoming meetings",
            "Use AI agenda generation for quick setup",
            "Require agendas before scheduling meetings",
            "Send agendas 24 hours before meetings",
        ],
        estimated_savings=estimated_savings,
    )]


def detect_large_meetings(meetings: list[Meeting]) -> list[AuditFinding]:
    results = []
    for meeting in meetings:
        count = meeting.attendee_count
        if meeting.is_cancelled or count <= LARGE_MEETING_MIN_ATTENDEES:
            continue

        hours = meeting.duration_hours
        results.append(AuditFinding(
            type=IssueType.TOO_MANY_ATTENDEES,
            severity=Severity.HIGH if count > LARGE_MEETING_HIGH_ATTENDEES else Severity.MEDIUM,
            title=f"Large Meeting: {meeting.title}",
            description=(
                f"{count} attendees in a {round(meeting.duration_minutes)}-minute meeting. "
                "Consider if all attendees are necessary."
            ),
            affected_meetings=[meeting.id],
            suggestions=[
                "Review attendee list and remove optional participants",
                "Create smaller working groups for detailed discussions",
                "Send summary to non-essential attendees instead",
                "Use asynchronous communication for updates",
            ],
            estimated_savings=(count - OPTIMAL_MEETING_SIZE) * hours,
        ))

    return results


def detect_daily_overload(meetings: list[Meeting]) -> list[AuditFinding]:
    by_day: dict = defaultdict(list)
    for meeting in meetings:
        by_day[meeting.start_time.date()].append(meeting)

    results = []
    for day, day_meetings in by_day.items():
        total_hours = sum(m.duration_hours for m in day_meetings)
        if total_hours <= DAILY_OVERLOAD_HOURS:
            continue

        results.append(AuditFinding(
            type=IssueType.OVERBOOKED,
            severity=Severity.CRITICAL if total_hours > DAILY_CRITICAL_HOURS else Severity.HIGH,
            title=f"Overbooked Day: {day.strftime('%a %b %d %Y')}",
            description=(
                f"{round(total_hours)} hours of meetings scheduled. "
                "This leaves little time for deep work."
            ),
            affected_meetings=[m.id for m in day_meetings],
            suggestions=[
                "Move some meetings to other days",
                "Cancel or delegate non-essential meetings",
                "Block time for focused work",
                'Implement "No Meeting Fridays" or similar policies',
            ],
            estimated_savings=max(total_hours - DAILY_TARGET_HOURS, 0),
        ))

    return results


def detect_recurring_meeting_fatigue(meetings: list[Meeting]) -> list[AuditFinding]:
    groups: dict[str, list[Meeting]] = defaultdict(list)
    for meeting in meetings:
        if meeting.is_recurring:
            groups[meeting.recurrence_id or meeting.title].append(meeting)

    results = []
    for group in groups.values():
        if len(group) < RECURRING_MIN_OCCURRENCES:
            continue

        # First occurrence stands in for the weekly cost
        weekly_hours = group[0].duration_hours
        results.append(AuditFinding(
            type=IssueType.RECURRING_MEETING_REVIEW,
            severity=Severity.MEDIUM if weekly_hours > RECURRING_MEDIUM_HOURS else Severity.LOW,
            title=f"Recurring Meeting Review: {group[0].title}",
            description=(
                f"This meeting recurs {len(group)} times. "
                "Consider if the frequency is still necessary."
            ),
            affected_meetings=[m.id for m in group],
            suggestions=[
                "Review if all instances are still needed",
                "Reduce frequency (weekly to bi-weekly)",
                "Shorten meeting duration",
                "Make some attendees optional",
                "Switch to asynchronous updates when possible",
            ],
            estimated_savings=weekly_hours * RECURRING_REDUCTION,
        ))

    return results


def detect_long_meetings(meetings: list[Meeting]) -> list[AuditFinding]:
    results = []
    for meeting in meetings:
        minutes = meeting.duration_minutes
        if minutes <= LONG_MEETING_MINUTES:
            continue

        hours = meeting.duration_hours
        results.append(AuditFinding(
            type=IssueType.LONG_MEETING,
            severity=Severity.HIGH if minutes > LONG_MEETING_HIGH_MINUTES else Severity.MEDIUM,
            title=f"Long Meeting: {meeting.title}",
            description=f"{round(minutes)}-minute meeting. Consider breaking into smaller sessions.",
            affected_meetings=[meeting.id],
            suggestions=[
                "Break into multiple shorter sessions",
                "Create pre-work to reduce discussion time",
                "Use time boxing for agenda items",
                "Consider if all attendees need to be present for entire duration",
            ],
            estimated_savings=max(hours - 1, 0) * LONG_MEETING_SAVED_FRACTION,
        ))

    return results


DETECTORS: list[Callable[[list[Meeting]], list[AuditFinding]]] = [
    detect_duplicate_meetings,
    detect_overbooked_periods,
    detect_meetings_without_agendas,
    detect_large_meetings,
    detect_daily_overload,
    detect_recurring_meeting_fatigue,
    detect_long_meetings,
]


def run_detectors(meetings: list[Meeting]) -> list[AuditFinding]:
    """Run every detector over the same input and concatenate the findings."""
    findings = []
    for detector in DETECTORS:
        findings.extend(detector(meetings))
    return findings
