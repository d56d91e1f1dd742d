"""Tests for the calendar audit detectors."""

from datetime import timedelta

import pytest

from audit.detectors import (
    detect_daily_overload,
    detect_duplicate_meetings,
    detect_large_meetings,
    detect_long_meetings,
    detect_meetings_without_agendas,
    detect_overbooked_periods,
    detect_recurring_meeting_fatigue,
    normalize_title,
    run_detectors,
)
from models import IssueType, Meeting, MeetingStatus, Severity
from conftest import MONDAY, make_meeting


def at(day: int, hour: int, minute: int = 0):
    return MONDAY + timedelta(days=day, hours=hour, minutes=minute)


class TestRunDetectors:
    def test_empty_calendar_has_no_findings(self):
        assert run_detectors([]) == []

    def test_standup_scenario(self):
        meetings = [
            make_meeting("a", "Standup", at(0, 9), 30, attendees=6, has_agenda=False),
            make_meeting("b", "Standup Sync", at(0, 9), 30, attendees=6, has_agenda=False),
            make_meeting("c", "1:1", at(1, 10), 30, attendees=2, has_agenda=True),
        ]

        findings = run_detectors(meetings)

        assert [f.type for f in findings] == [
            IssueType.DUPLICATE_MEETINGS,
            IssueType.NO_AGENDA_MEETINGS,
        ]
        duplicate, no_agenda = findings
        assert sorted(duplicate.affected_meetings) == ["a", "b"]
        assert duplicate.estimated_savings == pytest.approx(0.5)
        assert sorted(no_agenda.affected_meetings) == ["a", "b"]
        assert no_agenda.estimated_savings == pytest.approx(0.25)

    def test_findings_follow_detector_order(self):
        meetings = [
            make_meeting("long", "Strategy offsite", at(0, 9), 240, attendees=20, has_agenda=False),
        ]

        types = [f.type for f in run_detectors(meetings)]

        assert types == [
            IssueType.NO_AGENDA_MEETINGS,
            IssueType.TOO_MANY_ATTENDEES,
            IssueType.LONG_MEETING,
        ]


class TestDuplicates:
    def test_normalize_title_drops_digits_and_filler(self):
        assert normalize_title("Weekly Standup 2") == "standup"
        assert normalize_title("  Design   Review ") == "design review"

    def test_groups_partition_meetings(self):
        meetings = [
            make_meeting("a", "Planning", at(0, 14), 60),
            make_meeting("b", "Planning", at(7, 14), 60),
            make_meeting("c", "Planning 2", at(14, 14), 60),
            make_meeting("d", "Retro", at(0, 14), 60),
        ]

        findings = detect_duplicate_meetings(meetings)

        assert len(findings) == 1
        assert findings[0].affected_meetings == ["a", "b", "c"]
        assert findings[0].estimated_savings == pytest.approx(2.0)
        assert findings[0].severity == Severity.MEDIUM

        seen = [m for f in findings for m in f.affected_meetings]
        assert len(seen) == len(set(seen))

    def test_large_savings_is_high_severity(self):
        meetings = [make_meeting(str(i), "Review", at(7 * i, 9), 90) for i in range(3)]

        finding = detect_duplicate_meetings(meetings)[0]

        assert finding.estimated_savings == pytest.approx(3.0)
        assert finding.severity == Severity.HIGH

    def test_different_hour_is_not_a_duplicate(self):
        meetings = [
            make_meeting("a", "Planning", at(0, 9)),
            make_meeting("b", "Planning", at(0, 10)),
        ]

        assert detect_duplicate_meetings(meetings) == []


class TestOverbooked:
    def test_overlap(self):
        meetings = [
            make_meeting("a", "Design", at(0, 9), 60),
            make_meeting("b", "Budget", at(0, 9, 30), 30),
        ]

        findings = detect_overbooked_periods(meetings)

        assert len(findings) == 1
        assert findings[0].type == IssueType.OVERBOOKED
        assert findings[0].severity == Severity.HIGH
        assert findings[0].affected_meetings == ["a", "b"]
        assert findings[0].estimated_savings == pytest.approx(1.0)

    def test_back_to_back(self):
        meetings = [
            make_meeting("b", "Budget", at(0, 9, 35), 30),
            make_meeting("a", "Design", at(0, 9), 30),
        ]

        findings = detect_overbooked_periods(meetings)

        assert len(findings) == 1
        assert findings[0].type == IssueType.BACK_TO_BACK
        assert findings[0].severity == Severity.MEDIUM
        assert findings[0].affected_meetings == ["a", "b"]
        assert findings[0].estimated_savings == pytest.approx(0.25)
        assert "Only 5 minutes" in findings[0].description

    def test_fifteen_minute_gap_is_fine(self):
        meetings = [
            make_meeting("a", "Design", at(0, 9), 30),
            make_meeting("b", "Budget", at(0, 9, 45), 30),
        ]

        assert detect_overbooked_periods(meetings) == []

    def test_only_adjacent_pairs_are_compared(self):
        meetings = [
            make_meeting("a", "Workshop", at(0, 9), 180),
            make_meeting("b", "Quick check", at(0, 9, 30), 15),
            make_meeting("c", "Interview", at(0, 10), 30),
        ]

        findings = detect_overbooked_periods(meetings)

        # a overlaps c as well, but they are not adjacent
        assert [f.affected_meetings for f in findings] == [["a", "b"]]

    def test_cancelled_meetings_are_ignored(self):
        meetings = [
            make_meeting("a", "Design", at(0, 9), 60),
            make_meeting("b", "Budget", at(0, 9, 30), 30, status=MeetingStatus.CANCELLED),
        ]

        assert detect_overbooked_periods(meetings) == []


class TestNoAgenda:
    def test_savings_is_quarter_of_hours(self):
        meetings = [
            make_meeting("a", "One", at(0, 9), 60, has_agenda=False),
            make_meeting("b", "Two", at(1, 9), 120, has_agenda=False),
            make_meeting("c", "Three", at(2, 9), 60, has_agenda=True),
        ]

        findings = detect_meetings_without_agendas(meetings)

        assert len(findings) == 1
        assert findings[0].affected_meetings == ["a", "b"]
        assert findings[0].estimated_savings == pytest.approx(0.75)
        assert findings[0].severity == Severity.MEDIUM

    def test_high_severity_above_five_hours(self):
        meetings = [make_meeting(str(i), f"Session {i}", at(i, 9), 420, has_agenda=False) for i in range(3)]

        finding = detect_meetings_without_agendas(meetings)[0]

        assert finding.estimated_savings == pytest.approx(5.25)
        assert finding.severity == Severity.HIGH

    def test_all_with_agenda(self):
        assert detect_meetings_without_agendas([make_meeting("a")]) == []


class TestLargeMeetings:
    def test_eight_attendees_is_fine(self):
        assert detect_large_meetings([make_meeting("a", attendees=8)]) == []

    def test_nine_attendees(self):
        findings = detect_large_meetings([make_meeting("a", minutes=60, attendees=9)])

        assert len(findings) == 1
        assert findings[0].type == IssueType.TOO_MANY_ATTENDEES
        assert findings[0].severity == Severity.MEDIUM
        assert findings[0].estimated_savings == pytest.approx(3.0)

    def test_more_than_fifteen_is_high(self):
        findings = detect_large_meetings([make_meeting("a", minutes=30, attendees=16)])

        assert findings[0].severity == Severity.HIGH
        assert findings[0].estimated_savings == pytest.approx(5.0)

    def test_falls_back_to_invitee_count(self):
        meeting = Meeting(
            id="a",
            title="Town hall",
            start_time=at(0, 9),
            end_time=at(0, 10),
            organizer_id="user-1",
            invitee_count=12,
        )

        assert len(detect_large_meetings([meeting])) == 1

    def test_cancelled_is_ignored(self):
        meeting = make_meeting("a", attendees=20, status=MeetingStatus.CANCELLED)

        assert detect_large_meetings([meeting]) == []


class TestDailyOverload:
    def test_exactly_six_hours_is_fine(self):
        assert detect_daily_overload([make_meeting("a", minutes=360)]) == []

    def test_just_over_six_hours(self):
        findings = detect_daily_overload([make_meeting("a", minutes=360.6)])

        assert len(findings) == 1
        assert findings[0].type == IssueType.OVERBOOKED
        assert findings[0].severity == Severity.HIGH
        assert findings[0].estimated_savings == pytest.approx(2.01)

    def test_more_than_eight_hours_is_critical(self):
        meetings = [
            make_meeting("a", "Morning", at(0, 8), 300),
            make_meeting("b", "Afternoon", at(0, 13), 240),
        ]

        findings = detect_daily_overload(meetings)

        assert findings[0].severity == Severity.CRITICAL
        assert findings[0].affected_meetings == ["a", "b"]
        assert findings[0].estimated_savings == pytest.approx(5.0)

    def test_days_are_separate(self):
        meetings = [
            make_meeting("a", "Monday", at(0, 9), 240),
            make_meeting("b", "Tuesday", at(1, 9), 240),
        ]

        assert detect_daily_overload(meetings) == []


class TestRecurringFatigue:
    def test_four_occurrences(self):
        meetings = [
            make_meeting(str(i), "Sync", at(7 * i, 9), 60, is_recurring=True, recurrence_id="series")
            for i in range(4)
        ]

        findings = detect_recurring_meeting_fatigue(meetings)

        assert len(findings) == 1
        assert findings[0].type == IssueType.RECURRING_MEETING_REVIEW
        assert findings[0].severity == Severity.LOW
        assert findings[0].estimated_savings == pytest.approx(0.3)

    def test_three_occurrences_is_fine(self):
        meetings = [
            make_meeting(str(i), "Sync", at(7 * i, 9), 60, is_recurring=True, recurrence_id="series")
            for i in range(3)
        ]

        assert detect_recurring_meeting_fatigue(meetings) == []

    def test_groups_by_title_without_recurrence_id(self):
        meetings = [
            make_meeting(str(i), "Board prep", at(7 * i, 9), 150, is_recurring=True)
            for i in range(5)
        ]

        findings = detect_recurring_meeting_fatigue(meetings)

        assert len(findings[0].affected_meetings) == 5
        assert findings[0].severity == Severity.MEDIUM

    def test_non_recurring_is_ignored(self):
        meetings = [make_meeting(str(i), "Sync", at(7 * i, 9)) for i in range(6)]

        assert detect_recurring_meeting_fatigue(meetings) == []


class TestLongMeetings:
    def test_ninety_minutes_is_fine(self):
        assert detect_long_meetings([make_meeting("a", minutes=90)]) == []

    def test_two_hour_meeting(self):
        findings = detect_long_meetings([make_meeting("a", minutes=120)])

        assert findings[0].type == IssueType.LONG_MEETING
        assert findings[0].severity == Severity.MEDIUM
        assert findings[0].estimated_savings == pytest.approx(0.5)

    def test_over_three_hours_is_high(self):
        findings = detect_long_meetings([make_meeting("a", minutes=181)])

        assert findings[0].severity == Severity.HIGH
