"""Demo data source: an in-memory store seeded with synthetic meetings."""

import uuid
from datetime import datetime, timedelta, timezone
from typing import Optional

from data_source import AlreadyResolvedError, DataSource, NotFoundError
from models import (
    Agenda,
    Attendee,
    AuditFinding,
    Flag,
    IssueType,
    Meeting,
    MeetingStatus,
    MeetingSummary,
    OAuthToken,
    Severity,
    UserProfile,
    WeeklyStat,
)
from audit.weeks import week_start

DEMO_ATTENDEE_EMAILS = [
    "sarah@company.com",
    "mike@company.com",
    "jessica@company.com",
    "david@company.com",
    "lisa@company.com",
    "tom@company.com",
    "anna@company.com",
    "chris@company.com",
]

# (weekday, start hour, duration hours, title, description, has_agenda, invitees)
DEMO_WEEK_TEMPLATE = [
    (0, 9, 0.5, "Weekly Team Standup", "Quick sync on weekly progress and blockers", True, 6),
    (0, 14, 2, "Q1 Product Planning Session", "Planning session for Q1 product roadmap", False, 15),
    (1, 10, 0.5, "1:1 with Sarah (Engineering)", "Weekly 1:1 check-in", True, 2),
    (1, 10.5, 1, "Design Review - Mobile App", "Review new mobile app designs", False, 8),
    (2, 15, 1, "All Hands Meeting", "Monthly company update", True, 45),
    (3, 9, 2, "Sprint Planning", "Planning for next 2-week sprint", True, 8),
    (3, 14, 1, "Sprint Planning Follow-up", "Additional planning discussion", False, 8),
    (4, 16, 1, "Sprint Demo", "Demo of completed work", True, 12),
]


def _demo_attendees(count: int) -> list[Attendee]:
    return [
        Attendee(email=email, name=email.split("@")[0], response_status="accepted")
        for email in DEMO_ATTENDEE_EMAILS[:count]
    ]


def get_demo_meetings(
    user_id: str,
    now: Optional[datetime] = None,
    weeks_back: int = 4,
    weeks_ahead: int = 1,
) -> list[Meeting]:
    """Generate the demo week template for past and upcoming weeks."""
    now = now or datetime.now(timezone.utc)
    this_monday = week_start(now)
    meetings = []

    for offset in range(-weeks_back + 1, weeks_ahead + 1):
        monday = this_monday + timedelta(weeks=offset)
        for index, (weekday, hour, hours, title, description, has_agenda, invitees) in enumerate(DEMO_WEEK_TEMPLATE):
            start = monday + timedelta(days=weekday, hours=hour)
            end = start + timedelta(hours=hours)
            meetings.append(Meeting(
                id=f"demo-{offset + weeks_back}-{index}",
                external_id=f"demo-event-{offset + weeks_back}-{index}",
                title=title,
                description=description,
                start_time=start,
                end_time=end,
                organizer_id=user_id,
                organizer="demo@stopmeet.com",
                is_recurring=True,
                recurrence_id=f"demo-series-{index}",
                invitee_count=invitees,
                attendees=_demo_attendees(invitees),
                has_agenda=has_agenda,
                status=MeetingStatus.COMPLETED if end < now else MeetingStatus.SCHEDULED,
            ))

    return meetings


class DemoDataSource(DataSource):
    """
    In-memory DataSource.

    Used when Settings.data_source is "demo" and by the test-suite. Everything
    lives in dicts on the instance, so each instance is an isolated store.
    """

    name = "demo"

    def __init__(self, user_id: str = "demo-user", seed: bool = True, now: Optional[datetime] = None):
        self.users: dict[str, UserProfile] = {}
        self.tokens: dict[tuple[str, str], OAuthToken] = {}
        self.meetings: dict[str, Meeting] = {}
        self.flags: dict[str, Flag] = {}
        self.weekly_stats: dict[tuple[str, datetime], WeeklyStat] = {}
        self.audit_results: dict[str, list[AuditFinding]] = {}
        self.agendas: dict[str, Agenda] = {}
        self.summaries: dict[str, MeetingSummary] = {}

        if seed:
            self._seed(user_id, now or datetime.now(timezone.utc))

    def _seed(self, user_id: str, now: datetime) -> None:
        self.users[user_id] = UserProfile(
            id=user_id,
            email="demo@stopmeet.com",
            name="Demo User",
            average_hourly_cost=75,
            google_connected=True,
        )
        for meeting in get_demo_meetings(user_id, now):
            self.meetings[meeting.id] = meeting

        for week_offset in range(4):
            week = week_start(now) - timedelta(weeks=week_offset)
            week_meetings = [
                m for m in self.meetings.values()
                if week_start(m.start_time) == week
            ]
            flagged = [m for m in week_meetings if not m.has_agenda]
            self.weekly_stats[(user_id, week)] = WeeklyStat(
                user_id=user_id,
                week_start=week,
                total_meeting_hours=sum(m.duration_hours for m in week_meetings),
                hours_saved=len(flagged) * 0.5,
                meetings_flagged=len(flagged),
                meetings_cancelled=int(len(flagged) * 0.3),
            )

    # ---- users & tokens ----

    async def get_user(self, user_id: str) -> Optional[UserProfile]:
        return self.users.get(user_id)

    async def upsert_user(self, user: UserProfile) -> UserProfile:
        self.users[user.id] = user
        return user

    async def list_users_with_google(self) -> list[str]:
        connected = {user_id for (user_id, provider) in self.tokens if provider == "google"}
        connected.update(u.id for u in self.users.values() if u.google_connected)
        return sorted(connected)

    async def store_oauth_token(self, token: OAuthToken) -> None:
        self.tokens[(token.user_id, token.provider)] = token

    async def get_oauth_token(self, user_id: str, provider: str) -> Optional[OAuthToken]:
        return self.tokens.get((user_id, provider))

    async def delete_oauth_token(self, user_id: str, provider: str) -> None:
        self.tokens.pop((user_id, provider), None)

    # ---- meetings ----

    def _with_flags(self, meeting: Meeting, unresolved_only: bool = False) -> Meeting:
        flags = [
            f for f in self.flags.values()
            if f.meeting_id == meeting.id and not (unresolved_only and f.resolved)
        ]
        return meeting.model_copy(update={"flags": flags})

    async def list_meetings(
        self,
        user_id: str,
        start: Optional[datetime] = None,
        end: Optional[datetime] = None,
        status: Optional[MeetingStatus] = None,
        include_flags: bool = True,
        unresolved_flags_only: bool = False,
    ) -> list[Meeting]:
        result = []
        for meeting in self.meetings.values():
            if meeting.organizer_id != user_id:
                continue
            if start and meeting.start_time < start:
                continue
            if end and meeting.start_time > end:
                continue
            if status and meeting.status != status:
                continue
            if include_flags:
                meeting = self._with_flags(meeting, unresolved_flags_only)
            result.append(meeting)

        return sorted(result, key=lambda m: m.start_time)

    async def get_meeting(self, user_id: str, meeting_id: str) -> Optional[Meeting]:
        meeting = self.meetings.get(meeting_id)
        if not meeting or meeting.organizer_id != user_id:
            return None
        return self._with_flags(meeting)

    async def upsert_meeting(self, meeting: Meeting) -> Meeting:
        if meeting.external_id:
            for existing in self.meetings.values():
                if (
                    existing.organizer_id == meeting.organizer_id
                    and existing.external_id == meeting.external_id
                ):
                    meeting = meeting.model_copy(update={
                        "id": existing.id,
                        "attended_count": (
                            meeting.attended_count
                            if meeting.attended_count is not None
                            else existing.attended_count
                        ),
                    })
                    break

        # A generated agenda outlives a calendar description without one
        if not meeting.has_agenda and any(
            a.meeting_id == meeting.id and a.user_id == meeting.organizer_id and a.is_active
            for a in self.agendas.values()
        ):
            meeting = meeting.model_copy(update={"has_agenda": True})

        stored = meeting.model_copy(update={"flags": []})
        self.meetings[stored.id] = stored
        return self._with_flags(stored)

    async def update_meeting(self, user_id: str, meeting_id: str, **changes) -> Meeting:
        meeting = self.meetings.get(meeting_id)
        if not meeting or meeting.organizer_id != user_id:
            raise NotFoundError(f"Meeting {meeting_id} not found")

        updated = meeting.model_copy(update=changes)
        self.meetings[meeting_id] = updated
        return self._with_flags(updated)

    # ---- flags ----

    async def create_flag(
        self,
        meeting_id: str,
        user_id: str,
        issue_type: IssueType,
        description: str,
        severity: Severity = Severity.MEDIUM,
        auto_detected: bool = True,
    ) -> Flag:
        flag = Flag(
            id=str(uuid.uuid4()),
            meeting_id=meeting_id,
            user_id=user_id,
            issue_type=issue_type,
            description=description,
            severity=severity,
            auto_detected=auto_detected,
            created_at=datetime.now(timezone.utc),
        )
        self.flags[flag.id] = flag
        return flag

    async def resolve_flag(self, user_id: str, meeting_id: str, flag_id: str) -> Flag:
        flag = self.flags.get(flag_id)
        if not flag or flag.user_id != user_id or flag.meeting_id != meeting_id:
            raise NotFoundError(f"Flag {flag_id} not found")
        if flag.resolved:
            raise AlreadyResolvedError(f"Flag {flag_id} is already resolved")

        resolved = flag.model_copy(update={
            "resolved": True,
            "resolved_at": datetime.now(timezone.utc),
        })
        self.flags[flag_id] = resolved
        return resolved

    async def clear_auto_flags(self, user_id: str) -> int:
        doomed = [
            flag_id for flag_id, flag in self.flags.items()
            if flag.user_id == user_id and flag.auto_detected
        ]
        for flag_id in doomed:
            del self.flags[flag_id]
        return len(doomed)

    # ---- weekly stats ----

    async def get_weekly_stat(self, user_id: str, week: datetime) -> Optional[WeeklyStat]:
        return self.weekly_stats.get((user_id, week_start(week)))

    async def list_weekly_stats(
        self,
        user_id: str,
        start: datetime,
        end: Optional[datetime] = None,
    ) -> list[WeeklyStat]:
        stats = [
            stat for (owner, week), stat in self.weekly_stats.items()
            if owner == user_id and week >= start and (end is None or week <= end)
        ]
        return sorted(stats, key=lambda s: s.week_start)

    async def save_weekly_stat(self, stat: WeeklyStat) -> WeeklyStat:
        stat = stat.model_copy(update={"week_start": week_start(stat.week_start)})
        self.weekly_stats[(stat.user_id, stat.week_start)] = stat
        return stat

    # ---- audit results ----

    async def save_audit_results(self, user_id: str, findings: list[AuditFinding]) -> None:
        self.audit_results[user_id] = list(findings)

    async def get_audit_results(self, user_id: str) -> list[AuditFinding]:
        return list(self.audit_results.get(user_id, []))

    # ---- agendas & summaries ----

    async def save_agenda(self, agenda: Agenda) -> Agenda:
        for agenda_id, existing in self.agendas.items():
            if existing.meeting_id == agenda.meeting_id and existing.user_id == agenda.user_id:
                self.agendas[agenda_id] = existing.model_copy(update={"is_active": False})

        agenda = agenda.model_copy(update={
            "is_active": True,
            "created_at": agenda.created_at or datetime.now(timezone.utc),
        })
        self.agendas[agenda.id] = agenda
        return agenda

    async def get_active_agenda(self, user_id: str, meeting_id: str) -> Optional[Agenda]:
        for agenda in self.agendas.values():
            if agenda.meeting_id == meeting_id and agenda.user_id == user_id and agenda.is_active:
                return agenda
        return None

    async def update_agenda(self, user_id: str, meeting_id: str, agenda_id: str, **changes) -> Agenda:
        agenda = self.agendas.get(agenda_id)
        if not agenda or agenda.user_id != user_id or agenda.meeting_id != meeting_id:
            raise NotFoundError(f"Agenda {agenda_id} not found")

        updated = agenda.model_copy(update={k: v for k, v in changes.items() if v is not None})
        self.agendas[agenda_id] = updated
        return updated

    async def save_summary(self, summary: MeetingSummary) -> MeetingSummary:
        summary = summary.model_copy(update={
            "created_at": summary.created_at or datetime.now(timezone.utc),
        })
        self.summaries[summary.id] = summary
        return summary

    async def list_summaries(self, user_id: str, meeting_id: Optional[str] = None) -> list[MeetingSummary]:
        summaries = [
            s for s in self.summaries.values()
            if s.user_id == user_id and (meeting_id is None or s.meeting_id == meeting_id)
        ]
        return sorted(summaries, key=lambda s: s.created_at, reverse=True)
