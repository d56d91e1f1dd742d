"""
Storage interface for users, meetings, flags and weekly statistics.

Two implementations exist: SupabaseDataSource (supabase_client.py) for real
accounts and DemoDataSource (demo_data.py), an in-memory store seeded with
synthetic meetings. Which one is used is decided once, from Settings, in
dependencies.get_data_source().
"""

from abc import ABC, abstractmethod
from datetime import datetime, timezone
from typing import Optional

from models import (
    Agenda,
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


class DataSourceError(Exception):
    """The store could not be read or written."""


class NotFoundError(DataSourceError):
    """A user, meeting, flag or agenda does not exist (or isn't the caller's)."""


class AlreadyResolvedError(DataSourceError):
    """The flag was resolved before."""


class DataSource(ABC):
    """Async store contract shared by the real and demo backends."""

    name = "abstract"

    # ---- users & tokens ----

    @abstractmethod
    async def get_user(self, user_id: str) -> Optional[UserProfile]:
        ...

    @abstractmethod
    async def upsert_user(self, user: UserProfile) -> UserProfile:
        ...

    @abstractmethod
    async def list_users_with_google(self) -> list[str]:
        ...

    @abstractmethod
    async def store_oauth_token(self, token: OAuthToken) -> None:
        ...

    @abstractmethod
    async def get_oauth_token(self, user_id: str, provider: str) -> Optional[OAuthToken]:
        ...

    @abstractmethod
    async def delete_oauth_token(self, user_id: str, provider: str) -> None:
        ...

    # ---- meetings ----

    @abstractmethod
    async def list_meetings(
        self,
        user_id: str,
        start: Optional[datetime] = None,
        end: Optional[datetime] = None,
        status: Optional[MeetingStatus] = None,
        include_flags: bool = True,
        unresolved_flags_only: bool = False,
    ) -> list[Meeting]:
        """Meetings organized by the user, ordered by start time, attendees attached."""

    @abstractmethod
    async def get_meeting(self, user_id: str, meeting_id: str) -> Optional[Meeting]:
        ...

    @abstractmethod
    async def upsert_meeting(self, meeting: Meeting) -> Meeting:
        """
        Insert or replace a meeting.

        Meetings with an external_id are matched on (organizer_id, external_id)
        so re-syncing a calendar never creates duplicates; the stored id is
        kept and attendees are replaced. A stored attended_count survives an
        incoming None, and has_agenda stays True while the meeting has an
        active agenda.
        """

    @abstractmethod
    async def update_meeting(self, user_id: str, meeting_id: str, **changes) -> Meeting:
        ...

    # ---- flags ----

    @abstractmethod
    async def create_flag(
        self,
        meeting_id: str,
        user_id: str,
        issue_type: IssueType,
        description: str,
        severity: Severity = Severity.MEDIUM,
        auto_detected: bool = True,
    ) -> Flag:
        ...

    @abstractmethod
    async def resolve_flag(self, user_id: str, meeting_id: str, flag_id: str) -> Flag:
        """Mark an unresolved flag resolved. Raises AlreadyResolvedError otherwise."""

    @abstractmethod
    async def clear_auto_flags(self, user_id: str) -> int:
        """Delete the user's auto-detected flags; manual flags are kept."""

    # ---- weekly stats ----

    @abstractmethod
    async def get_weekly_stat(self, user_id: str, week: datetime) -> Optional[WeeklyStat]:
        ...

    @abstractmethod
    async def list_weekly_stats(
        self,
        user_id: str,
        start: datetime,
        end: Optional[datetime] = None,
    ) -> list[WeeklyStat]:
        ...

    @abstractmethod
    async def save_weekly_stat(self, stat: WeeklyStat) -> WeeklyStat:
        """Upsert keyed by (user_id, week_start)."""

    # ---- audit results ----

    @abstractmethod
    async def save_audit_results(self, user_id: str, findings: list[AuditFinding]) -> None:
        """Replace the user's latest audit results."""

    @abstractmethod
    async def get_audit_results(self, user_id: str) -> list[AuditFinding]:
        ...

    # ---- agendas & summaries ----

    @abstractmethod
    async def save_agenda(self, agenda: Agenda) -> Agenda:
        """Store a new active agenda, deactivating the meeting's previous one."""

    @abstractmethod
    async def get_active_agenda(self, user_id: str, meeting_id: str) -> Optional[Agenda]:
        ...

    @abstractmethod
    async def update_agenda(self, user_id: str, meeting_id: str, agenda_id: str, **changes) -> Agenda:
        ...

    @abstractmethod
    async def save_summary(self, summary: MeetingSummary) -> MeetingSummary:
        ...

    @abstractmethod
    async def list_summaries(self, user_id: str, meeting_id: Optional[str] = None) -> list[MeetingSummary]:
        ...

    # ---- shared helpers built on the primitives above ----

    async def require_meeting(self, user_id: str, meeting_id: str) -> Meeting:
        meeting = await self.get_meeting(user_id, meeting_id)
        if not meeting:
            raise NotFoundError(f"Meeting {meeting_id} not found")
        return meeting

    async def _weekly_stat_for(self, user_id: str, moment: Optional[datetime]) -> WeeklyStat:
        week = week_start(moment or datetime.now(timezone.utc))
        stat = await self.get_weekly_stat(user_id, week)
        return stat or WeeklyStat(user_id=user_id, week_start=week)

    async def set_weekly_snapshot(
        self,
        user_id: str,
        moment: Optional[datetime] = None,
        **fields,
    ) -> WeeklyStat:
        """Overwrite snapshot fields (meeting hours, flagged count, potential savings)."""
        stat = await self._weekly_stat_for(user_id, moment)
        return await self.save_weekly_stat(stat.model_copy(update=fields))

    async def increment_weekly_stat(
        self,
        user_id: str,
        moment: Optional[datetime] = None,
        hours_saved: float = 0.0,
        meetings_cancelled: int = 0,
    ) -> WeeklyStat:
        """Accumulate realized savings. These counters only ever grow."""
        stat = await self._weekly_stat_for(user_id, moment)
        return await self.save_weekly_stat(stat.model_copy(update={
            "hours_saved": stat.hours_saved + max(hours_saved, 0.0),
            "meetings_cancelled": stat.meetings_cancelled + max(meetings_cancelled, 0),
        }))
