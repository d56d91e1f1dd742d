from supabase import create_client, Client
from config import get_settings
from cryptography.fernet import Fernet
import base64
import hashlib
import logging
import uuid
from typing import Optional
from datetime import datetime, timezone

from data_source import AlreadyResolvedError, DataSource, DataSourceError, NotFoundError
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

logger = logging.getLogger(__name__)


def get_encryption_key(secret_key: str) -> bytes:
    """Derive a Fernet-compatible key from the secret key."""
    key = hashlib.sha256(secret_key.encode()).digest()
    return base64.urlsafe_b64encode(key)


def encrypt_token(token: str, secret_key: str) -> str:
    """Encrypt a token for storage."""
    f = Fernet(get_encryption_key(secret_key))
    return f.encrypt(token.encode()).decode()


def decrypt_token(encrypted_token: str, secret_key: str) -> str:
    """Decrypt a stored token."""
    f = Fernet(get_encryption_key(secret_key))
    return f.decrypt(encrypted_token.encode()).decode()


def get_supabase_admin_client() -> Client:
    """Get the Supabase admin client with service key."""
    settings = get_settings()
    return create_client(settings.supabase_url, settings.supabase_service_key)


def _execute(query, action: str) -> list[dict]:
    """Run a query builder, turning any client failure into DataSourceError."""
    try:
        result = query.execute()
    except Exception as e:
        logger.error(f"Supabase error while trying to {action}: {e}")
        raise DataSourceError(f"Failed to {action}") from e
    return result.data or []


class SupabaseDataSource(DataSource):
    """
    DataSource backed by Supabase tables.

    Tables: users, oauth_tokens, meetings, attendees, meeting_flags,
    weekly_stats, audit_results, agendas, summaries. Column names match the
    pydantic model field names.
    """

    name = "supabase"

    def __init__(self, client: Optional[Client] = None, secret_key: Optional[str] = None):
        # Admin client bypasses RLS; every query below filters by user explicitly
        self.client = client or get_supabase_admin_client()
        self.secret_key = secret_key or get_settings().secret_key

    # ---- users & tokens ----

    async def get_user(self, user_id: str) -> Optional[UserProfile]:
        rows = _execute(
            self.client.table("users").select("*").eq("id", user_id),
            "load user",
        )
        if not rows:
            return None

        providers = _execute(
            self.client.table("oauth_tokens").select("provider").eq("user_id", user_id),
            "load connection status",
        )
        return UserProfile(
            **rows[0],
            google_connected=any(r["provider"] == "google" for r in providers),
        )

    async def upsert_user(self, user: UserProfile) -> UserProfile:
        _execute(
            self.client.table("users").upsert(
                user.model_dump(mode="json", exclude={"google_connected"}),
                on_conflict="id",
            ),
            "save user",
        )
        return user

    async def list_users_with_google(self) -> list[str]:
        rows = _execute(
            self.client.table("oauth_tokens").select("user_id").eq("provider", "google"),
            "list connected users",
        )
        return sorted(set(r["user_id"] for r in rows))

    async def store_oauth_token(self, token: OAuthToken) -> None:
        data = {
            "user_id": token.user_id,
            "provider": token.provider,
            "access_token": encrypt_token(token.access_token, self.secret_key),
            "refresh_token": encrypt_token(token.refresh_token, self.secret_key) if token.refresh_token else None,
            "expires_at": token.expires_at.isoformat() if token.expires_at else None,
            "updated_at": datetime.now(timezone.utc).isoformat(),
        }
        _execute(
            self.client.table("oauth_tokens").upsert(data, on_conflict="user_id,provider"),
            "store OAuth token",
        )

    async def get_oauth_token(self, user_id: str, provider: str) -> Optional[OAuthToken]:
        rows = _execute(
            self.client.table("oauth_tokens").select("*").eq("user_id", user_id).eq("provider", provider),
            "load OAuth token",
        )
        if not rows:
            return None

        data = rows[0]
        return OAuthToken(
            user_id=data["user_id"],
            provider=data["provider"],
            access_token=decrypt_token(data["access_token"], self.secret_key),
            refresh_token=decrypt_token(data["refresh_token"], self.secret_key) if data.get("refresh_token") else None,
            expires_at=datetime.fromisoformat(data["expires_at"]) if data.get("expires_at") else None,
        )

    async def delete_oauth_token(self, user_id: str, provider: str) -> None:
        _execute(
            self.client.table("oauth_tokens").delete().eq("user_id", user_id).eq("provider", provider),
            "delete OAuth token",
        )

    # ---- meetings ----

    def _attach(
        self,
        rows: list[dict],
        include_flags: bool = True,
        unresolved_flags_only: bool = False,
    ) -> list[Meeting]:
        if not rows:
            return []

        ids = [r["id"] for r in rows]
        attendee_rows = _execute(
            self.client.table("attendees").select("*").in_("meeting_id", ids),
            "load attendees",
        )
        flag_rows = []
        if include_flags:
            query = self.client.table("meeting_flags").select("*").in_("meeting_id", ids)
            if unresolved_flags_only:
                query = query.eq("resolved", False)
            flag_rows = _execute(query, "load flags")

        meetings = []
        for row in rows:
            meetings.append(Meeting.model_validate({
                **row,
                "attendees": [Attendee.model_validate(a) for a in attendee_rows if a["meeting_id"] == row["id"]],
                "flags": [Flag.model_validate(f) for f in flag_rows if f["meeting_id"] == row["id"]],
            }))
        return meetings

    async def list_meetings(
        self,
        user_id: str,
        start: Optional[datetime] = None,
        end: Optional[datetime] = None,
        status: Optional[MeetingStatus] = None,
        include_flags: bool = True,
        unresolved_flags_only: bool = False,
    ) -> list[Meeting]:
        query = self.client.table("meetings").select("*").eq("organizer_id", user_id)
        if start:
            query = query.gte("start_time", start.isoformat())
        if end:
            query = query.lte("start_time", end.isoformat())
        if status:
            query = query.eq("status", status.value)

        rows = _execute(query.order("start_time"), "load meetings")
        return self._attach(rows, include_flags, unresolved_flags_only)

    async def get_meeting(self, user_id: str, meeting_id: str) -> Optional[Meeting]:
        rows = _execute(
            self.client.table("meetings").select("*").eq("id", meeting_id).eq("organizer_id", user_id),
            "load meeting",
        )
        meetings = self._attach(rows)
        return meetings[0] if meetings else None

    async def upsert_meeting(self, meeting: Meeting) -> Meeting:
        if meeting.external_id:
            existing = _execute(
                self.client.table("meetings").select("id, attended_count")
                .eq("organizer_id", meeting.organizer_id)
                .eq("external_id", meeting.external_id),
                "look up synced meeting",
            )
            if existing:
                attended = meeting.attended_count
                if attended is None:
                    attended = existing[0].get("attended_count")
                meeting = meeting.model_copy(update={"id": existing[0]["id"], "attended_count": attended})

        # A generated agenda outlives a calendar description without one
        if not meeting.has_agenda and await self.get_active_agenda(meeting.organizer_id, meeting.id):
            meeting = meeting.model_copy(update={"has_agenda": True})

        _execute(
            self.client.table("meetings").upsert(
                meeting.model_dump(mode="json", exclude={"attendees", "flags"}),
                on_conflict="id",
            ),
            "save meeting",
        )

        # Attendees are replaced wholesale on every sync
        _execute(
            self.client.table("attendees").delete().eq("meeting_id", meeting.id),
            "clear attendees",
        )
        if meeting.attendees:
            _execute(
                self.client.table("attendees").insert([
                    {**a.model_dump(mode="json"), "meeting_id": meeting.id}
                    for a in meeting.attendees
                ]),
                "save attendees",
            )

        return await self.require_meeting(meeting.organizer_id, meeting.id)

    async def update_meeting(self, user_id: str, meeting_id: str, **changes) -> Meeting:
        payload = {
            k: (v.value if hasattr(v, "value") else v.isoformat() if isinstance(v, datetime) else v)
            for k, v in changes.items()
        }
        rows = _execute(
            self.client.table("meetings").update(payload).eq("id", meeting_id).eq("organizer_id", user_id),
            "update meeting",
        )
        if not rows:
            raise NotFoundError(f"Meeting {meeting_id} not found")
        return await self.require_meeting(user_id, meeting_id)

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
        _execute(
            self.client.table("meeting_flags").insert(flag.model_dump(mode="json")),
            "create flag",
        )
        return flag

    async def resolve_flag(self, user_id: str, meeting_id: str, flag_id: str) -> Flag:
        rows = _execute(
            self.client.table("meeting_flags").update({
                "resolved": True,
                "resolved_at": datetime.now(timezone.utc).isoformat(),
            }).eq("id", flag_id).eq("meeting_id", meeting_id).eq("user_id", user_id).eq("resolved", False),
            "resolve flag",
        )
        if not rows:
            existing = _execute(
                self.client.table("meeting_flags").select("id")
                .eq("id", flag_id).eq("meeting_id", meeting_id).eq("user_id", user_id),
                "look up flag",
            )
            if existing:
                raise AlreadyResolvedError(f"Flag {flag_id} is already resolved")
            raise NotFoundError(f"Flag {flag_id} not found")
        return Flag.model_validate(rows[0])

    async def clear_auto_flags(self, user_id: str) -> int:
        rows = _execute(
            self.client.table("meeting_flags").delete().eq("user_id", user_id).eq("auto_detected", True),
            "clear auto-detected flags",
        )
        return len(rows)

    # ---- weekly stats ----

    async def get_weekly_stat(self, user_id: str, week: datetime) -> Optional[WeeklyStat]:
        rows = _execute(
            self.client.table("weekly_stats").select("*")
            .eq("user_id", user_id)
            .eq("week_start", week_start(week).isoformat()),
            "load weekly stat",
        )
        return WeeklyStat.model_validate(rows[0]) if rows else None

    async def list_weekly_stats(
        self,
        user_id: str,
        start: datetime,
        end: Optional[datetime] = None,
    ) -> list[WeeklyStat]:
        query = self.client.table("weekly_stats").select("*").eq("user_id", user_id).gte("week_start", start.isoformat())
        if end:
            query = query.lte("week_start", end.isoformat())
        rows = _execute(query.order("week_start"), "load weekly stats")
        return [WeeklyStat.model_validate(r) for r in rows]

    async def save_weekly_stat(self, stat: WeeklyStat) -> WeeklyStat:
        stat = stat.model_copy(update={"week_start": week_start(stat.week_start)})
        _execute(
            self.client.table("weekly_stats").upsert(
                {**stat.model_dump(mode="json"), "updated_at": datetime.now(timezone.utc).isoformat()},
                on_conflict="user_id,week_start",
            ),
            "save weekly stat",
        )
        return stat

    # ---- audit results ----

    async def save_audit_results(self, user_id: str, findings: list[AuditFinding]) -> None:
        _execute(
            self.client.table("audit_results").delete().eq("user_id", user_id),
            "clear audit results",
        )
        if findings:
            _execute(
                self.client.table("audit_results").insert([
                    {**f.model_dump(mode="json"), "user_id": user_id, "position": i}
                    for i, f in enumerate(findings)
                ]),
                "save audit results",
            )

    async def get_audit_results(self, user_id: str) -> list[AuditFinding]:
        rows = _execute(
            self.client.table("audit_results").select("*").eq("user_id", user_id).order("position"),
            "load audit results",
        )
        return [AuditFinding.model_validate(r) for r in rows]

    # ---- agendas & summaries ----

    async def save_agenda(self, agenda: Agenda) -> Agenda:
        _execute(
            self.client.table("agendas").update({"is_active": False})
            .eq("meeting_id", agenda.meeting_id).eq("user_id", agenda.user_id),
            "deactivate previous agenda",
        )
        agenda = agenda.model_copy(update={
            "is_active": True,
            "created_at": agenda.created_at or datetime.now(timezone.utc),
        })
        _execute(self.client.table("agendas").insert(agenda.model_dump(mode="json")), "save agenda")
        return agenda

    async def get_active_agenda(self, user_id: str, meeting_id: str) -> Optional[Agenda]:
        rows = _execute(
            self.client.table("agendas").select("*")
            .eq("meeting_id", meeting_id).eq("user_id", user_id).eq("is_active", True),
            "load agenda",
        )
        return Agenda.model_validate(rows[0]) if rows else None

    async def update_agenda(self, user_id: str, meeting_id: str, agenda_id: str, **changes) -> Agenda:
        payload = {
            k: ([i.model_dump() for i in v] if k == "items" else v)
            for k, v in changes.items() if v is not None
        }
        rows = _execute(
            self.client.table("agendas").update(payload)
            .eq("id", agenda_id).eq("meeting_id", meeting_id).eq("user_id", user_id),
            "update agenda",
        )
        if not rows:
            raise NotFoundError(f"Agenda {agenda_id} not found")
        return Agenda.model_validate(rows[0])

    async def save_summary(self, summary: MeetingSummary) -> MeetingSummary:
        summary = summary.model_copy(update={
            "created_at": summary.created_at or datetime.now(timezone.utc),
        })
        _execute(self.client.table("summaries").insert(summary.model_dump(mode="json")), "save summary")
        return summary

    async def list_summaries(self, user_id: str, meeting_id: Optional[str] = None) -> list[MeetingSummary]:
        query = self.client.table("summaries").select("*").eq("user_id", user_id)
        if meeting_id:
            query = query.eq("meeting_id", meeting_id)
        rows = _execute(query.order("created_at", desc=True), "load summaries")
        return [MeetingSummary.model_validate(r) for r in rows]
