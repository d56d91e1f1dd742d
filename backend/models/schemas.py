from pydantic import BaseModel, Field, field_validator, model_validator
from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Optional


class IssueType(str, Enum):
    NO_AGENDA = "NO_AGENDA"
    DUPLICATE_MEETINGS = "DUPLICATE_MEETINGS"
    OVERBOOKED = "OVERBOOKED"
    BACK_TO_BACK = "BACK_TO_BACK"
    TOO_MANY_ATTENDEES = "TOO_MANY_ATTENDEES"
    RECURRING_MEETING_REVIEW = "RECURRING_MEETING_REVIEW"
    LONG_MEETING = "LONG_MEETING"
    LOW_ATTENDANCE = "LOW_ATTENDANCE"
    LARGE_MEETING = "LARGE_MEETING"
    REDUNDANT_MEETING = "REDUNDANT_MEETING"
    NO_AGENDA_MEETINGS = "NO_AGENDA_MEETINGS"


class Severity(str, Enum):
    LOW = "LOW"
    MEDIUM = "MEDIUM"
    HIGH = "HIGH"
    CRITICAL = "CRITICAL"


class MeetingStatus(str, Enum):
    SCHEDULED = "scheduled"
    CANCELLED = "cancelled"
    COMPLETED = "completed"


class Recommendation(str, Enum):
    CANCEL = "Cancel"
    REVIEW = "Review and optimize"


class OAuthToken(BaseModel):
    user_id: str
    provider: str  # 'google' or 'zoom'
    access_token: str
    refresh_token: Optional[str] = None
    expires_at: Optional[datetime] = None


class UserProfile(BaseModel):
    id: str
    email: str
    name: Optional[str] = None
    average_hourly_cost: Optional[float] = None
    google_connected: bool = False


class Attendee(BaseModel):
    email: str
    name: Optional[str] = None
    response_status: Optional[str] = None
    is_optional: bool = False


class Flag(BaseModel):
    id: str
    meeting_id: str
    user_id: str
    issue_type: IssueType
    description: str
    severity: Severity = Severity.MEDIUM
    resolved: bool = False
    resolved_at: Optional[datetime] = None
    auto_detected: bool = True
    created_at: Optional[datetime] = None


class Meeting(BaseModel):
    id: str
    title: str
    description: Optional[str] = None
    start_time: datetime
    end_time: datetime
    organizer_id: str
    external_id: Optional[str] = None
    organizer: Optional[str] = None
    is_recurring: bool = False
    recurrence_id: Optional[str] = None
    recurrence_rule: Optional[str] = None
    invitee_count: int = 0
    attended_count: Optional[int] = None
    attendees: list[Attendee] = Field(default_factory=list)
    has_agenda: bool = False
    status: MeetingStatus = MeetingStatus.SCHEDULED
    location: Optional[str] = None
    zoom_meeting_id: Optional[str] = None
    flags: list[Flag] = Field(default_factory=list)

    @field_validator("start_time", "end_time")
    @classmethod
    def assume_utc(cls, value: datetime) -> datetime:
        """Naive timestamps are treated as UTC."""
        if value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value

    @model_validator(mode="after")
    def check_time_range(self):
        if self.end_time < self.start_time:
            raise ValueError(
                f"Meeting {self.id} ends before it starts "
                f"({self.end_time.isoformat()} < {self.start_time.isoformat()})"
            )
        return self

    @property
    def duration(self) -> timedelta:
        return self.end_time - self.start_time

    @property
    def duration_minutes(self) -> float:
        return self.duration.total_seconds() / 60

    @property
    def duration_hours(self) -> float:
        return self.duration.total_seconds() / 3600

    @property
    def attendee_count(self) -> int:
        """Loaded attendee list size, falling back to the invitee count."""
        if self.attendees:
            return len(self.attendees)
        return self.invitee_count

    @property
    def is_cancelled(self) -> bool:
        return self.status == MeetingStatus.CANCELLED

    @property
    def unresolved_flags(self) -> list[Flag]:
        return [f for f in self.flags if not f.resolved]


class WeeklyStat(BaseModel):
    user_id: str
    week_start: datetime
    total_meeting_hours: float = 0.0
    hours_saved: float = 0.0
    potential_hours_saved: float = 0.0
    meetings_flagged: int = 0
    meetings_cancelled: int = 0


class AuditFinding(BaseModel):
    type: IssueType
    severity: Severity
    title: str
    description: str
    affected_meetings: list[str]
    suggestions: list[str] = Field(default_factory=list)
    estimated_savings: float = 0.0


class AuditReport(BaseModel):
    total_issues: int
    critical_issues: int
    high_issues: int
    estimated_total_savings: float
    results: list[AuditFinding]


class CancellationCandidate(BaseModel):
    meeting: Meeting
    score: int
    reasons: list[str]
    estimated_savings: float
    recommendation: Recommendation


class AgendaItem(BaseModel):
    title: str
    duration: int  # minutes
    type: str = "discussion"


class Agenda(BaseModel):
    id: str
    meeting_id: str
    user_id: str
    title: str
    items: list[AgendaItem] = Field(default_factory=list)
    objectives: list[str] = Field(default_factory=list)
    preparation_notes: str = ""
    is_active: bool = True
    created_at: Optional[datetime] = None


class ActionItem(BaseModel):
    task: str
    assignee: Optional[str] = None
    priority: Optional[str] = None
    due_date: Optional[str] = None


class MeetingSummary(BaseModel):
    id: str
    meeting_id: str
    user_id: str
    summary: str
    action_items: list[ActionItem] = Field(default_factory=list)
    key_decisions: list[str] = Field(default_factory=list)
    next_steps: list[str] = Field(default_factory=list)
    sentiment: Optional[str] = None
    topics: list[str] = Field(default_factory=list)
    created_at: Optional[datetime] = None


class AttendeeRecommendation(BaseModel):
    attendee: Attendee
    recommendation: str  # 'OPTIONAL' or 'REMOVE'
    reason: str


class ConnectionStatus(BaseModel):
    google_connected: bool
    zoom_connected: bool = False
