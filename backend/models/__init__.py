from .schemas import (
    IssueType,
    Severity,
    MeetingStatus,
    Recommendation,
    OAuthToken,
    UserProfile,
    Attendee,
    Flag,
    Meeting,
    WeeklyStat,
    AuditFinding,
    AuditReport,
    CancellationCandidate,
    AgendaItem,
    Agenda,
    ActionItem,
    MeetingSummary,
    AttendeeRecommendation,
    ConnectionStatus,
)

__all__ = [
    "IssueType",
    "Severity",
    "MeetingStatus",
    "Recommendation",
    "OAuthToken",
    "UserProfile",
    "Attendee",
    "Flag",
    "Meeting",
    "WeeklyStat",
    "AuditFinding",
    "AuditReport",
    "CancellationCandidate",
    "AgendaItem",
    "Agenda",
    "ActionItem",
    "MeetingSummary",
    "AttendeeRecommendation",
    "ConnectionStatus",
]
