"""Dashboard metrics: plain reductions over meetings and weekly stats."""

from datetime import datetime, timedelta, timezone
from typing import Optional

from pydantic import BaseModel

from models import Meeting, Severity, WeeklyStat
from audit.weeks import week_label

FOCUS_TIME_MULTIPLIER = 1.5


class TopIssue(BaseModel):
    type: str
    count: int
    impact: Severity


class WeeklyTrend(BaseModel):
    labels: list[str]
    meeting_hours: list[float]
    hours_saved: list[float]
    costs: list[float]


class DashboardMetrics(BaseModel):
    total_meetings: int
    total_hours: float
    total_cost: float
    hours_saved: float
    money_saved: float
    efficiency_score: int
    average_meeting_duration: float
    average_attendees: float
    meetings_with_agenda: int
    meeting_utilization: float
    focus_time_created: float
    top_issues: list[TopIssue]
    weekly_trend: WeeklyTrend
    meetings_by_day: list[float]  # Monday first


def resolve_time_range(time_range: Optional[str], now: Optional[datetime] = None) -> tuple[datetime, datetime]:
    """Map 'week' / 'month' / 'quarter' to a (start, now) window; default is 30 days."""
    now = now or datetime.now(timezone.utc)

    if time_range == "week":
        return now - timedelta(days=7), now
    if time_range == "month":
        return _months_back(now, 1), now
    if time_range == "quarter":
        return _months_back(now, 3), now
    return now - timedelta(days=30), now


def _months_back(moment: datetime, months: int) -> datetime:
    month = moment.month - months
    year = moment.year
    while month < 1:
        month += 12
        year -= 1
    # Clamp the day for shorter months (e.g. May 31 -> Feb 28)
    for day in (moment.day, 30, 29, 28):
        try:
            return moment.replace(year=year, month=month, day=day)
        except ValueError:
            continue
    return moment.replace(year=year, month=month, day=28)


def efficiency_score(meetings: list[Meeting]) -> int:
    """Mean of agenda coverage and the share of unflagged meetings, 0-100."""
    if not meetings:
        # No agenda coverage, nothing flagged
        return 50

    with_agenda = sum(1 for m in meetings if m.has_agenda)
    flagged = sum(1 for m in meetings if m.flags)
    agenda_score = with_agenda / len(meetings) * 100
    flagged_score = max(0.0, 100 - flagged / len(meetings) * 100)
    return round((agenda_score + flagged_score) / 2)


def top_issues(meetings: list[Meeting]) -> list[TopIssue]:
    """Flag counts per issue type, most frequent first. Impact is the first severity seen."""
    counts: dict[str, int] = {}
    impact: dict[str, Severity] = {}
    for meeting in meetings:
        for flag in meeting.flags:
            key = flag.issue_type.value
            counts[key] = counts.get(key, 0) + 1
            impact.setdefault(key, flag.severity)

    issues = [TopIssue(type=k, count=v, impact=impact[k]) for k, v in counts.items()]
    return sorted(issues, key=lambda i: i.count, reverse=True)


def weekly_trend(stats: list[WeeklyStat], hourly_cost: float) -> WeeklyTrend:
    return WeeklyTrend(
        labels=[week_label(s.week_start) for s in stats],
        meeting_hours=[s.total_meeting_hours for s in stats],
        hours_saved=[s.hours_saved for s in stats],
        costs=[s.total_meeting_hours * hourly_cost for s in stats],
    )


def build_dashboard_metrics(
    meetings: list[Meeting],
    weekly_stats: list[WeeklyStat],
    hourly_cost: Optional[float] = None,
    default_hourly_cost: float = 50.0,
) -> DashboardMetrics:
    hourly_cost = hourly_cost or default_hourly_cost
    count = len(meetings)

    total_hours = sum(m.duration_hours for m in meetings)
    total_cost = sum(m.duration_hours * m.attendee_count * hourly_cost for m in meetings)
    hours_saved = sum(s.hours_saved for s in weekly_stats)
    with_agenda = sum(1 for m in meetings if m.has_agenda)
    total_attendees = sum(m.attendee_count for m in meetings)

    by_day = [0.0] * 7
    for meeting in meetings:
        by_day[meeting.start_time.weekday()] += meeting.duration_hours

    return DashboardMetrics(
        total_meetings=count,
        total_hours=round(total_hours, 1),
        total_cost=round(total_cost, 2),
        hours_saved=round(hours_saved, 1),
        money_saved=round(hours_saved * hourly_cost, 2),
        efficiency_score=efficiency_score(meetings),
        average_meeting_duration=round(total_hours / count, 1) if count else 0.0,
        average_attendees=round(total_attendees / count, 1) if count else 0.0,
        meetings_with_agenda=with_agenda,
        meeting_utilization=round(with_agenda / count * 100, 1) if count else 0.0,
        focus_time_created=round(hours_saved * FOCUS_TIME_MULTIPLIER, 1),
        top_issues=top_issues(meetings),
        weekly_trend=weekly_trend(weekly_stats, hourly_cost),
        meetings_by_day=[round(h, 1) for h in by_day],
    )
