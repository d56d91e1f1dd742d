"""StopMeet - meeting efficiency audit backend."""

from contextlib import asynccontextmanager
from fastapi import FastAPI, HTTPException, Depends, Query, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, RedirectResponse
from googleapiclient.errors import HttpError
from pydantic import BaseModel
from typing import Optional
from urllib.parse import urlencode
from datetime import datetime, timedelta, timezone
import httpx
import logging
import uuid

from config import Settings, get_settings
from models import (
    Agenda,
    AgendaItem,
    AttendeeRecommendation,
    AuditFinding,
    AuditReport,
    ConnectionStatus,
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
from data_source import AlreadyResolvedError, DataSource, DataSourceError, NotFoundError
from dependencies import (
    get_ai_generator,
    get_audit_service,
    get_current_user,
    get_data_source,
)
from ai.action_items import parse_action_items
from audit.service import AuditService
from audit.attendees import recommend_attendees
from audit.weeks import week_start
from calendar_sync import GoogleNotConnectedError, recompute_week_hours, sync_calendar
from dashboard import DashboardMetrics, WeeklyTrend, build_dashboard_metrics, resolve_time_range, weekly_trend
from integrations import ZOOM_OAUTH_URL, GoogleCalendarClient
from scheduler import AuditScheduler

settings = get_settings()

# Configure logging
logging.basicConfig(level=getattr(logging, settings.log_level.upper(), logging.INFO))
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    scheduler = None
    if settings.scheduler_enabled:
        store = get_data_source()
        scheduler = AuditScheduler(
            store,
            get_audit_service(store, settings),
            check_interval_minutes=settings.scheduler_interval_minutes,
            lookback_days=settings.audit_lookback_days,
            lookahead_days=settings.audit_lookahead_days,
        )
        await scheduler.start()
    yield
    if scheduler:
        await scheduler.stop()


app = FastAPI(
    title="StopMeet",
    description="Calendar audits, cancellation suggestions and meeting efficiency metrics",
    version="1.0.0",
    lifespan=lifespan,
)

# CORS configuration
app.add_middleware(
    CORSMiddleware,
    allow_origins=[settings.frontend_url, "http://localhost:3000"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(NotFoundError)
async def not_found_handler(request: Request, exc: NotFoundError):
    return JSONResponse(status_code=404, content={"detail": str(exc)})


@app.exception_handler(AlreadyResolvedError)
async def already_resolved_handler(request: Request, exc: AlreadyResolvedError):
    return JSONResponse(status_code=409, content={"detail": str(exc)})


@app.exception_handler(DataSourceError)
async def data_source_error_handler(request: Request, exc: DataSourceError):
    logger.error(f"Data source error on {request.url.path}: {exc}")
    return JSONResponse(status_code=500, content={"detail": str(exc)})


# Health check
@app.get("/health")
async def health_check(store: DataSource = Depends(get_data_source)):
    return {"status": "healthy", "data_source": store.name, "version": "1.0.0"}


# ============ OAuth Routes ============

GOOGLE_SCOPES = [
    "https://www.googleapis.com/auth/calendar.readonly",
    "https://www.googleapis.com/auth/calendar.events",
    "https://www.googleapis.com/auth/userinfo.email",
    "https://www.googleapis.com/auth/userinfo.profile",
]


@app.get("/auth/google")
async def google_auth_start(
    user_id: str = Depends(get_current_user),
    settings: Settings = Depends(get_settings),
):
    """Start Google OAuth flow."""
    query = urlencode({
        "client_id": settings.google_client_id,
        "redirect_uri": settings.google_redirect_uri,
        "response_type": "code",
        "scope": " ".join(GOOGLE_SCOPES),
        "access_type": "offline",
        "prompt": "consent",
        "state": user_id,
    })
    return {"auth_url": f"https://accounts.google.com/o/oauth2/v2/auth?{query}"}


@app.get("/auth/google/callback")
async def google_auth_callback(
    code: str,
    state: str,
    store: DataSource = Depends(get_data_source),
    settings: Settings = Depends(get_settings),
):
    """Handle Google OAuth callback."""
    user_id = state

    # Exchange code for tokens
    async with httpx.AsyncClient() as client:
        response = await client.post(
            "https://oauth2.googleapis.com/token",
            data={
                "client_id": settings.google_client_id,
                "client_secret": settings.google_client_secret,
                "code": code,
                "grant_type": "authorization_code",
                "redirect_uri": settings.google_redirect_uri,
            },
        )
        if response.status_code != 200:
            logger.error(f"Google token exchange failed: {response.status_code}")
            raise HTTPException(status_code=400, detail="Failed to exchange code")
        tokens = response.json()

        profile_response = await client.get(
            "https://www.googleapis.com/oauth2/v2/userinfo",
            headers={"Authorization": f"Bearer {tokens['access_token']}"},
        )
        profile = profile_response.json() if profile_response.status_code == 200 else {}

    expires_at = datetime.now(timezone.utc) + timedelta(seconds=tokens.get("expires_in", 3600))

    await store.store_oauth_token(OAuthToken(
        user_id=user_id,
        provider="google",
        access_token=tokens["access_token"],
        refresh_token=tokens.get("refresh_token"),
        expires_at=expires_at,
    ))

    user = await store.get_user(user_id)
    if user:
        user = user.model_copy(update={"google_connected": True})
    else:
        user = UserProfile(
            id=user_id,
            email=profile.get("email", ""),
            name=profile.get("name"),
            google_connected=True,
        )
    await store.upsert_user(user)

    return RedirectResponse(url=f"{settings.frontend_url}/connect?google=success")


@app.delete("/auth/google")
async def disconnect_google(
    user_id: str = Depends(get_current_user),
    store: DataSource = Depends(get_data_source),
):
    """Disconnect Google."""
    await store.delete_oauth_token(user_id, "google")
    user = await store.get_user(user_id)
    if user:
        await store.upsert_user(user.model_copy(update={"google_connected": False}))
    return {"status": "disconnected"}


@app.get("/auth/zoom")
async def zoom_auth_start(
    user_id: str = Depends(get_current_user),
    settings: Settings = Depends(get_settings),
):
    """Start Zoom OAuth flow."""
    query = urlencode({
        "response_type": "code",
        "client_id": settings.zoom_client_id,
        "redirect_uri": settings.zoom_redirect_uri,
        "state": user_id,
    })
    return {"auth_url": f"{ZOOM_OAUTH_URL}/authorize?{query}"}


@app.get("/auth/zoom/callback")
async def zoom_auth_callback(
    code: str,
    state: str,
    store: DataSource = Depends(get_data_source),
    settings: Settings = Depends(get_settings),
):
    """Handle Zoom OAuth callback."""
    async with httpx.AsyncClient() as client:
        response = await client.post(
            f"{ZOOM_OAUTH_URL}/token",
            auth=(settings.zoom_client_id, settings.zoom_client_secret),
            data={
                "grant_type": "authorization_code",
                "code": code,
                "redirect_uri": settings.zoom_redirect_uri,
            },
        )
        if response.status_code != 200:
            logger.error(f"Zoom token exchange failed: {response.status_code}")
            raise HTTPException(status_code=400, detail="Failed to exchange code")
        tokens = response.json()

    await store.store_oauth_token(OAuthToken(
        user_id=state,
        provider="zoom",
        access_token=tokens["access_token"],
        refresh_token=tokens.get("refresh_token"),
        expires_at=datetime.now(timezone.utc) + timedelta(seconds=tokens.get("expires_in", 3600)),
    ))

    return RedirectResponse(url=f"{settings.frontend_url}/connect?zoom=success")


@app.delete("/auth/zoom")
async def disconnect_zoom(
    user_id: str = Depends(get_current_user),
    store: DataSource = Depends(get_data_source),
):
    """Disconnect Zoom."""
    await store.delete_oauth_token(user_id, "zoom")
    return {"status": "disconnected"}


@app.get("/auth/status", response_model=ConnectionStatus)
async def get_connection_status(
    user_id: str = Depends(get_current_user),
    store: DataSource = Depends(get_data_source),
):
    """Get Google and Zoom connection status."""
    zoom_connected = await store.get_oauth_token(user_id, "zoom") is not None

    token = await store.get_oauth_token(user_id, "google")
    if token:
        return ConnectionStatus(google_connected=True, zoom_connected=zoom_connected)

    user = await store.get_user(user_id)
    return ConnectionStatus(
        google_connected=bool(user and user.google_connected),
        zoom_connected=zoom_connected,
    )


# ============ Meetings Routes ============

class BulkCancelRequest(BaseModel):
    meeting_ids: list[str]


class FlagRequest(BaseModel):
    issue_type: IssueType
    description: str
    severity: Severity = Severity.MEDIUM


class AgendaUpdateRequest(BaseModel):
    title: Optional[str] = None
    items: Optional[list[AgendaItem]] = None
    objectives: Optional[list[str]] = None
    preparation_notes: Optional[str] = None


class SummaryRequest(BaseModel):
    transcript: Optional[str] = None
    notes: Optional[str] = None


@app.get("/meetings", response_model=list[Meeting])
async def list_meetings(
    start: Optional[datetime] = None,
    end: Optional[datetime] = None,
    status: Optional[MeetingStatus] = None,
    include_flags: bool = True,
    flagged: bool = False,
    user_id: str = Depends(get_current_user),
    store: DataSource = Depends(get_data_source),
):
    """List the user's meetings, optionally only those with unresolved flags."""
    meetings = await store.list_meetings(
        user_id,
        start=start,
        end=end,
        status=status,
        include_flags=include_flags or flagged,
    )
    if flagged:
        meetings = [m for m in meetings if m.unresolved_flags]
    return meetings


@app.post("/meetings/sync")
async def sync_meetings(
    user_id: str = Depends(get_current_user),
    store: DataSource = Depends(get_data_source),
    settings: Settings = Depends(get_settings),
):
    """Pull the user's Google Calendar into the meeting store."""
    if settings.demo_mode:
        await recompute_week_hours(store, user_id)
        return {"synced": 0, "demo_mode": True}

    try:
        return await sync_calendar(
            store,
            user_id,
            lookback_days=settings.audit_lookback_days,
            lookahead_days=settings.audit_lookahead_days,
        )
    except GoogleNotConnectedError:
        raise HTTPException(status_code=400, detail="Google not connected")
    except HttpError as e:
        logger.error(f"Google Calendar sync failed for {user_id}: {e}")
        raise HTTPException(status_code=502, detail="Google Calendar request failed")


@app.post("/meetings/audit", response_model=AuditReport)
async def run_audit(
    user_id: str = Depends(get_current_user),
    audit_service: AuditService = Depends(get_audit_service),
):
    """Run the full calendar audit and persist flags and findings."""
    return await audit_service.run_full_audit(user_id)


@app.get("/meetings/audit/results", response_model=list[AuditFinding])
async def get_audit_results(
    user_id: str = Depends(get_current_user),
    store: DataSource = Depends(get_data_source),
):
    return await store.get_audit_results(user_id)


@app.get("/meetings/cancellation-suggestions")
async def get_cancellation_suggestions(
    user_id: str = Depends(get_current_user),
    audit_service: AuditService = Depends(get_audit_service),
):
    candidates = await audit_service.suggest_cancellations(user_id)
    return {
        "suggestions": candidates,
        "total_potential_savings": sum(c.estimated_savings for c in candidates),
    }


@app.post("/meetings/bulk-cancel")
async def bulk_cancel(
    request: BulkCancelRequest,
    user_id: str = Depends(get_current_user),
    store: DataSource = Depends(get_data_source),
    settings: Settings = Depends(get_settings),
):
    """
    Cancel several meetings.

    Each meeting is handled on its own; failures are reported per meeting
    instead of aborting the batch. Meetings that are already cancelled are
    reported as failures and not credited again.
    """
    calendar = None
    if not settings.demo_mode:
        token = await store.get_oauth_token(user_id, "google")
        if token:
            calendar = GoogleCalendarClient(token.access_token, token.refresh_token)

    results = []
    for meeting_id in request.meeting_ids:
        try:
            meeting = await store.require_meeting(user_id, meeting_id)
            if meeting.is_cancelled:
                results.append({"meeting_id": meeting_id, "success": False, "error": "Meeting already cancelled"})
                continue

            if calendar and meeting.external_id:
                calendar.delete_event(meeting.external_id)

            await store.update_meeting(user_id, meeting_id, status=MeetingStatus.CANCELLED)
            await store.increment_weekly_stat(
                user_id,
                hours_saved=meeting.duration_hours,
                meetings_cancelled=1,
            )
            results.append({"meeting_id": meeting_id, "success": True})
        except Exception as e:
            logger.error(f"Failed to cancel meeting {meeting_id}: {e}")
            results.append({"meeting_id": meeting_id, "success": False, "error": str(e)})

    return {
        "cancelled": sum(1 for r in results if r["success"]),
        "results": results,
    }


@app.post("/meetings/analyze")
async def analyze_meetings(
    user_id: str = Depends(get_current_user),
    audit_service: AuditService = Depends(get_audit_service),
):
    """Re-flag every meeting with the per-meeting rules."""
    return await audit_service.analyze_flags(user_id)


@app.post("/meetings/ai-insights")
async def get_ai_insights(
    user_id: str = Depends(get_current_user),
    store: DataSource = Depends(get_data_source),
    settings: Settings = Depends(get_settings),
    ai=Depends(get_ai_generator),
):
    """Ask the AI for calendar-level issues across the audit window."""
    now = datetime.now(timezone.utc)
    meetings = await store.list_meetings(
        user_id,
        start=now - timedelta(days=settings.audit_lookback_days),
        end=now + timedelta(days=settings.audit_lookahead_days),
        include_flags=False,
    )
    meetings = [m for m in meetings if not m.is_cancelled]
    if not meetings:
        return {"issues": [], "meetings_analyzed": 0}

    try:
        issues = ai.detect_meeting_issues(meetings)
    except Exception as e:
        logger.error(f"AI insights failed for {user_id}: {e}")
        raise HTTPException(status_code=502, detail="AI issue detection failed")

    return {"issues": issues, "meetings_analyzed": len(meetings)}


@app.get("/meetings/{meeting_id}", response_model=Meeting)
async def get_meeting(
    meeting_id: str,
    user_id: str = Depends(get_current_user),
    store: DataSource = Depends(get_data_source),
):
    return await store.require_meeting(user_id, meeting_id)


@app.post("/meetings/{meeting_id}/flag", response_model=Flag)
async def flag_meeting(
    meeting_id: str,
    request: FlagRequest,
    user_id: str = Depends(get_current_user),
    store: DataSource = Depends(get_data_source),
):
    """Flag a meeting by hand."""
    await store.require_meeting(user_id, meeting_id)
    return await store.create_flag(
        meeting_id=meeting_id,
        user_id=user_id,
        issue_type=request.issue_type,
        description=request.description,
        severity=request.severity,
        auto_detected=False,
    )


@app.post("/meetings/{meeting_id}/flag/{flag_id}/resolve", response_model=Flag)
async def resolve_flag(
    meeting_id: str,
    flag_id: str,
    user_id: str = Depends(get_current_user),
    store: DataSource = Depends(get_data_source),
):
    """
    Resolve a flag and credit the meeting's person-hours as saved.

    A flag that is already resolved gives 409 and nothing is credited.
    """
    meeting = await store.require_meeting(user_id, meeting_id)
    flag = await store.resolve_flag(user_id, meeting_id, flag_id)
    await store.increment_weekly_stat(
        user_id,
        hours_saved=meeting.duration_hours * meeting.attendee_count,
    )
    return flag


@app.get("/meetings/{meeting_id}/attendee-recommendations")
async def get_attendee_recommendations(
    meeting_id: str,
    user_id: str = Depends(get_current_user),
    store: DataSource = Depends(get_data_source),
    ai=Depends(get_ai_generator),
):
    meeting = await store.require_meeting(user_id, meeting_id)
    others = await store.list_meetings(user_id, include_flags=False)
    recommendations: list[AttendeeRecommendation] = recommend_attendees(meeting, others)

    team_members = sorted({a.email for m in others for a in m.attendees})
    optimization = ai.suggest_attendee_optimization(meeting, team_members)

    return {
        "recommendations": recommendations,
        "ai_optimization": optimization,
    }


@app.post("/meetings/{meeting_id}/agenda/generate", response_model=Agenda)
async def generate_agenda(
    meeting_id: str,
    user_id: str = Depends(get_current_user),
    store: DataSource = Depends(get_data_source),
    ai=Depends(get_ai_generator),
):
    """Generate an agenda, store it as the active one and mark the meeting as having one."""
    meeting = await store.require_meeting(user_id, meeting_id)
    draft = ai.generate_agenda(
        title=meeting.title,
        description=meeting.description or "",
        duration=round(meeting.duration_minutes),
        attendee_count=meeting.attendee_count,
        is_recurring=meeting.is_recurring,
    )

    agenda = await store.save_agenda(Agenda(
        id=str(uuid.uuid4()),
        meeting_id=meeting_id,
        user_id=user_id,
        title=f"Agenda: {meeting.title}",
        items=draft.items,
        objectives=draft.objectives,
        preparation_notes=draft.preparation_notes,
    ))
    await store.update_meeting(user_id, meeting_id, has_agenda=True)
    return agenda


@app.get("/meetings/{meeting_id}/agenda", response_model=Agenda)
async def get_agenda(
    meeting_id: str,
    user_id: str = Depends(get_current_user),
    store: DataSource = Depends(get_data_source),
):
    await store.require_meeting(user_id, meeting_id)
    agenda = await store.get_active_agenda(user_id, meeting_id)
    if not agenda:
        raise HTTPException(status_code=404, detail="Agenda not found")
    return agenda


@app.put("/meetings/{meeting_id}/agenda/{agenda_id}", response_model=Agenda)
async def update_agenda(
    meeting_id: str,
    agenda_id: str,
    request: AgendaUpdateRequest,
    user_id: str = Depends(get_current_user),
    store: DataSource = Depends(get_data_source),
):
    changes = {
        field: getattr(request, field)
        for field in request.model_fields_set
        if getattr(request, field) is not None
    }
    return await store.update_agenda(user_id, meeting_id, agenda_id, **changes)


@app.post("/meetings/{meeting_id}/summary/generate", response_model=MeetingSummary)
async def generate_summary(
    meeting_id: str,
    request: SummaryRequest,
    user_id: str = Depends(get_current_user),
    store: DataSource = Depends(get_data_source),
    ai=Depends(get_ai_generator),
):
    """Summarize a meeting from its transcript, or from notes and metadata when there is none."""
    meeting = await store.require_meeting(user_id, meeting_id)

    if request.transcript:
        analysis = ai.analyze_transcript(request.transcript, meeting.title)
    else:
        analysis = ai.generate_summary(
            title=meeting.title,
            duration=round(meeting.duration_minutes),
            attendees=[a.email for a in meeting.attendees],
            notes=request.notes,
        )

    return await store.save_summary(MeetingSummary(
        id=str(uuid.uuid4()),
        meeting_id=meeting_id,
        user_id=user_id,
        summary=analysis.summary,
        action_items=analysis.action_items or parse_action_items(request.notes or ""),
        key_decisions=analysis.key_decisions,
        next_steps=analysis.next_steps,
        sentiment=analysis.sentiment,
        topics=analysis.topics,
    ))


@app.get("/meetings/{meeting_id}/summaries", response_model=list[MeetingSummary])
async def list_summaries(
    meeting_id: str,
    user_id: str = Depends(get_current_user),
    store: DataSource = Depends(get_data_source),
):
    await store.require_meeting(user_id, meeting_id)
    return await store.list_summaries(user_id, meeting_id)


# ============ Dashboard Routes ============

@app.get("/dashboard/metrics", response_model=DashboardMetrics)
async def get_dashboard_metrics(
    time_range: Optional[str] = Query(None, alias="timeRange"),
    user_id: str = Depends(get_current_user),
    store: DataSource = Depends(get_data_source),
    settings: Settings = Depends(get_settings),
):
    start, end = resolve_time_range(time_range)

    user = await store.get_user(user_id)
    meetings = await store.list_meetings(user_id, start=start, end=end)
    stats = await store.list_weekly_stats(user_id, week_start(start), end)

    return build_dashboard_metrics(
        meetings,
        stats,
        hourly_cost=user.average_hourly_cost if user else None,
        default_hourly_cost=settings.default_hourly_cost,
    )


class WeeklyStatsResponse(BaseModel):
    stats: list[WeeklyStat]
    trend: WeeklyTrend


@app.get("/dashboard/weekly-stats", response_model=WeeklyStatsResponse)
async def get_weekly_stats(
    weeks: int = Query(12, ge=1, le=104),
    user_id: str = Depends(get_current_user),
    store: DataSource = Depends(get_data_source),
    settings: Settings = Depends(get_settings),
):
    """Weekly stats for the last `weeks` weeks, oldest first."""
    start = week_start(datetime.now(timezone.utc)) - timedelta(weeks=weeks - 1)
    stats = await store.list_weekly_stats(user_id, start)

    user = await store.get_user(user_id)
    hourly_cost = (user.average_hourly_cost if user else None) or settings.default_hourly_cost

    return WeeklyStatsResponse(stats=stats, trend=weekly_trend(stats, hourly_cost))


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8000)
