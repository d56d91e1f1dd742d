"""
Audit orchestration.

Loads a user's meetings from the DataSource, runs the pure detectors and
scorers, and writes the results back (flags, audit results, weekly stats).
"""

import asyncio
import logging
from collections import defaultdict
from datetime import datetime, timedelta, timezone
from typing import Optional

from data_source import DataSource, NotFoundError
from models import AuditReport, CancellationCandidate, Severity
from audit.detectors import run_detectors
from audit.flag_analysis import analyze_meetings
from audit.scoring import select_upcoming, suggest_cancellations

logger = logging.getLogger(__name__)


class AuditService:
    """
    Runs calendar audits for one DataSource.

    Audits for the same user are serialized with a per-user lock: a second
    request waits for the first to finish and then re-runs against the
    freshly written state.
    """

    def __init__(
        self,
        store: DataSource,
        lookback_days: int = 30,
        lookahead_days: int = 30,
    ):
        self.store = store
        self.lookback = timedelta(days=lookback_days)
        self.lookahead = timedelta(days=lookahead_days)
        self._locks: dict[str, asyncio.Lock] = defaultdict(asyncio.Lock)

    async def run_full_audit(self, user_id: str, now: Optional[datetime] = None) -> AuditReport:
        """
        Audit the user's meetings from `lookback_days` ago to `lookahead_days` ahead.

        Previously auto-detected flags are cleared first, so re-running the
        audit on an unchanged calendar yields the same findings (with new
        flag ids). Store failures propagate; nothing is rolled back.
        """
        now = now or datetime.now(timezone.utc)

        async with self._locks[user_id]:
            user = await self.store.get_user(user_id)
            if not user:
                raise NotFoundError(f"User {user_id} not found")

            meetings = await self.store.list_meetings(
                user_id,
                start=now - self.lookback,
                end=now + self.lookahead,
            )
            findings = run_detectors(meetings)

            await self.store.clear_auto_flags(user_id)
            for finding in findings:
                # One flag per finding, on its first affected meeting
                await self.store.create_flag(
                    meeting_id=finding.affected_meetings[0],
                    user_id=user_id,
                    issue_type=finding.type,
                    description=f"{finding.title}: {finding.description}",
                    severity=finding.severity,
                    auto_detected=True,
                )
            await self.store.save_audit_results(user_id, findings)

            total_savings = sum(f.estimated_savings for f in findings)
            await self.store.set_weekly_snapshot(
                user_id,
                now,
                meetings_flagged=len(findings),
                potential_hours_saved=total_savings,
            )

        logger.info(
            f"Audit for {user_id}: {len(meetings)} meetings, "
            f"{len(findings)} findings, {total_savings:.2f}h potential savings"
        )

        return AuditReport(
            total_issues=len(findings),
            critical_issues=sum(1 for f in findings if f.severity == Severity.CRITICAL),
            high_issues=sum(1 for f in findings if f.severity == Severity.HIGH),
            estimated_total_savings=total_savings,
            results=findings,
        )

    async def suggest_cancellations(
        self,
        user_id: str,
        now: Optional[datetime] = None,
    ) -> list[CancellationCandidate]:
        now = now or datetime.now(timezone.utc)
        meetings = await self.store.list_meetings(
            user_id,
            start=now,
            include_flags=True,
            unresolved_flags_only=True,
        )
        return suggest_cancellations(select_upcoming(meetings, now))

    async def analyze_flags(self, user_id: str, now: Optional[datetime] = None) -> dict:
        """
        Apply the per-meeting flag rules to all of the user's meetings.

        Returns the flagged meetings with the flags that were created. Runs
        under the same per-user lock as run_full_audit.
        """
        now = now or datetime.now(timezone.utc)

        async with self._locks[user_id]:
            meetings = await self.store.list_meetings(user_id, include_flags=False)
            drafts_by_meeting = analyze_meetings(meetings)

            await self.store.clear_auto_flags(user_id)

            flagged = []
            for meeting in meetings:
                drafts = drafts_by_meeting.get(meeting.id)
                if not drafts:
                    continue

                flags = []
                for draft in drafts:
                    flags.append(await self.store.create_flag(
                        meeting_id=draft.meeting_id,
                        user_id=user_id,
                        issue_type=draft.issue_type,
                        description=draft.description,
                        severity=draft.severity,
                        auto_detected=True,
                    ))
                flagged.append(meeting.model_copy(update={"flags": flags}))

            await self.store.set_weekly_snapshot(user_id, now, meetings_flagged=len(flagged))

        logger.info(f"Flag analysis for {user_id}: {len(flagged)} of {len(meetings)} meetings flagged")

        return {"flagged_count": len(flagged), "flagged_meetings": flagged}
