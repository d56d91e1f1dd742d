"""
Background scheduler for automatic calendar audits.

Periodically syncs every Google-connected user's calendar and re-runs the
audit so flags and weekly stats stay current without a manual request.
"""

import asyncio
from typing import Optional
import logging

from config import get_settings
from data_source import DataSource
from audit.service import AuditService
from calendar_sync import GoogleNotConnectedError, sync_calendar
from dependencies import get_audit_service, get_data_source

logger = logging.getLogger(__name__)


class AuditScheduler:
    """
    Background loop that syncs and audits each connected user.

    Per-user failures are logged and never stop the loop.
    """

    def __init__(
        self,
        store: DataSource,
        audit_service: AuditService,
        check_interval_minutes: int = 60,
        lookback_days: int = 30,
        lookahead_days: int = 30,
    ):
        self.store = store
        self.audit_service = audit_service
        self.check_interval = check_interval_minutes * 60  # Convert to seconds
        self.lookback_days = lookback_days
        self.lookahead_days = lookahead_days
        self.running = False
        self._task: Optional[asyncio.Task] = None

    async def start(self):
        """Start the scheduler."""
        if self.running:
            logger.warning("Scheduler already running")
            return

        self.running = True
        logger.info(f"Starting audit scheduler (interval: {self.check_interval}s)")

        self._task = asyncio.create_task(self._run_loop())

    async def stop(self):
        """Stop the scheduler."""
        self.running = False
        if self._task:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
        logger.info("Audit scheduler stopped")

    async def _run_loop(self):
        while self.running:
            try:
                await self.run_cycle()
            except Exception as e:
                logger.error(f"Scheduler error: {e}")

            await asyncio.sleep(self.check_interval)

    async def run_cycle(self) -> int:
        """Sync and audit every Google-connected user once. Returns users processed."""
        logger.info("Running scheduled audits...")

        try:
            users = await self.store.list_users_with_google()
        except Exception as e:
            logger.error(f"Failed to get users: {e}")
            return 0

        processed = 0
        for user_id in users:
            try:
                await self._process_user(user_id)
                processed += 1
            except Exception as e:
                logger.error(f"Error processing user {user_id}: {e}")

        return processed

    async def _process_user(self, user_id: str):
        try:
            await sync_calendar(
                self.store,
                user_id,
                lookback_days=self.lookback_days,
                lookahead_days=self.lookahead_days,
            )
        except GoogleNotConnectedError:
            logger.info(f"No Google token for {user_id}, auditing stored meetings only")

        report = await self.audit_service.run_full_audit(user_id)
        logger.info(f"Scheduled audit for {user_id}: {report.total_issues} issues")


async def run_once():
    """Run the scheduler once (for testing or one-off runs)."""
    settings = get_settings()
    store = get_data_source()
    scheduler = AuditScheduler(
        store,
        get_audit_service(store, settings),
        lookback_days=settings.audit_lookback_days,
        lookahead_days=settings.audit_lookahead_days,
    )
    return await scheduler.run_cycle()


# Entry point for running as standalone script
if __name__ == "__main__":
    import sys

    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )

    if len(sys.argv) > 1 and sys.argv[1] == "--once":
        asyncio.run(run_once())
    else:
        async def main():
            settings = get_settings()
            store = get_data_source()
            scheduler = AuditScheduler(
                store,
                get_audit_service(store, settings),
                check_interval_minutes=settings.scheduler_interval_minutes,
                lookback_days=settings.audit_lookback_days,
                lookahead_days=settings.audit_lookahead_days,
            )
            await scheduler.start()

            # Keep running until interrupted
            try:
                while True:
                    await asyncio.sleep(3600)
            except KeyboardInterrupt:
                await scheduler.stop()

        asyncio.run(main())
