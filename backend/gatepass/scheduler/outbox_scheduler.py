"""Outbox Scheduler - Drains the notification outbox

Safe to run on several servers at once: each outbox row is locked in
MongoDB before it is sent, and locks left by a crashed process are
released by a periodic cleanup job. Failed sends stay PENDING with a
backoff until the retry limit is reached.
"""
import os
import socket
from typing import Optional
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger

from ..config.settings import settings
from ..repositories.notification_repo import NotificationRepository
from ..services.notification_service import NotificationService
from ..utils.logger import get_logger
from ..utils.idgen import generate_id
from ..utils.time import utc_now

logger = get_logger(__name__)


class OutboxScheduler:
    """APScheduler jobs for outbox delivery and lock recovery"""

    def __init__(
        self,
        notification_repo: Optional[NotificationRepository] = None,
        notification_service: Optional[NotificationService] = None
    ):
        self.scheduler: Optional[AsyncIOScheduler] = None
        self.notification_repo = notification_repo or NotificationRepository()
        self.notification_service = notification_service or NotificationService(self.notification_repo)
        self._is_running = False
        self._server_id = self._generate_server_id()
        self._process_count = 0

    def _generate_server_id(self) -> str:
        """Unique identifier used as the lock owner"""
        return f"{socket.gethostname()}-{os.getpid()}-{generate_id()[:8]}"

    def start(self) -> None:
        if self._is_running:
            logger.warning("Scheduler already running")
            return

        self.scheduler = AsyncIOScheduler()
        self.scheduler.add_job(
            self.process_outbox,
            trigger=IntervalTrigger(seconds=settings.scheduler_interval_seconds),
            id="process_outbox",
            name="Send pending gate pass emails",
            replace_existing=True
        )
        self.scheduler.add_job(
            self.cleanup_stale_locks,
            trigger=IntervalTrigger(minutes=5),
            id="cleanup_stale_locks",
            name="Release stale outbox locks",
            replace_existing=True
        )
        self.scheduler.start()
        self._is_running = True
        logger.info(f"Outbox scheduler started on {self._server_id}")

    def stop(self) -> None:
        if self.scheduler:
            self.scheduler.shutdown()
            self._is_running = False
            logger.info("Outbox scheduler stopped")

    @property
    def is_running(self) -> bool:
        return self._is_running

    async def process_outbox(self) -> int:
        """
        Send every due, unlocked notification once

        Returns the number sent. Errors on one row never stop the cycle.
        """
        start_time = utc_now()
        sent = failed = skipped = 0

        notifications = self.notification_repo.get_pending_notifications(limit=50)
        if not notifications:
            return 0

        for notification in notifications:
            lock_id = f"{self._server_id}-{generate_id()[:8]}"
            try:
                if not self.notification_repo.acquire_lock(
                    notification.notification_id,
                    lock_id,
                    lock_duration_seconds=settings.notification_lock_duration_seconds
                ):
                    skipped += 1
                    continue

                try:
                    if await self.notification_service.send_notification(notification):
                        sent += 1
                        self._process_count += 1
                    else:
                        failed += 1
                finally:
                    self.notification_repo.release_lock(notification.notification_id, lock_id)

            except Exception as e:
                failed += 1
                logger.error(
                    f"Error processing notification {notification.notification_id}: {e}",
                    extra={
                        "notification_id": notification.notification_id,
                        "reference_number": notification.reference_number
                    }
                )

        duration_ms = (utc_now() - start_time).total_seconds() * 1000
        if sent or failed:
            logger.info(
                f"Outbox cycle: {sent} sent, {failed} failed, {skipped} skipped in {duration_ms:.0f} ms"
            )
        return sent

    async def cleanup_stale_locks(self) -> int:
        """Release locks older than the configured age"""
        try:
            cleaned = self.notification_repo.cleanup_stale_locks(
                max_lock_age_minutes=settings.stale_lock_cleanup_minutes
            )
        except Exception as e:
            logger.error(f"Error cleaning up stale locks: {e}")
            return 0

        if cleaned:
            logger.info(f"Released {cleaned} stale outbox locks")
        return cleaned


# Global scheduler instance
_scheduler: Optional[OutboxScheduler] = None


def get_scheduler() -> OutboxScheduler:
    """Get or create scheduler instance"""
    global _scheduler
    if _scheduler is None:
        _scheduler = OutboxScheduler()
    return _scheduler


def start_scheduler() -> None:
    get_scheduler().start()


def stop_scheduler() -> None:
    global _scheduler
    if _scheduler:
        _scheduler.stop()
        _scheduler = None
