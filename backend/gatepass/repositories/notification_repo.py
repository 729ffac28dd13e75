"""Notification Repository - Data access for the email outbox

Locking uses atomic find_one_and_update so several API workers can drain
the same outbox without sending a message twice.
"""
from typing import List, Optional
from datetime import datetime, timedelta
from pymongo.collection import Collection
from pymongo import ASCENDING
from pymongo.errors import PyMongoError

from .mongo_client import get_collection
from ..domain.models import NotificationOutbox
from ..domain.enums import NotificationStatus
from ..domain.errors import NotFoundError
from ..config.settings import settings
from ..utils.logger import get_logger
from ..utils.time import utc_now

logger = get_logger(__name__)


class NotificationRepository:
    """Repository for notification outbox operations"""

    def __init__(self):
        self._outbox: Collection = get_collection("notification_outbox")

    def create_notification(self, notification: NotificationOutbox) -> NotificationOutbox:
        """Create a notification in outbox"""
        doc = notification.model_dump()
        doc["_id"] = notification.notification_id

        self._outbox.insert_one(doc)
        logger.info(
            f"Queued notification: {notification.template_key}",
            extra={
                "notification_id": notification.notification_id,
                "reference_number": notification.reference_number
            }
        )
        return notification

    def get_notification(self, notification_id: str) -> Optional[NotificationOutbox]:
        """Get notification by ID"""
        doc = self._outbox.find_one({"notification_id": notification_id})
        if doc:
            doc.pop("_id", None)
            return NotificationOutbox.model_validate(doc)
        return None

    def get_pending_notifications(self, limit: int = 100) -> List[NotificationOutbox]:
        """
        Get pending notifications that are due and not locked.

        Returns an empty list on database errors so one bad poll does not
        kill the scheduler job.
        """
        now = utc_now()

        try:
            cursor = self._outbox.find({
                "status": NotificationStatus.PENDING.value,
                "$and": [
                    {"$or": [{"next_retry_at": {"$lte": now}}, {"next_retry_at": None}]},
                    {"$or": [{"locked_until": {"$lte": now}}, {"locked_until": None}]}
                ]
            }).sort("created_at", ASCENDING).limit(limit)

            notifications = []
            for doc in cursor:
                doc.pop("_id", None)
                notifications.append(NotificationOutbox.model_validate(doc))
            return notifications

        except PyMongoError as e:
            logger.error(
                f"Database error fetching pending notifications: {e}",
                extra={"error_code": type(e).__name__}
            )
            return []

    def get_notifications_for_reference(self, reference_number: str) -> List[NotificationOutbox]:
        """Get all notifications queued for a gate pass"""
        cursor = self._outbox.find({"reference_number": reference_number}).sort("created_at", ASCENDING)

        notifications = []
        for doc in cursor:
            doc.pop("_id", None)
            notifications.append(NotificationOutbox.model_validate(doc))
        return notifications

    # =========================================================================
    # Distributed locking
    # =========================================================================

    def acquire_lock(
        self,
        notification_id: str,
        lock_by: str,
        lock_duration_seconds: int = 60
    ) -> bool:
        """
        Try to lock a notification for sending.

        Args:
            notification_id: The notification to lock
            lock_by: Unique identifier for this locker (e.g., "host-pid-uuid")
            lock_duration_seconds: How long to hold the lock

        Returns:
            True if lock acquired, False otherwise
        """
        now = utc_now()
        lock_until = now + timedelta(seconds=lock_duration_seconds)

        try:
            result = self._outbox.find_one_and_update(
                {
                    "notification_id": notification_id,
                    "status": NotificationStatus.PENDING.value,
                    "$or": [{"locked_until": {"$lte": now}}, {"locked_until": None}]
                },
                {"$set": {"locked_until": lock_until, "locked_by": lock_by, "lock_acquired_at": now}}
            )
            return result is not None

        except PyMongoError as e:
            logger.error(
                f"Database error acquiring lock on notification {notification_id}: {e}",
                extra={"notification_id": notification_id}
            )
            return False

    def release_lock(self, notification_id: str, lock_by: Optional[str] = None) -> bool:
        """Release a lock, optionally only when held by lock_by"""
        query = {"notification_id": notification_id}
        if lock_by:
            query["locked_by"] = lock_by

        try:
            result = self._outbox.update_one(
                query,
                {"$set": {"locked_until": None, "locked_by": None, "lock_acquired_at": None}}
            )
            return result.modified_count > 0
        except PyMongoError as e:
            logger.error(
                f"Database error releasing lock on notification {notification_id}: {e}",
                extra={"notification_id": notification_id}
            )
            return False

    def cleanup_stale_locks(self, max_lock_age_minutes: int = 10) -> int:
        """Clear locks left behind by crashed workers"""
        cutoff = utc_now() - timedelta(minutes=max_lock_age_minutes)

        try:
            result = self._outbox.update_many(
                {"locked_until": {"$lte": cutoff}, "locked_by": {"$ne": None}},
                {"$set": {"locked_until": None, "locked_by": None, "lock_acquired_at": None}}
            )
            if result.modified_count > 0:
                logger.warning(f"Cleaned up {result.modified_count} stale notification locks")
            return result.modified_count
        except PyMongoError as e:
            logger.error(f"Error cleaning up stale locks: {e}")
            return 0

    # =========================================================================
    # Delivery outcome
    # =========================================================================

    def mark_sent(self, notification_id: str) -> NotificationOutbox:
        """Mark notification as sent"""
        result = self._outbox.find_one_and_update(
            {"notification_id": notification_id},
            {"$set": {
                "status": NotificationStatus.SENT.value,
                "sent_at": utc_now(),
                "locked_until": None,
                "locked_by": None
            }},
            return_document=True
        )

        if result is None:
            raise NotFoundError(f"Notification {notification_id} not found")

        result.pop("_id", None)
        return NotificationOutbox.model_validate(result)

    def mark_failed(
        self,
        notification_id: str,
        error: str,
        retry_at: Optional[datetime] = None
    ) -> NotificationOutbox:
        """Record a failed attempt and schedule the next one with exponential backoff"""
        notification = self.get_notification(notification_id)
        if not notification:
            raise NotFoundError(f"Notification {notification_id} not found")

        retry_count = notification.retry_count + 1

        if retry_count >= settings.notification_max_retries:
            status = NotificationStatus.FAILED.value
            next_retry = None
        else:
            status = NotificationStatus.PENDING.value
            # 1, 2, 4, 8 ... minutes
            next_retry = retry_at or utc_now() + timedelta(minutes=2 ** notification.retry_count)

        result = self._outbox.find_one_and_update(
            {"notification_id": notification_id},
            {"$set": {
                "status": status,
                "retry_count": retry_count,
                "last_error": error,
                "next_retry_at": next_retry,
                "locked_until": None,
                "locked_by": None
            }},
            return_document=True
        )

        result.pop("_id", None)
        logger.warning(
            f"Notification failed (attempt {retry_count}): {notification_id}",
            extra={"notification_id": notification_id, "status": status}
        )
        return NotificationOutbox.model_validate(result)
