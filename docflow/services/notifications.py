"""In-app notification service.

Handles:
- Storing one inbox entry per workflow notification intent
- Listing an account's inbox, newest first
- Marking entries read and clearing them
"""

import logging
from typing import List
from uuid import UUID

from sqlalchemy import and_
from sqlalchemy.orm import Session

from docflow.core.workflow.errors import NotFoundError
from docflow.core.workflow.ports import NotificationIntent
from docflow.db.models import Notification

logger = logging.getLogger(__name__)


class NotificationService:
    """Persists notifications in the account's inbox."""

    def __init__(self, db: Session):
        self.db = db

    def notify(self, intent: NotificationIntent) -> Notification:
        """
        Store a notification for its recipient.

        Runs inside a savepoint so a failed insert leaves the surrounding
        transaction (and the workflow transition in it) intact.
        """
        with self.db.begin_nested():
            notification = Notification(
                user_id=intent.user_id,
                document_id=intent.document_id,
                message=intent.message,
                severity=intent.severity.value,
            )
            self.db.add(notification)
            self.db.flush()

        logger.debug("Notification %s queued for %s", notification.id, intent.user_id)
        return notification

    def list_for_user(self, user_id: UUID) -> List[Notification]:
        return (
            self.db.query(Notification)
            .filter(Notification.user_id == user_id)
            .order_by(Notification.created_at.desc())
            .all()
        )

    def unread_count(self, user_id: UUID) -> int:
        return (
            self.db.query(Notification)
            .filter(
                and_(
                    Notification.user_id == user_id,
                    Notification.read == False,  # noqa: E712
                )
            )
            .count()
        )

    def mark_read(self, notification_id: UUID, user_id: UUID) -> Notification:
        """
        Mark one of the account's notifications as read.

        Raises:
            NotFoundError: If the account has no such notification
        """
        notification = self._get_owned(notification_id, user_id)
        notification.read = True
        self.db.flush()
        return notification

    def delete(self, notification_id: UUID, user_id: UUID) -> None:
        """
        Remove one of the account's notifications.

        Raises:
            NotFoundError: If the account has no such notification
        """
        notification = self._get_owned(notification_id, user_id)
        self.db.delete(notification)
        self.db.flush()

    def delete_all(self, user_id: UUID) -> int:
        """Clear the account's inbox. Returns the number of entries removed."""
        count = (
            self.db.query(Notification)
            .filter(Notification.user_id == user_id)
            .delete(synchronize_session=False)
        )
        logger.info("Cleared %d notifications for %s", count, user_id)
        return count

    def _get_owned(self, notification_id: UUID, user_id: UUID) -> Notification:
        notification = (
            self.db.query(Notification)
            .filter(
                and_(
                    Notification.id == notification_id,
                    Notification.user_id == user_id,
                )
            )
            .first()
        )
        if notification is None:
            raise NotFoundError("Notification", notification_id)
        return notification
