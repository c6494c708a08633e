"""Manager and requester notifications for the request workflow."""

from __future__ import annotations

import sqlite3
from typing import Optional

from housing.domain.errors import NotFoundError
from housing.domain.models import Notification
from housing.repository.data_repository import DataRepository
from housing.utils.config import Settings, get_settings
from housing.utils.logger import get_logger


logger = get_logger(__name__)


class NotificationService:
    """Delivers in-app notifications; delivery failures never fail the caller."""

    def __init__(
        self,
        repository: Optional[DataRepository] = None,
        settings: Optional[Settings] = None,
    ) -> None:
        self._settings = settings or get_settings()
        self._repository = repository or DataRepository(self._settings)

    def notify_managers(
        self,
        conn: sqlite3.Connection,
        *,
        title: str,
        message: str,
        related_id: Optional[str],
        exclude_user_id: Optional[str] = None,
    ) -> int:
        manager_ids = [
            user_id
            for user_id in self._repository.list_active_manager_ids(conn)
            if user_id != exclude_user_id
        ]
        return self._deliver(conn, manager_ids, title, message, related_id)

    def notify_user(
        self,
        conn: sqlite3.Connection,
        user_id: str,
        *,
        title: str,
        message: str,
        related_id: Optional[str],
    ) -> int:
        return self._deliver(conn, [user_id], title, message, related_id)

    def _deliver(
        self,
        conn: sqlite3.Connection,
        user_ids: list[str],
        title: str,
        message: str,
        related_id: Optional[str],
    ) -> int:
        conn.execute("SAVEPOINT notify;")
        try:
            delivered = self._repository.insert_notifications(
                conn,
                user_ids=user_ids,
                title=title,
                message=message,
                related_id=related_id,
            )
        except sqlite3.Error:
            conn.execute("ROLLBACK TO SAVEPOINT notify;")
            conn.execute("RELEASE SAVEPOINT notify;")
            logger.exception("Notification delivery failed for %s recipients", len(user_ids))
            return 0
        conn.execute("RELEASE SAVEPOINT notify;")
        return delivered

    def list_notifications(self, user_id: str, limit: Optional[int] = None) -> list[Notification]:
        with self._repository.snapshot() as conn:
            return self._repository.list_notifications(
                conn,
                user_id,
                limit=limit or self._settings.notifications_page_size,
            )

    def mark_read(self, notification_id: str) -> None:
        with self._repository.unit_of_work() as conn:
            if not self._repository.mark_notification_read(conn, notification_id):
                raise NotFoundError("Notification", notification_id)
