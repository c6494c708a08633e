"""Append-only audit trail for every state-changing housing operation."""

from __future__ import annotations

import sqlite3
from typing import Any, Optional

from housing.domain.models import LogAction, LogFilters, Page
from housing.repository.data_repository import DataRepository
from housing.utils.config import Settings, get_settings
from housing.utils.logger import get_audit_logger


audit_logger = get_audit_logger()


class AuditLogger:
    """Best-effort recorder: a failed write is reported, never propagated.

    Inside a unit of work the insert runs under a savepoint, so a failing
    audit row is rolled back on its own while the caller's change commits.
    """

    def __init__(
        self,
        repository: Optional[DataRepository] = None,
        settings: Optional[Settings] = None,
    ) -> None:
        self._settings = settings or get_settings()
        self._repository = repository or DataRepository(self._settings)
        self._failed_writes = 0

    @property
    def failed_writes(self) -> int:
        return self._failed_writes

    def record(
        self,
        action: LogAction | str,
        actor_id: Optional[str],
        description: str,
        metadata: Optional[dict[str, Any]] = None,
        *,
        conn: Optional[sqlite3.Connection] = None,
    ) -> Optional[int]:
        action_name = action.value if isinstance(action, LogAction) else str(action)
        payload = dict(metadata or {})
        if conn is None:
            try:
                with self._repository.unit_of_work() as own_conn:
                    return self._insert(own_conn, action_name, actor_id, description, payload)
            except Exception:
                self._report_failure(action_name, actor_id)
                return None

        conn.execute("SAVEPOINT audit_record;")
        try:
            log_id = self._insert(conn, action_name, actor_id, description, payload)
        except sqlite3.Error:
            conn.execute("ROLLBACK TO SAVEPOINT audit_record;")
            conn.execute("RELEASE SAVEPOINT audit_record;")
            self._report_failure(action_name, actor_id)
            return None
        conn.execute("RELEASE SAVEPOINT audit_record;")
        return log_id

    def _insert(
        self,
        conn: sqlite3.Connection,
        action: str,
        actor_id: Optional[str],
        description: str,
        metadata: dict[str, Any],
    ) -> int:
        return self._repository.insert_log(
            conn,
            action=action,
            user_id=actor_id,
            metadata=metadata,
            description=description,
        )

    def _report_failure(self, action: str, actor_id: Optional[str]) -> None:
        self._failed_writes += 1
        audit_logger.exception(
            "Audit write dropped (action=%s actor=%s, %s dropped so far)",
            action,
            actor_id,
            self._failed_writes,
        )

    def list_logs(self, filters: LogFilters) -> Page:
        limit = filters.limit or self._settings.logs_page_size
        with self._repository.snapshot() as conn:
            items = self._repository.list_logs(conn, filters, limit=limit)
            total = self._repository.count_logs(conn, filters)
        return Page(items=items, total=total, limit=limit, skip=filters.skip)

