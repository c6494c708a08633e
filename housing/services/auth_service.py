"""Authorization guard for privileged housing operations."""

from __future__ import annotations

import sqlite3
from contextlib import contextmanager
from typing import Iterator, Optional

from housing.domain.errors import (
    LastManagerError,
    NotFoundError,
    SelfDeactivationError,
    UnauthorizedError,
)
from housing.domain.models import GuardedOperation, User, UserRole
from housing.repository.data_repository import DataRepository
from housing.utils.config import Settings, get_settings
from housing.utils.logger import get_logger


logger = get_logger(__name__)


class AuthorizationGuard:
    """Single capability that resolves requesters and decides privileged access.

    Every check accepts the caller's connection so the decision is taken on
    the same snapshot the caller then writes against.
    """

    def __init__(
        self,
        repository: Optional[DataRepository] = None,
        settings: Optional[Settings] = None,
    ) -> None:
        self._settings = settings or get_settings()
        self._repository = repository or DataRepository(self._settings)

    @contextmanager
    def _reading(self, conn: Optional[sqlite3.Connection]) -> Iterator[sqlite3.Connection]:
        if conn is not None:
            yield conn
            return
        with self._repository.snapshot() as own_conn:
            yield own_conn

    def require_active_user(
        self,
        user_id: Optional[str],
        *,
        conn: Optional[sqlite3.Connection] = None,
    ) -> User:
        with self._reading(conn) as active_conn:
            user = self._repository.get_user(active_conn, user_id) if user_id else None
        if user is None:
            raise NotFoundError("User", user_id)
        if not user.is_active:
            raise UnauthorizedError("User account is inactive")
        return user

    def require_role(
        self,
        user_id: Optional[str],
        role: UserRole = UserRole.MANAGER,
        *,
        conn: Optional[sqlite3.Connection] = None,
    ) -> User:
        with self._reading(conn) as active_conn:
            user = self._repository.get_user(active_conn, user_id) if user_id else None
        if user is None or not user.is_active or user.role is not role:
            logger.warning("Denied %s-only operation for requester %s", role.value, user_id)
            raise UnauthorizedError(f"Access denied: only {role.value.lower()}s may do this")
        return user

    def guard_last_manager(
        self,
        target_user_id: str,
        operation: GuardedOperation,
        *,
        conn: Optional[sqlite3.Connection] = None,
    ) -> None:
        with self._reading(conn) as active_conn:
            target = self._repository.get_user(active_conn, target_user_id)
            if target is None:
                raise NotFoundError("User", target_user_id)
            if not target.is_active_manager:
                return
            remaining = self._repository.count_active_managers(active_conn)
        if remaining <= 1:
            raise LastManagerError(
                f"Cannot {operation.value.lower()} the last active manager"
            )

    def guard_self(
        self,
        requester_id: str,
        target_user_id: str,
        operation: GuardedOperation,
    ) -> None:
        if operation is GuardedOperation.DEACTIVATE and requester_id == target_user_id:
            raise SelfDeactivationError("Cannot deactivate your own account")
