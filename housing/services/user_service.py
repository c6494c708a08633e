"""User administration: accounts, roles, credentials and database backups."""

from __future__ import annotations

import re
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Optional

from housing.domain.errors import (
    EmailExistsError,
    InvalidInputError,
    NotFoundError,
    UnauthorizedError,
)
from housing.domain.models import GuardedOperation, LogAction, User, UserRole
from housing.repository.data_repository import DataRepository
from housing.services.audit_service import AuditLogger
from housing.services.auth_service import AuthorizationGuard
from housing.utils.config import Settings, get_settings
from housing.utils.logger import get_logger
from housing.utils.security import generate_temporary_password, hash_password, verify_password
from housing.utils.timeutils import utc_now


logger = get_logger(__name__)

_EMAIL_PATTERN = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")


@dataclass(frozen=True)
class IssuedCredentials:
    """A user together with the one-time temporary password issued to them."""

    user: User
    temp_password: str

    def to_dict(self) -> dict[str, Any]:
        return {"user": self.user.to_dict(), "tempPassword": self.temp_password}


@dataclass(frozen=True)
class BackupResult:
    path: Path

    @property
    def file_name(self) -> str:
        return self.path.name

    def to_dict(self) -> dict[str, str]:
        return {"path": str(self.path), "fileName": self.file_name}


def _normalize_email(email: Optional[str]) -> str:
    value = (email or "").strip().lower()
    if not _EMAIL_PATTERN.match(value):
        raise InvalidInputError("A valid email address is required")
    return value


def _normalize_name(name: Optional[str]) -> str:
    value = (name or "").strip()
    if not value:
        raise InvalidInputError("name must not be empty")
    return value


class UserService:
    """Manager-only account administration protected by the authorization guard."""

    def __init__(
        self,
        repository: Optional[DataRepository] = None,
        guard: Optional[AuthorizationGuard] = None,
        audit_logger: Optional[AuditLogger] = None,
        settings: Optional[Settings] = None,
    ) -> None:
        self._settings = settings or get_settings()
        self._repository = repository or DataRepository(self._settings)
        self._guard = guard or AuthorizationGuard(self._repository, self._settings)
        self._audit = audit_logger or AuditLogger(self._repository, self._settings)

    def _issue_password(self) -> tuple[str, str]:
        password = generate_temporary_password(self._settings.temp_password_length)
        return password, hash_password(password, self._settings.password_hash_rounds)

    def authenticate(self, email: Optional[str], password: Optional[str]) -> User:
        """Check an email/password pair against the stored bcrypt hash.

        Unknown emails and wrong passwords share one message. No session is
        created; callers receive the user record only.
        """
        email = (email or "").strip()
        if not email or not password:
            raise InvalidInputError("Email and password are required")
        with self._repository.snapshot() as conn:
            credentials = self._repository.get_credentials(conn, email)
        if credentials is None or not verify_password(password, credentials[1]):
            logger.info("Rejected sign-in for %s", email.lower())
            raise UnauthorizedError("Invalid email or password")
        user = credentials[0]
        if not user.is_active:
            raise UnauthorizedError("User account is inactive")
        logger.info("User %s signed in", user.user_id)
        return user

    def create_user(
        self,
        requester_id: str,
        *,
        name: str,
        email: str,
        role: UserRole = UserRole.SUPERVISOR,
    ) -> IssuedCredentials:
        name = _normalize_name(name)
        email = _normalize_email(email)
        temp_password, password_hash = self._issue_password()
        with self._repository.unit_of_work() as conn:
            requester = self._guard.require_role(requester_id, UserRole.MANAGER, conn=conn)
            if self._repository.email_in_use(conn, email):
                raise EmailExistsError(f"Email {email} is already registered")
            user = self._repository.insert_user(
                conn,
                name=name,
                email=email,
                password_hash=password_hash,
                role=role,
            )
            self._audit.record(
                LogAction.CREATE_USER,
                requester.user_id,
                f"Created {role.value.lower()} account for {email}",
                {"targetUserId": user.user_id, "role": role.value},
                conn=conn,
            )
        logger.info("User %s created by %s", user.user_id, requester_id)
        return IssuedCredentials(user=user, temp_password=temp_password)

    def update_user(
        self,
        requester_id: str,
        user_id: str,
        *,
        name: Optional[str] = None,
        email: Optional[str] = None,
        role: Optional[UserRole] = None,
        is_active: Optional[bool] = None,
    ) -> User:
        new_name = _normalize_name(name) if name is not None else None
        new_email = _normalize_email(email) if email is not None else None
        with self._repository.unit_of_work() as conn:
            requester = self._guard.require_role(requester_id, UserRole.MANAGER, conn=conn)
            target = self._repository.get_user(conn, user_id) if user_id else None
            if target is None:
                raise NotFoundError("User", user_id)

            next_role = role or target.role
            next_active = target.is_active if is_active is None else is_active
            changes: dict[str, Any] = {}

            if target.is_active and not next_active:
                self._guard.guard_self(requester.user_id, target.user_id, GuardedOperation.DEACTIVATE)
                self._guard.guard_last_manager(
                    target.user_id, GuardedOperation.DEACTIVATE, conn=conn
                )
                changes["isActive"] = False
            elif not target.is_active and next_active:
                changes["isActive"] = True
            if target.role is UserRole.MANAGER and next_role is not UserRole.MANAGER:
                self._guard.guard_last_manager(target.user_id, GuardedOperation.DEMOTE, conn=conn)
            if next_role is not target.role:
                changes["role"] = next_role.value

            if new_email is not None and new_email != target.email.lower():
                if self._repository.email_in_use(conn, new_email, exclude_user_id=target.user_id):
                    raise EmailExistsError(f"Email {new_email} is already registered")
                changes["email"] = new_email
            if new_name is not None and new_name != target.name:
                changes["name"] = new_name

            updated = self._repository.update_user(
                conn,
                target.user_id,
                name=new_name or target.name,
                email=new_email or target.email,
                role=next_role,
                is_active=next_active,
            )
            self._audit.record(
                LogAction.UPDATE_USER,
                requester.user_id,
                f"Updated user {updated.email}",
                {"targetUserId": target.user_id, "changes": changes},
                conn=conn,
            )
        return updated

    def delete_user(self, requester_id: str, user_id: str) -> None:
        with self._repository.unit_of_work() as conn:
            requester = self._guard.require_role(requester_id, UserRole.MANAGER, conn=conn)
            target = self._repository.get_user(conn, user_id) if user_id else None
            if target is None:
                raise NotFoundError("User", user_id)
            self._guard.guard_last_manager(target.user_id, GuardedOperation.DELETE, conn=conn)
            self._repository.delete_user(conn, target.user_id)
            self._audit.record(
                LogAction.DELETE_USER,
                requester.user_id,
                f"Deleted user {target.email}",
                {"targetUserId": target.user_id, "role": target.role.value},
                conn=conn,
            )
        logger.info("User %s deleted by %s", user_id, requester_id)

    def list_users(self, requester_id: str) -> list[User]:
        with self._repository.snapshot() as conn:
            self._guard.require_role(requester_id, UserRole.MANAGER, conn=conn)
            return self._repository.list_users(conn)

    def reset_password(self, requester_id: str, user_id: str) -> IssuedCredentials:
        temp_password, password_hash = self._issue_password()
        with self._repository.unit_of_work() as conn:
            requester = self._guard.require_role(requester_id, UserRole.MANAGER, conn=conn)
            target = self._repository.get_user(conn, user_id) if user_id else None
            if target is None:
                raise NotFoundError("User", user_id)
            self._repository.update_password_hash(conn, target.user_id, password_hash)
            self._audit.record(
                LogAction.RESET_PASSWORD,
                requester.user_id,
                f"Reset password for {target.email}",
                {"targetUserId": target.user_id},
                conn=conn,
            )
        return IssuedCredentials(user=target, temp_password=temp_password)

    def backup_database(
        self,
        requester_id: str,
        destination: Optional[Path] = None,
    ) -> BackupResult:
        requester = self._guard.require_role(requester_id, UserRole.MANAGER)
        if destination is None:
            stamp = utc_now().strftime("%Y%m%dT%H%M%S%f")
            destination = Path(self._settings.backup_directory) / f"housing_backup_{stamp}.db"
        path = self._repository.backup_to(Path(destination))
        self._audit.record(
            LogAction.BACKUP_DATABASE,
            requester.user_id,
            f"Database backed up to {path.name}",
            {"path": str(path)},
        )
        logger.info("Database backup written to %s", path)
        return BackupResult(path=path)
