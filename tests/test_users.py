from __future__ import annotations

from dataclasses import replace

import pytest

from housing.domain.errors import (
    EmailExistsError,
    InvalidInputError,
    LastManagerError,
    NotFoundError,
    SelfDeactivationError,
    UnauthorizedError,
)
from housing.domain.models import LogFilters, UserRole
from housing.repository.data_repository import DataRepository
from housing.services.audit_service import AuditLogger
from housing.services.auth_service import AuthorizationGuard
from housing.services.user_service import UserService
from housing.utils.config import get_settings
from housing.utils.security import TEMP_PASSWORD_ALPHABET, verify_password


def _build_test_settings(tmp_path, filename: str):
    base = get_settings()
    return replace(
        base,
        database_path=tmp_path / filename,
        backup_directory=tmp_path / "backups",
        password_hash_rounds=4,
        seed_building_layout=False,
        seed_default_manager=False,
    )


def _build_service(tmp_path, filename: str) -> tuple[DataRepository, UserService, AuditLogger]:
    settings = _build_test_settings(tmp_path, filename)
    repository = DataRepository(settings)
    repository.initialize_database()
    audit_logger = AuditLogger(repository=repository, settings=settings)
    guard = AuthorizationGuard(repository=repository, settings=settings)
    service = UserService(
        repository=repository,
        guard=guard,
        audit_logger=audit_logger,
        settings=settings,
    )
    return repository, service, audit_logger


def _seed_manager(repository: DataRepository, email: str = "manager@housing.local"):
    with repository.unit_of_work() as conn:
        return repository.insert_user(
            conn,
            name="Head Manager",
            email=email,
            password_hash="seed",
            role=UserRole.MANAGER,
        )


def _password_hash(repository: DataRepository, user_id: str) -> str:
    with repository.snapshot() as conn:
        row = conn.execute("SELECT password_hash FROM Users WHERE id = ?;", (user_id,)).fetchone()
    return str(row["password_hash"])


def _active_managers(repository: DataRepository) -> int:
    with repository.snapshot() as conn:
        return repository.count_active_managers(conn)


def test_sole_manager_cannot_delete_itself(tmp_path):
    repository, service, _ = _build_service(tmp_path, "last_manager_delete.db")
    manager = _seed_manager(repository)

    with pytest.raises(LastManagerError):
        service.delete_user(manager.user_id, manager.user_id)

    assert _active_managers(repository) == 1
    assert [user.user_id for user in service.list_users(manager.user_id)] == [manager.user_id]


def test_manager_can_be_deleted_when_another_remains(tmp_path):
    repository, service, audit_logger = _build_service(tmp_path, "delete_manager.db")
    manager = _seed_manager(repository)
    deputy = service.create_user(
        manager.user_id,
        name="Deputy",
        email="deputy@housing.local",
        role=UserRole.MANAGER,
    ).user

    service.delete_user(deputy.user_id, manager.user_id)

    assert _active_managers(repository) == 1
    deletions = audit_logger.list_logs(LogFilters(action="DELETE_USER")).items
    assert len(deletions) == 1
    assert deletions[0].user_id == deputy.user_id


def test_self_deactivation_is_rejected(tmp_path):
    repository, service, _ = _build_service(tmp_path, "self_deactivate.db")
    manager = _seed_manager(repository)
    service.create_user(manager.user_id, name="Deputy", email="deputy@housing.local", role=UserRole.MANAGER)

    with pytest.raises(SelfDeactivationError):
        service.update_user(manager.user_id, manager.user_id, is_active=False)


def test_last_manager_cannot_be_demoted_or_deactivated(tmp_path):
    repository, service, _ = _build_service(tmp_path, "last_manager_demote.db")
    manager = _seed_manager(repository)
    deputy = service.create_user(
        manager.user_id,
        name="Deputy",
        email="deputy@housing.local",
        role=UserRole.MANAGER,
    ).user

    service.update_user(manager.user_id, deputy.user_id, is_active=False)

    with pytest.raises(LastManagerError):
        service.update_user(manager.user_id, manager.user_id, role=UserRole.SUPERVISOR)
    assert _active_managers(repository) == 1

    reactivated = service.update_user(manager.user_id, deputy.user_id, is_active=True)
    assert reactivated.is_active is True
    demoted = service.update_user(deputy.user_id, manager.user_id, role=UserRole.SUPERVISOR)
    assert demoted.role is UserRole.SUPERVISOR
    assert _active_managers(repository) == 1


def test_create_user_issues_temporary_password(tmp_path):
    repository, service, audit_logger = _build_service(tmp_path, "create_user.db")
    manager = _seed_manager(repository)

    issued = service.create_user(manager.user_id, name="Night Supervisor", email="Night@Housing.local")

    assert issued.user.role is UserRole.SUPERVISOR
    assert issued.user.email == "night@housing.local"
    assert len(issued.temp_password) == 8
    assert set(issued.temp_password) <= set(TEMP_PASSWORD_ALPHABET)
    assert verify_password(issued.temp_password, _password_hash(repository, issued.user.user_id))
    assert "tempPassword" in issued.to_dict()
    assert audit_logger.list_logs(LogFilters(action="CREATE_USER")).total == 1


def test_duplicate_email_is_rejected(tmp_path):
    repository, service, _ = _build_service(tmp_path, "duplicate_email.db")
    manager = _seed_manager(repository)
    supervisor = service.create_user(manager.user_id, name="Sup", email="sup@housing.local").user

    with pytest.raises(EmailExistsError):
        service.create_user(manager.user_id, name="Copy", email="MANAGER@housing.local")
    with pytest.raises(EmailExistsError):
        service.update_user(manager.user_id, supervisor.user_id, email="manager@housing.local")
    with pytest.raises(InvalidInputError):
        service.create_user(manager.user_id, name="Broken", email="not-an-email")


def test_supervisors_cannot_administer_users(tmp_path):
    repository, service, _ = _build_service(tmp_path, "supervisor_denied.db")
    manager = _seed_manager(repository)
    supervisor = service.create_user(manager.user_id, name="Sup", email="sup@housing.local").user

    with pytest.raises(UnauthorizedError):
        service.create_user(supervisor.user_id, name="Other", email="other@housing.local")
    with pytest.raises(UnauthorizedError):
        service.delete_user(supervisor.user_id, manager.user_id)
    with pytest.raises(UnauthorizedError):
        service.list_users(supervisor.user_id)
    with pytest.raises(UnauthorizedError):
        service.backup_database(supervisor.user_id)


def test_update_unknown_user_is_not_found(tmp_path):
    repository, service, _ = _build_service(tmp_path, "update_missing.db")
    manager = _seed_manager(repository)

    with pytest.raises(NotFoundError):
        service.update_user(manager.user_id, "missing", name="Nobody")


def test_reset_password_replaces_hash(tmp_path):
    repository, service, audit_logger = _build_service(tmp_path, "reset_password.db")
    manager = _seed_manager(repository)
    supervisor = service.create_user(manager.user_id, name="Sup", email="sup@housing.local")
    old_hash = _password_hash(repository, supervisor.user.user_id)

    reset = service.reset_password(manager.user_id, supervisor.user.user_id)

    new_hash = _password_hash(repository, supervisor.user.user_id)
    assert new_hash != old_hash
    assert verify_password(reset.temp_password, new_hash)
    assert not verify_password(supervisor.temp_password, new_hash)
    assert audit_logger.list_logs(LogFilters(action="RESET_PASSWORD")).total == 1


def test_authenticate_accepts_issued_password(tmp_path):
    repository, service, _ = _build_service(tmp_path, "authenticate.db")
    manager = _seed_manager(repository)
    issued = service.create_user(manager.user_id, name="Sup", email="sup@housing.local")

    user = service.authenticate("  SUP@Housing.local ", issued.temp_password)

    assert user.user_id == issued.user.user_id
    assert user.role is UserRole.SUPERVISOR
    assert "password" not in str(user.to_dict()).lower()


def test_authenticate_rejects_bad_credentials(tmp_path):
    repository, service, _ = _build_service(tmp_path, "authenticate_rejects.db")
    manager = _seed_manager(repository)
    issued = service.create_user(manager.user_id, name="Sup", email="sup@housing.local")

    with pytest.raises(InvalidInputError):
        service.authenticate("", issued.temp_password)
    with pytest.raises(InvalidInputError):
        service.authenticate("sup@housing.local", None)
    with pytest.raises(UnauthorizedError):
        service.authenticate("nobody@housing.local", issued.temp_password)
    with pytest.raises(UnauthorizedError):
        service.authenticate("sup@housing.local", issued.temp_password + "x")
    with pytest.raises(UnauthorizedError):
        service.authenticate("manager@housing.local", "seed")

    service.update_user(manager.user_id, issued.user.user_id, is_active=False)
    with pytest.raises(UnauthorizedError, match="inactive"):
        service.authenticate("sup@housing.local", issued.temp_password)


def test_backup_database_writes_copy(tmp_path):
    repository, service, audit_logger = _build_service(tmp_path, "backup.db")
    manager = _seed_manager(repository)

    result = service.backup_database(manager.user_id)

    assert result.path.exists()
    assert result.file_name.startswith("housing_backup_")
    assert result.path.parent == tmp_path / "backups"
    backups = audit_logger.list_logs(LogFilters(action="BACKUP_DATABASE")).items
    assert len(backups) == 1
    assert backups[0].user_id == manager.user_id
