"""Runtime configuration sourced from environment variables."""

from __future__ import annotations

import os
from dataclasses import dataclass
from functools import lru_cache
from pathlib import Path


def _env_str(name: str, default: str) -> str:
    value = os.getenv(name)
    if value is None or not value.strip():
        return default
    return value.strip()


def _env_int(name: str, default: int) -> int:
    value = os.getenv(name)
    if value is None or not value.strip():
        return default
    try:
        return int(value)
    except ValueError as exc:
        raise ValueError(f"{name} must be an integer, got {value!r}") from exc


def _env_float(name: str, default: float) -> float:
    value = os.getenv(name)
    if value is None or not value.strip():
        return default
    try:
        return float(value)
    except ValueError as exc:
        raise ValueError(f"{name} must be a number, got {value!r}") from exc


def _env_bool(name: str, default: bool) -> bool:
    value = os.getenv(name)
    if value is None or not value.strip():
        return default
    return value.strip().lower() in {"1", "true", "yes", "on"}


@dataclass(frozen=True)
class Settings:
    app_name: str
    app_version: str
    log_level: str

    database_path: Path
    database_timeout_seconds: float
    backup_directory: Path

    students_page_size: int
    requests_page_size: int
    logs_page_size: int
    notifications_page_size: int

    temp_password_length: int
    password_hash_rounds: int

    allow_self_resolution: bool

    seed_building_layout: bool
    seed_floor_count: int
    seed_room_capacity: int
    seed_default_manager: bool
    default_manager_email: str
    default_manager_name: str
    default_manager_password: str


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Build settings once per process; tests derive copies via ``replace``."""
    data_dir = Path(_env_str("HOUSING_DATA_DIR", "data"))
    return Settings(
        app_name=_env_str("HOUSING_APP_NAME", "University Housing Core"),
        app_version=_env_str("HOUSING_APP_VERSION", "2.0.0"),
        log_level=_env_str("HOUSING_LOG_LEVEL", "INFO"),
        database_path=Path(_env_str("HOUSING_DB_PATH", str(data_dir / "housing.db"))),
        database_timeout_seconds=_env_float("HOUSING_DB_TIMEOUT_SECONDS", 10.0),
        backup_directory=Path(
            _env_str("HOUSING_BACKUP_DIR", str(data_dir / "backups"))
        ),
        students_page_size=_env_int("HOUSING_STUDENTS_PAGE_SIZE", 50),
        requests_page_size=_env_int("HOUSING_REQUESTS_PAGE_SIZE", 50),
        logs_page_size=_env_int("HOUSING_LOGS_PAGE_SIZE", 100),
        notifications_page_size=_env_int("HOUSING_NOTIFICATIONS_PAGE_SIZE", 20),
        temp_password_length=_env_int("HOUSING_TEMP_PASSWORD_LENGTH", 8),
        password_hash_rounds=_env_int("HOUSING_PASSWORD_HASH_ROUNDS", 10),
        allow_self_resolution=_env_bool("HOUSING_ALLOW_SELF_RESOLUTION", True),
        seed_building_layout=_env_bool("HOUSING_SEED_BUILDING", True),
        seed_floor_count=_env_int("HOUSING_SEED_FLOORS", 6),
        seed_room_capacity=_env_int("HOUSING_SEED_ROOM_CAPACITY", 3),
        seed_default_manager=_env_bool("HOUSING_SEED_MANAGER", True),
        default_manager_email=_env_str("HOUSING_MANAGER_EMAIL", "manager@housing.local"),
        default_manager_name=_env_str("HOUSING_MANAGER_NAME", "System Administrator"),
        default_manager_password=_env_str("HOUSING_MANAGER_PASSWORD", "admin123"),
    )
