"""UTC timestamp helpers shared by the repository and services."""

from __future__ import annotations

from datetime import datetime, timezone


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def utc_now_iso() -> str:
    return utc_now().isoformat()


def utc_today_iso() -> str:
    return utc_now().date().isoformat()
