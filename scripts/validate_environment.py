#!/usr/bin/env python3
"""Validate local housing-core environment readiness."""

from __future__ import annotations

import importlib
import shutil
import sys
import tempfile
from dataclasses import replace
from importlib.metadata import PackageNotFoundError, version
from pathlib import Path

PROJECT_ROOT = Path(__file__).resolve().parents[1]
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

from housing.domain.building import generate_building_layout
from housing.domain.models import University
from housing.repository.data_repository import DataRepository
from housing.services.audit_service import AuditLogger
from housing.services.auth_service import AuthorizationGuard
from housing.services.occupancy_service import RoomOccupancyManager
from housing.services.student_service import StudentService
from housing.utils.config import get_settings
from housing.utils.security import hash_password, verify_password

SEPARATOR_LINE = "=" * 44


def _print_result(name: str, success: bool, detail: str = "") -> tuple[bool, str]:
    if success:
        return True, f"[PASS] {name}{detail}"
    return False, f"[FAIL] {name}: {detail}"


def main() -> int:
    results: list[str] = []
    all_passed = True
    temp_dir = tempfile.mkdtemp(prefix="housing-env-")

    # CHECK 1: Python version >= 3.10
    if sys.version_info >= (3, 10):
        ok, line = _print_result("Python " + sys.version.split()[0], True)
    else:
        ok, line = _print_result(
            "Python version >= 3.10",
            False,
            f"found {sys.version.split()[0]}",
        )
    results.append(line)
    all_passed = all_passed and ok

    # CHECK 2: Required packages importable
    package_specs = [
        ("fastapi", "fastapi"),
        ("uvicorn", "uvicorn"),
        ("pydantic", "pydantic"),
        ("bcrypt", "bcrypt"),
        ("httpx", "httpx"),
        ("pytest", "pytest"),
    ]
    import_errors: list[str] = []
    for module_name, dist_name in package_specs:
        try:
            importlib.import_module(module_name)
            version(dist_name)
        except (ImportError, PackageNotFoundError) as exc:
            import_errors.append(f"{module_name} ({exc})")
    if import_errors:
        ok, line = _print_result(
            "Required packages",
            False,
            "missing/unimportable -> " + "; ".join(import_errors),
        )
    else:
        ok, line = _print_result("Required packages: all importable", True)
    results.append(line)
    all_passed = all_passed and ok

    try:
        base_settings = get_settings()
        validation_settings = replace(
            base_settings,
            database_path=Path(temp_dir) / "housing_validation.db",
            backup_directory=Path(temp_dir) / "backups",
            password_hash_rounds=4,
        )
        repository = DataRepository(validation_settings)

        # CHECK 3: Database initialization
        try:
            repository.initialize_database()
            ok, line = _print_result("Database initialization", True)
        except Exception as exc:
            ok, line = _print_result("Database initialization", False, str(exc))
        results.append(line)
        all_passed = all_passed and ok

        # CHECK 4: Building layout seeding
        layout = generate_building_layout(
            floor_count=validation_settings.seed_floor_count,
            room_capacity=validation_settings.seed_room_capacity,
        )
        try:
            seeded = repository.seed_rooms_if_empty(layout)
            residential = sum(1 for item in layout if item.capacity > 0)
            if seeded != len(layout):
                raise RuntimeError(f"expected {len(layout)} rooms, got {seeded}")
            ok, line = _print_result(
                "Building layout",
                True,
                f": {seeded} rooms ({residential} residential)",
            )
        except Exception as exc:
            ok, line = _print_result("Building layout", False, str(exc))
        results.append(line)
        all_passed = all_passed and ok

        # CHECK 5: Password hashing
        try:
            hashed = hash_password("validation", validation_settings.password_hash_rounds)
            if not verify_password("validation", hashed):
                raise RuntimeError("bcrypt round trip did not verify")
            ok, line = _print_result("Password hashing (bcrypt)", True)
        except Exception as exc:
            ok, line = _print_result("Password hashing", False, str(exc))
        results.append(line)
        all_passed = all_passed and ok

        # CHECK 6: Assignment round trip
        audit_logger = AuditLogger(repository=repository, settings=validation_settings)
        guard = AuthorizationGuard(repository=repository, settings=validation_settings)
        occupancy = RoomOccupancyManager(
            repository=repository,
            audit_logger=audit_logger,
            guard=guard,
            settings=validation_settings,
        )
        students = StudentService(
            repository=repository,
            occupancy_manager=occupancy,
            guard=guard,
            audit_logger=audit_logger,
            settings=validation_settings,
        )
        try:
            student = students.add_student(
                registration_number="ENV-0001",
                national_id="00000000000000",
                name_ar="Validation",
                name_en="Validation",
                email="validation@housing.local",
                academic_year=1,
                university=University.GOVERNMENT,
            )
            assigned = occupancy.assign(student.student_id, layout[0].room_number)
            released = occupancy.unassign(student.student_id)
            if assigned.room is None or assigned.room.current_count != 1:
                raise RuntimeError("assignment did not increment occupancy")
            if released.room is None or released.room.current_count != 0:
                raise RuntimeError("unassignment did not restore occupancy")
            ok, line = _print_result("Assignment round trip", True)
        except Exception as exc:
            ok, line = _print_result("Assignment round trip", False, str(exc))
        results.append(line)
        all_passed = all_passed and ok

    finally:
        shutil.rmtree(temp_dir, ignore_errors=True)

    print(SEPARATOR_LINE)
    print(" Housing Core Environment Validation")
    print(SEPARATOR_LINE)
    for line in results:
        print(f" {line}")
    print(SEPARATOR_LINE)
    if all_passed:
        print(" All checks passed. Environment is ready.")
        print(SEPARATOR_LINE)
        return 0
    print(" One or more checks failed.")
    print(SEPARATOR_LINE)
    return 1


if __name__ == "__main__":
    raise SystemExit(main())
