"""
app.py: FastAPI application factory and startup lifecycle.

This is the ASGI application object imported by uvicorn.
It wires all services, registers routers, and runs startup initialization.

Usage (via launcher):
    python main.py

Usage (direct uvicorn):
    uvicorn app:app --reload
"""

from __future__ import annotations

from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI
from fastapi.exceptions import RequestValidationError

from housing.controllers.dependencies import request_validation_handler
from housing.controllers.operations_controller import router as operations_router
from housing.controllers.requests_controller import router as requests_router
from housing.controllers.rooms_controller import router as rooms_router
from housing.controllers.students_controller import router as students_router
from housing.controllers.users_controller import router as users_router
from housing.domain.building import generate_building_layout
from housing.repository.data_repository import DataRepository
from housing.services.audit_service import AuditLogger
from housing.services.auth_service import AuthorizationGuard
from housing.services.notification_service import NotificationService
from housing.services.occupancy_service import RoomOccupancyManager
from housing.services.operation_service import OperationDispatcher
from housing.services.request_service import RequestWorkflowEngine
from housing.services.student_service import StudentService
from housing.services.user_service import UserService
from housing.utils.config import Settings, get_settings
from housing.utils.logger import get_logger
from housing.utils.security import hash_password


logger = get_logger(__name__)


def create_app(settings: Optional[Settings] = None) -> FastAPI:
    """
    Build and wire the FastAPI application.

    Instantiates all services with explicit dependency injection via app.state.
    There is no process-wide store handle; every dependency is traceable from here.
    """
    settings = settings or get_settings()

    # --- Repository (one sqlite3 connection per unit of work) ---
    repository = DataRepository(settings)

    # --- Cross-cutting collaborators shared by every service ---
    audit_logger = AuditLogger(repository=repository, settings=settings)
    guard = AuthorizationGuard(repository=repository, settings=settings)
    notification_service = NotificationService(repository=repository, settings=settings)

    # --- Services (business logic) ---
    occupancy_manager = RoomOccupancyManager(
        repository=repository,
        audit_logger=audit_logger,
        guard=guard,
        settings=settings,
    )
    workflow_engine = RequestWorkflowEngine(
        repository=repository,
        occupancy_manager=occupancy_manager,
        guard=guard,
        audit_logger=audit_logger,
        notification_service=notification_service,
        settings=settings,
    )
    user_service = UserService(
        repository=repository,
        guard=guard,
        audit_logger=audit_logger,
        settings=settings,
    )
    student_service = StudentService(
        repository=repository,
        occupancy_manager=occupancy_manager,
        guard=guard,
        audit_logger=audit_logger,
        settings=settings,
    )
    dispatcher = OperationDispatcher(
        occupancy_manager=occupancy_manager,
        workflow_engine=workflow_engine,
        user_service=user_service,
        student_service=student_service,
        audit_logger=audit_logger,
        notification_service=notification_service,
    )

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Run startup initialization before accepting requests."""
        _startup(app)
        yield

    app = FastAPI(
        title=settings.app_name,
        version=settings.app_version,
        lifespan=lifespan,
    )

    app.add_exception_handler(RequestValidationError, request_validation_handler)

    # --- Routers ---
    app.include_router(operations_router)
    app.include_router(rooms_router)
    app.include_router(requests_router)
    app.include_router(users_router)
    app.include_router(students_router)

    # --- Inject services into app.state for dependency resolution ---
    app.state.settings = settings
    app.state.repository = repository
    app.state.audit_logger = audit_logger
    app.state.occupancy_manager = occupancy_manager
    app.state.workflow_engine = workflow_engine
    app.state.user_service = user_service
    app.state.student_service = student_service
    app.state.dispatcher = dispatcher

    return app


def _startup(app: FastAPI) -> None:
    """
    Idempotent startup sequence. Safe to re-run on server restarts.

    Order matters:
      1. Schema must exist before seeding.
      2. The building layout is seeded only into an empty room table.
      3. A default manager is seeded only into an empty user table, so the
         system never starts without an active manager.
    """
    settings: Settings = app.state.settings
    repository: DataRepository = app.state.repository

    logger.info("Startup: initializing database schema")
    repository.initialize_database()

    if settings.seed_building_layout:
        logger.info("Startup: seeding building layout (skipped if Rooms table not empty)")
        repository.seed_rooms_if_empty(
            generate_building_layout(
                floor_count=settings.seed_floor_count,
                room_capacity=settings.seed_room_capacity,
            )
        )

    if settings.seed_default_manager:
        logger.info("Startup: seeding default manager (skipped if Users table not empty)")
        repository.seed_manager_if_empty(
            name=settings.default_manager_name,
            email=settings.default_manager_email,
            password_hash=hash_password(
                settings.default_manager_password,
                settings.password_hash_rounds,
            ),
        )

    logger.info("Startup complete, system ready")


# Module-level app object for uvicorn
app = create_app()
