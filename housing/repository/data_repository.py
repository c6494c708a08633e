"""Repository layer responsible for all database access."""

from __future__ import annotations

import json
import sqlite3
import uuid
from contextlib import contextmanager
from pathlib import Path
from typing import Any, Iterator, Optional, Sequence, TypeVar

from housing.domain.errors import StorageError
from housing.domain.models import (
    HousingRequest,
    LogEntry,
    LogFilters,
    Notification,
    RequestDetails,
    RequestFilters,
    RequestStatus,
    RequestType,
    Room,
    RoomDefinition,
    RoomKind,
    RoomTier,
    Student,
    StudentStatus,
    StudentSummary,
    University,
    User,
    UserRole,
    UserSummary,
    details_from_dict,
    details_to_dict,
)
from housing.utils.config import Settings, get_settings
from housing.utils.logger import get_logger
from housing.utils.timeutils import utc_now_iso


logger = get_logger(__name__)

T = TypeVar("T")


def new_id() -> str:
    return uuid.uuid4().hex


_SCHEMA_STATEMENTS = (
    """
    CREATE TABLE IF NOT EXISTS Users (
        id TEXT PRIMARY KEY,
        name TEXT NOT NULL,
        email TEXT NOT NULL UNIQUE,
        password_hash TEXT NOT NULL,
        role TEXT NOT NULL CHECK (role IN ('MANAGER', 'SUPERVISOR')),
        is_active INTEGER NOT NULL DEFAULT 1 CHECK (is_active IN (0, 1)),
        created_at TEXT NOT NULL,
        updated_at TEXT NOT NULL
    );
    """,
    """
    CREATE TABLE IF NOT EXISTS Rooms (
        id TEXT PRIMARY KEY,
        room_number TEXT NOT NULL UNIQUE,
        floor INTEGER NOT NULL CHECK (floor >= 0),
        wing TEXT,
        kind TEXT NOT NULL DEFAULT 'ROOM' CHECK (kind IN ('ROOM', 'STORAGE')),
        capacity INTEGER NOT NULL CHECK (capacity >= 0),
        room_type TEXT NOT NULL CHECK (room_type IN ('STANDARD', 'PREMIUM')),
        current_count INTEGER NOT NULL DEFAULT 0
            CHECK (current_count >= 0 AND current_count <= capacity),
        created_at TEXT NOT NULL,
        updated_at TEXT NOT NULL
    );
    """,
    """
    CREATE TABLE IF NOT EXISTS Students (
        id TEXT PRIMARY KEY,
        registration_number TEXT NOT NULL UNIQUE,
        national_id TEXT NOT NULL,
        name_ar TEXT NOT NULL,
        name_en TEXT NOT NULL,
        email TEXT NOT NULL,
        phone TEXT,
        academic_year INTEGER NOT NULL,
        university TEXT NOT NULL CHECK (university IN ('GOVERNMENT', 'PRIVATE')),
        room_type TEXT NOT NULL CHECK (room_type IN ('STANDARD', 'PREMIUM')),
        status TEXT NOT NULL DEFAULT 'ACTIVE',
        room_number TEXT REFERENCES Rooms(room_number) ON UPDATE CASCADE,
        check_in_date TEXT,
        created_at TEXT NOT NULL,
        updated_at TEXT NOT NULL
    );
    """,
    """
    CREATE TABLE IF NOT EXISTS Requests (
        id TEXT PRIMARY KEY,
        type TEXT NOT NULL,
        status TEXT NOT NULL DEFAULT 'PENDING'
            CHECK (status IN ('PENDING', 'APPROVED', 'REJECTED')),
        student_id TEXT REFERENCES Students(id) ON DELETE SET NULL,
        details TEXT NOT NULL,
        requester_id TEXT NOT NULL,
        resolver_id TEXT,
        rejection_reason TEXT,
        created_at TEXT NOT NULL,
        resolved_at TEXT
    );
    """,
    """
    CREATE TABLE IF NOT EXISTS Logs (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        action TEXT NOT NULL,
        user_id TEXT,
        metadata TEXT NOT NULL DEFAULT '{}',
        description TEXT NOT NULL,
        created_at TEXT NOT NULL
    );
    """,
    """
    CREATE TABLE IF NOT EXISTS Notifications (
        id TEXT PRIMARY KEY,
        user_id TEXT NOT NULL,
        title TEXT NOT NULL,
        message TEXT NOT NULL,
        related_id TEXT,
        is_read INTEGER NOT NULL DEFAULT 0 CHECK (is_read IN (0, 1)),
        created_at TEXT NOT NULL
    );
    """,
    "CREATE INDEX IF NOT EXISTS idx_students_room_number ON Students(room_number);",
    "CREATE INDEX IF NOT EXISTS idx_requests_status_type ON Requests(status, type);",
    "CREATE INDEX IF NOT EXISTS idx_logs_action_user ON Logs(action, user_id);",
    "CREATE INDEX IF NOT EXISTS idx_notifications_user ON Notifications(user_id, is_read);",
)


def _row_to_user(row: sqlite3.Row) -> User:
    return User(
        user_id=str(row["id"]),
        name=str(row["name"]),
        email=str(row["email"]),
        role=UserRole(row["role"]),
        is_active=bool(row["is_active"]),
        created_at=str(row["created_at"]),
        updated_at=str(row["updated_at"]),
    )


def _row_to_room(row: sqlite3.Row) -> Room:
    return Room(
        room_id=str(row["id"]),
        room_number=str(row["room_number"]),
        floor=int(row["floor"]),
        wing=row["wing"],
        kind=RoomKind(row["kind"]),
        capacity=int(row["capacity"]),
        room_type=RoomTier(row["room_type"]),
        current_count=int(row["current_count"]),
        created_at=str(row["created_at"]),
        updated_at=str(row["updated_at"]),
    )


def _row_to_student(row: sqlite3.Row) -> Student:
    return Student(
        student_id=str(row["id"]),
        registration_number=str(row["registration_number"]),
        national_id=str(row["national_id"]),
        name_ar=str(row["name_ar"]),
        name_en=str(row["name_en"]),
        email=str(row["email"]),
        phone=row["phone"],
        academic_year=int(row["academic_year"]),
        university=University(row["university"]),
        room_type=RoomTier(row["room_type"]),
        status=StudentStatus(row["status"]),
        room_number=row["room_number"],
        check_in_date=row["check_in_date"],
        created_at=str(row["created_at"]),
        updated_at=str(row["updated_at"]),
    )


_REQUEST_SELECT = """
    SELECT r.*,
        requester.name AS requester_name, requester.email AS requester_email,
        resolver.name AS resolver_name, resolver.email AS resolver_email,
        s.registration_number AS student_registration_number,
        s.name_ar AS student_name_ar, s.name_en AS student_name_en,
        s.room_number AS student_room_number
    FROM Requests AS r
    LEFT JOIN Users AS requester ON requester.id = r.requester_id
    LEFT JOIN Users AS resolver ON resolver.id = r.resolver_id
    LEFT JOIN Students AS s ON s.id = r.student_id
"""


def _user_summary(row: sqlite3.Row, prefix: str) -> Optional[UserSummary]:
    user_id = row[f"{prefix}_id"]
    if user_id is None or row[f"{prefix}_name"] is None:
        return None
    return UserSummary(
        user_id=str(user_id),
        name=str(row[f"{prefix}_name"]),
        email=str(row[f"{prefix}_email"]),
    )


def _student_summary(row: sqlite3.Row) -> Optional[StudentSummary]:
    if row["student_id"] is None or row["student_registration_number"] is None:
        return None
    return StudentSummary(
        student_id=str(row["student_id"]),
        registration_number=str(row["student_registration_number"]),
        name_ar=str(row["student_name_ar"]),
        name_en=str(row["student_name_en"]),
        room_number=row["student_room_number"],
    )


def _row_to_request(row: sqlite3.Row) -> HousingRequest:
    """Map a row from the joined request SELECT, summaries included."""
    request_type = RequestType(row["type"])
    return HousingRequest(
        request_id=str(row["id"]),
        request_type=request_type,
        status=RequestStatus(row["status"]),
        student_id=row["student_id"],
        details=details_from_dict(request_type, json.loads(row["details"])),
        requester_id=str(row["requester_id"]),
        resolver_id=row["resolver_id"],
        rejection_reason=row["rejection_reason"],
        created_at=str(row["created_at"]),
        resolved_at=row["resolved_at"],
        requester=_user_summary(row, "requester"),
        resolver=_user_summary(row, "resolver"),
        student=_student_summary(row),
    )


def _row_to_log(row: sqlite3.Row) -> LogEntry:
    return LogEntry(
        log_id=int(row["id"]),
        action=str(row["action"]),
        user_id=row["user_id"],
        metadata=json.loads(row["metadata"] or "{}"),
        description=str(row["description"]),
        created_at=str(row["created_at"]),
    )


def _row_to_notification(row: sqlite3.Row) -> Notification:
    return Notification(
        notification_id=str(row["id"]),
        user_id=str(row["user_id"]),
        title=str(row["title"]),
        message=str(row["message"]),
        related_id=row["related_id"],
        is_read=bool(row["is_read"]),
        created_at=str(row["created_at"]),
    )


def _where(clauses: list[str]) -> str:
    if not clauses:
        return ""
    return "WHERE " + " AND ".join(clauses)


def _reloaded(entity: Optional[T], kind: str, key: str) -> T:
    """Return a row just written in this transaction; a miss means the store is inconsistent."""
    if entity is None:
        logger.error("Could not reload %s %s after writing it", kind, key)
        raise StorageError()
    return entity


class DataRepository:
    """Encapsulates SQLite access so business logic stays storage-agnostic.

    Every query method takes the connection of the caller's unit of work so
    that a service can compose several reads and writes into one atomic step.
    """

    def __init__(self, settings: Optional[Settings] = None) -> None:
        self._settings = settings or get_settings()
        self._db_path = Path(self._settings.database_path)
        self._db_path.parent.mkdir(parents=True, exist_ok=True)

    @property
    def database_path(self) -> Path:
        return self._db_path

    def _connect(self) -> sqlite3.Connection:
        connection = sqlite3.connect(
            self._db_path,
            timeout=self._settings.database_timeout_seconds,
            isolation_level=None,
            check_same_thread=False,
        )
        connection.row_factory = sqlite3.Row
        connection.execute("PRAGMA foreign_keys = ON;")
        return connection

    @contextmanager
    def _transaction(self, begin_statement: str) -> Iterator[sqlite3.Connection]:
        try:
            conn = self._connect()
        except sqlite3.Error as exc:
            logger.exception("Could not open database at %s", self._db_path)
            raise StorageError() from exc
        try:
            conn.execute(begin_statement)
            yield conn
            conn.execute("COMMIT;")
        except sqlite3.Error as exc:
            self._rollback(conn)
            logger.exception("Database transaction failed")
            raise StorageError() from exc
        except BaseException:
            self._rollback(conn)
            raise
        finally:
            conn.close()

    @staticmethod
    def _rollback(conn: sqlite3.Connection) -> None:
        if not conn.in_transaction:
            return
        try:
            conn.execute("ROLLBACK;")
        except sqlite3.Error:
            logger.exception("Rollback failed")

    @contextmanager
    def unit_of_work(self) -> Iterator[sqlite3.Connection]:
        """Open a write transaction holding the database lock from its first read.

        ``BEGIN IMMEDIATE`` serializes read-check-write sequences across
        connections; everything done on the yielded connection commits
        together or not at all.
        """
        with self._transaction("BEGIN IMMEDIATE;") as conn:
            yield conn

    @contextmanager
    def snapshot(self) -> Iterator[sqlite3.Connection]:
        """Open a read transaction that sees one consistent state."""
        with self._transaction("BEGIN;") as conn:
            yield conn

    def initialize_database(self) -> None:
        """Create all persistence artifacts before API startup."""
        with self.unit_of_work() as conn:
            for statement in _SCHEMA_STATEMENTS:
                conn.execute(statement)
        logger.info("Database initialized at %s", self._db_path)

    # ------------------------------------------------------------------ #
    # Users
    # ------------------------------------------------------------------ #
    def insert_user(
        self,
        conn: sqlite3.Connection,
        *,
        name: str,
        email: str,
        password_hash: str,
        role: UserRole,
        is_active: bool = True,
    ) -> User:
        user_id = new_id()
        now = utc_now_iso()
        conn.execute(
            """
            INSERT INTO Users (id, name, email, password_hash, role, is_active, created_at, updated_at)
            VALUES (?, ?, ?, ?, ?, ?, ?, ?);
            """,
            (user_id, name, email, password_hash, role.value, int(is_active), now, now),
        )
        return _reloaded(self.get_user(conn, user_id), "user", user_id)

    def get_user(self, conn: sqlite3.Connection, user_id: str) -> Optional[User]:
        row = conn.execute("SELECT * FROM Users WHERE id = ?;", (user_id,)).fetchone()
        return _row_to_user(row) if row is not None else None

    def get_credentials(
        self,
        conn: sqlite3.Connection,
        email: str,
    ) -> Optional[tuple[User, str]]:
        """Return the user registered under ``email`` with its stored password hash."""
        row = conn.execute(
            "SELECT * FROM Users WHERE lower(email) = lower(?);",
            (email,),
        ).fetchone()
        if row is None:
            return None
        return _row_to_user(row), str(row["password_hash"])

    def email_in_use(
        self,
        conn: sqlite3.Connection,
        email: str,
        exclude_user_id: Optional[str] = None,
    ) -> bool:
        row = conn.execute(
            "SELECT id FROM Users WHERE lower(email) = lower(?) AND id != ?;",
            (email, exclude_user_id or ""),
        ).fetchone()
        return row is not None

    def list_users(self, conn: sqlite3.Connection) -> list[User]:
        rows = conn.execute("SELECT * FROM Users ORDER BY created_at DESC, id ASC;").fetchall()
        return [_row_to_user(row) for row in rows]

    def update_user(
        self,
        conn: sqlite3.Connection,
        user_id: str,
        *,
        name: str,
        email: str,
        role: UserRole,
        is_active: bool,
    ) -> User:
        conn.execute(
            """
            UPDATE Users
            SET name = ?, email = ?, role = ?, is_active = ?, updated_at = ?
            WHERE id = ?;
            """,
            (name, email, role.value, int(is_active), utc_now_iso(), user_id),
        )
        return _reloaded(self.get_user(conn, user_id), "user", user_id)

    def update_password_hash(
        self,
        conn: sqlite3.Connection,
        user_id: str,
        password_hash: str,
    ) -> None:
        conn.execute(
            "UPDATE Users SET password_hash = ?, updated_at = ? WHERE id = ?;",
            (password_hash, utc_now_iso(), user_id),
        )

    def delete_user(self, conn: sqlite3.Connection, user_id: str) -> None:
        conn.execute("DELETE FROM Users WHERE id = ?;", (user_id,))

    def count_active_managers(self, conn: sqlite3.Connection) -> int:
        row = conn.execute(
            "SELECT COUNT(*) AS count FROM Users WHERE role = 'MANAGER' AND is_active = 1;"
        ).fetchone()
        return int(row["count"])

    def list_active_manager_ids(self, conn: sqlite3.Connection) -> list[str]:
        rows = conn.execute(
            "SELECT id FROM Users WHERE role = 'MANAGER' AND is_active = 1 ORDER BY id ASC;"
        ).fetchall()
        return [str(row["id"]) for row in rows]

    def count_users(self, conn: sqlite3.Connection) -> int:
        return int(conn.execute("SELECT COUNT(*) AS count FROM Users;").fetchone()["count"])

    # ------------------------------------------------------------------ #
    # Rooms
    # ------------------------------------------------------------------ #
    def insert_room(
        self,
        conn: sqlite3.Connection,
        *,
        room_number: str,
        floor: int,
        wing: Optional[str],
        kind: RoomKind,
        capacity: int,
        room_type: RoomTier,
    ) -> Room:
        room_id = new_id()
        now = utc_now_iso()
        conn.execute(
            """
            INSERT INTO Rooms (
                id, room_number, floor, wing, kind, capacity, room_type,
                current_count, created_at, updated_at
            )
            VALUES (?, ?, ?, ?, ?, ?, ?, 0, ?, ?);
            """,
            (room_id, room_number, floor, wing, kind.value, capacity, room_type.value, now, now),
        )
        return _reloaded(self.get_room(conn, room_id), "room", room_id)

    def get_room(self, conn: sqlite3.Connection, room_id: str) -> Optional[Room]:
        row = conn.execute("SELECT * FROM Rooms WHERE id = ?;", (room_id,)).fetchone()
        return _row_to_room(row) if row is not None else None

    def get_room_by_number(self, conn: sqlite3.Connection, room_number: str) -> Optional[Room]:
        row = conn.execute(
            "SELECT * FROM Rooms WHERE room_number = ?;",
            (room_number,),
        ).fetchone()
        return _row_to_room(row) if row is not None else None

    def find_room(self, conn: sqlite3.Connection, room_ref: str) -> Optional[Room]:
        """Resolve a room by id first, then by room number."""
        return self.get_room(conn, room_ref) or self.get_room_by_number(conn, room_ref)

    def list_rooms(
        self,
        conn: sqlite3.Connection,
        *,
        occupied: Optional[bool] = None,
        room_type: Optional[RoomTier] = None,
        residential_only: bool = False,
    ) -> list[Room]:
        clauses: list[str] = []
        params: list[Any] = []
        if occupied is True:
            clauses.append("current_count >= capacity")
        elif occupied is False:
            clauses.append("current_count < capacity")
        if room_type is not None:
            clauses.append("room_type = ?")
            params.append(room_type.value)
        if residential_only:
            clauses.append("kind = 'ROOM'")
        rows = conn.execute(
            f"""
            SELECT * FROM Rooms
            {_where(clauses)}
            ORDER BY floor ASC, room_number ASC;
            """,
            tuple(params),
        ).fetchall()
        return [_row_to_room(row) for row in rows]

    def update_room(
        self,
        conn: sqlite3.Connection,
        room_id: str,
        *,
        room_number: str,
        floor: int,
        wing: Optional[str],
        kind: RoomKind,
        capacity: int,
        room_type: RoomTier,
    ) -> Room:
        conn.execute(
            """
            UPDATE Rooms
            SET room_number = ?, floor = ?, wing = ?, kind = ?, capacity = ?,
                room_type = ?, updated_at = ?
            WHERE id = ?;
            """,
            (room_number, floor, wing, kind.value, capacity, room_type.value, utc_now_iso(), room_id),
        )
        return _reloaded(self.get_room(conn, room_id), "room", room_id)

    def set_room_occupancy(
        self,
        conn: sqlite3.Connection,
        room_id: str,
        current_count: int,
    ) -> Room:
        conn.execute(
            "UPDATE Rooms SET current_count = ?, updated_at = ? WHERE id = ?;",
            (current_count, utc_now_iso(), room_id),
        )
        return _reloaded(self.get_room(conn, room_id), "room", room_id)

    def delete_room(self, conn: sqlite3.Connection, room_id: str) -> None:
        conn.execute("DELETE FROM Rooms WHERE id = ?;", (room_id,))

    def count_rooms(self, conn: sqlite3.Connection) -> int:
        return int(conn.execute("SELECT COUNT(*) AS count FROM Rooms;").fetchone()["count"])

    # ------------------------------------------------------------------ #
    # Students
    # ------------------------------------------------------------------ #
    def insert_student(
        self,
        conn: sqlite3.Connection,
        *,
        registration_number: str,
        national_id: str,
        name_ar: str,
        name_en: str,
        email: str,
        phone: Optional[str],
        academic_year: int,
        university: University,
        room_type: RoomTier,
        status: StudentStatus = StudentStatus.ACTIVE,
    ) -> Student:
        student_id = new_id()
        now = utc_now_iso()
        conn.execute(
            """
            INSERT INTO Students (
                id, registration_number, national_id, name_ar, name_en, email, phone,
                academic_year, university, room_type, status, room_number, check_in_date,
                created_at, updated_at
            )
            VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, NULL, NULL, ?, ?);
            """,
            (
                student_id,
                registration_number,
                national_id,
                name_ar,
                name_en,
                email,
                phone,
                academic_year,
                university.value,
                room_type.value,
                status.value,
                now,
                now,
            ),
        )
        return _reloaded(self.get_student(conn, student_id), "student", student_id)

    def get_student(self, conn: sqlite3.Connection, student_id: str) -> Optional[Student]:
        row = conn.execute("SELECT * FROM Students WHERE id = ?;", (student_id,)).fetchone()
        return _row_to_student(row) if row is not None else None

    def registration_number_in_use(
        self,
        conn: sqlite3.Connection,
        registration_number: str,
    ) -> bool:
        row = conn.execute(
            "SELECT id FROM Students WHERE registration_number = ?;",
            (registration_number,),
        ).fetchone()
        return row is not None

    def list_students(
        self,
        conn: sqlite3.Connection,
        *,
        status: Optional[StudentStatus],
        limit: int,
        skip: int,
    ) -> list[Student]:
        clauses: list[str] = []
        params: list[Any] = []
        if status is not None:
            clauses.append("status = ?")
            params.append(status.value)
        rows = conn.execute(
            f"""
            SELECT * FROM Students
            {_where(clauses)}
            ORDER BY created_at DESC, id ASC
            LIMIT ? OFFSET ?;
            """,
            (*params, limit, skip),
        ).fetchall()
        return [_row_to_student(row) for row in rows]

    def count_students(
        self,
        conn: sqlite3.Connection,
        *,
        status: Optional[StudentStatus] = None,
    ) -> int:
        if status is None:
            row = conn.execute("SELECT COUNT(*) AS count FROM Students;").fetchone()
        else:
            row = conn.execute(
                "SELECT COUNT(*) AS count FROM Students WHERE status = ?;",
                (status.value,),
            ).fetchone()
        return int(row["count"])

    def list_students_in_room(self, conn: sqlite3.Connection, room_number: str) -> list[Student]:
        rows = conn.execute(
            "SELECT * FROM Students WHERE room_number = ? ORDER BY id ASC;",
            (room_number,),
        ).fetchall()
        return [_row_to_student(row) for row in rows]

    def update_student_profile(
        self,
        conn: sqlite3.Connection,
        student_id: str,
        *,
        name_ar: str,
        name_en: str,
        email: str,
        phone: Optional[str],
        academic_year: int,
        university: University,
        room_type: RoomTier,
        status: StudentStatus,
    ) -> Student:
        conn.execute(
            """
            UPDATE Students
            SET name_ar = ?, name_en = ?, email = ?, phone = ?, academic_year = ?,
                university = ?, room_type = ?, status = ?, updated_at = ?
            WHERE id = ?;
            """,
            (
                name_ar,
                name_en,
                email,
                phone,
                academic_year,
                university.value,
                room_type.value,
                status.value,
                utc_now_iso(),
                student_id,
            ),
        )
        return _reloaded(self.get_student(conn, student_id), "student", student_id)

    def set_student_room(
        self,
        conn: sqlite3.Connection,
        student_id: str,
        *,
        room_number: Optional[str],
        check_in_date: Optional[str],
    ) -> Student:
        conn.execute(
            """
            UPDATE Students
            SET room_number = ?, check_in_date = ?, updated_at = ?
            WHERE id = ?;
            """,
            (room_number, check_in_date, utc_now_iso(), student_id),
        )
        return _reloaded(self.get_student(conn, student_id), "student", student_id)

    def delete_student(self, conn: sqlite3.Connection, student_id: str) -> None:
        conn.execute("DELETE FROM Students WHERE id = ?;", (student_id,))

    # ------------------------------------------------------------------ #
    # Requests
    # ------------------------------------------------------------------ #
    def insert_request(
        self,
        conn: sqlite3.Connection,
        *,
        request_type: RequestType,
        student_id: Optional[str],
        details: RequestDetails,
        requester_id: str,
    ) -> HousingRequest:
        request_id = new_id()
        conn.execute(
            """
            INSERT INTO Requests (
                id, type, status, student_id, details, requester_id, created_at
            )
            VALUES (?, ?, 'PENDING', ?, ?, ?, ?);
            """,
            (
                request_id,
                request_type.value,
                student_id,
                json.dumps(details_to_dict(details)),
                requester_id,
                utc_now_iso(),
            ),
        )
        return _reloaded(self.get_request(conn, request_id), "request", request_id)

    def get_request(self, conn: sqlite3.Connection, request_id: str) -> Optional[HousingRequest]:
        row = conn.execute(f"{_REQUEST_SELECT} WHERE r.id = ?;", (request_id,)).fetchone()
        return _row_to_request(row) if row is not None else None

    @staticmethod
    def _request_clauses(filters: RequestFilters) -> tuple[list[str], list[Any]]:
        clauses: list[str] = []
        params: list[Any] = []
        if filters.status is not None:
            clauses.append("r.status = ?")
            params.append(filters.status.value)
        if filters.request_type is not None:
            clauses.append("r.type = ?")
            params.append(filters.request_type.value)
        if filters.student_id is not None:
            clauses.append("r.student_id = ?")
            params.append(filters.student_id)
        if filters.requester_id is not None:
            clauses.append("r.requester_id = ?")
            params.append(filters.requester_id)
        return clauses, params

    def list_requests(
        self,
        conn: sqlite3.Connection,
        filters: RequestFilters,
        *,
        limit: int,
    ) -> list[HousingRequest]:
        clauses, params = self._request_clauses(filters)
        rows = conn.execute(
            f"""
            {_REQUEST_SELECT}
            {_where(clauses)}
            ORDER BY r.created_at DESC, r.id ASC
            LIMIT ? OFFSET ?;
            """,
            (*params, limit, filters.skip),
        ).fetchall()
        return [_row_to_request(row) for row in rows]

    def count_requests(self, conn: sqlite3.Connection, filters: RequestFilters) -> int:
        clauses, params = self._request_clauses(filters)
        row = conn.execute(
            f"SELECT COUNT(*) AS count FROM Requests AS r {_where(clauses)};",
            tuple(params),
        ).fetchone()
        return int(row["count"])

    def mark_request_resolved(
        self,
        conn: sqlite3.Connection,
        request_id: str,
        *,
        status: RequestStatus,
        resolver_id: str,
        rejection_reason: Optional[str],
    ) -> Optional[HousingRequest]:
        """Move a PENDING request to a terminal status; None if it was not pending."""
        cursor = conn.execute(
            """
            UPDATE Requests
            SET status = ?, resolver_id = ?, rejection_reason = ?, resolved_at = ?
            WHERE id = ? AND status = 'PENDING';
            """,
            (status.value, resolver_id, rejection_reason, utc_now_iso(), request_id),
        )
        if cursor.rowcount != 1:
            return None
        return _reloaded(self.get_request(conn, request_id), "request", request_id)

    # ------------------------------------------------------------------ #
    # Logs
    # ------------------------------------------------------------------ #
    def insert_log(
        self,
        conn: sqlite3.Connection,
        *,
        action: str,
        user_id: Optional[str],
        metadata: dict[str, Any],
        description: str,
    ) -> int:
        cursor = conn.execute(
            """
            INSERT INTO Logs (action, user_id, metadata, description, created_at)
            VALUES (?, ?, ?, ?, ?);
            """,
            (action, user_id, json.dumps(metadata, default=str), description, utc_now_iso()),
        )
        return int(cursor.lastrowid)

    @staticmethod
    def _log_clauses(filters: LogFilters) -> tuple[list[str], list[Any]]:
        clauses: list[str] = []
        params: list[Any] = []
        if filters.action is not None:
            clauses.append("action = ?")
            params.append(filters.action)
        if filters.user_id is not None:
            clauses.append("user_id = ?")
            params.append(filters.user_id)
        return clauses, params

    def list_logs(
        self,
        conn: sqlite3.Connection,
        filters: LogFilters,
        *,
        limit: int,
    ) -> list[LogEntry]:
        clauses, params = self._log_clauses(filters)
        rows = conn.execute(
            f"""
            SELECT * FROM Logs
            {_where(clauses)}
            ORDER BY id DESC
            LIMIT ? OFFSET ?;
            """,
            (*params, limit, filters.skip),
        ).fetchall()
        return [_row_to_log(row) for row in rows]

    def count_logs(self, conn: sqlite3.Connection, filters: Optional[LogFilters] = None) -> int:
        clauses, params = self._log_clauses(filters or LogFilters())
        row = conn.execute(
            f"SELECT COUNT(*) AS count FROM Logs {_where(clauses)};",
            tuple(params),
        ).fetchone()
        return int(row["count"])

    # ------------------------------------------------------------------ #
    # Notifications
    # ------------------------------------------------------------------ #
    def insert_notifications(
        self,
        conn: sqlite3.Connection,
        *,
        user_ids: Sequence[str],
        title: str,
        message: str,
        related_id: Optional[str],
    ) -> int:
        if not user_ids:
            return 0
        now = utc_now_iso()
        conn.executemany(
            """
            INSERT INTO Notifications (id, user_id, title, message, related_id, is_read, created_at)
            VALUES (?, ?, ?, ?, ?, 0, ?);
            """,
            [(new_id(), user_id, title, message, related_id, now) for user_id in user_ids],
        )
        return len(user_ids)

    def list_notifications(
        self,
        conn: sqlite3.Connection,
        user_id: str,
        *,
        limit: int,
    ) -> list[Notification]:
        rows = conn.execute(
            """
            SELECT * FROM Notifications
            WHERE user_id = ?
            ORDER BY created_at DESC, id ASC
            LIMIT ?;
            """,
            (user_id, limit),
        ).fetchall()
        return [_row_to_notification(row) for row in rows]

    def mark_notification_read(self, conn: sqlite3.Connection, notification_id: str) -> bool:
        cursor = conn.execute(
            "UPDATE Notifications SET is_read = 1 WHERE id = ?;",
            (notification_id,),
        )
        return cursor.rowcount == 1

    # ------------------------------------------------------------------ #
    # Seeding and maintenance
    # ------------------------------------------------------------------ #
    def seed_rooms_if_empty(self, definitions: Sequence[RoomDefinition]) -> int:
        """Insert the building layout only when no room exists yet."""
        with self.unit_of_work() as conn:
            if self.count_rooms(conn) > 0:
                logger.info("Rooms already present; skipping building seed")
                return 0
            for definition in definitions:
                self.insert_room(
                    conn,
                    room_number=definition.room_number,
                    floor=definition.floor,
                    wing=definition.wing,
                    kind=definition.kind,
                    capacity=definition.capacity,
                    room_type=definition.room_type,
                )
        logger.info("Building seed completed with %s rooms", len(definitions))
        return len(definitions)

    def seed_manager_if_empty(self, *, name: str, email: str, password_hash: str) -> Optional[User]:
        """Guarantee a first active manager on an empty user table."""
        with self.unit_of_work() as conn:
            if self.count_users(conn) > 0:
                return None
            user = self.insert_user(
                conn,
                name=name,
                email=email,
                password_hash=password_hash,
                role=UserRole.MANAGER,
            )
        logger.info("Seeded default manager %s", email)
        return user

    def backup_to(self, destination: Path) -> Path:
        """Copy the live database into ``destination`` using SQLite's online backup."""
        destination.parent.mkdir(parents=True, exist_ok=True)
        try:
            source = self._connect()
            try:
                target = sqlite3.connect(destination)
                try:
                    source.backup(target)
                finally:
                    target.close()
            finally:
                source.close()
        except sqlite3.Error as exc:
            logger.exception("Database backup to %s failed", destination)
            raise StorageError("Database backup failed") from exc
        return destination
