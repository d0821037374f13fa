"""SQLite persistence for accounts, sessions, readings and app config."""

from __future__ import annotations

import logging
import secrets
import sqlite3
import uuid
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path

from dateutil import parser as date_parser
from dateutil import tz
from werkzeug.security import check_password_hash, generate_password_hash

from glucotracker.errors import AuthError
from glucotracker.model import Reading, ReadingType
from glucotracker.repository import ReadingRepository, Session, User

logger = logging.getLogger(__name__)

MIN_PASSWORD_LENGTH = 6

SCHEMA_SQL = """
CREATE TABLE IF NOT EXISTS app_config (
    key TEXT PRIMARY KEY,
    value TEXT NOT NULL
);

CREATE TABLE IF NOT EXISTS users (
    id TEXT PRIMARY KEY,
    email TEXT NOT NULL UNIQUE,
    full_name TEXT NOT NULL,
    password_hash TEXT NOT NULL,
    created_at TEXT NOT NULL,
    updated_at TEXT NOT NULL
);

CREATE TABLE IF NOT EXISTS sessions (
    token TEXT PRIMARY KEY,
    user_id TEXT NOT NULL,
    created_at TEXT NOT NULL,
    FOREIGN KEY(user_id) REFERENCES users(id)
);

CREATE TABLE IF NOT EXISTS password_resets (
    token TEXT PRIMARY KEY,
    user_id TEXT NOT NULL,
    created_at TEXT NOT NULL,
    used INTEGER NOT NULL DEFAULT 0,
    FOREIGN KEY(user_id) REFERENCES users(id)
);

CREATE TABLE IF NOT EXISTS blood_sugar_readings (
    id TEXT PRIMARY KEY,
    user_id TEXT NOT NULL,
    value REAL NOT NULL,
    type TEXT NOT NULL,
    timestamp TEXT NOT NULL,
    timestamp_utc TEXT NOT NULL,
    notes TEXT,
    meal TEXT,
    medication TEXT,
    created_at TEXT NOT NULL,
    FOREIGN KEY(user_id) REFERENCES users(id)
);

CREATE INDEX IF NOT EXISTS idx_readings_user_ts
ON blood_sugar_readings(user_id, timestamp_utc);
"""

_CURRENT_SESSION_KEY = "current_session"


@dataclass(frozen=True)
class AppConfig:
    """Persisted app preferences."""

    export_dir: str
    last_email: str
    chart_view: str


class SQLiteStore(ReadingRepository):
    """SQLite-backed repository for the app."""

    def __init__(self, db_path: Path) -> None:
        """Create store and ensure schema exists."""
        self._db_path = db_path
        self._db_path.parent.mkdir(parents=True, exist_ok=True)
        self._init_schema()

    def _connect(self) -> sqlite3.Connection:
        conn = sqlite3.connect(self._db_path)
        conn.row_factory = sqlite3.Row
        return conn

    def _init_schema(self) -> None:
        with self._connect() as conn:
            conn.executescript(SCHEMA_SQL)
            conn.commit()

    # -- config ------------------------------------------------------------

    def load_config(self) -> AppConfig:
        """Return saved config or defaults."""
        defaults = {"export_dir": "", "last_email": "", "chart_view": "daily"}
        with self._connect() as conn:
            rows = conn.execute("SELECT key, value FROM app_config").fetchall()
        values = {row["key"]: row["value"] for row in rows}
        merged = {**defaults, **values}
        return AppConfig(
            export_dir=merged["export_dir"],
            last_email=merged["last_email"],
            chart_view=merged["chart_view"],
        )

    def save_config(self, config: AppConfig) -> None:
        """Store config in the key/value table."""
        payload = {
            "export_dir": config.export_dir,
            "last_email": config.last_email,
            "chart_view": config.chart_view,
        }
        with self._connect() as conn:
            _upsert_config(conn, payload.items())
            conn.commit()

    # -- auth --------------------------------------------------------------

    def sign_up(self, email: str, password: str, full_name: str = "") -> User:
        email = _normalize_email(email)
        if len(password) < MIN_PASSWORD_LENGTH:
            raise AuthError(
                f"Password must be at least {MIN_PASSWORD_LENGTH} characters"
            )
        now = _now_iso()
        user_id = str(uuid.uuid4())
        with self._connect() as conn:
            try:
                conn.execute(
                    """
                    INSERT INTO users(
                        id, email, full_name, password_hash, created_at, updated_at
                    ) VALUES (?, ?, ?, ?, ?, ?)
                    """,
                    (
                        user_id,
                        email,
                        full_name.strip(),
                        generate_password_hash(password),
                        now,
                        now,
                    ),
                )
            except sqlite3.IntegrityError as exc:
                raise AuthError("User already registered") from exc
            conn.commit()
        logger.info("Registered user %s", user_id)
        return User(
            id=user_id,
            email=email,
            full_name=full_name.strip(),
            created_at=date_parser.isoparse(now),
        )

    def sign_in(self, email: str, password: str) -> Session:
        email = _normalize_email(email)
        with self._connect() as conn:
            row = conn.execute(
                "SELECT * FROM users WHERE email = ?", (email,)
            ).fetchone()
            if row is None or not check_password_hash(row["password_hash"], password):
                logger.warning("Failed sign-in for %s", email)
                raise AuthError("Invalid login credentials")
            token = secrets.token_urlsafe(32)
            now = _now_iso()
            conn.execute(
                "INSERT INTO sessions(token, user_id, created_at) VALUES (?, ?, ?)",
                (token, row["id"], now),
            )
            _upsert_config(conn, [(_CURRENT_SESSION_KEY, token)])
            conn.commit()
        logger.info("User %s signed in", row["id"])
        return Session(
            token=token,
            user=_user_from_row(row),
            created_at=date_parser.isoparse(now),
        )

    def get_session(self, token: str | None = None) -> Session | None:
        with self._connect() as conn:
            if token is None:
                token = _current_token(conn)
                if token is None:
                    return None
            row = conn.execute(
                """
                SELECT
                    s.token AS token, s.created_at AS session_created_at,
                    u.id AS id, u.email AS email, u.full_name AS full_name,
                    u.created_at AS created_at
                FROM sessions s JOIN users u ON u.id = s.user_id
                WHERE s.token = ?
                """,
                (token,),
            ).fetchone()
        if row is None:
            return None
        return Session(
            token=row["token"],
            user=_user_from_row(row),
            created_at=date_parser.isoparse(row["session_created_at"]),
        )

    def sign_out(self, token: str | None = None) -> None:
        with self._connect() as conn:
            current = _current_token(conn)
            if token is None:
                token = current
            if token is None:
                return
            conn.execute("DELETE FROM sessions WHERE token = ?", (token,))
            if token == current:
                conn.execute(
                    "DELETE FROM app_config WHERE key = ?", (_CURRENT_SESSION_KEY,)
                )
            conn.commit()
        logger.info("Session signed out")

    def request_password_reset(self, email: str) -> str | None:
        email = _normalize_email(email)
        with self._connect() as conn:
            row = conn.execute(
                "SELECT id FROM users WHERE email = ?", (email,)
            ).fetchone()
            if row is None:
                return None
            token = secrets.token_urlsafe(24)
            conn.execute(
                """
                INSERT INTO password_resets(token, user_id, created_at)
                VALUES (?, ?, ?)
                """,
                (token, row["id"], _now_iso()),
            )
            conn.commit()
        logger.info("Password reset requested for user %s", row["id"])
        return token

    def reset_password(self, token: str, new_password: str) -> None:
        if len(new_password) < MIN_PASSWORD_LENGTH:
            raise AuthError(
                f"Password must be at least {MIN_PASSWORD_LENGTH} characters"
            )
        with self._connect() as conn:
            row = conn.execute(
                "SELECT user_id, used FROM password_resets WHERE token = ?",
                (token,),
            ).fetchone()
            if row is None or row["used"]:
                raise AuthError("Invalid or expired reset token")
            conn.execute(
                "UPDATE users SET password_hash = ?, updated_at = ? WHERE id = ?",
                (generate_password_hash(new_password), _now_iso(), row["user_id"]),
            )
            conn.execute(
                "UPDATE password_resets SET used = 1 WHERE token = ?", (token,)
            )
            # Sessions opened with the old password are revoked.
            conn.execute("DELETE FROM sessions WHERE user_id = ?", (row["user_id"],))
            conn.execute(
                "DELETE FROM app_config WHERE key = ? AND value NOT IN "
                "(SELECT token FROM sessions)",
                (_CURRENT_SESSION_KEY,),
            )
            conn.commit()
        logger.info("Password reset for user %s", row["user_id"])

    # -- readings ----------------------------------------------------------

    def list_readings(self, user_id: str) -> list[Reading]:
        with self._connect() as conn:
            rows = conn.execute(
                """
                SELECT id, value, type, timestamp, notes, meal, medication
                FROM blood_sugar_readings
                WHERE user_id = ?
                ORDER BY timestamp_utc DESC, created_at DESC
                """,
                (user_id,),
            ).fetchall()
        return [_reading_from_row(row) for row in rows]

    def insert_reading(self, user_id: str, reading: Reading) -> Reading:
        reading_id = str(uuid.uuid4())
        ts = reading.timestamp
        if ts.tzinfo is None:
            ts = ts.replace(tzinfo=tz.tzlocal())
        with self._connect() as conn:
            conn.execute(
                """
                INSERT INTO blood_sugar_readings(
                    id, user_id, value, type, timestamp, timestamp_utc,
                    notes, meal, medication, created_at
                ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    reading_id,
                    user_id,
                    float(reading.value),
                    reading.type_name,
                    ts.isoformat(),
                    ts.astimezone(tz.UTC).isoformat(timespec="microseconds"),
                    reading.notes,
                    reading.meal,
                    reading.medication,
                    _now_iso(),
                ),
            )
            conn.commit()
        logger.info("Stored reading %s for user %s", reading_id, user_id)
        return _reading_from_row(
            {
                "id": reading_id,
                "value": float(reading.value),
                "type": reading.type_name,
                "timestamp": ts.isoformat(),
                "notes": reading.notes,
                "meal": reading.meal,
                "medication": reading.medication,
            }
        )


def _now_iso() -> str:
    return datetime.now(tz=tz.UTC).isoformat(timespec="seconds")


def _normalize_email(email: str) -> str:
    email = email.strip().lower()
    if "@" not in email:
        raise AuthError(f"Invalid email address: {email!r}")
    return email


def _upsert_config(
    conn: sqlite3.Connection, items: object
) -> None:
    conn.executemany(
        """
        INSERT INTO app_config(key, value) VALUES(?, ?)
        ON CONFLICT(key) DO UPDATE SET value=excluded.value
        """,
        items,  # type: ignore[arg-type]
    )


def _current_token(conn: sqlite3.Connection) -> str | None:
    row = conn.execute(
        "SELECT value FROM app_config WHERE key = ?", (_CURRENT_SESSION_KEY,)
    ).fetchone()
    if row is None:
        return None
    return str(row["value"])


def _user_from_row(row: sqlite3.Row) -> User:
    return User(
        id=row["id"],
        email=row["email"],
        full_name=row["full_name"],
        created_at=date_parser.isoparse(row["created_at"]),
    )


def _reading_from_row(row: sqlite3.Row | dict[str, object]) -> Reading:
    raw_type = str(row["type"])
    reading_type = ReadingType.parse(raw_type)
    return Reading(
        id=str(row["id"]),
        value=float(row["value"]),  # type: ignore[arg-type]
        type=reading_type,
        timestamp=date_parser.isoparse(str(row["timestamp"])),
        notes=row["notes"],  # type: ignore[arg-type]
        meal=row["meal"],  # type: ignore[arg-type]
        medication=row["medication"],  # type: ignore[arg-type]
        raw_type=raw_type if reading_type is ReadingType.UNKNOWN else None,
    )
