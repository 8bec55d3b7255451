"""SQLite database connection and schema management.

Provides connection management and schema initialization for the engine.
"""

from __future__ import annotations

import sqlite3
from contextlib import contextmanager
from pathlib import Path
from typing import Generator

import structlog

logger = structlog.get_logger(__name__)

# Default database location
DEFAULT_DB_PATH = Path("db/learnpath.db")

# Current database path (module-level, set by init_db)
_db_path: Path | None = None


def init_db(db_path: Path | None = None) -> None:
    """Initialize database with schema.

    Creates the database file and all required tables if they don't exist.

    Args:
        db_path: Path to database file. Defaults to db/learnpath.db
    """
    global _db_path
    _db_path = db_path or DEFAULT_DB_PATH

    # Ensure directory exists
    _db_path.parent.mkdir(parents=True, exist_ok=True)

    with get_db() as conn:
        _create_schema(conn)

    logger.info("database.initialized", path=str(_db_path))


def current_db_path() -> Path:
    """Database path in use by get_db() when none is given."""
    return _db_path or DEFAULT_DB_PATH


@contextmanager
def get_db(
    db_path: Path | None = None,
    immediate: bool = False,
) -> Generator[sqlite3.Connection, None, None]:
    """Get database connection as context manager.

    Commits on success and rolls back on any exception.

    Args:
        db_path: Database file. Defaults to the path set by init_db().
        immediate: Take the write lock up front (BEGIN IMMEDIATE) so a
            read-modify-write cannot interleave with another writer.

    Yields:
        SQLite connection with row factory set to sqlite3.Row

    Example:
        with get_db(immediate=True) as conn:
            row = conn.execute("SELECT ...").fetchone()
            conn.execute("UPDATE ...")
    """
    path = db_path or current_db_path()

    # Ensure directory exists
    path.parent.mkdir(parents=True, exist_ok=True)

    conn = sqlite3.connect(path, timeout=30)
    conn.row_factory = sqlite3.Row
    conn.execute("PRAGMA foreign_keys = ON")

    try:
        if immediate:
            conn.execute("BEGIN IMMEDIATE")
        yield conn
        conn.commit()
    except Exception:
        conn.rollback()
        raise
    finally:
        conn.close()


def _create_schema(conn: sqlite3.Connection) -> None:
    """Create database schema.

    Uses IF NOT EXISTS for idempotency.
    """
    conn.executescript(
        """
        -- Catalog (read-only to the engine)
        CREATE TABLE IF NOT EXISTS subjects (
            subject_id TEXT PRIMARY KEY,
            name TEXT NOT NULL
        );

        CREATE TABLE IF NOT EXISTS lessons (
            lesson_id TEXT PRIMARY KEY,
            subject_id TEXT NOT NULL REFERENCES subjects(subject_id),
            title TEXT NOT NULL,
            "order" INTEGER NOT NULL,
            is_active INTEGER NOT NULL DEFAULT 1
        );

        CREATE TABLE IF NOT EXISTS questions (
            question_id TEXT PRIMARY KEY,
            subject_id TEXT NOT NULL REFERENCES subjects(subject_id),
            stem TEXT NOT NULL,
            choices TEXT NOT NULL,
            answer_index INTEGER NOT NULL,
            is_active INTEGER NOT NULL DEFAULT 1
        );

        -- Enrollment window per user (supplied by the admin side)
        CREATE TABLE IF NOT EXISTS enrollments (
            user_id TEXT PRIMARY KEY,
            company_id TEXT NOT NULL,
            start_date TEXT NOT NULL,
            end_date TEXT NOT NULL,
            active_lesson_ids TEXT NOT NULL DEFAULT '[]'
        );

        -- Watch progress: one row per (user, lesson), never deleted here
        CREATE TABLE IF NOT EXISTS lesson_progress (
            user_id TEXT NOT NULL,
            lesson_id TEXT NOT NULL,
            max_reached_seconds REAL NOT NULL DEFAULT 0,
            video_duration_seconds REAL NOT NULL DEFAULT 0,
            progress_percent REAL NOT NULL DEFAULT 0,
            status TEXT NOT NULL DEFAULT 'inProgress' CHECK(status IN ('inProgress', 'completed')),
            completed_at TEXT,
            updated_at TEXT NOT NULL DEFAULT (datetime('now')),
            PRIMARY KEY (user_id, lesson_id)
        );

        -- Exam attempts: inserted inProgress, updated once to submitted
        CREATE TABLE IF NOT EXISTS exam_attempts (
            attempt_id TEXT PRIMARY KEY,
            user_id TEXT NOT NULL,
            scope_kind TEXT NOT NULL CHECK(scope_kind IN ('subject', 'lesson')),
            scope_id TEXT NOT NULL,
            subject_id TEXT NOT NULL,
            lesson_id TEXT,
            cycle INTEGER NOT NULL CHECK(cycle >= 1),
            attempt_index INTEGER NOT NULL CHECK(attempt_index >= 1),
            attempt_number INTEGER NOT NULL CHECK(attempt_number >= 1),
            status TEXT NOT NULL DEFAULT 'inProgress' CHECK(status IN ('inProgress', 'submitted')),
            question_ids TEXT NOT NULL,
            answers TEXT NOT NULL DEFAULT '[]',
            score REAL,
            passed INTEGER,
            started_at TEXT NOT NULL,
            submitted_at TEXT
        );

        -- Indexes
        CREATE UNIQUE INDEX IF NOT EXISTS idx_attempts_one_in_progress
            ON exam_attempts(user_id, scope_kind, scope_id)
            WHERE status = 'inProgress';
        CREATE INDEX IF NOT EXISTS idx_attempts_subject ON exam_attempts(user_id, subject_id);
        CREATE INDEX IF NOT EXISTS idx_lessons_subject ON lessons(subject_id, "order");
        CREATE INDEX IF NOT EXISTS idx_questions_subject ON questions(subject_id, is_active);
        """
    )
