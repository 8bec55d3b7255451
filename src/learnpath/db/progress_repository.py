"""Repository for lesson_progress rows.

Rows are created on the first watch-time report and updated on every
later one. The engine never deletes them.
"""

from __future__ import annotations

import sqlite3
from collections.abc import Callable, Iterable
from pathlib import Path

import structlog

from learnpath.core.models import LessonProgress
from learnpath.db.database import get_db

logger = structlog.get_logger(__name__)

ProgressUpdate = Callable[[LessonProgress | None], LessonProgress]


class ProgressRepository:
    """Typed access to per-(user, lesson) watch progress."""

    def __init__(self, db_path: Path | None = None):
        self._db_path = db_path

    def get(self, user_id: str, lesson_id: str) -> LessonProgress | None:
        """Get progress row, None if the user never reported on the lesson."""
        with get_db(self._db_path) as conn:
            row = conn.execute(
                "SELECT * FROM lesson_progress WHERE user_id = ? AND lesson_id = ?",
                (user_id, lesson_id),
            ).fetchone()

        return _row_to_progress(row) if row else None

    def list_for_user(
        self,
        user_id: str,
        lesson_ids: Iterable[str] | None = None,
    ) -> dict[str, LessonProgress]:
        """Progress rows of a user keyed by lesson_id.

        Args:
            user_id: User identifier
            lesson_ids: Restrict to these lessons (None = all)
        """
        query = "SELECT * FROM lesson_progress WHERE user_id = ?"
        params: list[str] = [user_id]
        if lesson_ids is not None:
            ids = list(lesson_ids)
            if not ids:
                return {}
            query += f" AND lesson_id IN ({','.join('?' for _ in ids)})"
            params.extend(ids)

        with get_db(self._db_path) as conn:
            rows = conn.execute(query, params).fetchall()

        return {row["lesson_id"]: _row_to_progress(row) for row in rows}

    def apply(self, user_id: str, lesson_id: str, update: ProgressUpdate) -> LessonProgress:
        """Read-modify-write one progress row under the database write lock.

        `update` receives the stored row (or None) and returns the new row.
        Concurrent callers for the same key are serialized, so the higher
        watermark is never lost.
        """
        with get_db(self._db_path, immediate=True) as conn:
            row = conn.execute(
                "SELECT * FROM lesson_progress WHERE user_id = ? AND lesson_id = ?",
                (user_id, lesson_id),
            ).fetchone()

            current = _row_to_progress(row) if row else None
            updated = update(current)

            conn.execute(
                """
                INSERT INTO lesson_progress (
                    user_id, lesson_id, max_reached_seconds, video_duration_seconds,
                    progress_percent, status, completed_at, updated_at
                ) VALUES (?, ?, ?, ?, ?, ?, ?, ?)
                ON CONFLICT(user_id, lesson_id) DO UPDATE SET
                    max_reached_seconds = excluded.max_reached_seconds,
                    video_duration_seconds = excluded.video_duration_seconds,
                    progress_percent = excluded.progress_percent,
                    status = excluded.status,
                    completed_at = excluded.completed_at,
                    updated_at = excluded.updated_at
                """,
                (
                    user_id,
                    lesson_id,
                    updated.max_reached_seconds,
                    updated.video_duration_seconds,
                    updated.progress_percent,
                    updated.status,
                    updated.completed_at,
                    updated.updated_at,
                ),
            )

        logger.debug(
            "lesson_progress.saved",
            user_id=user_id,
            lesson_id=lesson_id,
            created=current is None,
        )
        return updated


def _row_to_progress(row: sqlite3.Row) -> LessonProgress:
    """Convert database row to LessonProgress."""
    return LessonProgress(
        user_id=row["user_id"],
        lesson_id=row["lesson_id"],
        max_reached_seconds=row["max_reached_seconds"],
        video_duration_seconds=row["video_duration_seconds"],
        progress_percent=row["progress_percent"],
        status=row["status"],
        completed_at=row["completed_at"],
        updated_at=row["updated_at"],
    )
