"""Repository for exam_attempts rows.

Attempts are inserted as inProgress by exam start and updated exactly once
by submission. Deletion is an administrative override.
"""

from __future__ import annotations

import json
import sqlite3
from collections.abc import Iterable
from pathlib import Path

import structlog

from learnpath.core.errors import AttemptInProgressError
from learnpath.core.models import ExamAnswer, ExamAttempt, ExamScope
from learnpath.db.database import get_db

logger = structlog.get_logger(__name__)


class ExamAttemptRepository:
    """Typed access to exam attempts."""

    def __init__(self, db_path: Path | None = None):
        self._db_path = db_path

    def create(self, attempt: ExamAttempt) -> ExamAttempt:
        """Insert a new inProgress attempt.

        The insert is a single statement: either the row with its full
        question list exists afterwards or nothing does.

        Raises:
            AttemptInProgressError: If another attempt for the same user and
                scope is open, or the same attempt slot was taken concurrently
        """
        try:
            with get_db(self._db_path) as conn:
                conn.execute(
                    """
                    INSERT INTO exam_attempts (
                        attempt_id, user_id, scope_kind, scope_id, subject_id,
                        lesson_id, cycle, attempt_index, attempt_number, status,
                        question_ids, answers, started_at
                    ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, 'inProgress', ?, '[]', ?)
                    """,
                    (
                        attempt.attempt_id,
                        attempt.user_id,
                        attempt.scope.kind,
                        attempt.scope.scope_id,
                        attempt.subject_id,
                        attempt.lesson_id,
                        attempt.cycle,
                        attempt.attempt_index,
                        attempt.attempt_number,
                        json.dumps(attempt.question_ids),
                        attempt.started_at,
                    ),
                )
        except sqlite3.IntegrityError as e:
            raise AttemptInProgressError(
                f"Another attempt for {attempt.scope} is already in progress"
            ) from e

        logger.debug("exam_attempts.inserted", attempt_id=attempt.attempt_id)
        return attempt

    def get(self, attempt_id: str) -> ExamAttempt | None:
        with get_db(self._db_path) as conn:
            row = conn.execute(
                "SELECT * FROM exam_attempts WHERE attempt_id = ?", (attempt_id,)
            ).fetchone()
        return _row_to_attempt(row) if row else None

    def list_for_scope(self, user_id: str, scope: ExamScope) -> list[ExamAttempt]:
        """Attempt history of a user for one scope, oldest first."""
        with get_db(self._db_path) as conn:
            rows = conn.execute(
                """
                SELECT * FROM exam_attempts
                WHERE user_id = ? AND scope_kind = ? AND scope_id = ?
                ORDER BY attempt_number ASC, started_at ASC, rowid ASC
                """,
                (user_id, scope.kind, scope.scope_id),
            ).fetchall()
        return [_row_to_attempt(row) for row in rows]

    def passed_lesson_ids(self, user_id: str, lesson_ids: Iterable[str]) -> set[str]:
        """Lessons among `lesson_ids` with a passed lesson-scoped attempt."""
        ids = list(lesson_ids)
        if not ids:
            return set()
        placeholders = ",".join("?" for _ in ids)
        with get_db(self._db_path) as conn:
            rows = conn.execute(
                f"""
                SELECT DISTINCT scope_id FROM exam_attempts
                WHERE user_id = ? AND scope_kind = 'lesson' AND passed = 1
                  AND scope_id IN ({placeholders})
                """,
                [user_id, *ids],
            ).fetchall()
        return {row["scope_id"] for row in rows}

    def mark_submitted(
        self,
        attempt_id: str,
        answers: list[ExamAnswer],
        score: float,
        passed: bool,
        submitted_at: str,
    ) -> bool:
        """Move an attempt from inProgress to submitted.

        Returns:
            True if this call performed the transition, False if the attempt
            was no longer inProgress (already submitted by another call)
        """
        with get_db(self._db_path) as conn:
            cursor = conn.execute(
                """
                UPDATE exam_attempts SET
                    status = 'submitted',
                    answers = ?,
                    score = ?,
                    passed = ?,
                    submitted_at = ?
                WHERE attempt_id = ? AND status = 'inProgress'
                """,
                (
                    json.dumps([a.to_dict() for a in answers]),
                    score,
                    int(passed),
                    submitted_at,
                    attempt_id,
                ),
            )

        return cursor.rowcount == 1

    def delete(self, attempt_id: str) -> ExamAttempt | None:
        """Delete one attempt.

        Returns:
            The deleted attempt, None if not found
        """
        with get_db(self._db_path) as conn:
            row = conn.execute(
                "SELECT * FROM exam_attempts WHERE attempt_id = ?", (attempt_id,)
            ).fetchone()
            if row is None:
                return None
            conn.execute("DELETE FROM exam_attempts WHERE attempt_id = ?", (attempt_id,))

        logger.info("exam_attempts.deleted", attempt_id=attempt_id)
        return _row_to_attempt(row)

    def delete_for_subject(self, user_id: str, subject_id: str) -> int:
        """Delete every attempt (subject and lesson scoped) of a user in a subject."""
        with get_db(self._db_path) as conn:
            cursor = conn.execute(
                "DELETE FROM exam_attempts WHERE user_id = ? AND subject_id = ?",
                (user_id, subject_id),
            )

        deleted = cursor.rowcount
        logger.info(
            "exam_attempts.reset",
            user_id=user_id,
            subject_id=subject_id,
            deleted=deleted,
        )
        return deleted


def _row_to_attempt(row: sqlite3.Row) -> ExamAttempt:
    """Convert database row to ExamAttempt."""
    passed = row["passed"]
    return ExamAttempt(
        attempt_id=row["attempt_id"],
        user_id=row["user_id"],
        scope=ExamScope(row["scope_kind"], row["scope_id"]),
        subject_id=row["subject_id"],
        lesson_id=row["lesson_id"],
        cycle=row["cycle"],
        attempt_index=row["attempt_index"],
        attempt_number=row["attempt_number"],
        status=row["status"],
        question_ids=json.loads(row["question_ids"]),
        answers=[
            ExamAnswer(question_id=a["question_id"], choice_index=a["choice_index"])
            for a in json.loads(row["answers"] or "[]")
        ],
        score=row["score"],
        passed=None if passed is None else bool(passed),
        started_at=row["started_at"],
        submitted_at=row["submitted_at"],
    )
