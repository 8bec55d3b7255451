"""Repository for the content catalog (subjects, lessons, questions).

The engine only reads these tables. Insert helpers exist for catalog
import and tests.
"""

from __future__ import annotations

import json
import sqlite3
from collections.abc import Iterable
from pathlib import Path

import structlog

from learnpath.core.models import Lesson, Question, Subject
from learnpath.db.database import get_db

logger = structlog.get_logger(__name__)


class CatalogRepository:
    """Read access to subjects, lessons and questions."""

    def __init__(self, db_path: Path | None = None):
        self._db_path = db_path

    # -------------------------------------------------------------------------
    # Writes (catalog import only)
    # -------------------------------------------------------------------------

    def upsert_subject(self, subject: Subject) -> None:
        with get_db(self._db_path) as conn:
            conn.execute(
                """
                INSERT INTO subjects (subject_id, name) VALUES (?, ?)
                ON CONFLICT(subject_id) DO UPDATE SET name = excluded.name
                """,
                (subject.subject_id, subject.name),
            )
        logger.debug("catalog.subject_upserted", subject_id=subject.subject_id)

    def upsert_lesson(self, lesson: Lesson) -> None:
        with get_db(self._db_path) as conn:
            conn.execute(
                """
                INSERT INTO lessons (lesson_id, subject_id, title, "order", is_active)
                VALUES (?, ?, ?, ?, ?)
                ON CONFLICT(lesson_id) DO UPDATE SET
                    subject_id = excluded.subject_id,
                    title = excluded.title,
                    "order" = excluded."order",
                    is_active = excluded.is_active
                """,
                (
                    lesson.lesson_id,
                    lesson.subject_id,
                    lesson.title,
                    lesson.order,
                    int(lesson.is_active),
                ),
            )
        logger.debug("catalog.lesson_upserted", lesson_id=lesson.lesson_id)

    def upsert_question(self, question: Question) -> None:
        with get_db(self._db_path) as conn:
            conn.execute(
                """
                INSERT INTO questions (
                    question_id, subject_id, stem, choices, answer_index, is_active
                ) VALUES (?, ?, ?, ?, ?, ?)
                ON CONFLICT(question_id) DO UPDATE SET
                    subject_id = excluded.subject_id,
                    stem = excluded.stem,
                    choices = excluded.choices,
                    answer_index = excluded.answer_index,
                    is_active = excluded.is_active
                """,
                (
                    question.question_id,
                    question.subject_id,
                    question.stem,
                    json.dumps(list(question.choices), ensure_ascii=False),
                    question.answer_index,
                    int(question.is_active),
                ),
            )

    # -------------------------------------------------------------------------
    # Reads
    # -------------------------------------------------------------------------

    def get_subject(self, subject_id: str) -> Subject | None:
        with get_db(self._db_path) as conn:
            row = conn.execute(
                "SELECT * FROM subjects WHERE subject_id = ?", (subject_id,)
            ).fetchone()
        return Subject(row["subject_id"], row["name"]) if row else None

    def get_lesson(self, lesson_id: str) -> Lesson | None:
        """Get lesson by ID, active or not."""
        with get_db(self._db_path) as conn:
            row = conn.execute(
                "SELECT * FROM lessons WHERE lesson_id = ?", (lesson_id,)
            ).fetchone()
        return _row_to_lesson(row) if row else None

    def list_active_lessons(self, subject_id: str) -> list[Lesson]:
        """Active lessons of a subject ordered by `order` ascending."""
        with get_db(self._db_path) as conn:
            rows = conn.execute(
                """
                SELECT * FROM lessons
                WHERE subject_id = ? AND is_active = 1
                ORDER BY "order" ASC
                """,
                (subject_id,),
            ).fetchall()
        return [_row_to_lesson(row) for row in rows]

    def list_lessons(self, lesson_ids: Iterable[str]) -> list[Lesson]:
        """Active lessons among `lesson_ids`, ordered by subject then order."""
        ids = list(lesson_ids)
        if not ids:
            return []
        placeholders = ",".join("?" for _ in ids)
        with get_db(self._db_path) as conn:
            rows = conn.execute(
                f"""
                SELECT * FROM lessons
                WHERE lesson_id IN ({placeholders}) AND is_active = 1
                ORDER BY subject_id ASC, "order" ASC
                """,
                ids,
            ).fetchall()
        return [_row_to_lesson(row) for row in rows]

    def list_subjects(self, subject_ids: Iterable[str]) -> list[Subject]:
        ids = list(subject_ids)
        if not ids:
            return []
        placeholders = ",".join("?" for _ in ids)
        with get_db(self._db_path) as conn:
            rows = conn.execute(
                f"SELECT * FROM subjects WHERE subject_id IN ({placeholders}) ORDER BY subject_id",
                ids,
            ).fetchall()
        return [Subject(row["subject_id"], row["name"]) for row in rows]

    def list_active_questions(self, subject_id: str) -> list[Question]:
        """Active question bank of a subject."""
        with get_db(self._db_path) as conn:
            rows = conn.execute(
                """
                SELECT * FROM questions
                WHERE subject_id = ? AND is_active = 1
                ORDER BY question_id
                """,
                (subject_id,),
            ).fetchall()
        return [_row_to_question(row) for row in rows]

    def get_questions(self, question_ids: Iterable[str]) -> dict[str, Question]:
        """Questions by ID regardless of active flag (for scoring)."""
        ids = list(question_ids)
        if not ids:
            return {}
        placeholders = ",".join("?" for _ in ids)
        with get_db(self._db_path) as conn:
            rows = conn.execute(
                f"SELECT * FROM questions WHERE question_id IN ({placeholders})",
                ids,
            ).fetchall()
        return {row["question_id"]: _row_to_question(row) for row in rows}


def _row_to_lesson(row: sqlite3.Row) -> Lesson:
    """Convert database row to Lesson."""
    return Lesson(
        lesson_id=row["lesson_id"],
        subject_id=row["subject_id"],
        title=row["title"],
        order=row["order"],
        is_active=bool(row["is_active"]),
    )


def _row_to_question(row: sqlite3.Row) -> Question:
    """Convert database row to Question."""
    return Question(
        question_id=row["question_id"],
        subject_id=row["subject_id"],
        stem=row["stem"],
        choices=tuple(json.loads(row["choices"])),
        answer_index=row["answer_index"],
        is_active=bool(row["is_active"]),
    )
