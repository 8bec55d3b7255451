"""Catalog importer.

Loads subjects, lessons, questions and enrollments from a YAML file into
the database. Used to seed environments; the engine itself never writes
the catalog.

File structure:

    subjects:
      - subject_id: safety
        name: Workplace Safety
        lessons:
          - {lesson_id: safety-1, title: Basics, order: 1}
        questions:
          - question_id: safety-q01
            stem: "..."
            choices: ["a", "b", "c", "d"]
            answer_index: 2
    enrollments:
      - user_id: u-1
        company_id: acme
        start_date: 2026-01-01
        end_date: 2026-12-31
        lessons: [safety-1]
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from pathlib import Path
from typing import Any

import structlog
import yaml

from learnpath.core.models import Enrollment, Lesson, Question, Subject
from learnpath.db.catalog_repository import CatalogRepository
from learnpath.db.enrollment_repository import EnrollmentRepository

logger = structlog.get_logger(__name__)


class CatalogImportError(Exception):
    """Error reading or validating a catalog file."""

    pass


@dataclass
class CatalogImportResult:
    """Counts of imported records."""

    subjects: int = 0
    lessons: int = 0
    questions: int = 0
    enrollments: int = 0


def _as_date(value: Any, field_name: str) -> date:
    if isinstance(value, date):
        return value
    try:
        return date.fromisoformat(str(value))
    except ValueError:
        raise CatalogImportError(f"Invalid date for {field_name}: {value!r}") from None


def _parse_question(raw: dict[str, Any], subject_id: str) -> Question:
    choices = tuple(str(c) for c in raw.get("choices", []))
    answer_index = int(raw.get("answer_index", -1))
    if len(choices) < 2:
        raise CatalogImportError(
            f"Question {raw.get('question_id')} needs at least 2 choices"
        )
    if not 0 <= answer_index < len(choices):
        raise CatalogImportError(
            f"Question {raw.get('question_id')} answer_index out of range"
        )
    return Question(
        question_id=str(raw["question_id"]),
        subject_id=subject_id,
        stem=str(raw["stem"]),
        choices=choices,
        answer_index=answer_index,
        is_active=bool(raw.get("is_active", True)),
    )


def import_catalog(
    path: Path,
    catalog: CatalogRepository,
    enrollments: EnrollmentRepository,
) -> CatalogImportResult:
    """Import a YAML catalog file.

    Existing records with the same ids are updated in place.

    Raises:
        CatalogImportError: If the file is missing, unreadable or invalid
    """
    if not path.exists():
        raise CatalogImportError(f"Catalog file not found: {path}")

    try:
        data = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
    except yaml.YAMLError as e:
        raise CatalogImportError(f"Invalid YAML in {path}: {e}") from e

    result = CatalogImportResult()

    try:
        for raw_subject in data.get("subjects", []):
            subject_id = str(raw_subject["subject_id"])
            catalog.upsert_subject(Subject(subject_id, str(raw_subject.get("name", subject_id))))
            result.subjects += 1

            for raw_lesson in raw_subject.get("lessons", []):
                catalog.upsert_lesson(
                    Lesson(
                        lesson_id=str(raw_lesson["lesson_id"]),
                        subject_id=subject_id,
                        title=str(raw_lesson.get("title", raw_lesson["lesson_id"])),
                        order=int(raw_lesson["order"]),
                        is_active=bool(raw_lesson.get("is_active", True)),
                    )
                )
                result.lessons += 1

            for raw_question in raw_subject.get("questions", []):
                catalog.upsert_question(_parse_question(raw_question, subject_id))
                result.questions += 1

        for raw_enrollment in data.get("enrollments", []):
            enrollments.upsert_enrollment(
                Enrollment(
                    user_id=str(raw_enrollment["user_id"]),
                    company_id=str(raw_enrollment["company_id"]),
                    start_date=_as_date(raw_enrollment["start_date"], "start_date"),
                    end_date=_as_date(raw_enrollment["end_date"], "end_date"),
                    active_lesson_ids=frozenset(
                        str(l) for l in raw_enrollment.get("lessons", [])
                    ),
                )
            )
            result.enrollments += 1
    except KeyError as e:
        raise CatalogImportError(f"Missing required field: {e.args[0]}") from e

    logger.info(
        "catalog.imported",
        path=str(path),
        subjects=result.subjects,
        lessons=result.lessons,
        questions=result.questions,
        enrollments=result.enrollments,
    )
    return result
