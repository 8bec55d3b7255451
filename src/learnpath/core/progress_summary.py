"""Read-only progress views for dashboards.

- summarize_subjects: average lesson progress per subject
- next_available: the lesson a learner should watch next, or what blocks it
- lesson_status: one lesson's progress, lock state and remaining exam tries
"""

from __future__ import annotations

from collections.abc import Collection
from dataclasses import dataclass, field
from typing import Any

from learnpath.config.engine_config import EngineConfig
from learnpath.core.attempt_cycles import remaining_total
from learnpath.core.errors import LessonNotFoundError
from learnpath.core.models import ExamScope, Lesson
from learnpath.core.sequencing import BlockingLesson, SequencingGate, is_unlocked, order_lessons
from learnpath.db.attempt_repository import ExamAttemptRepository
from learnpath.db.catalog_repository import CatalogRepository
from learnpath.db.progress_repository import ProgressRepository


@dataclass(frozen=True)
class SubjectProgress:
    subject_id: str
    subject_name: str
    progress_percent: float
    completed_lessons: int
    total_lessons: int
    current_lesson_id: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "subject_id": self.subject_id,
            "subject_name": self.subject_name,
            "progress_percent": self.progress_percent,
            "completed_lessons": self.completed_lessons,
            "total_lessons": self.total_lessons,
            "current_lesson_id": self.current_lesson_id,
        }


@dataclass(frozen=True)
class NextAvailable:
    lesson: Lesson | None
    lock: bool
    blocked_by: BlockingLesson | None = None
    all_completed: bool = False


@dataclass(frozen=True)
class LessonStatus:
    lesson_id: str
    lesson_title: str
    subject_id: str
    progress_percent: float
    max_reached_seconds: float
    unlocked: bool
    completed: bool
    remaining_tries: int
    completed_at: str | None
    blockers: list[BlockingLesson] = field(default_factory=list)


class ProgressSummaryService:
    """Aggregates progress rows into learner-facing summaries."""

    def __init__(
        self,
        catalog: CatalogRepository,
        progress: ProgressRepository,
        attempts: ExamAttemptRepository,
        gate: SequencingGate,
        config: EngineConfig,
    ):
        self._catalog = catalog
        self._progress = progress
        self._attempts = attempts
        self._gate = gate
        self._config = config

    def summarize_subjects(
        self, user_id: str, active_lesson_ids: Collection[str]
    ) -> list[SubjectProgress]:
        """Average progress per subject over the user's active lessons.

        Lessons without a progress row count as 0%.
        """
        threshold = self._config.progress.unlock_threshold
        lessons = self._catalog.list_lessons(active_lesson_ids)
        stored = self._progress.list_for_user(user_id, [l.lesson_id for l in lessons])

        by_subject: dict[str, list[Lesson]] = {}
        for lesson in lessons:
            by_subject.setdefault(lesson.subject_id, []).append(lesson)

        summaries = []
        for subject in self._catalog.list_subjects(by_subject):
            subject_lessons = order_lessons(by_subject[subject.subject_id])
            percents = [
                stored[l.lesson_id].progress_percent if l.lesson_id in stored else 0.0
                for l in subject_lessons
            ]
            current = next(
                (l.lesson_id for l, p in zip(subject_lessons, percents) if p < threshold),
                None,
            )
            summaries.append(
                SubjectProgress(
                    subject_id=subject.subject_id,
                    subject_name=subject.name,
                    progress_percent=sum(percents) / len(percents),
                    completed_lessons=sum(1 for p in percents if p >= threshold),
                    total_lessons=len(percents),
                    current_lesson_id=current,
                )
            )
        return summaries

    def next_available(self, user_id: str, active_lesson_ids: Collection[str]) -> NextAvailable:
        """First unfinished lesson in order, or the lesson that blocks it."""
        threshold = self._config.progress.unlock_threshold
        lessons = self._catalog.list_lessons(active_lesson_ids)
        if not lessons:
            return NextAvailable(lesson=None, lock=False)

        lesson_ids = [l.lesson_id for l in lessons]
        percents = {
            key: row.progress_percent
            for key, row in self._progress.list_for_user(user_id, lesson_ids).items()
        }
        passed = self._gate.passed_lessons(user_id, lesson_ids)

        # list_lessons() orders by subject then order
        by_subject: dict[str, list[Lesson]] = {}
        for lesson in lessons:
            by_subject.setdefault(lesson.subject_id, []).append(lesson)

        for sequence in by_subject.values():
            for lesson in sequence:
                if percents.get(lesson.lesson_id, 0.0) >= threshold:
                    continue
                verdict = is_unlocked(
                    lesson, sequence, percents, passed, self._config.progress
                )
                if verdict.unlocked:
                    return NextAvailable(lesson=lesson, lock=False)
                return NextAvailable(lesson=lesson, lock=True, blocked_by=verdict.blocked_by)

        return NextAvailable(lesson=None, lock=False, all_completed=True)

    def lesson_status(
        self,
        user_id: str,
        lesson_id: str,
        active_lesson_ids: Collection[str] | None = None,
    ) -> LessonStatus:
        """Progress, lock state and lesson-exam tries for one lesson.

        Raises:
            LessonNotFoundError: If the lesson is unknown or inactive
        """
        lesson = self._catalog.get_lesson(lesson_id)
        if lesson is None or not lesson.is_active:
            raise LessonNotFoundError(f"Lesson not found: {lesson_id}")

        verdict = self._gate.check(user_id, lesson_id, active_lesson_ids)
        progress = self._progress.get(user_id, lesson_id)
        history = self._attempts.list_for_scope(user_id, ExamScope.lesson(lesson_id))

        return LessonStatus(
            lesson_id=lesson.lesson_id,
            lesson_title=lesson.title,
            subject_id=lesson.subject_id,
            progress_percent=progress.progress_percent if progress else 0.0,
            max_reached_seconds=progress.max_reached_seconds if progress else 0.0,
            unlocked=verdict.unlocked,
            completed=any(a.passed for a in history),
            remaining_tries=remaining_total(history, self._config.exam),
            completed_at=progress.completed_at if progress else None,
            blockers=[verdict.blocked_by] if verdict.blocked_by else [],
        )
