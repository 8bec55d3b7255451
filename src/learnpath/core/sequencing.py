"""Sequencing gate module.

Decides whether a lesson is open for a user given the lesson order inside
its subject. The first lesson is always open. Every later lesson opens
once the lesson right before it is watched to the unlock threshold.

Two rules exist (see UnlockRule):
- progress: the previous lesson's progress is enough
- progress_and_exam: the previous lesson also needs a passed lesson exam

The rule is chosen in configuration and applied the same way everywhere.
"""

from __future__ import annotations

from collections.abc import Collection, Mapping, Sequence
from dataclasses import dataclass
from typing import Any, Literal

import structlog

from learnpath.config.engine_config import ProgressConfig, UnlockRule
from learnpath.core.errors import LessonNotFoundError
from learnpath.core.models import Lesson
from learnpath.db.attempt_repository import ExamAttemptRepository
from learnpath.db.catalog_repository import CatalogRepository
from learnpath.db.progress_repository import ProgressRepository

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class BlockingLesson:
    """The lesson holding another one locked (diagnostic only)."""

    lesson_id: str
    title: str
    order: int
    reason: Literal["progress", "exam"]

    def to_dict(self) -> dict[str, Any]:
        return {
            "lesson_id": self.lesson_id,
            "title": self.title,
            "order": self.order,
            "reason": self.reason,
        }


@dataclass(frozen=True)
class UnlockVerdict:
    """Whether one lesson is open, and what blocks it if not."""

    lesson_id: str
    unlocked: bool
    blocked_by: BlockingLesson | None = None


def order_lessons(lessons: Sequence[Lesson]) -> list[Lesson]:
    """Lessons sorted by `order` ascending (ties keep input order)."""
    return sorted(lessons, key=lambda lesson: lesson.order)


def is_unlocked(
    lesson: Lesson,
    ordered_lessons: Sequence[Lesson],
    progress_by_lesson: Mapping[str, float],
    passed_lesson_ids: Collection[str],
    config: ProgressConfig,
) -> UnlockVerdict:
    """Apply the unlock rule to one lesson.

    Args:
        lesson: Lesson being checked
        ordered_lessons: Lessons of the same subject/active set
        progress_by_lesson: progress_percent per lesson_id (missing = 0)
        passed_lesson_ids: Lessons whose lesson exam the user passed
        config: Threshold and rule

    Raises:
        ValueError: If `lesson` is not part of `ordered_lessons`
    """
    ordered = order_lessons(ordered_lessons)
    position = next(
        (i for i, candidate in enumerate(ordered) if candidate.lesson_id == lesson.lesson_id),
        None,
    )
    if position is None:
        raise ValueError(f"Lesson {lesson.lesson_id} is not in the given sequence")

    if position == 0:
        return UnlockVerdict(lesson_id=lesson.lesson_id, unlocked=True)

    previous = ordered[position - 1]
    previous_percent = progress_by_lesson.get(previous.lesson_id, 0.0)

    reason: Literal["progress", "exam"] | None = None
    if previous_percent < config.unlock_threshold:
        reason = "progress"
    elif (
        config.unlock_rule is UnlockRule.PROGRESS_AND_EXAM
        and previous.lesson_id not in passed_lesson_ids
    ):
        reason = "exam"

    if reason is None:
        return UnlockVerdict(lesson_id=lesson.lesson_id, unlocked=True)

    return UnlockVerdict(
        lesson_id=lesson.lesson_id,
        unlocked=False,
        blocked_by=BlockingLesson(
            lesson_id=previous.lesson_id,
            title=previous.title,
            order=previous.order,
            reason=reason,
        ),
    )


class SequencingGate:
    """Loads lesson order, progress and passes, then applies is_unlocked()."""

    def __init__(
        self,
        catalog: CatalogRepository,
        progress: ProgressRepository,
        attempts: ExamAttemptRepository,
        config: ProgressConfig,
    ):
        self._catalog = catalog
        self._progress = progress
        self._attempts = attempts
        self._config = config

    def sequence_for(
        self,
        lesson: Lesson,
        visible_lesson_ids: Collection[str] | None = None,
    ) -> list[Lesson]:
        """Ordered active lessons sharing `lesson`'s subject.

        Args:
            lesson: Lesson whose subject defines the sequence
            visible_lesson_ids: The user's active lesson set (None = all)
        """
        lessons = self._catalog.list_active_lessons(lesson.subject_id)
        if visible_lesson_ids is not None:
            lessons = [
                item
                for item in lessons
                if item.lesson_id in visible_lesson_ids or item.lesson_id == lesson.lesson_id
            ]
        return order_lessons(lessons)

    def passed_lessons(self, user_id: str, lesson_ids: Collection[str]) -> set[str]:
        """Passed lesson exams, only looked up when the rule needs them."""
        if self._config.unlock_rule is not UnlockRule.PROGRESS_AND_EXAM:
            return set()
        return self._attempts.passed_lesson_ids(user_id, lesson_ids)

    def check(
        self,
        user_id: str,
        lesson_id: str,
        visible_lesson_ids: Collection[str] | None = None,
    ) -> UnlockVerdict:
        """Is `lesson_id` open for `user_id`?

        Raises:
            LessonNotFoundError: If the lesson is unknown or inactive
        """
        lesson = self._catalog.get_lesson(lesson_id)
        if lesson is None or not lesson.is_active:
            raise LessonNotFoundError(f"Lesson not found: {lesson_id}")

        sequence = self.sequence_for(lesson, visible_lesson_ids)
        lesson_ids = [item.lesson_id for item in sequence]
        progress = {
            key: row.progress_percent
            for key, row in self._progress.list_for_user(user_id, lesson_ids).items()
        }

        verdict = is_unlocked(
            lesson,
            sequence,
            progress,
            self.passed_lessons(user_id, lesson_ids),
            self._config,
        )

        if not verdict.unlocked:
            logger.debug(
                "sequencing.locked",
                user_id=user_id,
                lesson_id=lesson_id,
                blocked_by=verdict.blocked_by.lesson_id if verdict.blocked_by else None,
            )
        return verdict
