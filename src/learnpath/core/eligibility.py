"""Eligibility evaluator module.

Composes lesson progress and attempt history into one verdict: may this
user start an exam for this scope right now?

The evaluation is read-only. ExamEngine.start_exam() calls it again
before creating an attempt, so repeated calls must not change anything.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Literal

import structlog

from learnpath.config.engine_config import EngineConfig
from learnpath.core.attempt_cycles import summarize_history
from learnpath.core.models import ExamScope, Lesson
from learnpath.db.attempt_repository import ExamAttemptRepository
from learnpath.db.catalog_repository import CatalogRepository
from learnpath.db.progress_repository import ProgressRepository

logger = structlog.get_logger(__name__)

ReasonCode = Literal[
    "eligible",
    "no_active_lessons",
    "progress_incomplete",
    "already_passed",
    "attempt_limit",
]

REASON_MESSAGES: dict[str, str] = {
    "eligible": "Exam can be started",
    "no_active_lessons": "There are no active lessons in this scope",
    "progress_incomplete": "Every lesson must be watched to at least {threshold:g}%",
    "already_passed": "This exam has already been passed",
    "attempt_limit": "All {cycles} cycles of {per_cycle} attempts have been used",
}


@dataclass(frozen=True)
class LessonProgressEntry:
    """Progress of one lesson inside an eligibility verdict."""

    lesson_id: str
    lesson_title: str
    progress_percent: float

    def to_dict(self) -> dict[str, Any]:
        return {
            "lesson_id": self.lesson_id,
            "lesson_title": self.lesson_title,
            "progress_percent": self.progress_percent,
        }


@dataclass(frozen=True)
class EligibilityVerdict:
    """Result of an eligibility evaluation."""

    eligible: bool
    reason: str
    reason_code: ReasonCode
    remaining_attempts: int
    lesson_progress: list[LessonProgressEntry] = field(default_factory=list)
    cycle: int = 1
    attempts_used_in_cycle: int = 0

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            "eligible": self.eligible,
            "reason": self.reason,
            "reason_code": self.reason_code,
            "remaining_attempts": self.remaining_attempts,
            "cycle": self.cycle,
            "attempts_used_in_cycle": self.attempts_used_in_cycle,
            "lesson_progress": [entry.to_dict() for entry in self.lesson_progress],
        }


class EligibilityEvaluator:
    """Decides whether an exam may be started for a scope."""

    def __init__(
        self,
        catalog: CatalogRepository,
        progress: ProgressRepository,
        attempts: ExamAttemptRepository,
        config: EngineConfig,
    ):
        self._catalog = catalog
        self._progress = progress
        self._attempts = attempts
        self._config = config

    def lessons_in_scope(self, scope: ExamScope) -> list[Lesson]:
        """Active lessons an exam scope covers, in order."""
        if scope.kind == "subject":
            return self._catalog.list_active_lessons(scope.scope_id)

        lesson = self._catalog.get_lesson(scope.scope_id)
        if lesson is None or not lesson.is_active:
            return []
        return [lesson]

    def evaluate(self, user_id: str, scope: ExamScope) -> EligibilityVerdict:
        """Evaluate exam eligibility for `user_id` on `scope`.

        eligible = every lesson >= unlock threshold
                   AND attempts used in the current cycle < per-cycle cap
                   AND cycles not exhausted
                   AND not already passed
        """
        exam = self._config.exam
        threshold = self._config.progress.unlock_threshold

        lessons = self.lessons_in_scope(scope)
        if not lessons:
            return self._verdict("no_active_lessons", remaining=0)

        stored = self._progress.list_for_user(user_id, [l.lesson_id for l in lessons])
        entries = [
            LessonProgressEntry(
                lesson_id=lesson.lesson_id,
                lesson_title=lesson.title,
                progress_percent=(
                    stored[lesson.lesson_id].progress_percent
                    if lesson.lesson_id in stored
                    else 0.0
                ),
            )
            for lesson in lessons
        ]

        status = summarize_history(self._attempts.list_for_scope(user_id, scope), exam)

        if status.passed:
            code: ReasonCode = "already_passed"
        elif status.exhausted or status.attempts_used_in_cycle >= exam.attempts_per_cycle:
            code = "attempt_limit"
        elif any(entry.progress_percent < threshold for entry in entries):
            code = "progress_incomplete"
        else:
            code = "eligible"

        verdict = self._verdict(
            code,
            remaining=status.remaining_in_cycle,
            entries=entries,
            cycle=status.cycle,
            used=status.attempts_used_in_cycle,
        )

        logger.debug(
            "eligibility.evaluated",
            user_id=user_id,
            scope=str(scope),
            eligible=verdict.eligible,
            reason_code=code,
            remaining_attempts=verdict.remaining_attempts,
        )
        return verdict

    def _verdict(
        self,
        code: ReasonCode,
        remaining: int,
        entries: list[LessonProgressEntry] | None = None,
        cycle: int = 1,
        used: int = 0,
    ) -> EligibilityVerdict:
        exam = self._config.exam
        reason = REASON_MESSAGES[code].format(
            threshold=self._config.progress.unlock_threshold,
            cycles=exam.max_cycles,
            per_cycle=exam.attempts_per_cycle,
        )
        return EligibilityVerdict(
            eligible=code == "eligible",
            reason=reason,
            reason_code=code,
            remaining_attempts=remaining,
            lesson_progress=entries or [],
            cycle=cycle,
            attempts_used_in_cycle=used,
        )
