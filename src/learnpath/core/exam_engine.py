"""Exam attempt state machine.

Responsibilities:
- Start attempts: re-check eligibility, derive the cycle slot, sample the
  question set, persist an inProgress attempt
- Submit attempts: validate the answer set against the stored questions,
  score it, move the attempt to submitted exactly once
- Retake: the same as start, reported as a decision instead of an error
- Administrative overrides: reset a user's attempts, delete one attempt

States:
    inProgress -> submitted (terminal)
"""

from __future__ import annotations

import random
import uuid
from collections import Counter
from collections.abc import Callable, Mapping, Sequence
from dataclasses import dataclass, field
from typing import Any

import structlog

from learnpath.config.engine_config import EngineConfig
from learnpath.core.attempt_cycles import next_attempt_slot, remaining_total, summarize_history
from learnpath.core.eligibility import EligibilityEvaluator
from learnpath.core.errors import (
    AlreadyPassedError,
    AttemptInProgressError,
    AttemptLimitExceededError,
    AttemptNotFoundError,
    DuplicateSubmissionError,
    EngineError,
    NotEligibleError,
    UnprocessableError,
)
from learnpath.core.models import ExamAnswer, ExamAttempt, ExamScope, Question, utc_now
from learnpath.core.question_sampler import sample
from learnpath.db.attempt_repository import ExamAttemptRepository
from learnpath.db.catalog_repository import CatalogRepository

logger = structlog.get_logger(__name__)


# =============================================================================
# DATA CLASSES
# =============================================================================


@dataclass(frozen=True)
class StartedExam:
    """A freshly created attempt with the learner-facing questions."""

    attempt_id: str
    scope: ExamScope
    subject_id: str
    cycle: int
    attempt_index: int
    attempt_number: int
    remaining_attempts: int
    questions: list[dict[str, Any]]

    def to_dict(self) -> dict[str, Any]:
        return {
            "attempt_id": self.attempt_id,
            "scope_kind": self.scope.kind,
            "scope_id": self.scope.scope_id,
            "subject_id": self.subject_id,
            "cycle": self.cycle,
            "attempt_index": self.attempt_index,
            "attempt_number": self.attempt_number,
            "remaining_attempts": self.remaining_attempts,
            "questions": self.questions,
        }


@dataclass(frozen=True)
class ExamResult:
    """Outcome of a submission."""

    attempt_id: str
    score: float
    passed: bool
    correct_count: int
    total_questions: int
    cycle: int
    attempt_index: int

    def to_dict(self) -> dict[str, Any]:
        return {
            "attempt_id": self.attempt_id,
            "score": self.score,
            "passed": self.passed,
            "correct_count": self.correct_count,
            "total_questions": self.total_questions,
            "cycle": self.cycle,
            "attempt_index": self.attempt_index,
        }


@dataclass(frozen=True)
class RetakeDecision:
    """Whether a retake was opened, with the slot it landed in."""

    allowed: bool
    cycle: int
    attempt_index: int
    remaining_attempts: int
    message: str
    code: str | None = None
    exam: StartedExam | None = field(default=None)


# =============================================================================
# PURE HELPERS
# =============================================================================


def validate_answer_set(question_ids: Sequence[str], answers: Sequence[ExamAnswer]) -> None:
    """Require exactly one answer per stored question, nothing else.

    Raises:
        UnprocessableError: On count mismatch, duplicates, unknown or
            missing question ids
    """
    if len(answers) != len(question_ids):
        raise UnprocessableError(
            f"Expected {len(question_ids)} answers, got {len(answers)}"
        )

    counts = Counter(a.question_id for a in answers)
    duplicates = sorted(qid for qid, n in counts.items() if n > 1)
    if duplicates:
        raise UnprocessableError(f"Duplicate answers for: {', '.join(duplicates)}")

    expected = set(question_ids)
    unknown = sorted(set(counts) - expected)
    if unknown:
        raise UnprocessableError(f"Answers for questions not in this attempt: {', '.join(unknown)}")

    missing = sorted(expected - set(counts))
    if missing:
        raise UnprocessableError(f"Missing answers for: {', '.join(missing)}")


def score_answers(
    question_ids: Sequence[str],
    answers: Sequence[ExamAnswer],
    questions: Mapping[str, Question],
) -> tuple[int, float]:
    """Count correct answers and compute the 0-100 score.

    A question missing from `questions` counts as wrong.

    Returns:
        (correct_count, score)
    """
    correct = 0
    for answer in answers:
        question = questions.get(answer.question_id)
        if question is not None and question.answer_index == answer.choice_index:
            correct += 1

    total = len(question_ids)
    score = correct * 100 / total if total else 0.0
    return correct, score


# =============================================================================
# ENGINE
# =============================================================================


class ExamEngine:
    """Runs the attempt lifecycle for subject- and lesson-scoped exams."""

    def __init__(
        self,
        catalog: CatalogRepository,
        attempts: ExamAttemptRepository,
        evaluator: EligibilityEvaluator,
        config: EngineConfig,
        rng: random.Random | None = None,
        id_factory: Callable[[], str] | None = None,
    ):
        self._catalog = catalog
        self._attempts = attempts
        self._evaluator = evaluator
        self._config = config
        self._rng = rng
        self._id_factory = id_factory or (lambda: uuid.uuid4().hex)

    # -------------------------------------------------------------------------
    # start
    # -------------------------------------------------------------------------

    def start_exam(self, user_id: str, scope: ExamScope) -> StartedExam:
        """Create a new inProgress attempt for `scope`.

        Raises:
            AlreadyPassedError: If the scope was already passed
            AttemptLimitExceededError: If every cycle is used up
            NotEligibleError: If progress requirements are not met
            AttemptInProgressError: If another attempt is still open
            UnprocessableError: If the question bank is too small
        """
        exam = self._config.exam

        verdict = self._evaluator.evaluate(user_id, scope)
        if not verdict.eligible:
            logger.info(
                "exam.start_rejected",
                user_id=user_id,
                scope=str(scope),
                reason_code=verdict.reason_code,
            )
            if verdict.reason_code == "already_passed":
                raise AlreadyPassedError(verdict.reason)
            if verdict.reason_code == "attempt_limit":
                raise AttemptLimitExceededError(verdict.reason)
            raise NotEligibleError(verdict.reason)

        history = self._attempts.list_for_scope(user_id, scope)
        status = summarize_history(history, exam)
        if status.in_progress_attempt_id:
            raise AttemptInProgressError(
                f"An attempt for {scope} is already in progress",
                attempt_id=status.in_progress_attempt_id,
            )

        slot = next_attempt_slot(history, exam)
        subject_id, lesson_id = self._resolve_scope(scope)

        bank = self._catalog.list_active_questions(subject_id)
        if scope.kind == "subject":
            required, count = exam.min_question_bank_size, exam.subject_question_count
        else:
            required, count = exam.lesson_question_count, exam.lesson_question_count

        if len(bank) < required:
            logger.info(
                "exam.bank_too_small",
                scope=str(scope),
                required=required,
                available=len(bank),
            )
            raise UnprocessableError(
                f"Question bank too small: at least {required} questions needed, "
                f"{len(bank)} available"
            )

        chosen = sample(bank, count, self._rng)

        attempt = self._attempts.create(
            ExamAttempt(
                attempt_id=self._id_factory(),
                user_id=user_id,
                scope=scope,
                subject_id=subject_id,
                lesson_id=lesson_id,
                cycle=slot.cycle,
                attempt_index=slot.attempt_index,
                attempt_number=slot.attempt_number,
                question_ids=[q.question_id for q in chosen],
                started_at=utc_now(),
            )
        )

        logger.info(
            "exam.started",
            attempt_id=attempt.attempt_id,
            user_id=user_id,
            scope=str(scope),
            cycle=slot.cycle,
            attempt_index=slot.attempt_index,
            questions=len(chosen),
        )

        return StartedExam(
            attempt_id=attempt.attempt_id,
            scope=scope,
            subject_id=subject_id,
            cycle=slot.cycle,
            attempt_index=slot.attempt_index,
            attempt_number=slot.attempt_number,
            remaining_attempts=max(0, exam.attempts_per_cycle - slot.attempt_index),
            questions=[q.to_public_dict() for q in chosen],
        )

    def retake_exam(self, user_id: str, scope: ExamScope) -> RetakeDecision:
        """Open the next attempt, reporting expected rejections as a decision."""
        try:
            started = self.start_exam(user_id, scope)
        except EngineError as e:
            history = self._attempts.list_for_scope(user_id, scope)
            status = summarize_history(history, self._config.exam)
            logger.info("exam.retake_denied", user_id=user_id, scope=str(scope), code=e.code)
            return RetakeDecision(
                allowed=False,
                cycle=status.cycle,
                attempt_index=status.attempts_used_in_cycle,
                remaining_attempts=remaining_total(history, self._config.exam),
                message=e.message,
                code=e.code,
            )

        history = self._attempts.list_for_scope(user_id, scope)
        return RetakeDecision(
            allowed=True,
            cycle=started.cycle,
            attempt_index=started.attempt_index,
            remaining_attempts=remaining_total(history, self._config.exam),
            message="Retake started",
            exam=started,
        )

    # -------------------------------------------------------------------------
    # submit
    # -------------------------------------------------------------------------

    def submit_exam(
        self,
        attempt_id: str,
        user_id: str,
        answers: Sequence[ExamAnswer],
    ) -> ExamResult:
        """Score an inProgress attempt and close it.

        Raises:
            AttemptNotFoundError: If the attempt is missing or not the user's
            DuplicateSubmissionError: If it was already submitted
            UnprocessableError: If the answer set does not match the questions
        """
        attempt = self._attempts.get(attempt_id)
        if attempt is None or attempt.user_id != user_id:
            raise AttemptNotFoundError(f"No in-progress exam found: {attempt_id}")
        if attempt.is_submitted:
            raise DuplicateSubmissionError(f"Attempt already submitted: {attempt_id}")

        validate_answer_set(attempt.question_ids, answers)

        questions = self._catalog.get_questions(attempt.question_ids)
        correct, score = score_answers(attempt.question_ids, answers, questions)
        passed = score >= self._config.exam.pass_threshold

        if not self._attempts.mark_submitted(
            attempt_id, list(answers), score, passed, utc_now()
        ):
            raise DuplicateSubmissionError(f"Attempt already submitted: {attempt_id}")

        logger.info(
            "exam.submitted",
            attempt_id=attempt_id,
            user_id=user_id,
            scope=str(attempt.scope),
            score=score,
            passed=passed,
        )

        return ExamResult(
            attempt_id=attempt_id,
            score=score,
            passed=passed,
            correct_count=correct,
            total_questions=len(attempt.question_ids),
            cycle=attempt.cycle,
            attempt_index=attempt.attempt_index,
        )

    # -------------------------------------------------------------------------
    # administrative overrides
    # -------------------------------------------------------------------------

    def reset_attempts(self, user_id: str, subject_id: str) -> int:
        """Delete every attempt of a user in a subject; returns the count."""
        return self._attempts.delete_for_subject(user_id, subject_id)

    def delete_attempt(self, attempt_id: str) -> ExamAttempt | None:
        return self._attempts.delete(attempt_id)

    def _resolve_scope(self, scope: ExamScope) -> tuple[str, str | None]:
        """(subject_id, lesson_id) for a scope."""
        if scope.kind == "subject":
            return scope.scope_id, None
        lesson = self._catalog.get_lesson(scope.scope_id)
        if lesson is None:
            raise NotEligibleError(f"Lesson not found: {scope.scope_id}")
        return lesson.subject_id, lesson.lesson_id
