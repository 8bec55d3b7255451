"""Domain records shared by the engine and its repositories.

Rows are owned by the persistence layer; these dataclasses are the typed
view the core works with.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime, timezone
from typing import Any, Literal

ProgressStatus = Literal["inProgress", "completed"]
AttemptStatus = Literal["inProgress", "submitted"]
ScopeKind = Literal["subject", "lesson"]


def utc_now() -> str:
    """Current UTC time as ISO-8601 string."""
    return datetime.now(timezone.utc).isoformat()


# =============================================================================
# CATALOG (read-only to the engine)
# =============================================================================


@dataclass(frozen=True)
class Subject:
    """A subject grouping ordered lessons."""

    subject_id: str
    name: str


@dataclass(frozen=True)
class Lesson:
    """A lesson inside a subject, ordered by `order`."""

    lesson_id: str
    subject_id: str
    title: str
    order: int
    is_active: bool = True


@dataclass(frozen=True)
class Question:
    """A multiple-choice question from a subject bank."""

    question_id: str
    subject_id: str
    stem: str
    choices: tuple[str, ...]
    answer_index: int
    is_active: bool = True

    def to_public_dict(self) -> dict[str, Any]:
        """Question content safe to send to a learner (no answer index)."""
        return {
            "question_id": self.question_id,
            "stem": self.stem,
            "choices": list(self.choices),
        }


@dataclass(frozen=True)
class Enrollment:
    """Enrollment window and assigned lessons for a user."""

    user_id: str
    company_id: str
    start_date: date
    end_date: date
    active_lesson_ids: frozenset[str] = frozenset()

    def is_open(self, today: date) -> bool:
        """Whether `today` falls within the enrollment window (inclusive)."""
        return self.start_date <= today <= self.end_date


# =============================================================================
# PROGRESS
# =============================================================================


@dataclass
class LessonProgress:
    """Watch progress of one user on one lesson."""

    user_id: str
    lesson_id: str
    max_reached_seconds: float = 0.0
    video_duration_seconds: float = 0.0
    progress_percent: float = 0.0
    status: ProgressStatus = "inProgress"
    completed_at: str | None = None
    updated_at: str | None = None

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            "user_id": self.user_id,
            "lesson_id": self.lesson_id,
            "max_reached_seconds": self.max_reached_seconds,
            "video_duration_seconds": self.video_duration_seconds,
            "progress_percent": self.progress_percent,
            "status": self.status,
            "completed_at": self.completed_at,
            "updated_at": self.updated_at,
        }


# =============================================================================
# EXAMS
# =============================================================================


@dataclass(frozen=True)
class ExamScope:
    """The unit an exam is defined over: a whole subject or one lesson."""

    kind: ScopeKind
    scope_id: str

    @classmethod
    def subject(cls, subject_id: str) -> ExamScope:
        return cls("subject", subject_id)

    @classmethod
    def lesson(cls, lesson_id: str) -> ExamScope:
        return cls("lesson", lesson_id)

    def __str__(self) -> str:
        return f"{self.kind}:{self.scope_id}"


@dataclass(frozen=True)
class ExamAnswer:
    """A learner's choice for one question."""

    question_id: str
    choice_index: int

    def to_dict(self) -> dict[str, Any]:
        return {"question_id": self.question_id, "choice_index": self.choice_index}


@dataclass
class ExamAttempt:
    """One exam attempt: created inProgress, submitted exactly once."""

    attempt_id: str
    user_id: str
    scope: ExamScope
    subject_id: str
    cycle: int
    attempt_index: int
    attempt_number: int
    question_ids: list[str]
    status: AttemptStatus = "inProgress"
    lesson_id: str | None = None
    answers: list[ExamAnswer] = field(default_factory=list)
    score: float | None = None
    passed: bool | None = None
    started_at: str = ""
    submitted_at: str | None = None

    @property
    def is_submitted(self) -> bool:
        return self.status == "submitted"

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            "attempt_id": self.attempt_id,
            "user_id": self.user_id,
            "scope_kind": self.scope.kind,
            "scope_id": self.scope.scope_id,
            "subject_id": self.subject_id,
            "lesson_id": self.lesson_id,
            "cycle": self.cycle,
            "attempt_index": self.attempt_index,
            "attempt_number": self.attempt_number,
            "status": self.status,
            "question_ids": list(self.question_ids),
            "answers": [a.to_dict() for a in self.answers],
            "score": self.score,
            "passed": self.passed,
            "started_at": self.started_at,
            "submitted_at": self.submitted_at,
        }
