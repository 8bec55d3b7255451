"""Pydantic schemas for the Web API.

Request bodies and response models for progress and exam endpoints.
"""

from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, Field


# =============================================================================
# COMMON
# =============================================================================


class HealthResponse(BaseModel):
    """Health check response."""

    status: str
    version: str
    timestamp: str
    unlock_rule: str
    pass_threshold: float
    max_attempts: int


class ErrorResponse(BaseModel):
    """Body returned for expected engine rejections."""

    code: str
    detail: str


class BlockingLessonResponse(BaseModel):
    lesson_id: str
    title: str
    order: int
    reason: Literal["progress", "exam"]


# =============================================================================
# PROGRESS SCHEMAS
# =============================================================================


class ProgressPingRequest(BaseModel):
    """Watch-time report from the player."""

    lesson_id: str = Field(..., min_length=1)
    max_reached_seconds: float = Field(..., ge=0)
    video_duration_seconds: float | None = Field(default=None, ge=0)


class ProgressPingResponse(BaseModel):
    lesson_id: str
    progress_percent: float
    max_reached_seconds: float
    video_duration_seconds: float
    status: Literal["inProgress", "completed"]
    completed_at: str | None = None


class SubjectProgressResponse(BaseModel):
    subject_id: str
    subject_name: str
    progress_percent: float
    completed_lessons: int
    total_lessons: int
    current_lesson_id: str | None = None


class ProgressStatusResponse(BaseModel):
    subjects: list[SubjectProgressResponse]
    count: int


class NextLessonResponse(BaseModel):
    lesson_id: str
    lesson_title: str
    subject_id: str
    order: int


class NextAvailableResponse(BaseModel):
    next_lesson: NextLessonResponse | None = None
    lock: bool
    blocked_by: BlockingLessonResponse | None = None
    all_completed: bool = False


class LessonStatusResponse(BaseModel):
    lesson_id: str
    lesson_title: str
    subject_id: str
    progress_percent: float
    max_reached_seconds: float
    unlocked: bool
    completed: bool
    remaining_tries: int
    completed_at: str | None = None
    blockers: list[BlockingLessonResponse] = Field(default_factory=list)


# =============================================================================
# EXAM SCHEMAS
# =============================================================================


class LessonProgressEntryResponse(BaseModel):
    lesson_id: str
    lesson_title: str
    progress_percent: float


class EligibilityResponse(BaseModel):
    eligible: bool
    reason: str
    reason_code: str
    remaining_attempts: int
    cycle: int
    attempts_used_in_cycle: int
    lesson_progress: list[LessonProgressEntryResponse]


class ExamQuestionResponse(BaseModel):
    """Question as shown to the learner (never the answer index)."""

    question_id: str
    stem: str
    choices: list[str]


class StartExamResponse(BaseModel):
    attempt_id: str
    scope_kind: Literal["subject", "lesson"]
    scope_id: str
    subject_id: str
    cycle: int
    attempt_index: int
    attempt_number: int
    remaining_attempts: int
    questions: list[ExamQuestionResponse]


class AnswerRequest(BaseModel):
    question_id: str = Field(..., min_length=1)
    choice_index: int = Field(..., ge=0)


class SubmitExamRequest(BaseModel):
    answers: list[AnswerRequest] = Field(..., min_length=1)


class SubmitExamResponse(BaseModel):
    attempt_id: str
    score: float = Field(..., ge=0, le=100)
    passed: bool
    correct_count: int
    total_questions: int
    cycle: int
    attempt_index: int


class RetakeResponse(BaseModel):
    allowed: bool
    cycle: int
    attempt_index: int
    remaining_attempts: int
    message: str
    code: str | None = None
    exam: StartExamResponse | None = None
