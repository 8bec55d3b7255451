"""Exam endpoints: eligibility, start, retake and submit."""

from fastapi import APIRouter, Depends, status

from learnpath.core.exam_engine import StartedExam
from learnpath.core.models import Enrollment, ExamAnswer, ExamScope
from learnpath.core.services import LearningEngine, get_engine
from learnpath.web.dependencies import current_user_id, require_enrollment, require_lesson_access
from learnpath.web.schemas import (
    EligibilityResponse,
    RetakeResponse,
    StartExamResponse,
    SubmitExamRequest,
    SubmitExamResponse,
)

router = APIRouter(prefix="/api/exam", tags=["exam"])


def _started(exam: StartedExam) -> StartExamResponse:
    return StartExamResponse(**exam.to_dict())


@router.get("/subjects/{subject_id}/eligibility", response_model=EligibilityResponse)
def subject_eligibility(
    subject_id: str,
    user_id: str = Depends(current_user_id),
    enrollment: Enrollment = Depends(require_enrollment),
    engine: LearningEngine = Depends(get_engine),
) -> EligibilityResponse:
    """Can the caller start the subject exam now?"""
    verdict = engine.evaluator.evaluate(user_id, ExamScope.subject(subject_id))
    return EligibilityResponse(**verdict.to_dict())


@router.get("/lessons/{lesson_id}/eligibility", response_model=EligibilityResponse)
def lesson_eligibility(
    lesson_id: str,
    user_id: str = Depends(current_user_id),
    enrollment: Enrollment = Depends(require_enrollment),
    engine: LearningEngine = Depends(get_engine),
) -> EligibilityResponse:
    """Can the caller start the lesson exam now?"""
    require_lesson_access(lesson_id, enrollment)
    verdict = engine.evaluator.evaluate(user_id, ExamScope.lesson(lesson_id))
    return EligibilityResponse(**verdict.to_dict())


@router.post(
    "/subjects/{subject_id}/start",
    response_model=StartExamResponse,
    status_code=status.HTTP_201_CREATED,
)
def start_subject_exam(
    subject_id: str,
    user_id: str = Depends(current_user_id),
    enrollment: Enrollment = Depends(require_enrollment),
    engine: LearningEngine = Depends(get_engine),
) -> StartExamResponse:
    """Start a subject exam attempt."""
    return _started(engine.exams.start_exam(user_id, ExamScope.subject(subject_id)))


@router.post(
    "/lessons/{lesson_id}/start",
    response_model=StartExamResponse,
    status_code=status.HTTP_201_CREATED,
)
def start_lesson_exam(
    lesson_id: str,
    user_id: str = Depends(current_user_id),
    enrollment: Enrollment = Depends(require_enrollment),
    engine: LearningEngine = Depends(get_engine),
) -> StartExamResponse:
    """Start a lesson exam attempt."""
    require_lesson_access(lesson_id, enrollment)
    return _started(engine.exams.start_exam(user_id, ExamScope.lesson(lesson_id)))


def _retake(engine: LearningEngine, user_id: str, scope: ExamScope) -> RetakeResponse:
    decision = engine.exams.retake_exam(user_id, scope)
    return RetakeResponse(
        allowed=decision.allowed,
        cycle=decision.cycle,
        attempt_index=decision.attempt_index,
        remaining_attempts=decision.remaining_attempts,
        message=decision.message,
        code=decision.code,
        exam=_started(decision.exam) if decision.exam else None,
    )


@router.post("/subjects/{subject_id}/retake", response_model=RetakeResponse)
def retake_subject_exam(
    subject_id: str,
    user_id: str = Depends(current_user_id),
    enrollment: Enrollment = Depends(require_enrollment),
    engine: LearningEngine = Depends(get_engine),
) -> RetakeResponse:
    """Open the next subject attempt; rejections come back in the body."""
    return _retake(engine, user_id, ExamScope.subject(subject_id))


@router.post("/lessons/{lesson_id}/retake", response_model=RetakeResponse)
def retake_lesson_exam(
    lesson_id: str,
    user_id: str = Depends(current_user_id),
    enrollment: Enrollment = Depends(require_enrollment),
    engine: LearningEngine = Depends(get_engine),
) -> RetakeResponse:
    """Open the next lesson attempt; rejections come back in the body."""
    require_lesson_access(lesson_id, enrollment)
    return _retake(engine, user_id, ExamScope.lesson(lesson_id))


@router.post("/attempts/{attempt_id}/submit", response_model=SubmitExamResponse)
def submit_exam(
    attempt_id: str,
    request: SubmitExamRequest,
    user_id: str = Depends(current_user_id),
    enrollment: Enrollment = Depends(require_enrollment),
    engine: LearningEngine = Depends(get_engine),
) -> SubmitExamResponse:
    """Submit answers for an in-progress attempt and get the score."""
    answers = [
        ExamAnswer(question_id=a.question_id, choice_index=a.choice_index)
        for a in request.answers
    ]
    result = engine.exams.submit_exam(attempt_id, user_id, answers)
    return SubmitExamResponse(**result.to_dict())
