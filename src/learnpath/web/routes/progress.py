"""Progress endpoints."""

from fastapi import APIRouter, Depends

from learnpath.core.models import Enrollment
from learnpath.core.sequencing import BlockingLesson
from learnpath.core.services import LearningEngine, get_engine
from learnpath.web.dependencies import current_user_id, require_enrollment, require_lesson_access
from learnpath.web.schemas import (
    BlockingLessonResponse,
    LessonStatusResponse,
    NextAvailableResponse,
    NextLessonResponse,
    ProgressPingRequest,
    ProgressPingResponse,
    ProgressStatusResponse,
    SubjectProgressResponse,
)

router = APIRouter(prefix="/api/progress", tags=["progress"])


def _blocking(blocking: BlockingLesson) -> BlockingLessonResponse:
    return BlockingLessonResponse(**blocking.to_dict())


@router.post("/ping", response_model=ProgressPingResponse)
def ping_progress(
    request: ProgressPingRequest,
    user_id: str = Depends(current_user_id),
    enrollment: Enrollment = Depends(require_enrollment),
    engine: LearningEngine = Depends(get_engine),
) -> ProgressPingResponse:
    """Record the furthest point reached in a lesson video."""
    require_lesson_access(request.lesson_id, enrollment)

    progress = engine.tracker.report_progress(
        user_id,
        request.lesson_id,
        request.max_reached_seconds,
        request.video_duration_seconds,
    )

    return ProgressPingResponse(
        lesson_id=progress.lesson_id,
        progress_percent=progress.progress_percent,
        max_reached_seconds=progress.max_reached_seconds,
        video_duration_seconds=progress.video_duration_seconds,
        status=progress.status,
        completed_at=progress.completed_at,
    )


@router.get("/status", response_model=ProgressStatusResponse)
def progress_status(
    user_id: str = Depends(current_user_id),
    enrollment: Enrollment = Depends(require_enrollment),
    engine: LearningEngine = Depends(get_engine),
) -> ProgressStatusResponse:
    """Average progress per subject for the caller."""
    summaries = engine.summaries.summarize_subjects(user_id, enrollment.active_lesson_ids)
    subjects = [SubjectProgressResponse(**s.to_dict()) for s in summaries]
    return ProgressStatusResponse(subjects=subjects, count=len(subjects))


@router.get("/next-available", response_model=NextAvailableResponse)
def next_available(
    user_id: str = Depends(current_user_id),
    enrollment: Enrollment = Depends(require_enrollment),
    engine: LearningEngine = Depends(get_engine),
) -> NextAvailableResponse:
    """The lesson to watch next, or the lesson blocking it."""
    result = engine.summaries.next_available(user_id, enrollment.active_lesson_ids)

    next_lesson = None
    if result.lesson is not None:
        next_lesson = NextLessonResponse(
            lesson_id=result.lesson.lesson_id,
            lesson_title=result.lesson.title,
            subject_id=result.lesson.subject_id,
            order=result.lesson.order,
        )

    return NextAvailableResponse(
        next_lesson=next_lesson,
        lock=result.lock,
        blocked_by=_blocking(result.blocked_by) if result.blocked_by else None,
        all_completed=result.all_completed,
    )


@router.get("/lessons/{lesson_id}", response_model=LessonStatusResponse)
def lesson_status(
    lesson_id: str,
    user_id: str = Depends(current_user_id),
    enrollment: Enrollment = Depends(require_enrollment),
    engine: LearningEngine = Depends(get_engine),
) -> LessonStatusResponse:
    """Progress, lock state and lesson-exam tries for one lesson."""
    require_lesson_access(lesson_id, enrollment)

    result = engine.summaries.lesson_status(user_id, lesson_id, enrollment.active_lesson_ids)

    return LessonStatusResponse(
        lesson_id=result.lesson_id,
        lesson_title=result.lesson_title,
        subject_id=result.subject_id,
        progress_percent=result.progress_percent,
        max_reached_seconds=result.max_reached_seconds,
        unlocked=result.unlocked,
        completed=result.completed,
        remaining_tries=result.remaining_tries,
        completed_at=result.completed_at,
        blockers=[_blocking(b) for b in result.blockers],
    )
