"""Progress tracker module.

Responsibilities:
- Record the watch-time watermark (max_reached_seconds) per user and lesson
- Derive progress_percent and completion status from it
- Never let a late or lower report move the watermark backwards

The calculation lives in apply_progress_report() so it can be exercised
without storage; ProgressTracker wires it to the repository under the
per-key write lock.
"""

from __future__ import annotations

import structlog

from learnpath.config.engine_config import ProgressConfig
from learnpath.core.errors import UnprocessableError
from learnpath.core.models import LessonProgress, utc_now
from learnpath.db.progress_repository import ProgressRepository

logger = structlog.get_logger(__name__)


def compute_percent(max_reached_seconds: float, video_duration_seconds: float) -> float:
    """Percent watched, clamped to [0, 100]; 0 when duration is unknown."""
    if video_duration_seconds <= 0:
        return 0.0
    return max(0.0, min(max_reached_seconds / video_duration_seconds * 100, 100.0))


def apply_progress_report(
    existing: LessonProgress | None,
    user_id: str,
    lesson_id: str,
    max_reached_seconds: float,
    video_duration_seconds: float | None,
    config: ProgressConfig,
    now: str | None = None,
) -> LessonProgress:
    """Fold one watch-time report into the stored progress.

    Args:
        existing: Stored row, None on first report
        user_id: User identifier
        lesson_id: Lesson identifier
        max_reached_seconds: Furthest second reached in this session
        video_duration_seconds: Total duration if the player knows it
        config: Threshold and fallback duration
        now: Timestamp to stamp (defaults to current UTC time)

    Returns:
        New LessonProgress (existing is not mutated)
    """
    now = now or utc_now()
    previous_max = existing.max_reached_seconds if existing else 0.0
    previous_duration = existing.video_duration_seconds if existing else 0.0

    new_max = max(previous_max, max_reached_seconds)

    # Non-zero duration wins; otherwise keep what we had, else the fallback
    if video_duration_seconds:
        duration = video_duration_seconds
    elif previous_duration:
        duration = previous_duration
    else:
        duration = config.default_video_duration_seconds

    percent = compute_percent(new_max, duration)

    if percent >= config.unlock_threshold:
        status = "completed"
        completed_at = (existing.completed_at if existing else None) or now
    else:
        # Reachable when the duration is corrected upward after completion
        status = "inProgress"
        completed_at = None

    return LessonProgress(
        user_id=user_id,
        lesson_id=lesson_id,
        max_reached_seconds=new_max,
        video_duration_seconds=duration,
        progress_percent=percent,
        status=status,
        completed_at=completed_at,
        updated_at=now,
    )


class ProgressTracker:
    """Records watch progress through the progress repository."""

    def __init__(self, repository: ProgressRepository, config: ProgressConfig):
        self._repository = repository
        self._config = config

    def report_progress(
        self,
        user_id: str,
        lesson_id: str,
        max_reached_seconds: float,
        video_duration_seconds: float | None = None,
    ) -> LessonProgress:
        """Record a watch-time report and return the resulting progress.

        Raises:
            UnprocessableError: If a reported value is negative
        """
        if max_reached_seconds < 0:
            raise UnprocessableError("max_reached_seconds must be >= 0")
        if video_duration_seconds is not None and video_duration_seconds < 0:
            raise UnprocessableError("video_duration_seconds must be >= 0")

        def update(existing: LessonProgress | None) -> LessonProgress:
            return apply_progress_report(
                existing,
                user_id,
                lesson_id,
                max_reached_seconds,
                video_duration_seconds,
                self._config,
            )

        progress = self._repository.apply(user_id, lesson_id, update)

        logger.info(
            "progress.reported",
            user_id=user_id,
            lesson_id=lesson_id,
            max_reached_seconds=progress.max_reached_seconds,
            progress_percent=round(progress.progress_percent, 2),
            status=progress.status,
        )
        return progress

    def get_progress(self, user_id: str, lesson_id: str) -> LessonProgress:
        """Stored progress, or an empty 0% record if none exists. No writes."""
        progress = self._repository.get(user_id, lesson_id)
        if progress is None:
            return LessonProgress(user_id=user_id, lesson_id=lesson_id)
        return progress
