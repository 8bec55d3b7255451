"""Request dependencies: caller identity and enrollment checks.

Authentication happens upstream; the authenticated user id arrives in the
X-User-Id header. Enrollment checks run here, before any engine call.
"""

from __future__ import annotations

from datetime import date

from fastapi import Depends, Header, HTTPException, status

from learnpath.core.models import Enrollment
from learnpath.core.services import LearningEngine, get_engine


def current_user_id(x_user_id: str = Header(..., min_length=1)) -> str:
    """Authenticated user id forwarded by the auth layer."""
    return x_user_id


def require_enrollment(
    user_id: str = Depends(current_user_id),
    engine: LearningEngine = Depends(get_engine),
) -> Enrollment:
    """Reject users without a company or outside their enrollment window."""
    enrollment = engine.enrollments.get_enrollment(user_id)
    if enrollment is None:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="NOT_ASSIGNED",
        )
    if not enrollment.is_open(date.today()):
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="PERIOD_NOT_ACTIVE",
        )
    return enrollment


def require_lesson_access(lesson_id: str, enrollment: Enrollment) -> None:
    """Reject lessons outside the user's active lesson set."""
    if lesson_id not in enrollment.active_lesson_ids:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="LESSON_NOT_ASSIGNED",
        )
