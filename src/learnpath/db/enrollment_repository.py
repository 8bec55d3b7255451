"""Repository for enrollment windows.

Stands in for the company/cohort administration side: given a user id it
returns the assigned company, enrollment dates and active lesson set.
"""

from __future__ import annotations

import json
from datetime import date
from pathlib import Path

import structlog

from learnpath.core.models import Enrollment
from learnpath.db.database import get_db

logger = structlog.get_logger(__name__)


class EnrollmentRepository:
    """Per-user enrollment lookups."""

    def __init__(self, db_path: Path | None = None):
        self._db_path = db_path

    def upsert_enrollment(self, enrollment: Enrollment) -> None:
        """Insert or replace a user's enrollment."""
        with get_db(self._db_path) as conn:
            conn.execute(
                """
                INSERT INTO enrollments (
                    user_id, company_id, start_date, end_date, active_lesson_ids
                ) VALUES (?, ?, ?, ?, ?)
                ON CONFLICT(user_id) DO UPDATE SET
                    company_id = excluded.company_id,
                    start_date = excluded.start_date,
                    end_date = excluded.end_date,
                    active_lesson_ids = excluded.active_lesson_ids
                """,
                (
                    enrollment.user_id,
                    enrollment.company_id,
                    enrollment.start_date.isoformat(),
                    enrollment.end_date.isoformat(),
                    json.dumps(sorted(enrollment.active_lesson_ids)),
                ),
            )

        logger.debug("enrollments.upserted", user_id=enrollment.user_id)

    def get_enrollment(self, user_id: str) -> Enrollment | None:
        """Get enrollment for a user.

        Returns:
            Enrollment if the user is assigned to a company, None otherwise
        """
        with get_db(self._db_path) as conn:
            row = conn.execute(
                "SELECT * FROM enrollments WHERE user_id = ?", (user_id,)
            ).fetchone()

        if row is None:
            return None

        return Enrollment(
            user_id=row["user_id"],
            company_id=row["company_id"],
            start_date=date.fromisoformat(row["start_date"]),
            end_date=date.fromisoformat(row["end_date"]),
            active_lesson_ids=frozenset(json.loads(row["active_lesson_ids"])),
        )
