"""Database module for SQLite persistence.

Provides:
- Database connection management and schema initialization
- Typed repositories for catalog, enrollment, progress and exam attempts
"""

from learnpath.db.attempt_repository import ExamAttemptRepository
from learnpath.db.catalog_repository import CatalogRepository
from learnpath.db.database import get_db, init_db
from learnpath.db.enrollment_repository import EnrollmentRepository
from learnpath.db.progress_repository import ProgressRepository

__all__ = [
    "CatalogRepository",
    "EnrollmentRepository",
    "ExamAttemptRepository",
    "ProgressRepository",
    "get_db",
    "init_db",
]
