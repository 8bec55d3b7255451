"""Expected, user-facing engine errors.

Each class carries a stable `code` the web layer maps to an HTTP status.
Storage failures are not wrapped here; sqlite3 errors propagate as-is.
"""

from __future__ import annotations


class EngineError(Exception):
    """Base class for expected engine rejections."""

    code = "ENGINE_ERROR"

    def __init__(self, message: str):
        self.message = message
        super().__init__(message)


class NotEligibleError(EngineError):
    """Preconditions for starting an exam are unmet."""

    code = "NOT_ELIGIBLE"


class AlreadyPassedError(NotEligibleError):
    """The scope was already passed; no further attempts."""

    pass


class AttemptLimitExceededError(EngineError):
    """Every cycle for the scope is used up."""

    code = "ATTEMPT_LIMIT_EXCEEDED"


class AttemptInProgressError(EngineError):
    """Another attempt for the same scope is still open."""

    code = "ATTEMPT_IN_PROGRESS"

    def __init__(self, message: str, attempt_id: str | None = None):
        self.attempt_id = attempt_id
        super().__init__(message)


class UnprocessableError(EngineError):
    """Caller input cannot be processed (answer set mismatch, small bank)."""

    code = "UNPROCESSABLE"


class AttemptNotFoundError(EngineError):
    """Attempt id unknown or owned by someone else."""

    code = "NOT_FOUND"


class DuplicateSubmissionError(EngineError):
    """Attempt was already submitted."""

    code = "DUPLICATE_SUBMISSION"


class LessonNotFoundError(EngineError):
    """Lesson unknown or inactive."""

    code = "NOT_FOUND"
