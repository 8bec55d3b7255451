"""Route handlers for Web API."""

from learnpath.web.routes.exams import router as exams_router
from learnpath.web.routes.health import router as health_router
from learnpath.web.routes.progress import router as progress_router

__all__ = [
    "exams_router",
    "health_router",
    "progress_router",
]
