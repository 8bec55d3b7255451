"""FastAPI application factory.

Main entry point for the learnpath Web API.
"""

from contextlib import asynccontextmanager
from typing import AsyncGenerator

import structlog
from fastapi import FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from learnpath import __version__
from learnpath.core.errors import EngineError
from learnpath.web.routes import exams_router, health_router, progress_router

logger = structlog.get_logger(__name__)

# Expected engine rejections -> HTTP status
ERROR_STATUS: dict[str, int] = {
    "NOT_ELIGIBLE": 403,
    "ATTEMPT_LIMIT_EXCEEDED": 403,
    "UNPROCESSABLE": 422,
    "NOT_FOUND": 404,
    "DUPLICATE_SUBMISSION": 409,
    "ATTEMPT_IN_PROGRESS": 409,
}


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Lifespan context manager for startup/shutdown events."""
    logger.info("api_startup", version=__version__)
    yield


async def engine_error_handler(request: Request, exc: EngineError) -> JSONResponse:
    """Render expected rejections; these are caller errors, not server faults."""
    status_code = ERROR_STATUS.get(exc.code, status.HTTP_400_BAD_REQUEST)
    logger.info(
        "request_rejected",
        path=request.url.path,
        code=exc.code,
        status_code=status_code,
    )
    return JSONResponse(
        status_code=status_code,
        content={"code": exc.code, "detail": exc.message},
    )


def create_app() -> FastAPI:
    """Create and configure the FastAPI application.

    Returns:
        Configured FastAPI app instance
    """
    app = FastAPI(
        title="learnpath API",
        description="Lesson progress, sequencing and certification exams",
        version=__version__,
        docs_url="/docs",
        redoc_url="/redoc",
        lifespan=lifespan,
    )

    # CORS middleware for web clients
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.add_exception_handler(EngineError, engine_error_handler)

    # Include routers
    app.include_router(health_router)
    app.include_router(progress_router)
    app.include_router(exams_router)

    return app


# Default app instance for uvicorn
app = create_app()
