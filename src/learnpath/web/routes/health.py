"""Liveness endpoint reporting the rules this engine enforces."""

from datetime import datetime, timezone

from fastapi import APIRouter, Depends

from learnpath import __version__
from learnpath.core.services import LearningEngine, get_engine
from learnpath.web.schemas import HealthResponse

router = APIRouter(tags=["health"])


@router.get("/health", response_model=HealthResponse)
async def health_check(engine: LearningEngine = Depends(get_engine)) -> HealthResponse:
    config = engine.config
    return HealthResponse(
        status="ok",
        version=__version__,
        timestamp=datetime.now(timezone.utc).isoformat(),
        unlock_rule=config.progress.unlock_rule.value,
        pass_threshold=config.exam.pass_threshold,
        max_attempts=config.exam.max_attempts,
    )
