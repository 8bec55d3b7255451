"""Engine composition root.

Builds repositories and services from one EngineConfig and hands the
wired set to the web and CLI layers.
"""

from __future__ import annotations

import random
from dataclasses import dataclass
from pathlib import Path

from learnpath.config.engine_config import EngineConfig, load_engine_config
from learnpath.core.eligibility import EligibilityEvaluator
from learnpath.core.exam_engine import ExamEngine
from learnpath.core.progress_summary import ProgressSummaryService
from learnpath.core.progress_tracker import ProgressTracker
from learnpath.core.sequencing import SequencingGate
from learnpath.db.attempt_repository import ExamAttemptRepository
from learnpath.db.catalog_repository import CatalogRepository
from learnpath.db.database import init_db
from learnpath.db.enrollment_repository import EnrollmentRepository
from learnpath.db.progress_repository import ProgressRepository


@dataclass
class LearningEngine:
    """All engine services sharing one database and configuration."""

    config: EngineConfig
    catalog: CatalogRepository
    enrollments: EnrollmentRepository
    attempts: ExamAttemptRepository
    tracker: ProgressTracker
    gate: SequencingGate
    evaluator: EligibilityEvaluator
    exams: ExamEngine
    summaries: ProgressSummaryService


def build_engine(
    config: EngineConfig | None = None,
    db_path: Path | None = None,
    rng: random.Random | None = None,
) -> LearningEngine:
    """Initialize the database and wire every service.

    Args:
        config: Engine configuration (defaults to load_engine_config())
        db_path: SQLite file (defaults to config.db_path)
        rng: Random source for question sampling
    """
    config = config or load_engine_config()
    db_path = db_path or config.db_path
    init_db(db_path)

    catalog = CatalogRepository(db_path)
    progress = ProgressRepository(db_path)
    attempts = ExamAttemptRepository(db_path)

    gate = SequencingGate(catalog, progress, attempts, config.progress)
    evaluator = EligibilityEvaluator(catalog, progress, attempts, config)

    return LearningEngine(
        config=config,
        catalog=catalog,
        enrollments=EnrollmentRepository(db_path),
        attempts=attempts,
        tracker=ProgressTracker(progress, config.progress),
        gate=gate,
        evaluator=evaluator,
        exams=ExamEngine(catalog, attempts, evaluator, config, rng=rng),
        summaries=ProgressSummaryService(catalog, progress, attempts, gate, config),
    )


_engine: LearningEngine | None = None


def get_engine() -> LearningEngine:
    """Get the global engine instance."""
    global _engine
    if _engine is None:
        _engine = build_engine()
    return _engine


def reset_engine() -> None:
    """Reset the engine (for testing)."""
    global _engine
    _engine = None
