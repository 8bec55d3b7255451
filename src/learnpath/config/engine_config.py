"""Engine configuration loader.

Loads the exam and progress rules from data/config/engine_config_v1.yaml
with fallback to built-in defaults.

Usage:
    from learnpath.config.engine_config import load_engine_config

    config = load_engine_config()
    config.exam.pass_threshold  # 70.0
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any

import structlog
import yaml

logger = structlog.get_logger(__name__)

# Config file path (relative to project root)
CONFIG_FILE = Path("data/config/engine_config_v1.yaml")
CONFIG_ENV_VAR = "LEARNPATH_CONFIG"
DB_ENV_VAR = "LEARNPATH_DB"


class UnlockRule(str, Enum):
    """Rule deciding whether lesson N+1 opens after lesson N."""

    PROGRESS = "progress"  # previous lesson watched >= unlock_threshold
    PROGRESS_AND_EXAM = "progress_and_exam"  # ...and its lesson exam passed


class ConfigError(Exception):
    """Raised when the configuration file holds invalid values."""

    pass


@dataclass
class ProgressConfig:
    """Watch-progress and sequencing rules."""

    unlock_threshold: float = 90.0
    default_video_duration_seconds: float = 240.0
    unlock_rule: UnlockRule = UnlockRule.PROGRESS


@dataclass
class ExamConfig:
    """Exam cycle, sampling and scoring rules."""

    pass_threshold: float = 70.0
    attempts_per_cycle: int = 3
    max_cycles: int = 2
    min_question_bank_size: int = 10
    subject_question_count: int = 10
    lesson_question_count: int = 10

    @property
    def max_attempts(self) -> int:
        """Attempts allowed across all cycles."""
        return self.attempts_per_cycle * self.max_cycles


@dataclass
class EngineConfig:
    """Application-wide configuration."""

    progress: ProgressConfig = field(default_factory=ProgressConfig)
    exam: ExamConfig = field(default_factory=ExamConfig)
    paths: dict[str, str] = field(default_factory=dict)

    @property
    def db_path(self) -> Path:
        """SQLite file location, environment first."""
        env_path = os.environ.get(DB_ENV_VAR)
        if env_path:
            return Path(env_path)
        return Path(self.paths.get("db_path", "db/learnpath.db"))


# Module-level cache
_cached_config: EngineConfig | None = None


def _get_defaults() -> dict[str, Any]:
    """Get default configuration values."""
    return {
        "progress": {
            "unlock_threshold": 90.0,
            "default_video_duration_seconds": 240.0,
            "unlock_rule": "progress",
        },
        "exam": {
            "pass_threshold": 70.0,
            "attempts_per_cycle": 3,
            "max_cycles": 2,
            "min_question_bank_size": 10,
            "subject_question_count": 10,
            "lesson_question_count": 10,
        },
        "paths": {
            "db_path": "db/learnpath.db",
            "config_dir": "data/config",
        },
    }


def _validate(config: EngineConfig) -> None:
    """Reject values the engine cannot work with."""
    exam = config.exam
    if exam.attempts_per_cycle < 1:
        raise ConfigError("exam.attempts_per_cycle must be >= 1")
    if exam.max_cycles < 1:
        raise ConfigError("exam.max_cycles must be >= 1")
    if exam.subject_question_count < 1 or exam.lesson_question_count < 1:
        raise ConfigError("exam question counts must be >= 1")
    if exam.min_question_bank_size < exam.subject_question_count:
        raise ConfigError(
            "exam.min_question_bank_size cannot be smaller than subject_question_count"
        )
    if not 0 <= exam.pass_threshold <= 100:
        raise ConfigError("exam.pass_threshold must be within [0, 100]")
    if not 0 <= config.progress.unlock_threshold <= 100:
        raise ConfigError("progress.unlock_threshold must be within [0, 100]")
    if config.progress.default_video_duration_seconds < 0:
        raise ConfigError("progress.default_video_duration_seconds must be >= 0")


def parse_config(data: dict[str, Any]) -> EngineConfig:
    """Parse configuration dictionary into EngineConfig object.

    Missing keys take their default values.

    Raises:
        ConfigError: If a value is out of range or the unlock rule is unknown
    """
    defaults = _get_defaults()

    progress_data = {**defaults["progress"], **(data.get("progress") or {})}
    try:
        unlock_rule = UnlockRule(progress_data["unlock_rule"])
    except ValueError:
        raise ConfigError(
            f"Unknown progress.unlock_rule: {progress_data['unlock_rule']!r}"
        ) from None

    progress = ProgressConfig(
        unlock_threshold=float(progress_data["unlock_threshold"]),
        default_video_duration_seconds=float(
            progress_data["default_video_duration_seconds"]
        ),
        unlock_rule=unlock_rule,
    )

    exam_data = {**defaults["exam"], **(data.get("exam") or {})}
    exam = ExamConfig(
        pass_threshold=float(exam_data["pass_threshold"]),
        attempts_per_cycle=int(exam_data["attempts_per_cycle"]),
        max_cycles=int(exam_data["max_cycles"]),
        min_question_bank_size=int(exam_data["min_question_bank_size"]),
        subject_question_count=int(exam_data["subject_question_count"]),
        lesson_question_count=int(exam_data["lesson_question_count"]),
    )

    paths = {**defaults["paths"], **(data.get("paths") or {})}

    config = EngineConfig(progress=progress, exam=exam, paths=paths)
    _validate(config)
    return config


def load_engine_config(force_reload: bool = False) -> EngineConfig:
    """Load engine config from YAML or defaults.

    Args:
        force_reload: If True, ignore cached config and reload from file.

    Returns:
        EngineConfig object with all settings.
    """
    global _cached_config

    if _cached_config is not None and not force_reload:
        return _cached_config

    config_file = Path(os.environ.get(CONFIG_ENV_VAR, CONFIG_FILE))

    data: dict[str, Any]
    if config_file.exists():
        logger.debug("loading_engine_config", source=str(config_file))
        data = yaml.safe_load(config_file.read_text(encoding="utf-8")) or {}
    else:
        logger.info("using_default_config")
        data = _get_defaults()

    _cached_config = parse_config(data)
    return _cached_config


def clear_config_cache() -> None:
    """Clear the configuration cache.

    Useful for testing or when config is modified at runtime.
    """
    global _cached_config
    _cached_config = None
