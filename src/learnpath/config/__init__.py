"""Configuration package for the learnpath engine."""

from learnpath.config.engine_config import (
    ConfigError,
    EngineConfig,
    ExamConfig,
    ProgressConfig,
    UnlockRule,
    clear_config_cache,
    load_engine_config,
    parse_config,
)

__all__ = [
    "ConfigError",
    "EngineConfig",
    "ExamConfig",
    "ProgressConfig",
    "UnlockRule",
    "clear_config_cache",
    "load_engine_config",
    "parse_config",
]
