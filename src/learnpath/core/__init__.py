"""Core business logic module.

Modules:
- models: domain records (progress, lessons, questions, attempts)
- errors: expected engine rejections
- progress_tracker: watch-time watermark and completion
- sequencing: lesson unlock gate
- question_sampler: Fisher-Yates sampling
- attempt_cycles: cycle/attempt slot bookkeeping
- eligibility: exam eligibility verdicts
- exam_engine: attempt state machine and scoring
- progress_summary: dashboard views
- services: composition root
"""

__all__ = [
    "models",
    "errors",
    "progress_tracker",
    "sequencing",
    "question_sampler",
    "attempt_cycles",
    "eligibility",
    "exam_engine",
    "progress_summary",
    "services",
]
