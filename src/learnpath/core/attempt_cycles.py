"""Cycle and attempt-slot bookkeeping derived from attempt history.

Attempts are grouped in cycles of `attempts_per_cycle`. The Nth attempt
(1-based, across all cycles) lands in cycle ceil(N / per_cycle) at index
((N - 1) mod per_cycle) + 1. Nothing here is stored; every value is
recomputed from the rows.
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass

from learnpath.config.engine_config import ExamConfig
from learnpath.core.errors import AttemptLimitExceededError
from learnpath.core.models import ExamAttempt


@dataclass(frozen=True)
class AttemptSlot:
    """Position of one attempt in the cycle grid."""

    attempt_number: int
    cycle: int
    attempt_index: int


@dataclass(frozen=True)
class CycleStatus:
    """Where a user stands for one exam scope."""

    attempts_total: int
    cycle: int
    attempts_used_in_cycle: int
    remaining_in_cycle: int
    passed: bool
    exhausted: bool
    in_progress_attempt_id: str | None = None


def slot_for(attempt_number: int, attempts_per_cycle: int) -> AttemptSlot:
    """Map a 1-based attempt number to its (cycle, index) slot."""
    if attempt_number < 1:
        raise ValueError("attempt_number must be >= 1")
    return AttemptSlot(
        attempt_number=attempt_number,
        cycle=(attempt_number - 1) // attempts_per_cycle + 1,
        attempt_index=(attempt_number - 1) % attempts_per_cycle + 1,
    )


def summarize_history(history: Sequence[ExamAttempt], config: ExamConfig) -> CycleStatus:
    """Summarize attempt history for one user and scope.

    The reported cycle is the one the next attempt would fall in, so after
    a full failed cycle the summary already shows the fresh cycle.
    In-progress attempts occupy their slot.
    """
    total = len(history)
    per_cycle = config.attempts_per_cycle
    passed = any(a.passed for a in history)
    exhausted = total >= config.max_attempts
    open_attempt = next((a for a in history if a.status == "inProgress"), None)

    if exhausted:
        cycle = config.max_cycles
        used = per_cycle
    else:
        cycle = total // per_cycle + 1
        used = total - (cycle - 1) * per_cycle

    remaining = 0 if passed or exhausted else max(0, per_cycle - used)

    return CycleStatus(
        attempts_total=total,
        cycle=cycle,
        attempts_used_in_cycle=used,
        remaining_in_cycle=remaining,
        passed=passed,
        exhausted=exhausted,
        in_progress_attempt_id=open_attempt.attempt_id if open_attempt else None,
    )


def next_attempt_slot(history: Sequence[ExamAttempt], config: ExamConfig) -> AttemptSlot:
    """Slot for the attempt that would be created next.

    Raises:
        AttemptLimitExceededError: If every cycle is used up
    """
    next_number = len(history) + 1
    if next_number > config.max_attempts:
        raise AttemptLimitExceededError(
            f"All {config.max_cycles} cycles of {config.attempts_per_cycle} "
            f"attempts have been used"
        )
    return slot_for(next_number, config.attempts_per_cycle)


def remaining_total(history: Sequence[ExamAttempt], config: ExamConfig) -> int:
    """Attempts left across all cycles, 0 once passed."""
    if any(a.passed for a in history):
        return 0
    return max(0, config.max_attempts - len(history))
