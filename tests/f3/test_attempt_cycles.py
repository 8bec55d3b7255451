"""Tests for attempt cycle bookkeeping (F3)."""

import pytest

from learnpath.config.engine_config import ExamConfig
from learnpath.core.attempt_cycles import (
    next_attempt_slot,
    remaining_total,
    slot_for,
    summarize_history,
)
from learnpath.core.errors import AttemptLimitExceededError
from learnpath.core.models import ExamAttempt, ExamScope


def _attempt(n: int, passed: bool | None = False, status: str = "submitted") -> ExamAttempt:
    slot = slot_for(n, 3)
    return ExamAttempt(
        attempt_id=f"a{n}",
        user_id="u1",
        scope=ExamScope.subject("math"),
        subject_id="math",
        cycle=slot.cycle,
        attempt_index=slot.attempt_index,
        attempt_number=n,
        question_ids=[],
        status=status,
        passed=None if status == "inProgress" else passed,
    )


def _failed(count: int) -> list[ExamAttempt]:
    return [_attempt(n) for n in range(1, count + 1)]


class TestSlotFor:
    """Tests for slot_for function."""

    @pytest.mark.parametrize(
        "number,cycle,index",
        [(1, 1, 1), (2, 1, 2), (3, 1, 3), (4, 2, 1), (5, 2, 2), (6, 2, 3)],
    )
    def test_mapping(self, number, cycle, index):
        slot = slot_for(number, 3)
        assert (slot.cycle, slot.attempt_index) == (cycle, index)

    def test_zero_rejected(self):
        with pytest.raises(ValueError):
            slot_for(0, 3)


class TestSummarizeHistory:
    """Tests for summarize_history function."""

    def test_empty_history(self):
        status = summarize_history([], ExamConfig())

        assert status.cycle == 1
        assert status.attempts_used_in_cycle == 0
        assert status.remaining_in_cycle == 3
        assert not status.passed
        assert not status.exhausted

    def test_two_failures(self):
        status = summarize_history(_failed(2), ExamConfig())

        assert status.cycle == 1
        assert status.attempts_used_in_cycle == 2
        assert status.remaining_in_cycle == 1

    def test_full_cycle_rolls_to_next(self):
        status = summarize_history(_failed(3), ExamConfig())

        assert status.cycle == 2
        assert status.attempts_used_in_cycle == 0
        assert status.remaining_in_cycle == 3

    def test_exhausted(self):
        status = summarize_history(_failed(6), ExamConfig())

        assert status.exhausted
        assert status.cycle == 2
        assert status.remaining_in_cycle == 0

    def test_passed_leaves_nothing_remaining(self):
        history = [_attempt(1), _attempt(2, passed=True)]

        status = summarize_history(history, ExamConfig())

        assert status.passed
        assert status.remaining_in_cycle == 0

    def test_open_attempt_occupies_slot(self):
        history = [_attempt(1), _attempt(2, status="inProgress")]

        status = summarize_history(history, ExamConfig())

        assert status.attempts_used_in_cycle == 2
        assert status.in_progress_attempt_id == "a2"


class TestNextAttemptSlot:
    """Tests for next_attempt_slot and remaining_total."""

    def test_fourth_attempt_opens_second_cycle(self):
        slot = next_attempt_slot(_failed(3), ExamConfig())
        assert (slot.attempt_number, slot.cycle, slot.attempt_index) == (4, 2, 1)

    def test_seventh_attempt_refused(self):
        with pytest.raises(AttemptLimitExceededError) as exc:
            next_attempt_slot(_failed(6), ExamConfig())
        assert exc.value.code == "ATTEMPT_LIMIT_EXCEEDED"

    def test_custom_cycle_size(self):
        config = ExamConfig(attempts_per_cycle=2, max_cycles=3)
        slot = next_attempt_slot(_failed(5), config)
        assert (slot.cycle, slot.attempt_index) == (3, 2)

    def test_remaining_total(self):
        assert remaining_total([], ExamConfig()) == 6
        assert remaining_total(_failed(4), ExamConfig()) == 2
        assert remaining_total([_attempt(1, passed=True)], ExamConfig()) == 0
