"""Pytest configuration for phased testing.

Tests are organized by phase:
- f1: progress tracking and configuration
- f2: lesson sequencing
- f3: question sampling, attempt cycles and the exam state machine
- f4: eligibility and progress summaries
- f5: web API and CLI

Only tests for the current phase and completed phases run.
Shared fixtures build an engine over an isolated SQLite file.
"""

from __future__ import annotations

import random
from collections.abc import Callable

import pytest

from learnpath.config.engine_config import EngineConfig
from learnpath.core.models import ExamAnswer, Lesson, Question, Subject
from learnpath.core.services import LearningEngine, build_engine

# Current implementation phase
CURRENT_PHASE = 5


def pytest_collection_modifyitems(config, items):
    """Skip tests from phases that haven't been implemented yet."""
    for item in items:
        # Extract phase from path (tests/f2/... -> 2)
        parts = item.fspath.strpath.split("/")
        for part in parts:
            if part.startswith("f") and part[1:].isdigit():
                test_phase = int(part[1:])
                if test_phase > CURRENT_PHASE:
                    item.add_marker(
                        pytest.mark.skip(
                            reason=f"Phase F{test_phase} not yet implemented (current: F{CURRENT_PHASE})"
                        )
                    )
                break


# =============================================================================
# ENGINE FIXTURES
# =============================================================================


@pytest.fixture
def engine_config() -> EngineConfig:
    """Default engine rules (70 pass, 3x2 attempts, 90% unlock, bank of 10)."""
    return EngineConfig()


@pytest.fixture
def db_path(tmp_path):
    return tmp_path / "db" / "learnpath.db"


@pytest.fixture
def engine(engine_config, db_path) -> LearningEngine:
    """Engine over an empty, isolated database with a seeded RNG."""
    return build_engine(engine_config, db_path, rng=random.Random(1234))


@pytest.fixture
def seed_subject(engine) -> Callable[..., list[Lesson]]:
    """Factory: create a subject with ordered lessons and a question bank.

    Questions have 4 choices; question i has answer_index i % 4.
    """

    def _seed(
        subject_id: str = "math",
        lessons: int = 2,
        questions: int = 15,
    ) -> list[Lesson]:
        engine.catalog.upsert_subject(Subject(subject_id, subject_id.title()))
        created = []
        for order in range(1, lessons + 1):
            lesson = Lesson(
                lesson_id=f"{subject_id}-l{order}",
                subject_id=subject_id,
                title=f"Lesson {order}",
                order=order,
            )
            engine.catalog.upsert_lesson(lesson)
            created.append(lesson)
        for i in range(questions):
            engine.catalog.upsert_question(
                Question(
                    question_id=f"{subject_id}-q{i:02d}",
                    subject_id=subject_id,
                    stem=f"Question {i}?",
                    choices=("A", "B", "C", "D"),
                    answer_index=i % 4,
                )
            )
        return created

    return _seed


@pytest.fixture
def watch(engine) -> Callable[[str, str, float], None]:
    """Report `percent` of a 100-second video for a user."""

    def _watch(user_id: str, lesson_id: str, percent: float) -> None:
        engine.tracker.report_progress(user_id, lesson_id, percent, 100)

    return _watch


@pytest.fixture
def make_answers(engine) -> Callable[[list[str], int], list[ExamAnswer]]:
    """Build answers for `question_ids` with exactly `correct` right ones."""

    def _make(question_ids: list[str], correct: int) -> list[ExamAnswer]:
        questions = engine.catalog.get_questions(question_ids)
        answers = []
        for n, qid in enumerate(question_ids):
            question = questions[qid]
            if n < correct:
                choice = question.answer_index
            else:
                choice = (question.answer_index + 1) % len(question.choices)
            answers.append(ExamAnswer(question_id=qid, choice_index=choice))
        return answers

    return _make
