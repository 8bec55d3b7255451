"""Fixtures for F5 tests (catalog files, CLI environment)."""

import pytest

from learnpath.config.engine_config import clear_config_cache
from learnpath.core.services import reset_engine

CATALOG_YAML = """\
subjects:
  - subject_id: safety
    name: Workplace Safety
    lessons:
      - {lesson_id: safety-1, title: Basics, order: 1}
      - {lesson_id: safety-2, title: Equipment, order: 2}
    questions:
%s
enrollments:
  - user_id: u-1
    company_id: acme
    start_date: 2000-01-01
    end_date: 2999-12-31
    lessons: [safety-1, safety-2]
"""


def _questions_block(count: int) -> str:
    lines = []
    for i in range(count):
        lines.append(f"      - question_id: safety-q{i:02d}")
        lines.append(f"        stem: \"Question {i}?\"")
        lines.append("        choices: [\"a\", \"b\", \"c\"]")
        lines.append(f"        answer_index: {i % 3}")
    return "\n".join(lines)


@pytest.fixture(autouse=True)
def _fresh_singletons():
    clear_config_cache()
    reset_engine()
    yield
    clear_config_cache()
    reset_engine()


@pytest.fixture
def catalog_file(tmp_path):
    """Catalog with one subject, 2 lessons, 12 questions and one enrollment."""
    path = tmp_path / "catalog.yaml"
    path.write_text(CATALOG_YAML % _questions_block(12), encoding="utf-8")
    return path


@pytest.fixture
def cli_env(tmp_path):
    """Environment pointing the CLI at an isolated database and default config."""
    return {
        "LEARNPATH_DB": str(tmp_path / "cli" / "learnpath.db"),
        "LEARNPATH_CONFIG": str(tmp_path / "no-config.yaml"),
    }
