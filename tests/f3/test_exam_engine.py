"""Tests for the exam attempt state machine (F3).

Covers start, submit, cycle accounting, retakes and the administrative
overrides against a real SQLite database.
"""

import threading

import pytest

from learnpath.core.errors import (
    AlreadyPassedError,
    AttemptInProgressError,
    AttemptLimitExceededError,
    AttemptNotFoundError,
    DuplicateSubmissionError,
    NotEligibleError,
    UnprocessableError,
)
from learnpath.core.exam_engine import score_answers, validate_answer_set
from learnpath.core.models import ExamAnswer, ExamAttempt, ExamScope, Question

SUBJECT = ExamScope.subject("math")


@pytest.fixture
def ready(seed_subject, watch):
    """Subject with 2 fully watched lessons and 15 questions for u1."""
    lessons = seed_subject()
    for lesson in lessons:
        watch("u1", lesson.lesson_id, 100)
    return lessons


@pytest.fixture
def take_exam(engine, make_answers):
    """Start an exam for u1 and submit it with `correct` right answers."""

    def _take(correct: int, scope: ExamScope = SUBJECT):
        started = engine.exams.start_exam("u1", scope)
        ids = [q["question_id"] for q in started.questions]
        return engine.exams.submit_exam(started.attempt_id, "u1", make_answers(ids, correct))

    return _take


def _question_ids(started) -> list[str]:
    return [q["question_id"] for q in started.questions]


class TestScoring:
    """Tests for score_answers and validate_answer_set."""

    QUESTIONS = {
        f"q{i}": Question(f"q{i}", "s", f"Q{i}", ("a", "b"), answer_index=0) for i in range(10)
    }
    IDS = list(QUESTIONS)

    def _answers(self, correct: int) -> list[ExamAnswer]:
        return [ExamAnswer(qid, 0 if n < correct else 1) for n, qid in enumerate(self.IDS)]

    @pytest.mark.parametrize("correct,score", [(0, 0.0), (6, 60.0), (7, 70.0), (10, 100.0)])
    def test_score_is_exact(self, correct, score):
        assert score_answers(self.IDS, self._answers(correct), self.QUESTIONS) == (correct, score)

    def test_third_of_questions_not_truncated(self):
        ids = self.IDS[:3]
        answers = [ExamAnswer("q0", 0), ExamAnswer("q1", 1), ExamAnswer("q2", 1)]

        _, score = score_answers(ids, answers, self.QUESTIONS)

        assert score == pytest.approx(33.333, abs=0.001)

    def test_valid_set_accepted(self):
        validate_answer_set(self.IDS, self._answers(5))

    def test_wrong_count_rejected(self):
        with pytest.raises(UnprocessableError, match="Expected 10"):
            validate_answer_set(self.IDS, self._answers(5)[:9])

    def test_duplicate_rejected(self):
        answers = self._answers(5)
        answers[9] = ExamAnswer("q0", 1)
        with pytest.raises(UnprocessableError, match="Duplicate"):
            validate_answer_set(self.IDS, answers)

    def test_unknown_question_rejected(self):
        answers = self._answers(5)
        answers[9] = ExamAnswer("other", 0)
        with pytest.raises(UnprocessableError, match="not in this attempt"):
            validate_answer_set(self.IDS, answers)


class TestStartExam:
    """Tests for ExamEngine.start_exam."""

    def test_creates_in_progress_attempt(self, engine, ready):
        started = engine.exams.start_exam("u1", SUBJECT)

        stored = engine.attempts.get(started.attempt_id)
        assert stored.status == "inProgress"
        assert stored.question_ids == _question_ids(started)
        assert (started.cycle, started.attempt_index, started.attempt_number) == (1, 1, 1)
        assert started.remaining_attempts == 2

    def test_samples_ten_distinct_questions_from_bank(self, engine, ready):
        started = engine.exams.start_exam("u1", SUBJECT)
        ids = _question_ids(started)

        bank = {q.question_id for q in engine.catalog.list_active_questions("math")}
        assert len(ids) == 10
        assert len(set(ids)) == 10
        assert set(ids) <= bank

    def test_answer_index_not_exposed(self, engine, ready):
        started = engine.exams.start_exam("u1", SUBJECT)

        for question in started.questions:
            assert set(question) == {"question_id", "stem", "choices"}

    def test_inactive_questions_never_sampled(self, engine, ready):
        for q in engine.catalog.list_active_questions("math")[:5]:
            engine.catalog.upsert_question(
                Question(q.question_id, q.subject_id, q.stem, q.choices, q.answer_index, False)
            )
        active = {q.question_id for q in engine.catalog.list_active_questions("math")}

        started = engine.exams.start_exam("u1", SUBJECT)

        assert set(_question_ids(started)) == active

    def test_progress_incomplete_rejected(self, engine, seed_subject, watch):
        lessons = seed_subject()
        watch("u1", lessons[0].lesson_id, 100)
        watch("u1", lessons[1].lesson_id, 89)

        with pytest.raises(NotEligibleError):
            engine.exams.start_exam("u1", SUBJECT)
        assert engine.attempts.list_for_scope("u1", SUBJECT) == []

    def test_bank_too_small_creates_nothing(self, engine, seed_subject, watch):
        lessons = seed_subject(questions=9)
        for lesson in lessons:
            watch("u1", lesson.lesson_id, 100)

        with pytest.raises(UnprocessableError, match="Question bank too small"):
            engine.exams.start_exam("u1", SUBJECT)
        assert engine.attempts.list_for_scope("u1", SUBJECT) == []

    def test_bank_of_exactly_ten(self, engine, seed_subject, watch):
        lessons = seed_subject(questions=10)
        for lesson in lessons:
            watch("u1", lesson.lesson_id, 100)

        started = engine.exams.start_exam("u1", SUBJECT)

        assert len(set(_question_ids(started))) == 10

    def test_open_attempt_blocks_second_start(self, engine, ready):
        first = engine.exams.start_exam("u1", SUBJECT)

        with pytest.raises(AttemptInProgressError) as exc:
            engine.exams.start_exam("u1", SUBJECT)
        assert exc.value.attempt_id == first.attempt_id

    def test_storage_allows_one_open_attempt_per_scope(self, engine, ready):
        """The partial unique index rejects a second inProgress row."""
        repo = engine.attempts

        def attempt(attempt_id: str, number: int) -> ExamAttempt:
            return ExamAttempt(
                attempt_id=attempt_id,
                user_id="u1",
                scope=SUBJECT,
                subject_id="math",
                cycle=1,
                attempt_index=number,
                attempt_number=number,
                question_ids=["math-q00"],
                started_at="t",
            )

        repo.create(attempt("a1", 1))
        with pytest.raises(AttemptInProgressError):
            repo.create(attempt("a2", 2))

    def test_lesson_scope_needs_only_that_lesson(self, engine, seed_subject, watch):
        lessons = seed_subject()
        watch("u1", lessons[0].lesson_id, 95)

        started = engine.exams.start_exam("u1", ExamScope.lesson(lessons[0].lesson_id))

        stored = engine.attempts.get(started.attempt_id)
        assert stored.lesson_id == lessons[0].lesson_id
        assert stored.subject_id == "math"
        assert len(started.questions) == 10

    def test_unknown_lesson_scope_rejected(self, engine, ready):
        with pytest.raises(NotEligibleError):
            engine.exams.start_exam("u1", ExamScope.lesson("missing"))


class TestSubmitExam:
    """Tests for ExamEngine.submit_exam."""

    def test_seven_of_ten_passes(self, ready, take_exam):
        result = take_exam(7)

        assert result.score == 70.0
        assert result.passed
        assert result.correct_count == 7
        assert result.total_questions == 10

    def test_six_of_ten_fails(self, ready, take_exam):
        result = take_exam(6)

        assert result.score == 60.0
        assert not result.passed

    def test_submission_is_stored(self, engine, ready, make_answers):
        started = engine.exams.start_exam("u1", SUBJECT)
        answers = make_answers(_question_ids(started), 8)

        engine.exams.submit_exam(started.attempt_id, "u1", answers)

        stored = engine.attempts.get(started.attempt_id)
        assert stored.status == "submitted"
        assert stored.score == 80.0
        assert stored.passed is True
        assert stored.answers == answers
        assert stored.submitted_at is not None

    def test_second_submission_rejected_and_score_kept(self, engine, ready, make_answers):
        started = engine.exams.start_exam("u1", SUBJECT)
        ids = _question_ids(started)
        engine.exams.submit_exam(started.attempt_id, "u1", make_answers(ids, 3))

        with pytest.raises(DuplicateSubmissionError):
            engine.exams.submit_exam(started.attempt_id, "u1", make_answers(ids, 10))

        stored = engine.attempts.get(started.attempt_id)
        assert stored.score == 30.0
        assert stored.passed is False

    def test_concurrent_submissions_score_once(self, engine, ready, make_answers):
        started = engine.exams.start_exam("u1", SUBJECT)
        answers = make_answers(_question_ids(started), 9)
        outcomes: list[str] = []

        def submit() -> None:
            try:
                engine.exams.submit_exam(started.attempt_id, "u1", answers)
                outcomes.append("ok")
            except DuplicateSubmissionError:
                outcomes.append("duplicate")

        threads = [threading.Thread(target=submit) for _ in range(4)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert sorted(outcomes) == ["duplicate", "duplicate", "duplicate", "ok"]

    def test_mismatched_answers_keep_attempt_open(self, engine, ready, make_answers):
        started = engine.exams.start_exam("u1", SUBJECT)
        answers = make_answers(_question_ids(started), 10)[:9]

        with pytest.raises(UnprocessableError):
            engine.exams.submit_exam(started.attempt_id, "u1", answers)

        assert engine.attempts.get(started.attempt_id).status == "inProgress"

    def test_other_users_attempt_not_found(self, engine, ready, make_answers):
        started = engine.exams.start_exam("u1", SUBJECT)
        answers = make_answers(_question_ids(started), 10)

        with pytest.raises(AttemptNotFoundError):
            engine.exams.submit_exam(started.attempt_id, "intruder", answers)

    def test_unknown_attempt_not_found(self, engine, ready):
        with pytest.raises(AttemptNotFoundError):
            engine.exams.submit_exam("missing", "u1", [])


class TestAttemptCycles:
    """Cycle accounting across real attempts."""

    def test_fourth_attempt_opens_cycle_two(self, engine, ready, take_exam):
        for _ in range(3):
            take_exam(0)

        started = engine.exams.start_exam("u1", SUBJECT)

        assert (started.cycle, started.attempt_index, started.attempt_number) == (2, 1, 4)
        assert started.remaining_attempts == 2

    def test_attempt_slots_follow_the_grid(self, engine, ready, take_exam):
        slots = [(r.cycle, r.attempt_index) for r in (take_exam(1) for _ in range(6))]

        assert slots == [(1, 1), (1, 2), (1, 3), (2, 1), (2, 2), (2, 3)]

    def test_seventh_attempt_refused(self, engine, ready, take_exam):
        for _ in range(6):
            take_exam(2)

        with pytest.raises(AttemptLimitExceededError):
            engine.exams.start_exam("u1", SUBJECT)
        assert len(engine.attempts.list_for_scope("u1", SUBJECT)) == 6

    def test_start_after_pass_refused(self, engine, ready, take_exam):
        take_exam(4)
        take_exam(9)

        with pytest.raises(AlreadyPassedError) as exc:
            engine.exams.start_exam("u1", SUBJECT)
        assert exc.value.code == "NOT_ELIGIBLE"

    def test_scopes_count_separately(self, engine, ready, take_exam):
        lesson_scope = ExamScope.lesson(ready[0].lesson_id)
        for _ in range(3):
            take_exam(0, scope=lesson_scope)

        started = engine.exams.start_exam("u1", SUBJECT)

        assert (started.cycle, started.attempt_index) == (1, 1)


class TestRetakeExam:
    """Tests for ExamEngine.retake_exam."""

    def test_retake_after_failure(self, engine, ready, take_exam):
        take_exam(5)

        decision = engine.exams.retake_exam("u1", SUBJECT)

        assert decision.allowed
        assert (decision.cycle, decision.attempt_index) == (1, 2)
        assert decision.remaining_attempts == 4
        assert decision.exam is not None

    def test_retake_refused_when_exhausted(self, engine, ready, take_exam):
        for _ in range(6):
            take_exam(0)

        decision = engine.exams.retake_exam("u1", SUBJECT)

        assert not decision.allowed
        assert decision.code == "ATTEMPT_LIMIT_EXCEEDED"
        assert decision.remaining_attempts == 0
        assert decision.exam is None


class TestAdministrativeOverrides:
    """Tests for reset_attempts and delete_attempt."""

    def test_reset_frees_all_cycles(self, engine, ready, take_exam):
        for _ in range(6):
            take_exam(0)
        take_exam(0, scope=ExamScope.lesson(ready[0].lesson_id))

        deleted = engine.exams.reset_attempts("u1", "math")

        assert deleted == 7
        started = engine.exams.start_exam("u1", SUBJECT)
        assert (started.cycle, started.attempt_index) == (1, 1)

    def test_reset_leaves_other_users(self, engine, ready, take_exam, watch):
        for lesson in ready:
            watch("u2", lesson.lesson_id, 100)
        take_exam(0)
        engine.exams.start_exam("u2", SUBJECT)

        engine.exams.reset_attempts("u1", "math")

        assert len(engine.attempts.list_for_scope("u2", SUBJECT)) == 1

    def test_delete_attempt(self, engine, ready, take_exam):
        result = take_exam(3)

        deleted = engine.exams.delete_attempt(result.attempt_id)

        assert deleted.attempt_id == result.attempt_id
        assert deleted.score == 30.0
        assert engine.attempts.get(result.attempt_id) is None

    def test_delete_older_attempt_frees_a_slot(self, engine, ready, take_exam):
        first = take_exam(0)
        take_exam(0)

        engine.exams.delete_attempt(first.attempt_id)

        assert engine.evaluator.evaluate("u1", SUBJECT).eligible
        started = engine.exams.start_exam("u1", SUBJECT)
        assert (started.cycle, started.attempt_index, started.attempt_number) == (1, 2, 2)
        assert len(engine.attempts.list_for_scope("u1", SUBJECT)) == 2

    def test_delete_from_exhausted_history_allows_last_attempt(self, engine, ready, take_exam):
        results = [take_exam(0) for _ in range(6)]

        engine.exams.delete_attempt(results[1].attempt_id)
        started = engine.exams.start_exam("u1", SUBJECT)

        assert (started.cycle, started.attempt_index, started.attempt_number) == (2, 3, 6)
        with pytest.raises(AttemptInProgressError):
            engine.exams.start_exam("u1", SUBJECT)

    def test_delete_missing_attempt(self, engine):
        assert engine.exams.delete_attempt("missing") is None
