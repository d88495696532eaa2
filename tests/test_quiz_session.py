"""
Tests for the Quiz Session state machine.
"""

import pytest

from exam_prep.core.content import Question, QuestionType
from exam_prep.core.exceptions import InvalidIndex, PreconditionViolation, ValidationError
from exam_prep.services.quiz_session import QuizSession, SessionStatus


def make_question(question_id, correct_index, options=("w", "x", "y", "z")):
    return Question(
        id=question_id,
        text=f"Question **{question_id}**",
        type=QuestionType.SINGLE_CHOICE,
        marks=1,
        chapter_id="algebra",
        options=tuple(options),
        correct_index=correct_index,
    )


@pytest.fixture
def session():
    """Three questions with correct indices [0, 2, 1]."""
    return QuizSession([make_question("q1", 0), make_question("q2", 2), make_question("q3", 1)])


def answer_all(session, answers):
    for option_index in answers:
        session.select_answer(option_index)
        session.advance()


class TestConstruction:

    def test_starts_at_first_question(self, session):
        assert session.current_index == 0
        assert session.answers == {}
        assert session.status is SessionStatus.IN_PROGRESS

    def test_empty_question_list_rejected(self):
        with pytest.raises(ValidationError):
            QuizSession([])

    def test_written_questions_rejected(self):
        written = Question(id="w1", text="Explain", type=QuestionType.SHORT_ANSWER, marks=5, chapter_id="algebra")
        with pytest.raises(ValidationError):
            QuizSession([make_question("q1", 0), written])


class TestTransitions:
    """Test select / advance / retreat / restart and their preconditions."""

    def test_scoring_example(self, session):
        """Answers [0, 1, 1] against [0, 2, 1] score 2 of 3."""
        answer_all(session, [0, 1, 1])
        assert session.status is SessionStatus.COMPLETED
        assert session.score == 2
        assert session.snapshot()["percentage"] == 67

    def test_advance_without_answer_is_rejected_and_state_unchanged(self, session):
        with pytest.raises(PreconditionViolation) as exc_info:
            session.advance()
        assert exc_info.value.precondition == "current_question_answered"
        assert session.current_index == 0
        assert session.status is SessionStatus.IN_PROGRESS

    def test_advance_past_unanswered_middle_question_rejected(self, session):
        """Rejected advance on Q2 keeps the Q1 answer and the position."""
        session.select_answer(0)
        session.advance()
        with pytest.raises(PreconditionViolation):
            session.advance()
        assert session.answers == {0: 0}
        assert session.current_index == 1
        assert session.status is SessionStatus.IN_PROGRESS
        assert session.score is None

    def test_select_overwrites_answer(self, session):
        session.select_answer(3)
        session.select_answer(0)
        assert session.answers == {0: 0}

    @pytest.mark.parametrize("option_index", [-1, 4, 99, True, "1"])
    def test_invalid_index_leaves_session_unchanged(self, session, option_index):
        with pytest.raises(InvalidIndex):
            session.select_answer(option_index)
        assert session.answers == {}

    def test_retreat_keeps_answers(self, session):
        session.select_answer(0)
        session.advance()
        session.select_answer(2)
        session.retreat()
        assert session.current_index == 0
        assert session.answers == {0: 0, 1: 2}
        assert session.snapshot()["selected_index"] == 0

    def test_retreat_at_first_question_rejected(self, session):
        with pytest.raises(PreconditionViolation) as exc_info:
            session.retreat()
        assert exc_info.value.precondition == "not_first_question"

    def test_completed_session_rejects_moves(self, session):
        answer_all(session, [0, 2, 1])
        with pytest.raises(PreconditionViolation):
            session.select_answer(0)
        with pytest.raises(PreconditionViolation):
            session.advance()
        with pytest.raises(PreconditionViolation):
            session.retreat()
        assert session.score == 3

    def test_restart_resets_from_completed(self, session):
        answer_all(session, [0, 2, 1])
        session.restart()
        assert session.current_index == 0
        assert session.answers == {}
        assert session.score is None
        assert session.status is SessionStatus.IN_PROGRESS

    def test_single_question_session_completes_on_first_advance(self):
        session = QuizSession([make_question("only", 1)])
        session.select_answer(1)
        assert session.advance() is SessionStatus.COMPLETED
        assert session.score == 1


class TestSnapshot:

    def test_snapshot_renders_markdown(self, session):
        snapshot = session.snapshot()
        assert "<strong>q1</strong>" in snapshot["current_question"]["question_html"]
        assert [option["label"] for option in snapshot["current_question"]["options"]] == ["A", "B", "C", "D"]

    def test_snapshot_navigation_flags(self, session):
        snapshot = session.snapshot()
        assert snapshot["can_advance"] is False
        assert snapshot["can_retreat"] is False
        session.select_answer(0)
        assert session.snapshot()["can_advance"] is True

    def test_completed_snapshot_has_review(self, session):
        answer_all(session, [0, 1, 1])
        review = session.snapshot()["review"]
        assert [item["correct"] for item in review] == [True, False, True]
        assert review[1]["correct_index"] == 2
