"""
Tests for the Evaluator: grade scale, session scoring and answer sheet aggregation.
"""

import asyncio
from unittest.mock import AsyncMock

import pytest

from exam_prep.core.ai_services import GradedQuestion, GradingRequest, GradingResponse, QuestionRef
from exam_prep.core.exceptions import ExternalGradingFailure, PreconditionViolation, ValidationError
from exam_prep.services.evaluator import AnswerSheetSubmission, Evaluator, GradeScale
from exam_prep.services.quiz_session import QuizSession

DEFAULT_THRESHOLDS = [(90, "A+"), (80, "A"), (70, "B+"), (60, "B"), (50, "C"), (40, "D")]

SUBMISSION = AnswerSheetSubmission(
    exam_id="exam-1",
    question_refs=(QuestionRef("A", "mock-a1"), QuestionRef("B", "mock-b1")),
    uploaded_answer_reference="sheet_abc",
)


def graded(*items, improvement_areas=(), strengths=()):
    return GradingResponse(
        per_question=tuple(GradedQuestion(*item) for item in items),
        improvement_areas=tuple(improvement_areas),
        strengths=tuple(strengths),
    )


def capability_returning(response):
    capability = AsyncMock()
    capability.grade.return_value = response
    return capability


class TestGradeScale:

    @pytest.mark.parametrize("percentage,grade", [
        (100, "A+"), (90, "A+"), (89, "A"), (80, "A"), (79, "B+"), (70, "B+"),
        (69, "B"), (60, "B"), (59, "C"), (50, "C"), (49, "D"), (40, "D"), (39, "F"), (0, "F"),
    ])
    def test_default_bands(self, percentage, grade):
        assert GradeScale(DEFAULT_THRESHOLDS).grade_for(percentage) == grade

    def test_from_config_matches_default_table(self):
        assert GradeScale.from_config().thresholds == DEFAULT_THRESHOLDS

    def test_custom_table(self):
        scale = GradeScale([(75, "Distinction"), (35, "Pass")], floor="Fail")
        assert scale.grade_for(80) == "Distinction"
        assert scale.grade_for(34) == "Fail"

    def test_non_descending_table_rejected(self):
        with pytest.raises(ValidationError):
            GradeScale([(50, "C"), (90, "A+")])

    def test_empty_table_rejected(self):
        with pytest.raises(ValidationError):
            GradeScale([])


class TestSessionEvaluation:
    """Test local scoring of completed quiz sessions."""

    def _completed_session(self, repository, answers):
        questions = [repository.get_question(qid) for qid in ("mock-a1", "mock-a2", "mock-a3")]
        session = QuizSession(questions)
        for option_index in answers:
            session.select_answer(option_index)
            session.advance()
        return session

    def test_report_for_session(self, repository):
        """Correct [0, 0, 2] answered [0, 1, 2] is 2/3, 67%, grade B."""
        report = Evaluator(grade_scale=GradeScale(DEFAULT_THRESHOLDS)).evaluate_session(
            self._completed_session(repository, [0, 1, 2])
        )
        assert (report.total_marks, report.obtained_marks, report.percentage, report.grade) == (3, 2, 67, "B")
        assert report.per_question[0].feedback == "Correct!"
        assert report.per_question[1].feedback.startswith("Incorrect. The correct answer is A) ")
        assert report.improvement_areas == ()

    def test_evaluate_dispatches_sessions(self, repository):
        session = self._completed_session(repository, [0, 0, 2])
        report = asyncio.run(Evaluator().evaluate(session))
        assert report.percentage == 100
        assert report.grade == "A+"

    def test_in_progress_session_rejected(self, repository):
        session = QuizSession([repository.get_question("mock-a1")])
        with pytest.raises(PreconditionViolation) as exc_info:
            Evaluator().evaluate_session(session)
        assert exc_info.value.precondition == "session_completed"

    def test_unknown_input_rejected(self):
        with pytest.raises(ValidationError):
            asyncio.run(Evaluator().evaluate("not a report input"))


class TestAnswerSheetEvaluation:
    """Test aggregation of external grading responses."""

    def test_report_aggregates_response(self):
        capability = capability_returning(graded(
            ("mock-a1", True, 1, 1, "Right."),
            ("mock-b1", True, 3, 5, "Method fine, arithmetic slip."),
            improvement_areas=["Arithmetic"], strengths=["Method"],
        ))
        report = asyncio.run(Evaluator(capability).evaluate_answer_sheet(SUBMISSION))

        assert (report.total_marks, report.obtained_marks, report.percentage, report.grade) == (6, 4, 67, "B")
        assert report.improvement_areas == ("Arithmetic",)
        assert report.strengths == ("Method",)

        request = capability.grade.call_args.args[0]
        assert isinstance(request, GradingRequest)
        assert request.section_aware_question_ids == SUBMISSION.question_refs
        assert request.uploaded_answer_reference == "sheet_abc"

    def test_capability_is_called_once(self):
        capability = AsyncMock()
        capability.grade.side_effect = RuntimeError("connection reset")
        with pytest.raises(ExternalGradingFailure):
            asyncio.run(Evaluator(capability).evaluate_answer_sheet(SUBMISSION))
        assert capability.grade.await_count == 1

    def test_timeout_becomes_grading_failure(self):
        class SlowCapability:
            async def grade(self, request):
                await asyncio.sleep(5)

        evaluator = Evaluator(SlowCapability(), timeout_seconds=0.05)
        with pytest.raises(ExternalGradingFailure, match="timed out"):
            asyncio.run(evaluator.evaluate_answer_sheet(SUBMISSION))

    def test_cancellation_propagates(self):
        """Cancelling the caller cancels the grading call instead of converting it."""
        started = []

        class HangingCapability:
            async def grade(self, request):
                started.append(request)
                await asyncio.sleep(5)

        async def scenario():
            task = asyncio.ensure_future(
                Evaluator(HangingCapability(), timeout_seconds=10).evaluate_answer_sheet(SUBMISSION)
            )
            await asyncio.sleep(0.05)
            task.cancel()
            with pytest.raises(asyncio.CancelledError):
                await task

        asyncio.run(scenario())
        assert len(started) == 1

    def test_zero_timeout_is_not_replaced_by_config(self):
        class PausingCapability:
            async def grade(self, request):
                await asyncio.sleep(0.01)

        evaluator = Evaluator(PausingCapability(), timeout_seconds=0)
        assert evaluator.timeout_seconds == 0
        with pytest.raises(ExternalGradingFailure, match="timed out"):
            asyncio.run(evaluator.evaluate_answer_sheet(SUBMISSION))

    def test_missing_capability_is_grading_failure(self):
        with pytest.raises(ExternalGradingFailure):
            asyncio.run(Evaluator(None).evaluate_answer_sheet(SUBMISSION))

    @pytest.mark.parametrize("items", [
        [("mock-b1", True, 3, 5), ("mock-a1", True, 1, 1)],
        [("mock-a1", True, 1, 1)],
        [("mock-a1", True, 2, 1), ("mock-b1", True, 3, 5)],
        [("mock-a1", False, 1, 1), ("mock-b1", True, 3, 5)],
    ], ids=["reordered", "missing_question", "over_award", "marks_for_unattempted"])
    def test_inconsistent_response_rejected(self, items):
        capability = capability_returning(graded(*items))
        with pytest.raises(ExternalGradingFailure):
            asyncio.run(Evaluator(capability).evaluate_answer_sheet(SUBMISSION))

    def test_zero_total_has_zero_percentage(self):
        report = Evaluator()._build_report([])
        assert report.percentage == 0
        assert report.grade == "F"
