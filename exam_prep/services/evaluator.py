# exam_prep/services/evaluator.py
"""
Evaluator - turns a completed quiz session or an uploaded answer sheet into a Scored Report.

Quiz sessions are scored locally and deterministically. Answer sheets are graded
by the external grading capability; the evaluator validates that response
against the request and aggregates it, without re-deriving any marks.
"""

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Sequence, Tuple, Union

from ..core.ai_services import GradingRequest, GradingResponse, QuestionRef
from ..core.config import config
from ..core.exceptions import ExternalGradingFailure, PreconditionViolation, ValidationError
from ..core.utils import round_half_up
from .quiz_session import QuizSession, option_label

logger = logging.getLogger(__name__)


class GradeScale:
    """Percentage -> grade band, from a descending list of (minimum, grade) thresholds"""

    def __init__(self, thresholds: Sequence[Tuple[int, str]], floor: str = "F"):
        thresholds = list(thresholds)
        minimums = [minimum for minimum, _ in thresholds]
        if not thresholds:
            raise ValidationError("Grade scale needs at least one threshold")
        if minimums != sorted(set(minimums), reverse=True):
            raise ValidationError(f"Grade thresholds must be strictly descending: {minimums}")

        self.thresholds = thresholds
        self.floor = floor

    @classmethod
    def from_config(cls) -> "GradeScale":
        try:
            return cls(config.grade_thresholds, config.GRADE_FLOOR)
        except ValueError as e:
            raise ValidationError(f"GRADE_THRESHOLDS is malformed: {e}")

    def grade_for(self, percentage: int) -> str:
        for minimum, grade in self.thresholds:
            if percentage >= minimum:
                return grade
        return self.floor


@dataclass(frozen=True)
class QuestionResult:
    question_id: str
    attempted: bool
    marks_obtained: int
    marks_possible: int
    feedback: str

    def to_dict(self) -> Dict[str, Any]:
        return {
            "question_id": self.question_id,
            "attempted": self.attempted,
            "marks_obtained": self.marks_obtained,
            "marks_possible": self.marks_possible,
            "feedback": self.feedback,
        }


@dataclass(frozen=True)
class ScoredReport:
    total_marks: int
    obtained_marks: int
    percentage: int
    grade: str
    per_question: Tuple[QuestionResult, ...]
    improvement_areas: Tuple[str, ...] = field(default_factory=tuple)
    strengths: Tuple[str, ...] = field(default_factory=tuple)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "total_marks": self.total_marks,
            "obtained_marks": self.obtained_marks,
            "percentage": self.percentage,
            "grade": self.grade,
            "per_question": [result.to_dict() for result in self.per_question],
            "improvement_areas": list(self.improvement_areas),
            "strengths": list(self.strengths),
        }


@dataclass(frozen=True)
class AnswerSheetSubmission:
    """Marker for an assembled paper whose answer sheet was uploaded"""
    exam_id: str
    question_refs: Tuple[QuestionRef, ...]
    uploaded_answer_reference: str


ReportInput = Union[QuizSession, AnswerSheetSubmission]


class Evaluator:

    def __init__(self, grading_capability=None, grade_scale: Optional[GradeScale] = None,
                 timeout_seconds: Optional[float] = None):
        self.grading_capability = grading_capability
        self.grade_scale = grade_scale or GradeScale.from_config()
        self.timeout_seconds = config.GRADING_TIMEOUT_SECONDS if timeout_seconds is None else timeout_seconds

    async def evaluate(self, report_input: ReportInput) -> ScoredReport:
        if isinstance(report_input, QuizSession):
            return self.evaluate_session(report_input)
        if isinstance(report_input, AnswerSheetSubmission):
            return await self.evaluate_answer_sheet(report_input)
        raise ValidationError(f"Cannot evaluate {type(report_input).__name__}")

    def _build_report(self, results: List[QuestionResult], improvement_areas: Sequence[str] = (),
                      strengths: Sequence[str] = ()) -> ScoredReport:
        total_marks = sum(result.marks_possible for result in results)
        obtained_marks = sum(result.marks_obtained for result in results)
        percentage = round_half_up(100 * obtained_marks, total_marks)

        return ScoredReport(
            total_marks=total_marks,
            obtained_marks=obtained_marks,
            percentage=percentage,
            grade=self.grade_scale.grade_for(percentage),
            per_question=tuple(results),
            improvement_areas=tuple(improvement_areas),
            strengths=tuple(strengths),
        )

    # ─── Quiz sessions ───────────────────────────────────────────────────────

    def evaluate_session(self, session: QuizSession) -> ScoredReport:
        """Score a completed quiz session locally"""
        if not session.is_completed:
            raise PreconditionViolation(
                "Only a completed quiz session can be evaluated",
                precondition="session_completed",
            )

        results = []
        for index, question in enumerate(session.questions):
            selected = session.answers.get(index)
            correct_option = f"{option_label(question.correct_index)}) {question.options[question.correct_index]}"

            if selected is None:
                results.append(QuestionResult(question.id, False, 0, question.marks, "Not attempted."))
            elif selected == question.correct_index:
                results.append(QuestionResult(question.id, True, question.marks, question.marks, "Correct!"))
            else:
                results.append(QuestionResult(
                    question.id, True, 0, question.marks,
                    f"Incorrect. The correct answer is {correct_option}."
                ))

        report = self._build_report(results)
        logger.info(
            f"📊 Session {session.id} evaluated: {report.obtained_marks}/{report.total_marks} "
            f"({report.percentage}%, {report.grade})"
        )
        return report

    # ─── Answer sheets ───────────────────────────────────────────────────────

    async def evaluate_answer_sheet(self, submission: AnswerSheetSubmission) -> ScoredReport:
        """Ask the grading capability for marks and aggregate them into a report"""
        if self.grading_capability is None:
            raise ExternalGradingFailure("No grading capability is configured")

        request = GradingRequest(
            exam_id=submission.exam_id,
            section_aware_question_ids=submission.question_refs,
            uploaded_answer_reference=submission.uploaded_answer_reference,
        )

        try:
            response = await asyncio.wait_for(
                self.grading_capability.grade(request), timeout=self.timeout_seconds
            )
        except asyncio.TimeoutError:
            logger.error(f"❌ Grading timed out after {self.timeout_seconds}s for exam {submission.exam_id}")
            raise ExternalGradingFailure(f"Grading timed out after {self.timeout_seconds} seconds")
        except ExternalGradingFailure:
            logger.error(f"❌ Grading failed for exam {submission.exam_id}")
            raise
        except Exception as e:
            logger.error(f"❌ Grading failed for exam {submission.exam_id}: {e}")
            raise ExternalGradingFailure(f"Grading capability error: {e}")

        self._check_response(request, response)

        results = [
            QuestionResult(
                question_id=item.question_id,
                attempted=item.attempted,
                marks_obtained=item.marks_obtained,
                marks_possible=item.marks_possible,
                feedback=item.feedback,
            )
            for item in response.per_question
        ]

        report = self._build_report(results, response.improvement_areas, response.strengths)
        logger.info(
            f"📊 Exam {submission.exam_id} evaluated: {report.obtained_marks}/{report.total_marks} "
            f"({report.percentage}%, {report.grade})"
        )
        return report

    @staticmethod
    def _check_response(request: GradingRequest, response: GradingResponse):
        if not isinstance(response, GradingResponse):
            raise ExternalGradingFailure("Grading capability returned an unexpected response type")

        expected_ids = [ref.question_id for ref in request.section_aware_question_ids]
        returned_ids = [item.question_id for item in response.per_question]
        if returned_ids != expected_ids:
            raise ExternalGradingFailure(
                f"Grading response covers questions {returned_ids}, expected {expected_ids}"
            )

        for item in response.per_question:
            if item.marks_possible <= 0 or not 0 <= item.marks_obtained <= item.marks_possible:
                raise ExternalGradingFailure(
                    f"Grading response for {item.question_id} has marks "
                    f"{item.marks_obtained}/{item.marks_possible}"
                )
            if not item.attempted and item.marks_obtained:
                raise ExternalGradingFailure(
                    f"Grading response awards marks to unattempted question {item.question_id}"
                )
