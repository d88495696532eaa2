"""
Tests for the PrepService facade: exam lifecycle, listing and session sourcing.
"""

import asyncio
from unittest.mock import AsyncMock

import pytest

from exam_prep.core.ai_services import GradingService
from exam_prep.core.exceptions import (
    ExternalGradingFailure,
    NotFoundError,
    PreconditionViolation,
    ValidationError,
)
from exam_prep.services.evaluator import Evaluator
from exam_prep.services.prep_service import ExamStatus, PrepService


@pytest.fixture
def service(repository, memory):
    grading = GradingService(repository, answer_sheet_resolver=memory.get_answer_sheet, use_dummy=True)
    return PrepService(repository=repository, evaluator=Evaluator(grading), memory=memory)


class TestExamLifecycle:
    """Test GENERATED -> SUBMITTED -> EVALUATED transitions."""

    def test_assembled_exam_is_generated(self, service):
        record = service.assemble_exam("math", ["algebra"], 90)
        assert record.status is ExamStatus.GENERATED
        assert service.get_exam(record.paper.id) is record

    def test_full_lifecycle(self, service):
        """Dummy grading skips every fourth question and awards 80% elsewhere: 64/100."""
        exam_id = service.assemble_exam("math", ["algebra"], 90).paper.id
        service.upload_answer_sheet(exam_id, "Section A: A, A, C, B, A ...")
        record = asyncio.run(service.evaluate_exam(exam_id))

        assert record.status is ExamStatus.EVALUATED
        assert record.report.total_marks == 100
        assert record.report.obtained_marks == 64
        assert record.report.percentage == 64
        assert record.report.grade == "B"
        assert record.report.strengths

    def test_evaluate_without_upload_rejected(self, service):
        exam_id = service.assemble_exam("math", ["algebra"], 90).paper.id
        with pytest.raises(PreconditionViolation):
            asyncio.run(service.evaluate_exam(exam_id))

    def test_reupload_replaces_sheet(self, service, memory):
        exam_id = service.assemble_exam("math", ["algebra"], 90).paper.id
        first = service.upload_answer_sheet(exam_id, "first attempt").answer_sheet_handle
        second = service.upload_answer_sheet(exam_id, "second attempt").answer_sheet_handle

        assert first != second
        assert memory.get_answer_sheet(first) is None
        assert memory.get_answer_sheet(second) == "second attempt"

    def test_upload_after_evaluation_rejected(self, service):
        exam_id = service.assemble_exam("math", ["algebra"], 90).paper.id
        service.upload_answer_sheet(exam_id, "answers")
        asyncio.run(service.evaluate_exam(exam_id))
        with pytest.raises(PreconditionViolation):
            service.upload_answer_sheet(exam_id, "late answers")

    def test_blank_upload_rejected(self, service):
        exam_id = service.assemble_exam("math", ["algebra"], 90).paper.id
        with pytest.raises(ValidationError):
            service.upload_answer_sheet(exam_id, "   ")

    def test_grading_failure_keeps_exam_submitted(self, repository, memory):
        failing = AsyncMock()
        failing.grade.side_effect = ExternalGradingFailure("grading service unavailable")
        service = PrepService(repository=repository, evaluator=Evaluator(failing), memory=memory)

        exam_id = service.assemble_exam("math", ["algebra"], 90).paper.id
        service.upload_answer_sheet(exam_id, "answers")
        with pytest.raises(ExternalGradingFailure):
            asyncio.run(service.evaluate_exam(exam_id))

        record = service.get_exam(exam_id)
        assert record.status is ExamStatus.SUBMITTED
        assert record.report is None
        assert "unavailable" in record.last_error

    def test_practice_quiz_lifecycle(self, service):
        quiz_id = service.assemble_practice_quiz("math", ["algebra"], ["quadratic"], 30).paper.id
        service.upload_answer_sheet(quiz_id, "answers")
        record = asyncio.run(service.evaluate_exam(quiz_id))
        assert record.kind == "practice_quiz"
        assert record.report.total_marks == 20

    def test_unknown_exam_not_found(self, service):
        with pytest.raises(NotFoundError):
            service.get_exam("00000000-0000-0000-0000-000000000000")
        with pytest.raises(NotFoundError):
            service.get_exam("not-a-uuid")


class TestExamListing:

    def test_newest_first_with_filters(self, service):
        older = service.assemble_exam("math", ["algebra"], 90).paper.id
        physics = service.assemble_exam("physics", ["optics"], 80).paper.id
        newer = service.assemble_exam("math", ["geometry"], 120).paper.id

        assert [r.paper.id for r in service.list_exams()] == [newer, physics, older]
        assert [r.paper.id for r in service.list_exams(subject_id="math")] == [newer, older]
        assert [r.paper.id for r in service.list_exams(chapter_id="optics")] == [physics]
        assert service.list_exams(subject_id="math", chapter_id="optics") == []


class TestSessionSourcing:

    def test_session_from_subject(self, service):
        session = service.start_session("math")
        assert [q.id for q in session.questions] == ["mock-a1", "mock-a2", "drill-1", "drill-2", "drill-3"]

    def test_session_narrowed_to_chapters(self, service):
        session = service.start_session("math", ["geometry"])
        assert [q.id for q in session.questions] == ["drill-3", "drill-5"]

    def test_session_for_subject_without_questions_rejected(self, service):
        with pytest.raises(ValidationError):
            service.start_session("biology")

    def test_session_with_foreign_chapter_rejected(self, service):
        with pytest.raises(ValidationError):
            service.start_session("math", ["optics"])

    def test_session_from_exam_uses_section_a(self, service):
        exam = service.assemble_exam("physics", ["mechanics"], 90).paper
        session = service.start_session_from_exam(exam.id)
        assert [q.id for q in session.questions] == [q.id for q in exam.sections["A"]]

    def test_session_from_practice_quiz_rejected(self, service):
        quiz_id = service.assemble_practice_quiz("math", ["algebra"], ["quadratic"]).paper.id
        with pytest.raises(ValidationError):
            service.start_session_from_exam(quiz_id)

    def test_session_round_trip(self, service):
        session_id = service.start_session("math", ["geometry"]).id
        service.select_answer(session_id, 0)
        service.advance(session_id)
        service.select_answer(session_id, 1)
        service.advance(session_id)

        report = service.evaluate_session(session_id)
        assert (report.obtained_marks, report.total_marks, report.percentage) == (1, 2, 50)

    def test_unknown_session_not_found(self, service):
        with pytest.raises(NotFoundError):
            service.get_session("00000000-0000-0000-0000-000000000000")
