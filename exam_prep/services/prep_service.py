# exam_prep/services/prep_service.py
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple, Union

from ..core.ai_services import QuestionRef, get_grading_service
from ..core.config import config
from ..core.content import SECTION_KEYS, ContentRepository, QuestionType, get_content_repository
from ..core.exceptions import NotFoundError, PreconditionViolation, ValidationError
from ..core.selector import filter_questions, pick_questions
from ..core.utils import DateTimeUtils, MemoryManager, ValidationUtils, memory_manager
from .evaluator import AnswerSheetSubmission, Evaluator, ScoredReport
from .exam_service import Exam, ExamAssembler, PracticeQuiz
from .quiz_session import QuizSession

logger = logging.getLogger(__name__)


class ExamStatus(Enum):
    GENERATED = "generated"
    SUBMITTED = "submitted"
    EVALUATED = "evaluated"


@dataclass
class ExamRecord:
    """An assembled paper and where it is in the generated -> submitted -> evaluated lifecycle"""
    paper: Union[Exam, PracticeQuiz]
    status: ExamStatus = ExamStatus.GENERATED
    answer_sheet_handle: Optional[str] = None
    report: Optional[ScoredReport] = None
    last_error: Optional[str] = None

    @property
    def kind(self) -> str:
        return "mock_exam" if isinstance(self.paper, Exam) else "practice_quiz"

    def question_refs(self) -> Tuple[QuestionRef, ...]:
        if isinstance(self.paper, Exam):
            return tuple(
                QuestionRef(section, question.id)
                for section in SECTION_KEYS
                for question in self.paper.sections[section]
            )
        return tuple(QuestionRef("", question.id) for question in self.paper.questions)

    def summary(self) -> Dict[str, Any]:
        paper = self.paper
        return {
            "id": paper.id,
            "kind": self.kind,
            "status": self.status.value,
            "subject_id": paper.subject_id,
            "subject_name": paper.subject_name,
            "chapter_names": list(paper.chapter_names),
            "time_limit_minutes": paper.time_limit_minutes,
            "total_marks": paper.total_marks,
            "created_at": paper.created_at,
            "created_at_display": DateTimeUtils.format_timestamp(paper.created_at),
            "percentage": self.report.percentage if self.report else None,
            "grade": self.report.grade if self.report else None,
        }

    def to_dict(self) -> Dict[str, Any]:
        data = self.paper.to_dict()
        data.update({
            "kind": self.kind,
            "status": self.status.value,
            "answer_sheet_uploaded": self.answer_sheet_handle is not None,
            "report": self.report.to_dict() if self.report else None,
            "last_error": self.last_error,
        })
        return data


class PrepService:
    """Drives exam assembly, quiz sessions and evaluation for the API layer"""

    def __init__(self, repository: Optional[ContentRepository] = None,
                 evaluator: Optional[Evaluator] = None,
                 memory: Optional[MemoryManager] = None,
                 assembler: Optional[ExamAssembler] = None):
        self.repository = repository or get_content_repository()
        self.memory = memory or memory_manager
        self.assembler = assembler or ExamAssembler(self.repository)
        self.evaluator = evaluator or Evaluator(grading_capability=get_grading_service())

    # ─── Catalog ─────────────────────────────────────────────────────────────

    def list_subjects(self) -> List[Dict[str, Any]]:
        return [{"id": subject.id, "name": subject.name} for subject in self.repository.subjects()]

    def list_chapters(self, subject_id: str, search: str = "") -> List[Dict[str, Any]]:
        return [
            {"id": chapter.id, "name": chapter.name, "subject_id": chapter.subject_id}
            for chapter in self.repository.search_chapters(subject_id, search)
        ]

    def list_concepts(self, chapter_ids: List[str], search: str = "") -> List[Dict[str, Any]]:
        return [
            {"id": concept.id, "name": concept.name, "chapter_id": concept.chapter_id}
            for concept in self.repository.search_concepts(chapter_ids, search)
        ]

    # ─── Exams and practice quizzes ──────────────────────────────────────────

    def assemble_exam(self, subject_id: str, chapter_ids: List[str], time_limit_minutes: int) -> ExamRecord:
        exam = self.assembler.assemble(subject_id, chapter_ids, time_limit_minutes)
        record = ExamRecord(paper=exam)
        self.memory.store_exam(exam.id, record)
        return record

    def assemble_practice_quiz(self, subject_id: str, chapter_ids: List[str], concept_ids: List[str],
                               time_limit_minutes: Optional[int] = None) -> ExamRecord:
        quiz = self.assembler.assemble_practice_quiz(subject_id, chapter_ids, concept_ids, time_limit_minutes)
        record = ExamRecord(paper=quiz)
        self.memory.store_exam(quiz.id, record)
        return record

    def get_exam(self, exam_id: str) -> ExamRecord:
        if not ValidationUtils.validate_id(exam_id):
            raise NotFoundError(f"Exam {exam_id} not found")

        record = self.memory.get_exam(exam_id)
        if record is None:
            raise NotFoundError(f"Exam {exam_id} not found or expired")
        return record

    def list_exams(self, subject_id: Optional[str] = None, chapter_id: Optional[str] = None) -> List[ExamRecord]:
        """Past exams, newest first, filtered on the recorded subject / chapter metadata"""
        records = []
        for record in self.memory.list_exams():
            if subject_id and record.paper.subject_id != subject_id:
                continue
            if chapter_id and chapter_id not in record.paper.chapter_ids:
                continue
            records.append(record)
        return records

    def upload_answer_sheet(self, exam_id: str, content: str) -> ExamRecord:
        record = self.get_exam(exam_id)

        if record.status is ExamStatus.EVALUATED:
            raise PreconditionViolation(
                f"Exam {exam_id} has already been evaluated",
                precondition="exam_not_evaluated",
            )

        content = ValidationUtils.sanitize_input(content)
        if not content:
            raise ValidationError("Answer sheet is empty")

        previous_handle = record.answer_sheet_handle
        record.answer_sheet_handle = self.memory.store_answer_sheet(exam_id, content)
        record.status = ExamStatus.SUBMITTED
        record.last_error = None

        if previous_handle:
            self.memory.discard_answer_sheet(previous_handle)

        logger.info(f"📝 Answer sheet uploaded for {exam_id}")
        return record

    async def evaluate_exam(self, exam_id: str) -> ExamRecord:
        """Grade the uploaded answer sheet; on failure the exam stays SUBMITTED for a retry"""
        record = self.get_exam(exam_id)

        if record.status is not ExamStatus.SUBMITTED or not record.answer_sheet_handle:
            raise PreconditionViolation(
                f"Exam {exam_id} needs an uploaded answer sheet before evaluation (status: {record.status.value})",
                precondition="answer_sheet_submitted",
            )

        submission = AnswerSheetSubmission(
            exam_id=exam_id,
            question_refs=record.question_refs(),
            uploaded_answer_reference=record.answer_sheet_handle,
        )

        try:
            report = await self.evaluator.evaluate(submission)
        except Exception as e:
            record.last_error = str(e)
            raise

        record.report = report
        record.status = ExamStatus.EVALUATED
        record.last_error = None
        return record

    # ─── Quiz sessions ───────────────────────────────────────────────────────

    def start_session(self, subject_id: str, chapter_ids: Optional[List[str]] = None) -> QuizSession:
        """Quiz over the subject's single-choice questions, optionally narrowed to chapters"""
        subject = self.repository.get_subject(subject_id) if subject_id else None
        if subject is None:
            raise ValidationError(f"Unknown subject: {subject_id!r}")

        subject_chapters = [chapter.id for chapter in self.repository.chapters_for(subject.id)]
        if chapter_ids:
            foreign = [chapter_id for chapter_id in chapter_ids if chapter_id not in subject_chapters]
            if foreign:
                raise ValidationError(f"Chapters {foreign} do not belong to subject {subject.id!r}")
            subject_chapters = [chapter_id for chapter_id in subject_chapters if chapter_id in chapter_ids]

        pool = filter_questions(
            self.repository.questions_for(subject_chapters),
            question_type=QuestionType.SINGLE_CHOICE,
        )
        questions = pick_questions(pool, config.QUIZ_SESSION_SIZE)

        session = QuizSession(questions, source=f"subject:{subject.id}")
        self.memory.store_session(session.id, session)
        logger.info(f"🚀 Quiz session started: {session.id} ({len(questions)} questions, {subject.name})")
        return session

    def start_session_from_exam(self, exam_id: str) -> QuizSession:
        """Quiz over Section A of an assembled mock exam"""
        record = self.get_exam(exam_id)
        if not isinstance(record.paper, Exam):
            raise ValidationError(f"{exam_id} is a practice quiz and has no single-choice section")

        session = QuizSession(record.paper.sections["A"], source=f"exam:{exam_id}")
        self.memory.store_session(session.id, session)
        logger.info(f"🚀 Quiz session started from exam {exam_id}: {session.id}")
        return session

    def get_session(self, session_id: str) -> QuizSession:
        session = self.memory.get_session(session_id) if ValidationUtils.validate_id(session_id) else None
        if session is None:
            raise NotFoundError(f"Quiz session {session_id} not found or expired")
        return session

    def select_answer(self, session_id: str, option_index: int) -> QuizSession:
        session = self.get_session(session_id)
        session.select_answer(option_index)
        return session

    def advance(self, session_id: str) -> QuizSession:
        session = self.get_session(session_id)
        session.advance()
        return session

    def retreat(self, session_id: str) -> QuizSession:
        session = self.get_session(session_id)
        session.retreat()
        return session

    def restart(self, session_id: str) -> QuizSession:
        session = self.get_session(session_id)
        session.restart()
        return session

    def evaluate_session(self, session_id: str) -> ScoredReport:
        return self.evaluator.evaluate_session(self.get_session(session_id))

    def health_check(self) -> Dict[str, Any]:
        """Health check for the prep service"""
        stats = self.memory.get_memory_stats()
        return {
            "status": "healthy",
            "catalog": self.repository.get_stats(),
            "active_exams": stats["active_exams"],
            "active_sessions": stats["active_sessions"],
            "timestamp": DateTimeUtils.get_current_timestamp()
        }

# Singleton pattern for prep service
_prep_service = None

def get_prep_service() -> PrepService:
    """Get prep service instance (singleton)"""
    global _prep_service
    if _prep_service is None:
        _prep_service = PrepService()
    return _prep_service
