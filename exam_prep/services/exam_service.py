# exam_prep/services/exam_service.py
import logging
from dataclasses import dataclass
from types import MappingProxyType
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence, Tuple

from ..core.config import config
from ..core.content import SECTION_KEYS, Chapter, Concept, ContentRepository, Question, Subject
from ..core.exceptions import ValidationError
from ..core.selector import pick_questions
from ..core.utils import DateTimeUtils, generate_exam_id

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Exam:
    """Assembled four-section mock exam"""
    id: str
    subject_id: str
    subject_name: str
    chapter_ids: Tuple[str, ...]
    chapter_names: Tuple[str, ...]
    time_limit_minutes: int
    sections: Mapping[str, Tuple[Question, ...]]
    total_marks: int
    created_at: float

    def question_ids(self) -> List[str]:
        """Question ids in section order A..D"""
        return [question.id for section in SECTION_KEYS for question in self.sections[section]]

    def questions(self) -> List[Question]:
        return [question for section in SECTION_KEYS for question in self.sections[section]]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "subject_id": self.subject_id,
            "subject_name": self.subject_name,
            "chapter_ids": list(self.chapter_ids),
            "chapter_names": list(self.chapter_names),
            "time_limit_minutes": self.time_limit_minutes,
            "sections": {
                section: {
                    "title": config.SECTION_TITLES.get(section, f"Section {section}"),
                    "marks": sum(question.marks for question in questions),
                    "questions": [question.to_dict() for question in questions],
                }
                for section, questions in self.sections.items()
            },
            "total_marks": self.total_marks,
            "created_at": self.created_at,
            "created_at_display": DateTimeUtils.format_timestamp(self.created_at),
        }


@dataclass(frozen=True)
class PracticeQuiz:
    """Concept-scoped practice quiz answered on paper and uploaded for grading"""
    id: str
    subject_id: str
    subject_name: str
    chapter_ids: Tuple[str, ...]
    chapter_names: Tuple[str, ...]
    concept_names: Tuple[str, ...]
    time_limit_minutes: Optional[int]
    questions: Tuple[Question, ...]
    total_marks: int
    created_at: float

    def question_ids(self) -> List[str]:
        return [question.id for question in self.questions]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "subject_id": self.subject_id,
            "subject_name": self.subject_name,
            "chapter_ids": list(self.chapter_ids),
            "chapter_names": list(self.chapter_names),
            "concept_names": list(self.concept_names),
            "time_limit_minutes": self.time_limit_minutes,
            "timed": self.time_limit_minutes is not None,
            "questions": [question.to_dict() for question in self.questions],
            "total_marks": self.total_marks,
            "created_at": self.created_at,
            "created_at_display": DateTimeUtils.format_timestamp(self.created_at),
        }


class ExamAssembler:
    """Builds mock exams and practice quizzes from the content repository"""

    def __init__(self, repository: ContentRepository,
                 section_quotas: Optional[Dict[str, int]] = None,
                 exam_time_limits: Optional[Sequence[int]] = None,
                 practice_time_limits: Optional[Sequence[int]] = None,
                 practice_quiz_size: Optional[int] = None):
        self.repository = repository
        self.section_quotas = dict(config.SECTION_QUOTAS if section_quotas is None else section_quotas)
        self.exam_time_limits = tuple(config.EXAM_TIME_LIMITS if exam_time_limits is None else exam_time_limits)
        self.practice_time_limits = tuple(
            config.PRACTICE_TIME_LIMITS if practice_time_limits is None else practice_time_limits
        )
        self.practice_quiz_size = config.PRACTICE_QUIZ_SIZE if practice_quiz_size is None else practice_quiz_size

    # ─── Validation helpers ──────────────────────────────────────────────────

    def _resolve_subject(self, subject_id: str) -> Subject:
        subject = self.repository.get_subject(subject_id) if subject_id else None
        if subject is None:
            raise ValidationError(f"Unknown subject: {subject_id!r}")
        return subject

    def _resolve_chapters(self, subject: Subject, chapter_ids: Iterable[str]) -> List[Chapter]:
        ordered_ids = list(dict.fromkeys(chapter_ids or []))
        if not ordered_ids:
            raise ValidationError("Select at least one chapter")

        chapters = []
        for chapter_id in ordered_ids:
            chapter = self.repository.get_chapter(chapter_id)
            if chapter is None or chapter.subject_id != subject.id:
                raise ValidationError(f"Chapter {chapter_id!r} does not belong to subject {subject.id!r}")
            chapters.append(chapter)
        return chapters

    def _resolve_concepts(self, chapters: List[Chapter], concept_ids: Iterable[str]) -> List[Concept]:
        ordered_ids = list(dict.fromkeys(concept_ids or []))
        if not ordered_ids:
            raise ValidationError("Select at least one concept")

        allowed_chapters = {chapter.id for chapter in chapters}
        concepts = []
        for concept_id in ordered_ids:
            concept = self.repository.get_concept(concept_id)
            if concept is None or concept.chapter_id not in allowed_chapters:
                raise ValidationError(f"Concept {concept_id!r} is not part of the selected chapters")
            concepts.append(concept)
        return concepts

    # ─── Mock exam ───────────────────────────────────────────────────────────

    def assemble(self, subject_id: str, chapter_ids: Iterable[str], time_limit_minutes: int) -> Exam:
        """
        Assemble a four-section mock exam.

        Sections are filled from the fixed master bank by quota. The chapter
        selection is recorded as metadata only and does not narrow the pools.
        """
        subject = self._resolve_subject(subject_id)
        chapters = self._resolve_chapters(subject, chapter_ids)

        if time_limit_minutes not in self.exam_time_limits:
            raise ValidationError(
                f"Time limit must be one of {list(self.exam_time_limits)} minutes, got {time_limit_minutes!r}"
            )

        sections = {}
        for section in SECTION_KEYS:
            quota = self.section_quotas.get(section, 0)
            sections[section] = tuple(pick_questions(self.repository.master_pool(section), quota))

        total_marks = sum(question.marks for questions in sections.values() for question in questions)
        if total_marks != 100:
            logger.warning(f"Assembled exam totals {total_marks} marks instead of 100")

        exam = Exam(
            id=generate_exam_id(),
            subject_id=subject.id,
            subject_name=subject.name,
            chapter_ids=tuple(chapter.id for chapter in chapters),
            chapter_names=tuple(chapter.name for chapter in chapters),
            time_limit_minutes=time_limit_minutes,
            sections=MappingProxyType(sections),
            total_marks=total_marks,
            created_at=DateTimeUtils.get_current_timestamp(),
        )

        logger.info(
            f"✅ Exam assembled: {exam.id} ({subject.name}, {len(chapters)} chapters, "
            f"{time_limit_minutes} min, {total_marks} marks)"
        )
        return exam

    # ─── Practice quiz ───────────────────────────────────────────────────────

    def assemble_practice_quiz(self, subject_id: str, chapter_ids: Iterable[str],
                               concept_ids: Iterable[str],
                               time_limit_minutes: Optional[int] = None) -> PracticeQuiz:
        """Assemble a practice quiz; untimed when ``time_limit_minutes`` is None"""
        subject = self._resolve_subject(subject_id)
        chapters = self._resolve_chapters(subject, chapter_ids)
        concepts = self._resolve_concepts(chapters, concept_ids)

        if time_limit_minutes is not None and time_limit_minutes not in self.practice_time_limits:
            raise ValidationError(
                f"Practice time limit must be one of {list(self.practice_time_limits)} minutes "
                f"or omitted, got {time_limit_minutes!r}"
            )

        questions = tuple(pick_questions(self.repository.practice_pool(), self.practice_quiz_size))

        quiz = PracticeQuiz(
            id=generate_exam_id(),
            subject_id=subject.id,
            subject_name=subject.name,
            chapter_ids=tuple(chapter.id for chapter in chapters),
            chapter_names=tuple(chapter.name for chapter in chapters),
            concept_names=tuple(concept.name for concept in concepts),
            time_limit_minutes=time_limit_minutes,
            questions=questions,
            total_marks=sum(question.marks for question in questions),
            created_at=DateTimeUtils.get_current_timestamp(),
        )

        logger.info(f"✅ Practice quiz assembled: {quiz.id} ({len(questions)} questions)")
        return quiz
