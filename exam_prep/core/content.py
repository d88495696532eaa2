# exam_prep/core/content.py
"""
Content Repository - immutable catalog of subjects, chapters, concepts and questions.
Loaded once from the versioned catalog payload and validated at the boundary.
"""

import json
import logging
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional, Tuple

from .config import config
from .exceptions import ValidationError

logger = logging.getLogger(__name__)

SECTION_KEYS = ("A", "B", "C", "D")

# =============================================================================
# DATA MODELS
# =============================================================================

class QuestionType(Enum):
    SINGLE_CHOICE = "single-choice"
    SHORT_ANSWER = "short-answer"
    LONG_ANSWER = "long-answer"
    APPLICATION = "application"


@dataclass(frozen=True)
class Subject:
    id: str
    name: str


@dataclass(frozen=True)
class Chapter:
    id: str
    name: str
    subject_id: str


@dataclass(frozen=True)
class Concept:
    id: str
    name: str
    chapter_id: str


@dataclass(frozen=True)
class Question:
    id: str
    text: str
    type: QuestionType
    marks: int
    chapter_id: str
    options: Optional[Tuple[str, ...]] = None
    correct_index: Optional[int] = None
    concept_id: Optional[str] = None

    @property
    def is_single_choice(self) -> bool:
        return self.type is QuestionType.SINGLE_CHOICE

    def to_dict(self, include_answer: bool = False) -> Dict[str, Any]:
        data = {
            "id": self.id,
            "text": self.text,
            "type": self.type.value,
            "marks": self.marks,
            "chapter_id": self.chapter_id,
            "concept_id": self.concept_id,
            "options": list(self.options) if self.options is not None else None,
        }
        if include_answer:
            data["correct_index"] = self.correct_index
        return data


# =============================================================================
# REPOSITORY
# =============================================================================

class ContentRepository:
    """
    Read-only catalog with O(1) lookups by id.

    Build with ``ContentRepository.from_file(path)`` or directly from an
    already-decoded payload. Any shape violation raises ValidationError and
    nothing is loaded.
    """

    def __init__(self, payload: Dict[str, Any]):
        if not isinstance(payload, dict):
            raise ValidationError("Catalog payload must be an object")

        self.version = str(payload.get("version", "unversioned"))

        self._subjects: Dict[str, Subject] = {}
        self._chapters: Dict[str, Chapter] = {}
        self._concepts: Dict[str, Concept] = {}
        self._questions: Dict[str, Question] = {}
        self._master_bank: Dict[str, Tuple[Question, ...]] = {}
        self._practice_bank: Tuple[Question, ...] = ()

        self._load_subjects(payload.get("subjects", []))
        self._load_chapters(payload.get("chapters", []))
        self._load_concepts(payload.get("concepts", []))
        self._load_questions(payload.get("questions", []))
        self._load_banks(payload.get("master_bank", {}), payload.get("practice_bank", []))

        logger.info(
            f"✅ Catalog {self.version} loaded: {len(self._subjects)} subjects, "
            f"{len(self._chapters)} chapters, {len(self._questions)} questions"
        )

    @classmethod
    def from_file(cls, path: str) -> "ContentRepository":
        catalog_path = Path(path)
        try:
            with open(catalog_path, "r", encoding="utf-8") as f:
                payload = json.load(f)
        except FileNotFoundError:
            raise ValidationError(f"Catalog file not found: {catalog_path}")
        except json.JSONDecodeError as e:
            raise ValidationError(f"Catalog file is not valid JSON: {e}")
        return cls(payload)

    # ─── Loading ─────────────────────────────────────────────────────────────

    @staticmethod
    def _require(entry: Dict[str, Any], field_name: str, kind: str) -> Any:
        value = entry.get(field_name)
        if value is None or value == "":
            raise ValidationError(f"{kind} entry is missing '{field_name}': {entry}")
        return value

    def _load_subjects(self, entries: Iterable[Dict[str, Any]]):
        for entry in entries:
            subject = Subject(
                id=self._require(entry, "id", "Subject"),
                name=self._require(entry, "name", "Subject"),
            )
            if subject.id in self._subjects:
                raise ValidationError(f"Duplicate subject id: {subject.id}")
            self._subjects[subject.id] = subject

    def _load_chapters(self, entries: Iterable[Dict[str, Any]]):
        for entry in entries:
            chapter = Chapter(
                id=self._require(entry, "id", "Chapter"),
                name=self._require(entry, "name", "Chapter"),
                subject_id=self._require(entry, "subject_id", "Chapter"),
            )
            if chapter.subject_id not in self._subjects:
                raise ValidationError(f"Chapter {chapter.id} references unknown subject {chapter.subject_id}")
            # Chapter ids are used as lookup keys across subjects, so they must be globally unique
            if chapter.id in self._chapters:
                raise ValidationError(f"Duplicate chapter id: {chapter.id}")
            self._chapters[chapter.id] = chapter

    def _load_concepts(self, entries: Iterable[Dict[str, Any]]):
        for entry in entries:
            concept = Concept(
                id=self._require(entry, "id", "Concept"),
                name=self._require(entry, "name", "Concept"),
                chapter_id=self._require(entry, "chapter_id", "Concept"),
            )
            if concept.chapter_id not in self._chapters:
                raise ValidationError(f"Concept {concept.id} references unknown chapter {concept.chapter_id}")
            if concept.id in self._concepts:
                raise ValidationError(f"Duplicate concept id: {concept.id}")
            self._concepts[concept.id] = concept

    def _load_questions(self, entries: Iterable[Dict[str, Any]]):
        for entry in entries:
            question = self._build_question(entry)
            if question.id in self._questions:
                raise ValidationError(f"Duplicate question id: {question.id}")
            self._questions[question.id] = question

    def _build_question(self, entry: Dict[str, Any]) -> Question:
        question_id = self._require(entry, "id", "Question")

        try:
            question_type = QuestionType(entry.get("type"))
        except ValueError:
            raise ValidationError(f"Question {question_id} has unknown type {entry.get('type')!r}")

        marks = entry.get("marks")
        if not isinstance(marks, int) or isinstance(marks, bool) or marks <= 0:
            raise ValidationError(f"Question {question_id} marks must be a positive integer, got {marks!r}")

        chapter_id = self._require(entry, "chapter_id", "Question")
        if chapter_id not in self._chapters:
            raise ValidationError(f"Question {question_id} references unknown chapter {chapter_id}")

        concept_id = entry.get("concept_id")
        if concept_id is not None and concept_id not in self._concepts:
            raise ValidationError(f"Question {question_id} references unknown concept {concept_id}")

        options = entry.get("options")
        correct_index = entry.get("correct_index")

        if question_type is QuestionType.SINGLE_CHOICE:
            if (not isinstance(options, list) or not options
                    or not all(isinstance(option, str) for option in options)):
                raise ValidationError(f"Single-choice question {question_id} needs a list of options")
            if (not isinstance(correct_index, int) or isinstance(correct_index, bool)
                    or not 0 <= correct_index < len(options)):
                raise ValidationError(
                    f"Single-choice question {question_id} has correct_index {correct_index!r} "
                    f"outside 0..{len(options) - 1}"
                )
            options = tuple(options)
        elif options is not None or correct_index is not None:
            raise ValidationError(f"Question {question_id} of type {question_type.value} cannot carry options")

        return Question(
            id=question_id,
            text=self._require(entry, "text", "Question"),
            type=question_type,
            marks=marks,
            chapter_id=chapter_id,
            options=options,
            correct_index=correct_index,
            concept_id=concept_id,
        )

    def _resolve_ids(self, question_ids: Iterable[str], bank_name: str) -> Tuple[Question, ...]:
        resolved = []
        for question_id in question_ids:
            question = self._questions.get(question_id)
            if question is None:
                raise ValidationError(f"{bank_name} references unknown question {question_id}")
            resolved.append(question)
        return tuple(resolved)

    def _load_banks(self, master_bank: Dict[str, List[str]], practice_bank: List[str]):
        unknown_sections = set(master_bank) - set(SECTION_KEYS)
        if unknown_sections:
            raise ValidationError(f"Master bank has unknown sections: {sorted(unknown_sections)}")

        for section in SECTION_KEYS:
            self._master_bank[section] = self._resolve_ids(
                master_bank.get(section, []), f"Master bank section {section}"
            )

        self._practice_bank = self._resolve_ids(practice_bank, "Practice bank")

    # ─── Lookups ─────────────────────────────────────────────────────────────

    def get_subject(self, subject_id: str) -> Optional[Subject]:
        return self._subjects.get(subject_id)

    def get_chapter(self, chapter_id: str) -> Optional[Chapter]:
        return self._chapters.get(chapter_id)

    def get_concept(self, concept_id: str) -> Optional[Concept]:
        return self._concepts.get(concept_id)

    def get_question(self, question_id: str) -> Optional[Question]:
        return self._questions.get(question_id)

    def subjects(self) -> List[Subject]:
        return list(self._subjects.values())

    def chapters(self) -> List[Chapter]:
        return list(self._chapters.values())

    def chapters_for(self, subject_id: str) -> List[Chapter]:
        """Chapters of a subject in catalog order (empty for unknown subjects)"""
        return [chapter for chapter in self._chapters.values() if chapter.subject_id == subject_id]

    def concepts_for(self, chapter_ids: Iterable[str]) -> List[Concept]:
        wanted = set(chapter_ids)
        return [concept for concept in self._concepts.values() if concept.chapter_id in wanted]

    def questions_for(self, chapter_ids: Iterable[str],
                      question_type: Optional[QuestionType] = None) -> List[Question]:
        """Questions tagged with any of the chapters, in catalog order"""
        wanted = set(chapter_ids)
        return [
            question for question in self._questions.values()
            if question.chapter_id in wanted and (question_type is None or question.type is question_type)
        ]

    def master_pool(self, section: str) -> Tuple[Question, ...]:
        if section not in self._master_bank:
            raise ValidationError(f"Unknown exam section: {section}")
        return self._master_bank[section]

    def practice_pool(self) -> Tuple[Question, ...]:
        return self._practice_bank

    def search_chapters(self, subject_id: str, term: str = "") -> List[Chapter]:
        term = (term or "").strip().lower()
        return [chapter for chapter in self.chapters_for(subject_id) if term in chapter.name.lower()]

    def search_concepts(self, chapter_ids: Iterable[str], term: str = "") -> List[Concept]:
        term = (term or "").strip().lower()
        return [concept for concept in self.concepts_for(chapter_ids) if term in concept.name.lower()]

    def get_stats(self) -> Dict[str, Any]:
        return {
            "version": self.version,
            "subjects": len(self._subjects),
            "chapters": len(self._chapters),
            "concepts": len(self._concepts),
            "questions": len(self._questions),
            "master_bank": {section: len(pool) for section, pool in self._master_bank.items()},
            "practice_bank": len(self._practice_bank),
        }


# Singleton pattern for content repository
_content_repository: Optional[ContentRepository] = None


def get_content_repository() -> ContentRepository:
    """Get content repository instance (singleton, loaded on first use)"""
    global _content_repository
    if _content_repository is None:
        _content_repository = ContentRepository.from_file(config.CATALOG_PATH)
    return _content_repository
