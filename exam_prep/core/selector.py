# exam_prep/core/selector.py
"""Pure selection helpers over the content repository. Deterministic, no randomization."""

import logging
from typing import Iterable, List, Optional, Sequence, Set

from .content import Chapter, ContentRepository, Question, QuestionType
from .exceptions import ValidationError

logger = logging.getLogger(__name__)


def select_chapters(repository: ContentRepository, subject_id: str) -> Set[Chapter]:
    """All chapters of the subject; empty for an unknown subject"""
    return set(repository.chapters_for(subject_id))


def pick_questions(pool: Sequence[Question], quota: int) -> List[Question]:
    """First ``quota`` questions of ``pool`` in pool order. Under-fill returns the whole pool."""
    if quota < 0:
        raise ValidationError(f"Quota must not be negative, got {quota}")

    picked = list(pool[:quota])
    if len(picked) < quota:
        logger.warning(f"Pool under-filled: wanted {quota}, got {len(picked)}")
    return picked


def filter_questions(pool: Iterable[Question],
                     question_type: Optional[QuestionType] = None,
                     chapter_ids: Optional[Iterable[str]] = None,
                     concept_ids: Optional[Iterable[str]] = None) -> List[Question]:
    """Narrow a pool by type / chapter / concept, keeping relative order"""
    chapters = set(chapter_ids) if chapter_ids is not None else None
    concepts = set(concept_ids) if concept_ids is not None else None

    selected = []
    for question in pool:
        if question_type is not None and question.type is not question_type:
            continue
        if chapters is not None and question.chapter_id not in chapters:
            continue
        if concepts is not None and question.concept_id not in concepts:
            continue
        selected.append(question)
    return selected
