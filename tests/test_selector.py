"""
Tests for the Selector: chapter selection and deterministic question picking.
"""

import pytest

from exam_prep.core.content import QuestionType
from exam_prep.core.exceptions import ValidationError
from exam_prep.core.selector import filter_questions, pick_questions, select_chapters


class TestSelectChapters:

    def test_returns_all_chapters_of_subject(self, repository):
        chapters = select_chapters(repository, "physics")
        assert {chapter.id for chapter in chapters} == {
            "mechanics", "thermodynamics", "optics", "electricity", "modern-physics"
        }

    def test_unknown_subject_is_empty(self, repository):
        assert select_chapters(repository, "astrology") == set()


class TestPickQuestions:
    """pick_questions is a prefix of the pool, never padded or shuffled."""

    def test_takes_prefix_in_pool_order(self, repository):
        pool = repository.master_pool("A")
        picked = pick_questions(pool, 3)
        assert [q.id for q in picked] == ["mock-a1", "mock-a2", "mock-a3"]

    def test_is_deterministic(self, repository):
        pool = repository.master_pool("B")
        assert pick_questions(pool, 4) == pick_questions(pool, 4)

    def test_under_filled_pool_returns_everything(self, repository):
        pool = repository.master_pool("D")
        picked = pick_questions(pool, 10)
        assert [q.id for q in picked] == ["mock-d1", "mock-d2"]

    def test_zero_quota_is_empty(self, repository):
        assert pick_questions(repository.master_pool("A"), 0) == []

    def test_negative_quota_rejected(self, repository):
        with pytest.raises(ValidationError):
            pick_questions(repository.master_pool("A"), -1)


class TestFilterQuestions:

    def test_filter_by_type_and_chapter(self, repository):
        pool = repository.questions_for([c.id for c in repository.chapters_for("math")])
        selected = filter_questions(pool, question_type=QuestionType.SINGLE_CHOICE, chapter_ids=["algebra"])
        assert [q.id for q in selected] == ["mock-a1", "drill-1", "drill-2", "drill-4"]

    def test_filter_by_concept(self, repository):
        pool = repository.questions_for(["geometry"])
        selected = filter_questions(pool, concept_ids=["mensuration"])
        assert [q.id for q in selected] == ["mock-b4", "drill-5"]
