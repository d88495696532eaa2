# exam_prep/services/quiz_session.py
"""
Single-attempt quiz session over an ordered list of single-choice questions.

States: IN_PROGRESS -> COMPLETED (via advance() on the last question).
restart() returns to the initial state from anywhere. Every transition checks
its preconditions before touching state, so a rejected call leaves the
session exactly as it was.
"""

import logging
from enum import Enum
from typing import Any, Dict, List, Optional, Sequence

import markdown

from ..core.content import Question
from ..core.exceptions import InvalidIndex, PreconditionViolation, ValidationError
from ..core.utils import generate_session_id, round_half_up

logger = logging.getLogger(__name__)


class SessionStatus(Enum):
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"


def option_label(index: int) -> str:
    """0 -> 'A', 1 -> 'B', ..."""
    return chr(ord("A") + index)


class QuizSession:

    def __init__(self, questions: Sequence[Question], session_id: Optional[str] = None,
                 source: str = "catalog"):
        if not questions:
            raise ValidationError("A quiz session needs at least one question")

        not_single_choice = [question.id for question in questions if not question.is_single_choice]
        if not_single_choice:
            raise ValidationError(f"Quiz sessions only take single-choice questions: {not_single_choice}")

        self.id = session_id or generate_session_id()
        self.source = source
        self.questions = tuple(questions)
        self._reset()

    def _reset(self):
        self.current_index = 0
        self.answers: Dict[int, int] = {}
        self.status = SessionStatus.IN_PROGRESS
        self.score: Optional[int] = None

    # ─── Derived views ───────────────────────────────────────────────────────

    @property
    def current_question(self) -> Question:
        return self.questions[self.current_index]

    @property
    def progress(self) -> float:
        return (self.current_index + 1) / len(self.questions)

    @property
    def is_completed(self) -> bool:
        return self.status is SessionStatus.COMPLETED

    @property
    def can_advance(self) -> bool:
        return not self.is_completed and self.current_index in self.answers

    @property
    def can_retreat(self) -> bool:
        return not self.is_completed and self.current_index > 0

    def compute_score(self) -> int:
        """Count of answers matching the correct index; unanswered counts as incorrect"""
        return sum(
            1 for index, question in enumerate(self.questions)
            if self.answers.get(index) == question.correct_index
        )

    # ─── Transitions ─────────────────────────────────────────────────────────

    def _require_in_progress(self, action: str):
        if self.is_completed:
            raise PreconditionViolation(
                f"Cannot {action}: the quiz session is already completed",
                precondition="session_in_progress",
            )

    def select_answer(self, option_index: int):
        """Record (or overwrite) the answer for the current question"""
        self._require_in_progress("select an answer")

        option_count = len(self.current_question.options)
        if (not isinstance(option_index, int) or isinstance(option_index, bool)
                or not 0 <= option_index < option_count):
            raise InvalidIndex(option_index, option_count)

        self.answers[self.current_index] = option_index

    def advance(self) -> SessionStatus:
        """Move to the next question, or complete the session on the last one"""
        self._require_in_progress("advance")

        if self.current_index not in self.answers:
            raise PreconditionViolation(
                f"Question {self.current_index + 1} must be answered before advancing",
                precondition="current_question_answered",
            )

        if self.current_index < len(self.questions) - 1:
            self.current_index += 1
        else:
            self.score = self.compute_score()
            self.status = SessionStatus.COMPLETED
            logger.info(f"🏁 Quiz session completed: {self.id} ({self.score}/{len(self.questions)})")

        return self.status

    def retreat(self):
        """Step back one question, keeping every recorded answer"""
        self._require_in_progress("go back")

        if self.current_index == 0:
            raise PreconditionViolation(
                "Already at the first question",
                precondition="not_first_question",
            )

        self.current_index -= 1

    def restart(self):
        """Back to the first question with no answers, from any state"""
        self._reset()
        logger.info(f"🔄 Quiz session restarted: {self.id}")

    # ─── Presentation ────────────────────────────────────────────────────────

    def review(self) -> List[Dict[str, Any]]:
        items = []
        for index, question in enumerate(self.questions):
            selected = self.answers.get(index)
            items.append({
                "question_number": index + 1,
                "question_id": question.id,
                "text": question.text,
                "options": list(question.options),
                "selected_index": selected,
                "correct_index": question.correct_index,
                "correct": selected == question.correct_index,
            })
        return items

    def snapshot(self) -> Dict[str, Any]:
        """Read-only view of the session for rendering"""
        question = self.current_question
        data = {
            "session_id": self.id,
            "source": self.source,
            "status": self.status.value,
            "total_questions": len(self.questions),
            "question_number": self.current_index + 1,
            "current_index": self.current_index,
            "progress": self.progress,
            "current_question": {
                "id": question.id,
                "text": question.text,
                "question_html": markdown.markdown(question.text),
                "marks": question.marks,
                "options": [
                    {"index": index, "label": option_label(index), "text": option}
                    for index, option in enumerate(question.options)
                ],
            },
            "selected_index": self.answers.get(self.current_index),
            "answered_count": len(self.answers),
            "can_advance": self.can_advance,
            "can_retreat": self.can_retreat,
            "is_last_question": self.current_index == len(self.questions) - 1,
            "score": self.score,
        }

        if self.is_completed:
            data["percentage"] = round_half_up(100 * self.score, len(self.questions))
            data["review"] = self.review()

        return data
