# exam_prep/core/ai_services.py
import json
import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional, Tuple

import groq
from groq import AsyncGroq
from pydantic import ValidationError as PayloadValidationError

from .config import config
from .content import ContentRepository, get_content_repository
from .exceptions import ExternalGradingFailure
from .prompts import PromptFormatter, PromptTemplates
from .utils import memory_manager, round_half_up
from ..models.schemas import GradingResponsePayload

logger = logging.getLogger(__name__)

# =============================================================================
# GRADING CAPABILITY CONTRACT
# =============================================================================

@dataclass(frozen=True)
class QuestionRef:
    """Question id qualified by the exam section it was placed in ("" when unsectioned)"""
    section: str
    question_id: str


@dataclass(frozen=True)
class GradingRequest:
    exam_id: str
    section_aware_question_ids: Tuple[QuestionRef, ...]
    uploaded_answer_reference: str


@dataclass(frozen=True)
class GradedQuestion:
    question_id: str
    attempted: bool
    marks_obtained: int
    marks_possible: int
    feedback: str = ""


@dataclass(frozen=True)
class GradingResponse:
    per_question: Tuple[GradedQuestion, ...]
    improvement_areas: Tuple[str, ...] = field(default_factory=tuple)
    strengths: Tuple[str, ...] = field(default_factory=tuple)


def parse_grading_payload(raw: Any) -> GradingResponse:
    """Validate a decoded grading payload and convert it into a GradingResponse"""
    try:
        payload = GradingResponsePayload.model_validate(raw)
    except PayloadValidationError as e:
        raise ExternalGradingFailure(f"Grading response is malformed: {e.error_count()} validation errors")

    return GradingResponse(
        per_question=tuple(
            GradedQuestion(
                question_id=item.question_id,
                attempted=item.attempted,
                marks_obtained=item.marks_obtained,
                marks_possible=item.marks_possible,
                feedback=item.feedback,
            )
            for item in payload.per_question
        ),
        improvement_areas=tuple(payload.improvement_areas),
        strengths=tuple(payload.strengths),
    )


# =============================================================================
# GRADING SERVICE
# =============================================================================

DUMMY_FEEDBACK = [
    "Excellent! Correct method and answer.",
    "Good approach but minor calculation error in the final step.",
    "Correct formula used but missed the units in final answer.",
    "Good derivation steps but explanation could be more detailed.",
]

DUMMY_IMPROVEMENT_AREAS = [
    "Be more careful with calculation steps",
    "Always include proper units in final answers",
    "Time management - attempt all questions",
]

DUMMY_STRENGTHS = [
    "Good problem-solving approach",
    "Neat presentation of solutions",
]


class GradingService:
    """Grading capability that turns an uploaded answer sheet into per-question marks and feedback"""

    def __init__(self, repository: Optional[ContentRepository] = None,
                 answer_sheet_resolver: Optional[Callable[[str], Optional[str]]] = None,
                 client: Optional[AsyncGroq] = None,
                 use_dummy: Optional[bool] = None):
        self.repository = repository or get_content_repository()
        self.resolve_answer_sheet = answer_sheet_resolver or memory_manager.get_answer_sheet
        self.use_dummy = config.USE_DUMMY_DATA if use_dummy is None else use_dummy
        self.client = client

        if self.use_dummy:
            logger.info("🔧 Grading service in dummy mode - using mock responses")
        elif self.client is None:
            self._init_groq_client()

    def _init_groq_client(self):
        """Initialize Groq client"""
        if not config.GROQ_API_KEY:
            raise ExternalGradingFailure("GROQ_API_KEY not provided")

        # No SDK-level retries: a failed grading call is terminal for the attempt
        self.client = AsyncGroq(
            api_key=config.GROQ_API_KEY,
            timeout=config.GRADING_TIMEOUT_SECONDS,
            max_retries=0
        )
        logger.info("✅ Groq grading client initialized")

    async def grade(self, request: GradingRequest) -> GradingResponse:
        """Grade one uploaded answer sheet; one-shot, no partial results"""
        logger.info(
            f"🎯 Grading exam {request.exam_id}: {len(request.section_aware_question_ids)} questions "
            f"(dummy: {self.use_dummy})"
        )

        answer_sheet = self.resolve_answer_sheet(request.uploaded_answer_reference)
        if answer_sheet is None:
            raise ExternalGradingFailure(
                f"Answer sheet {request.uploaded_answer_reference} is not available for grading"
            )

        questions = self._paper_for(request)

        if self.use_dummy:
            return self._generate_dummy_grading(questions, answer_sheet)

        prompt = PromptTemplates.create_grading_prompt(request.exam_id, questions, answer_sheet)
        response = await self._call_llm(prompt)

        try:
            raw = json.loads(PromptFormatter.clean_json_response(response))
        except json.JSONDecodeError as e:
            raise ExternalGradingFailure(f"Grading response is not valid JSON: {e}")

        result = parse_grading_payload(raw)
        logger.info(f"✅ Grading completed for exam {request.exam_id}")
        return result

    def _paper_for(self, request: GradingRequest) -> List[Dict[str, Any]]:
        questions = []
        for ref in request.section_aware_question_ids:
            question = self.repository.get_question(ref.question_id)
            if question is None:
                raise ExternalGradingFailure(f"Cannot grade unknown question {ref.question_id}")
            data = question.to_dict(include_answer=True)
            data["section"] = ref.section
            questions.append(data)
        return questions

    async def _call_llm(self, prompt: str) -> str:
        if not self.client:
            raise ExternalGradingFailure("Grading service not available")

        try:
            completion = await self.client.chat.completions.create(
                model=config.GROQ_MODEL,
                messages=[{"role": "user", "content": prompt}],
                temperature=config.GROQ_TEMPERATURE,
                max_completion_tokens=config.GROQ_MAX_TOKENS,
                response_format={"type": "json_object"}
            )
        except groq.APIError as e:
            logger.error(f"❌ Grading call failed: {e}")
            raise ExternalGradingFailure(f"Grading service call failed: {e}")

        if not completion.choices or not completion.choices[0].message.content:
            raise ExternalGradingFailure("Grading service returned no response")

        return completion.choices[0].message.content.strip()

    def _generate_dummy_grading(self, questions: List[Dict[str, Any]], answer_sheet: str) -> GradingResponse:
        """Deterministic mock grading for development without the LLM"""
        logger.info(f"🔧 Generating dummy grading for {len(questions)} questions")

        graded = []
        for position, question in enumerate(questions):
            possible = question["marks"]
            # Every fourth question is reported as skipped
            if position % 4 == 3:
                graded.append(GradedQuestion(
                    question_id=question["id"],
                    attempted=False,
                    marks_obtained=0,
                    marks_possible=possible,
                    feedback="Not attempted. Review this topic before the next attempt.",
                ))
                continue

            graded.append(GradedQuestion(
                question_id=question["id"],
                attempted=True,
                marks_obtained=round_half_up(possible * 80, 100),
                marks_possible=possible,
                feedback=DUMMY_FEEDBACK[position % len(DUMMY_FEEDBACK)],
            ))

        return GradingResponse(
            per_question=tuple(graded),
            improvement_areas=tuple(DUMMY_IMPROVEMENT_AREAS),
            strengths=tuple(DUMMY_STRENGTHS),
        )

    def health_check(self) -> Dict[str, Any]:
        """Report grading service readiness"""
        if self.use_dummy:
            return {
                "status": "healthy",
                "mode": "dummy",
                "client_ready": True,
                "message": "Running in dummy grading mode"
            }

        return {
            "status": "healthy" if self.client else "error",
            "mode": "live",
            "model": config.GROQ_MODEL,
            "client_ready": self.client is not None,
            "timeout_seconds": config.GRADING_TIMEOUT_SECONDS
        }

# Singleton pattern for grading service
_grading_service = None

def get_grading_service() -> GradingService:
    """Get grading service instance (singleton)"""
    global _grading_service
    if _grading_service is None:
        _grading_service = GradingService()
    return _grading_service

def close_grading_service():
    """Close grading service instance"""
    global _grading_service
    _grading_service = None
