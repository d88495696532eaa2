# exam_prep/models/schemas.py
from typing import List, Optional
from pydantic import BaseModel, Field


# ==================== API Requests ====================

class AssembleExamRequest(BaseModel):
    subject_id: str
    chapter_ids: List[str] = Field(default_factory=list)
    time_limit_minutes: int


class PracticeQuizRequest(BaseModel):
    subject_id: str
    chapter_ids: List[str] = Field(default_factory=list)
    concept_ids: List[str] = Field(default_factory=list)
    time_limit_minutes: Optional[int] = None


class StartSessionRequest(BaseModel):
    """Either ``exam_id`` (Section A of an assembled exam) or ``subject_id``"""
    subject_id: Optional[str] = None
    chapter_ids: Optional[List[str]] = None
    exam_id: Optional[str] = None


class SelectAnswerRequest(BaseModel):
    option_index: int


class AnswerSheetUploadRequest(BaseModel):
    content: str = Field(min_length=1, description="Transcribed answer sheet text")


# ==================== Grading Capability Wire Format ====================

class GradedQuestionPayload(BaseModel):
    question_id: str
    attempted: bool
    marks_obtained: int = Field(ge=0)
    marks_possible: int = Field(gt=0)
    feedback: str = ""


class GradingResponsePayload(BaseModel):
    per_question: List[GradedQuestionPayload]
    improvement_areas: List[str] = Field(default_factory=list)
    strengths: List[str] = Field(default_factory=list)
