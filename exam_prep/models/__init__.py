# exam_prep/models/__init__.py
"""
Pydantic models for request validation and the grading capability wire format
"""

from .schemas import (
    AssembleExamRequest,
    PracticeQuizRequest,
    StartSessionRequest,
    SelectAnswerRequest,
    AnswerSheetUploadRequest,
    GradedQuestionPayload,
    GradingResponsePayload
)

__all__ = [
    "AssembleExamRequest",
    "PracticeQuizRequest",
    "StartSessionRequest",
    "SelectAnswerRequest",
    "AnswerSheetUploadRequest",
    "GradedQuestionPayload",
    "GradingResponsePayload"
]
