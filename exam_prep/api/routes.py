# exam_prep/api/routes.py
import logging
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query

from ..core.exceptions import ExamPrepError, ValidationError
from ..core.utils import DateTimeUtils
from ..models.schemas import (
    AnswerSheetUploadRequest,
    AssembleExamRequest,
    PracticeQuizRequest,
    SelectAnswerRequest,
    StartSessionRequest,
)
from ..services.prep_service import PrepService, get_prep_service

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get("/")
async def home():
    """Home endpoint"""
    return {
        "service": "Exam Prep API",
        "version": "1.0.0",
        "status": "operational"
    }

# ==================== Catalog ====================

@router.get("/api/catalog/subjects")
async def list_subjects(service: PrepService = Depends(get_prep_service)):
    """Subjects available for exams and quizzes"""
    subjects = service.list_subjects()
    return {"count": len(subjects), "subjects": subjects}

@router.get("/api/catalog/subjects/{subject_id}/chapters")
async def list_chapters(subject_id: str, search: str = "",
                        service: PrepService = Depends(get_prep_service)):
    """Chapters of a subject, optionally filtered by a name search"""
    chapters = service.list_chapters(subject_id, search)
    return {"subject_id": subject_id, "count": len(chapters), "chapters": chapters}

@router.get("/api/catalog/concepts")
async def list_concepts(chapter_ids: List[str] = Query(default=[]), search: str = "",
                        service: PrepService = Depends(get_prep_service)):
    """Concepts belonging to the given chapters"""
    concepts = service.list_concepts(chapter_ids, search)
    return {"count": len(concepts), "concepts": concepts}

# ==================== Exams ====================

@router.post("/api/exams", status_code=201)
async def assemble_exam(request: AssembleExamRequest, service: PrepService = Depends(get_prep_service)):
    """Assemble a four-section mock exam"""
    try:
        record = service.assemble_exam(request.subject_id, request.chapter_ids, request.time_limit_minutes)
        return record.to_dict()
    except ExamPrepError:
        raise
    except Exception as e:
        logger.error(f"Exam assembly failed: {e}")
        raise HTTPException(status_code=500, detail=str(e))

@router.get("/api/exams")
async def list_exams(subject_id: Optional[str] = None, chapter_id: Optional[str] = None,
                     service: PrepService = Depends(get_prep_service)):
    """Past exams and practice quizzes, newest first"""
    records = service.list_exams(subject_id, chapter_id)
    return {
        "count": len(records),
        "exams": [record.summary() for record in records],
        "timestamp": DateTimeUtils.get_current_timestamp()
    }

@router.get("/api/exams/{exam_id}")
async def get_exam(exam_id: str, service: PrepService = Depends(get_prep_service)):
    """Full paper, status and report (once evaluated)"""
    return service.get_exam(exam_id).to_dict()

@router.post("/api/exams/{exam_id}/answer-sheet")
async def upload_answer_sheet(exam_id: str, request: AnswerSheetUploadRequest,
                              service: PrepService = Depends(get_prep_service)):
    """Attach the transcribed answer sheet; re-uploading replaces the previous one"""
    try:
        record = service.upload_answer_sheet(exam_id, request.content)
        return {
            "exam_id": exam_id,
            "status": record.status.value,
            "answer_sheet_uploaded": True
        }
    except ExamPrepError:
        raise
    except Exception as e:
        logger.error(f"Answer sheet upload failed: {e}")
        raise HTTPException(status_code=500, detail=str(e))

@router.post("/api/exams/{exam_id}/evaluate")
async def evaluate_exam(exam_id: str, service: PrepService = Depends(get_prep_service)):
    """Grade the uploaded answer sheet through the external grading capability"""
    try:
        record = await service.evaluate_exam(exam_id)
        return {
            "exam_id": exam_id,
            "status": record.status.value,
            "report": record.report.to_dict()
        }
    except ExamPrepError:
        raise
    except Exception as e:
        logger.error(f"Exam evaluation failed: {e}")
        raise HTTPException(status_code=500, detail=str(e))

# ==================== Practice Quizzes ====================

@router.post("/api/practice-quizzes", status_code=201)
async def assemble_practice_quiz(request: PracticeQuizRequest,
                                 service: PrepService = Depends(get_prep_service)):
    """Assemble a practice quiz from the practice bank"""
    try:
        record = service.assemble_practice_quiz(
            request.subject_id, request.chapter_ids, request.concept_ids, request.time_limit_minutes
        )
        return record.to_dict()
    except ExamPrepError:
        raise
    except Exception as e:
        logger.error(f"Practice quiz assembly failed: {e}")
        raise HTTPException(status_code=500, detail=str(e))

# ==================== Quiz Sessions ====================

@router.post("/api/quiz/sessions", status_code=201)
async def start_session(request: StartSessionRequest, service: PrepService = Depends(get_prep_service)):
    """Start a quiz session from an exam's Section A or from a subject's questions"""
    if request.exam_id:
        session = service.start_session_from_exam(request.exam_id)
    elif request.subject_id:
        session = service.start_session(request.subject_id, request.chapter_ids)
    else:
        raise ValidationError("Either exam_id or subject_id is required")
    return session.snapshot()

@router.get("/api/quiz/sessions/{session_id}")
async def get_session(session_id: str, service: PrepService = Depends(get_prep_service)):
    return service.get_session(session_id).snapshot()

@router.post("/api/quiz/sessions/{session_id}/answer")
async def select_answer(session_id: str, request: SelectAnswerRequest,
                        service: PrepService = Depends(get_prep_service)):
    return service.select_answer(session_id, request.option_index).snapshot()

@router.post("/api/quiz/sessions/{session_id}/advance")
async def advance(session_id: str, service: PrepService = Depends(get_prep_service)):
    return service.advance(session_id).snapshot()

@router.post("/api/quiz/sessions/{session_id}/retreat")
async def retreat(session_id: str, service: PrepService = Depends(get_prep_service)):
    return service.retreat(session_id).snapshot()

@router.post("/api/quiz/sessions/{session_id}/restart")
async def restart(session_id: str, service: PrepService = Depends(get_prep_service)):
    return service.restart(session_id).snapshot()

@router.post("/api/quiz/sessions/{session_id}/evaluate")
async def evaluate_session(session_id: str, service: PrepService = Depends(get_prep_service)):
    """Scored report for a completed quiz session"""
    report = service.evaluate_session(session_id)
    return {"session_id": session_id, "report": report.to_dict()}

# ==================== Maintenance ====================

@router.delete("/api/cleanup")
async def cleanup_resources(service: PrepService = Depends(get_prep_service)):
    """Drop expired exams, sessions and answer sheets"""
    try:
        return service.memory.cleanup_expired_data()
    except Exception as e:
        raise HTTPException(status_code=500, detail=str(e))
