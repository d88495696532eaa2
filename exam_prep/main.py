# exam_prep/main.py
import logging
import os
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from .core.config import config
from .core.content import get_content_repository
from .core.ai_services import get_grading_service, close_grading_service
from .core.exceptions import (
    ExamPrepError,
    ExternalGradingFailure,
    InvalidIndex,
    NotFoundError,
    PreconditionViolation,
    ValidationError,
)
from .core.utils import cleanup_all, memory_manager
from .api.routes import router

# Setup logging
logging.basicConfig(
    level=getattr(logging, os.getenv('LOG_LEVEL', 'INFO').upper(), logging.INFO),
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)

@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan management"""
    logger.info("🚀 Exam Prep API starting...")

    try:
        # Validate configuration
        validation = config.validate()
        if not validation["valid"]:
            raise Exception(f"Configuration invalid: {validation['issues']}")

        logger.info("✅ Configuration validated")

        # Load content catalog
        logger.info("🔄 Loading content catalog...")
        repository = get_content_repository()
        logger.info(f"✅ Catalog loaded: {repository.get_stats()}")

        # Initialize grading service
        logger.info("🔄 Initializing grading service...")
        grading_health = get_grading_service().health_check()

        if grading_health["status"] != "healthy":
            raise Exception(f"Grading service validation failed: {grading_health}")

        logger.info(f"✅ Grading service ready ({grading_health['mode']})")

        memory_manager.start_cleanup_thread()

        logger.info("✅ All systems operational")
        logger.info(f"📊 Section quotas: {config.SECTION_QUOTAS}")
        logger.info(f"⏱️ Exam time limits: {config.EXAM_TIME_LIMITS} minutes")

    except Exception as e:
        logger.error(f"❌ Startup failed: {e}")
        raise Exception(f"Application startup failed: {e}")

    yield

    # Cleanup on shutdown
    logger.info("👋 Shutting down...")
    try:
        cleanup_all()
        close_grading_service()
        logger.info("✅ Graceful shutdown completed")
    except Exception as e:
        logger.error(f"❌ Shutdown error: {e}")

# Create FastAPI application
app = FastAPI(
    title=config.API_TITLE,
    description=config.API_DESCRIPTION,
    version=config.API_VERSION,
    lifespan=lifespan,
    docs_url="/docs",
    redoc_url="/redoc"
)

# Configure CORS
cors_origins = os.getenv('CORS_ORIGINS', 'http://localhost:5173,http://localhost:3000').split(',')

app.add_middleware(
    CORSMiddleware,
    allow_origins=cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include API routes
app.include_router(router)

# Exception handlers
ERROR_STATUS = {
    ValidationError: 400,
    InvalidIndex: 400,
    NotFoundError: 404,
    PreconditionViolation: 409,
    ExternalGradingFailure: 502,
}

def _error_response(exc: ExamPrepError, status_code: int, error: str) -> JSONResponse:
    content = {
        "error": error,
        "message": exc.message,
        "type": exc.error_type
    }
    if isinstance(exc, PreconditionViolation):
        content["precondition"] = exc.precondition
    return JSONResponse(status_code=status_code, content=content)

@app.exception_handler(ExamPrepError)
async def exam_prep_error_handler(request: Request, exc: ExamPrepError):
    """Map engine errors onto HTTP statuses"""
    status_code = next(
        (status for error_cls, status in ERROR_STATUS.items() if isinstance(exc, error_cls)), 500
    )

    if status_code >= 500:
        logger.error(f"{type(exc).__name__}: {exc.message}")
    else:
        logger.warning(f"{type(exc).__name__}: {exc.message}")

    return _error_response(exc, status_code, type(exc).__name__)

@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    """Global exception handler"""
    logger.error(f"Unhandled exception: {exc}", exc_info=True)

    return JSONResponse(
        status_code=500,
        content={
            "error": "Internal Server Error",
            "message": "An unexpected error occurred",
            "type": "server_error"
        }
    )

# Health check endpoints
@app.get("/health")
async def health_check():
    """Comprehensive health check"""
    health_status = {
        "status": "healthy",
        "service": "exam_prep_api",
        "version": config.API_VERSION
    }

    try:
        from .services.prep_service import get_prep_service
        prep_health = get_prep_service().health_check()
        health_status["prep_service"] = prep_health["status"]
        health_status["active_exams"] = prep_health.get("active_exams", 0)
        health_status["active_sessions"] = prep_health.get("active_sessions", 0)
    except Exception as e:
        health_status["prep_service"] = "error"
        health_status["status"] = "degraded"
        logger.warning(f"Prep service health check failed: {e}")

    try:
        grading_health = get_grading_service().health_check()
        health_status["grading_service"] = grading_health["status"]
        health_status["grading_mode"] = grading_health.get("mode")
    except Exception as e:
        health_status["grading_service"] = "error"
        health_status["status"] = "degraded"
        logger.warning(f"Grading service health check failed: {e}")

    return health_status

@app.get("/info")
async def api_info():
    """API information and capabilities"""
    return {
        "name": config.API_TITLE,
        "version": config.API_VERSION,
        "description": config.API_DESCRIPTION,
        "features": {
            "mock_exam_assembly": True,
            "practice_quizzes": True,
            "quiz_sessions": True,
            "ai_answer_sheet_grading": not config.USE_DUMMY_DATA,
            "dummy_grading": config.USE_DUMMY_DATA
        },
        "configuration": {
            "section_quotas": config.SECTION_QUOTAS,
            "exam_time_limits": list(config.EXAM_TIME_LIMITS),
            "practice_time_limits": list(config.PRACTICE_TIME_LIMITS),
            "quiz_session_size": config.QUIZ_SESSION_SIZE,
            "grade_thresholds": config.GRADE_THRESHOLDS,
            "grading_timeout_seconds": config.GRADING_TIMEOUT_SECONDS
        },
        "endpoints": {
            "subjects": "GET /api/catalog/subjects",
            "assemble_exam": "POST /api/exams",
            "list_exams": "GET /api/exams",
            "upload_answer_sheet": "POST /api/exams/{exam_id}/answer-sheet",
            "evaluate_exam": "POST /api/exams/{exam_id}/evaluate",
            "practice_quiz": "POST /api/practice-quizzes",
            "start_session": "POST /api/quiz/sessions",
            "evaluate_session": "POST /api/quiz/sessions/{session_id}/evaluate",
            "health": "GET /health",
            "docs": "GET /docs"
        }
    }

if __name__ == "__main__":
    import uvicorn

    host = os.getenv('API_HOST', '0.0.0.0')
    port = int(os.getenv('API_PORT', '8070'))
    debug_mode = os.getenv('DEBUG_MODE', 'false').lower() == 'true'

    logger.info("🚀 Starting Exam Prep API")
    logger.info(f"🌐 Server: http://{host}:{port}")
    logger.info(f"📚 Docs: http://{host}:{port}/docs")

    uvicorn.run(
        "exam_prep.main:app",
        host=host,
        port=port,
        reload=debug_mode,
        log_level=os.getenv('LOG_LEVEL', 'info').lower(),
        access_log=debug_mode
    )
