# exam_prep/core/utils.py
import logging
import time
import threading
import uuid
from typing import Dict, Any, List, Optional
from datetime import datetime
from .config import config

logger = logging.getLogger(__name__)

class MemoryManager:
    """In-memory store for assembled exams, quiz sessions and uploaded answer sheets"""

    def __init__(self):
        self.exams = {}  # exam_id -> {"record", "created_at"}
        self.sessions = {}  # session_id -> {"session", "created_at"}
        self.answer_sheets = {}  # handle -> {"exam_id", "content", "created_at"}
        self._lock = threading.RLock()
        self._cleanup_thread = None
        self._stop_event = threading.Event()

    def start_cleanup_thread(self):
        """Start background cleanup thread"""
        if self._cleanup_thread and self._cleanup_thread.is_alive():
            return

        self._stop_event.clear()
        self._cleanup_thread = threading.Thread(target=self._periodic_cleanup, daemon=True)
        self._cleanup_thread.start()
        logger.info("✅ Memory cleanup thread started")

    def stop_cleanup_thread(self):
        self._stop_event.set()

    def _periodic_cleanup(self):
        """Periodic cleanup of expired data"""
        while not self._stop_event.wait(config.MEMORY_CLEANUP_INTERVAL):
            self.cleanup_expired_data()

    def cleanup_expired_data(self, now: Optional[float] = None) -> Dict[str, int]:
        """Drop exams, sessions and answer sheets older than the expiration window"""
        current_time = now if now is not None else time.time()
        max_age = config.SESSION_EXPIRATION_SECONDS

        with self._lock:
            expired_exams = [
                exam_id for exam_id, entry in self.exams.items()
                if current_time - entry["created_at"] > max_age
            ]
            for exam_id in expired_exams:
                self.exams.pop(exam_id, None)

            expired_sessions = [
                session_id for session_id, entry in self.sessions.items()
                if current_time - entry["created_at"] > max_age
            ]
            for session_id in expired_sessions:
                self.sessions.pop(session_id, None)

            expired_sheets = [
                handle for handle, entry in self.answer_sheets.items()
                if current_time - entry["created_at"] > max_age or entry["exam_id"] not in self.exams
            ]
            for handle in expired_sheets:
                self.answer_sheets.pop(handle, None)

        if expired_exams or expired_sessions or expired_sheets:
            logger.info(
                f"🧹 Cleanup: removed {len(expired_exams)} exams, {len(expired_sessions)} sessions, "
                f"{len(expired_sheets)} answer sheets"
            )

        return {
            "exams": len(expired_exams),
            "sessions": len(expired_sessions),
            "answer_sheets": len(expired_sheets),
        }

    # ─── Exams ───────────────────────────────────────────────────────────────

    def store_exam(self, exam_id: str, record: Any):
        with self._lock:
            self.exams[exam_id] = {"record": record, "created_at": time.time()}
        logger.info(f"✅ Exam stored: {exam_id}")

    def get_exam(self, exam_id: str) -> Optional[Any]:
        entry = self.exams.get(exam_id)
        return entry["record"] if entry else None

    def list_exams(self) -> List[Any]:
        """Stored exam records, newest first"""
        with self._lock:
            entries = sorted(reversed(list(self.exams.values())), key=lambda entry: entry["created_at"], reverse=True)
        return [entry["record"] for entry in entries]

    # ─── Quiz sessions ───────────────────────────────────────────────────────

    def store_session(self, session_id: str, session: Any):
        with self._lock:
            self.sessions[session_id] = {"session": session, "created_at": time.time()}
        logger.info(f"✅ Quiz session stored: {session_id}")

    def get_session(self, session_id: str) -> Optional[Any]:
        entry = self.sessions.get(session_id)
        return entry["session"] if entry else None

    # ─── Answer sheets ───────────────────────────────────────────────────────

    def store_answer_sheet(self, exam_id: str, content: str) -> str:
        """Keep an uploaded answer sheet and return its opaque handle"""
        handle = generate_upload_handle()
        with self._lock:
            self.answer_sheets[handle] = {
                "exam_id": exam_id,
                "content": content,
                "created_at": time.time()
            }
        logger.info(f"✅ Answer sheet stored for exam {exam_id}: {handle}")
        return handle

    def get_answer_sheet(self, handle: str) -> Optional[str]:
        entry = self.answer_sheets.get(handle)
        return entry["content"] if entry else None

    def discard_answer_sheet(self, handle: str):
        with self._lock:
            self.answer_sheets.pop(handle, None)

    def get_memory_stats(self) -> Dict[str, Any]:
        """Get memory usage statistics"""
        return {
            "active_exams": len(self.exams),
            "active_sessions": len(self.sessions),
            "answer_sheets": len(self.answer_sheets),
            "cleanup_thread_alive": self._cleanup_thread.is_alive() if self._cleanup_thread else False
        }

    def clear(self):
        with self._lock:
            self.exams.clear()
            self.sessions.clear()
            self.answer_sheets.clear()

class ValidationUtils:
    """Utility functions for data validation"""

    @staticmethod
    def validate_id(value: str) -> bool:
        """Validate uuid-based exam / session id format"""
        try:
            uuid.UUID(value)
            return True
        except (ValueError, TypeError, AttributeError):
            return False

    @staticmethod
    def sanitize_input(input_str: str, max_length: int = 20000) -> str:
        """Sanitize user input"""
        if not input_str:
            return ""

        sanitized = input_str.strip()

        if len(sanitized) > max_length:
            sanitized = sanitized[:max_length]

        return sanitized

class DateTimeUtils:
    """Utility functions for date/time operations"""

    @staticmethod
    def get_current_timestamp() -> float:
        """Get current timestamp"""
        return time.time()

    @staticmethod
    def format_timestamp(timestamp: float, format_str: str = "%Y-%m-%d %H:%M:%S") -> str:
        """Format timestamp to string"""
        try:
            dt = datetime.fromtimestamp(timestamp)
            return dt.strftime(format_str)
        except (ValueError, OSError, OverflowError):
            return "Invalid timestamp"

# Global instances
memory_manager = MemoryManager()

# Cleanup function for graceful shutdown
def cleanup_all():
    """Clean up all resources"""
    memory_manager.stop_cleanup_thread()
    memory_manager.cleanup_expired_data()
    logger.info("✅ All resources cleaned up")

# Helper functions for easy access
def generate_exam_id() -> str:
    """Generate unique exam / quiz id"""
    return str(uuid.uuid4())

def generate_session_id() -> str:
    """Generate unique quiz session id"""
    return str(uuid.uuid4())

def generate_upload_handle() -> str:
    """Generate opaque answer-sheet handle"""
    return f"sheet_{uuid.uuid4().hex}"

def round_half_up(numerator: int, denominator: int) -> int:
    """round(numerator / denominator) with .5 rounding up, in exact integer arithmetic"""
    if denominator <= 0:
        return 0
    return (2 * numerator + denominator) // (2 * denominator)
