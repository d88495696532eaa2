# exam_prep/core/config.py
import os
from pathlib import Path
from typing import Dict, Any, List, Tuple
from dotenv import load_dotenv

# Load environment variables from .env file
load_dotenv()

# Base directory
BASE_DIR = Path(__file__).resolve().parent.parent


def _parse_int_tuple(raw: str) -> Tuple[int, ...]:
    return tuple(int(part.strip()) for part in raw.split(",") if part.strip())


def parse_grade_thresholds(raw: str) -> List[Tuple[int, str]]:
    """Parse "90:A+,80:A,..." into [(90, "A+"), (80, "A"), ...]"""
    thresholds = []
    for entry in raw.split(","):
        entry = entry.strip()
        if not entry:
            continue
        minimum, _, grade = entry.partition(":")
        if not grade.strip():
            raise ValueError(f"Grade threshold entry '{entry}' has no grade label")
        thresholds.append((int(minimum.strip()), grade.strip()))
    return thresholds


class Config:
    """Centralized configuration management"""

    # ==================== API Configuration ====================
    API_TITLE = "Exam Prep API"
    API_DESCRIPTION = "Mock exam composition, quiz sessions and evaluation"
    API_VERSION = "1.0.0"

    # ==================== Content Configuration ====================
    CATALOG_PATH = os.getenv("CATALOG_PATH", str(BASE_DIR / "content" / "catalog.json"))

    # ==================== Development Settings ====================
    USE_DUMMY_DATA = os.getenv("USE_DUMMY_DATA", "true").lower() == "true"

    # ==================== Exam Configuration ====================
    # Time limits (minutes)
    EXAM_TIME_LIMITS = _parse_int_tuple(os.getenv("EXAM_TIME_LIMITS", "80,90,120"))
    PRACTICE_TIME_LIMITS = _parse_int_tuple(os.getenv("PRACTICE_TIME_LIMITS", "15,30,40,80"))

    # Items drawn per section from the master bank
    SECTION_QUOTAS: Dict[str, int] = {"A": 5, "B": 4, "C": 3, "D": 2}
    SECTION_TITLES: Dict[str, str] = {
        "A": "Multiple Choice Questions",
        "B": "Short Answer Questions",
        "C": "Long Answer Questions",
        "D": "Application Based Questions",
    }

    PRACTICE_QUIZ_SIZE = int(os.getenv("PRACTICE_QUIZ_SIZE", "5"))
    QUIZ_SESSION_SIZE = int(os.getenv("QUIZ_SESSION_SIZE", "5"))

    # ==================== Evaluation Configuration ====================
    GRADE_THRESHOLDS = os.getenv("GRADE_THRESHOLDS", "90:A+,80:A,70:B+,60:B,50:C,40:D")
    GRADE_FLOOR = os.getenv("GRADE_FLOOR", "F")

    # ==================== AI Grading Configuration ====================
    GROQ_API_KEY = os.getenv("GROQ_API_KEY", "")
    GROQ_MODEL = os.getenv("GROQ_MODEL", "llama-3.3-70b-versatile")
    GROQ_TEMPERATURE = float(os.getenv("GROQ_TEMPERATURE", "0.2"))
    GROQ_MAX_TOKENS = int(os.getenv("GROQ_MAX_TOKENS", "2000"))
    GRADING_TIMEOUT_SECONDS = float(os.getenv("GRADING_TIMEOUT_SECONDS", "60"))

    # ==================== Memory Configuration ====================
    SESSION_EXPIRATION_SECONDS = int(os.getenv("SESSION_EXPIRATION_SECONDS", "10800"))  # 3 hours
    MEMORY_CLEANUP_INTERVAL = int(os.getenv("MEMORY_CLEANUP_INTERVAL", "1800"))  # 30 minutes

    # ==================== Environment Overrides ====================
    @classmethod
    def from_env(cls) -> 'Config':
        """Create config with environment variable overrides"""
        return cls()

    @property
    def grade_thresholds(self) -> List[Tuple[int, str]]:
        return parse_grade_thresholds(self.GRADE_THRESHOLDS)

    # ==================== Validation ====================
    def validate(self) -> Dict[str, Any]:
        """Validate configuration and return status"""
        issues = []

        try:
            thresholds = self.grade_thresholds
            minimums = [minimum for minimum, _ in thresholds]
            if not thresholds:
                issues.append("GRADE_THRESHOLDS must define at least one grade")
            elif minimums != sorted(set(minimums), reverse=True):
                issues.append("GRADE_THRESHOLDS must be strictly descending")
        except ValueError as e:
            issues.append(f"GRADE_THRESHOLDS is malformed: {e}")

        if not self.EXAM_TIME_LIMITS or any(limit <= 0 for limit in self.EXAM_TIME_LIMITS):
            issues.append("EXAM_TIME_LIMITS must be positive minutes")

        if any(limit <= 0 for limit in self.PRACTICE_TIME_LIMITS):
            issues.append("PRACTICE_TIME_LIMITS must be positive minutes")

        if self.PRACTICE_QUIZ_SIZE < 1 or self.QUIZ_SESSION_SIZE < 1:
            issues.append("PRACTICE_QUIZ_SIZE and QUIZ_SESSION_SIZE must be at least 1")

        if self.GRADING_TIMEOUT_SECONDS <= 0:
            issues.append("GRADING_TIMEOUT_SECONDS must be positive")

        if not Path(self.CATALOG_PATH).is_file():
            issues.append(f"CATALOG_PATH does not exist: {self.CATALOG_PATH}")

        if not self.USE_DUMMY_DATA and not self.GROQ_API_KEY:
            issues.append("GROQ_API_KEY is required when not using dummy data")

        return {
            "valid": len(issues) == 0,
            "issues": issues,
            "config_loaded": True,
            "using_dummy_data": self.USE_DUMMY_DATA
        }

# Global configuration instance
config = Config.from_env()

# Validate on import
validation_result = config.validate()
if not validation_result["valid"]:
    import logging
    logger = logging.getLogger(__name__)
    logger.warning(f"Configuration issues: {validation_result['issues']}")
