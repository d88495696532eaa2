# exam_prep/core/__init__.py
"""
Core module containing configuration, content catalog, grading capability, and utilities
"""

from .config import config
from .content import get_content_repository
from .ai_services import get_grading_service

__all__ = [
    "config",
    "get_content_repository",
    "get_grading_service"
]
