# exam_prep/__init__.py
"""
Exam Prep Engine
Mock exam composition, single-attempt quiz sessions and evaluation
"""

__version__ = "1.0.0"
__author__ = "Exam Prep Team"
__description__ = "Exam composition and evaluation engine with AI-assisted answer sheet grading"

# Core module exports
from .core.config import config
from .main import app

__all__ = ["app", "config"]
