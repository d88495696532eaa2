# exam_prep/services/__init__.py
"""
Business logic services for exam assembly, quiz sessions and evaluation
"""

from .prep_service import get_prep_service

__all__ = [
    "get_prep_service"
]
