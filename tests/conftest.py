"""
Shared fixtures for the exam prep test suite.
"""

import os

# Grading runs against the deterministic dummy capability unless a test injects its own
os.environ.setdefault("USE_DUMMY_DATA", "true")

import copy
import json

import pytest

from exam_prep.core.config import config
from exam_prep.core.content import ContentRepository
from exam_prep.core.utils import MemoryManager


with open(config.CATALOG_PATH, "r", encoding="utf-8") as _f:
    CATALOG_PAYLOAD = json.load(_f)


@pytest.fixture
def catalog_payload():
    """Deep copy of the packaged catalog, safe to mutate per test."""
    return copy.deepcopy(CATALOG_PAYLOAD)


@pytest.fixture
def repository():
    return ContentRepository(copy.deepcopy(CATALOG_PAYLOAD))


@pytest.fixture
def memory():
    manager = MemoryManager()
    yield manager
    manager.clear()
