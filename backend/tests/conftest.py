import os
import sys

sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

import pytest
from app.services.completion_store import InMemoryCompletionStore
from app.services.lesson_store import InMemoryDocumentStore, InMemoryLessonStore


@pytest.fixture(autouse=True)
def _memory_backend(monkeypatch):
    monkeypatch.setenv("LESSONCRAFT_STORE", "memory")
    monkeypatch.delenv("ENABLE_TELEMETRY_DB", raising=False)


@pytest.fixture
def lesson_store():
    return InMemoryLessonStore()


@pytest.fixture
def document_store():
    return InMemoryDocumentStore()


@pytest.fixture
def completion_store():
    return InMemoryCompletionStore()
