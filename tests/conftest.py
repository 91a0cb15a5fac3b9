"""Pytest configuration and shared fixtures."""

import json
import os
import random
from typing import Dict, Generator, List, Optional

import pytest
from fastapi.testclient import TestClient

# Set test environment variables before importing settings
os.environ.update({
    "ENVIRONMENT": "development",
    "KNOWLEDGE_BACKEND": "memory",
    "SESSION_BACKEND": "memory",
    "LOG_FILE": "",
    "LOG_LEVEL": "DEBUG",
})

from nursebot.store import InMemoryKnowledgeStore, KnowledgeStore, StorageError  # noqa: E402


CVVH_TEXT = (
    "# CVVH Manual Setup Guide\n\n"
    "Step-by-step instructions for loading and priming the CVVH circuit.\n\n"
    "#### Step 1\n- Load the set."
)

VENT_TEXT = (
    "# Ventilator Weaning\n\n"
    "Daily spontaneous breathing trial checklist for ICU patients on mechanical ventilation.\n\n"
    "#### Criteria\n- FiO2 below 0.5."
)

ER_TEXT = "# Triage Levels\n\nFive-level triage scale used in the emergency room."


def make_record(doc_id: str, keywords: List[str], text: str, **extra) -> Dict:
    record = {"id": doc_id, "keywords": keywords, "text": text}
    record.update(extra)
    return record


SCENARIO_DOCUMENTS = [
    make_record(
        "icu-cvvh-setup",
        ["CVVH", "hemofiltration"],
        CVVH_TEXT,
        videoUrl="https://www.youtube.com/watch?v=CXmG1o3RjQk",
    ),
    make_record("icu-vent-weaning", ["ventilator", "weaning"], VENT_TEXT),
    make_record("er-triage", ["triage"], ER_TEXT),
]

SCENARIO_INDEX = {
    "icu": "Department:icu",
    "er": "Department:er",
    "ward": "Department:ward",
    "cvvh": "icu-cvvh-setup",
    "hemofiltration": "icu-cvvh-setup",
    "ventilator": "icu-vent-weaning",
    "weaning": "icu-vent-weaning",
    "triage": "er-triage",
}


def seed_data(index: Optional[Dict[str, str]] = None, documents: Optional[List[Dict]] = None) -> Dict[str, str]:
    """Raw key-value contents for an in-memory knowledge store."""
    data = {"keyword-index": json.dumps(SCENARIO_INDEX if index is None else index)}
    for record in SCENARIO_DOCUMENTS if documents is None else documents:
        data[f"knowledge:{record['id']}"] = json.dumps(record)
    return data


class FailingStore(KnowledgeStore):
    """Store whose every call fails like an unreachable backend."""

    def __init__(self):
        self.calls = 0

    async def get(self, key):
        self.calls += 1
        raise StorageError("backend unavailable", key=key)

    async def put(self, key, value):
        self.calls += 1
        raise StorageError("backend unavailable", key=key)

    async def list(self, prefix=""):
        self.calls += 1
        raise StorageError("backend unavailable")

    async def delete(self, key):
        self.calls += 1
        raise StorageError("backend unavailable", key=key)


@pytest.fixture
def test_settings():
    """Provide test settings instance."""
    from nursebot.config import Settings
    return Settings(
        environment="development",
        knowledge_backend="memory",
        session_backend="memory",
        log_file="",
    )


@pytest.fixture
def store() -> InMemoryKnowledgeStore:
    """In-memory store seeded with the ICU/ER scenario."""
    return InMemoryKnowledgeStore(seed_data())


@pytest.fixture
def repository(store, test_settings):
    from nursebot.knowledge import KnowledgeRepository
    return KnowledgeRepository(store, test_settings)


@pytest.fixture
def engine(repository, test_settings):
    from nursebot.retrieval import RetrievalEngine
    return RetrievalEngine(repository, test_settings)


@pytest.fixture
def sessions():
    from nursebot.memory import SessionStore
    return SessionStore(max_history=10)


@pytest.fixture
def services(store, sessions, test_settings):
    from nursebot.api import build_services
    return build_services(test_settings, store, sessions=sessions, rng=random.Random(7))


@pytest.fixture
def client(services) -> Generator[TestClient, None, None]:
    """Provide FastAPI test client over the seeded store."""
    from nursebot.main import create_app
    app = create_app(services=services)
    with TestClient(app) as c:
        yield c
