import copy

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from ltconnect.configs.settings import Settings
from ltconnect.core.bulk_save import BulkSaveTarget
from ltconnect.storage.db import Base
import ltconnect.storage.models  # noqa: F401
from ltconnect.storage.documents import SqlDocumentStore


GENERATED = {
    "analysis": {
        "summary": "Customer portal with reporting.",
        "complexity": "HIGH",
        "estimatedDuration": "3 months",
        "recommendedTeamSize": 4,
    },
    "clientRequirements": [
        {"title": "Customer portal", "clientName": "Acme", "description": "Self-service portal", "priority": "HIGH"},
        {"title": "Monthly reporting", "clientName": "Acme", "description": "PDF reports", "priority": "MEDIUM"},
    ],
    "functionalRequirements": [
        {
            "title": "Login",
            "description": "Email + password sign in",
            "type": "FUNCTIONAL",
            "priority": "HIGH",
            "complexity": "MEDIUM",
            "acceptanceCriteria": ["User can sign in", "Lockout after 5 failures"],
            "businessRules": ["Passwords expire after 90 days"],
        },
        {
            "title": "Reports",
            "description": "Monthly usage reports",
            "type": "BUSINESS",
            "priority": "MEDIUM",
            "complexity": "HIGH",
            "acceptanceCriteria": [],
            "businessRules": [],
        },
        {"title": "Password reset", "description": "Reset by email", "priority": "MEDIUM", "parentId": "fr-0"},
        {"title": "Export CSV", "description": "Download as CSV", "priority": "LOW", "parentId": "fr-1"},
    ],
    "epics": [
        {"name": "Audit Trail", "description": "Track changes", "color": "#ff0000", "functionalRequirementIds": ["fr-1", "fr-0"]},
        {"name": "Onboarding", "description": "", "functionalRequirementIds": []},
    ],
    "tasks": [
        {"title": "Build login form", "description": "", "priority": "HIGH", "estimatedHours": 6, "epicId": "0", "labels": ["frontend"]},
        {"title": "Wire CSV export", "description": "", "priority": "MEDIUM", "estimatedHours": 4, "epicId": "1", "labels": []},
        {"title": "Write docs", "description": "", "priority": "LOW", "estimatedHours": 2, "labels": []},
    ],
    "timeline": {
        "projectDuration": "3 months",
        "milestones": [{"name": "MVP", "date": "2026-01-15", "description": "Portal live"}],
    },
}


@pytest.fixture
def generated():
    return copy.deepcopy(GENERATED)


@pytest.fixture
def db():
    """In-memory SQLite session with the documents table."""
    engine = create_engine(
        "sqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    SessionLocal = sessionmaker(bind=engine, autocommit=False, autoflush=False)
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()
        engine.dispose()


@pytest.fixture
def store(db):
    return SqlDocumentStore(db)


@pytest.fixture
def settings():
    return Settings(_env_file=None)


@pytest.fixture
def target():
    return BulkSaveTarget(project_id="proj-1", project_code="TE", workspace_id="ws-1", user_id="user-1")


class FlakyStore:
    """Wraps a DocumentStore and fails the n-th call of one operation."""

    def __init__(self, inner, fail_on: int, op: str = "create", message: str = "network timeout"):
        self.inner = inner
        self.fail_on = fail_on
        self.op = op
        self.message = message
        self.calls = {"create": 0, "get": 0, "delete": 0}

    def _tick(self, op):
        self.calls[op] += 1
        if op == self.op and self.calls[op] == self.fail_on:
            raise RuntimeError(self.message)

    def create(self, collection, document_id, data):
        self._tick("create")
        return self.inner.create(collection, document_id, data)

    def get(self, collection, document_id):
        self._tick("get")
        return self.inner.get(collection, document_id)

    def delete(self, collection, document_id):
        self._tick("delete")
        return self.inner.delete(collection, document_id)


@pytest.fixture
def flaky_store(store):
    def _make(fail_on, op="create", message="network timeout"):
        return FlakyStore(store, fail_on, op=op, message=message)
    return _make
