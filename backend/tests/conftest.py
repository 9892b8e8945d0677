"""Shared test fixtures for Workasana backend tests."""

import os
import sys

import httpx
import pytest

# Ensure backend is on the path
sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

from workasana.client import WorkasanaClient
from workasana.gateway import AuthenticatedGateway
from workasana.session import MemoryStore, SessionContext

BASE_URL = "https://api.test"

ALICE = {"_id": "u1", "name": "Alice", "email": "alice@example.com"}


def _raw_tasks() -> list[dict]:
    """Task payloads in the mixed shapes the service actually returns."""
    return [
        {
            "_id": "t1",
            "name": "Write API docs",
            "status": "Completed",
            "priority": "Low",
            "owners": [{"_id": "u1", "name": "Alice"}],
            "tags": ["Docs"],
            "project": {"_id": "p1", "name": "Apollo"},
            "team": {"_id": "tm1", "name": "Core"},
            "dueDate": "2024-01-03",
            "createdAt": "2023-12-20T09:00:00.000Z",
            "updatedAt": "2024-01-02T15:30:00.000Z",
            "timeToComplete": 3,
        },
        {
            "_id": "t2",
            "name": "Fix login bug",
            "status": "To Do",
            "priority": "High",
            "owners": ["u2"],
            "tags": ["Bug", {"_id": "tag-ui", "name": "UI"}],
            "project": "p1",
            "team": "tm1",
            "dueDate": "2024-01-01",
            "createdAt": "2023-12-21T09:00:00.000Z",
            "timeToComplete": "2",
        },
        {
            "_id": "t3",
            "name": "Plan sprint",
            "description": "Quarterly planning for Zephyr",
            "status": "In Progress",
            "priority": None,
            "owners": ["u1", {"_id": "u3"}],
            "tags": [],
            "project": {"_id": "p2", "name": "Zephyr"},
            "team": None,
            "createdAt": "2023-12-22T09:00:00.000Z",
        },
    ]


@pytest.fixture
def raw_tasks():
    return _raw_tasks()


@pytest.fixture
def session():
    """Empty, signed-out session."""
    return SessionContext(MemoryStore())


@pytest.fixture
def signed_in_session():
    """Session holding a token and Alice's profile."""
    s = SessionContext(MemoryStore())
    s.sign_in("tok-123", ALICE)
    return s


@pytest.fixture
def make_client():
    """Build a WorkasanaClient whose HTTP calls go to ``handler``."""

    def _make(session: SessionContext, handler) -> WorkasanaClient:
        gateway = AuthenticatedGateway(
            session,
            base_url=BASE_URL,
            timeout=5,
            transport=httpx.MockTransport(handler),
        )
        return WorkasanaClient(gateway)

    return _make
