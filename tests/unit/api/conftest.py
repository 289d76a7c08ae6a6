"""Fixtures for API router tests.

The app runs against the real lifecycle service on moto-mocked DynamoDB
with the in-memory processor; notifications go to a recording emitter.
"""

from typing import Any, Generator

import pytest
from fastapi.testclient import TestClient

from tests.fakes import RecordingEmitter


@pytest.fixture
def emitter() -> RecordingEmitter:
    return RecordingEmitter()


@pytest.fixture
def client(lifecycle: Any, emitter: RecordingEmitter) -> Generator[TestClient, None, None]:
    from casaora_api.dependencies import get_lifecycle_service, get_notification_dispatcher
    from casaora_api.main import app
    from casaora_bookings.services.notifications import NotificationDispatcher

    app.dependency_overrides[get_lifecycle_service] = lambda: lifecycle
    app.dependency_overrides[get_notification_dispatcher] = lambda: NotificationDispatcher(emitter)
    yield TestClient(app)
    app.dependency_overrides.clear()


def auth(actor_ref: str) -> dict[str, str]:
    """Headers API Gateway injects after validating the JWT."""
    return {"x-user-sub": actor_ref}
