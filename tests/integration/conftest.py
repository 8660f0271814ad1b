"""Integration test fixtures for Summarizator.

Builds the real application against a SQLite file under ``tmp_path`` with
mocked transcription and LLM engines. ``async_client`` runs the lifespan
explicitly because ``ASGITransport`` does not; ``test_client`` (used for
WebSockets) runs it through the ``TestClient`` context manager.
"""

import pytest
from httpx import ASGITransport, AsyncClient
from starlette.testclient import TestClient

from summarizator.api.app import create_app
from summarizator.services.secrets.memory import InMemorySecretStore


@pytest.fixture
def secret_store():
    return InMemorySecretStore({"openai": "sk-test"})


@pytest.fixture
def app(settings, secret_store, mock_stt, mock_llm):
    """Create a fresh FastAPI application with injected engines."""
    return create_app(settings, secrets=secret_store, stt=mock_stt, llm=mock_llm)


@pytest.fixture
async def async_client(app):
    """AsyncClient talking to the app in-process, with the lifespan running."""
    async with app.router.lifespan_context(app):
        transport = ASGITransport(app=app)
        async with AsyncClient(transport=transport, base_url="http://test") as c:
            yield c


@pytest.fixture
def test_client(app):
    """Synchronous TestClient for WebSocket tests."""
    with TestClient(app) as c:
        yield c


@pytest.fixture
def imported_recording(sample_audio_path):
    """Request body importing the sample WAV."""
    return {"source_path": sample_audio_path, "title": "Lecture"}

