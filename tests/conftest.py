"""Shared pytest fixtures for the Summarizator test suite.

Provides settings rooted in a temporary directory, an in-memory SQLite
database, mock LLM/STT engines and sample audio.
"""

import math
import struct
import wave
from unittest.mock import AsyncMock

import pytest

from summarizator.core.config import Settings
from summarizator.services.storage.database import Database
from summarizator.services.storage.service import StorageService

# ---------------------------------------------------------------------------
# Configuration
# ---------------------------------------------------------------------------


@pytest.fixture
def settings(tmp_path):
    """Settings that keep every file the services write under ``tmp_path``."""
    return Settings(
        _env_file=None,
        database_url=f"sqlite+aiosqlite:///{tmp_path / 'summarizator.db'}",
        recordings_dir=str(tmp_path / "recordings"),
        secrets_path=str(tmp_path / "secrets.json"),
        secret_store="memory",
        llm_provider="openai",
        llm_model="",
        llm_rate_limit_retries=0,
    )


# ---------------------------------------------------------------------------
# Database Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
async def memory_db():
    """In-memory SQLite database with all tables created."""
    db = Database("sqlite+aiosqlite:///:memory:")
    await db.create_all()
    yield db
    await db.dispose()


@pytest.fixture
def db_engine(memory_db):
    return memory_db.engine


@pytest.fixture
def session_factory(memory_db):
    return memory_db.session_factory


@pytest.fixture
def storage(session_factory):
    """StorageService backed by the in-memory database."""
    return StorageService(session_factory)


# ---------------------------------------------------------------------------
# LLM / STT Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def mock_llm():
    """Mock LLM client whose ``generate`` returns a fixed summary."""
    from summarizator.services.llm.base import BaseLLM

    llm = AsyncMock(spec=BaseLLM)
    llm.generate.return_value = "Summary text"
    return llm


@pytest.fixture
def mock_stt():
    """Mock transcription engine whose ``transcribe`` returns "hello world"."""
    from summarizator.services.transcription.base import BaseSTT

    stt = AsyncMock(spec=BaseSTT)
    stt.transcribe.return_value = "hello world"
    return stt


# ---------------------------------------------------------------------------
# Audio Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def sample_pcm_bytes():
    """1 second of 440 Hz sine-wave PCM audio (16 kHz, 16-bit, mono)."""
    sample_rate = 16000
    amplitude = 16000  # ~50% of max int16
    return b"".join(
        struct.pack("<h", int(amplitude * math.sin(2 * math.pi * 440.0 * i / sample_rate)))
        for i in range(sample_rate)
    )


@pytest.fixture
def silent_pcm_bytes():
    """1 second of silence (16 kHz, 16-bit, mono)."""
    return b"\x00\x00" * 16000


@pytest.fixture
def sample_audio_path(tmp_path, sample_pcm_bytes):
    """A 1-second WAV file built from ``sample_pcm_bytes``."""
    wav_path = tmp_path / "source" / "lecture.wav"
    wav_path.parent.mkdir(parents=True, exist_ok=True)
    with wave.open(str(wav_path), "wb") as wf:
        wf.setnchannels(1)
        wf.setsampwidth(2)
        wf.setframerate(16000)
        wf.writeframes(sample_pcm_bytes)
    return str(wav_path)
