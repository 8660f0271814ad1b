"""
Pydantic v2 domain and API models.

Domain   — Recording, Transcript, Summary, ProcessingStatus
Pipeline — JobKind, JobState, JobProgress
Capture  — RecordingState, SpeechAuthorization
API      — request / response envelopes
"""

from datetime import UTC, datetime
from enum import StrEnum
from uuid import UUID, uuid4

from pydantic import BaseModel, ConfigDict, Field, computed_field, model_validator


def _utcnow() -> datetime:
    return datetime.now(UTC)


# ---------------------------------------------------------------------------
# Health
# ---------------------------------------------------------------------------


class HealthResponse(BaseModel):
    """GET /health response."""

    status: str = "ok"
    version: str = "0.1.0"
    timestamp: datetime


# ---------------------------------------------------------------------------
# Processing status
# ---------------------------------------------------------------------------


class ProcessingStatus(StrEnum):
    """Lifecycle of a Transcript or Summary document.

    ``pending`` is written before the work starts so an interrupted job
    leaves a discoverable record; ``ready`` and ``failed`` are terminal.
    """

    pending = "pending"
    ready = "ready"
    failed = "failed"


# ---------------------------------------------------------------------------
# Recording
# ---------------------------------------------------------------------------


class Recording(BaseModel):
    """One captured or imported audio asset.

    A summary can only be linked once a transcript link exists; the check
    runs on construction and on every attribute assignment.
    """

    model_config = ConfigDict(validate_assignment=True)

    id: UUID = Field(default_factory=uuid4)
    title: str
    created_at: datetime = Field(default_factory=_utcnow)
    duration: float = Field(default=0.0, ge=0.0)
    file_path: str
    transcript_id: UUID | None = None
    summary_id: UUID | None = None

    @model_validator(mode="after")
    def _summary_requires_transcript(self) -> "Recording":
        if self.summary_id is not None and self.transcript_id is None:
            raise ValueError("summary_id cannot be set without transcript_id")
        return self


# ---------------------------------------------------------------------------
# Transcript / Summary
# ---------------------------------------------------------------------------


class Transcript(BaseModel):
    """Text derived from one Recording's audio."""

    id: UUID = Field(default_factory=uuid4)
    recording_id: UUID
    text: str = ""
    created_at: datetime = Field(default_factory=_utcnow)
    status: ProcessingStatus = ProcessingStatus.pending

    @computed_field
    @property
    def is_processing(self) -> bool:
        return self.status == ProcessingStatus.pending

    @property
    def is_ready(self) -> bool:
        """True when transcription finished with non-blank text."""
        return self.status == ProcessingStatus.ready and bool(self.text.strip())


class Summary(BaseModel):
    """LLM-generated digest of one Transcript."""

    id: UUID = Field(default_factory=uuid4)
    transcript_id: UUID
    recording_id: UUID
    text: str = ""
    created_at: datetime = Field(default_factory=_utcnow)
    status: ProcessingStatus = ProcessingStatus.pending
    llm_type: str = "Default"

    @computed_field
    @property
    def is_processing(self) -> bool:
        return self.status == ProcessingStatus.pending


# ---------------------------------------------------------------------------
# Pipeline jobs
# ---------------------------------------------------------------------------


class JobKind(StrEnum):
    """The two asynchronous pipeline stages."""

    transcription = "transcription"
    summary = "summary"


class JobState(StrEnum):
    """Observable state of the latest job for one (recording, kind) pair."""

    idle = "idle"
    running = "running"
    succeeded = "succeeded"
    failed = "failed"
    cancelled = "cancelled"


class JobProgress(BaseModel):
    """Snapshot of a job's progress, as exposed to pollers and subscribers."""

    recording_id: UUID
    kind: JobKind
    generation: int = 0
    state: JobState = JobState.idle
    fraction: float = Field(default=0.0, ge=0.0, le=1.0)
    error: str | None = None


# ---------------------------------------------------------------------------
# Capture / authorization
# ---------------------------------------------------------------------------


class RecordingState(StrEnum):
    """Live-capture state machine: idle → recording ⇄ paused → finished."""

    idle = "idle"
    recording = "recording"
    paused = "paused"
    finished = "finished"


class SpeechAuthorization(StrEnum):
    """Authorization states reported by a transcription engine."""

    authorized = "authorized"
    denied = "denied"
    restricted = "restricted"
    undetermined = "undetermined"


# ---------------------------------------------------------------------------
# API
# ---------------------------------------------------------------------------


class ImportRecordingRequest(BaseModel):
    """POST /recordings/import request body."""

    source_path: str
    title: str | None = None


class SummaryRequest(BaseModel):
    """POST /recordings/{id}/summary request body (defaults come from settings)."""

    provider: str | None = None
    model: str | None = None


class SecretUpdate(BaseModel):
    """PUT /providers/{provider}/secret request body."""

    secret: str = Field(min_length=1)


class ProviderInfo(BaseModel):
    """One entry of the provider catalogue."""

    name: str
    display_name: str
    default_model: str
    available_models: list[str] = Field(default_factory=list)
    requires_credential: bool = True
    has_credential: bool = False


class PurgeResponse(BaseModel):
    """Counts of orphaned documents removed by a purge."""

    transcripts: int = 0
    summaries: int = 0


class WebSocketMessageType(StrEnum):
    """Discriminator for messages sent over the WebSockets."""

    connected = "connected"
    state = "state"
    progress = "progress"
    level = "level"
    recording = "recording"
    error = "error"


class WebSocketMessage(BaseModel):
    """JSON message sent from server to client over WebSocket."""

    type: WebSocketMessageType
    data: dict = Field(default_factory=dict)


class ErrorResponse(BaseModel):
    """Standard error envelope returned by the API."""

    detail: str
    code: str
    timestamp: str
