"""
Summarizator exception hierarchy.

All application-specific exceptions inherit from SummarizatorError,
enabling centralized error handling in the API middleware layer.

Families:
    CredentialError  - missing or rejected API key
    TransportError   - network-level failure talking to a provider
    ProtocolError    - unexpected HTTP status or response body
    StateError       - job conflicts and missing entities
    PermissionDeniedError - speech / microphone authorization refused
    StorageError     - persistence failures
"""

from datetime import UTC, datetime


class SummarizatorError(Exception):
    """Base exception for all Summarizator errors."""

    def __init__(
        self,
        detail: str = "An unexpected error occurred",
        code: str = "SUMMARIZATOR_ERROR",
        status_code: int = 500,
    ) -> None:
        self.detail = detail
        self.code = code
        self.status_code = status_code
        self.timestamp = datetime.now(UTC).isoformat()
        super().__init__(detail)


# ---------------------------------------------------------------------------
# Credentials
# ---------------------------------------------------------------------------


class CredentialError(SummarizatorError):
    """Raised when an API key is missing or rejected."""

    def __init__(self, detail: str = "Credential error", code: str = "CREDENTIAL_ERROR") -> None:
        super().__init__(detail=detail, code=code, status_code=401)


class MissingCredentialError(CredentialError):
    """Raised before any network call when no API key is stored for a provider."""

    def __init__(self, provider: str) -> None:
        self.provider = provider
        super().__init__(
            detail=f"No API key stored for provider: {provider}",
            code="MISSING_CREDENTIAL",
        )


class AuthenticationFailedError(CredentialError):
    """Raised when the provider answers HTTP 401."""

    def __init__(self, provider: str) -> None:
        self.provider = provider
        super().__init__(
            detail=f"Authentication failed for provider: {provider}",
            code="AUTHENTICATION_FAILED",
        )


# ---------------------------------------------------------------------------
# Transport / protocol
# ---------------------------------------------------------------------------


class TransportError(SummarizatorError):
    """Base class for network-level failures."""

    def __init__(self, detail: str = "Transport error", code: str = "TRANSPORT_ERROR") -> None:
        super().__init__(detail=detail, code=code, status_code=502)


class TransportFailureError(TransportError):
    """Raised on timeout, DNS or connection failures. The cause is chained."""

    def __init__(self, provider: str, cause: Exception) -> None:
        self.provider = provider
        self.cause = cause
        super().__init__(
            detail=f"Request to {provider} failed: {cause}",
            code="TRANSPORT_FAILURE",
        )


class ProtocolError(SummarizatorError):
    """Base class for unexpected HTTP statuses and unparseable bodies."""

    def __init__(
        self,
        detail: str = "Protocol error",
        code: str = "PROTOCOL_ERROR",
        status_code: int = 502,
    ) -> None:
        super().__init__(detail=detail, code=code, status_code=status_code)


class RateLimitedError(ProtocolError):
    """Raised when the provider answers HTTP 429.

    Surfaced distinctly so callers can back off; ``retry_after`` holds the
    provider's hint in seconds when one was sent.
    """

    def __init__(self, provider: str, retry_after: float | None = None) -> None:
        self.provider = provider
        self.retry_after = retry_after
        super().__init__(
            detail=f"Rate limit exceeded for provider: {provider}",
            code="RATE_LIMITED",
            status_code=429,
        )


class UnexpectedStatusError(ProtocolError):
    """Raised for any HTTP status other than 2xx, 401 and 429."""

    def __init__(self, provider: str, status: int) -> None:
        self.provider = provider
        self.status = status
        super().__init__(
            detail=f"Unexpected HTTP status {status} from provider: {provider}",
            code="UNEXPECTED_STATUS",
        )


class MalformedResponseError(ProtocolError):
    """Raised when a 2xx body lacks the provider's expected field path."""

    def __init__(self, provider: str, detail: str = "") -> None:
        self.provider = provider
        message = f"Malformed response from provider: {provider}"
        if detail:
            message = f"{message} ({detail})"
        super().__init__(detail=message, code="MALFORMED_RESPONSE")


# ---------------------------------------------------------------------------
# State
# ---------------------------------------------------------------------------


class StateError(SummarizatorError):
    """Base class for job-state and entity-lookup failures."""

    def __init__(
        self,
        detail: str = "Invalid state",
        code: str = "STATE_ERROR",
        status_code: int = 409,
    ) -> None:
        super().__init__(detail=detail, code=code, status_code=status_code)


class AlreadyInFlightError(StateError):
    """Raised when a job of the same kind is already running for a recording."""

    def __init__(self, recording_id, kind: str) -> None:
        super().__init__(
            detail=f"A {kind} job is already running for recording: {recording_id}",
            code="ALREADY_IN_FLIGHT",
        )


class TranscriptNotReadyError(StateError):
    """Raised when a summary is requested from a pending or empty transcript."""

    def __init__(self, transcript_id) -> None:
        super().__init__(
            detail=f"Transcript is not ready for summarization: {transcript_id}",
            code="TRANSCRIPT_NOT_READY",
        )


class RecordingStateError(StateError):
    """Raised on an invalid live-capture transition (e.g. pause while idle)."""

    def __init__(self, current: str, action: str) -> None:
        super().__init__(
            detail=f"Cannot {action} while recorder is {current}",
            code="RECORDING_STATE_ERROR",
        )


class NotFoundError(StateError):
    """Base class for missing entities and dangling references."""

    def __init__(self, detail: str, code: str = "NOT_FOUND") -> None:
        super().__init__(detail=detail, code=code, status_code=404)


class RecordingNotFoundError(NotFoundError):
    """Raised when a recording ID does not exist."""

    def __init__(self, recording_id) -> None:
        super().__init__(
            detail=f"Recording not found: {recording_id}",
            code="RECORDING_NOT_FOUND",
        )


class TranscriptNotFoundError(NotFoundError):
    """Raised when a recording has no transcript link or the document is gone."""

    def __init__(self, recording_id) -> None:
        super().__init__(
            detail=f"Transcript not found for recording: {recording_id}",
            code="TRANSCRIPT_NOT_FOUND",
        )


class SummaryNotFoundError(NotFoundError):
    """Raised when a recording has no summary link or the document is gone."""

    def __init__(self, recording_id) -> None:
        super().__init__(
            detail=f"Summary not found for recording: {recording_id}",
            code="SUMMARY_NOT_FOUND",
        )


class SecretNotFoundError(NotFoundError):
    """Raised when the secret store has no entry for a key."""

    def __init__(self, key: str) -> None:
        super().__init__(detail=f"Secret not found: {key}", code="SECRET_NOT_FOUND")


# ---------------------------------------------------------------------------
# Permissions, engines, audio, storage
# ---------------------------------------------------------------------------


class PermissionDeniedError(SummarizatorError):
    """Raised when speech-recognition or microphone access is refused."""

    def __init__(self, detail: str = "Speech recognition access denied") -> None:
        super().__init__(detail=detail, code="PERMISSION_DENIED", status_code=403)


class TranscriptionError(SummarizatorError):
    """Raised when STT processing fails or the engine is unavailable."""

    def __init__(self, detail: str = "Transcription failed") -> None:
        super().__init__(
            detail=detail,
            code="TRANSCRIPTION_ERROR",
            status_code=500,
        )


class AudioImportError(SummarizatorError):
    """Base class for audio import failures."""

    def __init__(self, detail: str, code: str, status_code: int = 422) -> None:
        super().__init__(detail=detail, code=code, status_code=status_code)


class UnsupportedFormatError(AudioImportError):
    """Raised when an imported file's extension is not a supported audio type."""

    def __init__(self, path: str) -> None:
        super().__init__(
            detail=f"Unsupported audio format: {path}",
            code="UNSUPPORTED_FORMAT",
            status_code=415,
        )


class CopyFailedError(AudioImportError):
    """Raised when the source audio cannot be copied into the recordings dir."""

    def __init__(self, path: str) -> None:
        super().__init__(detail=f"Failed to copy audio file: {path}", code="COPY_FAILED")


class DurationUnavailableError(AudioImportError):
    """Raised when the duration of an audio file cannot be determined."""

    def __init__(self, path: str) -> None:
        super().__init__(
            detail=f"Could not determine audio duration: {path}",
            code="DURATION_UNAVAILABLE",
        )


class StorageError(SummarizatorError):
    """Raised when encoding, decoding or writing persisted state fails."""

    def __init__(self, detail: str = "Storage operation failed") -> None:
        super().__init__(detail=detail, code="STORAGE_ERROR", status_code=500)
