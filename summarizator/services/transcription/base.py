"""Abstract speech-to-text interface."""

from abc import ABC, abstractmethod
from collections.abc import Callable

from summarizator.core.exceptions import PermissionDeniedError, TranscriptionError
from summarizator.core.models import SpeechAuthorization

ProgressCallback = Callable[[float], None]


class BaseSTT(ABC):
    """Speech-to-text engine: audio file in, text out.

    Engines that need user consent override :meth:`authorization_status`
    and :meth:`request_authorization`; local engines are always authorized.
    """

    def authorization_status(self) -> SpeechAuthorization:
        return SpeechAuthorization.authorized

    async def request_authorization(self) -> SpeechAuthorization:
        return self.authorization_status()

    async def ensure_authorized(self) -> None:
        """Request authorization if undetermined and fail unless granted.

        Raises:
            PermissionDeniedError: Access denied or restricted.
            TranscriptionError: Authorization still undetermined after a request.
        """
        status = self.authorization_status()
        if status == SpeechAuthorization.undetermined:
            status = await self.request_authorization()
        if status in (SpeechAuthorization.denied, SpeechAuthorization.restricted):
            raise PermissionDeniedError(f"Speech recognition access {status}")
        if status != SpeechAuthorization.authorized:
            raise TranscriptionError("Speech recognition unavailable")

    @abstractmethod
    async def transcribe(
        self,
        audio_path: str,
        on_progress: ProgressCallback | None = None,
    ) -> str:
        """Transcribe an audio file to plain text.

        Args:
            audio_path: Path to the audio file.
            on_progress: Called with the fraction of audio decoded so far.

        Returns:
            The transcript text (possibly empty).

        Raises:
            TranscriptionError: If the engine fails.
        """
        ...
