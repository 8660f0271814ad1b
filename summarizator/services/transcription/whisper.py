"""Whisper STT implementation using faster-whisper.

The WhisperModel is loaded lazily and cached at module level to avoid
repeated initialization overhead. Decoding runs in a worker thread;
progress is the share of the audio covered by the segments decoded so
far, and cancelling the awaiting task stops the worker at the next
segment boundary.
"""

import asyncio
import logging
import threading

from faster_whisper import WhisperModel

from summarizator.core.config import Settings
from summarizator.core.exceptions import TranscriptionError
from summarizator.services.transcription.base import BaseSTT, ProgressCallback

logger = logging.getLogger(__name__)

_model_cache: WhisperModel | None = None


class WhisperSTT(BaseSTT):
    """Speech-to-text provider using faster-whisper (CTranslate2).

    Args:
        settings: Application settings (model size, device, compute type,
            default language).
    """

    def __init__(self, settings: Settings) -> None:
        self._model_size = settings.whisper_model
        self._device = settings.whisper_device
        self._compute_type = settings.whisper_compute_type
        self._language = settings.whisper_default_language or None

    def _get_model(self) -> WhisperModel:
        """Return the cached WhisperModel, loading it on first use."""
        global _model_cache  # noqa: PLW0603
        if _model_cache is None:
            logger.info(
                "Loading Whisper model: %s (device=%s, compute=%s)",
                self._model_size,
                self._device,
                self._compute_type,
            )
            _model_cache = WhisperModel(
                self._model_size,
                device=self._device,
                compute_type=self._compute_type,
            )
        return _model_cache

    def _run_transcription(
        self,
        audio_path: str,
        cancelled: threading.Event,
        report: ProgressCallback,
    ) -> str:
        """Decode *audio_path* segment by segment (CPU-bound).

        Must be called via asyncio.to_thread(). The segment generator is
        consumed in this thread to avoid CTranslate2 cross-thread issues.
        """
        model = self._get_model()
        segments, info = model.transcribe(
            audio_path,
            language=self._language,
            beam_size=5,
            vad_filter=True,
        )
        duration = info.duration or 0.0
        parts: list[str] = []
        for segment in segments:
            if cancelled.is_set():
                logger.info("Transcription of %s cancelled", audio_path)
                break
            text = segment.text.strip()
            if text:
                parts.append(text)
            if duration > 0:
                report(min(segment.end / duration, 1.0))
        return " ".join(parts)

    async def transcribe(
        self,
        audio_path: str,
        on_progress: ProgressCallback | None = None,
    ) -> str:
        """Transcribe an audio file to text.

        Raises:
            TranscriptionError: If the model fails to load or decode the file.
        """
        loop = asyncio.get_running_loop()
        cancelled = threading.Event()

        def report(fraction: float) -> None:
            if on_progress is not None:
                loop.call_soon_threadsafe(on_progress, fraction)

        try:
            text = await asyncio.to_thread(
                self._run_transcription, audio_path, cancelled, report
            )
        except asyncio.CancelledError:
            cancelled.set()
            raise
        except Exception as exc:
            raise TranscriptionError(detail=f"Whisper transcription failed: {exc}") from exc

        if on_progress is not None:
            on_progress(1.0)
        return text
