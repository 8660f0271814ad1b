"""Live audio capture.

``AudioRecorder`` accumulates 16-bit mono PCM chunks pushed by a client
(the ``/ws/record`` WebSocket) and drives the capture state machine::

    idle -> recording <-> paused -> finished

Stopping writes the captured frames to a WAV file in ``recordings_dir``
and returns the resulting :class:`Recording`.
"""

import asyncio
import logging
from collections.abc import AsyncIterator
from pathlib import Path

from summarizator.core.config import Settings
from summarizator.core.exceptions import RecordingStateError
from summarizator.core.models import Recording, RecordingState
from summarizator.core.utils import format_duration, timestamped_filename
from summarizator.services.audio.processor import AudioProcessor

logger = logging.getLogger(__name__)


class AudioRecorder:
    """Capture state machine over client-supplied PCM.

    Args:
        settings: Application settings (``recordings_dir``).
        processor: PCM helper; defaults to 16 kHz, 16-bit mono.
    """

    def __init__(self, settings: Settings, processor: AudioProcessor | None = None) -> None:
        self._settings = settings
        self._processor = processor or AudioProcessor()
        self._state = RecordingState.idle
        self._title = ""
        self._buffer = bytearray()
        self._subscribers: list[asyncio.Queue[RecordingState]] = []

    @property
    def state(self) -> RecordingState:
        return self._state

    @property
    def title(self) -> str:
        return self._title

    @property
    def captured_duration(self) -> float:
        """Seconds of audio captured so far."""
        return self._processor.pcm_duration(len(self._buffer))

    # ------------------------------------------------------------------
    # Transitions
    # ------------------------------------------------------------------

    def _require(self, action: str, *allowed: RecordingState) -> None:
        if self._state not in allowed:
            raise RecordingStateError(self._state.value, action)

    def _transition(self, state: RecordingState) -> None:
        self._state = state
        for queue in self._subscribers:
            queue.put_nowait(state)
        logger.debug("Recorder state -> %s", state)

    def start(self, title: str) -> None:
        """Begin a new capture; allowed from ``idle`` or after a finished one."""
        self._require("start", RecordingState.idle, RecordingState.finished)
        self._title = title
        self._buffer.clear()
        self._transition(RecordingState.recording)
        logger.info("Recording started: %s", title)

    def write(self, pcm_data: bytes) -> float | None:
        """Append a PCM chunk and return its RMS level.

        Chunks arriving while paused are dropped and ``None`` is returned.

        Raises:
            RecordingStateError: If no capture is active.
            ValueError: If the chunk is not aligned to the PCM frame size.
        """
        self._require("write audio", RecordingState.recording, RecordingState.paused)
        if self._state == RecordingState.paused:
            return None
        level = self._processor.rms_level(pcm_data)
        self._buffer.extend(pcm_data)
        return level

    def pause(self) -> None:
        self._require("pause", RecordingState.recording)
        self._transition(RecordingState.paused)

    def resume(self) -> None:
        self._require("resume", RecordingState.paused)
        self._transition(RecordingState.recording)

    async def stop(self) -> Recording:
        """Finish the capture, write it as WAV and return the new Recording.

        The WAV is written on a worker thread so the event loop keeps serving.

        Raises:
            RecordingStateError: If no capture is active or nothing was captured.
        """
        self._require("stop", RecordingState.recording, RecordingState.paused)
        if not self._buffer:
            raise RecordingStateError(self._state.value, "stop without captured audio")

        destination = Path(self._settings.recordings_dir) / timestamped_filename(
            self._title, "wav"
        )
        pcm = bytes(self._buffer)
        file_path = await asyncio.to_thread(self._processor.save_wav, pcm, destination)
        duration = self._processor.pcm_duration(pcm)
        self._buffer.clear()
        self._transition(RecordingState.finished)
        logger.info("Recording stopped: %s (%s)", self._title, format_duration(duration))
        return Recording(title=self._title, duration=duration, file_path=file_path)

    # ------------------------------------------------------------------
    # Observation
    # ------------------------------------------------------------------

    def subscribe(self) -> asyncio.Queue[RecordingState]:
        """Return a queue that receives the current state and every later transition."""
        queue: asyncio.Queue[RecordingState] = asyncio.Queue()
        queue.put_nowait(self._state)
        self._subscribers.append(queue)
        return queue

    def unsubscribe(self, queue: asyncio.Queue[RecordingState]) -> None:
        if queue in self._subscribers:
            self._subscribers.remove(queue)

    async def transitions(self) -> AsyncIterator[RecordingState]:
        """Yield the current state and each transition until ``finished``."""
        queue = self.subscribe()
        try:
            while True:
                state = await queue.get()
                yield state
                if state == RecordingState.finished:
                    return
        finally:
            self.unsubscribe(queue)
