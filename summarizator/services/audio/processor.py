"""PCM and audio-file helpers.

Writes captured PCM to WAV, measures signal level for live metering, and
probes the duration of arbitrary audio files through pydub.
"""

import wave
from pathlib import Path

import numpy as np
from pydub import AudioSegment

from summarizator.core.exceptions import DurationUnavailableError


class AudioProcessor:
    """Handles PCM audio data conversion and analysis.

    Args:
        sample_rate: Audio sample rate in Hz (default: 16 kHz).
        sample_width: Bytes per sample (2 = 16-bit signed PCM).
        channels: Number of audio channels (1 = mono).
    """

    def __init__(
        self,
        sample_rate: int = 16000,
        sample_width: int = 2,
        channels: int = 1,
    ) -> None:
        self.sample_rate = sample_rate
        self.sample_width = sample_width
        self.channels = channels

    @property
    def frame_size(self) -> int:
        """Bytes per PCM frame (all channels of one sample)."""
        return self.sample_width * self.channels

    def pcm_to_ndarray(self, pcm_data: bytes) -> np.ndarray:
        """Convert raw 16-bit PCM bytes to a float32 array in [-1.0, 1.0].

        Raises:
            ValueError: If data length is not aligned to the frame size.
        """
        if len(pcm_data) % self.frame_size != 0:
            raise ValueError(
                f"PCM data length ({len(pcm_data)}) is not aligned to frame size ({self.frame_size})"
            )
        return np.frombuffer(pcm_data, dtype=np.int16).astype(np.float32) / 32768.0

    def rms_level(self, pcm_data: bytes) -> float:
        """Return the RMS energy of a PCM chunk (0.0 for empty input)."""
        audio = self.pcm_to_ndarray(pcm_data)
        if len(audio) == 0:
            return 0.0
        return float(np.sqrt(np.mean(audio**2)))

    def pcm_duration(self, pcm_data: bytes | int) -> float:
        """Duration in seconds of *pcm_data* (or of that many bytes)."""
        size = pcm_data if isinstance(pcm_data, int) else len(pcm_data)
        return size / (self.sample_rate * self.frame_size)

    def save_wav(self, pcm_data: bytes, file_path: str | Path) -> str:
        """Write raw PCM bytes to a WAV file and return its absolute path.

        Raises:
            ValueError: If pcm_data is empty.
        """
        if not pcm_data:
            raise ValueError("Cannot save empty PCM data to WAV")
        path = Path(file_path)
        path.parent.mkdir(parents=True, exist_ok=True)
        with wave.open(str(path), "wb") as wf:
            wf.setnchannels(self.channels)
            wf.setsampwidth(self.sample_width)
            wf.setframerate(self.sample_rate)
            wf.writeframes(pcm_data)
        return str(path.resolve())


def probe_duration(file_path: str | Path) -> float:
    """Return the duration of an audio file in seconds using pydub.

    Blocking; call through ``asyncio.to_thread``.

    Raises:
        DurationUnavailableError: If the file cannot be decoded.
    """
    try:
        audio = AudioSegment.from_file(str(file_path))
    except Exception as exc:
        raise DurationUnavailableError(str(file_path)) from exc
    return len(audio) / 1000.0
