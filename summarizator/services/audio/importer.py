"""Import of external audio files into the recordings directory."""

import asyncio
import logging
import shutil
from pathlib import Path

from summarizator.core.config import Settings
from summarizator.core.exceptions import CopyFailedError, UnsupportedFormatError
from summarizator.core.models import Recording
from summarizator.core.utils import timestamped_filename
from summarizator.services.audio.processor import probe_duration

logger = logging.getLogger(__name__)

SUPPORTED_EXTENSIONS = frozenset({"mp3", "m4a", "wav", "aac", "aif", "aiff"})


def is_supported(path: str | Path) -> bool:
    """True when *path* has a supported audio extension (case-insensitive)."""
    return Path(path).suffix.lstrip(".").lower() in SUPPORTED_EXTENSIONS


class AudioImporter:
    """Copies a source file into ``recordings_dir`` and probes its duration.

    Args:
        settings: Application settings (``recordings_dir``).
    """

    def __init__(self, settings: Settings) -> None:
        self._settings = settings

    async def import_file(self, source_path: str | Path, title: str | None = None) -> Recording:
        """Import *source_path* and return a Recording for the copy.

        The copy is named ``<title>_<timestamp>.<ext>``; an existing file of
        that name is replaced. If the duration cannot be determined the copy
        is removed again.

        Raises:
            UnsupportedFormatError: Extension not in ``SUPPORTED_EXTENSIONS``.
            CopyFailedError: Source missing or unreadable, or destination unwritable.
            DurationUnavailableError: The copied file could not be decoded.
        """
        source = Path(source_path)
        if not is_supported(source):
            raise UnsupportedFormatError(str(source))

        title = title or source.stem
        recordings_dir = Path(self._settings.recordings_dir)
        destination = recordings_dir / timestamped_filename(title, source.suffix)

        try:
            recordings_dir.mkdir(parents=True, exist_ok=True)
            await asyncio.to_thread(shutil.copy2, source, destination)
        except OSError as exc:
            logger.warning("Copy of %s failed: %s", source, exc)
            raise CopyFailedError(str(source)) from exc

        try:
            duration = await asyncio.to_thread(probe_duration, destination)
        except Exception:
            destination.unlink(missing_ok=True)
            raise

        logger.info("Imported %s as %s (%.1fs)", source.name, destination.name, duration)
        return Recording(title=title, duration=duration, file_path=str(destination.resolve()))
