"""
Audio module - live capture, file import and PCM helpers.
"""

from .importer import SUPPORTED_EXTENSIONS, AudioImporter
from .processor import AudioProcessor, probe_duration
from .recorder import AudioRecorder

__all__ = [
    "SUPPORTED_EXTENSIONS",
    "AudioImporter",
    "AudioProcessor",
    "AudioRecorder",
    "probe_duration",
]
