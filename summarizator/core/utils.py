"""Shared utility functions for Summarizator."""

import re
import time

_UNSAFE_CHARS = re.compile(r"[^\w\-. ]+")


def safe_filename(title: str, fallback: str = "recording") -> str:
    """Turn a user-supplied title into a filesystem-safe file stem."""
    cleaned = _UNSAFE_CHARS.sub("", title).strip().replace(" ", "_")
    cleaned = cleaned.lstrip(".")
    return cleaned or fallback


def timestamped_filename(title: str, extension: str) -> str:
    """Build ``<title>_<unix timestamp>.<ext>`` for a new audio file."""
    return f"{safe_filename(title)}_{time.time():.3f}.{extension.lstrip('.')}"


def format_duration(seconds: float) -> str:
    """Format seconds as ``MM:SS``, or ``HH:MM:SS`` once past an hour."""
    total = max(int(seconds), 0)
    hours, remainder = divmod(total, 3600)
    minutes, secs = divmod(remainder, 60)
    if hours:
        return f"{hours:02d}:{minutes:02d}:{secs:02d}"
    return f"{minutes:02d}:{secs:02d}"
