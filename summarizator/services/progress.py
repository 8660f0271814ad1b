"""Per-job progress bookkeeping.

One :class:`JobProgress` entry is kept per ``(recording_id, kind)`` pair.
Every new job bumps the entry's generation and resets its fraction to 0;
reports and terminal states carrying an older generation are ignored, so
a superseded job can never move the progress of its successor.
"""

import asyncio
import logging
from collections import defaultdict
from collections.abc import AsyncIterator
from uuid import UUID

from summarizator.core.models import JobKind, JobProgress, JobState

logger = logging.getLogger(__name__)

ProgressKey = tuple[UUID, JobKind]


class ProgressTracker:
    """Monotonic progress fractions with polling and subscription access."""

    def __init__(self) -> None:
        self._entries: dict[ProgressKey, JobProgress] = {}
        self._subscribers: dict[ProgressKey, list[asyncio.Queue[JobProgress]]] = defaultdict(list)

    def get(self, recording_id: UUID, kind: JobKind) -> JobProgress:
        """Return the latest snapshot (an ``idle`` entry if no job ever ran)."""
        entry = self._entries.get((recording_id, kind))
        if entry is None:
            return JobProgress(recording_id=recording_id, kind=kind)
        return entry

    def is_running(self, recording_id: UUID, kind: JobKind) -> bool:
        return self.get(recording_id, kind).state == JobState.running

    def is_current(self, recording_id: UUID, kind: JobKind, generation: int) -> bool:
        return self.get(recording_id, kind).generation == generation

    def start(self, recording_id: UUID, kind: JobKind) -> int:
        """Register a new job and return its generation number."""
        generation = self.get(recording_id, kind).generation + 1
        self._publish(
            JobProgress(
                recording_id=recording_id,
                kind=kind,
                generation=generation,
                state=JobState.running,
                fraction=0.0,
            )
        )
        return generation

    def report(self, recording_id: UUID, kind: JobKind, generation: int, fraction: float) -> None:
        """Raise the fraction of a running job; lower or stale values are ignored."""
        entry = self.get(recording_id, kind)
        if entry.generation != generation or entry.state != JobState.running:
            return
        fraction = min(max(fraction, 0.0), 1.0)
        if fraction <= entry.fraction:
            return
        self._publish(entry.model_copy(update={"fraction": fraction}))

    def finish(
        self,
        recording_id: UUID,
        kind: JobKind,
        generation: int,
        state: JobState,
        error: str | None = None,
    ) -> None:
        """Record the terminal *state* of a job unless it has been superseded."""
        entry = self.get(recording_id, kind)
        if entry.generation != generation:
            return
        update: dict = {"state": state, "error": error}
        if state == JobState.succeeded:
            update["fraction"] = 1.0
        self._publish(entry.model_copy(update=update))

    def discard(self, recording_id: UUID) -> None:
        """Forget every entry for a deleted recording."""
        for kind in JobKind:
            self._entries.pop((recording_id, kind), None)

    async def subscribe(self, recording_id: UUID, kind: JobKind) -> AsyncIterator[JobProgress]:
        """Yield the current snapshot, then every later update, until the consumer stops."""
        key = (recording_id, kind)
        queue: asyncio.Queue[JobProgress] = asyncio.Queue()
        queue.put_nowait(self.get(recording_id, kind))
        self._subscribers[key].append(queue)
        try:
            while True:
                yield await queue.get()
        finally:
            self._subscribers[key].remove(queue)
            if not self._subscribers[key]:
                del self._subscribers[key]

    def _publish(self, entry: JobProgress) -> None:
        key = (entry.recording_id, entry.kind)
        self._entries[key] = entry
        for queue in self._subscribers.get(key, ()):
            queue.put_nowait(entry)
