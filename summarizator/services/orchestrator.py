"""Pipeline orchestrator: Recording -> Transcript -> Summary.

The orchestrator owns the canonical, newest-first list of Recordings and
runs each transcription or summary as an independent ``asyncio.Task``.

Every job follows the same protocol:

1. Claim the ``(recording, kind)`` slot. A running job of the same kind
   is either rejected (``AlreadyInFlightError``) or, with
   ``supersede=True``, cancelled.
2. Persist a ``pending`` placeholder document and link it from the
   Recording, so an interrupted job leaves a discoverable record.
3. Run the engine in the background and persist the terminal state:
   ``ready`` with the produced text, or ``failed`` with empty text. A
   failed document is kept as evidence of the attempt and the error is
   raised from :meth:`PipelineJob.result`.

Each job carries a generation number; results from a superseded
generation are discarded instead of written.

Usage::

    orchestrator = PipelineOrchestrator(settings, storage, stt, llm, importer)
    await orchestrator.load()
    job = await orchestrator.begin_transcription(recording)
    transcript = await job.result()
"""

import asyncio
import logging
from collections.abc import AsyncIterator, Awaitable, Callable
from dataclasses import dataclass, field
from pathlib import Path
from uuid import UUID

from summarizator.core.config import Settings
from summarizator.core.exceptions import (
    AlreadyInFlightError,
    RecordingNotFoundError,
    StorageError,
    TranscriptNotFoundError,
    TranscriptNotReadyError,
)
from summarizator.core.models import (
    JobKind,
    JobProgress,
    JobState,
    ProcessingStatus,
    Recording,
    Summary,
    Transcript,
)
from summarizator.services.audio.importer import AudioImporter
from summarizator.services.llm.backoff import generate_with_backoff
from summarizator.services.llm.base import BaseLLM
from summarizator.services.llm.providers import LLMProvider, get_spec, summary_label
from summarizator.services.progress import ProgressTracker
from summarizator.services.storage.service import StorageService
from summarizator.services.transcription.base import BaseSTT

logger = logging.getLogger(__name__)

Document = Transcript | Summary


def _retrieve_outcome(task: asyncio.Task) -> None:
    # Marks the exception retrieved; _run has already logged and persisted it.
    if not task.cancelled():
        task.exception()


@dataclass
class PipelineJob:
    """Handle for one background transcription or summary job.

    ``placeholder`` is the pending document the job fills in.
    """

    recording_id: UUID
    kind: JobKind
    generation: int
    placeholder: Transcript | Summary
    task: asyncio.Task = field(repr=False)

    @property
    def document_id(self) -> UUID:
        return self.placeholder.id

    @property
    def done(self) -> bool:
        return self.task.done()

    async def result(self) -> Document | None:
        """Wait for the job and return its final document.

        Returns ``None`` when a newer job superseded this one and its
        result was discarded.

        Raises:
            The stage error (after the ``failed`` state has been persisted),
            or ``asyncio.CancelledError`` if the job was cancelled.
        """
        return await self.task


class PipelineOrchestrator:
    """Drives Recordings through transcription and summarization.

    Args:
        settings: Explicit configuration (summary defaults, retry policy).
        storage: Persistence facade.
        stt: Transcription engine.
        llm: LLM client.
        importer: Audio importer used by :meth:`import_audio`.
    """

    def __init__(
        self,
        settings: Settings,
        storage: StorageService,
        stt: BaseSTT,
        llm: BaseLLM,
        importer: AudioImporter | None = None,
    ) -> None:
        self._settings = settings
        self._storage = storage
        self._stt = stt
        self._llm = llm
        self._importer = importer or AudioImporter(settings)
        self._recordings: list[Recording] = []
        self._jobs: dict[tuple[UUID, JobKind], PipelineJob] = {}
        self._progress = ProgressTracker()
        self._index_lock = asyncio.Lock()
        self._background: set[asyncio.Task] = set()

    # ------------------------------------------------------------------
    # Recording list
    # ------------------------------------------------------------------

    async def load(self) -> list[Recording]:
        """Replace the in-memory list with the persisted index."""
        self._recordings = await self._storage.load_recordings()
        logger.info("Loaded %d recordings", len(self._recordings))
        return self.recordings

    @property
    def recordings(self) -> list[Recording]:
        """Copies of all recordings, newest first."""
        return [recording.model_copy() for recording in self._recordings]

    def _find(self, recording_id: UUID) -> Recording:
        for recording in self._recordings:
            if recording.id == recording_id:
                return recording
        raise RecordingNotFoundError(recording_id)

    def get_recording(self, recording_id: UUID) -> Recording:
        return self._find(recording_id).model_copy()

    def add_recording(self, recording: Recording) -> Recording:
        """Insert *recording* at the head of the list and persist in the background."""
        self._recordings.insert(0, recording.model_copy())
        self._persist_in_background()
        logger.info("Added recording %s (%s)", recording.id, recording.title)
        return recording.model_copy()

    async def import_audio(self, source_path: str | Path, title: str | None = None) -> Recording:
        """Import an external audio file and add it as a new recording."""
        recording = await self._importer.import_file(source_path, title)
        return self.add_recording(recording)

    async def delete_recording(self, recording_id: UUID) -> None:
        """Cancel the recording's jobs, remove its audio file and drop it from the index.

        Raises:
            RecordingNotFoundError: Unknown id.
            StorageError: The audio file exists but cannot be removed.
        """
        recording = self._find(recording_id)
        await self._cancel_jobs(recording_id)
        try:
            await asyncio.to_thread(Path(recording.file_path).unlink, missing_ok=True)
        except OSError as exc:
            raise StorageError(f"Failed to remove audio file: {recording.file_path}") from exc

        self._recordings = [r for r in self._recordings if r.id != recording_id]
        self._progress.discard(recording_id)
        async with self._index_lock:
            await self._storage.save_recordings(list(self._recordings))
        logger.info("Deleted recording %s", recording_id)

    def _persist_in_background(self) -> None:
        task = asyncio.create_task(self._save_index_quietly())
        self._background.add(task)
        task.add_done_callback(self._background.discard)

    async def _save_index_quietly(self) -> None:
        try:
            async with self._index_lock:
                await self._storage.save_recordings(list(self._recordings))
        except StorageError:
            # The in-memory list stays authoritative for this session.
            logger.exception("Background save of the recording index failed")

    async def _link_document(self, kind: JobKind, generation: int, document: Document) -> None:
        recording_id = document.recording_id
        async with self._index_lock:
            if not self._progress.is_current(recording_id, kind, generation):
                logger.info("Not linking superseded %s for %s", kind, recording_id)
                raise asyncio.CancelledError()
            recording = self._find(recording_id)
            if kind == JobKind.transcription:
                recording.transcript_id = document.id
            else:
                recording.summary_id = document.id
            try:
                await self._storage.update_recording(recording.model_copy())
            except RecordingNotFoundError:
                logger.debug("Recording %s not persisted yet; rewriting index", recording_id)
                await self._storage.save_recordings(list(self._recordings))

    # ------------------------------------------------------------------
    # Jobs
    # ------------------------------------------------------------------

    def _claim(self, recording_id: UUID, kind: JobKind, supersede: bool) -> int:
        key = (recording_id, kind)
        if self._progress.is_running(recording_id, kind):
            if not supersede:
                raise AlreadyInFlightError(recording_id, kind.value)
            previous = self._jobs.pop(key, None)
            if previous is not None and not previous.done:
                previous.task.cancel()
                logger.info(
                    "Superseding %s job for %s (generation %d)",
                    kind,
                    recording_id,
                    previous.generation,
                )
        return self._progress.start(recording_id, kind)

    async def _start_job(
        self,
        recording: Recording,
        kind: JobKind,
        generation: int,
        placeholder: Document,
        work: Callable[[Callable[[float], None]], Awaitable[str]],
    ) -> PipelineJob:
        """Register the job, then wait until its placeholder is persisted and linked.

        The task is registered before the first await so a superseding
        claim always finds it. A job superseded before linking returns with
        a cancelled task; a failed placeholder write is raised here.
        """
        key = (recording.id, kind)
        linked = asyncio.get_running_loop().create_future()
        task = asyncio.create_task(self._run(kind, generation, placeholder, work, linked))
        job = PipelineJob(
            recording_id=recording.id,
            kind=kind,
            generation=generation,
            placeholder=placeholder,
            task=task,
        )
        task.add_done_callback(_retrieve_outcome)
        self._jobs[key] = job

        await asyncio.wait({linked, task}, return_when=asyncio.FIRST_COMPLETED)
        if not linked.done() and not task.cancelled():
            if self._jobs.get(key) is job:
                del self._jobs[key]
            task.result()
        logger.info("Started %s job for %s (generation %d)", kind, recording.id, generation)
        return job

    async def _run(
        self,
        kind: JobKind,
        generation: int,
        placeholder: Document,
        work: Callable[[Callable[[float], None]], Awaitable[str]],
        linked: asyncio.Future,
    ) -> Document | None:
        recording_id = placeholder.recording_id

        def on_progress(fraction: float) -> None:
            self._progress.report(recording_id, kind, generation, fraction)

        try:
            await self._save_document(placeholder)
            await self._link_document(kind, generation, placeholder)
        except asyncio.CancelledError:
            self._progress.finish(recording_id, kind, generation, JobState.cancelled)
            raise
        except Exception as exc:
            self._progress.finish(recording_id, kind, generation, JobState.failed, str(exc))
            raise
        linked.set_result(None)

        try:
            text = await work(on_progress)
            if not self._progress.is_current(recording_id, kind, generation):
                logger.info("Discarding stale %s result for %s", kind, recording_id)
                return None
            final = placeholder.model_copy(update={"text": text, "status": ProcessingStatus.ready})
            await self._save_document(final)
        except asyncio.CancelledError:
            self._progress.finish(recording_id, kind, generation, JobState.cancelled)
            raise
        except Exception as exc:
            if not self._progress.is_current(recording_id, kind, generation):
                logger.info("Discarding stale %s failure for %s", kind, recording_id)
                raise
            failed = placeholder.model_copy(update={"text": "", "status": ProcessingStatus.failed})
            try:
                await self._save_document(failed)
            except StorageError:
                logger.exception("Could not persist failed %s for %s", kind, recording_id)
            self._progress.finish(recording_id, kind, generation, JobState.failed, str(exc))
            logger.warning("%s job for %s failed: %s", kind, recording_id, exc)
            raise

        self._progress.finish(recording_id, kind, generation, JobState.succeeded)
        logger.info("Finished %s job for %s", kind, recording_id)
        return final

    async def _save_document(self, document: Document) -> None:
        if isinstance(document, Transcript):
            await self._storage.save_transcript(document)
        else:
            await self._storage.save_summary(document)

    async def begin_transcription(
        self, recording: Recording, supersede: bool = False
    ) -> PipelineJob:
        """Start transcribing *recording* in the background.

        Raises:
            RecordingNotFoundError: Unknown recording.
            AlreadyInFlightError: A transcription is already running and
                *supersede* is false.
        """
        current = self._find(recording.id)
        generation = self._claim(current.id, JobKind.transcription, supersede)
        placeholder = Transcript(recording_id=current.id)
        file_path = current.file_path

        async def work(on_progress: Callable[[float], None]) -> str:
            await self._stt.ensure_authorized()
            return await self._stt.transcribe(file_path, on_progress=on_progress)

        return await self._start_job(
            current, JobKind.transcription, generation, placeholder, work
        )

    async def begin_summary(
        self,
        transcript: Transcript,
        recording: Recording,
        provider: LLMProvider | str | None = None,
        model: str | None = None,
        supersede: bool = False,
    ) -> PipelineJob:
        """Start summarizing *transcript* for *recording* in the background.

        The transcript's readiness is not re-checked here; callers consult
        :meth:`ensure_transcript_ready` first.

        Raises:
            RecordingNotFoundError: Unknown recording.
            TranscriptNotFoundError: The recording has no transcript link.
            AlreadyInFlightError: A summary is already running and
                *supersede* is false.
        """
        current = self._find(recording.id)
        if current.transcript_id is None:
            raise TranscriptNotFoundError(current.id)

        provider = LLMProvider.parse(provider or self._settings.llm_provider)
        model = model or self._settings.llm_model or get_spec(provider).default_model
        generation = self._claim(current.id, JobKind.summary, supersede)
        placeholder = Summary(
            transcript_id=transcript.id,
            recording_id=current.id,
            llm_type=summary_label(provider, model),
        )
        text = transcript.text
        instruction = self._settings.summary_instruction

        async def work(on_progress: Callable[[float], None]) -> str:
            return await generate_with_backoff(
                self._llm,
                text,
                instruction,
                provider,
                model,
                retries=self._settings.llm_rate_limit_retries,
                on_progress=on_progress,
            )

        return await self._start_job(current, JobKind.summary, generation, placeholder, work)

    @staticmethod
    def ensure_transcript_ready(transcript: Transcript) -> None:
        """Raise ``TranscriptNotReadyError`` unless *transcript* is ready and non-empty."""
        if not transcript.is_ready:
            raise TranscriptNotReadyError(transcript.id)

    async def _cancel_jobs(self, recording_id: UUID) -> None:
        tasks = []
        for kind in JobKind:
            job = self._jobs.pop((recording_id, kind), None)
            if job is not None and not job.done:
                job.task.cancel()
                tasks.append(job.task)
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)

    # ------------------------------------------------------------------
    # Documents and progress
    # ------------------------------------------------------------------

    async def load_transcript(self, recording_id: UUID) -> Transcript:
        return await self._storage.load_transcript(recording_id)

    async def load_summary(self, recording_id: UUID) -> Summary:
        return await self._storage.load_summary(recording_id)

    def progress(self, recording_id: UUID, kind: JobKind) -> JobProgress:
        return self._progress.get(recording_id, kind)

    def subscribe_progress(self, recording_id: UUID, kind: JobKind) -> AsyncIterator[JobProgress]:
        return self._progress.subscribe(recording_id, kind)

    async def purge_orphaned_documents(self) -> tuple[int, int]:
        """Delete documents no recording links to (never runs implicitly)."""
        async with self._index_lock:
            return await self._storage.purge_orphaned_documents()

    async def shutdown(self) -> None:
        """Cancel running jobs and wait for pending background saves."""
        tasks = [job.task for job in self._jobs.values() if not job.done]
        for task in tasks:
            task.cancel()
        self._jobs.clear()
        await asyncio.gather(*tasks, *self._background, return_exceptions=True)
        logger.info("Orchestrator shut down")
