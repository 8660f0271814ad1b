"""
Persistence layer facade.

``StorageService`` exposes the whole-document operations the pipeline uses
and converts between ORM rows and the Pydantic domain models. Every call
runs in its own transaction; every write is a full overwrite (the entire
index for recordings, one whole row per transcript / summary), which
makes the operations idempotent but not incremental.

SQLAlchemy and decoding failures surface as :class:`StorageError`;
missing links and missing documents surface as ``NotFoundError`` subclasses.
"""

import logging
import uuid
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from pydantic import ValidationError
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from summarizator.core.exceptions import (
    RecordingNotFoundError,
    StorageError,
    SummaryNotFoundError,
    TranscriptNotFoundError,
)
from summarizator.core.models import Recording, Summary, Transcript
from summarizator.services.storage.database import session_scope
from summarizator.services.storage.models_db import (
    RecordingRecord,
    SummaryRecord,
    TranscriptRecord,
)
from summarizator.services.storage.repository import StorageRepository

logger = logging.getLogger(__name__)

_DOCUMENT_EXCLUDE = {"is_processing"}


def _to_recording(row: RecordingRecord) -> Recording:
    return Recording.model_validate(row, from_attributes=True)


def _to_transcript(row: TranscriptRecord) -> Transcript:
    return Transcript.model_validate(row, from_attributes=True)


def _to_summary(row: SummaryRecord) -> Summary:
    return Summary.model_validate(row, from_attributes=True)


class StorageService:
    """Durable storage for the recording index and per-document transcripts/summaries.

    Args:
        session_factory: ``async_sessionmaker`` bound to the application engine.
    """

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self._session_factory = session_factory

    @asynccontextmanager
    async def _repository(self) -> AsyncIterator[StorageRepository]:
        try:
            async with session_scope(self._session_factory) as session:
                yield StorageRepository(session)
        except SQLAlchemyError as exc:
            raise StorageError(f"Database operation failed: {exc}") from exc
        except ValidationError as exc:
            raise StorageError(f"Stored data could not be decoded: {exc}") from exc

    # ------------------------------------------------------------------
    # Recording index
    # ------------------------------------------------------------------

    async def save_recordings(self, recordings: list[Recording]) -> None:
        """Overwrite the stored index with *recordings*, preserving their order."""
        async with self._repository() as repo:
            await repo.replace_recordings(
                RecordingRecord(position=index, **recording.model_dump())
                for index, recording in enumerate(recordings)
            )

    async def load_recordings(self) -> list[Recording]:
        """Return the stored index; an empty list when nothing was ever saved."""
        async with self._repository() as repo:
            rows = await repo.list_recordings()
            return [_to_recording(row) for row in rows]

    async def update_recording(self, recording: Recording) -> None:
        """Replace the index entry with the same id and rewrite the index.

        Raises:
            RecordingNotFoundError: If no stored entry has ``recording.id``.
        """
        async with self._repository() as repo:
            recordings = [_to_recording(row) for row in await repo.list_recordings()]
            for index, existing in enumerate(recordings):
                if existing.id == recording.id:
                    recordings[index] = recording
                    break
            else:
                raise RecordingNotFoundError(recording.id)
            await repo.replace_recordings(
                RecordingRecord(position=index, **item.model_dump())
                for index, item in enumerate(recordings)
            )

    async def _get_recording(self, repo: StorageRepository, recording_id: uuid.UUID):
        row = await repo.get_recording(recording_id)
        return _to_recording(row) if row is not None else None

    # ------------------------------------------------------------------
    # Transcripts
    # ------------------------------------------------------------------

    async def save_transcript(self, transcript: Transcript) -> Transcript:
        """Write *transcript* as one whole document keyed by its id."""
        async with self._repository() as repo:
            await repo.upsert_transcript(
                TranscriptRecord(**transcript.model_dump(exclude=_DOCUMENT_EXCLUDE))
            )
        return transcript

    async def get_transcript(self, transcript_id: uuid.UUID) -> Transcript:
        """Fetch a transcript document by its own id."""
        async with self._repository() as repo:
            row = await repo.get_transcript(transcript_id)
            if row is None:
                raise TranscriptNotFoundError(f"transcript {transcript_id}")
            return _to_transcript(row)

    async def load_transcript(self, recording_id: uuid.UUID) -> Transcript:
        """Resolve the recording's transcript link and fetch the document.

        Raises:
            TranscriptNotFoundError: If the recording, its link or the linked
                document is missing.
        """
        async with self._repository() as repo:
            recording = await self._get_recording(repo, recording_id)
            if recording is None or recording.transcript_id is None:
                raise TranscriptNotFoundError(recording_id)
            row = await repo.get_transcript(recording.transcript_id)
            if row is None:
                logger.warning(
                    "Recording %s links missing transcript %s",
                    recording_id,
                    recording.transcript_id,
                )
                raise TranscriptNotFoundError(recording_id)
            return _to_transcript(row)

    # ------------------------------------------------------------------
    # Summaries
    # ------------------------------------------------------------------

    async def save_summary(self, summary: Summary) -> Summary:
        """Write *summary* as one whole document keyed by its id."""
        async with self._repository() as repo:
            await repo.upsert_summary(
                SummaryRecord(**summary.model_dump(exclude=_DOCUMENT_EXCLUDE))
            )
        return summary

    async def get_summary(self, summary_id: uuid.UUID) -> Summary:
        """Fetch a summary document by its own id."""
        async with self._repository() as repo:
            row = await repo.get_summary(summary_id)
            if row is None:
                raise SummaryNotFoundError(f"summary {summary_id}")
            return _to_summary(row)

    async def load_summary(self, recording_id: uuid.UUID) -> Summary:
        """Resolve the recording's summary link and fetch the document.

        Raises:
            SummaryNotFoundError: If the recording, its link or the linked
                document is missing.
        """
        async with self._repository() as repo:
            recording = await self._get_recording(repo, recording_id)
            if recording is None or recording.summary_id is None:
                raise SummaryNotFoundError(recording_id)
            row = await repo.get_summary(recording.summary_id)
            if row is None:
                logger.warning(
                    "Recording %s links missing summary %s",
                    recording_id,
                    recording.summary_id,
                )
                raise SummaryNotFoundError(recording_id)
            return _to_summary(row)

    # ------------------------------------------------------------------
    # Maintenance
    # ------------------------------------------------------------------

    async def purge_orphaned_documents(self) -> tuple[int, int]:
        """Delete transcripts and summaries that no recording links to.

        Regenerating a stage leaves the previous document behind; this is
        the only operation that removes such documents.

        Returns:
            ``(transcripts_deleted, summaries_deleted)``.
        """
        async with self._repository() as repo:
            recordings = [_to_recording(row) for row in await repo.list_recordings()]
            transcript_ids = {r.transcript_id for r in recordings if r.transcript_id}
            summary_ids = {r.summary_id for r in recordings if r.summary_id}
            transcripts = await repo.delete_unreferenced_transcripts(transcript_ids)
            summaries = await repo.delete_unreferenced_summaries(summary_ids)
        if transcripts or summaries:
            logger.info(
                "Purged %d orphaned transcripts and %d orphaned summaries",
                transcripts,
                summaries,
            )
        return transcripts, summaries
