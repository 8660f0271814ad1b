"""
Row-level repository for the Summarizator schema.

``StorageRepository`` receives an ``AsyncSession`` and provides the
data-access methods. It calls ``flush()`` rather than ``commit()`` so
that transaction boundaries are controlled by the caller (typically
:func:`session_scope`).
"""

import logging
import uuid
from collections.abc import Iterable

from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession

from summarizator.services.storage.models_db import (
    RecordingRecord,
    SummaryRecord,
    TranscriptRecord,
)

logger = logging.getLogger(__name__)


class StorageRepository:
    """Data-access layer for recordings, transcripts and summaries.

    Args:
        session: An active SQLAlchemy ``AsyncSession``.
    """

    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    # ------------------------------------------------------------------
    # Recording index
    # ------------------------------------------------------------------

    async def list_recordings(self) -> list[RecordingRecord]:
        """Return the whole index in stored order."""
        stmt = select(RecordingRecord).order_by(RecordingRecord.position)
        result = await self._session.execute(stmt)
        return list(result.scalars().all())

    async def get_recording(self, recording_id: uuid.UUID) -> RecordingRecord | None:
        return await self._session.get(RecordingRecord, recording_id)

    async def replace_recordings(self, records: Iterable[RecordingRecord]) -> None:
        """Drop every index row and write *records* in their given order."""
        await self._session.execute(
            delete(RecordingRecord).execution_options(synchronize_session=False)
        )
        # Rows loaded earlier in this session share primary keys with the
        # replacements; detach them so the identity map starts clean.
        self._session.expunge_all()
        rows = list(records)
        for position, row in enumerate(rows):
            row.position = position
        self._session.add_all(rows)
        await self._session.flush()
        logger.debug("Rewrote recording index (%d rows)", len(rows))

    # ------------------------------------------------------------------
    # Documents
    # ------------------------------------------------------------------

    async def upsert_transcript(self, row: TranscriptRecord) -> TranscriptRecord:
        """Write a transcript document, replacing any row with the same id."""
        merged = await self._session.merge(row)
        await self._session.flush()
        return merged

    async def get_transcript(self, transcript_id: uuid.UUID) -> TranscriptRecord | None:
        return await self._session.get(TranscriptRecord, transcript_id)

    async def upsert_summary(self, row: SummaryRecord) -> SummaryRecord:
        """Write a summary document, replacing any row with the same id."""
        merged = await self._session.merge(row)
        await self._session.flush()
        return merged

    async def get_summary(self, summary_id: uuid.UUID) -> SummaryRecord | None:
        return await self._session.get(SummaryRecord, summary_id)

    # ------------------------------------------------------------------
    # Maintenance
    # ------------------------------------------------------------------

    async def delete_unreferenced_transcripts(self, keep: set[uuid.UUID]) -> int:
        """Delete transcript rows whose id is not in *keep*; return the count."""
        return await self._delete_unreferenced(TranscriptRecord, keep)

    async def delete_unreferenced_summaries(self, keep: set[uuid.UUID]) -> int:
        """Delete summary rows whose id is not in *keep*; return the count."""
        return await self._delete_unreferenced(SummaryRecord, keep)

    async def _delete_unreferenced(self, model, keep: set[uuid.UUID]) -> int:
        result = await self._session.execute(select(model.id))
        orphan_ids = [row_id for (row_id,) in result.all() if row_id not in keep]
        if orphan_ids:
            await self._session.execute(
                delete(model)
                .where(model.id.in_(orphan_ids))
                .execution_options(synchronize_session=False)
            )
            await self._session.flush()
        return len(orphan_ids)
