"""
SQLAlchemy ORM models.

Tables: ``recordings`` (one ordered index), ``transcripts`` and
``summaries`` (one row per document, keyed by the document's own UUID).

Document rows hold a plain ``recording_id`` column rather than a foreign
key: the recording index is rewritten wholesale and superseded documents
are allowed to outlive the link that pointed at them.
"""

import uuid
from datetime import UTC, datetime

from sqlalchemy import Float, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from summarizator.services.storage.database import Base


class RecordingRecord(Base):
    """One entry of the recording index."""

    __tablename__ = "recordings"

    id: Mapped[uuid.UUID] = mapped_column(primary_key=True)
    position: Mapped[int] = mapped_column(Integer, index=True)
    title: Mapped[str] = mapped_column(String(255))
    created_at: Mapped[datetime] = mapped_column(default=lambda: datetime.now(UTC))
    duration: Mapped[float] = mapped_column(Float, default=0.0)
    file_path: Mapped[str] = mapped_column(String(1024))
    transcript_id: Mapped[uuid.UUID | None] = mapped_column(nullable=True)
    summary_id: Mapped[uuid.UUID | None] = mapped_column(nullable=True)

    def __repr__(self) -> str:
        return f"<RecordingRecord id={self.id} position={self.position}>"


class TranscriptRecord(Base):
    """A transcript document."""

    __tablename__ = "transcripts"

    id: Mapped[uuid.UUID] = mapped_column(primary_key=True)
    recording_id: Mapped[uuid.UUID] = mapped_column(index=True)
    text: Mapped[str] = mapped_column(Text, default="")
    created_at: Mapped[datetime] = mapped_column(default=lambda: datetime.now(UTC))
    status: Mapped[str] = mapped_column(String(16), default="pending")

    def __repr__(self) -> str:
        return f"<TranscriptRecord id={self.id} recording={self.recording_id} status={self.status!r}>"


class SummaryRecord(Base):
    """A summary document."""

    __tablename__ = "summaries"

    id: Mapped[uuid.UUID] = mapped_column(primary_key=True)
    transcript_id: Mapped[uuid.UUID] = mapped_column()
    recording_id: Mapped[uuid.UUID] = mapped_column(index=True)
    text: Mapped[str] = mapped_column(Text, default="")
    created_at: Mapped[datetime] = mapped_column(default=lambda: datetime.now(UTC))
    status: Mapped[str] = mapped_column(String(16), default="pending")
    llm_type: Mapped[str] = mapped_column(String(100), default="Default")

    def __repr__(self) -> str:
        return f"<SummaryRecord id={self.id} recording={self.recording_id} status={self.status!r}>"
