"""Tests for PipelineOrchestrator with real storage and mocked engines.

Jobs are gated on ``asyncio.Event`` objects so the pending placeholder
state can be observed before the engine returns.
"""

import asyncio
import logging
from pathlib import Path
from unittest.mock import AsyncMock, patch
from uuid import uuid4

import pytest

from summarizator.core.exceptions import (
    AlreadyInFlightError,
    PermissionDeniedError,
    RateLimitedError,
    RecordingNotFoundError,
    StorageError,
    SummaryNotFoundError,
    TranscriptionError,
    TranscriptNotFoundError,
    TranscriptNotReadyError,
)
from summarizator.core.models import (
    JobKind,
    JobState,
    ProcessingStatus,
    Recording,
    Transcript,
)
from summarizator.services.audio.importer import AudioImporter
from summarizator.services.llm.providers import LLMProvider
from summarizator.services.orchestrator import PipelineOrchestrator
from summarizator.services.storage.service import StorageService

# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def audio_file(tmp_path):
    path = tmp_path / "lecture.m4a"
    path.write_bytes(b"fake audio")
    return path


@pytest.fixture
async def orchestrator(settings, storage, mock_stt, mock_llm):
    orch = PipelineOrchestrator(settings, storage, mock_stt, mock_llm)
    yield orch
    await orch.shutdown()


@pytest.fixture
async def recording(orchestrator, audio_file):
    return orchestrator.add_recording(
        Recording(title="Lecture", duration=60.0, file_path=str(audio_file))
    )


def _gate(result):
    """Side effect that blocks until the returned event is set, then returns *result*."""
    release = asyncio.Event()

    async def side_effect(*args, **kwargs):
        await release.wait()
        if isinstance(result, Exception):
            raise result
        return result

    return release, side_effect


async def _ready_transcript(orchestrator, recording) -> Transcript:
    job = await orchestrator.begin_transcription(recording)
    return await job.result()


# ===================================================================
# Transcription
# ===================================================================


class TestTranscription:
    async def test_placeholder_then_final_transcript(self, orchestrator, storage, mock_stt, recording):
        release, mock_stt.transcribe.side_effect = _gate("hello world")

        job = await orchestrator.begin_transcription(recording)

        pending = await storage.load_transcript(recording.id)
        assert pending.id == job.document_id
        assert pending.is_processing is True
        assert pending.text == ""
        assert orchestrator.get_recording(recording.id).transcript_id == job.document_id

        release.set()
        final = await job.result()

        assert final.id == job.document_id
        assert final.is_processing is False
        assert final.text == "hello world"
        stored = await storage.load_transcript(recording.id)
        assert stored.text == "hello world"
        assert stored.status == ProcessingStatus.ready
        persisted = {r.id: r for r in await storage.load_recordings()}
        assert persisted[recording.id].transcript_id == final.id

    async def test_engine_receives_recording_file(self, orchestrator, mock_stt, recording):
        await _ready_transcript(orchestrator, recording)

        mock_stt.ensure_authorized.assert_awaited_once()
        args, kwargs = mock_stt.transcribe.await_args
        assert args[0] == recording.file_path
        assert callable(kwargs["on_progress"])

    async def test_failure_persists_failed_placeholder(self, orchestrator, storage, mock_stt, recording):
        mock_stt.transcribe.side_effect = TranscriptionError("engine crashed")

        job = await orchestrator.begin_transcription(recording)
        with pytest.raises(TranscriptionError):
            await job.result()

        stored = await storage.load_transcript(recording.id)
        assert stored.id == job.document_id
        assert stored.status == ProcessingStatus.failed
        assert stored.is_processing is False
        assert stored.text == ""
        progress = orchestrator.progress(recording.id, JobKind.transcription)
        assert progress.state == JobState.failed
        assert "engine crashed" in progress.error

    async def test_permission_denied_is_persisted_as_failure(
        self, orchestrator, storage, mock_stt, recording
    ):
        mock_stt.ensure_authorized.side_effect = PermissionDeniedError()

        job = await orchestrator.begin_transcription(recording)
        with pytest.raises(PermissionDeniedError):
            await job.result()

        mock_stt.transcribe.assert_not_awaited()
        assert (await storage.load_transcript(recording.id)).status == ProcessingStatus.failed

    async def test_retry_creates_fresh_placeholder(self, orchestrator, storage, mock_stt, recording):
        mock_stt.transcribe.side_effect = [TranscriptionError("first"), "second try"]

        first = await orchestrator.begin_transcription(recording)
        with pytest.raises(TranscriptionError):
            await first.result()
        second = await orchestrator.begin_transcription(recording)
        final = await second.result()

        assert second.document_id != first.document_id
        assert final.text == "second try"
        assert (await storage.load_transcript(recording.id)).id == second.document_id

    async def test_unknown_recording_is_rejected(self, orchestrator, audio_file):
        stranger = Recording(title="x", file_path=str(audio_file))
        with pytest.raises(RecordingNotFoundError):
            await orchestrator.begin_transcription(stranger)


class TestConcurrentTranscription:
    async def test_second_begin_is_rejected_while_in_flight(self, orchestrator, mock_stt, recording):
        release, mock_stt.transcribe.side_effect = _gate("only once")
        job = await orchestrator.begin_transcription(recording)

        with pytest.raises(AlreadyInFlightError):
            await orchestrator.begin_transcription(recording)

        release.set()
        assert (await job.result()).text == "only once"
        assert mock_stt.transcribe.await_count == 1

    async def test_supersede_cancels_prior_job(self, orchestrator, storage, mock_stt, recording):
        started = asyncio.Event()
        never = asyncio.Event()

        async def transcribe(path, on_progress=None):
            if not started.is_set():
                started.set()
                await never.wait()
                return "stale result"
            return "fresh result"

        mock_stt.transcribe.side_effect = transcribe
        first = await orchestrator.begin_transcription(recording)
        await started.wait()
        second = await orchestrator.begin_transcription(recording, supersede=True)

        final = await second.result()
        with pytest.raises(asyncio.CancelledError):
            await first.result()

        assert second.generation == first.generation + 1
        assert final.text == "fresh result"
        stored = await storage.load_transcript(recording.id)
        assert stored.id == second.document_id
        assert stored.text == "fresh result"
        first_doc = await storage.get_transcript(first.document_id)
        assert first_doc.text == ""

    async def test_supersede_during_slow_placeholder_write_links_newest(
        self, orchestrator, storage, mock_stt, recording
    ):
        save_transcript = storage.save_transcript
        writes = 0

        async def slow_first_write(document):
            nonlocal writes
            writes += 1
            if writes == 1:
                await asyncio.sleep(0.2)
            await save_transcript(document)

        async def superseding_begin():
            await asyncio.sleep(0.05)
            return await orchestrator.begin_transcription(recording, supersede=True)

        with patch.object(storage, "save_transcript", side_effect=slow_first_write):
            first, second = await asyncio.gather(
                orchestrator.begin_transcription(recording),
                superseding_begin(),
            )
            final = await second.result()

        with pytest.raises(asyncio.CancelledError):
            await first.result()
        linked = await storage.load_transcript(recording.id)
        assert linked.id == second.document_id
        assert linked.status == ProcessingStatus.ready
        assert final.id == second.document_id
        assert orchestrator.get_recording(recording.id).transcript_id == second.document_id
        assert mock_stt.transcribe.await_count == 1
        assert orchestrator.progress(recording.id, JobKind.transcription).state == JobState.succeeded

    async def test_back_to_back_supersede_runs_engine_once(
        self, orchestrator, storage, mock_stt, recording
    ):
        first, second = await asyncio.gather(
            orchestrator.begin_transcription(recording),
            orchestrator.begin_transcription(recording, supersede=True),
        )
        await second.result()

        assert first.task.cancelled()
        assert (await storage.load_transcript(recording.id)).id == second.document_id
        assert mock_stt.transcribe.await_count == 1

    async def test_placeholder_write_failure_is_raised(self, orchestrator, storage, mock_stt, recording):
        with patch.object(storage, "save_transcript", side_effect=StorageError("disk full")):
            with pytest.raises(StorageError):
                await orchestrator.begin_transcription(recording)

        progress = orchestrator.progress(recording.id, JobKind.transcription)
        assert progress.state == JobState.failed
        assert "disk full" in progress.error
        assert orchestrator.get_recording(recording.id).transcript_id is None
        mock_stt.transcribe.assert_not_awaited()
        # The slot is free again.
        job = await orchestrator.begin_transcription(recording)
        assert (await job.result()).status == ProcessingStatus.ready

    async def test_jobs_for_different_recordings_run_concurrently(
        self, orchestrator, mock_stt, recording, audio_file
    ):
        other = orchestrator.add_recording(Recording(title="Other", file_path=str(audio_file)))
        release, mock_stt.transcribe.side_effect = _gate("text")

        jobs = [
            await orchestrator.begin_transcription(recording),
            await orchestrator.begin_transcription(other),
        ]
        release.set()

        results = [await job.result() for job in jobs]
        assert [r.recording_id for r in results] == [recording.id, other.id]


# ===================================================================
# Summaries
# ===================================================================


class TestSummary:
    async def test_placeholder_label_then_final_summary(
        self, orchestrator, storage, mock_llm, recording
    ):
        transcript = await _ready_transcript(orchestrator, recording)
        release, mock_llm.generate.side_effect = _gate("Summary text")

        job = await orchestrator.begin_summary(
            transcript, recording, provider=LLMProvider.openai, model="m1"
        )

        pending = await storage.load_summary(recording.id)
        assert pending.is_processing is True
        assert pending.llm_type == "OpenAI - m1"
        assert pending.transcript_id == transcript.id

        release.set()
        final = await job.result()

        assert final.is_processing is False
        assert final.text == "Summary text"
        assert (await storage.load_summary(recording.id)).text == "Summary text"
        args, _ = mock_llm.generate.await_args
        assert args[:4] == ("hello world", orchestrator._settings.summary_instruction, LLMProvider.openai, "m1")

    async def test_defaults_come_from_settings(self, settings, storage, mock_stt, mock_llm, audio_file):
        settings.llm_provider = "Anthropic"
        orch = PipelineOrchestrator(settings, storage, mock_stt, mock_llm)
        recording = orch.add_recording(Recording(title="x", file_path=str(audio_file)))
        transcript = await _ready_transcript(orch, recording)

        job = await orch.begin_summary(transcript, recording)
        summary = await job.result()
        await orch.shutdown()

        assert summary.llm_type == "Anthropic - claude-3-opus-20240229"

    async def test_rate_limit_persists_failed_summary(self, orchestrator, storage, mock_llm, recording):
        transcript = await _ready_transcript(orchestrator, recording)
        mock_llm.generate.side_effect = RateLimitedError("OpenAI", retry_after=3)

        job = await orchestrator.begin_summary(transcript, recording, LLMProvider.openai, "m1")
        with pytest.raises(RateLimitedError):
            await job.result()

        stored = await storage.load_summary(recording.id)
        assert stored.id == job.document_id
        assert stored.is_processing is False
        assert stored.text == ""
        assert mock_llm.generate.await_count == 1

    async def test_uses_backoff_with_configured_retries(
        self, settings, storage, mock_stt, mock_llm, audio_file
    ):
        settings.llm_rate_limit_retries = 2
        orch = PipelineOrchestrator(settings, storage, mock_stt, mock_llm)
        recording = orch.add_recording(Recording(title="x", file_path=str(audio_file)))
        transcript = await _ready_transcript(orch, recording)

        with patch(
            "summarizator.services.orchestrator.generate_with_backoff",
            new_callable=AsyncMock,
            return_value="retried",
        ) as backoff:
            job = await orch.begin_summary(transcript, recording, "openai", "m1")
            summary = await job.result()
        await orch.shutdown()

        assert summary.text == "retried"
        assert backoff.await_args.kwargs["retries"] == 2

    async def test_requires_transcript_link(self, orchestrator, recording):
        transcript = Transcript(recording_id=recording.id, text="orphan")

        with pytest.raises(TranscriptNotFoundError):
            await orchestrator.begin_summary(transcript, recording, "openai", "m1")

        assert orchestrator.get_recording(recording.id).summary_id is None

    async def test_summary_link_implies_transcript_link(self, orchestrator, storage, recording):
        transcript = await _ready_transcript(orchestrator, recording)
        job = await orchestrator.begin_summary(transcript, recording, "openai", "m1")
        await job.result()

        for stored in await storage.load_recordings():
            assert stored.summary_id is None or stored.transcript_id is not None

    async def test_load_summary_without_link_is_not_found(self, orchestrator, recording):
        with pytest.raises(SummaryNotFoundError):
            await orchestrator.load_summary(recording.id)


class TestTranscriptReadiness:
    def test_pending_transcript_is_not_ready(self):
        with pytest.raises(TranscriptNotReadyError):
            PipelineOrchestrator.ensure_transcript_ready(Transcript(recording_id=uuid4()))

    def test_failed_transcript_is_not_ready(self):
        transcript = Transcript(recording_id=uuid4(), status=ProcessingStatus.failed)
        with pytest.raises(TranscriptNotReadyError):
            PipelineOrchestrator.ensure_transcript_ready(transcript)

    def test_empty_ready_transcript_is_not_ready(self):
        transcript = Transcript(recording_id=uuid4(), text="   ", status=ProcessingStatus.ready)
        with pytest.raises(TranscriptNotReadyError):
            PipelineOrchestrator.ensure_transcript_ready(transcript)

    def test_ready_transcript_passes(self):
        transcript = Transcript(recording_id=uuid4(), text="words", status=ProcessingStatus.ready)
        PipelineOrchestrator.ensure_transcript_ready(transcript)


# ===================================================================
# Progress
# ===================================================================


class TestProgress:
    async def test_engine_progress_is_exposed(self, orchestrator, mock_stt, recording):
        reported = asyncio.Event()
        release = asyncio.Event()

        async def transcribe(path, on_progress=None):
            on_progress(0.4)
            reported.set()
            await release.wait()
            return "text"

        mock_stt.transcribe.side_effect = transcribe
        job = await orchestrator.begin_transcription(recording)
        await reported.wait()

        snapshot = orchestrator.progress(recording.id, JobKind.transcription)
        assert snapshot.state == JobState.running
        assert snapshot.fraction == pytest.approx(0.4)

        release.set()
        await job.result()
        snapshot = orchestrator.progress(recording.id, JobKind.transcription)
        assert snapshot.state == JobState.succeeded
        assert snapshot.fraction == 1.0

    async def test_new_job_resets_progress(self, orchestrator, mock_stt, recording):
        await _ready_transcript(orchestrator, recording)
        release, mock_stt.transcribe.side_effect = _gate("again")

        job = await orchestrator.begin_transcription(recording)

        snapshot = orchestrator.progress(recording.id, JobKind.transcription)
        assert snapshot.fraction == 0.0
        assert snapshot.generation == job.generation
        release.set()
        await job.result()

    async def test_untouched_recording_is_idle(self, orchestrator, recording):
        assert orchestrator.progress(recording.id, JobKind.summary).state == JobState.idle


# ===================================================================
# Recording list
# ===================================================================


class TestRecordingList:
    async def test_new_recordings_are_inserted_first(self, orchestrator, storage, audio_file):
        first = orchestrator.add_recording(Recording(title="first", file_path=str(audio_file)))
        second = orchestrator.add_recording(Recording(title="second", file_path=str(audio_file)))
        await orchestrator.shutdown()

        assert [r.id for r in orchestrator.recordings] == [second.id, first.id]
        assert [r.id for r in await storage.load_recordings()] == [second.id, first.id]

    async def test_recordings_are_copies(self, orchestrator, recording):
        orchestrator.recordings[0].title = "mutated"
        assert orchestrator.get_recording(recording.id).title == "Lecture"

    async def test_load_restores_persisted_list(self, settings, storage, mock_stt, mock_llm, audio_file):
        saved = [Recording(title=t, file_path=str(audio_file)) for t in ("b", "a")]
        await storage.save_recordings(saved)
        orch = PipelineOrchestrator(settings, storage, mock_stt, mock_llm)

        loaded = await orch.load()

        assert [r.title for r in loaded] == ["b", "a"]

    async def test_background_save_failure_is_logged_not_raised(
        self, settings, mock_stt, mock_llm, audio_file, caplog
    ):
        failing = AsyncMock(spec=StorageService)
        failing.save_recordings.side_effect = StorageError("disk full")
        orch = PipelineOrchestrator(settings, failing, mock_stt, mock_llm)

        with caplog.at_level(logging.ERROR):
            added = orch.add_recording(Recording(title="x", file_path=str(audio_file)))
            await orch.shutdown()

        assert orch.get_recording(added.id).title == "x"
        assert "Background save of the recording index failed" in caplog.text

    async def test_delete_removes_file_index_entry_and_jobs(
        self, orchestrator, storage, mock_stt, recording, audio_file
    ):
        release, mock_stt.transcribe.side_effect = _gate("never")
        job = await orchestrator.begin_transcription(recording)

        await orchestrator.delete_recording(recording.id)

        assert job.task.cancelled()
        assert not Path(audio_file).exists()
        assert orchestrator.recordings == []
        assert await storage.load_recordings() == []
        with pytest.raises(RecordingNotFoundError):
            orchestrator.get_recording(recording.id)

    async def test_delete_unknown_recording(self, orchestrator):
        with pytest.raises(RecordingNotFoundError):
            await orchestrator.delete_recording(Recording(title="x", file_path="/x").id)

    async def test_import_adds_recording_at_head(
        self, settings, storage, mock_stt, mock_llm, audio_file
    ):
        importer = AsyncMock(spec=AudioImporter)
        imported = Recording(title="imported", duration=3.0, file_path=str(audio_file))
        importer.import_file.return_value = imported
        orch = PipelineOrchestrator(settings, storage, mock_stt, mock_llm, importer)

        result = await orch.import_audio("/somewhere/talk.mp3", "Talk")
        await orch.shutdown()

        importer.import_file.assert_awaited_once_with("/somewhere/talk.mp3", "Talk")
        assert result.id == imported.id
        assert orch.recordings[0].id == imported.id


async def test_purge_removes_superseded_transcripts(orchestrator, storage, recording):
    first = await _ready_transcript(orchestrator, recording)
    second = await _ready_transcript(orchestrator, recording)

    assert await orchestrator.purge_orphaned_documents() == (1, 0)

    assert (await orchestrator.load_transcript(recording.id)).id == second.id
    with pytest.raises(TranscriptNotFoundError):
        await storage.get_transcript(first.id)
