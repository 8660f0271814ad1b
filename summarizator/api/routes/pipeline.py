"""
Pipeline REST endpoints.

Start transcription and summary jobs (202 with the pending placeholder),
load the resulting documents and poll job progress.
"""

import logging
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query, status

from summarizator.api.dependencies import get_orchestrator
from summarizator.api.middleware.error_handler import error_responses
from summarizator.core.models import JobKind, JobProgress, Summary, SummaryRequest, Transcript
from summarizator.services.llm.providers import LLMProvider
from summarizator.services.orchestrator import PipelineOrchestrator

logger = logging.getLogger(__name__)

router = APIRouter(
    prefix="/recordings/{recording_id}",
    tags=["pipeline"],
    responses=error_responses(404, 409, 422),
)


@router.post("/transcript", response_model=Transcript, status_code=status.HTTP_202_ACCEPTED)
async def start_transcription(
    recording_id: UUID,
    supersede: bool = Query(False),
    orchestrator: PipelineOrchestrator = Depends(get_orchestrator),
):
    """Start transcribing the recording's audio in the background."""
    recording = orchestrator.get_recording(recording_id)
    job = await orchestrator.begin_transcription(recording, supersede=supersede)
    return job.placeholder


@router.get("/transcript", response_model=Transcript)
async def get_transcript(
    recording_id: UUID,
    orchestrator: PipelineOrchestrator = Depends(get_orchestrator),
):
    return await orchestrator.load_transcript(recording_id)


@router.post("/summary", response_model=Summary, status_code=status.HTTP_202_ACCEPTED)
async def start_summary(
    recording_id: UUID,
    body: SummaryRequest | None = None,
    supersede: bool = Query(False),
    orchestrator: PipelineOrchestrator = Depends(get_orchestrator),
):
    """Summarize the recording's transcript; refuses a pending or empty transcript."""
    recording = orchestrator.get_recording(recording_id)
    transcript = await orchestrator.load_transcript(recording_id)
    orchestrator.ensure_transcript_ready(transcript)
    body = body or SummaryRequest()
    try:
        provider = LLMProvider.parse(body.provider) if body.provider else None
    except ValueError as exc:
        raise HTTPException(status_code=422, detail=str(exc)) from exc
    job = await orchestrator.begin_summary(
        transcript,
        recording,
        provider=provider,
        model=body.model,
        supersede=supersede,
    )
    logger.debug("Summary job %s accepted for %s", job.document_id, recording_id)
    return job.placeholder


@router.get("/summary", response_model=Summary)
async def get_summary(
    recording_id: UUID,
    orchestrator: PipelineOrchestrator = Depends(get_orchestrator),
):
    return await orchestrator.load_summary(recording_id)


@router.get("/progress/{kind}", response_model=JobProgress)
async def get_progress(
    recording_id: UUID,
    kind: JobKind,
    orchestrator: PipelineOrchestrator = Depends(get_orchestrator),
):
    """Latest progress snapshot of the recording's transcription or summary job."""
    orchestrator.get_recording(recording_id)
    return orchestrator.progress(recording_id, kind)
