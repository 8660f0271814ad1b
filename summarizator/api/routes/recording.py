"""
Recording REST endpoints.

List, inspect, import and delete recordings, plus the explicit purge of
orphaned documents. All endpoints delegate to the orchestrator; no
business logic here.
"""

from uuid import UUID

from fastapi import APIRouter, Depends, status

from summarizator.api.dependencies import get_orchestrator
from summarizator.api.middleware.error_handler import error_responses
from summarizator.core.models import ImportRecordingRequest, PurgeResponse, Recording
from summarizator.services.orchestrator import PipelineOrchestrator

router = APIRouter(
    prefix="/recordings",
    tags=["recordings"],
    responses=error_responses(404, 422),
)


@router.get("", response_model=list[Recording])
async def list_recordings(orchestrator: PipelineOrchestrator = Depends(get_orchestrator)):
    """List all recordings, newest first."""
    return orchestrator.recordings


@router.post(
    "/import",
    response_model=Recording,
    status_code=status.HTTP_201_CREATED,
    responses=error_responses(415),
)
async def import_recording(
    body: ImportRecordingRequest,
    orchestrator: PipelineOrchestrator = Depends(get_orchestrator),
):
    """Copy a server-side audio file into the library."""
    return await orchestrator.import_audio(body.source_path, body.title)


@router.post("/purge-orphans", response_model=PurgeResponse)
async def purge_orphans(orchestrator: PipelineOrchestrator = Depends(get_orchestrator)):
    """Delete transcripts and summaries that no recording links to."""
    transcripts, summaries = await orchestrator.purge_orphaned_documents()
    return PurgeResponse(transcripts=transcripts, summaries=summaries)


@router.get("/{recording_id}", response_model=Recording)
async def get_recording(
    recording_id: UUID,
    orchestrator: PipelineOrchestrator = Depends(get_orchestrator),
):
    return orchestrator.get_recording(recording_id)


@router.delete("/{recording_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_recording(
    recording_id: UUID,
    orchestrator: PipelineOrchestrator = Depends(get_orchestrator),
) -> None:
    """Delete a recording together with its audio file."""
    await orchestrator.delete_recording(recording_id)
