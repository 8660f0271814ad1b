"""WebSocket endpoints for live capture and job progress.

``/ws/record``
    The client drives an :class:`AudioRecorder` with JSON commands
    (``{"action": "start", "title": ...}``, ``pause``, ``resume``, ``stop``)
    and streams raw PCM bytes (16-bit, 16 kHz, mono) as binary frames.
    The server answers with ``state`` messages on every transition, a
    ``level`` message per accepted chunk and a ``recording`` message once
    the capture has been saved and added to the library. Disconnecting
    mid-capture keeps whatever audio was received.

``/ws/progress/{recording_id}/{kind}``
    Streams ``progress`` snapshots of one job until it reaches a terminal
    state, then closes.
"""

import asyncio
import json
import logging
from contextlib import aclosing
from uuid import UUID

from fastapi import APIRouter, Depends, WebSocket, WebSocketDisconnect

from summarizator.api.dependencies import get_app_settings, get_orchestrator
from summarizator.core.config import Settings
from summarizator.core.exceptions import RecordingStateError, SummarizatorError
from summarizator.core.models import (
    JobKind,
    JobState,
    RecordingState,
    WebSocketMessage,
    WebSocketMessageType,
)
from summarizator.services.audio.recorder import AudioRecorder
from summarizator.services.orchestrator import PipelineOrchestrator

logger = logging.getLogger(__name__)

router = APIRouter()

_TERMINAL_JOB_STATES = {JobState.succeeded, JobState.failed, JobState.cancelled}


async def _send(websocket: WebSocket, type_: WebSocketMessageType, data: dict) -> None:
    message = WebSocketMessage(type=type_, data=data)
    await websocket.send_json(message.model_dump(mode="json"))


async def _send_error(websocket: WebSocket, detail: str, code: str) -> None:
    await _send(websocket, WebSocketMessageType.error, {"detail": detail, "code": code})


async def _forward_states(websocket: WebSocket, recorder: AudioRecorder) -> None:
    queue = recorder.subscribe()
    try:
        while True:
            state = await queue.get()
            await _send(
                websocket,
                WebSocketMessageType.state,
                {"state": state.value, "title": recorder.title},
            )
    finally:
        recorder.unsubscribe(queue)


async def _finish_capture(recorder: AudioRecorder, orchestrator: PipelineOrchestrator):
    recording = await recorder.stop()
    return orchestrator.add_recording(recording)


async def _handle_command(
    websocket: WebSocket,
    recorder: AudioRecorder,
    orchestrator: PipelineOrchestrator,
    command: dict,
) -> None:
    if not isinstance(command, dict):
        raise ValueError("Commands must be JSON objects")
    action = command.get("action")
    if action == "start":
        recorder.start(command.get("title") or "Recording")
    elif action == "pause":
        recorder.pause()
    elif action == "resume":
        recorder.resume()
    elif action == "stop":
        recording = await _finish_capture(recorder, orchestrator)
        await _send(websocket, WebSocketMessageType.recording, recording.model_dump(mode="json"))
    else:
        await _send_error(websocket, f"Unknown action: {action}", "UNKNOWN_ACTION")


@router.websocket("/ws/record")
async def record_ws(
    websocket: WebSocket,
    settings: Settings = Depends(get_app_settings),
    orchestrator: PipelineOrchestrator = Depends(get_orchestrator),
) -> None:
    """Live capture endpoint (see module docstring for the protocol)."""
    await websocket.accept()
    await _send(websocket, WebSocketMessageType.connected, {})
    recorder = AudioRecorder(settings)
    forwarder = asyncio.create_task(_forward_states(websocket, recorder))
    logger.info("Recorder WebSocket connected")

    try:
        while True:
            message = await websocket.receive()
            if message["type"] == "websocket.disconnect":
                break
            try:
                if message.get("bytes") is not None:
                    level = recorder.write(message["bytes"])
                    if level is not None:
                        await _send(
                            websocket,
                            WebSocketMessageType.level,
                            {"level": level, "duration": recorder.captured_duration},
                        )
                elif message.get("text") is not None:
                    await _handle_command(
                        websocket, recorder, orchestrator, json.loads(message["text"])
                    )
            except SummarizatorError as exc:
                await _send_error(websocket, exc.detail, exc.code)
            except ValueError as exc:
                await _send_error(websocket, str(exc), "INVALID_MESSAGE")
    except WebSocketDisconnect:
        pass
    finally:
        forwarder.cancel()
        if recorder.state in (RecordingState.recording, RecordingState.paused):
            try:
                recording = await _finish_capture(recorder, orchestrator)
                logger.info("Saved capture %s after disconnect", recording.id)
            except RecordingStateError:
                logger.info("Recorder disconnected without captured audio")
        logger.info("Recorder WebSocket disconnected")


@router.websocket("/ws/progress/{recording_id}/{kind}")
async def progress_ws(
    websocket: WebSocket,
    recording_id: UUID,
    kind: JobKind,
    orchestrator: PipelineOrchestrator = Depends(get_orchestrator),
) -> None:
    """Stream progress snapshots of one job until it finishes."""
    await websocket.accept()
    try:
        orchestrator.get_recording(recording_id)
    except SummarizatorError as exc:
        await _send_error(websocket, exc.detail, exc.code)
        await websocket.close(code=1008)
        return

    await _send(websocket, WebSocketMessageType.connected, {"recording_id": str(recording_id)})
    try:
        async with aclosing(orchestrator.subscribe_progress(recording_id, kind)) as updates:
            async for snapshot in updates:
                await _send(
                    websocket, WebSocketMessageType.progress, snapshot.model_dump(mode="json")
                )
                if snapshot.state in _TERMINAL_JOB_STATES:
                    break
    except WebSocketDisconnect:
        logger.debug("Progress subscriber for %s/%s left", recording_id, kind)
        return
    await websocket.close()
