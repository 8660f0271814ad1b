"""Integration tests for the capture and progress WebSockets."""

import json
import time
from pathlib import Path

import pytest
from starlette.testclient import TestClient
from starlette.websockets import WebSocketDisconnect


def _receive_until(ws, message_type: str, limit: int = 20) -> dict:
    """Read messages until one of *message_type* arrives and return it."""
    for _ in range(limit):
        msg = ws.receive_json()
        if msg["type"] == message_type:
            return msg
    raise AssertionError(f"no {message_type!r} message received")


def _poll_until(predicate, timeout: float = 2.0):
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        result = predicate()
        if result:
            return result
        time.sleep(0.01)
    raise AssertionError("condition not met in time")


# ---------------------------------------------------------------------------
# /ws/record
# ---------------------------------------------------------------------------


def test_record_connection(test_client: TestClient):
    with test_client.websocket_connect("/ws/record") as ws:
        assert ws.receive_json()["type"] == "connected"
        state = _receive_until(ws, "state")
        assert state["data"]["state"] == "idle"


def test_record_flow(test_client: TestClient, settings, sample_pcm_bytes):
    """start → audio → pause → resume → stop produces a saved recording."""
    with test_client.websocket_connect("/ws/record") as ws:
        ws.receive_json()
        ws.send_text(json.dumps({"action": "start", "title": "Live Talk"}))
        assert _receive_until(ws, "state")["data"] == {"state": "idle", "title": ""}
        assert _receive_until(ws, "state")["data"] == {"state": "recording", "title": "Live Talk"}

        ws.send_bytes(sample_pcm_bytes)
        level = _receive_until(ws, "level")["data"]
        assert level["level"] > 0.1
        assert level["duration"] == pytest.approx(1.0)

        ws.send_text(json.dumps({"action": "pause"}))
        assert _receive_until(ws, "state")["data"]["state"] == "paused"
        ws.send_text(json.dumps({"action": "resume"}))
        assert _receive_until(ws, "state")["data"]["state"] == "recording"

        ws.send_text(json.dumps({"action": "stop"}))
        recording = _receive_until(ws, "recording")["data"]

    assert recording["title"] == "Live Talk"
    assert recording["duration"] == pytest.approx(1.0)
    assert Path(recording["file_path"]).parent == Path(settings.recordings_dir).resolve()
    listed = test_client.get("/api/v1/recordings").json()
    assert [r["id"] for r in listed] == [recording["id"]]


def test_invalid_transition_is_reported(test_client: TestClient):
    with test_client.websocket_connect("/ws/record") as ws:
        ws.receive_json()
        ws.send_text(json.dumps({"action": "pause"}))
        error = _receive_until(ws, "error")

    assert error["data"]["code"] == "RECORDING_STATE_ERROR"


def test_audio_before_start_is_rejected(test_client: TestClient, sample_pcm_bytes):
    with test_client.websocket_connect("/ws/record") as ws:
        ws.receive_json()
        ws.send_bytes(sample_pcm_bytes)
        error = _receive_until(ws, "error")

    assert error["data"]["code"] == "RECORDING_STATE_ERROR"


@pytest.mark.parametrize(
    ("payload", "code"),
    [
        ("not json", "INVALID_MESSAGE"),
        ("[1, 2]", "INVALID_MESSAGE"),
        ('{"action": "rewind"}', "UNKNOWN_ACTION"),
    ],
)
def test_bad_commands(test_client: TestClient, payload, code):
    with test_client.websocket_connect("/ws/record") as ws:
        ws.receive_json()
        ws.send_text(payload)
        error = _receive_until(ws, "error")

    assert error["data"]["code"] == code


def test_disconnect_mid_capture_keeps_audio(test_client: TestClient, sample_pcm_bytes):
    with test_client.websocket_connect("/ws/record") as ws:
        ws.receive_json()
        ws.send_text(json.dumps({"action": "start", "title": "Cut Off"}))
        ws.send_bytes(sample_pcm_bytes)
        _receive_until(ws, "level")

    listed = _poll_until(lambda: test_client.get("/api/v1/recordings").json())
    assert listed[0]["title"] == "Cut Off"


# ---------------------------------------------------------------------------
# /ws/progress
# ---------------------------------------------------------------------------


def test_progress_unknown_recording(test_client: TestClient):
    missing = "00000000-0000-0000-0000-000000000000"
    with test_client.websocket_connect(f"/ws/progress/{missing}/transcription") as ws:
        error = ws.receive_json()
        assert error["type"] == "error"
        assert error["data"]["code"] == "RECORDING_NOT_FOUND"
        with pytest.raises(WebSocketDisconnect) as exc_info:
            ws.receive_json()

    assert exc_info.value.code == 1008


def test_progress_of_finished_job(test_client: TestClient, imported_recording):
    rec = test_client.post("/api/v1/recordings/import", json=imported_recording).json()
    test_client.post(f"/api/v1/recordings/{rec['id']}/transcript")
    _poll_until(
        lambda: test_client.get(f"/api/v1/recordings/{rec['id']}/progress/transcription").json()[
            "state"
        ]
        == "succeeded"
    )

    with test_client.websocket_connect(f"/ws/progress/{rec['id']}/transcription") as ws:
        assert ws.receive_json()["data"] == {"recording_id": rec["id"]}
        progress = ws.receive_json()
        assert progress["type"] == "progress"
        assert progress["data"]["state"] == "succeeded"
        assert progress["data"]["fraction"] == 1.0
        with pytest.raises(WebSocketDisconnect):
            ws.receive_json()
