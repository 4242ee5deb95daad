"""HTTP, SSE and WebSocket endpoints for live alert viewers."""

import asyncio
import json
from typing import Any, List

import structlog
from fastapi import APIRouter, HTTPException, Request, WebSocket, WebSocketDisconnect, status
from fastapi.responses import StreamingResponse

from app.modules.alerts.manager import GLOBAL_TOPIC, subject_topic
from app.modules.alerts.schemas import AlertsClearedEvent, SubjectAlerts
from app.modules.alerts.service import alert_manager, alert_store
from app.modules.vitals.schemas import normalize_subject_id

router = APIRouter()
log = structlog.get_logger()

SSE_KEEPALIVE_SECONDS = 30.0


async def _announce_cleared(subject_id: int | str, alert_id: str | None = None) -> None:
    payload = AlertsClearedEvent(subject_id=subject_id, alert_id=alert_id).to_payload()
    for topic in (subject_topic(subject_id), GLOBAL_TOPIC):
        await alert_manager.broadcast(topic, payload)


def _topics_for(subject_id: str | None) -> list[str]:
    return [subject_topic(subject_id)]


# ========== Active alert state ==========


@router.get("/", response_model=List[SubjectAlerts], summary="Active alerts for all patients")
async def list_active_alerts() -> List[SubjectAlerts]:
    return [
        SubjectAlerts.from_alerts(normalize_subject_id(subject_key), alerts)
        for subject_key, alerts in alert_store.snapshot().items()
    ]


# ========== SSE ==========


@router.get("/stream")
async def stream_alerts(request: Request, subject_id: str | None = None) -> StreamingResponse:
    """
    Server-Sent Events stream of `vital-alert`, `vital-update` and `alerts-cleared` events.

    Omit `subject_id` (or pass `*`) for the global feed across all patients.
    """
    topics = _topics_for(subject_id)

    async def event_generator():
        queue: asyncio.Queue[dict[str, Any]] = asyncio.Queue(maxsize=100)
        alert_manager.subscribe(queue, topics)
        log.info("sse alert stream connected", topics=topics)
        try:
            while True:
                if await request.is_disconnected():
                    break
                try:
                    message = await asyncio.wait_for(queue.get(), timeout=SSE_KEEPALIVE_SECONDS)
                    yield f"event: {message.get('event', 'message')}\ndata: {json.dumps(message)}\n\n"
                except asyncio.TimeoutError:
                    yield ": keepalive\n\n"
        finally:
            alert_manager.unsubscribe(queue)
            log.info("sse alert stream closed", topics=topics)

    return StreamingResponse(
        event_generator(),
        media_type="text/event-stream",
        headers={
            "Cache-Control": "no-cache",
            "Connection": "keep-alive",
            "X-Accel-Buffering": "no",
        },
    )


# ========== WebSocket ==========


async def _process_viewer_message(websocket: WebSocket, raw_message: str) -> None:
    try:
        data = json.loads(raw_message)
    except json.JSONDecodeError:
        return
    if not isinstance(data, dict):
        return

    event = data.get("event") or data.get("type")
    subject_value = data.get("subjectId") or data.get("subject_id") or data.get("patientId")
    if event == "join" and subject_value is not None:
        alert_manager.join(websocket, subject_topic(subject_value))
        return
    if event == "dismiss" and subject_value is not None:
        alert_id = data.get("alertId") or data.get("alert_id")
        subject = normalize_subject_id(subject_value)
        if alert_id:
            if alert_store.dismiss(subject, alert_id):
                await _announce_cleared(subject, alert_id)
        elif alert_store.clear(subject):
            await _announce_cleared(subject)


@router.websocket("/ws")
async def websocket_alerts(websocket: WebSocket, subject_id: str | None = None) -> None:
    """Live alert feed; send `{"event": "join", "subjectId": ...}` to follow more patients."""
    topics = _topics_for(subject_id)
    await alert_manager.connect(websocket, topics)
    log.info("alerts websocket connected", topics=topics)
    try:
        while True:
            raw_message = await websocket.receive_text()
            await _process_viewer_message(websocket, raw_message)
    except WebSocketDisconnect:
        alert_manager.disconnect(websocket)
        log.info("alerts websocket disconnected", topics=topics)


# ========== Per-subject state and acknowledgement ==========


@router.get("/{subject_id}", response_model=SubjectAlerts, summary="Active alerts for a patient")
async def read_subject_alerts(subject_id: str) -> SubjectAlerts:
    subject = normalize_subject_id(subject_id)
    return SubjectAlerts.from_alerts(subject, alert_store.get(subject))


@router.delete("/{subject_id}", response_model=SubjectAlerts, summary="Clear a patient's alerts")
async def clear_subject_alerts(subject_id: str) -> SubjectAlerts:
    subject = normalize_subject_id(subject_id)
    cleared = alert_store.clear(subject)
    if cleared:
        await _announce_cleared(subject)
    return SubjectAlerts.from_alerts(subject, cleared)


@router.delete(
    "/{subject_id}/{alert_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Dismiss a single alert",
)
async def dismiss_alert(subject_id: str, alert_id: str) -> None:
    subject = normalize_subject_id(subject_id)
    if not alert_store.dismiss(subject, alert_id):
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Alert not found or already dismissed",
        )
    await _announce_cleared(subject, alert_id)
