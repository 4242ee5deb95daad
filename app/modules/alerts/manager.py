import asyncio
import json
from typing import Any, Iterable

import structlog
from fastapi import WebSocket

log = structlog.get_logger()

GLOBAL_TOPIC = "*"


def subject_topic(subject_id: int | str | None) -> str:
    if subject_id is None:
        return GLOBAL_TOPIC
    normalized = str(subject_id).strip()
    if not normalized or normalized.lower() in {"*", "all"}:
        return GLOBAL_TOPIC
    return f"subject:{normalized}"


class AlertConnectionManager:
    """Topic fan-out to live viewers over WebSocket and SSE.

    Topics are `subject:{id}` for one monitored subject and `*` for the global feed.
    A message is delivered to subscribers of the exact topic it is published on.
    """

    def __init__(self) -> None:
        self._sockets: dict[str, list[WebSocket]] = {}
        self._queues: dict[str, list[asyncio.Queue[dict[str, Any]]]] = {}

    # ========== WebSocket ==========

    async def connect(self, websocket: WebSocket, topics: Iterable[str]) -> None:
        await websocket.accept()
        for topic in topics:
            self.join(websocket, topic)

    def join(self, websocket: WebSocket, topic: str) -> None:
        sockets = self._sockets.setdefault(topic, [])
        if websocket not in sockets:
            sockets.append(websocket)

    def disconnect(self, websocket: WebSocket) -> None:
        for topic, sockets in list(self._sockets.items()):
            if websocket in sockets:
                sockets.remove(websocket)
            if not sockets:
                self._sockets.pop(topic, None)

    # ========== SSE ==========

    def subscribe(self, queue: asyncio.Queue[dict[str, Any]], topics: Iterable[str]) -> None:
        for topic in topics:
            queues = self._queues.setdefault(topic, [])
            if queue not in queues:
                queues.append(queue)

    def unsubscribe(self, queue: asyncio.Queue[dict[str, Any]]) -> None:
        for topic, queues in list(self._queues.items()):
            if queue in queues:
                queues.remove(queue)
            if not queues:
                self._queues.pop(topic, None)

    # ========== Broadcast ==========

    async def broadcast(self, topic: str, payload: dict[str, Any]) -> int:
        """Deliver a payload to every subscriber of `topic`; returns the delivery count."""
        delivered = 0
        message = json.dumps(payload)
        for socket in list(self._sockets.get(topic, [])):
            try:
                await socket.send_text(message)
                delivered += 1
            except Exception as exc:
                log.info("alert socket dropped", topic=topic, error=str(exc))
                self.disconnect(socket)

        for queue in list(self._queues.get(topic, [])):
            try:
                queue.put_nowait(payload)
                delivered += 1
            except asyncio.QueueFull:
                # slow SSE client; it resyncs from GET /alerts on reconnect
                log.warning("alert stream queue full", topic=topic)
        return delivered

    def subscriber_count(self, topic: str) -> int:
        return len(self._sockets.get(topic, [])) + len(self._queues.get(topic, []))

    def reset(self) -> None:
        self._sockets.clear()
        self._queues.clear()
