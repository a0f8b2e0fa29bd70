"""WebSocket transport — one subscriber per browser connection."""

from __future__ import annotations

import asyncio
import json
import logging
from typing import Any

from fastapi import APIRouter, WebSocket, WebSocketDisconnect
from pydantic import ValidationError

from switchboard.coordinator import SessionCoordinator
from switchboard.events import ErrorEvent
from switchboard.protocol import ClientMessage

logger = logging.getLogger(__name__)

router = APIRouter()


class WebSocketSubscriber:
    """Queues outbound messages for one connection.

    ``deliver`` is synchronous and never blocks; a sender task drains the
    queue onto the socket in order.
    """

    def __init__(self, websocket: WebSocket) -> None:
        self._websocket = websocket
        self._queue: asyncio.Queue[dict[str, Any] | None] = asyncio.Queue()
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    def deliver(self, message: dict[str, Any]) -> None:
        if self._closed:
            msg = "WebSocket connection is closed"
            raise ConnectionError(msg)
        self._queue.put_nowait(message)

    async def run_sender(self) -> None:
        while True:
            message = await self._queue.get()
            if message is None:
                return
            await self._websocket.send_json(message)

    def close(self) -> None:
        if not self._closed:
            self._closed = True
            self._queue.put_nowait(None)


def _error_reply(raw: str, error: str, detail: str | None = None) -> dict[str, Any]:
    session_id = ""
    try:
        data = json.loads(raw)
    except json.JSONDecodeError:
        data = None
    if isinstance(data, dict) and isinstance(data.get("sessionId"), str):
        session_id = data["sessionId"]
    event = ErrorEvent(session_id=session_id, error=error, detail=detail)
    return event.model_dump(by_alias=True, mode="json")


async def _handle_text(
    coordinator: SessionCoordinator, subscriber: WebSocketSubscriber, raw: str
) -> None:
    try:
        message = ClientMessage.model_validate_json(raw)
    except ValidationError as exc:
        logger.warning("invalid client message: %s", exc.error_count())
        subscriber.deliver(_error_reply(raw, "Invalid message", str(exc)))
        return

    try:
        await coordinator.handle_message(message, subscriber)
    except Exception as exc:
        logger.exception("failed to handle %s message", message.type)
        subscriber.deliver(_error_reply(raw, f"Failed to handle {message.type}", str(exc)))


@router.websocket("/ws")
async def session_socket(websocket: WebSocket) -> None:
    coordinator: SessionCoordinator = websocket.app.state.coordinator
    await websocket.accept()
    subscriber = WebSocketSubscriber(websocket)
    sender = asyncio.create_task(subscriber.run_sender())
    logger.info("client connected")

    try:
        while True:
            raw = await websocket.receive_text()
            await _handle_text(coordinator, subscriber, raw)
    except WebSocketDisconnect:
        logger.info("client disconnected")
    finally:
        subscriber.close()
        coordinator.detach_subscriber(subscriber)
        sender.cancel()
        await asyncio.gather(sender, return_exceptions=True)
