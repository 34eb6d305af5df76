"""Realtime generation channel over a WebSocket connection.

Frames are JSON objects `{"event": ..., "data": ..., "id"?: ...}`.

client -> server:  request-image   data = prompt string
server -> client:  status          data = {"status": "generating"}
server -> client:  image-response  data = GenerationResult payload

Every request-image runs as its own task, so replies arrive in completion
order. A client-supplied "id" is echoed on the replies for that request.
"""
from __future__ import annotations
import asyncio
import json
import logging
import uuid
from typing import Any

from fastapi import WebSocket, WebSocketDisconnect

from image_relay.common.errors import ValidationError
from image_relay.common.schema import GenerationResult
from image_relay.dispatcher import GenerationDispatcher, build_request

LOGGER = logging.getLogger("imagerelay.realtime")

REQUEST_IMAGE = "request-image"
STATUS = "status"
IMAGE_RESPONSE = "image-response"

class ClientSession:
    """One open connection. Holds no state besides its id and running tasks."""

    def __init__(self, websocket: Any, session_id: str | None = None) -> None:
        self.websocket = websocket
        self.id = session_id or uuid.uuid4().hex
        self.tasks: set[asyncio.Task] = set()

    async def emit(self, event: str, data: Any, correlation_id: Any = None) -> bool:
        """Send one event. Returns False if the connection is already gone."""
        frame: dict[str, Any] = {"event": event, "data": data}
        if correlation_id is not None:
            frame["id"] = correlation_id
        try:
            await self.websocket.send_json(frame)
        except (WebSocketDisconnect, RuntimeError, OSError) as e:
            LOGGER.debug("Dropped %s for closed session %s: %s", event, self.id, e)
            return False
        return True

class RealtimeChannel:
    def __init__(self, dispatcher: GenerationDispatcher) -> None:
        self.dispatcher = dispatcher

    async def serve(self, websocket: WebSocket) -> None:
        """Accept a connection and handle its frames until the client leaves."""
        await websocket.accept()
        session = ClientSession(websocket)
        LOGGER.info("User connected: %s", session.id)
        try:
            while True:
                message = await websocket.receive()
                if message["type"] == "websocket.disconnect":
                    break
                text = message.get("text")
                if text is None:
                    LOGGER.warning("Ignoring binary frame from %s", session.id)
                    continue
                self.handle_frame(session, text)
        except WebSocketDisconnect:
            pass
        finally:
            LOGGER.info("User disconnected: %s (%d in flight)", session.id, len(session.tasks))

    def handle_frame(self, session: ClientSession, text: str) -> asyncio.Task | None:
        """Parse one frame and schedule its handling. Must run inside the event loop."""
        try:
            frame = json.loads(text)
        except ValueError:
            LOGGER.warning("Ignoring non-JSON frame from %s", session.id)
            return None
        if not isinstance(frame, dict) or frame.get("event") != REQUEST_IMAGE:
            event = frame.get("event") if isinstance(frame, dict) else None
            LOGGER.warning("Ignoring unknown event %r from %s", event, session.id)
            return None

        task = asyncio.create_task(self.request_image(session, frame.get("data"), frame.get("id")))
        session.tasks.add(task)
        task.add_done_callback(session.tasks.discard)
        return task

    async def request_image(self, session: ClientSession, prompt: Any, correlation_id: Any = None) -> None:
        try:
            request = build_request(prompt)
        except ValidationError as e:
            await session.emit(IMAGE_RESPONSE, GenerationResult.error(str(e)).to_payload(), correlation_id)
            return

        await session.emit(STATUS, {"status": "generating"}, correlation_id)
        result = await self.dispatcher.dispatch(request)
        await session.emit(IMAGE_RESPONSE, result.to_payload(), correlation_id)
