from __future__ import annotations

import asyncio
import json
from typing import Any

from fastapi import WebSocketDisconnect

from image_relay.dispatcher import GenerationDispatcher
from image_relay.serve.realtime import ClientSession, RealtimeChannel


class _FakeSocket:
    def __init__(self) -> None:
        self.sent: list[dict[str, Any]] = []
        self.closed = False

    async def send_json(self, data: dict[str, Any]) -> None:
        if self.closed:
            raise WebSocketDisconnect(code=1000)
        self.sent.append(data)


class _OrderedProvider:
    """First call waits until the second call has returned."""

    def __init__(self) -> None:
        self.calls: list[str] = []
        self._second_done: asyncio.Event | None = None

    async def generate(self, prompt: str, width: int, height: int, samples: int = 1) -> str:
        if self._second_done is None:
            self._second_done = asyncio.Event()
        self.calls.append(prompt)
        if len(self.calls) == 1:
            await self._second_done.wait()
            return "Rklyc3Q="
        self._second_done.set()
        return "U2Vjb25k"


def _frame(prompt: Any, **extra: Any) -> str:
    return json.dumps({"event": "request-image", "data": prompt, **extra})


def test_overlapping_requests_arrive_in_completion_order() -> None:
    provider = _OrderedProvider()
    channel = RealtimeChannel(GenerationDispatcher(provider))
    socket = _FakeSocket()
    session = ClientSession(socket, "s1")

    async def scenario() -> None:
        first = channel.handle_frame(session, _frame("first"))
        second = channel.handle_frame(session, _frame("second"))
        await asyncio.gather(first, second)

    asyncio.run(scenario())

    responses = [f["data"]["image"] for f in socket.sent if f["event"] == "image-response"]
    assert responses == ["data:image/png;base64,U2Vjb25k", "data:image/png;base64,Rklyc3Q="]
    assert provider.calls == ["first", "second"]
    assert not session.tasks


def test_empty_prompt_emits_only_validation_error() -> None:
    provider = _OrderedProvider()
    channel = RealtimeChannel(GenerationDispatcher(provider))
    socket = _FakeSocket()

    asyncio.run(channel.request_image(ClientSession(socket), ""))

    assert socket.sent == [
        {"event": "image-response", "data": {"status": "error", "message": "Prompt is required!"}}
    ]
    assert provider.calls == []


def test_correlation_id_is_echoed() -> None:
    class _Provider:
        async def generate(self, prompt: str, width: int, height: int, samples: int = 1) -> str:
            return "QUJD"

    channel = RealtimeChannel(GenerationDispatcher(_Provider()))
    socket = _FakeSocket()
    session = ClientSession(socket)

    async def scenario() -> None:
        await channel.handle_frame(session, _frame("fox", id="req-7"))

    asyncio.run(scenario())
    assert [f.get("id") for f in socket.sent] == ["req-7", "req-7"]


def test_closed_session_drops_response() -> None:
    class _Provider:
        async def generate(self, prompt: str, width: int, height: int, samples: int = 1) -> str:
            socket.closed = True
            return "QUJD"

    socket = _FakeSocket()
    channel = RealtimeChannel(GenerationDispatcher(_Provider()))

    asyncio.run(channel.request_image(ClientSession(socket), "fox"))
    assert [f["event"] for f in socket.sent] == ["status"]


def test_unknown_and_malformed_frames_are_ignored() -> None:
    channel = RealtimeChannel(GenerationDispatcher(_OrderedProvider()))
    session = ClientSession(_FakeSocket())

    async def scenario() -> list:
        return [
            channel.handle_frame(session, "not json"),
            channel.handle_frame(session, json.dumps({"event": "ping"})),
            channel.handle_frame(session, json.dumps(["request-image"])),
        ]

    assert asyncio.run(scenario()) == [None, None, None]


def test_unexpected_provider_exception_yields_image_response() -> None:
    class _Provider:
        async def generate(self, prompt: str, width: int, height: int, samples: int = 1) -> str:
            raise RuntimeError("boom")

    channel = RealtimeChannel(GenerationDispatcher(_Provider()))
    socket = _FakeSocket()
    session = ClientSession(socket)

    async def scenario() -> None:
        await channel.handle_frame(session, _frame("fox"))

    asyncio.run(scenario())
    assert socket.sent == [
        {"event": "status", "data": {"status": "generating"}},
        {
            "event": "image-response",
            "data": {"status": "error", "message": "Image generation failed", "error": "boom"},
        },
    ]
