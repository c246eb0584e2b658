import json

import numpy as np
import pytest
import websockets

from livepanel.errors import TransportError
from livepanel.infrastructure.audio.processing import OutboundChunk
from livepanel.infrastructure.transport import InterviewChannel, build_interview_url, redact_url


def test_interview_url_layout():
    assert build_interview_url("ws://localhost:8000", "abc") == "ws://localhost:8000/ws/interview/abc/"
    assert build_interview_url("wss://host/", "abc") == "wss://host/ws/interview/abc/"


def test_token_is_path_escaped():
    assert build_interview_url("ws://h", "a/b c") == "ws://h/ws/interview/a%2Fb%20c/"


def test_empty_token_is_rejected():
    with pytest.raises(TransportError):
        build_interview_url("ws://h", "")


def test_redacted_url_hides_token():
    assert redact_url("ws://h:8000") == "ws://h:8000/ws/interview/***/"


@pytest.mark.asyncio
async def test_close_is_idempotent_before_connect():
    channel = InterviewChannel()
    await channel.close()
    await channel.close()
    assert not channel.is_open


@pytest.mark.asyncio
async def test_send_when_not_open_drops_the_chunk():
    channel = InterviewChannel()
    chunk = OutboundChunk(sequence=0, samples=np.zeros(4, dtype=np.int16), sample_rate=16000)
    assert await channel.send(chunk) is False


@pytest.mark.asyncio
async def test_frames_require_a_connection():
    channel = InterviewChannel()
    with pytest.raises(TransportError):
        async for _ in channel.frames():
            pass


@pytest.mark.asyncio
async def test_connect_failure_raises_transport_error_without_token():
    channel = InterviewChannel(open_timeout=1.0)
    with pytest.raises(TransportError) as info:
        await channel.connect("ws://127.0.0.1:1", "secret-token")
    assert "secret-token" not in str(info.value)


@pytest.mark.asyncio
async def test_round_trip_against_local_server():
    received = []

    async def handler(connection):
        await connection.send(json.dumps({"type": "connection_established", "message": "ok"}))
        received.append(await connection.recv())

    async with websockets.serve(handler, "127.0.0.1", 0) as server:
        port = server.sockets[0].getsockname()[1]
        channel = InterviewChannel(open_timeout=5.0)
        await channel.connect(f"ws://127.0.0.1:{port}", "tok")
        assert channel.is_open

        chunk = OutboundChunk(sequence=0, samples=np.array([1, -1], dtype=np.int16), sample_rate=16000)
        assert await channel.send(chunk) is True

        frames = [frame async for frame in channel.frames()]
        await channel.close()
        await channel.close()

    assert json.loads(frames[0])["type"] == "connection_established"
    assert received == [b"\x01\x00\xff\xff"]
    assert channel.bytes_sent == 4
