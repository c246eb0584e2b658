"""
Websocket channel carrying PCM chunks out and session events in.
"""
import asyncio
import logging
from typing import AsyncIterator, Optional, Union
from urllib.parse import quote

import websockets
from websockets.exceptions import ConnectionClosedError, ConnectionClosedOK, WebSocketException
from websockets.protocol import State

from ...config import CLOSE_TIMEOUT, DEFAULT_CONNECT_TIMEOUT, MAX_MESSAGE_BYTES, WS_PATH_TEMPLATE
from ...errors import TransportError

logger = logging.getLogger("transport")

Frame = Union[str, bytes]


def build_interview_url(base_url: str, token: str) -> str:
    """Return ``{base_url}/ws/interview/{token}/`` with the token path-escaped."""
    if not token:
        raise TransportError("Interview token is required")
    return base_url.rstrip("/") + WS_PATH_TEMPLATE.format(token=quote(token, safe=""))


def redact_url(base_url: str) -> str:
    """URL suitable for logs: the token segment is replaced."""
    return base_url.rstrip("/") + WS_PATH_TEMPLATE.format(token="***")


class InterviewChannel:
    """
    One websocket connection per interview session.

    Outbound messages are binary PCM chunks, sent fire-and-forget. Inbound
    frames are yielded by ``frames()`` in delivery order.
    """

    def __init__(self,
                 open_timeout: float = DEFAULT_CONNECT_TIMEOUT,
                 max_size: int = MAX_MESSAGE_BYTES,
                 close_timeout: float = CLOSE_TIMEOUT):
        self.open_timeout = open_timeout
        self.max_size = max_size
        self.close_timeout = close_timeout
        self._ws = None
        self._closed = False
        self.bytes_sent = 0

    @property
    def is_open(self) -> bool:
        return self._ws is not None and self._ws.state is State.OPEN

    async def connect(self, base_url: str, token: str) -> None:
        url = build_interview_url(base_url, token)
        safe_url = redact_url(base_url)
        self._closed = False
        logger.info(f"Connecting to {safe_url}")
        try:
            ws = await websockets.connect(
                url,
                open_timeout=self.open_timeout,
                max_size=self.max_size,
                close_timeout=self.close_timeout,
            )
        except (OSError, asyncio.TimeoutError, WebSocketException) as e:
            raise TransportError(f"Could not connect to {safe_url}: {e.__class__.__name__}") from e

        if self._closed:
            # close() ran while the handshake was in flight
            await ws.close()
            raise TransportError("Channel closed during connect")
        self._ws = ws
        logger.info(f"Connected to {safe_url}")

    async def send(self, chunk) -> bool:
        """Send one chunk as a binary message. Returns False if it was dropped."""
        if not self.is_open:
            logger.warning(f"Channel not open, dropping chunk {chunk.sequence}")
            return False
        payload = chunk.to_bytes()
        try:
            await self._ws.send(payload)
        except WebSocketException as e:
            logger.warning(f"Send failed, dropping chunk {chunk.sequence}: {e}")
            return False
        self.bytes_sent += len(payload)
        logger.debug(f"Sent chunk {chunk.sequence} ({len(payload)} bytes)")
        return True

    async def frames(self) -> AsyncIterator[Frame]:
        """
        Yield inbound frames until the connection closes.

        A normal close ends the iteration; an abnormal one raises TransportError.
        """
        if self._ws is None:
            raise TransportError("Channel is not connected")
        ws = self._ws
        while True:
            try:
                frame = await ws.recv()
            except ConnectionClosedOK:
                logger.info("Connection closed normally")
                return
            except ConnectionClosedError as e:
                raise TransportError(f"Connection lost: {e}") from e
            yield frame

    async def close(self) -> None:
        """Close the connection. Safe before connect and when already closed."""
        self._closed = True
        ws, self._ws = self._ws, None
        if ws is None:
            return
        try:
            await ws.close()
        except Exception as e:
            logger.warning(f"Error closing websocket: {e}")
        logger.info("Channel closed")
