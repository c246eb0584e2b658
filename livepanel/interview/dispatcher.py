"""
Routes decoded inbound frames to per-type handlers.
"""
import inspect
import logging
from typing import Any, Callable, Dict, Optional, Union

from .protocol import decode_event

logger = logging.getLogger("dispatcher")

Handler = Callable[[Any], Any]


class MessageDispatcher:
    """
    Decode a frame and call the handler registered for its event type.

    Decode and protocol errors propagate to the caller so the session can
    surface them; binary frames are logged and discarded.
    """

    def __init__(self, decoder: Callable[[str], Any] = decode_event):
        self.decoder = decoder
        self._handlers: Dict[str, Handler] = {}
        self.binary_frames_discarded = 0

    def register(self, event_type: str, handler: Handler) -> None:
        self._handlers[event_type] = handler

    async def dispatch(self, frame: Union[str, bytes]) -> Optional[Any]:
        """Handle one frame. Returns the decoded event, or None if it was discarded."""
        if isinstance(frame, (bytes, bytearray, memoryview)):
            self.binary_frames_discarded += 1
            logger.warning(f"Discarding binary frame ({len(frame)} bytes)")
            return None

        event = self.decoder(frame)
        handler = self._handlers.get(event.type)
        if handler is None:
            logger.warning(f"No handler for {event.type}")
            return event

        logger.debug(f"Dispatching {event.type}")
        result = handler(event)
        if inspect.isawaitable(result):
            await result
        return event
