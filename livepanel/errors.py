"""
Exception taxonomy for the live interview session engine.
"""
from typing import Any, Optional


class InterviewSessionError(Exception):
    """Base class for all session engine errors."""


class DeviceUnavailable(InterviewSessionError):
    """Capture permission was denied or no matching device was found."""


class TransportError(InterviewSessionError):
    """The interview connection could not be opened, used, or was lost."""


class DecodeError(InterviewSessionError):
    """An inbound frame was not valid JSON."""

    def __init__(self, message: str, raw: Optional[str] = None):
        super().__init__(message)
        self.raw = raw


class ProtocolError(InterviewSessionError):
    """An inbound frame decoded but does not match any known message shape."""

    def __init__(self, message: str, payload: Any = None):
        super().__init__(message)
        self.payload = payload


class PlaybackError(InterviewSessionError):
    """Speech synthesis or playback failed. Never fatal to the session."""


class InvalidTransition(InterviewSessionError):
    """A lifecycle operation was requested from a state that does not allow it."""
