"""
Wire format of inbound session events.

Every inbound text frame is a JSON object. Tagged objects are validated
against the models below; objects without a recognised ``type`` get a
best-effort classification.

The server's schema is not versioned, so field types are lenient: a null or
non-text ``message`` reads as empty text, and metadata the engine only
passes along falls back to None when its value cannot be used.
"""
import json
import logging
from typing import Annotated, Any, Dict, Literal, Optional, Union

from pydantic import BaseModel, BeforeValidator, ConfigDict, Field, TypeAdapter, ValidationError

from ..errors import DecodeError, ProtocolError

logger = logging.getLogger("dispatcher")


def _as_text(value: Any) -> str:
    if isinstance(value, str):
        return value
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return str(value)
    return ""


def _as_optional_text(value: Any) -> Optional[str]:
    return _as_text(value) or None


def _as_number(value: Any) -> Optional[float]:
    if isinstance(value, bool) or value is None:
        return None
    try:
        number = float(value)
    except (TypeError, ValueError):
        return None
    return number if number == number else None


def _as_whole_number(value: Any) -> Optional[int]:
    number = _as_number(value)
    if number is None or not number.is_integer():
        return None
    return int(number)


Text = Annotated[str, BeforeValidator(_as_text)]
OptionalText = Annotated[Optional[str], BeforeValidator(_as_optional_text)]
LenientNumber = Annotated[Optional[float], BeforeValidator(_as_number)]
LenientWholeNumber = Annotated[Optional[int], BeforeValidator(_as_whole_number)]


class InboundEvent(BaseModel):
    """Base for all inbound events; unknown extra fields are ignored."""
    model_config = ConfigDict(extra="ignore", frozen=True)


class ConnectionEstablishedEvent(InboundEvent):
    type: Literal["connection_established"] = "connection_established"
    message: Text = ""


class GreetingEvent(InboundEvent):
    type: Literal["greeting"] = "greeting"
    character: OptionalText = None
    message: Text = ""
    panel_name: OptionalText = None
    panel_description: OptionalText = None


class TranscriptionUpdateEvent(InboundEvent):
    type: Literal["transcription_update"] = "transcription_update"
    character: OptionalText = None
    message: Text = ""
    answer_uuid: OptionalText = None


class ScoringUpdateEvent(InboundEvent):
    type: Literal["scoring_update"] = "scoring_update"
    score: LenientNumber = None
    feedback: Text = ""


class NextQuestionEvent(InboundEvent):
    type: Literal["next_question"] = "next_question"
    character: OptionalText = None
    message: Text = ""
    question_uuid: OptionalText = None
    round_number: LenientWholeNumber = None
    difficulty: OptionalText = None
    question_name: OptionalText = None
    expected_time_in_seconds: LenientNumber = None


class InterviewCompletedEvent(InboundEvent):
    type: Literal["interview_completed"] = "interview_completed"
    message: Text = ""


class ServerErrorEvent(InboundEvent):
    type: Literal["error"] = "error"
    message: Text = ""


class AnnouncementEvent(InboundEvent):
    """Untagged message carrying only text, shown as a transcript line."""
    type: Literal["announcement"] = "announcement"
    character: OptionalText = None
    message: Text = ""


SessionEvent = Annotated[
    Union[
        ConnectionEstablishedEvent,
        GreetingEvent,
        TranscriptionUpdateEvent,
        ScoringUpdateEvent,
        NextQuestionEvent,
        InterviewCompletedEvent,
        ServerErrorEvent,
        AnnouncementEvent,
    ],
    Field(discriminator="type"),
]

_event_adapter = TypeAdapter(SessionEvent)

TAGGED_TYPES = frozenset({
    "connection_established",
    "greeting",
    "transcription_update",
    "scoring_update",
    "next_question",
    "interview_completed",
    "error",
})


def classify_unrecognized(payload: Dict[str, Any]):
    """
    Best-effort mapping of an object without a known ``type``.

    A ``question`` field means a question; a bare ``message`` is an
    announcement; ``uuid`` plus ``name`` is a question-bank object whose name
    is the question text.
    """
    character = payload.get("character")

    if payload.get("question"):
        return NextQuestionEvent(
            character=character,
            message=_as_text(payload.get("message")) or _as_text(payload.get("question")),
            question_uuid=payload.get("uuid"),
        )
    if payload.get("message"):
        return AnnouncementEvent(character=character, message=payload.get("message"))
    if payload.get("uuid") and payload.get("name"):
        return NextQuestionEvent(
            character=character,
            message=payload.get("name"),
            question_uuid=payload.get("uuid"),
            question_name=payload.get("name"),
        )
    raise ProtocolError("Unrecognized message", payload=payload)


def decode_event(raw: str):
    """
    Decode one inbound text frame into an event model.

    Raises DecodeError for malformed JSON and ProtocolError for JSON that is
    not an object or cannot be classified.
    """
    try:
        payload = json.loads(raw)
    except json.JSONDecodeError as e:
        raise DecodeError(str(e), raw=raw) from e

    if not isinstance(payload, dict):
        raise ProtocolError(f"Expected a JSON object, got {type(payload).__name__}", payload=payload)

    event_type = payload.get("type")
    if event_type in TAGGED_TYPES:
        try:
            return _event_adapter.validate_python(payload)
        except ValidationError as e:
            raise ProtocolError(f"Invalid {event_type} message: {e.error_count()} validation error(s)",
                                payload=payload) from e

    if event_type:
        logger.warning(f"Unknown message type {event_type!r}, classifying by fields")
    else:
        logger.debug("Untyped message, classifying by fields")
    return classify_unrecognized(payload)
