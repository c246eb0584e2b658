"""
Event-driven observer surface for the interview session.
"""
import logging
from abc import ABC
from typing import Dict, Any, List, Callable, Optional
from dataclasses import dataclass
from enum import Enum

logger = logging.getLogger("events")


class EventType(str, Enum):
    """Types of session events."""
    STATE_CHANGED = "state_changed"
    STATUS_CHANGED = "status_changed"
    TRANSCRIPT_UPDATED = "transcript_updated"
    QUESTION_CHANGED = "question_changed"
    CHUNK_SENT = "chunk_sent"
    ERROR_OCCURRED = "error_occurred"
    SESSION_COMPLETED = "session_completed"


@dataclass
class SessionEvent(ABC):
    """Base class for all session events."""
    event_type: EventType
    session_id: str
    timestamp: float
    data: Dict[str, Any]


@dataclass
class StateChangedEvent(SessionEvent):
    """Event fired on every state machine transition."""
    def __init__(self, session_id: str, timestamp: float, old_state: str, new_state: str):
        super().__init__(
            event_type=EventType.STATE_CHANGED,
            session_id=session_id,
            timestamp=timestamp,
            data={"old_state": old_state, "new_state": new_state}
        )


@dataclass
class StatusChangedEvent(SessionEvent):
    """Event fired when the user-facing status line changes."""
    def __init__(self, session_id: str, timestamp: float, status: str):
        super().__init__(
            event_type=EventType.STATUS_CHANGED,
            session_id=session_id,
            timestamp=timestamp,
            data={"status": status}
        )


@dataclass
class TranscriptUpdatedEvent(SessionEvent):
    """Event fired when a transcript line is added or rewritten."""
    def __init__(self, session_id: str, timestamp: float, entry_id: str,
                 speaker: str, text: str, appended: bool):
        super().__init__(
            event_type=EventType.TRANSCRIPT_UPDATED,
            session_id=session_id,
            timestamp=timestamp,
            data={
                "entry_id": entry_id,
                "speaker": speaker,
                "text": text,
                "appended": appended
            }
        )


@dataclass
class QuestionChangedEvent(SessionEvent):
    def __init__(self, session_id: str, timestamp: float, text: str,
                 question_uuid: Optional[str], round_number: Optional[int]):
        super().__init__(
            event_type=EventType.QUESTION_CHANGED,
            session_id=session_id,
            timestamp=timestamp,
            data={
                "text": text,
                "question_uuid": question_uuid,
                "round_number": round_number
            }
        )


@dataclass
class ChunkSentEvent(SessionEvent):
    """Event fired after each flush attempt."""
    def __init__(self, session_id: str, timestamp: float, sequence: int,
                 sample_count: int, delivered: bool):
        super().__init__(
            event_type=EventType.CHUNK_SENT,
            session_id=session_id,
            timestamp=timestamp,
            data={
                "sequence": sequence,
                "sample_count": sample_count,
                "delivered": delivered
            }
        )


@dataclass
class ErrorOccurredEvent(SessionEvent):
    """Event fired when an error is surfaced to the user."""
    def __init__(self, session_id: str, timestamp: float, error_type: str,
                 error_message: str, fatal: bool):
        super().__init__(
            event_type=EventType.ERROR_OCCURRED,
            session_id=session_id,
            timestamp=timestamp,
            data={
                "error_type": error_type,
                "error_message": error_message,
                "fatal": fatal
            }
        )


@dataclass
class SessionCompletedEvent(SessionEvent):
    """Event fired when the server reports the interview finished."""
    def __init__(self, session_id: str, timestamp: float, message: str,
                 questions_asked: int, candidate_turns: int):
        super().__init__(
            event_type=EventType.SESSION_COMPLETED,
            session_id=session_id,
            timestamp=timestamp,
            data={
                "message": message,
                "questions_asked": questions_asked,
                "candidate_turns": candidate_turns
            }
        )


EventHandler = Callable[[SessionEvent], None]


class SessionEventBus:
    """Event bus between the session and its observers."""

    def __init__(self):
        self._handlers: Dict[EventType, List[EventHandler]] = {}
        self._global_handlers: List[EventHandler] = []

    def subscribe(self, event_type: EventType, handler: EventHandler) -> None:
        """
        Subscribe to specific event type.

        Args:
            event_type: Type of event to listen for
            handler: Function to call when event occurs
        """
        if event_type not in self._handlers:
            self._handlers[event_type] = []
        self._handlers[event_type].append(handler)
        logger.debug(f"Subscribed handler to {event_type}")

    def subscribe_all(self, handler: EventHandler) -> None:
        """Subscribe to all events."""
        self._global_handlers.append(handler)
        logger.debug("Subscribed global handler")

    def unsubscribe(self, event_type: EventType, handler: EventHandler) -> None:
        if event_type in self._handlers:
            try:
                self._handlers[event_type].remove(handler)
                logger.debug(f"Unsubscribed handler from {event_type}")
            except ValueError:
                logger.warning(f"Handler not found for {event_type}")

    def emit(self, event: SessionEvent) -> None:
        """
        Emit an event to all subscribers.

        A failing handler is logged and does not stop the others.
        """
        logger.debug(f"Emitting event: {event.event_type} for session {event.session_id}")

        for handler in list(self._handlers.get(event.event_type, [])):
            try:
                handler(event)
            except Exception as e:
                logger.error(f"Error in event handler for {event.event_type}: {e}")

        for handler in list(self._global_handlers):
            try:
                handler(event)
            except Exception as e:
                logger.error(f"Error in global event handler: {e}")

    def clear_handlers(self) -> None:
        """Clear all event handlers."""
        self._handlers.clear()
        self._global_handlers.clear()
        logger.debug("Cleared all event handlers")


class EventLogger:
    """Logs all events for debugging and analysis."""

    def __init__(self, log_level: int = logging.INFO):
        self.logger = logging.getLogger("event_logger")
        self.logger.setLevel(log_level)

    def handle_event(self, event: SessionEvent) -> None:
        """Log event details."""
        self.logger.info(f"Event: {event.event_type} | Session: {event.session_id} | Data: {event.data}")


class SessionMetrics:
    """Collects counters from session events."""

    def __init__(self):
        self.reset()

    def handle_event(self, event: SessionEvent) -> None:
        """Update metrics based on event."""
        if event.event_type == EventType.STATE_CHANGED:
            self.state_changes += 1
        elif event.event_type == EventType.TRANSCRIPT_UPDATED:
            self.transcript_updates += 1
        elif event.event_type == EventType.QUESTION_CHANGED:
            self.questions_received += 1
        elif event.event_type == EventType.CHUNK_SENT:
            if event.data.get("delivered"):
                self.chunks_sent += 1
            else:
                self.chunks_dropped += 1
        elif event.event_type == EventType.ERROR_OCCURRED:
            self.errors_occurred += 1
        elif event.event_type == EventType.SESSION_COMPLETED:
            self.sessions_completed += 1

    def get_metrics(self) -> Dict[str, int]:
        """Get current metrics snapshot."""
        return {
            "state_changes": self.state_changes,
            "transcript_updates": self.transcript_updates,
            "questions_received": self.questions_received,
            "chunks_sent": self.chunks_sent,
            "chunks_dropped": self.chunks_dropped,
            "errors_occurred": self.errors_occurred,
            "sessions_completed": self.sessions_completed
        }

    def reset(self) -> None:
        """Reset all metrics to zero."""
        self.state_changes = 0
        self.transcript_updates = 0
        self.questions_received = 0
        self.chunks_sent = 0
        self.chunks_dropped = 0
        self.errors_occurred = 0
        self.sessions_completed = 0
