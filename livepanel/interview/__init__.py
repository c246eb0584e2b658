"""Interview session components.

This module contains the business logic of a live interview: the session
state machine, the wire protocol and dispatcher, the transcript, and the
playback and analyzing-timer services.
"""

# Session state machine
from .session import InterviewSession

# Data models
from .models import (
    Speaker, SessionState, TranscriptEntry, CurrentQuestion,
    SessionSnapshot, SessionSummary
)

# Wire protocol and routing
from .protocol import (
    ConnectionEstablishedEvent, GreetingEvent, TranscriptionUpdateEvent,
    ScoringUpdateEvent, NextQuestionEvent, InterviewCompletedEvent,
    ServerErrorEvent, AnnouncementEvent, decode_event, classify_unrecognized
)
from .dispatcher import MessageDispatcher

# Transcript
from .transcript import TranscriptAssembler, unescape_text

# Service classes
from .services import PlaybackController, AnalyzingDebounce

# Event system
from .events import (
    SessionEventBus, EventLogger, SessionMetrics,
    EventType, SessionEvent, StateChangedEvent, StatusChangedEvent,
    TranscriptUpdatedEvent, QuestionChangedEvent, ChunkSentEvent,
    ErrorOccurredEvent, SessionCompletedEvent
)

__all__ = [
    # Session
    "InterviewSession",

    # Data models
    "Speaker", "SessionState", "TranscriptEntry", "CurrentQuestion",
    "SessionSnapshot", "SessionSummary",

    # Protocol
    "ConnectionEstablishedEvent", "GreetingEvent", "TranscriptionUpdateEvent",
    "ScoringUpdateEvent", "NextQuestionEvent", "InterviewCompletedEvent",
    "ServerErrorEvent", "AnnouncementEvent", "decode_event", "classify_unrecognized",
    "MessageDispatcher",

    # Transcript
    "TranscriptAssembler", "unescape_text",

    # Services
    "PlaybackController", "AnalyzingDebounce",

    # Events
    "SessionEventBus", "EventLogger", "SessionMetrics",
    "EventType", "SessionEvent", "StateChangedEvent", "StatusChangedEvent",
    "TranscriptUpdatedEvent", "QuestionChangedEvent", "ChunkSentEvent",
    "ErrorOccurredEvent", "SessionCompletedEvent",
]
