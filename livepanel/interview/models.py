"""
Data models for the live interview session.
"""
import logging
import uuid
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import List, Optional, Tuple

logger = logging.getLogger("session")


class Speaker(str, Enum):
    """Who said a transcript line."""
    AI = "ai"
    CANDIDATE = "candidate"
    SYSTEM = "system"

    @classmethod
    def from_character(cls, character: Optional[str]) -> "Speaker":
        """Map the wire ``character`` field to a speaker."""
        if not character:
            return cls.AI
        value = character.strip().lower()
        if value in ("candidate", "you"):
            return cls.CANDIDATE
        if value == "system":
            return cls.SYSTEM
        if value != "ai":
            logger.debug(f"Unknown character {character!r}, treating as ai")
        return cls.AI


class SessionState(str, Enum):
    IDLE = "idle"
    CONNECTING = "connecting"
    CONNECTED = "connected"
    RECORDING = "recording"
    ANALYZING = "analyzing"
    COMPLETED = "completed"
    ERROR = "error"
    STOPPED = "stopped"

    @property
    def is_terminal(self) -> bool:
        return self in (SessionState.COMPLETED, SessionState.ERROR, SessionState.STOPPED)


CONNECTED_STATES = frozenset({SessionState.CONNECTED, SessionState.RECORDING, SessionState.ANALYZING})
RECORDING_STATES = frozenset({SessionState.RECORDING, SessionState.ANALYZING})
STARTABLE_STATES = frozenset({SessionState.IDLE, SessionState.STOPPED, SessionState.CONNECTED})


@dataclass
class TranscriptEntry:
    """One line of the interview transcript."""
    speaker: Speaker
    text: str
    id: str = field(default_factory=lambda: uuid.uuid4().hex)
    timestamp: datetime = field(default_factory=datetime.now)


@dataclass(frozen=True)
class CurrentQuestion:
    """The question currently being asked, replaced on each next_question."""
    text: str
    question_uuid: Optional[str] = None
    round_number: Optional[int] = None
    difficulty: Optional[str] = None
    question_name: Optional[str] = None
    expected_time_in_seconds: Optional[float] = None


@dataclass(frozen=True)
class SessionSnapshot:
    """Read-only view of the session for display."""
    state: SessionState
    status: str
    error: Optional[str]
    transcript: Tuple[TranscriptEntry, ...]
    current_question: Optional[CurrentQuestion]

    @property
    def is_connected(self) -> bool:
        return self.state in CONNECTED_STATES

    @property
    def is_recording(self) -> bool:
        return self.state in RECORDING_STATES

    @property
    def is_analyzing(self) -> bool:
        return self.state is SessionState.ANALYZING

    @property
    def is_completed(self) -> bool:
        return self.state is SessionState.COMPLETED

    @property
    def can_start(self) -> bool:
        return self.state in STARTABLE_STATES


@dataclass
class SessionSummary:
    """End-of-interview results for the summary screen."""
    session_id: str
    started_at: Optional[datetime]
    ended_at: Optional[datetime]
    questions_asked: int = 0
    candidate_turns: int = 0
    scores: List[Tuple[Optional[float], str]] = field(default_factory=list)
    completion_message: str = ""

    @property
    def duration_seconds(self) -> float:
        if self.started_at is None or self.ended_at is None:
            return 0.0
        return (self.ended_at - self.started_at).total_seconds()

    @property
    def average_score(self) -> Optional[float]:
        values = [score for score, _ in self.scores if score is not None]
        if not values:
            return None
        return sum(values) / len(values)
