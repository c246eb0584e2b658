"""
Livepanel: live interview session client.

Streams the candidate's microphone to a remote AI interviewer over a
websocket, assembles the live transcript, and speaks the interviewer's lines.
"""

__version__ = "1.0.0"

# Main entry points
from .interview.session import InterviewSession
from .interview.models import SessionState, TranscriptEntry, SessionSummary

__all__ = ["InterviewSession", "SessionState", "TranscriptEntry", "SessionSummary"]
