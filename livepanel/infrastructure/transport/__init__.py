"""Websocket transport to the interviewer service."""

from .channel import InterviewChannel, build_interview_url, redact_url

__all__ = ["InterviewChannel", "build_interview_url", "redact_url"]
