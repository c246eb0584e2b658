"""Infrastructure components for the live interview client.

This module contains low-level technical components: audio capture and
playback, the local camera preview, and the websocket transport.
"""

# Audio infrastructure
from .audio import (
    AudioCapturePipeline, CaptureConstraints, OutboundChunk,
    GoogleCloudTTSEngine, Voice
)

# Transport
from .transport import InterviewChannel, build_interview_url

__all__ = [
    # Audio
    "AudioCapturePipeline", "CaptureConstraints", "OutboundChunk",

    # Speech
    "GoogleCloudTTSEngine", "Voice",

    # Transport
    "InterviewChannel", "build_interview_url",
]
