"""
Audio components for the live interview client.

This module contains all audio-related functionality organized into clear submodules:
- hardware: PyAudio drivers for microphone input and speaker output
- processing: PCM16 conversion, rolling buffer and the capture pipeline
- speech: Text-to-speech playback
"""

from .processing import AudioCapturePipeline, CaptureConstraints, OutboundChunk
from .speech import GoogleCloudTTSEngine, Voice

__all__ = [
    "AudioCapturePipeline",
    "CaptureConstraints",
    "OutboundChunk",
    "GoogleCloudTTSEngine",
    "Voice",
]
