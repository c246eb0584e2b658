"""Audio processing: PCM16 conversion, rolling buffer and the capture pipeline."""

from .buffer import OutboundChunk, RollingAudioBuffer
from .capture import AudioCapturePipeline, CaptureConstraints
from .processing import (
    StreamResampler, deinterleave, float_to_pcm16, pcm16_to_bytes, stereo_to_mono,
)

__all__ = [
    "AudioCapturePipeline",
    "CaptureConstraints",
    "OutboundChunk",
    "RollingAudioBuffer",
    "StreamResampler",
    "deinterleave",
    "float_to_pcm16",
    "pcm16_to_bytes",
    "stereo_to_mono",
]
