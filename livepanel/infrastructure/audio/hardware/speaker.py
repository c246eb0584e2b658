"""
PyAudio speaker used for synthesized speech playback.
"""
import logging
import threading
from typing import Optional

import numpy as np

from ....config import SPEAKER_BUFFER_SIZE, SPEAKER_VOLUME
from ....utils import with_suppressed_audio_warnings

logger = logging.getLogger("speaker")


class PyAudioSpeaker:
    """Blocking PCM16 playback that can be interrupted between blocks."""

    def __init__(self,
                 output_device: Optional[int] = None,
                 buffer_size: int = SPEAKER_BUFFER_SIZE,
                 volume: float = SPEAKER_VOLUME):
        self.output_device = output_device
        self.buffer_size = buffer_size
        self.volume = max(0.0, min(1.0, volume))

    @with_suppressed_audio_warnings
    def _open(self, sample_rate: int, channels: int):
        import pyaudio

        pa = pyaudio.PyAudio()
        try:
            stream = pa.open(
                format=pyaudio.paInt16,
                channels=channels,
                rate=sample_rate,
                output=True,
                output_device_index=self.output_device,
                frames_per_buffer=self.buffer_size,
            )
        except Exception:
            pa.terminate()
            raise
        return pa, stream

    def play(self, pcm16: np.ndarray, sample_rate: int, channels: int = 1,
             cancelled: Optional[threading.Event] = None) -> bool:
        """
        Play PCM16 samples. Returns False if playback was cancelled part way.
        """
        if self.volume < 1.0:
            pcm16 = (pcm16.astype(np.float32) * self.volume).astype(np.int16)

        pa, stream = self._open(sample_rate, channels)
        step = self.buffer_size * channels
        try:
            for start in range(0, pcm16.size, step):
                if cancelled is not None and cancelled.is_set():
                    logger.debug("Playback cancelled")
                    return False
                stream.write(pcm16[start:start + step].astype("<i2").tobytes())
            return True
        finally:
            stream.stop_stream()
            stream.close()
            pa.terminate()
