"""
Audio capture pipeline: device acquisition, PCM16 buffering and periodic chunk flush.
"""
import asyncio
import logging
from dataclasses import dataclass
from typing import Awaitable, Callable, Optional

import numpy as np

from ....config import (
    CAMERA_INDEX, CHANNELS, ECHO_CANCELLATION, NOISE_SUPPRESSION,
    DEFAULT_CAPTURE_BUFFER_SIZE, DEFAULT_CHUNK_DURATION_SECONDS, DEFAULT_SAMPLE_RATE,
)
from ....errors import DeviceUnavailable
from .buffer import OutboundChunk, RollingAudioBuffer
from .processing import float_to_pcm16

logger = logging.getLogger("audio_capture")

ChunkSender = Callable[[OutboundChunk], Awaitable[bool]]


@dataclass
class CaptureConstraints:
    """What the pipeline asks of the capture devices."""
    sample_rate: int = DEFAULT_SAMPLE_RATE
    channels: int = CHANNELS
    echo_cancellation: bool = ECHO_CANCELLATION
    noise_suppression: bool = NOISE_SUPPRESSION
    video: bool = True
    frames_per_buffer: int = DEFAULT_CAPTURE_BUFFER_SIZE
    input_device: Optional[int] = None
    camera_index: int = CAMERA_INDEX


def _default_microphone_factory(constraints, on_samples):
    from ..hardware import PyAudioMicrophone
    return PyAudioMicrophone(constraints, on_samples)


def _default_camera_factory(constraints):
    from ...video import CameraPreview
    return CameraPreview(constraints.camera_index)


class AudioCapturePipeline:
    """
    Owns the microphone, the optional camera preview and the rolling PCM16 buffer.

    Samples arrive on the device thread through ``feed``; the flush task runs on
    the event loop and hands one chunk per interval to the sender.
    """

    def __init__(self,
                 sample_rate: int = DEFAULT_SAMPLE_RATE,
                 chunk_duration_seconds: float = DEFAULT_CHUNK_DURATION_SECONDS,
                 microphone_factory=None,
                 camera_factory=None):
        if chunk_duration_seconds <= 0:
            raise ValueError("chunk_duration_seconds must be greater than zero")
        self.sample_rate = sample_rate
        self.chunk_duration_seconds = chunk_duration_seconds
        self.microphone_factory = microphone_factory or _default_microphone_factory
        self.camera_factory = camera_factory or _default_camera_factory

        self.buffer = RollingAudioBuffer()
        self.microphone = None
        self.camera = None
        self._flush_task: Optional[asyncio.Task] = None
        self._release_generation = 0
        self._sequence = 0
        self.chunks_sent = 0
        self.chunks_dropped = 0

    @property
    def chunk_size(self) -> int:
        return int(self.sample_rate * self.chunk_duration_seconds)

    @property
    def is_acquired(self) -> bool:
        return self.microphone is not None

    @property
    def is_recording(self) -> bool:
        return self._flush_task is not None and not self._flush_task.done()

    async def acquire(self, constraints: CaptureConstraints) -> None:
        """
        Open the microphone (and camera preview when requested).

        Device opening blocks, so it runs in the default executor. Devices are
        only adopted once every open has returned. If ``release`` ran in the
        meantime, or any open fails, whatever was opened is closed again and
        DeviceUnavailable is raised.
        """
        loop = asyncio.get_running_loop()
        generation = self._release_generation
        microphone = camera = None
        try:
            microphone = self.microphone_factory(constraints, self.feed)
            await loop.run_in_executor(None, microphone.start)
            if constraints.video:
                camera = self.camera_factory(constraints)
                await loop.run_in_executor(None, camera.open)
            if generation != self._release_generation:
                raise DeviceUnavailable("Capture released while devices were opening")
        except Exception as e:
            self._close_devices(microphone, camera)
            self.buffer.clear()
            if isinstance(e, DeviceUnavailable):
                raise
            raise DeviceUnavailable(str(e)) from e

        self.microphone, self.camera = microphone, camera
        logger.info(f"Capture acquired: {constraints.sample_rate} Hz mono, "
                    f"video={'on' if constraints.video else 'off'}")

    def feed(self, samples: np.ndarray) -> None:
        """Convert a float slice to PCM16 and append it. Called from the device thread."""
        self.buffer.append(float_to_pcm16(samples))

    def next_chunk(self) -> Optional[OutboundChunk]:
        """Take the next outbound chunk off the buffer, or None if it is empty."""
        samples = self.buffer.drain(self.chunk_size)
        if samples is None:
            return None
        chunk = OutboundChunk(sequence=self._sequence, samples=samples, sample_rate=self.sample_rate)
        self._sequence += 1
        return chunk

    async def flush(self, sender: ChunkSender) -> Optional[OutboundChunk]:
        chunk = self.next_chunk()
        if chunk is None:
            return None
        if await sender(chunk):
            self.chunks_sent += 1
        else:
            self.chunks_dropped += 1
            logger.warning(f"Chunk {chunk.sequence} dropped ({chunk.sample_count} samples)")
        return chunk

    def start_recording(self, sender: ChunkSender) -> None:
        if self.is_recording:
            return
        self._flush_task = asyncio.create_task(self._flush_loop(sender), name="audio-flush")

    async def _flush_loop(self, sender: ChunkSender) -> None:
        while True:
            await asyncio.sleep(self.chunk_duration_seconds)
            try:
                await self.flush(sender)
            except asyncio.CancelledError:
                raise
            except Exception as e:
                logger.error(f"Flush failed: {e}")

    def preview_frame(self):
        """Most recent camera frame for local display, or None."""
        if self.camera is None:
            return None
        return self.camera.latest_frame()

    async def release(self) -> None:
        """Stop flushing, close devices and clear the buffer. Safe to call repeatedly."""
        self._release_generation += 1
        task, self._flush_task = self._flush_task, None
        if task is not None and task is not asyncio.current_task():
            task.cancel()
            try:
                await task
            except asyncio.CancelledError:
                pass
            except Exception as e:
                logger.warning(f"Flush task ended with error: {e}")

        microphone, self.microphone = self.microphone, None
        camera, self.camera = self.camera, None
        self._close_devices(microphone, camera)
        self.buffer.clear()

    @staticmethod
    def _close_devices(microphone, camera) -> None:
        """Best-effort close of whichever devices exist; errors are only logged."""
        if microphone is not None:
            try:
                microphone.stop()
            except Exception as e:
                logger.warning(f"Error stopping microphone: {e}")
            try:
                microphone.close()
            except Exception as e:
                logger.warning(f"Error closing microphone: {e}")

        if camera is not None:
            try:
                camera.close()
            except Exception as e:
                logger.warning(f"Error closing camera: {e}")
