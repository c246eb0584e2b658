import asyncio

import numpy as np
import pytest

from livepanel.errors import DeviceUnavailable
from livepanel.infrastructure.audio.processing import AudioCapturePipeline, CaptureConstraints
from livepanel.interview.testing import MockCaptureDevices


def _pipeline(devices, sample_rate=1000, chunk_duration_seconds=0.5):
    return AudioCapturePipeline(
        sample_rate=sample_rate,
        chunk_duration_seconds=chunk_duration_seconds,
        microphone_factory=devices.microphone_factory,
        camera_factory=devices.camera_factory,
    )


class CollectingSender:
    def __init__(self, delivered=True):
        self.delivered = delivered
        self.chunks = []

    async def __call__(self, chunk):
        self.chunks.append(chunk)
        return self.delivered


@pytest.mark.asyncio
async def test_acquire_opens_microphone_and_camera():
    devices = MockCaptureDevices()
    pipeline = _pipeline(devices)

    await pipeline.acquire(CaptureConstraints(sample_rate=1000))

    assert devices.microphone.started
    assert devices.camera.opened
    assert pipeline.preview_frame() is not None
    await pipeline.release()


@pytest.mark.asyncio
async def test_video_can_be_disabled():
    devices = MockCaptureDevices()
    pipeline = _pipeline(devices)

    await pipeline.acquire(CaptureConstraints(sample_rate=1000, video=False))

    assert devices.cameras == []
    assert pipeline.preview_frame() is None
    await pipeline.release()


@pytest.mark.asyncio
async def test_flush_emits_full_chunks_and_keeps_remainder():
    devices = MockCaptureDevices()
    pipeline = _pipeline(devices)
    await pipeline.acquire(CaptureConstraints(sample_rate=1000, video=False))
    sender = CollectingSender()

    for _ in range(4):
        devices.microphone.push(np.full(300, 0.25, dtype=np.float32))
    await pipeline.flush(sender)
    await pipeline.flush(sender)

    assert [c.sample_count for c in sender.chunks] == [500, 500]
    assert [c.sequence for c in sender.chunks] == [0, 1]
    assert len(pipeline.buffer) == 200
    assert pipeline.chunks_sent == 2

    await pipeline.flush(sender)
    assert sender.chunks[-1].sample_count == 200
    assert await pipeline.flush(sender) is None
    assert len(sender.chunks) == 3
    await pipeline.release()


@pytest.mark.asyncio
async def test_dropped_chunk_is_counted():
    devices = MockCaptureDevices()
    pipeline = _pipeline(devices)
    await pipeline.acquire(CaptureConstraints(sample_rate=1000, video=False))
    devices.microphone.push(np.zeros(100, dtype=np.float32))

    await pipeline.flush(CollectingSender(delivered=False))

    assert pipeline.chunks_dropped == 1
    assert len(pipeline.buffer) == 0
    await pipeline.release()


@pytest.mark.asyncio
async def test_recording_flushes_periodically():
    devices = MockCaptureDevices()
    pipeline = _pipeline(devices, sample_rate=1000, chunk_duration_seconds=0.02)
    await pipeline.acquire(CaptureConstraints(sample_rate=1000, video=False))
    sender = CollectingSender()

    pipeline.start_recording(sender)
    devices.microphone.push(np.zeros(50, dtype=np.float32))
    await asyncio.sleep(0.2)

    assert pipeline.is_recording
    assert sum(c.sample_count for c in sender.chunks) == 50
    await pipeline.release()
    assert not pipeline.is_recording


@pytest.mark.asyncio
async def test_microphone_failure_raises_device_unavailable():
    devices = MockCaptureDevices()
    devices.microphone_error = DeviceUnavailable("Permission denied")
    pipeline = _pipeline(devices)

    with pytest.raises(DeviceUnavailable):
        await pipeline.acquire(CaptureConstraints(sample_rate=1000))

    assert devices.microphone.closed
    assert devices.cameras == []
    assert not pipeline.is_acquired


@pytest.mark.asyncio
async def test_camera_failure_releases_the_opened_microphone():
    devices = MockCaptureDevices()
    devices.camera_error = RuntimeError("no camera")
    pipeline = _pipeline(devices)

    with pytest.raises(DeviceUnavailable):
        await pipeline.acquire(CaptureConstraints(sample_rate=1000))

    assert devices.microphone.stopped
    assert devices.microphone.closed
    assert devices.live_handles() == 0


@pytest.mark.asyncio
async def test_release_is_idempotent_and_clears_buffer():
    devices = MockCaptureDevices()
    pipeline = _pipeline(devices)
    await pipeline.acquire(CaptureConstraints(sample_rate=1000))
    devices.microphone.push(np.zeros(10, dtype=np.float32))

    await pipeline.release()
    await pipeline.release()

    assert len(pipeline.buffer) == 0
    assert devices.live_handles() == 0


def test_chunk_size_follows_rate_and_duration():
    assert AudioCapturePipeline(sample_rate=16000, chunk_duration_seconds=10).chunk_size == 160000
    with pytest.raises(ValueError):
        AudioCapturePipeline(chunk_duration_seconds=0)


@pytest.mark.asyncio
async def test_release_during_acquire_closes_devices_that_open_late():
    devices = MockCaptureDevices()
    devices.camera_delay = 0.2
    pipeline = _pipeline(devices)

    acquire = asyncio.create_task(pipeline.acquire(CaptureConstraints(sample_rate=1000)))
    await asyncio.sleep(0.05)
    await pipeline.release()

    with pytest.raises(DeviceUnavailable):
        await acquire
    assert devices.camera.opened
    assert devices.camera.closed
    assert devices.microphone.closed
    assert devices.live_handles() == 0
    assert not pipeline.is_acquired
