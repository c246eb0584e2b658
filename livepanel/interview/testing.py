"""
Testing infrastructure with mock collaborators for the interview session.
"""
import asyncio
import json
import threading
import time
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

import numpy as np

from ..errors import PlaybackError, TransportError
from ..infrastructure.audio.processing import AudioCapturePipeline
from ..infrastructure.audio.speech import Voice
from ..infrastructure.transport import build_interview_url
from .events import EventType, SessionEventBus
from .services import PlaybackController
from .session import InterviewSession

_SERVER_CLOSE = object()


@dataclass
class _ServerFailure:
    reason: str


class MockChannel:
    """In-memory stand-in for InterviewChannel; tests push frames with ``feed``."""

    def __init__(self, fail_connect: Optional[str] = None, connect_delay: float = 0.0,
                 send_delay: float = 0.0):
        self.fail_connect = fail_connect
        self.connect_delay = connect_delay
        self.send_delay = send_delay
        self.sends_started = 0
        self.url: Optional[str] = None
        self.sent: List[Any] = []
        self.dropped: List[Any] = []
        self.close_calls = 0
        self._open = False
        self._closed = False
        self._frames: asyncio.Queue = asyncio.Queue()

    @property
    def is_open(self) -> bool:
        return self._open

    async def connect(self, base_url: str, token: str) -> None:
        self.url = build_interview_url(base_url, token)
        self._closed = False
        if self.connect_delay:
            await asyncio.sleep(self.connect_delay)
        if self.fail_connect:
            raise TransportError(self.fail_connect)
        if self._closed:
            raise TransportError("Channel closed during connect")
        self._open = True

    async def send(self, chunk) -> bool:
        self.sends_started += 1
        if self.send_delay:
            await asyncio.sleep(self.send_delay)
        if not self._open:
            self.dropped.append(chunk)
            return False
        self.sent.append(chunk)
        return True

    async def frames(self):
        while True:
            item = await self._frames.get()
            try:
                if item is _SERVER_CLOSE:
                    self._open = False
                    return
                if isinstance(item, _ServerFailure):
                    self._open = False
                    raise TransportError(item.reason)
                yield item
            finally:
                self._frames.task_done()

    async def close(self) -> None:
        self.close_calls += 1
        self._closed = True
        self._open = False

    def feed(self, frame) -> None:
        self._frames.put_nowait(frame)

    def feed_json(self, payload: Dict[str, Any]) -> None:
        self.feed(json.dumps(payload))

    def close_from_server(self, normal: bool = True, reason: str = "connection reset") -> None:
        self._frames.put_nowait(_SERVER_CLOSE if normal else _ServerFailure(reason))

    async def wait_drained(self) -> None:
        await self._frames.join()


class MockMicrophone:
    """Capture device double; ``push`` delivers a float slice as the driver would."""

    def __init__(self, constraints, on_samples, fail_with: Optional[Exception] = None,
                 start_delay: float = 0.0):
        self.constraints = constraints
        self.on_samples = on_samples
        self.fail_with = fail_with
        self.start_delay = start_delay
        self.started = False
        self.stopped = False
        self.closed = False

    def start(self) -> None:
        # Runs in the executor, like a real device open
        if self.start_delay:
            time.sleep(self.start_delay)
        if self.fail_with is not None:
            raise self.fail_with
        self.started = True

    def push(self, samples) -> None:
        self.on_samples(np.asarray(samples, dtype=np.float32))

    def stop(self) -> None:
        self.stopped = True

    def close(self) -> None:
        self.closed = True


class MockCamera:
    def __init__(self, constraints, fail_with: Optional[Exception] = None, open_delay: float = 0.0):
        self.constraints = constraints
        self.fail_with = fail_with
        self.open_delay = open_delay
        self.opened = False
        self.closed = False
        self.frame = np.zeros((4, 4, 3), dtype=np.uint8)

    def open(self) -> None:
        if self.open_delay:
            time.sleep(self.open_delay)
        if self.fail_with is not None:
            raise self.fail_with
        self.opened = True

    def latest_frame(self):
        return self.frame if self.opened and not self.closed else None

    def close(self) -> None:
        self.closed = True


class MockCaptureDevices:
    """Factories for the capture pipeline that remember every device they built."""

    def __init__(self):
        self.microphones: List[MockMicrophone] = []
        self.cameras: List[MockCamera] = []
        self.microphone_error: Optional[Exception] = None
        self.camera_error: Optional[Exception] = None
        self.microphone_delay = 0.0
        self.camera_delay = 0.0

    def microphone_factory(self, constraints, on_samples) -> MockMicrophone:
        microphone = MockMicrophone(constraints, on_samples, fail_with=self.microphone_error,
                                    start_delay=self.microphone_delay)
        self.microphones.append(microphone)
        return microphone

    def camera_factory(self, constraints) -> MockCamera:
        camera = MockCamera(constraints, fail_with=self.camera_error, open_delay=self.camera_delay)
        self.cameras.append(camera)
        return camera

    @property
    def microphone(self) -> Optional[MockMicrophone]:
        return self.microphones[-1] if self.microphones else None

    @property
    def camera(self) -> Optional[MockCamera]:
        return self.cameras[-1] if self.cameras else None

    def live_handles(self) -> int:
        """Devices that were opened and not yet closed."""
        mics = sum(1 for m in self.microphones if m.started and not m.closed)
        cams = sum(1 for c in self.cameras if c.opened and not c.closed)
        return mics + cams


class MockTTSEngine:
    """Speech engine double recording what it was asked to say."""

    def __init__(self, voices: Optional[List[Voice]] = None, fail_speak: bool = False,
                 fail_list_voices: bool = False, hold: bool = False):
        self.voices = voices if voices is not None else [
            Voice("en-GB-Neural2-A", ["en-GB"]),
            Voice("en-US-Neural2-J", ["en-US"]),
        ]
        self.fail_speak = fail_speak
        self.fail_list_voices = fail_list_voices
        self.hold = hold
        self.spoken: List[str] = []
        self.voices_used: List[Optional[Voice]] = []
        self.interrupted: List[str] = []
        self.list_voices_calls = 0
        self.cancel_calls = 0
        self._lock = threading.Lock()

    def list_voices(self) -> List[Voice]:
        self.list_voices_calls += 1
        if self.fail_list_voices:
            raise PlaybackError("voice listing unavailable")
        return list(self.voices)

    def speak(self, text: str, voice: Optional[Voice] = None,
              cancelled: Optional[threading.Event] = None) -> bool:
        with self._lock:
            self.spoken.append(text)
            self.voices_used.append(voice)
        if self.fail_speak:
            raise PlaybackError("synthesis failed")
        if self.hold and cancelled is not None:
            # Play "forever" until cancelled, bounded so a broken test cannot hang
            if cancelled.wait(timeout=5.0):
                with self._lock:
                    self.interrupted.append(text)
                return False
        return True

    def cancel(self) -> None:
        self.cancel_calls += 1


@dataclass
class MockSessionHarness:
    """A session wired to mock collaborators, plus handles on each of them."""
    session: InterviewSession
    devices: MockCaptureDevices
    engine: MockTTSEngine
    channels: List[MockChannel] = field(default_factory=list)
    statuses: List[str] = field(default_factory=list)

    @property
    def channel(self) -> MockChannel:
        return self.channels[-1]

    async def settle(self) -> None:
        """Wait until every fed frame has been received and handled."""
        if self.channels:
            await self.channel.wait_drained()
        await self.session.wait_idle()

    def speak_settled(self, timeout: float = 2.0) -> bool:
        return self.session.playback.wait_until_idle(timeout=timeout)


def create_mock_session(token: str = "test-token",
                        chunk_duration_seconds: float = 0.05,
                        analyzing_debounce_seconds: float = 0.05,
                        fail_connect: Optional[str] = None,
                        connect_delay: float = 0.0,
                        send_delay: float = 0.0,
                        engine: Optional[MockTTSEngine] = None,
                        **kwargs) -> MockSessionHarness:
    """Build an InterviewSession whose transport, devices and speech are all mocks."""
    devices = MockCaptureDevices()
    engine = engine or MockTTSEngine()
    channels: List[MockChannel] = []

    def channel_factory() -> MockChannel:
        channel = MockChannel(fail_connect=fail_connect, connect_delay=connect_delay,
                              send_delay=send_delay)
        channels.append(channel)
        return channel

    sample_rate = kwargs.pop("sample_rate", 16000)
    pipeline = AudioCapturePipeline(
        sample_rate=sample_rate,
        chunk_duration_seconds=chunk_duration_seconds,
        microphone_factory=devices.microphone_factory,
        camera_factory=devices.camera_factory,
    )
    playback = PlaybackController(
        engine=engine,
        preferred_voice=kwargs.pop("tts_preferred_voice", "en-US-Neural2-J"),
        language_code=kwargs.get("language_code", "en-US"),
    )
    event_bus = kwargs.pop("event_bus", None) or SessionEventBus()
    session = InterviewSession(
        token=token,
        base_url=kwargs.pop("base_url", "ws://interview.test"),
        chunk_duration_seconds=chunk_duration_seconds,
        sample_rate=sample_rate,
        analyzing_debounce_seconds=analyzing_debounce_seconds,
        channel_factory=channel_factory,
        pipeline=pipeline,
        playback=playback,
        event_bus=event_bus,
        **kwargs,
    )
    harness = MockSessionHarness(session=session, devices=devices, engine=engine, channels=channels)
    event_bus.subscribe(EventType.STATUS_CHANGED, lambda event: harness.statuses.append(event.data["status"]))
    return harness
