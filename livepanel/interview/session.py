"""
Live interview session: connection lifecycle, inbound event handling and teardown.
"""
import asyncio
import logging
import time
import uuid
from datetime import datetime
from typing import Any, Callable, List, Optional, Tuple

from ..config import (
    CAMERA_INDEX, DEFAULT_ANALYZING_DEBOUNCE_SECONDS, DEFAULT_BASE_URL,
    DEFAULT_CHUNK_DURATION_SECONDS, DEFAULT_CONNECT_TIMEOUT, DEFAULT_LANGUAGE_CODE,
    DEFAULT_SAMPLE_RATE, DEFAULT_SPEAKER_VOLUME, DEFAULT_TTS_PREFERRED_VOICE,
    DEFAULT_TTS_SPEAKING_RATE, Config,
)
from ..errors import DecodeError, DeviceUnavailable, InvalidTransition, ProtocolError, TransportError
from ..infrastructure.audio.processing import AudioCapturePipeline, CaptureConstraints
from ..infrastructure.transport import InterviewChannel
from .dispatcher import MessageDispatcher
from .events import (
    SessionEventBus, ChunkSentEvent, ErrorOccurredEvent, QuestionChangedEvent,
    SessionCompletedEvent, StateChangedEvent, StatusChangedEvent, TranscriptUpdatedEvent,
)
from .models import (
    CONNECTED_STATES, RECORDING_STATES, STARTABLE_STATES,
    CurrentQuestion, SessionSnapshot, SessionState, SessionSummary, Speaker, TranscriptEntry,
)
from .services import AnalyzingDebounce, PlaybackController
from .transcript import TranscriptAssembler

logger = logging.getLogger("session")

STATUS_DISCONNECTED = "Disconnected"
STATUS_CONNECTING = "Connecting..."
STATUS_CONNECTED = "Connected"
STATUS_CONNECTION_ESTABLISHED = "Connection Established"
STATUS_RECORDING = "Recording"
STATUS_ANALYZING = "Analyzing your response…"
STATUS_STILL_ANALYZING = "Please wait while analysing your response…"
STATUS_COMPLETED = "Interview Completed"
STATUS_ERROR = "Error"
STATUS_STOPPED = "Stopped"

DEVICE_ERROR_MESSAGE = "Failed to access microphone/camera. Please check permissions."
DEFAULT_SERVER_ERROR = "An error occurred"
QUESTION_PLACEHOLDER = "Question received"
DEFAULT_PANEL_NAME = "Interview Panel"

# Inbox item kinds
_FRAME = "frame"
_TRANSPORT_LOST = "transport_lost"
_ANALYZING_TIMEOUT = "analyzing_timeout"


class InterviewSession:
    """
    One interview attempt against the interviewer service.

    Inbound frames and timer fires go through a single inbox and are handled
    in order by one dispatch task. Every state mutation happens under
    ``_state_lock``; ``start`` and ``stop`` take the same lock but release it
    around the connect and device acquisition awaits.
    """

    def __init__(self,
                 token: str,
                 base_url: str = DEFAULT_BASE_URL,
                 chunk_duration_seconds: float = DEFAULT_CHUNK_DURATION_SECONDS,
                 sample_rate: int = DEFAULT_SAMPLE_RATE,
                 analyzing_debounce_seconds: float = DEFAULT_ANALYZING_DEBOUNCE_SECONDS,
                 enable_video_preview: bool = True,
                 input_device: Optional[int] = None,
                 camera_index: int = CAMERA_INDEX,
                 enable_tts: bool = True,
                 tts_preferred_voice: str = DEFAULT_TTS_PREFERRED_VOICE,
                 tts_speaking_rate: float = DEFAULT_TTS_SPEAKING_RATE,
                 speaker_volume: float = DEFAULT_SPEAKER_VOLUME,
                 language_code: str = DEFAULT_LANGUAGE_CODE,
                 connect_timeout: float = DEFAULT_CONNECT_TIMEOUT,
                 channel_factory: Optional[Callable[[], Any]] = None,
                 pipeline: Optional[AudioCapturePipeline] = None,
                 playback: Optional[PlaybackController] = None,
                 tts_engine=None,
                 event_bus: Optional[SessionEventBus] = None):
        self.token = token
        self.base_url = base_url
        self.session_id = uuid.uuid4().hex[:12]
        self.constraints = CaptureConstraints(
            sample_rate=sample_rate,
            video=enable_video_preview,
            input_device=input_device,
            camera_index=camera_index,
        )

        self.channel_factory = channel_factory or (lambda: InterviewChannel(open_timeout=connect_timeout))
        self.pipeline = pipeline or AudioCapturePipeline(
            sample_rate=sample_rate,
            chunk_duration_seconds=chunk_duration_seconds,
        )
        if playback is None:
            if enable_tts and tts_engine is None:
                from ..infrastructure.audio.speech import GoogleCloudTTSEngine
                tts_engine = GoogleCloudTTSEngine(
                    language_code=language_code,
                    speaking_rate=tts_speaking_rate,
                    volume=speaker_volume,
                )
            playback = PlaybackController(
                engine=tts_engine if enable_tts else None,
                preferred_voice=tts_preferred_voice,
                language_code=language_code,
            )
        self.playback = playback
        self.event_bus = event_bus or SessionEventBus()
        self.debounce = AnalyzingDebounce(self._on_debounce_fire, delay=analyzing_debounce_seconds)

        self.dispatcher = MessageDispatcher()
        self.dispatcher.register("connection_established", self._on_connection_established)
        self.dispatcher.register("greeting", self._on_greeting)
        self.dispatcher.register("transcription_update", self._on_transcription_update)
        self.dispatcher.register("scoring_update", self._on_scoring_update)
        self.dispatcher.register("next_question", self._on_next_question)
        self.dispatcher.register("interview_completed", self._on_interview_completed)
        self.dispatcher.register("error", self._on_server_error)
        self.dispatcher.register("announcement", self._on_announcement)

        self.state = SessionState.IDLE
        self.status = STATUS_DISCONNECTED
        self.error: Optional[str] = None
        self._transcript = TranscriptAssembler()
        self._current_question: Optional[CurrentQuestion] = None
        self._questions_asked = 0
        self._scores: List[Tuple[Optional[float], str]] = []
        self._completion_message = ""
        self.started_at: Optional[datetime] = None
        self.ended_at: Optional[datetime] = None

        self._state_lock = asyncio.Lock()
        self._finished = asyncio.Event()
        self._attempt = 0
        self._channel = None
        self._inbox: asyncio.Queue = asyncio.Queue()
        self._receiver_task: Optional[asyncio.Task] = None
        self._dispatch_task: Optional[asyncio.Task] = None
        self._torn_down = True
        self._closed = False

    @classmethod
    def from_config(cls, config: Config, **overrides) -> "InterviewSession":
        """Build a session from a Config; keyword arguments override its values."""
        kwargs = dict(
            token=config.token,
            base_url=config.base_url,
            chunk_duration_seconds=config.chunk_duration_seconds,
            sample_rate=config.sample_rate,
            analyzing_debounce_seconds=config.analyzing_debounce_seconds,
            enable_video_preview=config.enable_video_preview,
            input_device=config.input_device,
            camera_index=config.camera_index,
            enable_tts=config.enable_tts,
            tts_preferred_voice=config.tts_preferred_voice,
            tts_speaking_rate=config.tts_speaking_rate,
            speaker_volume=config.speaker_volume,
            language_code=config.language_code,
            connect_timeout=config.connect_timeout,
        )
        kwargs.update(overrides)
        return cls(**kwargs)

    # ------------------------------------------------------------------
    # Observer surface
    # ------------------------------------------------------------------

    @property
    def transcript(self) -> List[TranscriptEntry]:
        return self._transcript.entries

    @property
    def current_question(self) -> Optional[CurrentQuestion]:
        return self._current_question

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

    def snapshot(self) -> SessionSnapshot:
        return SessionSnapshot(
            state=self.state,
            status=self.status,
            error=self.error,
            transcript=tuple(self._transcript.entries),
            current_question=self._current_question,
        )

    def summary(self) -> SessionSummary:
        return SessionSummary(
            session_id=self.session_id,
            started_at=self.started_at,
            ended_at=self.ended_at,
            questions_asked=self._questions_asked,
            candidate_turns=self._transcript.count(Speaker.CANDIDATE),
            scores=list(self._scores),
            completion_message=self._completion_message,
        )

    def preview_frame(self):
        """Latest local camera frame, never transmitted."""
        return self.pipeline.preview_frame()

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def start(self) -> None:
        """
        Connect and begin recording.

        From CONNECTED (devices were unavailable earlier) only device
        acquisition is retried. Connection failures move the session to
        ERROR; device failures leave it CONNECTED with the error surfaced.
        """
        async with self._state_lock:
            if self._closed:
                raise InvalidTransition("Session is closed")
            if self.state is SessionState.CONNECTED:
                attempt = self._attempt
                channel = None
            elif self.state in (SessionState.IDLE, SessionState.STOPPED):
                attempt = self._begin_attempt()
                channel = self._channel
            else:
                raise InvalidTransition(f"Cannot start from {self.state.value}")

        if channel is not None:
            try:
                await channel.connect(self.base_url, self.token)
            except TransportError as e:
                async with self._state_lock:
                    if self._is_live(attempt, SessionState.CONNECTING):
                        await self._fail(f"Connection failed: {e}", e)
                return

            async with self._state_lock:
                if not self._is_live(attempt, SessionState.CONNECTING):
                    logger.info(f"[{self.session_id}] Session ended during connect")
                    await channel.close()
                    return
                self._set_state(SessionState.CONNECTED)
                self._set_status(STATUS_CONNECTED)
                inbox = self._inbox
                self._receiver_task = asyncio.create_task(
                    self._receive(channel, inbox, attempt), name=f"receiver-{self.session_id}")
                self._dispatch_task = asyncio.create_task(
                    self._dispatch_loop(inbox, attempt), name=f"dispatch-{self.session_id}")

        await self._acquire_and_record(attempt)

    def _begin_attempt(self) -> int:
        self._attempt += 1
        self._channel = self.channel_factory()
        self._inbox = asyncio.Queue()
        self._torn_down = False
        self._finished.clear()
        self.error = None
        self.started_at = datetime.now()
        self.ended_at = None
        logger.info(f"[{self.session_id}] Starting attempt {self._attempt}")
        self._set_state(SessionState.CONNECTING)
        self._set_status(STATUS_CONNECTING)
        return self._attempt

    def _is_live(self, attempt: int, state: Optional[SessionState] = None) -> bool:
        if attempt != self._attempt or self.state.is_terminal:
            return False
        return state is None or self.state is state

    async def _acquire_and_record(self, attempt: int) -> None:
        try:
            await self.pipeline.acquire(self.constraints)
        except DeviceUnavailable as e:
            logger.error(f"[{self.session_id}] Device unavailable: {e}")
            async with self._state_lock:
                if self._is_live(attempt, SessionState.CONNECTED):
                    self._surface_error(DEVICE_ERROR_MESSAGE, "DeviceUnavailable", fatal=False)
            return

        async with self._state_lock:
            if not self._is_live(attempt, SessionState.CONNECTED):
                # Session ended while the devices were opening
                await self.pipeline.release()
                return
            self.pipeline.start_recording(self._send_chunk)
            self.error = None
            self._set_state(SessionState.RECORDING)
            self._set_status(STATUS_RECORDING)

    async def stop(self) -> None:
        """Stop the interview from any live state. No-op once finished."""
        async with self._state_lock:
            if self.state.is_terminal:
                return
            self.ended_at = datetime.now()
            self._set_state(SessionState.STOPPED)
            self._set_status(STATUS_STOPPED)
            await self._teardown()
            self._finished.set()

    async def close(self) -> None:
        """Release everything; the session cannot be started again afterwards."""
        async with self._state_lock:
            if self._closed:
                return
            self._closed = True
            if not self.state.is_terminal and self.state is not SessionState.IDLE:
                self.ended_at = datetime.now()
                self._set_state(SessionState.STOPPED)
                self._set_status(STATUS_STOPPED)
            await self._teardown()
            self._finished.set()
        self.playback.shutdown()

    async def wait_finished(self) -> SessionState:
        await self._finished.wait()
        return self.state

    async def wait_idle(self) -> None:
        """Wait until every queued inbound item has been handled."""
        await self._inbox.join()

    async def __aenter__(self) -> "InterviewSession":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.close()

    # ------------------------------------------------------------------
    # Teardown
    # ------------------------------------------------------------------

    async def _teardown(self) -> None:
        """Release transport, then capture, then timers. Runs once per attempt."""
        if self._torn_down:
            return
        self._torn_down = True
        current = asyncio.current_task()
        logger.info(f"[{self.session_id}] Tearing down session resources")

        receiver, self._receiver_task = self._receiver_task, None
        if receiver is not None and receiver is not current:
            receiver.cancel()
        channel = self._channel
        if channel is not None:
            try:
                await channel.close()
            except Exception as e:
                logger.warning(f"[{self.session_id}] Error closing channel: {e}")

        try:
            await self.pipeline.release()
        except Exception as e:
            logger.warning(f"[{self.session_id}] Error releasing capture: {e}")

        self.debounce.cancel()
        try:
            self.playback.cancel()
        except Exception as e:
            logger.warning(f"[{self.session_id}] Error cancelling playback: {e}")

        dispatcher_task, self._dispatch_task = self._dispatch_task, None
        if dispatcher_task is not None and dispatcher_task is not current:
            dispatcher_task.cancel()
            self._drain_inbox(self._inbox)

    @staticmethod
    def _drain_inbox(inbox: asyncio.Queue) -> None:
        while True:
            try:
                inbox.get_nowait()
            except asyncio.QueueEmpty:
                return
            inbox.task_done()

    async def _fail(self, message: str, exc: Optional[BaseException] = None) -> None:
        """Move to ERROR and tear down. Caller holds the state lock."""
        logger.error(f"[{self.session_id}] {message}")
        self.ended_at = datetime.now()
        self._set_state(SessionState.ERROR)
        self._surface_error(message, type(exc).__name__ if exc else "TransportError", fatal=True)
        await self._teardown()
        self._finished.set()

    # ------------------------------------------------------------------
    # Background tasks
    # ------------------------------------------------------------------

    async def _receive(self, channel, inbox: asyncio.Queue, attempt: int) -> None:
        try:
            async for frame in channel.frames():
                inbox.put_nowait((_FRAME, attempt, frame))
        except TransportError as e:
            inbox.put_nowait((_TRANSPORT_LOST, attempt, str(e)))
            return
        inbox.put_nowait((_TRANSPORT_LOST, attempt, "Connection closed by server"))

    async def _dispatch_loop(self, inbox: asyncio.Queue, attempt: int) -> None:
        while True:
            kind, item_attempt, payload = await inbox.get()
            try:
                async with self._state_lock:
                    if self._is_live(item_attempt) and item_attempt == attempt:
                        await self._handle_item(kind, payload)
                    if not self._is_live(attempt):
                        self._drain_inbox(inbox)
                        return
            finally:
                inbox.task_done()

    async def _handle_item(self, kind: str, payload: Any) -> None:
        if kind == _TRANSPORT_LOST:
            await self._fail(f"Connection lost: {payload}")
        elif kind == _ANALYZING_TIMEOUT:
            if self.debounce.is_current(payload):
                self._set_status(STATUS_STILL_ANALYZING)
        else:
            try:
                await self.dispatcher.dispatch(payload)
            except (DecodeError, ProtocolError) as e:
                logger.warning(f"[{self.session_id}] Bad inbound message: {e}")
                self._surface_error(f"Error processing message: {e}", type(e).__name__, fatal=False)
            except Exception as e:
                logger.error(f"[{self.session_id}] Handler failed: {e}")
                self._surface_error(f"Error processing message: {e}", type(e).__name__, fatal=False)

    def _on_debounce_fire(self, generation: int) -> None:
        self._inbox.put_nowait((_ANALYZING_TIMEOUT, self._attempt, generation))

    async def _send_chunk(self, chunk) -> bool:
        channel = self._channel
        delivered = False
        if channel is not None:
            delivered = await channel.send(chunk)
        self.event_bus.emit(ChunkSentEvent(
            self.session_id, time.time(), chunk.sequence, chunk.sample_count, delivered))
        return delivered

    # ------------------------------------------------------------------
    # Inbound event handlers (called under the state lock)
    # ------------------------------------------------------------------

    def _on_connection_established(self, event) -> None:
        self.error = None
        self._set_status(STATUS_CONNECTION_ESTABLISHED)

    def _on_greeting(self, event) -> None:
        if event.message:
            self._append_final(Speaker.from_character(event.character), event.message)
        if event.panel_description:
            logger.info(f"[{self.session_id}] Panel description: {event.panel_description}")
        self._set_status(f"Connected to: {event.panel_name or DEFAULT_PANEL_NAME}")

    def _on_transcription_update(self, event) -> None:
        if not event.message:
            return
        before = len(self._transcript)
        entry = self._transcript.merge_candidate_update(event.message)
        self._emit_transcript(entry, appended=len(self._transcript) > before)

    def _on_scoring_update(self, event) -> None:
        self._scores.append((event.score, event.feedback))
        if self.state is SessionState.RECORDING:
            self._set_state(SessionState.ANALYZING)
        self._set_status(STATUS_ANALYZING)
        self.debounce.arm()

    def _on_next_question(self, event) -> None:
        self.debounce.cancel()
        text = event.message
        self._current_question = CurrentQuestion(
            text=text or QUESTION_PLACEHOLDER,
            question_uuid=event.question_uuid,
            round_number=event.round_number,
            difficulty=event.difficulty,
            question_name=event.question_name,
            expected_time_in_seconds=event.expected_time_in_seconds,
        )
        self.event_bus.emit(QuestionChangedEvent(
            self.session_id, time.time(), self._current_question.text,
            event.question_uuid, event.round_number))
        if text:
            self._questions_asked += 1
            self._append_final(Speaker.from_character(event.character), text)
        else:
            logger.warning(f"[{self.session_id}] Question received without text")

        if self.state in RECORDING_STATES:
            self._set_state(SessionState.RECORDING)
            self._set_status(STATUS_RECORDING)

    async def _on_interview_completed(self, event) -> None:
        self.debounce.cancel()
        self._completion_message = event.message
        self.ended_at = datetime.now()
        self._set_state(SessionState.COMPLETED)
        self._set_status(STATUS_COMPLETED)
        await self._teardown()
        self.event_bus.emit(SessionCompletedEvent(
            self.session_id, time.time(), event.message,
            self._questions_asked, self._transcript.count(Speaker.CANDIDATE)))
        self._finished.set()

    def _on_server_error(self, event) -> None:
        self._surface_error(event.message or DEFAULT_SERVER_ERROR, "ServerError", fatal=False)

    def _on_announcement(self, event) -> None:
        self._append_final(Speaker.from_character(event.character), event.message)

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _append_final(self, speaker: Speaker, text: str) -> TranscriptEntry:
        entry = self._transcript.append_final(speaker, text)
        self._emit_transcript(entry, appended=True)
        if speaker is Speaker.AI:
            self.playback.speak(entry.text)
        return entry

    def _emit_transcript(self, entry: TranscriptEntry, appended: bool) -> None:
        self.event_bus.emit(TranscriptUpdatedEvent(
            self.session_id, time.time(), entry.id, entry.speaker.value, entry.text, appended))

    def _set_state(self, new_state: SessionState) -> None:
        old_state, self.state = self.state, new_state
        if old_state is new_state:
            return
        logger.info(f"[{self.session_id}] State {old_state.value} -> {new_state.value}")
        self.event_bus.emit(StateChangedEvent(self.session_id, time.time(), old_state.value, new_state.value))

    def _set_status(self, status: str) -> None:
        self.status = status
        logger.debug(f"[{self.session_id}] Status: {status}")
        self.event_bus.emit(StatusChangedEvent(self.session_id, time.time(), status))

    def _surface_error(self, message: str, error_type: str, fatal: bool) -> None:
        self.error = message
        self._set_status(STATUS_ERROR)
        self.event_bus.emit(ErrorOccurredEvent(self.session_id, time.time(), error_type, message, fatal))
