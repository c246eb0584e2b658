"""
Service classes for the interview session: speech playback and the analyzing timer.
"""
import asyncio
import logging
import threading
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from typing import Callable, Optional

from ..config import DEFAULT_ANALYZING_DEBOUNCE_SECONDS, DEFAULT_LANGUAGE_CODE, DEFAULT_TTS_PREFERRED_VOICE

logger = logging.getLogger("playback")

_UNRESOLVED = object()


@dataclass
class Utterance:
    """The one utterance currently owned by the playback worker."""
    text: str
    cancelled: threading.Event = field(default_factory=threading.Event)


def _primary_subtag(language_code: str) -> str:
    return language_code.split("-")[0].lower()


class PlaybackController:
    """
    Speaks AI lines one at a time on a single worker thread.

    A new line cancels whatever is playing; there is no queue. All engine
    failures are logged and swallowed.
    """

    def __init__(self,
                 engine=None,
                 preferred_voice: str = DEFAULT_TTS_PREFERRED_VOICE,
                 language_code: str = DEFAULT_LANGUAGE_CODE):
        self.engine = engine
        self.preferred_voice = preferred_voice
        self.language_code = language_code
        self._executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="playback")
        self._lock = threading.Lock()
        self._current: Optional[Utterance] = None
        self._voice = _UNRESOLVED
        self._closed = False

    @property
    def enabled(self) -> bool:
        return self.engine is not None

    @property
    def current(self) -> Optional[Utterance]:
        return self._current

    def select_voice(self):
        """Resolve the voice once: preferred name, then session language, then engine default."""
        with self._lock:
            if self._voice is not _UNRESOLVED:
                return self._voice
            voice = None
            try:
                voices = self.engine.list_voices()
                voice = next((v for v in voices if self.preferred_voice and self.preferred_voice in v.name), None)
                if voice is None:
                    wanted = _primary_subtag(self.language_code)
                    voice = next((v for v in voices
                                  if any(_primary_subtag(code) == wanted for code in v.language_codes)), None)
            except Exception as e:
                logger.warning(f"Voice selection failed, using engine default: {e}")
            self._voice = voice
            logger.info(f"Selected voice: {voice.name if voice is not None else 'engine default'}")
            return voice

    def speak(self, text: str) -> Optional[Utterance]:
        """Cancel any in-flight line and start speaking ``text``."""
        if not self.enabled or self._closed or not text.strip():
            return None
        self.cancel()
        utterance = Utterance(text=text)
        with self._lock:
            self._current = utterance
        self._executor.submit(self._run, utterance)
        return utterance

    def _run(self, utterance: Utterance) -> None:
        if utterance.cancelled.is_set():
            return
        try:
            voice = self.select_voice()
            if utterance.cancelled.is_set():
                return
            self.engine.speak(utterance.text, voice, cancelled=utterance.cancelled)
        except Exception as e:
            logger.error(f"Playback failed: {e}")
        finally:
            with self._lock:
                if self._current is utterance:
                    self._current = None

    def cancel(self) -> None:
        with self._lock:
            utterance, self._current = self._current, None
        if utterance is None:
            return
        utterance.cancelled.set()
        try:
            self.engine.cancel()
        except Exception as e:
            logger.warning(f"Engine cancel failed: {e}")

    def wait_until_idle(self, timeout: Optional[float] = None) -> bool:
        """Block until everything submitted so far has finished."""
        if self._closed:
            return True
        future = self._executor.submit(lambda: None)
        try:
            future.result(timeout=timeout)
            return True
        except Exception:
            return False

    def shutdown(self) -> None:
        if self._closed:
            return
        self.cancel()
        self._closed = True
        self._executor.shutdown(wait=False)


class AnalyzingDebounce:
    """
    Single-shot timer behind the second analyzing status.

    Each ``arm`` or ``cancel`` bumps the generation. A fire that was already
    in flight when it was superseded carries an old generation and is
    rejected by ``is_current``.
    """

    def __init__(self,
                 on_fire: Callable[[int], None],
                 delay: float = DEFAULT_ANALYZING_DEBOUNCE_SECONDS):
        self.on_fire = on_fire
        self.delay = delay
        self._handle: Optional[asyncio.TimerHandle] = None
        self._generation = 0

    @property
    def generation(self) -> int:
        return self._generation

    @property
    def pending(self) -> bool:
        return self._handle is not None

    def arm(self) -> int:
        self.cancel()
        loop = asyncio.get_running_loop()
        generation = self._generation
        self._handle = loop.call_later(self.delay, self._fire, generation)
        return generation

    def _fire(self, generation: int) -> None:
        if generation != self._generation:
            return
        self._handle = None
        self.on_fire(generation)

    def cancel(self) -> None:
        handle, self._handle = self._handle, None
        if handle is not None:
            handle.cancel()
        self._generation += 1

    def is_current(self, generation: int) -> bool:
        return generation == self._generation
