"""
Text-to-speech using Google Cloud TTS, played through the PyAudio speaker.
"""
import io
import logging
import threading
import wave
from dataclasses import dataclass, field
from typing import List, Optional

import numpy as np

from ....config import (
    DEFAULT_LANGUAGE_CODE, DEFAULT_SPEAKER_VOLUME, DEFAULT_TTS_SPEAKING_RATE,
    SPEAKER_SAMPLE_RATE,
)
from ....errors import PlaybackError

logger = logging.getLogger("speech_tts")


@dataclass
class Voice:
    """A synthesis voice offered by the engine."""
    name: str
    language_codes: List[str] = field(default_factory=list)


def decode_wav(audio_content: bytes):
    """Return (pcm16 samples, sample rate, channels) from LINEAR16 WAV bytes."""
    with wave.open(io.BytesIO(audio_content), "rb") as wav:
        if wav.getsampwidth() != 2:
            raise PlaybackError(f"Unexpected sample width {wav.getsampwidth()}")
        frames = wav.readframes(wav.getnframes())
        return np.frombuffer(frames, dtype="<i2"), wav.getframerate(), wav.getnchannels()


class GoogleCloudTTSEngine:
    """
    Blocking speech engine: synthesize with Google Cloud, then play locally.

    ``speak`` is meant to run on a worker thread. ``cancel`` may be called from
    any thread and stops the current utterance between audio blocks.
    """

    def __init__(self,
                 language_code: str = DEFAULT_LANGUAGE_CODE,
                 speaking_rate: float = DEFAULT_TTS_SPEAKING_RATE,
                 volume: float = DEFAULT_SPEAKER_VOLUME,
                 output_device: Optional[int] = None,
                 speaker=None):
        self.language_code = language_code
        self.speaking_rate = speaking_rate
        self.volume = volume
        self.output_device = output_device
        self._speaker = speaker
        self._client = None
        self._active_lock = threading.Lock()
        self._active: Optional[threading.Event] = None

    def _get_client(self):
        if self._client is None:
            from google.cloud import texttospeech
            self._client = texttospeech.TextToSpeechClient()
        return self._client

    def _get_speaker(self):
        if self._speaker is None:
            from ..hardware import PyAudioSpeaker
            self._speaker = PyAudioSpeaker(output_device=self.output_device, volume=self.volume)
        return self._speaker

    def list_voices(self) -> List[Voice]:
        try:
            response = self._get_client().list_voices()
        except Exception as e:
            raise PlaybackError(f"Could not list voices: {e}") from e
        return [Voice(name=v.name, language_codes=list(v.language_codes)) for v in response.voices]

    def synthesize(self, text: str, voice: Optional[Voice] = None) -> bytes:
        """Synthesize text to LINEAR16 WAV bytes."""
        from google.cloud import texttospeech

        if voice is not None:
            language = voice.language_codes[0] if voice.language_codes else self.language_code
            voice_params = texttospeech.VoiceSelectionParams(language_code=language, name=voice.name)
        else:
            voice_params = texttospeech.VoiceSelectionParams(language_code=self.language_code)

        audio_config = texttospeech.AudioConfig(
            audio_encoding=texttospeech.AudioEncoding.LINEAR16,
            sample_rate_hertz=SPEAKER_SAMPLE_RATE,
            speaking_rate=self.speaking_rate,
        )
        try:
            response = self._get_client().synthesize_speech(
                input=texttospeech.SynthesisInput(text=text),
                voice=voice_params,
                audio_config=audio_config,
            )
        except Exception as e:
            raise PlaybackError(f"Speech synthesis failed: {e}") from e
        return response.audio_content

    def speak(self, text: str, voice: Optional[Voice] = None,
              cancelled: Optional[threading.Event] = None) -> bool:
        """Synthesize and play ``text``. Returns False if cancelled before finishing."""
        if not text.strip():
            return True
        cancelled = cancelled or threading.Event()
        with self._active_lock:
            self._active = cancelled

        try:
            audio = self.synthesize(text, voice)
            if cancelled.is_set():
                return False
            samples, sample_rate, channels = decode_wav(audio)
            try:
                return self._get_speaker().play(samples, sample_rate, channels, cancelled=cancelled)
            except PlaybackError:
                raise
            except Exception as e:
                raise PlaybackError(f"Audio output failed: {e}") from e
        finally:
            with self._active_lock:
                if self._active is cancelled:
                    self._active = None

    def cancel(self) -> None:
        with self._active_lock:
            if self._active is not None:
                self._active.set()
