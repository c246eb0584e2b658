"""
Livepanel Configuration System
==============================

This file contains ALL configuration for the live interview session engine.
- User settings at the top (things users might want to change)
- Internal constants at the bottom (technical defaults)
"""
import os
from dataclasses import dataclass
from typing import Optional


# =============================================================================
# USER SETTINGS - Edit these to customize the interview client
# =============================================================================

# Interview backend (the panel token comes from the candidate login flow)
BASE_URL = "ws://localhost:8000"
INTERVIEW_TOKEN = None

# Audio streaming
CHUNK_DURATION_SECONDS = 10.0
ENABLE_VIDEO_PREVIEW = True
CAMERA_INDEX = 0
INPUT_DEVICE = None  # None = system default microphone

# Speech settings
ENABLE_TTS = True
TTS_PREFERRED_VOICE = "en-US-Neural2-J"
TTS_SPEAKING_RATE = 1.2
SPEAKER_VOLUME = 1.0
LANGUAGE_CODE = "en-US"

# Logging
LOG_FILE = "./_sessions/interview.log"
LOG_LEVEL = "INFO"


# =============================================================================
# INTERNAL CONSTANTS - Don't change these unless you know what you're doing
# =============================================================================

# Audio capture
SAMPLE_RATE = 16000
CHANNELS = 1
CAPTURE_BUFFER_SIZE = 4096
ECHO_CANCELLATION = True
NOISE_SUPPRESSION = True
PCM_NEGATIVE_SCALE = 32768.0
PCM_POSITIVE_SCALE = 32767.0

# Camera preview
PREVIEW_FRAME_INTERVAL = 1.0 / 15

# Status debounce
ANALYZING_DEBOUNCE_SECONDS = 2.0

# Transport
WS_PATH_TEMPLATE = "/ws/interview/{token}/"
CONNECT_TIMEOUT = 10.0
MAX_MESSAGE_BYTES = 2 ** 20
CLOSE_TIMEOUT = 2.0

# Speaker output
SPEAKER_SAMPLE_RATE = 16000
SPEAKER_BUFFER_SIZE = 1600


# =============================================================================
# MAIN CONFIG OBJECT
# =============================================================================

@dataclass
class Config:
    """Main configuration object."""
    base_url: str = BASE_URL
    token: Optional[str] = INTERVIEW_TOKEN
    chunk_duration_seconds: float = CHUNK_DURATION_SECONDS
    sample_rate: int = SAMPLE_RATE
    capture_buffer_size: int = CAPTURE_BUFFER_SIZE
    analyzing_debounce_seconds: float = ANALYZING_DEBOUNCE_SECONDS
    enable_video_preview: bool = ENABLE_VIDEO_PREVIEW
    camera_index: int = CAMERA_INDEX
    input_device: Optional[int] = INPUT_DEVICE
    enable_tts: bool = ENABLE_TTS
    tts_preferred_voice: str = TTS_PREFERRED_VOICE
    tts_speaking_rate: float = TTS_SPEAKING_RATE
    speaker_volume: float = SPEAKER_VOLUME
    language_code: str = LANGUAGE_CODE
    connect_timeout: float = CONNECT_TIMEOUT
    log_file: str = LOG_FILE
    log_level: str = LOG_LEVEL

    @property
    def chunk_size(self) -> int:
        """Number of samples in one full outbound chunk."""
        return int(self.sample_rate * self.chunk_duration_seconds)


def _env_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    value = raw.strip().lower()
    if value in ("1", "true", "yes", "on"):
        return True
    if value in ("0", "false", "no", "off"):
        return False
    raise ValueError(f"{name} must be a boolean, got {raw!r}")


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return float(raw)
    except ValueError:
        raise ValueError(f"{name} must be a number, got {raw!r}")


def _env_int(name: str, default: Optional[int]) -> Optional[int]:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return int(raw)
    except ValueError:
        raise ValueError(f"{name} must be an integer, got {raw!r}")


def validate_base_url(base_url: str) -> str:
    """Check that the base URL points at a websocket endpoint."""
    if not base_url.startswith(("ws://", "wss://")):
        raise ValueError(f"Base URL must start with ws:// or wss://, got {base_url!r}")
    return base_url.rstrip("/")


def get_config() -> Config:
    """Load configuration, letting environment variables override the defaults."""
    base_url = validate_base_url(os.getenv("INTERVIEW_WS_URL") or BASE_URL)
    chunk_seconds = _env_float("INTERVIEW_CHUNK_SECONDS", CHUNK_DURATION_SECONDS)
    if chunk_seconds <= 0:
        raise ValueError("INTERVIEW_CHUNK_SECONDS must be greater than zero")

    return Config(
        base_url=base_url,
        token=os.getenv("INTERVIEW_TOKEN") or INTERVIEW_TOKEN,
        chunk_duration_seconds=chunk_seconds,
        enable_tts=_env_bool("INTERVIEW_ENABLE_TTS", ENABLE_TTS),
        tts_preferred_voice=os.getenv("INTERVIEW_TTS_VOICE") or TTS_PREFERRED_VOICE,
        language_code=os.getenv("INTERVIEW_LANGUAGE") or LANGUAGE_CODE,
        enable_video_preview=_env_bool("INTERVIEW_VIDEO_PREVIEW", ENABLE_VIDEO_PREVIEW),
        input_device=_env_int("INTERVIEW_INPUT_DEVICE", INPUT_DEVICE),
        log_file=os.getenv("INTERVIEW_LOG_FILE") or LOG_FILE,
        log_level=(os.getenv("INTERVIEW_LOG_LEVEL") or LOG_LEVEL).upper(),
    )


# DEFAULT_ names used as keyword defaults across the package
DEFAULT_BASE_URL = BASE_URL
DEFAULT_CHUNK_DURATION_SECONDS = CHUNK_DURATION_SECONDS
DEFAULT_SAMPLE_RATE = SAMPLE_RATE
DEFAULT_CAPTURE_BUFFER_SIZE = CAPTURE_BUFFER_SIZE
DEFAULT_ANALYZING_DEBOUNCE_SECONDS = ANALYZING_DEBOUNCE_SECONDS
DEFAULT_LANGUAGE_CODE = LANGUAGE_CODE
DEFAULT_TTS_PREFERRED_VOICE = TTS_PREFERRED_VOICE
DEFAULT_TTS_SPEAKING_RATE = TTS_SPEAKING_RATE
DEFAULT_SPEAKER_VOLUME = SPEAKER_VOLUME
DEFAULT_CONNECT_TIMEOUT = CONNECT_TIMEOUT
