"""Speech output."""

from .tts import GoogleCloudTTSEngine, Voice

__all__ = ["GoogleCloudTTSEngine", "Voice"]
