"""Audio device drivers: PyAudio microphone input and speaker output.

PyAudio itself is imported when a device is opened, so these classes can be
imported on machines without PortAudio.
"""

from .microphone import PyAudioMicrophone
from .speaker import PyAudioSpeaker

__all__ = ["PyAudioMicrophone", "PyAudioSpeaker"]
