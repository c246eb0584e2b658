"""
PyAudio microphone driver delivering mono float slices at the target rate.
"""
import logging
from typing import Callable, Optional

import numpy as np

from ..processing.processing import StreamResampler, deinterleave, stereo_to_mono
from ....errors import DeviceUnavailable
from ....utils import with_suppressed_audio_warnings

logger = logging.getLogger("microphone")

SampleCallback = Callable[[np.ndarray], None]


class PyAudioMicrophone:
    """
    Callback-driven PyAudio input stream.

    The stream callback runs on the PortAudio thread. It only reshapes,
    resamples and hands samples to ``on_samples``; it never blocks.
    """

    def __init__(self, constraints, on_samples: SampleCallback):
        self.constraints = constraints
        self.on_samples = on_samples
        self.capture_rate = constraints.sample_rate
        self._pa = None
        self._stream = None
        self._continue_flag = None
        self._resampler: Optional[StreamResampler] = None

    @property
    def is_active(self) -> bool:
        return self._stream is not None and self._stream.is_active()

    @with_suppressed_audio_warnings
    def start(self) -> None:
        """Open the input stream; raises DeviceUnavailable when no device can be used."""
        import pyaudio

        self._continue_flag = pyaudio.paContinue
        self._pa = pyaudio.PyAudio()
        try:
            device_index = self._resolve_device()
            self.capture_rate = self._negotiate_rate(pyaudio, device_index)
            self._resampler = StreamResampler(self.capture_rate, self.constraints.sample_rate)
            if self.constraints.echo_cancellation or self.constraints.noise_suppression:
                logger.info("Echo cancellation/noise suppression requested; "
                            "relying on the host audio stack")

            frames = self.constraints.frames_per_buffer
            if self.capture_rate != self.constraints.sample_rate:
                # Keep callbacks roughly the same duration after resampling
                frames = int(frames * self.capture_rate / self.constraints.sample_rate)

            self._stream = self._pa.open(
                format=pyaudio.paFloat32,
                channels=self.constraints.channels,
                rate=self.capture_rate,
                input=True,
                input_device_index=device_index,
                frames_per_buffer=frames,
                stream_callback=self._callback,
            )
            self._stream.start_stream()
        except (OSError, ValueError) as e:
            self.close()
            raise DeviceUnavailable(f"Microphone unavailable: {e}") from e

        logger.info(f"Microphone opened: device={device_index} rate={self.capture_rate} "
                    f"channels={self.constraints.channels}")

    def _resolve_device(self) -> Optional[int]:
        if self.constraints.input_device is not None:
            info = self._pa.get_device_info_by_index(self.constraints.input_device)
            if int(info.get("maxInputChannels", 0)) < 1:
                raise ValueError(f"Device {self.constraints.input_device} has no input channels")
            return self.constraints.input_device
        # Raises OSError when the host has no default input device
        info = self._pa.get_default_input_device_info()
        return int(info["index"])

    def _negotiate_rate(self, pyaudio, device_index: Optional[int]) -> int:
        target = self.constraints.sample_rate
        try:
            self._pa.is_format_supported(
                target,
                input_device=device_index,
                input_channels=self.constraints.channels,
                input_format=pyaudio.paFloat32,
            )
            return target
        except ValueError:
            info = self._pa.get_device_info_by_index(device_index)
            fallback = int(info.get("defaultSampleRate", 48000))
            logger.info(f"Device does not support {target} Hz, capturing at {fallback} Hz and resampling")
            return fallback

    def _callback(self, in_data, frame_count, time_info, status):
        if status:
            logger.debug(f"PortAudio status flags: {status}")
        samples = np.frombuffer(in_data, dtype=np.float32)
        mono = stereo_to_mono(deinterleave(samples, self.constraints.channels))
        if self._resampler is None:
            self._resampler = StreamResampler(self.capture_rate, self.constraints.sample_rate)
        mono = self._resampler.process(mono)
        try:
            self.on_samples(mono)
        except Exception as e:
            logger.error(f"Sample handler failed: {e}")
        return (None, self._continue_flag)

    def stop(self) -> None:
        if self._stream is not None and self._stream.is_active():
            self._stream.stop_stream()

    def close(self) -> None:
        """Release the stream and the PortAudio instance; safe to call repeatedly."""
        stream, self._stream = self._stream, None
        pa, self._pa = self._pa, None
        try:
            if stream is not None:
                stream.close()
        finally:
            if pa is not None:
                pa.terminate()
