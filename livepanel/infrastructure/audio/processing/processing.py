"""
Basic audio processing functions: format conversions and resampling.
"""
from math import gcd

import numpy as np
from scipy.signal import resample_poly

from ....config import PCM_NEGATIVE_SCALE, PCM_POSITIVE_SCALE


def stereo_to_mono(x: np.ndarray) -> np.ndarray:
    """Convert interleaved multi-channel audio to mono by averaging channels."""
    if x.ndim == 1:
        return x
    return np.mean(x, axis=1)


def deinterleave(samples: np.ndarray, channels: int) -> np.ndarray:
    """Reshape a flat interleaved buffer into (frames, channels)."""
    if channels <= 1:
        return samples.reshape(-1)
    usable = (samples.size // channels) * channels
    return samples[:usable].reshape(-1, channels)


class StreamResampler:
    """
    Resample a stream of blocks without artifacts at the block boundaries.

    Each block is resampled together with enough earlier input to cover the
    polyphase filter's support. Output samples whose support would reach past
    the newest input are held back until the next block arrives, so the
    concatenated output matches resampling the whole stream at once.
    """

    def __init__(self, source_rate: int, target_rate: int):
        factor = gcd(int(source_rate), int(target_rate))
        self.up = int(target_rate) // factor
        self.down = int(source_rate) // factor
        # resample_poly's default filter reaches 10 * max(up, down) upsampled samples each side
        self._margin = -(-10 * max(self.up, self.down) // self.up) + 1
        self._history = np.zeros(0, dtype=np.float64)
        self._history_start = 0
        self._next_output = 0

    def process(self, block: np.ndarray) -> np.ndarray:
        x = np.asarray(block, dtype=np.float64).reshape(-1)
        if self.up == self.down:
            return x.astype(np.float32)

        buf = np.concatenate([self._history, x])
        start = self._history_start
        base = start * self.up // self.down
        end_output = (start + buf.size - self._margin) * self.up // self.down

        out = np.zeros(0, dtype=np.float32)
        if end_output > self._next_output:
            resampled = resample_poly(buf, up=self.up, down=self.down)
            out = resampled[self._next_output - base:end_output - base].astype(np.float32)
            self._next_output = end_output

        # Keep the history aligned to a multiple of ``down`` so output indices stay exact
        keep_from = (self._next_output * self.down) // self.up - self._margin
        keep_from = max(start, (keep_from // self.down) * self.down)
        self._history = buf[keep_from - start:]
        self._history_start = keep_from
        return out


def float_to_pcm16(samples: np.ndarray) -> np.ndarray:
    """
    Convert float samples in [-1.0, 1.0] to 16-bit signed PCM.

    Values are clamped first (NaN becomes silence). Negative samples scale by
    32768 and non-negative ones by 32767 so both ends of the int16 range are
    reachable; rounding is half-up.
    """
    x = np.nan_to_num(np.asarray(samples, dtype=np.float64).reshape(-1), nan=0.0)
    x = np.clip(x, -1.0, 1.0)
    scaled = np.where(x < 0, x * PCM_NEGATIVE_SCALE, x * PCM_POSITIVE_SCALE)
    return np.floor(scaled + 0.5).astype(np.int16)


def pcm16_to_bytes(pcm16: np.ndarray) -> bytes:
    """Serialize PCM16 samples as little-endian bytes with no header."""
    return np.asarray(pcm16, dtype=np.int16).astype("<i2", copy=False).tobytes()
