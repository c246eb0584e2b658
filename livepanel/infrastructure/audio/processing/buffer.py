"""
Rolling PCM buffer between the capture callback and the periodic flush.
"""
import threading
from collections import deque
from dataclasses import dataclass
from typing import Deque, Optional

import numpy as np

from .processing import pcm16_to_bytes


@dataclass(frozen=True)
class OutboundChunk:
    """A run of PCM16 samples sent as one binary transport message."""
    sequence: int
    samples: np.ndarray
    sample_rate: int

    @property
    def sample_count(self) -> int:
        return int(self.samples.size)

    @property
    def duration_seconds(self) -> float:
        return self.sample_count / float(self.sample_rate)

    def to_bytes(self) -> bytes:
        return pcm16_to_bytes(self.samples)


class RollingAudioBuffer:
    """
    Single-owner FIFO of PCM16 slices.

    The capture thread appends and the flush task drains; the lock only
    guards the slice list, so neither side blocks for long.
    """

    def __init__(self):
        self._lock = threading.Lock()
        self._slices: Deque[np.ndarray] = deque()
        self._size = 0

    def __len__(self) -> int:
        with self._lock:
            return self._size

    def append(self, pcm16: np.ndarray) -> None:
        """Append one converted slice."""
        if pcm16.size == 0:
            return
        with self._lock:
            self._slices.append(pcm16)
            self._size += int(pcm16.size)

    def drain(self, chunk_size: int) -> Optional[np.ndarray]:
        """
        Remove the oldest samples for one outbound chunk.

        Returns exactly ``chunk_size`` samples when that many are buffered
        (keeping the rest), otherwise everything that is buffered, or None
        when the buffer is empty.
        """
        if chunk_size <= 0:
            raise ValueError("chunk_size must be positive")

        with self._lock:
            if self._size == 0:
                return None

            data = np.concatenate(list(self._slices)) if len(self._slices) > 1 else self._slices[0]
            self._slices.clear()

            if data.size >= chunk_size:
                chunk = data[:chunk_size].copy()
                rest = data[chunk_size:]
                if rest.size:
                    self._slices.append(rest.copy())
                self._size = int(rest.size)
                return chunk

            self._size = 0
            return data.copy()

    def clear(self) -> None:
        with self._lock:
            self._slices.clear()
            self._size = 0
