"""
Camera preview for the candidate's own video feed.

Frames stay on this machine: only the most recent frame is kept, for the UI
to show. Nothing here is ever sent over the interview connection.
"""
import logging
import threading
import time
from typing import Optional

import numpy as np

from ...config import CAMERA_INDEX, PREVIEW_FRAME_INTERVAL
from ...errors import DeviceUnavailable

logger = logging.getLogger("camera")


class CameraPreview:
    """Background OpenCV reader holding the latest preview frame."""

    def __init__(self, camera_index: int = CAMERA_INDEX, frame_interval: float = PREVIEW_FRAME_INTERVAL):
        self.camera_index = camera_index
        self.frame_interval = frame_interval
        self._capture = None
        self._thread: Optional[threading.Thread] = None
        self._running = False
        self._frame_lock = threading.Lock()
        self._latest_frame: Optional[np.ndarray] = None

    @property
    def is_open(self) -> bool:
        return self._capture is not None

    def open(self) -> None:
        import cv2

        capture = cv2.VideoCapture(self.camera_index)
        if not capture.isOpened():
            capture.release()
            raise DeviceUnavailable(f"Camera {self.camera_index} could not be opened")

        self._capture = capture
        self._running = True
        self._thread = threading.Thread(target=self._read_loop, name="camera-preview", daemon=True)
        self._thread.start()
        logger.info(f"Camera preview opened on index {self.camera_index}")

    def _read_loop(self) -> None:
        while self._running and self._capture is not None:
            ok, frame = self._capture.read()
            if ok:
                with self._frame_lock:
                    self._latest_frame = frame
            time.sleep(self.frame_interval)

    def latest_frame(self) -> Optional[np.ndarray]:
        with self._frame_lock:
            return self._latest_frame

    def close(self) -> None:
        """Stop the reader and release the camera; safe to call repeatedly."""
        self._running = False
        thread, self._thread = self._thread, None
        if thread is not None and thread is not threading.current_thread():
            thread.join(timeout=1.0)
        capture, self._capture = self._capture, None
        if capture is not None:
            capture.release()
        with self._frame_lock:
            self._latest_frame = None
