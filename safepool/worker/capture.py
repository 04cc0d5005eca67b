"""Frame capture from camera sources via OpenCV."""

import asyncio
import base64
import threading
from typing import Optional, Tuple

import cv2
import numpy as np
import structlog

from .config import config

logger = structlog.get_logger(__name__)


def fit_within(width: int, height: int, max_width: int, max_height: int) -> Tuple[int, int]:
    """Scale (width, height) down to fit the bounds, keeping aspect ratio."""
    if width <= max_width and height <= max_height:
        return width, height
    scale = min(max_width / width, max_height / height)
    return max(1, round(width * scale)), max(1, round(height * scale))


def encode_frame(
    frame: np.ndarray,
    max_width: int = config.CAPTURE_MAX_WIDTH,
    max_height: int = config.CAPTURE_MAX_HEIGHT,
    jpeg_quality: int = config.CAPTURE_JPEG_QUALITY,
) -> Optional[str]:
    """Downscale and JPEG-encode a frame, returning base64 (None on failure)."""
    height, width = frame.shape[:2]
    target = fit_within(width, height, max_width, max_height)
    if target != (width, height):
        frame = cv2.resize(frame, target, interpolation=cv2.INTER_AREA)

    ok, buffer = cv2.imencode(".jpg", frame, [cv2.IMWRITE_JPEG_QUALITY, jpeg_quality])
    if not ok:
        return None
    return base64.b64encode(buffer.tobytes()).decode("ascii")


class VideoSource:
    """
    A camera's current video surface.

    Features:
    - Lazy connection with exponential backoff between attempts
    - File sources rewind at end of stream
    - A source that is not opened or fails to read is "not ready"
    """

    def __init__(
        self,
        url: Optional[str],
        loop_file: bool = False,
        base_delay: float = 1.0,
        max_delay: float = 30.0,
    ):
        self.url = url
        self.loop_file = loop_file
        self.base_delay = base_delay
        self.max_delay = max_delay

        self.cap: Optional[cv2.VideoCapture] = None
        self.failures = 0
        self._lock = threading.Lock()
        self._next_attempt_at = 0.0

    @property
    def ready(self) -> bool:
        return self.cap is not None and self.cap.isOpened()

    def _open(self) -> Optional[cv2.VideoCapture]:
        cap = cv2.VideoCapture(self.url)
        if cap.isOpened():
            return cap
        cap.release()
        return None

    async def _ensure_open(self) -> bool:
        if self.ready:
            return True
        if not self.url:
            return False

        now = asyncio.get_running_loop().time()
        if now < self._next_attempt_at:
            return False

        self.cap = await asyncio.to_thread(self._open)
        if self.cap is not None:
            if self.failures:
                logger.info("video_source_reconnected", url=self.url, attempts=self.failures)
            self.failures = 0
            return True

        delay = min(self.base_delay * (2 ** self.failures), self.max_delay)
        self.failures += 1
        self._next_attempt_at = now + delay
        logger.warning("video_source_open_failed", url=self.url, retry_in=delay)
        return False

    def _read(self) -> Optional[np.ndarray]:
        with self._lock:
            cap = self.cap
            if cap is None:
                return None
            ret, frame = cap.read()
            if (not ret or frame is None) and self.loop_file:
                cap.set(cv2.CAP_PROP_POS_FRAMES, 0)
                ret, frame = cap.read()
        if not ret or frame is None:
            return None
        return frame

    async def capture(self) -> Optional[str]:
        """Grab one frame as base64 JPEG, or None when the source is not ready."""
        if not await self._ensure_open():
            return None

        frame = await asyncio.to_thread(self._read)
        if frame is None:
            logger.warning("video_source_read_failed", url=self.url)
            self.close()
            return None

        return await asyncio.to_thread(encode_frame, frame)

    def close(self) -> None:
        """Release the capture once any in-progress read has returned."""
        with self._lock:
            if self.cap is not None:
                self.cap.release()
                self.cap = None
