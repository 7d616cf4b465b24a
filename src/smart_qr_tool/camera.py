"""Camera scanning loop built on OpenCV."""
from __future__ import annotations

import logging
import threading
import time
from typing import Callable, Optional

from .config import AppConfig, CameraConfig
from .errors import DecodeError
from .qr import QRCodeManager

logger = logging.getLogger(__name__)


class CameraScanner:
    """Read frames from the first available camera until a QR code decodes.

    ``scan`` blocks, so callers on an event loop run it in a worker thread and
    use :meth:`stop` to end it early.
    """

    def __init__(
        self,
        config: AppConfig,
        camera_config: Optional[CameraConfig] = None,
        qr: Optional[QRCodeManager] = None,
        status: Optional[Callable[[str], None]] = None,
    ):
        self._config = config
        self._camera_config = camera_config or CameraConfig()
        self._qr = qr or QRCodeManager(config)
        self._status = status
        self._stop_event = threading.Event()
        self._cv2 = None

    def stop(self) -> None:
        self._stop_event.set()

    @property
    def stopped(self) -> bool:
        return self._stop_event.is_set()

    def _emit(self, message: str) -> None:
        logger.info(message)
        if self._status is not None:
            self._status(message)

    def scan(self, timeout: Optional[float] = None) -> str:
        """Return the first decoded payload.

        Raises :class:`DecodeError` when the camera cannot be opened, the feed
        drops, the timeout elapses or :meth:`stop` is called first.
        """

        try:
            import cv2  # type: ignore
        except Exception as exc:  # pragma: no cover - depends on environment
            raise RuntimeError("Camera scanning requires opencv-python") from exc

        self._cv2 = cv2
        self._stop_event.clear()

        capture = self._open_capture()
        if capture is None:
            raise DecodeError("No camera found. Please use the image upload option instead.")

        frame_skip = max(1, self._config.camera_frame_skip)
        frame_counter = 0
        deadline = None if timeout is None else time.monotonic() + timeout

        self._emit("Camera active - align QR code")

        try:
            while not self._stop_event.is_set():
                if deadline is not None and time.monotonic() >= deadline:
                    raise DecodeError("No QR code found before timeout")

                success, frame = capture.read()
                if not success or frame is None:
                    raise DecodeError("Camera feed unavailable")

                frame_counter += 1
                if frame_counter % frame_skip:
                    continue

                decoded = self._qr.decode_frame(self._resize_frame(frame))
                if decoded:
                    self._emit("QR code detected")
                    return decoded
        finally:
            capture.release()

        raise DecodeError("Camera scan stopped")

    def _open_capture(self):
        assert self._cv2 is not None
        config = self._camera_config

        default_backend = getattr(self._cv2, "CAP_ANY", 0)
        for backend in config.get_backends() or [default_backend]:
            for index in config.get_indices():
                try:
                    capture = self._cv2.VideoCapture(index, backend)
                except TypeError:
                    capture = self._cv2.VideoCapture(index)
                if not capture or not capture.isOpened():
                    if capture:
                        capture.release()
                    continue

                logger.debug("Opened camera %d with backend %s", index, backend)
                capture.set(self._cv2.CAP_PROP_FRAME_WIDTH, config.width)
                capture.set(self._cv2.CAP_PROP_FRAME_HEIGHT, config.height)
                return capture
        return None

    def _resize_frame(self, frame):
        assert self._cv2 is not None
        max_dim = max(frame.shape[:2])
        limit = self._config.max_frame_size
        if max_dim <= limit:
            return frame

        scale = limit / float(max_dim)
        new_size = (int(frame.shape[1] * scale), int(frame.shape[0] * scale))
        return self._cv2.resize(frame, new_size)


__all__ = ["CameraScanner"]
