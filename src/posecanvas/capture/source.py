# src/posecanvas/capture/source.py
import os
import time
from typing import Callable, Optional

import cv2
import numpy as np

from ..config import CAM_API, CAM_INDEX, CAMERA_OPEN_TIMEOUT_S
from ..errors import DecodeError, DeviceUnavailable
from ..utils.cancel import CancelToken
from ..utils.logger import get_logger

log = get_logger(__name__)

SOURCE_LIVE = "live"
SOURCE_IMAGE = "image"


class Source:
    """A paintable pixel source with intrinsic (not displayed) dimensions."""

    kind: str = ""

    @property
    def width(self) -> int:
        raise NotImplementedError

    @property
    def height(self) -> int:
        raise NotImplementedError

    def frame(self) -> Optional[np.ndarray]:
        # Current BGR pixels, or None if nothing has been produced yet
        raise NotImplementedError


class ImageSource(Source):
    kind = SOURCE_IMAGE

    def __init__(self, image_bgr: np.ndarray, name: str = ""):
        self._img = image_bgr
        self.name = name

    @property
    def width(self) -> int:
        return int(self._img.shape[1])

    @property
    def height(self) -> int:
        return int(self._img.shape[0])

    def frame(self) -> np.ndarray:
        return self._img


class LiveSource(Source):
    """Camera stream; reports 0x0 until the device has delivered a real frame."""

    kind = SOURCE_LIVE

    def __init__(self, capture):
        self._cap = capture
        self._last: Optional[np.ndarray] = None

    @property
    def width(self) -> int:
        return 0 if self._last is None else int(self._last.shape[1])

    @property
    def height(self) -> int:
        return 0 if self._last is None else int(self._last.shape[0])

    def frame(self) -> Optional[np.ndarray]:
        if self._cap is None:
            return self._last
        ok, frame = self._cap.read()
        if ok and frame is not None and frame.size > 0:
            self._last = frame  # keep the last good frame; dims follow it
        return self._last

    def release(self) -> None:
        # Stop the device; safe to call repeatedly
        if self._cap is not None:
            self._cap.release()
            self._cap = None


class SourceProvider:
    """Opens the camera or decodes still images; holds at most one live source."""

    def __init__(self, cam_index=CAM_INDEX, cam_api=CAM_API,
                 capture_factory: Callable = cv2.VideoCapture,
                 open_timeout_s: float = CAMERA_OPEN_TIMEOUT_S,
                 sleep: Callable[[float], None] = time.sleep,
                 clock: Callable[[], float] = time.monotonic):
        self.cam_index = cam_index
        self.cam_api = cam_api
        self._capture_factory = capture_factory
        self.open_timeout_s = float(open_timeout_s)
        self._sleep = sleep
        self._clock = clock
        self.live: Optional[LiveSource] = None

    # ---------- camera ----------
    def acquire_live(self, token: Optional[CancelToken] = None) -> Optional[LiveSource]:
        """
        Open the capture device and wait until it reports a non-zero frame size.

        The wait blocks the calling thread. ``token`` is checked before every
        poll, so only code running inside the wait (``sleep``) or on another
        thread can cancel it mid-way; on the GUI thread it is effectively an
        entry check. A cancelled token releases the device and returns None.
        Raises DeviceUnavailable if the device cannot be opened or never
        reports a size within ``open_timeout_s``.
        """
        self.release()  # never hold two devices
        try:
            cap = self._capture_factory(self.cam_index, self.cam_api)
        except cv2.error as e:
            raise DeviceUnavailable(f"Camera {self.cam_index} could not be opened: {e}") from e
        if cap is None or not cap.isOpened():
            if cap is not None:
                cap.release()
            raise DeviceUnavailable(
                f"Camera {self.cam_index} is not available (missing device or permission denied).")

        deadline = self._clock() + self.open_timeout_s
        while True:
            if token is not None and token.cancelled:
                cap.release()
                log.info("Camera acquisition cancelled")
                return None
            w = int(cap.get(cv2.CAP_PROP_FRAME_WIDTH) or 0)
            h = int(cap.get(cv2.CAP_PROP_FRAME_HEIGHT) or 0)
            if w > 0 and h > 0:
                break
            if self._clock() >= deadline:
                cap.release()
                raise DeviceUnavailable(f"Camera {self.cam_index} never reported a frame size.")
            self._sleep(0.02)

        self.live = LiveSource(cap)
        log.info("Webcam ready (index=%s, %dx%d)", self.cam_index, w, h)
        return self.live

    def release(self) -> None:
        if self.live is not None:
            self.live.release()
            self.live = None
            log.info("Webcam stopped")

    # ---------- still images ----------
    def load_image(self, data: bytes, name: str = "") -> ImageSource:
        if not data:
            raise DecodeError("Empty image data")
        buf = np.frombuffer(data, dtype=np.uint8)
        try:
            img = cv2.imdecode(buf, cv2.IMREAD_COLOR)
        except cv2.error as e:
            raise DecodeError(f"Could not decode image: {e}") from e
        if img is None or img.size == 0:
            raise DecodeError(f"Could not decode image{f' {name!r}' if name else ''}")
        log.info("Image decoded %s (%dx%d)", name or "<bytes>", img.shape[1], img.shape[0])
        return ImageSource(img, name=name)

    def load_image_file(self, path: str) -> ImageSource:
        try:
            with open(path, "rb") as f:
                data = f.read()
        except OSError as e:
            raise DecodeError(f"Could not read image file {path!r}: {e}") from e
        return self.load_image(data, name=os.path.basename(path))
