"""
Camera capture for EduPlan.

A CameraCapture session moves through
``inactive -> requesting -> streaming -> capturing-frame -> inactive``.
It owns its video source for the whole active lifetime and releases it on
every exit path: successful capture, failed acquisition, failed downstream
call, or an explicit close.

Two sources are provided:

* ``OpenCVVideoSource`` reads a local device with ``cv2.VideoCapture``
  (classroom kiosk or the teacher's own machine);
* ``BrowserFrameSource`` receives a single frame captured in the browser
  with ``getUserMedia`` and posted to the server.
"""

import base64
import io
import logging
import threading
import time
from abc import ABC, abstractmethod
from contextlib import contextmanager
from dataclasses import dataclass
from enum import Enum

import cv2
import numpy as np
from PIL import Image, UnidentifiedImageError

from eduplan.errors import DeviceAccessError, InputValidationError
from eduplan.models import CaptureIntent

logger = logging.getLogger(__name__)

JPEG_MIME_TYPE = "image/jpeg"


class CameraState(str, Enum):
    INACTIVE = "inactive"
    REQUESTING = "requesting"
    STREAMING = "streaming"
    CAPTURING_FRAME = "capturing-frame"


@dataclass(frozen=True)
class CapturedFrame:
    data_b64: str
    mime_type: str
    intent: CaptureIntent


class VideoSource(ABC):
    """A device (or stand-in) that yields BGR frames as numpy arrays."""

    @abstractmethod
    def start(self):
        """Acquire the device. Raises DeviceAccessError when unavailable."""

    @abstractmethod
    def read(self) -> np.ndarray:
        """Return the current frame."""

    @abstractmethod
    def stop(self):
        """Release the device. Safe to call more than once."""

    def deliver(self, image_bytes):
        raise InputValidationError(
            "This video source captures its own frames",
            user_message="Use o botão de captura da câmera.",
        )


class OpenCVVideoSource(VideoSource):
    def __init__(self, index=0, width=1280, height=720):
        self.index = index
        self.width = width
        self.height = height
        self.cap = None

    def start(self):
        cap = cv2.VideoCapture(self.index)
        if not cap.isOpened():
            cap.release()
            raise DeviceAccessError(f"Camera device {self.index} could not be opened")
        cap.set(cv2.CAP_PROP_FRAME_WIDTH, self.width)
        cap.set(cv2.CAP_PROP_FRAME_HEIGHT, self.height)
        self.cap = cap
        logger.info("Opened camera device %s", self.index)

    def read(self):
        if self.cap is None:
            raise DeviceAccessError("Camera is not open")
        ok, frame = self.cap.read()
        if not ok or frame is None:
            raise DeviceAccessError(f"Camera device {self.index} returned no frame")
        return frame

    def stop(self):
        if self.cap is not None:
            self.cap.release()
            self.cap = None
            logger.info("Released camera device %s", self.index)


class BrowserFrameSource(VideoSource):
    """Holds the last frame posted by the browser.

    Permission handling happens in the browser, so ``start`` never fails
    here; a denied browser prompt simply closes the session.
    """

    def __init__(self):
        self._frame = None

    def start(self):
        self._frame = None

    def deliver(self, image_bytes):
        self._frame = decode_image(image_bytes)

    def read(self):
        if self._frame is None:
            raise DeviceAccessError("No frame was received from the browser")
        return self._frame

    def stop(self):
        self._frame = None


def decode_image(image_bytes):
    """Decode uploaded image bytes into a BGR numpy array."""
    try:
        with Image.open(io.BytesIO(image_bytes)) as img:
            rgb = np.asarray(img.convert("RGB"))
    except (UnidentifiedImageError, OSError) as e:
        raise InputValidationError(
            f"Uploaded frame is not an image: {e}",
            user_message="Não foi possível ler a imagem enviada.",
        ) from e
    return np.ascontiguousarray(rgb[:, :, ::-1])


def encode_frame(frame, quality=85):
    """Encode a BGR frame as JPEG bytes."""
    ok, buffer = cv2.imencode(".jpg", frame, [cv2.IMWRITE_JPEG_QUALITY, quality])
    if not ok:
        raise DeviceAccessError("Frame could not be encoded as JPEG")
    return buffer.tobytes()


class CameraCapture:
    """
    One camera session at a time, bound to a CaptureIntent.

    Args:
        source_factory: Callable returning a fresh VideoSource per session.
        jpeg_quality: JPEG quality for captured and preview frames.
    """

    def __init__(self, source_factory, jpeg_quality=85):
        self._source_factory = source_factory
        self.jpeg_quality = jpeg_quality
        self.state = CameraState.INACTIVE
        self.intent = None
        self._source = None
        self._lock = threading.RLock()

    @property
    def active(self):
        return self.state is not CameraState.INACTIVE

    def open(self, intent):
        """Acquire a source for ``intent`` and start streaming.

        Raises:
            DeviceAccessError: if the device is denied or missing; the
                session is back to inactive when this propagates.
        """
        with self._lock:
            if self.active:
                self.close()
            self.intent = CaptureIntent(intent)
            self.state = CameraState.REQUESTING
            source = self._source_factory()
            self._source = source
            try:
                source.start()
            except DeviceAccessError:
                logger.warning("Camera acquisition failed for %s", self.intent.value)
                self.close()
                raise
            self.state = CameraState.STREAMING

    def deliver(self, image_bytes):
        with self._lock:
            self._require_streaming()
            self._source.deliver(image_bytes)

    def preview_frames(self, interval=0.05):
        """Yield JPEG preview frames while the session is streaming."""
        while True:
            with self._lock:
                if self.state is not CameraState.STREAMING:
                    return
                try:
                    frame = self._source.read()
                except DeviceAccessError as e:
                    logger.warning("Preview stopped: %s", e)
                    return
                jpeg = encode_frame(frame, self.jpeg_quality)
            yield jpeg
            time.sleep(interval)

    def capture(self):
        """Snapshot one frame and encode it for the generation service."""
        with self._lock:
            self._require_streaming()
            self.state = CameraState.CAPTURING_FRAME
            frame = self._source.read()
            jpeg = encode_frame(frame, self.jpeg_quality)
            return CapturedFrame(
                data_b64=base64.b64encode(jpeg).decode("ascii"),
                mime_type=JPEG_MIME_TYPE,
                intent=self.intent,
            )

    def close(self):
        """Release the source and return to inactive. Idempotent."""
        with self._lock:
            source, self._source = self._source, None
            self.state = CameraState.INACTIVE
            self.intent = None
            if source is not None:
                source.stop()

    @contextmanager
    def streaming(self, intent):
        """Scoped session: the source is released however the block exits."""
        self.open(intent)
        try:
            yield self
        finally:
            self.close()

    def _require_streaming(self):
        if self.state is not CameraState.STREAMING:
            raise InputValidationError(
                f"Camera is {self.state.value}, not streaming",
                user_message="Abra a câmera antes de capturar.",
            )
