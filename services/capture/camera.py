from __future__ import annotations

import logging
from contextlib import contextmanager
from typing import Any, Callable, Iterator

import cv2

from services.verification.errors import CaptureError

logger = logging.getLogger("cnicverify.camera")

JPEG_QUALITY = 80


@contextmanager
def open_camera(device: Any = 0, factory: Callable[[Any], Any] = cv2.VideoCapture) -> Iterator[Any]:
    """
    Opens a capture device and releases it on every exit path (capture,
    cancel, teardown, or error).
    """
    cam = factory(device)
    try:
        if cam is None or not cam.isOpened():
            raise CaptureError("Camera access denied or not available")
        logger.info("camera %s opened", device)
        yield cam
    finally:
        if cam is not None:
            cam.release()
            logger.info("camera %s released", device)


def capture_frame(cam: Any, quality: int = JPEG_QUALITY) -> bytes:
    """Grabs one frame and returns it JPEG-encoded."""
    ok, frame = cam.read()
    if not ok or frame is None:
        raise CaptureError("Could not read a frame from the camera")

    ok, buf = cv2.imencode(".jpg", frame, [int(cv2.IMWRITE_JPEG_QUALITY), int(quality)])
    if not ok:
        raise CaptureError("Could not encode the captured frame")
    return buf.tobytes()


def capture_from_camera(device: Any = 0, factory: Callable[[Any], Any] = cv2.VideoCapture) -> bytes:
    with open_camera(device, factory=factory) as cam:
        return capture_frame(cam)
