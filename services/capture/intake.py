from __future__ import annotations

import logging
from dataclasses import dataclass
from io import BytesIO
from typing import Optional

import cv2
import numpy as np
from PIL import Image, ImageOps, UnidentifiedImageError

from apps.common.settings import QualityGate
from services.verification.errors import CaptureError

logger = logging.getLogger("cnicverify.capture")


@dataclass(frozen=True)
class CardPhotoQuality:
    """Blur and exposure readings for one card photo, with the first gate it failed."""

    blur_score: float
    white_ratio: float
    dark_ratio: float
    rejection_reason: Optional[str] = None

    @property
    def passed(self) -> bool:
        return self.rejection_reason is None


def decode_image_with_exif(blob: bytes) -> np.ndarray:
    """Phone photos carry their rotation in EXIF; apply it before converting to BGR."""
    with Image.open(BytesIO(blob)) as pil:
        rgb = ImageOps.exif_transpose(pil).convert("RGB")
    return cv2.cvtColor(np.asarray(rgb), cv2.COLOR_RGB2BGR)


def _decode(blob: bytes) -> Optional[np.ndarray]:
    try:
        return decode_image_with_exif(blob)
    except (UnidentifiedImageError, OSError, ValueError):
        return cv2.imdecode(np.frombuffer(blob, np.uint8), cv2.IMREAD_COLOR)


def resize_if_huge(img: np.ndarray, max_dim: int) -> np.ndarray:
    longest = max(img.shape[:2])
    if longest <= max_dim:
        return img
    scale = max_dim / longest
    return cv2.resize(img, None, fx=scale, fy=scale, interpolation=cv2.INTER_AREA)


def check_image_quality(img: np.ndarray, gate: Optional[QualityGate] = None) -> CardPhotoQuality:
    gate = gate or QualityGate()
    if img is None or img.size == 0:
        return CardPhotoQuality(0.0, 0.0, 0.0, rejection_reason="The photo is empty")

    gray = cv2.cvtColor(img, cv2.COLOR_BGR2GRAY)
    blur = float(cv2.Laplacian(gray, cv2.CV_64F).var())
    hist = cv2.calcHist([gray], [0], None, [256], [0, 256]).ravel()
    n = float(gray.size)
    white = float(hist[250:].sum()) / n
    dark = float(hist[:5].sum()) / n

    reason = None
    if blur < gate.min_blur_score:
        reason = (
            f"The card photo is too blurry (sharpness {blur:.1f}, need {gate.min_blur_score}). "
            "Hold the camera steady and retake it."
        )
    elif white > gate.max_white_ratio:
        reason = (
            f"Glare covers {white:.0%} of the card (limit {gate.max_white_ratio:.0%}). "
            "Move away from direct light."
        )
    elif dark > gate.max_black_ratio:
        reason = (
            f"The card photo is too dark ({dark:.0%} black, limit {gate.max_black_ratio:.0%}). "
            "Retake it in better light."
        )
    return CardPhotoQuality(blur_score=blur, white_ratio=white, dark_ratio=dark, rejection_reason=reason)


def accept_upload(blob: bytes, gate: Optional[QualityGate] = None) -> np.ndarray:
    """
    Decodes an uploaded card photo and applies the quality gate.
    Raises CaptureError with a specific reason when the image is unusable.
    """
    gate = gate or QualityGate()
    if not blob:
        raise CaptureError("No image received. Please upload a photo of the front of your CNIC.")

    img = _decode(blob)
    if img is None:
        raise CaptureError("Could not decode image. Please upload a JPEG or PNG photo.")

    img = resize_if_huge(img, gate.max_resolution)
    quality = check_image_quality(img, gate)
    if not quality.passed:
        logger.warning("rejected card photo: %s", quality.rejection_reason)
        raise CaptureError(quality.rejection_reason or "Image rejected")
    return img
