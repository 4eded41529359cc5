import logging
from typing import List, Tuple

import cv2
import numpy as np
from paddleocr import PaddleOCR
from starlette.concurrency import run_in_threadpool

from services.capture.intake import decode_image_with_exif
from services.verification.models import OCRResult

logger = logging.getLogger("cnicverify.ocr")


class PageOCR:
    """
    Whole-card PaddleOCR adapter: image bytes -> OCRResult(text, confidence 0-100).

    `lang` may list several PaddleOCR models ("en,ur"); each runs over the
    same image and the lines are concatenated in that order.
    """

    def __init__(self, lang: str = "en"):
        langs = [s.strip() for s in lang.split(",") if s.strip()] or ["en"]
        self.engines = [PaddleOCR(use_angle_cls=True, lang=code, show_log=False) for code in langs]

    def _preprocess(self, img: np.ndarray) -> np.ndarray:
        h, w = img.shape[:2]
        if h < 400 or w < 600:
            img = cv2.resize(img, None, fx=2.0, fy=2.0, interpolation=cv2.INTER_CUBIC)
        gray = cv2.cvtColor(img, cv2.COLOR_BGR2GRAY)
        clahe = cv2.createCLAHE(clipLimit=2.0, tileGridSize=(8, 8))
        enhanced = clahe.apply(gray)
        return cv2.cvtColor(enhanced, cv2.COLOR_GRAY2BGR)

    def _run(self, img: np.ndarray) -> Tuple[List[str], List[float]]:
        lines: List[str] = []
        confs: List[float] = []
        for engine in self.engines:
            ocr_out = engine.ocr(img, cls=True)
            if ocr_out and ocr_out[0]:
                lines.extend(line[1][0] for line in ocr_out[0])
                confs.extend(float(line[1][1]) for line in ocr_out[0])
        return lines, confs

    def recognize_sync(self, image: bytes) -> OCRResult:
        img = decode_image_with_exif(image)
        lines, confs = self._run(self._preprocess(img))
        confidence = (sum(confs) / len(confs) * 100.0) if confs else 0.0
        logger.info("ocr lines=%d confidence=%.1f", len(lines), confidence)
        return OCRResult(text="\n".join(lines), confidence=confidence)

    async def recognize(self, image: bytes) -> OCRResult:
        return await run_in_threadpool(self.recognize_sync, image)
