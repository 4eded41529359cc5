from __future__ import annotations

from typing import Protocol

from services.verification.models import OCRResult, VerificationRecord


class OCREngine(Protocol):
    async def recognize(self, image: bytes) -> OCRResult: ...


class SubmissionSink(Protocol):
    async def submit(self, record: VerificationRecord) -> str: ...


class ImageStore(Protocol):
    async def put_image(self, *, session_id: str, attempt: int, blob: bytes) -> str: ...
