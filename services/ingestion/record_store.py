from __future__ import annotations

import hashlib
import json
import logging
from pathlib import Path
from typing import Optional
from uuid import uuid4

from starlette.concurrency import run_in_threadpool

from services.validation.cross_validator import canonicalize
from services.verification.models import VerificationRecord

logger = logging.getLogger("cnicverify.records")


def document_hash(document_number: Optional[str]) -> Optional[str]:
    """SHA-256 of the canonical CNIC number; what gets logged and indexed instead of the number."""
    c = canonicalize(document_number)
    if not c:
        return None
    return hashlib.sha256(c.encode("utf-8")).hexdigest()


def _write_json_atomic(out: Path, obj: dict) -> None:
    out.parent.mkdir(parents=True, exist_ok=True)
    tmp = out.with_suffix(out.suffix + ".tmp")
    tmp.write_text(json.dumps(obj, indent=2, ensure_ascii=False), encoding="utf-8")
    tmp.replace(out)  # atomic on same filesystem


class LocalRecordStore:
    """
    Filesystem sink for accepted verifications plus raw capture storage.

    Layout:
      <records_dir>/<record_id>.json
      <uploads_dir>/<session_id>/attempt_<n>.bin
    """

    def __init__(self, records_dir: str, uploads_dir: Optional[str] = None) -> None:
        self.records_dir = Path(records_dir)
        self.records_dir.mkdir(parents=True, exist_ok=True)
        self.uploads_dir = Path(uploads_dir) if uploads_dir else self.records_dir / "uploads"

    def write_image(self, session_id: str, attempt: int, blob: bytes) -> str:
        p = self.uploads_dir / session_id / f"attempt_{attempt}.bin"
        p.parent.mkdir(parents=True, exist_ok=True)
        p.write_bytes(blob)
        return p.resolve().as_uri()

    async def put_image(self, *, session_id: str, attempt: int, blob: bytes) -> str:
        return await run_in_threadpool(self.write_image, session_id, attempt, blob)

    def write_record(self, record: VerificationRecord) -> str:
        record_id = f"VR-{uuid4().hex[:12].upper()}"
        payload = {
            "record_id": record_id,
            "document_hash": document_hash(record.extracted.document_number),
            **record.to_dict(),
        }
        payload["persisted_id"] = record_id
        _write_json_atomic(self.records_dir / f"{record_id}.json", payload)
        logger.info("stored verification %s for session %s", record_id, record.session_id)
        return record_id

    async def submit(self, record: VerificationRecord) -> str:
        return await run_in_threadpool(self.write_record, record)

    def load_record(self, record_id: str) -> Optional[dict]:
        p = self.records_dir / f"{record_id}.json"
        if not p.exists():
            return None
        return json.loads(p.read_text(encoding="utf-8"))
