# services/verification/errors.py
from __future__ import annotations

from typing import Any, Dict, List, Optional


class VerificationError(RuntimeError):
    """Base for every recoverable failure in the verification flow."""

    kind = "verification_error"

    def __init__(
        self,
        message: str,
        *,
        session_id: Optional[str] = None,
        reasons: Optional[List[str]] = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.session_id = session_id
        self.reasons = list(reasons or [message])

    def to_dict(self) -> Dict[str, Any]:
        return {"error": self.kind, "message": self.message, "reasons": list(self.reasons)}


class CaptureError(VerificationError):
    """Bad/missing image, camera unavailable, or session busy. Retry capture."""

    kind = "capture_error"


class EngineError(VerificationError):
    """OCR produced nothing. Transient; distinct from a document rejection."""

    kind = "engine_error"


class AuthenticityRejected(VerificationError):
    kind = "authenticity_rejected"


class FieldMismatch(VerificationError):
    kind = "field_mismatch"

    def __init__(self, message: str, *, session_id: Optional[str] = None, field_reasons: Optional[Dict[str, str]] = None) -> None:
        self.field_reasons = dict(field_reasons or {})
        super().__init__(message, session_id=session_id, reasons=list(self.field_reasons.values()) or None)

    def to_dict(self) -> Dict[str, Any]:
        return {**super().to_dict(), "fields": dict(self.field_reasons)}


class SinkError(VerificationError):
    """Submission failed; the pending record is kept for resubmission."""

    kind = "sink_error"


class SessionNotFound(VerificationError):
    kind = "session_not_found"


class InvalidTransition(VerificationError):
    kind = "invalid_transition"


class UserInputError(VerificationError, ValueError):
    kind = "user_input_error"
