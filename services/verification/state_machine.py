# services/verification/state_machine.py
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Dict, Optional, Set
from uuid import uuid4

from services.authenticity.scorer import AuthenticityScorer
from services.extraction.fields import extract_fields
from services.validation.cross_validator import DEFAULT_NAME_THRESHOLD, cross_validate
from services.validation.schema_validation import normalize_user_value, user_input_fields, validate_user_field
from services.verification.errors import (
    AuthenticityRejected,
    CaptureError,
    EngineError,
    FieldMismatch,
    InvalidTransition,
    SessionNotFound,
    SinkError,
    UserInputError,
    VerificationError,
)
from services.verification.models import (
    CaptureSession,
    CaptureSource,
    FieldMatchResult,
    SessionStatus,
    UserInput,
    VerificationRecord,
)
from services.verification.ports import ImageStore, OCREngine, SubmissionSink

logger = logging.getLogger("cnicverify.sessions")


@dataclass(frozen=True)
class VerifierConfig:
    auth_min_score: int = 5
    name_threshold: float = DEFAULT_NAME_THRESHOLD

    @classmethod
    def from_settings(cls, settings: Any) -> "VerifierConfig":
        return cls(auth_min_score=settings.auth_min_score, name_threshold=settings.name_threshold)


class SessionStore:
    """In-memory arena of capture sessions keyed by id."""

    def __init__(self) -> None:
        self._sessions: Dict[str, CaptureSession] = {}

    def create(self, source: str = CaptureSource.UPLOAD) -> CaptureSession:
        s = CaptureSession(id=str(uuid4()), source=source)
        self._sessions[s.id] = s
        return s

    def get(self, session_id: str) -> CaptureSession:
        s = self._sessions.get(session_id)
        if s is None:
            raise SessionNotFound(f"Unknown session: {session_id}", session_id=session_id)
        return s

    def discard(self, session_id: str) -> None:
        self._sessions.pop(session_id, None)

    def __len__(self) -> int:
        return len(self._sessions)


class VerificationService:
    """
    CNIC verification state machine.

      IDLE --image--> PROCESSING --valid--> REVIEWING --submit ok--> SUBMITTED
                          |                    ^   |
                          +--rejected/engine---+   +--mismatch / sink error (stays)
                             error -> IDLE
      any --reset--> IDLE

    The OCR engine and submission sink are the only awaited calls. Every
    attempt gets a new number; results that come back for an older attempt
    (after a reset) are dropped.
    """

    def __init__(
        self,
        *,
        ocr: OCREngine,
        sink: SubmissionSink,
        image_store: Optional[ImageStore] = None,
        config: Optional[VerifierConfig] = None,
        store: Optional[SessionStore] = None,
    ) -> None:
        self.ocr = ocr
        self.sink = sink
        self.image_store = image_store
        self.config = config or VerifierConfig()
        self.sessions = store or SessionStore()
        self.scorer = AuthenticityScorer(min_score=self.config.auth_min_score)
        self._submitting: Set[str] = set()

    # --- helpers ---

    @staticmethod
    def _fail(s: CaptureSession, err: VerificationError, status: str) -> VerificationError:
        s.status = status
        s.errors = [err.to_dict()]
        s.touch()
        err.session_id = s.id
        logger.warning("session=%s attempt=%d %s: %s", s.id, s.attempt, err.kind, "; ".join(err.reasons))
        return err

    @staticmethod
    def _is_stale(s: CaptureSession, attempt: int) -> bool:
        if s.attempt != attempt:
            logger.warning("session=%s discarding result of stale attempt %d (now %d)", s.id, attempt, s.attempt)
            return True
        return False

    def _require(self, s: CaptureSession, *statuses: str) -> None:
        if s.status not in statuses:
            raise InvalidTransition(
                f"Session is {s.status}; expected {' or '.join(statuses)}",
                session_id=s.id,
            )

    # --- lifecycle ---

    def open_session(self, source: str = CaptureSource.UPLOAD) -> str:
        s = self.sessions.create(source)
        logger.info("session=%s opened source=%s", s.id, source)
        return s.id

    async def start_session(self, image: bytes, source: str = CaptureSource.UPLOAD) -> str:
        """Opens a session and processes its first image. Errors carry the session id."""
        session_id = self.open_session(source)
        await self.process_image(session_id, image)
        return session_id

    async def process_image(self, session_id: str, image: bytes) -> Dict[str, Any]:
        s = self.sessions.get(session_id)
        if s.status == SessionStatus.PROCESSING:
            raise CaptureError("An image is already being processed for this session", session_id=s.id)
        self._require(s, SessionStatus.IDLE)

        if not image:
            raise self._fail(s, CaptureError("No image received"), SessionStatus.IDLE)

        s.clear_derived()
        s.attempt += 1
        attempt = s.attempt
        s.status = SessionStatus.PROCESSING
        s.touch()
        logger.info("session=%s attempt=%d processing", s.id, attempt)

        if self.image_store is not None:
            try:
                image_uri = await self.image_store.put_image(session_id=s.id, attempt=attempt, blob=image)
            except Exception as e:
                if self._is_stale(s, attempt):
                    return s.snapshot()
                raise self._fail(
                    s,
                    CaptureError(f"Could not store the image: {e}. Please try again."),
                    SessionStatus.IDLE,
                ) from e
            if self._is_stale(s, attempt):
                return s.snapshot()
            s.image_uri = image_uri

        try:
            ocr = await self.ocr.recognize(image)
        except Exception as e:
            if self._is_stale(s, attempt):
                return s.snapshot()
            raise self._fail(
                s,
                EngineError(f"OCR processing failed: {e}. Please try again with a clearer image."),
                SessionStatus.IDLE,
            ) from e

        if self._is_stale(s, attempt):
            return s.snapshot()

        if ocr is None or not (ocr.text or "").strip():
            raise self._fail(
                s,
                EngineError("No text could be recognized. Please try again with a clearer image."),
                SessionStatus.IDLE,
            )
        s.ocr = ocr

        assessment = self.scorer.assess(ocr.text)
        s.authenticity = assessment
        if not assessment.is_valid:
            raise self._fail(
                s,
                AuthenticityRejected(
                    f"Image validation failed (Confidence: {assessment.confidence:.1f}%)",
                    reasons=[
                        *assessment.reasons,
                        "This does not appear to be a valid Pakistani CNIC",
                        "Please upload a clear image of the front side of your CNIC",
                    ],
                ),
                SessionStatus.IDLE,
            )

        s.extracted = extract_fields(ocr.text)
        s.user_input = UserInput.prefilled(s.extracted)
        s.status = SessionStatus.REVIEWING
        s.errors = []
        s.touch()
        logger.info(
            "session=%s attempt=%d reviewing score=%d/%d",
            s.id, attempt, assessment.score, len(assessment.indicators),
        )
        return s.snapshot()

    def get_session_state(self, session_id: str) -> Dict[str, Any]:
        return self.sessions.get(session_id).snapshot()

    def set_user_field(self, session_id: str, field: str, value: Optional[str]) -> None:
        s = self.sessions.get(session_id)
        self._require(s, SessionStatus.REVIEWING)

        if field not in UserInput.field_names() or field not in user_input_fields():
            raise UserInputError(f"Unknown field: {field}", session_id=s.id)

        v = normalize_user_value(field, value)
        ok, msg = validate_user_field(field, v)
        if not ok:
            raise UserInputError(f"Invalid {field}: {msg}", session_id=s.id)

        assert s.user_input is not None
        s.user_input = s.user_input.with_value(field, v)
        # Edits invalidate the last verdict and any record awaiting resubmission.
        s.match = None
        s.record = None
        s.touch()

    def confirm_and_validate(self, session_id: str) -> FieldMatchResult:
        s = self.sessions.get(session_id)
        self._require(s, SessionStatus.REVIEWING)
        assert s.extracted is not None and s.user_input is not None

        match = cross_validate(
            s.extracted,
            s.user_input,
            s.authenticity,
            name_threshold=self.config.name_threshold,
        )
        s.match = match
        if match.overall:
            s.errors = []
        else:
            s.errors = [
                FieldMismatch(
                    "Data validation failed. Please check your input against the extracted data.",
                    field_reasons=match.reasons,
                ).to_dict()
            ]
        s.touch()
        return match

    async def submit(self, session_id: str) -> VerificationRecord:
        s = self.sessions.get(session_id)
        if s.status == SessionStatus.SUBMITTED and s.record is not None:
            return s.record
        self._require(s, SessionStatus.REVIEWING)
        if s.id in self._submitting:
            raise InvalidTransition("A submission is already in progress for this session", session_id=s.id)

        record = s.record
        if record is None:
            match = self.confirm_and_validate(session_id)
            if not match.overall:
                raise self._fail(
                    s,
                    FieldMismatch(
                        "Data validation failed. Please check your input against the extracted data.",
                        field_reasons=match.reasons,
                    ),
                    SessionStatus.REVIEWING,
                )
            assert s.extracted is not None and s.user_input is not None
            record = VerificationRecord(
                session_id=s.id,
                extracted=s.extracted,
                user_input=s.user_input,
                match=match,
                overall_accepted=True,
            )
            s.record = record

        attempt = s.attempt
        self._submitting.add(s.id)
        try:
            record_id = await self.sink.submit(record)
        except Exception as e:
            logger.exception("session=%s submission failed", s.id)
            if self._is_stale(s, attempt):
                raise SinkError(f"Submission failed: {e}", session_id=s.id) from e
            raise self._fail(
                s,
                SinkError(f"Submission failed: {e}. Your verified data is kept; please try again."),
                SessionStatus.REVIEWING,
            ) from e
        finally:
            self._submitting.discard(s.id)

        record.persisted_id = record_id
        if self._is_stale(s, attempt):
            return record

        s.status = SessionStatus.SUBMITTED
        s.errors = []
        s.touch()
        logger.info("session=%s submitted record=%s", s.id, record_id)
        return record

    def reset(self, session_id: str) -> None:
        s = self.sessions.get(session_id)
        s.clear_derived()
        # Bumping the attempt invalidates any OCR or sink call still in flight.
        s.attempt += 1
        s.status = SessionStatus.IDLE
        s.touch()
        logger.info("session=%s reset", s.id)

    def close_session(self, session_id: str) -> None:
        """Drops the session. Anything still in flight for it is discarded."""
        s = self.sessions.get(session_id)
        s.attempt += 1
        self.sessions.discard(s.id)
        logger.info("session=%s closed status=%s", s.id, s.status)
