# services/verification/models.py
from __future__ import annotations

from dataclasses import asdict, dataclass, field, fields, replace
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional


class SessionStatus:
    IDLE = "IDLE"
    PROCESSING = "PROCESSING"
    REVIEWING = "REVIEWING"
    SUBMITTED = "SUBMITTED"


class CaptureSource:
    UPLOAD = "upload"
    CAMERA = "camera"


EXACT_FIELDS = ("document_number", "date_of_birth", "issue_date")
FUZZY_FIELDS = ("full_name",)
ANCILLARY_FIELDS = ("city", "phone")


def utcnow() -> str:
    return datetime.now(timezone.utc).isoformat()


@dataclass(frozen=True)
class OCRResult:
    text: str
    confidence: float  # 0-100


@dataclass(frozen=True)
class AuthenticityAssessment:
    indicators: Dict[str, bool]
    score: int
    confidence: float  # percent
    decision: str  # "valid" | "invalid"
    reasons: List[str] = field(default_factory=list)

    @property
    def is_valid(self) -> bool:
        return self.decision == "valid"


@dataclass(frozen=True)
class ExtractedFields:
    document_number: Optional[str] = None
    full_name: Optional[str] = None
    date_of_birth: Optional[str] = None
    issue_date: Optional[str] = None


@dataclass(frozen=True)
class UserInput:
    document_number: Optional[str] = None
    full_name: Optional[str] = None
    date_of_birth: Optional[str] = None
    issue_date: Optional[str] = None
    city: Optional[str] = None
    phone: Optional[str] = None

    @classmethod
    def prefilled(cls, extracted: ExtractedFields) -> "UserInput":
        return cls(**asdict(extracted))

    @classmethod
    def field_names(cls) -> List[str]:
        return [f.name for f in fields(cls)]

    def with_value(self, name: str, value: Optional[str]) -> "UserInput":
        return replace(self, **{name: value})


@dataclass(frozen=True)
class FieldMatchResult:
    """
    Per-field verdicts: True = match, False = mismatch, None = not compared
    (field absent from extraction).
    """
    document_number: Optional[bool] = None
    full_name: Optional[bool] = None
    date_of_birth: Optional[bool] = None
    issue_date: Optional[bool] = None
    name_similarity: Optional[float] = None
    overall: bool = False
    reasons: Dict[str, str] = field(default_factory=dict)


@dataclass
class VerificationRecord:
    session_id: str
    extracted: ExtractedFields
    user_input: UserInput
    match: FieldMatchResult
    overall_accepted: bool
    created_at: str = field(default_factory=utcnow)
    persisted_id: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass
class CaptureSession:
    id: str
    source: str = CaptureSource.UPLOAD
    status: str = SessionStatus.IDLE
    image_uri: Optional[str] = None
    attempt: int = 0
    created_at: str = field(default_factory=utcnow)
    updated_at: str = field(default_factory=utcnow)

    ocr: Optional[OCRResult] = None
    authenticity: Optional[AuthenticityAssessment] = None
    extracted: Optional[ExtractedFields] = None
    user_input: Optional[UserInput] = None
    match: Optional[FieldMatchResult] = None
    record: Optional[VerificationRecord] = None
    errors: List[Dict[str, Any]] = field(default_factory=list)

    def clear_derived(self) -> None:
        self.image_uri = None
        self.ocr = None
        self.authenticity = None
        self.extracted = None
        self.user_input = None
        self.match = None
        self.record = None
        self.errors = []

    def touch(self) -> None:
        self.updated_at = utcnow()

    def snapshot(self) -> Dict[str, Any]:
        return {
            "session_id": self.id,
            "status": self.status,
            "source": self.source,
            "attempt": self.attempt,
            "image_uri": self.image_uri,
            "ocr_confidence": self.ocr.confidence if self.ocr else None,
            "authenticity": asdict(self.authenticity) if self.authenticity else None,
            "extracted": asdict(self.extracted) if self.extracted else None,
            "user_input": asdict(self.user_input) if self.user_input else None,
            "match_results": asdict(self.match) if self.match else None,
            "record_id": self.record.persisted_id if self.record else None,
            "errors": list(self.errors),
            "created_at": self.created_at,
            "updated_at": self.updated_at,
        }
