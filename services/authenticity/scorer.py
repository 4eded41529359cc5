# services/authenticity/scorer.py
from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Callable, Dict, List, Tuple

from services.verification.models import AuthenticityAssessment


CNIC_GROUPED_RE = re.compile(r"\b\d{5}-\d{7}-\d\b")
CNIC_DIGITS_RE = re.compile(r"\b\d{13}\b")
DATE_RE = re.compile(r"\d{2}[/\-.]\d{2}[/\-.]\d{4}")
URDU_RE = re.compile("[\u0600-\u06FF]")

_REPUBLIC_RE = re.compile(r"republic\s+of\s+pakistan", re.IGNORECASE)
_NIC_RE = re.compile(r"national\s+identity\s+card", re.IGNORECASE)
_LABELS_RE = re.compile(r"name|address|signature|نام|پتہ|دستخط", re.IGNORECASE)
_PASSPORT_RE = re.compile(r"passport", re.IGNORECASE)
_OTHER_DOC_RE = re.compile(r"driving\s+licen[cs]e|\bvisa\b", re.IGNORECASE)


def has_identifier(text: str) -> bool:
    return bool(CNIC_GROUPED_RE.search(text) or CNIC_DIGITS_RE.search(text))


# name -> (check, is_negative). Negative indicators are true when the
# competing-document keyword is absent.
INDICATORS: Dict[str, Tuple[Callable[[str], bool], bool]] = {
    "has_republic_of_pakistan": (lambda t: bool(_REPUBLIC_RE.search(t)), False),
    "has_national_identity_card": (lambda t: bool(_NIC_RE.search(t)), False),
    "has_urdu_script": (lambda t: bool(URDU_RE.search(t)), False),
    "has_identifier": (has_identifier, False),
    "has_date": (lambda t: bool(DATE_RE.search(t)), False),
    "has_field_labels": (lambda t: bool(_LABELS_RE.search(t)), False),
    "no_passport_keywords": (lambda t: not _PASSPORT_RE.search(t), True),
    "no_other_document_keywords": (lambda t: not _OTHER_DOC_RE.search(t), True),
}

NEGATIVE_INDICATORS = tuple(k for k, (_, neg) in INDICATORS.items() if neg)

_NEGATIVE_REASONS = {
    "no_passport_keywords": "text mentions a passport",
    "no_other_document_keywords": "text mentions a driving licence or visa",
}


@dataclass(frozen=True)
class AuthenticityScorer:
    """
    Scores raw OCR text against the CNIC template.

    A card is valid only when enough indicators fire (min_score) AND the
    identifier pattern is present AND no competing-document keyword appears.
    """

    min_score: int = 5

    def assess(self, text: str) -> AuthenticityAssessment:
        total = len(INDICATORS)
        if not isinstance(text, str) or not text.strip():
            return AuthenticityAssessment(
                indicators={k: False for k in INDICATORS},
                score=0,
                confidence=0.0,
                decision="invalid",
                reasons=["no text recognized on the image"],
            )

        indicators = {name: bool(check(text)) for name, (check, _) in INDICATORS.items()}
        score = sum(1 for v in indicators.values() if v)
        confidence = score / total * 100.0

        reasons: List[str] = []
        if score < self.min_score:
            reasons.append(
                f"only {score}/{total} CNIC indicators found (confidence {confidence:.1f}%, need {self.min_score})"
            )
        if not indicators["has_identifier"]:
            reasons.append("no CNIC number pattern found")
        for name in NEGATIVE_INDICATORS:
            if not indicators[name]:
                reasons.append(_NEGATIVE_REASONS[name])

        return AuthenticityAssessment(
            indicators=indicators,
            score=score,
            confidence=confidence,
            decision="invalid" if reasons else "valid",
            reasons=reasons,
        )


def assess_authenticity(text: str, min_score: int = 5) -> AuthenticityAssessment:
    return AuthenticityScorer(min_score=min_score).assess(text)
