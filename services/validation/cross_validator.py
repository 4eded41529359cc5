# services/validation/cross_validator.py
from __future__ import annotations

import re
from typing import Dict, Optional

from services.verification.models import (
    EXACT_FIELDS,
    AuthenticityAssessment,
    ExtractedFields,
    FieldMatchResult,
    UserInput,
)


DEFAULT_NAME_THRESHOLD = 0.7

_NON_ALNUM_RE = re.compile(r"[\W_]+")

_LABELS = {
    "document_number": "CNIC number",
    "date_of_birth": "date of birth",
    "issue_date": "issue date",
    "full_name": "full name",
}


def canonicalize(v: Optional[str]) -> str:
    """Strip separators/punctuation and case for exact comparison."""
    if v is None:
        return ""
    return _NON_ALNUM_RE.sub("", str(v)).lower()


def edit_distance(a: str, b: str) -> int:
    """
    Levenshtein distance with unit insert/delete/substitute costs.
    Two rolling rows over the shorter string: O(len(a)*len(b)) time,
    O(min(len(a), len(b))) space.
    """
    if len(a) < len(b):
        a, b = b, a
    if not b:
        return len(a)

    prev = list(range(len(b) + 1))
    for i, ca in enumerate(a, start=1):
        cur = [i] + [0] * len(b)
        for j, cb in enumerate(b, start=1):
            cost = 0 if ca == cb else 1
            cur[j] = min(
                prev[j] + 1,         # delete
                cur[j - 1] + 1,      # insert
                prev[j - 1] + cost,  # substitute
            )
        prev = cur
    return prev[-1]


def similarity(a: Optional[str], b: Optional[str]) -> float:
    """1 - distance / max length, case-insensitive. 0 if either side is empty."""
    a = (a or "").lower()
    b = (b or "").lower()
    if not a or not b:
        return 0.0
    return 1.0 - edit_distance(a, b) / max(len(a), len(b))


def _compare_exact(field: str, extracted: Optional[str], user: Optional[str]) -> Optional[str]:
    """Returns a mismatch reason, or None on match."""
    label = _LABELS[field]
    if not canonicalize(user):
        return f"{label} is missing; the card shows {extracted}"
    if canonicalize(extracted) != canonicalize(user):
        return f"{label} {user} does not match the card ({extracted})"
    return None


def cross_validate(
    extracted: ExtractedFields,
    user: UserInput,
    authenticity: Optional[AuthenticityAssessment] = None,
    *,
    name_threshold: float = DEFAULT_NAME_THRESHOLD,
) -> FieldMatchResult:
    """
    Compares user-entered values with the ones read off the card.

    Fields absent from extraction are not compared (verdict None). Overall is
    true only when authenticity is valid, every compared exact field matches
    and, if a name was extracted, its similarity is above name_threshold.
    """
    verdicts: Dict[str, Optional[bool]] = {}
    reasons: Dict[str, str] = {}

    for f in EXACT_FIELDS:
        ex = getattr(extracted, f)
        if ex is None:
            verdicts[f] = None
            continue
        reason = _compare_exact(f, ex, getattr(user, f))
        verdicts[f] = reason is None
        if reason:
            reasons[f] = reason

    name_similarity: Optional[float] = None
    if extracted.full_name is None:
        verdicts["full_name"] = None
    else:
        name_similarity = similarity(extracted.full_name, user.full_name)
        verdicts["full_name"] = name_similarity > name_threshold
        if not verdicts["full_name"]:
            reasons["full_name"] = (
                f"full name {user.full_name or '(empty)'} is only {name_similarity:.0%} similar "
                f"to {extracted.full_name} (need more than {name_threshold:.0%})"
            )

    authentic = authenticity is not None and authenticity.is_valid
    if not authentic:
        reasons["authenticity"] = "document did not pass the authenticity check"

    overall = authentic and all(v is not False for v in verdicts.values())

    return FieldMatchResult(
        document_number=verdicts["document_number"],
        full_name=verdicts["full_name"],
        date_of_birth=verdicts["date_of_birth"],
        issue_date=verdicts["issue_date"],
        name_similarity=name_similarity,
        overall=overall,
        reasons=reasons,
    )
