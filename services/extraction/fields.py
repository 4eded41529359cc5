# services/extraction/fields.py
from __future__ import annotations

import re
from typing import Any, List, Optional

from services.authenticity.scorer import CNIC_DIGITS_RE, CNIC_GROUPED_RE, DATE_RE
from services.verification.models import ExtractedFields


_NAME_LABEL_RE = re.compile(r"name[:\s]+([A-Za-z][A-Za-z ]*)", re.IGNORECASE)
_CAPITALIZED_RUN_RE = re.compile(r"\b(?:[A-Z][A-Za-z]+)(?:[ ]+[A-Z][A-Za-z]+)+\b")

# Printed on every card; never part of a holder's name.
_BOILERPLATE_WORDS = {
    "REPUBLIC", "OF", "PAKISTAN", "ISLAMIC", "NATIONAL", "IDENTITY", "CARD",
    "NAME", "FATHER", "HUSBAND", "GENDER", "COUNTRY", "STAY", "DATE", "BIRTH",
    "ISSUE", "EXPIRY", "SIGNATURE", "ADDRESS", "HOLDER",
}


def _safe_str(x: Any) -> str:
    if x is None:
        return ""
    if isinstance(x, str):
        return x
    return str(x)


def extract_document_number(text: str) -> Optional[str]:
    """
    Returns the CNIC number in canonical 12345-1234567-1 form.

    Tries the grouped pattern first; otherwise regroups the first 13-digit
    run at fixed offsets 5/12.
    """
    s = _safe_str(text)
    m = CNIC_GROUPED_RE.search(s)
    if m:
        return m.group(0)

    m = CNIC_DIGITS_RE.search(s)
    if m:
        digits = m.group(0)
        return f"{digits[:5]}-{digits[5:12]}-{digits[12:]}"
    return None


def extract_dates(text: str) -> List[str]:
    """All date-like substrings in order of appearance, as printed."""
    return DATE_RE.findall(_safe_str(text))


def extract_full_name(text: str) -> Optional[str]:
    s = _safe_str(text)

    # Label on the same line: "Name: Muhammad Ahmad Khan"
    for line in s.splitlines():
        m = _NAME_LABEL_RE.search(line)
        if m:
            name = " ".join(m.group(1).split())
            if name:
                return name

    # Lower-confidence fallback: first run of capitalized words that is not
    # card boilerplate.
    for m in _CAPITALIZED_RUN_RE.finditer(s):
        run: List[str] = []
        for w in m.group(0).split():
            if w.upper() not in _BOILERPLATE_WORDS:
                run.append(w)
                continue
            if len(run) >= 2:
                return " ".join(run)
            run = []
        if len(run) >= 2:
            return " ".join(run)
    return None


def extract_fields(text: str) -> ExtractedFields:
    """
    Raw OCR text -> ExtractedFields. Never raises; unresolved fields stay None.

    Date convention: first date = date of birth, second = issue date.
    """
    s = _safe_str(text)
    if not s.strip():
        return ExtractedFields()

    dates = extract_dates(s)
    return ExtractedFields(
        document_number=extract_document_number(s),
        full_name=extract_full_name(s),
        date_of_birth=dates[0] if len(dates) >= 1 else None,
        issue_date=dates[1] if len(dates) >= 2 else None,
    )
