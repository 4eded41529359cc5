from __future__ import annotations

import itertools

import pytest

from services.authenticity.scorer import assess_authenticity
from services.validation.cross_validator import (
    canonicalize,
    cross_validate,
    edit_distance,
    similarity,
)
from services.verification.models import ExtractedFields, UserInput
from tests.fakes import CNIC_TEXT


EXTRACTED = ExtractedFields(
    document_number="42101-1234567-8",
    full_name="Muhammad Ahmad Khan",
    date_of_birth="14.08.1990",
    issue_date="01.02.2015",
)
MATCHING_USER = UserInput(
    document_number="4210112345678",
    full_name="muhammad ahmad khan",
    date_of_birth="14/08/1990",
    issue_date="01-02-2015",
    city="Karachi",
    phone="03001234567",
)
VALID = assess_authenticity(CNIC_TEXT)
INVALID = assess_authenticity("")


@pytest.mark.parametrize(
    "a, b, expected",
    [
        ("kitten", "sitting", 3),
        ("", "abc", 3),
        ("abc", "", 3),
        ("", "", 0),
        ("flaw", "lawn", 2),
        ("same", "same", 0),
    ],
)
def test_edit_distance(a, b, expected):
    assert edit_distance(a, b) == expected


def test_edit_distance_is_symmetric():
    words = ["", "a", "khan", "khaan", "Muhammad", "Mohammad", "ahmad khan", "42101-1234567-8"]
    for a, b in itertools.product(words, repeat=2):
        assert edit_distance(a, b) == edit_distance(b, a)


def test_similarity_ignores_case():
    assert similarity("Muhammad Ahmad Khan", "muhammad ahmad khan") == 1.0


@pytest.mark.parametrize("a, b", [("", "Ahmad"), ("Ahmad", ""), (None, "Ahmad"), ("", "")])
def test_similarity_with_empty_side_is_zero(a, b):
    assert similarity(a, b) == 0


def test_canonicalize_strips_separators():
    assert canonicalize("42101-1234567-8") == canonicalize("4210112345678")
    assert canonicalize("14/08/1990") == canonicalize("14.08.1990") == "14081990"
    assert canonicalize(None) == ""


def test_everything_matches():
    r = cross_validate(EXTRACTED, MATCHING_USER, VALID)
    assert r.overall is True
    assert r.document_number is True
    assert r.date_of_birth is True
    assert r.issue_date is True
    assert r.full_name is True
    assert r.name_similarity == 1.0
    assert r.reasons == {}


@pytest.mark.parametrize(
    "change, authenticity, failing",
    [
        ({}, INVALID, "authenticity"),
        ({"document_number": "42101-1234567-9"}, VALID, "document_number"),
        ({"date_of_birth": "15.08.1990"}, VALID, "date_of_birth"),
        ({"full_name": "Zainab Bibi"}, VALID, "full_name"),
    ],
)
def test_single_failure_flips_overall(change, authenticity, failing):
    user = MATCHING_USER
    for k, v in change.items():
        user = user.with_value(k, v)
    r = cross_validate(EXTRACTED, user, authenticity)
    assert r.overall is False
    assert set(r.reasons) == {failing}


def test_missing_authenticity_blocks_acceptance():
    assert cross_validate(EXTRACTED, MATCHING_USER, None).overall is False


def test_absent_extracted_field_is_not_compared():
    extracted = ExtractedFields(document_number="42101-1234567-8", full_name="Muhammad Ahmad Khan")
    user = MATCHING_USER.with_value("date_of_birth", "01.01.2000")
    r = cross_validate(extracted, user, VALID)
    assert r.date_of_birth is None
    assert r.issue_date is None
    assert r.overall is True


def test_empty_user_value_is_a_mismatch():
    r = cross_validate(EXTRACTED, MATCHING_USER.with_value("document_number", None), VALID)
    assert r.document_number is False
    assert "missing" in r.reasons["document_number"]


def test_name_threshold_is_strict():
    extracted = ExtractedFields(full_name="abcdefghij")
    user = UserInput(full_name="abcdefgxyz")  # 3 edits over 10 chars -> 0.7
    r = cross_validate(extracted, user, VALID)
    assert r.name_similarity == pytest.approx(0.7)
    assert r.full_name is False
    assert r.overall is False


def test_small_typo_in_name_still_matches():
    r = cross_validate(EXTRACTED, MATCHING_USER.with_value("full_name", "Mohammad Ahmed Khan"), VALID)
    assert r.full_name is True
    assert r.name_similarity > 0.7


def test_one_digit_edit_flags_only_that_field():
    user = MATCHING_USER.with_value("document_number", "42101-1234567-9")
    r = cross_validate(EXTRACTED, user, VALID)
    assert r.document_number is False
    assert (r.full_name, r.date_of_birth, r.issue_date) == (True, True, True)
    assert list(r.reasons) == ["document_number"]
