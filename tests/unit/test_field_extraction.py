from __future__ import annotations

import pytest

from services.extraction.fields import (
    extract_dates,
    extract_document_number,
    extract_fields,
    extract_full_name,
)
from services.verification.models import ExtractedFields
from tests.fakes import CNIC_TEXT


def test_grouped_number_is_kept():
    assert extract_document_number("...42101-1234567-8...") == "42101-1234567-8"


def test_contiguous_run_is_regrouped():
    assert extract_document_number("...4210112345678...") == "42101-1234567-8"


def test_grouped_pattern_wins_over_digit_run():
    text = "ref 3520212345671\nCNIC 42101-1234567-8"
    assert extract_document_number(text) == "42101-1234567-8"


def test_no_number_returns_none():
    assert extract_document_number("Identity Number 42101-123") is None


def test_dates_in_order_of_appearance():
    text = "Birth 14/08/1990 Issue 01-02-2015 Expiry 01.02.2025"
    assert extract_dates(text) == ["14/08/1990", "01-02-2015", "01.02.2025"]


def test_first_date_is_birth_second_is_issue():
    f = extract_fields(CNIC_TEXT)
    assert f.date_of_birth == "14.08.1990"
    assert f.issue_date == "01.02.2015"


def test_single_date_fills_birth_only():
    f = extract_fields("4210112345678 born 14.08.1990")
    assert f.date_of_birth == "14.08.1990"
    assert f.issue_date is None


def test_name_after_label():
    assert extract_full_name("Name: Muhammad Ahmad Khan\nFather Name: Ahmad Khan") == "Muhammad Ahmad Khan"


def test_name_falls_back_to_capitalized_run():
    text = "ISLAMIC REPUBLIC OF PAKISTAN\nNATIONAL IDENTITY CARD\nAYESHA BIBI\n42101-1234567-8"
    assert extract_full_name(text) == "AYESHA BIBI"


def test_fallback_skips_boilerplate_inside_a_run():
    assert extract_full_name("PAKISTAN Sara Malik Khan") == "Sara Malik Khan"


def test_full_card():
    assert extract_fields(CNIC_TEXT) == ExtractedFields(
        document_number="42101-1234567-8",
        full_name="Muhammad Ahmad Khan",
        date_of_birth="14.08.1990",
        issue_date="01.02.2015",
    )


@pytest.mark.parametrize("text", ["", "   ", None, 12345, "no structure here at all"])
def test_unresolved_fields_stay_none(text):
    f = extract_fields(text)
    assert f.document_number is None
    assert f.date_of_birth is None
    assert f.issue_date is None
