from __future__ import annotations

import pytest

from tests.fakes import CNIC_TEXT, FakeOCR, FakeSink


@pytest.fixture
def cnic_text() -> str:
    return CNIC_TEXT


@pytest.fixture
def fake_ocr() -> FakeOCR:
    return FakeOCR()


@pytest.fixture
def fake_sink() -> FakeSink:
    return FakeSink()
