from __future__ import annotations

import pytest

from tests.factories import BANGKOK, NOW


@pytest.fixture()
def tz():
    return BANGKOK


@pytest.fixture()
def now():
    return NOW


@pytest.fixture(autouse=True)
def isolated_environment(monkeypatch):
    monkeypatch.delenv("COMPLIANCE_CONFIG", raising=False)
    monkeypatch.delenv("COMPLIANCE_TIMEZONE", raising=False)
