# pylint: disable=missing-module-docstring,missing-function-docstring

from __future__ import annotations

import pytest

from fakes import FakeSerialFactory
from observability import logger


@pytest.fixture
def captured_logs(monkeypatch: pytest.MonkeyPatch) -> list[str]:
    lines: list[str] = []
    monkeypatch.setattr(logger, "_print", lines.append)
    return lines


@pytest.fixture
def serial_factory() -> FakeSerialFactory:
    return FakeSerialFactory()
