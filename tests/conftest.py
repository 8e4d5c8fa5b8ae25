import copy
import logging
from collections.abc import Iterator
from typing import Any

import pytest

from opset import ProcedureRegistry
from opset.config import MAX_DEPTH_ENV_VAR

_SAMPLE_PAYLOAD: dict[str, Any] = {
    "info": {
        "time": 1479738679324,
        "code": "6",
        "signature": "tyfhi4532yjf78435xko9j",
    },
    "data": [
        {"name": "Bob Jones", "age": 75, "state": "NJ", "location": [10, 10]},
        {"name": "Bob Jones", "age": 75, "state": "NY", "location": [10, 10]},
    ],
}


@pytest.fixture
def payload() -> dict[str, Any]:
    return copy.deepcopy(_SAMPLE_PAYLOAD)


@pytest.fixture
def registry() -> ProcedureRegistry:
    return ProcedureRegistry()


@pytest.fixture(autouse=True)
def _isolate_depth_env(monkeypatch: pytest.MonkeyPatch) -> Iterator[None]:
    monkeypatch.delenv(MAX_DEPTH_ENV_VAR, raising=False)
    yield


@pytest.fixture
def traversal_warnings(caplog: pytest.LogCaptureFixture) -> pytest.LogCaptureFixture:
    caplog.set_level(logging.WARNING, logger="opset.traversal")
    return caplog
