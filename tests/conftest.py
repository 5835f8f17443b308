from __future__ import annotations

import os

import pytest

from erldash.config import runtime_config
from erldash.metrics.pipeline import PipelineMetrics

from tests._helpers import FakeRuntimeClient


@pytest.fixture(autouse=True)
def _isolated_env(monkeypatch):
    """Start every test without ERLDASH_* overrides or a cached runtime config."""
    for name in list(os.environ):
        if name.startswith("ERLDASH_"):
            monkeypatch.delenv(name, raising=False)
    monkeypatch.setattr(runtime_config, "_singleton", None)
    yield


@pytest.fixture()
def fake_client():
    return FakeRuntimeClient()


@pytest.fixture()
def metrics():
    return PipelineMetrics()
