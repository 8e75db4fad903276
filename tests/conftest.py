from __future__ import annotations

import os
from datetime import datetime, timedelta, timezone

# Settings are read at import time; pin a self-contained configuration first.
os.environ["SESSION_BACKEND"] = "memory"
os.environ["SESSION_SWEEP_INTERVAL_SECONDS"] = "0"
os.environ["LLM_AUGMENTATION_ENABLED"] = "false"
os.environ["RED_FLAG_KEYWORDS"] = ""
os.environ.pop("CRON_SECRET", None)

import pytest
from fastapi.testclient import TestClient

from safetriage.config.settings import settings
from safetriage.services import intake_service, session_store
from safetriage.services.session_store import InMemorySessionStore


class FakeClock:
    def __init__(self, start: datetime | None = None):
        self.now = start or datetime(2026, 3, 1, 9, 0, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> datetime:
        self.now = self.now + timedelta(**kwargs)
        return self.now


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def memory_store(clock) -> InMemorySessionStore:
    return InMemorySessionStore(ttl=timedelta(minutes=30), clock=clock)


@pytest.fixture
def app_module(memory_store, monkeypatch):
    monkeypatch.setattr(settings, "cron_secret", None)
    session_store.reset_session_store(memory_store)
    monkeypatch.setattr(intake_service, "_intake_service", None)

    from safetriage import main

    yield main
    session_store.reset_session_store(None)


@pytest.fixture
def client(app_module):
    with TestClient(app_module.app) as test_client:
        yield test_client
