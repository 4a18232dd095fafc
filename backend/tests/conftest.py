"""Shared fixtures: a fake clock, scripted model gateways and wired-up services."""

import asyncio
from datetime import datetime, timedelta, timezone

import pytest
from fastapi.testclient import TestClient

from mentra.api import create_app
from mentra.config import Settings
from mentra.db import SessionStore
from mentra.services.chat_handler import ConversationOrchestrator
from mentra.services.context_window import ContextWindowBuilder
from mentra.services.extraction import DocumentExtractor
from mentra.services.ingestion import MessageIngestionPipeline
from mentra.services.model_gateway import ModelGatewayError

GREETING = "Hi, I'm Mentra."


class FakeClock:
    """Advances one second per reading."""

    def __init__(self, start: datetime | None = None, step: timedelta = timedelta(seconds=1)):
        self.now = start or datetime(2025, 1, 1, tzinfo=timezone.utc)
        self.step = step

    def __call__(self) -> datetime:
        current = self.now
        self.now += self.step
        return current


class ScriptedGateway:
    """Returns a fixed reply and records every call."""

    def __init__(self, reply: str = "Recursion is when a function calls itself.", delay: float = 0.0):
        self.reply = reply
        self.delay = delay
        self.calls: list[tuple[str, str]] = []
        self.in_flight = 0
        self.max_in_flight = 0

    async def complete(self, instructions: str, prompt: str) -> str:
        self.calls.append((instructions, prompt))
        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            if self.delay:
                await asyncio.sleep(self.delay)
            return self.reply
        finally:
            self.in_flight -= 1


class FailingGateway:
    """Always fails like an unreachable model service."""

    def __init__(self):
        self.calls = 0

    async def complete(self, instructions: str, prompt: str) -> str:
        self.calls += 1
        raise ModelGatewayError("service unavailable")


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def store(clock):
    return SessionStore(greeting=GREETING, clock=clock)


@pytest.fixture
def gateway():
    return ScriptedGateway()


@pytest.fixture
def pipeline():
    return MessageIngestionPipeline(DocumentExtractor())


@pytest.fixture
def orchestrator(store, gateway, pipeline):
    return ConversationOrchestrator(
        store=store,
        gateway=gateway,
        pipeline=pipeline,
        window=ContextWindowBuilder(12),
        model_timeout=5.0,
    )


@pytest.fixture
def test_settings():
    return Settings(compaction_enabled=False, model_backend="mock")


@pytest.fixture
def client(test_settings, store, gateway):
    app = create_app(settings=test_settings, store=store, gateway=gateway)
    with TestClient(app) as test_client:
        yield test_client
