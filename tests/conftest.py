"""
Pytest configuration and fixtures for ZenoGuard Agent tests.
"""

import logging
import pytest

from zenoguard_agent.config import AgentConfig
from zenoguard_agent.context import AgentContext
from zenoguard_agent.models import ServerDirective
from zenoguard_agent.results import EMPTY


class FakeClock:
    """Manually advanced wall clock."""

    def __init__(self, start: float = 1_700_000_000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class FakeSender:
    """Sender returning or raising scripted outcomes in order."""

    def __init__(self, outcomes=None, on_submit=None):
        self.outcomes = list(outcomes or [])
        self.payloads = []
        self.on_submit = on_submit
        self.closed = False

    async def submit(self, payload):
        self.payloads.append(payload)
        if self.on_submit:
            self.on_submit(payload)
        outcome = self.outcomes.pop(0) if self.outcomes else ServerDirective(success=True, report_interval=0)
        if isinstance(outcome, Exception):
            raise outcome
        return outcome

    async def test_connection(self):
        return 200

    async def close(self):
        self.closed = True


class FakeCollector:
    """Collector returning a fixed result or raising an error."""

    def __init__(self, name, result=EMPTY, error=None):
        self.name = name
        self.result = result
        self.error = error
        self.calls = 0

    async def collect(self):
        self.calls += 1
        if self.error:
            raise self.error
        return self.result


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def config():
    return AgentConfig(
        server_url="https://monitor.example.com",
        token="test-token-1234567890",
        report_interval=300,
        log_file=None,
    )


@pytest.fixture
def context(config):
    return AgentContext(config=config, logger=logging.getLogger("zenoguard_agent"))
