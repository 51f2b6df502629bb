"""
Shared fixtures for the AutoOps test suite.

Nothing here touches the network or the real working directory:
the reasoning provider is a scripted fake and every file lives under tmp_path.
"""

import threading
from typing import Any, List, Optional

import pytest

from actions.executor import ActionExecutor
from storage.health_store import HealthStore
from storage.result_cache import ResultCache


class FakeReasoningProvider:
    """
    Scripted stand-in for an LLM.

    `responses` is consumed in order; an Exception instance is raised
    instead of returned. The last response repeats once the list runs out.
    """
    name = "fake"

    def __init__(self, responses: Optional[List[Any]] = None,
                 block: Optional[threading.Event] = None):
        self.responses = list(responses or ["All good."])
        self.block = block
        self.calls: List[dict] = []
        self._lock = threading.Lock()

    def complete(self, system_prompt, user_payload, json_mode=False, temperature=None):
        with self._lock:
            self.calls.append({
                "system_prompt": system_prompt,
                "user_payload": user_payload,
                "json_mode": json_mode,
                "temperature": temperature,
            })
            response = self.responses.pop(0) if len(self.responses) > 1 else self.responses[0]

        if self.block is not None:
            self.block.wait(timeout=5)

        if isinstance(response, Exception):
            raise response
        return response


class FakeClock:
    def __init__(self, start: float = 1000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float):
        self.now += seconds


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def cache(clock):
    return ResultCache(ttl_sec=300, max_size=100, clock=clock)


@pytest.fixture
def health_store(tmp_path):
    return HealthStore(
        status_log_path=str(tmp_path / "public" / "system-status.txt"),
        health_file_path=str(tmp_path / "public" / "system-health.json"),
    )


@pytest.fixture
def executor(health_store):
    return ActionExecutor(
        health_store,
        dry_run=False,
        processing_delay_sec=0,
        step_delay_sec=0,
        restart_delay_sec=0,
    )


@pytest.fixture
def make_provider():
    """Factory: make_provider(["reply", ProviderError(...)], block=event)"""
    return FakeReasoningProvider


@pytest.fixture
def release_blocked():
    """Event for blocking fakes; always set on teardown so no thread hangs"""
    event = threading.Event()
    yield event
    event.set()
