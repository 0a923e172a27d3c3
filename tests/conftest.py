"""
Pytest configuration and shared fixtures for Kestrel tests.
"""

import json
import tempfile
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Any, Callable, Generator, List, Union

import httpx
import pytest

from kestrel.config.settings import ClientConfig, CredentialsConfig, RetryConfig


VALIDATION = "com.amazonaws.dynamodb.v20120810#ValidationException"
THROUGHPUT = "com.amazonaws.dynamodb.v20120810#ProvisionedThroughputExceededException"
CONDITIONAL = "com.amazonaws.dynamodb.v20120810#ConditionalCheckFailedException"


def json_reply(status: int, body: Any) -> httpx.Response:
    """Build a service reply with a JSON body."""
    return httpx.Response(
        status,
        content=json.dumps(body).encode("utf-8"),
        headers={"Content-Type": "application/x-amz-json-1.0"},
    )


def error_reply(status: int, error_type: str, message: str = "") -> httpx.Response:
    """Build a service error reply."""
    return json_reply(status, {"__type": error_type, "message": message})


Action = Union[httpx.Response, Exception, Callable[[httpx.Request], httpx.Response]]


class ScriptedService:
    """
    Fake service endpoint replaying a fixed script of replies.

    Each transmission consumes one action: an ``httpx.Response`` is returned,
    an exception is raised, a callable is invoked with the request.
    """

    def __init__(self, actions: List[Action]):
        self.actions = list(actions)
        self.requests: List[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if not self.actions:
            raise AssertionError("ScriptedService received more requests than scripted")
        action = self.actions.pop(0)
        if isinstance(action, Exception):
            raise action
        if isinstance(action, httpx.Response):
            return action
        return action(request)

    @property
    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self)

    @property
    def bodies(self) -> List[Any]:
        return [json.loads(r.content) for r in self.requests]


class SleepRecorder:
    """Blocking sleep replacement that records delays."""

    def __init__(self):
        self.delays: List[float] = []

    def __call__(self, delay: float) -> None:
        self.delays.append(delay)


class AsyncSleepRecorder:
    """Awaitable sleep replacement that records delays."""

    def __init__(self):
        self.delays: List[float] = []

    async def __call__(self, delay: float) -> None:
        self.delays.append(delay)


class TickingClock:
    """Clock advancing one second per reading, so every signature gets a new timestamp."""

    def __init__(self, start: datetime = datetime(2026, 1, 15, 12, 0, 0, tzinfo=timezone.utc)):
        self.now = start

    def __call__(self) -> datetime:
        current = self.now
        self.now = self.now + timedelta(seconds=1)
        return current


@pytest.fixture
def temp_dir() -> Generator[Path, None, None]:
    """
    Create a temporary directory for test files.

    Yields:
        Path to temporary directory that is cleaned up after test.
    """
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)


@pytest.fixture
def credentials() -> CredentialsConfig:
    return CredentialsConfig(
        access_key_id="AKIDEXAMPLE",
        secret_access_key="wJalrXUtnFEMI/K7MDENG+bPxRfiCYEXAMPLEKEY",
    )


@pytest.fixture
def client_config(credentials: CredentialsConfig) -> ClientConfig:
    """Plain-http local endpoint with one-second backoff units."""
    return ClientConfig(
        endpoint="localhost:8000",
        use_tls=False,
        region="us-east-1",
        credentials=credentials,
        retry=RetryConfig(backoff_unit=1.0),
    )


@pytest.fixture
def sleep_recorder() -> SleepRecorder:
    return SleepRecorder()


@pytest.fixture
def async_sleep_recorder() -> AsyncSleepRecorder:
    return AsyncSleepRecorder()


@pytest.fixture
def clock() -> TickingClock:
    return TickingClock()
