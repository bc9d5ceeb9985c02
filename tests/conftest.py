"""Pytest configuration and shared fixtures."""
import asyncio
import logging
import os

import pytest

from nexuschat.config import _ENV_FIELDS, API_KEY_VARIABLES
from nexuschat.engine import ExchangeController, RetryPolicy, Session
from nexuschat.llm import ChatMessage
from nexuschat.log import ROOT_LOGGER
from nexuschat.transport import ChatTransport


class ScriptedTransport(ChatTransport):
    """ChatTransport that answers from a script instead of the network.

    Each script entry is either reply text or an exception to raise. When
    the script runs out, the last entry repeats. Calls can be held open
    with hold() to simulate an in-flight request.
    """

    model = "scripted-model"

    def __init__(self, *script):
        self.script = list(script) or ["ok"]
        self.calls: list[tuple[list[ChatMessage], str]] = []
        self.closed = False
        self._gates: list[asyncio.Event] = []

    def hold(self) -> asyncio.Event:
        """Make the next call wait until the returned event is set."""
        gate = asyncio.Event()
        self._gates.append(gate)
        return gate

    async def send_chat_request(self, history, new_turn):
        self.calls.append((list(history), new_turn))
        if self._gates:
            await self._gates.pop(0).wait()
        step = self.script.pop(0) if len(self.script) > 1 else self.script[0]
        if isinstance(step, BaseException):
            raise step
        return step

    async def close(self):
        self.closed = True


class RecordingSleep:
    """Stand-in for asyncio.sleep that returns immediately and records delays."""

    def __init__(self):
        self.delays: list[float] = []

    async def __call__(self, delay: float) -> None:
        self.delays.append(delay)


@pytest.fixture(scope="session")
def api_keys():
    """Return API keys from environment."""
    return {
        "openrouter": os.getenv("OPENROUTER_API_KEY"),
        "openai": os.getenv("OPENAI_API_KEY"),
    }


@pytest.fixture
def scripted_transport():
    """The ScriptedTransport class, for tests that build their own."""
    return ScriptedTransport


@pytest.fixture
def sleep():
    return RecordingSleep()


@pytest.fixture
def retry_policy(sleep):
    """Three attempts, one second apart, without actually sleeping."""
    return RetryPolicy(max_attempts=3, base_delay=1.0, sleep=sleep)


@pytest.fixture
def session():
    return Session()


@pytest.fixture
def make_controller(session, retry_policy):
    """Build a controller over the shared session with a scripted transport."""
    def _make(*script, **kwargs):
        transport = ScriptedTransport(*script)
        controller = ExchangeController(session, transport, retry_policy=retry_policy, **kwargs)
        return controller, transport
    return _make


@pytest.fixture
def clean_env(monkeypatch):
    """Remove every variable the settings loader reads."""
    for variable in (*_ENV_FIELDS.values(), *API_KEY_VARIABLES.values(), "NEXUSCHAT_API_KEY"):
        monkeypatch.delenv(variable, raising=False)
    return monkeypatch


@pytest.fixture(autouse=True)
def restore_package_logger():
    """Undo handler/level changes tests make to the nexuschat logger."""
    logger = logging.getLogger(ROOT_LOGGER)
    handlers = list(logger.handlers)
    level = logger.level
    propagate = logger.propagate
    yield
    logger.handlers = handlers
    logger.setLevel(level)
    logger.propagate = propagate
