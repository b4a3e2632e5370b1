"""Pytest configuration and fixtures"""

import pytest

from fakes import FakeSearch
from search_agent.conversation import SessionStore
from search_agent.dispatcher import ToolDispatcher
from search_agent.errors import ProviderError
from search_agent.orchestrator import Orchestrator, RuntimeConfig


@pytest.fixture
def anyio_backend():
    return "asyncio"


@pytest.fixture
def fake_search():
    return FakeSearch(result="Valencia: sunny, 24C (https://weather.example/valencia)")


@pytest.fixture
def make_orchestrator(fake_search):
    """Build an Orchestrator around scripted fakes."""

    def _make(llm, search=None, max_loop_iterations=5, max_history_turns=10, sessions=None):
        config = RuntimeConfig(
            max_loop_iterations=max_loop_iterations,
            max_history_turns=max_history_turns,
        )
        dispatcher = ToolDispatcher(search if search is not None else fake_search)
        return Orchestrator(config, llm, dispatcher, sessions=sessions or SessionStore())

    return _make


@pytest.fixture
def provider_error():
    return ProviderError("groq", "HTTP 503: upstream unavailable", retriable=True)
