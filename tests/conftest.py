"""
Core pytest configuration and fixtures for ClawBot testing.

This module provides shared test fixtures, configuration, and utilities
that support the pillar-based testing architecture.
"""

import json
import tempfile
from pathlib import Path
from typing import Any, Dict, List, Optional
from unittest.mock import Mock

import pytest
from clawbot.config import Settings
from clawbot.github import GitHub
from clawbot.llm import LLM
from clawbot.models import ASSISTANT_ROLE, USER_ROLE, ChatMessage, ToolCall
from clawbot.transport import Recorder
from clawbot.web import WebFetcher

# ===== TEST DOUBLES =====


class ScriptedLLM(LLM):
    """LLM that plays back a script, one step per consultation.

    A step is a ``str`` (final text), a list of ``ToolCall`` (tool request)
    or an exception instance (raised from ``generate_response``). Once the
    script runs out every call answers ``"Done."``.
    """

    def __init__(self, script: Optional[List[Any]] = None, transcript: str = ""):
        self.script = list(script or [])
        self.calls: List[Dict[str, Any]] = []
        self.transcript = transcript
        self.transcribed: List[bytes] = []

    def generate_response(self, messages, model=None, tools=None, **kwargs):
        self.calls.append({"messages": messages, "tools": tools})
        step = self.script.pop(0) if self.script else "Done."
        if isinstance(step, Exception):
            raise step
        return step

    def extract_content(self, response):
        return response if isinstance(response, str) else None

    def parse_tool_calls(self, response):
        return list(response) if isinstance(response, list) else []

    def transcribe(self, audio: bytes, filename: str = "voice.ogg") -> str:
        self.transcribed.append(audio)
        return self.transcript


# ===== TEST DATA FIXTURES =====


@pytest.fixture
def sample_messages() -> List[ChatMessage]:
    """Sample chat messages for testing."""
    return [
        ChatMessage(role=USER_ROLE, content="Hello, how are you?"),
        ChatMessage(role=ASSISTANT_ROLE, content="Doing well! How can I help?"),
        ChatMessage(role=USER_ROLE, content="List my repos"),
        ChatMessage(role=ASSISTANT_ROLE, content="📂 me/clawbot (public)"),
    ]


@pytest.fixture
def make_tool_call():
    """Factory for ToolCall objects with JSON-encoded arguments."""
    counter = {"n": 0}

    def _make(name: str, args: Optional[Dict[str, Any]] = None, call_id: Optional[str] = None):
        counter["n"] += 1
        return ToolCall(
            id=call_id or f"call_{counter['n']}",
            function_name=name,
            function_args=json.dumps(args or {}),
        )

    return _make


@pytest.fixture
def telegram_update():
    """Factory for minimal Telegram update payloads."""

    def _make(text: Optional[str] = "hello", chat_id: int = 42, **extra):
        message = {"message_id": 1, "chat": {"id": chat_id, "type": "private"}}
        if text is not None:
            message["text"] = text
        message.update(extra)
        return {"update_id": 1000, "message": message}

    return _make


# ===== DIRECTORY FIXTURES =====


@pytest.fixture
def temp_dir():
    """Temporary directory for file-based tests."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)


# ===== PILLAR FIXTURES =====


@pytest.fixture
def settings() -> Settings:
    """Settings isolated from the environment's .env file."""
    return Settings(_env_file=None, telegram_token="", github_token="")


@pytest.fixture
def scripted_llm() -> ScriptedLLM:
    return ScriptedLLM()


@pytest.fixture
def memory_store():
    from clawbot.store import InMemory

    return InMemory()


@pytest.fixture
def recorder() -> Recorder:
    return Recorder()


@pytest.fixture
def mock_github():
    """GitHub client double; unset methods return Mocks."""
    return Mock(spec=GitHub)


@pytest.fixture
def mock_web():
    return Mock(spec=WebFetcher)


@pytest.fixture
def all_store_implementations(temp_dir):
    """All store implementations for contract testing."""
    from clawbot import store

    return [
        ("InMemory", store.InMemory()),
        ("File", store.File(str(temp_dir / "file_store"))),
        ("SQLite", store.SQLite(str(temp_dir / "test.db"))),
    ]


# ===== APP FIXTURES =====


@pytest.fixture
def bot(settings, scripted_llm, memory_store, recorder, mock_github, mock_web):
    """
    Provides a ClawBot with predictable pillars and the built-in skills.

    The LLM plays back ``scripted_llm.script``; GitHub and the web are mocks,
    so no test touches the network.
    """
    from clawbot import ClawBot

    return ClawBot(
        settings=settings,
        llm=scripted_llm,
        store=memory_store,
        transport=recorder,
        github=mock_github,
        web=mock_web,
    )


@pytest.fixture
def test_app(settings, memory_store, recorder, mock_github, mock_web):
    """A ClawBot running the offline Echo model."""
    from clawbot import ClawBot
    from clawbot.llm import Echo

    return ClawBot(
        settings=settings,
        llm=Echo(),
        store=memory_store,
        transport=recorder,
        github=mock_github,
        web=mock_web,
    )


# ===== CONFIGURATION =====


def pytest_configure(config):
    """Pytest configuration."""
    config.addinivalue_line("markers", "integration: marks tests as integration tests")
    config.addinivalue_line("markers", "slow: marks tests as slow-running")


def pytest_collection_modifyitems(config, items):
    """Automatically mark tests based on location."""
    for item in items:
        if "integration" in str(item.fspath):
            item.add_marker(pytest.mark.integration)
