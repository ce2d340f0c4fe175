"""
Pytest configuration and shared fixtures for backend tests.

WHAT: Centralized test configuration with markers
WHY: Enable test organization, filtering, and shared test utilities
HOW: Define pytest markers and fixtures
"""

import pytest

from chatstream.llm.session_factory import reset_session
from chatstream.llm.types import ChatConfig, ChatMessage, Provider


def pytest_configure(config):
    """Register custom markers."""
    config.addinivalue_line(
        "markers", "unit: Unit tests (isolated component tests)"
    )
    config.addinivalue_line(
        "markers", "integration: Integration tests (multiple components)"
    )


@pytest.fixture(autouse=True)
def reset_session_singleton():
    """
    Reset the shared chat session before each test.

    WHAT: Clear session cache between tests
    WHY: Prevent test pollution and ensure clean state
    HOW: Call reset_session() before and after each test
    """
    reset_session()
    yield
    reset_session()


@pytest.fixture
def conversation():
    """History plus the new outgoing user message, oldest first."""
    return [
        ChatMessage(role="system", content="You are a helpful data assistant.", id="m0", timestamp=1),
        ChatMessage(role="user", content="List my data sources", id="m1", timestamp=2),
        ChatMessage(role="assistant", content="You have two: sales and crm.", id="m2", timestamp=3),
        ChatMessage(role="user", content="Describe crm", timestamp=4),
    ]


@pytest.fixture
def openai_config():
    return ChatConfig(provider=Provider.OPENAI, api_key="sk-test", base_url="https://api.openai.com", model="gpt-4o")


@pytest.fixture
def anthropic_config():
    return ChatConfig(
        provider=Provider.ANTHROPIC,
        api_key="ant-test",
        base_url="https://api.anthropic.com",
        model="claude-sonnet-4-5",
    )


@pytest.fixture
def google_config():
    return ChatConfig(
        provider=Provider.GOOGLE,
        api_key="g-key",
        base_url="https://generativelanguage.googleapis.com",
        model="gemini-2.0-flash",
    )
