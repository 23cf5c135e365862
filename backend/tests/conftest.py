"""
Shared test fixtures and configuration.
"""

import os
from datetime import datetime

import pytest

# Set test environment variables before importing app modules
os.environ.setdefault("SECRET_KEY", "test-secret-key-for-testing")
os.environ.setdefault("DEBUG", "true")
os.environ.setdefault("LOG_FILE_ENABLED", "false")
os.environ.setdefault("OPENAI_API_KEY", "")
os.environ.setdefault("HF_API_KEY", "")
os.environ.setdefault("GROQ_API_KEY", "")

from voice_agent.core.session_store import SessionStore  # noqa: E402

FIXED_NOW = datetime(2024, 1, 1, 9, 0)


@pytest.fixture
def anyio_backend():
    return "asyncio"


@pytest.fixture
def store():
    return SessionStore(max_history=20, default_model="gpt-4o-mini")


@pytest.fixture
def fixed_clock():
    return lambda: FIXED_NOW
