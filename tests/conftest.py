"""Shared test fixtures and configuration.

Sets environment variables before any roundtable modules are imported,
preventing import errors from missing API keys.
"""

import os

# Set required env vars BEFORE any roundtable imports happen.
# pytest loads conftest.py before test modules, so this runs first.
os.environ.setdefault("OPENROUTER_API_KEY", "test-key-not-real")
os.environ.setdefault("ROUNDTABLE_DATA_DIR", os.path.join(os.path.dirname(__file__), ".data"))

import pytest  # noqa: E402

from roundtable.models import Participant  # noqa: E402


@pytest.fixture
def participants():
    """A three-seat panel."""
    return (
        Participant(id="alice", name="Alice", role="Economist", voice_id="alloy"),
        Participant(id="bob", name="Bob", role="Ethicist", voice_id="echo"),
        Participant(id="carol", name="Carol", role="Engineer"),
    )


def stream_of(*tokens):
    """Build a stand-in for ``stream_completion`` that yields ``tokens``."""

    async def fake_stream(model, messages, **kwargs):
        for token in tokens:
            yield token

    return fake_stream
