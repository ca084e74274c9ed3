"""
Root-level shared test fixtures.

Inherited by every test suite in the repo (package-level ``tests/``
directories and the root ``tests/``).
"""

from __future__ import annotations

import os

import pytest

from solidclaw.launcher.guard import Classification, classify


@pytest.fixture
def clean_env(monkeypatch, tmp_path):
    """Remove SOLIDCLAW_* / OpenClaw variables and point the state dir at tmp_path."""
    for key in list(os.environ):
        if key.startswith(("SOLIDCLAW_", "OPENCLAW_", "CLAWDBOT_")) or key in (
            "PI_CODING_AGENT_DIR",
        ):
            monkeypatch.delenv(key, raising=False)
    state_dir = tmp_path / "openclaw-state"
    monkeypatch.setenv("OPENCLAW_STATE_DIR", str(state_dir))
    return state_dir


@pytest.fixture
def no_ambient_secrets(monkeypatch):
    """Drop secret-shaped variables the test runner itself may carry (CI tokens etc.)."""
    for key in list(os.environ):
        if classify(key) is Classification.SECRET:
            monkeypatch.delenv(key, raising=False)
