"""
Global test configuration.
"""

from collections.abc import Callable
import logging
import os

import httpx
import pytest

from gemini_rest.config import FrozenConfig, resolve_config
from gemini_rest.credentials import StaticCredentialProvider
from tests.helpers import RecordingTransport


# --- Environment Isolation (Autouse) ---
@pytest.fixture(autouse=True)
def isolate_gemini_env(request, monkeypatch):
    """Ensure a clean GEMINI_* environment for each test.

    - Removes all GEMINI_* variables and debug toggles before each test
    - Leaves non-GEMINI_* variables intact for stability

    Escape hatch: @pytest.mark.allow_env_pollution keeps the current env.
    """
    if request.node.get_closest_marker("allow_env_pollution"):
        return

    for key in list(os.environ.keys()):
        if key.startswith("GEMINI_"):
            monkeypatch.delenv(key, raising=False)
    # Avoid DEBUG toggles affecting telemetry paths
    monkeypatch.delenv("DEBUG", raising=False)


# --- Logging Fixtures ---
@pytest.fixture(scope="session", autouse=True)
def quiet_noisy_libraries():
    """Sets the log level for noisy external libraries to WARNING."""
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)


# --- Test Environment Markers ---
def pytest_configure(config):
    """Configure custom markers for test organization."""
    markers = [
        "unit: Fast, isolated unit tests",
        "contract: Invariants that every implementation must keep",
        "security: Secrets never leak into logs, reprs or audits",
        "allow_env_pollution: Skip GEMINI_* environment isolation",
    ]
    for marker in markers:
        config.addinivalue_line("markers", marker)


# --- Core Fixtures ---


@pytest.fixture
def mock_api_key():
    """Provide a consistent, fake API key for tests."""
    return "test_api_key_12345_67890_abcdef_ghijkl"


@pytest.fixture
def frozen_config(mock_api_key) -> FrozenConfig:
    """Resolved configuration with a fake key and default endpoints."""
    return resolve_config(overrides={"api_key": mock_api_key}).to_frozen()


@pytest.fixture
def credentials(mock_api_key) -> StaticCredentialProvider:
    return StaticCredentialProvider(mock_api_key)


@pytest.fixture
def recorder() -> Callable[..., RecordingTransport]:
    """Factory for a transport that replays canned responses in order."""
    transports: list[RecordingTransport] = []

    def _make(*responses: httpx.Response | Callable[[httpx.Request], httpx.Response]):
        transport = RecordingTransport(*responses)
        transports.append(transport)
        return transport

    yield _make
    for transport in transports:
        transport.close()
