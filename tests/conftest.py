"""
Global test configuration.
"""

import logging
import os

import pytest

ENV_PREFIX = "CLINICAL_PIPELINE_"


# --- Environment Isolation (Autouse) ---
@pytest.fixture(autouse=True)
def isolate_pipeline_env(request, monkeypatch):
    """Ensure a clean CLINICAL_PIPELINE_* environment for each test.

    Escape hatch: @pytest.mark.allow_env_pollution keeps the current env.
    """
    if request.node.get_closest_marker("allow_env_pollution"):
        return
    for key in list(os.environ.keys()):
        if key.startswith(ENV_PREFIX):
            monkeypatch.delenv(key, raising=False)
    monkeypatch.delenv("KEYWORDSAI_API_KEY", raising=False)
    # Avoid DEBUG toggles enabling telemetry paths
    monkeypatch.delenv("DEBUG", raising=False)


@pytest.fixture(autouse=True)
def isolated_cwd(request, monkeypatch, tmp_path):
    """Run each test from an empty directory so no stray .env is picked up."""
    if request.node.get_closest_marker("allow_env_pollution"):
        return
    monkeypatch.chdir(tmp_path)


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
        "contract: Behavioral guarantees that must hold for every version",
        "integration: Component integration tests with mocked transports",
        "security: Secret-handling guarantees",
        "allow_env_pollution: Skip environment isolation for this test",
    ]
    for marker in markers:
        config.addinivalue_line("markers", marker)


# --- Core Fixtures ---


@pytest.fixture
def mock_api_key():
    """Provide a consistent, fake API key for tests."""
    return "test_api_key_12345_67890_abcdef_ghijkl"


@pytest.fixture
def mock_env(mock_api_key, monkeypatch):
    """Minimal environment for resolving a usable configuration."""
    monkeypatch.setenv("CLINICAL_PIPELINE_API_KEY", mock_api_key)
    monkeypatch.setenv("CLINICAL_PIPELINE_MODEL", "gpt-4o-mini")
