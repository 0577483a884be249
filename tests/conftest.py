import logging
import sys
from pathlib import Path

import pytest

# Shared test doubles live next to this file
sys.path.insert(0, str(Path(__file__).resolve().parent))

from fakes import ScriptedCompletion, SpyTransport, make_thread  # noqa: E402

from parley.config import RouterOptions  # noqa: E402
from parley.orchestration.config import reset_config  # noqa: E402

_ENV_VARS = (
    "LLM_PROVIDER",
    "LLM_API_KEY",
    "LLM_ENDPOINT",
    "LLM_DEPLOYMENT_NAME",
    "LLM_MODEL_NAME",
    "PARLEY_CONFIG_PATH",
    "PARLEY_SERVER_URL",
    "PARLEY_API_KEY",
    "PARLEY_TENANT_ID",
    "PARLEY_LOG_LEVEL",
)


@pytest.fixture(autouse=True)
def clean_environment(monkeypatch):
    """Keep the developer's LLM settings out of resolution tests."""
    for name in _ENV_VARS:
        monkeypatch.delenv(name, raising=False)
    reset_config()
    yield
    reset_config()


@pytest.fixture
def openai_options():
    return RouterOptions(provider="openai", api_key="sk-test", model_name="gpt-4o")


@pytest.fixture
def completion():
    return ScriptedCompletion()


@pytest.fixture
def spy_transport():
    return SpyTransport()


@pytest.fixture
def thread():
    return make_thread()


@pytest.fixture
def caplog_debug(caplog):
    caplog.set_level(logging.DEBUG, logger="parley")
    return caplog
