"""Tests for runtime initialization module."""

import logging
import threading
from unittest.mock import patch

import pytest

from zai_agent.config import get_config, is_config_initialized, reset_config
from zai_agent.runtime import LOG_FORMAT, init_runtime, is_initialized, reset_runtime


@pytest.fixture(autouse=True)
def reset_state():
    """Reset runtime and config state around each test."""
    reset_runtime()
    reset_config()
    yield
    reset_runtime()
    reset_config()


def test_init_runtime_loads_dotenv_and_config(monkeypatch):
    """init_runtime() reads .env and publishes the environment config."""
    monkeypatch.setenv("ZAI_API_KEY", "from-env")
    monkeypatch.setenv("AGENT_MAX_TURNS", "7")
    with patch("zai_agent.runtime.load_dotenv") as mock_load:
        init_runtime()
    mock_load.assert_called_once()
    assert is_initialized()
    assert is_config_initialized()
    assert get_config().zai_api_key == "from-env"
    assert get_config().max_turns == 7


def test_init_runtime_idempotent():
    with patch("zai_agent.runtime.load_dotenv") as mock_load:
        init_runtime()
        init_runtime()
    mock_load.assert_called_once()


def test_log_level_configures_logging():
    with (
        patch("zai_agent.runtime.load_dotenv"),
        patch("zai_agent.runtime.logging.basicConfig") as mock_config,
    ):
        init_runtime(log_level="info")
    mock_config.assert_called_once_with(level=logging.INFO, format=LOG_FORMAT)
    assert logging.getLogger("httpx").level == logging.WARNING


def test_debug_level_keeps_http_loggers():
    logging.getLogger("httpcore").setLevel(logging.NOTSET)
    with (
        patch("zai_agent.runtime.load_dotenv"),
        patch("zai_agent.runtime.logging.basicConfig"),
    ):
        init_runtime(log_level="DEBUG")
    assert logging.getLogger("httpcore").level == logging.NOTSET


def test_no_log_level_leaves_logging_alone():
    with (
        patch("zai_agent.runtime.load_dotenv"),
        patch("zai_agent.runtime.logging.basicConfig") as mock_config,
    ):
        init_runtime()
    mock_config.assert_not_called()


def test_invalid_log_level_rolls_back():
    """A bad log level raises and leaves both runtime and config uninitialized."""
    with patch("zai_agent.runtime.load_dotenv"):
        with pytest.raises(ValueError, match="Invalid log level"):
            init_runtime(log_level="LOUD")
        assert not is_initialized()
        assert not is_config_initialized()

        init_runtime(log_level="DEBUG")
        assert is_initialized()


def test_concurrent_init_loads_once():
    calls = []

    with patch("zai_agent.runtime.load_dotenv", side_effect=lambda: calls.append(1)):
        threads = [threading.Thread(target=init_runtime) for _ in range(8)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

    assert calls == [1]
    assert is_initialized()
