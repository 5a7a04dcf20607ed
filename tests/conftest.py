import os

import pytest

pytest_plugins = ["tests.conftest_zai"]

# empty rather than unset so a developer's .env cannot fill them back in
_KEY_VARS = ("ZAI_API_KEY", "ZAI_CHAT_API_KEY")


def pytest_configure(config):
    """Blank real Z.ai keys, then run init_runtime() once before collection."""
    from zai_agent.runtime import init_runtime, is_initialized

    for var in _KEY_VARS:
        os.environ[var] = ""

    if not is_initialized():
        init_runtime()


@pytest.fixture(autouse=True)
def global_config():
    """Yield the published AppConfig, re-publishing it if a test reset it."""
    from zai_agent.config import (
        get_config,
        is_config_initialized,
        load_config_from_env,
        reset_config,
        set_config,
    )

    if not is_config_initialized():
        set_config(load_config_from_env())
    config = get_config()

    yield config

    if is_config_initialized() and get_config() is not config:
        reset_config()
        set_config(config)


async def collect_async_generator(async_gen):
    """Drain an async generator into a list."""
    return [item async for item in async_gen]
