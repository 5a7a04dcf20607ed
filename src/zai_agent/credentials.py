"""API credential lookup.

Hosts own settings persistence. The agent only needs an object with a
``get_credentials()`` method (plain or ``async``) that returns a mapping of
provider name to API key, e.g. ``{"zai": "...", "zaiChat": "..."}``.
"""

import inspect
import logging
from typing import Any, Mapping, Optional, Protocol, Tuple, runtime_checkable

from .config import AppConfig

logger = logging.getLogger(__name__)

CODING_PLAN_KEY = "zai"
CHAT_KEY = "zaiChat"


@runtime_checkable
class CredentialsProvider(Protocol):
    def get_credentials(self) -> Any:
        """Return a provider-name -> API key mapping (may be awaitable)."""
        ...


class StaticCredentialsProvider:
    """Serve a fixed mapping; mostly useful for tests and scripts."""

    def __init__(self, api_keys: Optional[Mapping[str, str]] = None):
        self._api_keys = dict(api_keys or {})

    def get_credentials(self) -> Mapping[str, str]:
        return dict(self._api_keys)


class EnvCredentialsProvider:
    """Read keys from the application configuration (ZAI_API_KEY / ZAI_CHAT_API_KEY)."""

    def __init__(self, config: Optional[AppConfig] = None):
        self._config = config

    def get_credentials(self) -> Mapping[str, str]:
        if self._config is None:
            from .config import get_config

            config = get_config()
        else:
            config = self._config

        keys = {}
        if config.zai_api_key:
            keys[CODING_PLAN_KEY] = config.zai_api_key
        if config.zai_chat_api_key:
            keys[CHAT_KEY] = config.zai_chat_api_key
        return keys


async def load_api_keys(provider: CredentialsProvider) -> Mapping[str, str]:
    """Call ``provider.get_credentials()``, awaiting the result if needed."""
    result = provider.get_credentials()
    if inspect.isawaitable(result):
        result = await result
    return result or {}


def resolve_credentials(
    api_keys: Mapping[str, str], config: AppConfig
) -> Optional[Tuple[str, str]]:
    """Pick the API key and endpoint base URL to use.

    The coding-plan key takes priority and selects the coding-plan endpoint;
    a chat key on its own selects the chat endpoint.

    Returns:
        (api_key, base_url), or None when no key is configured.
    """
    coding_key = api_keys.get(CODING_PLAN_KEY)
    if coding_key:
        logger.info("Using endpoint: %s", config.coding_plan_base_url)
        return coding_key, config.coding_plan_base_url

    chat_key = api_keys.get(CHAT_KEY)
    if chat_key:
        logger.info("Using endpoint: %s", config.chat_base_url)
        return chat_key, config.chat_base_url

    return None
