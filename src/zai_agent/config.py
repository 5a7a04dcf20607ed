"""Settings for the agent: Z.ai credentials and endpoints, loop limits, tool limits, MCP timeouts.

Values come from the environment (``load_config_from_env``) and are published
once per process by ``init_runtime()``. The agent loop, the built-in tools and
the MCP manager also accept an explicit ``AppConfig`` so they can run without
the global.
"""

import logging
import os
from dataclasses import dataclass
from typing import Optional

logger = logging.getLogger(__name__)

DEFAULT_CODING_PLAN_BASE_URL = "https://api.z.ai/api/coding/paas/v4"
DEFAULT_CHAT_BASE_URL = "https://chat.z.ai/api/chat"


@dataclass
class AppConfig:
    """Every tunable the agent reads; defaults match an unconfigured environment."""

    # API Keys
    zai_api_key: Optional[str] = None
    zai_chat_api_key: Optional[str] = None

    # Endpoint and model settings
    model: str = "glm-4.7"
    coding_plan_base_url: str = DEFAULT_CODING_PLAN_BASE_URL
    chat_base_url: str = DEFAULT_CHAT_BASE_URL
    temperature: float = 0.7
    max_tokens: int = 32768

    # Agentic loop settings
    max_turns: int = 50
    request_timeout_seconds: float = 120.0
    max_retries: int = 3
    retry_base_delay: float = 1.0

    # Built-in tool settings
    bash_timeout_seconds: float = 30.0
    bash_max_output_bytes: int = 10 * 1024 * 1024
    glob_max_results: int = 100
    grep_max_output_bytes: int = 10 * 1024 * 1024

    # MCP settings
    mcp_connect_timeout_seconds: float = 30.0
    mcp_list_tools_timeout_seconds: float = 30.0
    mcp_call_timeout_seconds: float = 60.0
    mcp_servers_config: Optional[str] = None

    def validate(self) -> list[str]:
        """Validate configuration and return list of warnings.

        Returns:
            list[str]: List of warning messages for missing or invalid configuration.
        """
        issues = []

        if not self.zai_api_key and not self.zai_chat_api_key:
            issues.append("ZAI_API_KEY not set - Z.ai requests will be rejected")

        if self.max_turns <= 0:
            issues.append(f"Invalid AGENT_MAX_TURNS: {self.max_turns} (must be > 0)")

        if self.max_retries <= 0:
            issues.append(f"Invalid AGENT_MAX_RETRIES: {self.max_retries} (must be > 0)")

        if self.retry_base_delay < 0:
            issues.append(f"Invalid AGENT_RETRY_BASE_DELAY: {self.retry_base_delay}")

        for name in (
            "request_timeout_seconds",
            "bash_timeout_seconds",
            "mcp_connect_timeout_seconds",
            "mcp_list_tools_timeout_seconds",
            "mcp_call_timeout_seconds",
        ):
            value = getattr(self, name)
            if value <= 0:
                issues.append(f"Invalid {name.upper()}: {value} (must be > 0)")

        if self.grep_max_output_bytes <= 0:
            issues.append(f"Invalid GREP_MAX_OUTPUT_BYTES: {self.grep_max_output_bytes}")

        if self.bash_max_output_bytes <= 0:
            issues.append(f"Invalid BASH_MAX_OUTPUT_BYTES: {self.bash_max_output_bytes}")

        if self.glob_max_results <= 0:
            issues.append(f"Invalid GLOB_MAX_RESULTS: {self.glob_max_results}")

        return issues


# Published by init_runtime(); None until then
_config: Optional[AppConfig] = None


def _env_number(key: str, default, cast):
    raw = os.getenv(key)
    if raw is None:
        return default
    try:
        return cast(raw)
    except (ValueError, TypeError):
        logger.warning(f"Invalid value for {key}: '{raw}'. Using default value: {default}.")
        return default


def load_config_from_env() -> AppConfig:
    """Build an AppConfig from ``ZAI_*``, ``AGENT_*``, ``BASH_*`` and ``MCP_*`` variables.

    Unparseable numbers fall back to their defaults with a warning, and any
    problems reported by ``AppConfig.validate()`` are logged rather than raised
    so a half-configured environment can still start the CLI.
    """
    config = AppConfig(
        zai_api_key=os.getenv("ZAI_API_KEY") or None,
        zai_chat_api_key=os.getenv("ZAI_CHAT_API_KEY") or None,
        model=os.getenv("ZAI_MODEL", "glm-4.7"),
        coding_plan_base_url=os.getenv("ZAI_CODING_PLAN_BASE_URL", DEFAULT_CODING_PLAN_BASE_URL),
        chat_base_url=os.getenv("ZAI_CHAT_BASE_URL", DEFAULT_CHAT_BASE_URL),
        temperature=_env_number("ZAI_TEMPERATURE", 0.7, float),
        max_tokens=_env_number("ZAI_MAX_TOKENS", 32768, int),
        max_turns=_env_number("AGENT_MAX_TURNS", 50, int),
        request_timeout_seconds=_env_number("AGENT_REQUEST_TIMEOUT_SECONDS", 120.0, float),
        max_retries=_env_number("AGENT_MAX_RETRIES", 3, int),
        retry_base_delay=_env_number("AGENT_RETRY_BASE_DELAY", 1.0, float),
        bash_timeout_seconds=_env_number("BASH_TIMEOUT_SECONDS", 30.0, float),
        bash_max_output_bytes=_env_number("BASH_MAX_OUTPUT_BYTES", 10 * 1024 * 1024, int),
        glob_max_results=_env_number("GLOB_MAX_RESULTS", 100, int),
        grep_max_output_bytes=_env_number("GREP_MAX_OUTPUT_BYTES", 10 * 1024 * 1024, int),
        mcp_connect_timeout_seconds=_env_number("MCP_CONNECT_TIMEOUT_SECONDS", 30.0, float),
        mcp_list_tools_timeout_seconds=_env_number("MCP_LIST_TOOLS_TIMEOUT_SECONDS", 30.0, float),
        mcp_call_timeout_seconds=_env_number("MCP_CALL_TIMEOUT_SECONDS", 60.0, float),
        mcp_servers_config=os.getenv("MCP_SERVERS_CONFIG") or None,
    )

    for issue in config.validate():
        logger.warning(issue)

    return config


def set_config(config: AppConfig) -> None:
    """Publish ``config`` as the process-wide configuration.

    Raises:
        RuntimeError: If a configuration is already published.
    """
    global _config
    if _config is not None:
        raise RuntimeError("Configuration already set. Call reset_config() first.")
    _config = config
    logger.debug("Configuration published (model=%s)", config.model)


def get_config() -> AppConfig:
    """Return the published configuration; raises RuntimeError before init_runtime()."""
    if _config is None:
        raise RuntimeError(
            "Configuration not initialized. Call init_runtime() at application startup."
        )
    return _config


def get_config_or_default() -> AppConfig:
    """Like get_config(), but falls back to a default AppConfig.

    The agent loop and the tools use this so an embedding host can skip
    init_runtime() and pass its own values instead.
    """
    if _config is None:
        return AppConfig()
    return _config


def reset_config() -> None:
    global _config
    _config = None


def is_config_initialized() -> bool:
    return _config is not None
