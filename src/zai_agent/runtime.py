"""Process-wide startup for the CLI and for hosts embedding the agent.

``init_runtime()`` must run once before anything reads the global
configuration through ``get_config()``. Components that accept an explicit
``AppConfig`` do not need it.
"""

import logging
import threading
from typing import Optional

from dotenv import load_dotenv

from .config import load_config_from_env, reset_config, set_config

logger = logging.getLogger(__name__)

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"
# per-request INFO lines from these drown out the agent's own turn logging
NOISY_LOGGERS = ("httpx", "httpcore", "mcp")

_initialized = False
_init_lock = threading.Lock()


def _parse_log_level(log_level: str) -> int:
    level = logging.getLevelName(log_level.upper())
    if not isinstance(level, int):
        raise ValueError(f"Invalid log level: {log_level}")
    return level


def init_runtime(log_level: Optional[str] = None) -> None:
    """Load ``.env``, publish the environment configuration and set up logging.

    Safe to call from several threads; only the first call does any work and
    later calls (including their ``log_level``) are ignored. If anything
    fails the configuration is rolled back so a later call can retry.

    Args:
        log_level: Level name such as "DEBUG" or "info". None leaves the
            logging configuration untouched.

    Raises:
        ValueError: If ``log_level`` is not a known level name.
    """
    global _initialized

    if _initialized:
        return

    with _init_lock:
        if _initialized:
            return

        try:
            load_dotenv()
            set_config(load_config_from_env())

            if log_level:
                level = _parse_log_level(log_level)
                logging.basicConfig(level=level, format=LOG_FORMAT)
                if level > logging.DEBUG:
                    for name in NOISY_LOGGERS:
                        logging.getLogger(name).setLevel(logging.WARNING)
        except Exception:
            reset_config()
            raise

        _initialized = True
        logger.debug("Runtime initialized")


def is_initialized() -> bool:
    return _initialized


def reset_runtime() -> None:
    """Forget that init_runtime() ran (tests only)."""
    global _initialized
    _initialized = False
