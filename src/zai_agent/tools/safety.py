"""Deny-list for shell commands requested by the model.

This is advisory only. Matching is plain substring checks on the lowercased
command, so it is trivially bypassed by quoting, variables or aliases. It
exists to stop the model from taking down the host's own processes by
accident, not to sandbox it.
"""

import logging
from dataclasses import dataclass
from typing import Callable, Optional

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SafetyRule:
    name: str
    predicate: Callable[[str], bool]
    reason: str


@dataclass(frozen=True)
class SafetyVerdict:
    dangerous: bool
    reason: Optional[str] = None


def _lsof_kill(cmd: str) -> bool:
    return "lsof" in cmd and ("kill" in cmd or "xargs" in cmd)


def _kill_nine(cmd: str) -> bool:
    return "kill -9" in cmd or "kill -kill" in cmd


def _broad_kill(cmd: str) -> bool:
    if "pkill" not in cmd and "killall" not in cmd:
        return False
    # killing dev servers by name is allowed
    if "next" in cmd or "node" in cmd:
        return False
    return "pkill -f" in cmd or "killall" in cmd


def _rm_root(cmd: str) -> bool:
    return "rm -rf /" in cmd and "rm -rf /." not in cmd


def _background_dev_server(cmd: str) -> bool:
    return "npm run dev" in cmd and "&" in cmd


def _background_server(cmd: str) -> bool:
    return ("npm start" in cmd or "npm run start" in cmd) and "&" in cmd


# Predicates receive the lowercased command. First match wins.
SAFETY_RULES = (
    SafetyRule(
        "lsof-kill",
        _lsof_kill,
        "Cannot use lsof to kill processes - may affect the host server",
    ),
    SafetyRule(
        "kill-9",
        _kill_nine,
        "Cannot use kill -9 - use gentler termination methods",
    ),
    SafetyRule(
        "broad-kill",
        _broad_kill,
        "Cannot use broad kill commands - be more specific",
    ),
    SafetyRule(
        "rm-root",
        _rm_root,
        "Cannot remove root directory",
    ),
    SafetyRule(
        "background-dev-server",
        _background_dev_server,
        "Cannot start background dev servers - use the host's dev server feature instead",
    ),
    SafetyRule(
        "background-server",
        _background_server,
        "Cannot start background servers - use the host's dev server feature instead",
    ),
)


def is_dangerous(command: str) -> SafetyVerdict:
    """Check a shell command against SAFETY_RULES.

    Args:
        command: Shell command text

    Returns:
        SafetyVerdict with the reason of the first matching rule, or
        ``SafetyVerdict(False)`` if no rule matches.
    """
    lowered = command.lower()
    for rule in SAFETY_RULES:
        if rule.predicate(lowered):
            logger.warning("Blocked command by rule %s: %s", rule.name, command)
            return SafetyVerdict(dangerous=True, reason=rule.reason)
    return SafetyVerdict(dangerous=False)
