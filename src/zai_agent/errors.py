"""Exception types shared across the agent.

Only a handful of these ever reach the caller, and then only as terminal
``error`` events produced by the agentic loop:

- ConfigurationError: the API key is missing; the user has to act.
- TransportError: every connection attempt to the completion endpoint failed.
- CompletionAPIError: the endpoint answered with a non-2xx status.
- RequestAborted: the caller's cancellation event fired.

ToolInputError is always recovered locally and turned into a failed
ToolResult so the model can correct itself.
"""

from typing import Optional

__all__ = [
    "ZaiAgentError",
    "ConfigurationError",
    "TransportError",
    "CompletionAPIError",
    "RequestAborted",
    "ToolInputError",
]


class ZaiAgentError(Exception):
    """Base class for all agent errors."""


class ConfigurationError(ZaiAgentError):
    """Raised when required configuration (such as an API key) is missing."""


class TransportError(ZaiAgentError):
    """Raised when the completion endpoint could not be reached.

    Attributes:
        attempts: Number of attempts made before giving up
        last_error: The exception raised by the final attempt
    """

    def __init__(self, message: str, attempts: int, last_error: Optional[BaseException] = None):
        super().__init__(message)
        self.attempts = attempts
        self.last_error = last_error


class CompletionAPIError(ZaiAgentError):
    """Raised when the completion endpoint returns a non-2xx response."""

    def __init__(self, status_code: int, body: str):
        super().__init__(f"Z.ai API error ({status_code}): {body}")
        self.status_code = status_code
        self.body = body


class RequestAborted(ZaiAgentError):
    """Raised when the caller cancels an in-progress query."""

    def __init__(self, message: str = "Request aborted"):
        super().__init__(message)


class ToolInputError(ZaiAgentError, ValueError):
    """Raised when a tool call is missing a required input field."""
