"""Core sub-package for zai_agent

- agentic_loop: Streaming completion loop with built-in and MCP tool support

The parent core.py module re-exports all public APIs.
"""

__all__ = []  # Public APIs are re-exported from parent core.py
