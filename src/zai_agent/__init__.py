"""Agentic tool-calling loop for Z.ai GLM models."""

__version__ = "0.1.0"
