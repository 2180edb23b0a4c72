"""Synax: local LLM agent shell with MCP tool servers."""

__version__ = "0.1.0"
