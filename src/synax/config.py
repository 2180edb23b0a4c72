"""Configuration settings for the application."""

import json
import logging
from pathlib import Path
from typing import Dict, List

from pydantic import BaseModel, Field, ValidationError
from pydantic_settings import BaseSettings, SettingsConfigDict

logger = logging.getLogger(__name__)


class Settings(BaseSettings):
    """Pydantic settings class for the application."""

    # Loaded from SYNAX_* environment variables or a .env file if not provided
    model_config = SettingsConfigDict(
        env_prefix="SYNAX_", env_file=".env", env_file_encoding="utf-8", extra="ignore"
    )

    LOG_LEVEL: str = "warning"  # Options: debug, info, warning, error, critical
    LOG_DIR: str = "logs"

    # Inference backend (Ollama-compatible)
    OLLAMA_URL: str = "http://localhost:11434"
    MODEL: str = "mistral"
    TIMEOUT: float = 60.0  # seconds, applies to every inference request
    SELECTOR_TIMEOUT: float = 30.0
    MANAGE_OLLAMA: bool = True  # start/stop `ollama serve` with the CLI

    # Tool servers
    MCP_CONFIG_PATH: str = "config.json"
    SHELL_TOOL_NAME: str = "execute-shell-command"

    # Dispatch loop
    MAX_ATTEMPTS: int = 5
    HISTORY_MAX_ENTRIES: int = 200  # 0 keeps the whole transcript in every prompt
    ENABLE_PLANNER: bool = False


settings = Settings()


class ConfigError(RuntimeError):
    """Raised when the tool-server configuration file cannot be used."""


class McpServerSettings(BaseModel):
    """Launch spec of one stdio tool server."""

    command: str = ""
    args: List[str] = Field(default_factory=list)
    env: Dict[str, str] = Field(default_factory=dict)
    type: str = "stdio"


def load_mcp_config(path: str | Path | None = None) -> Dict[str, McpServerSettings]:
    """
    Read the tool-server section of the JSON config file.

    Accepts ``{"mcp": {...}}``, ``{"mcpServers": {...}}`` or a bare ``{name: {...}}`` mapping.
    A missing file means no servers.
    """
    config_path = Path(path or settings.MCP_CONFIG_PATH)
    if not config_path.exists():
        logger.info("No MCP config at %s", config_path)
        return {}

    try:
        raw = json.loads(config_path.read_text(encoding="utf-8"))
    except (OSError, json.JSONDecodeError) as exc:
        raise ConfigError(f"Cannot read MCP config {config_path}: {exc}") from exc

    if not isinstance(raw, dict):
        raise ConfigError(f"MCP config {config_path} must be a JSON object")
    section = raw.get("mcp", raw.get("mcpServers", raw))
    if not isinstance(section, dict):
        raise ConfigError(f"'mcp' section of {config_path} must be an object")

    servers: Dict[str, McpServerSettings] = {}
    for name, entry in section.items():
        try:
            servers[name] = McpServerSettings.model_validate(entry)
        except ValidationError as exc:
            raise ConfigError(f"Invalid settings for MCP server '{name}': {exc}") from exc
    return servers
