import json

import pytest

from synax.config import (
    ConfigError,
    Settings,
    load_mcp_config,
)

SERVER = {"command": "npx", "args": ["-y", "server-filesystem", "/tmp"]}


@pytest.mark.parametrize(
    "document",
    [{"mcp": {"files": SERVER}}, {"mcpServers": {"files": SERVER}}, {"files": SERVER}],
    ids=["mcp", "mcpServers", "bare"],
)
def test_accepted_layouts(tmp_path, document) -> None:
    path = tmp_path / "config.json"
    path.write_text(json.dumps(document))

    servers = load_mcp_config(path)
    assert list(servers) == ["files"]
    assert servers["files"].command == "npx"
    assert servers["files"].args == ["-y", "server-filesystem", "/tmp"]
    assert servers["files"].env == {}


def test_missing_file_means_no_servers(tmp_path) -> None:
    assert load_mcp_config(tmp_path / "absent.json") == {}


@pytest.mark.parametrize(
    "content",
    ["{not json", "[1, 2]", '{"mcp": []}', '{"mcp": {"files": {"args": "not-a-list"}}}'],
)
def test_unusable_config_raises(tmp_path, content) -> None:
    path = tmp_path / "config.json"
    path.write_text(content)
    with pytest.raises(ConfigError):
        load_mcp_config(path)


def test_settings_read_prefixed_environment(monkeypatch) -> None:
    monkeypatch.setenv("SYNAX_MODEL", "llama3")
    monkeypatch.setenv("SYNAX_MAX_ATTEMPTS", "3")
    monkeypatch.setenv("SYNAX_ENABLE_PLANNER", "true")

    configured = Settings(_env_file=None)
    assert configured.MODEL == "llama3"
    assert configured.MAX_ATTEMPTS == 3
    assert configured.ENABLE_PLANNER is True
    assert configured.SHELL_TOOL_NAME == "execute-shell-command"
