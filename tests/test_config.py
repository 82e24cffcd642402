"""Tests for AgentConfig, ServerConfig and logging setup."""

import logging

import pytest

from agent_runtime.config import DEFAULT_CONFIG, AgentConfig
from agent_runtime.logger import setup_logging
from toolservers.config import ServerConfig
from toolservers.transport import SseTransport, StdioTransport, create_transport


class TestAgentConfig:
    def test_defaults(self):
        config = AgentConfig.from_dict({}, environ={})
        assert config.max_iterations == 50
        assert config.request_timeout == 30.0
        assert config.hooks_enabled is True
        assert config.mcp_servers == ()
        assert config.model == DEFAULT_CONFIG["model"]

    def test_values_merge_over_defaults(self):
        config = AgentConfig.from_dict({"max_iterations": 10, "system_prompt": "Be terse."}, environ={})
        assert config.max_iterations == 10
        assert config.system_prompt == "Be terse."
        assert config.max_tokens == DEFAULT_CONFIG["max_tokens"]

    def test_environment_overrides(self):
        environ = {
            "AGENT_RUNTIME_MAX_ITERATIONS": "7",
            "AGENT_RUNTIME_REQUEST_TIMEOUT": "2.5",
            "AGENT_RUNTIME_HOOKS_ENABLED": "false",
            "AGENT_RUNTIME_MODEL": "claude-haiku",
        }
        config = AgentConfig.from_dict({"max_iterations": 10}, environ=environ)
        assert config.max_iterations == 7
        assert config.request_timeout == 2.5
        assert config.hooks_enabled is False
        assert config.model == "claude-haiku"

    def test_invalid_environment_value(self):
        with pytest.raises(ValueError, match="AGENT_RUNTIME_MAX_ITERATIONS"):
            AgentConfig.from_dict({}, environ={"AGENT_RUNTIME_MAX_ITERATIONS": "lots"})

    def test_unknown_keys_are_ignored(self, caplog):
        with caplog.at_level(logging.WARNING, logger="agent_runtime.config"):
            config = AgentConfig.from_dict({"colour": "blue"}, environ={})
        assert not hasattr(config, "colour")
        assert "colour" in caplog.text

    def test_server_mapping_and_list_forms(self):
        as_mapping = AgentConfig.from_dict({
            "mcp_servers": {"echo": {"command": "python", "args": ["-m", "toolservers.servers.echo"]}},
        }, environ={})
        as_list = AgentConfig.from_dict({
            "mcp_servers": [{"name": "remote", "transport": "http", "url": "http://localhost:8080"}],
        }, environ={})

        assert as_mapping.mcp_servers[0].name == "echo"
        assert as_mapping.mcp_servers[0].args == ["-m", "toolservers.servers.echo"]
        assert as_list.mcp_servers[0].transport == "http"

    def test_config_is_frozen(self):
        config = AgentConfig.from_dict({}, environ={})
        with pytest.raises(AttributeError):
            config.max_iterations = 3

    def test_non_positive_cap_is_rejected(self):
        with pytest.raises(ValueError):
            AgentConfig.from_dict({"max_iterations": 0}, environ={})


class TestServerConfig:
    @pytest.mark.parametrize("data", [
        {"name": ""},
        {"name": "x", "transport": "websocket", "command": "run"},
        {"name": "x", "transport": "stdio"},
        {"name": "x", "transport": "http"},
    ])
    def test_invalid_configs(self, data):
        with pytest.raises(ValueError):
            ServerConfig.from_dict(data)

    def test_create_transport_picks_variant(self):
        stdio = create_transport(ServerConfig(name="a", command="python", args=["-V"], env={"K": "V"}))
        http = create_transport(ServerConfig(name="b", transport="http", url="http://host/", headers={"A": "1"}))

        assert isinstance(stdio, StdioTransport)
        assert stdio.command_line == "python -V"
        assert stdio.env == {"K": "V"}
        assert isinstance(http, SseTransport)
        assert http.url == "http://host"
        assert http.endpoint == "http://host/message"


class TestLogging:
    def test_setup_logging_writes_file_and_quiets_libraries(self, tmp_path):
        root = logging.getLogger()
        saved_handlers, saved_level = root.handlers[:], root.level
        log_file = tmp_path / "logs" / "runtime.log"
        try:
            setup_logging(logging.DEBUG, log_file)
            logging.getLogger("agent_runtime.test").info("hello from test")
            for handler in root.handlers:
                handler.flush()

            assert root.level == logging.DEBUG
            assert logging.getLogger("httpx").level == logging.WARNING
            assert "[INFO] agent_runtime.test: hello from test" in log_file.read_text()
        finally:
            for handler in root.handlers[:]:
                root.removeHandler(handler)
                handler.close()
            for handler in saved_handlers:
                root.addHandler(handler)
            root.setLevel(saved_level)
