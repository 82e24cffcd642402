"""Runtime configuration."""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from typing import Any, Mapping

from toolservers.config import ServerConfig

logger = logging.getLogger(__name__)

ENV_PREFIX = "AGENT_RUNTIME_"

DEFAULT_CONFIG: dict[str, Any] = {
    "model": "claude-sonnet-4-5",
    "max_tokens": 8192,
    "temperature": 1.0,
    "max_iterations": 50,
    "request_timeout": 30.0,
    "system_prompt": "",
    "hooks_enabled": True,
    "mcp_servers": [],
}


@dataclass(frozen=True)
class AgentConfig:
    """Settings for the model, the conversation loop and the tool servers."""

    # Model
    model: str = DEFAULT_CONFIG["model"]
    max_tokens: int = DEFAULT_CONFIG["max_tokens"]
    temperature: float = DEFAULT_CONFIG["temperature"]
    system_prompt: str = DEFAULT_CONFIG["system_prompt"]

    # Loop controls
    max_iterations: int = DEFAULT_CONFIG["max_iterations"]

    # Tool servers
    request_timeout: float = DEFAULT_CONFIG["request_timeout"]
    mcp_servers: tuple[ServerConfig, ...] = field(default_factory=tuple)

    # Hooks
    hooks_enabled: bool = DEFAULT_CONFIG["hooks_enabled"]

    @classmethod
    def from_dict(
        cls,
        data: Mapping[str, Any] | None = None,
        environ: Mapping[str, str] | None = None,
    ) -> "AgentConfig":
        """
        Build a config from already-loaded settings.

        Values in data are merged over DEFAULT_CONFIG, then scalar keys are
        overridden by AGENT_RUNTIME_<KEY> environment variables. Unknown
        keys are ignored with a warning. mcp_servers may be a list of
        server dicts or a {name: server dict} mapping.
        """
        current = dict(DEFAULT_CONFIG)
        for key, value in (data or {}).items():
            if key not in DEFAULT_CONFIG:
                logger.warning(f"Ignoring unknown config key: {key}")
                continue
            current[key] = value

        environ = os.environ if environ is None else environ
        for key, default in DEFAULT_CONFIG.items():
            env_key = f"{ENV_PREFIX}{key.upper()}"
            if env_key not in environ or isinstance(default, list):
                continue
            current[key] = _coerce(env_key, environ[env_key], default)

        current["mcp_servers"] = tuple(_server_configs(current["mcp_servers"]))
        config = cls(**current)
        if config.max_iterations < 1:
            raise ValueError("max_iterations must be at least 1")
        if config.request_timeout <= 0:
            raise ValueError("request_timeout must be positive")
        return config


def _coerce(env_key: str, raw: str, default: Any) -> Any:
    if isinstance(default, bool):
        return raw.strip().lower() in ("true", "1", "yes", "on")
    try:
        if isinstance(default, int):
            return int(raw)
        if isinstance(default, float):
            return float(raw)
    except ValueError as e:
        raise ValueError(f"Invalid value for {env_key}: {raw!r}") from e
    return raw


def _server_configs(raw: Any) -> list[ServerConfig]:
    if isinstance(raw, Mapping):
        raw = [{"name": name, **dict(entry)} for name, entry in raw.items()]
    servers = []
    for entry in raw or []:
        servers.append(entry if isinstance(entry, ServerConfig) else ServerConfig.from_dict(entry))
    return servers
