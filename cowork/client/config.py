"""Client configuration loaded from environment variables and YAML.

All settings have sensible defaults. Override via COWORK_* env vars or
a YAML file (``${VAR}`` references are expanded from the environment).

Example ``~/.cowork/config.yaml``::

    backend_url: ws://127.0.0.1:8765/ws
    default_cwd: ~/src/project
    allowed_tools: Read,Edit,Bash
    settle_delay_seconds: 0.5
    title:
      model: claude-haiku-4-5
      timeout_seconds: 15
    log_level: INFO
"""
from __future__ import annotations

import logging
import os
import re
from dataclasses import dataclass, fields, replace
from pathlib import Path
from typing import Any

import yaml

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_PATH = Path.home() / ".cowork" / "config.yaml"
DEFAULT_ALLOWED_TOOLS = "Read,Edit,Bash"

_ENV_REF = re.compile(r"\$\{([A-Za-z_][A-Za-z0-9_]*)\}")


@dataclass
class ClientConfig:
    """Session client configuration."""

    backend_url: str = "ws://127.0.0.1:8765/ws"
    # Pre-fills the working directory field of the start dialog
    default_cwd: str = ""
    allowed_tools: str = DEFAULT_ALLOWED_TOOLS
    settle_delay_seconds: float = 0.5
    title_model: str = "claude-haiku-4-5"
    title_timeout_seconds: float = 15.0
    log_level: str = "INFO"

    @classmethod
    def from_env(cls, base: ClientConfig | None = None) -> ClientConfig:
        """Apply COWORK_* environment overrides on top of *base*."""
        base = base or cls()
        cowork_vars = {
            k: v for k, v in os.environ.items() if k.startswith("COWORK_")
        }
        if cowork_vars:
            logger.info(
                "ClientConfig.from_env: COWORK_* env overrides: %s",
                ", ".join(sorted(cowork_vars)),
            )

        config = replace(
            base,
            backend_url=os.getenv("COWORK_BACKEND_URL", base.backend_url),
            default_cwd=os.getenv("COWORK_DEFAULT_CWD", base.default_cwd),
            allowed_tools=os.getenv("COWORK_ALLOWED_TOOLS", base.allowed_tools),
            settle_delay_seconds=float(os.getenv(
                "COWORK_SETTLE_DELAY", str(base.settle_delay_seconds)
            )),
            title_model=os.getenv("COWORK_TITLE_MODEL", base.title_model),
            title_timeout_seconds=float(os.getenv(
                "COWORK_TITLE_TIMEOUT", str(base.title_timeout_seconds)
            )),
            log_level=os.getenv("COWORK_LOG_LEVEL", base.log_level),
        )
        logger.debug(
            "ClientConfig: backend=%s cwd=%s tools=%s",
            config.backend_url, config.default_cwd or "<unset>", config.allowed_tools,
        )
        return config


def _expand_env(value: Any) -> Any:
    if isinstance(value, str):
        return _ENV_REF.sub(lambda m: os.environ.get(m.group(1), ""), value)
    if isinstance(value, dict):
        return {k: _expand_env(v) for k, v in value.items()}
    if isinstance(value, list):
        return [_expand_env(v) for v in value]
    return value


def load_yaml_config(path: str | Path) -> ClientConfig:
    """Load a ClientConfig from YAML. Unknown keys are ignored with a warning."""
    path = Path(path).expanduser()
    raw = yaml.safe_load(path.read_text()) or {}
    if not isinstance(raw, dict):
        raise ValueError(f"{path}: top level must be a mapping")
    raw = _expand_env(raw)

    title = raw.pop("title", None) or {}
    if isinstance(title, dict):
        if "model" in title:
            raw["title_model"] = title["model"]
        if "timeout_seconds" in title:
            raw["title_timeout_seconds"] = title["timeout_seconds"]

    known = {f.name for f in fields(ClientConfig)}
    unknown = sorted(set(raw) - known)
    if unknown:
        logger.warning("Ignoring unknown config keys in %s: %s", path, ", ".join(unknown))

    kwargs = {k: v for k, v in raw.items() if k in known}
    for key in ("settle_delay_seconds", "title_timeout_seconds"):
        if key in kwargs:
            kwargs[key] = float(kwargs[key])
    if kwargs.get("default_cwd"):
        kwargs["default_cwd"] = str(Path(kwargs["default_cwd"]).expanduser())
    config = ClientConfig(**kwargs)
    logger.info("Loaded config from %s", path)
    return config


def load_config(path: str | Path | None = None) -> ClientConfig:
    """Resolve configuration: YAML file (explicit or default path), then env."""
    base: ClientConfig | None = None
    if path is not None:
        base = load_yaml_config(path)
    elif DEFAULT_CONFIG_PATH.exists():
        try:
            base = load_yaml_config(DEFAULT_CONFIG_PATH)
        except (OSError, ValueError, yaml.YAMLError):
            logger.exception("Failed to load %s; using defaults", DEFAULT_CONFIG_PATH)
    return ClientConfig.from_env(base)
