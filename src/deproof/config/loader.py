"""Configuration loading: TOML files, env var overrides, merge logic.

Discovery order (later overrides earlier):
    1. Built-in defaults (Pydantic model defaults)
    2. User config: ``~/.config/deproof/config.toml``
    3. Project-local config: ``./deproof.toml``
    4. ``$DEPROOF_CONFIG`` environment variable (explicit path)
    5. Programmatic overrides (passed to ``load_config``)

Secrets are never required in files. Each ``*_env`` field names an
environment variable (e.g. ``WALLET_PRIVATE_KEY``); if it is set *and* the
matching value is not already provided, the loader resolves it.
"""

from __future__ import annotations

import os
import tomllib
from pathlib import Path
from typing import Any

from deproof.core.errors import ConfigError

from .schema import DeProofConfig


def _user_config_path() -> Path:
    """Return XDG-compliant user config path."""
    xdg = os.environ.get("XDG_CONFIG_HOME", "")
    base = Path(xdg) if xdg else Path.home() / ".config"
    return base / "deproof" / "config.toml"


def _project_config_path() -> Path:
    """Return project-local config path."""
    return Path.cwd() / "deproof.toml"


def _discover_config_files() -> list[Path]:
    """Return config files in merge order (first = lowest priority)."""
    paths: list[Path] = []

    user = _user_config_path()
    if user.is_file():
        paths.append(user)

    project = _project_config_path()
    if project.is_file():
        paths.append(project)

    env_path = os.environ.get("DEPROOF_CONFIG")
    if env_path:
        p = Path(env_path)
        if not p.is_file():
            msg = f"DEPROOF_CONFIG points to non-existent file: {env_path}"
            raise ConfigError(msg)
        paths.append(p)

    return paths


def _read_toml(path: Path) -> dict[str, Any]:
    """Read and parse a TOML file."""
    try:
        with path.open("rb") as f:
            return tomllib.load(f)
    except tomllib.TOMLDecodeError as e:
        msg = f"Invalid TOML in {path}: {e}"
        raise ConfigError(msg) from e
    except OSError as e:
        msg = f"Cannot read config file {path}: {e}"
        raise ConfigError(msg) from e


def _deep_merge(base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
    """Recursively merge override into base. Override wins on conflicts."""
    merged = base.copy()
    for key, value in override.items():
        if key in merged and isinstance(merged[key], dict) and isinstance(value, dict):
            merged[key] = _deep_merge(merged[key], value)
        else:
            merged[key] = value
    return merged


def _resolve_env(config: DeProofConfig) -> None:
    """Fill unset secrets and endpoints from environment variables (in-place)."""
    client = config.client
    if client.private_key is None and client.private_key_env:
        client.private_key = os.environ.get(client.private_key_env)

    llm = config.llm
    if llm.api_key is None and llm.api_key_env:
        llm.api_key = os.environ.get(llm.api_key_env)
    if llm.base_url is None and llm.base_url_env:
        llm.base_url = os.environ.get(llm.base_url_env)
    if llm.model is None and llm.model_env:
        llm.model = os.environ.get(llm.model_env)


def load_config(
    path: str | Path | None = None,
    overrides: dict[str, Any] | None = None,
) -> DeProofConfig:
    """Load and validate configuration.

    Args:
        path: Explicit config file path (highest file priority).
        overrides: Dict of overrides merged last (highest overall priority).

    Returns:
        Validated DeProofConfig instance.

    Raises:
        ConfigError: On invalid TOML, missing files, or validation failure.
    """
    merged: dict[str, Any] = {}

    files = _discover_config_files()

    # Explicit path overrides DEPROOF_CONFIG
    if path is not None:
        p = Path(path)
        if not p.is_file():
            msg = f"Config file not found: {path}"
            raise ConfigError(msg)
        files.append(p)

    for config_file in files:
        data = _read_toml(config_file)
        merged = _deep_merge(merged, data)

    if overrides:
        merged = _deep_merge(merged, overrides)

    try:
        config = DeProofConfig.model_validate(merged)
    except Exception as e:
        msg = f"Configuration validation failed: {e}"
        raise ConfigError(msg) from e

    _resolve_env(config)

    return config
