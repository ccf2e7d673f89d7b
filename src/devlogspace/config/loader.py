"""Configuration file loading and caching.

Handles:
- YAML file parsing
- Deep merging of system, user and project files
- Environment variable overrides (DEVLOG_PATH, DEVLOG_LOG, DEVLOG_LOG_LEVEL)
- Conversion from dict to typed Config dataclass
"""

from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Any

import yaml

from devlogspace.config.paths import (
    get_config_paths,
    get_default_workspace_root,
    get_project_config_path,
)
from devlogspace.config.schema import (
    Config,
    HeartbeatConfig,
    LockConfig,
    LoggingConfig,
    TrackingConfig,
    WorkspaceConfig,
)

# Module logger (may not be configured yet at import time)
_log = logging.getLogger("devlogspace.config")

_cached_config: Config | None = None

_KNOWN_SECTIONS = {"workspace", "lock", "heartbeat", "tracking", "logging"}


def load_yaml_file(path: Path) -> dict[str, Any]:
    """Load a YAML mapping, returning an empty dict if missing or invalid."""
    if not path.exists():
        return {}

    try:
        with open(path, encoding="utf-8") as f:
            data = yaml.safe_load(f)
    except yaml.YAMLError as e:
        _log.warning("Invalid YAML in %s: %s", path, e)
        return {}
    except PermissionError:
        _log.debug("Permission denied reading %s", path)
        return {}
    except OSError as e:
        _log.warning("Error reading %s: %s", path, e)
        return {}
    return data if isinstance(data, dict) else {}


def deep_merge(base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
    """Merge override into a copy of base.

    Nested dicts merge recursively, lists and scalars are replaced, and None
    in override leaves the base value alone.
    """
    merged = dict(base)
    for key, value in override.items():
        if value is None:
            continue
        current = merged.get(key)
        if isinstance(current, dict) and isinstance(value, dict):
            merged[key] = deep_merge(current, value)
        else:
            merged[key] = value
    return merged


def merge_configs(*configs: dict[str, Any]) -> dict[str, Any]:
    """Merge config dicts in order (later overrides earlier)."""
    result: dict[str, Any] = {}
    for config in configs:
        if config:
            result = deep_merge(result, config)
    return result


def env_overrides() -> dict[str, Any]:
    """Build a config dict from environment variables."""
    overrides: dict[str, Any] = {}

    devlog_path = os.environ.get("DEVLOG_PATH")
    if devlog_path:
        overrides["workspace"] = {"root": devlog_path}

    log_path = os.environ.get("DEVLOG_LOG")
    if log_path:
        overrides.setdefault("logging", {})["file"] = log_path

    log_level = os.environ.get("DEVLOG_LOG_LEVEL")
    if log_level:
        overrides.setdefault("logging", {})["level"] = log_level

    return overrides


def _section(data: dict[str, Any], name: str) -> dict[str, Any]:
    value = data.get(name)
    return value if isinstance(value, dict) else {}


def dict_to_config(data: dict[str, Any]) -> Config:
    """Convert a merged dict to the typed Config dataclass."""
    workspace_data = _section(data, "workspace")
    workspace = WorkspaceConfig(root=workspace_data.get("root"))

    lock_data = _section(data, "lock")
    lock = LockConfig(
        lease_minutes=float(lock_data.get("lease_minutes", 30.0)),
        stale_minutes=float(lock_data.get("stale_minutes", 60.0)),
    )

    heartbeat_data = _section(data, "heartbeat")
    heartbeat = HeartbeatConfig(
        interval_seconds=float(heartbeat_data.get("interval_seconds", 300.0)),
        inactivity_seconds=float(heartbeat_data.get("inactivity_seconds", 300.0)),
    )

    tracking_data = _section(data, "tracking")
    tracking = TrackingConfig(
        debounce_seconds=float(tracking_data.get("debounce_seconds", 5.0)),
        enabled_on_claim=bool(tracking_data.get("enabled_on_claim", True)),
    )

    log_data = _section(data, "logging")
    verbose = log_data.get("verbose")
    logging_config = LoggingConfig(
        level=log_data.get("level"),
        verbose=int(verbose) if verbose is not None else None,
        file=log_data.get("file"),
    )

    extra = {k: v for k, v in data.items() if k not in _KNOWN_SECTIONS}

    return Config(
        workspace=workspace,
        lock=lock,
        heartbeat=heartbeat,
        tracking=tracking,
        logging=logging_config,
        extra=extra,
    )


def load_config(workspace_root: str | Path | None = None, reload: bool = False) -> Config:
    """Load and merge config from all sources.

    Priority order (highest to lowest):
    1. Environment variables
    2. Project config (<workspace-root>/.mcp/config.yaml)
    3. User config
    4. System config

    When no workspace root is given it is resolved from the system/user files
    and DEVLOG_PATH first, so the project file can be located.

    Args:
        workspace_root: Workspace directory for the project-level config.
        reload: Force reload even if cached.

    Returns:
        Merged Config object.
    """
    global _cached_config

    if _cached_config is not None and not reload and workspace_root is None:
        return _cached_config

    configs: list[dict[str, Any]] = []
    for path in get_config_paths():
        config_data = load_yaml_file(path)
        if config_data:
            _log.debug("Loaded config from %s", path)
            configs.append(config_data)

    env_config = env_overrides()

    root = workspace_root
    if root is None:
        root = _section(merge_configs(*configs, env_config), "workspace").get("root")
    if root is None:
        root = get_default_workspace_root()

    project_data = load_yaml_file(get_project_config_path(root))
    if project_data:
        _log.debug("Loaded project config for %s", root)
        configs.append(project_data)

    configs.append(env_config)
    merged = merge_configs(*configs)
    config = dict_to_config(merged)
    if config.workspace.root is None or workspace_root is not None:
        config.workspace.root = str(root)

    if workspace_root is None:
        _cached_config = config

    return config


def get_config() -> Config:
    """Get the cached global config, loading it on first use."""
    if _cached_config is None:
        return load_config()
    return _cached_config


def reset_config() -> None:
    """Reset the cached config (tests, forced reload)."""
    global _cached_config
    _cached_config = None
