"""Configuration management for devlogspace.

Provides layered YAML configuration with:
- System-level config (/etc/devlogspace/ or %PROGRAMDATA%)
- User-level config (~/.config/devlogspace/ or %APPDATA%)
- Project-level config (<workspace-root>/.mcp/config.yaml)
- Environment variable overrides (highest priority)

Example usage:
    from devlogspace.config import load_config

    config = load_config()
    print(config.workspace.root)
    print(config.lock.lease_minutes)
"""

from devlogspace.config.loader import (
    deep_merge,
    get_config,
    load_config,
    merge_configs,
    reset_config,
)
from devlogspace.config.paths import (
    get_config_paths,
    get_project_config_path,
    get_system_config_path,
    get_user_config_path,
)
from devlogspace.config.schema import (
    Config,
    HeartbeatConfig,
    LockConfig,
    LoggingConfig,
    TrackingConfig,
    WorkspaceConfig,
)

__all__ = [
    # Main API
    "Config",
    "load_config",
    "get_config",
    "reset_config",
    "deep_merge",
    "merge_configs",
    # Schema types
    "WorkspaceConfig",
    "LockConfig",
    "HeartbeatConfig",
    "TrackingConfig",
    "LoggingConfig",
    # Path utilities
    "get_config_paths",
    "get_system_config_path",
    "get_user_config_path",
    "get_project_config_path",
]
