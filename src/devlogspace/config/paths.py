"""Config file locations for devlogspace.

Lookup order (lowest to highest priority):
- System: /etc/devlogspace/ or %PROGRAMDATA%\\devlogspace\\
- User: $XDG_CONFIG_HOME, ~/.config/devlogspace/, ~/.devlogspace/ or %APPDATA%
- Project: <workspace-root>/.mcp/config.yaml (next to the lock file)
"""

from __future__ import annotations

import os
import sys
from pathlib import Path

CONFIG_FILENAME = "config.yaml"
APP_NAME = "devlogspace"
STATE_DIR = ".mcp"
DEFAULT_WORKSPACE_DIR = "devlog"


def get_system_config_path() -> Path | None:
    """System-level config file, or None when it cannot be determined."""
    if sys.platform == "win32":
        program_data = os.environ.get("PROGRAMDATA")
        if program_data:
            return Path(program_data) / APP_NAME / CONFIG_FILENAME
        return None
    return Path("/etc") / APP_NAME / CONFIG_FILENAME


def get_user_config_path() -> Path | None:
    """User-level config file, or None when it cannot be determined."""
    if sys.platform == "win32":
        app_data = os.environ.get("APPDATA")
        if app_data:
            return Path(app_data) / APP_NAME / CONFIG_FILENAME
        return None

    xdg_config = os.environ.get("XDG_CONFIG_HOME")
    if xdg_config:
        return Path(xdg_config) / APP_NAME / CONFIG_FILENAME

    home = Path.home()
    if (home / ".config").exists():
        return home / ".config" / APP_NAME / CONFIG_FILENAME
    return home / f".{APP_NAME}" / CONFIG_FILENAME


def get_project_config_path(workspace_root: str | Path) -> Path:
    """Project-level config file inside the workspace state directory."""
    return Path(workspace_root) / STATE_DIR / CONFIG_FILENAME


def get_default_workspace_root() -> Path:
    """Workspace root used when neither config nor DEVLOG_PATH names one."""
    return Path.cwd() / DEFAULT_WORKSPACE_DIR


def get_config_paths(workspace_root: str | Path | None = None) -> list[Path]:
    """All config paths in priority order (later entries override earlier ones)."""
    paths: list[Path] = []

    system_path = get_system_config_path()
    if system_path:
        paths.append(system_path)

    user_path = get_user_config_path()
    if user_path:
        paths.append(user_path)

    if workspace_root:
        paths.append(get_project_config_path(workspace_root))

    return paths
