import os
from pathlib import Path
from typing import Mapping, Optional

from opencode_daemon.core.models import DaemonSettings

APP_DIR_NAME = "opencode-daemon-manager"
ENV_PREFIX = "OPENCODE_DAEMON_"
STATE_DIR_ENV = f"{ENV_PREFIX}STATE_DIR"


def _non_blank(value: Optional[str]) -> Optional[str]:
    if value is None or not value.strip():
        return None
    return value


def resolve_state_dir(platform: str, env: Mapping[str, str], home: Path) -> Path:
    """
    Resolve the state directory from a platform name, an environment mapping and a home directory.

    A non-blank OPENCODE_DAEMON_STATE_DIR wins over every platform default.
    Pure apart from making the result absolute.
    """
    override = _non_blank(env.get(STATE_DIR_ENV))
    if override is not None:
        return Path(override).expanduser().resolve()

    if platform == "win32":
        base = env.get("LOCALAPPDATA") or env.get("APPDATA") or str(home)
        return Path(base).resolve() / APP_DIR_NAME

    if platform == "darwin":
        return home / "Library" / "Application Support" / APP_DIR_NAME

    xdg_state_home = _non_blank(env.get("XDG_STATE_HOME"))
    if xdg_state_home is not None:
        return Path(xdg_state_home).resolve() / APP_DIR_NAME

    return home / ".local" / "state" / APP_DIR_NAME


def load_settings() -> DaemonSettings:
    """Load settings from the process environment."""
    return DaemonSettings()


def state_dir_for(settings: DaemonSettings, platform: str, home: Optional[Path] = None) -> Path:
    """Return the configured state directory, falling back to the platform default."""
    if settings.state_dir is not None:
        return settings.state_dir.expanduser().resolve()
    return resolve_state_dir(platform, os.environ, home or Path.home())
