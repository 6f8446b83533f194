from datetime import datetime, timezone
from enum import Enum
from pathlib import Path
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

DEFAULT_PORT = 45023
DEFAULT_COMMAND = "opencode serve --port {port}"
UNKNOWN_STARTED_AT = "unknown"


def utc_now_iso() -> str:
    """Return the current UTC time as an ISO-8601 string with millisecond precision."""
    return datetime.now(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


class DaemonSettings(BaseSettings):
    """
    Runtime settings, read from OPENCODE_DAEMON_* environment variables.
    """
    model_config = SettingsConfigDict(env_prefix='OPENCODE_DAEMON_', extra='ignore')

    state_dir: Optional[Path] = None
    port: int = Field(default=DEFAULT_PORT, ge=1, le=65535)
    command: str = DEFAULT_COMMAND
    stop_timeout: float = Field(default=5.0, gt=0)
    poll_interval: float = Field(default=0.25, gt=0)

    @field_validator("state_dir", mode="before")
    @classmethod
    def _blank_state_dir_is_unset(cls, value: object) -> object:
        if isinstance(value, str) and not value.strip():
            return None
        return value


class DaemonRecord(BaseModel):
    """Persisted record of the supervised process."""

    model_config = ConfigDict(populate_by_name=True)

    pid: int = Field(gt=0)
    port: int = Field(ge=1, le=65535)
    started_at: str = Field(default=UNKNOWN_STARTED_AT, alias="startedAt")

    def to_json(self) -> str:
        """Serialize as the pretty-printed metadata document, newline terminated."""
        return self.model_dump_json(indent=2, by_alias=True) + "\n"


class SupervisorOutcome(str, Enum):
    """What a supervisor operation observed or did."""

    STARTED = "started"
    NOT_RUNNING = "not_running"
    STALE_CLEARED = "stale_cleared"
    STOPPED = "stopped"
    FORCE_STOPPED = "force_stopped"
    NOT_PERMITTED = "not_permitted"
    RUNNING = "running"


class SupervisorResult(BaseModel):
    """Result payload returned by every supervisor operation."""

    outcome: SupervisorOutcome
    record: Optional[DaemonRecord] = None
    message: str

    @property
    def is_running(self) -> bool:
        return self.outcome in {SupervisorOutcome.STARTED, SupervisorOutcome.RUNNING}
