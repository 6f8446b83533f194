from __future__ import annotations

import json
from pathlib import Path
from typing import Any, Dict, Optional

from opencode_daemon.core.models import DEFAULT_PORT, UNKNOWN_STARTED_AT, DaemonRecord

PID_FILE_NAME = "opencode.pid"
METADATA_FILE_NAME = "opencode.json"
# Largest pid os.kill accepts on every supported platform.
MAX_PID = 2**31 - 1


class StateStore:
    """
    Persists at most one DaemonRecord inside a state directory.

    The pid file is authoritative. The JSON metadata file is best-effort: when it
    is missing or malformed, `read()` still returns a record with default port
    and start time.
    """

    def __init__(self, state_dir: Path, default_port: int = DEFAULT_PORT) -> None:
        self.state_dir = state_dir
        self.default_port = default_port

    @property
    def pid_path(self) -> Path:
        return self.state_dir / PID_FILE_NAME

    @property
    def metadata_path(self) -> Path:
        return self.state_dir / METADATA_FILE_NAME

    def write(self, record: DaemonRecord) -> None:
        """Persist the pid file and metadata file, creating the state directory if needed."""
        self.state_dir.mkdir(parents=True, exist_ok=True)
        self.pid_path.write_text(f"{record.pid}\n", encoding="utf-8")
        self.metadata_path.write_text(record.to_json(), encoding="utf-8")

    def read(self) -> Optional[DaemonRecord]:
        """Return the persisted record, or None when nothing valid is stored."""
        if not self.pid_path.exists():
            return None

        try:
            pid = _parse_pid(self.pid_path.read_text(encoding="utf-8"))
        except UnicodeDecodeError:
            pid = None

        if pid is None:
            self.clear()
            return None

        metadata = self._read_metadata()
        port = metadata.get("port")
        started_at = metadata.get("startedAt")

        if not _is_valid_port(port):
            port = self.default_port
        if not isinstance(started_at, str):
            started_at = UNKNOWN_STARTED_AT

        return DaemonRecord(pid=pid, port=port, started_at=started_at)

    def clear(self) -> None:
        """Remove both state files. Missing files are ignored."""
        self.pid_path.unlink(missing_ok=True)
        self.metadata_path.unlink(missing_ok=True)

    def _read_metadata(self) -> Dict[str, Any]:
        try:
            payload = json.loads(self.metadata_path.read_text(encoding="utf-8"))
        except (OSError, UnicodeDecodeError, json.JSONDecodeError):
            return {}

        if not isinstance(payload, dict):
            return {}
        return payload


def _parse_pid(raw: str) -> Optional[int]:
    try:
        pid = int(raw.strip())
    except ValueError:
        return None

    if pid <= 0 or pid > MAX_PID:
        return None
    return pid


def _is_valid_port(value: object) -> bool:
    return isinstance(value, int) and not isinstance(value, bool) and 1 <= value <= 65535
