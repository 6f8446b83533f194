from __future__ import annotations

import shlex
import time
from pathlib import Path
from typing import Callable, List, Optional

from opencode_daemon.core.models import (
    DEFAULT_COMMAND,
    DaemonRecord,
    DaemonSettings,
    SupervisorOutcome,
    SupervisorResult,
    utc_now_iso,
)
from opencode_daemon.runtime.process import OSProcessControl, ProcessControl, TerminationSignal
from opencode_daemon.runtime.state_store import StateStore
from opencode_daemon.utils.errors import AlreadyRunningError, SpawnError

PORT_PLACEHOLDER = "{port}"


def build_command(template: str, port: int) -> List[str]:
    """Split a command template with shell rules and substitute the port placeholder."""
    return [token.replace(PORT_PLACEHOLDER, str(port)) for token in shlex.split(template)]


class Supervisor:
    """
    Start/stop/status state machine for a single detached process.

    Every operation re-checks the recorded pid against the OS and clears stale
    state before acting. `stop()` sends a graceful signal, polls for exit and
    escalates to a forced kill once `stop_timeout` seconds have elapsed.
    """

    def __init__(
        self,
        store: StateStore,
        process: Optional[ProcessControl] = None,
        command: str = DEFAULT_COMMAND,
        stop_timeout: float = 5.0,
        poll_interval: float = 0.25,
        sleep: Callable[[float], None] = time.sleep,
        clock: Callable[[], float] = time.monotonic,
        now: Callable[[], str] = utc_now_iso,
    ) -> None:
        self.store = store
        self.process = process or OSProcessControl()
        self.command = command
        self.stop_timeout = stop_timeout
        self.poll_interval = poll_interval
        self._sleep = sleep
        self._clock = clock
        self._now = now

    @classmethod
    def from_settings(
        cls,
        settings: DaemonSettings,
        state_dir: Path,
        process: Optional[ProcessControl] = None,
    ) -> "Supervisor":
        """Build a supervisor wired to the configured state directory and timings."""
        return cls(
            store=StateStore(state_dir, default_port=settings.port),
            process=process,
            command=settings.command,
            stop_timeout=settings.stop_timeout,
            poll_interval=settings.poll_interval,
        )

    def start(self, port: int) -> SupervisorResult:
        """Spawn the supervised command unless a live process is already recorded."""
        if not 1 <= port <= 65535:
            raise ValueError(f"Invalid port: {port}. Expected integer between 1 and 65535.")

        record = self.store.read()
        if record is not None:
            if self.process.is_alive(record.pid):
                raise AlreadyRunningError(record)
            self.store.clear()

        command = build_command(self.command, port)
        if not command:
            raise SpawnError(command)

        try:
            pid = self.process.spawn_detached(command)
        except OSError as exc:
            raise SpawnError(command, exc) from exc

        started = DaemonRecord(pid=pid, port=port, started_at=self._now())
        self.store.write(started)

        return SupervisorResult(
            outcome=SupervisorOutcome.STARTED,
            record=started,
            message=f"Started opencode service (pid: {pid}, port: {port}).",
        )

    def stop(self) -> SupervisorResult:
        """Terminate the recorded process, escalating to a forced kill on timeout."""
        record = self.store.read()
        if record is None:
            return SupervisorResult(
                outcome=SupervisorOutcome.NOT_RUNNING,
                message="Service is not running.",
            )

        if not self.process.is_alive(record.pid):
            self.store.clear()
            return SupervisorResult(
                outcome=SupervisorOutcome.STALE_CLEARED,
                record=record,
                message="Found stale PID file. Service is not running.",
            )

        try:
            self.process.signal(record.pid, TerminationSignal.GRACEFUL)
        except ProcessLookupError:
            self.store.clear()
            return self._stopped(record)
        except PermissionError:
            self.store.clear()
            return self._not_permitted(record)

        if self._wait_for_exit(record.pid):
            self.store.clear()
            return self._stopped(record)

        try:
            self.process.signal(record.pid, TerminationSignal.FORCE)
        except ProcessLookupError:
            pass
        except PermissionError:
            self.store.clear()
            return self._not_permitted(record)
        self.store.clear()

        return SupervisorResult(
            outcome=SupervisorOutcome.FORCE_STOPPED,
            record=record,
            message=f"Force-stopped service (pid: {record.pid}).",
        )

    def status(self) -> SupervisorResult:
        """Report whether the recorded process is alive, clearing stale state."""
        record = self.store.read()
        if record is None:
            return SupervisorResult(
                outcome=SupervisorOutcome.NOT_RUNNING,
                message="Service status: stopped",
            )

        if not self.process.is_alive(record.pid):
            self.store.clear()
            return SupervisorResult(
                outcome=SupervisorOutcome.STALE_CLEARED,
                record=record,
                message="Service status: stopped (removed stale PID file)",
            )

        return SupervisorResult(
            outcome=SupervisorOutcome.RUNNING,
            record=record,
            message="Service status: running",
        )

    def _wait_for_exit(self, pid: int) -> bool:
        deadline = self._clock() + self.stop_timeout
        while True:
            if not self.process.is_alive(pid):
                return True

            remaining = deadline - self._clock()
            if remaining <= 0:
                return False
            self._sleep(min(self.poll_interval, remaining))

    @staticmethod
    def _stopped(record: DaemonRecord) -> SupervisorResult:
        return SupervisorResult(
            outcome=SupervisorOutcome.STOPPED,
            record=record,
            message=f"Stopped service (pid: {record.pid}).",
        )

    @staticmethod
    def _not_permitted(record: DaemonRecord) -> SupervisorResult:
        # The pid was most likely recycled by a process owned by another user.
        return SupervisorResult(
            outcome=SupervisorOutcome.NOT_PERMITTED,
            record=record,
            message=(
                f"Recorded pid {record.pid} belongs to a process this user cannot signal; "
                "removed the PID file without stopping it."
            ),
        )
