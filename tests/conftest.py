import pytest
import sys
from pathlib import Path
from typing import Dict, List, Optional, Sequence, Set, Tuple

# Ensure src/ is in the python path for imports
src_path = Path(__file__).parent.parent / "src"
sys.path.insert(0, str(src_path))

from opencode_daemon.runtime.process import TerminationSignal
from opencode_daemon.runtime.state_store import StateStore
from opencode_daemon.runtime.supervisor import Supervisor


class FakeProcessControl:
    """In-memory process table standing in for the OS."""

    def __init__(self, first_pid: int = 4321):
        self.next_pid = first_pid
        self.alive: Set[int] = set()
        self.spawned: List[List[str]] = []
        self.signals: List[Tuple[int, TerminationSignal]] = []
        self.spawn_error: Optional[BaseException] = None
        # Liveness checks a process survives after SIGTERM; None means SIGTERM is ignored.
        self.graceful_exit_after: Optional[int] = 0
        self._terminating: Dict[int, int] = {}

    def spawn_detached(self, command: Sequence[str]) -> int:
        if self.spawn_error is not None:
            raise self.spawn_error
        pid = self.next_pid
        self.next_pid += 1
        self.alive.add(pid)
        self.spawned.append(list(command))
        return pid

    def signal(self, pid: int, kind: TerminationSignal) -> None:
        self.signals.append((pid, kind))
        if pid not in self.alive:
            raise ProcessLookupError(pid)

        if kind == TerminationSignal.FORCE:
            self.alive.discard(pid)
        elif self.graceful_exit_after == 0:
            self.alive.discard(pid)
        elif self.graceful_exit_after is not None:
            self._terminating[pid] = self.graceful_exit_after

    def is_alive(self, pid: int) -> bool:
        if pid in self._terminating:
            self._terminating[pid] -= 1
            if self._terminating[pid] <= 0:
                del self._terminating[pid]
                self.alive.discard(pid)
        return pid in self.alive

    def kill_externally(self, pid: int) -> None:
        self.alive.discard(pid)


class FakeClock:
    """Monotonic clock advanced only by sleep()."""

    def __init__(self) -> None:
        self.now = 0.0
        self.sleeps: List[float] = []

    def __call__(self) -> float:
        return self.now

    def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        self.now += seconds


@pytest.fixture(autouse=True)
def isolated_environment(monkeypatch):
    """Keep host OPENCODE_DAEMON_* variables out of the tests."""
    for name in (
        "OPENCODE_DAEMON_STATE_DIR",
        "OPENCODE_DAEMON_PORT",
        "OPENCODE_DAEMON_COMMAND",
        "OPENCODE_DAEMON_STOP_TIMEOUT",
        "OPENCODE_DAEMON_POLL_INTERVAL",
    ):
        monkeypatch.delenv(name, raising=False)


@pytest.fixture
def state_dir(tmp_path):
    """
    Returns a not-yet-created state directory inside the test's tmp_path.
    """
    return tmp_path / "state" / "opencode-daemon-manager"


@pytest.fixture
def store(state_dir):
    return StateStore(state_dir)


@pytest.fixture
def fake_process():
    return FakeProcessControl()


@pytest.fixture
def fake_clock():
    return FakeClock()


@pytest.fixture
def supervisor(store, fake_process, fake_clock):
    return Supervisor(
        store=store,
        process=fake_process,
        sleep=fake_clock.sleep,
        clock=fake_clock,
        now=lambda: "2026-02-25T00:00:00.000Z",
    )
