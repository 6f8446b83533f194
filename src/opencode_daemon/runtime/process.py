from __future__ import annotations

import os
import signal
import subprocess
import sys
from enum import Enum
from typing import Protocol, Sequence

import psutil


class TerminationSignal(str, Enum):
    """Kinds of termination the supervisor can request."""

    GRACEFUL = "graceful"
    FORCE = "force"


class ProcessControl(Protocol):
    """OS capabilities the supervisor needs to manage one detached process."""

    def spawn_detached(self, command: Sequence[str]) -> int:
        ...

    def signal(self, pid: int, kind: TerminationSignal) -> None:
        ...

    def is_alive(self, pid: int) -> bool:
        ...


def is_process_alive(pid: int) -> bool:
    """Return True when a process id appears to be alive on this host."""
    if pid <= 0:
        return False

    if sys.platform == "win32":
        # Signal 0 terminates the target on Windows.
        return psutil.pid_exists(pid)

    try:
        os.kill(pid, 0)
    except ProcessLookupError:
        return False
    except PermissionError:
        return True
    except (OSError, OverflowError, ValueError):
        return False

    return True


def os_signal_for(kind: TerminationSignal) -> int:
    """Map a termination kind to the platform signal number."""
    if kind == TerminationSignal.FORCE:
        return getattr(signal, "SIGKILL", signal.SIGTERM)
    return signal.SIGTERM


class OSProcessControl:
    """ProcessControl backed by subprocess and os.kill."""

    def spawn_detached(self, command: Sequence[str]) -> int:
        kwargs: dict = {
            "stdin": subprocess.DEVNULL,
            "stdout": subprocess.DEVNULL,
            "stderr": subprocess.DEVNULL,
            "close_fds": True,
        }
        if sys.platform == "win32":
            kwargs["creationflags"] = (
                getattr(subprocess, "DETACHED_PROCESS", 0)
                | getattr(subprocess, "CREATE_NEW_PROCESS_GROUP", 0)
            )
        else:
            kwargs["start_new_session"] = True

        process = subprocess.Popen(list(command), **kwargs)
        return process.pid

    def signal(self, pid: int, kind: TerminationSignal) -> None:
        os.kill(pid, os_signal_for(kind))

    def is_alive(self, pid: int) -> bool:
        return is_process_alive(pid)
