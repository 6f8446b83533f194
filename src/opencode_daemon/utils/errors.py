from typing import List, Optional

from opencode_daemon.core.models import DaemonRecord


class SupervisorError(Exception):
    """
    Base class for failures a supervisor operation reports to its caller.
    """


class AlreadyRunningError(SupervisorError):
    """
    Raised by start() when the recorded process is still alive.
    """
    def __init__(self, record: DaemonRecord):
        self.record = record
        super().__init__(f"Already running (pid: {record.pid}, port: {record.port}).")


class SpawnError(SupervisorError):
    """
    Raised when the supervised command cannot be launched.
    """
    def __init__(self, command: List[str], cause: Optional[BaseException] = None):
        self.command = command
        self.cause = cause
        program = command[0] if command else "<empty command>"
        detail = f": {cause}" if cause else ""
        super().__init__(f"Failed to launch '{program}'{detail}")
