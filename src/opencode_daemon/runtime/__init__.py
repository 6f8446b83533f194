"""Supervision runtime: state persistence, process control and the start/stop/status state machine."""

from opencode_daemon.runtime.process import (
	OSProcessControl,
	ProcessControl,
	TerminationSignal,
	is_process_alive,
)
from opencode_daemon.runtime.state_store import StateStore
from opencode_daemon.runtime.supervisor import Supervisor, build_command

__all__ = [
	"OSProcessControl",
	"ProcessControl",
	"StateStore",
	"Supervisor",
	"TerminationSignal",
	"build_command",
	"is_process_alive",
]
