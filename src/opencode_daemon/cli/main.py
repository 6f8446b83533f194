import sys
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator, Optional

import typer
from pydantic import ValidationError
from typer.core import TyperGroup

from opencode_daemon.cli.formatter import OutputFormatter
from opencode_daemon.config.loader import ENV_PREFIX, STATE_DIR_ENV, load_settings, state_dir_for
from opencode_daemon.core.models import DaemonSettings
from opencode_daemon.runtime.process import OSProcessControl
from opencode_daemon.runtime.supervisor import Supervisor
from opencode_daemon.utils.errors import SupervisorError


def _load_settings() -> DaemonSettings:
    try:
        return load_settings()
    except ValidationError as exc:
        problems = "; ".join(
            f"{ENV_PREFIX}{str(error['loc'][0]).upper()}: {error['msg']}"
            for error in exc.errors()
            if error.get("loc")
        )
        raise typer.BadParameter(f"Invalid environment configuration. {problems}")


def _state_dir(settings: DaemonSettings) -> Path:
    return state_dir_for(settings, sys.platform)


def _build_supervisor(settings: DaemonSettings) -> Supervisor:
    return Supervisor.from_settings(settings, _state_dir(settings), process=OSProcessControl())


def _state_dir_usage() -> str:
    try:
        state_dir = str(_state_dir(load_settings()))
    except ValidationError:
        state_dir = "<invalid environment configuration>"
    return f"\nState directory:\n  {state_dir}\n  (override with {STATE_DIR_ENV})"


class DaemonGroup(TyperGroup):
    """Command group whose help, in every form, ends with the resolved state directory."""

    def get_help(self, ctx) -> str:
        return super().get_help(ctx) + _state_dir_usage()


app = typer.Typer(
    name="opencode-daemon",
    cls=DaemonGroup,
    help="Start, stop and inspect a background `opencode serve` process.",
    epilog=f"The state directory can be overridden with {STATE_DIR_ENV}.",
    rich_markup_mode=None,
    add_completion=False,
    context_settings={"help_option_names": ["-h", "--help"]},
)


def _print_usage(ctx: typer.Context) -> None:
    typer.echo(ctx.get_help())


@contextmanager
def _report_errors() -> Iterator[None]:
    try:
        yield
    except SupervisorError as exc:
        OutputFormatter.log(str(exc), severity="error")
        raise typer.Exit(code=1)
    except Exception as exc:
        OutputFormatter.log(f"Unexpected error: {exc}", severity="error")
        raise typer.Exit(code=1)


@app.callback(invoke_without_command=True)
def main(ctx: typer.Context):
    """
    Start, stop and inspect a background `opencode serve` process.
    """
    if ctx.invoked_subcommand is None:
        _print_usage(ctx)
        raise typer.Exit(code=0)


@app.command()
def start(
    port: Optional[int] = typer.Option(
        None,
        "--port",
        "-p",
        min=1,
        max=65535,
        help="Port for opencode serve (default: OPENCODE_DAEMON_PORT or 45023).",
    ),
):
    """
    Start the service in the background.
    """
    settings = _load_settings()
    effective_port = port if port is not None else settings.port

    with _report_errors():
        supervisor = _build_supervisor(settings)
        result = supervisor.start(effective_port)

    OutputFormatter.print_result(result)


@app.command()
def stop():
    """
    Stop the service, force-killing it if it ignores the termination signal.
    """
    settings = _load_settings()

    with _report_errors():
        supervisor = _build_supervisor(settings)
        result = supervisor.stop()

    OutputFormatter.print_result(result)


@app.command()
def status(
    json_output: bool = typer.Option(False, "--json", help="Print status as JSON."),
):
    """
    Show whether the service is running.
    """
    settings = _load_settings()

    with _report_errors():
        supervisor = _build_supervisor(settings)
        result = supervisor.status()

    if json_output:
        OutputFormatter.print_data(
            {
                "status": "running" if result.is_running else "stopped",
                "outcome": result.outcome.value,
                "record": result.record,
                "state_dir": str(supervisor.store.state_dir),
            }
        )
        return

    OutputFormatter.print_result(result)


@app.command("help")
def help_command(ctx: typer.Context):
    """
    Show this message and exit.
    """
    _print_usage(ctx.parent or ctx)


if __name__ == "__main__":
    app()
