import json
import typer
from typing import Any
from pydantic import BaseModel
from rich.console import Console
from rich.markup import escape
from opencode_daemon.core.models import SupervisorOutcome, SupervisorResult

# Create a stderr console for logging
error_console = Console(stderr=True, highlight=False)

class OutputFormatter:
    """
    Handles output formatting for the CLI.
    Ensures separation of concerns between System Logs (stderr) and Data (stdout).
    """
    
    @staticmethod
    def log(message: str, severity: str = "info") -> None:
        """
        Print system messages to stderr with color coding.
        """
        style = "white"
        prefix = "[daemon]"
        
        if severity == "warning":
            style = "yellow"
        elif severity == "error":
            style = "red"
        elif severity == "critical":
            style = "bold red"
        elif severity == "success":
            style = "green"
            
        error_console.print(f"[{style}]{escape(f'{prefix} {message}')}[/{style}]", soft_wrap=True)

    @staticmethod
    def print_result(result: SupervisorResult) -> None:
        """
        Print a supervisor result to stdout. Running results include the record details.
        """
        typer.echo(result.message)
        if result.outcome == SupervisorOutcome.RUNNING and result.record is not None:
            typer.echo(f"PID: {result.record.pid}")
            typer.echo(f"Port: {result.record.port}")
            typer.echo(f"Started: {result.record.started_at}")

    @staticmethod
    def print_data(data: Any) -> None:
        """
        Print structured data to stdout as JSON.
        """
        def json_serializer(obj):
            if isinstance(obj, BaseModel):
                return obj.model_dump(mode='json', by_alias=True)
            if hasattr(obj, "isoformat"):
                return obj.isoformat()
            return str(obj)

        try:
            output = json.dumps(data, indent=2, default=json_serializer)
            typer.echo(output)
        except TypeError as e:
            OutputFormatter.log(f"JSON Serialization failed: {e}", severity="error")
            typer.echo(str(data))
