import typer
from rich.console import Console
from rich.markup import escape
from jobctl.utils.diagnostics import SupervisorDiagnostic

# Create a stderr console for logging
error_console = Console(stderr=True)

SEVERITY_RANKS = {
    "debug": 0,
    "info": 1,
    "success": 1,
    "warning": 2,
    "error": 3,
    "critical": 4,
}

class OutputFormatter:
    """
    Handles output formatting for the supervisor and its workers.
    Keeps System Logs (stderr) apart from Lifecycle Events and heartbeats (stdout).
    """

    threshold: int = SEVERITY_RANKS["info"]

    @classmethod
    def set_level(cls, level: str) -> None:
        """
        Set the minimum severity printed by `log`.
        """
        cls.threshold = SEVERITY_RANKS.get(level.lower(), SEVERITY_RANKS["info"])

    @classmethod
    def log(cls, message: str, severity: str = "info") -> None:
        """
        Print system messages to stderr with color coding.
        """
        if SEVERITY_RANKS.get(severity, SEVERITY_RANKS["info"]) < cls.threshold:
            return

        style = "white"
        prefix = "[SYSTEM]"

        if severity == "debug":
            style = "dim"
        elif severity == "warning":
            style = "yellow"
        elif severity == "error":
            style = "red"
        elif severity == "critical":
            style = "bold red"
        elif severity == "success":
            style = "green"

        error_console.print(f"[{style}]{prefix} {escape(message)}[/{style}]", highlight=False)

    @staticmethod
    def event(message: str, source: str = "supervisor") -> None:
        """
        Print one lifecycle event line to stdout.
        """
        typer.echo(f"[{source}] {message}")

    @classmethod
    def print_diagnostic(cls, diagnostic: SupervisorDiagnostic) -> None:
        """Route a recoverable failure to the system log at its own severity."""
        cls.log(str(diagnostic), severity=diagnostic.severity)
