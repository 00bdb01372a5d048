"""Terminal output helpers built on rich."""

from __future__ import annotations

from rich.console import Console
from rich.markup import escape
from rich.table import Table

from ..daemon.negotiation.state import AttemptRecord, Outcome
from ..daemon.operations import OperationReporter

_OUTCOME_STYLE = {
    Outcome.OK: "green",
    Outcome.PRECONDITION_UNMET: "dim",
    Outcome.STARTUP_UNSTABLE: "yellow",
    Outcome.NOT_RESPONSIVE: "yellow",
    Outcome.HARD_FAILURE: "red",
}


class Output:
    """Styled messages on stdout/stderr."""

    def __init__(self, console: Console | None = None, err_console: Console | None = None):
        self.console = console or Console()
        self.err_console = err_console or Console(stderr=True)

    def info(self, message: str) -> None:
        self.console.print(message)

    def dim(self, message: str) -> None:
        self.console.print(f"[dim]{message}[/dim]")

    def success(self, message: str) -> None:
        self.console.print(f"[green]✓[/green] {message}")

    def warning(self, message: str) -> None:
        self.console.print(f"[yellow]![/yellow] {message}")

    def error(self, message: str) -> None:
        self.err_console.print(f"[bold red]Error:[/bold red] {escape(message)}")

    def hint(self, message: str) -> None:
        self.err_console.print(f"[dim]Hint:[/dim] {message}")

    def print(self, renderable: object) -> None:
        self.console.print(renderable)


out = Output()


class ConsoleReporter(OperationReporter):
    """Prints negotiation progress to the terminal."""

    def __init__(self, output: Output = out):
        super().__init__()
        self._out = output

    def _emit(self, level: str, message: str) -> None:
        if level == "error":
            self._out.error(message)
            return
        prefix = f"[bold]{escape(self.stage)}[/bold] " if self.stage else ""
        {
            "info": self._out.info,
            "dim": self._out.dim,
            "success": self._out.success,
            "warning": self._out.warning,
        }.get(level, self._out.info)(prefix + escape(message))


def attempts_table(attempts: tuple[AttemptRecord, ...]) -> Table:
    table = Table(title="Attempt log")
    table.add_column("Capability", style="bold")
    table.add_column("Phase")
    table.add_column("Outcome")
    table.add_column("Detail", overflow="fold")
    for a in attempts:
        style = _OUTCOME_STYLE.get(a.outcome, "")
        table.add_row(
            a.capability,
            a.phase.value,
            f"[{style}]{a.outcome.value}[/{style}]" if style else a.outcome.value,
            escape(a.excerpt),
        )
    return table
