"""Rich console output for provisioning runs."""

from rich.console import Console
from rich.panel import Panel
from rich.table import Table

console = Console()

# Markup colour per stage status value
STATUS_COLORS = {
    "success": "green",
    "skipped": "yellow",
    "failed": "red",
}


def info(msg: str) -> None:
    """Print an info message."""
    console.print(f"[blue]INFO:[/blue] {msg}")


def ok(msg: str) -> None:
    """Print a success message."""
    console.print(f"[green]OK:[/green] {msg}")


def warn(msg: str) -> None:
    """Print a warning message."""
    console.print(f"[yellow]WARN:[/yellow] {msg}")


def error(msg: str) -> None:
    """Print an error message."""
    console.print(f"[red]ERROR:[/red] {msg}")


def section(title: str) -> None:
    """Print a section header."""
    console.print(f"\n[bold]=== {title} ===[/bold]")


def stage_header(index: int, total: int, title: str) -> None:
    """Print the header for one pipeline stage, e.g. `=== (3/7) Account ===`."""
    section(f"({index}/{total}) {title}")


def directive(key: str, value: str | None) -> None:
    """Print one effective sshd directive as sshd -T shows it."""
    console.print(f"  {key} {value if value is not None else '<unset>'}", markup=False, highlight=False)


def secret_state(value: str | None) -> str:
    """Describe a secret without revealing it."""
    return "provided" if value else "not set"


def status_cell(status: str) -> str:
    """Colour a stage status for a table cell."""
    color = STATUS_COLORS.get(status, "white")
    return f"[{color}]{status}[/{color}]"


def checklist(title: str, steps: list[str], style: str = "green") -> None:
    """Print numbered manual steps in a panel."""
    body = "\n\n".join(f"{i}) {step}" for i, step in enumerate(steps, 1))
    console.print(Panel(body, title=title, border_style=style))


def create_table(title: str, columns: list[str]) -> Table:
    """Create a table with the given columns."""
    table = Table(title=title)
    for col in columns:
        table.add_column(col)
    return table


def print_table(table: Table) -> None:
    """Print a table."""
    console.print(table)
