"""Terminal renderers."""

from __future__ import annotations

from rich.console import Console
from rich.markup import escape
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from canvas_cli.models import ItemResult, Report, UserIdentity


def display_identity(identity: UserIdentity, instance_url: str, console: Console | None = None) -> None:
    """Render the authenticated user."""
    if console is None:
        console = Console()

    body = f"[bold]{escape(identity.display_name)}[/bold]\n[dim]{escape(instance_url)}[/dim]"
    console.print(Panel(body, title="Authenticated as", border_style="green"))


def _status_text(item: ItemResult) -> Text:
    if item.ok:
        return Text("✓ ok", style="bold green")
    return Text("✗ failed", style="bold red")


def display_report(report: Report, console: Console | None = None) -> None:
    """Render per-item results of a submit or download run."""
    if console is None:
        console = Console()

    if not report.items:
        console.print("[dim]Nothing to do.[/dim]")
        return

    table = Table(show_header=True, header_style="bold cyan", show_lines=False)
    table.add_column("#", style="dim", width=4)
    table.add_column("File", min_width=20)
    table.add_column("Status", width=10)
    table.add_column("Detail")

    for i, item in enumerate(report.items, 1):
        detail = str(item.path) if item.ok and item.path and report.operation == "download" else item.detail
        table.add_row(str(i), Text(item.label), _status_text(item), Text(detail))

    console.print(table)

    done = len(report.items) - len(report.failed)
    verb = "Submitted" if report.operation == "submit" else "Downloaded"
    if report.succeeded:
        console.print(f"[green]✓[/green] {verb} {done} file(s)")
    else:
        console.print(
            f"[yellow]![/yellow] {verb} {done} of {len(report.items)} file(s), "
            f"[bold red]{len(report.failed)} failed[/bold red]"
        )


def display_failures(report: Report, console: Console) -> None:
    """Print one diagnostic line per failed item."""
    for item in report.failed:
        console.print(f"[bold red]Failed:[/bold red] {escape(item.label)}: {escape(item.detail)}")
