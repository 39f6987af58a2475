"""Maintenance CLI commands."""

import asyncio

import typer
from rich.console import Console
from rich.table import Table

from dropnow.config import settings
from dropnow.tasks import queue
from dropnow.tasks.maintenance import MAINTENANCE_TIMEOUT_SECONDS

console = Console()
app = typer.Typer(help="Maintenance and cleanup commands")


@app.command("prune-tokens")
def prune_tokens(
    retention_days: int = typer.Option(
        settings.token_retention_days, "--days", "-d", help="Keep spent tokens newer than this"
    ),
    dry_run: bool = typer.Option(True, "--dry-run/--execute", help="Only report, don't delete"),
    background: bool = typer.Option(False, "--background", "-b", help="Run in background worker"),
):
    """Delete used or expired connection tokens past the retention window.

    Runs in dry-run mode by default. Use --execute to actually delete.
    """

    async def _prune():
        if background:
            job = await queue.enqueue(
                "prune_connection_tokens",
                retention_days=retention_days,
                dry_run=dry_run,
                timeout=MAINTENANCE_TIMEOUT_SECONDS,
            )
            console.print(f"[green]Queued token prune job:[/green] {job.id if job else 'unknown'}")
            return

        from dropnow.tasks.maintenance import prune_connection_tokens

        console.print(f"[cyan]Scanning for spent tokens older than {retention_days} days...[/cyan]")

        result = await prune_connection_tokens(ctx={}, retention_days=retention_days, dry_run=dry_run)

        if not result.get("success"):
            console.print(f"[red]Error:[/red] {result.get('error')}")
            raise typer.Exit(1)

        table = Table(title="Token Prune Results")
        table.add_column("Metric", style="cyan")
        table.add_column("Value", justify="right")
        table.add_row("Cutoff", result["cutoff_date"])
        if dry_run:
            table.add_row("Would Delete", str(result.get("tokens_would_delete", 0)))
        else:
            table.add_row("Deleted", str(result.get("tokens_deleted", 0)))
        console.print(table)

        if dry_run and result.get("tokens_would_delete", 0) > 0:
            console.print("\n[yellow]Dry run mode - no tokens were deleted.[/yellow]")
            console.print("Run with --execute to delete them.")

    asyncio.run(_prune())
