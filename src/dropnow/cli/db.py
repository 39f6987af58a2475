"""Database management CLI commands."""

import asyncio
import subprocess
import sys

import typer
from rich.console import Console

console = Console()
app = typer.Typer(help="Database management commands")


def _alembic(*args: str) -> int:
    return subprocess.run(
        [sys.executable, "-m", "alembic", *args],
        check=False, capture_output=False,
    ).returncode


@app.command("migrate")
def migrate(
    revision: str = typer.Argument("head", help="Target revision (default: head)"),
):
    """Run database migrations to the specified revision."""
    console.print(f"[dim]Running migrations to {revision}...[/dim]")
    if _alembic("upgrade", revision) != 0:
        console.print("[red]Migration failed![/red]")
        raise typer.Exit(1)
    console.print("[green]Migrations complete![/green]")


@app.command("rollback")
def rollback(
    revision: str = typer.Argument("-1", help="Target revision (default: -1 for one step back)"),
):
    """Rollback database migrations."""
    console.print(f"[dim]Rolling back to {revision}...[/dim]")
    if _alembic("downgrade", revision) != 0:
        console.print("[red]Rollback failed![/red]")
        raise typer.Exit(1)
    console.print("[green]Rollback complete![/green]")


@app.command("current")
def current():
    """Show current database revision."""
    _alembic("current")


@app.command("reset")
def reset(
    force: bool = typer.Option(False, "--force", "-f", help="Skip confirmation"),
):
    """Reset database (drop all tables and re-migrate).

    WARNING: This will delete all data!
    """
    if not force:
        console.print("[bold red]WARNING:[/bold red] This will delete ALL data in the database!")
        if not typer.confirm("Are you sure you want to continue?"):
            console.print("[dim]Cancelled[/dim]")
            raise typer.Exit(0)

    if _alembic("downgrade", "base") != 0:
        console.print("[red]Failed to drop tables![/red]")
        raise typer.Exit(1)
    if _alembic("upgrade", "head") != 0:
        console.print("[red]Migration failed![/red]")
        raise typer.Exit(1)
    console.print("[green]Database reset complete![/green]")


@app.command("seed")
def seed(
    admin_email: str = typer.Option("admin@example.com", "--admin", help="Admin email to create"),
):
    """Create a demo admin, chauffeur, driver and rides for local testing."""
    from datetime import timedelta

    from sqlmodel import select

    from dropnow.database import get_session_context
    from dropnow.models import Driver, Ride, RideStatus, User
    from dropnow.models.base import utcnow

    async def _seed():
        async with get_session_context() as session:
            result = await session.execute(select(User).where(User.email == admin_email))
            if result.scalar_one_or_none():
                console.print(f"[yellow]Warning:[/yellow] {admin_email} exists, skipping seed")
                return

            admin = User(email=admin_email, name="Dispatch Admin", is_admin=True)
            chauffeur = User(email="chauffeur@example.com", name="House Chauffeur")
            driver = Driver(external_id="DRV-1001", first_name="Sam", last_name="Rivera")
            session.add_all([admin, chauffeur, driver])
            await session.flush()

            now = utcnow()
            session.add_all([
                Ride(
                    ride_number="R-0001",
                    status=RideStatus.ASSIGNED,
                    pickup_address="1 Airport Way",
                    dropoff_address="200 Market St",
                    pickup_time=now + timedelta(hours=2),
                    passenger_name="A. Passenger",
                    driver_id=driver.id,
                ),
                Ride(
                    ride_number="R-0002",
                    status=RideStatus.SCHEDULED,
                    pickup_address="200 Market St",
                    dropoff_address="1 Airport Way",
                    pickup_time=now + timedelta(hours=6),
                    chauffeur_id=chauffeur.id,
                ),
            ])
            await session.commit()
            console.print(f"[green]Seeded demo data[/green] (admin={admin_email}, driver={driver.id})")

    asyncio.run(_seed())


@app.command("create-migration")
def create_migration(
    message: str = typer.Argument(..., help="Migration message"),
    autogenerate: bool = typer.Option(True, "--autogenerate/--no-autogenerate", help="Auto-detect model changes"),
):
    """Create a new migration."""
    console.print(f"[dim]Creating migration: {message}[/dim]")
    args = ["revision", "-m", message]
    if autogenerate:
        args.append("--autogenerate")
    if _alembic(*args) != 0:
        console.print("[red]Failed to create migration![/red]")
        raise typer.Exit(1)
    console.print("[green]Migration created![/green]")
