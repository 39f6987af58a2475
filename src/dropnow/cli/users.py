"""Staff user management CLI commands."""

import asyncio

import typer
from rich.console import Console
from rich.table import Table
from sqlmodel import select

from dropnow.database import get_session_context
from dropnow.models import User
from dropnow.services.auth import create_token
from dropnow.services.identity import list_devices

console = Console()
app = typer.Typer(help="Staff user management commands")


async def _get_user_by_email(session, email: str) -> User:
    result = await session.execute(select(User).where(User.email == email))
    user = result.scalar_one_or_none()
    if not user:
        console.print(f"[red]Error:[/red] User {email} not found")
        raise typer.Exit(1)
    return user


@app.command("list")
def list_users():
    """List all staff users."""

    async def _list():
        async with get_session_context() as session:
            result = await session.execute(select(User).order_by(User.email))
            users = result.scalars().all()

            table = Table(title="Users")
            table.add_column("ID", style="cyan")
            table.add_column("Email", style="green")
            table.add_column("Admin", style="magenta")
            table.add_column("Last connected", style="dim")

            for user in users:
                admin_str = "[green]Yes[/green]" if user.is_admin else "No"
                connected = (
                    user.last_connected.strftime("%Y-%m-%d %H:%M") if user.last_connected else "-"
                )
                table.add_row(user.id, user.email, admin_str, connected)

            console.print(table)

    asyncio.run(_list())


@app.command("create")
def create_user(
    email: str = typer.Argument(..., help="User email"),
    name: str | None = typer.Option(None, "--name", "-n", help="Display name"),
    admin: bool = typer.Option(False, "--admin", help="Make user an admin"),
):
    """Create a new staff user."""

    async def _create():
        async with get_session_context() as session:
            result = await session.execute(select(User).where(User.email == email))
            if result.scalar_one_or_none():
                console.print(f"[red]Error:[/red] User {email} already exists")
                raise typer.Exit(1)

            user = User(email=email, name=name, is_admin=admin)
            session.add(user)
            await session.commit()
            name_str = f" ({name})" if name else ""
            console.print(f"[green]Created user:[/green] {email}{name_str} (admin={admin})")

    asyncio.run(_create())


@app.command("grant-admin")
def grant_admin(email: str = typer.Argument(..., help="User email")):
    """Grant admin privileges to a user."""

    async def _grant():
        async with get_session_context() as session:
            user = await _get_user_by_email(session, email)
            if user.is_admin:
                console.print(f"[yellow]Warning:[/yellow] User {email} is already an admin")
                return

            user.is_admin = True
            await session.commit()
            console.print(f"[green]Granted admin to:[/green] {email}")

    asyncio.run(_grant())


@app.command("token")
def issue_console_token(email: str = typer.Argument(..., help="User email")):
    """Print a console JWT for a user (for scripts and local testing)."""

    async def _token():
        async with get_session_context() as session:
            user = await _get_user_by_email(session, email)
            typer.echo(create_token(user))

    asyncio.run(_token())


@app.command("devices")
def devices(email: str = typer.Argument(..., help="User email")):
    """Show the mobile devices paired to a user."""

    async def _devices():
        async with get_session_context() as session:
            user = await _get_user_by_email(session, email)
            rows = await list_devices(session, user.identity_ref)

            if not rows:
                console.print(f"[dim]No devices paired to {email}[/dim]")
                return

            table = Table(title=f"Devices for {email}")
            table.add_column("Device ID", style="cyan")
            table.add_column("Name")
            table.add_column("Platform")
            table.add_column("Last active", style="dim")
            for device in rows:
                table.add_row(
                    device.device_id,
                    device.device_name or "-",
                    device.platform or "-",
                    device.last_active.strftime("%Y-%m-%d %H:%M") if device.last_active else "-",
                )
            console.print(table)

    asyncio.run(_devices())
