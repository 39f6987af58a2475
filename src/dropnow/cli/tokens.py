"""Connection token CLI commands."""

import asyncio
import base64
from pathlib import Path

import typer
from rich.console import Console
from rich.table import Table
from sqlmodel import select

from dropnow.database import get_session_context
from dropnow.models import Driver, IdentityRef, User
from dropnow.services.pairing import (
    PairingError,
    issue_token,
    list_active_tokens,
    token_hint,
)

console = Console()
app = typer.Typer(help="Connection token (QR pairing) commands")


async def _resolve_ref(session, user_email: str | None, driver_id: str | None) -> IdentityRef | None:
    if user_email and driver_id:
        console.print("[red]Error:[/red] Pass either --user or --driver, not both")
        raise typer.Exit(1)

    if user_email:
        result = await session.execute(select(User).where(User.email == user_email))
        user = result.scalar_one_or_none()
        if not user:
            console.print(f"[red]Error:[/red] User {user_email} not found")
            raise typer.Exit(1)
        return user.identity_ref

    if driver_id:
        result = await session.execute(
            select(Driver).where((Driver.id == driver_id) | (Driver.external_id == driver_id))
        )
        driver = result.scalar_one_or_none()
        if not driver:
            console.print(f"[red]Error:[/red] Driver {driver_id} not found")
            raise typer.Exit(1)
        return driver.identity_ref

    return None


@app.command("issue")
def issue(
    admin: str = typer.Option(..., "--admin", "-a", help="Email of the issuing admin"),
    user: str | None = typer.Option(None, "--user", "-u", help="Bind to a staff user (email)"),
    driver: str | None = typer.Option(None, "--driver", "-d", help="Bind to a driver (id or external id)"),
    png: Path | None = typer.Option(None, "--png", help="Also write the QR code to this file"),
):
    """Issue a connection token and print its connection URL.

    Without --user or --driver the token is unbound and the first driver to
    redeem it claims it.
    """

    async def _issue():
        async with get_session_context() as session:
            result = await session.execute(select(User).where(User.email == admin))
            issuer = result.scalar_one_or_none()
            if not issuer or not issuer.is_admin:
                console.print(f"[red]Error:[/red] {admin} is not an admin")
                raise typer.Exit(1)

            bound = await _resolve_ref(session, user, driver)

            try:
                issued = await issue_token(session, issued_by=issuer.id, bound=bound)
            except PairingError as e:
                console.print(f"[red]Error:[/red] {e}")
                raise typer.Exit(1) from e

        console.print(f"[green]Token:[/green] {issued.token}")
        console.print(f"[green]Connection URL:[/green] {issued.connection_url}")
        console.print(f"[dim]Bound to: {issued.identity or 'unbound'}[/dim]")
        console.print(f"[dim]Expires: {issued.expires_at.isoformat()}[/dim]")

        if png:
            _, encoded = issued.qr_code.split(",", 1)
            png.write_bytes(base64.b64decode(encoded))
            console.print(f"[green]Wrote QR code to[/green] {png}")

    asyncio.run(_issue())


@app.command("list")
def list_tokens(
    user: str | None = typer.Option(None, "--user", "-u", help="Staff user email"),
    driver: str | None = typer.Option(None, "--driver", "-d", help="Driver id or external id"),
):
    """List redeemable tokens bound to an identity."""

    async def _list():
        async with get_session_context() as session:
            ref = await _resolve_ref(session, user, driver)
            if ref is None:
                console.print("[red]Error:[/red] Pass --user or --driver")
                raise typer.Exit(1)

            tokens = await list_active_tokens(session, ref)

            table = Table(title=f"Active tokens for {ref}")
            table.add_column("ID", style="cyan")
            table.add_column("Token")
            table.add_column("Created", style="dim")
            table.add_column("Expires", style="yellow")
            for token in tokens:
                table.add_row(
                    token.id,
                    token_hint(token.token),
                    token.created_at.strftime("%Y-%m-%d %H:%M"),
                    token.expires_at.strftime("%Y-%m-%d %H:%M"),
                )
            console.print(table)

    asyncio.run(_list())
