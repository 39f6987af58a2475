"""CLI commands using Typer."""

import typer

from dropnow.cli.db import app as db_app
from dropnow.cli.maintenance import app as maintenance_app
from dropnow.cli.tokens import app as tokens_app
from dropnow.cli.users import app as users_app

app = typer.Typer(name="dropnow", help="Dropnow admin backend CLI")

# Register sub-apps
app.add_typer(db_app, name="db")
app.add_typer(users_app, name="users")
app.add_typer(tokens_app, name="tokens")
app.add_typer(maintenance_app, name="maintenance")


@app.command()
def version():
    """Show version information."""
    from dropnow import __version__

    typer.echo(f"Dropnow admin v{__version__}")


@app.command()
def serve(
    host: str = typer.Option("0.0.0.0", help="Host to bind to"),
    port: int = typer.Option(8000, help="Port to bind to"),
    reload: bool = typer.Option(False, help="Enable auto-reload"),
):
    """Run the API server."""
    import uvicorn

    from dropnow.logging import get_uvicorn_log_config

    uvicorn.run(
        "dropnow.main:app",
        host=host,
        port=port,
        reload=reload,
        log_config=get_uvicorn_log_config(),
    )


@app.command()
def worker(
    concurrency: int = typer.Option(2, help="Number of concurrent tasks"),
):
    """Run the background task worker (token pruning cron)."""
    import asyncio

    from saq import Worker

    from dropnow.logging import setup_logging
    from dropnow.tasks import get_queue_settings

    setup_logging()
    settings = get_queue_settings()

    typer.echo(f"Starting worker with concurrency={concurrency}")

    async def run_worker():
        w = Worker(
            queue=settings["queue"],
            functions=settings["functions"],
            concurrency=concurrency,
            cron_jobs=settings.get("cron_jobs"),
            startup=settings.get("startup"),
            shutdown=settings.get("shutdown"),
        )
        await w.start()

    asyncio.run(run_worker())


if __name__ == "__main__":
    app()
