"""CLI entrypoint (Typer).

Commands:
- `osfit serve`: run the API server
- `osfit init-db`: create database tables
- `osfit fetch-issue <url>`: fetch a GitHub issue and print it as JSON
"""

from __future__ import annotations

import asyncio

import typer

from osfit.config import get_settings
from osfit.errors import OsfitError

app = typer.Typer(help="OSFIT Issue Solver CLI.")


@app.command()
def serve(
    host: str = typer.Option(None, help="Bind address (defaults to API_HOST)"),
    port: int = typer.Option(None, help="Port (defaults to API_PORT)"),
    reload: bool = typer.Option(False, help="Reload on code changes"),
):
    """Run the API server."""
    import uvicorn

    settings = get_settings()
    uvicorn.run(
        "osfit.api.main:app",
        host=host or settings.api_host,
        port=port or settings.api_port,
        reload=reload or settings.debug,
    )


@app.command("init-db")
def init_db():
    """Create all database tables."""
    from osfit.database.session import close_db, init_db as _init_db

    async def _run() -> None:
        try:
            await _init_db()
        finally:
            await close_db()

    asyncio.run(_run())
    typer.echo("Database initialized.")


@app.command("fetch-issue")
def fetch_issue(issue_url: str):
    """Fetch a GitHub issue and print it as JSON."""
    from osfit.tools.issues import get_issue_fetcher, parse_issue_url

    async def _run() -> str:
        parse_issue_url(issue_url)
        fetcher = get_issue_fetcher()
        try:
            issue = await fetcher.fetch(issue_url)
        finally:
            await fetcher.close()
        return issue.model_dump_json(indent=2)

    try:
        typer.echo(asyncio.run(_run()))
    except OsfitError as e:
        typer.echo(f"Error: {e.message}", err=True)
        raise typer.Exit(code=1)


if __name__ == "__main__":
    app()
