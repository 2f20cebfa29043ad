"""CLI commands for the academy dispatch service."""

import asyncio
import json
from typing import Any, Optional

import httpx
import typer
from rich.console import Console
from rich.table import Table

from academy import __version__
from academy.core.config import get_settings
from academy.core.exceptions import AcademyException
from academy.notifications.fanout import FanoutRequest, FanoutResult, NotificationFanout
from academy.storage.database.base import AsyncSessionLocal, close_db, init_db
from academy.storage.database.repository import NotificationRepository, ProfileDirectory, WebhookRepository
from academy.webhooks.dispatcher import DispatchSummary, WebhookDispatcher

app = typer.Typer(name="academy", help="Cliniks Academy dispatch CLI")
console = Console()
settings = get_settings()


@app.command()
def version() -> None:
    """Show version."""
    console.print(f"[bold green]Cliniks Academy Dispatch v{__version__}[/bold green]")


@app.command("init-db")
def init_database() -> None:
    """Create database tables."""

    async def _run() -> None:
        try:
            await init_db()
        finally:
            await close_db()

    asyncio.run(_run())
    console.print("[green]✓ Tables created[/green]")


async def _dispatch(event_type: str, data: Any) -> DispatchSummary:
    async with AsyncSessionLocal() as session, httpx.AsyncClient(timeout=settings.webhook_timeout) as client:
        dispatcher = WebhookDispatcher(WebhookRepository(session), client)
        return await dispatcher.dispatch(event_type, data)


@app.command()
def dispatch(
    event_type: str,
    data: str = typer.Option("{}", help="JSON payload"),
) -> None:
    """Dispatch an event to every subscribed webhook.

    Args:
        event_type: Event name
        data: JSON payload
    """
    try:
        payload = json.loads(data)
    except json.JSONDecodeError as e:
        raise typer.BadParameter(f"Invalid JSON: {e}") from e

    try:
        summary = asyncio.run(_dispatch(event_type, payload))
    except AcademyException as e:
        console.print(f"[red]✗ {e.message}[/red]")
        raise typer.Exit(code=1) from e

    table = Table(title=f"{event_type}: {summary.sent} sent")
    table.add_column("Webhook")
    table.add_column("Status")
    table.add_column("Result")
    for result in summary.results:
        table.add_row(
            result.webhook_id,
            str(result.status),
            "[green]ok[/green]" if result.success else f"[red]{result.error or 'failed'}[/red]",
        )
    console.print(table)


async def _notify(request: FanoutRequest) -> FanoutResult:
    async with AsyncSessionLocal() as session:
        fanout = NotificationFanout(NotificationRepository(session), ProfileDirectory(session))
        return await fanout.send(request)


@app.command()
def notify(
    title: str = typer.Option(..., help="Notification title"),
    message: str = typer.Option(..., help="Notification message"),
    user_id: Optional[list[str]] = typer.Option(None, "--user-id", help="Recipient (repeatable); omit to broadcast"),
    category: Optional[str] = typer.Option(None, help="Category tag"),
) -> None:
    """Send a notification to users."""
    request = FanoutRequest(title=title, message=message, user_ids=list(user_id or []), category=category)

    try:
        result = asyncio.run(_notify(request))
    except AcademyException as e:
        console.print(f"[red]✗ {e.message}[/red]")
        raise typer.Exit(code=1) from e

    console.print(f"[green]✓ {result.message} ({result.created} created)[/green]")


@app.command()
def serve(
    host: str = typer.Option(settings.api_host, help="Host to bind"),
    port: int = typer.Option(settings.api_port, help="Port to bind"),
) -> None:
    """Start API server.

    Args:
        host: Host to bind
        port: Port to bind
    """
    import uvicorn

    console.print(f"[yellow]Starting server on {host}:{port}[/yellow]")
    uvicorn.run("academy.api.app:app", host=host, port=port, reload=settings.debug)


if __name__ == "__main__":
    app()
