from __future__ import annotations

from typing import Any, List, Optional, Sequence

import typer
import uvicorn

from . import health
from .config import APP_NAME, APP_VERSION, Settings, configure_logging
from .logsink import LogSink
from .services import UserService
from .storage import DocumentStore, StorageError, connect

app = typer.Typer(help=f"{APP_NAME} operator console")


def _render_table(headers: Sequence[str], rows: Sequence[Sequence[str]]) -> str:
    if not headers:
        return ""

    widths = [len(header) for header in headers]
    for row in rows:
        for idx, cell in enumerate(row):
            widths[idx] = max(widths[idx], len(cell))

    def build_border() -> str:
        return "+".join([""] + ["-" * (width + 2) for width in widths] + [""])

    def build_row(cells: Sequence[str]) -> str:
        content = "|".join(f" {cells[idx].ljust(widths[idx])} " for idx in range(len(headers)))
        return f"|{content}|"

    border = build_border()
    body = [build_row(row) for row in rows]
    return "\n".join([border, build_row(headers), border, *body, border])


def _stringify(value: Any) -> str:
    if value is None:
        return "-"
    if isinstance(value, float):
        return f"{value:.3f}".rstrip("0").rstrip(".")
    if isinstance(value, dict):
        return ", ".join(f"{key}={item}" for key, item in value.items())
    if isinstance(value, list):
        return ", ".join(str(item) for item in value)
    return str(value)


def _open_store(settings: Settings) -> DocumentStore:
    try:
        return connect(settings.database_url)
    except StorageError as exc:
        typer.echo(f"Storage unavailable: {exc}", err=True)
        raise typer.Exit(code=1)


@app.command("serve")
def serve(
    host: str = typer.Option("0.0.0.0", help="Interface to bind."),
    port: Optional[int] = typer.Option(None, help="Port to listen on (defaults to PORT)."),
    reload: bool = typer.Option(False, "--reload", help="Restart on code changes."),
) -> None:
    """Run the API server."""

    settings = Settings.from_env()
    configure_logging(settings.log_level)
    listen_port = port or settings.port
    typer.echo(f"{APP_NAME} v{APP_VERSION}")
    typer.echo(f"Server running on port {listen_port}")
    typer.echo("Health check: /v1/healthcheck")
    typer.echo(f"Environment: {settings.environment}")
    uvicorn.run("sleep_tracker.main:app", host=host, port=listen_port, reload=reload, log_level=settings.log_level.lower())


@app.command("health")
def health_report(
    fields: List[str] = typer.Option([], "--field", "-f", help="Specific health keys to include."),
) -> None:
    """Show the same diagnostics as GET /v1/healthcheck."""

    settings = Settings.from_env()
    store = DocumentStore(settings.database_url)
    try:
        store.connect()
    except StorageError as exc:
        typer.echo(f"Warning: {exc}", err=True)
    snapshot = health.snapshot(store)
    if fields:
        missing = [key for key in fields if key not in snapshot]
        if missing:
            typer.echo(f"Unknown health field: {', '.join(sorted(set(missing)))}", err=True)
            raise typer.Exit(code=1)
        snapshot = {key: snapshot[key] for key in fields}

    rows = [[key, _stringify(value)] for key, value in snapshot.items()]
    typer.echo(_render_table(["Field", "Value"], rows))


@app.command("logs")
def logs(limit: int = typer.Option(20, min=1, help="Number of request logs to return (latest first).")) -> None:
    """Inspect recently persisted request logs."""

    store = _open_store(Settings.from_env())
    try:
        records = LogSink(store).recent(limit)
    except StorageError as exc:
        typer.echo(f"Storage unavailable: {exc}", err=True)
        raise typer.Exit(code=1)
    if not records:
        typer.echo("(none)")
        return

    headers = ["timestamp", "method", "url", "status", "ms", "ip", "user"]
    rows = [
        [
            record.created_at.isoformat(),
            record.method,
            record.url,
            str(record.status_code),
            _stringify(record.duration),
            record.ip,
            _stringify(record.user_id),
        ]
        for record in records
    ]
    typer.echo(_render_table(headers, rows))


@app.command("set-active")
def set_active(
    email: str = typer.Argument(..., help="Account email."),
    disable: bool = typer.Option(False, "--disable", help="Deactivate the account."),
    enable: bool = typer.Option(False, "--enable", help="Reactivate the account."),
) -> None:
    """Inspect or toggle whether an account may sign in."""

    if disable and enable:
        typer.echo("Choose either --enable or --disable.", err=True)
        raise typer.Exit(code=1)

    users = UserService(_open_store(Settings.from_env()))
    user = users.get_user_by_email(email)
    if user is None:
        typer.echo(f"No account for {email}", err=True)
        raise typer.Exit(code=1)

    if disable or enable:
        user = users.set_active(user.id, enable)
        typer.echo(f"Account {'enabled' if enable else 'disabled'}.")
    typer.echo(f"{user.email}: {'active' if user.is_active else 'deactivated'}")


if __name__ == "__main__":
    app()
