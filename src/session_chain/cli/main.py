"""CLI entry point for session-chain.

Invoked as::

    session-chain [OPTIONS] COMMAND [ARGS]...

or, during development::

    python -m session_chain.cli.main

Commands
--------
- version      — Show version information
- session      — Session chain command group

Session sub-commands
---------------------
- session create   — Create a session, optionally as a follow-up
- session show     — Display one session
- session list     — List an owner's sessions, newest first
- session chain    — Show the ordered chain containing a session
- session spaces   — Show one line per chain (its latest session)
- session update   — Set opaque payload fields on a session
- session delete   — Delete a session or its whole chain
- session abandon  — Discard an unused follow-up and reopen its parent
- session export   — Dump a whole chain as JSON or YAML
"""
from __future__ import annotations

import json
import logging
import sys
from pathlib import Path
from typing import Any, NoReturn

import click
from rich.console import Console
from rich.table import Table

from session_chain.errors import SessionChainError
from session_chain.storage.base import SessionStore

console = Console()

# ---------------------------------------------------------------------------
# Storage backend factory
# ---------------------------------------------------------------------------


def _make_store(
    storage: str,
    db_path: str | None,
    redis_url: str | None,
    watch_retries: int = 5,
) -> SessionStore:
    """Instantiate the requested session store.

    Parameters
    ----------
    storage:
        Store name: ``"memory"``, ``"sqlite"``, or ``"redis"``.
    db_path:
        Path to the SQLite database (used when ``storage="sqlite"``).
    redis_url:
        Connection URL (used when ``storage="redis"``).
    watch_retries:
        Optimistic-transaction attempts for the Redis store.

    Returns
    -------
    SessionStore
        A configured store instance.
    """
    from session_chain.storage.memory import InMemoryStore
    from session_chain.storage.sqlite import SQLiteStore

    if storage == "memory":
        return InMemoryStore()
    if storage == "sqlite":
        db = Path(db_path) if db_path else Path.home() / ".session-chain" / "sessions.db"
        return SQLiteStore(db_path=db)
    if storage == "redis":
        from session_chain.storage.redis import RedisStore

        return RedisStore(url=redis_url or "redis://localhost:6379/0", watch_retries=watch_retries)
    console.print(f"[red]Unknown storage backend: {storage!r}[/red]")
    sys.exit(1)


def _fail(exc: SessionChainError) -> NoReturn:
    console.print(f"[red]{exc.user_message}[/red]")
    console.print(f"[dim]{exc}[/dim]")
    sys.exit(1)


def _parse_json_option(name: str, raw: str | None) -> Any:
    if raw is None:
        return None
    try:
        return json.loads(raw)
    except json.JSONDecodeError as exc:
        raise click.BadParameter(f"not valid JSON: {exc}", param_hint=name) from exc


def _parse_assignment(raw: str) -> tuple[str, Any]:
    """Split ``key=value``; the value is decoded as JSON when possible."""
    if "=" not in raw:
        raise click.BadParameter(f"expected KEY=VALUE, got {raw!r}", param_hint="--set")
    key, value = raw.split("=", 1)
    try:
        return key.strip(), json.loads(value)
    except json.JSONDecodeError:
        return key.strip(), value


def _short(session_id: str | None) -> str:
    return "-" if session_id is None else session_id[:8]


def _role(job_context: Any) -> str:
    # job_context is opaque; only a mapping carries a role.
    if isinstance(job_context, dict):
        return str(job_context.get("role", ""))
    return ""


def _session_table(title: str, records: list[Any]) -> Table:
    table = Table(title=title, show_lines=False)
    table.add_column("#", justify="right", style="dim")
    table.add_column("Session ID", style="cyan")
    table.add_column("Parent")
    table.add_column("Child")
    table.add_column("Status", style="green")
    table.add_column("Role")
    table.add_column("Created")
    for position, record in enumerate(records, start=1):
        table.add_row(
            str(position),
            record.id,
            _short(record.parent_id),
            _short(record.child_id),
            str(record.status),
            _role(record.job_context),
            record.created_at.strftime("%Y-%m-%d %H:%M"),
        )
    return table


# ---------------------------------------------------------------------------
# Root group
# ---------------------------------------------------------------------------


@click.group()
@click.version_option()
@click.option("--verbose", "-v", is_flag=True, help="Enable debug logging.")
def cli(verbose: bool) -> None:
    """Linked follow-up interview sessions"""
    if verbose:
        logging.basicConfig(level=logging.DEBUG, format="%(levelname)s %(name)s: %(message)s")


# ---------------------------------------------------------------------------
# version
# ---------------------------------------------------------------------------


@cli.command(name="version")
def version_command() -> None:
    """Show version information."""
    from session_chain import __version__

    console.print(f"[bold]session-chain[/bold] v{__version__}")


# ---------------------------------------------------------------------------
# session command group
# ---------------------------------------------------------------------------


@cli.group(name="session")
@click.option(
    "--storage",
    default="sqlite",
    show_default=True,
    type=click.Choice(["memory", "sqlite", "redis"], case_sensitive=False),
    help="Storage backend to use.",
)
@click.option("--db-path", default=None, help="Path to SQLite database (sqlite backend).")
@click.option("--redis-url", default=None, help="Redis connection URL (redis backend).")
@click.option(
    "--config",
    "config_path",
    default=None,
    type=click.Path(exists=True, dir_okay=False),
    help="YAML file with chain settings (max_depth, repair_dangling_links, ...).",
)
@click.pass_context
def session_group(
    ctx: click.Context,
    storage: str,
    db_path: str | None,
    redis_url: str | None,
    config_path: str | None,
) -> None:
    """Session chain commands."""
    from session_chain.config import ChainConfig
    from session_chain.service import SessionChainService

    config = ChainConfig.from_yaml(config_path) if config_path else ChainConfig()
    store = _make_store(storage.lower(), db_path, redis_url, config.redis_watch_retries)
    ctx.ensure_object(dict)
    ctx.obj["service"] = SessionChainService(store, config=config)


owner_option = click.option("--owner", required=True, help="Verified owner identity.")


# ---------------------------------------------------------------------------
# session create
# ---------------------------------------------------------------------------


@session_group.command(name="create")
@owner_option
@click.option("--parent", default=None, help="Session this one follows up on.")
@click.option("--job-context", default=None, help="Job context as a JSON object.")
@click.option("--resume-context", default=None, help="Resume context as a JSON object.")
@click.option("--persona", default=None, help="Interviewer persona name.")
@click.pass_context
def session_create(
    ctx: click.Context,
    owner: str,
    parent: str | None,
    job_context: str | None,
    resume_context: str | None,
    persona: str | None,
) -> None:
    """Create a session and print its ID."""
    payload: dict[str, Any] = {}
    job = _parse_json_option("--job-context", job_context)
    if job is not None:
        payload["job_context"] = job
    resume = _parse_json_option("--resume-context", resume_context)
    if resume is not None:
        payload["resume_context"] = resume
    if persona is not None:
        payload["persona"] = persona

    try:
        result = ctx.obj["service"].create_session(payload, owner, parent_id=parent)
    except SessionChainError as exc:
        _fail(exc)

    console.print(f"[green]Session created:[/green] {result.session_id}")
    if result.parent_updated:
        console.print(f"[dim]Follow-up of {parent}[/dim]")


# ---------------------------------------------------------------------------
# session show / list
# ---------------------------------------------------------------------------


@session_group.command(name="show")
@click.argument("session_id")
@owner_option
@click.option("--json-output", is_flag=True, help="Output raw JSON instead of a table.")
@click.pass_context
def session_show(ctx: click.Context, session_id: str, owner: str, json_output: bool) -> None:
    """Display SESSION_ID."""
    try:
        record = ctx.obj["service"].get_session(session_id, owner)
    except SessionChainError as exc:
        _fail(exc)

    if json_output:
        console.print_json(record.model_dump_json(indent=2))
        return

    table = Table(title=f"Session {record.id[:8]}", show_lines=True)
    table.add_column("Field", style="bold cyan")
    table.add_column("Value")
    for name, value in record.model_dump(mode="json").items():
        rendered = value if isinstance(value, str) else json.dumps(value, default=str)
        table.add_row(name, rendered[:200])
    console.print(table)


@session_group.command(name="list")
@owner_option
@click.option("--limit", default=50, show_default=True, help="Maximum sessions to show.")
@click.pass_context
def session_list(ctx: click.Context, owner: str, limit: int) -> None:
    """List the owner's sessions, newest first."""
    try:
        records = ctx.obj["service"].list_sessions_for_owner(owner)
    except SessionChainError as exc:
        _fail(exc)

    if not records:
        console.print("[yellow]No sessions found.[/yellow]")
        return

    console.print(_session_table("Sessions", records[:limit]))
    console.print(f"\n[dim]Showing {min(limit, len(records))} of {len(records)} sessions.[/dim]")


# ---------------------------------------------------------------------------
# session chain / spaces
# ---------------------------------------------------------------------------


@session_group.command(name="chain")
@click.argument("session_id")
@owner_option
@click.pass_context
def session_chain(ctx: click.Context, session_id: str, owner: str) -> None:
    """Show the chain containing SESSION_ID, oldest first."""
    try:
        result = ctx.obj["service"].chain_for_session(session_id, owner)
    except SessionChainError as exc:
        _fail(exc)

    console.print(_session_table(f"Chain of {session_id[:8]}", result.sessions))
    for warning in result.warnings:
        console.print(f"[yellow]Warning:[/yellow] {warning}")


@session_group.command(name="spaces")
@owner_option
@click.pass_context
def session_spaces(ctx: click.Context, owner: str) -> None:
    """Show the latest session of every chain."""
    try:
        spaces = ctx.obj["service"].list_spaces(owner)
    except SessionChainError as exc:
        _fail(exc)

    if not spaces:
        console.print("[yellow]No sessions found.[/yellow]")
        return

    table = Table(title="Spaces")
    table.add_column("Head", style="cyan")
    table.add_column("Root")
    table.add_column("Stage", justify="right")
    table.add_column("Kind")
    for space in spaces:
        table.add_row(
            space.head.id,
            _short(space.root_id),
            str(space.stage),
            "space" if space.is_space else "single",
        )
    console.print(table)


# ---------------------------------------------------------------------------
# session update
# ---------------------------------------------------------------------------


@session_group.command(name="update")
@click.argument("session_id")
@owner_option
@click.option(
    "--set",
    "assignments",
    multiple=True,
    required=True,
    help="Payload field as KEY=VALUE; VALUE is parsed as JSON when possible.",
)
@click.pass_context
def session_update(
    ctx: click.Context, session_id: str, owner: str, assignments: tuple[str, ...]
) -> None:
    """Set payload fields on SESSION_ID."""
    changes = dict(_parse_assignment(raw) for raw in assignments)
    try:
        ctx.obj["service"].update_payload(session_id, owner, changes)
    except SessionChainError as exc:
        _fail(exc)
    except ValueError as exc:
        console.print(f"[red]Error:[/red] {exc}")
        sys.exit(1)
    console.print(f"[green]Updated[/green] {session_id}: {', '.join(sorted(changes))}")


# ---------------------------------------------------------------------------
# session delete / abandon
# ---------------------------------------------------------------------------


@session_group.command(name="delete")
@click.argument("session_id")
@owner_option
@click.option("--cascade", is_flag=True, help="Delete the entire chain.")
@click.pass_context
def session_delete(ctx: click.Context, session_id: str, owner: str, cascade: bool) -> None:
    """Delete SESSION_ID (and its chain with --cascade)."""
    try:
        result = ctx.obj["service"].delete_session(session_id, owner, cascade=cascade)
    except SessionChainError as exc:
        _fail(exc)

    console.print(f"[green]Deleted {len(result.deleted_ids)} session(s):[/green]")
    for deleted_id in result.deleted_ids:
        console.print(f"  {deleted_id}")
    for warning in result.warnings:
        console.print(f"[yellow]Warning:[/yellow] {warning}")


@session_group.command(name="abandon")
@click.argument("session_id")
@owner_option
@click.pass_context
def session_abandon(ctx: click.Context, session_id: str, owner: str) -> None:
    """Discard an unused follow-up SESSION_ID and reopen its parent."""
    try:
        result = ctx.obj["service"].abandon_session(session_id, owner)
    except SessionChainError as exc:
        _fail(exc)
    console.print(f"[green]Abandoned[/green] {', '.join(result.deleted_ids)}")


# ---------------------------------------------------------------------------
# session export
# ---------------------------------------------------------------------------


@session_group.command(name="export")
@click.argument("session_id")
@owner_option
@click.option(
    "--format",
    "output_format",
    default="json",
    show_default=True,
    type=click.Choice(["json", "yaml"]),
)
@click.pass_context
def session_export(
    ctx: click.Context, session_id: str, owner: str, output_format: str
) -> None:
    """Print the whole chain containing SESSION_ID."""
    from session_chain.session.serializer import SessionSerializer

    try:
        result = ctx.obj["service"].chain_for_session(session_id, owner)
    except SessionChainError as exc:
        _fail(exc)
    click.echo(SessionSerializer().dump_many(result.sessions, format=output_format))  # type: ignore[arg-type]


if __name__ == "__main__":
    cli()
