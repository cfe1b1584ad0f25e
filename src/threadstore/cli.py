"""
threadstore CLI - administrative commands for a store.

Covers schema migration, status, index maintenance and ad-hoc search. Thread
and message authoring belongs to the embedding application.
"""

import logging
from typing import Optional

import typer
from rich.console import Console
from rich.table import Table

from threadstore.config import settings
from threadstore.db.connection import create_store_engine
from threadstore.db.migrations import (
    applied_versions,
    apply_migrations,
    pending_migrations,
)
from threadstore.exceptions import MigrationError, SearchQueryError
from threadstore.logging_config import setup_logging
from threadstore.startup import StartupCheckError, run_all_startup_checks
from threadstore.store import ThreadStore

app = typer.Typer(
    name="threadstore",
    help="threadstore - threaded message archive storage",
    no_args_is_help=True,
)

console = Console()


def _init_logging() -> None:
    try:
        setup_logging(context="cli", config=settings)
    except PermissionError:
        logging.basicConfig(level=logging.INFO)


@app.command()
def migrate() -> None:
    """
    Apply pending schema migrations.
    """
    _init_logging()
    engine = create_store_engine(settings)
    try:
        applied = apply_migrations(engine)
    except MigrationError as e:
        console.print(f"[bold red]Migration failed:[/bold red] {e}")
        console.print(f"  Schema left at: v{e.last_applied}")
        raise typer.Exit(1)
    finally:
        engine.dispose()

    if applied:
        versions = ", ".join(f"v{v}" for v in applied)
        console.print(f"[green]✓ Applied {len(applied)} migration(s):[/green] {versions}")
    else:
        console.print("[green]✓ Schema is current[/green]")


@app.command()
def status() -> None:
    """
    Show applied and pending schema versions.
    """
    engine = create_store_engine(settings)
    try:
        applied = applied_versions(engine)
        pending = pending_migrations(engine)
    finally:
        engine.dispose()

    console.print(f"[bold]Database:[/bold] {settings.database_url}")
    console.print(f"  Current version: v{applied[-1] if applied else 0}")
    console.print(f"  Applied: {', '.join(f'v{v}' for v in applied) or 'none'}")
    if pending:
        console.print(f"[yellow]  Pending: {len(pending)}[/yellow]")
        for migration in pending:
            console.print(f"    - {migration}")
    else:
        console.print("[green]  Pending: none[/green]")


@app.command()
def reindex() -> None:
    """
    Rebuild the search index from message content.
    """
    _init_logging()
    with ThreadStore.open(settings) as store:
        store.rebuild_search_index()
        console.print(
            f"[green]✓ Search index rebuilt[/green] ({store.search_index_size()} entries)"
        )


@app.command()
def check() -> None:
    """
    Run startup checks (connection, schema version, search index).
    """
    _init_logging()
    engine = create_store_engine(settings)
    store = ThreadStore(engine, settings)
    try:
        run_all_startup_checks(store)
    except StartupCheckError as e:
        console.print(f"[bold red]{e}[/bold red]")
        raise typer.Exit(1)
    finally:
        store.close()
    console.print("[green]✓ All checks passed[/green]")


@app.command()
def search(
    query: str = typer.Argument(..., help="Free-text query"),
    thread: Optional[str] = typer.Option(None, help="Restrict to a thread id"),
    limit: int = typer.Option(20, help="Maximum number of results"),
) -> None:
    """
    Search message content.
    """
    with ThreadStore.open(settings) as store:
        try:
            results = store.search_messages(query, thread_id=thread)
            table = Table("id", "thread", "role", "content")
            shown = 0
            for message in results:
                if shown >= limit:
                    break
                table.add_row(
                    message.id[:8],
                    message.thread_id[:8],
                    message.role.value,
                    message.content[:80],
                )
                shown += 1
            results.close()
        except SearchQueryError as e:
            console.print(f"[bold red]Error:[/bold red] {e}")
            raise typer.Exit(2)

        if shown == 0:
            console.print("[yellow]No matches[/yellow]")
        else:
            console.print(table)


if __name__ == "__main__":
    app()
