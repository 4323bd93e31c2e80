"""FMC Comic CLI entry point."""

from __future__ import annotations

import logging
from typing import Optional

import typer
from sqlmodel import Session

from server.config import DEFAULT_CONFIG_PATH, FmcConfig, get_config, write_default_config
from server.database import get_engine, init_db, reset_database
from server.errors import MappingError
from server.logging_config import setup_logging
from server.mapping import get_or_create_uuid, resolve_uuid
from server.migrations import get_status, run_migrations, stamp_if_needed
from server.models import MappingType
from server.repository import MappingRepository


__version__ = "2.0.0"

app = typer.Typer(add_completion=False, help="FMC Comic mapping server and reader CLI")
reader_app = typer.Typer(add_completion=False, help="Local reading history, bookmarks and progress")
app.add_typer(reader_app, name="reader")

logger = logging.getLogger("fmc")

STARTUP_BANNER = r"""
  ______ __  __  _____
 |  ____|  \/  |/ ____|
 | |__  | \  / | |
 |  __| | |\/| | |
 | |    | |  | | |____
 |_|    |_|  |_|\_____|
"""


def _migrate_to_head() -> None:
    init_db()
    stamp_if_needed()
    current, head = get_status()
    if current != head:
        logger.info(f"Migrating database {current} -> {head} ...")
        run_migrations(backup=True)
        logger.info("Migration complete.")
    else:
        logger.info(f"Database at {head} (up to date).")


@app.command()
def init(
    port: int = typer.Option(3001, "--port", help="Server port"),
    database_url: str = typer.Option("", "--database-url", help="SQLAlchemy URL (default: SQLite in DATA_DIR)"),
    backend_url: str = typer.Option("http://localhost:3001/api", "--backend-url", help="Mapping API used by the reader"),
) -> None:
    """Write config.ini with default settings."""
    path = write_default_config(
        DEFAULT_CONFIG_PATH, port=port, database_url=database_url, backend_url=backend_url
    )
    typer.echo(f"[OK] Config created at {path}")


@app.command()
def serve(
    host: Optional[str] = typer.Option(None, "--host", help="Server host"),
    port: Optional[int] = typer.Option(None, "--port", help="Server port"),
) -> None:
    """Start the mapping API server."""
    from server.api import run_server

    setup_logging()
    typer.echo(typer.style(STARTUP_BANNER, fg=typer.colors.CYAN, bold=True))
    config = get_config()
    _migrate_to_head()

    try:
        run_server(config, host=host, port=port)
    except KeyboardInterrupt:
        pass


@app.command()
def migrate(
    check: bool = typer.Option(False, "--check", help="Print status and exit (1 if not at head)"),
) -> None:
    """Run pending database migrations (or check status with --check)."""
    setup_logging()
    current, head = get_status()

    if check:
        if current == head:
            typer.echo(f"[OK] Database at {head} (head).")
            raise typer.Exit(code=0)
        typer.echo(f"[WARN] Database behind: current {current}, head {head}")
        raise typer.Exit(code=1)

    _migrate_to_head()


@app.command("map")
def map_slug(
    slug: str = typer.Argument(..., help="Series or chapter slug"),
    mapping_type: MappingType = typer.Option(MappingType.SERIES, "--type", help="series or chapter"),
) -> None:
    """Print the UUID for a slug, creating the mapping if needed."""
    init_db()
    with Session(get_engine()) as session:
        try:
            typer.echo(get_or_create_uuid(session, slug, mapping_type.value))
        except MappingError as exc:
            typer.echo(f"[ERROR] {exc.message}")
            raise typer.Exit(code=1)


@app.command()
def resolve(mapping_uuid: str = typer.Argument(..., help="UUID to resolve")) -> None:
    """Print the slug and type behind a UUID."""
    init_db()
    with Session(get_engine()) as session:
        try:
            mapping = resolve_uuid(session, mapping_uuid)
        except MappingError as exc:
            typer.echo(f"[ERROR] {exc.message}")
            raise typer.Exit(code=1)
    typer.echo(f"{mapping.slug} ({mapping.type})")


@app.command()
def stats(
    recent: int = typer.Option(5, "--recent", help="Most recent mappings to list"),
) -> None:
    """Show mapping statistics."""
    init_db()
    with Session(get_engine()) as session:
        repo = MappingRepository(session)
        total = repo.count()
        series = repo.count(MappingType.SERIES.value)
        chapters = repo.count(MappingType.CHAPTER.value)
        latest = [(m.uuid, m.slug, m.type) for m in repo.list_recent(recent)] if recent > 0 else []

    typer.echo("Mapping Statistics:")
    typer.echo(f"  Total mappings: {total}")
    typer.echo(f"  Series: {series}")
    typer.echo(f"  Chapters: {chapters}")
    if latest:
        typer.echo("Recent mappings:")
        for mapping_uuid, slug, mapping_type in latest:
            typer.echo(f"  {mapping_uuid}  {slug} ({mapping_type})")


@app.command()
def reset(
    confirm: bool = typer.Option(False, "--confirm", help="Confirm destructive reset"),
) -> None:
    """Drop every mapping and recreate the schema."""
    if not confirm:
        typer.echo("[ERROR] This will delete every slug/UUID mapping. Use --confirm.")
        raise typer.Exit(code=1)
    reset_database()
    typer.echo("[INFO] Database reset.")


# --- reader ---


def _library(config: Optional[FmcConfig] = None):
    from reader import JsonFileStorage, LocalLibrary

    config = config or get_config()
    return LocalLibrary(JsonFileStorage(config.storage_path))


@reader_app.command("history")
def reader_history(limit: int = typer.Option(20, "--limit", help="Entries to show")) -> None:
    """Show recently read comics, newest first."""
    items = _library().get_history()[:limit]
    if not items:
        typer.echo("No reading history.")
        return
    for item in items:
        when = item.read_at.strftime("%Y-%m-%d %H:%M")
        typer.echo(
            f"{when}  {item.comic.title or item.comic.slug}: "
            f"{item.chapter.title or item.chapter.slug} ({item.progress:.0f}%)"
        )


@reader_app.command("bookmarks")
def reader_bookmarks() -> None:
    """List bookmarked comics."""
    bookmarks = _library().get_bookmarks()
    if not bookmarks:
        typer.echo("No bookmarks.")
        return
    for bookmark in bookmarks:
        line = f"{bookmark.comic.title or bookmark.comic.slug} [{bookmark.comic.slug}]"
        if bookmark.last_read:
            line += f"  last read: {bookmark.last_read.chapter_title or bookmark.last_read.chapter_slug}"
        typer.echo(line)


@reader_app.command("progress")
def reader_progress(comic: Optional[str] = typer.Argument(None, help="Comic slug")) -> None:
    """Show reading progress for one comic or all of them."""
    library = _library()
    records = [library.get_progress(comic)] if comic else library.list_progress()
    records = [r for r in records if r is not None]
    if not records:
        typer.echo("No reading progress.")
        return
    for record in records:
        total = f"/{record.total_chapters}" if record.total_chapters else ""
        typer.echo(
            f"{record.comic_slug}: {record.chapter_title or record.chapter_slug} "
            f"{record.progress:.0f}%  ({len(record.read_chapters)}{total} chapters read)"
        )


@reader_app.command("clear")
def reader_clear(
    history_only: bool = typer.Option(False, "--history", help="Only clear reading history"),
    confirm: bool = typer.Option(False, "--confirm", help="Confirm clearing everything"),
) -> None:
    """Clear reading history, or every stored reader record with --confirm."""
    library = _library()
    if history_only:
        library.clear_history()
        typer.echo("[INFO] Reading history cleared.")
        return
    if not confirm:
        typer.echo("[ERROR] This removes history, bookmarks, progress and settings. Use --confirm.")
        raise typer.Exit(code=1)
    removed = library.clear_all()
    typer.echo(f"[INFO] Removed {removed} stored entries.")


@reader_app.command("updates")
def reader_updates() -> None:
    """Check bookmarked comics for chapters newer than the last one read."""
    from reader.komikcast import KomikCastClient
    from reader.notifications import check_new_chapters

    setup_logging(log_to_file=False)
    config = get_config()
    with KomikCastClient(config.komikcast) as client:
        updates = check_new_chapters(_library(config), client)
    if not updates:
        typer.echo("No new chapters.")
        return
    for comic, chapter in updates:
        typer.echo(f"{comic.title or comic.slug}: new chapter {chapter.title or chapter.slug}")


if __name__ == "__main__":
    app()
