"""Longbox CLI entry point."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Optional

import typer

from longbox.comicrack import import_comicrack
from longbox.config import DEFAULT_CONFIG_PATH, LongboxConfig, load_config, write_default_config
from longbox.database import create_db_engine, init_db, reset_database
from longbox.errors import ScanError
from longbox.logging_config import setup_logging
from longbox.migrations import get_status, run_migrations, stamp_if_needed
from longbox.repository import CatalogStore
from longbox.scanner import Scanner


__version__ = "0.1.0"

app = typer.Typer(add_completion=False, help="Longbox comic library CLI")
logger = logging.getLogger("longbox")


def _ensure_config() -> LongboxConfig:
    try:
        config = load_config()
    except FileNotFoundError:
        typer.echo("[ERROR] config.ini not found. Run: longbox init --library /path/to/comics")
        raise typer.Exit(code=1)
    setup_logging(config.log_level)
    return config


def _open_store(config: LongboxConfig) -> CatalogStore:
    engine = create_db_engine(config.database_path, config.database.pool_size)
    init_db(engine)
    stamp_if_needed(engine)
    return CatalogStore(engine)


@app.command()
def init(
    library: Path = typer.Option(..., "--library", help="Path to your comics folder"),
    name: str = typer.Option("My Comic Library", "--name", help="Library name"),
) -> None:
    """Initialize config.ini with default settings."""
    write_default_config(DEFAULT_CONFIG_PATH, library, name)
    typer.echo(f"[OK] Config created at {DEFAULT_CONFIG_PATH}")


@app.command()
def scan(
    path: Optional[Path] = typer.Option(None, "--path", help="Scan a subfolder"),
) -> None:
    """Scan the library and index new or changed archives."""
    config = _ensure_config()
    store = _open_store(config)
    scanner = Scanner(store, config.scanner)

    try:
        stats = scanner.run(path or config.library_path)
    except ScanError as exc:
        typer.echo(f"[ERROR] {exc}")
        raise typer.Exit(code=1)

    typer.echo(
        "✓ Scan completed: "
        f"{stats['indexed']} indexed, "
        f"{stats['skipped']} unchanged, "
        f"{stats['unsupported']} unsupported, "
        f"{stats['failed']} failed."
    )


@app.command("import-comicrack")
def import_comicrack_command(
    db_file: Path = typer.Argument(..., help="ComicRack ComicDb.xml"),
) -> None:
    """Import metadata and read state from a ComicRack database."""
    config = _ensure_config()
    if not db_file.is_file():
        typer.echo(f"[ERROR] {db_file} not found")
        raise typer.Exit(code=1)

    store = _open_store(config)
    stats = import_comicrack(db_file, store, config.library_path, config.comicrack)
    typer.echo(
        f"✓ Import completed: {stats['imported']} imported, "
        f"{stats['skipped']} skipped, {stats['marked']} marked read."
    )


@app.command()
def stats() -> None:
    """Show library statistics."""
    config = _ensure_config()
    counts = _open_store(config).stats()

    size_gb = counts["total_size"] / (1024 ** 3)
    typer.echo("Library Statistics:")
    typer.echo(f"  Total issues: {counts['issues']}")
    typer.echo(f"  Total pages: {counts['pages']}")
    typer.echo(f"  Readers: {counts['users']}")
    typer.echo(f"  Total size: {size_gb:.1f} GB")


@app.command()
def migrate(
    check: bool = typer.Option(False, "--check", help="Print status and exit (1 if not at head)"),
) -> None:
    """Run pending database migrations (or check status with --check)."""
    config = _ensure_config()
    engine = create_db_engine(config.database_path, config.database.pool_size)

    current, head = get_status(engine)

    if check:
        if current == head:
            typer.echo(f"[OK] Database at {head} (head).")
            raise typer.Exit(code=0)
        typer.echo(f"[WARN] Database behind, current: {current}, head: {head}")
        raise typer.Exit(code=1)

    if current == head:
        logger.info(f"Database already at {head} (head). Nothing to do.")
        raise typer.Exit(code=0)

    logger.info(f"Migrating database {current} -> {head} ...")
    run_migrations(engine, config.database_path, backup=True)
    logger.info("Migration complete.")


@app.command()
def reset(
    confirm: bool = typer.Option(False, "--confirm", help="Confirm destructive reset"),
) -> None:
    """Delete the catalog (including read marks and readers) and rescan."""
    if not confirm:
        typer.echo("[ERROR] This will delete your database. Use --confirm.")
        raise typer.Exit(code=1)

    config = _ensure_config()
    engine = create_db_engine(config.database_path, config.database.pool_size)
    reset_database(engine, config.database_path)
    stamp_if_needed(engine)

    typer.echo("[INFO] Database reset. Rescanning library...")
    Scanner(CatalogStore(engine), config.scanner).run(config.library_path)


if __name__ == "__main__":
    app()
