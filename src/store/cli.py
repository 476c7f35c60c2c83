"""CLI for store maintenance."""

import argparse
import sys
from datetime import datetime
from pathlib import Path

from common.env import env
from common.logger import error, progress, setup_logging, success, warning
from store.db import DatabaseError
from store.db.migrations import MigrationRunner
from store.legacy_import import migrate_from_json, migration_info
from store.maintenance import backup_database, database_stats, vacuum_database
from store.store import Store


def _store(args) -> Store:
    return Store(args.database)


def cmd_init(args):
    """Create the store, or upgrade an existing one to the current schema."""
    with _store(args) as store:
        success(f"Store ready at {store.adapter.db_path}")


def cmd_status(args):
    """Show applied and pending schema migrations."""
    db_path = Path(args.database)
    if not db_path.exists():
        error(f"Database not found: {db_path}")
        progress("Run 'marginalia-db init' first to create it.")
        sys.exit(1)

    store = _store(args)
    store.adapter.connect()
    try:
        runner = MigrationRunner(store.adapter)
        current = runner.get_current_version()
        progress(f"Schema version: {current} (latest {runner.latest_version})")
        for status in runner.status():
            mark = "applied" if status.applied else "pending"
            progress(f"  {status.version:>3}  {status.name:<32} {mark} {status.applied_at or ''}")
    finally:
        store.close()


def cmd_stats(args):
    """Print row counts."""
    with _store(args) as store:
        stats = database_stats(store.adapter)
    for name, count in stats.to_dict().items():
        progress(f"{name:<12} {count}")


def cmd_backup(args):
    """Copy the live store to a backup file."""
    destination = args.output
    if destination is None:
        stamp = datetime.now().strftime("%Y%m%d-%H%M%S")
        source = Path(args.database)
        destination = source.with_name(f"{source.stem}-{stamp}{source.suffix}")

    with _store(args) as store:
        path = backup_database(store.adapter, destination)
    success(f"Backup written to {path}")


def cmd_vacuum(args):
    """Reclaim free pages."""
    with _store(args) as store:
        vacuum_database(store.adapter)
    success("Store vacuumed")


def cmd_import_json(args):
    """Import the legacy books.json library."""
    json_path = Path(args.json) if args.json else env.legacy_json_path()

    info = migration_info(json_path)
    if not info.has_json_file:
        warning(f"No legacy library at {json_path}")
        return
    progress(f"Found {info.book_count} book(s) in {json_path} ({info.json_file_size} bytes)")

    with _store(args) as store:
        result = migrate_from_json(store, json_path)

    if not result.success:
        error(result.message)
        sys.exit(1)
    success(result.message)


COMMANDS = {
    "init": cmd_init,
    "status": cmd_status,
    "stats": cmd_stats,
    "backup": cmd_backup,
    "vacuum": cmd_vacuum,
    "import-json": cmd_import_json,
}


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="marginalia-db",
        description="Maintenance commands for the marginalia store",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument(
        "--database",
        "-d",
        default=None,
        help="SQLite database file (default: MARGINALIA_DB_PATH or ./data/books.db)",
    )
    parser.add_argument(
        "--log-level",
        default="INFO",
        help="Logging level (default: INFO)",
    )

    subparsers = parser.add_subparsers(dest="command", help="Command to run")

    subparsers.add_parser("init", help="Create or upgrade the store")
    subparsers.add_parser("status", help="Show schema migration status")
    subparsers.add_parser("stats", help="Count books, annotations, cards and connections")

    backup_parser = subparsers.add_parser("backup", help="Back up the store")
    backup_parser.add_argument(
        "--output",
        "-o",
        default=None,
        help="Backup file (default: timestamped copy next to the store)",
    )

    subparsers.add_parser("vacuum", help="Rebuild the database file")

    import_parser = subparsers.add_parser(
        "import-json",
        help="Import the legacy books.json library",
        description=(
            "Import books and highlights from the pre-SQLite books.json file.\n\n"
            "Books whose file path is already stored are skipped. The JSON file\n"
            "is kept and copied to <file>.backup.\n"
        ),
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    import_parser.add_argument(
        "json",
        nargs="?",
        default=None,
        help="Path to books.json (default: MARGINALIA_LEGACY_JSON or ./data/books.json)",
    )

    return parser


def main(argv: list[str] | None = None):
    """Main entry point for the store CLI."""
    parser = build_parser()
    args = parser.parse_args(argv)

    if not args.command:
        parser.print_help()
        sys.exit(1)

    setup_logging(args.log_level)
    if args.database is None:
        args.database = str(env.database_path())

    try:
        COMMANDS[args.command](args)
    except DatabaseError as e:
        error(str(e))
        sys.exit(1)


if __name__ == "__main__":
    main()
