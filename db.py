"""
SeaNotes Database Utilities

Copyright (c) 2025 Brent Lefebure / EhkoLabs

Initialize and manage the SeaNotes database.
"""

import logging
import sqlite3
from pathlib import Path
from typing import Optional

logger = logging.getLogger(__name__)

# Default database location
DEFAULT_DB_NAME = "seanotes.db"


def get_schema_path() -> Path:
    """Get path to the schema SQL file."""
    return get_migrations_dir() / "schema_v0_1.sql"


def get_migrations_dir() -> Path:
    """Get path to migrations directory."""
    return Path(__file__).parent / "seanotes" / "migrations"


def apply_migrations(db_path: Path) -> list:
    """
    Apply any pending migrations to the database.

    Migrations are SQL files named migration_v*.sql in the migrations directory,
    applied in name order. Each must be safe to re-run.

    Args:
        db_path: Path to database

    Returns:
        List of applied migration names
    """
    migration_files = sorted(get_migrations_dir().glob("migration_v*.sql"))
    applied = []

    if not migration_files:
        return applied

    conn = sqlite3.connect(str(db_path))
    try:
        for mig_path in migration_files:
            try:
                conn.executescript(mig_path.read_text(encoding="utf-8"))
                applied.append(mig_path.name)
            except sqlite3.OperationalError as e:
                # Column or table already present from an earlier run
                logger.debug(f"Migration {mig_path.name} skipped: {e}")
        conn.commit()
    finally:
        conn.close()

    return applied


def init_database(db_path: Optional[Path] = None, force: bool = False) -> Path:
    """
    Initialize a new SeaNotes database.

    Args:
        db_path: Path for the database file (defaults to ./seanotes.db)
        force: If True, overwrite existing database

    Returns:
        Path to the created database
    """
    db_path = Path(db_path) if db_path is not None else Path.cwd() / DEFAULT_DB_NAME

    if db_path.exists() and not force:
        logger.info(f"Database already exists: {db_path}")
        return db_path

    db_path.parent.mkdir(parents=True, exist_ok=True)

    if db_path.exists() and force:
        db_path.unlink()
        logger.info(f"Removed existing database: {db_path}")

    schema_path = get_schema_path()
    if not schema_path.exists():
        raise FileNotFoundError(f"Schema not found: {schema_path}")

    conn = sqlite3.connect(str(db_path))
    try:
        conn.executescript(schema_path.read_text(encoding="utf-8"))
        conn.commit()
    finally:
        conn.close()

    applied = apply_migrations(db_path)
    if applied:
        logger.info(f"Applied migrations: {', '.join(applied)}")

    logger.info(f"Database initialized: {db_path}")
    return db_path


def ensure_database(db_path: Path) -> Path:
    """Create the database when missing, otherwise bring migrations up to date."""
    db_path = Path(db_path)
    if not db_path.exists():
        return init_database(db_path)
    apply_migrations(db_path)
    return db_path


def check_database(db_path: Path) -> dict:
    """
    Check database status and table counts.

    Args:
        db_path: Path to database

    Returns:
        Dict with table names and row counts
    """
    db_path = Path(db_path)
    if not db_path.exists():
        return {"error": "Database not found"}

    conn = sqlite3.connect(str(db_path))
    try:
        tables = [
            row[0] for row in
            conn.execute("SELECT name FROM sqlite_master WHERE type='table' ORDER BY name")
        ]

        result = {"tables": {}}
        for table in tables:
            if table.startswith("sqlite_"):
                continue
            result["tables"][table] = conn.execute(f"SELECT COUNT(*) FROM {table}").fetchone()[0]
    finally:
        conn.close()

    result["total_tables"] = len(result["tables"])
    result["total_rows"] = sum(result["tables"].values())

    return result


def get_database_path(data_dir: Optional[Path] = None) -> Path:
    """
    Get the standard database path for a data directory.

    Args:
        data_dir: Optional data directory (defaults to ./_data)

    Returns:
        Path to database file
    """
    if data_dir is None:
        data_dir = Path.cwd() / "_data"

    return Path(data_dir) / DEFAULT_DB_NAME


# =============================================================================
# CLI
# =============================================================================

USAGE = """Usage: python db.py <command> [path] [--force]

Commands:
  init           Create the database from the schema
  migrate        Apply migration_v*.sql files
  check          Show row counts per table
  purge-tokens   Delete expired sign-in and reset tokens
  schema         Print the schema file location

Without a path, SEANOTES_DATA_DIR/seanotes.db is used."""


def _default_path() -> Path:
    import os
    return get_database_path(Path(os.environ.get("SEANOTES_DATA_DIR", "./_data")))


def main(argv=None):
    import sys

    args = list(sys.argv[1:] if argv is None else argv)
    logging.basicConfig(level=logging.INFO, format="%(message)s")

    if not args:
        print(USAGE)
        return 1

    force = "--force" in args
    positional = [a for a in args if not a.startswith("--")]
    cmd = positional[0].lower()
    path = Path(positional[1]) if len(positional) > 1 else _default_path()

    if cmd == "schema":
        print(get_schema_path())
        return 0

    if cmd == "init":
        if path.exists() and not force:
            print(f"{path} already exists (pass --force to recreate it)")
            return 1
        init_database(path, force=force)
        return 0

    if not path.exists():
        print(f"No database at {path}; run 'python db.py init' first")
        return 1

    if cmd == "migrate":
        applied = apply_migrations(path)
        print(f"Applied: {', '.join(applied)}" if applied else "Schema is up to date")
    elif cmd == "check":
        result = check_database(path)
        print(f"{path}: {result['total_tables']} tables, {result['total_rows']} rows")
        width = max((len(name) for name in result["tables"]), default=0)
        for table, count in sorted(result["tables"].items()):
            print(f"  {table.ljust(width)}  {count}")
    elif cmd == "purge-tokens":
        from seanotes.database import Database

        removed = Database(path).tokens.delete_expired()
        print(f"Removed {removed} expired token(s)")
    else:
        print(f"Unknown command: {cmd}\n\n{USAGE}")
        return 1
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
