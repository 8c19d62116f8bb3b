"""
Database schema setup
---------------------
Creates the places and job_runs tables if they do not exist yet.
"""

import sys
from pathlib import Path

from dotenv import load_dotenv

PROJECT_ROOT = Path(__file__).resolve().parent.parent
load_dotenv(PROJECT_ROOT / ".env")

sys.path.insert(0, str(PROJECT_ROOT))

from sqlalchemy import inspect

from placekeeper.core.config import get_settings
from placekeeper.core.errors import StoreUnavailable
from placekeeper.db.init_db import init_db
from placekeeper.db.session import check_connection, make_engine


def init_db_schema() -> int:
    """Create tables and list what the database now contains."""
    engine = make_engine(str(get_settings().database_url))
    try:
        check_connection(engine)
    except StoreUnavailable as exc:
        print(f"[ERROR] {exc}", file=sys.stderr)
        return 1

    print("Creating tables...")
    init_db(engine)

    print("\nTables:")
    inspector = inspect(engine)
    for table in sorted(inspector.get_table_names()):
        indexes = ", ".join(ix["name"] for ix in inspector.get_indexes(table))
        print(f"  - {table} ({indexes or 'no indexes'})")
    engine.dispose()
    return 0


if __name__ == "__main__":
    sys.exit(init_db_schema())
