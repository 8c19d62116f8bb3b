"""
Rebuild the place coordinates index
-----------------------------------
Same step the weekly cleanup runs, available on its own.
"""

import sys
from pathlib import Path

from dotenv import load_dotenv

PROJECT_ROOT = Path(__file__).resolve().parent.parent
load_dotenv(PROJECT_ROOT / ".env")

sys.path.insert(0, str(PROJECT_ROOT))

from sqlalchemy.exc import SQLAlchemyError

from placekeeper.core.config import get_settings
from placekeeper.core.errors import StoreUnavailable
from placekeeper.db.session import check_connection, make_engine, make_session_factory
from placekeeper.models.place import COORDINATES_INDEX
from placekeeper.services.store import rebuild_coordinates_index


def create_indexes() -> int:
    engine = make_engine(str(get_settings().database_url))
    try:
        check_connection(engine)
    except StoreUnavailable as exc:
        print(f"[ERROR] {exc}", file=sys.stderr)
        return 1

    print(f"Rebuilding {COORDINATES_INDEX}...")
    db = make_session_factory(engine)()
    try:
        rebuild_coordinates_index(db)
    except SQLAlchemyError as exc:
        print(f"  index rebuild failed: {exc}", file=sys.stderr)
        return 1
    finally:
        db.close()
        engine.dispose()
    print("  done")
    return 0


if __name__ == "__main__":
    sys.exit(create_indexes())
