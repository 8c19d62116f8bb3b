"""Database initialization utilities."""

from sqlalchemy.engine import Engine

from placekeeper.db.base import Base


def init_db(engine: Engine) -> None:
    """Create tables and indexes that do not exist yet."""
    from placekeeper import models  # noqa: F401

    Base.metadata.create_all(bind=engine)
