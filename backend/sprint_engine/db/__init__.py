"""Database package: declarative base, engine factories and ORM tables."""

from sprint_engine.db.base import (
    Base,
    create_engine_from_settings,
    create_session_maker,
    init_db,
)

__all__ = ["Base", "create_engine_from_settings", "create_session_maker", "init_db"]
