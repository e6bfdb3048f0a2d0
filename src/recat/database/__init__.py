"""Database layer for recat application."""

from recat.database.base import Database
from recat.database.factories import create_database, create_sqlite_database

__all__ = ["Database", "create_database", "create_sqlite_database"]
