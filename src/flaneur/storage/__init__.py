"""Storage layer: declarative base and database session management."""

from flaneur.storage.db import Database, db
from flaneur.storage.models import Base

__all__ = ["Base", "Database", "db"]
