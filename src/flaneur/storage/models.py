"""Declarative base shared by all Flaneur tables."""

import uuid
from datetime import datetime, timezone

from sqlalchemy.orm import DeclarativeBase


class Base(DeclarativeBase):
    """Base class for all models."""
    pass


def new_uuid() -> str:
    """Primary key default for account tables."""
    return str(uuid.uuid4())


def utcnow() -> datetime:
    """Naive UTC timestamp, matching what the ledger columns store."""
    return datetime.now(timezone.utc).replace(tzinfo=None)
