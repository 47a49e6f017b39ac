"""Database connection and session management."""

from contextlib import contextmanager
from typing import Any, Generator

from sqlalchemy import create_engine
from sqlalchemy.engine import make_url
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from flaneur.logging_config import get_logger
from flaneur.settings import settings
from flaneur.storage.models import Base

logger = get_logger(__name__)


def _engine_options(database_url: str, timeout: float) -> dict[str, Any]:
    """Build create_engine() keyword arguments that bound every store call."""
    url = make_url(database_url)
    options: dict[str, Any] = {"pool_pre_ping": True}

    if url.get_backend_name() == "sqlite":
        options["connect_args"] = {"timeout": timeout, "check_same_thread": False}
        # In-memory databases only exist on one connection
        if url.database in (None, "", ":memory:"):
            options["poolclass"] = StaticPool
        return options

    options["pool_timeout"] = timeout
    if url.get_backend_name() == "postgresql":
        options["connect_args"] = {
            "connect_timeout": max(1, int(timeout)),
            "options": f"-c statement_timeout={int(timeout * 1000)}",
        }
    return options


class Database:
    """Database connection manager."""

    def __init__(self, database_url: str | None = None, timeout: float | None = None):
        """Initialize database connection.

        Args:
            database_url: Database URL (defaults to settings)
            timeout: Per-call store timeout in seconds (defaults to settings)
        """
        self.database_url = database_url or settings.database_url
        self.timeout = timeout if timeout is not None else settings.store_timeout_seconds
        self.engine = create_engine(
            self.database_url,
            echo=settings.database_echo,
            **_engine_options(self.database_url, self.timeout),
        )
        self.SessionLocal = sessionmaker(
            autocommit=False,
            autoflush=False,
            expire_on_commit=False,
            bind=self.engine,
        )
        logger.info("database_initialized", backend=self.engine.dialect.name)

    def create_tables(self) -> None:
        """Create all tables in the database."""
        # Register every mapped class on Base.metadata
        import flaneur.accounts.models  # noqa: F401
        import flaneur.referral.models  # noqa: F401

        Base.metadata.create_all(bind=self.engine)
        logger.info("tables_created")

    @contextmanager
    def session(self) -> Generator[Session, None, None]:
        """Provide a transactional scope for database operations.

        Yields:
            Database session
        """
        session = self.SessionLocal()
        try:
            yield session
            session.commit()
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()


# Global database instance
db = Database()
