import logging
import os
from contextlib import contextmanager
from functools import lru_cache

from sqlalchemy import Engine
from sqlalchemy.exc import SQLAlchemyError
from sqlmodel import Session, SQLModel, create_engine

from scrapline.config import settings
from scrapline.exceptions import PickupError, StoreUnavailableError
from scrapline.models import Listing, User  # noqa: F401

logger = logging.getLogger(__name__)


def get_database_url() -> str:
    if os.environ.get("PYTEST_VERSION"):
        return os.environ.get("TEST_DATABASE_URL", settings.TEST_DATABASE_URL)
    return os.environ.get("DATABASE_URL", settings.DATABASE_URL)


@lru_cache
def get_engine(database_url: str | None = None) -> Engine:
    url = database_url or get_database_url()

    if url.startswith("sqlite"):
        return create_engine(
            url,
            echo=settings.DATABASE_ECHO,
            connect_args={"check_same_thread": False},
        )

    return create_engine(
        url,
        echo=settings.DATABASE_ECHO,
        pool_size=10,
        max_overflow=20,
        pool_timeout=30,
        pool_recycle=1800,
    )


def initialize_database(engine: Engine):
    """Create the database tables."""
    try:
        SQLModel.metadata.create_all(engine)
        logger.info("Database initialized successfully.")
    except SQLAlchemyError as e:
        logger.error(f"Failed to initialize database: {e}")
        raise StoreUnavailableError("Failed to initialize database", original_error=e)


def drop_database(engine: Engine):
    """Drop the database tables."""
    SQLModel.metadata.drop_all(engine)
    logger.info("Database dropped successfully.")


@contextmanager
def get_db_session(engine: Engine):
    session = Session(engine, expire_on_commit=False)
    try:
        yield session
        session.commit()
    except PickupError:
        session.rollback()
        raise
    except SQLAlchemyError as e:
        session.rollback()
        logger.error(f"Database operation failed: {e}")
        # Raise a concealed database error
        raise StoreUnavailableError("Database operation failed", original_error=e)
    finally:
        session.close()
