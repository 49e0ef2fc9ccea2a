"""
Inventory Database Configuration
SQLAlchemy engine, session factory and declarative base
"""
from sqlalchemy import create_engine, MetaData, text
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, sessionmaker, declarative_base
from sqlalchemy.orm.exc import StaleDataError
from contextlib import contextmanager
from typing import Generator
import logging

from .config import settings
from .exceptions import ConflictError, InvariantViolationError

logger = logging.getLogger("inventory.database")

# SQLSTATE for unique_violation
UNIQUE_VIOLATION = "23505"


def _engine_options(url: str) -> dict:
    """Pool options per backend; SQLite runs without a queue pool"""
    if url.startswith("sqlite"):
        return {"connect_args": {"check_same_thread": False}}
    return {
        "pool_size": settings.DATABASE_POOL_SIZE,
        "max_overflow": settings.DATABASE_MAX_OVERFLOW,
        "pool_recycle": 3600,  # Recycle connections after 1 hour
        "pool_pre_ping": True,
    }


# Create SQLAlchemy engine
engine = create_engine(
    settings.DATABASE_URL,
    echo=settings.DEBUG,
    **_engine_options(settings.DATABASE_URL),
)

# Create SessionLocal class for database sessions
SessionLocal = sessionmaker(
    autocommit=False,
    autoflush=False,
    bind=engine
)

# Metadata with naming convention for constraints
Base = declarative_base(metadata=MetaData(naming_convention={
    "ix": "ix_%(column_0_label)s",
    "uq": "uq_%(table_name)s_%(column_0_name)s",
    "ck": "ck_%(table_name)s_%(constraint_name)s",
    "fk": "fk_%(table_name)s_%(column_0_name)s_%(referred_table_name)s",
    "pk": "pk_%(table_name)s"
}))


def get_db() -> Generator:
    """
    Dependency function to get database session

    Yields:
        Database session
    """
    db = SessionLocal()
    try:
        yield db
    except Exception as e:
        logger.error(f"Database session error: {e}")
        db.rollback()
        raise
    finally:
        db.close()


def init_db(bind=None):
    """
    Initialize database tables

    This function creates all tables defined in models
    """
    try:
        # Import all models to ensure they are registered with Base
        from inventory_app.models import audit, purchase, stock, supplier  # noqa: F401

        Base.metadata.create_all(bind=bind or engine)
        logger.info("Database tables created successfully")

    except Exception as e:
        logger.error(f"Error initializing database: {e}")
        raise


def check_db_connection() -> bool:
    """
    Check if database connection is working

    Returns:
        True if connection is successful, False otherwise
    """
    try:
        with engine.connect() as connection:
            connection.execute(text("SELECT 1"))
        return True
    except Exception as e:
        logger.error(f"Database connection failed: {e}")
        return False


def _is_unique_violation(error: IntegrityError) -> bool:
    """True for a unique-key collision on PostgreSQL or SQLite"""
    if getattr(error.orig, "pgcode", None) == UNIQUE_VIOLATION:
        return True
    return "UNIQUE constraint failed" in str(error.orig)


@contextmanager
def transaction(db: Session):
    """
    Commit the session when the block completes, roll back otherwise

    Lost optimistic-version races and unique-key collisions surface as
    ConflictError so the caller may retry. Any other constraint failure is
    an invariant breach.
    """
    try:
        yield db
        db.commit()
    except StaleDataError as e:
        db.rollback()
        logger.warning(f"Concurrent modification detected: {e}")
        raise ConflictError(
            "The record was modified by another request, please retry",
            code="CONCURRENT_MODIFICATION",
        ) from e
    except IntegrityError as e:
        db.rollback()
        if _is_unique_violation(e):
            logger.warning(f"Integrity conflict: {e.orig}")
            raise ConflictError(
                "The change conflicts with data written by another request",
                code="INTEGRITY_CONFLICT",
            ) from e
        logger.error(f"Constraint violation: {e.orig}")
        raise InvariantViolationError(
            "The change violates a database constraint",
            code="CONSTRAINT_VIOLATION",
        ) from e
    except Exception:
        db.rollback()
        raise
