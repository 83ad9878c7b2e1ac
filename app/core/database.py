from sqlalchemy import create_engine, event, text
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import DeclarativeBase, sessionmaker
from sqlalchemy.pool import QueuePool, StaticPool
from .config import Settings
import logging

logger = logging.getLogger(__name__)


class Base(DeclarativeBase):
    """Base class for all ORM models."""
    pass


# =============================================================================
# DATABASE ENGINE CONFIGURATION
# =============================================================================

def create_db_engine(settings: Settings) -> Engine:
    """
    Build the engine (and its connection pool) for the configured database.

    PostgreSQL gets a QueuePool sized from settings. SQLite is supported for
    local development and tests; an in-memory SQLite database is pinned to a
    single connection so every session sees the same data.
    """
    url = settings.DATABASE_URL

    if settings.is_sqlite:
        engine_kwargs = {
            "echo": settings.DB_ECHO_SQL,
            "connect_args": {"check_same_thread": False},
        }
        if url in ("sqlite://", "sqlite:///:memory:"):
            engine_kwargs["poolclass"] = StaticPool
        return create_engine(url, **engine_kwargs)

    connect_args = {"connect_timeout": settings.DB_CONNECT_TIMEOUT}
    if settings.DB_SSLMODE:
        connect_args["sslmode"] = settings.DB_SSLMODE

    engine = create_engine(
        url,

        # Connection pool settings
        poolclass=QueuePool,
        pool_size=settings.DB_POOL_SIZE,
        max_overflow=settings.DB_MAX_OVERFLOW,
        pool_timeout=settings.DB_POOL_TIMEOUT,
        pool_recycle=settings.DB_POOL_RECYCLE,

        # Test connection before using (detect disconnects)
        pool_pre_ping=True,

        echo=settings.DB_ECHO_SQL,
        connect_args=connect_args,
    )

    @event.listens_for(engine, "checkout")
    def receive_checkout(dbapi_conn, connection_record, connection_proxy):
        if settings.DEBUG:
            logger.debug("Connection checked out from pool")

    return engine


# =============================================================================
# SESSION CONFIGURATION
# =============================================================================

def create_session_factory(engine: Engine) -> sessionmaker:
    return sessionmaker(
        autocommit=False,
        autoflush=False,
        bind=engine,
        expire_on_commit=False
    )


# =============================================================================
# INITIALIZATION
# =============================================================================

def check_database_connection(engine: Engine) -> bool:
    """
    Check if database connection is working.

    Returns:
        bool: True if connection successful, False otherwise
    """
    try:
        with engine.connect() as connection:
            connection.execute(text("SELECT 1"))
        logger.info("Database connection successful")
        return True
    except SQLAlchemyError as e:
        logger.error(f"Database connection failed: {e}")
        return False


def init_db(engine: Engine, drop_existing: bool = False) -> bool:
    """
    Ensure the students table exists.

    Failures are logged and swallowed so the service still starts; requests
    will then fail individually with a storage error.
    """
    # Register models with Base.metadata
    from app.models.student import Student  # noqa: F401

    logger.info("Initializing database...")
    try:
        if drop_existing:
            logger.warning("Dropping students table (DB_DROP_ON_STARTUP is set)")
            Base.metadata.drop_all(bind=engine)
        Base.metadata.create_all(bind=engine)
    except SQLAlchemyError as e:
        logger.error(f"Create table failed: {e}")
        return False

    logger.info("Table initialized successfully")
    return True
