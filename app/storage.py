import logging
from typing import Generator

from sqlalchemy import create_engine, inspect, text
from sqlalchemy.exc import NoResultFound
from sqlalchemy.orm import sessionmaker, Session, declarative_base

from app.config import settings

logger = logging.getLogger(__name__)


def _connect_args(database_url: str) -> dict:
    # check_same_thread=False is required for SQLite with FastAPI's threadpool
    if database_url.startswith("sqlite"):
        return {"check_same_thread": False}
    return {}


engine = create_engine(
    settings.DATABASE_URL,
    connect_args=_connect_args(settings.DATABASE_URL),
    pool_pre_ping=True,
    echo=False,
)

SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

Base = declarative_base()


def init_db() -> None:
    """
    Initialize the database by creating all tables.
    Called during application startup.
    """
    logger.debug(f"Initializing database with URL: {engine.url.render_as_string(hide_password=True)}")
    try:
        # Import models to register them with Base.metadata
        from app.models import Message  # noqa: F401

        Base.metadata.create_all(bind=engine)
        logger.info("Database initialized successfully")
    except Exception as e:
        logger.error(f"Failed to initialize database: {e}")
        raise


def get_db() -> Generator[Session, None, None]:
    """
    Dependency to get database session.
    Yields a session and ensures it's closed after use.
    """
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def check_db_health() -> bool:
    """
    Check if the database is reachable and schema is applied.

    Returns:
        True if DB is healthy and the message table exists, False otherwise.
    """
    try:
        with engine.connect() as connection:
            connection.execute(text("SELECT 1"))
            if not inspect(connection).has_table("message"):
                logger.error("Database schema not applied: 'message' table not found")
                return False
        return True
    except Exception as e:
        logger.error(f"Database health check failed: {e}")
        return False


# =============================================================================
# Message Repository
# =============================================================================

class MessageRepository:
    """
    Direct pass-through persistence of messages.

    "No matching row" is signalled with sqlalchemy.exc.NoResultFound; every
    other failure propagates as raised by SQLAlchemy. The session is rolled
    back before a failure leaves the repository.
    """

    def __init__(self, db: Session):
        self.db = db

    def save(self, message):
        try:
            self.db.add(message)
            self.db.commit()
            self.db.refresh(message)
            return message
        except Exception:
            self.db.rollback()
            raise

    def update(self, message):
        from app.models import Message

        try:
            if self.db.get(Message, message.id) is None:
                raise NoResultFound(f"No message with id {message.id}")
            merged = self.db.merge(message)
            self.db.commit()
            self.db.refresh(merged)
            return merged
        except Exception:
            self.db.rollback()
            raise

    def get(self, message_id: int):
        from app.models import Message

        try:
            return self.db.query(Message).filter(Message.id == message_id).one()
        except Exception:
            self.db.rollback()
            raise
