"""Database session management."""

from sqlalchemy import create_engine, text
from sqlalchemy.orm import sessionmaker

from blast.config import settings
from blast.db.models import Base

# Create engine
engine = create_engine(
    settings.database_url,
    pool_pre_ping=True,
)

# Create session factory
SessionLocal = sessionmaker(
    autocommit=False,
    autoflush=False,
    bind=engine,
)


def init_db() -> None:
    """Create tables if missing and verify connectivity."""
    Base.metadata.create_all(engine)
    with engine.connect() as conn:
        conn.execute(text("SELECT 1"))
