"""
Database session management
"""
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from fieldservice.core.config import settings
from fieldservice.db.base import Base

_connect_args = {"check_same_thread": False} if settings.DATABASE_URL.startswith("sqlite") else {}

engine = create_engine(
    settings.DATABASE_URL,
    pool_pre_ping=True,
    echo=False,
    connect_args=_connect_args,
)

SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


def init_sqlite_schema() -> None:
    """Create all tables for local SQLite databases (Postgres goes through Alembic)."""
    if "sqlite" in settings.DATABASE_URL:
        import fieldservice.models  # noqa: F401  (register tables on Base.metadata)

        Base.metadata.create_all(bind=engine)
