# vending_service/db.py

"""
Database configuration and session management for FastAPI app.
"""
from sqlalchemy import create_engine
from sqlalchemy.orm import declarative_base, sessionmaker
from sqlalchemy.pool import StaticPool

from .config import database_url

DATABASE_URL = database_url()


def _engine_options(url: str) -> dict:
    # pool_pre_ping=True helps maintain healthy connections in a pool
    options = {"pool_pre_ping": True}
    if url.startswith("sqlite"):
        # SQLite connections are shared across the threads FastAPI uses
        options["connect_args"] = {"check_same_thread": False}
        if url in ("sqlite://", "sqlite:///:memory:"):
            # An in-memory database only lives as long as its single connection
            options["poolclass"] = StaticPool
    return options


# Create SQLAlchemy engine and session
engine = create_engine(DATABASE_URL, **_engine_options(DATABASE_URL))

# Configure a sessionmaker to create new database sessions.
# autocommit=False ensures transactions must be committed explicitly.
# autoflush=False means changes aren't flushed to DB until commit or explicit flush.
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

# Base class for your ORM models
Base = declarative_base()


def get_db():
    """
    Dependency to provide a new database session for FastAPI endpoints.
    A session is created for each request and automatically closed after use.
    """
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
