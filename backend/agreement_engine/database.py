"""
Agreement Engine - Database Configuration
SQLAlchemy engine and session factory, built from Settings.database_url
"""
from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import sessionmaker, declarative_base

# Base class for ORM models
Base = declarative_base()


def build_engine(database_url: str) -> Engine:
    """Create the engine; SQLite connections are shared across worker threads."""
    connect_args = {}
    if database_url.startswith("sqlite"):
        connect_args["check_same_thread"] = False
    return create_engine(database_url, echo=False, connect_args=connect_args)


def build_session_factory(engine: Engine) -> sessionmaker:
    return sessionmaker(autocommit=False, autoflush=False, bind=engine, expire_on_commit=False)


def init_db(engine: Engine):
    """Initialize database - create all tables."""
    from .models import db_models  # noqa: F401  (registers tables on Base)
    Base.metadata.create_all(bind=engine)
