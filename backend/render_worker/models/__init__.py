"""
SQLAlchemy Models Initialization
"""

import os

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine, make_url
from sqlalchemy.orm import declarative_base, sessionmaker

# Create base class for models
Base = declarative_base()


def create_db_engine(database_url: str) -> Engine:
    """
    Create an engine for the render job database

    Args:
        database_url: SQLAlchemy database URL

    Returns:
        Engine bound to the URL
    """
    connect_args = {}
    if database_url.startswith("sqlite"):
        connect_args = {"check_same_thread": False, "timeout": 30}
        database = make_url(database_url).database
        if database and database != ":memory:":
            os.makedirs(os.path.dirname(os.path.abspath(database)), exist_ok=True)
    return create_engine(database_url, connect_args=connect_args)


def create_session_factory(engine: Engine) -> sessionmaker:
    """Session factory used by the database job store."""
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


def init_db(engine: Engine) -> None:
    """
    Initialize database by creating all tables
    """
    # Register models on Base.metadata
    from render_worker.models import render_job  # noqa: F401

    Base.metadata.create_all(bind=engine)
