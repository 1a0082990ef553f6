"""
Database Engine & Session Management
SQLAlchemy setup for the durable payment store (PAYMENT_STORE=sql).
"""
import os
from typing import Optional

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import sessionmaker, declarative_base

from app.config import get_settings

Base = declarative_base()


def build_engine(database_url: Optional[str] = None) -> Engine:
    """Create an engine; SQLite files get their data directory created first."""
    settings = get_settings()
    url = database_url or settings.DATABASE_URL

    connect_args = {}
    if url.startswith("sqlite"):
        connect_args["check_same_thread"] = False  # Required for SQLite
        path = url.replace("sqlite:///", "")
        if path and path != ":memory:" and os.path.dirname(path):
            os.makedirs(os.path.dirname(path), exist_ok=True)

    return create_engine(url, connect_args=connect_args, echo=settings.DEBUG)


def build_sessionmaker(engine: Engine) -> sessionmaker:
    return sessionmaker(autocommit=False, autoflush=False, expire_on_commit=False, bind=engine)


def init_db(engine: Engine) -> None:
    """Create all tables. Called once when the SQL store is built."""
    from app.models import payment as _payment_model   # noqa: F401

    Base.metadata.create_all(bind=engine)
