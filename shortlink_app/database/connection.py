"""
SQLAlchemy engine and declarative base for the SQL store backend.
"""

from sqlalchemy import create_engine
from sqlalchemy.orm import declarative_base

from shortlink_app.config import settings


def build_engine(url: str):
    """Create an engine; SQLite connections are shared across threads"""
    connect_args = {"check_same_thread": False} if url.startswith("sqlite") else {}
    return create_engine(url, connect_args=connect_args)


engine = build_engine(settings.store_sql_url)

Base = declarative_base()
