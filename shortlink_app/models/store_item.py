from sqlalchemy import Column, DateTime, Integer, String, Text
from sqlalchemy.sql import func

from shortlink_app.database.connection import Base


class StoreItem(Base):
    """
    One key of the persistent store (SQL backend).

    ``revision`` grows on every write so other contexts can tell which keys
    changed since they last looked.
    """
    __tablename__ = "store_items"

    key = Column(String(255), primary_key=True)
    value = Column(Text, nullable=True)  # NULL marks a removed key (tombstone)
    revision = Column(Integer, nullable=False, default=1)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())
