"""
Database models for the ViEventLog dashboard.
"""

from sqlalchemy import Column, DateTime, String, Text
from sqlalchemy.orm import declarative_base

Base = declarative_base()


class StoredSetting(Base):
    """Model for user preferences stored as JSON under a fixed key."""

    __tablename__ = "stored_settings"

    key = Column(String, primary_key=True)
    value = Column(Text, nullable=False)
    updated_at = Column(DateTime, nullable=False)

    def __repr__(self) -> str:
        return f"<StoredSetting(key={self.key}, updated_at={self.updated_at})>"
