"""Database models for vocabquest."""
from sqlalchemy import Column, String, Text

from vocabquest.models.base import Base, TimestampMixin


class StorageEntry(Base, TimestampMixin):
    """A single key-value pair of the durable store."""

    __tablename__ = "storage_entries"

    key = Column(String, primary_key=True)
    value = Column(Text, nullable=False)
