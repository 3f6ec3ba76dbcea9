"""
Plugin-owned detail records.

A Device points at its detail record through the (plugin_type, plugin_id)
pair.  ``plugin_type`` holds the record's ``kind`` and ``plugin_id`` its
id.  The type-specific data itself is stored as string key/value
characteristics so plugins can pass through arbitrary agent attributes.
"""

from datetime import datetime
from sqlalchemy import Column, Integer, String, DateTime, Text, ForeignKey, Index

from database import Base


class DetailRecord(Base):
    """SQLAlchemy model for one plugin detail record."""

    __tablename__ = "detail_records"

    id = Column(Integer, primary_key=True, index=True)
    kind = Column(String(100), nullable=False, index=True)

    created_at = Column(DateTime, default=datetime.utcnow)

    def __repr__(self):
        return f"<DetailRecord(id={self.id}, kind={self.kind})>"


class Characteristic(Base):
    """A single key/value pair belonging to a detail record."""

    __tablename__ = "characteristics"

    id = Column(Integer, primary_key=True, index=True)
    record_id = Column(
        Integer, ForeignKey("detail_records.id", ondelete="CASCADE"), nullable=False
    )
    key = Column(String(255), nullable=False)
    value = Column(Text, nullable=True)

    __table_args__ = (
        Index("idx_characteristic_record", "record_id"),
        Index("idx_characteristic_key_value", "key", "value"),
    )

    def __repr__(self):
        return f"<Characteristic(record_id={self.record_id}, {self.key}={self.value})>"
