from datetime import datetime
from sqlalchemy import Column, Integer, String, DateTime, ForeignKey, Index
from sqlalchemy.orm import relationship

from database import Base


class Device(Base):
    """SQLAlchemy model for a registered device."""

    __tablename__ = "devices"

    # Primary key
    id = Column(Integer, primary_key=True, index=True)

    name = Column(String(255), nullable=True)

    # Taxonomy link; both set or both NULL for type-less devices
    model_id = Column(Integer, ForeignKey("models.id", ondelete="SET NULL"), nullable=True)
    device_type_id = Column(
        Integer, ForeignKey("device_types.id", ondelete="SET NULL"), nullable=True
    )

    # Polymorphic reference to the plugin-owned detail record
    plugin_type = Column(String(100), nullable=True)
    plugin_id = Column(Integer, nullable=True)

    # Timestamps
    first_seen = Column(DateTime, default=datetime.utcnow)
    last_seen = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    macs = relationship(
        "Mac", cascade="all, delete-orphan", passive_deletes=True, lazy="noload"
    )
    ips = relationship(
        "Ip", cascade="all, delete-orphan", passive_deletes=True, lazy="noload"
    )

    __table_args__ = (
        Index("idx_device_model_id", "model_id"),
        Index("idx_device_plugin", "plugin_type", "plugin_id"),
    )

    def __repr__(self):
        return f"<Device(id={self.id}, name={self.name}, model_id={self.model_id})>"


class Mac(Base):
    """A MAC address owned by a device.  Addresses are globally unique."""

    __tablename__ = "macs"

    id = Column(Integer, primary_key=True, index=True)
    address = Column(String(17), unique=True, nullable=False, index=True)
    device_id = Column(
        Integer, ForeignKey("devices.id", ondelete="CASCADE"), nullable=False, index=True
    )

    def __repr__(self):
        return f"<Mac(id={self.id}, address={self.address}, device_id={self.device_id})>"


class Ip(Base):
    """An IP address reported for a device."""

    __tablename__ = "ips"

    id = Column(Integer, primary_key=True, index=True)
    address = Column(String(45), nullable=False, index=True)
    device_id = Column(
        Integer, ForeignKey("devices.id", ondelete="CASCADE"), nullable=False, index=True
    )

    def __repr__(self):
        return f"<Ip(id={self.id}, address={self.address}, device_id={self.device_id})>"
