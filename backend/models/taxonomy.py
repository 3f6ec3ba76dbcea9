"""
Taxonomy models: Brand -> Model -> DeviceType.

Each level is keyed by its name within the scope of its parent, so the
same model name can exist under two brands and the same type name under
two models.  Rows are created on first reference and never updated.
"""

from datetime import datetime
from sqlalchemy import Column, Integer, String, DateTime, ForeignKey, UniqueConstraint

from database import Base


class Brand(Base):
    """SQLAlchemy model for a device brand (manufacturer)."""

    __tablename__ = "brands"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(255), unique=True, nullable=False, index=True)

    created_at = Column(DateTime, default=datetime.utcnow)

    def __repr__(self):
        return f"<Brand(id={self.id}, name={self.name})>"


class Model(Base):
    """SQLAlchemy model for a device model, unique per brand."""

    __tablename__ = "models"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(255), nullable=False)
    brand_id = Column(
        Integer, ForeignKey("brands.id", ondelete="CASCADE"), nullable=False, index=True
    )

    created_at = Column(DateTime, default=datetime.utcnow)

    __table_args__ = (
        UniqueConstraint("brand_id", "name", name="uq_model_brand_name"),
    )

    def __repr__(self):
        return f"<Model(id={self.id}, name={self.name}, brand_id={self.brand_id})>"


class DeviceType(Base):
    """SQLAlchemy model for a device type, unique per model."""

    __tablename__ = "device_types"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(255), nullable=False)
    model_id = Column(
        Integer, ForeignKey("models.id", ondelete="CASCADE"), nullable=False, index=True
    )
    # Normalized plugin tag, e.g. "generic"
    classification = Column(String(100), nullable=False, index=True)

    created_at = Column(DateTime, default=datetime.utcnow)

    __table_args__ = (
        UniqueConstraint("model_id", "name", name="uq_device_type_model_name"),
    )

    def __repr__(self):
        return (
            f"<DeviceType(id={self.id}, name={self.name}, "
            f"model_id={self.model_id}, classification={self.classification})>"
        )
