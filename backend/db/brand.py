import uuid
from datetime import datetime, timezone

from sqlalchemy import Boolean, Column, DateTime, String, Uuid
from sqlalchemy.orm import relationship

from .database import Base


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Brand(Base):
    __tablename__ = "brands"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    name = Column(String, nullable=False, unique=True, index=True)
    logo_url = Column(String, nullable=True)
    is_active = Column(Boolean, nullable=False, default=True)
    is_pinned = Column(Boolean, nullable=False, default=False)
    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)

    items = relationship("Item", back_populates="brand", cascade="all, delete-orphan")
    shared_links = relationship("BrandItemLink", back_populates="brand", cascade="all, delete-orphan")

    @property
    def to_schema(self):
        return {
            "id": self.id,
            "name": self.name,
            "logo_url": self.logo_url,
            "is_active": bool(self.is_active),
            "is_pinned": bool(self.is_pinned),
            "created_at": self.created_at,
        }
