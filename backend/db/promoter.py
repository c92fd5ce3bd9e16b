import uuid

from sqlalchemy import Boolean, Column, DateTime, String, Text, Uuid
from sqlalchemy.orm import relationship

from .brand import utcnow
from .database import Base


class Promoter(Base):
    """Field staff member who takes stock out and brings it back."""
    __tablename__ = "promoters"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    name = Column(String, nullable=False, index=True)
    photo_url = Column(String, nullable=True)
    address = Column(Text, nullable=True)
    clothing_size = Column(String, nullable=True)
    phone_number = Column(String, nullable=True)
    notes = Column(Text, nullable=True)
    is_active = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)

    transactions = relationship("Transaction", back_populates="promoter", passive_deletes=True)

    @property
    def to_schema(self):
        return {
            "id": self.id,
            "name": self.name,
            "photo_url": self.photo_url,
            "address": self.address,
            "clothing_size": self.clothing_size,
            "phone_number": self.phone_number,
            "notes": self.notes,
            "is_active": bool(self.is_active),
            "created_at": self.created_at,
        }
