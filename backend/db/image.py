import uuid

from sqlalchemy import Column, LargeBinary, String, Uuid

from .database import Base


class Image(Base):
    """Stored image binary for brand logos, item pictures and promoter photos."""
    __tablename__ = "images"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    data = Column(LargeBinary, nullable=False)
    content_type = Column(String(255), nullable=False)
