import uuid

from sqlalchemy import Boolean, Column, DateTime, ForeignKey, String, UniqueConstraint, Uuid
from sqlalchemy.orm import relationship

from ..brand import utcnow
from ..database import Base


class Item(Base):
    __tablename__ = "items"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    name = Column(String, nullable=False, index=True)
    product_id = Column(String, nullable=False, index=True)
    image_url = Column(String, nullable=True)
    brand_id = Column(Uuid, ForeignKey("brands.id", ondelete="CASCADE"), nullable=False, index=True)
    is_active = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)

    brand = relationship("Brand", back_populates="items")
    sizes = relationship(
        "ItemSize",
        back_populates="item",
        cascade="all, delete-orphan",
        order_by="ItemSize.sort_order",
    )
    shared_links = relationship("BrandItemLink", back_populates="item", cascade="all, delete-orphan")


class BrandItemLink(Base):
    """An Item shown inside a brand other than its owner (shared instance)."""
    __tablename__ = "brand_item_links"
    __table_args__ = (UniqueConstraint("brand_id", "item_id", name="ux_brand_item_links_brand_item"),)

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    brand_id = Column(Uuid, ForeignKey("brands.id", ondelete="CASCADE"), nullable=False, index=True)
    item_id = Column(Uuid, ForeignKey("items.id", ondelete="CASCADE"), nullable=False, index=True)
    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)

    brand = relationship("Brand", back_populates="shared_links")
    item = relationship("Item", back_populates="shared_links")
