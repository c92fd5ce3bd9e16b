import uuid

from sqlalchemy import CheckConstraint, Column, ForeignKey, Integer, String, UniqueConstraint, Uuid
from sqlalchemy.orm import relationship

from ..database import Base


class ItemSize(Base):
    __tablename__ = "item_sizes"
    __table_args__ = (
        UniqueConstraint("item_id", "size", name="ux_item_sizes_item_size"),
        CheckConstraint("available_quantity >= 0", name="ck_item_sizes_available_nonneg"),
        CheckConstraint("in_circulation >= 0", name="ck_item_sizes_circulation_nonneg"),
        # burned units are the remainder: original - available - in_circulation
        CheckConstraint(
            "available_quantity + in_circulation <= original_quantity",
            name="ck_item_sizes_within_original",
        ),
    )

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    item_id = Column(Uuid, ForeignKey("items.id", ondelete="CASCADE"), nullable=False, index=True)
    size = Column(String, nullable=False)
    sort_order = Column(Integer, nullable=False, default=0)

    original_quantity = Column(Integer, nullable=False, default=0)
    available_quantity = Column(Integer, nullable=False, default=0)
    in_circulation = Column(Integer, nullable=False, default=0)

    item = relationship("Item", back_populates="sizes")

    @property
    def burned_quantity(self) -> int:
        return int(self.original_quantity or 0) - int(self.available_quantity or 0) - int(self.in_circulation or 0)

    @property
    def to_schema(self):
        return {
            "id": self.id,
            "item_id": self.item_id,
            "size": self.size,
            "original_quantity": int(self.original_quantity or 0),
            "available_quantity": int(self.available_quantity or 0),
            "in_circulation": int(self.in_circulation or 0),
            "burned_quantity": self.burned_quantity,
        }
