import uuid

from sqlalchemy import CheckConstraint, Column, DateTime, ForeignKey, Integer, Text, Uuid
from sqlalchemy.orm import relationship

from ..brand import utcnow
from ..database import Base

TAKE_OUT = "take_out"
RETURN = "return"
BURN = "burn"
RESTOCK = "restock"
TRANSACTION_TYPES = (TAKE_OUT, RETURN, BURN, RESTOCK)


class Transaction(Base):
    """Append-only stock movement; never updated or deleted by the API."""
    __tablename__ = "transactions"
    __table_args__ = (
        CheckConstraint("quantity > 0", name="ck_transactions_quantity_positive"),
        CheckConstraint(
            "transaction_type IN ('take_out', 'return', 'burn', 'restock')",
            name="ck_transactions_type",
        ),
        CheckConstraint(
            "promoter_id IS NOT NULL OR transaction_type = 'restock'",
            name="ck_transactions_promoter_required",
        ),
    )

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    transaction_type = Column(Text, nullable=False, index=True)

    item_id = Column(Uuid, ForeignKey("items.id", ondelete="RESTRICT"), nullable=False, index=True)
    item_size_id = Column(Uuid, ForeignKey("item_sizes.id", ondelete="RESTRICT"), nullable=False, index=True)
    quantity = Column(Integer, nullable=False)

    promoter_id = Column(Uuid, ForeignKey("promoters.id", ondelete="RESTRICT"), nullable=True, index=True)
    employee_id = Column(Uuid, ForeignKey("users.id", ondelete="SET NULL"), nullable=True, index=True)

    timestamp = Column(DateTime(timezone=True), nullable=False, default=utcnow, index=True)
    notes = Column(Text, nullable=True)

    item = relationship("Item")
    size = relationship("ItemSize")
    promoter = relationship("Promoter", back_populates="transactions")
    employee = relationship("User")
