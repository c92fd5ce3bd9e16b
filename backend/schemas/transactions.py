from datetime import datetime
from typing import List, Literal, Optional
from uuid import UUID

from pydantic import BaseModel, field_validator


TransactionType = Literal["take_out", "return", "burn", "restock"]
BatchAction = Literal["take_out", "return", "burn"]


class _StockRequest(BaseModel):
    item_size_id: UUID
    item_id: Optional[UUID] = None
    quantity: int
    notes: Optional[str] = None

    @field_validator("quantity")
    @classmethod
    def _quantity_positive(cls, v: int) -> int:
        if v <= 0:
            raise ValueError("quantity must be > 0")
        return v

    @field_validator("notes")
    @classmethod
    def _strip_nullable(cls, v: Optional[str]) -> Optional[str]:
        if v is None:
            return None
        v = v.strip()
        return v or None


class TakeOutRequest(_StockRequest):
    promoter_id: UUID


class ReturnRequest(_StockRequest):
    promoter_id: UUID
    # Return even when the promoter's ledger does not show the stock.
    force: bool = False


class BurnRequest(_StockRequest):
    promoter_id: UUID
    force: bool = False


class RestockRequest(_StockRequest):
    pass


class BatchEntryIn(BaseModel):
    item_size_id: UUID
    item_id: Optional[UUID] = None
    quantity: int = 0


class BatchRequest(BaseModel):
    action: BatchAction
    promoter_id: UUID
    entries: List[BatchEntryIn]
    notes: Optional[str] = None
    force: bool = False


class TransactionRead(BaseModel):
    id: UUID
    transaction_type: TransactionType
    item_id: UUID
    item_size_id: UUID
    quantity: int
    promoter_id: Optional[UUID] = None
    employee_id: Optional[UUID] = None
    timestamp: datetime
    notes: Optional[str] = None
    item_name: Optional[str] = None
    product_id: Optional[str] = None
    size: Optional[str] = None
    brand_id: Optional[UUID] = None
    brand_name: Optional[str] = None
    promoter_name: Optional[str] = None
    employee_name: Optional[str] = None


class TransactionPage(BaseModel):
    transactions: List[TransactionRead]
    total_count: int
    total_pages: int
    current_page: int
    page_size: int
