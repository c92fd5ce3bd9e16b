from typing import List, Optional
from uuid import UUID

from pydantic import BaseModel, field_validator, model_validator


DEFAULT_SIZE_LABEL = "One Size"


class ItemSizeCreate(BaseModel):
    size: str
    quantity: int = 0

    @field_validator("size")
    @classmethod
    def _strip_required(cls, v: str) -> str:
        v = (v or "").strip()
        if not v:
            raise ValueError("every size needs a name")
        return v

    @field_validator("quantity")
    @classmethod
    def _non_negative(cls, v: int) -> int:
        if v < 0:
            raise ValueError("quantity must be >= 0")
        return v


class ItemCreate(BaseModel):
    name: str
    product_id: Optional[str] = None
    image_url: Optional[str] = None
    # Single-size items pass only `quantity`; multi-size items pass `sizes`.
    quantity: Optional[int] = None
    sizes: Optional[List[ItemSizeCreate]] = None

    @field_validator("name")
    @classmethod
    def _strip_name(cls, v: str) -> str:
        v = (v or "").strip()
        if not v:
            raise ValueError("name is required")
        return v

    @field_validator("product_id", "image_url")
    @classmethod
    def _strip_nullable(cls, v: Optional[str]) -> Optional[str]:
        if v is None:
            return None
        v = v.strip()
        return v or None

    @model_validator(mode="after")
    def _validate_sizes(self):
        if not self.sizes:
            self.sizes = [ItemSizeCreate(size=DEFAULT_SIZE_LABEL, quantity=int(self.quantity or 0))]
        labels = [s.size.lower() for s in self.sizes]
        if len(labels) != len(set(labels)):
            raise ValueError("every size must have a unique name")
        if sum(s.quantity for s in self.sizes) <= 0:
            raise ValueError("total quantity must be greater than 0")
        return self


class ItemUpdate(BaseModel):
    name: Optional[str] = None
    product_id: Optional[str] = None
    image_url: Optional[str] = None

    @field_validator("name", "product_id")
    @classmethod
    def _strip_optional(cls, v: Optional[str]) -> Optional[str]:
        if v is None:
            return None
        v = v.strip()
        if not v:
            raise ValueError("cannot be empty")
        return v


class ItemSizeRead(BaseModel):
    id: UUID
    item_id: UUID
    size: str
    original_quantity: int
    available_quantity: int
    in_circulation: int
    burned_quantity: int


class ItemRead(BaseModel):
    id: UUID
    name: str
    product_id: str
    image_url: Optional[str] = None
    brand_id: UUID
    brand_name: Optional[str] = None
    is_active: bool
    is_shared: bool = False
    is_shared_instance: bool = False
    original_quantity: int = 0
    available_quantity: int = 0
    in_circulation: int = 0
    sizes: List[ItemSizeRead] = []


class SharedItemLink(BaseModel):
    item_id: UUID


class BrandSizeRead(ItemSizeRead):
    item_name: str
    product_id: str
    is_shared_instance: bool = False
