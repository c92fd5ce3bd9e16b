from datetime import datetime
from typing import List, Optional
from uuid import UUID

from pydantic import BaseModel, field_validator


class PromoterRead(BaseModel):
    id: UUID
    name: str
    photo_url: Optional[str] = None
    address: Optional[str] = None
    clothing_size: Optional[str] = None
    phone_number: Optional[str] = None
    notes: Optional[str] = None
    is_active: bool
    created_at: Optional[datetime] = None
    transaction_count: Optional[int] = None


class PromoterCreate(BaseModel):
    name: str
    photo_url: Optional[str] = None
    address: Optional[str] = None
    clothing_size: Optional[str] = None
    phone_number: Optional[str] = None
    notes: Optional[str] = None

    @field_validator("name")
    @classmethod
    def _strip_required(cls, v: str) -> str:
        v = (v or "").strip()
        if not v:
            raise ValueError("name is required")
        return v

    @field_validator("address", "clothing_size", "phone_number", "notes")
    @classmethod
    def _strip_nullable(cls, v: Optional[str]) -> Optional[str]:
        if v is None:
            return None
        v = v.strip()
        return v or None


class PromoterUpdate(BaseModel):
    name: Optional[str] = None
    photo_url: Optional[str] = None
    address: Optional[str] = None
    clothing_size: Optional[str] = None
    phone_number: Optional[str] = None
    notes: Optional[str] = None

    @field_validator("name")
    @classmethod
    def _strip_optional(cls, v: Optional[str]) -> Optional[str]:
        if v is None:
            return None
        v = v.strip()
        if not v:
            raise ValueError("cannot be empty")
        return v


class PromoterReturnSelected(BaseModel):
    item_size_ids: List[UUID]

    @field_validator("item_size_ids")
    @classmethod
    def _non_empty(cls, v: List[UUID]) -> List[UUID]:
        if not v:
            raise ValueError("select at least one item size")
        return v
