from datetime import datetime
from typing import Optional
from uuid import UUID

from pydantic import BaseModel, field_validator


class BrandRead(BaseModel):
    id: UUID
    name: str
    logo_url: Optional[str] = None
    is_active: bool
    is_pinned: bool
    created_at: Optional[datetime] = None
    item_count: Optional[int] = None


class BrandCreate(BaseModel):
    name: str
    logo_url: Optional[str] = None

    @field_validator("name")
    @classmethod
    def _strip_required(cls, v: str) -> str:
        v = (v or "").strip()
        if not v:
            raise ValueError("name is required")
        return v


class BrandUpdate(BaseModel):
    name: Optional[str] = None
    logo_url: Optional[str] = None

    @field_validator("name")
    @classmethod
    def _strip_optional(cls, v: Optional[str]) -> Optional[str]:
        if v is None:
            return None
        v = v.strip()
        if not v:
            raise ValueError("cannot be empty")
        return v
