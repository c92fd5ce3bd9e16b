import traceback
from typing import List
from uuid import UUID

import structlog
from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy import exists, func, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from core.auth import current_active_superuser, current_active_user
from db.brand import Brand
from db.database import get_async_session
from db.inventory.item import BrandItemLink, Item
from db.inventory.transaction import Transaction
from db.users import User
from schemas.brands import BrandCreate, BrandRead, BrandUpdate

router = APIRouter()
logger = structlog.get_logger(__name__)


async def _item_counts(db: AsyncSession) -> dict:
    """Owned items plus shared instances per brand."""
    counts: dict = {}
    owned = await db.execute(select(Item.brand_id, func.count(Item.id)).group_by(Item.brand_id))
    for brand_id, n in owned.all():
        counts[brand_id] = counts.get(brand_id, 0) + int(n)
    linked = await db.execute(
        select(BrandItemLink.brand_id, func.count(BrandItemLink.id)).group_by(BrandItemLink.brand_id)
    )
    for brand_id, n in linked.all():
        counts[brand_id] = counts.get(brand_id, 0) + int(n)
    return counts


async def _get_brand(db: AsyncSession, brand_id: UUID) -> Brand:
    res = await db.execute(select(Brand).where(Brand.id == brand_id))
    m = res.scalar_one_or_none()
    if not m:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Brand not found")
    return m


async def _ensure_unique_name(db: AsyncSession, name: str, exclude_id: UUID = None) -> None:
    stmt = select(Brand.id).where(func.lower(Brand.name) == name.lower())
    if exclude_id is not None:
        stmt = stmt.where(Brand.id != exclude_id)
    existing = await db.execute(stmt)
    if existing.first():
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="Brand already exists")


@router.get("/", response_model=List[BrandRead])
async def list_brands(
    include_inactive: bool = False,
    db: AsyncSession = Depends(get_async_session),
    user: User = Depends(current_active_user),
):
    stmt = select(Brand).order_by(Brand.is_pinned.desc(), func.lower(Brand.name).asc())
    if not include_inactive:
        stmt = stmt.where(Brand.is_active.is_(True))
    res = await db.execute(stmt)
    counts = await _item_counts(db)
    return [BrandRead(**b.to_schema, item_count=counts.get(b.id, 0)) for b in res.scalars().all()]


@router.post("/", response_model=BrandRead, status_code=status.HTTP_201_CREATED)
async def create_brand(
    payload: BrandCreate,
    db: AsyncSession = Depends(get_async_session),
    user: User = Depends(current_active_user),
):
    await _ensure_unique_name(db, payload.name)

    m = Brand(name=payload.name, logo_url=payload.logo_url)
    db.add(m)
    await db.commit()
    await db.refresh(m)
    logger.info("brand.created", brand_id=str(m.id), name=m.name)
    return BrandRead(**m.to_schema, item_count=0)


@router.get("/{brand_id}", response_model=BrandRead)
async def get_brand(
    brand_id: UUID,
    db: AsyncSession = Depends(get_async_session),
    user: User = Depends(current_active_user),
):
    m = await _get_brand(db, brand_id)
    counts = await _item_counts(db)
    return BrandRead(**m.to_schema, item_count=counts.get(m.id, 0))


@router.patch("/{brand_id}", response_model=BrandRead)
async def update_brand(
    brand_id: UUID,
    payload: BrandUpdate,
    db: AsyncSession = Depends(get_async_session),
    user: User = Depends(current_active_user),
):
    m = await _get_brand(db, brand_id)

    data = payload.model_dump(exclude_unset=True)
    if data.get("name") is not None and data["name"].lower() != (m.name or "").lower():
        await _ensure_unique_name(db, data["name"], exclude_id=m.id)
        m.name = data["name"]
    elif data.get("name") is not None:
        m.name = data["name"]
    if "logo_url" in data:
        m.logo_url = data["logo_url"]

    await db.commit()
    await db.refresh(m)
    counts = await _item_counts(db)
    return BrandRead(**m.to_schema, item_count=counts.get(m.id, 0))


@router.post("/{brand_id}/toggle-active", response_model=BrandRead)
async def toggle_brand_active(
    brand_id: UUID,
    db: AsyncSession = Depends(get_async_session),
    user: User = Depends(current_active_user),
):
    m = await _get_brand(db, brand_id)
    m.is_active = not bool(m.is_active)
    await db.commit()
    await db.refresh(m)
    logger.info("brand.toggled_active", brand_id=str(m.id), is_active=m.is_active)
    counts = await _item_counts(db)
    return BrandRead(**m.to_schema, item_count=counts.get(m.id, 0))


@router.post("/{brand_id}/toggle-pin", response_model=BrandRead)
async def toggle_brand_pin(
    brand_id: UUID,
    db: AsyncSession = Depends(get_async_session),
    user: User = Depends(current_active_user),
):
    m = await _get_brand(db, brand_id)
    m.is_pinned = not bool(m.is_pinned)
    await db.commit()
    await db.refresh(m)
    counts = await _item_counts(db)
    return BrandRead(**m.to_schema, item_count=counts.get(m.id, 0))


@router.delete("/{brand_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_brand(
    brand_id: UUID,
    db: AsyncSession = Depends(get_async_session),
    user: User = Depends(current_active_superuser),
):
    m = await _get_brand(db, brand_id)

    has_history = await db.execute(
        select(
            exists().where(
                Transaction.item_id == Item.id,
                Item.brand_id == m.id,
            )
        )
    )
    if has_history.scalar():
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="Brand has items with transactions; deactivate it instead",
        )

    shared_elsewhere = await db.execute(
        select(
            exists().where(
                BrandItemLink.item_id == Item.id,
                Item.brand_id == m.id,
                BrandItemLink.brand_id != m.id,
            )
        )
    )
    if shared_elsewhere.scalar():
        logger.info("brand.delete_refused_shared", brand_id=str(brand_id))
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="Brand owns items shared into other brands; unshare them first",
        )

    # ORM cascade needs the children loaded up front under asyncio
    res = await db.execute(
        select(Brand)
        .where(Brand.id == m.id)
        .options(
            selectinload(Brand.items).selectinload(Item.sizes),
            selectinload(Brand.items).selectinload(Item.shared_links),
            selectinload(Brand.shared_links),
        )
        .execution_options(populate_existing=True)
    )
    m = res.scalar_one()

    try:
        await db.delete(m)
        await db.commit()
    except Exception as e:
        await db.rollback()
        logger.error("brand.delete_failed", brand_id=str(brand_id), error=repr(e), traceback=traceback.format_exc())
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"Failed to delete brand: {e}",
        )
    logger.info("brand.deleted", brand_id=str(brand_id))
    return None
