import traceback
import uuid
from datetime import date
from typing import List, Optional
from uuid import UUID

import structlog
from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy import exists, func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from core.auth import current_active_superuser, current_active_user
from db.brand import Brand
from db.database import get_async_session
from db.inventory.item import BrandItemLink, Item
from db.inventory.size import ItemSize
from db.inventory.transaction import Transaction
from db.users import User
from routers.transactions import query_transactions
from schemas.inventory import (
    BrandSizeRead,
    ItemCreate,
    ItemRead,
    ItemSizeCreate,
    ItemSizeRead,
    ItemUpdate,
    SharedItemLink,
)
from schemas.transactions import TransactionPage, TransactionType

router = APIRouter()
logger = structlog.get_logger(__name__)

SHARED_SEARCH_LIMIT = 10


def _item_options():
    return (
        selectinload(Item.sizes),
        selectinload(Item.brand),
        selectinload(Item.shared_links),
    )


def _item_to_read(item: Item, *, is_shared_instance: bool = False) -> ItemRead:
    sizes = [ItemSizeRead(**s.to_schema) for s in item.sizes]
    return ItemRead(
        id=item.id,
        name=item.name,
        product_id=item.product_id,
        image_url=item.image_url,
        brand_id=item.brand_id,
        brand_name=item.brand.name if item.brand else None,
        is_active=bool(item.is_active),
        is_shared=bool(item.shared_links),
        is_shared_instance=is_shared_instance,
        original_quantity=sum(s.original_quantity for s in sizes),
        available_quantity=sum(s.available_quantity for s in sizes),
        in_circulation=sum(s.in_circulation for s in sizes),
        sizes=sizes,
    )


async def _get_brand(db: AsyncSession, brand_id: UUID) -> Brand:
    res = await db.execute(select(Brand).where(Brand.id == brand_id))
    m = res.scalar_one_or_none()
    if not m:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Brand not found")
    return m


async def _get_item(db: AsyncSession, item_id: UUID) -> Item:
    res = await db.execute(
        select(Item)
        .where(Item.id == item_id)
        .options(*_item_options())
        .execution_options(populate_existing=True)
    )
    m = res.scalar_one_or_none()
    if not m:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Item not found")
    return m


async def _brand_items(db: AsyncSession, brand_id: UUID, include_inactive: bool) -> List[tuple]:
    """(item, is_shared_instance) pairs visible in a brand, owned first then shared."""
    owned_stmt = select(Item).where(Item.brand_id == brand_id).options(*_item_options())
    linked_stmt = (
        select(Item)
        .join(BrandItemLink, BrandItemLink.item_id == Item.id)
        .where(BrandItemLink.brand_id == brand_id)
        .options(*_item_options())
    )
    if not include_inactive:
        owned_stmt = owned_stmt.where(Item.is_active.is_(True))
        linked_stmt = linked_stmt.where(Item.is_active.is_(True))

    owned = (await db.execute(owned_stmt.order_by(func.lower(Item.name).asc()))).scalars().all()
    linked = (await db.execute(linked_stmt.order_by(func.lower(Item.name).asc()))).scalars().all()
    return [(i, False) for i in owned] + [(i, True) for i in linked]


@router.get("/brands/{brand_id}/items", response_model=List[ItemRead])
async def list_brand_items(
    brand_id: UUID,
    include_inactive: bool = False,
    db: AsyncSession = Depends(get_async_session),
    user: User = Depends(current_active_user),
):
    await _get_brand(db, brand_id)
    rows = await _brand_items(db, brand_id, include_inactive)
    return [_item_to_read(item, is_shared_instance=shared) for item, shared in rows]


@router.get("/brands/{brand_id}/sizes", response_model=List[BrandSizeRead])
async def list_brand_sizes(
    brand_id: UUID,
    include_inactive: bool = False,
    db: AsyncSession = Depends(get_async_session),
    user: User = Depends(current_active_user),
):
    """Every size of every item shown in the brand; feeds the mass-edit grid."""
    await _get_brand(db, brand_id)
    rows = await _brand_items(db, brand_id, include_inactive)
    out = []
    for item, shared in rows:
        for s in item.sizes:
            out.append(
                BrandSizeRead(
                    **s.to_schema,
                    item_name=item.name,
                    product_id=item.product_id,
                    is_shared_instance=shared,
                )
            )
    return out


@router.post("/brands/{brand_id}/items", response_model=ItemRead, status_code=status.HTTP_201_CREATED)
async def create_item(
    brand_id: UUID,
    payload: ItemCreate,
    db: AsyncSession = Depends(get_async_session),
    user: User = Depends(current_active_user),
):
    await _get_brand(db, brand_id)

    item = Item(
        id=uuid.uuid4(),
        name=payload.name,
        product_id=payload.product_id or str(uuid.uuid4()),
        image_url=payload.image_url,
        brand_id=brand_id,
        is_active=True,
    )
    db.add(item)
    for idx, s in enumerate(payload.sizes):
        db.add(
            ItemSize(
                item_id=item.id,
                size=s.size,
                sort_order=idx,
                original_quantity=s.quantity,
                available_quantity=s.quantity,
                in_circulation=0,
            )
        )

    try:
        await db.commit()
    except Exception as e:
        await db.rollback()
        logger.error("item.create_failed", brand_id=str(brand_id), error=repr(e), traceback=traceback.format_exc())
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"Failed to create item: {e}",
        )

    logger.info(
        "item.created",
        item_id=str(item.id),
        brand_id=str(brand_id),
        sizes=len(payload.sizes),
        quantity=sum(s.quantity for s in payload.sizes),
    )
    return _item_to_read(await _get_item(db, item.id))


@router.get("/items/shared-search", response_model=List[ItemRead])
async def search_shareable_items(
    q: str = Query("", description="Name or product id"),
    db: AsyncSession = Depends(get_async_session),
    user: User = Depends(current_active_user),
):
    term = (q or "").strip()
    if not term:
        return []
    res = await db.execute(
        select(Item)
        .where(
            Item.is_active.is_(True),
            or_(
                Item.name.icontains(term, autoescape=True),
                Item.product_id.icontains(term, autoescape=True),
            ),
        )
        .options(*_item_options())
        .order_by(func.lower(Item.name).asc())
        .limit(SHARED_SEARCH_LIMIT)
    )
    return [_item_to_read(i) for i in res.scalars().all()]


@router.post(
    "/brands/{brand_id}/shared-items",
    response_model=ItemRead,
    status_code=status.HTTP_201_CREATED,
)
async def share_item_into_brand(
    brand_id: UUID,
    payload: SharedItemLink,
    db: AsyncSession = Depends(get_async_session),
    user: User = Depends(current_active_user),
):
    await _get_brand(db, brand_id)
    item = await _get_item(db, payload.item_id)

    if item.brand_id == brand_id:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="Item already belongs to this brand")
    if any(link.brand_id == brand_id for link in item.shared_links):
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="Item is already shared into this brand")

    db.add(BrandItemLink(brand_id=brand_id, item_id=item.id))
    await db.commit()
    logger.info("item.shared", item_id=str(item.id), brand_id=str(brand_id))
    return _item_to_read(await _get_item(db, item.id), is_shared_instance=True)


@router.delete("/brands/{brand_id}/shared-items/{item_id}", status_code=status.HTTP_204_NO_CONTENT)
async def unshare_item_from_brand(
    brand_id: UUID,
    item_id: UUID,
    db: AsyncSession = Depends(get_async_session),
    user: User = Depends(current_active_user),
):
    res = await db.execute(
        select(BrandItemLink).where(
            BrandItemLink.brand_id == brand_id,
            BrandItemLink.item_id == item_id,
        )
    )
    link = res.scalar_one_or_none()
    if not link:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Shared item not found")
    await db.delete(link)
    await db.commit()
    logger.info("item.unshared", item_id=str(item_id), brand_id=str(brand_id))
    return None


@router.get("/items/{item_id}", response_model=ItemRead)
async def get_item(
    item_id: UUID,
    db: AsyncSession = Depends(get_async_session),
    user: User = Depends(current_active_user),
):
    return _item_to_read(await _get_item(db, item_id))


@router.patch("/items/{item_id}", response_model=ItemRead)
async def update_item(
    item_id: UUID,
    payload: ItemUpdate,
    db: AsyncSession = Depends(get_async_session),
    user: User = Depends(current_active_user),
):
    item = await _get_item(db, item_id)

    data = payload.model_dump(exclude_unset=True)
    if data.get("name") is not None:
        item.name = data["name"]
    if data.get("product_id") is not None:
        item.product_id = data["product_id"]
    if "image_url" in data:
        item.image_url = (data["image_url"] or "").strip() or None

    await db.commit()
    return _item_to_read(await _get_item(db, item_id))


@router.post("/items/{item_id}/toggle-active", response_model=ItemRead)
async def toggle_item_active(
    item_id: UUID,
    db: AsyncSession = Depends(get_async_session),
    user: User = Depends(current_active_user),
):
    item = await _get_item(db, item_id)
    item.is_active = not bool(item.is_active)
    await db.commit()
    logger.info("item.toggled_active", item_id=str(item_id), is_active=item.is_active)
    return _item_to_read(await _get_item(db, item_id))


@router.delete("/items/{item_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_item(
    item_id: UUID,
    db: AsyncSession = Depends(get_async_session),
    user: User = Depends(current_active_superuser),
):
    item = await _get_item(db, item_id)

    has_history = await db.execute(select(exists().where(Transaction.item_id == item.id)))
    if has_history.scalar():
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="Item has transactions; deactivate it instead",
        )

    try:
        await db.delete(item)
        await db.commit()
    except Exception as e:
        await db.rollback()
        logger.error("item.delete_failed", item_id=str(item_id), error=repr(e), traceback=traceback.format_exc())
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"Failed to delete item: {e}",
        )
    logger.info("item.deleted", item_id=str(item_id))
    return None


@router.get("/items/{item_id}/sizes", response_model=List[ItemSizeRead])
async def list_item_sizes(
    item_id: UUID,
    db: AsyncSession = Depends(get_async_session),
    user: User = Depends(current_active_user),
):
    item = await _get_item(db, item_id)
    return [ItemSizeRead(**s.to_schema) for s in item.sizes]


@router.post("/items/{item_id}/sizes", response_model=ItemSizeRead, status_code=status.HTTP_201_CREATED)
async def add_item_size(
    item_id: UUID,
    payload: ItemSizeCreate,
    db: AsyncSession = Depends(get_async_session),
    user: User = Depends(current_active_user),
):
    item = await _get_item(db, item_id)
    if any((s.size or "").lower() == payload.size.lower() for s in item.sizes):
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="Size already exists for this item")

    next_order = max((int(s.sort_order or 0) for s in item.sizes), default=-1) + 1
    size = ItemSize(
        item_id=item.id,
        size=payload.size,
        sort_order=next_order,
        original_quantity=payload.quantity,
        available_quantity=payload.quantity,
        in_circulation=0,
    )
    db.add(size)
    await db.commit()
    await db.refresh(size)
    logger.info("item.size_added", item_id=str(item_id), size=size.size, quantity=payload.quantity)
    return ItemSizeRead(**size.to_schema)


@router.get("/items/{item_id}/history", response_model=TransactionPage)
async def item_history(
    item_id: UUID,
    transaction_type: Optional[TransactionType] = None,
    promoter_id: Optional[UUID] = None,
    start_date: Optional[date] = None,
    end_date: Optional[date] = None,
    page: int = Query(1, ge=1),
    page_size: Optional[int] = Query(None, ge=1),
    db: AsyncSession = Depends(get_async_session),
    user: User = Depends(current_active_user),
):
    await _get_item(db, item_id)
    return await query_transactions(
        db,
        item_id=item_id,
        transaction_type=transaction_type,
        promoter_id=promoter_id,
        start_date=start_date,
        end_date=end_date,
        page=page,
        page_size=page_size,
    )
