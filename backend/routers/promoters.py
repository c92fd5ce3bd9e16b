import traceback
from datetime import date
from typing import List, Optional
from uuid import UUID

import structlog
from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy import exists, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from core import stock
from core.auth import current_active_superuser, current_active_user
from db.database import get_async_session
from db.inventory.transaction import Transaction
from db.promoter import Promoter
from db.users import User
from routers.transactions import query_transactions
from schemas.promoters import PromoterCreate, PromoterRead, PromoterReturnSelected, PromoterUpdate
from schemas.transactions import TransactionPage, TransactionType

router = APIRouter()
logger = structlog.get_logger(__name__)


async def _get_promoter(db: AsyncSession, promoter_id: UUID) -> Promoter:
    res = await db.execute(
        select(Promoter).where(Promoter.id == promoter_id).execution_options(populate_existing=True)
    )
    m = res.scalar_one_or_none()
    if not m:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Promoter not found")
    return m


async def _transaction_counts(db: AsyncSession, promoter_ids: List[UUID]) -> dict:
    if not promoter_ids:
        return {}
    res = await db.execute(
        select(Transaction.promoter_id, func.count(Transaction.id))
        .where(Transaction.promoter_id.in_(promoter_ids))
        .group_by(Transaction.promoter_id)
    )
    return {pid: int(n) for pid, n in res.all()}


async def _to_read(db: AsyncSession, m: Promoter) -> PromoterRead:
    counts = await _transaction_counts(db, [m.id])
    return PromoterRead(**m.to_schema, transaction_count=counts.get(m.id, 0))


@router.get("/", response_model=List[PromoterRead])
async def list_promoters(
    include_inactive: bool = False,
    db: AsyncSession = Depends(get_async_session),
    user: User = Depends(current_active_user),
):
    stmt = select(Promoter).order_by(func.lower(Promoter.name).asc())
    if not include_inactive:
        stmt = stmt.where(Promoter.is_active.is_(True))
    promoters = (await db.execute(stmt)).scalars().all()
    counts = await _transaction_counts(db, [p.id for p in promoters])
    return [PromoterRead(**p.to_schema, transaction_count=counts.get(p.id, 0)) for p in promoters]


@router.post("/", response_model=PromoterRead, status_code=status.HTTP_201_CREATED)
async def create_promoter(
    payload: PromoterCreate,
    db: AsyncSession = Depends(get_async_session),
    user: User = Depends(current_active_user),
):
    m = Promoter(**payload.model_dump(), is_active=True)
    db.add(m)
    await db.commit()
    await db.refresh(m)
    logger.info("promoter.created", promoter_id=str(m.id), name=m.name)
    return PromoterRead(**m.to_schema, transaction_count=0)


@router.get("/{promoter_id}", response_model=PromoterRead)
async def get_promoter(
    promoter_id: UUID,
    db: AsyncSession = Depends(get_async_session),
    user: User = Depends(current_active_user),
):
    return await _to_read(db, await _get_promoter(db, promoter_id))


@router.patch("/{promoter_id}", response_model=PromoterRead)
async def update_promoter(
    promoter_id: UUID,
    payload: PromoterUpdate,
    db: AsyncSession = Depends(get_async_session),
    user: User = Depends(current_active_user),
):
    m = await _get_promoter(db, promoter_id)

    data = payload.model_dump(exclude_unset=True)
    if data.get("name") is not None:
        m.name = data["name"]
    for field in ("photo_url", "address", "clothing_size", "phone_number", "notes"):
        if field in data:
            value = data[field]
            setattr(m, field, (value or "").strip() or None)

    await db.commit()
    await db.refresh(m)
    return await _to_read(db, m)


@router.post("/{promoter_id}/toggle-active", response_model=PromoterRead)
async def toggle_promoter_active(
    promoter_id: UUID,
    force: bool = False,
    db: AsyncSession = Depends(get_async_session),
    user: User = Depends(current_active_user),
):
    """
    Activate / deactivate a promoter.

    Deactivating someone who still holds stock is refused with 409 unless
    `force=true`; their holdings stay on the ledger either way.
    """
    m = await _get_promoter(db, promoter_id)

    if m.is_active and not force:
        holdings = await stock.promoter_inventory(db, m.id)
        if holdings:
            held = sum(h["quantity"] for h in holdings)
            raise HTTPException(
                status_code=status.HTTP_409_CONFLICT,
                detail=f"Promoter still holds {held} item(s); return them first or pass force=true",
            )

    m.is_active = not bool(m.is_active)
    await db.commit()
    await db.refresh(m)
    logger.info(
        "promoter.activated" if m.is_active else "promoter.deactivated",
        promoter_id=str(m.id),
        forced=force,
    )
    return await _to_read(db, m)


@router.delete("/{promoter_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_promoter(
    promoter_id: UUID,
    db: AsyncSession = Depends(get_async_session),
    user: User = Depends(current_active_superuser),
):
    m = await _get_promoter(db, promoter_id)

    has_history = await db.execute(select(exists().where(Transaction.promoter_id == m.id)))
    if has_history.scalar():
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="Promoter has transactions; deactivate instead",
        )

    try:
        await db.delete(m)
        await db.commit()
    except Exception as e:
        await db.rollback()
        logger.error("promoter.delete_failed", promoter_id=str(promoter_id), error=repr(e), traceback=traceback.format_exc())
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"Failed to delete promoter: {e}",
        )
    logger.info("promoter.deleted", promoter_id=str(promoter_id))
    return None


@router.get("/{promoter_id}/inventory")
async def promoter_inventory(
    promoter_id: UUID,
    db: AsyncSession = Depends(get_async_session),
    user: User = Depends(current_active_user),
):
    await _get_promoter(db, promoter_id)
    return await stock.promoter_inventory(db, promoter_id)


@router.get("/{promoter_id}/history", response_model=TransactionPage)
async def promoter_history(
    promoter_id: UUID,
    transaction_type: Optional[TransactionType] = None,
    item_id: Optional[UUID] = None,
    brand_id: Optional[UUID] = None,
    start_date: Optional[date] = None,
    end_date: Optional[date] = None,
    q: Optional[str] = None,
    page: int = Query(1, ge=1),
    page_size: Optional[int] = Query(None, ge=1),
    db: AsyncSession = Depends(get_async_session),
    user: User = Depends(current_active_user),
):
    await _get_promoter(db, promoter_id)
    return await query_transactions(
        db,
        promoter_id=promoter_id,
        transaction_type=transaction_type,
        item_id=item_id,
        brand_id=brand_id,
        start_date=start_date,
        end_date=end_date,
        q=q,
        page=page,
        page_size=page_size,
    )


@router.post("/{promoter_id}/return-all")
async def return_all(
    promoter_id: UUID,
    db: AsyncSession = Depends(get_async_session),
    user: User = Depends(current_active_user),
):
    employee_id = user.id
    await _get_promoter(db, promoter_id)
    return await stock.return_all(db, promoter_id=promoter_id, employee_id=employee_id)


@router.post("/{promoter_id}/returns")
async def return_selected(
    promoter_id: UUID,
    payload: PromoterReturnSelected,
    db: AsyncSession = Depends(get_async_session),
    user: User = Depends(current_active_user),
):
    employee_id = user.id
    await _get_promoter(db, promoter_id)
    return await stock.return_selected(
        db,
        promoter_id=promoter_id,
        item_size_ids=payload.item_size_ids,
        employee_id=employee_id,
    )
