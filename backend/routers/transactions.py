import math
import traceback
from datetime import date, datetime, time, timedelta, timezone
from typing import Optional
from uuid import UUID

import structlog
from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy import exists, func, or_, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from core import stock
from core.auth import current_active_user
from core.config import settings
from core.errors import StockError
from db.brand import Brand
from db.database import get_async_session
from db.inventory.item import BrandItemLink, Item
from db.inventory.size import ItemSize
from db.inventory.transaction import Transaction
from db.promoter import Promoter
from db.users import User
from schemas.transactions import (
    BatchRequest,
    BurnRequest,
    RestockRequest,
    ReturnRequest,
    TakeOutRequest,
    TransactionPage,
    TransactionType,
)

router = APIRouter()
logger = structlog.get_logger(__name__)


def _day_start(d: date) -> datetime:
    return datetime.combine(d, time.min, tzinfo=timezone.utc)


def _joined(stmt):
    return (
        stmt.select_from(Transaction)
        .join(Item, Transaction.item_id == Item.id)
        .join(ItemSize, Transaction.item_size_id == ItemSize.id)
        .join(Brand, Item.brand_id == Brand.id)
        .outerjoin(Promoter, Transaction.promoter_id == Promoter.id)
        .outerjoin(User, Transaction.employee_id == User.id)
    )


async def query_transactions(
    db: AsyncSession,
    *,
    transaction_type: Optional[str] = None,
    promoter_id: Optional[UUID] = None,
    employee_id: Optional[UUID] = None,
    item_id: Optional[UUID] = None,
    brand_id: Optional[UUID] = None,
    start_date: Optional[date] = None,
    end_date: Optional[date] = None,
    q: Optional[str] = None,
    page: int = 1,
    page_size: Optional[int] = None,
) -> dict:
    """
    Filtered, paginated transaction history, newest first.

    - brand_id matches items owned by the brand and items shared into it.
    - start_date / end_date are inclusive calendar days (UTC).
    - q is a case-insensitive match on item name, product id, promoter name or notes.
    """
    page_size = page_size or settings.default_page_size
    page_size = max(1, min(int(page_size), settings.max_page_size))
    page = max(1, int(page))

    conditions = []
    if transaction_type:
        conditions.append(Transaction.transaction_type == transaction_type)
    if promoter_id:
        conditions.append(Transaction.promoter_id == promoter_id)
    if employee_id:
        conditions.append(Transaction.employee_id == employee_id)
    if item_id:
        conditions.append(Transaction.item_id == item_id)
    if brand_id:
        shared_into_brand = exists().where(
            BrandItemLink.item_id == Item.id,
            BrandItemLink.brand_id == brand_id,
        )
        conditions.append(or_(Item.brand_id == brand_id, shared_into_brand))
    if start_date:
        conditions.append(Transaction.timestamp >= _day_start(start_date))
    if end_date:
        conditions.append(Transaction.timestamp < _day_start(end_date) + timedelta(days=1))
    if q and q.strip():
        term = q.strip()
        conditions.append(
            or_(
                Item.name.icontains(term, autoescape=True),
                Item.product_id.icontains(term, autoescape=True),
                Promoter.name.icontains(term, autoescape=True),
                Transaction.notes.icontains(term, autoescape=True),
            )
        )

    total = (await db.execute(_joined(select(func.count(Transaction.id))).where(*conditions))).scalar_one()
    total = int(total or 0)

    res = await db.execute(
        _joined(select(Transaction, Item, ItemSize, Brand, Promoter, User))
        .where(*conditions)
        .order_by(Transaction.timestamp.desc(), Transaction.id.desc())
        .offset((page - 1) * page_size)
        .limit(page_size)
    )
    rows = []
    for txn, item, size, brand, promoter, employee in res.all():
        out = stock.transaction_to_dict(txn)
        out.update(
            {
                "item_name": item.name,
                "product_id": item.product_id,
                "size": size.size,
                "brand_id": brand.id,
                "brand_name": brand.name,
                "promoter_name": promoter.name if promoter else None,
                "employee_name": (employee.name or employee.email) if employee else None,
            }
        )
        rows.append(out)

    return {
        "transactions": rows,
        "total_count": total,
        "total_pages": math.ceil(total / page_size) if total else 0,
        "current_page": page,
        "page_size": page_size,
    }


async def _commit_stock_call(db: AsyncSession, action: str, call) -> dict:
    """Run one stock operation and commit; StockError propagates to the app handler."""
    try:
        out = await call
        await db.commit()
        return out
    except HTTPException:
        raise
    except StockError:
        await db.rollback()
        raise
    except SQLAlchemyError as e:
        await db.rollback()
        logger.error("stock.failed", action=action, error=repr(e), traceback=traceback.format_exc())
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"Failed to record {action}: {e}",
        )


@router.get("/", response_model=TransactionPage)
async def list_transactions(
    transaction_type: Optional[TransactionType] = None,
    promoter_id: Optional[UUID] = None,
    employee_id: Optional[UUID] = None,
    item_id: Optional[UUID] = None,
    brand_id: Optional[UUID] = None,
    start_date: Optional[date] = None,
    end_date: Optional[date] = None,
    q: Optional[str] = None,
    page: int = Query(1, ge=1),
    page_size: Optional[int] = Query(None, ge=1),
    user: User = Depends(current_active_user),
    db: AsyncSession = Depends(get_async_session),
):
    return await query_transactions(
        db,
        transaction_type=transaction_type,
        promoter_id=promoter_id,
        employee_id=employee_id,
        item_id=item_id,
        brand_id=brand_id,
        start_date=start_date,
        end_date=end_date,
        q=q,
        page=page,
        page_size=page_size,
    )


@router.post("/take-out", status_code=status.HTTP_201_CREATED)
async def record_take_out(
    payload: TakeOutRequest,
    user: User = Depends(current_active_user),
    db: AsyncSession = Depends(get_async_session),
):
    employee_id = user.id
    return await _commit_stock_call(
        db,
        "take-out",
        stock.take_out(
            db,
            item_size_id=payload.item_size_id,
            item_id=payload.item_id,
            quantity=payload.quantity,
            promoter_id=payload.promoter_id,
            employee_id=employee_id,
            notes=payload.notes,
        ),
    )


@router.post("/return", status_code=status.HTTP_201_CREATED)
async def record_return(
    payload: ReturnRequest,
    user: User = Depends(current_active_user),
    db: AsyncSession = Depends(get_async_session),
):
    employee_id = user.id
    return await _commit_stock_call(
        db,
        "return",
        stock.return_stock(
            db,
            item_size_id=payload.item_size_id,
            item_id=payload.item_id,
            quantity=payload.quantity,
            promoter_id=payload.promoter_id,
            employee_id=employee_id,
            notes=payload.notes,
            force=payload.force,
        ),
    )


@router.post("/burn", status_code=status.HTTP_201_CREATED)
async def record_burn(
    payload: BurnRequest,
    user: User = Depends(current_active_user),
    db: AsyncSession = Depends(get_async_session),
):
    employee_id = user.id
    return await _commit_stock_call(
        db,
        "burn",
        stock.burn(
            db,
            item_size_id=payload.item_size_id,
            item_id=payload.item_id,
            quantity=payload.quantity,
            promoter_id=payload.promoter_id,
            employee_id=employee_id,
            notes=payload.notes,
            force=payload.force,
        ),
    )


@router.post("/restock", status_code=status.HTTP_201_CREATED)
async def record_restock(
    payload: RestockRequest,
    user: User = Depends(current_active_user),
    db: AsyncSession = Depends(get_async_session),
):
    employee_id = user.id
    return await _commit_stock_call(
        db,
        "restock",
        stock.restock(
            db,
            item_size_id=payload.item_size_id,
            item_id=payload.item_id,
            quantity=payload.quantity,
            employee_id=employee_id,
            notes=payload.notes,
        ),
    )


@router.post("/batch")
async def record_batch(
    payload: BatchRequest,
    user: User = Depends(current_active_user),
    db: AsyncSession = Depends(get_async_session),
):
    """
    Mass edit: apply one action for one promoter across many item sizes.

    Entries are committed one by one; the response lists what succeeded and
    what failed (with the reason) so the client can report partial success.
    """
    # The batch rolls back failed entries, which expires `user`; read the id first.
    employee_id = user.id
    entries = [
        stock.BatchEntry(item_size_id=e.item_size_id, item_id=e.item_id, quantity=e.quantity)
        for e in payload.entries
    ]
    return await stock.run_batch(
        db,
        action=payload.action,
        promoter_id=payload.promoter_id,
        entries=entries,
        employee_id=employee_id,
        notes=payload.notes,
        force=payload.force,
    )
