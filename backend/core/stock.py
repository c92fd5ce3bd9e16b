"""
Quantity rules for item sizes.

Every operation is a single conditional UPDATE on `item_sizes` (the WHERE clause
carries the precondition, the table CHECK constraints carry the invariants)
followed by one appended Transaction row. Callers own commit / rollback, except
for the batch helpers which commit each entry on its own. The size row is
locked first, so the promoter-holding read for return / burn cannot race
another movement on the same size.

    take_out: available -= q, in_circulation += q
    return:   available += q, in_circulation -= q
    burn:     in_circulation -= q
    restock:  available += q, original += q
"""

import uuid
from dataclasses import dataclass
from typing import Dict, Iterable, List, Optional
from uuid import UUID

import structlog
from sqlalchemy import case, func, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from core.errors import (
    InactiveError,
    InsufficientQuantityError,
    NotFoundError,
    PromoterHoldingError,
    StockError,
    ValidationError,
)
from db.brand import Brand
from db.inventory.item import Item
from db.inventory.size import ItemSize
from db.inventory.transaction import BURN, RESTOCK, RETURN, TAKE_OUT, Transaction
from db.promoter import Promoter

logger = structlog.get_logger(__name__)

BATCH_ACTIONS = (TAKE_OUT, RETURN, BURN)


@dataclass
class BatchEntry:
    item_size_id: UUID
    quantity: int
    item_id: Optional[UUID] = None


def signed_quantity():
    """Per-row effect of a transaction on a promoter's holding."""
    return case(
        (Transaction.transaction_type == TAKE_OUT, Transaction.quantity),
        (Transaction.transaction_type.in_((RETURN, BURN)), -Transaction.quantity),
        else_=0,
    )


def transaction_to_dict(txn: Transaction) -> dict:
    return {
        "id": txn.id,
        "transaction_type": txn.transaction_type,
        "item_id": txn.item_id,
        "item_size_id": txn.item_size_id,
        "quantity": int(txn.quantity),
        "promoter_id": txn.promoter_id,
        "employee_id": txn.employee_id,
        "timestamp": txn.timestamp,
        "notes": txn.notes,
    }


def size_query(item_size_id: UUID, lock: bool = False):
    stmt = select(ItemSize).where(ItemSize.id == item_size_id)
    if lock:
        # FOR UPDATE; ignored by SQLite
        stmt = stmt.with_for_update()
    return stmt.execution_options(populate_existing=True)


async def _load_size(
    db: AsyncSession,
    item_size_id: UUID,
    item_id: Optional[UUID] = None,
    lock: bool = False,
) -> ItemSize:
    res = await db.execute(size_query(item_size_id, lock=lock))
    size = res.scalar_one_or_none()
    if not size:
        raise NotFoundError("Item size not found")
    if item_id is not None and size.item_id != item_id:
        raise ValidationError("Item size does not belong to the given item")
    return size


async def _load_item(db: AsyncSession, item_id: UUID) -> Item:
    res = await db.execute(
        select(Item).where(Item.id == item_id).execution_options(populate_existing=True)
    )
    item = res.scalar_one_or_none()
    if not item:
        raise NotFoundError("Item not found")
    return item


async def _load_promoter(db: AsyncSession, promoter_id: Optional[UUID]) -> Promoter:
    if promoter_id is None:
        raise ValidationError("promoter_id is required")
    res = await db.execute(
        select(Promoter).where(Promoter.id == promoter_id).execution_options(populate_existing=True)
    )
    promoter = res.scalar_one_or_none()
    if not promoter:
        raise NotFoundError("Promoter not found")
    return promoter


async def promoter_holding(db: AsyncSession, promoter_id: UUID, item_size_id: UUID) -> int:
    res = await db.execute(
        select(func.coalesce(func.sum(signed_quantity()), 0)).where(
            Transaction.promoter_id == promoter_id,
            Transaction.item_size_id == item_size_id,
        )
    )
    return int(res.scalar_one() or 0)


async def _apply(
    db: AsyncSession,
    *,
    kind: str,
    item_size_id: UUID,
    quantity: int,
    employee_id: Optional[UUID],
    promoter_id: Optional[UUID] = None,
    item_id: Optional[UUID] = None,
    notes: Optional[str] = None,
    force: bool = False,
) -> dict:
    try:
        q = int(quantity)
    except (TypeError, ValueError):
        raise ValidationError("quantity must be a whole number")
    if q <= 0:
        raise ValidationError("quantity must be > 0")

    # Lock before the holding check so concurrent returns / burns queue up.
    size = await _load_size(db, item_size_id, item_id, lock=True)
    item = await _load_item(db, size.item_id)

    promoter = None
    if kind != RESTOCK:
        promoter = await _load_promoter(db, promoter_id)

    if kind == TAKE_OUT:
        if not item.is_active:
            raise InactiveError(f"Item '{item.name}' is inactive")
        if not promoter.is_active:
            raise InactiveError(f"Promoter '{promoter.name}' is inactive")

    if kind in (RETURN, BURN) and not force:
        held = await promoter_holding(db, promoter.id, size.id)
        if held < q:
            raise PromoterHoldingError(
                f"Promoter '{promoter.name}' holds {held} of '{item.name}' ({size.size}), requested {q}"
            )

    tbl = ItemSize.__table__
    stmt = tbl.update().where(tbl.c.id == size.id)
    if kind == TAKE_OUT:
        stmt = stmt.where(tbl.c.available_quantity >= q).values(
            available_quantity=tbl.c.available_quantity - q,
            in_circulation=tbl.c.in_circulation + q,
        )
    elif kind == RETURN:
        stmt = stmt.where(tbl.c.in_circulation >= q).values(
            available_quantity=tbl.c.available_quantity + q,
            in_circulation=tbl.c.in_circulation - q,
        )
    elif kind == BURN:
        stmt = stmt.where(tbl.c.in_circulation >= q).values(
            in_circulation=tbl.c.in_circulation - q,
        )
    elif kind == RESTOCK:
        stmt = stmt.values(
            available_quantity=tbl.c.available_quantity + q,
            original_quantity=tbl.c.original_quantity + q,
        )
    else:
        raise ValidationError(f"Unknown transaction type: {kind}")

    stmt = stmt.returning(
        tbl.c.original_quantity,
        tbl.c.available_quantity,
        tbl.c.in_circulation,
    )
    row = (await db.execute(stmt)).first()
    if row is None:
        fresh = await _load_size(db, size.id)
        if kind == TAKE_OUT:
            raise InsufficientQuantityError(
                f"Not enough available for '{item.name}' ({fresh.size}). "
                f"Available={int(fresh.available_quantity)} requested={q}"
            )
        raise InsufficientQuantityError(
            f"Not enough in circulation for '{item.name}' ({fresh.size}). "
            f"In circulation={int(fresh.in_circulation)} requested={q}"
        )

    txn = Transaction(
        id=uuid.uuid4(),
        transaction_type=kind,
        item_id=item.id,
        item_size_id=size.id,
        quantity=q,
        promoter_id=promoter.id if promoter else None,
        employee_id=employee_id,
        notes=(notes or "").strip() or None,
    )
    db.add(txn)
    await db.flush()

    logger.info(
        f"stock.{kind}",
        transaction_id=str(txn.id),
        item_id=str(item.id),
        item_size_id=str(size.id),
        promoter_id=str(promoter.id) if promoter else None,
        quantity=q,
        available=int(row.available_quantity),
        in_circulation=int(row.in_circulation),
    )

    original = int(row.original_quantity)
    available = int(row.available_quantity)
    in_circulation = int(row.in_circulation)
    return {
        "transaction": transaction_to_dict(txn),
        "size": {
            "id": size.id,
            "item_id": item.id,
            "size": size.size,
            "original_quantity": original,
            "available_quantity": available,
            "in_circulation": in_circulation,
            "burned_quantity": original - available - in_circulation,
        },
    }


async def take_out(db, *, item_size_id, quantity, promoter_id, employee_id, item_id=None, notes=None) -> dict:
    return await _apply(
        db,
        kind=TAKE_OUT,
        item_size_id=item_size_id,
        quantity=quantity,
        promoter_id=promoter_id,
        employee_id=employee_id,
        item_id=item_id,
        notes=notes,
    )


async def return_stock(db, *, item_size_id, quantity, promoter_id, employee_id, item_id=None, notes=None, force=False) -> dict:
    return await _apply(
        db,
        kind=RETURN,
        item_size_id=item_size_id,
        quantity=quantity,
        promoter_id=promoter_id,
        employee_id=employee_id,
        item_id=item_id,
        notes=notes,
        force=force,
    )


async def burn(db, *, item_size_id, quantity, promoter_id, employee_id, item_id=None, notes=None, force=False) -> dict:
    return await _apply(
        db,
        kind=BURN,
        item_size_id=item_size_id,
        quantity=quantity,
        promoter_id=promoter_id,
        employee_id=employee_id,
        item_id=item_id,
        notes=notes,
        force=force,
    )


async def restock(db, *, item_size_id, quantity, employee_id, item_id=None, notes=None) -> dict:
    return await _apply(
        db,
        kind=RESTOCK,
        item_size_id=item_size_id,
        quantity=quantity,
        employee_id=employee_id,
        item_id=item_id,
        notes=notes,
    )


async def _item_names_by_size(db: AsyncSession, size_ids: Iterable[UUID]) -> Dict[UUID, str]:
    ids = list({sid for sid in size_ids if sid is not None})
    if not ids:
        return {}
    res = await db.execute(
        select(ItemSize.id, Item.name, ItemSize.size)
        .join(Item, ItemSize.item_id == Item.id)
        .where(ItemSize.id.in_(ids))
    )
    return {sid: f"{name} ({label})" for sid, name, label in res.all()}


def _empty_batch_result(action: str) -> dict:
    return {
        "action": action,
        "succeeded": [],
        "failed": [],
        "success_count": 0,
        "failure_count": 0,
        "skipped_count": 0,
    }


async def run_batch(
    db: AsyncSession,
    *,
    action: str,
    promoter_id: UUID,
    entries: List[BatchEntry],
    employee_id: Optional[UUID],
    notes: Optional[str] = None,
    force: bool = False,
) -> dict:
    """
    Apply one action to many item sizes for a single promoter.

    Entries with quantity <= 0 are skipped. Each remaining entry is committed on
    its own; a failing entry is rolled back and reported without affecting the
    others.
    """
    if action not in BATCH_ACTIONS:
        raise ValidationError(f"Unknown action: {action}")

    result = _empty_batch_result(action)
    pending = [e for e in entries if int(e.quantity or 0) > 0]
    result["skipped_count"] = len(entries) - len(pending)
    if not pending:
        return result

    names = await _item_names_by_size(db, [e.item_size_id for e in pending])
    note = notes or f"Mass edit: {action}"

    for entry in pending:
        label = names.get(entry.item_size_id, f"Item size {entry.item_size_id}")
        try:
            out = await _apply(
                db,
                kind=action,
                item_size_id=entry.item_size_id,
                quantity=entry.quantity,
                promoter_id=promoter_id,
                employee_id=employee_id,
                item_id=entry.item_id,
                notes=note,
                force=force,
            )
            await db.commit()
            result["succeeded"].append(out)
        except StockError as e:
            await db.rollback()
            logger.warning(
                "stock.batch.entry_failed",
                action=action,
                item_size_id=str(entry.item_size_id),
                quantity=int(entry.quantity),
                code=e.code,
                reason=e.message,
            )
            result["failed"].append(
                {
                    "item_id": entry.item_id,
                    "item_size_id": entry.item_size_id,
                    "item_name": label,
                    "quantity": int(entry.quantity),
                    "reason": e.message,
                    "code": e.code,
                }
            )
        except SQLAlchemyError:
            await db.rollback()
            logger.exception(
                "stock.batch.entry_error",
                action=action,
                item_size_id=str(entry.item_size_id),
            )
            result["failed"].append(
                {
                    "item_id": entry.item_id,
                    "item_size_id": entry.item_size_id,
                    "item_name": label,
                    "quantity": int(entry.quantity),
                    "reason": "Database error",
                    "code": "database_error",
                }
            )

    result["success_count"] = len(result["succeeded"])
    result["failure_count"] = len(result["failed"])
    logger.info(
        "stock.batch.done",
        action=action,
        promoter_id=str(promoter_id),
        success_count=result["success_count"],
        failure_count=result["failure_count"],
    )
    return result


async def promoter_inventory(db: AsyncSession, promoter_id: UUID) -> List[dict]:
    """Outstanding stock per (item, size) held by one promoter; positive balances only."""
    balance = func.sum(signed_quantity())
    res = await db.execute(
        select(Transaction.item_size_id, balance.label("quantity"))
        .where(Transaction.promoter_id == promoter_id)
        .group_by(Transaction.item_size_id)
        .having(balance > 0)
    )
    held = {sid: int(qty) for sid, qty in res.all()}
    if not held:
        return []

    rows = await db.execute(
        select(ItemSize, Item, Brand)
        .join(Item, ItemSize.item_id == Item.id)
        .join(Brand, Item.brand_id == Brand.id)
        .where(ItemSize.id.in_(list(held.keys())))
        .order_by(func.lower(Item.name).asc(), ItemSize.sort_order.asc())
    )
    out = []
    for size, item, brand in rows.all():
        out.append(
            {
                "item": {
                    "id": item.id,
                    "name": item.name,
                    "product_id": item.product_id,
                    "image_url": item.image_url,
                    "brand_id": brand.id,
                    "brand_name": brand.name,
                },
                "size": {"id": size.id, "size": size.size},
                "quantity": held[size.id],
            }
        )
    return out


async def return_all(db: AsyncSession, *, promoter_id: UUID, employee_id: Optional[UUID]) -> dict:
    promoter = await _load_promoter(db, promoter_id)
    name = promoter.name
    holdings = await promoter_inventory(db, promoter_id)
    entries = [
        BatchEntry(item_size_id=h["size"]["id"], item_id=h["item"]["id"], quantity=h["quantity"])
        for h in holdings
    ]
    return await run_batch(
        db,
        action=RETURN,
        promoter_id=promoter_id,
        entries=entries,
        employee_id=employee_id,
        notes=f"Return of all items for {name}",
    )


async def return_selected(
    db: AsyncSession,
    *,
    promoter_id: UUID,
    item_size_ids: List[UUID],
    employee_id: Optional[UUID],
) -> dict:
    promoter = await _load_promoter(db, promoter_id)
    name = promoter.name
    holdings = {h["size"]["id"]: h for h in await promoter_inventory(db, promoter_id)}

    entries = []
    missing = []
    for sid in dict.fromkeys(item_size_ids):
        h = holdings.get(sid)
        if h is None:
            missing.append(sid)
            continue
        entries.append(BatchEntry(item_size_id=sid, item_id=h["item"]["id"], quantity=h["quantity"]))

    result = await run_batch(
        db,
        action=RETURN,
        promoter_id=promoter_id,
        entries=entries,
        employee_id=employee_id,
        notes=f"Selected return for {name}",
    )
    if missing:
        names = await _item_names_by_size(db, missing)
        for sid in missing:
            result["failed"].append(
                {
                    "item_id": None,
                    "item_size_id": sid,
                    "item_name": names.get(sid, f"Item size {sid}"),
                    "quantity": 0,
                    "reason": "Promoter does not hold this item size",
                    "code": PromoterHoldingError.code,
                }
            )
        result["failure_count"] = len(result["failed"])
    return result


async def reconcile(db: AsyncSession) -> List[dict]:
    """
    Compare stored counters with the transaction ledger.

    Initial stock is not a transaction, so only in_circulation can be checked
    exactly; original_quantity must at least cover everything restocked.
    """
    ledger = (
        select(
            Transaction.item_size_id.label("item_size_id"),
            func.coalesce(func.sum(signed_quantity()), 0).label("circulating"),
            func.coalesce(
                func.sum(case((Transaction.transaction_type == RESTOCK, Transaction.quantity), else_=0)),
                0,
            ).label("restocked"),
        )
        .group_by(Transaction.item_size_id)
        .subquery()
    )
    res = await db.execute(
        select(ItemSize, Item.name, ledger.c.circulating, ledger.c.restocked)
        .join(Item, ItemSize.item_id == Item.id)
        .outerjoin(ledger, ledger.c.item_size_id == ItemSize.id)
        .order_by(func.lower(Item.name).asc(), ItemSize.sort_order.asc())
    )

    mismatches = []
    for size, item_name, circulating, restocked in res.all():
        circulating = int(circulating or 0)
        restocked = int(restocked or 0)
        original = int(size.original_quantity or 0)
        available = int(size.available_quantity or 0)
        in_circulation = int(size.in_circulation or 0)

        problems = []
        if in_circulation != circulating:
            problems.append(f"in_circulation={in_circulation} but ledger says {circulating}")
        if available < 0 or in_circulation < 0:
            problems.append("negative counter")
        if available + in_circulation > original:
            problems.append(f"available + in_circulation exceeds original ({available} + {in_circulation} > {original})")
        if original < restocked:
            problems.append(f"original_quantity={original} is below restocked total {restocked}")

        if problems:
            mismatches.append(
                {
                    "item_id": size.item_id,
                    "item_name": item_name,
                    "item_size_id": size.id,
                    "size": size.size,
                    "original_quantity": original,
                    "available_quantity": available,
                    "in_circulation": in_circulation,
                    "ledger_in_circulation": circulating,
                    "problems": problems,
                }
            )
    return mismatches
