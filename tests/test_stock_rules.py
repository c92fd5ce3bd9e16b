"""Quantity rules exercised directly against core.stock."""

import asyncio
import uuid

import pytest
from sqlalchemy import delete, select, update
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.exc import IntegrityError

from core import stock
from core.errors import InsufficientQuantityError, PromoterHoldingError
from db.brand import Brand
from db.database import async_session_maker, engine
from db.inventory.item import Item
from db.inventory.size import ItemSize
from db.inventory.transaction import Transaction
from db.promoter import Promoter


def run(scenario):
    async def _wrapped():
        try:
            async with async_session_maker() as db:
                return await scenario(db)
        finally:
            await engine.dispose()

    return asyncio.run(_wrapped())


async def _setup(db, *sizes):
    brand = Brand(name="Nova Energy")
    db.add(brand)
    await db.flush()
    item = Item(name="Shirt", product_id="TS-01", brand_id=brand.id)
    db.add(item)
    await db.flush()
    rows = []
    for idx, (label, qty) in enumerate(sizes or [("One Size", 10)]):
        size = ItemSize(
            item_id=item.id,
            size=label,
            sort_order=idx,
            original_quantity=qty,
            available_quantity=qty,
            in_circulation=0,
        )
        db.add(size)
        rows.append(size)
    promoter = Promoter(name="Dana Levi")
    db.add(promoter)
    await db.commit()
    return item, rows, promoter


@pytest.mark.usefixtures("tables")
class TestQuantityRules:
    def test_counters_follow_each_operation(self):
        async def scenario(db):
            item, (size,), promoter = await _setup(db)
            await stock.take_out(db, item_size_id=size.id, quantity=6, promoter_id=promoter.id, employee_id=None)
            await stock.return_stock(db, item_size_id=size.id, quantity=2, promoter_id=promoter.id, employee_id=None)
            await stock.burn(db, item_size_id=size.id, quantity=1, promoter_id=promoter.id, employee_id=None)
            out = await stock.restock(db, item_size_id=size.id, quantity=5, employee_id=None)
            await db.commit()
            return out["size"], await stock.promoter_holding(db, promoter.id, size.id)

        size, held = run(scenario)
        assert size["original_quantity"] == 15
        assert size["available_quantity"] == 11
        assert size["in_circulation"] == 3
        assert size["burned_quantity"] == 1
        assert held == 3

    def test_failed_operation_writes_nothing(self):
        async def scenario(db):
            item, (size,), promoter = await _setup(db)
            with pytest.raises(InsufficientQuantityError):
                await stock.take_out(db, item_size_id=size.id, quantity=11, promoter_id=promoter.id, employee_id=None)
            await db.rollback()
            count = (await db.execute(select(Transaction))).scalars().all()
            fresh = (await db.execute(select(ItemSize).execution_options(populate_existing=True))).scalar_one()
            return len(count), fresh.available_quantity

        count, available = run(scenario)
        assert count == 0
        assert available == 10

    def test_return_without_holding_unless_forced(self):
        async def scenario(db):
            item, (size,), promoter = await _setup(db)
            other = Promoter(name="Omer Cohen")
            db.add(other)
            await stock.take_out(db, item_size_id=size.id, quantity=2, promoter_id=promoter.id, employee_id=None)
            await db.commit()

            with pytest.raises(PromoterHoldingError):
                await stock.return_stock(db, item_size_id=size.id, quantity=1, promoter_id=other.id, employee_id=None)
            out = await stock.return_stock(
                db, item_size_id=size.id, quantity=1, promoter_id=other.id, employee_id=None, force=True
            )
            await db.commit()
            return out["size"], await stock.promoter_holding(db, other.id, size.id)

        size, held = run(scenario)
        assert size["in_circulation"] == 1
        # A forced return leaves the promoter's ledger balance negative.
        assert held == -1

    def test_batch_keeps_earlier_successes(self):
        async def scenario(db):
            item, (small, large), promoter = await _setup(db, ("S", 3), ("L", 1))
            promoter_id, small_id, large_id = promoter.id, small.id, large.id
            result = await stock.run_batch(
                db,
                action="take_out",
                promoter_id=promoter_id,
                entries=[
                    stock.BatchEntry(item_size_id=small_id, quantity=3),
                    stock.BatchEntry(item_size_id=large_id, quantity=2),
                ],
                employee_id=None,
            )
            async with async_session_maker() as other_session:
                sizes = (await other_session.execute(select(ItemSize))).scalars().all()
                by_label = {s.size: s.in_circulation for s in sizes}
            return result, by_label

        result, by_label = run(scenario)
        assert result["success_count"] == 1
        assert result["failed"][0]["item_name"] == "Shirt (L)"
        assert by_label == {"S": 3, "L": 0}

    def test_promoter_inventory_only_positive_balances(self):
        async def scenario(db):
            item, (small, large), promoter = await _setup(db, ("S", 3), ("L", 3))
            await stock.take_out(db, item_size_id=small.id, quantity=2, promoter_id=promoter.id, employee_id=None)
            await stock.take_out(db, item_size_id=large.id, quantity=1, promoter_id=promoter.id, employee_id=None)
            await stock.return_stock(db, item_size_id=large.id, quantity=1, promoter_id=promoter.id, employee_id=None)
            await db.commit()
            return await stock.promoter_inventory(db, promoter.id)

        holdings = run(scenario)
        assert [(h["size"]["size"], h["quantity"]) for h in holdings] == [("S", 2)]
        assert holdings[0]["item"]["brand_name"] == "Nova Energy"


@pytest.mark.usefixtures("tables")
class TestConstraints:
    def test_counters_cannot_exceed_original(self):
        async def scenario(db):
            item, (size,), promoter = await _setup(db)
            await db.execute(
                update(ItemSize).where(ItemSize.id == size.id).values(available_quantity=11)
            )
            await db.commit()

        with pytest.raises(IntegrityError):
            run(scenario)

    def test_transaction_quantity_must_be_positive(self):
        async def scenario(db):
            item, (size,), promoter = await _setup(db)
            db.add(
                Transaction(
                    transaction_type="take_out",
                    item_id=item.id,
                    item_size_id=size.id,
                    quantity=0,
                    promoter_id=promoter.id,
                )
            )
            await db.commit()

        with pytest.raises(IntegrityError):
            run(scenario)

    def test_promoter_required_except_restock(self):
        async def scenario(db):
            item, (size,), promoter = await _setup(db)
            db.add(
                Transaction(
                    transaction_type="burn",
                    item_id=item.id,
                    item_size_id=size.id,
                    quantity=1,
                    promoter_id=None,
                )
            )
            await db.commit()

        with pytest.raises(IntegrityError):
            run(scenario)

    def test_ledger_rows_block_item_delete(self):
        async def scenario(db):
            item, (size,), promoter = await _setup(db)
            await stock.take_out(db, item_size_id=size.id, quantity=1, promoter_id=promoter.id, employee_id=None)
            await db.commit()
            await db.execute(delete(Item).where(Item.id == item.id))
            await db.commit()

        with pytest.raises(IntegrityError):
            run(scenario)

    def test_ledger_rows_block_size_delete(self):
        async def scenario(db):
            item, (size,), promoter = await _setup(db)
            await stock.restock(db, item_size_id=size.id, quantity=2, employee_id=None)
            await db.commit()
            await db.execute(delete(ItemSize).where(ItemSize.id == size.id))
            await db.commit()

        with pytest.raises(IntegrityError):
            run(scenario)


@pytest.mark.usefixtures("tables")
class TestReconcile:
    def test_clean_ledger(self):
        async def scenario(db):
            item, (size,), promoter = await _setup(db)
            await stock.take_out(db, item_size_id=size.id, quantity=4, promoter_id=promoter.id, employee_id=None)
            await stock.burn(db, item_size_id=size.id, quantity=1, promoter_id=promoter.id, employee_id=None)
            await db.commit()
            return await stock.reconcile(db)

        assert run(scenario) == []

    def test_detects_tampered_circulation(self):
        async def scenario(db):
            item, (size,), promoter = await _setup(db)
            await stock.take_out(db, item_size_id=size.id, quantity=4, promoter_id=promoter.id, employee_id=None)
            await db.execute(
                update(ItemSize)
                .where(ItemSize.id == size.id)
                .values(in_circulation=2, available_quantity=6)
            )
            await db.commit()
            return await stock.reconcile(db)

        mismatches = run(scenario)
        assert len(mismatches) == 1
        assert mismatches[0]["in_circulation"] == 2
        assert mismatches[0]["ledger_in_circulation"] == 4
        assert "ledger says 4" in mismatches[0]["problems"][0]


class TestSizeLocking:
    def test_locked_query_selects_for_update_on_postgres(self):
        sql = str(stock.size_query(uuid.uuid4(), lock=True).compile(dialect=postgresql.dialect()))
        assert "FOR UPDATE" in sql

    def test_plain_query_does_not_lock(self):
        sql = str(stock.size_query(uuid.uuid4()).compile(dialect=postgresql.dialect()))
        assert "FOR UPDATE" not in sql

    def test_sqlite_ignores_the_lock(self):
        sql = str(stock.size_query(uuid.uuid4(), lock=True).compile(dialect=sqlite.dialect()))
        assert "FOR UPDATE" not in sql

    @pytest.mark.usefixtures("tables")
    def test_second_return_cannot_exceed_holding(self):
        async def scenario(db):
            item, (size,), promoter = await _setup(db)
            await stock.take_out(db, item_size_id=size.id, quantity=2, promoter_id=promoter.id, employee_id=None)
            await db.commit()
            await stock.return_stock(db, item_size_id=size.id, quantity=2, promoter_id=promoter.id, employee_id=None)
            await db.commit()
            with pytest.raises(PromoterHoldingError):
                await stock.burn(db, item_size_id=size.id, quantity=1, promoter_id=promoter.id, employee_id=None)
            await db.rollback()
            fresh = (await db.execute(stock.size_query(size.id))).scalar_one()
            return fresh.available_quantity, fresh.in_circulation

        assert run(scenario) == (10, 0)
