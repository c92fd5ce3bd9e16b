import asyncio
import sys
from pathlib import Path

"""
Seed demo data (brands, items with sizes, promoters, a few transactions).

This script can be run from either:
- backend/: `uv run python scripts/seed_demo_data.py`
- repo root: `uv run python backend/scripts/seed_demo_data.py`
"""

# Allow running from repo root by ensuring `backend/` is on sys.path
BACKEND_DIR = Path(__file__).resolve().parents[1]
if str(BACKEND_DIR) not in sys.path:
    sys.path.insert(0, str(BACKEND_DIR))

from sqlalchemy import func, select

from core import stock
from core.logging import configure_logging
from db.brand import Brand
from db.database import async_session_maker, create_db_and_tables
from db.inventory.item import BrandItemLink, Item
from db.inventory.size import ItemSize
from db.promoter import Promoter
from db.users import User

from fastapi_users.password import PasswordHelper


password_helper = PasswordHelper()


async def get_or_create_user(session, email: str, password: str, name: str) -> User:
    result = await session.execute(select(User).where(User.email == email))
    user = result.scalar_one_or_none()
    if user:
        return user

    user = User(
        email=email,
        name=name,
        hashed_password=password_helper.hash(password),
        is_active=True,
        is_superuser=True,
        is_verified=True,
    )
    session.add(user)
    await session.flush()
    return user


async def get_or_create_brand(session, name: str, pinned: bool = False) -> Brand:
    result = await session.execute(select(Brand).where(func.lower(Brand.name) == name.lower()))
    brand = result.scalar_one_or_none()
    if brand:
        return brand

    brand = Brand(name=name, is_active=True, is_pinned=pinned)
    session.add(brand)
    await session.flush()
    return brand


async def get_or_create_item(session, brand: Brand, name: str, product_id: str, sizes: dict) -> Item:
    result = await session.execute(
        select(Item).where(Item.brand_id == brand.id, func.lower(Item.name) == name.lower())
    )
    item = result.scalar_one_or_none()
    if item:
        return item

    item = Item(name=name, product_id=product_id, brand_id=brand.id, is_active=True)
    session.add(item)
    await session.flush()
    for idx, (label, qty) in enumerate(sizes.items()):
        session.add(
            ItemSize(
                item_id=item.id,
                size=label,
                sort_order=idx,
                original_quantity=qty,
                available_quantity=qty,
                in_circulation=0,
            )
        )
    await session.flush()
    return item


async def get_or_create_promoter(session, name: str, clothing_size: str, phone: str) -> Promoter:
    result = await session.execute(select(Promoter).where(func.lower(Promoter.name) == name.lower()))
    promoter = result.scalar_one_or_none()
    if promoter:
        return promoter

    promoter = Promoter(name=name, clothing_size=clothing_size, phone_number=phone, is_active=True)
    session.add(promoter)
    await session.flush()
    return promoter


async def size_of(session, item: Item, label: str) -> ItemSize:
    result = await session.execute(
        select(ItemSize).where(ItemSize.item_id == item.id, ItemSize.size == label)
    )
    return result.scalar_one()


async def seed():
    await create_db_and_tables()

    async with async_session_maker() as session:
        async with session.begin():
            user = await get_or_create_user(session, "admin@admin.com", "admin", "Admin")
            fresh = not (await session.execute(select(func.count(Item.id)))).scalar_one()

            nova = await get_or_create_brand(session, "Nova Energy", pinned=True)
            peak = await get_or_create_brand(session, "Peak Water")

            tee = await get_or_create_item(
                session, nova, "Nova T-Shirt", "NOVA-TS", {"S": 40, "M": 60, "L": 60, "XL": 20}
            )
            cap = await get_or_create_item(session, nova, "Nova Cap", "NOVA-CAP", {"One Size": 100})
            bottle = await get_or_create_item(session, peak, "Peak Bottle", "PEAK-BTL", {"One Size": 250})
            tote = await get_or_create_item(session, nova, "Event Tote", "TOTE-01", {"One Size": 80})

            dana = await get_or_create_promoter(session, "Dana Levi", "M", "050-0000001")
            omer = await get_or_create_promoter(session, "Omer Cohen", "L", "050-0000002")

            if fresh:
                # The tote is handed out at both brands' events.
                session.add(BrandItemLink(brand_id=peak.id, item_id=tote.id))

                tee_m = await size_of(session, tee, "M")
                cap_one = await size_of(session, cap, "One Size")
                bottle_one = await size_of(session, bottle, "One Size")

                await stock.take_out(
                    session, item_size_id=tee_m.id, quantity=10, promoter_id=dana.id, employee_id=user.id
                )
                await stock.take_out(
                    session, item_size_id=cap_one.id, quantity=15, promoter_id=dana.id, employee_id=user.id
                )
                await stock.take_out(
                    session, item_size_id=bottle_one.id, quantity=30, promoter_id=omer.id, employee_id=user.id
                )
                await stock.return_stock(
                    session, item_size_id=tee_m.id, quantity=4, promoter_id=dana.id, employee_id=user.id
                )
                await stock.burn(
                    session,
                    item_size_id=bottle_one.id,
                    quantity=2,
                    promoter_id=omer.id,
                    employee_id=user.id,
                    notes="Damaged at event",
                )
                await stock.restock(
                    session, item_size_id=cap_one.id, quantity=50, employee_id=user.id, notes="Supplier delivery"
                )

    print("Seeded demo data.")


if __name__ == "__main__":
    configure_logging()
    asyncio.run(seed())
