import asyncio
import os
import tempfile
import uuid
from pathlib import Path

import pytest

_DB_PATH = Path(tempfile.gettempdir()) / f"merch_inventory_test_{os.getpid()}.db"

# Must be set before the app (and its engine) is imported.
os.environ["DATABASE_URL"] = f"sqlite+aiosqlite:///{_DB_PATH}"
os.environ.setdefault("JWT_SECRET", "test-secret")

from fastapi.testclient import TestClient  # noqa: E402

from core.auth import current_active_superuser, current_active_user  # noqa: E402
from db.database import Base, create_db_and_tables, engine  # noqa: E402
from db.users import User  # noqa: E402
from main import app  # noqa: E402


async def _drop_all():
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
    await engine.dispose()


@pytest.fixture(scope="session", autouse=True)
def database_file():
    yield
    if _DB_PATH.exists():
        _DB_PATH.unlink()


@pytest.fixture()
def tables():
    """Tables without the HTTP app, for tests that drive core code directly."""
    async def _create():
        await create_db_and_tables()
        await engine.dispose()

    asyncio.run(_create())
    yield
    asyncio.run(_drop_all())


@pytest.fixture()
def client():
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.clear()
    asyncio.run(_drop_all())


@pytest.fixture()
def employee(client):
    response = client.post(
        "/auth/register",
        json={"email": "staff@example.com", "password": "secret-password", "name": "Staff Member"},
    )
    assert response.status_code == 201
    data = response.json()

    user = User(
        id=uuid.UUID(data["id"]),
        email=data["email"],
        name=data["name"],
        hashed_password="",
        is_active=True,
        is_superuser=True,
        is_verified=True,
    )
    app.dependency_overrides[current_active_user] = lambda: user
    app.dependency_overrides[current_active_superuser] = lambda: user
    return user


@pytest.fixture()
def api(client, employee):
    """Test client authenticated as a superuser employee."""
    return client


@pytest.fixture()
def make_brand(api):
    def _make(name="Nova Energy", **extra):
        response = api.post("/brands/", json={"name": name, **extra})
        assert response.status_code == 201, response.text
        return response.json()

    return _make


@pytest.fixture()
def make_item(api):
    def _make(brand_id, name="Nova T-Shirt", quantity=None, sizes=None, **extra):
        payload = {"name": name, **extra}
        if sizes is not None:
            payload["sizes"] = [{"size": label, "quantity": qty} for label, qty in sizes]
        else:
            payload["quantity"] = 10 if quantity is None else quantity
        response = api.post(f"/brands/{brand_id}/items", json=payload)
        assert response.status_code == 201, response.text
        return response.json()

    return _make


@pytest.fixture()
def make_promoter(api):
    def _make(name="Dana Levi", **extra):
        response = api.post("/promoters/", json={"name": name, **extra})
        assert response.status_code == 201, response.text
        return response.json()

    return _make


@pytest.fixture()
def stocked(make_brand, make_item, make_promoter):
    """One brand, one single-size item with 10 units, one promoter."""
    brand = make_brand()
    item = make_item(brand["id"], quantity=10)
    promoter = make_promoter()
    return {
        "brand": brand,
        "item": item,
        "size": item["sizes"][0],
        "promoter": promoter,
    }
