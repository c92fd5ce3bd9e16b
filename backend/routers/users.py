from typing import List

from fastapi import APIRouter, Depends
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from core.auth import current_active_user
from db.database import get_async_session
from db.users import User
from schemas.users import EmployeeRead

router = APIRouter()

# Login / register / me routes come from fastapi-users and are mounted in main.py.


@router.get("/", response_model=List[EmployeeRead])
async def list_employees(
    db: AsyncSession = Depends(get_async_session),
    user: User = Depends(current_active_user),
):
    res = await db.execute(
        select(User).order_by(func.lower(func.coalesce(User.name, User.email)).asc())
    )
    return [EmployeeRead(**u.to_schema) for u in res.scalars().all()]
