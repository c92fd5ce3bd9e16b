from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from core import stock
from core.auth import current_active_user
from db.database import get_async_session
from db.users import User

router = APIRouter()


@router.get("/reconciliation")
async def reconciliation(
    db: AsyncSession = Depends(get_async_session),
    user: User = Depends(current_active_user),
):
    """Item sizes whose stored counters disagree with the transaction ledger."""
    mismatches = await stock.reconcile(db)
    return {"ok": not mismatches, "mismatch_count": len(mismatches), "mismatches": mismatches}
