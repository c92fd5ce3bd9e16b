import asyncio
import sys
from pathlib import Path

"""
Report item sizes whose counters disagree with the transaction ledger.

Exits with status 1 when mismatches are found.

- backend/: `uv run python scripts/check_quantities.py`
- repo root: `uv run python backend/scripts/check_quantities.py`
"""

BACKEND_DIR = Path(__file__).resolve().parents[1]
if str(BACKEND_DIR) not in sys.path:
    sys.path.insert(0, str(BACKEND_DIR))

from core import stock
from core.logging import configure_logging
from db.database import async_session_maker, dispose_engine


async def main() -> int:
    try:
        async with async_session_maker() as db:
            mismatches = await stock.reconcile(db)
    finally:
        await dispose_engine()

    if not mismatches:
        print("All item sizes match the ledger.")
        return 0

    print(f"{len(mismatches)} item size(s) out of balance:")
    for m in mismatches:
        print(
            f"- {m['item_name']} ({m['size']}) [{m['item_size_id']}]: "
            f"original={m['original_quantity']} available={m['available_quantity']} "
            f"in_circulation={m['in_circulation']} ledger={m['ledger_in_circulation']}"
        )
        for problem in m["problems"]:
            print(f"    {problem}")
    return 1


if __name__ == "__main__":
    configure_logging()
    sys.exit(asyncio.run(main()))
