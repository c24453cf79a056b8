"""Run the preview auto-finalize sweep once, outside Celery beat.

Usage:
    python scripts/run_auto_finalize.py [YYYY-MM-DD]

The optional date is treated as "today"; previews for months before it are
finalized.
"""
import asyncio
import sys
from datetime import date
from typing import Optional

from proprecon.database import async_session_maker
from proprecon.services.reconciliation_service import ReconciliationService


async def run_sweep(today: Optional[date] = None):
    label = f"{today:%Y-%m}" if today else "the current month"
    print(f"Finalizing preview reconciliations before {label}...")
    async with async_session_maker() as db:
        sweep = await ReconciliationService(db).auto_finalize_previews(today=today)

    for result in sweep.results:
        if result.success:
            print(f"  OK      {result.id}  {result.property}  revenue={result.revenue}  new_items={result.new_items}")
        elif result.skipped:
            print(f"  SKIPPED {result.id}  {result.error}")
        else:
            print(f"  FAILED  {result.id}  {result.error}")

    print(
        f"\nFinalized: {sweep.finalized_count}  "
        f"Failed: {sweep.failed_count}  Skipped: {sweep.skipped_count}"
    )
    return sweep


if __name__ == "__main__":
    today = date.fromisoformat(sys.argv[1]) if len(sys.argv) > 1 else None
    sweep = asyncio.run(run_sweep(today))
    sys.exit(1 if sweep.failed_count else 0)
