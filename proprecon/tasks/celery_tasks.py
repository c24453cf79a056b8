"""
PropRecon - Celery Tasks

Background tasks for scheduled operations.
"""

import asyncio
import logging
from typing import Any, Dict

from celery import shared_task

from proprecon.database import async_session_factory

logger = logging.getLogger(__name__)


def run_async(coro):
    """Helper to run async functions in Celery tasks."""
    loop = asyncio.new_event_loop()
    asyncio.set_event_loop(loop)
    try:
        return loop.run_until_complete(coro)
    finally:
        loop.close()


# ===========================================
# RECONCILIATION TASKS
# ===========================================

@shared_task(name='proprecon.tasks.celery_tasks.auto_finalize_previews_task')
def auto_finalize_previews_task() -> Dict[str, Any]:
    """Finalize preview reconciliations for months that have ended."""
    return run_async(_auto_finalize_previews())


async def _auto_finalize_previews() -> Dict[str, Any]:
    """Async implementation of the finalize sweep."""
    from proprecon.services.reconciliation_service import ReconciliationService

    async with async_session_factory() as db:
        service = ReconciliationService(db)
        sweep = await service.auto_finalize_previews()

    for result in sweep.results:
        if not result.success and not result.skipped:
            logger.warning(f"Reconciliation {result.id} not finalized: {result.error}")

    return {
        "finalized_count": sweep.finalized_count,
        "failed_count": sweep.failed_count,
        "skipped_count": sweep.skipped_count,
        "results": [
            {
                "id": str(r.id),
                "success": r.success,
                "skipped": r.skipped,
                "property": r.property,
                "revenue": str(r.revenue) if r.revenue is not None else None,
                "new_items": r.new_items,
                "error": r.error,
            }
            for r in sweep.results
        ],
    }
