"""
Admin Router
============

Admin-only endpoints for data maintenance.
Protected by API key authentication.

The jobs are the worker's own; they run in the threadpool so the event loop
stays free while a pass is in progress.
"""

import logging
from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Depends, Query
from fastapi.concurrency import run_in_threadpool

from app.dependencies import get_admin_api_key
from app.ledger import to_naive_utc
from app.schemas import MigrationSummary, RecomputeSummary
from worker.jobs.migrate import parse_checkpoint, run_legacy_migration
from worker.jobs.recompute import run_popularity_recompute

logger = logging.getLogger(__name__)

router = APIRouter(
    prefix="/admin",
    tags=["Admin"],
    dependencies=[Depends(get_admin_api_key)],
)


@router.post("/migrations/legacy", response_model=MigrationSummary)
async def migrate_legacy(
    dry_run: bool = Query(True, description="Report without writing"),
    batch_size: Optional[int] = Query(None, ge=1, le=1000),
    resume_after: Optional[str] = Query(None, description="Checkpoint from a previous run"),
) -> MigrationSummary:
    """
    Convert legacy attendee/visitor arrays into check-in records.

    **Requires API key authentication** via `X-API-Key` header.

    Defaults to a dry run. Re-running is safe: pairs that already have a
    record are skipped. Migrated records reach popularity on the next
    recompute.
    """
    checkpoint = parse_checkpoint(resume_after)
    summary = await run_in_threadpool(
        run_legacy_migration,
        dry_run=dry_run,
        batch_size=batch_size,
        resume_after=checkpoint,
    )
    logger.info(f"Legacy migration via API: {summary}")
    return MigrationSummary(**summary)


@router.post("/popularity/recompute", response_model=RecomputeSummary)
async def recompute_popularity(
    as_of: Optional[datetime] = Query(None, description="Reference time for the windows"),
) -> RecomputeSummary:
    """
    Rebuild every popularity aggregate from the check-in ledger.

    **Requires API key authentication** via `X-API-Key` header.
    """
    stats = await run_in_threadpool(
        run_popularity_recompute,
        as_of=to_naive_utc(as_of) if as_of else None,
    )
    logger.info(f"Popularity recompute via API: {stats}")
    return RecomputeSummary(**stats)
