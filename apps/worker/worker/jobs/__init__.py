"""
VenuePulse Worker Jobs
======================

Individual job modules:
- ingest: Demo data loading
- migrate: Legacy participant arrays to ledger records
- recompute: Popularity aggregates rebuilt from the ledger
"""

from worker.jobs.ingest import run_demo_ingest
from worker.jobs.migrate import run_legacy_migration
from worker.jobs.recompute import run_popularity_recompute

__all__ = [
    "run_demo_ingest",
    "run_legacy_migration",
    "run_popularity_recompute",
]
