"""
VenuePulse Worker Service
=========================

Background job runner for:
- Demo data ingestion
- Legacy check-in migration
- Popularity recompute (one-off or scheduled)
"""

__version__ = "1.0.0"
