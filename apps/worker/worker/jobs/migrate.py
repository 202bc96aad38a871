"""
Legacy Check-in Migration Job
=============================

Backfills the check-in ledger from the participant arrays carried over from
the legacy platform (attendee lists on events, visitor lists on venues).

Every (item, participant) pair becomes one inactive ledger record with
provenance ``migrated_legacy``, unless the pair already has any record, live
or migrated. Re-running the job is therefore a no-op, and an interrupted run
can simply be started again (or resumed from its checkpoint).

Migrated records skip the incremental popularity path; run
``popularity:recompute`` (or pass ``--recompute``) to account for them.

Run with: python -m worker.cli migrate:legacy --dry-run
"""

import logging
import threading
from typing import Any, Dict, List, Optional, Set, Tuple, Union
from uuid import UUID, uuid4

from rich.console import Console
from rich.progress import BarColumn, Progress, SpinnerColumn, TextColumn
from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.errors import InvalidArgument
from app.history import history_insert_statement
from app.models import CheckIn, Item, Provenance, User
from worker.config import settings
from worker.database import dialect_name, get_sync_session

console = Console()
logger = logging.getLogger(__name__)

Pair = Tuple[UUID, UUID]


class UnresolvedReference(Exception):
    """A legacy participant that maps to no known user."""

    def __init__(self, item_id: UUID, participant: str):
        super().__init__(f"Participant '{participant}' on item {item_id} matches no user")
        self.item_id = item_id
        self.participant = participant


class ParticipantResolver:
    """
    Maps legacy participant identifiers to user ids.

    Arrays that were already rewritten to stable ids resolve directly; legacy
    platform ids are looked up through ``users.legacy_id``.
    """

    def __init__(self, session: Session):
        self.session = session
        self._cache: Dict[str, Optional[UUID]] = {}

    def resolve(self, item_id: UUID, participant: Any) -> UUID:
        key = str(participant).strip()
        if key not in self._cache:
            self._cache[key] = self._lookup(key)
        user_id = self._cache[key]
        if user_id is None:
            raise UnresolvedReference(item_id, key)
        return user_id

    def _lookup(self, key: str) -> Optional[UUID]:
        if not key:
            return None
        try:
            candidate = UUID(key)
        except ValueError:
            candidate = None
        if candidate is not None and self.session.get(User, candidate) is not None:
            return candidate
        return self.session.execute(
            select(User.id).where(User.legacy_id == key)
        ).scalar_one_or_none()


def pair_has_record(session: Session, user_id: UUID, item_id: UUID) -> bool:
    """True when the ledger holds any record, live or migrated, for the pair."""
    found = session.execute(
        select(CheckIn.id)
        .where(CheckIn.user_id == user_id, CheckIn.item_id == item_id)
        .limit(1)
    ).first()
    return found is not None


def load_chunk(session: Session, after: Optional[UUID], size: int) -> List[Item]:
    stmt = select(Item).order_by(Item.id).limit(size)
    if after is not None:
        stmt = stmt.where(Item.id > after)
    return list(session.execute(stmt).scalars().all())


def migrate_item(
    session: Session,
    item: Item,
    resolver: ParticipantResolver,
    seen: Set[Pair],
    dry_run: bool,
) -> Tuple[Dict[str, int], Set[Pair]]:
    """
    Migrate the participant array of one item.

    ``seen`` holds pairs created earlier in the run. Returns the item's
    tallies and the pairs it created. Nothing is committed here.
    """
    tally = {"processed": 0, "created": 0, "skipped": 0, "errored": 0}
    created: Set[Pair] = set()
    source_key = item.legacy_id or str(item.id)
    dialect = dialect_name(session)

    for participant in item.legacy_participant_ids:
        tally["processed"] += 1
        try:
            user_id = resolver.resolve(item.id, participant)
        except UnresolvedReference as e:
            logger.warning(str(e))
            tally["errored"] += 1
            continue

        pair = (user_id, item.id)
        if pair in seen or pair in created or pair_has_record(session, user_id, item.id):
            tally["skipped"] += 1
            continue
        created.add(pair)

        if not dry_run:
            session.add(CheckIn(
                id=uuid4(),
                user_id=user_id,
                item_id=item.id,
                checked_in_at=item.created_at,
                checked_out_at=None,
                is_active=False,
                provenance=Provenance.MIGRATED_LEGACY,
                legacy_source_id=f"{source_key}:{participant}",
            ))
            session.execute(
                history_insert_statement(dialect, user_id, item.id, item.kind, item.created_at)
            )
        tally["created"] += 1

    return tally, created


def parse_checkpoint(value: Optional[Union[str, UUID]]) -> Optional[UUID]:
    """Turn a checkpoint from a previous run back into an item id."""
    if not value:
        return None
    if isinstance(value, UUID):
        return value
    try:
        return UUID(str(value).strip())
    except ValueError:
        raise InvalidArgument(f"Checkpoint '{value}' is not an item id")


def run_legacy_migration(
    dry_run: bool = False,
    batch_size: Optional[int] = None,
    resume_after: Optional[Union[str, UUID]] = None,
    cancel_event: Optional[threading.Event] = None,
) -> Dict[str, Any]:
    """
    Convert legacy participant arrays into ledger records.

    Args:
        dry_run: Run every check but write nothing
        batch_size: Items per chunk (defaults to settings)
        resume_after: Checkpoint of a previous run; items up to it are skipped
        cancel_event: Checked between items; a set event stops the run

    Returns:
        dict with migration summary (identical for dry and real runs)
    """
    batch_size = batch_size or settings.migration_batch_size
    after = parse_checkpoint(resume_after)

    mode = "DRY RUN" if dry_run else "LIVE"
    console.print(f"[bold blue]🚚 Migrating legacy check-ins ({mode})...[/bold blue]")
    console.print(f"  • Batch size: {batch_size}")
    if after:
        console.print(f"  • Resuming after: {after}")

    summary = {
        "items": 0,
        "processed": 0,
        "created": 0,
        "skipped": 0,
        "errored": 0,
        "dry_run": dry_run,
        "cancelled": False,
        "checkpoint": str(after) if after else None,
    }
    seen: Set[Pair] = set()

    with get_sync_session() as session:
        resolver = ParticipantResolver(session)

        with Progress(
            SpinnerColumn(),
            TextColumn("[progress.description]{task.description}"),
            BarColumn(),
            TextColumn("{task.completed} items"),
            console=console,
        ) as progress:
            task = progress.add_task("Migrating items...", total=None)

            while not summary["cancelled"]:
                chunk = load_chunk(session, after, batch_size)
                if not chunk:
                    break

                for item in chunk:
                    if cancel_event is not None and cancel_event.is_set():
                        summary["cancelled"] = True
                        logger.warning(f"Migration cancelled; last checkpoint {summary['checkpoint']}")
                        break

                    after = item.id
                    if not item.legacy_participant_ids:
                        continue

                    summary["items"] += 1
                    try:
                        tally, created = migrate_item(session, item, resolver, seen, dry_run)
                        if not dry_run:
                            session.commit()
                    except SQLAlchemyError:
                        session.rollback()
                        logger.exception(f"Migration failed for item {item.id}")
                        count = len(item.legacy_participant_ids)
                        tally = {"processed": count, "created": 0, "skipped": 0, "errored": count}
                    else:
                        seen |= created

                    for key, value in tally.items():
                        summary[key] += value
                    progress.update(task, advance=1)
                else:
                    summary["checkpoint"] = str(after)

    console.print(f"\n[bold green]✅ Legacy migration complete ({mode})![/bold green]")
    console.print(f"  • Items: {summary['items']}")
    console.print(f"  • Pairs processed: {summary['processed']}")
    console.print(f"  • Created: {summary['created']}")
    console.print(f"  • Skipped: {summary['skipped']}")
    console.print(f"  • Errored: {summary['errored']}")
    if summary["cancelled"]:
        console.print(f"[yellow]Cancelled. Resume with --resume-after {summary['checkpoint']}[/yellow]")

    return summary
