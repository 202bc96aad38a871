"""
Demo Data Ingestion Job
=======================

Loads/refreshes demo venues, events and users (idempotent).

Items carry legacy participant arrays so the migration can be tried right
after: ``migrate:legacy --recompute``.

Run with: python -m worker.cli ingest:demo
"""

import random
from datetime import datetime, timedelta
from typing import Dict
from uuid import uuid4

from rich.console import Console
from rich.progress import Progress, SpinnerColumn, TextColumn
from sqlalchemy import delete, func, select

from app.models import CheckIn, Item, ItemKind, PopularityAggregate, User, UserHistoryEntry
from worker.database import get_sync_session

console = Console()


# =============================================================================
# DEMO DATA DEFINITIONS
# =============================================================================

USERS_DATA = [
    {"display_name": "Ava Moreno", "legacy_id": "adalo-1001"},
    {"display_name": "Ben Okafor", "legacy_id": "adalo-1002"},
    {"display_name": "Chloe Nguyen", "legacy_id": "adalo-1003"},
    {"display_name": "Diego Ramos", "legacy_id": "adalo-1004"},
    {"display_name": "Emma Schultz", "legacy_id": "adalo-1005"},
    {"display_name": "Farah Haddad", "legacy_id": "adalo-1006"},
    {"display_name": "Gus Lindqvist", "legacy_id": "adalo-1007"},
    {"display_name": "Hana Sato", "legacy_id": None},
]

VENUES_DATA = [
    {"name": "Mohawk", "city": "Austin", "address": "912 Red River St", "lat": 30.2700, "lon": -97.7360, "legacy_id": "place-11"},
    {"name": "Stubb's", "city": "Austin", "address": "801 Red River St", "lat": 30.2685, "lon": -97.7365, "legacy_id": "place-12"},
    {"name": "Cheer Up Charlies", "city": "Austin", "address": "900 Red River St", "lat": 30.2697, "lon": -97.7358, "legacy_id": "place-13"},
    {"name": "Zilker Park", "city": "Austin", "address": "2100 Barton Springs Rd", "lat": 30.2669, "lon": -97.7729, "legacy_id": "place-14"},
    {"name": "Radio Coffee & Beer", "city": "Austin", "address": "4204 Menchaca Rd", "lat": 30.2334, "lon": -97.7868, "legacy_id": "place-15"},
    {"name": "The Continental Club", "city": "Austin", "address": "1315 S Congress Ave", "lat": 30.2502, "lon": -97.7493, "legacy_id": "place-16"},
    {"name": "White Horse", "city": "Austin", "address": "500 Comal St", "lat": 30.2637, "lon": -97.7276, "legacy_id": None},
    {"name": "Emo's", "city": "Austin", "address": "2015 E Riverside Dr", "lat": 30.2398, "lon": -97.7270, "legacy_id": None},
    {"name": "The Bowery Ballroom", "city": "New York", "address": "6 Delancey St", "lat": 40.7204, "lon": -73.9934, "legacy_id": "place-21"},
    {"name": "Baby's All Right", "city": "New York", "address": "146 Broadway", "lat": 40.7100, "lon": -73.9633, "legacy_id": None},
]

EVENTS_DATA = [
    {"name": "Red River Block Party", "city": "Austin", "address": "Red River St", "lat": 30.2690, "lon": -97.7362, "days_ahead": 3, "legacy_id": "event-31"},
    {"name": "Zilker Sunset Sessions", "city": "Austin", "address": "Zilker Park", "lat": 30.2669, "lon": -97.7729, "days_ahead": 10, "legacy_id": "event-32"},
    {"name": "South Congress Art Walk", "city": "Austin", "address": "S Congress Ave", "lat": 30.2490, "lon": -97.7500, "days_ahead": -5, "legacy_id": "event-33"},
    {"name": "Lower East Side Night Market", "city": "New York", "address": "Essex St", "lat": 40.7180, "lon": -73.9880, "days_ahead": 7, "legacy_id": "event-41"},
]

# Participants per legacy item, by legacy user id. "adalo-9999" was never
# imported and exercises the unresolved-reference path.
LEGACY_PARTICIPANTS = {
    "place-11": ["adalo-1001", "adalo-1002", "adalo-1003", "adalo-1004"],
    "place-12": ["adalo-1001", "adalo-1005"],
    "place-13": ["adalo-1006", "adalo-1006", "adalo-1007"],
    "place-14": ["adalo-1002", "adalo-1003", "adalo-9999"],
    "place-16": ["adalo-1004"],
    "place-21": ["adalo-1005", "adalo-1007"],
    "event-31": ["adalo-1001", "adalo-1002", "adalo-1003", "adalo-1005", "adalo-1006"],
    "event-32": ["adalo-1004", "adalo-1007"],
    "event-33": ["adalo-1001", "adalo-9999"],
    "event-41": ["adalo-1003"],
}


def run_demo_ingest(force: bool = False) -> Dict[str, int]:
    """
    Load demo data into the database.

    This is idempotent - it will clear existing data and reload.

    Args:
        force: If True, skip the existing-data notice

    Returns:
        dict with counts of created records
    """
    console.print("[bold blue]🚀 Starting demo data ingestion...[/bold blue]")
    rng = random.Random(42)

    with get_sync_session() as session:
        existing_count = session.execute(select(func.count(Item.id))).scalar()

        if existing_count > 0 and not force:
            console.print(f"[yellow]Found {existing_count} existing items.[/yellow]")
            console.print("[yellow]Use --force to clear and reload.[/yellow]")

        # Clear existing data (in reverse dependency order)
        with Progress(
            SpinnerColumn(),
            TextColumn("[progress.description]{task.description}"),
            console=console,
        ) as progress:
            task = progress.add_task("Clearing existing data...", total=None)

            for model in (UserHistoryEntry, PopularityAggregate, CheckIn, Item, User):
                session.execute(delete(model))
            session.commit()

            progress.update(task, description="[green]Cleared existing data[/green]")

        counts = {"users": 0, "venues": 0, "events": 0, "legacy_pairs": 0}
        now = datetime.utcnow()

        console.print("\n[bold]Creating users...[/bold]")
        for user_data in USERS_DATA:
            session.add(User(id=uuid4(), created_at=now, **user_data))
            counts["users"] += 1
        session.commit()
        console.print(f"  Created {counts['users']} users")

        console.print("\n[bold]Creating venues...[/bold]")
        for venue in VENUES_DATA:
            participants = LEGACY_PARTICIPANTS.get(venue["legacy_id"])
            session.add(Item(
                id=uuid4(),
                kind=ItemKind.VENUE,
                name=venue["name"],
                city=venue["city"],
                address=venue["address"],
                latitude=venue["lat"],
                longitude=venue["lon"],
                legacy_id=venue["legacy_id"],
                legacy_participant_ids=participants,
                created_at=now - timedelta(days=rng.randint(30, 400)),
            ))
            counts["venues"] += 1
            counts["legacy_pairs"] += len(participants or [])
        session.commit()
        console.print(f"  Created {counts['venues']} venues")

        console.print("\n[bold]Creating events...[/bold]")
        for event in EVENTS_DATA:
            participants = LEGACY_PARTICIPANTS.get(event["legacy_id"])
            session.add(Item(
                id=uuid4(),
                kind=ItemKind.EVENT,
                name=event["name"],
                city=event["city"],
                address=event["address"],
                latitude=event["lat"],
                longitude=event["lon"],
                starts_at=(now + timedelta(days=event["days_ahead"])).replace(hour=19, minute=0, second=0, microsecond=0),
                legacy_id=event["legacy_id"],
                legacy_participant_ids=participants,
                created_at=now - timedelta(days=rng.randint(1, 6)),
            ))
            counts["events"] += 1
            counts["legacy_pairs"] += len(participants or [])
        session.commit()
        console.print(f"  Created {counts['events']} events")

    console.print("\n[bold green]✅ Demo data ingestion complete![/bold green]")
    for key, value in counts.items():
        console.print(f"  • {key}: {value}")
    console.print("\nNext: [cyan]python -m worker.cli migrate:legacy --recompute[/cyan]")

    return counts
