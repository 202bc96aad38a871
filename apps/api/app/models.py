"""
VenuePulse Database Models
==========================

Implements the check-in data model:
- Items: venues and events sharing one identifier space (tagged by ``kind``)
- Users: app members, with their identifier in the legacy platform
- Ledger: append-only check-in records (check_ins)
- Aggregates: derived popularity counters per item (popularity_aggregates)
- History: distinct items each user has ever checked into (user_history_entries)

The ledger is the source of truth. Aggregates and history are derived and can
be rebuilt from it. Ledger rows are never deleted; the only mutation is the
active -> checked-out transition.

Column types are portable: PostgreSQL in production, SQLite in tests.
"""

import enum
from datetime import datetime
from typing import Optional
from uuid import UUID, uuid4

from sqlalchemy import (
    JSON,
    Boolean,
    CheckConstraint,
    DateTime,
    Enum,
    Float,
    ForeignKey,
    Index,
    Integer,
    String,
    UniqueConstraint,
    Uuid,
    text,
)
from sqlalchemy.orm import Mapped, mapped_column

from app.database import Base


# =============================================================================
# ENUMS
# =============================================================================

class ItemKind(str, enum.Enum):
    """The two kinds of item that can be checked into."""
    VENUE = "venue"
    EVENT = "event"


class Provenance(str, enum.Enum):
    """Where a ledger record came from."""
    LIVE = "live"
    MIGRATED_LEGACY = "migrated_legacy"


def _enum(enum_cls, name: str) -> Enum:
    return Enum(
        enum_cls,
        name=name,
        values_callable=lambda members: [m.value for m in members],
        native_enum=False,
        length=32,
    )


# =============================================================================
# REFERENCE DATA
# =============================================================================

class Item(Base):
    """A venue or an event."""
    __tablename__ = "items"

    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True, default=uuid4)
    kind: Mapped[ItemKind] = mapped_column(_enum(ItemKind, "itemkind"), nullable=False)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    city: Mapped[Optional[str]] = mapped_column(String(100))
    address: Mapped[Optional[str]] = mapped_column(String(500))

    # ItemLocation
    latitude: Mapped[Optional[float]] = mapped_column(Float)
    longitude: Mapped[Optional[float]] = mapped_column(Float)

    # Events only
    starts_at: Mapped[Optional[datetime]] = mapped_column(DateTime)

    # Legacy platform data (attendee list for events, visitor list for venues)
    legacy_id: Mapped[Optional[str]] = mapped_column(String(64))
    legacy_participant_ids: Mapped[Optional[list]] = mapped_column(JSON)

    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, nullable=False)

    __table_args__ = (
        CheckConstraint("latitude IS NULL OR (latitude BETWEEN -90 AND 90)", name="ck_items_latitude"),
        CheckConstraint("longitude IS NULL OR (longitude BETWEEN -180 AND 180)", name="ck_items_longitude"),
        Index("ix_items_kind", "kind"),
        Index("ix_items_city", "city"),
        Index("ix_items_lat_lon", "latitude", "longitude"),
    )


class User(Base):
    """App member."""
    __tablename__ = "users"

    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True, default=uuid4)
    display_name: Mapped[str] = mapped_column(String(255), nullable=False)
    legacy_id: Mapped[Optional[str]] = mapped_column(String(64), unique=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, nullable=False)


# =============================================================================
# LEDGER
# =============================================================================

class CheckIn(Base):
    """
    One visit of a user to an item.

    Immutable except for the single active -> checked-out transition.
    At most one active record per (user, item); the partial unique index
    backs the application-level check.
    """
    __tablename__ = "check_ins"

    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True, default=uuid4)
    user_id: Mapped[UUID] = mapped_column(Uuid, ForeignKey("users.id"), nullable=False)
    item_id: Mapped[UUID] = mapped_column(Uuid, ForeignKey("items.id"), nullable=False)

    checked_in_at: Mapped[datetime] = mapped_column(DateTime, nullable=False)
    checked_out_at: Mapped[Optional[datetime]] = mapped_column(DateTime)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    provenance: Mapped[Provenance] = mapped_column(
        _enum(Provenance, "provenance"), nullable=False, default=Provenance.LIVE
    )
    legacy_source_id: Mapped[Optional[str]] = mapped_column(String(200))

    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, nullable=False)

    __table_args__ = (
        Index(
            "uq_check_ins_active_pair",
            "user_id",
            "item_id",
            unique=True,
            postgresql_where=text("is_active"),
            sqlite_where=text("is_active"),
        ),
        Index("ix_check_ins_item_time", "item_id", "checked_in_at"),
        Index("ix_check_ins_user_item", "user_id", "item_id"),
        CheckConstraint(
            "is_active OR checked_out_at IS NOT NULL OR provenance = 'migrated_legacy'",
            name="ck_check_ins_checked_out",
        ),
    )


# =============================================================================
# DERIVED STATE
# =============================================================================

class PopularityAggregate(Base):
    """
    Derived popularity counters for one item.

    Written by two paths: atomic deltas on every check-in/check-out, and a
    periodic full overwrite recomputed from the ledger (recomputed_at).
    """
    __tablename__ = "popularity_aggregates"

    item_id: Mapped[UUID] = mapped_column(Uuid, ForeignKey("items.id"), primary_key=True)
    recent_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    weekly_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    total_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    score: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, nullable=False)
    recomputed_at: Mapped[Optional[datetime]] = mapped_column(DateTime)

    __table_args__ = (
        Index("ix_popularity_score", "score"),
    )


class UserHistoryEntry(Base):
    """A distinct item a user has ever checked into. Append-only."""
    __tablename__ = "user_history_entries"

    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True, default=uuid4)
    user_id: Mapped[UUID] = mapped_column(Uuid, ForeignKey("users.id"), nullable=False)
    item_id: Mapped[UUID] = mapped_column(Uuid, ForeignKey("items.id"), nullable=False)
    item_kind: Mapped[ItemKind] = mapped_column(_enum(ItemKind, "itemkind"), nullable=False)
    first_checked_in_at: Mapped[datetime] = mapped_column(DateTime, nullable=False)

    __table_args__ = (
        UniqueConstraint("user_id", "item_id", name="uq_user_history_user_item"),
        Index("ix_user_history_user", "user_id"),
    )
