"""
Module: yard_kernel.models.lot_event
Responsibility: Outbox of lot change events -- one row per lot creation,
    transition, split and correction.
Architecture position: Kernel > Models.  May import from db/base.py and
    domain/values.py only.

Invariants enforced:
    - A row is written in the same transaction as the change it records, so
      an event exists iff its change was committed.
    - Rows are append-only; lot history is the ordered sequence of rows for
      one lot_id.
"""

from datetime import datetime
from typing import Any
from uuid import UUID

from sqlalchemy import JSON, ForeignKey, Index, Integer, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from yard_kernel.db.base import Base, UTCDateTime, UUIDString
from yard_kernel.domain.values import LotStatus


class LotEvent(Base):
    """A committed change to one inventory lot."""

    __tablename__ = "lot_events"

    __table_args__ = (
        UniqueConstraint("lot_id", "sequence", name="uq_lot_event_sequence"),
        Index("idx_lot_event_tenant", "tenant_id"),
    )

    lot_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("inventory_lots.id"),
        nullable=False,
    )

    # 1-based position in the lot's history
    sequence: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
    )

    tenant_id: Mapped[str] = mapped_column(
        String(100),
        nullable=False,
    )

    # None for lot creation
    from_status: Mapped[LotStatus | None] = mapped_column(
        String(30),
        nullable=True,
    )

    to_status: Mapped[LotStatus] = mapped_column(
        String(30),
        nullable=False,
    )

    action: Mapped[str] = mapped_column(
        String(50),
        nullable=False,
    )

    actor_id: Mapped[str] = mapped_column(
        String(100),
        nullable=False,
    )

    occurred_at: Mapped[datetime] = mapped_column(
        UTCDateTime(),
        nullable=False,
    )

    detail: Mapped[dict[str, Any] | None] = mapped_column(
        JSON,
        nullable=True,
    )
