"""Database models archiving finalized draws and engine notifications."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Optional

from sqlalchemy import (
    JSON,
    Boolean,
    DateTime,
    Index,
    Integer,
    String,
    UniqueConstraint,
    select,
)
from sqlalchemy.orm import Mapped, Session, mapped_column

from .base import Base
from ..db.utils import dt_iso


class DrawRecord(Base):
    """Archived result of one executed draw."""

    __tablename__ = "draw_results"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    """Surrogate primary key."""

    engine_id: Mapped[str] = mapped_column(String(32), nullable=False, index=True)
    """Handle of the engine instance that ran the draw."""

    draw_id: Mapped[int] = mapped_column(Integer, nullable=False)
    """Draw identifier within the engine."""

    position: Mapped[int] = mapped_column(Integer, nullable=False)
    """Zero-based completion order within the engine's history."""

    winning_ticket: Mapped[int] = mapped_column(Integer, nullable=False)
    """Ticket number sampled by the draw."""

    winner: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    """Identity holding the winning ticket, ``None`` when it was unassigned."""

    has_winner: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    recorded_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
    )
    """Timestamp when the result was archived."""

    __table_args__ = (
        UniqueConstraint("engine_id", "draw_id", name="uq_draw_results_engine_draw"),
    )

    def __init__(
        self,
        *,
        engine_id: str,
        draw_id: int,
        position: int,
        winning_ticket: int,
        winner: Optional[str] = None,
        has_winner: bool = False,
        recorded_at: Optional[datetime] = None,
    ) -> None:
        self.engine_id = engine_id
        self.draw_id = draw_id
        self.position = position
        self.winning_ticket = winning_ticket
        self.winner = winner
        self.has_winner = has_winner
        if recorded_at is not None:
            self.recorded_at = recorded_at

    def __repr__(self) -> str:  # pragma: no cover - repr is trivial
        return "<DrawRecord(engine_id={engine}, draw_id={draw}, winning_ticket={ticket}, winner={winner})>".format(
            engine=self.engine_id,
            draw=self.draw_id,
            ticket=self.winning_ticket,
            winner=self.winner,
        )

    def to_json(self) -> dict[str, Any]:
        return {
            "engine_id": self.engine_id,
            "draw_id": self.draw_id,
            "winning_ticket": self.winning_ticket,
            "winner": self.winner,
            "has_winner": self.has_winner,
            "recorded_at": dt_iso(self.recorded_at),
        }

    @classmethod
    def get(
        cls, session: Session, engine_id: str, draw_id: int
    ) -> Optional["DrawRecord"]:
        """Return the archived result for ``draw_id`` if it exists."""

        return session.scalar(
            select(cls).where(cls.engine_id == engine_id, cls.draw_id == draw_id)
        )


class NotificationRecord(Base):
    """Archived engine notification, keyed by its sequence number."""

    __tablename__ = "draw_notifications"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    engine_id: Mapped[str] = mapped_column(String(32), nullable=False)
    sequence: Mapped[int] = mapped_column(Integer, nullable=False)
    kind: Mapped[str] = mapped_column(String(40), nullable=False)
    draw_id: Mapped[int] = mapped_column(Integer, nullable=False)
    payload: Mapped[dict] = mapped_column(JSON, nullable=False)
    recorded_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
    )

    __table_args__ = (
        UniqueConstraint(
            "engine_id", "sequence", name="uq_draw_notifications_engine_sequence"
        ),
        Index("ix_draw_notifications_kind", "kind"),
    )

    def __init__(
        self,
        *,
        engine_id: str,
        sequence: int,
        kind: str,
        draw_id: int,
        payload: dict,
        recorded_at: Optional[datetime] = None,
    ) -> None:
        self.engine_id = engine_id
        self.sequence = sequence
        self.kind = kind
        self.draw_id = draw_id
        self.payload = payload
        if recorded_at is not None:
            self.recorded_at = recorded_at

    def __repr__(self) -> str:  # pragma: no cover - repr is trivial
        return f"<NotificationRecord(engine_id={self.engine_id}, sequence={self.sequence}, kind={self.kind})>"

    @classmethod
    def last_sequence(cls, session: Session, engine_id: str) -> int:
        """Return the highest archived sequence for ``engine_id`` (``0`` if none)."""

        stmt = (
            select(cls.sequence)
            .where(cls.engine_id == engine_id)
            .order_by(cls.sequence.desc())
        )
        return session.scalars(stmt).first() or 0


__all__ = ["DrawRecord", "NotificationRecord"]
