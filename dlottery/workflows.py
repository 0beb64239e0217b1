"""Workflows that run engine operations and archive their outcome."""

import logging
from typing import TYPE_CHECKING, Any, Hashable, Optional

from sqlalchemy import select
from sqlalchemy.orm import Session

from .draw.engine import DrawEngine, DrawResult
from .models import DrawRecord, NotificationRecord

if TYPE_CHECKING:
    from .draw.events import Notification

logger = logging.getLogger(__name__)


def _identity_text(identity: Optional[Hashable]) -> Optional[str]:
    return None if identity is None else str(identity)


def _json_safe(payload: dict[str, Any]) -> dict[str, Any]:
    """Stringify values that JSON columns cannot store (e.g. identity objects)."""
    return {
        key: value
        if value is None or isinstance(value, (bool, int, float, str))
        else str(value)
        for key, value in payload.items()
    }


def archive_draw_results(session: Session, engine: DrawEngine) -> list[DrawRecord]:
    """Upsert every finalized result of ``engine`` into ``draw_results``.

    Results are immutable once written by the engine, so re-running the
    workflow only refreshes rows that already match.

    Parameters
    ----------
    session : Session
        Active SQLAlchemy session used for lookups and persistence.
    engine : DrawEngine
        Engine whose history is archived.

    Returns
    -------
    list[DrawRecord]
        One row per completed draw, in completion order.
    """

    records: list[DrawRecord] = []
    for position, result in enumerate(engine.draw_results()):
        record = DrawRecord.get(session, engine.engine_id, result.draw_id)
        if record is None:
            record = DrawRecord(
                engine_id=engine.engine_id,
                draw_id=result.draw_id,
                position=position,
                winning_ticket=result.winning_ticket,
                winner=_identity_text(result.winner),
                has_winner=result.has_winner,
            )
            session.add(record)
            logger.debug(f"Archiving draw {result.draw_id} of engine {engine.engine_id}")
        else:
            record.position = position
            record.winning_ticket = result.winning_ticket
            record.winner = _identity_text(result.winner)
            record.has_winner = result.has_winner
        records.append(record)

    session.flush()
    return records


def archive_notifications(
    session: Session, engine: DrawEngine
) -> list[NotificationRecord]:
    """Append the notifications of ``engine`` not archived yet.

    Returns
    -------
    list[NotificationRecord]
        Newly created rows, in sequence order. Empty when nothing is new.
    """

    last = NotificationRecord.last_sequence(session, engine.engine_id)
    pending: list["Notification"] = [
        n for n in engine.notifications if n.sequence > last
    ]

    records = [
        NotificationRecord(
            engine_id=engine.engine_id,
            sequence=notification.sequence,
            kind=notification.kind,
            draw_id=notification.draw_id,
            payload=_json_safe(notification.payload()),
        )
        for notification in pending
    ]
    session.add_all(records)
    session.flush()
    return records


def load_draw_results(session: Session, engine_id: str) -> list[DrawResult]:
    """Return archived results of ``engine_id`` in completion order.

    Winner identities come back as the strings they were archived as.
    """

    stmt = (
        select(DrawRecord)
        .where(DrawRecord.engine_id == engine_id)
        .order_by(DrawRecord.position.asc())
    )
    return [
        DrawResult(
            draw_id=record.draw_id,
            winning_ticket=record.winning_ticket,
            winner=record.winner,
            has_winner=record.has_winner,
        )
        for record in session.scalars(stmt)
    ]


def run_draw(session: Session, engine: DrawEngine, caller: Hashable) -> DrawRecord:
    """Execute the draw and archive its result and notifications.

    This function essentially wraps :meth:`DrawEngine.execute_draw`. Engine
    errors propagate before anything is written.
    """

    result = engine.execute_draw(caller)
    archive_draw_results(session, engine)
    archive_notifications(session, engine)
    record = DrawRecord.get(session, engine.engine_id, result.draw_id)
    if record is None:  # pragma: no cover - archived just above
        raise RuntimeError(f"Draw {result.draw_id} was not archived")
    return record


def claim_prize(session: Session, engine: DrawEngine, caller: Hashable) -> int:
    """Claim the prize for ``caller`` and archive the resulting notifications."""

    amount = engine.claim_prize(caller)
    archive_notifications(session, engine)
    return amount


__all__ = [
    "archive_draw_results",
    "archive_notifications",
    "claim_prize",
    "load_draw_results",
    "run_draw",
]
