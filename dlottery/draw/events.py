"""Notifications emitted by the draw engine."""

from __future__ import annotations

from dataclasses import dataclass, field, fields
from typing import Any, ClassVar, Hashable, Iterator, Optional


@dataclass(frozen=True)
class Notification:
    """Base class for engine notifications.

    Attributes
    ----------
    draw_id : int
        Draw the notification refers to.
    sequence : int
        Position of the notification in the engine's log, starting at ``1``.
        Assigned by :class:`NotificationLog` when the notification is appended.
    """

    kind: ClassVar[str] = "notification"

    draw_id: int
    sequence: int = field(default=0, kw_only=True)

    def payload(self) -> dict[str, Any]:
        """Return the notification fields except ``sequence``."""
        return {
            item.name: getattr(self, item.name)
            for item in fields(self)
            if item.name != "sequence"
        }


@dataclass(frozen=True)
class DrawStarted(Notification):
    kind: ClassVar[str] = "draw-started"

    prize: int
    target_timestamp: int


@dataclass(frozen=True)
class ParticipantRegistered(Notification):
    kind: ClassVar[str] = "participant-registered"

    participant: Hashable
    ticket: int


@dataclass(frozen=True)
class DrawResultAnnounced(Notification):
    kind: ClassVar[str] = "draw-result"

    winning_ticket: int
    winner: Hashable


@dataclass(frozen=True)
class NoWinner(Notification):
    kind: ClassVar[str] = "no-winner"

    winning_ticket: int


@dataclass(frozen=True)
class PrizeWithdrawn(Notification):
    kind: ClassVar[str] = "prize-withdrawn"

    winner: Hashable
    amount: int


@dataclass(frozen=True)
class NewLotteryStarted(Notification):
    kind: ClassVar[str] = "new-lottery-started"


class NotificationLog:
    """Append-only, ordered record of notifications for one engine."""

    def __init__(self) -> None:
        self._entries: list[Notification] = []

    def append(self, notification: Notification) -> Notification:
        """Stamp ``notification`` with the next sequence number and store it."""
        stamped = _with_sequence(notification, len(self._entries) + 1)
        self._entries.append(stamped)
        return stamped

    def since(self, sequence: int) -> list[Notification]:
        """Return notifications with a sequence number greater than ``sequence``."""
        return self._entries[max(sequence, 0):]

    def truncate(self, length: int) -> None:
        # Only used to roll back notifications of a failed operation.
        del self._entries[length:]

    def last(self) -> Optional[Notification]:
        return self._entries[-1] if self._entries else None

    def __getitem__(self, index: int) -> Notification:
        return self._entries[index]

    def __iter__(self) -> Iterator[Notification]:
        return iter(list(self._entries))

    def __len__(self) -> int:
        return len(self._entries)


def _with_sequence(notification: Notification, sequence: int) -> Notification:
    return type(notification)(**notification.payload(), sequence=sequence)


__all__ = [
    "DrawResultAnnounced",
    "DrawStarted",
    "NewLotteryStarted",
    "NoWinner",
    "Notification",
    "NotificationLog",
    "ParticipantRegistered",
    "PrizeWithdrawn",
]
