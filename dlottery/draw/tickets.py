"""Ticket allocation for a single draw."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Hashable, Optional

if TYPE_CHECKING:
    from .randomness import RandomSource

logger = logging.getLogger(__name__)

MAX_TICKETS = 10
"""Ticket numbers run from ``1`` to ``MAX_TICKETS`` inclusive."""

MAX_PARTICIPANTS = 5
"""Registrations accepted per draw; the draw fires once this is reached."""


class TicketPool:
    """Ticket numbers of the current draw, split into available and assigned.

    Assignment is exclusive in both directions: a ticket belongs to at most one
    participant and a participant holds at most one ticket.
    """

    def __init__(self, max_tickets: int = MAX_TICKETS) -> None:
        if max_tickets < 1:
            raise ValueError("max_tickets must be positive")
        self.max_tickets = max_tickets
        self._available: list[int] = []
        self._holders: dict[int, Hashable] = {}
        self._tickets: dict[Hashable, int] = {}
        self.reset()

    def reset(self) -> None:
        """Forget every assignment and make the full range available again."""
        self._available = list(range(1, self.max_tickets + 1))
        self._holders = {}
        self._tickets = {}

    def assign(self, participant: Hashable, random_source: "RandomSource") -> int:
        """Assign a uniformly chosen available ticket to ``participant``.

        Parameters
        ----------
        participant : Hashable
            Identity receiving the ticket. Must not already hold one.
        random_source : RandomSource
            Source used to pick the index into the available tickets.

        Returns
        -------
        int
            The assigned ticket number.

        Raises
        ------
        ValueError
            If ``participant`` already holds a ticket or none are left.
        """

        if participant in self._tickets:
            raise ValueError(f"{participant!r} already holds a ticket")
        if not self._available:
            raise ValueError("No tickets available")

        index = random_source.randrange(len(self._available))
        ticket = self._available[index]
        # Swap-remove keeps the remaining tickets contiguous.
        self._available[index] = self._available[-1]
        self._available.pop()

        self._holders[ticket] = participant
        self._tickets[participant] = ticket
        logger.debug(
            f"Assigned ticket {ticket}; {len(self._available)} tickets remain"
        )
        return ticket

    def copy(self) -> "TicketPool":
        """Return an independent pool with the same assignments."""
        clone = TicketPool(self.max_tickets)
        clone._available = list(self._available)
        clone._holders = dict(self._holders)
        clone._tickets = dict(self._tickets)
        return clone

    def holder_of(self, ticket: int) -> Optional[Hashable]:
        """Return the participant holding ``ticket``, or ``None``."""
        return self._holders.get(ticket)

    def ticket_of(self, participant: Hashable) -> Optional[int]:
        """Return the ticket held by ``participant``, or ``None``."""
        return self._tickets.get(participant)

    def __contains__(self, participant: object) -> bool:
        return participant in self._tickets

    def __len__(self) -> int:
        return len(self._tickets)

    @property
    def participants(self) -> list[Hashable]:
        """Participants in registration order."""
        return list(self._tickets)

    @property
    def available_count(self) -> int:
        return len(self._available)

    @property
    def assigned_tickets(self) -> set[int]:
        return set(self._holders)


__all__ = ["MAX_PARTICIPANTS", "MAX_TICKETS", "TicketPool"]
