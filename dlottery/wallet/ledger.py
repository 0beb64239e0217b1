"""In-memory balances for engines that are not wired to a wallet service."""

from __future__ import annotations

import logging
from collections import defaultdict
from typing import Callable, Hashable, Optional

from .interface import PrizeTransfer

logger = logging.getLogger(__name__)

ReceiveHook = Callable[[Hashable, int], Optional[bool]]
"""Called with ``(recipient, amount)`` before a credit is applied.

Returning ``False`` or raising rejects the transfer. Any other return value
accepts it.
"""


class Ledger(PrizeTransfer):
    """Keeps balances per recipient and lets recipients react to payments.

    A hook registered with :meth:`on_receive` runs while the engine is still
    inside the paying operation, which makes it possible to exercise
    recipients that reject value or try to call back into the engine.
    """

    def __init__(self) -> None:
        self._balances: defaultdict[Hashable, int] = defaultdict(int)
        self._hooks: dict[Hashable, ReceiveHook] = {}
        self.transfers: list[tuple[Hashable, int]] = []

    def on_receive(self, recipient: Hashable, hook: Optional[ReceiveHook]) -> None:
        """Install (or with ``None`` remove) the receive hook for ``recipient``."""
        if hook is None:
            self._hooks.pop(recipient, None)
        else:
            self._hooks[recipient] = hook

    def balance_of(self, recipient: Hashable) -> int:
        return self._balances.get(recipient, 0)

    def transfer(self, recipient: Hashable, amount: int) -> bool:
        if amount < 0:
            raise ValueError("amount must be non-negative")

        hook = self._hooks.get(recipient)
        if hook is not None and hook(recipient, amount) is False:
            logger.warning(f"Recipient {recipient!r} rejected a transfer of {amount}")
            return False

        self._balances[recipient] += amount
        self.transfers.append((recipient, amount))
        logger.debug(f"Credited {amount} to {recipient!r}")
        return True


__all__ = ["Ledger", "ReceiveHook"]
