"""Outbound value transfer used to pay out prizes."""

from abc import ABC, abstractmethod
from typing import Hashable


class PrizeTransfer(ABC):
    """Abstract destination for prize payouts."""

    @abstractmethod
    def transfer(self, recipient: Hashable, amount: int) -> bool:
        """Send ``amount`` base units to ``recipient``.

        Returns ``True`` when the recipient accepted the value. Implementations
        may also raise; the engine treats both as a failed transfer.
        """
