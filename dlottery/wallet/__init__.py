"""Destinations for prize payouts."""

from .interface import PrizeTransfer
from .ledger import Ledger

__all__ = ["Ledger", "PrizeTransfer"]
