"""The draw engine and its value types."""

from .engine import DEFAULT_REGISTRATION_FEE, UNIT, Draw, DrawEngine, DrawResult
from .events import (
    DrawResultAnnounced,
    DrawStarted,
    NewLotteryStarted,
    NoWinner,
    Notification,
    NotificationLog,
    ParticipantRegistered,
    PrizeWithdrawn,
)
from .randomness import RandomSource, default_random_source, seeded_random_source
from .state import LotteryState, derive_lottery_state
from .tickets import MAX_PARTICIPANTS, MAX_TICKETS, TicketPool

__all__ = [
    "DEFAULT_REGISTRATION_FEE",
    "Draw",
    "DrawEngine",
    "DrawResult",
    "DrawResultAnnounced",
    "DrawStarted",
    "LotteryState",
    "MAX_PARTICIPANTS",
    "MAX_TICKETS",
    "NewLotteryStarted",
    "NoWinner",
    "Notification",
    "NotificationLog",
    "ParticipantRegistered",
    "PrizeWithdrawn",
    "RandomSource",
    "TicketPool",
    "UNIT",
    "default_random_source",
    "derive_lottery_state",
    "seeded_random_source",
]
