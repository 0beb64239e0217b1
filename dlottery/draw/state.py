"""Coarse lifecycle state derived from the stored draw flags."""

from __future__ import annotations

from enum import Enum


class LotteryState(str, Enum):
    """Lifecycle state of the current draw.

    ``INCONSISTENT`` is never reachable while the engine invariants hold; it
    exists so that a corrupted combination of flags is reported instead of
    being mistaken for one of the valid states.
    """

    IN_PROGRESS = "IN_PROGRESS"
    WAITING_FOR_CLAIM = "WAITING_FOR_CLAIM"
    READY_FOR_NEW_DRAW = "READY_FOR_NEW_DRAW"
    INCONSISTENT = "INCONSISTENT"


def derive_lottery_state(
    completed: bool, has_winner: bool, prize_withdrawn: bool
) -> LotteryState:
    """Map the stored draw flags to a :class:`LotteryState`.

    Parameters
    ----------
    completed : bool
        Whether the current draw has been executed (or none was started).
    has_winner : bool
        Whether a winner is recorded for the current draw.
    prize_withdrawn : bool
        Whether the prize has been paid out (or there was nothing to pay).

    Returns
    -------
    LotteryState
        The derived state, ``INCONSISTENT`` for unreachable combinations.
    """

    if not completed:
        # An active draw never carries a winner or a paid-out prize.
        if has_winner or prize_withdrawn:
            return LotteryState.INCONSISTENT
        return LotteryState.IN_PROGRESS
    if has_winner and not prize_withdrawn:
        return LotteryState.WAITING_FOR_CLAIM
    return LotteryState.READY_FOR_NEW_DRAW


__all__ = ["LotteryState", "derive_lottery_state"]
