"""Named failures raised by the draw engine.

Every precondition the engine checks maps to exactly one exception class so
callers can decide whether to retry with corrected arguments. None of them are
recovered inside the engine.
"""

from __future__ import annotations

from typing import Hashable, Optional


class LotteryError(Exception):
    """Base exception for all draw engine failures."""


class PausedError(LotteryError):
    """Raised when registering while the engine is paused."""

    def __init__(self) -> None:
        super().__init__("Registration is paused")


class InvalidStateError(LotteryError):
    """Raised when an operation does not fit the current draw lifecycle."""


class AlreadyRegisteredError(LotteryError):
    """Raised when an identity registers twice in the same draw."""

    def __init__(self, participant: Hashable, draw_id: int) -> None:
        self.participant = participant
        self.draw_id = draw_id
        super().__init__(f"{participant!r} is already registered in draw {draw_id}")


class InvalidPaymentError(LotteryError):
    """Raised when the paid amount differs from the registration fee."""

    def __init__(self, expected: int, received: int) -> None:
        self.expected = expected
        self.received = received
        super().__init__(
            f"Incorrect registration fee. Expected: {expected}, Received: {received}"
        )


class CapacityReachedError(LotteryError):
    """Raised when the current draw cannot accept another participant."""

    def __init__(self, capacity: int) -> None:
        self.capacity = capacity
        super().__init__(f"Maximum of {capacity} participants reached")


class NotOwnerError(LotteryError):
    """Raised when a non-owner calls an owner-only operation."""

    def __init__(self, caller: Hashable) -> None:
        self.caller = caller
        super().__init__(f"{caller!r} is not the owner")


class NotEnoughParticipantsError(LotteryError):
    """Raised when the draw is executed before registration has filled."""

    def __init__(self, required: int, actual: int) -> None:
        self.required = required
        self.actual = actual
        super().__init__(
            f"Draw requires {required} participants, only {actual} registered"
        )


class AlreadyCompletedError(LotteryError):
    """Raised when executing a draw that is not active."""

    def __init__(self, draw_id: int) -> None:
        self.draw_id = draw_id
        super().__init__(f"Draw {draw_id} is already completed")


class DrawNotCompletedError(LotteryError):
    """Raised when claiming a prize before the draw has been executed."""

    def __init__(self, draw_id: int) -> None:
        self.draw_id = draw_id
        super().__init__(f"Draw {draw_id} has not been completed")


class NotWinnerError(LotteryError):
    """Raised when someone other than the recorded winner claims."""

    def __init__(self, caller: Hashable) -> None:
        self.caller = caller
        super().__init__(f"{caller!r} is not the winner")


class NothingToClaimError(LotteryError):
    """Raised when the prize pool is empty."""

    def __init__(self) -> None:
        super().__init__("No prize to claim")


class AlreadyWithdrawnError(LotteryError):
    """Raised when the prize of a draw has already been paid out."""

    def __init__(self, draw_id: int) -> None:
        self.draw_id = draw_id
        super().__init__(f"Prize for draw {draw_id} has already been withdrawn")


class TransferFailedError(LotteryError):
    """Raised when the outbound prize transfer is rejected."""

    def __init__(
        self, recipient: Hashable, amount: int, reason: Optional[str] = None
    ) -> None:
        self.recipient = recipient
        self.amount = amount
        self.reason = reason
        message = f"Transfer of {amount} to {recipient!r} failed"
        if reason:
            message += f": {reason}"
        super().__init__(message)


class NotFoundError(LotteryError):
    """Raised when looking up a draw result that does not exist."""

    def __init__(self, draw_id: Optional[int] = None) -> None:
        self.draw_id = draw_id
        if draw_id is None:
            super().__init__("No draw has been completed yet")
        else:
            super().__init__(f"Draw {draw_id} not found")


class ReentrantCallError(LotteryError):
    """Raised when a guarded operation is entered while one is in flight."""

    def __init__(self, operation: str) -> None:
        self.operation = operation
        super().__init__(f"Reentrant call to {operation} rejected")


class ConsistencyError(LotteryError):
    """Raised when the stored flags describe an unreachable lifecycle state."""


__all__ = [
    "LotteryError",
    "PausedError",
    "InvalidStateError",
    "AlreadyRegisteredError",
    "InvalidPaymentError",
    "CapacityReachedError",
    "NotOwnerError",
    "NotEnoughParticipantsError",
    "AlreadyCompletedError",
    "DrawNotCompletedError",
    "NotWinnerError",
    "NothingToClaimError",
    "AlreadyWithdrawnError",
    "TransferFailedError",
    "NotFoundError",
    "ReentrantCallError",
    "ConsistencyError",
]
