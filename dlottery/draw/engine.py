"""Draw engine: registration, winner selection and prize custody."""

from __future__ import annotations

import logging
import os
import threading
import uuid
from contextlib import contextmanager
from dataclasses import dataclass, field, replace
from typing import Callable, Hashable, Iterator, Optional

from dotenv import load_dotenv

from ..exceptions import (
    AlreadyCompletedError,
    AlreadyRegisteredError,
    AlreadyWithdrawnError,
    CapacityReachedError,
    ConsistencyError,
    DrawNotCompletedError,
    InvalidPaymentError,
    InvalidStateError,
    NotEnoughParticipantsError,
    NotFoundError,
    NothingToClaimError,
    NotOwnerError,
    NotWinnerError,
    PausedError,
    ReentrantCallError,
    TransferFailedError,
)
from ..wallet.interface import PrizeTransfer
from ..wallet.ledger import Ledger
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
from .randomness import RandomSource, default_random_source
from .state import LotteryState, derive_lottery_state
from .tickets import MAX_PARTICIPANTS, MAX_TICKETS, TicketPool

logger = logging.getLogger(__name__)

UNIT = 10**18
"""Base units per whole unit of value."""

DEFAULT_REGISTRATION_FEE = UNIT // 1000
"""0.001 unit."""


def _fee_from_env() -> int:
    """Read ``DLOTTERY_REGISTRATION_FEE`` (base units) or use the default."""
    load_dotenv()
    raw = os.getenv("DLOTTERY_REGISTRATION_FEE")
    if not raw:
        return DEFAULT_REGISTRATION_FEE
    try:
        return int(raw)
    except ValueError as exc:
        raise ValueError(
            f"DLOTTERY_REGISTRATION_FEE must be an integer amount, got {raw!r}"
        ) from exc


@dataclass
class Draw:
    """The current draw as stored by the engine.

    Attributes
    ----------
    draw_id : int
        Identifier of the draw. Advances once the draw has no pending
        obligation left (no winner, or the winner has claimed).
    end_timestamp : int
        Informational target time supplied when the draw was started.
    completed : bool
        ``False`` while registration is open.
    prize_pool : int
        Value held by the engine until paid out, in base units.
    winner : Optional[Hashable]
        Identity holding the winning ticket, if any.
    prize_withdrawn : bool
        ``True`` once the prize was paid, or when there was nothing to pay.
    """

    draw_id: int
    end_timestamp: int = 0
    completed: bool = True
    prize_pool: int = 0
    winner: Optional[Hashable] = None
    prize_withdrawn: bool = True


@dataclass(frozen=True)
class DrawResult:
    """Finalized outcome of an executed draw."""

    draw_id: int
    winning_ticket: int
    winner: Optional[Hashable]
    has_winner: bool


@dataclass
class _EngineState:
    draw: Draw
    tickets: TicketPool
    registration_fee: int
    paused: bool = False
    results: dict[int, DrawResult] = field(default_factory=dict)
    completed_draw_ids: list[int] = field(default_factory=list)

    def copy(self) -> "_EngineState":
        return replace(
            self,
            draw=replace(self.draw),
            tickets=self.tickets.copy(),
            results=dict(self.results),
            completed_draw_ids=list(self.completed_draw_ids),
        )


class DrawEngine:
    """Runs recurring draws for a single owner.

    Every mutating operation is atomic: when it raises, the engine state and
    the notification log are exactly as they were before the call. All public
    methods are serialized by one re-entrant lock, and :meth:`execute_draw` and
    :meth:`claim_prize` additionally share a non-reentrant guard so a
    recipient receiving a prize cannot re-enter either of them.
    """

    def __init__(
        self,
        owner: Hashable,
        *,
        registration_fee: Optional[int] = None,
        random_source: Optional[RandomSource] = None,
        transfer: Optional[PrizeTransfer] = None,
    ) -> None:
        """Create an engine owned by ``owner`` with no active draw.

        Parameters
        ----------
        owner : Hashable
            Identity allowed to execute draws and run administrative operations.
        registration_fee : Optional[int], default: None
            Fee in base units. When omitted, ``DLOTTERY_REGISTRATION_FEE`` is
            read from the environment, falling back to 0.001 unit.
        random_source : Optional[RandomSource], default: None
            Source for ticket allocation and winner selection. The operating
            system CSPRNG is used when omitted.
        transfer : Optional[PrizeTransfer], default: None
            Destination for prize payouts. An in-memory :class:`Ledger` is used
            when omitted.
        """

        fee = registration_fee if registration_fee is not None else _fee_from_env()
        if fee <= 0:
            raise ValueError("registration_fee must be positive")

        self.engine_id = uuid.uuid4().hex
        self._owner = owner
        self._random = (
            random_source if random_source is not None else default_random_source()
        )
        self.transfer = transfer if transfer is not None else Ledger()
        self._state = _EngineState(
            draw=Draw(draw_id=1),
            tickets=TicketPool(MAX_TICKETS),
            registration_fee=fee,
        )
        self._log = NotificationLog()
        self._subscribers: list[Callable[[Notification], None]] = []
        self._published = 0
        self._depth = 0
        self._delivering = False
        self._lock = threading.RLock()
        self._payout_lock = threading.Lock()

    def __repr__(self) -> str:
        return f"<DrawEngine(engine_id={self.engine_id}, draw_id={self.current_draw_id})>"

    # -------- guards --------
    @contextmanager
    def _atomic(self) -> Iterator[None]:
        with self._lock:
            snapshot = self._state.copy()
            mark = len(self._log)
            self._depth += 1
            try:
                yield
            except BaseException:
                self._state = snapshot
                self._log.truncate(mark)
                raise
            finally:
                self._depth -= 1
            if self._depth == 0:
                self._publish()

    @contextmanager
    def _non_reentrant(self, operation: str) -> Iterator[None]:
        # Threads are already serialized by ``_lock``; a held guard means the
        # same call stack is trying to enter again.
        if not self._payout_lock.acquire(blocking=False):
            raise ReentrantCallError(operation)
        try:
            yield
        finally:
            self._payout_lock.release()

    def _require_owner(self, caller: Hashable) -> None:
        if caller != self._owner:
            raise NotOwnerError(caller)

    def _emit(self, notification: Notification) -> None:
        stamped = self._log.append(notification)
        logger.debug(f"Notification #{stamped.sequence}: {stamped.kind} {stamped.payload()}")

    def _publish(self) -> None:
        """Deliver committed notifications to subscribers in sequence order.

        Runs only at the outermost commit. Operations a subscriber performs
        from inside its callback append to the log and are delivered by the
        loop already running, after the notifications queued before them.
        A failing subscriber is logged and skipped; the operation that
        produced the notification has already committed.
        """
        if self._delivering:
            return
        self._delivering = True
        try:
            while self._published < len(self._log):
                notification = self._log[self._published]
                self._published += 1
                for callback in list(self._subscribers):
                    try:
                        callback(notification)
                    except Exception:
                        logger.exception(
                            f"Subscriber {callback!r} failed on notification "
                            f"#{notification.sequence} ({notification.kind})"
                        )
        finally:
            self._delivering = False

    def _advance_draw_id(self) -> None:
        draw = self._state.draw
        draw.draw_id += 1
        self._emit(NewLotteryStarted(draw_id=draw.draw_id))

    # -------- draw lifecycle --------
    def start_draw(self, target_timestamp: int, attached_value: int = 0) -> None:
        """Open registration for a new draw.

        Parameters
        ----------
        target_timestamp : int
            Informational end time (seconds since the epoch). Not enforced.
        attached_value : int, default: 0
            Value added to the prize pool on top of any rollover.

        Raises
        ------
        InvalidStateError
            If a draw is active or the previous winner has not claimed.
        ValueError
            If ``attached_value`` is negative.
        """

        if attached_value < 0:
            raise ValueError("attached_value must be non-negative")

        with self._atomic():
            draw = self._state.draw
            if not draw.completed:
                raise InvalidStateError(f"Draw {draw.draw_id} is still active")
            if draw.winner is not None and not draw.prize_withdrawn:
                raise InvalidStateError(
                    f"Winner of draw {draw.draw_id} has not claimed the prize"
                )

            self._state.tickets.reset()
            draw.prize_pool += attached_value
            draw.winner = None
            draw.completed = False
            draw.prize_withdrawn = False
            draw.end_timestamp = target_timestamp

            self._emit(
                DrawStarted(
                    draw_id=draw.draw_id,
                    prize=draw.prize_pool,
                    target_timestamp=target_timestamp,
                )
            )
            logger.info(f"Draw {draw.draw_id} started with prize {draw.prize_pool}")

    def register(self, caller: Hashable, paid_amount: int) -> int:
        """Buy a ticket in the active draw and return its number.

        The ticket is chosen uniformly from those still available.

        Raises
        ------
        PausedError
            If registration is paused.
        InvalidStateError
            If no draw is active.
        AlreadyRegisteredError
            If ``caller`` already holds a ticket in this draw.
        InvalidPaymentError
            If ``paid_amount`` is not exactly the registration fee.
        CapacityReachedError
            If the draw already has ``MAX_PARTICIPANTS`` participants.
        """

        with self._atomic():
            state = self._state
            draw = state.draw
            if state.paused:
                raise PausedError()
            if draw.completed:
                raise InvalidStateError("No active draw")
            if caller in state.tickets:
                raise AlreadyRegisteredError(caller, draw.draw_id)
            if paid_amount != state.registration_fee:
                raise InvalidPaymentError(state.registration_fee, paid_amount)
            if len(state.tickets) >= MAX_PARTICIPANTS or not state.tickets.available_count:
                raise CapacityReachedError(MAX_PARTICIPANTS)

            ticket = state.tickets.assign(caller, self._random)
            draw.prize_pool += paid_amount
            self._emit(
                ParticipantRegistered(
                    draw_id=draw.draw_id, participant=caller, ticket=ticket
                )
            )
            return ticket

    def execute_draw(self, caller: Hashable) -> DrawResult:
        """Pick the winning ticket once registration is full.

        The winning number is sampled from the whole range
        ``1..MAX_TICKETS``, not only from assigned tickets, so a draw can end
        without a winner. In that case the prize stays in the pool for the next
        draw and the draw id advances immediately.

        Raises
        ------
        NotOwnerError
            If ``caller`` is not the owner.
        AlreadyCompletedError
            If no draw is active.
        NotEnoughParticipantsError
            If fewer than ``MAX_PARTICIPANTS`` have registered.
        ReentrantCallError
            If called from inside :meth:`execute_draw` or :meth:`claim_prize`.
        """

        with self._atomic(), self._non_reentrant("execute_draw"):
            state = self._state
            draw = state.draw
            self._require_owner(caller)
            if draw.completed:
                raise AlreadyCompletedError(draw.draw_id)
            if len(state.tickets) != MAX_PARTICIPANTS:
                raise NotEnoughParticipantsError(MAX_PARTICIPANTS, len(state.tickets))

            winning_ticket = self._random.randrange(1, state.tickets.max_tickets + 1)
            winner = state.tickets.holder_of(winning_ticket)
            draw.completed = True

            result = DrawResult(
                draw_id=draw.draw_id,
                winning_ticket=winning_ticket,
                winner=winner,
                has_winner=winner is not None,
            )
            state.results[draw.draw_id] = result
            state.completed_draw_ids.append(draw.draw_id)

            if winner is not None:
                draw.winner = winner
                self._emit(
                    DrawResultAnnounced(
                        draw_id=draw.draw_id,
                        winning_ticket=winning_ticket,
                        winner=winner,
                    )
                )
                logger.info(
                    f"Draw {draw.draw_id}: ticket {winning_ticket} won by {winner!r}"
                )
            else:
                draw.prize_withdrawn = True
                self._emit(NoWinner(draw_id=draw.draw_id, winning_ticket=winning_ticket))
                logger.info(
                    f"Draw {draw.draw_id}: ticket {winning_ticket} unassigned, "
                    f"{draw.prize_pool} rolls over"
                )
                self._advance_draw_id()
            return result

    def claim_prize(self, caller: Hashable) -> int:
        """Pay the prize pool to the winner and return the amount paid.

        State is updated before the transfer: when the transfer runs, the pool
        is already empty and the prize marked as withdrawn.

        Raises
        ------
        DrawNotCompletedError
            If the current draw is still open.
        NotWinnerError
            If ``caller`` is not the recorded winner.
        AlreadyWithdrawnError
            If the prize has already been paid.
        NothingToClaimError
            If the pool is empty.
        TransferFailedError
            If the recipient rejects the payment. Nothing is changed.
        ReentrantCallError
            If called from inside :meth:`execute_draw` or :meth:`claim_prize`.
        """

        with self._atomic(), self._non_reentrant("claim_prize"):
            draw = self._state.draw
            if not draw.completed:
                raise DrawNotCompletedError(draw.draw_id)
            if draw.winner is None or caller != draw.winner:
                raise NotWinnerError(caller)
            if draw.prize_withdrawn:
                raise AlreadyWithdrawnError(draw.draw_id)
            if draw.prize_pool <= 0:
                raise NothingToClaimError()

            amount = draw.prize_pool
            claimed_draw_id = draw.draw_id
            draw.prize_pool = 0
            draw.prize_withdrawn = True
            self._emit(
                PrizeWithdrawn(draw_id=claimed_draw_id, winner=caller, amount=amount)
            )
            self._advance_draw_id()

            self._send_prize(caller, amount)
            logger.info(f"Draw {claimed_draw_id}: paid {amount} to {caller!r}")
            return amount

    def _send_prize(self, recipient: Hashable, amount: int) -> None:
        try:
            accepted = self.transfer.transfer(recipient, amount)
        except Exception as exc:
            logger.warning(f"Prize transfer to {recipient!r} raised: {exc}")
            raise TransferFailedError(recipient, amount, str(exc)) from exc
        if not accepted:
            logger.warning(f"Prize transfer to {recipient!r} was rejected")
            raise TransferFailedError(recipient, amount, "recipient rejected the transfer")

    # -------- administration --------
    def pause(self, caller: Hashable) -> None:
        """Block registration. Draw execution and claims stay available."""
        with self._atomic():
            self._require_owner(caller)
            if self._state.paused:
                raise InvalidStateError("Engine is already paused")
            self._state.paused = True
            logger.info("Registration paused")

    def unpause(self, caller: Hashable) -> None:
        with self._atomic():
            self._require_owner(caller)
            if not self._state.paused:
                raise InvalidStateError("Engine is not paused")
            self._state.paused = False
            logger.info("Registration resumed")

    def set_fee(self, caller: Hashable, new_fee: int) -> None:
        """Change the registration fee while no draw is active."""
        with self._atomic():
            self._require_owner(caller)
            if not self._state.draw.completed:
                raise InvalidStateError("Cannot change fee during an active draw")
            if new_fee <= 0:
                raise ValueError("new_fee must be positive")
            self._state.registration_fee = new_fee
            logger.info(f"Registration fee set to {new_fee}")

    # -------- notifications --------
    def subscribe(self, callback: Callable[[Notification], None]) -> None:
        """Call ``callback`` with every notification of a committed operation."""
        with self._lock:
            self._subscribers.append(callback)

    def unsubscribe(self, callback: Callable[[Notification], None]) -> None:
        with self._lock:
            self._subscribers.remove(callback)

    @property
    def notifications(self) -> list[Notification]:
        with self._lock:
            return list(self._log)

    # -------- views --------
    @property
    def owner(self) -> Hashable:
        return self._owner

    def is_owner(self, identity: Hashable) -> bool:
        return identity == self._owner

    @property
    def registration_fee(self) -> int:
        with self._lock:
            return self._state.registration_fee

    @property
    def paused(self) -> bool:
        with self._lock:
            return self._state.paused

    @property
    def current_draw_id(self) -> int:
        with self._lock:
            return self._state.draw.draw_id

    def current_draw(self) -> Draw:
        """Return a copy of the current draw record."""
        with self._lock:
            return replace(self._state.draw)

    @property
    def end_timestamp(self) -> int:
        with self._lock:
            return self._state.draw.end_timestamp

    @property
    def participant_count(self) -> int:
        with self._lock:
            return len(self._state.tickets)

    @property
    def participants(self) -> list[Hashable]:
        with self._lock:
            return self._state.tickets.participants

    def is_registered(self, identity: Hashable) -> bool:
        with self._lock:
            return identity in self._state.tickets

    def user_ticket(self, identity: Hashable) -> Optional[int]:
        """Return the ticket ``identity`` holds in the current draw, if any."""
        with self._lock:
            return self._state.tickets.ticket_of(identity)

    @property
    def is_draw_completed(self) -> bool:
        with self._lock:
            return self._state.draw.completed

    @property
    def current_prize(self) -> int:
        with self._lock:
            return self._state.draw.prize_pool

    @property
    def winner(self) -> Optional[Hashable]:
        with self._lock:
            return self._state.draw.winner

    @property
    def is_prize_withdrawn(self) -> bool:
        with self._lock:
            return self._state.draw.prize_withdrawn

    @property
    def lottery_state(self) -> LotteryState:
        """Lifecycle state derived from the stored flags.

        Raises
        ------
        ConsistencyError
            If the flags form a combination the engine never produces.
        """
        with self._lock:
            draw = self._state.draw
            state = derive_lottery_state(
                draw.completed, draw.winner is not None, draw.prize_withdrawn
            )
            draw_id = draw.draw_id
            observed = repr(draw)
        if state is LotteryState.INCONSISTENT:
            logger.critical(f"Inconsistent draw flags observed: {observed}")
            raise ConsistencyError(f"Draw {draw_id} is in an inconsistent state")
        return state

    @property
    def lottery_state_name(self) -> str:
        return self.lottery_state.value

    def draw_result(self, draw_id: int) -> DrawResult:
        with self._lock:
            try:
                return self._state.results[draw_id]
            except KeyError as exc:
                raise NotFoundError(draw_id) from exc

    def latest_draw_result(self) -> DrawResult:
        with self._lock:
            if not self._state.completed_draw_ids:
                raise NotFoundError()
            return self._state.results[self._state.completed_draw_ids[-1]]

    @property
    def completed_draw_ids(self) -> list[int]:
        with self._lock:
            return list(self._state.completed_draw_ids)

    def draw_results(self) -> list[DrawResult]:
        """Return every finalized result in completion order."""
        with self._lock:
            return [self._state.results[i] for i in self._state.completed_draw_ids]


__all__ = [
    "DEFAULT_REGISTRATION_FEE",
    "Draw",
    "DrawEngine",
    "DrawResult",
    "UNIT",
]
