from __future__ import annotations

import unittest

from sqlalchemy import func, select

from dlottery.db.engine import get_sessionmaker, init_db, make_engine
from dlottery.draw import UNIT, DrawEngine
from dlottery.exceptions import NotEnoughParticipantsError
from dlottery.models import DrawRecord, NotificationRecord
from dlottery.wallet import Ledger
from dlottery.workflows import (
    archive_draw_results,
    archive_notifications,
    claim_prize,
    load_draw_results,
    run_draw,
)

FEE = UNIT // 1000
OWNER = "owner"
PLAYERS = ["addr1", "addr2", "addr3", "addr4", "addr5"]


class ScriptedRandom:
    def __init__(self, winning_ticket: int = 1) -> None:
        self.winning_ticket = winning_ticket

    def randrange(self, start, stop=None):
        if stop is None:
            return 0
        return self.winning_ticket


class Wallet:
    """Identity object that is not JSON serializable on its own."""

    def __init__(self, address: str) -> None:
        self.address = address

    def __eq__(self, other: object) -> bool:
        return isinstance(other, Wallet) and other.address == self.address

    def __hash__(self) -> int:
        return hash(self.address)

    def __str__(self) -> str:
        return self.address


class DrawArchiveWorkflowTests(unittest.TestCase):
    def setUp(self) -> None:
        self.db = make_engine("sqlite+pysqlite:///:memory:")
        init_db(self.db)
        self.Session = get_sessionmaker(self.db)

        self.random = ScriptedRandom()
        self.ledger = Ledger()
        self.engine = DrawEngine(
            OWNER,
            registration_fee=FEE,
            random_source=self.random,
            transfer=self.ledger,
        )

    def tearDown(self) -> None:
        self.db.dispose()

    def _fill(self, players=PLAYERS) -> None:
        self.engine.start_draw(1_900_000_000)
        for player in players:
            self.engine.register(player, FEE)

    def test_run_draw_archives_winner(self) -> None:
        self._fill()
        self.random.winning_ticket = self.engine.user_ticket("addr4")

        with self.Session.begin() as session:
            record = run_draw(session, self.engine, OWNER)
            self.assertEqual(record.engine_id, self.engine.engine_id)
            self.assertEqual(record.draw_id, 1)
            self.assertEqual(record.winner, "addr4")
            self.assertTrue(record.has_winner)
            self.assertEqual(record.winning_ticket, 8)

            payload = record.to_json()
            self.assertEqual(payload["winner"], "addr4")
            self.assertIsInstance(payload["recorded_at"], str)

            kinds = session.scalars(
                select(NotificationRecord.kind).order_by(NotificationRecord.sequence)
            ).all()
            self.assertEqual(
                kinds,
                ["draw-started"] + ["participant-registered"] * 5 + ["draw-result"],
            )

    def test_run_draw_writes_nothing_on_engine_error(self) -> None:
        self._fill(PLAYERS[:3])
        with self.Session.begin() as session:
            with self.assertRaises(NotEnoughParticipantsError):
                run_draw(session, self.engine, OWNER)
            self.assertEqual(session.scalar(select(func.count(DrawRecord.id))), 0)
            self.assertEqual(
                session.scalar(select(func.count(NotificationRecord.id))), 0
            )

    def test_archiving_is_idempotent(self) -> None:
        self._fill()
        self.random.winning_ticket = 2
        self.engine.execute_draw(OWNER)

        with self.Session.begin() as session:
            first = archive_draw_results(session, self.engine)
            new_rows = archive_notifications(session, self.engine)
            self.assertEqual(len(first), 1)
            self.assertEqual(len(new_rows), 8)

        with self.Session.begin() as session:
            again = archive_draw_results(session, self.engine)
            self.assertEqual([r.id for r in again], [r.id for r in first])
            self.assertEqual(archive_notifications(session, self.engine), [])
            self.assertEqual(session.scalar(select(func.count(DrawRecord.id))), 1)

    def test_history_round_trip_across_draws(self) -> None:
        # First draw has no winner, second one is won by addr1.
        self._fill()
        self.random.winning_ticket = 2
        self.engine.execute_draw(OWNER)
        self._fill()
        self.random.winning_ticket = self.engine.user_ticket("addr1")

        with self.Session.begin() as session:
            run_draw(session, self.engine, OWNER)
            paid = claim_prize(session, self.engine, "addr1")
            self.assertEqual(paid, 10 * FEE)

        with self.Session() as session:
            results = load_draw_results(session, self.engine.engine_id)
            self.assertEqual(results, self.engine.draw_results())
            self.assertEqual([r.draw_id for r in results], [1, 2])
            self.assertEqual([r.has_winner for r in results], [False, True])

            last = session.scalars(
                select(NotificationRecord).order_by(NotificationRecord.sequence.desc())
            ).first()
            self.assertEqual(last.kind, "new-lottery-started")
            self.assertEqual(last.draw_id, 3)
            self.assertEqual(load_draw_results(session, "other-engine"), [])

    def test_claim_archived_when_subscriber_fails(self) -> None:
        self._fill()
        self.random.winning_ticket = self.engine.user_ticket("addr3")
        self.engine.execute_draw(OWNER)

        def broken(notification):
            raise RuntimeError("subscriber down")

        self.engine.subscribe(broken)
        with self.Session.begin() as session:
            with self.assertLogs("dlottery.draw.engine", level="ERROR"):
                paid = claim_prize(session, self.engine, "addr3")
            self.assertEqual(paid, 5 * FEE)
            kinds = session.scalars(
                select(NotificationRecord.kind).order_by(NotificationRecord.sequence)
            ).all()
            self.assertEqual(kinds[-2:], ["prize-withdrawn", "new-lottery-started"])

    def test_identity_objects_stored_as_text(self) -> None:
        wallets = [Wallet(f"0x{i:040x}") for i in range(1, 6)]
        self._fill(wallets)
        self.random.winning_ticket = self.engine.user_ticket(wallets[0])

        with self.Session.begin() as session:
            record = run_draw(session, self.engine, OWNER)
            self.assertEqual(record.winner, wallets[0].address)
            registered = session.scalars(
                select(NotificationRecord).where(
                    NotificationRecord.kind == "participant-registered"
                )
            ).first()
            self.assertEqual(registered.payload["participant"], wallets[0].address)


if __name__ == "__main__":
    unittest.main()
