from __future__ import annotations

import unittest

from dlottery.draw import DrawEngine, LotteryState, derive_lottery_state
from dlottery.exceptions import ConsistencyError


class DeriveLotteryStateTests(unittest.TestCase):
    def test_active_draw_is_in_progress(self) -> None:
        self.assertIs(
            derive_lottery_state(False, False, False), LotteryState.IN_PROGRESS
        )

    def test_unclaimed_winner_waits_for_claim(self) -> None:
        self.assertIs(
            derive_lottery_state(True, True, False), LotteryState.WAITING_FOR_CLAIM
        )

    def test_ready_when_claimed_or_no_winner(self) -> None:
        self.assertIs(
            derive_lottery_state(True, True, True), LotteryState.READY_FOR_NEW_DRAW
        )
        self.assertIs(
            derive_lottery_state(True, False, True), LotteryState.READY_FOR_NEW_DRAW
        )
        self.assertIs(
            derive_lottery_state(True, False, False), LotteryState.READY_FOR_NEW_DRAW
        )

    def test_active_draw_with_winner_or_payout_is_inconsistent(self) -> None:
        self.assertIs(
            derive_lottery_state(False, True, False), LotteryState.INCONSISTENT
        )
        self.assertIs(
            derive_lottery_state(False, False, True), LotteryState.INCONSISTENT
        )

    def test_state_values_are_names(self) -> None:
        self.assertEqual(LotteryState.WAITING_FOR_CLAIM.value, "WAITING_FOR_CLAIM")
        self.assertEqual(LotteryState("IN_PROGRESS"), LotteryState.IN_PROGRESS)


class EngineConsistencyTests(unittest.TestCase):
    def test_corrupted_flags_raise(self) -> None:
        engine = DrawEngine("owner", registration_fee=1)
        engine.start_draw(0)
        engine._state.draw.winner = "intruder"
        with self.assertLogs("dlottery.draw.engine", level="CRITICAL") as logs:
            with self.assertRaises(ConsistencyError) as ctx:
                engine.lottery_state
        self.assertIn("intruder", logs.output[0])
        self.assertIn("Draw 1 ", str(ctx.exception))


if __name__ == "__main__":
    unittest.main()
