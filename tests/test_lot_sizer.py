"""
Tests for score-to-lots sizing.
"""

import pytest

from options_engine.lot_sizer import LotSizer


@pytest.fixture
def sizer():
    return LotSizer()


class TestScoreBands:

    @pytest.mark.parametrize("score,lots", [
        (0, 0),
        (49, 0),
        (50, 1),
        (64, 1),
        (65, 2),
        (74, 2),
        (75, 3),
        (84, 3),
        (85, 4),
        (100, 4),
    ])
    def test_base_lots(self, sizer, score, lots):
        assert sizer.base_lots(score) == lots

    def test_below_minimum_is_blocked(self, sizer):
        decision = sizer.size_for(49, remaining_capacity=10_000, max_loss_per_lot=500)

        assert decision.lots == 0
        assert decision.blocked_reason == "score_below_minimum"
        assert decision.is_blocked

    def test_lots_non_decreasing_in_score(self, sizer):
        lots = [sizer.size_for(s, 10_000, 1_000).lots for s in range(0, 101)]
        assert lots == sorted(lots)


class TestCapacityClip:

    def test_full_size_when_capacity_allows(self, sizer):
        decision = sizer.size_for(90, remaining_capacity=10_000, max_loss_per_lot=1_200)
        assert decision.base_lots == 4
        assert decision.lots == 4
        assert decision.blocked_reason is None

    def test_clipped_to_remaining_capacity(self, sizer):
        decision = sizer.size_for(90, remaining_capacity=4_000, max_loss_per_lot=1_200)
        assert decision.base_lots == 4
        assert decision.lots == 3

    def test_exact_fit_is_allowed(self, sizer):
        assert sizer.size_for(90, remaining_capacity=2_400, max_loss_per_lot=1_200).lots == 2

    def test_single_lot_exceeds_capacity(self, sizer):
        decision = sizer.size_for(90, remaining_capacity=1_000, max_loss_per_lot=1_200)
        assert decision.lots == 0
        assert decision.blocked_reason == "daily_loss_cap"

    def test_exhausted_capacity(self, sizer):
        decision = sizer.size_for(90, remaining_capacity=0, max_loss_per_lot=1)
        assert decision.lots == 0
        assert decision.blocked_reason == "daily_loss_cap"

    @pytest.mark.parametrize("remaining", [0, 500, 1_199, 1_200, 3_000, 4_799, 4_800, 9_000])
    def test_post_sizing_invariant(self, sizer, remaining):
        decision = sizer.size_for(95, remaining_capacity=remaining, max_loss_per_lot=1_200)
        assert decision.lots * 1_200 <= remaining
