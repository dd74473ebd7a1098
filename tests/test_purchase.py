"""
Purchase Tests
==============
Tests for the tranche purchase walk.
"""

import random

import pytest

from tranche_sale.core.arithmetic import U64_MAX
from tranche_sale.core.errors import ArithmeticOverflow
from tranche_sale.core.pricing import initialize
from tranche_sale.core.purchase import purchase, quote
from tranche_sale.core.state import TRANCHE_COUNT, SaleState

TRANCHE_0_COST = 500_000_000 * 3_000_000


def _sale_cost(state: SaleState) -> int:
    return sum(t.remaining * t.price for t in state.tranches)


class TestPurchaseScenarios:
    """Scenario tests against the default ladder."""

    def test_partial_fill(self, state: SaleState):
        result = purchase(state, 3_000_000 * 7 + 123)

        assert result.tokens_purchased == 7
        assert result.spent == 21_000_000
        assert result.unspent_remainder == 123
        assert result.charity_share == 2_100_000
        assert result.sale_share == 18_900_000
        assert result.burn_amount == 0
        assert result.transfer_amount == 7
        assert state.tranches[0].sold == 7
        assert state.current_tranche_index == 0

    def test_exact_tranche_exhaustion(self, state: SaleState):
        result = purchase(state, TRANCHE_0_COST)

        assert result.tokens_purchased == 500_000_000
        assert result.unspent_remainder == 0
        assert result.spent == TRANCHE_0_COST
        assert result.burn_amount == 5_000_000
        assert result.transfer_amount == 495_000_000
        assert state.tranches[0].sold == 500_000_000
        assert state.current_tranche_index == 1
        assert result.tranche_index_before == 0
        assert result.tranche_index_after == 1

    def test_spanning_two_tranches(self, state: SaleState):
        amount = TRANCHE_0_COST + 3_300_000 * 10 + 5

        result = purchase(state, amount)

        assert result.tokens_purchased == 500_000_010
        assert result.spent == TRANCHE_0_COST + 33_000_000
        assert result.unspent_remainder == 5
        assert state.current_tranche_index == 1
        assert state.tranches[1].sold == 10
        assert [(f.tranche_index, f.tokens, f.price) for f in result.fills] == [
            (0, 500_000_000, 3_000_000),
            (1, 10, 3_300_000),
        ]

    def test_insufficient_funds_for_one_token(self, state: SaleState):
        before = state.copy()

        result = purchase(state, 2_999_999)

        assert result.tokens_purchased == 0
        assert result.spent == 0
        assert result.unspent_remainder == 2_999_999
        assert result.is_empty
        assert state == before

    def test_stops_at_expensive_tranche(self, state: SaleState):
        """Leftover funds below the next tranche price stay unspent."""
        result = purchase(state, TRANCHE_0_COST + 3_299_999)

        assert result.tokens_purchased == 500_000_000
        assert result.unspent_remainder == 3_299_999
        assert state.current_tranche_index == 1

    def test_burn_rounds_down(self, state: SaleState):
        result = purchase(state, 3_000_000 * 199)

        assert result.tokens_purchased == 199
        assert result.burn_amount == 1
        assert result.transfer_amount == 198

    def test_charity_share_rounds_down(self):
        state = initialize(b"\x01" * 32, b"\x02" * 32, 3, 10_000)
        result = purchase(state, 29)

        assert result.spent == 27
        assert result.charity_share == 2
        assert result.sale_share == 25


class TestSaleCompletion:
    """Tests for buying out the whole sale."""

    def test_buys_every_tranche(self, state: SaleState):
        total_cost = _sale_cost(state)

        result = purchase(state, U64_MAX)

        assert result.tokens_purchased == state.total_supply
        assert result.spent == total_cost
        assert result.unspent_remainder == U64_MAX - total_cost
        assert state.current_tranche_index == TRANCHE_COUNT
        assert state.is_complete
        assert state.current_tranche is None
        assert all(t.is_exhausted for t in state.tranches)

    def test_completed_sale_is_noop(self, state: SaleState):
        purchase(state, U64_MAX)
        before = state.copy()

        result = purchase(state, 10**12)

        assert result.tokens_purchased == 0
        assert result.spent == 0
        assert result.unspent_remainder == 10**12
        assert state == before


class TestAtomicity:
    """Tests that failed or previewed purchases do not change state."""

    def test_quote_does_not_mutate(self, state: SaleState):
        before = state.copy()

        result = quote(state, TRANCHE_0_COST * 2)

        assert result.tokens_purchased > 500_000_000
        assert state == before

    def test_overflow_leaves_state_untouched(self, state: SaleState):
        state.total_funds_raised = U64_MAX - 10
        before = state.copy()

        with pytest.raises(ArithmeticOverflow):
            purchase(state, 3_000_000 * 5)

        assert state == before

    def test_amount_above_u64_rejected(self, state: SaleState):
        purchase(state, U64_MAX)
        before = state.copy()

        with pytest.raises(ArithmeticOverflow):
            purchase(state, 2**70)

        assert state == before

    def test_negative_amount_rejected(self, state: SaleState):
        with pytest.raises(ArithmeticOverflow):
            quote(state, -1)

    def test_exhausted_current_tranche_is_skipped(self, state: SaleState):
        state.tranches[0].sold = state.tranches[0].allocation
        state.total_tokens_sold = state.tranches[0].allocation

        result = purchase(state, 3_300_000 * 2)

        assert result.tokens_purchased == 2
        assert result.fills[0].tranche_index == 1
        assert state.current_tranche_index == 1


class TestProperties:
    """Conservation, monotonicity and split exactness over random purchases."""

    def test_random_purchase_sequence(self, state: SaleState):
        rng = random.Random(20261018)
        total_spent = 0
        previous_sold = [0] * TRANCHE_COUNT
        previous_index = 0

        for _ in range(200):
            amount = rng.randint(1, 10**16)
            result = purchase(state, amount)
            total_spent += result.spent

            assert result.spent <= amount
            assert result.unspent_remainder == amount - result.spent
            assert result.charity_share + result.sale_share == result.spent
            assert result.burn_amount + result.transfer_amount == result.tokens_purchased

            assert state.current_tranche_index >= previous_index
            for i, tranche in enumerate(state.tranches):
                assert previous_sold[i] <= tranche.sold <= tranche.allocation
            previous_sold = [t.sold for t in state.tranches]
            previous_index = state.current_tranche_index

            assert state.total_tokens_sold == sum(t.sold for t in state.tranches)
            assert state.total_funds_raised == total_spent
            state.check_invariants()
