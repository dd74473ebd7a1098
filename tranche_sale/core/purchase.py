"""
Purchase Processing
===================
Settles a payment against the tranche ladder.

The walk fills the current tranche at its fixed price, moves to the next one
when it is exhausted, and stops as soon as the remaining funds cannot buy a
single token. Prices never decrease along the ladder, so a later tranche can
never be cheaper and no further scan is needed.

All work happens on a copy of the state; the caller's state is only updated
once every checked step has succeeded.
"""

from dataclasses import dataclass, field

import structlog

from tranche_sale.core.arithmetic import (
    checked_add,
    checked_div,
    checked_mul,
    checked_sub,
    is_u64,
)
from tranche_sale.core.errors import ArithmeticOverflow
from tranche_sale.core.state import TRANCHE_COUNT, SaleState

logger = structlog.get_logger()

CHARITY_DIVISOR = 10  # 10% of spent funds
BURN_DIVISOR = 100  # 1% of purchased tokens


@dataclass(frozen=True, slots=True)
class TrancheFill:
    """Tokens bought from a single tranche during one purchase."""

    tranche_index: int
    tokens: int
    price: int
    cost: int


@dataclass(frozen=True, slots=True)
class PurchaseResult:
    """
    Outcome of one purchase call.

    tokens_purchased: Tokens allocated across all tranches
    transfer_amount: Tokens delivered to the buyer (tokens_purchased - burn_amount)
    burn_amount: Tokens destroyed (1% of tokens_purchased, truncated)
    spent: Currency consumed
    unspent_remainder: Currency left over (amount - spent)
    charity_share: 10% of spent, truncated
    sale_share: spent - charity_share
    """

    tokens_purchased: int
    transfer_amount: int
    burn_amount: int
    spent: int
    unspent_remainder: int
    charity_share: int
    sale_share: int
    tranche_index_before: int
    tranche_index_after: int
    fills: tuple[TrancheFill, ...] = field(default_factory=tuple)

    @property
    def is_empty(self) -> bool:
        return self.tokens_purchased == 0


def _compute(state: SaleState, amount: int) -> tuple[SaleState, PurchaseResult]:
    """Run the purchase walk against a copy of `state`."""
    if not is_u64(amount):
        raise ArithmeticOverflow("amount", amount)

    working = state.copy()
    index_before = working.current_tranche_index

    remaining = amount
    tokens_purchased = 0
    fills: list[TrancheFill] = []

    while remaining > 0 and working.current_tranche_index < TRANCHE_COUNT:
        tranche = working.tranches[working.current_tranche_index]

        capacity = checked_sub(tranche.allocation, tranche.sold)
        if capacity == 0:
            working.current_tranche_index = checked_add(working.current_tranche_index, 1)
            continue

        affordable = checked_div(remaining, tranche.price)
        buy = min(capacity, affordable)
        if buy == 0:
            break

        cost = checked_mul(buy, tranche.price)
        tranche.sold = checked_add(tranche.sold, buy)
        tokens_purchased = checked_add(tokens_purchased, buy)
        remaining = checked_sub(remaining, cost)
        fills.append(
            TrancheFill(
                tranche_index=working.current_tranche_index,
                tokens=buy,
                price=tranche.price,
                cost=cost,
            )
        )

        if tranche.sold == tranche.allocation:
            working.current_tranche_index = checked_add(working.current_tranche_index, 1)

    spent = checked_sub(amount, remaining)

    charity_share = checked_div(spent, CHARITY_DIVISOR)
    sale_share = checked_sub(spent, charity_share)

    burn_amount = checked_div(tokens_purchased, BURN_DIVISOR)
    transfer_amount = checked_sub(tokens_purchased, burn_amount)

    working.total_funds_raised = checked_add(working.total_funds_raised, spent)
    working.total_tokens_sold = checked_add(working.total_tokens_sold, tokens_purchased)

    result = PurchaseResult(
        tokens_purchased=tokens_purchased,
        transfer_amount=transfer_amount,
        burn_amount=burn_amount,
        spent=spent,
        unspent_remainder=remaining,
        charity_share=charity_share,
        sale_share=sale_share,
        tranche_index_before=index_before,
        tranche_index_after=working.current_tranche_index,
        fills=tuple(fills),
    )
    return working, result


def quote(state: SaleState, amount: int) -> PurchaseResult:
    """Compute the outcome of a purchase without touching `state`."""
    _, result = _compute(state, amount)
    return result


def purchase(state: SaleState, amount: int) -> PurchaseResult:
    """
    Execute a purchase against `state`.

    The caller guarantees `amount > 0`. On success every tranche and total in
    `state` is updated together; on ArithmeticOverflow nothing is changed.

    Raises:
        ArithmeticOverflow: if any step leaves the u64 range
    """
    working, result = _compute(state, amount)

    # Commit
    for tranche, updated in zip(state.tranches, working.tranches):
        tranche.sold = updated.sold
    state.current_tranche_index = working.current_tranche_index
    state.total_funds_raised = working.total_funds_raised
    state.total_tokens_sold = working.total_tokens_sold

    logger.debug(
        "Processed purchase",
        amount=amount,
        tokens=result.tokens_purchased,
        spent=result.spent,
        tranche_from=result.tranche_index_before,
        tranche_to=result.tranche_index_after,
    )
    return result
