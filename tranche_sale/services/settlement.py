"""
Settlement
==========
Moves funds and tokens for an accepted purchase.

The Ledger moves currency between addresses; the Token Custodian transfers
and burns tokens held in a custodial vault. Both are external services; this
module defines their interfaces, an in-memory implementation, and the
gateway that runs every settlement step for one purchase.
"""

from collections import defaultdict
from dataclasses import dataclass
from functools import lru_cache
from typing import Protocol
from uuid import UUID

import structlog

from tranche_sale.config import settings
from tranche_sale.core.purchase import PurchaseResult
from tranche_sale.core.state import TRANCHE_ALLOCATIONS
from tranche_sale.services.errors import InsufficientFunds, RefundError, SettlementError

logger = structlog.get_logger()


class Ledger(Protocol):
    async def transfer(
        self, source: str, destination: str, amount: int, idempotency_key: str
    ) -> None: ...

    async def close(self) -> None: ...


class TokenCustodian(Protocol):
    async def transfer_tokens(
        self, mint: str, vault: str, destination: str, amount: int, idempotency_key: str
    ) -> None: ...

    async def burn_tokens(
        self, mint: str, vault: str, amount: int, idempotency_key: str
    ) -> None: ...

    async def close(self) -> None: ...


class InMemoryLedger:
    """Ledger holding balances in process memory."""

    def __init__(self, default_balance: int = 0):
        self.balances: defaultdict[str, int] = defaultdict(lambda: default_balance)

    def deposit(self, address: str, amount: int) -> None:
        self.balances[address] += amount

    async def transfer(
        self, source: str, destination: str, amount: int, idempotency_key: str
    ) -> None:
        if self.balances[source] < amount:
            raise InsufficientFunds(
                f"{source} holds {self.balances[source]}, needs {amount}",
                step="ledger.transfer",
            )
        self.balances[source] -= amount
        self.balances[destination] += amount

    async def close(self) -> None:
        pass


class InMemoryTokenCustodian:
    """Token custodian holding vault and holder balances in process memory."""

    def __init__(self, default_vault_balance: int = sum(TRANCHE_ALLOCATIONS)):
        self.vaults: defaultdict[tuple[str, str], int] = defaultdict(
            lambda: default_vault_balance
        )
        self.holdings: defaultdict[tuple[str, str], int] = defaultdict(int)
        self.burned: defaultdict[str, int] = defaultdict(int)

    def _take(self, mint: str, vault: str, amount: int, step: str) -> None:
        if self.vaults[(mint, vault)] < amount:
            raise SettlementError(
                f"Vault {vault} holds {self.vaults[(mint, vault)]} of {mint}, needs {amount}",
                step=step,
            )
        self.vaults[(mint, vault)] -= amount

    async def transfer_tokens(
        self, mint: str, vault: str, destination: str, amount: int, idempotency_key: str
    ) -> None:
        self._take(mint, vault, amount, "custodian.transfer_tokens")
        self.holdings[(mint, destination)] += amount

    async def burn_tokens(
        self, mint: str, vault: str, amount: int, idempotency_key: str
    ) -> None:
        self._take(mint, vault, amount, "custodian.burn_tokens")
        self.burned[mint] += amount

    async def close(self) -> None:
        pass


@dataclass(frozen=True, slots=True)
class SettlementInstruction:
    """Everything the collaborators need to settle one purchase."""

    purchase_id: UUID
    buyer: str
    charity_address: str
    sale_address: str
    mint: str
    vault: str
    result: PurchaseResult


class SettlementGateway:
    """
    Runs the settlement steps for one purchase.

    Steps run in a fixed order and stop at the first failure. Every call
    carries the purchase id in its idempotency key. When a later step fails,
    the ledger transfers that already went through are reversed back to the
    buyer under `<purchase_id>:refund-*` keys before the error propagates.
    """

    def __init__(self, ledger: Ledger, custodian: TokenCustodian):
        self.ledger = ledger
        self.custodian = custodian

    async def settle(self, instruction: SettlementInstruction) -> None:
        result = instruction.result
        key = str(instruction.purchase_id)

        if result.is_empty:
            return

        # (label, destination, amount) for each ledger transfer that succeeded
        completed: list[tuple[str, str, int]] = []
        try:
            for label, destination, amount in (
                ("charity", instruction.charity_address, result.charity_share),
                ("sale", instruction.sale_address, result.sale_share),
            ):
                await self.ledger.transfer(
                    instruction.buyer, destination, amount, f"{key}:{label}"
                )
                completed.append((label, destination, amount))

            if result.transfer_amount > 0:
                await self.custodian.transfer_tokens(
                    instruction.mint,
                    instruction.vault,
                    instruction.buyer,
                    result.transfer_amount,
                    f"{key}:transfer",
                )
            if result.burn_amount > 0:
                await self.custodian.burn_tokens(
                    instruction.mint, instruction.vault, result.burn_amount, f"{key}:burn"
                )
        except SettlementError as e:
            if completed:
                await self._refund(instruction, completed, e)
            raise

        logger.info(
            "Settled purchase",
            purchase_id=key,
            buyer=instruction.buyer,
            charity_share=result.charity_share,
            sale_share=result.sale_share,
            transfer_amount=result.transfer_amount,
            burn_amount=result.burn_amount,
        )

    async def _refund(
        self,
        instruction: SettlementInstruction,
        completed: list[tuple[str, str, int]],
        cause: SettlementError,
    ) -> None:
        """Reverse completed ledger transfers, newest first."""
        key = str(instruction.purchase_id)

        for label, destination, amount in reversed(completed):
            try:
                await self.ledger.transfer(
                    destination, instruction.buyer, amount, f"{key}:refund-{label}"
                )
            except SettlementError as e:
                logger.error(
                    "Refund failed, purchase needs reconciliation",
                    purchase_id=key,
                    refund=label,
                    failed_step=cause.step,
                    error=str(e),
                )
                raise RefundError(
                    f"Refund of {label} share failed after {cause.step} failed",
                    step=f"ledger.refund-{label}",
                ) from e

        logger.warning(
            "Refunded partially settled purchase",
            purchase_id=key,
            failed_step=cause.step,
            refunds=[label for label, _, _ in completed],
        )

    async def close(self) -> None:
        """Release collaborator resources."""
        await self.ledger.close()
        await self.custodian.close()


@lru_cache
def get_settlement_gateway() -> SettlementGateway:
    """Get the cached gateway for the configured settlement backend."""
    if settings.settlement_backend == "http":
        from tranche_sale.services.settlement_http import LedgerClient, TokenCustodianClient

        return SettlementGateway(LedgerClient(), TokenCustodianClient())

    logger.warning("Using in-memory settlement backend")
    return SettlementGateway(
        InMemoryLedger(default_balance=settings.memory_starting_balance),
        InMemoryTokenCustodian(),
    )


async def close_settlement_gateway() -> None:
    """Close the cached gateway's collaborators, if one was created."""
    if not get_settlement_gateway.cache_info().currsize:
        return
    await get_settlement_gateway().close()
    get_settlement_gateway.cache_clear()
    logger.info("Settlement clients closed")
