"""
Settlement Tests
================
Tests for the settlement gateway and the HTTP collaborator clients.
"""

import json
from uuid import uuid4

import httpx
import pytest

from tests.conftest import BUYER, CHARITY, SALE
from tranche_sale.config import settings
from tranche_sale.core.purchase import purchase
from tranche_sale.core.state import SaleState
from tranche_sale.services.errors import InsufficientFunds, RefundError, SettlementError
from tranche_sale.services.settlement import (
    InMemoryLedger,
    InMemoryTokenCustodian,
    SettlementGateway,
    SettlementInstruction,
    close_settlement_gateway,
    get_settlement_gateway,
)
from tranche_sale.services.settlement_http import LedgerClient, TokenCustodianClient


def _instruction(state: SaleState, amount: int) -> SettlementInstruction:
    return SettlementInstruction(
        purchase_id=uuid4(),
        buyer=BUYER,
        charity_address=CHARITY,
        sale_address=SALE,
        mint="mint",
        vault="vault",
        result=purchase(state, amount),
    )


class TestSettlementGateway:
    """Tests for settlement against the in-memory collaborators."""

    async def test_settle_moves_funds_and_tokens(
        self,
        state: SaleState,
        gateway: SettlementGateway,
        ledger: InMemoryLedger,
        custodian: InMemoryTokenCustodian,
    ):
        instruction = _instruction(state, 3_000_000 * 300 + 7)

        await gateway.settle(instruction)

        assert ledger.balances[CHARITY] == 90_000_000
        assert ledger.balances[SALE] == 810_000_000
        assert ledger.balances[BUYER] == 10**18 - 900_000_000
        assert custodian.holdings[("mint", BUYER)] == 297
        assert custodian.burned["mint"] == 3
        assert custodian.vaults[("mint", "vault")] == state.total_supply - 300

    async def test_empty_result_is_not_settled(
        self,
        state: SaleState,
        gateway: SettlementGateway,
        ledger: InMemoryLedger,
    ):
        await gateway.settle(_instruction(state, 1))

        assert ledger.balances[BUYER] == 10**18
        assert CHARITY not in ledger.balances

    async def test_insufficient_funds(self, state: SaleState, custodian: InMemoryTokenCustodian):
        gateway = SettlementGateway(InMemoryLedger(), custodian)

        with pytest.raises(InsufficientFunds) as exc_info:
            await gateway.settle(_instruction(state, 3_000_000))

        assert exc_info.value.step == "ledger.transfer"

    async def test_empty_vault(self, state: SaleState, ledger: InMemoryLedger):
        gateway = SettlementGateway(ledger, InMemoryTokenCustodian(default_vault_balance=0))

        with pytest.raises(SettlementError) as exc_info:
            await gateway.settle(_instruction(state, 3_000_000))

        assert exc_info.value.step == "custodian.transfer_tokens"


class TestHttpClients:
    """Tests for the HTTP collaborator clients using a mock transport."""

    async def test_ledger_transfer_request(self):
        seen: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(200, json={"status": "ok"})

        client = LedgerClient(base_url="http://ledger", transport=httpx.MockTransport(handler))
        await client.transfer(BUYER, CHARITY, 42, "purchase-1:charity")
        await client.close()

        assert len(seen) == 1
        assert seen[0].url.path == "/transfers"
        assert seen[0].headers["Idempotency-Key"] == "purchase-1:charity"
        assert json.loads(seen[0].content) == {
            "source": BUYER,
            "destination": CHARITY,
            "amount": 42,
        }

    async def test_ledger_payment_required(self):
        transport = httpx.MockTransport(lambda request: httpx.Response(402))
        client = LedgerClient(base_url="http://ledger", transport=transport)

        with pytest.raises(InsufficientFunds):
            await client.transfer(BUYER, CHARITY, 42, "key")
        await client.close()

    async def test_custodian_error_status(self):
        transport = httpx.MockTransport(lambda request: httpx.Response(500, text="boom"))
        client = TokenCustodianClient(base_url="http://custodian", transport=transport)

        with pytest.raises(SettlementError) as exc_info:
            await client.burn_tokens("mint", "vault", 3, "key")
        await client.close()

        assert exc_info.value.step == "custodian.burn_tokens"
        assert not isinstance(exc_info.value, InsufficientFunds)

    async def test_custodian_transfer_request(self):
        seen: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(200)

        client = TokenCustodianClient(
            base_url="http://custodian",
            api_key="secret",
            transport=httpx.MockTransport(handler),
        )
        await client.transfer_tokens("mint", "vault", BUYER, 99, "key")
        await client.close()

        assert seen[0].url.path == "/tokens/transfer"
        assert seen[0].headers["Authorization"] == "Bearer secret"
        assert json.loads(seen[0].content)["amount"] == 99


class RecordingLedger(InMemoryLedger):
    """In-memory ledger that remembers idempotency keys and can fail on demand."""

    def __init__(self, fail_on: str | None = None):
        super().__init__()
        self.keys: list[str] = []
        self.fail_on = fail_on

    async def transfer(self, source, destination, amount, idempotency_key):
        if self.fail_on and idempotency_key.endswith(self.fail_on):
            raise SettlementError("ledger unavailable", step="ledger.transfer")
        await super().transfer(source, destination, amount, idempotency_key)
        self.keys.append(idempotency_key)


class TestSettlementRefunds:
    """Tests that a failed settlement returns the buyer's funds."""

    async def test_custodian_failure_refunds_buyer(self, state: SaleState):
        ledger = RecordingLedger()
        ledger.deposit(BUYER, 10**18)
        gateway = SettlementGateway(ledger, InMemoryTokenCustodian(default_vault_balance=0))
        instruction = _instruction(state, 3_000_000 * 10)
        key = str(instruction.purchase_id)

        with pytest.raises(SettlementError) as exc_info:
            await gateway.settle(instruction)

        assert exc_info.value.step == "custodian.transfer_tokens"
        assert ledger.balances[BUYER] == 10**18
        assert ledger.balances[CHARITY] == 0
        assert ledger.balances[SALE] == 0
        assert ledger.keys == [
            f"{key}:charity",
            f"{key}:sale",
            f"{key}:refund-sale",
            f"{key}:refund-charity",
        ]

    async def test_second_transfer_failure_refunds_charity_share(self, state: SaleState):
        ledger = RecordingLedger(fail_on=":sale")
        ledger.deposit(BUYER, 10**18)
        gateway = SettlementGateway(ledger, InMemoryTokenCustodian())

        with pytest.raises(SettlementError):
            await gateway.settle(_instruction(state, 3_000_000 * 10))

        assert ledger.balances[BUYER] == 10**18
        assert ledger.balances[CHARITY] == 0
        assert ledger.keys[-1].endswith(":refund-charity")

    async def test_first_transfer_failure_needs_no_refund(
        self, state: SaleState, custodian: InMemoryTokenCustodian
    ):
        ledger = RecordingLedger(fail_on=":charity")
        ledger.deposit(BUYER, 10**18)

        with pytest.raises(SettlementError):
            await SettlementGateway(ledger, custodian).settle(_instruction(state, 3_000_000))

        assert ledger.keys == []

    async def test_failed_refund_raises_refund_error(self, state: SaleState):
        ledger = RecordingLedger(fail_on=":refund-sale")
        ledger.deposit(BUYER, 10**18)
        gateway = SettlementGateway(ledger, InMemoryTokenCustodian(default_vault_balance=0))

        with pytest.raises(RefundError) as exc_info:
            await gateway.settle(_instruction(state, 3_000_000 * 10))

        assert exc_info.value.step == "ledger.refund-sale"
        assert isinstance(exc_info.value.__cause__, SettlementError)


class TestRetries:
    """Tests for retrying transport errors."""

    async def test_transport_errors_retried_then_mapped(self):
        calls = 0

        def handler(request: httpx.Request) -> httpx.Response:
            nonlocal calls
            calls += 1
            raise httpx.ConnectError("connection refused", request=request)

        client = LedgerClient(
            base_url="http://ledger",
            transport=httpx.MockTransport(handler),
            retry_attempts=4,
            retry_backoff=0,
        )

        with pytest.raises(SettlementError) as exc_info:
            await client.transfer(BUYER, CHARITY, 42, "key")
        await client.close()

        assert calls == 4
        assert exc_info.value.step == "ledger.transfer"
        assert isinstance(exc_info.value.__cause__, httpx.ConnectError)

    async def test_recovers_after_transient_error(self):
        calls = 0

        def handler(request: httpx.Request) -> httpx.Response:
            nonlocal calls
            calls += 1
            if calls == 1:
                raise httpx.ConnectError("connection reset", request=request)
            return httpx.Response(200)

        client = TokenCustodianClient(
            base_url="http://custodian",
            transport=httpx.MockTransport(handler),
            retry_backoff=0,
        )
        await client.burn_tokens("mint", "vault", 1, "key")
        await client.close()

        assert calls == 2

    def test_attempts_default_to_settings(self):
        client = LedgerClient(base_url="http://ledger")

        assert client.retry_attempts == settings.settlement_retry_attempts


class TestGatewayLifecycle:
    """Tests for releasing collaborator clients."""

    async def test_close_releases_http_clients(self):
        ledger = LedgerClient(base_url="http://ledger")
        custodian = TokenCustodianClient(base_url="http://custodian")

        await SettlementGateway(ledger, custodian).close()

        assert ledger._client.is_closed
        assert custodian._client.is_closed

    async def test_close_cached_gateway(self):
        get_settlement_gateway()
        assert get_settlement_gateway.cache_info().currsize == 1

        await close_settlement_gateway()

        assert get_settlement_gateway.cache_info().currsize == 0
