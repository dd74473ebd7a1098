"""
HTTP Settlement Clients
=======================
Ledger and Token Custodian clients for services reachable over HTTP.
"""

from typing import Any, Optional

import httpx
import structlog
from tenacity import (
    AsyncRetrying,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from tranche_sale import __version__
from tranche_sale.config import settings
from tranche_sale.services.errors import InsufficientFunds, SettlementError

logger = structlog.get_logger()


class _ServiceClient:
    """
    Base client for a settlement service.

    Features:
    - Bearer authentication
    - Idempotency-Key header on every request
    - Retry with exponential backoff on transport errors, up to
      `settlement_retry_attempts` attempts
    """

    def __init__(
        self,
        base_url: str,
        api_key: Optional[str] = None,
        timeout: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        retry_attempts: Optional[int] = None,
        retry_backoff: float = 1.0,
    ):
        self.retry_attempts = retry_attempts or settings.settlement_retry_attempts
        self.retry_backoff = retry_backoff

        headers = {
            "Content-Type": "application/json",
            "User-Agent": f"tranche-sale/{__version__}",
        }
        if api_key:
            headers["Authorization"] = f"Bearer {api_key}"

        self._client = httpx.AsyncClient(
            base_url=base_url.rstrip("/"),
            timeout=timeout or settings.settlement_timeout,
            headers=headers,
            transport=transport,
        )

    async def _send(self, path: str, payload: dict[str, Any], idempotency_key: str) -> httpx.Response:
        retrying = AsyncRetrying(
            stop=stop_after_attempt(self.retry_attempts),
            wait=wait_exponential(
                multiplier=self.retry_backoff, min=self.retry_backoff, max=10
            ),
            retry=retry_if_exception_type(httpx.TransportError),
            reraise=True,
        )
        return await retrying(
            self._client.post,
            path,
            json=payload,
            headers={"Idempotency-Key": idempotency_key},
        )

    async def _post(self, step: str, path: str, payload: dict[str, Any], idempotency_key: str) -> None:
        try:
            response = await self._send(path, payload, idempotency_key)
        except httpx.TransportError as e:
            logger.error("Settlement service unreachable", step=step, error=str(e))
            raise SettlementError(f"{step} failed: {e}", step=step) from e

        if response.status_code == httpx.codes.PAYMENT_REQUIRED:
            raise InsufficientFunds(f"{step} rejected: insufficient funds", step=step)
        if response.is_error:
            logger.error(
                "Settlement request rejected",
                step=step,
                status=response.status_code,
                body=response.text[:500],
            )
            raise SettlementError(
                f"{step} rejected with status {response.status_code}", step=step
            )

    async def close(self) -> None:
        await self._client.aclose()


class LedgerClient(_ServiceClient):
    """Moves currency between two addresses."""

    def __init__(self, **kwargs: Any):
        kwargs.setdefault("base_url", settings.ledger_url)
        kwargs.setdefault("api_key", settings.settlement_api_key)
        super().__init__(**kwargs)

    async def transfer(
        self, source: str, destination: str, amount: int, idempotency_key: str
    ) -> None:
        await self._post(
            "ledger.transfer",
            "/transfers",
            {"source": source, "destination": destination, "amount": amount},
            idempotency_key,
        )


class TokenCustodianClient(_ServiceClient):
    """Transfers and burns tokens from a custodial vault."""

    def __init__(self, **kwargs: Any):
        kwargs.setdefault("base_url", settings.custodian_url)
        kwargs.setdefault("api_key", settings.settlement_api_key)
        super().__init__(**kwargs)

    async def transfer_tokens(
        self, mint: str, vault: str, destination: str, amount: int, idempotency_key: str
    ) -> None:
        await self._post(
            "custodian.transfer_tokens",
            "/tokens/transfer",
            {"mint": mint, "vault": vault, "destination": destination, "amount": amount},
            idempotency_key,
        )

    async def burn_tokens(
        self, mint: str, vault: str, amount: int, idempotency_key: str
    ) -> None:
        await self._post(
            "custodian.burn_tokens",
            "/tokens/burn",
            {"mint": mint, "vault": vault, "amount": amount},
            idempotency_key,
        )
