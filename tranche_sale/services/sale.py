"""
Sale Service
============
Business logic for creating sales and executing purchases.
"""

from decimal import Decimal
from uuid import UUID, uuid4

import structlog
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from tranche_sale.core import pricing
from tranche_sale.core.purchase import PurchaseResult, purchase, quote
from tranche_sale.core.state import SaleState, parse_address
from tranche_sale.metrics import record_purchase
from tranche_sale.models.sale import Purchase, Sale
from tranche_sale.schemas.sale import SaleCreate
from tranche_sale.services.errors import SaleNotFound, SettlementError
from tranche_sale.services.settlement import SettlementGateway, SettlementInstruction

logger = structlog.get_logger()


class SaleService:
    """Service for managing sales and their purchases."""

    def __init__(self, session: AsyncSession, gateway: SettlementGateway):
        self.session = session
        self.gateway = gateway
        self.defaults = pricing.get_sale_parameters()

    async def create_sale(self, request: SaleCreate) -> tuple[Sale, SaleState]:
        """
        Initialize a sale and persist its account.

        Omitted parameters fall back to the configured sale defaults.
        """
        base_price = request.base_price or self.defaults.base_price
        multiplier_bps = request.multiplier_bps or self.defaults.multiplier_bps

        state = pricing.initialize(
            charity_address=parse_address(request.charity_address),
            sale_address=parse_address(request.sale_address),
            base_price=base_price,
            multiplier_bps=multiplier_bps,
        )

        sale = Sale(
            mint=request.mint or self.defaults.mint,
            vault=request.vault or self.defaults.vault,
        )
        sale.store_state(state)

        self.session.add(sale)
        await self.session.commit()

        logger.info(
            "Created sale",
            sale_id=str(sale.id),
            base_price=base_price,
            multiplier_bps=multiplier_bps,
        )
        return sale, state

    async def get_sale(self, sale_id: UUID, for_update: bool = False) -> Sale:
        stmt = select(Sale).where(Sale.id == sale_id)
        if for_update:
            stmt = stmt.with_for_update()

        result = await self.session.execute(stmt)
        sale = result.scalar_one_or_none()
        if sale is None:
            raise SaleNotFound(f"Sale {sale_id} not found")
        return sale

    async def quote(self, sale_id: UUID, amount: int) -> PurchaseResult:
        """Preview a purchase without changing the sale."""
        sale = await self.get_sale(sale_id)
        return quote(sale.load_state(), amount)

    async def execute_purchase(
        self,
        sale_id: UUID,
        buyer: str,
        amount: int,
    ) -> tuple[UUID, PurchaseResult]:
        """
        Execute a purchase as one unit of work.

        The sale row is locked, the outcome computed, the collaborators
        settled, and only then is the new state committed. A settlement or
        arithmetic failure rolls the transaction back and leaves the sale as
        it was.
        """
        purchase_id = uuid4()

        try:
            sale = await self.get_sale(sale_id, for_update=True)
            state = sale.load_state()
            result = purchase(state, amount)

            if not result.is_empty:
                await self.gateway.settle(
                    SettlementInstruction(
                        purchase_id=purchase_id,
                        buyer=buyer,
                        charity_address=state.charity_address.hex(),
                        sale_address=state.sale_address.hex(),
                        mint=sale.mint,
                        vault=sale.vault,
                        result=result,
                    )
                )

            sale.store_state(state)
            self.session.add(
                Purchase(
                    id=purchase_id,
                    sale_id=sale.id,
                    buyer=buyer,
                    amount=Decimal(amount),
                    tokens_purchased=Decimal(result.tokens_purchased),
                    transfer_amount=Decimal(result.transfer_amount),
                    burn_amount=Decimal(result.burn_amount),
                    spent=Decimal(result.spent),
                    unspent_remainder=Decimal(result.unspent_remainder),
                    charity_share=Decimal(result.charity_share),
                    sale_share=Decimal(result.sale_share),
                    tranche_index_before=result.tranche_index_before,
                    tranche_index_after=result.tranche_index_after,
                )
            )
            await self.session.commit()
        except SettlementError as e:
            await self.session.rollback()
            record_purchase("settlement_failed")
            logger.warning(
                "Purchase settlement failed",
                sale_id=str(sale_id),
                purchase_id=str(purchase_id),
                step=e.step,
                error=str(e),
            )
            raise
        except Exception:
            await self.session.rollback()
            record_purchase("error")
            raise

        record_purchase("accepted" if not result.is_empty else "empty", result)
        logger.info(
            "Recorded purchase",
            sale_id=str(sale_id),
            purchase_id=str(purchase_id),
            amount=amount,
            tokens=result.tokens_purchased,
            spent=result.spent,
            unspent=result.unspent_remainder,
            tranche=result.tranche_index_after,
        )
        return purchase_id, result

    async def list_purchases(
        self,
        sale_id: UUID,
        limit: int = 100,
        offset: int = 0,
    ) -> list[Purchase]:
        """Get purchases for a sale, newest first."""
        await self.get_sale(sale_id)

        stmt = (
            select(Purchase)
            .where(Purchase.sale_id == sale_id)
            .order_by(Purchase.created_at.desc())
            .limit(limit)
            .offset(offset)
        )
        result = await self.session.execute(stmt)
        return list(result.scalars().all())
