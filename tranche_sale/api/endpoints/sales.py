"""
Sale Endpoints
==============
API endpoints for creating sales, quoting and executing purchases.
"""

from typing import Annotated
from uuid import UUID

import structlog
from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from tranche_sale.core.errors import (
    ArithmeticOverflow,
    InvalidSaleParameters,
    InvariantViolation,
)
from tranche_sale.database import get_session
from tranche_sale.schemas.sale import (
    AccountResponse,
    PurchaseRecordResponse,
    PurchaseRequest,
    PurchaseResponse,
    QuoteRequest,
    QuoteResponse,
    SaleCreate,
    SaleResponse,
    TranchesResponse,
)
from tranche_sale.services.errors import InsufficientFunds, SaleNotFound, SettlementError
from tranche_sale.services.sale import SaleService
from tranche_sale.services.settlement import SettlementGateway, get_settlement_gateway

router = APIRouter()
logger = structlog.get_logger()


def get_sale_service(
    session: Annotated[AsyncSession, Depends(get_session)],
    gateway: Annotated[SettlementGateway, Depends(get_settlement_gateway)],
) -> SaleService:
    return SaleService(session, gateway)


ServiceDep = Annotated[SaleService, Depends(get_sale_service)]


def _http_error(e: Exception, sale_id: UUID | None = None) -> HTTPException:
    """Map a sale error onto an HTTPException."""
    if isinstance(e, SaleNotFound):
        return HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))
    if isinstance(e, (ArithmeticOverflow, InvalidSaleParameters)):
        return HTTPException(status_code=422, detail=str(e))
    if isinstance(e, InsufficientFunds):
        return HTTPException(status_code=status.HTTP_402_PAYMENT_REQUIRED, detail=str(e))
    if isinstance(e, SettlementError):
        return HTTPException(
            status_code=status.HTTP_502_BAD_GATEWAY,
            detail=f"Settlement failed at {e.step or 'unknown step'}",
        )
    if isinstance(e, InvariantViolation):
        logger.error("Sale account is inconsistent", sale_id=str(sale_id), error=str(e))
        return HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Sale account is inconsistent",
        )
    logger.error("Unexpected sale error", sale_id=str(sale_id), error=str(e))
    return HTTPException(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        detail="Internal error",
    )


@router.post(
    "",
    response_model=SaleResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Create a sale",
    description="Initialize a tranche sale and its price ladder",
)
async def create_sale(request: SaleCreate, service: ServiceDep) -> SaleResponse:
    """
    Initialize a new sale.

    Builds the ten-tranche price ladder from the base price and the
    basis-point multiplier. Omitted parameters use the configured defaults.
    """
    try:
        sale, state = await service.create_sale(request)
    except (ArithmeticOverflow, InvalidSaleParameters) as e:
        logger.warning("Invalid sale parameters", error=str(e))
        raise _http_error(e) from e

    return SaleResponse.from_state(sale.id, sale.mint, sale.vault, state)


@router.get(
    "/{sale_id}",
    response_model=SaleResponse,
    summary="Get sale summary",
)
async def get_sale(sale_id: UUID, service: ServiceDep) -> SaleResponse:
    try:
        sale = await service.get_sale(sale_id)
        state = sale.load_state()
    except (SaleNotFound, InvariantViolation) as e:
        raise _http_error(e, sale_id) from e

    return SaleResponse.from_state(sale.id, sale.mint, sale.vault, state)


@router.get(
    "/{sale_id}/tranches",
    response_model=TranchesResponse,
    summary="Get tranche table",
)
async def get_tranches(sale_id: UUID, service: ServiceDep) -> TranchesResponse:
    try:
        sale = await service.get_sale(sale_id)
        state = sale.load_state()
    except (SaleNotFound, InvariantViolation) as e:
        raise _http_error(e, sale_id) from e

    return TranchesResponse.from_state(sale.id, state)


@router.get(
    "/{sale_id}/account",
    response_model=AccountResponse,
    summary="Get packed sale account",
)
async def get_account(sale_id: UUID, service: ServiceDep) -> AccountResponse:
    try:
        sale = await service.get_sale(sale_id)
    except SaleNotFound as e:
        raise _http_error(e, sale_id) from e

    return AccountResponse(
        sale_id=sale.id,
        size=len(sale.account_data),
        data=sale.account_data.hex(),
    )


@router.post(
    "/{sale_id}/quote",
    response_model=QuoteResponse,
    summary="Quote a purchase",
    description="Compute a purchase outcome without changing the sale",
)
async def quote_purchase(
    sale_id: UUID,
    request: QuoteRequest,
    service: ServiceDep,
) -> QuoteResponse:
    try:
        result = await service.quote(sale_id, request.amount)
    except (SaleNotFound, ArithmeticOverflow, InvariantViolation) as e:
        raise _http_error(e, sale_id) from e

    return QuoteResponse.from_result(result)


@router.post(
    "/{sale_id}/purchases",
    response_model=PurchaseResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Execute a purchase",
)
async def create_purchase(
    sale_id: UUID,
    request: PurchaseRequest,
    service: ServiceDep,
) -> PurchaseResponse:
    """
    Execute a purchase.

    Walks the tranche ladder with the offered amount, settles the charity and
    sale shares through the Ledger, transfers and burns tokens through the
    Token Custodian, and records the new sale state. Funds that could not buy
    a whole token are reported as `unspent_remainder` and are never collected.
    """
    try:
        purchase_id, result = await service.execute_purchase(
            sale_id, request.buyer, request.amount
        )
    except (
        SaleNotFound,
        ArithmeticOverflow,
        InvariantViolation,
        SettlementError,
    ) as e:
        raise _http_error(e, sale_id) from e

    return PurchaseResponse(
        id=purchase_id,
        sale_id=sale_id,
        buyer=request.buyer,
        amount=request.amount,
        **QuoteResponse.from_result(result).model_dump(),
    )


@router.get(
    "/{sale_id}/purchases",
    response_model=list[PurchaseRecordResponse],
    summary="List purchases",
)
async def list_purchases(
    sale_id: UUID,
    service: ServiceDep,
    limit: Annotated[int, Query(ge=1, le=1000)] = 100,
    offset: Annotated[int, Query(ge=0)] = 0,
) -> list[PurchaseRecordResponse]:
    try:
        purchases = await service.list_purchases(sale_id, limit, offset)
    except SaleNotFound as e:
        raise _http_error(e, sale_id) from e

    return [PurchaseRecordResponse.model_validate(p) for p in purchases]
