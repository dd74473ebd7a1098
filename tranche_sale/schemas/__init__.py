"""
Pydantic Schemas
================
Request/Response models for API validation.
"""

from tranche_sale.schemas.sale import (
    AccountResponse,
    PurchaseRecordResponse,
    PurchaseRequest,
    PurchaseResponse,
    QuoteRequest,
    QuoteResponse,
    SaleCreate,
    SaleResponse,
    TrancheFillResponse,
    TrancheResponse,
    TranchesResponse,
)

__all__ = [
    "SaleCreate",
    "SaleResponse",
    "TrancheResponse",
    "TranchesResponse",
    "AccountResponse",
    "QuoteRequest",
    "QuoteResponse",
    "TrancheFillResponse",
    "PurchaseRequest",
    "PurchaseResponse",
    "PurchaseRecordResponse",
]
