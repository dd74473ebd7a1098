"""
Sale Schemas
============
Pydantic models for the sale API.
"""

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, field_validator

from tranche_sale.core.arithmetic import U64_MAX
from tranche_sale.core.purchase import PurchaseResult
from tranche_sale.core.state import SaleState, parse_address

AddressField = Field(..., min_length=64, max_length=64, description="32-byte address, hex encoded")


def _validate_address(value: str) -> str:
    parse_address(value)
    return value.lower()


class SaleCreate(BaseModel):
    """Request to initialize a new sale. Omitted fields use the configured defaults."""

    charity_address: str = AddressField
    sale_address: str = AddressField
    base_price: int | None = Field(default=None, gt=0, le=U64_MAX)
    multiplier_bps: int | None = Field(default=None, gt=0, le=U64_MAX)
    mint: str | None = Field(default=None, min_length=1, max_length=255)
    vault: str | None = Field(default=None, min_length=1, max_length=255)

    @field_validator("charity_address", "sale_address")
    @classmethod
    def check_address(cls, v: str) -> str:
        return _validate_address(v)


class PurchaseRequest(BaseModel):
    """Payment offered by a buyer."""

    buyer: str = AddressField
    amount: int = Field(..., gt=0, le=U64_MAX)

    @field_validator("buyer")
    @classmethod
    def check_buyer(cls, v: str) -> str:
        return _validate_address(v)


class QuoteRequest(BaseModel):
    """Payment to preview against the current sale state."""

    amount: int = Field(..., gt=0, le=U64_MAX)


class TrancheResponse(BaseModel):
    """One tranche of a sale."""

    index: int
    allocation: int
    sold: int
    remaining: int
    price: int
    is_current: bool


class SaleResponse(BaseModel):
    """Sale summary."""

    id: UUID
    mint: str
    vault: str
    charity_address: str
    sale_address: str
    current_tranche_index: int
    is_complete: bool
    current_price: int | None
    total_supply: int
    total_funds_raised: int
    total_tokens_sold: int

    @classmethod
    def from_state(cls, sale_id: UUID, mint: str, vault: str, state: SaleState) -> "SaleResponse":
        current = state.current_tranche
        return cls(
            id=sale_id,
            mint=mint,
            vault=vault,
            charity_address=state.charity_address.hex(),
            sale_address=state.sale_address.hex(),
            current_tranche_index=state.current_tranche_index,
            is_complete=state.is_complete,
            current_price=current.price if current else None,
            total_supply=state.total_supply,
            total_funds_raised=state.total_funds_raised,
            total_tokens_sold=state.total_tokens_sold,
        )


class TranchesResponse(BaseModel):
    """Full tranche table of a sale."""

    sale_id: UUID
    current_tranche_index: int
    tranches: list[TrancheResponse]

    @classmethod
    def from_state(cls, sale_id: UUID, state: SaleState) -> "TranchesResponse":
        return cls(
            sale_id=sale_id,
            current_tranche_index=state.current_tranche_index,
            tranches=[
                TrancheResponse(
                    index=i,
                    allocation=t.allocation,
                    sold=t.sold,
                    remaining=t.remaining,
                    price=t.price,
                    is_current=i == state.current_tranche_index,
                )
                for i, t in enumerate(state.tranches)
            ],
        )


class AccountResponse(BaseModel):
    """Packed sale account."""

    sale_id: UUID
    size: int
    data: str = Field(description="Account bytes, hex encoded")


class TrancheFillResponse(BaseModel):
    """Tokens bought from one tranche."""

    tranche_index: int
    tokens: int
    price: int
    cost: int


class QuoteResponse(BaseModel):
    """Computed purchase outcome."""

    tokens_purchased: int
    transfer_amount: int
    burn_amount: int
    spent: int
    unspent_remainder: int
    charity_share: int
    sale_share: int
    tranche_index_before: int
    tranche_index_after: int
    fills: list[TrancheFillResponse]

    @classmethod
    def from_result(cls, result: PurchaseResult) -> "QuoteResponse":
        return cls(
            tokens_purchased=result.tokens_purchased,
            transfer_amount=result.transfer_amount,
            burn_amount=result.burn_amount,
            spent=result.spent,
            unspent_remainder=result.unspent_remainder,
            charity_share=result.charity_share,
            sale_share=result.sale_share,
            tranche_index_before=result.tranche_index_before,
            tranche_index_after=result.tranche_index_after,
            fills=[
                TrancheFillResponse(
                    tranche_index=f.tranche_index,
                    tokens=f.tokens,
                    price=f.price,
                    cost=f.cost,
                )
                for f in result.fills
            ],
        )


class PurchaseResponse(QuoteResponse):
    """Accepted purchase."""

    id: UUID
    sale_id: UUID
    buyer: str
    amount: int


class PurchaseRecordResponse(BaseModel):
    """Stored purchase."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID
    sale_id: UUID
    buyer: str
    amount: int
    tokens_purchased: int
    transfer_amount: int
    burn_amount: int
    spent: int
    unspent_remainder: int
    charity_share: int
    sale_share: int
    tranche_index_before: int
    tranche_index_after: int
    created_at: datetime
