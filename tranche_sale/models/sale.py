"""
Sale Models
===========
Persisted sale accounts and the purchase history.
"""

from decimal import Decimal
from uuid import UUID, uuid4

from sqlalchemy import (
    ForeignKey,
    Index,
    Integer,
    LargeBinary,
    Numeric,
    String,
    Uuid,
)
from sqlalchemy.orm import Mapped, mapped_column

from tranche_sale.core.state import ACCOUNT_SIZE, SaleState
from tranche_sale.models.base import Base, TimestampMixin

# Wide enough for any u64.
U64Numeric = Numeric(20, 0)


class Sale(Base, TimestampMixin):
    """
    One tranche sale.

    `account_data` holds the packed sale state and is the source of truth.
    The remaining counters mirror it for reporting queries.
    """

    __tablename__ = "sales"

    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True, default=uuid4)
    mint: Mapped[str] = mapped_column(String(255), nullable=False)
    vault: Mapped[str] = mapped_column(String(255), nullable=False)
    account_data: Mapped[bytes] = mapped_column(LargeBinary(ACCOUNT_SIZE), nullable=False)

    charity_address: Mapped[str] = mapped_column(String(64), nullable=False)
    sale_address: Mapped[str] = mapped_column(String(64), nullable=False)
    current_tranche_index: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    total_funds_raised: Mapped[Decimal] = mapped_column(U64Numeric, nullable=False, default=0)
    total_tokens_sold: Mapped[Decimal] = mapped_column(U64Numeric, nullable=False, default=0)

    def load_state(self) -> SaleState:
        return SaleState.unpack(self.account_data)

    def store_state(self, state: SaleState) -> None:
        """Pack `state` into the account and refresh the mirrored columns."""
        self.account_data = state.pack()
        self.charity_address = state.charity_address.hex()
        self.sale_address = state.sale_address.hex()
        self.current_tranche_index = state.current_tranche_index
        self.total_funds_raised = Decimal(state.total_funds_raised)
        self.total_tokens_sold = Decimal(state.total_tokens_sold)


class Purchase(Base, TimestampMixin):
    """
    One accepted purchase.
    Stores the full computed outcome for auditing and reconciliation.
    """

    __tablename__ = "purchases"

    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True, default=uuid4)
    sale_id: Mapped[UUID] = mapped_column(
        Uuid,
        ForeignKey("sales.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    buyer: Mapped[str] = mapped_column(String(64), nullable=False, index=True)

    amount: Mapped[Decimal] = mapped_column(U64Numeric, nullable=False)
    tokens_purchased: Mapped[Decimal] = mapped_column(U64Numeric, nullable=False)
    transfer_amount: Mapped[Decimal] = mapped_column(U64Numeric, nullable=False)
    burn_amount: Mapped[Decimal] = mapped_column(U64Numeric, nullable=False)
    spent: Mapped[Decimal] = mapped_column(U64Numeric, nullable=False)
    unspent_remainder: Mapped[Decimal] = mapped_column(U64Numeric, nullable=False)
    charity_share: Mapped[Decimal] = mapped_column(U64Numeric, nullable=False)
    sale_share: Mapped[Decimal] = mapped_column(U64Numeric, nullable=False)

    tranche_index_before: Mapped[int] = mapped_column(Integer, nullable=False)
    tranche_index_after: Mapped[int] = mapped_column(Integer, nullable=False)

    __table_args__ = (
        Index("idx_purchases_sale_created", "sale_id", "created_at"),
    )
