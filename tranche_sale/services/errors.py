"""
Service Errors
==============
Errors raised by the sale service and its settlement collaborators.
"""

from tranche_sale.core.errors import TrancheSaleError


class SaleNotFound(TrancheSaleError):
    """Raised when a sale id does not exist."""


class SettlementError(TrancheSaleError):
    """Raised when a Ledger or Token Custodian operation fails."""

    def __init__(self, message: str, step: str | None = None):
        super().__init__(message)
        self.step = step


class InsufficientFunds(SettlementError):
    """Raised by the Ledger when the payer cannot cover a transfer."""


class RefundError(SettlementError):
    """Raised when reversing the transfers of a failed purchase also fails."""
