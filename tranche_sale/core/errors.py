"""
Sale Errors
===========
Exception hierarchy for the tranche sale.

Errors raised by the pure pricing, purchase and layout code. Service and
settlement errors live in `tranche_sale.services.errors`.
"""


class TrancheSaleError(Exception):
    """Base class for all tranche sale errors."""


class ArithmeticOverflow(TrancheSaleError):
    """Raised when a checked u64 operation leaves the representable range."""

    def __init__(self, operation: str, left: int, right: int | None = None):
        if right is None:
            message = f"u64 {operation} overflow: {left}"
        else:
            message = f"u64 {operation} overflow: {left} {operation} {right}"
        super().__init__(message)
        self.operation = operation
        self.left = left
        self.right = right


class InvalidSaleParameters(TrancheSaleError):
    """Raised when initialization parameters cannot produce a usable ladder."""


class InvariantViolation(TrancheSaleError):
    """Raised when a sale state breaks one of its structural invariants."""

