"""
Core Sale Logic
===============
Tranche pricing ladder, purchase processing, and sale state.
"""

from tranche_sale.core.pricing import build_price_ladder, initialize
from tranche_sale.core.purchase import PurchaseResult, TrancheFill, purchase, quote
from tranche_sale.core.state import SaleState, Tranche

__all__ = [
    "build_price_ladder",
    "initialize",
    "purchase",
    "quote",
    "PurchaseResult",
    "TrancheFill",
    "SaleState",
    "Tranche",
]
