"""
API Package
===========
HTTP routes for the tranche sale.
"""

from tranche_sale.api.router import api_router

__all__ = ["api_router"]
