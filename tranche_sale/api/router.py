"""
API Router
==========
Main API router combining all endpoint modules.
"""

from fastapi import APIRouter

from tranche_sale.api.endpoints import health, sales

api_router = APIRouter()

# Include endpoint routers
api_router.include_router(health.router, tags=["Health"])
api_router.include_router(sales.router, prefix="/sales", tags=["Sales"])
