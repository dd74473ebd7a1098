"""
Database Models
===============
SQLAlchemy ORM models for the tranche sale.
"""

from tranche_sale.models.base import Base
from tranche_sale.models.sale import Purchase, Sale

__all__ = [
    "Base",
    "Sale",
    "Purchase",
]
