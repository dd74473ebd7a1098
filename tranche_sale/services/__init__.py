"""
Business Services
=================
Service layer for sale management and purchase settlement.
"""

from tranche_sale.services.sale import SaleService
from tranche_sale.services.settlement import SettlementGateway, get_settlement_gateway

__all__ = ["SaleService", "SettlementGateway", "get_settlement_gateway"]
