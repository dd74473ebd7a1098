"""
Background Jobs
================
Scheduled jobs for sale reporting.
"""

from tranche_sale.jobs.reports import SaleReportJob

__all__ = ["SaleReportJob"]
