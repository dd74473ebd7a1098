"""
Sale Reports
============
Generate CSV progress reports for sales.
"""

import csv
from collections.abc import Iterable
from datetime import datetime
from pathlib import Path
from typing import TextIO
from uuid import UUID

import structlog
from sqlalchemy import select

from tranche_sale.core.state import SaleState
from tranche_sale.database import get_session_context
from tranche_sale.models.sale import Sale

logger = structlog.get_logger()

HEADER = [
    "Sale ID",
    "Tranche",
    "Price",
    "Allocation",
    "Sold",
    "Remaining",
    "Current",
]


def write_progress_rows(
    f: TextIO,
    sales: Iterable[tuple[UUID, SaleState]],
) -> int:
    """
    Write tranche progress rows for each sale, followed by a totals row per sale.

    Returns:
        Number of sales written
    """
    writer = csv.writer(f)
    writer.writerow(HEADER)

    count = 0
    for sale_id, state in sales:
        for index, tranche in enumerate(state.tranches):
            writer.writerow([
                str(sale_id),
                index,
                tranche.price,
                tranche.allocation,
                tranche.sold,
                tranche.remaining,
                "yes" if index == state.current_tranche_index else "",
            ])

        writer.writerow([
            str(sale_id),
            "TOTAL",
            "-",
            state.total_supply,
            state.total_tokens_sold,
            state.total_supply - state.total_tokens_sold,
            f"funds_raised={state.total_funds_raised}",
        ])
        count += 1

    return count


class SaleReportJob:
    """
    Generate sale progress reports in CSV format.
    """

    def __init__(self, output_dir: str = "reports"):
        self.output_dir = Path(output_dir)
        self.output_dir.mkdir(parents=True, exist_ok=True)

    async def generate_progress_report(self, sale_id: UUID | None = None) -> Path:
        """
        Generate a tranche progress report.

        Args:
            sale_id: Optional specific sale (all if None)

        Returns:
            Path to generated CSV file
        """
        logger.info("Generating sale progress report", sale_id=str(sale_id) if sale_id else None)

        async with get_session_context() as session:
            stmt = select(Sale).order_by(Sale.created_at)
            if sale_id:
                stmt = stmt.where(Sale.id == sale_id)

            result = await session.execute(stmt)
            rows = result.scalars().all()

        timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
        if sale_id:
            filename = f"sale_{sale_id}_{timestamp}.csv"
        else:
            filename = f"sales_all_{timestamp}.csv"
        output_path = self.output_dir / filename

        with open(output_path, "w", newline="") as f:
            count = write_progress_rows(f, ((row.id, row.load_state()) for row in rows))

        logger.info("Sale progress report generated", path=str(output_path), sales=count)
        return output_path
