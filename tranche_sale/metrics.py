"""
Metrics
=======
Prometheus counters for purchase activity.
"""

from typing import Optional

from prometheus_client import Counter

from tranche_sale.core.purchase import PurchaseResult

PURCHASES = Counter(
    "tranche_sale_purchases_total",
    "Purchase attempts by outcome",
    ["outcome"],
)
TOKENS_SOLD = Counter(
    "tranche_sale_tokens_sold_total",
    "Tokens allocated to buyers, including the burned share",
)
TOKENS_BURNED = Counter(
    "tranche_sale_tokens_burned_total",
    "Tokens burned",
)
FUNDS_RAISED = Counter(
    "tranche_sale_funds_raised_total",
    "Currency consumed by purchases",
)


def record_purchase(outcome: str, result: Optional[PurchaseResult] = None) -> None:
    """Count a purchase attempt and, when accepted, its volumes."""
    PURCHASES.labels(outcome=outcome).inc()
    if result is not None and not result.is_empty:
        TOKENS_SOLD.inc(result.tokens_purchased)
        TOKENS_BURNED.inc(result.burn_amount)
        FUNDS_RAISED.inc(result.spent)
