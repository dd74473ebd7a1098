"""
Tranche Pricing
===============
Price ladder construction and sale initialization.

The ladder is built step by step: each price is the previous one multiplied
by the basis-point multiplier and truncated. Rounding therefore compounds
from one tranche to the next and is part of the sale economics.
"""

from dataclasses import dataclass
from functools import lru_cache
from pathlib import Path
from typing import Any, Optional

import structlog
import yaml

from tranche_sale.config import settings
from tranche_sale.core.arithmetic import checked_div, checked_mul
from tranche_sale.core.errors import InvalidSaleParameters
from tranche_sale.core.state import (
    ADDRESS_LENGTH,
    TRANCHE_ALLOCATIONS,
    TRANCHE_COUNT,
    SaleState,
    Tranche,
)

logger = structlog.get_logger()

BPS_DENOMINATOR = 10_000


def build_price_ladder(base_price: int, multiplier_bps: int) -> list[int]:
    """
    Build the per-tranche price ladder.

    Raises:
        ArithmeticOverflow: if any step leaves the u64 range
    """
    prices = [base_price]
    for _ in range(1, TRANCHE_COUNT):
        scaled = checked_mul(prices[-1], multiplier_bps)
        prices.append(checked_div(scaled, BPS_DENOMINATOR))
    return prices


def initialize(
    charity_address: bytes,
    sale_address: bytes,
    base_price: int,
    multiplier_bps: int,
) -> SaleState:
    """
    Create a fresh sale with every tranche unsold.

    Args:
        charity_address: 32-byte destination for the charity share
        sale_address: 32-byte destination for the sale proceeds
        base_price: Price of tranche 0, in currency units per token
        multiplier_bps: Step multiplier in basis points (10000 = 1.0x)

    Raises:
        InvalidSaleParameters: if the ladder would be unusable
        ArithmeticOverflow: if the ladder does not fit in u64
    """
    if len(charity_address) != ADDRESS_LENGTH or len(sale_address) != ADDRESS_LENGTH:
        raise InvalidSaleParameters("Addresses must be 32 bytes")
    if base_price <= 0:
        raise InvalidSaleParameters("base_price must be positive")
    if multiplier_bps < BPS_DENOMINATOR:
        raise InvalidSaleParameters(
            f"multiplier_bps must be at least {BPS_DENOMINATOR} (non-decreasing prices)"
        )

    prices = build_price_ladder(base_price, multiplier_bps)

    state = SaleState(
        charity_address=charity_address,
        sale_address=sale_address,
        tranches=[
            Tranche(allocation=allocation, sold=0, price=price)
            for allocation, price in zip(TRANCHE_ALLOCATIONS, prices)
        ],
    )
    state.check_invariants()

    logger.info(
        "Initialized sale ladder",
        base_price=base_price,
        multiplier_bps=multiplier_bps,
        top_price=prices[-1],
    )
    return state


@dataclass(frozen=True)
class SaleParameters:
    """Default parameters for new sales, loaded from YAML."""

    base_price: int
    multiplier_bps: int
    mint: str
    vault: str


DEFAULT_SALE_PARAMETERS = SaleParameters(
    base_price=3_000_000,
    multiplier_bps=11_000,
    mint="sale-mint",
    vault="sale-vault",
)


def load_sale_parameters(config_path: Optional[str] = None) -> SaleParameters:
    """Load sale defaults from a YAML file, falling back to built-in values."""
    path = Path(config_path or settings.sale_config_path)

    if not path.exists():
        logger.warning("Sale config not found, using defaults", path=str(path))
        return DEFAULT_SALE_PARAMETERS

    try:
        with open(path) as f:
            data: dict[str, Any] = yaml.safe_load(f) or {}
    except (OSError, yaml.YAMLError) as e:
        logger.error("Failed to load sale config", path=str(path), error=str(e))
        return DEFAULT_SALE_PARAMETERS

    sale = data.get("sale", {})
    parameters = SaleParameters(
        base_price=int(sale.get("base_price", DEFAULT_SALE_PARAMETERS.base_price)),
        multiplier_bps=int(sale.get("multiplier_bps", DEFAULT_SALE_PARAMETERS.multiplier_bps)),
        mint=str(sale.get("mint", DEFAULT_SALE_PARAMETERS.mint)),
        vault=str(sale.get("vault", DEFAULT_SALE_PARAMETERS.vault)),
    )
    logger.info("Loaded sale configuration", path=str(path))
    return parameters


@lru_cache
def get_sale_parameters() -> SaleParameters:
    """Get cached sale defaults."""
    return load_sale_parameters()
