"""
Sale State
==========
Tranche and sale records, their invariants, and the fixed account layout.

Account layout (little-endian, 321 bytes):

    charity_address      32 bytes
    sale_address         32 bytes
    current_tranche_idx  u8
    total_funds_raised   u64
    total_tokens_sold    u64
    tranches             10 x (allocation u64, sold u64, price u64)
"""

import struct
from dataclasses import dataclass, field, replace

from tranche_sale.core.arithmetic import is_u64
from tranche_sale.core.errors import InvariantViolation

TRANCHE_COUNT = 10
ADDRESS_LENGTH = 32

# Token units per tranche, in sale order.
TRANCHE_ALLOCATIONS: tuple[int, ...] = (
    500_000_000,
    1_000_000_000,
    1_500_000_000,
    3_000_000_000,
    3_000_000_000,
    3_000_000_000,
    3_000_000_000,
    2_500_000_000,
    1_500_000_000,
    1_000_000_000,
)

_HEADER = struct.Struct("<32s32sBQQ")
_TRANCHE = struct.Struct("<QQQ")
ACCOUNT_SIZE = _HEADER.size + TRANCHE_COUNT * _TRANCHE.size


def parse_address(value: str) -> bytes:
    """Decode a 64-character hex address into its 32 raw bytes."""
    try:
        raw = bytes.fromhex(value)
    except ValueError as e:
        raise ValueError(f"Address is not valid hex: {value!r}") from e
    if len(raw) != ADDRESS_LENGTH:
        raise ValueError(f"Address must be {ADDRESS_LENGTH} bytes, got {len(raw)}")
    return raw


@dataclass(slots=True)
class Tranche:
    """One priced allocation band."""

    allocation: int
    sold: int
    price: int

    @property
    def remaining(self) -> int:
        return self.allocation - self.sold

    @property
    def is_exhausted(self) -> bool:
        return self.sold == self.allocation


@dataclass(slots=True)
class SaleState:
    """
    Mutable record of a whole sale.

    Created once by the pricing initializer and updated once per accepted
    purchase. Purchases never touch the addresses, allocations or prices.
    """

    charity_address: bytes
    sale_address: bytes
    tranches: list[Tranche] = field(default_factory=list)
    current_tranche_index: int = 0
    total_funds_raised: int = 0
    total_tokens_sold: int = 0

    @property
    def is_complete(self) -> bool:
        return self.current_tranche_index >= TRANCHE_COUNT

    @property
    def current_tranche(self) -> Tranche | None:
        if self.is_complete:
            return None
        return self.tranches[self.current_tranche_index]

    @property
    def total_supply(self) -> int:
        return sum(t.allocation for t in self.tranches)

    def copy(self) -> "SaleState":
        """Deep copy; tranches are duplicated so the copy can be mutated freely."""
        return replace(self, tranches=[replace(t) for t in self.tranches])

    def check_invariants(self) -> None:
        """Raise InvariantViolation if the state is structurally inconsistent."""
        if len(self.charity_address) != ADDRESS_LENGTH:
            raise InvariantViolation("charity_address must be 32 bytes")
        if len(self.sale_address) != ADDRESS_LENGTH:
            raise InvariantViolation("sale_address must be 32 bytes")
        if len(self.tranches) != TRANCHE_COUNT:
            raise InvariantViolation(
                f"expected {TRANCHE_COUNT} tranches, found {len(self.tranches)}"
            )
        if not 0 <= self.current_tranche_index <= TRANCHE_COUNT:
            raise InvariantViolation(
                f"current_tranche_index {self.current_tranche_index} out of range"
            )

        previous_price = 0
        for index, tranche in enumerate(self.tranches):
            for name in ("allocation", "sold", "price"):
                if not is_u64(getattr(tranche, name)):
                    raise InvariantViolation(f"tranche {index} {name} is not a u64")
            if tranche.sold > tranche.allocation:
                raise InvariantViolation(f"tranche {index} sold exceeds allocation")
            if tranche.price < previous_price:
                raise InvariantViolation(f"tranche {index} price decreases")
            previous_price = tranche.price
            # Every tranche before the cursor must be exhausted.
            if index < self.current_tranche_index and not tranche.is_exhausted:
                raise InvariantViolation(
                    f"tranche {index} is behind the cursor but not exhausted"
                )

        if not is_u64(self.total_funds_raised) or not is_u64(self.total_tokens_sold):
            raise InvariantViolation("sale totals must be u64 values")
        if self.total_tokens_sold != sum(t.sold for t in self.tranches):
            raise InvariantViolation("total_tokens_sold does not match tranche sales")

    def pack(self) -> bytes:
        """Serialize into the fixed 321-byte account layout."""
        self.check_invariants()
        parts = [
            _HEADER.pack(
                self.charity_address,
                self.sale_address,
                self.current_tranche_index,
                self.total_funds_raised,
                self.total_tokens_sold,
            )
        ]
        parts.extend(_TRANCHE.pack(t.allocation, t.sold, t.price) for t in self.tranches)
        return b"".join(parts)

    @classmethod
    def unpack(cls, data: bytes) -> "SaleState":
        """Deserialize the fixed account layout and validate the result."""
        if len(data) != ACCOUNT_SIZE:
            raise InvariantViolation(
                f"account data must be {ACCOUNT_SIZE} bytes, got {len(data)}"
            )

        charity, sale, index, funds, tokens = _HEADER.unpack_from(data, 0)
        tranches = [
            Tranche(*_TRANCHE.unpack_from(data, _HEADER.size + i * _TRANCHE.size))
            for i in range(TRANCHE_COUNT)
        ]
        state = cls(
            charity_address=charity,
            sale_address=sale,
            tranches=tranches,
            current_tranche_index=index,
            total_funds_raised=funds,
            total_tokens_sold=tokens,
        )
        state.check_invariants()
        return state
