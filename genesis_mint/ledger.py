"""
Allocation Ledger
-----------------
The four counters that bound every mint:

    total_minted / treasury_minted   supply pools
    coupon_usage[hash]               presale usage per coupon
    wallet_public_mints[address]     public-channel mints per wallet

Each reserve_* call either charges its counters and returns a success
Result, or changes nothing and returns a failure Result. Counters only grow.
"""

import copy
from dataclasses import dataclass, field
from typing import Dict

from .errors import ErrorKind, Result


@dataclass
class SupplyCounters:
    total_minted: int = 0
    treasury_minted: int = 0


@dataclass
class LedgerSnapshot:
    supply: SupplyCounters
    coupon_usage: Dict[bytes, int] = field(default_factory=dict)
    wallet_public_mints: Dict[str, int] = field(default_factory=dict)


class AllocationLedger:
    def __init__(self, max_supply: int, treasury_reserve: int):
        self.max_supply = max_supply
        self.treasury_reserve = treasury_reserve
        self.supply = SupplyCounters()
        self.coupon_usage: Dict[bytes, int] = {}
        self.wallet_public_mints: Dict[str, int] = {}

    @property
    def sale_pool(self) -> int:
        return self.max_supply - self.treasury_reserve

    @property
    def sale_minted(self) -> int:
        return self.supply.total_minted - self.supply.treasury_minted

    @property
    def total_minted(self) -> int:
        return self.supply.total_minted

    @property
    def treasury_minted(self) -> int:
        return self.supply.treasury_minted

    # --- Reservations ---

    def reserve_sale(self, qty: int) -> Result:
        if qty < 1:
            return Result.failure(ErrorKind.INVALID_ARGUMENT, f"quantity must be >= 1, got {qty}")
        if self.sale_minted + qty > self.sale_pool:
            return Result.failure(
                ErrorKind.NO_MORE_TOKENS_LEFT,
                f"sale pool {self.sale_minted}/{self.sale_pool}, requested {qty}",
            )
        self.supply.total_minted += qty
        return Result.success(self.supply.total_minted)

    def reserve_treasury(self, qty: int) -> Result:
        if qty < 1:
            return Result.failure(ErrorKind.INVALID_ARGUMENT, f"quantity must be >= 1, got {qty}")
        if self.supply.treasury_minted + qty > self.treasury_reserve:
            return Result.failure(
                ErrorKind.TREASURY_RESERVATION_ALLOCATION_EXCEEDED,
                f"treasury {self.supply.treasury_minted}/{self.treasury_reserve}, requested {qty}",
            )
        if self.supply.total_minted + qty > self.max_supply:
            return Result.failure(
                ErrorKind.NO_MORE_TOKENS_LEFT,
                f"supply {self.supply.total_minted}/{self.max_supply}, requested {qty}",
            )
        self.supply.treasury_minted += qty
        self.supply.total_minted += qty
        return Result.success(self.supply.treasury_minted)

    def reserve_coupon(self, coupon_hash: bytes, limit: int, qty: int) -> Result:
        if qty < 1:
            return Result.failure(ErrorKind.INVALID_ARGUMENT, f"quantity must be >= 1, got {qty}")
        used = self.coupon_usage.get(coupon_hash, 0)
        if used + qty > limit:
            return Result.failure(
                ErrorKind.ALLOCATION_EXCEEDED,
                f"coupon 0x{coupon_hash.hex()[:12]}... used {used}/{limit}, requested {qty}",
            )
        self.coupon_usage[coupon_hash] = used + qty
        return Result.success(used + qty)

    def reserve_wallet_public(self, address: str, cap: int, qty: int) -> Result:
        if qty < 1:
            return Result.failure(ErrorKind.INVALID_ARGUMENT, f"quantity must be >= 1, got {qty}")
        used = self.wallet_public_mints.get(address, 0)
        if used + qty > cap:
            return Result.failure(
                ErrorKind.MAX_MINT_REACHED_FOR_PUBLIC_WALLET,
                f"wallet {address} minted {used}/{cap}, requested {qty}",
            )
        self.wallet_public_mints[address] = used + qty
        return Result.success(used + qty)

    # --- Queries ---

    def usage(self, coupon_hash: bytes) -> int:
        return self.coupon_usage.get(coupon_hash, 0)

    def public_mints(self, address: str) -> int:
        return self.wallet_public_mints.get(address, 0)

    # --- Rollback support ---

    def snapshot(self) -> LedgerSnapshot:
        return LedgerSnapshot(
            supply=copy.copy(self.supply),
            coupon_usage=dict(self.coupon_usage),
            wallet_public_mints=dict(self.wallet_public_mints),
        )

    def restore(self, snapshot: LedgerSnapshot) -> None:
        self.supply = copy.copy(snapshot.supply)
        self.coupon_usage = dict(snapshot.coupon_usage)
        self.wallet_public_mints = dict(snapshot.wallet_public_mints)
