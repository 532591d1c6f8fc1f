"""
Genesis Mint
============
Coupon-gated minting for a fixed-supply token collection.

Usage:
    from genesis_mint import CouponService, MintGate, generate_key_pair
"""

from .config import GateConfig
from .coupon_service import Coupon, CouponService, CouponStatus
from .errors import ErrorKind, Result
from .key_service import KeyPair, generate_key_pair, validate_key_pair
from .mint_gate import MintGate
from .roles import Role
from .store import LedgerStore

__version__ = "0.1.0"
__all__ = [
    "Coupon",
    "CouponService",
    "CouponStatus",
    "ErrorKind",
    "GateConfig",
    "KeyPair",
    "LedgerStore",
    "MintGate",
    "Result",
    "Role",
    "generate_key_pair",
    "validate_key_pair",
]
