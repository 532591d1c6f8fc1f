"""
Coupon Service
==============
Off-chain presale allowlist, without any on-chain allowlist storage.

A coupon is an ECDSA signature over keccak256(abi.encode(claimant, number, limit)).
The issuer signs it with the coupon private key; the mint gate only needs
the public address to recover the signer and compare.

The hash layout below is the wire protocol. Issuer and verifier must
reproduce it bit for bit:

    keccak256(
        abi.encode(
            address claimant,   // checksummed before encoding
            uint256 number,     // coupon sequence for this address, usually 1
            uint256 limit       // how many tokens this coupon may mint
        )
    )

Usage:
    service = CouponService(keypair.public_address, keypair.private_scalar)
    coupon = service.generate_coupon("0xabc...", 1, 5)
    assert service.validate_coupon(coupon, "0xabc...", 1, 5)
"""

import logging
from dataclasses import dataclass
from enum import Enum

from eth_abi import encode
from eth_keys import keys
from eth_keys.exceptions import BadSignature
from eth_utils import ValidationError
from web3 import Web3

from .errors import KeyPairMismatchError, MissingSigningKeyError
from .key_service import SECP256K1_N, normalize_address, normalize_private_key, validate_key_pair

logger = logging.getLogger("CouponService")

# Changing this tuple is a breaking protocol change.
COUPON_ENCODING = ["address", "uint256", "uint256"]

UINT256_MAX = 2 ** 256 - 1
_HALF_N = SECP256K1_N // 2


class CouponStatus(Enum):
    Inactive = 0
    Available = 1
    Processing = 2
    Finished = 3

    @classmethod
    def parse(cls, value):
        """Accepts the status name (case sensitive) or its integer value. Returns None if unknown."""
        if isinstance(value, cls):
            return value
        if isinstance(value, int) and not isinstance(value, bool):
            try:
                return cls(value)
            except ValueError:
                return None
        if isinstance(value, str):
            value = value.strip()
            if value.lstrip("-").isdigit():
                return cls.parse(int(value))
            return cls.__members__.get(value)
        return None


@dataclass(frozen=True)
class Coupon:
    r: str  # 0x + 64 hex chars
    s: str  # 0x + 64 hex chars
    v: int  # 27 or 28

    def to_dict(self):
        return {"r": self.r, "s": self.s, "v": self.v}

    @classmethod
    def from_dict(cls, data) -> "Coupon":
        return cls(r=data["r"], s=data["s"], v=data["v"])


def _canonical_claimant(claimant) -> str:
    if not isinstance(claimant, str) or not Web3.is_address(claimant):
        raise ValueError(f"Invalid claimant address: {claimant!r}")
    return Web3.to_checksum_address(claimant)


def _check_uint256(name, value) -> int:
    if isinstance(value, bool) or not isinstance(value, int) or not 0 <= value <= UINT256_MAX:
        raise ValueError(f"{name} must be a uint256, got {value!r}")
    return value


def coupon_hash(claimant, sequence, limit) -> bytes:
    """keccak256(abi.encode(address, uint256, uint256)) over the coupon fields."""
    encoded = encode(
        COUPON_ENCODING,
        [_canonical_claimant(claimant), _check_uint256("sequence", sequence), _check_uint256("limit", limit)],
    )
    return bytes(Web3.keccak(encoded))


def _word_to_int(value) -> int:
    """Parses a fixed-width 32-byte r or s value. Raises ValueError if malformed."""
    if isinstance(value, (bytes, bytearray)):
        if len(value) != 32:
            raise ValueError("signature word must be 32 bytes")
        return int.from_bytes(value, "big")
    if isinstance(value, str):
        digits = value[2:] if value.startswith("0x") else value
        if len(digits) != 64:
            raise ValueError("signature word must be 32 bytes of hex")
        return int(digits, 16)
    raise ValueError(f"unsupported signature word type: {type(value).__name__}")


class CouponService:
    """
    Issues and verifies presale coupons.

    Constructed with the signer's public address. The private scalar is only
    needed to issue coupons; a verify-only instance can be built without it.
    """

    def __init__(self, public_address, private_scalar=None):
        self.public_address = normalize_address(public_address)
        self._private_key = None

        if private_scalar is not None:
            if not validate_key_pair(self.public_address, private_scalar):
                raise KeyPairMismatchError(
                    f"Private key does not derive coupon signer {self.public_address}"
                )
            self._private_key = keys.PrivateKey(bytes.fromhex(normalize_private_key(private_scalar)))

    @property
    def can_issue(self) -> bool:
        return self._private_key is not None

    def hash(self, claimant, sequence, limit) -> bytes:
        return coupon_hash(claimant, sequence, limit)

    def generate_coupon(self, claimant, sequence, limit) -> Coupon:
        if self._private_key is None:
            raise MissingSigningKeyError("This CouponService was built without a signing key")
        v, r, s = self._sign(self.hash(claimant, sequence, limit))
        return Coupon(r="0x" + format(r, "064x"), s="0x" + format(s, "064x"), v=v)

    def validate_coupon(self, coupon, claimant, sequence, limit) -> bool:
        """
        True only if the coupon recovers to this service's signer for exactly
        (claimant, sequence, limit). Any malformed input yields False.
        """
        try:
            msg_hash = self.hash(claimant, sequence, limit)
            signer = self._recover(msg_hash, coupon)
        except (BadSignature, ValidationError, ValueError, KeyError, TypeError) as e:
            logger.debug(f"Coupon rejected for {claimant}: {e}")
            return False
        return signer.lower() == self.public_address.lower()

    # --- INTERNAL MECHANICS ---

    def _sign(self, msg_hash: bytes):
        """Deterministic (RFC 6979) ECDSA, normalized to low-S. Returns (v, r, s) with v in {27, 28}."""
        signature = self._private_key.sign_msg_hash(msg_hash)
        r, s, recovery = signature.r, signature.s, signature.v
        if s > _HALF_N:
            s = SECP256K1_N - s
            recovery ^= 1
        return recovery + 27, r, s

    @staticmethod
    def _recover(msg_hash: bytes, coupon) -> str:
        if isinstance(coupon, dict):
            coupon = Coupon.from_dict(coupon)

        v = coupon.v
        if isinstance(v, bool) or not isinstance(v, int):
            raise ValueError(f"v must be an integer, got {v!r}")
        if v in (27, 28):
            v -= 27
        if v not in (0, 1):
            raise ValueError(f"invalid recovery id v={coupon.v}")

        r = _word_to_int(coupon.r)
        s = _word_to_int(coupon.s)
        if not 0 < r < SECP256K1_N or not 0 < s <= _HALF_N:
            raise ValueError("signature is not canonical (r out of range or high-S)")

        public_key = keys.Signature(vrs=(v, r, s)).recover_public_key_from_msg_hash(msg_hash)
        return public_key.to_checksum_address()
