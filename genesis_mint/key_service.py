"""
Key Service
-----------
Generates the coupon-signing key pair and checks that a private scalar
really derives a given public address.

The private half never leaves the operator's machine; only the public
address is handed to the mint gate.
"""

import re
from dataclasses import dataclass

from eth_account import Account
from web3 import Web3

from .errors import MalformedKeyError

_PRIVATE_KEY_RE = re.compile(r"^(0x)?[0-9a-fA-F]{64}$")
_ADDRESS_RE = re.compile(r"^(0x)?[0-9a-fA-F]{40}$")

SECP256K1_N = 0xFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFEBAAEDCE6AF48A03BBFD25E8CD0364141


@dataclass(frozen=True)
class KeyPair:
    public_address: str   # checksummed, 20 bytes
    private_scalar: str   # 32 bytes, hex without 0x prefix

    def to_dict(self):
        return {"public": self.public_address, "private": self.private_scalar}


def _strip_0x(value: str) -> str:
    return value[2:] if value.startswith("0x") else value


def normalize_private_key(private_scalar) -> str:
    """Returns the 64-char hex form of a private scalar, or raises MalformedKeyError."""
    if isinstance(private_scalar, (bytes, bytearray)):
        if len(private_scalar) != 32:
            raise MalformedKeyError(f"Private key must be 32 bytes, got {len(private_scalar)}")
        key_hex = bytes(private_scalar).hex()
    elif not isinstance(private_scalar, str) or not _PRIVATE_KEY_RE.match(private_scalar):
        raise MalformedKeyError("Private key must be 32 bytes of hex")
    else:
        key_hex = _strip_0x(private_scalar).lower()
    if not 0 < int(key_hex, 16) < SECP256K1_N:
        raise MalformedKeyError("Private key is outside the secp256k1 scalar range")
    return key_hex


def normalize_address(public_address) -> str:
    """Returns the checksummed form of a 20-byte address, or raises MalformedKeyError."""
    if isinstance(public_address, (bytes, bytearray)):
        if len(public_address) != 20:
            raise MalformedKeyError(f"Address must be 20 bytes, got {len(public_address)}")
        public_address = "0x" + bytes(public_address).hex()
    if not isinstance(public_address, str) or not _ADDRESS_RE.match(public_address):
        raise MalformedKeyError("Address must be 20 bytes of hex")
    return Web3.to_checksum_address("0x" + _strip_0x(public_address).lower())


def address_from_private_key(private_scalar) -> str:
    return Account.from_key("0x" + normalize_private_key(private_scalar)).address


def generate_key_pair() -> KeyPair:
    acct = Account.create()
    return KeyPair(public_address=acct.address, private_scalar=bytes(acct.key).hex())


def validate_key_pair(public_address, private_scalar) -> bool:
    """
    Re-derives the address from the private scalar and compares it to the
    given public address, ignoring case.

    Raises MalformedKeyError if either input has the wrong byte length.
    """
    expected = normalize_address(public_address)
    derived = address_from_private_key(private_scalar)
    return derived.lower() == expected.lower()
