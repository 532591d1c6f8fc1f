"""
Coupon Issuance
===============
Bulk and single coupon generation for the presale allowlist.

This must only ever run on the operator's machine, with the coupon private
key in the local .env. If you don't know which private key is the right
one, don't run it.

CSV format (first line is a header and is skipped):

    address, number, max_nfts, status
    0x7e32fd802c323C79d40552A3Ce6E533c3aaF3c9C, 1, 5, Available

    address   the claimant's ETH address
    number    1, unless the address gets more than one coupon
    max_nfts  how many tokens the coupon may mint
    status    a CouponStatus name (case sensitive) or its integer value
"""

import csv
import json
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional

from web3 import Web3

from .coupon_service import Coupon, CouponService, CouponStatus
from .key_service import KeyPair, generate_key_pair

logger = logging.getLogger("CouponIssuance")


@dataclass
class IssuedCoupon:
    address: str
    number: int
    limit: int
    status: CouponStatus
    coupon: Coupon
    valid: bool = True

    def to_dict(self):
        return {
            "address": self.address,
            "number": self.number,
            "limit": self.limit,
            "status": self.status.name,
            "coupon": self.coupon.to_dict(),
        }


@dataclass
class IssuanceReport:
    issued: List[IssuedCoupon] = field(default_factory=list)
    errors: List[str] = field(default_factory=list)

    @property
    def success(self) -> int:
        return len(self.issued)


def _parse_positive(raw) -> Optional[int]:
    try:
        value = int(str(raw).strip())
    except ValueError:
        return None
    return value if value > 0 else None


def issue_coupon(service: CouponService, address, number, limit, status=CouponStatus.Available) -> IssuedCoupon:
    """Issues one coupon and immediately re-validates it against the service's signer."""
    if not Web3.is_address(address):
        raise ValueError(f"Invalid ETH address: {address}")
    parsed_status = CouponStatus.parse(status)
    if parsed_status is None:
        raise ValueError(f"Invalid status: {status}")
    if _parse_positive(number) is None:
        raise ValueError(f"invalid number: {number}")
    if _parse_positive(limit) is None:
        raise ValueError(f"invalid limit: {limit}")

    number, limit = int(number), int(limit)
    coupon = service.generate_coupon(address, number, limit)
    valid = service.validate_coupon(coupon, address, number, limit)
    return IssuedCoupon(Web3.to_checksum_address(address), number, limit, parsed_status, coupon, valid)


def issue_from_csv(service: CouponService, csv_path) -> IssuanceReport:
    """Generates a coupon per CSV row. Bad rows are reported and skipped; they never stop the run."""
    report = IssuanceReport()
    with open(csv_path, "r", newline="") as f:
        reader = csv.reader(f)
        next(reader, None)  # header
        for line_no, row in enumerate(reader, start=2):
            row = [cell.strip() for cell in row]
            if not any(row):
                continue
            row += [""] * (4 - len(row))
            address, raw_number, raw_limit, raw_status = row[:4]

            if _parse_positive(raw_number) is None:
                report.errors.append(f"line {line_no}: invalid number: {raw_number}")
            elif _parse_positive(raw_limit) is None:
                report.errors.append(f"line {line_no}: invalid limit: {raw_limit}")
            elif CouponStatus.parse(raw_status) is None:
                report.errors.append(f"line {line_no}: invalid status: {raw_status}")
            else:
                try:
                    report.issued.append(issue_coupon(service, address, raw_number, raw_limit, raw_status))
                except ValueError as e:
                    report.errors.append(f"line {line_no}: {e}")

    logger.info(f"TOTAL COUPONS GENERATED: {report.success}")
    logger.info(f"TOTAL ERRORS: {len(report.errors)}")
    return report


# --- Key / wallet files ---

def write_key_pair(path, key_pair: Optional[KeyPair] = None) -> KeyPair:
    """Writes a coupon key pair as {"public", "private"} JSON."""
    key_pair = key_pair or generate_key_pair()
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    with open(path, "w") as f:
        json.dump(key_pair.to_dict(), f, indent=2)
    return key_pair


def write_wallet(path, key_pair: Optional[KeyPair] = None) -> KeyPair:
    """Writes a deployer wallet as {"privateKey", "address"} JSON."""
    key_pair = key_pair or generate_key_pair()
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    with open(path, "w") as f:
        json.dump({"privateKey": "0x" + key_pair.private_scalar, "address": key_pair.public_address}, f, indent=2)
    return key_pair


def read_key_pair(path) -> KeyPair:
    with open(path, "r") as f:
        data = json.load(f)
    return KeyPair(public_address=data["public"], private_scalar=data["private"])
