"""
genesis-mint CLI
----------------
Operator tooling for the presale: key generation, deployer wallets,
coupon issuance and coupon verification.

    genesis-mint keygen --out keys/coupon.json
    genesis-mint wallet --out keys/deployer.json
    genesis-mint coupon --address 0x... --number 1 --max-nfts 5 --status Available
    genesis-mint coupon --csv allowlist.csv --out coupons.json
    genesis-mint verify --address 0x... --number 1 --max-nfts 5 --coupon '{"r": ..., "s": ..., "v": 27}'

The coupon signer comes from COUPON_PUBLIC_KEY / COUPON_PRIVATE_KEY in the
environment (a local .env is loaded first).
"""

import argparse
import json
import logging
import os
import sys

from .config import load_env
from .coupon_service import Coupon, CouponService
from .errors import KeyPairMismatchError, MalformedKeyError
from .issuance import issue_coupon, issue_from_csv, write_key_pair, write_wallet
from .key_service import generate_key_pair

logger = logging.getLogger("GenesisCLI")


def _coupon_service(require_private: bool) -> CouponService:
    public = os.getenv("COUPON_PUBLIC_KEY")
    private = os.getenv("COUPON_PRIVATE_KEY") if require_private else None
    if not public:
        raise SystemExit("❌ COUPON_PUBLIC_KEY is not set")
    if require_private and not private:
        raise SystemExit("❌ COUPON_PRIVATE_KEY is not set. Coupons can only be issued on the signer's machine.")
    try:
        return CouponService(public, private)
    except (MalformedKeyError, KeyPairMismatchError) as e:
        raise SystemExit(f"❌ Coupon key problem: {e}")


def cmd_keygen(args) -> int:
    key_pair = write_key_pair(args.out) if args.out else generate_key_pair()
    print("\nNEW COUPON KEY PAIR")
    print(f"Public:  {key_pair.public_address}")
    print(f"Private: {key_pair.private_scalar}")
    if args.out:
        print(f"Saved to {args.out}")
    return 0


def cmd_wallet(args) -> int:
    key_pair = write_wallet(args.out) if args.out else generate_key_pair()
    print("\nNEW WALLET CREATED")
    print(f"Address:     {key_pair.public_address}")
    print(f"Private Key: 0x{key_pair.private_scalar}")
    if args.out:
        print(f"Saved to {args.out}")
    return 0


def cmd_coupon(args) -> int:
    service = _coupon_service(require_private=True)

    if args.csv:
        report = issue_from_csv(service, args.csv)
        issued = report.issued
        for error in report.errors:
            print(f"[ERROR] {error}", file=sys.stderr)
        print(f"\nTOTAL COUPONS GENERATED: {report.success}")
        print(f"TOTAL ERRORS: {len(report.errors)}")
        failed = bool(report.errors)
    else:
        if not (args.address and args.number and args.max_nfts):
            print("[ERROR] --address, --number and --max-nfts are required without --csv", file=sys.stderr)
            return 2
        try:
            issued = [issue_coupon(service, args.address, args.number, args.max_nfts, args.status)]
        except ValueError as e:
            print(f"[ERROR] {e}", file=sys.stderr)
            return 1
        failed = False

    output = [item.to_dict() for item in issued]
    if args.out:
        with open(args.out, "w") as f:
            json.dump(output, f, indent=2)
        print(f"Saved {len(output)} coupon(s) to {args.out}")
    else:
        print(json.dumps(output, indent=2))

    if any(not item.valid for item in issued):
        logger.error("🚨 A freshly issued coupon failed re-validation. Check the signer key.")
        return 1
    return 1 if failed else 0


def cmd_verify(args) -> int:
    service = _coupon_service(require_private=False)
    try:
        coupon = Coupon.from_dict(json.loads(args.coupon))
    except (json.JSONDecodeError, KeyError, TypeError) as e:
        print(f"[ERROR] Could not read coupon: {e}", file=sys.stderr)
        return 2

    if service.validate_coupon(coupon, args.address, args.number, args.max_nfts):
        print(f"[OK] VALID COUPON for {args.address} ({args.number}, {args.max_nfts})")
        return 0
    print(f"[FAIL] Coupon does not verify against signer {service.public_address}")
    return 1


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="genesis-mint", description="Genesis presale coupon tooling")
    parser.add_argument("--env", "-e", default=None, help="Path to .env file")
    sub = parser.add_subparsers(dest="command", required=True)

    keygen = sub.add_parser("keygen", help="Generate a coupon-signing key pair")
    keygen.add_argument("--out", type=str, default=None, help="Write {public, private} JSON here")
    keygen.set_defaults(func=cmd_keygen)

    wallet = sub.add_parser("wallet", help="Generate a deployer wallet")
    wallet.add_argument("--out", type=str, default=None, help="Write {address, privateKey} JSON here")
    wallet.set_defaults(func=cmd_wallet)

    coupon = sub.add_parser("coupon", help="Issue coupons (single or from CSV)")
    coupon.add_argument("--address", type=str)
    coupon.add_argument("--number", type=int)
    coupon.add_argument("--max-nfts", dest="max_nfts", type=int)
    coupon.add_argument("--status", type=str, default="Available")
    coupon.add_argument("--csv", type=str, default=None, help="address, number, max_nfts, status")
    coupon.add_argument("--out", type=str, default=None, help="Write issued coupons as JSON here")
    coupon.set_defaults(func=cmd_coupon)

    verify = sub.add_parser("verify", help="Check a coupon against the public signer")
    verify.add_argument("--address", type=str, required=True)
    verify.add_argument("--number", type=int, required=True)
    verify.add_argument("--max-nfts", dest="max_nfts", type=int, required=True)
    verify.add_argument("--coupon", type=str, required=True, help='{"r": "0x..", "s": "0x..", "v": 27}')
    verify.set_defaults(func=cmd_verify)

    return parser


def main(argv=None) -> int:
    logging.basicConfig(level=logging.INFO, format="%(asctime)s [%(name)s] %(message)s")
    args = build_parser().parse_args(argv)
    load_env(args.env)
    return args.func(args)


if __name__ == "__main__":
    sys.exit(main())
