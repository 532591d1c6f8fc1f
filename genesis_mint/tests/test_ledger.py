import pytest

from genesis_mint.errors import ErrorKind
from genesis_mint.ledger import AllocationLedger

HASH_A = b"\xaa" * 32
HASH_B = b"\xbb" * 32
WALLET = "0x7E5F4552091A69125d5DfCb7b8C2659029395Bdf"


@pytest.fixture
def ledger():
    return AllocationLedger(max_supply=200, treasury_reserve=50)


def test_sale_pool_is_supply_minus_treasury(ledger):
    assert ledger.sale_pool == 150
    assert ledger.reserve_sale(150).ok
    result = ledger.reserve_sale(1)
    assert result.error is ErrorKind.NO_MORE_TOKENS_LEFT
    assert ledger.total_minted == 150


def test_treasury_cap_then_supply(ledger):
    assert ledger.reserve_treasury(50).value == 50
    assert ledger.reserve_treasury(1).error is ErrorKind.TREASURY_RESERVATION_ALLOCATION_EXCEEDED
    assert ledger.total_minted == 50
    assert ledger.treasury_minted == 50


def test_treasury_does_not_eat_sale_pool(ledger):
    ledger.reserve_treasury(50)
    assert ledger.reserve_sale(150).ok
    assert ledger.total_minted == 200
    assert ledger.sale_minted == 150


def test_coupon_usage_is_cumulative(ledger):
    assert ledger.reserve_coupon(HASH_A, 5, 2).value == 2
    assert ledger.reserve_coupon(HASH_A, 5, 3).value == 5
    result = ledger.reserve_coupon(HASH_A, 5, 1)
    assert result.error is ErrorKind.ALLOCATION_EXCEEDED
    assert ledger.usage(HASH_A) == 5


def test_coupon_buckets_are_independent(ledger):
    ledger.reserve_coupon(HASH_A, 2, 2)
    assert ledger.reserve_coupon(HASH_B, 2, 2).ok
    assert ledger.usage(HASH_B) == 2
    assert ledger.usage(b"\x00" * 32) == 0


def test_wallet_cap(ledger):
    assert ledger.reserve_wallet_public(WALLET, 2, 2).ok
    result = ledger.reserve_wallet_public(WALLET, 2, 1)
    assert result.error is ErrorKind.MAX_MINT_REACHED_FOR_PUBLIC_WALLET
    assert ledger.public_mints(WALLET) == 2


def test_failed_reservation_changes_nothing(ledger):
    ledger.reserve_sale(100)
    before = ledger.snapshot()
    assert not ledger.reserve_sale(51).ok
    assert not ledger.reserve_coupon(HASH_A, 1, 2).ok
    assert not ledger.reserve_wallet_public(WALLET, 0, 1).ok
    assert ledger.snapshot() == before


@pytest.mark.parametrize("qty", [0, -1])
def test_non_positive_quantity_rejected(ledger, qty):
    assert ledger.reserve_sale(qty).error is ErrorKind.INVALID_ARGUMENT
    assert ledger.reserve_treasury(qty).error is ErrorKind.INVALID_ARGUMENT
    assert ledger.reserve_coupon(HASH_A, 5, qty).error is ErrorKind.INVALID_ARGUMENT
    assert ledger.reserve_wallet_public(WALLET, 5, qty).error is ErrorKind.INVALID_ARGUMENT
    assert ledger.total_minted == 0


def test_snapshot_restore(ledger):
    snap = ledger.snapshot()
    ledger.reserve_sale(3)
    ledger.reserve_coupon(HASH_A, 5, 3)
    ledger.reserve_wallet_public(WALLET, 5, 3)
    ledger.restore(snap)
    assert ledger.total_minted == 0
    assert ledger.usage(HASH_A) == 0
    assert ledger.public_mints(WALLET) == 0
