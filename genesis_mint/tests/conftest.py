import pytest

from genesis_mint.config import GateConfig
from genesis_mint.coupon_service import CouponService
from genesis_mint.key_service import generate_key_pair
from genesis_mint.mint_gate import MintGate

PRICE = 25_000_000_000_000_000


def new_address() -> str:
    return generate_key_pair().public_address


@pytest.fixture
def signer():
    return generate_key_pair()


@pytest.fixture
def coupons(signer):
    return CouponService(signer.public_address, signer.private_scalar)


@pytest.fixture
def accounts():
    return {name: new_address() for name in ("owner", "admin", "operator", "alice", "bob", "carol")}


@pytest.fixture
def make_gate(coupons, accounts):
    def factory(**overrides):
        config = GateConfig(max_supply=200, treasury_reserve=50, **overrides)
        return MintGate(
            CouponService(coupons.public_address),
            accounts["owner"],
            accounts["admin"],
            accounts["operator"],
            config=config,
        )

    return factory


@pytest.fixture
def gate(make_gate):
    return make_gate()


@pytest.fixture
def open_gate(gate, accounts):
    op = accounts["operator"]
    gate.set_public_purchase_opened(op, True).unwrap()
    gate.set_private_purchase_opened(op, True).unwrap()
    return gate
