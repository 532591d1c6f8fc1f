import pytest
from fastapi.testclient import TestClient

from genesis_mint.server import create_app, gate_from_env

from .conftest import PRICE, new_address

ADMIN_KEY = "genesis-admin-test-key"
ADMIN = {"X-Admin-Key": ADMIN_KEY}


@pytest.fixture
def client(open_gate):
    return TestClient(create_app(open_gate, admin_key=ADMIN_KEY))


def test_root_and_state(client):
    root = client.get("/")
    assert root.status_code == 200
    assert root.json()["symbol"] == "SCAIG"

    state = client.get("/v1/state").json()
    assert state["max_supply"] == 200
    assert state["public_open"] is True


def test_public_mint(client, accounts):
    resp = client.post("/v1/mint/public", json={"caller": accounts["alice"], "qty": 2, "value": 2 * PRICE})
    assert resp.status_code == 200
    assert resp.json() == {"ok": True, "result": [0, 1]}


def test_underpayment_is_402(client, accounts):
    resp = client.post("/v1/mint/public", json={"caller": accounts["alice"], "qty": 2, "value": PRICE})
    assert resp.status_code == 402
    assert resp.json()["error"] == "InsufficientValueSent"


def test_presale_flow(client, coupons, accounts):
    alice = accounts["alice"]
    coupon = coupons.generate_coupon(alice, 1, 2).to_dict()

    verify = client.post("/v1/coupons/verify", json={"claimant": alice, "sequence": 1, "limit": 2, "coupon": coupon})
    assert verify.json()["valid"] is True

    body = {"caller": alice, "coupon": coupon, "sequence": 1, "limit": 2, "qty": 2, "value": 2 * PRICE}
    assert client.post("/v1/mint/presale", json=body).status_code == 200

    usage = client.get("/v1/coupons/usage", params={"claimant": alice, "sequence": 1, "limit": 2})
    assert usage.json()["used"] == 2

    again = client.post("/v1/mint/presale", json={**body, "qty": 1, "value": PRICE})
    assert again.status_code == 409
    assert again.json()["error"] == "AllocationExceeded"


def test_coupon_for_someone_else_is_403(client, coupons, accounts):
    coupon = coupons.generate_coupon(accounts["alice"], 1, 2).to_dict()
    body = {"caller": accounts["bob"], "coupon": coupon, "sequence": 1, "limit": 2, "value": PRICE}
    resp = client.post("/v1/mint/presale", json=body)
    assert resp.status_code == 403
    assert resp.json()["error"] == "InvalidCoupon"


# --- Admin authentication ---

@pytest.mark.parametrize("headers", [{}, {"X-Admin-Key": "guess"}, {"X-Admin-Key": ""}])
def test_admin_routes_need_the_admin_key(client, open_gate, accounts, headers):
    attacker = new_address()
    body = {"caller": accounts["operator"], "to": attacker, "qty": 100}
    resp = client.post("/v1/admin/airdrop", json=body, headers=headers)
    assert resp.status_code == 403
    assert resp.json()["detail"] == "Invalid Admin Key"

    assert client.post("/v1/admin/treasury", json={**body, "qty": 50}, headers=headers).status_code == 403
    assert client.post("/v1/admin/pause", json={"caller": accounts["operator"]}, headers=headers).status_code == 403
    assert open_gate.balance_of(attacker) == 0
    assert open_gate.total_minted == 0
    assert not open_gate.paused


def test_admin_routes_disabled_without_configured_key(open_gate, accounts, monkeypatch):
    monkeypatch.delenv("GENESIS_ADMIN_KEY", raising=False)
    client = TestClient(create_app(open_gate))
    resp = client.post("/v1/admin/pause", json={"caller": accounts["operator"]}, headers={"X-Admin-Key": ""})
    assert resp.status_code == 403
    assert not open_gate.paused


def test_admin_key_still_needs_the_role(client, accounts):
    alice = accounts["alice"]
    resp = client.post("/v1/admin/airdrop", json={"caller": alice, "to": alice, "qty": 1}, headers=ADMIN)
    assert resp.status_code == 403
    assert resp.json()["error"] == "Unauthorized"


# --- Admin operations ---

def test_admin_mint_and_pause_routes(client, accounts):
    op, alice = accounts["operator"], accounts["alice"]
    resp = client.post("/v1/admin/airdrop", json={"caller": op, "to": alice, "qty": 3}, headers=ADMIN)
    assert resp.json()["result"] == [0, 1, 2]
    assert client.post("/v1/admin/treasury", json={"caller": op, "to": alice, "qty": 51}, headers=ADMIN).status_code == 409

    assert client.post("/v1/admin/pause", json={"caller": op}, headers=ADMIN).json()["result"] is True
    paused = client.post("/v1/mint/public", json={"caller": alice, "value": PRICE})
    assert paused.status_code == 423
    assert client.post("/v1/admin/unpause", json={"caller": op}, headers=ADMIN).json()["result"] is False


def test_admin_sale_switches_and_parameters(client, open_gate, accounts):
    op, alice = accounts["operator"], accounts["alice"]

    assert client.post("/v1/admin/public-sale", json={"caller": op, "opened": False}, headers=ADMIN).status_code == 200
    assert client.post("/v1/mint/public", json={"caller": alice, "value": PRICE}).status_code == 409
    assert client.post("/v1/admin/public-sale", json={"caller": op, "opened": "yes"}, headers=ADMIN).status_code == 400
    client.post("/v1/admin/public-sale", json={"caller": op, "opened": True}, headers=ADMIN)

    assert client.post("/v1/admin/presale", json={"caller": op, "opened": False}, headers=ADMIN).json()["result"] is False
    assert not open_gate.is_private_purchase_opened

    assert client.post("/v1/admin/price", json={"caller": op, "price": 1}, headers=ADMIN).json()["result"] == 1
    assert client.post("/v1/admin/wallet-cap", json={"caller": op, "count": 1}, headers=ADMIN).json()["result"] == 1
    assert client.post("/v1/mint/public", json={"caller": alice, "value": 1}).status_code == 200
    assert client.post("/v1/mint/public", json={"caller": alice, "value": 1}).json()["error"] == "MaxMintReachedForPublicWallet"

    withdrawn = client.post("/v1/admin/withdraw", json={"caller": op}, headers=ADMIN)
    assert withdrawn.json()["result"] == 1
    assert open_gate.payouts[accounts["owner"]] == 1


def test_admin_uri_and_lock(client, open_gate, accounts):
    op, owner = accounts["operator"], accounts["owner"]
    assert client.post("/v1/admin/uri", json={"caller": op, "uri": "ipfs://genesis/"}, headers=ADMIN).status_code == 200
    assert client.post("/v1/admin/lock", json={"caller": op}, headers=ADMIN).status_code == 403
    assert client.post("/v1/admin/lock", json={"caller": owner}, headers=ADMIN).json()["result"] is True

    resp = client.post("/v1/admin/uri", json={"caller": op, "uri": "https://evil/"}, headers=ADMIN)
    assert resp.status_code == 423
    assert resp.json()["error"] == "ContractAlreadyLocked"
    assert open_gate.contract_uri() == "ipfs://genesis/contractMetadata.json"


def test_bad_requests(client, accounts):
    assert client.post("/v1/mint/public", content=b"not json").status_code == 400
    assert client.post("/v1/mint/public", json=[1, 2]).status_code == 400
    missing = client.post("/v1/mint/presale", json={"caller": accounts["alice"]})
    assert missing.status_code == 400
    assert missing.json()["detail"] == "coupon required"
    assert client.get("/v1/coupons/usage", params={"claimant": accounts["alice"]}).status_code == 400
    assert client.get("/v1/coupons/usage", params={"claimant": "0x12", "sequence": 1, "limit": 1}).status_code == 400
    oversized = client.post("/v1/mint/public", json={"caller": accounts["alice"], "qty": 11, "value": 11 * PRICE})
    assert oversized.status_code == 400
    assert oversized.json()["error"] == "BatchMintSizeExceeded"


# --- Gateway built from the environment ---

@pytest.fixture
def deployment_env(monkeypatch, tmp_path, signer, accounts):
    monkeypatch.setenv("COUPON_PUBLIC_KEY", signer.public_address)
    monkeypatch.delenv("COUPON_PRIVATE_KEY", raising=False)
    monkeypatch.setenv("GENESIS_OWNER", accounts["owner"])
    monkeypatch.setenv("GENESIS_ADMIN", accounts["admin"])
    monkeypatch.setenv("GENESIS_OPERATOR", accounts["operator"])
    monkeypatch.setenv("GENESIS_DATA_DIR", str(tmp_path / "data"))
    monkeypatch.setenv("GENESIS_ADMIN_KEY", ADMIN_KEY)
    monkeypatch.setenv("MAX_SUPPLY", "200")
    monkeypatch.setenv("TREASURY_RESERVE", "50")
    return accounts


def test_env_gateway_opens_sale_and_survives_restart(deployment_env, coupons):
    op, owner, alice = deployment_env["operator"], deployment_env["owner"], deployment_env["alice"]
    client = TestClient(create_app(gate_from_env()))

    closed = client.post("/v1/mint/public", json={"caller": alice, "value": PRICE})
    assert closed.json()["error"] == "PublicPurchaseNotOpen"

    client.post("/v1/admin/public-sale", json={"caller": op, "opened": True}, headers=ADMIN)
    client.post("/v1/admin/presale", json={"caller": op, "opened": True}, headers=ADMIN)
    assert client.post("/v1/mint/public", json={"caller": alice, "value": PRICE}).json()["result"] == [0]
    coupon = coupons.generate_coupon(alice, 1, 3).to_dict()
    body = {"caller": alice, "coupon": coupon, "sequence": 1, "limit": 3, "qty": 2, "value": 2 * PRICE}
    assert client.post("/v1/mint/presale", json=body).json()["result"] == [1, 2]
    client.post("/v1/admin/lock", json={"caller": owner}, headers=ADMIN)

    restarted = TestClient(create_app(gate_from_env()))
    state = restarted.get("/v1/state").json()
    assert state["public_open"] and state["presale_open"] and state["locked"]
    assert state["total_minted"] == 3
    assert restarted.post("/v1/mint/public", json={"caller": alice, "value": PRICE}).json()["result"] == [3]
    assert restarted.post("/v1/mint/presale", json=body).json()["error"] == "AllocationExceeded"
    uri = restarted.post("/v1/admin/uri", json={"caller": op, "uri": "https://evil/"}, headers=ADMIN)
    assert uri.json()["error"] == "ContractAlreadyLocked"
