"""
Genesis Mint Gateway
--------------------
HTTP front for a MintGate. Handlers are async and the gate is driven from
the event loop thread only, so calls into it never interleave.

Run:
    genesis-gateway            (GATEWAY_HOST / GATEWAY_PORT, default 127.0.0.1:8000)
"""

import logging
import os
import secrets
from pathlib import Path
from typing import Optional

import uvicorn
from fastapi import Depends, FastAPI, HTTPException, Request
from fastapi.responses import JSONResponse

from .config import DATA_DIR, GateConfig, load_env
from .coupon_service import Coupon, CouponService
from .errors import ConfigurationError, ErrorKind, Result
from .mint_gate import MintGate
from .store import LedgerStore

logger = logging.getLogger("MintGateway")

STATUS_BY_KIND = {
    ErrorKind.INSUFFICIENT_VALUE_SENT: 402,
    ErrorKind.UNAUTHORIZED: 403,
    ErrorKind.INVALID_COUPON: 403,
    ErrorKind.NOT_TOKEN_OWNER: 403,
    ErrorKind.PAUSED: 423,
    ErrorKind.CONTRACT_ALREADY_LOCKED: 423,
    ErrorKind.PUBLIC_PURCHASE_NOT_OPEN: 409,
    ErrorKind.PRIVATE_PURCHASE_NOT_OPEN: 409,
    ErrorKind.ALLOCATION_EXCEEDED: 409,
    ErrorKind.MAX_MINT_REACHED_FOR_PUBLIC_WALLET: 409,
    ErrorKind.NO_MORE_TOKENS_LEFT: 409,
    ErrorKind.TREASURY_RESERVATION_ALLOCATION_EXCEEDED: 409,
    ErrorKind.BATCH_MINT_SIZE_EXCEEDED: 400,
    ErrorKind.INVALID_ARGUMENT: 400,
}


class BadRequest(ValueError):
    pass


def _respond(result: Result):
    if result.ok:
        return {"ok": True, "result": result.value}
    return JSONResponse(
        status_code=STATUS_BY_KIND.get(result.error, 400),
        content={"error": result.error.value, "detail": result.detail},
    )


def _bad_request(message: str):
    return JSONResponse(status_code=400, content={"error": ErrorKind.INVALID_ARGUMENT.value, "detail": message})


async def _read_body(request: Request) -> dict:
    try:
        body = await request.json()
    except ValueError:
        raise BadRequest("Invalid JSON")
    if not isinstance(body, dict):
        raise BadRequest("Request body must be a JSON object")
    return body


def _field(body: dict, name: str, default=None):
    if name not in body:
        if default is None:
            raise BadRequest(f"{name} required")
        return default
    return body[name]


def _read_coupon(raw) -> Coupon:
    if not isinstance(raw, dict):
        raise BadRequest('coupon must be {"r": ..., "s": ..., "v": ...}')
    try:
        return Coupon.from_dict(raw)
    except KeyError as e:
        raise BadRequest(f"coupon is missing {e}")


def create_app(gate: MintGate, admin_key: Optional[str] = None) -> FastAPI:
    """
    Every /v1/admin/* route needs the X-Admin-Key header. The key comes from
    `admin_key`, else GENESIS_ADMIN_KEY; with neither set the admin routes refuse every request.
    """
    if admin_key is None:
        admin_key = os.getenv("GENESIS_ADMIN_KEY", "")
    app = FastAPI(title="Genesis Mint Gateway")
    app.state.gate = gate

    @app.exception_handler(BadRequest)
    async def bad_request_handler(request: Request, exc: BadRequest):
        return _bad_request(str(exc))

    @app.get("/")
    async def root():
        return {
            "status": "operational",
            "collection": gate.tokens.name,
            "symbol": gate.tokens.symbol,
            "message": "Genesis Mint Gateway. Coupons are verified against the published signer.",
        }

    @app.get("/v1/state")
    async def state():
        return gate.state()

    @app.post("/v1/coupons/verify")
    async def verify_coupon(request: Request):
        body = await _read_body(request)
        coupon = _read_coupon(_field(body, "coupon"))
        valid = gate.coupons.validate_coupon(
            coupon, _field(body, "claimant"), _field(body, "sequence"), _field(body, "limit")
        )
        return {"valid": valid, "signer": gate.coupons.public_address}

    @app.get("/v1/coupons/usage")
    async def coupon_usage(request: Request):
        params = request.query_params
        try:
            claimant = params["claimant"]
            sequence = int(params["sequence"])
            limit = int(params["limit"])
            used = gate.check_coupon_usage(claimant, sequence, limit)
        except KeyError as e:
            return _bad_request(f"{e.args[0]} required")
        except ValueError as e:
            return _bad_request(str(e))
        return {"claimant": claimant, "sequence": sequence, "limit": limit, "used": used}

    @app.post("/v1/mint/public")
    async def mint_public(request: Request):
        body = await _read_body(request)
        result = gate.public_purchase_batch(
            _field(body, "caller"), _field(body, "qty", 1), value=_field(body, "value", 0)
        )
        return _respond(result)

    @app.post("/v1/mint/presale")
    async def mint_presale(request: Request):
        body = await _read_body(request)
        coupon = _read_coupon(_field(body, "coupon"))
        result = gate.presale_purchase_batch(
            _field(body, "caller"),
            coupon,
            _field(body, "sequence"),
            _field(body, "limit"),
            _field(body, "qty", 1),
            value=_field(body, "value", 0),
        )
        return _respond(result)

    # --- ADMIN (X-Admin-Key) ---

    async def require_admin_key(request: Request):
        supplied = request.headers.get("X-Admin-Key", "")
        if not admin_key or not secrets.compare_digest(supplied.encode(), admin_key.encode()):
            logger.warning(f"🛑 [ADMIN] Rejected {request.url.path}: bad or missing X-Admin-Key")
            raise HTTPException(status_code=403, detail="Invalid Admin Key")

    admin = [Depends(require_admin_key)]

    @app.post("/v1/admin/airdrop", dependencies=admin)
    async def admin_airdrop(request: Request):
        body = await _read_body(request)
        return _respond(gate.airdrop(_field(body, "caller"), _field(body, "to"), _field(body, "qty")))

    @app.post("/v1/admin/treasury", dependencies=admin)
    async def admin_treasury(request: Request):
        body = await _read_body(request)
        return _respond(gate.treasury_mint(_field(body, "caller"), _field(body, "to"), _field(body, "qty")))

    @app.post("/v1/admin/pause", dependencies=admin)
    async def admin_pause(request: Request):
        body = await _read_body(request)
        return _respond(gate.pause(_field(body, "caller")))

    @app.post("/v1/admin/unpause", dependencies=admin)
    async def admin_unpause(request: Request):
        body = await _read_body(request)
        return _respond(gate.unpause(_field(body, "caller")))

    @app.post("/v1/admin/public-sale", dependencies=admin)
    async def admin_public_sale(request: Request):
        body = await _read_body(request)
        return _respond(gate.set_public_purchase_opened(_field(body, "caller"), _field(body, "opened")))

    @app.post("/v1/admin/presale", dependencies=admin)
    async def admin_presale(request: Request):
        body = await _read_body(request)
        return _respond(gate.set_private_purchase_opened(_field(body, "caller"), _field(body, "opened")))

    @app.post("/v1/admin/price", dependencies=admin)
    async def admin_price(request: Request):
        body = await _read_body(request)
        return _respond(gate.set_mint_price(_field(body, "caller"), _field(body, "price")))

    @app.post("/v1/admin/wallet-cap", dependencies=admin)
    async def admin_wallet_cap(request: Request):
        body = await _read_body(request)
        return _respond(gate.set_allowed_public_mint_token_count(_field(body, "caller"), _field(body, "count")))

    @app.post("/v1/admin/uri", dependencies=admin)
    async def admin_uri(request: Request):
        body = await _read_body(request)
        return _respond(gate.set_uri(_field(body, "caller"), _field(body, "uri")))

    @app.post("/v1/admin/lock", dependencies=admin)
    async def admin_lock(request: Request):
        body = await _read_body(request)
        return _respond(gate.lock_contract(_field(body, "caller")))

    @app.post("/v1/admin/withdraw", dependencies=admin)
    async def admin_withdraw(request: Request):
        body = await _read_body(request)
        return _respond(gate.withdraw(_field(body, "caller")))

    return app


def gate_from_env() -> MintGate:
    """Builds a verify-only gate from the environment. The coupon private key is never loaded here."""
    config = GateConfig.from_env()
    if not config.coupon_public_key:
        raise ConfigurationError("COUPON_PUBLIC_KEY is not set")

    owner = os.getenv("GENESIS_OWNER")
    if not owner:
        raise ConfigurationError("GENESIS_OWNER is not set")
    admin = os.getenv("GENESIS_ADMIN", owner)
    operator = os.getenv("GENESIS_OPERATOR", owner)

    store = LedgerStore(Path(os.getenv("GENESIS_DATA_DIR", DATA_DIR)) / "ledger.db")
    return MintGate(CouponService(config.coupon_public_key), owner, admin, operator, config=config, store=store)


def main():
    logging.basicConfig(level=logging.INFO, format="%(asctime)s [%(name)s] %(message)s")
    load_env()
    host = os.getenv("GATEWAY_HOST", "127.0.0.1")
    port = int(os.getenv("GATEWAY_PORT", "8000"))

    if not os.getenv("GENESIS_ADMIN_KEY"):
        logger.warning("⚠️  GENESIS_ADMIN_KEY is not set. Admin routes will refuse every request.")
    app = create_app(gate_from_env())
    logger.info(f"🚀 Genesis Mint Gateway on {host}:{port}")
    uvicorn.run(app, host=host, port=port)


if __name__ == "__main__":
    main()
