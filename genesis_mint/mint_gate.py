"""
Mint Gate
=========
Entry points for every allocation channel of the Genesis collection:

    public_purchase(_batch)     open sale, per-wallet cap
    presale_purchase(_batch)    signed coupon, per-coupon allocation
    airdrop                     AIRDROP_ROLE, sale pool only
    treasury_mint               AIRDROP_ROLE, treasury pool only

Plus the administrative switches (phase flags, price, caps, URI, lock,
pause, withdraw, roles).

Every entry point is all-or-nothing. State is snapshotted on entry and
restored if any guard rejects the call or if a recipient's receipt hook
raises. Counters are charged before tokens are issued, so a hook that
re-enters the gate always sees the caps already spent.

Usage:
    gate = MintGate(CouponService(signer_address), owner, admin, operator)
    gate.set_public_purchase_opened(operator, True)
    result = gate.public_purchase_batch(buyer, 3, value=3 * gate.mint_price)
    if result.ok:
        print(result.value)          # minted token ids
    else:
        print(result.error.value)    # e.g. "MaxMintReachedForPublicWallet"
"""

import functools
import logging
from dataclasses import dataclass, replace
from typing import Dict, Optional

from web3 import Web3

from .config import CONTRACT_NAME, CONTRACT_SYMBOL, GateConfig
from .coupon_service import CouponService
from .errors import ConfigurationError, ErrorKind, MintRejected, Result
from .events import (
    COUPON_USED,
    METADATA_URI_CHANGED,
    OWNERSHIP_TRANSFERRED,
    PAUSED,
    UNPAUSED,
    WITHDRAWN,
    EventLog,
)
from .ledger import AllocationLedger
from .roles import OPERATIONAL_ROLES, Operation, Role, RoleRegistry, authorize
from .store import GateState, LedgerStore
from .tokens import TokenRegistry

logger = logging.getLogger("MintGate")

CONTRACT_METADATA_FILE = "contractMetadata.json"


@dataclass
class PhaseFlags:
    public_open: bool = False
    presale_open: bool = False
    paused: bool = False
    uri_locked: bool = False


def _transactional(func):
    """Runs an entry point atomically and converts rejections into a failure Result."""

    @functools.wraps(func)
    def wrapper(self, *args, **kwargs):
        snapshot = self._snapshot()
        self._depth += 1
        try:
            value = func(self, *args, **kwargs)
            # Only the outermost call persists. A failed write unwinds the call like any other error.
            if self._depth == 1 and self.store is not None:
                self.store.save(self.ledger, self._persisted_state())
        except MintRejected as e:
            self._restore(snapshot)
            logger.info(f"🛑 {func.__name__} rejected: {e}")
            return Result.failure(e.kind, e.detail)
        except BaseException:
            self._restore(snapshot)
            raise
        finally:
            self._depth -= 1

        return Result.success(value)

    return wrapper


class MintGate:
    def __init__(
        self,
        coupon_service: CouponService,
        owner: str,
        admin: str,
        operator: str,
        config: Optional[GateConfig] = None,
        store: Optional[LedgerStore] = None,
        name: str = CONTRACT_NAME,
        symbol: str = CONTRACT_SYMBOL,
    ):
        self.config = replace(config or GateConfig()).validate()
        self.coupons = coupon_service
        self.store = store

        self.events = EventLog()
        self.roles = RoleRegistry(self.events)
        self.ledger = AllocationLedger(self.config.max_supply, self.config.treasury_reserve)
        self.tokens = TokenRegistry(name, symbol, self.events)
        self.flags = PhaseFlags()

        try:
            owner, admin, operator = (self._address(a) for a in (owner, admin, operator))
        except MintRejected as e:
            raise ConfigurationError(e.detail) from e

        self.owner = owner
        self.mint_price = self.config.mint_price
        self.allowed_public_mint_token_count = self.config.allowed_public_mint_token_count
        self.batch_mint_ceiling = self.config.batch_mint_ceiling
        self.base_uri = self.config.contract_uri
        self.balance = 0
        self.payouts: Dict[str, int] = {}
        self._depth = 0

        self.roles.bootstrap(Role.DEFAULT_ADMIN, self.owner, self.owner)
        self.roles.bootstrap(Role.DEFAULT_ADMIN, admin, self.owner)
        for role in OPERATIONAL_ROLES:
            self.roles.bootstrap(role, operator, self.owner)

        if self.store is not None:
            self.store.load(self.ledger)
            # Issued ids are never handed out twice, even across restarts.
            self.tokens.next_token_id = self.ledger.total_minted
            persisted = self.store.load_state()
            if persisted is not None:
                self._apply_persisted_state(persisted)

        logger.info(
            f"🏭 MintGate ready: supply {self.config.max_supply} "
            f"(treasury {self.config.treasury_reserve}), signer {self.coupons.public_address}"
        )

    # --- Minting: public channel ---

    @_transactional
    def public_purchase(self, caller, value=0):
        return self._public_purchase(caller, 1, value)

    @_transactional
    def public_purchase_batch(self, caller, qty, value=0):
        return self._public_purchase(caller, qty, value)

    def _public_purchase(self, caller, qty, value):
        caller = self._address(caller)
        if not self.flags.public_open:
            raise MintRejected(ErrorKind.PUBLIC_PURCHASE_NOT_OPEN)
        self._require_not_paused()
        self._check_batch(qty)
        self._check_payment(value, qty)

        # Sale pool first: a sold-out rejection must not touch the wallet counter.
        self._charge(self.ledger.reserve_sale(qty))
        self._charge(self.ledger.reserve_wallet_public(caller, self.allowed_public_mint_token_count, qty))
        self.balance += value

        token_ids = self.tokens.mint(caller, caller, qty)
        logger.info(f"✅ Public mint: {qty} to {caller} -> {token_ids}")
        return token_ids

    # --- Minting: presale (coupon) channel ---

    @_transactional
    def presale_purchase(self, caller, coupon, sequence, limit, value=0):
        return self._presale_purchase(caller, coupon, sequence, limit, 1, value)

    @_transactional
    def presale_purchase_batch(self, caller, coupon, sequence, limit, qty, value=0):
        return self._presale_purchase(caller, coupon, sequence, limit, qty, value)

    def _presale_purchase(self, caller, coupon, sequence, limit, qty, value):
        caller = self._address(caller)
        if not self.flags.presale_open:
            raise MintRejected(ErrorKind.PRIVATE_PURCHASE_NOT_OPEN)
        self._require_not_paused()
        self._check_batch(qty)
        self._check_payment(value, qty)

        # The coupon is checked against the caller, so only its addressee can redeem it.
        if not self.coupons.validate_coupon(coupon, caller, sequence, limit):
            raise MintRejected(ErrorKind.INVALID_COUPON, f"coupon not issued to {caller} for ({sequence}, {limit})")

        coupon_hash = self.coupons.hash(caller, sequence, limit)
        used = self._charge(self.ledger.reserve_coupon(coupon_hash, limit, qty))
        self._charge(self.ledger.reserve_sale(qty))
        self.balance += value

        self.events.emit(
            COUPON_USED,
            claimant=caller,
            couponHash="0x" + coupon_hash.hex(),
            cumulativeUsed=used,
            sequence=sequence,
            limit=limit,
        )
        token_ids = self.tokens.mint(caller, caller, qty)
        logger.info(f"🎟️  Presale mint: {qty} to {caller} (coupon {used}/{limit}) -> {token_ids}")
        return token_ids

    # --- Minting: operator channels ---

    @_transactional
    def airdrop(self, caller, to, qty):
        self._authorize(caller, Operation.AIRDROP)
        self._require_not_paused()
        to = self._address(to)
        self._check_quantity(qty)

        # Airdrops draw on the sale pool but skip per-wallet and coupon caps.
        self._charge(self.ledger.reserve_sale(qty))
        token_ids = self.tokens.mint(self._address(caller), to, qty)
        logger.info(f"🪂 Airdrop: {qty} to {to} -> {token_ids}")
        return token_ids

    @_transactional
    def treasury_mint(self, caller, to, qty):
        self._authorize(caller, Operation.TREASURY_MINT)
        self._require_not_paused()
        to = self._address(to)
        self._check_quantity(qty)

        self._charge(self.ledger.reserve_treasury(qty))
        token_ids = self.tokens.mint(self._address(caller), to, qty)
        logger.info(f"🏦 Treasury mint: {qty} to {to} -> {token_ids}")
        return token_ids

    # --- Administration ---

    @_transactional
    def set_public_purchase_opened(self, caller, opened):
        self._authorize(caller, Operation.SET_PUBLIC_PURCHASE_OPENED)
        self.flags.public_open = self._check_bool(opened)
        return self.flags.public_open

    @_transactional
    def set_private_purchase_opened(self, caller, opened):
        self._authorize(caller, Operation.SET_PRIVATE_PURCHASE_OPENED)
        self.flags.presale_open = self._check_bool(opened)
        return self.flags.presale_open

    @_transactional
    def set_allowed_public_mint_token_count(self, caller, count):
        self._authorize(caller, Operation.SET_ALLOWED_PUBLIC_MINT_TOKEN_COUNT)
        self.allowed_public_mint_token_count = self._check_uint("count", count)
        return self.allowed_public_mint_token_count

    @_transactional
    def set_mint_price(self, caller, price):
        self._authorize(caller, Operation.SET_MINT_PRICE)
        self.mint_price = self._check_uint("price", price)
        return self.mint_price

    @_transactional
    def set_uri(self, caller, uri):
        # Lock is checked first: once locked, nobody gets past it, owner included.
        if self.flags.uri_locked:
            raise MintRejected(ErrorKind.CONTRACT_ALREADY_LOCKED)
        self._authorize(caller, Operation.SET_URI)
        if not isinstance(uri, str):
            raise MintRejected(ErrorKind.INVALID_ARGUMENT, "uri must be a string")
        self.base_uri = uri
        self.events.emit(METADATA_URI_CHANGED, uri=uri)
        return uri

    @_transactional
    def lock_contract(self, caller):
        if self._address(caller).lower() != self.owner.lower():
            raise MintRejected(ErrorKind.UNAUTHORIZED, "Ownable: caller is not the owner")
        self.flags.uri_locked = True
        logger.warning("🔒 Contract locked. Base URI is now permanent.")
        return True

    @_transactional
    def pause(self, caller):
        self._authorize(caller, Operation.PAUSE)
        if not self.flags.paused:
            self.flags.paused = True
            self.events.emit(PAUSED, account=self._address(caller))
        return self.flags.paused

    @_transactional
    def unpause(self, caller):
        self._authorize(caller, Operation.UNPAUSE)
        if self.flags.paused:
            self.flags.paused = False
            self.events.emit(UNPAUSED, account=self._address(caller))
        return self.flags.paused

    @_transactional
    def withdraw(self, caller):
        self._authorize(caller, Operation.WITHDRAW)
        amount = self.balance
        self.balance = 0
        self.payouts[self.owner] = self.payouts.get(self.owner, 0) + amount
        self.events.emit(WITHDRAWN, to=self.owner, amount=amount)
        logger.info(f"💸 Withdrew {amount} wei to owner {self.owner}")
        return amount

    @_transactional
    def transfer_ownership(self, caller, new_owner):
        if self._address(caller).lower() != self.owner.lower():
            raise MintRejected(ErrorKind.UNAUTHORIZED, "Ownable: caller is not the owner")
        previous, self.owner = self.owner, self._address(new_owner)
        self.events.emit(OWNERSHIP_TRANSFERRED, previousOwner=previous, newOwner=self.owner)
        return self.owner

    # --- Roles ---

    @_transactional
    def grant_role(self, caller, role, account):
        if not self.roles.grant_role(self._role(role), self._address(account), self._address(caller)):
            raise MintRejected(ErrorKind.UNAUTHORIZED, f"{caller} cannot grant roles")
        return True

    @_transactional
    def revoke_role(self, caller, role, account):
        if not self.roles.revoke_role(self._role(role), self._address(account), self._address(caller)):
            raise MintRejected(ErrorKind.UNAUTHORIZED, f"{caller} cannot revoke roles")
        return True

    @_transactional
    def renounce_role(self, caller, role, account):
        if not self.roles.renounce_role(self._role(role), self._address(account), self._address(caller)):
            raise MintRejected(ErrorKind.UNAUTHORIZED, "can only renounce roles for self")
        return True

    def has_role(self, role, account) -> bool:
        """False for unknown roles as well as for non-members."""
        try:
            return self.roles.has_role(self._role(role), account)
        except MintRejected:
            return False

    # --- Tokens ---

    @_transactional
    def transfer_token(self, caller, from_address, to, token_id):
        self.tokens.transfer(self._address(caller), self._address(from_address), self._address(to), token_id)
        return token_id

    def owner_of(self, token_id: int) -> str:
        return self.tokens.owner_of(token_id)

    def balance_of(self, address: str) -> int:
        return self.tokens.balance_of(address)

    # --- Queries ---

    def check_coupon_usage(self, claimant, sequence, limit) -> int:
        """
        Tokens minted so far against (claimant, sequence, limit).

        Raises ValueError if the claimant is not an address or sequence/limit
        are not uint256; a malformed triple has no bucket to report on.
        """
        return self.ledger.usage(self.coupons.hash(claimant, sequence, limit))

    def public_mints(self, address) -> int:
        return self.ledger.public_mints(Web3.to_checksum_address(address))

    def contract_uri(self) -> str:
        return f"{self.base_uri}{CONTRACT_METADATA_FILE}"

    @property
    def total_minted(self) -> int:
        return self.ledger.total_minted

    @property
    def treasury_mints(self) -> int:
        return self.ledger.treasury_minted

    @property
    def is_public_purchase_opened(self) -> bool:
        return self.flags.public_open

    @property
    def is_private_purchase_opened(self) -> bool:
        return self.flags.presale_open

    @property
    def phase_flags(self) -> PhaseFlags:
        return replace(self.flags)

    @property
    def paused(self) -> bool:
        return self.flags.paused

    @property
    def contract_locked(self) -> bool:
        return self.flags.uri_locked

    def state(self):
        return {
            "name": self.tokens.name,
            "symbol": self.tokens.symbol,
            "max_supply": self.ledger.max_supply,
            "treasury_reserve": self.ledger.treasury_reserve,
            "total_minted": self.ledger.total_minted,
            "treasury_minted": self.ledger.treasury_minted,
            "sale_remaining": self.ledger.sale_pool - self.ledger.sale_minted,
            "mint_price": self.mint_price,
            "allowed_public_mint_token_count": self.allowed_public_mint_token_count,
            "batch_mint_ceiling": self.batch_mint_ceiling,
            "public_open": self.flags.public_open,
            "presale_open": self.flags.presale_open,
            "paused": self.flags.paused,
            "locked": self.flags.uri_locked,
            "contract_uri": self.contract_uri(),
            "coupon_signer": self.coupons.public_address,
        }

    # --- INTERNAL MECHANICS ---

    @staticmethod
    def _address(value) -> str:
        if not isinstance(value, str) or not Web3.is_address(value):
            raise MintRejected(ErrorKind.INVALID_ARGUMENT, f"invalid address: {value!r}")
        return Web3.to_checksum_address(value)

    @staticmethod
    def _role(value) -> Role:
        if isinstance(value, Role):
            return value
        for role in Role:
            if value in (role.value, role.name):
                return role
        raise MintRejected(ErrorKind.INVALID_ARGUMENT, f"unknown role: {value!r}")

    @staticmethod
    def _check_bool(value) -> bool:
        if not isinstance(value, bool):
            raise MintRejected(ErrorKind.INVALID_ARGUMENT, f"expected a boolean, got {value!r}")
        return value

    @staticmethod
    def _check_uint(name, value) -> int:
        if isinstance(value, bool) or not isinstance(value, int) or value < 0:
            raise MintRejected(ErrorKind.INVALID_ARGUMENT, f"{name} must be a non-negative integer, got {value!r}")
        return value

    @staticmethod
    def _check_quantity(qty) -> None:
        if isinstance(qty, bool) or not isinstance(qty, int) or qty < 1:
            raise MintRejected(ErrorKind.INVALID_ARGUMENT, f"quantity must be an integer >= 1, got {qty!r}")

    def _check_batch(self, qty) -> None:
        self._check_quantity(qty)
        if qty > self.batch_mint_ceiling:
            raise MintRejected(
                ErrorKind.BATCH_MINT_SIZE_EXCEEDED, f"requested {qty}, ceiling {self.batch_mint_ceiling}"
            )

    def _check_payment(self, value, qty) -> None:
        expected = self.mint_price * qty
        if isinstance(value, bool) or not isinstance(value, int) or value != expected:
            raise MintRejected(ErrorKind.INSUFFICIENT_VALUE_SENT, f"sent {value!r}, required {expected}")

    def _require_not_paused(self) -> None:
        if self.flags.paused:
            raise MintRejected(ErrorKind.PAUSED)

    def _authorize(self, caller, operation: Operation) -> None:
        if not authorize(self._address(caller), operation, self.roles):
            raise MintRejected(ErrorKind.UNAUTHORIZED, f"{caller} may not call {operation.value}")

    @staticmethod
    def _charge(result: Result):
        return result.unwrap()

    def _persisted_state(self) -> GateState:
        return GateState(
            public_open=self.flags.public_open,
            presale_open=self.flags.presale_open,
            paused=self.flags.paused,
            uri_locked=self.flags.uri_locked,
            mint_price=self.mint_price,
            allowed_public_mint_token_count=self.allowed_public_mint_token_count,
            base_uri=self.base_uri,
            owner=self.owner,
            balance=self.balance,
            roles={role.value: members for role, members in self.roles.snapshot().items()},
            payouts=dict(self.payouts),
        )

    def _apply_persisted_state(self, state: GateState) -> None:
        self.flags = PhaseFlags(
            public_open=state.public_open,
            presale_open=state.presale_open,
            paused=state.paused,
            uri_locked=state.uri_locked,
        )
        self.mint_price = state.mint_price
        self.allowed_public_mint_token_count = state.allowed_public_mint_token_count
        self.base_uri = state.base_uri
        self.owner = state.owner
        self.balance = state.balance
        self.payouts = dict(state.payouts)
        self.roles.restore({role: set(state.roles.get(role.value, ())) for role in Role})
        logger.info(
            f"♻️  Restored gate state: public={state.public_open} presale={state.presale_open} "
            f"paused={state.paused} locked={state.uri_locked}"
        )

    def _snapshot(self):
        return (
            self.ledger.snapshot(),
            self.tokens.snapshot(),
            self.roles.snapshot(),
            replace(self.flags),
            len(self.events),
            self.balance,
            dict(self.payouts),
            self.owner,
            self.mint_price,
            self.allowed_public_mint_token_count,
            self.base_uri,
        )

    def _restore(self, snapshot) -> None:
        (ledger, tokens, roles, flags, event_count, self.balance, payouts,
         self.owner, self.mint_price, self.allowed_public_mint_token_count, self.base_uri) = snapshot
        self.ledger.restore(ledger)
        self.tokens.restore(tokens)
        self.roles.restore(roles)
        self.flags = flags
        self.payouts = payouts
        self.events.truncate(event_count)
