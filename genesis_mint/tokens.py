"""
Token Registry - the token-issuance primitive.

Ids are sequential from 0 and never reused. Recipients that are contracts
register a receipt hook; the hook runs synchronously after the tokens are
recorded and may call straight back into the mint gate.
"""

import logging
from typing import Callable, Dict, List

from .errors import ErrorKind, MintRejected
from .events import TRANSFER, ZERO_ADDRESS, EventLog

logger = logging.getLogger("TokenRegistry")

# hook(operator, from_address, token_id)
ReceiptHook = Callable[[str, str, int], None]


def _key(address: str) -> str:
    return address.lower()


class TokenRegistry:
    def __init__(self, name: str, symbol: str, events: EventLog):
        self.name = name
        self.symbol = symbol
        self.events = events
        self.next_token_id = 0
        self.owners: Dict[int, str] = {}
        self.balances: Dict[str, int] = {}
        self._hooks: Dict[str, ReceiptHook] = {}

    @property
    def total_minted(self) -> int:
        return self.next_token_id

    def register_receiver(self, address: str, hook: ReceiptHook) -> None:
        self._hooks[_key(address)] = hook

    def unregister_receiver(self, address: str) -> None:
        self._hooks.pop(_key(address), None)

    def owner_of(self, token_id: int) -> str:
        if token_id not in self.owners:
            raise KeyError(f"Token {token_id} does not exist")
        return self.owners[token_id]

    def balance_of(self, address: str) -> int:
        return self.balances.get(_key(address), 0)

    def mint(self, operator: str, to: str, qty: int) -> List[int]:
        """Records qty new tokens for `to`, then runs its receipt hook once per token."""
        token_ids = list(range(self.next_token_id, self.next_token_id + qty))
        self.next_token_id += qty
        for token_id in token_ids:
            self.owners[token_id] = to
            self.events.emit(TRANSFER, **{"from": ZERO_ADDRESS, "to": to, "tokenId": token_id})
        self.balances[_key(to)] = self.balance_of(to) + qty
        logger.debug(f"Minted {qty} token(s) to {to}: {token_ids}")

        hook = self._hooks.get(_key(to))
        if hook is not None:
            for token_id in token_ids:
                hook(operator, ZERO_ADDRESS, token_id)
        return token_ids

    def transfer(self, caller: str, from_address: str, to: str, token_id: int) -> None:
        owner = self.owners.get(token_id)
        if owner is None or _key(owner) != _key(caller) or _key(owner) != _key(from_address):
            raise MintRejected(ErrorKind.NOT_TOKEN_OWNER, f"{caller} does not own token {token_id}")
        self.owners[token_id] = to
        self.balances[_key(from_address)] -= 1
        self.balances[_key(to)] = self.balance_of(to) + 1
        self.events.emit(TRANSFER, **{"from": from_address, "to": to, "tokenId": token_id})

        hook = self._hooks.get(_key(to))
        if hook is not None:
            hook(caller, from_address, token_id)

    def snapshot(self):
        return self.next_token_id, dict(self.owners), dict(self.balances)

    def restore(self, snapshot) -> None:
        self.next_token_id, owners, balances = snapshot
        self.owners = dict(owners)
        self.balances = dict(balances)
