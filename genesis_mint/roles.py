"""
Role Capability Table
=====================
Maps roles to the administrative operations they may invoke.

    DEFAULT_ADMIN_ROLE  grant / revoke any role
    PAUSE_ROLE          pause, unpause
    MINT_OPS_ROLE       private sale flag, public wallet cap, mint price
    PAUSE_MINT_ROLE     public sale flag
    GENERAL_OPS_ROLE    base URI, withdraw
    AIRDROP_ROLE        airdrop, treasury mint

Authorization is a plain lookup: authorize(caller, operation, roles).
"""

from enum import Enum
from typing import Dict, FrozenSet, Set

from .events import ROLE_GRANTED, ROLE_REVOKED, EventLog


class Role(Enum):
    DEFAULT_ADMIN = "DEFAULT_ADMIN_ROLE"
    PAUSE = "PAUSE_ROLE"
    MINT_OPS = "MINT_OPS_ROLE"
    GENERAL_OPS = "GENERAL_OPS_ROLE"
    AIRDROP = "AIRDROP_ROLE"
    PAUSE_MINT = "PAUSE_MINT_ROLE"


class Operation(Enum):
    AIRDROP = "airdrop"
    TREASURY_MINT = "treasuryMint"
    SET_PUBLIC_PURCHASE_OPENED = "setPublicPurchaseOpened"
    SET_PRIVATE_PURCHASE_OPENED = "setPrivatePurchaseOpened"
    SET_ALLOWED_PUBLIC_MINT_TOKEN_COUNT = "setAllowedPublicMintTokenCount"
    SET_MINT_PRICE = "setMintPrice"
    SET_URI = "setURI"
    PAUSE = "pause"
    UNPAUSE = "unpause"
    WITHDRAW = "withdraw"
    GRANT_ROLE = "grantRole"
    REVOKE_ROLE = "revokeRole"


ROLE_CAPABILITIES: Dict[Role, FrozenSet[Operation]] = {
    Role.DEFAULT_ADMIN: frozenset({Operation.GRANT_ROLE, Operation.REVOKE_ROLE}),
    Role.PAUSE: frozenset({Operation.PAUSE, Operation.UNPAUSE}),
    Role.MINT_OPS: frozenset({
        Operation.SET_PRIVATE_PURCHASE_OPENED,
        Operation.SET_ALLOWED_PUBLIC_MINT_TOKEN_COUNT,
        Operation.SET_MINT_PRICE,
    }),
    Role.PAUSE_MINT: frozenset({Operation.SET_PUBLIC_PURCHASE_OPENED}),
    Role.GENERAL_OPS: frozenset({Operation.SET_URI, Operation.WITHDRAW}),
    Role.AIRDROP: frozenset({Operation.AIRDROP, Operation.TREASURY_MINT}),
}

# Granted to the operator account at deployment.
OPERATIONAL_ROLES = (Role.PAUSE, Role.MINT_OPS, Role.GENERAL_OPS, Role.AIRDROP, Role.PAUSE_MINT)


def _key(address: str) -> str:
    return address.lower()


class RoleRegistry:
    def __init__(self, events: EventLog):
        self.events = events
        self._members: Dict[Role, Set[str]] = {role: set() for role in Role}

    def has_role(self, role: Role, account: str) -> bool:
        return _key(account) in self._members[role]

    def roles_of(self, account: str):
        return {role for role in Role if self.has_role(role, account)}

    def _grant(self, role: Role, account: str, sender: str) -> bool:
        if self.has_role(role, account):
            return False
        self._members[role].add(_key(account))
        self.events.emit(ROLE_GRANTED, role=role.value, account=account, sender=sender)
        return True

    def _revoke(self, role: Role, account: str, sender: str) -> bool:
        if not self.has_role(role, account):
            return False
        self._members[role].discard(_key(account))
        self.events.emit(ROLE_REVOKED, role=role.value, account=account, sender=sender)
        return True

    def bootstrap(self, role: Role, account: str, sender: str) -> None:
        """Unchecked grant, used only while the gate is being constructed."""
        self._grant(role, account, sender)

    def grant_role(self, role: Role, account: str, sender: str) -> bool:
        """Returns False if the sender may not grant roles."""
        if not authorize(sender, Operation.GRANT_ROLE, self):
            return False
        self._grant(role, account, sender)
        return True

    def revoke_role(self, role: Role, account: str, sender: str) -> bool:
        if not authorize(sender, Operation.REVOKE_ROLE, self):
            return False
        self._revoke(role, account, sender)
        return True

    def renounce_role(self, role: Role, account: str, sender: str) -> bool:
        """Accounts may only renounce their own roles."""
        if _key(account) != _key(sender):
            return False
        self._revoke(role, account, sender)
        return True

    def snapshot(self):
        return {role: set(members) for role, members in self._members.items()}

    def restore(self, snapshot) -> None:
        self._members = {role: set(members) for role, members in snapshot.items()}


def authorize(caller: str, operation: Operation, roles: RoleRegistry) -> bool:
    return any(
        operation in ops and roles.has_role(role, caller)
        for role, ops in ROLE_CAPABILITIES.items()
    )
