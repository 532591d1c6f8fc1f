"""
Typed rejection conditions for the mint gate.

Every guard failure is surfaced as a named ErrorKind. Entry points never
raise these at their callers; they return a Result instead. MintRejected is
the internal carrier used to unwind an entry point before it rolls back.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Any, Optional


class ErrorKind(Enum):
    INVALID_COUPON = "InvalidCoupon"
    ALLOCATION_EXCEEDED = "AllocationExceeded"
    INSUFFICIENT_VALUE_SENT = "InsufficientValueSent"
    PRIVATE_PURCHASE_NOT_OPEN = "PrivatePurchaseNotOpen"
    PUBLIC_PURCHASE_NOT_OPEN = "PublicPurchaseNotOpen"
    MAX_MINT_REACHED_FOR_PUBLIC_WALLET = "MaxMintReachedForPublicWallet"
    BATCH_MINT_SIZE_EXCEEDED = "BatchMintSizeExceeded"
    NO_MORE_TOKENS_LEFT = "NoMoreTokensLeft"
    TREASURY_RESERVATION_ALLOCATION_EXCEEDED = "TreasuryReservationAllocationExceeded"
    CONTRACT_ALREADY_LOCKED = "ContractAlreadyLocked"
    PAUSED = "Paused"
    UNAUTHORIZED = "Unauthorized"
    INVALID_ARGUMENT = "InvalidArgument"
    NOT_TOKEN_OWNER = "NotTokenOwner"


class MintRejected(Exception):
    def __init__(self, kind: ErrorKind, detail: str = "") -> None:
        self.kind = kind
        self.detail = detail
        super().__init__(f"{kind.value}: {detail}" if detail else kind.value)


@dataclass(frozen=True)
class Result:
    ok: bool
    value: Any = None
    error: Optional[ErrorKind] = None
    detail: str = ""

    @classmethod
    def success(cls, value: Any = None) -> "Result":
        return cls(ok=True, value=value)

    @classmethod
    def failure(cls, kind: ErrorKind, detail: str = "") -> "Result":
        return cls(ok=False, error=kind, detail=detail)

    def unwrap(self) -> Any:
        """Return the value, or raise MintRejected carrying the failure kind."""
        if not self.ok:
            raise MintRejected(self.error, self.detail)
        return self.value

    def to_dict(self):
        if self.ok:
            return {"ok": True, "value": self.value}
        return {"ok": False, "error": self.error.value, "detail": self.detail}


# --- Construction-time failures (fatal to the instance being built) ---

class MalformedKeyError(ValueError):
    pass


class KeyPairMismatchError(ValueError):
    pass


class MissingSigningKeyError(ValueError):
    pass


class ConfigurationError(ValueError):
    pass
