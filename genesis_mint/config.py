"""
Genesis Mint configuration.

Values come from the environment, optionally seeded from a .env file
(see load_env). Defaults match the Genesis collection deployment.
"""

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv

from .errors import ConfigurationError

# --- CONSTANTS ---
ABSOLUTE_MAX_SUPPLY = 12000
ABSOLUTE_TREASURY_RESERVE = 1200

DEFAULT_MAX_SUPPLY = 12000
DEFAULT_TREASURY_RESERVE = 1200
DEFAULT_MINT_PRICE_WEI = 25_000_000_000_000_000  # 0.025 ether
DEFAULT_ALLOWED_PUBLIC_MINT_TOKEN_COUNT = 10
DEFAULT_BATCH_MINT_CEILING = 10
DEFAULT_CONTRACT_URI = "https://public-accessibles.s3.amazonaws.com/skycastle/genesis/metadata/"

CONTRACT_NAME = "Sky Castle Companions - Genesis"
CONTRACT_SYMBOL = "SCAIG"

DATA_DIR = Path(os.getenv("GENESIS_DATA_DIR", Path.cwd() / ".genesis" / "data"))


def load_env(env_path=None) -> Optional[Path]:
    """Loads a .env file into os.environ. Returns the path used, or None if nothing was found."""
    path = Path(env_path) if env_path else Path.cwd() / ".env"
    if path.exists():
        load_dotenv(dotenv_path=path, override=True)
        return path
    return None


def _int_env(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return int(raw)
    except ValueError:
        raise ConfigurationError(f"{name} must be an integer, got {raw!r}")


@dataclass
class GateConfig:
    max_supply: int = DEFAULT_MAX_SUPPLY
    treasury_reserve: int = DEFAULT_TREASURY_RESERVE
    mint_price: int = DEFAULT_MINT_PRICE_WEI
    allowed_public_mint_token_count: int = DEFAULT_ALLOWED_PUBLIC_MINT_TOKEN_COUNT
    batch_mint_ceiling: int = DEFAULT_BATCH_MINT_CEILING
    contract_uri: str = DEFAULT_CONTRACT_URI
    coupon_public_key: Optional[str] = None
    coupon_private_key: Optional[str] = None

    def validate(self) -> "GateConfig":
        """Rejects deployments that could never satisfy the supply invariants."""
        if not 0 < self.max_supply <= ABSOLUTE_MAX_SUPPLY:
            raise ConfigurationError(
                f"max_supply must be in 1..{ABSOLUTE_MAX_SUPPLY}, got {self.max_supply}"
            )
        if not 0 <= self.treasury_reserve <= ABSOLUTE_TREASURY_RESERVE:
            raise ConfigurationError(
                f"treasury_reserve must be in 0..{ABSOLUTE_TREASURY_RESERVE}, got {self.treasury_reserve}"
            )
        if self.treasury_reserve > self.max_supply:
            raise ConfigurationError("treasury_reserve cannot exceed max_supply")
        if self.batch_mint_ceiling < 1:
            raise ConfigurationError("batch_mint_ceiling must be at least 1")
        if self.mint_price < 0 or self.allowed_public_mint_token_count < 0:
            raise ConfigurationError("mint_price and allowed_public_mint_token_count must be >= 0")
        return self

    @classmethod
    def from_env(cls) -> "GateConfig":
        return cls(
            max_supply=_int_env("MAX_SUPPLY", DEFAULT_MAX_SUPPLY),
            treasury_reserve=_int_env("TREASURY_RESERVE", DEFAULT_TREASURY_RESERVE),
            mint_price=_int_env("MINT_PRICE_WEI", DEFAULT_MINT_PRICE_WEI),
            allowed_public_mint_token_count=_int_env(
                "ALLOWED_PUBLIC_MINT_TOKEN_COUNT", DEFAULT_ALLOWED_PUBLIC_MINT_TOKEN_COUNT
            ),
            batch_mint_ceiling=_int_env("BATCH_MINT_CEILING", DEFAULT_BATCH_MINT_CEILING),
            contract_uri=os.getenv("CONTRACT_URI", DEFAULT_CONTRACT_URI),
            coupon_public_key=os.getenv("COUPON_PUBLIC_KEY") or None,
            coupon_private_key=os.getenv("COUPON_PRIVATE_KEY") or None,
        )
