"""
Ledger Store (SQLite WAL)
-------------------------
Durable copy of the AllocationLedger and of the gate's administrative
state (phase flags, lock, price, caps, URI, owner, roles, balance). The gate
writes everything in a single transaction after each committed call, so
the file never holds a half-applied mint.

Amounts in wei are stored as TEXT; they can exceed SQLite's 64-bit INTEGER.
"""

import logging
import sqlite3
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, Optional, Set

from .ledger import AllocationLedger

logger = logging.getLogger("LedgerStore")


@dataclass
class GateState:
    public_open: bool
    presale_open: bool
    paused: bool
    uri_locked: bool
    mint_price: int
    allowed_public_mint_token_count: int
    base_uri: str
    owner: str
    balance: int
    roles: Dict[str, Set[str]] = field(default_factory=dict)   # role name -> lowercased accounts
    payouts: Dict[str, int] = field(default_factory=dict)


class LedgerStore:
    def __init__(self, db_path):
        self.db_path = Path(db_path)
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        self._init_db()

    def _get_db(self):
        conn = sqlite3.connect(self.db_path)
        conn.row_factory = sqlite3.Row
        return conn

    def _init_db(self):
        with self._get_db() as conn:
            conn.execute("PRAGMA journal_mode=WAL;")
            conn.execute("PRAGMA synchronous=NORMAL;")
            conn.execute("""
                CREATE TABLE IF NOT EXISTS supply_counters (
                    id              INTEGER PRIMARY KEY CHECK (id = 1),
                    total_minted    INTEGER NOT NULL,
                    treasury_minted INTEGER NOT NULL
                )
            """)
            conn.execute("""
                CREATE TABLE IF NOT EXISTS wallet_public_mints (
                    address TEXT PRIMARY KEY,
                    used    INTEGER NOT NULL
                )
            """)
            conn.execute("""
                CREATE TABLE IF NOT EXISTS coupon_usage (
                    coupon_hash TEXT PRIMARY KEY,
                    used        INTEGER NOT NULL
                )
            """)
            # --- Administrative state ---
            conn.execute("""
                CREATE TABLE IF NOT EXISTS gate_state (
                    id                INTEGER PRIMARY KEY CHECK (id = 1),
                    public_open       BOOLEAN NOT NULL,
                    presale_open      BOOLEAN NOT NULL,
                    paused            BOOLEAN NOT NULL,
                    uri_locked        BOOLEAN NOT NULL,
                    mint_price        TEXT NOT NULL,
                    public_wallet_cap INTEGER NOT NULL,
                    base_uri          TEXT NOT NULL,
                    owner             TEXT NOT NULL,
                    balance           TEXT NOT NULL
                )
            """)
            conn.execute("""
                CREATE TABLE IF NOT EXISTS role_members (
                    role    TEXT NOT NULL,
                    account TEXT NOT NULL,
                    PRIMARY KEY (role, account)
                )
            """)
            conn.execute("""
                CREATE TABLE IF NOT EXISTS payouts (
                    address TEXT PRIMARY KEY,
                    amount  TEXT NOT NULL
                )
            """)
            conn.commit()

    def save(self, ledger: AllocationLedger, state: Optional[GateState] = None) -> None:
        with self._get_db() as conn:
            conn.execute("""
                INSERT INTO supply_counters (id, total_minted, treasury_minted) VALUES (1, ?, ?)
                ON CONFLICT(id) DO UPDATE SET
                    total_minted = excluded.total_minted,
                    treasury_minted = excluded.treasury_minted
            """, (ledger.supply.total_minted, ledger.supply.treasury_minted))
            conn.executemany("""
                INSERT INTO wallet_public_mints (address, used) VALUES (?, ?)
                ON CONFLICT(address) DO UPDATE SET used = excluded.used
            """, list(ledger.wallet_public_mints.items()))
            conn.executemany("""
                INSERT INTO coupon_usage (coupon_hash, used) VALUES (?, ?)
                ON CONFLICT(coupon_hash) DO UPDATE SET used = excluded.used
            """, [(h.hex(), used) for h, used in ledger.coupon_usage.items()])
            if state is not None:
                self._save_state(conn, state)
            conn.commit()

    @staticmethod
    def _save_state(conn, state: GateState) -> None:
        conn.execute("""
            INSERT INTO gate_state (id, public_open, presale_open, paused, uri_locked,
                                    mint_price, public_wallet_cap, base_uri, owner, balance)
            VALUES (1, ?, ?, ?, ?, ?, ?, ?, ?, ?)
            ON CONFLICT(id) DO UPDATE SET
                public_open = excluded.public_open,
                presale_open = excluded.presale_open,
                paused = excluded.paused,
                uri_locked = excluded.uri_locked,
                mint_price = excluded.mint_price,
                public_wallet_cap = excluded.public_wallet_cap,
                base_uri = excluded.base_uri,
                owner = excluded.owner,
                balance = excluded.balance
        """, (
            state.public_open, state.presale_open, state.paused, state.uri_locked,
            str(state.mint_price), state.allowed_public_mint_token_count,
            state.base_uri, state.owner, str(state.balance),
        ))
        # Membership can shrink (revoke / renounce), so it is rewritten whole.
        conn.execute("DELETE FROM role_members")
        conn.executemany(
            "INSERT INTO role_members (role, account) VALUES (?, ?)",
            [(role, account) for role, members in state.roles.items() for account in sorted(members)],
        )
        conn.executemany("""
            INSERT INTO payouts (address, amount) VALUES (?, ?)
            ON CONFLICT(address) DO UPDATE SET amount = excluded.amount
        """, [(address, str(amount)) for address, amount in state.payouts.items()])

    def load(self, ledger: AllocationLedger) -> AllocationLedger:
        """Fills `ledger` with the persisted counters. A fresh database leaves it untouched."""
        with self._get_db() as conn:
            row = conn.execute("SELECT total_minted, treasury_minted FROM supply_counters WHERE id = 1").fetchone()
            if row:
                ledger.supply.total_minted = row["total_minted"]
                ledger.supply.treasury_minted = row["treasury_minted"]
            for r in conn.execute("SELECT address, used FROM wallet_public_mints"):
                ledger.wallet_public_mints[r["address"]] = r["used"]
            for r in conn.execute("SELECT coupon_hash, used FROM coupon_usage"):
                ledger.coupon_usage[bytes.fromhex(r["coupon_hash"])] = r["used"]
        logger.info(f"📦 Ledger loaded: {ledger.total_minted} minted ({ledger.treasury_minted} treasury)")
        return ledger

    def load_state(self) -> Optional[GateState]:
        """Returns the persisted administrative state, or None if the gate has never committed a call."""
        with self._get_db() as conn:
            row = conn.execute("SELECT * FROM gate_state WHERE id = 1").fetchone()
            if row is None:
                return None
            roles: Dict[str, Set[str]] = {}
            for r in conn.execute("SELECT role, account FROM role_members"):
                roles.setdefault(r["role"], set()).add(r["account"])
            payouts = {r["address"]: int(r["amount"]) for r in conn.execute("SELECT address, amount FROM payouts")}

        state = GateState(
            public_open=bool(row["public_open"]),
            presale_open=bool(row["presale_open"]),
            paused=bool(row["paused"]),
            uri_locked=bool(row["uri_locked"]),
            mint_price=int(row["mint_price"]),
            allowed_public_mint_token_count=row["public_wallet_cap"],
            base_uri=row["base_uri"],
            owner=row["owner"],
            balance=int(row["balance"]),
            roles=roles,
            payouts=payouts,
        )
        if state.uri_locked:
            logger.info("🔒 Persisted state: contract is locked")
        return state
