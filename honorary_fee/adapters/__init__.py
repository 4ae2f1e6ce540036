from __future__ import annotations
"""
honorary_fee.adapters
=====================

Collaborators the engine is handed rather than linked against:

- custody   : CustodyLedger, balances keyed by (account, mint)
- amm       : FeeClaimer / PoolDirectory interfaces + InMemoryAmm
- locks     : LockedAmountOracle interface + InMemoryLockOracle
- state_db  : SQLiteVaultStore, durable vault records
"""

from .amm import ClaimedFees, FeeClaimer, InMemoryAmm, PoolDirectory, PositionInfo
from .custody import CustodyLedger
from .locks import InMemoryLockOracle, LockedAmountOracle, build_investor_records
from .state_db import SQLiteVaultStore

__all__ = [
    "ClaimedFees",
    "FeeClaimer",
    "InMemoryAmm",
    "PoolDirectory",
    "PositionInfo",
    "CustodyLedger",
    "InMemoryLockOracle",
    "LockedAmountOracle",
    "build_investor_records",
    "SQLiteVaultStore",
]
