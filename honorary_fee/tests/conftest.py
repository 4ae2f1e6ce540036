from __future__ import annotations

from dataclasses import dataclass
from typing import Callable, Optional

import pytest

from honorary_fee.adapters.amm import InMemoryAmm
from honorary_fee.adapters.custody import CustodyLedger
from honorary_fee.adapters.locks import InMemoryLockOracle
from honorary_fee.config import EngineConfig
from honorary_fee.engine import DistributionEngine
from honorary_fee.state.investor import InvestorRecord
from honorary_fee.store import MemoryVaultStore, VaultStore

DAY = 86_400
T0 = 20_000 * DAY  # start of a distribution day, well after the epoch

VAULT = "vault-1"
POOL = "pool-1"
QUOTE = "USDC"
BASE = "BASE"
CREATOR = "creator"


@dataclass
class World:
    custody: CustodyLedger
    amm: InMemoryAmm
    oracle: InMemoryLockOracle
    store: VaultStore
    engine: DistributionEngine
    position: str = ""

    @property
    def treasury(self) -> str:
        return self.engine.treasury_account(VAULT)

    def quote(self, account: str) -> int:
        return self.custody.balance(account, QUOTE)

    def progress_bytes(self) -> bytes:
        return self.engine.get_progress(VAULT).to_bytes()


def pair() -> list:
    """The two investors of the reference examples (300k / 100k locked)."""
    return [InvestorRecord("inv-a", 300_000), InvestorRecord("inv-b", 100_000)]


def _bare(config: Optional[EngineConfig] = None, store: Optional[VaultStore] = None) -> World:
    custody = CustodyLedger()
    amm = InMemoryAmm(custody)
    engine = DistributionEngine(
        store=store if store is not None else MemoryVaultStore(),
        custody=custody,
        claimer=amm,
        config=config,
        clock=lambda: T0,
    )
    amm.init_pool(POOL, base_mint=BASE, quote_mint=QUOTE)
    return World(custody=custody, amm=amm, oracle=InMemoryLockOracle(), store=engine.store, engine=engine)


@pytest.fixture
def bare() -> World:
    """Engine with a pool but no initialized vault."""
    return _bare()


@pytest.fixture
def make_world() -> Callable[..., World]:
    def _make(
        *,
        bps: int = 5_000,
        y0: int = 1_000_000,
        daily_cap: Optional[int] = None,
        min_payout: int = 0,
        config: Optional[EngineConfig] = None,
        store: Optional[VaultStore] = None,
    ) -> World:
        w = _bare(config=config, store=store)
        w.position = w.amm.create_position(POOL, w.treasury, tick_lower=-120, tick_upper=120)
        w.engine.initialize(
            vault=VAULT,
            pool=POOL,
            position=w.position,
            quote_mint=QUOTE,
            creator=CREATOR,
            investor_fee_share_bps=bps,
            daily_cap=daily_cap,
            min_payout=min_payout,
            y0=y0,
            now=T0 - 10,
        )
        return w

    return _make


@pytest.fixture
def world(make_world) -> World:
    return make_world()
