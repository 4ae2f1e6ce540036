from __future__ import annotations

import logging
import threading
import time

import pytest

from honorary_fee import metrics
from honorary_fee.adapters.amm import InMemoryAmm
from honorary_fee.adapters.custody import CustodyLedger
from honorary_fee.adapters.locks import build_investor_records
from honorary_fee.adapters.state_db import SQLiteVaultStore
from honorary_fee.config import EngineConfig
from honorary_fee.engine import DistributionEngine
from honorary_fee.errors import (AlreadyInitialized, BaseFeesObserved, DayGateNotOpen,
                                 InsufficientTreasury, InvalidInvestorRecord,
                                 InvalidPaginationCursor, InvalidPolicy,
                                 InvalidPoolTokenOrder, InvalidPosition, InvalidQuoteMint,
                                 InvalidTickRange, LockedAmountReadError, NotQuoteOnly,
                                 PageCapacityExceeded, VaultNotFound)
from honorary_fee.events import EventType
from honorary_fee.state.investor import InvestorRecord
from honorary_fee.store import MemoryVaultStore

from .conftest import BASE, CREATOR, DAY, POOL, QUOTE, T0, VAULT, pair


def _types(res):
    return [e.etype for e in res.events]


# ────────────────────────────────────────────────────────────────────────────────
# distribute_page: payouts
# ────────────────────────────────────────────────────────────────────────────────


def test_single_final_page_pays_investors_and_creator(world):
    world.amm.accrue_fees(world.position, quote=1_000)

    res = world.engine.distribute_page(VAULT, 0, True, pair(), now=T0)

    assert world.quote("inv-a") == 300
    assert world.quote("inv-b") == 100
    assert world.quote(CREATOR) == 600
    assert world.quote(world.treasury) == 0
    assert res.paid_total == 400
    assert res.day_closed
    assert _types(res) == [
        EventType.QUOTE_FEES_CLAIMED,
        EventType.INVESTOR_PAYOUT,
        EventType.INVESTOR_PAYOUT,
        EventType.INVESTOR_PAYOUT_PAGE,
        EventType.CREATOR_PAYOUT_DAY_CLOSED,
    ]
    closed = res.events[-1]
    assert closed.remainder == 600
    assert closed.total_investor_payout == 400

    prog = world.engine.get_progress(VAULT)
    assert prog.day_id == T0 // DAY
    assert prog.is_closed
    assert prog.carry_over == 0
    assert prog.claimed_today == 1_000
    assert prog.cumulative_distributed_today == 400


def test_unsettled_quote_carries_to_final_page(world):
    world.amm.accrue_fees(world.position, quote=50)
    first = world.engine.distribute_page(VAULT, 0, False, [], now=T0)
    assert first.paid_total == 0
    assert world.engine.get_progress(VAULT).carry_over == 50

    world.amm.accrue_fees(world.position, quote=1_000)
    world.engine.distribute_page(VAULT, 1, True, pair(), now=T0 + 60)

    assert world.quote("inv-a") == 300
    assert world.quote("inv-b") == 100
    assert world.quote(CREATOR) == 650
    assert world.quote(world.treasury) == 0


def test_zero_claim_page_is_processed(world):
    res = world.engine.distribute_page(VAULT, 0, False, pair(), now=T0)
    assert res.plan.claimed == 0
    assert res.paid_total == 0
    assert world.engine.get_progress(VAULT).cursor == 1


def test_daily_cap_limits_investors_across_pages(make_world):
    w = make_world(bps=10_000, y0=400_000, daily_cap=500)

    w.amm.accrue_fees(w.position, quote=400)
    w.engine.distribute_page(VAULT, 0, False, pair(), now=T0)
    assert (w.quote("inv-a"), w.quote("inv-b")) == (300, 100)

    w.amm.accrue_fees(w.position, quote=400)
    w.engine.distribute_page(VAULT, 1, False, pair(), now=T0 + 1)
    assert (w.quote("inv-a"), w.quote("inv-b")) == (375, 125)
    assert w.engine.get_progress(VAULT).carry_over == 300

    w.amm.accrue_fees(w.position, quote=400)
    res = w.engine.distribute_page(VAULT, 2, True, pair(), now=T0 + 2)
    assert res.paid_total == 0
    assert w.quote(CREATOR) == 700
    assert w.engine.get_progress(VAULT).cumulative_distributed_today == 500


def test_dust_is_deferred_to_creator(make_world):
    w = make_world(min_payout=150)
    w.amm.accrue_fees(w.position, quote=1_000)

    res = w.engine.distribute_page(VAULT, 0, True, pair(), now=T0)

    assert w.quote("inv-a") == 300
    assert w.quote("inv-b") == 0
    assert res.plan.deferred_total == 100
    assert w.quote(CREATOR) == 700


def test_investor_mappings_are_accepted(world):
    world.amm.accrue_fees(world.position, quote=1_000)
    investors = [
        {"destination": "inv-a", "locked_amount": 300_000, "stream": "s-a"},
        {"destination": "inv-b", "locked_amount": 100_000},
    ]
    res = world.engine.distribute_page(VAULT, 0, False, investors, now=T0)
    payouts = [e for e in res.events if e.etype is EventType.INVESTOR_PAYOUT]
    assert [(p.destination, p.amount, p.stream) for p in payouts] == [
        ("inv-a", 300, "s-a"),
        ("inv-b", 100, None),
    ]


def test_investors_resolved_through_lock_oracle(world):
    world.oracle.set_locked_amount("s-a", 300_000)
    world.oracle.set_locked_amount("s-b", 100_000)
    investors = build_investor_records(world.oracle, [("inv-a", "s-a"), ("inv-b", "s-b")])
    world.amm.accrue_fees(world.position, quote=1_000)

    world.engine.distribute_page(VAULT, 0, True, investors, now=T0)
    assert world.quote("inv-a") == 300

    with pytest.raises(LockedAmountReadError):
        build_investor_records(world.oracle, [("inv-c", "s-missing")])
    world.oracle.set_locked_amount("s-x", 5, owner="other-program")
    with pytest.raises(LockedAmountReadError) as ei:
        world.oracle.lookup("s-x")
    assert "other-program" in ei.value.details["reason"]


# ────────────────────────────────────────────────────────────────────────────────
# distribute_page: idempotency and ordering
# ────────────────────────────────────────────────────────────────────────────────


def test_duplicate_page_changes_nothing(world):
    world.amm.accrue_fees(world.position, quote=1_000)
    world.engine.distribute_page(VAULT, 0, False, pair(), now=T0)
    before = world.progress_bytes()
    world.amm.accrue_fees(world.position, quote=500)

    res = world.engine.distribute_page(VAULT, 0, False, pair(), now=T0 + 30)

    assert res.duplicate
    assert res.plan is None
    assert _types(res) == [EventType.INVESTOR_PAYOUT_PAGE]
    assert res.events[0].duplicate
    assert world.progress_bytes() == before
    assert world.amm.accrued(world.position).quote == 500
    assert world.quote("inv-a") == 300


def test_page_gap_is_rejected(world):
    world.engine.distribute_page(VAULT, 0, False, pair(), now=T0)
    before = world.progress_bytes()
    with pytest.raises(InvalidPaginationCursor):
        world.engine.distribute_page(VAULT, 2, False, pair(), now=T0 + 1)
    assert world.progress_bytes() == before


def test_page_beyond_capacity(world):
    with pytest.raises(PageCapacityExceeded):
        world.engine.distribute_page(VAULT, 512, False, pair(), now=T0)


def test_closed_day_rejects_even_processed_pages(world):
    world.engine.distribute_page(VAULT, 0, True, pair(), now=T0)
    with pytest.raises(DayGateNotOpen):
        world.engine.distribute_page(VAULT, 1, False, pair(), now=T0 + 100)
    with pytest.raises(DayGateNotOpen):
        world.engine.distribute_page(VAULT, 0, True, pair(), now=T0 + 100)


def test_next_day_waits_a_full_day_after_last_page(world):
    world.engine.distribute_page(VAULT, 0, True, pair(), now=T0 + 80_000)

    with pytest.raises(DayGateNotOpen):
        world.engine.distribute_page(VAULT, 0, False, pair(), now=T0 + DAY + 100)

    status = world.engine.status(VAULT)
    assert status["next_opening_ts"] == T0 + 80_000 + DAY

    res = world.engine.distribute_page(VAULT, 0, True, pair(), now=T0 + DAY + 80_000)
    assert res.day_id == T0 // DAY + 1


def test_unclosed_day_carry_is_discarded_on_rollover(world, caplog):
    caplog.set_level(logging.WARNING, logger="honorary_fee.engine")
    world.amm.accrue_fees(world.position, quote=1_000)
    world.engine.distribute_page(VAULT, 0, False, pair(), now=T0)

    world.engine.distribute_page(VAULT, 0, True, pair(), now=T0 + DAY)

    assert world.quote(CREATOR) == 0
    assert world.quote(world.treasury) == 600
    assert "discarded carry_over=600" in caplog.text


def test_unclosed_day_carry_can_be_kept(make_world):
    w = make_world(config=EngineConfig(rollover_carry="carry"))
    w.amm.accrue_fees(w.position, quote=1_000)
    w.engine.distribute_page(VAULT, 0, False, pair(), now=T0)

    w.engine.distribute_page(VAULT, 0, True, pair(), now=T0 + DAY)

    assert w.quote(CREATOR) == 600
    assert w.quote(w.treasury) == 0


def test_fresh_vault_opens_day_zero(world):
    world.amm.accrue_fees(world.position, quote=1_000)

    res = world.engine.distribute_page(VAULT, 0, True, pair(), now=100)

    assert res.day_id == 0
    assert world.quote(CREATOR) == 600
    assert world.engine.status(VAULT)["next_opening_ts"] == 100 + DAY
    with pytest.raises(DayGateNotOpen):
        world.engine.distribute_page(VAULT, 0, True, pair(), now=DAY + 50)
    assert world.engine.distribute_page(VAULT, 0, True, pair(), now=DAY + 100).day_id == 1


def test_day_length_is_configurable(make_world):
    w = make_world(config=EngineConfig(seconds_per_day=3_600))
    w.engine.distribute_page(VAULT, 0, True, pair(), now=T0)
    res = w.engine.distribute_page(VAULT, 0, True, pair(), now=T0 + 3_600)
    assert res.day_id == (T0 + 3_600) // 3_600


# ────────────────────────────────────────────────────────────────────────────────
# distribute_page: atomicity
# ────────────────────────────────────────────────────────────────────────────────


def test_base_fees_abort_and_roll_back(world):
    world.amm.accrue_fees(world.position, base=1, quote=1_000)
    before = world.progress_bytes()

    with pytest.raises(BaseFeesObserved) as ei:
        world.engine.distribute_page(VAULT, 0, True, pair(), now=T0)

    assert ei.value.details["base_claimed"] == 1
    assert world.progress_bytes() == before
    accrued = world.amm.accrued(world.position)
    assert (accrued.base, accrued.quote) == (1, 1_000)
    assert world.custody.balances(world.treasury) == {}
    assert world.quote("inv-a") == 0


def test_failed_creator_transfer_reverts_investor_payouts(world):
    world.amm.accrue_fees(world.position, quote=1_000)
    world.engine.distribute_page(VAULT, 0, False, pair(), now=T0)
    world.custody.transfer(world.treasury, "elsewhere", QUOTE, 600)
    before = world.progress_bytes()

    world.amm.accrue_fees(world.position, quote=1_000)
    with pytest.raises(InsufficientTreasury):
        world.engine.distribute_page(VAULT, 1, True, pair(), now=T0 + 5)

    assert world.quote("inv-a") == 300
    assert world.quote("inv-b") == 100
    assert world.quote(world.treasury) == 0
    assert world.amm.accrued(world.position).quote == 1_000
    assert world.progress_bytes() == before


def _days_opened() -> float:
    return metrics.REGISTRY.get_sample_value("honorary_fee_days_opened_total") or 0.0


def test_rejected_rollover_is_not_counted(world):
    before = _days_opened()
    with pytest.raises(InvalidPaginationCursor):
        world.engine.distribute_page(VAULT, 3, False, pair(), now=T0)
    assert _days_opened() == before
    assert world.engine.get_progress(VAULT).day_id == 0

    world.engine.distribute_page(VAULT, 0, False, pair(), now=T0)
    assert _days_opened() == before + 1


class _HeldClaimer:
    """Claims through an InMemoryAmm, pausing inside one position's claim until released."""

    def __init__(self, amm: InMemoryAmm, hold: str) -> None:
        self.amm = amm
        self.hold = hold
        self.entered = threading.Event()
        self.release = threading.Event()

    def claim(self, position):
        if position.position == self.hold:
            self.entered.set()
            self.release.wait(timeout=5)
        return self.amm.claim(position)

    def snapshot(self):
        return self.amm.snapshot()

    def restore(self, snap):
        self.amm.restore(snap)


def test_failed_call_does_not_undo_another_vaults_commit():
    custody = CustodyLedger()
    amm = InMemoryAmm(custody)
    amm.init_pool(POOL, base_mint=BASE, quote_mint=QUOTE)
    engine = DistributionEngine(
        store=MemoryVaultStore(),
        custody=custody,
        claimer=amm,
        pools=amm,
        clock=lambda: T0,
    )
    positions = {}
    for vault in ("vault-a", "vault-b"):
        positions[vault] = amm.create_position(
            POOL, engine.treasury_account(vault), tick_lower=-120, tick_upper=120
        )
        engine.initialize(
            vault=vault,
            pool=POOL,
            position=positions[vault],
            quote_mint=QUOTE,
            creator=CREATOR,
            investor_fee_share_bps=5_000,
            y0=1_000_000,
            now=T0 - 10,
        )
    held = _HeldClaimer(amm, hold=positions["vault-a"])
    engine.claimer = held
    amm.accrue_fees(positions["vault-a"], base=1, quote=1_000)
    amm.accrue_fees(positions["vault-b"], quote=1_000)

    errors = {}
    b_done = threading.Event()

    def run_a():
        try:
            engine.distribute_page("vault-a", 0, True, pair(), now=T0)
        except BaseFeesObserved as e:
            errors["vault-a"] = e

    def run_b():
        engine.distribute_page("vault-b", 0, True, pair(), now=T0)
        b_done.set()

    ta = threading.Thread(target=run_a)
    tb = threading.Thread(target=run_b)
    ta.start()
    assert held.entered.wait(timeout=5)
    tb.start()
    time.sleep(0.2)
    # vault-b waits for vault-a's call to finish
    assert not b_done.is_set()
    held.release.set()
    ta.join(timeout=5)
    tb.join(timeout=5)

    assert isinstance(errors.get("vault-a"), BaseFeesObserved)
    prog_b = engine.get_progress("vault-b")
    assert prog_b.cursor == 1
    assert prog_b.is_closed
    assert custody.balance("inv-a", QUOTE) == 300
    assert custody.balance("inv-b", QUOTE) == 100
    assert custody.balance(CREATOR, QUOTE) == 600
    assert amm.accrued(positions["vault-a"]).quote == 1_000
    assert engine.get_progress("vault-a").cursor == 0


def test_malformed_investor_is_rejected(world):
    world.amm.accrue_fees(world.position, quote=1_000)
    with pytest.raises(InvalidInvestorRecord):
        world.engine.distribute_page(VAULT, 0, False, [{"destination": "x", "locked_amount": -1}], now=T0)
    assert world.amm.accrued(world.position).quote == 1_000
    assert world.engine.get_progress(VAULT).cursor == 0


def test_unknown_vault(world):
    with pytest.raises(VaultNotFound):
        world.engine.distribute_page("vault-404", 0, True, pair(), now=T0)


# ────────────────────────────────────────────────────────────────────────────────
# initialize
# ────────────────────────────────────────────────────────────────────────────────


def _init(w, **kw):
    args = dict(
        vault=VAULT,
        pool=POOL,
        position=w.position,
        quote_mint=QUOTE,
        creator=CREATOR,
        investor_fee_share_bps=5_000,
        y0=1_000_000,
    )
    args.update(kw)
    return w.engine.initialize(**args)


def test_initialize_writes_records(bare):
    bare.position = bare.amm.create_position(POOL, bare.treasury, tick_lower=-60, tick_upper=60)
    res = _init(bare, daily_cap=10_000, min_payout=5)

    assert res.policy.daily_cap == 10_000
    assert res.position.owner == "treasury:vault-1"
    assert res.position.base_mint == BASE
    assert (res.position.tick_lower, res.position.tick_upper) == (-60, 60)
    assert res.progress.is_closed
    assert res.events[0].etype is EventType.POSITION_INITIALIZED
    assert bare.store.vaults() == [VAULT]
    assert bare.engine.get_policy(VAULT) == res.policy

    with pytest.raises(AlreadyInitialized):
        _init(bare)


@pytest.mark.parametrize(
    "setup, kw, err",
    [
        (None, {"investor_fee_share_bps": 10_001}, InvalidPolicy),
        (None, {"tick_lower": 10, "tick_upper": -10}, InvalidTickRange),
        (None, {"tick_lower": -1, "tick_upper": 1}, InvalidPosition),
        (None, {"quote_mint": BASE}, InvalidQuoteMint),
        (None, {"pool": "pool-unknown"}, InvalidPoolTokenOrder),
        ("same-mints", {"pool": "pool-same"}, InvalidPoolTokenOrder),
        ("foreign-owner", {}, InvalidPosition),
        ("not-quote-only", {}, NotQuoteOnly),
        ("flat-ticks", {}, InvalidTickRange),
        ("other-pool", {}, InvalidPosition),
    ],
)
def test_initialize_rejections(bare, setup, kw, err):
    owner = bare.treasury
    ticks = dict(tick_lower=-60, tick_upper=60)
    quote_only = True
    pool = POOL
    if setup == "same-mints":
        bare.amm.init_pool("pool-same", base_mint=QUOTE, quote_mint=QUOTE)
    elif setup == "foreign-owner":
        owner = "someone"
    elif setup == "not-quote-only":
        quote_only = False
    elif setup == "flat-ticks":
        ticks = dict(tick_lower=60, tick_upper=60)
    elif setup == "other-pool":
        bare.amm.init_pool("pool-2", base_mint=BASE, quote_mint=QUOTE)
        pool = "pool-2"
    bare.position = bare.amm.create_position(pool, owner, quote_only=quote_only, **ticks)

    with pytest.raises(err):
        _init(bare, **kw)
    assert bare.store.vaults() == []


def test_initialize_rejects_missing_position(bare):
    bare.position = "no-such-position"
    with pytest.raises(InvalidPosition):
        _init(bare)


# ────────────────────────────────────────────────────────────────────────────────
# status / persistence
# ────────────────────────────────────────────────────────────────────────────────


def test_status_reports_treasury(world):
    world.amm.accrue_fees(world.position, quote=1_000)
    world.engine.distribute_page(VAULT, 0, False, pair(), now=T0)
    st = world.engine.status(VAULT)
    assert st["treasury"] == {"account": world.treasury, "quote": 600, "base": 0}
    assert st["progress"]["carry_over"] == 600
    assert st["policy"]["investor_fee_share_bps"] == 5_000


def test_sqlite_store_survives_reopen(make_world, tmp_path):
    db = str(tmp_path / "honorary.db")
    w = make_world(store=SQLiteVaultStore(db))
    w.amm.accrue_fees(w.position, quote=1_000)
    w.engine.distribute_page(VAULT, 0, False, pair(), now=T0)

    # failed call leaves the persisted progress untouched
    with pytest.raises(InvalidPaginationCursor):
        w.engine.distribute_page(VAULT, 3, False, pair(), now=T0 + 1)
    w.store.close()

    with SQLiteVaultStore(db) as reopened:
        prog = reopened.load_progress(VAULT)
        assert prog.cursor == 1
        assert prog.carry_over == 600
        assert list(prog.pages.indices()) == [0]
        assert reopened.load_policy(VAULT).y0 == 1_000_000


def test_clock_is_used_when_now_is_omitted(world):
    world.amm.accrue_fees(world.position, quote=1_000)
    res = world.engine.distribute_page(VAULT, 0, True, [InvestorRecord("inv-a", 400_000)])
    assert res.day_id == T0 // DAY
    assert res.events[0].ts == T0
    assert world.quote("inv-a") == 400
