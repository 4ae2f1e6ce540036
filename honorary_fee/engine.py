from __future__ import annotations
"""
Distribution engine
===================

Distributes the fees of a vault's honorary (quote-only) position between
locked investors and the creator, one page of investors per call.

Flow of `distribute_page`:

    load vault ─► day gate ─► page admission ─┬─► duplicate: summary event, nothing else
                                              └─► claim fees (custody delta)
                                                  ─► payout plan ─► investor transfers
                                                  ─► [final page] creator remainder, close day
                                                  ─► persist Progress ─► events

Each call is a unit of work. Store, custody and claimer are shared by every
vault, so the engine runs one call at a time across all vaults: it snapshots
every participant that supports it and restores them all if anything raises,
so a failed call leaves the vault exactly as it was and never undoes another
vault's committed call.

Example
-------
    custody = CustodyLedger()
    amm = InMemoryAmm(custody)
    engine = DistributionEngine(store=MemoryVaultStore(), custody=custody, claimer=amm)
    amm.init_pool("pool", base_mint="BASE", quote_mint="USDC")
    pos = amm.create_position("pool", engine.treasury_account("v1"),
                              tick_lower=-100, tick_upper=100)
    engine.initialize(vault="v1", pool="pool", position=pos, quote_mint="USDC",
                      creator="creator", investor_fee_share_bps=5000, y0=1_000_000)
    amm.accrue_fees(pos, quote=1_000)
    engine.distribute_page("v1", 0, True, investors, now=86_400)
"""

import logging
import threading
import time
from dataclasses import dataclass, field, replace
from typing import (Any, Callable, Dict, Iterator, List, Mapping, Optional,
                    Sequence, Tuple, Union)
from contextlib import contextmanager

from . import metrics
from .adapters.amm import FeeClaimer, PoolDirectory
from .adapters.custody import CustodyLedger
from .config import EngineConfig
from .economics.checked import add, sub
from .economics.daygate import check_gate, next_opening_ts
from .economics.pagination import Admission, admit_page, mark_processed
from .economics.payouts import PagePlan, plan_page
from .errors import (AlreadyInitialized, BaseFeesObserved, HonoraryFeeError,
                     InvalidInvestorRecord, InvalidPoolTokenOrder,
                     InvalidPosition, InvalidQuoteMint, InvalidTickRange,
                     NotQuoteOnly)
from .events import (CreatorPayoutDayClosed, HonoraryEvent,
                     HonoraryPositionInitialized, InvestorPayout,
                     InvestorPayoutPage, QuoteFeesClaimed)
from .state.investor import InvestorRecord
from .state.policy import Policy
from .state.position import HonoraryPosition
from .state.progress import Progress
from .store import VaultStore, load_vault

log = logging.getLogger(__name__)

InvestorInput = Union[InvestorRecord, Mapping[str, Any]]


# ────────────────────────────────────────────────────────────────────────────────
# Results
# ────────────────────────────────────────────────────────────────────────────────


@dataclass(frozen=True)
class InitResult:
    policy: Policy
    progress: Progress
    position: HonoraryPosition
    events: Tuple[HonoraryEvent, ...] = ()

    def to_dict(self) -> Dict[str, Any]:
        return {
            "policy": self.policy.to_dict(),
            "progress": self.progress.to_dict(),
            "position": self.position.to_dict(),
            "events": [e.to_dict() for e in self.events],
        }


@dataclass(frozen=True)
class PageResult:
    """
    Outcome of one `distribute_page` call.

    `plan` is None for a duplicate page; `progress` is the vault's Progress
    after the call (unchanged for a duplicate).
    """

    vault: str
    day_id: int
    page_index: int
    duplicate: bool
    progress: Progress
    plan: Optional[PagePlan] = None
    events: Tuple[HonoraryEvent, ...] = field(default_factory=tuple)

    @property
    def paid_total(self) -> int:
        return 0 if self.plan is None else self.plan.paid_total

    @property
    def day_closed(self) -> bool:
        return self.plan is not None and self.plan.is_final

    def to_dict(self) -> Dict[str, Any]:
        return {
            "vault": self.vault,
            "day_id": self.day_id,
            "page_index": self.page_index,
            "duplicate": self.duplicate,
            "paid_total": self.paid_total,
            "day_closed": self.day_closed,
            "plan": None if self.plan is None else self.plan.to_dict(),
            "progress": self.progress.to_dict(),
            "events": [e.to_dict() for e in self.events],
        }


def _coerce_investor(item: InvestorInput) -> InvestorRecord:
    if isinstance(item, InvestorRecord):
        return item
    if isinstance(item, Mapping):
        return InvestorRecord.from_dict(item)
    raise InvalidInvestorRecord(f"unsupported investor entry type {type(item).__name__}")


# ────────────────────────────────────────────────────────────────────────────────
# Engine
# ────────────────────────────────────────────────────────────────────────────────


class DistributionEngine:
    """
    Owns the distribution state machine for any number of vaults.

    Args:
        store: where Policy / Progress / HonoraryPosition records live.
        custody: token balances; the vault treasury pays out of it.
        claimer: moves accrued position fees into custody.
        pools: pool/position lookups used by `initialize`; defaults to
               `claimer` when it also implements PoolDirectory.
        config: engine configuration (day length, page capacity, ...).
        clock: returns the current UNIX time in seconds.
    """

    def __init__(
        self,
        *,
        store: VaultStore,
        custody: CustodyLedger,
        claimer: FeeClaimer,
        pools: Optional[PoolDirectory] = None,
        config: Optional[EngineConfig] = None,
        clock: Optional[Callable[[], int]] = None,
    ) -> None:
        self.store = store
        self.custody = custody
        self.claimer = claimer
        if pools is None and isinstance(claimer, PoolDirectory):
            pools = claimer
        self.pools = pools
        self.config = config or EngineConfig()
        self.config.validate()
        self._clock = clock or (lambda: int(time.time()))
        self._lock = threading.RLock()

    # ------------------------------ helpers ------------------------------ #

    def treasury_account(self, vault: str) -> str:
        return self.config.treasury_account(vault)

    def _now(self, now: Optional[int]) -> int:
        return int(self._clock() if now is None else now)

    def _participants(self) -> List[Any]:
        out: List[Any] = []
        for obj in (self.store, self.custody, self.claimer):
            if hasattr(obj, "snapshot") and hasattr(obj, "restore") and all(o is not obj for o in out):
                out.append(obj)
        return out

    @contextmanager
    def _unit_of_work(self, vault: str, op: str) -> Iterator[None]:
        with self._lock:
            participants = self._participants()
            snaps = [(p, p.snapshot()) for p in participants]
            try:
                yield
            except Exception as e:
                for p, snap in reversed(snaps):
                    p.restore(snap)
                code = e.code if isinstance(e, HonoraryFeeError) else type(e).__name__
                metrics.record_rejected(code)
                log.info("engine: %s rejected for vault=%s: %s", op, vault, e)
                raise

    # ------------------------------ reads ------------------------------ #

    def get_policy(self, vault: str) -> Policy:
        return load_vault(self.store, vault)[0]

    def get_progress(self, vault: str) -> Progress:
        return load_vault(self.store, vault)[1]

    def get_position(self, vault: str) -> HonoraryPosition:
        return load_vault(self.store, vault)[2]

    def status(self, vault: str) -> Dict[str, Any]:
        with self._lock:
            policy, progress, position = load_vault(self.store, vault)
            treasury = position.owner
            quote = self.custody.balance(treasury, position.quote_mint)
            base = self.custody.balance(treasury, position.base_mint)
        return {
            "policy": policy.to_dict(),
            "progress": progress.to_dict(),
            "position": position.to_dict(),
            "treasury": {
                "account": treasury,
                "quote": quote,
                "base": base,
            },
            "next_opening_ts": next_opening_ts(progress, self.config.seconds_per_day),
        }

    # ------------------------------ initialize ------------------------------ #

    def initialize(
        self,
        *,
        vault: str,
        pool: str,
        position: str,
        quote_mint: str,
        creator: str,
        investor_fee_share_bps: int,
        daily_cap: Optional[int] = None,
        min_payout: int = 0,
        y0: int = 0,
        tick_lower: Optional[int] = None,
        tick_upper: Optional[int] = None,
        now: Optional[int] = None,
    ) -> InitResult:
        """
        Bind `vault` to its honorary position and write its Policy and Progress.

        Ticks default to the position's own range; when given they must match it.
        Nothing is written unless every check passes.
        """
        ts = self._now(now)
        with self._unit_of_work(vault, "initialize"):
            if self.store.load_policy(vault) is not None:
                raise AlreadyInitialized(vault=vault)

            policy = Policy(
                vault=vault,
                pool=pool,
                quote_mint=quote_mint,
                creator=creator,
                investor_fee_share_bps=investor_fee_share_bps,
                daily_cap=daily_cap,
                min_payout=min_payout,
                y0=y0,
            )
            if tick_lower is not None and tick_upper is not None and tick_lower >= tick_upper:
                raise InvalidTickRange(tick_lower=tick_lower, tick_upper=tick_upper)

            base_mint = self._check_pool(pool, quote_mint)
            info = self._check_position(vault, pool, position)

            lo = info.tick_lower if tick_lower is None else tick_lower
            hi = info.tick_upper if tick_upper is None else tick_upper
            if (lo, hi) != (info.tick_lower, info.tick_upper):
                raise InvalidPosition(
                    "tick range does not match the position",
                    details={
                        "position": position,
                        "expected": [info.tick_lower, info.tick_upper],
                        "got": [lo, hi],
                    },
                )
            honorary = HonoraryPosition(
                pool=pool,
                position=position,
                owner=info.owner,
                quote_mint=quote_mint,
                base_mint=base_mint,
                tick_lower=lo,
                tick_upper=hi,
            )
            progress = Progress.initial(vault, capacity=self.config.max_pages)
            self.store.save(vault, policy=policy, progress=progress, position=honorary)

            ev = HonoraryPositionInitialized(
                ts=ts,
                vault=vault,
                pool=pool,
                position=position,
                owner=info.owner,
                quote_mint=quote_mint,
                tick_lower=lo,
                tick_upper=hi,
            )
            log.info(
                "engine: initialized vault=%s pool=%s position=%s bps=%d cap=%s min_payout=%d y0=%d",
                vault,
                pool,
                position,
                policy.investor_fee_share_bps,
                policy.daily_cap,
                policy.min_payout,
                policy.y0,
            )
            return InitResult(policy=policy, progress=progress, position=honorary, events=(ev,))

    def _check_pool(self, pool: str, quote_mint: str) -> str:
        mints = self.pools.pool_mints(pool) if self.pools is not None else None
        if mints is None:
            raise InvalidPoolTokenOrder("pool mints could not be determined", details={"pool": pool})
        base, quote = mints
        if not base or not quote or base == quote:
            raise InvalidPoolTokenOrder(
                "pool does not identify a single quote mint",
                details={"pool": pool, "base_mint": base, "quote_mint": quote},
            )
        if quote != quote_mint:
            raise InvalidQuoteMint(
                "quote mint does not match the pool's quote mint",
                details={"pool": pool, "expected": quote, "got": quote_mint},
            )
        return base

    def _check_position(self, vault: str, pool: str, position: str):
        info = self.pools.position_info(position) if self.pools is not None else None
        if info is None:
            raise InvalidPosition("position not found", details={"position": position})
        if info.pool != pool:
            raise InvalidPosition(
                "position belongs to another pool",
                details={"position": position, "pool": pool, "position_pool": info.pool},
            )
        treasury = self.treasury_account(vault)
        if info.owner != treasury:
            raise InvalidPosition(
                "position is not owned by the vault treasury",
                details={"position": position, "owner": info.owner, "expected": treasury},
            )
        if not info.quote_only:
            raise NotQuoteOnly("position may accrue base fees", details={"position": position})
        if info.tick_lower >= info.tick_upper:
            raise InvalidTickRange(tick_lower=info.tick_lower, tick_upper=info.tick_upper)
        return info

    # ------------------------------ distribute ------------------------------ #

    def distribute_page(
        self,
        vault: str,
        page_index: int,
        is_final_page_in_day: bool,
        investors: Sequence[InvestorInput],
        now: Optional[int] = None,
    ) -> PageResult:
        """
        Process one page of investors for the current distribution day.

        Returns the PageResult with the events produced. A page that was already
        processed today succeeds without claiming or transferring anything.
        """
        ts = self._now(now)
        with metrics.time_distribute(), self._unit_of_work(vault, "distribute_page"):
            return self._distribute(vault, int(page_index), bool(is_final_page_in_day), investors, ts)

    def _distribute(
        self,
        vault: str,
        page_index: int,
        is_final: bool,
        investors: Sequence[InvestorInput],
        now: int,
    ) -> PageResult:
        records = [_coerce_investor(i) for i in investors]
        policy, progress, position = load_vault(self.store, vault)

        gate = check_gate(
            progress,
            now,
            seconds_per_day=self.config.seconds_per_day,
            keep_carry=self.config.rollover_carry == "carry",
        )
        prog = gate.progress

        if admit_page(prog, page_index) is Admission.DUPLICATE:
            log.debug("engine: vault=%s page %d already processed for day %d", vault, page_index, prog.day_id)
            metrics.record_duplicate()
            summary = InvestorPayoutPage(
                ts=now,
                vault=vault,
                day_id=prog.day_id,
                page_index=page_index,
                paid_total=0,
                investor_count=len(records),
                duplicate=True,
            )
            return PageResult(
                vault=vault,
                day_id=prog.day_id,
                page_index=page_index,
                duplicate=True,
                progress=progress,
                events=(summary,),
            )

        claimed, reported = self._claim(vault, position)
        events: List[HonoraryEvent] = [
            QuoteFeesClaimed(
                ts=now,
                vault=vault,
                day_id=prog.day_id,
                page_index=page_index,
                amount=claimed,
                reported_amount=reported,
            )
        ]

        plan = plan_page(
            policy,
            claimed=claimed,
            investors=records,
            cumulative_distributed_today=prog.cumulative_distributed_today,
            carry_over=prog.carry_over,
            is_final=is_final,
        )

        treasury = position.owner
        for p in plan.payouts:
            self.custody.transfer(treasury, p.destination, position.quote_mint, p.amount, reason="investor_payout")
            events.append(
                InvestorPayout(
                    ts=now,
                    vault=vault,
                    day_id=prog.day_id,
                    page_index=page_index,
                    destination=p.destination,
                    amount=p.amount,
                    stream=p.stream,
                )
            )

        prog = replace(
            prog,
            last_distribution_ts=now,
            cumulative_distributed_today=plan.cumulative_after,
            carry_over=plan.carry_over_after,
            claimed_today=add(prog.claimed_today, claimed),
        )
        prog = mark_processed(prog, page_index)
        events.append(
            InvestorPayoutPage(
                ts=now,
                vault=vault,
                day_id=prog.day_id,
                page_index=page_index,
                paid_total=plan.paid_total,
                investor_count=len(records),
                f_locked_bps=plan.f_locked_bps,
                deferred_total=plan.deferred_total,
            )
        )
        log.debug(
            "engine: vault=%s day=%d page=%d claimed=%d paid=%d deferred=%d carry_over=%d",
            vault,
            prog.day_id,
            page_index,
            claimed,
            plan.paid_total,
            plan.deferred_total,
            prog.carry_over,
        )

        if is_final:
            if plan.remainder > 0:
                self.custody.transfer(
                    treasury, policy.creator, position.quote_mint, plan.remainder, reason="creator_remainder"
                )
            prog = replace(prog, is_closed=True, carry_over=0)
            events.append(
                CreatorPayoutDayClosed(
                    ts=now,
                    vault=vault,
                    day_id=prog.day_id,
                    creator=policy.creator,
                    remainder=plan.remainder,
                    total_investor_payout=prog.cumulative_distributed_today,
                )
            )
            log.info(
                "engine: vault=%s closed day %d: claimed=%d investors=%d creator=%d",
                vault,
                prog.day_id,
                prog.claimed_today,
                prog.cumulative_distributed_today,
                plan.remainder,
            )

        self.store.save(vault, progress=prog)

        if gate.rolled_over:
            log.info("engine: vault=%s opened day %d at ts=%d", vault, prog.day_id, now)
            if gate.discarded_carry:
                log.warning(
                    "engine: vault=%s discarded carry_over=%d from unclosed day %d",
                    vault,
                    gate.discarded_carry,
                    progress.day_id,
                )
            metrics.record_day_opened(gate.discarded_carry)
        metrics.record_page(
            claimed=claimed,
            paid=plan.paid_total,
            payouts=len(plan.payouts),
            deferred=plan.deferred_total,
        )
        if is_final:
            metrics.record_day_closed(plan.remainder)

        return PageResult(
            vault=vault,
            day_id=prog.day_id,
            page_index=page_index,
            duplicate=False,
            progress=prog,
            plan=plan,
            events=tuple(events),
        )

    def _claim(self, vault: str, position: HonoraryPosition) -> Tuple[int, int]:
        """
        Claim position fees into the treasury and return (observed_quote, reported_quote).

        The custody balance deltas are authoritative. Any base movement, observed
        or reported, aborts the call.
        """
        treasury = position.owner
        quote_before = self.custody.balance(treasury, position.quote_mint)
        base_before = self.custody.balance(treasury, position.base_mint)

        reported = self.claimer.claim(position)

        quote_delta = sub(self.custody.balance(treasury, position.quote_mint), quote_before)
        base_delta = self.custody.balance(treasury, position.base_mint) - base_before

        if base_delta != 0 or reported.base != 0:
            log.error(
                "engine: vault=%s base fees observed on claim (observed=%d reported=%d)",
                vault,
                base_delta,
                reported.base,
            )
            raise BaseFeesObserved(base_claimed=max(base_delta, reported.base), vault=vault)
        if reported.quote != quote_delta:
            log.warning(
                "engine: vault=%s claimer reported quote=%d but custody moved %d; using custody delta",
                vault,
                reported.quote,
                quote_delta,
            )
        return quote_delta, reported.quote


__all__ = ["InitResult", "PageResult", "DistributionEngine"]
