from __future__ import annotations

"""
honorary_fee.cli.simulate
-------------------------

Replay a scripted scenario against the in-memory AMM, lock oracle and custody
ledger. Used by `honorary-fee simulate` and by the tests.

Scenario format (JSON or YAML)
------------------------------
    vault: vault-1
    pool: {id: pool-1, base_mint: BASE, quote_mint: USDC}
    position: {tick_lower: -100, tick_upper: 100, quote_only: true}
    policy:
      creator: creator
      investor_fee_share_bps: 5000
      daily_cap: null
      min_payout: 0
      y0: 1000000
    streams: {s1: 300000, s2: 100000}        # stream -> locked amount
    investors:                               # default page contents
      - {destination: alice, stream: s1}
      - {destination: bob, stream: s2}
    steps:
      - accrue: {quote: 1000}
      - crank: {page: 0, final: true, now: 86400}
      - lock: {stream: s1, amount: 150000}
      - crank: {page: 0, final: true, now: 172800, investors: [...]}

A crank's `investors` entries either name a `stream` (resolved through the
oracle) or give `locked_amount` directly. Failed cranks are recorded as
errors and the replay continues.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional, Sequence

from ..adapters.amm import InMemoryAmm
from ..adapters.custody import CustodyLedger
from ..adapters.locks import InMemoryLockOracle
from ..config import EngineConfig
from ..engine import DistributionEngine, PageResult
from ..errors import HonoraryFeeError
from ..state.investor import InvestorRecord
from ..store import MemoryVaultStore, VaultStore


class ScenarioError(ValueError):
    """The scenario document is malformed."""


@dataclass
class DaySummary:
    day_id: int
    claimed: int
    investors: int
    creator: int
    carry_over_after_close: int

    @property
    def conserved(self) -> bool:
        return self.investors + self.creator + self.carry_over_after_close == self.claimed

    def to_dict(self) -> Dict[str, Any]:
        return {
            "day_id": self.day_id,
            "claimed": self.claimed,
            "investors": self.investors,
            "creator": self.creator,
            "carry_over_after_close": self.carry_over_after_close,
            "conserved": self.conserved,
        }


@dataclass
class ScenarioReport:
    records: List[Dict[str, Any]] = field(default_factory=list)
    days: List[DaySummary] = field(default_factory=list)
    errors: int = 0

    @property
    def conserved(self) -> bool:
        return all(d.conserved for d in self.days)


def _section(doc: Mapping[str, Any], key: str) -> Mapping[str, Any]:
    val = doc.get(key)
    if not isinstance(val, Mapping):
        raise ScenarioError(f"scenario.{key} must be a mapping")
    return val


def _resolve(entries: Sequence[Mapping[str, Any]], oracle: InMemoryLockOracle) -> List[InvestorRecord]:
    out: List[InvestorRecord] = []
    for e in entries:
        if "stream" in e and "locked_amount" not in e:
            stream = str(e["stream"])
            out.append(InvestorRecord(str(e["destination"]), oracle.lookup(stream), stream))
        else:
            out.append(InvestorRecord.from_dict(e))
    return out


def run_scenario(
    doc: Mapping[str, Any],
    *,
    config: Optional[EngineConfig] = None,
    store: Optional[VaultStore] = None,
) -> ScenarioReport:
    cfg = config or EngineConfig()
    vault = str(doc.get("vault", "vault-1"))
    pool = _section(doc, "pool")
    pos = doc.get("position") or {}
    policy = _section(doc, "policy")

    custody = CustodyLedger()
    amm = InMemoryAmm(custody)
    oracle = InMemoryLockOracle()
    engine = DistributionEngine(
        store=store or MemoryVaultStore(), custody=custody, claimer=amm, config=cfg
    )

    pool_id = str(pool.get("id", "pool-1"))
    amm.init_pool(pool_id, base_mint=str(pool["base_mint"]), quote_mint=str(pool["quote_mint"]))
    position = amm.create_position(
        pool_id,
        engine.treasury_account(vault),
        tick_lower=int(pos.get("tick_lower", -100)),
        tick_upper=int(pos.get("tick_upper", 100)),
        quote_only=bool(pos.get("quote_only", True)),
    )
    for stream, amount in (doc.get("streams") or {}).items():
        oracle.set_locked_amount(str(stream), int(amount))

    report = ScenarioReport()
    init = engine.initialize(
        vault=vault,
        pool=pool_id,
        position=position,
        quote_mint=str(pool["quote_mint"]),
        creator=str(policy["creator"]),
        investor_fee_share_bps=int(policy["investor_fee_share_bps"]),
        daily_cap=None if policy.get("daily_cap") is None else int(policy["daily_cap"]),
        min_payout=int(policy.get("min_payout", 0)),
        y0=int(policy.get("y0", 0)),
        now=int(doc.get("start", 0)),
    )
    report.records.extend(e.to_dict() for e in init.events)

    default_investors = list(doc.get("investors") or [])
    for i, step in enumerate(doc.get("steps") or []):
        if not isinstance(step, Mapping) or len(step) != 1:
            raise ScenarioError(f"step {i} must be a mapping with exactly one action")
        (action, args), = step.items()
        args = args or {}
        if not isinstance(args, Mapping):
            raise ScenarioError(f"step {i}: {action} arguments must be a mapping")
        if action == "accrue":
            amm.accrue_fees(position, base=int(args.get("base", 0)), quote=int(args.get("quote", 0)))
        elif action == "lock":
            stream = str(_need(args, "stream", i, action))
            oracle.set_locked_amount(stream, int(_need(args, "amount", i, action)))
        elif action == "crank":
            now = int(_need(args, "now", i, action))
            try:
                investors = _resolve(args.get("investors", default_investors), oracle)
                res = engine.distribute_page(
                    vault,
                    int(args.get("page", 0)),
                    bool(args.get("final", False)),
                    investors,
                    now=now,
                )
            except HonoraryFeeError as e:
                report.errors += 1
                report.records.append({"step": i, "error": e.to_dict()})
                continue
            report.records.extend(e.to_dict() for e in res.events)
            if res.day_closed:
                report.days.append(_summarize(res))
        else:
            raise ScenarioError(f"step {i}: unknown action {action!r}")
    return report


def _need(args: Mapping[str, Any], key: str, i: int, action: str) -> Any:
    if key not in args:
        raise ScenarioError(f"step {i}: {action} requires '{key}'")
    return args[key]


def _summarize(res: PageResult) -> DaySummary:
    if res.plan is None:
        raise ScenarioError(f"day {res.progress.day_id} closed without a page plan")
    prog = res.progress
    return DaySummary(
        day_id=prog.day_id,
        claimed=prog.claimed_today,
        investors=prog.cumulative_distributed_today,
        creator=res.plan.remainder,
        carry_over_after_close=prog.carry_over,
    )


__all__ = ["ScenarioError", "DaySummary", "ScenarioReport", "run_scenario"]
