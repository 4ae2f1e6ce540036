from __future__ import annotations

"""
Prometheus metrics for the honorary fee distribution engine.

We expose counters and a histogram covering:
- pages: processed, duplicate no-ops, rejected calls by error code
- amounts: quote claimed, paid to investors, deferred as dust, paid to creators
- days: opened, closed, carry-over discarded by a rollover
- latency: wall time of distribute_page

Amounts are counted in quote base units. This module can be mounted into a
FastAPI app via the helper at the bottom.
"""


import time
from contextlib import contextmanager
from typing import Optional

from prometheus_client import (CONTENT_TYPE_LATEST, CollectorRegistry, Counter,
                               Histogram, generate_latest)

# Use a dedicated registry so embedding apps can choose to merge or expose it directly.
REGISTRY = CollectorRegistry()

# ────────────────────────────────────────────────────────────────────────────────
# Label conventions
#   code: HonoraryFeeError.code of a rejected call (e.g. "HONORARY_DAY_GATE_NOT_OPEN")
# ────────────────────────────────────────────────────────────────────────────────

PAGES_PROCESSED = Counter(
    "honorary_fee_pages_processed_total",
    "Distribution pages fully processed.",
    registry=REGISTRY,
)

PAGES_DUPLICATE = Counter(
    "honorary_fee_pages_duplicate_total",
    "Distribution calls for an already-processed page (no-op).",
    registry=REGISTRY,
)

CALLS_REJECTED = Counter(
    "honorary_fee_calls_rejected_total",
    "Engine calls that failed and were rolled back, by error code.",
    labelnames=("code",),
    registry=REGISTRY,
)

QUOTE_CLAIMED = Counter(
    "honorary_fee_quote_claimed_units_total",
    "Quote units claimed from honorary positions.",
    registry=REGISTRY,
)

INVESTOR_PAYOUTS = Counter(
    "honorary_fee_investor_payouts_total",
    "Individual investor transfers made.",
    registry=REGISTRY,
)

INVESTOR_PAID = Counter(
    "honorary_fee_investor_paid_units_total",
    "Quote units transferred to investors.",
    registry=REGISTRY,
)

DUST_DEFERRED = Counter(
    "honorary_fee_dust_deferred_units_total",
    "Quote units withheld because a payout fell below min_payout.",
    registry=REGISTRY,
)

CREATOR_PAID = Counter(
    "honorary_fee_creator_paid_units_total",
    "Quote units transferred to creators at day close.",
    registry=REGISTRY,
)

DAYS_OPENED = Counter(
    "honorary_fee_days_opened_total",
    "Distribution days opened by the day gate.",
    registry=REGISTRY,
)

DAYS_CLOSED = Counter(
    "honorary_fee_days_closed_total",
    "Distribution days closed by a final page.",
    registry=REGISTRY,
)

CARRY_DISCARDED = Counter(
    "honorary_fee_carry_over_discarded_units_total",
    "Carry-over dropped when a day rolled over without having been closed.",
    registry=REGISTRY,
)

_LATENCY_BUCKETS = (0.0005, 0.001, 0.0025, 0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5)

DISTRIBUTE_SECONDS = Histogram(
    "honorary_fee_distribute_page_seconds",
    "Wall time spent in distribute_page (successful or not).",
    buckets=_LATENCY_BUCKETS,
    registry=REGISTRY,
)

# ────────────────────────────────────────────────────────────────────────────────
# Recording helpers
# ────────────────────────────────────────────────────────────────────────────────


def record_page(*, claimed: int, paid: int, payouts: int, deferred: int) -> None:
    """Record one processed page."""
    PAGES_PROCESSED.inc()
    if claimed > 0:
        QUOTE_CLAIMED.inc(claimed)
    if paid > 0:
        INVESTOR_PAID.inc(paid)
    if payouts > 0:
        INVESTOR_PAYOUTS.inc(payouts)
    if deferred > 0:
        DUST_DEFERRED.inc(deferred)


def record_duplicate() -> None:
    PAGES_DUPLICATE.inc()


def record_rejected(code: str) -> None:
    CALLS_REJECTED.labels(code=code).inc()


def record_day_opened(discarded_carry: int = 0) -> None:
    DAYS_OPENED.inc()
    if discarded_carry > 0:
        CARRY_DISCARDED.inc(discarded_carry)


def record_day_closed(remainder: int) -> None:
    DAYS_CLOSED.inc()
    if remainder > 0:
        CREATOR_PAID.inc(remainder)


@contextmanager
def time_distribute():
    """Context manager to observe distribute_page latency."""
    start = time.perf_counter()
    try:
        yield
    finally:
        DISTRIBUTE_SECONDS.observe(time.perf_counter() - start)


# ────────────────────────────────────────────────────────────────────────────────
# FastAPI mounting helper
# ────────────────────────────────────────────────────────────────────────────────


def mount_fastapi(app, path: str = "/metrics", registry: Optional[CollectorRegistry] = None) -> None:
    """
    Mount a GET {path} endpoint on a FastAPI app to serve metrics.

    Usage:
        from fastapi import FastAPI
        from honorary_fee.metrics import mount_fastapi
        app = FastAPI()
        mount_fastapi(app)
    """
    from fastapi import Response

    reg = registry or REGISTRY

    @app.get(path)
    def _metrics():
        return Response(generate_latest(reg), media_type=CONTENT_TYPE_LATEST)


__all__ = [
    "REGISTRY",
    "PAGES_PROCESSED",
    "PAGES_DUPLICATE",
    "CALLS_REJECTED",
    "QUOTE_CLAIMED",
    "INVESTOR_PAYOUTS",
    "INVESTOR_PAID",
    "DUST_DEFERRED",
    "CREATOR_PAID",
    "DAYS_OPENED",
    "DAYS_CLOSED",
    "CARRY_DISCARDED",
    "DISTRIBUTE_SECONDS",
    "record_page",
    "record_duplicate",
    "record_rejected",
    "record_day_opened",
    "record_day_closed",
    "time_distribute",
    "mount_fastapi",
]
