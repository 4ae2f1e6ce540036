from __future__ import annotations
"""
honorary_fee - distribution engine for an honorary (fee-only) liquidity position.

The package splits the quote-unit fees earned by a single fee-only position
between token-locked investors and a creator wallet, one 24h day at a time,
processed as bounded pages of investors. Submodules are lazily imported to
keep import time minimal.

Public surface (lazily loaded):
- config, errors, events, metrics
- state, economics, adapters, store, engine
- rpc, cli
"""


from typing import List

from .version import __version__

__all__: List[str] = [
    "__version__",
    # lazily importable subpackages/modules
    "config",
    "errors",
    "events",
    "metrics",
    "state",
    "economics",
    "adapters",
    "store",
    "engine",
    "rpc",
    "cli",
]

# --- Lazy module loader (PEP 562) -------------------------------------------------
import importlib


_lazy_modules = set(__all__) - {"__version__"}


def __getattr__(name: str):
    if name in _lazy_modules:
        return importlib.import_module(f".{name}", __name__)
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")


def __dir__():
    return sorted(set(globals().keys()) | _lazy_modules)


def get_version() -> str:
    """Return the honorary_fee package version string."""
    return __version__
