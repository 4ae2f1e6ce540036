from __future__ import annotations

"""
honorary_fee.rpc.mount
----------------------

Helpers to mount the distribution RPC surface into an existing FastAPI app
and/or to register the JSON-RPC methods with your dispatcher.

Typical usage (REST):
    from fastapi import FastAPI
    from honorary_fee.rpc.mount import mount_honorary
    app = FastAPI()
    mount_honorary(app, engine, prefix="/honorary")

Typical usage (JSON-RPC):
    from honorary_fee.rpc.mount import register_jsonrpc
    register_jsonrpc(dispatcher, engine)
"""

from typing import Any, Protocol

from .. import metrics
from ..engine import DistributionEngine
from . import HONORARY_OPENAPI_TAG, RPC_PREFIX
from .methods import build_rest_router, make_methods


class _JsonRpcDispatcherLike(Protocol):
    """Minimal protocol to support common JSON-RPC dispatchers."""
    def add(self, method: str, func: Any) -> None: ...
    def register(self, method: str, func: Any) -> None: ...


def mount_honorary(
    app: Any,
    engine: DistributionEngine,
    *,
    prefix: str = RPC_PREFIX,
    with_metrics: bool = False,
) -> None:
    """
    Mount the REST endpoints under `prefix` on a FastAPI app.

    With `with_metrics`, Prometheus metrics are also served at `{prefix}/metrics`.
    """
    router = build_rest_router(engine)
    app.include_router(router, prefix=prefix, tags=[HONORARY_OPENAPI_TAG["name"]])
    if with_metrics:
        metrics.mount_fastapi(app, path=f"{prefix}/metrics")


def register_jsonrpc(dispatcher: _JsonRpcDispatcherLike, engine: DistributionEngine) -> None:
    """
    Register JSON-RPC methods on a dispatcher.

    We try `.add(name, fn)` first and fall back to `.register(name, fn)`.
    """
    for name, fn in make_methods(engine).items():
        try:
            dispatcher.add(name, fn)  # type: ignore[attr-defined]
        except AttributeError:
            dispatcher.register(name, fn)  # type: ignore[attr-defined]


__all__ = ["mount_honorary", "register_jsonrpc"]
