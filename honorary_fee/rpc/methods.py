from __future__ import annotations

"""
honorary_fee.rpc.methods
------------------------

JSON-RPC style method implementations for the distribution engine.

Exposed methods (bind via `make_methods`):
  • honorary.getPolicy
  • honorary.getProgress
  • honorary.getPosition
  • honorary.getStatus
  • honorary.distributePage

Design:
  - Transport-agnostic: `make_methods` returns a dict of callables a JSON-RPC
    dispatcher can register. `build_rest_router` exposes the same callables
    via FastAPI REST.
  - Callables take keyword arguments with camelCase names and return plain
    JSON-serializable structures. Engine errors propagate as HonoraryFeeError.
  - Callers never choose the time: the day gate runs on the engine's clock.

Usage:
    from honorary_fee.rpc.methods import make_methods
    methods = make_methods(engine)
    dispatcher.register_many(methods)
"""

from typing import Any, Callable, Dict, List, Mapping, Optional

from ..engine import DistributionEngine
from ..errors import HonoraryFeeError, InvalidInvestorRecord, VaultNotFound

# ---- Helpers ---------------------------------------------------------------


class InvalidParams(HonoraryFeeError):
    """A request parameter is missing or malformed."""
    code = "HONORARY_INVALID_PARAMS"


def _coerce_int(value: Any, name: str) -> int:
    try:
        iv = int(value)
    except (TypeError, ValueError) as e:
        raise InvalidParams(f"invalid {name}: must be a non-negative integer") from e
    if iv < 0:
        raise InvalidParams(f"invalid {name}: must be a non-negative integer")
    return iv


def _require(value: Optional[str], name: str) -> str:
    if not value:
        raise InvalidParams(f"{name} is required")
    return value


def _investors(value: Any) -> List[Mapping[str, Any]]:
    if value is None:
        return []
    if not isinstance(value, list) or not all(isinstance(i, Mapping) for i in value):
        raise InvalidInvestorRecord("investors must be a list of objects")
    out = []
    for item in value:
        d = dict(item)
        if "lockedAmount" in d and "locked_amount" not in d:
            d["locked_amount"] = d.pop("lockedAmount")
        out.append(d)
    return out


# ---- JSON-RPC method factory ----------------------------------------------


def make_methods(engine: DistributionEngine) -> Dict[str, Callable[..., Any]]:
    """
    Build a mapping of JSON-RPC method name -> callable.
    Each callable returns plain JSON-serializable structures.
    """

    def honorary_get_policy(*, vault: str) -> Dict[str, Any]:
        return engine.get_policy(_require(vault, "vault")).to_dict()

    def honorary_get_progress(*, vault: str) -> Dict[str, Any]:
        return engine.get_progress(_require(vault, "vault")).to_dict()

    def honorary_get_position(*, vault: str) -> Dict[str, Any]:
        return engine.get_position(_require(vault, "vault")).to_dict()

    def honorary_get_status(*, vault: str) -> Dict[str, Any]:
        return engine.status(_require(vault, "vault"))

    def honorary_distribute_page(
        *,
        vault: str,
        pageIndex: int,
        isFinalPageInDay: bool = False,
        investors: Optional[List[Mapping[str, Any]]] = None,
    ) -> Dict[str, Any]:
        res = engine.distribute_page(
            _require(vault, "vault"),
            _coerce_int(pageIndex, "pageIndex"),
            bool(isFinalPageInDay),
            _investors(investors),
        )
        return res.to_dict()

    # Map JSON-RPC names → callables
    return {
        "honorary.getPolicy": honorary_get_policy,
        "honorary.getProgress": honorary_get_progress,
        "honorary.getPosition": honorary_get_position,
        "honorary.getStatus": honorary_get_status,
        "honorary.distributePage": honorary_distribute_page,
    }


# ---- REST adapter (FastAPI) ------------------------------------------------


def build_rest_router(engine: DistributionEngine):
    """
    Return a FastAPI APIRouter exposing the methods over REST.
    Mount path suggestion: RPC_PREFIX (see honorary_fee.rpc).
    """
    from fastapi import APIRouter, Body, HTTPException

    router = APIRouter()
    methods = make_methods(engine)

    def _call(name: str, **kwargs: Any) -> Any:
        try:
            return methods[name](**kwargs)
        except VaultNotFound as e:
            raise HTTPException(status_code=404, detail=e.to_dict()) from e
        except HonoraryFeeError as e:
            raise HTTPException(status_code=400, detail=e.to_dict()) from e

    @router.get("/vaults/{vault}/policy")
    def http_get_policy(vault: str):
        return _call("honorary.getPolicy", vault=vault)

    @router.get("/vaults/{vault}/progress")
    def http_get_progress(vault: str):
        return _call("honorary.getProgress", vault=vault)

    @router.get("/vaults/{vault}/position")
    def http_get_position(vault: str):
        return _call("honorary.getPosition", vault=vault)

    @router.get("/vaults/{vault}/status")
    def http_get_status(vault: str):
        return _call("honorary.getStatus", vault=vault)

    @router.post("/vaults/{vault}/pages/{page_index}")
    def http_distribute_page(vault: str, page_index: int, payload: Dict[str, Any] = Body(default={})):
        return _call(
            "honorary.distributePage",
            vault=vault,
            pageIndex=page_index,
            isFinalPageInDay=payload.get("isFinalPageInDay", False),
            investors=payload.get("investors"),
        )

    return router


__all__ = ["InvalidParams", "make_methods", "build_rest_router"]
