from __future__ import annotations

"""
honorary_fee.rpc
----------------

RPC surface of the distribution engine: JSON-RPC style callables
(`methods.make_methods`) and a FastAPI router that exposes the same
operations over REST (`mount.mount_honorary`).
"""

from typing import Dict, Final

# Base path under which the endpoints are mounted into a host API.
RPC_PREFIX: Final[str] = "/honorary"

# Suggested OpenAPI tag used by route modules in this package.
HONORARY_OPENAPI_TAG: Final[Dict[str, str]] = {
    "name": "honorary",
    "description": "Honorary position fee distribution: vault state and page cranks.",
}

__all__ = [
    "RPC_PREFIX",
    "HONORARY_OPENAPI_TAG",
]
