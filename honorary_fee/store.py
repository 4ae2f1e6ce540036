from __future__ import annotations
"""
Vault store: persistent Policy / Progress / HonoraryPosition keyed by vault.

Records are kept in their fixed-width binary layouts. `save()` writes every
record it is given as one atomic unit, so the engine can compute a call's new
state first and persist it last.

Two implementations:
- MemoryVaultStore: dict-backed, with snapshot/restore (tests, simulations).
- honorary_fee.adapters.state_db.SQLiteVaultStore: durable, WAL-mode SQLite.
"""

from threading import RLock
from typing import Dict, List, Optional, Protocol, Tuple, runtime_checkable

from .errors import VaultNotFound
from .state.policy import Policy
from .state.position import HonoraryPosition
from .state.progress import Progress

KIND_POLICY = "policy"
KIND_PROGRESS = "progress"
KIND_POSITION = "position"
KINDS = (KIND_POLICY, KIND_PROGRESS, KIND_POSITION)


@runtime_checkable
class VaultStore(Protocol):
    def load_policy(self, vault: str) -> Optional[Policy]: ...

    def load_progress(self, vault: str) -> Optional[Progress]: ...

    def load_position(self, vault: str) -> Optional[HonoraryPosition]: ...

    def save(
        self,
        vault: str,
        *,
        policy: Optional[Policy] = None,
        progress: Optional[Progress] = None,
        position: Optional[HonoraryPosition] = None,
    ) -> None: ...

    def vaults(self) -> List[str]: ...


def encode_records(
    *,
    policy: Optional[Policy] = None,
    progress: Optional[Progress] = None,
    position: Optional[HonoraryPosition] = None,
) -> Dict[str, bytes]:
    out: Dict[str, bytes] = {}
    if policy is not None:
        out[KIND_POLICY] = policy.to_bytes()
    if progress is not None:
        out[KIND_PROGRESS] = progress.to_bytes()
    if position is not None:
        out[KIND_POSITION] = position.to_bytes()
    return out


def load_vault(store: VaultStore, vault: str) -> Tuple[Policy, Progress, HonoraryPosition]:
    """Load all three records of an initialized vault or raise VaultNotFound."""
    policy = store.load_policy(vault)
    progress = store.load_progress(vault)
    position = store.load_position(vault)
    if policy is None or progress is None or position is None:
        raise VaultNotFound(vault=vault)
    return policy, progress, position


class MemoryVaultStore:
    """In-process store of encoded records."""

    def __init__(self) -> None:
        self._rows: Dict[Tuple[str, str], bytes] = {}
        self._lock = RLock()

    def _get(self, vault: str, kind: str) -> Optional[bytes]:
        with self._lock:
            return self._rows.get((vault, kind))

    def load_policy(self, vault: str) -> Optional[Policy]:
        raw = self._get(vault, KIND_POLICY)
        return None if raw is None else Policy.from_bytes(raw)

    def load_progress(self, vault: str) -> Optional[Progress]:
        raw = self._get(vault, KIND_PROGRESS)
        return None if raw is None else Progress.from_bytes(raw)

    def load_position(self, vault: str) -> Optional[HonoraryPosition]:
        raw = self._get(vault, KIND_POSITION)
        return None if raw is None else HonoraryPosition.from_bytes(raw)

    def save(
        self,
        vault: str,
        *,
        policy: Optional[Policy] = None,
        progress: Optional[Progress] = None,
        position: Optional[HonoraryPosition] = None,
    ) -> None:
        blobs = encode_records(policy=policy, progress=progress, position=position)
        with self._lock:
            for kind, blob in blobs.items():
                self._rows[(vault, kind)] = blob

    def vaults(self) -> List[str]:
        with self._lock:
            return sorted({v for (v, kind) in self._rows if kind == KIND_POLICY})

    def raw(self, vault: str, kind: str) -> Optional[bytes]:
        return self._get(vault, kind)

    def snapshot(self) -> Dict[Tuple[str, str], bytes]:
        with self._lock:
            return dict(self._rows)

    def restore(self, snap: Dict[Tuple[str, str], bytes]) -> None:
        with self._lock:
            self._rows = dict(snap)


__all__ = [
    "KIND_POLICY",
    "KIND_PROGRESS",
    "KIND_POSITION",
    "KINDS",
    "VaultStore",
    "encode_records",
    "load_vault",
    "MemoryVaultStore",
]
