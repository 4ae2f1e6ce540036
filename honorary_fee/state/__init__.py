from __future__ import annotations
"""
honorary_fee.state
==================

Persistent records of one vault (Policy, Progress, HonoraryPosition) and the
ephemeral per-call InvestorRecord. Records are frozen dataclasses; the engine
derives new values with `dataclasses.replace` and persists them only when a
call succeeds. Each persistent record has a fixed-width binary layout
(`to_bytes` / `from_bytes`) used by the vault stores.
"""

from .investor import InvestorRecord
from .policy import Policy
from .position import HonoraryPosition
from .progress import PageBitmap, Progress

__all__ = ["InvestorRecord", "Policy", "HonoraryPosition", "PageBitmap", "Progress"]
