from __future__ import annotations
"""
honorary_fee.config: configuration for the distribution engine

Covers:
- Day length used by the day gate (seconds; 86400 in production)
- Capacity of the per-day processed-page bitmap
- What happens to an undistributed carry-over when a new day opens
- Storage location for the SQLite vault store
- Logging level used by the CLI
- Naming prefix of the engine's custody (treasury) accounts

Environment overrides (all optional; sensible defaults provided):

  HONORARY_FEE_SECONDS_PER_DAY=86400
  HONORARY_FEE_MAX_PAGES=512
  HONORARY_FEE_ROLLOVER_CARRY=reset        # reset | carry
  HONORARY_FEE_DB_PATH=honorary_fee.db
  HONORARY_FEE_LOG_LEVEL=INFO
  HONORARY_FEE_TREASURY_PREFIX=treasury

You can also load from a JSON or YAML file via
`HONORARY_FEE_CONFIG_FILE=/path/to/config.(json|yaml|yml)`.
File values override defaults; environment overrides the file.
"""


from dataclasses import dataclass, asdict, replace
from typing import Any, Dict, Optional
import json
import os
from pathlib import Path

import yaml


SECONDS_PER_DAY = 86_400
MAX_PAGES = 512
ROLLOVER_MODES = ("reset", "carry")
_LOG_LEVELS = ("CRITICAL", "ERROR", "WARNING", "INFO", "DEBUG")


@dataclass(frozen=True)
class EngineConfig:
    """Top-level configuration container."""
    seconds_per_day: int = SECONDS_PER_DAY
    max_pages: int = MAX_PAGES               # bitmap capacity; multiple of 8
    rollover_carry: str = "reset"            # "reset" | "carry"
    db_path: str = "honorary_fee.db"
    log_level: str = "INFO"
    treasury_prefix: str = "treasury"

    def validate(self) -> None:
        if self.seconds_per_day <= 0:
            raise ValueError(f"seconds_per_day must be positive (got {self.seconds_per_day}).")
        if self.max_pages <= 0 or self.max_pages % 8 != 0:
            raise ValueError(f"max_pages must be a positive multiple of 8 (got {self.max_pages}).")
        if self.rollover_carry not in ROLLOVER_MODES:
            raise ValueError(
                f"rollover_carry must be one of {ROLLOVER_MODES} (got {self.rollover_carry!r})."
            )
        if self.log_level.upper() not in _LOG_LEVELS:
            raise ValueError(f"log_level must be one of {_LOG_LEVELS} (got {self.log_level!r}).")
        if not self.treasury_prefix:
            raise ValueError("treasury_prefix must be non-empty.")

    def treasury_account(self, vault: str) -> str:
        """Custody account that holds a vault's claimed fees."""
        return f"{self.treasury_prefix}:{vault}"

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


# -------------------------- Loaders --------------------------


def _getenv_int(name: str, default: int) -> int:
    v = os.getenv(name)
    if v is None or v == "":
        return default
    try:
        return int(str(v).replace("_", ""))
    except ValueError as e:
        raise ValueError(f"Invalid int for {name}: {v!r}") from e


def _getenv_str(name: str, default: str) -> str:
    v = os.getenv(name)
    if v is None or v == "":
        return default
    return v


def from_env(base: Optional[EngineConfig] = None, prefix: str = "HONORARY_FEE_") -> EngineConfig:
    """
    Build an EngineConfig from environment variables, optionally layering on top of `base`.
    """
    cfg = base or EngineConfig()
    new_cfg = EngineConfig(
        seconds_per_day=_getenv_int(f"{prefix}SECONDS_PER_DAY", cfg.seconds_per_day),
        max_pages=_getenv_int(f"{prefix}MAX_PAGES", cfg.max_pages),
        rollover_carry=_getenv_str(f"{prefix}ROLLOVER_CARRY", cfg.rollover_carry).lower(),
        db_path=_getenv_str(f"{prefix}DB_PATH", cfg.db_path),
        log_level=_getenv_str(f"{prefix}LOG_LEVEL", cfg.log_level).upper(),
        treasury_prefix=_getenv_str(f"{prefix}TREASURY_PREFIX", cfg.treasury_prefix),
    )
    new_cfg.validate()
    return new_cfg


def from_file(path: str | os.PathLike[str]) -> EngineConfig:
    """
    Load configuration from a JSON or YAML file. Unknown keys are rejected.
    """
    p = Path(path)
    if not p.exists():
        raise FileNotFoundError(p)

    text = p.read_text(encoding="utf-8")
    if p.suffix.lower() in (".yaml", ".yml"):
        data = yaml.safe_load(text) or {}
    else:
        data = json.loads(text or "{}")
    if not isinstance(data, dict):
        raise ValueError(f"config file {p} must contain a mapping")

    known = set(EngineConfig.__dataclass_fields__)
    unknown = sorted(set(data) - known)
    if unknown:
        raise ValueError(f"unknown config keys in {p}: {', '.join(unknown)}")

    cfg = replace(EngineConfig(), **data)
    cfg.validate()
    return cfg


def load() -> EngineConfig:
    """
    Load configuration using the following precedence:
      1) File at $HONORARY_FEE_CONFIG_FILE (JSON/YAML)
      2) Environment variables (HONORARY_FEE_*), applied on top of defaults or file values
    """
    file_path = os.getenv("HONORARY_FEE_CONFIG_FILE")
    base = from_file(file_path) if file_path else EngineConfig()
    return from_env(base=base)


# -------------------------- Utilities --------------------------


def pretty(cfg: Optional[EngineConfig] = None) -> str:
    """Return a human-readable JSON string of the current config."""
    obj = (cfg or load()).to_dict()
    return json.dumps(obj, indent=2, sort_keys=True)


__all__ = [
    "SECONDS_PER_DAY",
    "MAX_PAGES",
    "ROLLOVER_MODES",
    "EngineConfig",
    "from_env",
    "from_file",
    "load",
    "pretty",
]
