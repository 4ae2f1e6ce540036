from __future__ import annotations

"""
honorary_fee.version: package version.

HONORARY_FEE_VERSION in the environment overrides everything. Otherwise the
release number is BASE_VERSION, and a checkout adds a PEP 440 local segment
built from `git describe`:

    0.1.0                      (no git, or not a checkout)
    0.1.0+git.0.1.0.3.gabc1234 (tag v0.1.0, 3 commits ahead)
    0.1.0+gabc1234.dirty       (untagged, uncommitted changes)
"""


import os
import re
import subprocess
from typing import Optional

BASE_VERSION = "0.1.0"

_DESCRIBE = ("git", "describe", "--tags", "--dirty", "--always", "--abbrev=7")
_NOT_LOCAL = re.compile(r"[^a-zA-Z0-9]+")


def _git_describe() -> Optional[str]:
    here = os.path.dirname(os.path.abspath(__file__))
    try:
        raw = subprocess.check_output(_DESCRIBE, stderr=subprocess.DEVNULL, cwd=here)
    except (OSError, subprocess.CalledProcessError):
        return None
    return raw.decode("utf-8", "replace").strip() or None


def local_segment(describe: str) -> str:
    """Map a `git describe` string onto the characters a local version allows."""
    seg = describe[1:] if re.match(r"v\d", describe) else describe
    seg = _NOT_LOCAL.sub(".", seg).strip(".")
    return seg if seg.lower().startswith(("git.", "g")) else f"git.{seg}"


def build_version() -> str:
    override = os.getenv("HONORARY_FEE_VERSION")
    if override:
        return override
    desc = _git_describe()
    return f"{BASE_VERSION}+{local_segment(desc)}" if desc else BASE_VERSION


__version__ = build_version()


__all__ = ["__version__", "build_version", "local_segment", "BASE_VERSION"]
