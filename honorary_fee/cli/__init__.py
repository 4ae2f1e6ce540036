from __future__ import annotations
"""
honorary_fee.cli
================

Typer application (`main.app`) and the scenario replayer (`simulate`).
Run with `python -m honorary_fee` or the `honorary-fee` console script.
"""

from .main import app, main

__all__ = ["app", "main"]
