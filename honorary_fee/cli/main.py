from __future__ import annotations

"""
honorary_fee.cli.main
---------------------

Operator CLI for the honorary fee distribution engine.

Examples
--------
# Effective configuration (defaults <- $HONORARY_FEE_CONFIG_FILE <- env)
python -m honorary_fee config

# Persisted Policy/Progress of a vault in the SQLite store
python -m honorary_fee status --vault vault-1 --db honorary_fee.db

# Replay a scenario and print events as JSON lines
python -m honorary_fee simulate scenario.yaml
"""

import json
import logging
from pathlib import Path
from typing import Any, Optional

import typer
import yaml

from .. import config as config_mod
from ..adapters.state_db import SQLiteVaultStore
from ..errors import HonoraryFeeError
from ..store import load_vault
from ..version import __version__
from .simulate import ScenarioError, run_scenario

log = logging.getLogger(__name__)

app = typer.Typer(
    name="honorary-fee",
    add_completion=False,
    no_args_is_help=True,
    help="Inspect and simulate honorary position fee distribution.",
)

# -------------------- utils --------------------


def _setup(level: Optional[str] = None) -> config_mod.EngineConfig:
    try:
        cfg = config_mod.load()
    except (ValueError, FileNotFoundError) as e:
        typer.echo(f"config error: {e}", err=True)
        raise typer.Exit(code=2)
    logging.basicConfig(
        level=(level or cfg.log_level).upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    return cfg


def _load_doc(path: Path) -> Any:
    text = path.read_text(encoding="utf-8")
    if path.suffix.lower() in (".yaml", ".yml"):
        return yaml.safe_load(text)
    return json.loads(text)


def _dump(obj: Any) -> str:
    return json.dumps(obj, sort_keys=True, separators=(",", ":"))


# -------------------- commands --------------------


@app.command("version")
def version_cmd() -> None:
    """Print the package version."""
    typer.echo(__version__)


@app.command("config")
def config_cmd() -> None:
    """Print the effective configuration as JSON."""
    cfg = _setup()
    typer.echo(config_mod.pretty(cfg))


@app.command("vaults")
def vaults_cmd(
    db: Optional[str] = typer.Option(None, "--db", help="SQLite store path (default: config db_path)."),
) -> None:
    """List initialized vaults in the SQLite store."""
    cfg = _setup()
    with SQLiteVaultStore(db or cfg.db_path) as store:
        for v in store.vaults():
            typer.echo(v)


@app.command("status")
def status_cmd(
    vault: str = typer.Option(..., "--vault", help="Vault identifier."),
    db: Optional[str] = typer.Option(None, "--db", help="SQLite store path (default: config db_path)."),
) -> None:
    """Print the persisted Policy, Progress and position of a vault."""
    cfg = _setup()
    with SQLiteVaultStore(db or cfg.db_path) as store:
        try:
            policy, progress, position = load_vault(store, vault)
        except HonoraryFeeError as e:
            typer.echo(_dump(e.to_dict()), err=True)
            raise typer.Exit(code=1)
    typer.echo(
        json.dumps(
            {"policy": policy.to_dict(), "progress": progress.to_dict(), "position": position.to_dict()},
            indent=2,
            sort_keys=True,
        )
    )


@app.command("simulate")
def simulate_cmd(
    scenario: Path = typer.Argument(..., exists=True, dir_okay=False, help="Scenario file (.json/.yaml)."),
    db: Optional[str] = typer.Option(None, "--db", help="Persist vault state to this SQLite store."),
    log_level: Optional[str] = typer.Option(None, "--log-level", help="Override the configured log level."),
) -> None:
    """Replay a scenario and print the emitted events as JSON lines."""
    cfg = _setup(log_level)
    try:
        doc = _load_doc(scenario)
        if not isinstance(doc, dict):
            raise ScenarioError("scenario must be a mapping")
        store = SQLiteVaultStore(db) if db else None
        try:
            report = run_scenario(doc, config=cfg, store=store)
        finally:
            if store is not None:
                store.close()
    except (ScenarioError, KeyError, ValueError, HonoraryFeeError) as e:
        typer.echo(f"scenario error: {e}", err=True)
        raise typer.Exit(code=2)

    for rec in report.records:
        typer.echo(_dump(rec))
    for day in report.days:
        typer.echo(_dump({"day_summary": day.to_dict()}))
    if not report.conserved:
        log.error("simulate: conservation violated")
        raise typer.Exit(code=1)


def main() -> None:  # pragma: no cover - console entry
    app()


if __name__ == "__main__":  # pragma: no cover
    main()
