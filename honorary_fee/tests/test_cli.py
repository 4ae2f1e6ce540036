from __future__ import annotations

import json

import pytest
from typer.testing import CliRunner

from honorary_fee.cli.main import app
from honorary_fee.cli.simulate import ScenarioError, _summarize, run_scenario
from honorary_fee.engine import PageResult
from honorary_fee.state.progress import Progress
from honorary_fee.version import __version__

from .conftest import DAY, T0

runner = CliRunner()

SCENARIO = {
    "vault": "vault-1",
    "pool": {"id": "pool-1", "base_mint": "BASE", "quote_mint": "USDC"},
    "position": {"tick_lower": -100, "tick_upper": 100},
    "policy": {"creator": "creator", "investor_fee_share_bps": 5000, "min_payout": 150, "y0": 1_000_000},
    "streams": {"s1": 300_000, "s2": 100_000},
    "investors": [{"destination": "alice", "stream": "s1"}, {"destination": "bob", "stream": "s2"}],
    "start": T0 - 10,
    "steps": [
        {"accrue": {"quote": 1_000}},
        {"crank": {"page": 0, "final": True, "now": T0}},
        {"crank": {"page": 0, "final": True, "now": T0 + 100}},
        {"accrue": {"quote": 1_000}},
        {"crank": {"page": 0, "final": True, "now": T0 + DAY}},
    ],
}


@pytest.fixture(autouse=True)
def _no_config_file(monkeypatch):
    monkeypatch.delenv("HONORARY_FEE_CONFIG_FILE", raising=False)


def _json_lines(text: str):
    return [json.loads(line) for line in text.splitlines() if line.startswith("{")]


def test_run_scenario_settles_each_day():
    report = run_scenario(SCENARIO)
    assert report.errors == 1
    assert report.conserved
    assert [(d.investors, d.creator) for d in report.days] == [(300, 700), (300, 700)]
    err = next(r for r in report.records if "error" in r)
    assert err["step"] == 2
    assert err["error"]["code"] == "HONORARY_DAY_GATE_NOT_OPEN"


def test_run_scenario_rejects_unknown_action():
    doc = dict(SCENARIO, steps=[{"swap": {}}])
    with pytest.raises(ScenarioError):
        run_scenario(doc)


@pytest.mark.parametrize(
    "step",
    [
        {"crank": {"page": 0, "final": True}},
        {"lock": {"stream": "s1"}},
        {"crank": [0, True]},
    ],
)
def test_run_scenario_rejects_incomplete_steps(step):
    doc = dict(SCENARIO, steps=[{"accrue": {"quote": 1_000}}, step])
    with pytest.raises(ScenarioError) as ei:
        run_scenario(doc)
    assert "step 1" in str(ei.value)


def test_summary_requires_a_page_plan():
    prog = Progress.initial("vault-1")
    res = PageResult(vault="vault-1", day_id=0, page_index=0, duplicate=True, progress=prog)
    with pytest.raises(ScenarioError):
        _summarize(res)


def test_simulate_crank_without_now_exits_2(tmp_path):
    path = tmp_path / "scenario.json"
    path.write_text(json.dumps(dict(SCENARIO, steps=[{"crank": {"page": 0}}])), encoding="utf-8")
    result = runner.invoke(app, ["simulate", str(path)])
    assert result.exit_code == 2


def test_simulate_prints_events_and_summaries(tmp_path):
    path = tmp_path / "scenario.json"
    path.write_text(json.dumps(SCENARIO), encoding="utf-8")

    result = runner.invoke(app, ["simulate", str(path), "--log-level", "WARNING"])

    assert result.exit_code == 0, result.output
    rows = _json_lines(result.stdout)
    summaries = [r["day_summary"] for r in rows if "day_summary" in r]
    assert len(summaries) == 2
    assert all(s["conserved"] and s["creator"] == 700 for s in summaries)
    etypes = [r.get("etype") for r in rows]
    assert etypes[0] == "HonoraryPositionInitialized"
    assert etypes.count("CreatorPayoutDayClosed") == 2


def test_simulate_persists_to_sqlite_then_status(tmp_path):
    path = tmp_path / "scenario.yaml"
    path.write_text(
        "\n".join(
            [
                "pool: {id: pool-1, base_mint: BASE, quote_mint: USDC}",
                "policy: {creator: creator, investor_fee_share_bps: 10000, y0: 400000}",
                "streams: {s1: 400000}",
                "investors: [{destination: alice, stream: s1}]",
                f"start: {T0}",
                "steps:",
                "  - accrue: {quote: 90}",
                f"  - crank: {{page: 0, final: false, now: {T0}}}",
            ]
        ),
        encoding="utf-8",
    )
    db = str(tmp_path / "sim.db")

    result = runner.invoke(app, ["simulate", str(path), "--db", db, "--log-level", "WARNING"])
    assert result.exit_code == 0, result.output

    result = runner.invoke(app, ["vaults", "--db", db])
    assert result.exit_code == 0
    assert "vault-1" in result.stdout.split()

    result = runner.invoke(app, ["status", "--vault", "vault-1", "--db", db])
    assert result.exit_code == 0, result.output
    out = result.stdout
    status = json.loads(out[out.index("{"):])
    assert status["progress"]["cursor"] == 1
    assert status["progress"]["cumulative_distributed_today"] == 90
    assert status["policy"]["y0"] == 400_000


def test_status_unknown_vault_exits_1(tmp_path):
    result = runner.invoke(app, ["status", "--vault", "nope", "--db", str(tmp_path / "empty.db")])
    assert result.exit_code == 1


def test_simulate_rejects_non_mapping(tmp_path):
    path = tmp_path / "bad.json"
    path.write_text("[1, 2, 3]", encoding="utf-8")
    result = runner.invoke(app, ["simulate", str(path)])
    assert result.exit_code == 2


def test_version_and_config():
    result = runner.invoke(app, ["version"])
    assert result.exit_code == 0
    assert result.stdout.strip() == __version__

    result = runner.invoke(app, ["config"])
    assert result.exit_code == 0
    out = result.stdout
    assert json.loads(out[out.index("{"):])["max_pages"] == 512
