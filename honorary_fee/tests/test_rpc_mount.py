from __future__ import annotations

import pytest

fastapi = pytest.importorskip("fastapi")
from fastapi.testclient import TestClient  # noqa: E402

from honorary_fee.rpc.methods import InvalidParams, make_methods  # noqa: E402
from honorary_fee.rpc.mount import mount_honorary, register_jsonrpc  # noqa: E402

from .conftest import DAY, T0, VAULT, pair  # noqa: E402

INVESTORS = [
    {"destination": "inv-a", "lockedAmount": 300_000},
    {"destination": "inv-b", "lockedAmount": 100_000},
]


@pytest.fixture
def client(world):
    app = fastapi.FastAPI()
    mount_honorary(app, world.engine, with_metrics=True)
    return TestClient(app)


def test_get_policy_and_progress(client):
    r = client.get(f"/honorary/vaults/{VAULT}/policy")
    assert r.status_code == 200
    assert r.json()["y0"] == 1_000_000

    r = client.get(f"/honorary/vaults/{VAULT}/progress")
    assert r.status_code == 200
    assert r.json()["is_closed"] is True
    assert r.json()["processed_pages"] == []


def test_distribute_page_over_rest(client, world):
    world.amm.accrue_fees(world.position, quote=1_000)
    r = client.post(
        f"/honorary/vaults/{VAULT}/pages/0",
        json={"isFinalPageInDay": True, "investors": INVESTORS},
    )
    assert r.status_code == 200
    body = r.json()
    assert body["paid_total"] == 400
    assert body["day_closed"] is True
    assert body["events"][-1]["remainder"] == 600

    r = client.post(f"/honorary/vaults/{VAULT}/pages/1", json={"investors": INVESTORS})
    assert r.status_code == 400
    assert r.json()["detail"]["code"] == "HONORARY_DAY_GATE_NOT_OPEN"


def test_request_body_cannot_choose_the_time(client, world):
    r = client.post(
        f"/honorary/vaults/{VAULT}/pages/0",
        json={"isFinalPageInDay": True, "investors": INVESTORS, "now": T0 + 3650 * DAY},
    )
    assert r.status_code == 200
    body = r.json()
    assert body["day_id"] == T0 // DAY
    assert body["events"][0]["ts"] == T0
    assert world.engine.status(VAULT)["next_opening_ts"] == T0 + DAY

    res = world.engine.distribute_page(VAULT, 0, True, pair(), now=T0 + DAY)
    assert res.day_id == T0 // DAY + 1


def test_unknown_vault_is_404(client):
    r = client.get("/honorary/vaults/missing/status")
    assert r.status_code == 404
    assert r.json()["detail"]["code"] == "HONORARY_VAULT_NOT_FOUND"


def test_bad_investor_payload_is_400(client):
    r = client.post(f"/honorary/vaults/{VAULT}/pages/0", json={"investors": {"a": 1}})
    assert r.status_code == 400
    assert r.json()["detail"]["code"] == "HONORARY_INVALID_INVESTOR_RECORD"


def test_metrics_endpoint(client, world):
    client.post(f"/honorary/vaults/{VAULT}/pages/0", json={"investors": INVESTORS})
    r = client.get("/honorary/metrics")
    assert r.status_code == 200
    assert "honorary_fee_pages_processed_total" in r.text


def test_jsonrpc_methods(world):
    methods = make_methods(world.engine)
    assert set(methods) == {
        "honorary.getPolicy",
        "honorary.getProgress",
        "honorary.getPosition",
        "honorary.getStatus",
        "honorary.distributePage",
    }
    world.amm.accrue_fees(world.position, quote=1_000)
    out = methods["honorary.distributePage"](vault=VAULT, pageIndex=0, investors=INVESTORS)
    assert out["paid_total"] == 400
    assert methods["honorary.getStatus"](vault=VAULT)["treasury"]["quote"] == 600

    with pytest.raises(InvalidParams):
        methods["honorary.distributePage"](vault=VAULT, pageIndex="first")
    with pytest.raises(InvalidParams):
        methods["honorary.getPolicy"](vault="")
    with pytest.raises(TypeError):
        methods["honorary.distributePage"](vault=VAULT, pageIndex=1, now=T0 + DAY)


def test_register_jsonrpc_falls_back_to_register(world):
    class Dispatcher:
        def __init__(self):
            self.seen = {}

        def register(self, name, fn):
            self.seen[name] = fn

    d = Dispatcher()
    register_jsonrpc(d, world.engine)
    assert "honorary.getPosition" in d.seen
    assert d.seen["honorary.getPosition"](vault=VAULT)["owner"] == world.treasury
