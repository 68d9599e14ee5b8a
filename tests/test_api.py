from __future__ import annotations

from pathlib import Path
from types import SimpleNamespace

import pytest
from fastapi.testclient import TestClient

from assetex.runtime.executor import MarketExecutor


@pytest.fixture
def client(monkeypatch: pytest.MonkeyPatch, rail) -> TestClient:
    from assetex.api import app as api_app

    monkeypatch.setenv("ASSETEX_MODE", "dev")
    monkeypatch.delenv("ASSETEX_MARKET_CONFIG_PATH", raising=False)
    ex = MarketExecutor(platform_owner="platform", market_id="assetex-api", payout_rail=rail)
    monkeypatch.setattr(api_app, "build_executor", lambda: ex)

    app = api_app.create_app(boot_runtime=True)
    with TestClient(app) as c:
        yield c


def _mint_and_list(c: TestClient, *, price: int = 1000) -> int:
    r = c.post("/v1/assets", json={"creator": "alice", "uri": "ipfs://a", "royalty_bps": 100})
    assert r.status_code == 200, r.text
    aid = r.json()["asset_id"]
    r = c.post(f"/v1/assets/{aid}/listing", json={"caller": "alice", "price": price})
    assert r.status_code == 200, r.text
    return aid


def test_create_app_boot_runtime_false_does_not_attach_executor() -> None:
    from assetex.api.app import create_app

    app = create_app(boot_runtime=False)
    assert getattr(app.state, "executor", None) is None

    with TestClient(app) as c:
        r = c.get("/v1/health")
        assert r.json() == {"ok": True, "ready": False}
        r = c.get("/v1/assets/1/owner")
        assert r.status_code == 500
        assert r.json()["error"]["code"] == "not_ready"


def test_create_app_boot_runtime_true_attaches_executor(monkeypatch: pytest.MonkeyPatch) -> None:
    from assetex.api import app as api_app

    monkeypatch.setattr(api_app, "build_executor", lambda: SimpleNamespace(market_id="assetex-stub"))
    monkeypatch.delenv("ASSETEX_MARKET_CONFIG_PATH", raising=False)
    app = api_app.create_app(boot_runtime=True)
    assert getattr(app.state.executor, "market_id", "") == "assetex-stub"


def test_full_flow_over_http(client: TestClient) -> None:
    aid = _mint_and_list(client)

    r = client.get(f"/v1/assets/{aid}")
    assert r.json()["owner"] == "alice"
    assert r.json()["royalty_bps"] == 100

    r = client.post(f"/v1/assets/{aid}/buy", json={"buyer": "bob", "payment": 1000})
    assert r.status_code == 200, r.text
    split = r.json()["settlement"]["split"]
    assert split == {"marketplace_fee": 25, "royalty_fee": 10, "seller_amount": 965}

    assert client.get(f"/v1/assets/{aid}/owner").json()["owner"] == "bob"
    assert client.get(f"/v1/assets/{aid}/uri").json()["uri"] == "ipfs://a"
    assert client.get("/v1/accounts/bob").json()["owned"] == 1
    assert client.get("/v1/accounts/alice").json()["owned"] == 0

    r = client.get(f"/v1/assets/{aid}/listing")
    assert r.json()["active"] is False
    assert r.json()["listing"]["seller"] == "alice"

    r = client.get("/v1/events", params={"since": 0})
    body = r.json()
    assert [e["kind"] for e in body["events"]] == ["Minted", "Listed", "Sold"]
    assert body["next_since"] == 3
    assert client.get("/v1/events", params={"since": 3}).json()["events"] == []


def test_unminted_owner_is_empty_and_uri_is_404(client: TestClient) -> None:
    assert client.get("/v1/assets/42/owner").json()["owner"] == ""
    r = client.get("/v1/assets/42/uri")
    assert r.status_code == 404
    assert r.json()["error"]["code"] == "not_found"


@pytest.mark.parametrize(
    "path,body,status,code",
    [
        ("/v1/assets/{aid}/listing", {"caller": "mallory", "price": 5}, 403, "unauthorized"),
        ("/v1/assets/{aid}/listing", {"caller": "alice", "price": 0}, 400, "invalid_input"),
        ("/v1/assets/{aid}/buy", {"buyer": "bob", "payment": 999}, 402, "payment_mismatch"),
        ("/v1/assets/99/buy", {"buyer": "bob", "payment": 1000}, 409, "not_for_sale"),
        ("/v1/assets", {"creator": "alice", "uri": "x", "royalty_bps": 1001}, 400, "invalid_input"),
        ("/v1/assets", {"creator": "alice", "uri": "x", "royalty_bps": "100"}, 400, "invalid_input"),
    ],
)
def test_error_envelope_and_status(client: TestClient, path: str, body: dict, status: int, code: str) -> None:
    aid = _mint_and_list(client)
    r = client.post(path.format(aid=aid), json=body)
    assert r.status_code == status, r.text
    j = r.json()
    assert j["ok"] is False
    assert j["error"]["code"] == code


def test_unlist_over_http(client: TestClient) -> None:
    aid = _mint_and_list(client)
    r = client.request("DELETE", f"/v1/assets/{aid}/listing", json={"caller": "bob"})
    assert r.status_code == 403
    r = client.request("DELETE", f"/v1/assets/{aid}/listing", json={"caller": "alice"})
    assert r.status_code == 200
    r = client.post(f"/v1/assets/{aid}/buy", json={"buyer": "bob", "payment": 1000})
    assert r.status_code == 409


def test_fee_admin_routes(client: TestClient) -> None:
    assert client.get("/v1/admin/fee").json()["fee_bps"] == 250

    r = client.put("/v1/admin/fee", json={"caller": "alice", "fee_bps": 100})
    assert r.status_code == 403
    r = client.put("/v1/admin/fee", json={"caller": "platform", "fee_bps": 1001})
    assert r.status_code == 400
    r = client.put("/v1/admin/fee", json={"caller": "platform", "fee_bps": 100})
    assert r.status_code == 200
    assert client.get("/v1/admin/fee").json()["fee_bps"] == 100


def test_payout_failure_maps_to_502(client: TestClient, rail) -> None:
    aid = _mint_and_list(client)
    rail.fail_for.add("platform")
    r = client.post(f"/v1/assets/{aid}/buy", json={"buyer": "bob", "payment": 1000})
    assert r.status_code == 502
    assert r.json()["error"]["code"] == "payout_failure"
    assert client.get(f"/v1/assets/{aid}/owner").json()["owner"] == "alice"


def test_metrics_disabled_by_default_and_enabled_by_env(client: TestClient, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.delenv("ASSETEX_METRICS_ENABLED", raising=False)
    assert client.get("/v1/metrics").status_code == 404

    monkeypatch.setenv("ASSETEX_METRICS_ENABLED", "1")
    _mint_and_list(client)
    r = client.get("/v1/metrics")
    assert r.status_code == 200
    assert "assetex_tx_applied_total 2" in r.text
    assert "assetex_assets_minted 1" in r.text
    assert 'assetex_tx_applied_by_type{tx_type="ASSET_MINT"} 1' in r.text


def test_request_size_limit_returns_413(monkeypatch: pytest.MonkeyPatch) -> None:
    from assetex.api.app import create_app

    monkeypatch.setenv("ASSETEX_MAX_REQUEST_BYTES", "128")
    monkeypatch.delenv("ASSETEX_SIZE_LIMIT_DISABLE", raising=False)

    c = TestClient(create_app(boot_runtime=False))
    r = c.post("/v1/assets", json={"creator": "alice", "uri": "x" * 500, "royalty_bps": 0})
    assert r.status_code == 413
    assert r.json()["error"]["code"] == "request_too_large"


def test_health_reports_market(client: TestClient) -> None:
    j = client.get("/v1/health").json()
    assert j["ready"] is True
    assert j["market_id"] == "assetex-api"
    assert j["height"] == 0


def test_real_boot_uses_env_db(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    from assetex.api.app import create_app

    db = tmp_path / "api.db"
    monkeypatch.delenv("ASSETEX_MARKET_CONFIG_PATH", raising=False)
    monkeypatch.setenv("ASSETEX_DB_PATH", str(db))
    monkeypatch.setenv("ASSETEX_MARKET_ID", "assetex-env")
    monkeypatch.setenv("ASSETEX_PLATFORM_OWNER", "ops")
    monkeypatch.setenv("ASSETEX_FEE_BPS", "100")

    with TestClient(create_app()) as c:
        r = c.post("/v1/assets", json={"creator": "alice", "uri": "u", "royalty_bps": 0})
        assert r.json()["asset_id"] == 1
        assert c.get("/v1/admin/fee").json() == {
            "ok": True,
            "fee_bps": 100,
            "max_fee_bps": 1000,
            "platform_owner": "ops",
        }
    assert db.exists()
