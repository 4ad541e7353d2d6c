from __future__ import annotations

from typing import Any, Dict

import pytest

fastapi = pytest.importorskip("fastapi")
from fastapi import FastAPI
from fastapi.testclient import TestClient

from subnetfund.errors import InvalidRequest, NoRewards, RequestError
from subnetfund.rpc.methods import make_methods, parse_signatures
from subnetfund.rpc.mount import mount_subnetfund, register_jsonrpc

from .conftest import PROVIDER_ID, PROVIDER_OWNER

LOCK = 30 * 86_400
NET = 1_641_600_000_000_000_000


def _wire(report) -> Dict[str, Any]:
    return {
        "subjectId": report.subject_id,
        "providerId": report.provider_id,
        "peerId": report.peer_id,
        "cpu": report.cpu,
        "gpu": report.gpu,
        "memory": report.memory,
        "storage": report.storage,
        "uploadBytes": report.upload_bytes,
        "downloadBytes": report.download_bytes,
        "duration": report.duration,
        "timestamp": report.timestamp,
    }


@pytest.fixture()
def client(service, app) -> TestClient:
    api = FastAPI()
    mount_subnetfund(api, service)
    return TestClient(api)


def test_list_and_get_apps(client, app):
    r = client.get("/subnetfund/apps")
    assert r.status_code == 200
    assert [a["symbol"] for a in r.json()["items"]] == ["RND"]

    r = client.get(f"/subnetfund/apps/{app.id}")
    assert r.status_code == 200
    assert r.json()["budget"] == app.budget


def test_unknown_app_is_404(client):
    r = client.get("/subnetfund/apps/99")
    assert r.status_code == 404
    assert r.json()["detail"]["code"] == "UNKNOWN_SUBJECT"


def test_report_then_claim(client, app, make_report, sign, keys, clock):
    rep = make_report(app.id)
    body = {"report": _wire(rep), "signature": "0x" + sign(rep, keys["owner"]).hex()}
    r = client.post("/subnetfund/usage", json=body)
    assert r.status_code == 200, r.text
    assert r.json()["event"] == "UsageAccepted"
    assert r.json()["reward"] == 1_728_000_000_000_000_000

    r = client.post(f"/subnetfund/apps/{app.id}/claim/{PROVIDER_ID}")
    assert r.status_code == 400
    assert r.json()["detail"]["code"] == "REWARD_LOCKED"

    clock.advance(LOCK)
    r = client.post(f"/subnetfund/apps/{app.id}/claim/{PROVIDER_ID}")
    assert r.status_code == 200
    assert r.json()["paid"]["net"] == NET

    r = client.get(f"/subnetfund/apps/{app.id}/accruals/{PROVIDER_ID}")
    assert r.json()["pending_reward"] == 0


def test_bad_signer_is_403(client, app, make_report, sign, keys):
    rep = make_report(app.id)
    body = {"report": _wire(rep), "signature": "0x" + sign(rep, keys["outsider"]).hex()}
    r = client.post("/subnetfund/usage", json=body)
    assert r.status_code == 403
    assert r.json()["detail"]["code"] == "NOT_AUTHORIZED_SIGNER"


def test_malformed_body_is_400(client, app):
    r = client.post("/subnetfund/usage", json={"report": {"subjectId": app.id}, "signature": "0xzz"})
    assert r.status_code == 400
    assert r.json()["detail"]["code"] == "INVALID_REQUEST"


def test_verifier_index_out_of_range_is_404(client, app):
    r = client.get(f"/subnetfund/apps/{app.id}/verifiers/0")
    assert r.status_code == 404


def test_settings_and_metrics(client):
    s = client.get("/subnetfund/settings").json()
    assert s["feeRate"] == 50
    assert s["lockMode"] == "anchored"

    m = client.get("/subnetfund/metrics")
    assert m.status_code == 200
    assert "subnetfund_usage_reports_total" in m.text


def test_jsonrpc_registration_and_errors(service, app):
    class Dispatcher:
        def __init__(self) -> None:
            self.methods: Dict[str, Any] = {}

        def add(self, name, fn) -> None:
            self.methods[name] = fn

    d = Dispatcher()
    register_jsonrpc(d, service)
    assert set(d.methods) == set(make_methods(service))
    assert d.methods["subnetfund.getPendingReward"](subjectId=app.id, providerId=PROVIDER_ID)["pendingReward"] == 0
    with pytest.raises(NoRewards):
        d.methods["subnetfund.claimReward"](providerId=PROVIDER_ID, subjectId=app.id)


def test_provider_owner_receives_payout_via_rpc(service, app, make_report, sign, keys, clock, ledger):
    m = make_methods(service)
    rep = make_report(app.id)
    m["subnetfund.reportUsage"](report=_wire(rep), signature=sign(rep, keys["owner"]).hex())
    clock.advance(LOCK)
    out = m["subnetfund.claimReward"](providerId=PROVIDER_ID, subjectId=app.id)
    assert out["paid"]["net"] == NET
    assert ledger.balance_of("0x" + "00" * 20, PROVIDER_OWNER) == NET


@pytest.mark.parametrize("pairs", [
    [{"signer": "nope", "signature": "0x" + "00" * 65}],
    [{"signature": "0x" + "00" * 65}],
    [{"signer": "0x" + "11" * 20}],
    ["0x" + "00" * 65],
])
def test_malformed_signer_pairs_are_request_errors(pairs):
    with pytest.raises(InvalidRequest) as ei:
        parse_signatures(signatures=pairs)
    assert isinstance(ei.value, RequestError)
    assert ei.value.details["field"] == "signatures"


def test_malformed_signer_pair_is_400(client, app, make_report):
    rep = make_report(app.id)
    body = {"report": _wire(rep), "signatures": [{"signer": "nope", "signature": "0x" + "00" * 65}]}
    r = client.post("/subnetfund/usage", json=body)
    assert r.status_code == 400
    assert r.json()["detail"]["code"] == "INVALID_REQUEST"
