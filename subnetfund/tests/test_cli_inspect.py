from __future__ import annotations

import json

import pytest

pytest.importorskip("typer")
from typer.testing import CliRunner

from subnetfund.cli.inspect import app as cli

from .conftest import PROVIDER_ID

runner = CliRunner()


@pytest.fixture()
def snapshot(tmp_path, service, app, make_report, sign, keys):
    r = make_report(app.id)
    service.report_usage(r, sign(r, keys["owner"]))
    path = tmp_path / "state.json"
    path.write_text(json.dumps(service.dump()))
    return path


def test_apps_json(snapshot):
    res = runner.invoke(cli, ["apps", "--state", str(snapshot), "--json"])
    assert res.exit_code == 0, res.output
    rows = json.loads(res.output)
    assert rows[0]["symbol"] == "RND"
    assert rows[0]["spent_budget"] == 1_728_000_000_000_000_000


def test_apps_table(snapshot):
    res = runner.invoke(cli, ["apps", "--state", str(snapshot)])
    assert res.exit_code == 0, res.output
    assert "RND" in res.output
    assert "98.272" in res.output


def test_accruals_filtered(snapshot):
    res = runner.invoke(cli, ["accruals", "--state", str(snapshot), "--subject", "1", "--nonzero", "--json"])
    assert res.exit_code == 0, res.output
    rows = json.loads(res.output)
    assert [(a["subject_id"], a["provider_id"]) for a in rows] == [(1, PROVIDER_ID)]

    res = runner.invoke(cli, ["accruals", "--state", str(snapshot), "--subject", "2", "--json"])
    assert json.loads(res.output) == []


def test_missing_snapshot(tmp_path):
    res = runner.invoke(cli, ["apps", "--state", str(tmp_path / "nope.json")])
    assert res.exit_code == 2


def test_config_prints_effective_settings(monkeypatch):
    monkeypatch.delenv("SUBNETFUND_CONFIG_FILE", raising=False)
    monkeypatch.setenv("SUBNETFUND_FEE_RATE", "70")
    res = runner.invoke(cli, ["config"])
    assert res.exit_code == 0, res.output
    assert json.loads(res.output)["split"]["fee_rate"] == 70
