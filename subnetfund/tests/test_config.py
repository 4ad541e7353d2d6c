from __future__ import annotations

import json

import pytest

from subnetfund import config as cfgmod
from subnetfund.config import LockConfig, SplitRates, SubnetFundConfig
from subnetfund.errors import FeeRateTooHigh, InvalidConfig

ENV_KEYS = [
    "SUBNETFUND_FEE_RATE",
    "SUBNETFUND_VERIFIER_REWARD_RATE",
    "SUBNETFUND_REWARD_LOCK_SECONDS",
    "SUBNETFUND_LOCK_MODE",
    "SUBNETFUND_MIN_STAKE",
    "SUBNETFUND_EXIT_LOCK_SECONDS",
    "SUBNETFUND_DOMAIN_NAME",
    "SUBNETFUND_DOMAIN_VERSION",
    "SUBNETFUND_CHAIN_ID",
    "SUBNETFUND_VERIFYING_CONTRACT",
    "SUBNETFUND_TREASURY",
    "SUBNETFUND_CONFIG_FILE",
]


@pytest.fixture(autouse=True)
def _clean_env(monkeypatch):
    for k in ENV_KEYS:
        monkeypatch.delenv(k, raising=False)


def test_defaults():
    cfg = SubnetFundConfig()
    cfg.validate()
    assert cfg.split.fee_rate == 50
    assert cfg.split.verifier_reward_rate == 0
    assert cfg.lock.reward_lock_seconds == 30 * 86_400
    assert cfg.lock.mode == "anchored"
    assert cfg.stake.min_stake == 100 * 10**18


def test_env_overrides(monkeypatch):
    monkeypatch.setenv("SUBNETFUND_FEE_RATE", "25")
    monkeypatch.setenv("SUBNETFUND_REWARD_LOCK_SECONDS", "3_600")
    monkeypatch.setenv("SUBNETFUND_LOCK_MODE", "rolling")
    monkeypatch.setenv("SUBNETFUND_CHAIN_ID", "1337")
    cfg = cfgmod.from_env()
    assert cfg.split.fee_rate == 25
    assert cfg.lock.reward_lock_seconds == 3600
    assert cfg.lock.mode == "rolling"
    assert cfg.signing.chain_id == 1337


def test_env_rate_above_ceiling(monkeypatch):
    monkeypatch.setenv("SUBNETFUND_FEE_RATE", "1001")
    with pytest.raises(FeeRateTooHigh):
        cfgmod.from_env()


def test_env_bad_int(monkeypatch):
    monkeypatch.setenv("SUBNETFUND_CHAIN_ID", "one")
    with pytest.raises(InvalidConfig):
        cfgmod.from_env()


def test_unknown_lock_mode_is_rejected():
    with pytest.raises(InvalidConfig):
        SubnetFundConfig(lock=LockConfig(mode="sliding")).validate()


def test_denominator_is_fixed():
    with pytest.raises(InvalidConfig):
        SplitRates(denominator=100).validate()


def test_from_json_file(tmp_path):
    p = tmp_path / "sf.json"
    p.write_text(json.dumps({"split": {"fee_rate": 10}, "lock": {"mode": "rolling"}}))
    cfg = cfgmod.from_file(p)
    assert cfg.split.fee_rate == 10
    assert cfg.lock.mode == "rolling"
    assert cfg.lock.reward_lock_seconds == 30 * 86_400


def test_from_yaml_file(tmp_path):
    p = tmp_path / "sf.yaml"
    p.write_text("split:\n  verifier_reward_rate: 100\nstake:\n  exit_lock_seconds: 60\n")
    cfg = cfgmod.from_file(p)
    assert cfg.split.verifier_reward_rate == 100
    assert cfg.stake.exit_lock_seconds == 60


def test_load_env_applies_on_top_of_file(tmp_path, monkeypatch):
    p = tmp_path / "sf.yaml"
    p.write_text("split:\n  fee_rate: 10\n")
    monkeypatch.setenv("SUBNETFUND_CONFIG_FILE", str(p))
    monkeypatch.setenv("SUBNETFUND_FEE_RATE", "30")
    assert cfgmod.load().split.fee_rate == 30


def test_file_must_hold_mapping(tmp_path):
    p = tmp_path / "sf.json"
    p.write_text("[1, 2]")
    with pytest.raises(InvalidConfig):
        cfgmod.from_file(p)


def test_pretty_is_json():
    out = json.loads(cfgmod.pretty(SubnetFundConfig()))
    assert out["split"]["fee_rate"] == 50
