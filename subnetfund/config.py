from __future__ import annotations
"""
subnetfund.config — configuration for usage settlement and verifier staking

Covers:
- Fee split rates (parts per 1000; 50 = 5%) for the treasury and verifier
- Reward lock duration and lock mode (anchored / rolling)
- Verifier stake minimum, exit lock, slash scale
- Signing domain used for usage attestations

Environment overrides (all optional; sensible defaults provided):

  # Fee split (parts per 1000)
  SUBNETFUND_FEE_RATE=50
  SUBNETFUND_VERIFIER_REWARD_RATE=0

  # Reward lock (seconds) and mode
  SUBNETFUND_REWARD_LOCK_SECONDS=2592000
  SUBNETFUND_LOCK_MODE=anchored

  # Verifier staking (base units; seconds; percent scale)
  SUBNETFUND_MIN_STAKE=100000000000000000000
  SUBNETFUND_EXIT_LOCK_SECONDS=86400

  # Signing domain
  SUBNETFUND_DOMAIN_NAME=subnetfund
  SUBNETFUND_DOMAIN_VERSION=1
  SUBNETFUND_CHAIN_ID=1
  SUBNETFUND_VERIFYING_CONTRACT=0x0000000000000000000000000000000000000000

  # Treasury address receiving protocol fees
  SUBNETFUND_TREASURY=0x...

You can also load from a JSON or YAML file via
`SUBNETFUND_CONFIG_FILE=/path/to/config.(json|yaml|yml)`. File values override
defaults; environment overrides the file.
"""


from dataclasses import asdict, dataclass, field
from typing import Any, Dict, Optional
import json
import os
from pathlib import Path

import yaml

from .errors import FeeRateTooHigh, InvalidConfig

RATE_DENOMINATOR = 1000
DAY = 86_400
LOCK_MODES = ("anchored", "rolling")
ZERO_ADDRESS = "0x" + "00" * 20


# -------------------------- Data classes --------------------------


@dataclass
class SplitRates:
    """Fee rates in parts per `denominator` (1000 = 100%)."""
    fee_rate: int = 50                # 5% to treasury
    verifier_reward_rate: int = 0     # share of (reward - fee) to the app verifier
    denominator: int = RATE_DENOMINATOR

    def validate(self) -> None:
        if self.denominator != RATE_DENOMINATOR:
            raise InvalidConfig(f"denominator is fixed at {RATE_DENOMINATOR} (got {self.denominator}).")
        for name, v in (("fee_rate", self.fee_rate),
                        ("verifier_reward_rate", self.verifier_reward_rate)):
            if v < 0:
                raise InvalidConfig(f"{name} must be non-negative (got {v}).")
            if v > self.denominator:
                raise FeeRateTooHigh(rate=v, ceiling=self.denominator, name=name)


@dataclass
class LockConfig:
    """Reward lock window applied to accrued usage rewards."""
    reward_lock_seconds: int = 30 * DAY
    mode: str = "anchored"

    def validate(self) -> None:
        if self.reward_lock_seconds < 0:
            raise InvalidConfig("reward_lock_seconds must be non-negative.")
        if self.mode not in LOCK_MODES:
            raise InvalidConfig(f"lock mode must be one of {LOCK_MODES} (got {self.mode!r}).")


@dataclass
class StakeConfig:
    """Verifier stake minimum, exit lock and slash scale."""
    min_stake: int = 100 * 10**18     # 100 tokens at 18 decimals
    exit_lock_seconds: int = DAY
    slash_scale: int = 100            # percentages are 0..100

    def validate(self) -> None:
        if self.min_stake < 0:
            raise InvalidConfig("min_stake must be non-negative.")
        if self.exit_lock_seconds < 0:
            raise InvalidConfig("exit_lock_seconds must be non-negative.")
        if self.slash_scale != 100:
            raise InvalidConfig(f"slash_scale is fixed at 100 (got {self.slash_scale}).")


@dataclass
class SigningConfig:
    """Domain that usage attestations are bound to."""
    domain_name: str = "subnetfund"
    domain_version: str = "1"
    chain_id: int = 1
    verifying_contract: str = ZERO_ADDRESS

    def validate(self) -> None:
        if not self.domain_name:
            raise InvalidConfig("domain_name must be non-empty.")
        if self.chain_id < 0:
            raise InvalidConfig("chain_id must be non-negative.")
        if not (self.verifying_contract.startswith("0x") and len(self.verifying_contract) == 42):
            raise InvalidConfig(f"verifying_contract must be a 0x-prefixed 20-byte hex address "
                                f"(got {self.verifying_contract!r}).")


@dataclass
class SubnetFundConfig:
    """Top-level configuration container."""
    split: SplitRates = field(default_factory=SplitRates)
    lock: LockConfig = field(default_factory=LockConfig)
    stake: StakeConfig = field(default_factory=StakeConfig)
    signing: SigningConfig = field(default_factory=SigningConfig)

    treasury: Optional[str] = None
    token_decimals: int = 18  # informational

    def validate(self) -> None:
        self.split.validate()
        self.lock.validate()
        self.stake.validate()
        self.signing.validate()
        if self.token_decimals <= 0:
            raise InvalidConfig("token_decimals must be positive.")

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
        raise InvalidConfig(f"Invalid int for {name}: {v!r}") from e


def _getenv_str(name: str, default: Optional[str]) -> Optional[str]:
    v = os.getenv(name)
    if v is None or v == "":
        return default
    return v


def _getenv_rate(name: str, default: int) -> int:
    rate = _getenv_int(name, default)
    if rate > RATE_DENOMINATOR:
        raise FeeRateTooHigh(rate=rate, ceiling=RATE_DENOMINATOR, name=name)
    return rate


def from_env(base: Optional[SubnetFundConfig] = None, prefix: str = "SUBNETFUND_") -> SubnetFundConfig:
    """
    Build a SubnetFundConfig from environment variables, optionally layering on top of `base`.
    """
    cfg = base or SubnetFundConfig()

    new_cfg = SubnetFundConfig(
        split=SplitRates(
            fee_rate=_getenv_rate(f"{prefix}FEE_RATE", cfg.split.fee_rate),
            verifier_reward_rate=_getenv_rate(f"{prefix}VERIFIER_REWARD_RATE", cfg.split.verifier_reward_rate),
            denominator=cfg.split.denominator,
        ),
        lock=LockConfig(
            reward_lock_seconds=_getenv_int(f"{prefix}REWARD_LOCK_SECONDS", cfg.lock.reward_lock_seconds),
            mode=_getenv_str(f"{prefix}LOCK_MODE", cfg.lock.mode) or cfg.lock.mode,
        ),
        stake=StakeConfig(
            min_stake=_getenv_int(f"{prefix}MIN_STAKE", cfg.stake.min_stake),
            exit_lock_seconds=_getenv_int(f"{prefix}EXIT_LOCK_SECONDS", cfg.stake.exit_lock_seconds),
            slash_scale=cfg.stake.slash_scale,
        ),
        signing=SigningConfig(
            domain_name=_getenv_str(f"{prefix}DOMAIN_NAME", cfg.signing.domain_name) or cfg.signing.domain_name,
            domain_version=_getenv_str(f"{prefix}DOMAIN_VERSION", cfg.signing.domain_version)
            or cfg.signing.domain_version,
            chain_id=_getenv_int(f"{prefix}CHAIN_ID", cfg.signing.chain_id),
            verifying_contract=_getenv_str(f"{prefix}VERIFYING_CONTRACT", cfg.signing.verifying_contract)
            or cfg.signing.verifying_contract,
        ),
        treasury=_getenv_str(f"{prefix}TREASURY", cfg.treasury),
        token_decimals=cfg.token_decimals,
    )
    new_cfg.validate()
    return new_cfg


def from_file(path: str | os.PathLike[str]) -> SubnetFundConfig:
    """
    Load configuration from a JSON or YAML file.
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
        raise InvalidConfig(f"config file {p} must contain a mapping at the top level")

    split = data.get("split", {})
    lock = data.get("lock", {})
    stake = data.get("stake", {})
    signing = data.get("signing", {})

    cfg = SubnetFundConfig(
        split=SplitRates(**{**asdict(SplitRates()), **split}),
        lock=LockConfig(**{**asdict(LockConfig()), **lock}),
        stake=StakeConfig(**{**asdict(StakeConfig()), **stake}),
        signing=SigningConfig(**{**asdict(SigningConfig()), **signing}),
        treasury=data.get("treasury", SubnetFundConfig().treasury),
        token_decimals=data.get("token_decimals", SubnetFundConfig().token_decimals),
    )
    cfg.validate()
    return cfg


def load() -> SubnetFundConfig:
    """
    Load configuration using the following precedence:
      1) File at $SUBNETFUND_CONFIG_FILE (JSON/YAML)
      2) Environment variables (SUBNETFUND_*), applied on top of defaults or file values
    """
    file_path = os.getenv("SUBNETFUND_CONFIG_FILE")
    base = from_file(file_path) if file_path else SubnetFundConfig()
    return from_env(base=base)


# -------------------------- Utilities --------------------------


def pretty(cfg: Optional[SubnetFundConfig] = None) -> str:
    """Return a human-readable JSON string of the current config."""
    obj = (cfg or load()).to_dict()
    return json.dumps(obj, indent=2, sort_keys=True)


__all__ = [
    "RATE_DENOMINATOR",
    "LOCK_MODES",
    "ZERO_ADDRESS",
    "SplitRates",
    "LockConfig",
    "StakeConfig",
    "SigningConfig",
    "SubnetFundConfig",
    "from_env",
    "from_file",
    "load",
    "pretty",
]
