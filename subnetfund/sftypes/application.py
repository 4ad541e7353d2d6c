from __future__ import annotations

"""
Application (subject) records.

An Application is a budgeted consumer of subnet compute. Its owner deposits the
budget once at creation; usage reports draw `spent_budget` up towards it and
refunds push it back down. Records are frozen: every update produces a new
instance via `dataclasses.replace`, so callers can hold a pre-image and restore
it if a later step of the same operation fails.
"""

from dataclasses import asdict, dataclass, field, replace
from enum import Enum
from typing import Any, Dict, Mapping, Sequence, Tuple

from ..errors import DuplicateVerifier
from .address import NATIVE_ASSET, normalize_address, normalize_addresses


class RewardMode(str, Enum):
    """How a usage report is turned into a reward amount."""
    PRICED = "priced"        # per-resource prices, bytes normalised to GB
    UNIT_SUM = "unit_sum"    # unweighted resource sum times duration


class SignerPolicy(str, Enum):
    SINGLE = "single"          # one signature from owner or operator
    QUORUM = "quorum"          # one signature per configured verifier, in order
    THRESHOLD = "threshold"    # K distinct authorized signers


@dataclass(frozen=True)
class PriceVector:
    """Per-unit prices for each metered resource (base units per unit-second)."""
    cpu: int = 0
    gpu: int = 0
    memory: int = 0       # per GB
    storage: int = 0      # per GB
    bandwidth: int = 0    # per GB, upload + download

    def __post_init__(self) -> None:
        for name in ("cpu", "gpu", "memory", "storage", "bandwidth"):
            v = getattr(self, name)
            if not isinstance(v, int) or v < 0:
                raise ValueError(f"price {name} must be a non-negative int (got {v!r})")

    def to_dict(self) -> Dict[str, int]:
        return asdict(self)

    @staticmethod
    def from_dict(d: Mapping[str, Any]) -> "PriceVector":
        return PriceVector(
            cpu=int(d.get("cpu", 0)),
            gpu=int(d.get("gpu", 0)),
            memory=int(d.get("memory", 0)),
            storage=int(d.get("storage", 0)),
            bandwidth=int(d.get("bandwidth", 0)),
        )


@dataclass(frozen=True)
class Application:
    id: int
    owner: str
    operator: str
    verifier: str
    name: str
    symbol: str
    budget: int
    peer_ids: Tuple[str, ...] = ()
    metadata: str = ""
    spent_budget: int = 0
    payment_asset: str = NATIVE_ASSET
    prices: PriceVector = field(default_factory=PriceVector)
    price_version: int = 0
    reward_mode: RewardMode = RewardMode.PRICED
    signer_policy: SignerPolicy = SignerPolicy.SINGLE
    signature_threshold: int = 1
    verifiers: Tuple[str, ...] = ()
    created_at: int = 0

    def __post_init__(self) -> None:
        if self.id < 1:
            raise ValueError("application id must be a positive integer")
        if self.budget < 0 or self.spent_budget < 0:
            raise ValueError("budget and spent_budget must be non-negative")
        if self.spent_budget > self.budget:
            raise ValueError(f"spent_budget {self.spent_budget} exceeds budget {self.budget}")
        if self.signature_threshold < 1:
            raise ValueError("signature_threshold must be >= 1")
        seen = set()
        for v in self.verifiers:
            if v in seen:
                raise DuplicateVerifier(address=v, subject_id=self.id)
            seen.add(v)

    # ---- Derived ----

    @property
    def remaining_budget(self) -> int:
        return self.budget - self.spent_budget

    def is_owner(self, addr: str) -> bool:
        return addr.lower() == self.owner

    def is_owner_or_operator(self, addr: str) -> bool:
        a = addr.lower()
        return a == self.owner or a == self.operator

    # ---- Transitions (return new records) ----

    def with_spent(self, spent_budget: int) -> "Application":
        return replace(self, spent_budget=spent_budget)

    def with_verifiers(self, verifiers: Sequence[str]) -> "Application":
        return replace(self, verifiers=normalize_addresses(verifiers))

    def with_prices(self, prices: PriceVector) -> "Application":
        return replace(self, prices=prices, price_version=self.price_version + 1)

    # ---- Serialization ----

    def to_dict(self) -> Dict[str, Any]:
        d = asdict(self)
        d["peer_ids"] = list(self.peer_ids)
        d["verifiers"] = list(self.verifiers)
        d["prices"] = self.prices.to_dict()
        d["reward_mode"] = self.reward_mode.value
        d["signer_policy"] = self.signer_policy.value
        return d

    @staticmethod
    def from_dict(d: Mapping[str, Any]) -> "Application":
        return Application(
            id=int(d["id"]),
            owner=normalize_address(d["owner"]),
            operator=normalize_address(d["operator"]),
            verifier=normalize_address(d["verifier"]),
            name=str(d["name"]),
            symbol=str(d["symbol"]),
            budget=int(d["budget"]),
            peer_ids=tuple(str(p) for p in d.get("peer_ids", ())),
            metadata=str(d.get("metadata", "")),
            spent_budget=int(d.get("spent_budget", 0)),
            payment_asset=normalize_address(d.get("payment_asset", NATIVE_ASSET)),
            prices=PriceVector.from_dict(d.get("prices", {})),
            price_version=int(d.get("price_version", 0)),
            reward_mode=RewardMode(d.get("reward_mode", RewardMode.PRICED.value)),
            signer_policy=SignerPolicy(d.get("signer_policy", SignerPolicy.SINGLE.value)),
            signature_threshold=int(d.get("signature_threshold", 1)),
            verifiers=normalize_addresses(d.get("verifiers", ())),
            created_at=int(d.get("created_at", 0)),
        )


__all__ = ["RewardMode", "SignerPolicy", "PriceVector", "Application"]
