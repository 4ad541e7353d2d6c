from __future__ import annotations

from dataclasses import asdict, dataclass, replace
from enum import Enum
from typing import Any, Dict, Mapping, Optional, Tuple

from .address import normalize_address


class VerifierStatus(str, Enum):
    REGISTERED = "registered"
    SLASHED = "slashed"
    EXITING = "exiting"
    EXITED = "exited"

    @property
    def rank(self) -> int:
        return _RANK[self]


# Status only ever moves forward along this order.
_RANK = {
    VerifierStatus.REGISTERED: 0,
    VerifierStatus.SLASHED: 1,
    VerifierStatus.EXITING: 2,
    VerifierStatus.EXITED: 3,
}


@dataclass(frozen=True)
class StakeRecord:
    address: str
    staked_amount: int
    status: VerifierStatus = VerifierStatus.REGISTERED
    slash_percentage: int = 0
    registered_at: int = 0
    exit_requested_at: Optional[int] = None
    peer_ids: Tuple[str, ...] = ()
    name: str = ""
    url: str = ""
    metadata: str = ""

    def __post_init__(self) -> None:
        object.__setattr__(self, "address", normalize_address(self.address))
        if self.staked_amount < 0:
            raise ValueError("staked_amount must be non-negative")
        if not (0 <= self.slash_percentage <= 100):
            raise ValueError(f"slash_percentage must be within 0..100 (got {self.slash_percentage})")

    @property
    def is_slashed(self) -> bool:
        return self.slash_percentage > 0

    def update(self, **changes: Any) -> "StakeRecord":
        return replace(self, **changes)

    def to_dict(self) -> Dict[str, Any]:
        d = asdict(self)
        d["status"] = self.status.value
        d["peer_ids"] = list(self.peer_ids)
        return d

    @staticmethod
    def from_dict(d: Mapping[str, Any]) -> "StakeRecord":
        return StakeRecord(
            address=str(d["address"]),
            staked_amount=int(d["staked_amount"]),
            status=VerifierStatus(d.get("status", VerifierStatus.REGISTERED.value)),
            slash_percentage=int(d.get("slash_percentage", 0)),
            registered_at=int(d.get("registered_at", 0)),
            exit_requested_at=int(d["exit_requested_at"]) if d.get("exit_requested_at") is not None else None,
            peer_ids=tuple(str(p) for p in d.get("peer_ids", ())),
            name=str(d.get("name", "")),
            url=str(d.get("url", "")),
            metadata=str(d.get("metadata", "")),
        )


__all__ = ["VerifierStatus", "StakeRecord"]
