from __future__ import annotations

from dataclasses import asdict, dataclass, replace
from typing import Any, Dict, Mapping, Tuple

AccrualKey = Tuple[int, int]  # (subject_id, provider_id)


@dataclass(frozen=True)
class Accrual:
    """
    Reward bookkeeping for one (application, provider) pair.

    pending_reward  accrued and not yet paid
    locked_reward   rolling lock mode only: amount committed to the current window
    unlock_at       earliest claim time of the current window (0 = no window)
    last_report_at  timestamp of the last accepted usage report (replay guard)
    """
    subject_id: int
    provider_id: int
    pending_reward: int = 0
    locked_reward: int = 0
    unlock_at: int = 0
    total_claimed: int = 0
    last_report_at: int = 0

    def __post_init__(self) -> None:
        for name in ("pending_reward", "locked_reward", "unlock_at", "total_claimed", "last_report_at"):
            if getattr(self, name) < 0:
                raise ValueError(f"{name} must be non-negative")

    @property
    def key(self) -> AccrualKey:
        return (self.subject_id, self.provider_id)

    @property
    def outstanding(self) -> int:
        """Everything owed to the provider that has not been paid yet."""
        return self.pending_reward + self.locked_reward

    def update(self, **changes: Any) -> "Accrual":
        return replace(self, **changes)

    def to_dict(self) -> Dict[str, int]:
        return asdict(self)

    @staticmethod
    def from_dict(d: Mapping[str, Any]) -> "Accrual":
        return Accrual(**{k: int(d.get(k, 0)) for k in (
            "subject_id", "provider_id", "pending_reward", "locked_reward",
            "unlock_at", "total_claimed", "last_report_at")})


__all__ = ["AccrualKey", "Accrual"]
