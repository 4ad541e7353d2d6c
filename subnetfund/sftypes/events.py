from __future__ import annotations
"""
Settlement event types.

Every state-changing operation emits one or more of these onto an in-process
EventLog. Events are frozen dataclasses with JSON-serializable fields; the
`to_dict()` form carries an extra `"event"` key naming the type so consumers
(RPC, CLI, indexers) can dispatch without isinstance checks.

Application lifecycle:
  - AppCreated, AppUpdated, VerifiersUpdated, VerifierRemoved
Usage & settlement:
  - UsageAccepted, RewardClaimed, LockedRewardPaid, ProviderRefunded
Administration:
  - FeeRateUpdated, VerifierRewardRateUpdated, TreasuryUpdated, RewardLockDurationUpdated
Verifier staking:
  - VerifierRegistered, VerifierPeersUpdated, VerifierDeleted, VerifierSlashed,
    VerifierExitRequested, VerifierExited
Uptime rewards:
  - RewardsDeposited, UptimeReported, UptimeRewardClaimed, RewardPerSecondUpdated,
    MerkleRootUpdated, UptimeVerifierUpdated
"""


from dataclasses import asdict, dataclass
from threading import RLock
from typing import Any, Callable, Dict, Iterator, List, Optional, Tuple, Type, TypeVar
import logging

log = logging.getLogger(__name__)


@dataclass(frozen=True)
class Event:
    def to_dict(self) -> Dict[str, Any]:
        d = asdict(self)
        for k, v in d.items():
            if isinstance(v, tuple):
                d[k] = list(v)
        d["event"] = type(self).__name__
        return d


# ────────────────────────────────────────────────────────────────────────────────
# Application lifecycle
# ────────────────────────────────────────────────────────────────────────────────

@dataclass(frozen=True)
class AppCreated(Event):
    subject_id: int
    name: str
    symbol: str
    owner: str
    budget: int


@dataclass(frozen=True)
class AppUpdated(Event):
    subject_id: int
    field: str
    value: Any


@dataclass(frozen=True)
class VerifiersUpdated(Event):
    subject_id: int
    verifiers: Tuple[str, ...]


@dataclass(frozen=True)
class VerifierRemoved(Event):
    subject_id: int
    index: int
    verifier: str


# ────────────────────────────────────────────────────────────────────────────────
# Usage & settlement
# ────────────────────────────────────────────────────────────────────────────────

@dataclass(frozen=True)
class UsageAccepted(Event):
    subject_id: int
    provider_id: int
    peer_id: str
    reward: int
    pending_reward: int
    unlock_at: int
    timestamp: int


@dataclass(frozen=True)
class RewardClaimed(Event):
    """Amount moved into (or still sitting in) a lock window ending at `unlock_at`."""
    subject_id: int
    provider_id: int
    amount: int
    unlock_at: int


@dataclass(frozen=True)
class LockedRewardPaid(Event):
    subject_id: int
    provider_id: int
    gross: int
    fee: int
    verifier_fee: int
    net: int
    payee: str
    verifier: str


@dataclass(frozen=True)
class ProviderRefunded(Event):
    subject_id: int
    provider_id: int
    amount: int


# ────────────────────────────────────────────────────────────────────────────────
# Administration
# ────────────────────────────────────────────────────────────────────────────────

@dataclass(frozen=True)
class FeeRateUpdated(Event):
    old: int
    new: int


@dataclass(frozen=True)
class VerifierRewardRateUpdated(Event):
    old: int
    new: int


@dataclass(frozen=True)
class TreasuryUpdated(Event):
    old: str
    new: str


@dataclass(frozen=True)
class RewardLockDurationUpdated(Event):
    old: int
    new: int


# ────────────────────────────────────────────────────────────────────────────────
# Verifier staking
# ────────────────────────────────────────────────────────────────────────────────

@dataclass(frozen=True)
class VerifierRegistered(Event):
    address: str
    stake: int


@dataclass(frozen=True)
class VerifierPeersUpdated(Event):
    address: str
    peer_ids: Tuple[str, ...]


@dataclass(frozen=True)
class VerifierDeleted(Event):
    address: str


@dataclass(frozen=True)
class VerifierSlashed(Event):
    address: str
    percentage: int
    total_percentage: int


@dataclass(frozen=True)
class VerifierExitRequested(Event):
    address: str
    release_at: int


@dataclass(frozen=True)
class VerifierExited(Event):
    address: str
    released: int
    slashed: int


# ────────────────────────────────────────────────────────────────────────────────
# Uptime rewards
# ────────────────────────────────────────────────────────────────────────────────

@dataclass(frozen=True)
class RewardsDeposited(Event):
    sender: str
    amount: int


@dataclass(frozen=True)
class UptimeReported(Event):
    provider_id: int
    uptime: int
    reward: int
    fee: int


@dataclass(frozen=True)
class UptimeRewardClaimed(Event):
    provider_id: int
    owner: str
    amount: int


@dataclass(frozen=True)
class RewardPerSecondUpdated(Event):
    old: int
    new: int


@dataclass(frozen=True)
class MerkleRootUpdated(Event):
    old: str
    new: str


@dataclass(frozen=True)
class UptimeVerifierUpdated(Event):
    old: str
    new: str


# ────────────────────────────────────────────────────────────────────────────────
# In-process log
# ────────────────────────────────────────────────────────────────────────────────

E = TypeVar("E", bound=Event)
Subscriber = Callable[[Event], None]


class EventLog:
    """
    Append-only list of emitted events with synchronous fan-out.

    Subscribers are called in registration order after the event is recorded.
    A subscriber that raises is logged and skipped: the state change that
    produced the event is already committed and stays committed.
    """

    def __init__(self) -> None:
        self._events: List[Event] = []
        self._subs: List[Subscriber] = []
        self._lock = RLock()

    def emit(self, event: Event) -> Event:
        with self._lock:
            self._events.append(event)
            subs = list(self._subs)
        for fn in subs:
            try:
                fn(event)
            except Exception:
                log.exception("event subscriber failed event=%s", type(event).__name__)
        return event

    def subscribe(self, fn: Subscriber) -> Callable[[], None]:
        """Register `fn`; returns a callable that unsubscribes it."""
        with self._lock:
            self._subs.append(fn)

        def _unsubscribe() -> None:
            with self._lock:
                if fn in self._subs:
                    self._subs.remove(fn)

        return _unsubscribe

    def of_type(self, etype: Type[E]) -> List[E]:
        with self._lock:
            return [e for e in self._events if isinstance(e, etype)]

    def last(self, etype: Optional[Type[E]] = None) -> Optional[Event]:
        with self._lock:
            for e in reversed(self._events):
                if etype is None or isinstance(e, etype):
                    return e
        return None

    def clear(self) -> None:
        with self._lock:
            self._events.clear()

    def to_list(self) -> List[Dict[str, Any]]:
        with self._lock:
            return [e.to_dict() for e in self._events]

    def __len__(self) -> int:
        return len(self._events)

    def __iter__(self) -> Iterator[Event]:
        with self._lock:
            return iter(list(self._events))


__all__ = [
    "Event",
    "AppCreated",
    "AppUpdated",
    "VerifiersUpdated",
    "VerifierRemoved",
    "UsageAccepted",
    "RewardClaimed",
    "LockedRewardPaid",
    "ProviderRefunded",
    "FeeRateUpdated",
    "VerifierRewardRateUpdated",
    "TreasuryUpdated",
    "RewardLockDurationUpdated",
    "VerifierRegistered",
    "VerifierPeersUpdated",
    "VerifierDeleted",
    "VerifierSlashed",
    "VerifierExitRequested",
    "VerifierExited",
    "RewardsDeposited",
    "UptimeReported",
    "UptimeRewardClaimed",
    "RewardPerSecondUpdated",
    "MerkleRootUpdated",
    "UptimeVerifierUpdated",
    "EventLog",
]
