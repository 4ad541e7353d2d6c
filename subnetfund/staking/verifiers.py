from __future__ import annotations

"""
Verifier staking: register, slash and exit subnet verifiers.

Verifiers lock a stake in the staking custody account when they register. The
staking owner may slash them by a percentage on the 0..100 scale; slashes add
up and saturate at 100. Leaving is a two-step affair:

  1) exit()  -> status Exiting, exit lock starts
  2) exit()  -> after `exit_lock_seconds`: status Exited, the unslashed part
                of the stake goes back to the verifier and the slashed part
                to the staking treasury

Status only moves forward: Registered -> Slashed -> Exiting -> Exited. A
verifier that is slashed while Exiting stays Exiting (its percentage still
grows).

`is_slashed()` makes this class a `VerifierStatusOracle`, which is what the
application store consults when pruning inactive verifiers.
"""

from threading import RLock
from typing import Callable, Dict, List, Optional, Sequence
import logging
import time

from .. import metrics
from ..config import StakeConfig
from ..errors import (AlreadyRegistered, InsufficientStake, InvalidStatusTransition,
                      NotContractOwner, NotOwnerOrOperator, StillLocked, UnknownParticipant)
from ..sftypes.address import NATIVE_ASSET, normalize_address
from ..sftypes.events import (EventLog, VerifierDeleted, VerifierExited, VerifierExitRequested,
                              VerifierPeersUpdated, VerifierRegistered, VerifierSlashed)
from ..sftypes.stake import StakeRecord, VerifierStatus
from ..treasury.ledger import TokenLedger, TransferInstruction

log = logging.getLogger(__name__)

# Holder address of locked verifier stakes on the custody ledger.
STAKING_CUSTODY = "0x" + "5f" * 20


class VerifierStaking:
    def __init__(
        self,
        *,
        owner: str,
        ledger: TokenLedger,
        treasury: Optional[str] = None,
        stake_asset: str = NATIVE_ASSET,
        custody: str = STAKING_CUSTODY,
        config: Optional[StakeConfig] = None,
        events: Optional[EventLog] = None,
        clock: Callable[[], int] | None = None,
    ) -> None:
        self.owner = normalize_address(owner)
        self.treasury = normalize_address(treasury or owner)
        self.stake_asset = normalize_address(stake_asset)
        self.custody = normalize_address(custody)
        self.cfg = config or StakeConfig()
        self.cfg.validate()
        self.ledger = ledger
        self.events = events if events is not None else EventLog()
        self._clock = clock or (lambda: int(time.time()))
        self._records: Dict[str, StakeRecord] = {}
        self._lock = RLock()

    # ---- Queries ----

    def get(self, address: str) -> StakeRecord:
        rec = self._records.get(address.lower())
        if rec is None:
            raise UnknownParticipant(address=address)
        return rec

    def is_registered(self, address: str) -> bool:
        return address.lower() in self._records

    def is_slashed(self, address: str) -> bool:
        rec = self._records.get(address.lower())
        return bool(rec and rec.is_slashed)

    def list(self) -> List[StakeRecord]:
        with self._lock:
            return [r for _, r in sorted(self._records.items())]

    # ---- Lifecycle ----

    def register(
        self,
        caller: str,
        stake: int,
        *,
        name: str = "",
        url: str = "",
        metadata: str = "",
        peer_ids: Sequence[str] = (),
    ) -> StakeRecord:
        addr = normalize_address(caller)
        with self._lock:
            existing = self._records.get(addr)
            if existing is not None and existing.status is not VerifierStatus.EXITED:
                raise AlreadyRegistered(address=addr)
            if stake < self.cfg.min_stake:
                raise InsufficientStake(required=self.cfg.min_stake, actual=stake, address=addr)

            self.ledger.transfer(self.stake_asset, addr, self.custody, stake, memo="verifier_stake")
            rec = StakeRecord(address=addr, staked_amount=stake, registered_at=self._clock(),
                              peer_ids=tuple(peer_ids), name=name, url=url, metadata=metadata)
            self._records[addr] = rec

        log.info("verifier registered address=%s stake=%d", addr, stake)
        self.events.emit(VerifierRegistered(address=addr, stake=stake))
        return rec

    def update_peers(self, caller: str, address: str, peer_ids: Sequence[str]) -> StakeRecord:
        with self._lock:
            rec = self.get(address)
            c = caller.lower()
            if c != rec.address and c != self.owner:
                raise NotOwnerOrOperator(caller=caller, message="only the verifier or the owner can update peers")
            rec = rec.update(peer_ids=tuple(peer_ids))
            self._records[rec.address] = rec
        self.events.emit(VerifierPeersUpdated(address=rec.address, peer_ids=rec.peer_ids))
        return rec

    def delete(self, caller: str, address: str) -> None:
        """Owner removes a verifier; its remaining stake is settled as on exit."""
        self._require_owner(caller)
        with self._lock:
            rec = self.get(address)
            if rec.staked_amount:
                self._release(rec, memo="verifier_delete")
            del self._records[rec.address]
        log.info("verifier deleted address=%s", rec.address)
        self.events.emit(VerifierDeleted(address=rec.address))

    def slash(self, caller: str, address: str, percentage: int) -> StakeRecord:
        self._require_owner(caller)
        if not isinstance(percentage, int) or not (0 < percentage <= self.cfg.slash_scale):
            raise ValueError(f"slash percentage must be within 1..{self.cfg.slash_scale} (got {percentage!r})")
        with self._lock:
            rec = self.get(address)
            if rec.status is VerifierStatus.EXITED:
                raise InvalidStatusTransition(address=rec.address, current=rec.status.value,
                                              requested=VerifierStatus.SLASHED.value)
            total = min(self.cfg.slash_scale, rec.slash_percentage + percentage)
            status = rec.status
            if status.rank < VerifierStatus.SLASHED.rank:
                status = VerifierStatus.SLASHED
            rec = rec.update(slash_percentage=total, status=status)
            self._records[rec.address] = rec

        log.info("verifier slashed address=%s pct=%d total=%d", rec.address, percentage, total)
        metrics.record_slash()
        self.events.emit(VerifierSlashed(address=rec.address, percentage=percentage, total_percentage=total))
        return rec

    def exit(self, caller: str) -> StakeRecord:
        """First call starts the exit lock; a call after the lock releases the stake."""
        now = self._clock()
        with self._lock:
            rec = self.get(caller)
            if rec.status is VerifierStatus.EXITED:
                raise InvalidStatusTransition(address=rec.address, current=rec.status.value,
                                              requested=VerifierStatus.EXITED.value)
            if rec.exit_requested_at is None:
                rec = rec.update(status=VerifierStatus.EXITING, exit_requested_at=now)
                self._records[rec.address] = rec
                release_at = now + self.cfg.exit_lock_seconds
                log.info("verifier exit requested address=%s release_at=%d", rec.address, release_at)
                self.events.emit(VerifierExitRequested(address=rec.address, release_at=release_at))
                return rec

            release_at = rec.exit_requested_at + self.cfg.exit_lock_seconds
            if now < release_at:
                raise StillLocked(release_at=release_at, now=now)
            released, slashed = self._release(rec, memo="verifier_exit")
            rec = rec.update(status=VerifierStatus.EXITED, staked_amount=0)
            self._records[rec.address] = rec

        log.info("verifier exited address=%s released=%d slashed=%d", rec.address, released, slashed)
        self.events.emit(VerifierExited(address=rec.address, released=released, slashed=slashed))
        return rec

    # ---- Persistence ----

    def dump(self) -> Dict:
        with self._lock:
            return {"verifiers": [r.to_dict() for r in self.list()]}

    def load(self, data: Dict) -> None:
        with self._lock:
            self._records = {}
            for d in data.get("verifiers", ()):
                rec = StakeRecord.from_dict(d)
                self._records[rec.address] = rec

    # ---- Internals ----

    def _release(self, rec: StakeRecord, *, memo: str) -> tuple[int, int]:
        scale = self.cfg.slash_scale
        released = rec.staked_amount * (scale - rec.slash_percentage) // scale
        slashed = rec.staked_amount - released
        legs = [TransferInstruction(self.stake_asset, self.custody, rec.address, released, memo)]
        if slashed:
            legs.append(TransferInstruction(self.stake_asset, self.custody, self.treasury, slashed, memo + ":slashed"))
        self.ledger.transfer_batch(legs)
        return released, slashed

    def _require_owner(self, caller: str) -> None:
        if caller.lower() != self.owner:
            raise NotContractOwner(caller=caller)


__all__ = ["STAKING_CUSTODY", "VerifierStaking"]
