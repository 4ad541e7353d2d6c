from __future__ import annotations

"""
Provider uptime rewards.

A designated uptime verifier publishes a Merkle root over
(provider_id, cumulative_uptime_seconds) leaves and then reports each
provider's uptime with an inclusion proof. The provider is credited for the
uptime it gained since its last report:

    reward = (uptime - last_uptime) * reward_per_second
    fee    = reward * fee_rate // 1000     -> treasury, paid at report time
    net    = reward - fee                  -> pending, anchored lock

Rewards are paid from a pool funded through `deposit_rewards`. Claims go to the
provider owner resolved through the provider oracle.
"""

from dataclasses import asdict, dataclass, replace
from threading import RLock
from typing import Callable, Dict, Optional
import logging
import time

from .. import metrics
from ..economics.split import check_rate, split_reward
from ..errors import (InactiveProvider, InvalidMerkleProof, NoRewards, NotAuthorizedSigner, NotContractOwner,
                      ProviderJailed, RewardLocked, StaleReport)
from ..oracle.interfaces import ProviderOracle
from ..sftypes.address import NATIVE_ASSET, normalize_address
from ..sftypes.events import (EventLog, MerkleRootUpdated, RewardPerSecondUpdated, RewardsDeposited,
                              UptimeReported, UptimeRewardClaimed, UptimeVerifierUpdated)
from ..treasury.ledger import TokenLedger, TransferInstruction
from .merkle import MerkleProof, merkle_verify, uptime_leaf

log = logging.getLogger(__name__)

UPTIME_CUSTODY = "0x" + "7e" * 20
DEFAULT_REWARD_PER_SECOND = 10**16  # 0.01 token
EMPTY_ROOT = b"\x00" * 32


@dataclass(frozen=True)
class UptimeAccount:
    provider_id: int
    uptime: int = 0
    pending_reward: int = 0
    unlock_at: int = 0
    total_claimed: int = 0

    def to_dict(self) -> Dict[str, int]:
        return asdict(self)


class ProviderUptime:
    def __init__(
        self,
        *,
        owner: str,
        verifier: str,
        providers: ProviderOracle,
        ledger: TokenLedger,
        treasury: Optional[str] = None,
        reward_asset: str = NATIVE_ASSET,
        custody: str = UPTIME_CUSTODY,
        reward_per_second: int = DEFAULT_REWARD_PER_SECOND,
        fee_rate: int = 50,
        lock_seconds: int = 30 * 86_400,
        events: Optional[EventLog] = None,
        clock: Callable[[], int] | None = None,
    ) -> None:
        self.owner = normalize_address(owner)
        self.verifier = normalize_address(verifier)
        self.treasury = normalize_address(treasury or owner)
        self.reward_asset = normalize_address(reward_asset)
        self.custody = normalize_address(custody)
        self.providers = providers
        self.ledger = ledger
        self.reward_per_second = int(reward_per_second)
        self.fee_rate = check_rate(fee_rate)
        self.lock_seconds = int(lock_seconds)
        self.merkle_root = EMPTY_ROOT
        self.events = events if events is not None else EventLog()
        self._clock = clock or (lambda: int(time.time()))
        self._accounts: Dict[int, UptimeAccount] = {}
        self._lock = RLock()

    # ---- Queries ----

    def account(self, provider_id: int) -> UptimeAccount:
        return self._accounts.get(provider_id) or UptimeAccount(provider_id=provider_id)

    def pending_reward(self, provider_id: int) -> int:
        return self.account(provider_id).pending_reward

    # ---- Administration ----

    def deposit_rewards(self, caller: str, amount: int) -> None:
        self.ledger.transfer(self.reward_asset, caller, self.custody, amount, memo="uptime_deposit")
        self.events.emit(RewardsDeposited(sender=normalize_address(caller), amount=amount))

    def update_reward_per_second(self, caller: str, reward_per_second: int) -> None:
        self._require_owner(caller)
        if reward_per_second < 0:
            raise ValueError("reward_per_second must be non-negative")
        with self._lock:
            old, self.reward_per_second = self.reward_per_second, reward_per_second
        self.events.emit(RewardPerSecondUpdated(old=old, new=reward_per_second))

    def update_verifier(self, caller: str, verifier: str) -> None:
        self._require_owner(caller)
        new = normalize_address(verifier)
        with self._lock:
            old, self.verifier = self.verifier, new
        self.events.emit(UptimeVerifierUpdated(old=old, new=new))

    def set_fee_rate(self, caller: str, rate: int) -> None:
        self._require_owner(caller)
        with self._lock:
            self.fee_rate = check_rate(rate)

    def update_merkle_root(self, caller: str, root: bytes) -> None:
        self._require_verifier(caller)
        if len(root) != 32:
            raise ValueError("merkle root must be 32 bytes")
        with self._lock:
            old, self.merkle_root = self.merkle_root, bytes(root)
        log.info("uptime merkle root updated root=%s", root.hex())
        self.events.emit(MerkleRootUpdated(old="0x" + old.hex(), new="0x" + root.hex()))

    # ---- Reporting & claiming ----

    def report_uptime(self, caller: str, provider_id: int, uptime: int, proof: MerkleProof) -> UptimeAccount:
        self._require_verifier(caller)
        with self._lock:
            if not self.providers.is_provider_active(provider_id):
                raise InactiveProvider(provider_id=provider_id)
            if not merkle_verify(self.merkle_root, uptime_leaf(provider_id, uptime), proof):
                raise InvalidMerkleProof(provider_id=provider_id)
            acct = self.account(provider_id)
            if uptime <= acct.uptime:
                raise StaleReport(timestamp=uptime, last_accepted=acct.uptime,
                                  message="uptime did not increase")

            split = split_reward((uptime - acct.uptime) * self.reward_per_second, self.fee_rate)
            if split.fee:
                self.ledger.transfer(self.reward_asset, self.custody, self.treasury, split.fee, memo="uptime_fee")

            unlock_at = acct.unlock_at
            if acct.pending_reward == 0 and split.net > 0:
                unlock_at = self._clock() + self.lock_seconds
            acct = replace(acct, uptime=uptime, pending_reward=acct.pending_reward + split.net, unlock_at=unlock_at)
            self._accounts[provider_id] = acct

        metrics.record_uptime_report()
        log.info("uptime reported provider=%s uptime=%d reward=%d fee=%d",
                 provider_id, uptime, split.gross, split.fee)
        self.events.emit(UptimeReported(provider_id=provider_id, uptime=uptime, reward=split.gross, fee=split.fee))
        return acct

    def claim_reward(self, provider_id: int) -> int:
        """Pay the matured pending reward to the provider owner; returns the amount."""
        with self._lock:
            if self.providers.is_provider_jailed(provider_id):
                raise ProviderJailed(provider_id=provider_id)
            acct = self.account(provider_id)
            if acct.pending_reward == 0:
                raise NoRewards(details={"provider_id": provider_id})
            now = self._clock()
            if now < acct.unlock_at:
                raise RewardLocked(unlock_at=acct.unlock_at, now=now)
            owner = self.providers.provider_owner(provider_id)
            if owner is None:
                raise InactiveProvider(provider_id=provider_id, message="provider has no owner on record")

            amount = acct.pending_reward
            self.ledger.transfer_batch([TransferInstruction(self.reward_asset, self.custody, owner, amount,
                                                            f"uptime_claim:{provider_id}")])
            self._accounts[provider_id] = replace(acct, pending_reward=0, unlock_at=0,
                                                  total_claimed=acct.total_claimed + amount)

        log.info("uptime reward claimed provider=%s owner=%s amount=%d", provider_id, owner, amount)
        self.events.emit(UptimeRewardClaimed(provider_id=provider_id, owner=owner, amount=amount))
        return amount

    # ---- Internals ----

    def _require_owner(self, caller: str) -> None:
        if caller.lower() != self.owner:
            raise NotContractOwner(caller=caller)

    def _require_verifier(self, caller: str) -> None:
        if caller.lower() != self.verifier:
            raise NotAuthorizedSigner(signer=caller, message="only the uptime verifier can do this")


__all__ = ["UPTIME_CUSTODY", "DEFAULT_REWARD_PER_SECOND", "UptimeAccount", "ProviderUptime"]
