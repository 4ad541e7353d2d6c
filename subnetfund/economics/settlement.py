from __future__ import annotations
"""
Claim settlement: turn an accrual into a payout plan.

`plan_claim` decides, from the accrual record alone, what a claim pays and how
the record looks afterwards. It performs no IO; the caller executes the
returned transfers as one batch on the custody ledger and commits the new
accrual only if the batch succeeded.

Typical flow
------------
1) Caller checks the provider is not jailed.
2) `plan_claim(...)` -> ClaimPlan (raises NoRewards / RewardLocked).
3) Caller commits `plan.after`, runs `ledger.transfer_batch(plan.transfers)`;
   on TransferFailed it restores `plan.before`.
4) Caller emits LockedRewardPaid when `plan.paid` is set and RewardClaimed.

Design notes
------------
- Transfers are fee -> treasury, verifier_fee -> verifier, net -> payee, all
  in the application's payment asset, all from the custody account.
- Zero-amount legs are omitted from the batch.
- In anchored mode a successful claim always pays the full pending amount and
  closes the window (`unlock_at = 0`). The next accrual opens a fresh one.
- In rolling mode a claim pays a matured locked amount (if any) and commits the
  current pending amount to a new window ending at `now + lock`.
"""


from dataclasses import dataclass
from typing import List, Optional, Tuple

from ..errors import NoRewards, RewardLocked
from ..sftypes.accrual import Accrual
from ..treasury.ledger import TransferInstruction
from .accrual import ANCHORED, ROLLING
from .split import FeeSplit, split_reward


@dataclass(frozen=True)
class ClaimPlan:
    before: Accrual
    after: Accrual
    paid: Optional[FeeSplit]           # None when nothing matured (rolling: lock only)
    transfers: Tuple[TransferInstruction, ...]
    relocked: int                      # amount committed to a new window (rolling)
    next_unlock_at: int

    @property
    def gross(self) -> int:
        return self.paid.gross if self.paid else 0


def build_transfers(
    split: FeeSplit,
    *,
    asset: str,
    custody: str,
    treasury: str,
    verifier: str,
    payee: str,
    memo: Optional[str] = None,
) -> Tuple[TransferInstruction, ...]:
    legs: List[TransferInstruction] = []
    for recipient, amount, tag in ((treasury, split.fee, "fee"),
                                   (verifier, split.verifier_fee, "verifier_fee"),
                                   (payee, split.net, "net")):
        if amount > 0:
            legs.append(TransferInstruction(asset=asset, sender=custody, recipient=recipient,
                                            amount=amount, memo=f"{memo}:{tag}" if memo else tag))
    return tuple(legs)


def plan_claim(
    accrual: Accrual,
    *,
    now: int,
    lock_seconds: int,
    mode: str,
    fee_rate: int,
    verifier_rate: int,
    asset: str,
    custody: str,
    treasury: str,
    verifier: str,
    payee: str,
) -> ClaimPlan:
    memo = f"claim:{accrual.subject_id}:{accrual.provider_id}"

    def _pay(amount: int) -> Tuple[FeeSplit, Tuple[TransferInstruction, ...]]:
        s = split_reward(amount, fee_rate, verifier_rate)
        return s, build_transfers(s, asset=asset, custody=custody, treasury=treasury,
                                  verifier=verifier, payee=payee, memo=memo)

    if mode == ANCHORED:
        if accrual.pending_reward == 0:
            raise NoRewards(details={"subject_id": accrual.subject_id, "provider_id": accrual.provider_id})
        if now < accrual.unlock_at:
            raise RewardLocked(unlock_at=accrual.unlock_at, now=now)
        gross = accrual.pending_reward
        split, transfers = _pay(gross)
        after = accrual.update(pending_reward=0, unlock_at=0, total_claimed=accrual.total_claimed + gross)
        return ClaimPlan(before=accrual, after=after, paid=split, transfers=transfers,
                         relocked=0, next_unlock_at=0)

    if mode == ROLLING:
        if accrual.locked_reward > 0 and now < accrual.unlock_at:
            raise RewardLocked(unlock_at=accrual.unlock_at, now=now)
        matured = accrual.locked_reward
        relock = accrual.pending_reward
        if matured == 0 and relock == 0:
            raise NoRewards(details={"subject_id": accrual.subject_id, "provider_id": accrual.provider_id})
        split, transfers = _pay(matured) if matured else (None, ())
        next_unlock = now + lock_seconds if relock else 0
        after = accrual.update(
            pending_reward=0,
            locked_reward=relock,
            unlock_at=next_unlock,
            total_claimed=accrual.total_claimed + matured,
        )
        return ClaimPlan(before=accrual, after=after, paid=split, transfers=transfers,
                         relocked=relock, next_unlock_at=next_unlock)

    raise ValueError(f"unknown lock mode {mode!r}")


__all__ = ["ClaimPlan", "build_transfers", "plan_claim"]
