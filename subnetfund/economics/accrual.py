from __future__ import annotations

"""
Reward accrual: fold an accepted usage reward into an application's budget and
a provider's accrual record.

Pure functions over frozen records; the caller persists the returned pair
only if every step succeeded, which makes an accrual all-or-nothing.

Lock modes
----------
anchored
    The first accrual into an empty window sets `unlock_at = now + lock`.
    Later accruals before the claim keep that timestamp, so a steady stream of
    reports never pushes the unlock time out.
rolling
    Accruals only grow `pending_reward`. The lock window is opened by a claim,
    which commits the current pending amount to `locked_reward` until
    `now + lock` (see `settlement.plan_claim`).
"""

from typing import Tuple
import logging

from ..errors import AmountOverflow, InsufficientBudget, StaleReport
from ..sftypes import MAX_AMOUNT
from ..sftypes.accrual import Accrual
from ..sftypes.application import Application

log = logging.getLogger(__name__)

ANCHORED = "anchored"
ROLLING = "rolling"


def check_fresh(accrual: Accrual, timestamp: int) -> None:
    """Reject a report whose timestamp is not strictly newer than the last accepted one."""
    if timestamp <= accrual.last_report_at:
        raise StaleReport(timestamp=timestamp, last_accepted=accrual.last_report_at)


def check_budget(app: Application, reward: int) -> None:
    if app.spent_budget + reward > app.budget:
        raise InsufficientBudget(subject_id=app.id, budget=app.budget,
                                 spent=app.spent_budget, requested=reward)


def accrue(
    app: Application,
    accrual: Accrual,
    *,
    reward: int,
    timestamp: int,
    now: int,
    lock_seconds: int,
    mode: str = ANCHORED,
) -> Tuple[Application, Accrual]:
    """
    Debit `reward` from `app`'s remaining budget and credit it to `accrual`.

    Returns the updated (application, accrual) pair. Nothing is mutated.
    """
    check_fresh(accrual, timestamp)
    check_budget(app, reward)

    pending = accrual.pending_reward + reward
    if pending > MAX_AMOUNT:
        raise AmountOverflow(value=pending, limit=MAX_AMOUNT)

    unlock_at = accrual.unlock_at
    if mode == ANCHORED:
        if accrual.pending_reward == 0 and reward > 0:
            unlock_at = now + lock_seconds
    elif mode != ROLLING:
        raise ValueError(f"unknown lock mode {mode!r}")

    new_app = app.with_spent(app.spent_budget + reward)
    new_accrual = accrual.update(pending_reward=pending, unlock_at=unlock_at, last_report_at=timestamp)
    return new_app, new_accrual


__all__ = ["ANCHORED", "ROLLING", "check_fresh", "check_budget", "accrue"]
