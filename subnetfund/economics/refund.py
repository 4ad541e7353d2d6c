from __future__ import annotations

"""
Refunds: return a jailed provider's unclaimed reward to the application budget.

Everything still owed to the provider (pending, plus the locked amount in
rolling mode) is subtracted from `spent_budget`, making it spendable by future
usage again. No tokens move: the budget never left custody.
"""

from typing import Tuple

from ..errors import NoRewards
from ..sftypes.accrual import Accrual
from ..sftypes.application import Application


def plan_refund(app: Application, accrual: Accrual) -> Tuple[Application, Accrual, int]:
    amount = accrual.outstanding
    if amount == 0:
        raise NoRewards(details={"subject_id": accrual.subject_id, "provider_id": accrual.provider_id})
    # spent_budget always covers outstanding accruals; clamp guards a hand-edited snapshot
    new_spent = max(0, app.spent_budget - amount)
    return (
        app.with_spent(new_spent),
        accrual.update(pending_reward=0, locked_reward=0, unlock_at=0),
        amount,
    )


__all__ = ["plan_refund"]
