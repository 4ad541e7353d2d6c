from __future__ import annotations

from .accrual import ANCHORED, ROLLING, accrue, check_budget, check_fresh
from .pricing import GB, compute_reward, priced_reward, unit_sum_reward
from .refund import plan_refund
from .settlement import ClaimPlan, build_transfers, plan_claim
from .split import RATE_DENOMINATOR, FeeSplit, check_rate, split_reward

__all__ = [
    "ANCHORED",
    "ROLLING",
    "accrue",
    "check_budget",
    "check_fresh",
    "GB",
    "compute_reward",
    "priced_reward",
    "unit_sum_reward",
    "plan_refund",
    "ClaimPlan",
    "build_transfers",
    "plan_claim",
    "RATE_DENOMINATOR",
    "FeeSplit",
    "check_rate",
    "split_reward",
]
