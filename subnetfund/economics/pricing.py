from __future__ import annotations

"""
Pricing: convert a usage report -> reward amount.

Two strategies are supported, selected per application by `RewardMode`:

priced
    reward = duration * ( cpu * p_cpu + gpu * p_gpu
                          + (memory * p_mem + storage * p_stor
                             + (upload + download) * p_bw) // 1e9 )

    Byte counters are normalised to GB in fixed point: the byte-weighted terms
    are multiplied by their price first and divided by 1e9 once, so sub-GB
    usage is not truncated to zero.

unit_sum
    reward = duration * (cpu + gpu + memory + storage + (upload + download) // 1e9)

    An unweighted sum; memory and storage are taken as reported.

Design notes
-----------
- Integer native unit, no floating point anywhere.
- Results are bounded to a 256-bit unsigned range; anything larger raises
  AmountOverflow instead of wrapping.

Example
-------
>>> from subnetfund.sftypes import PriceVector, UsageReport
>>> r = UsageReport(subject_id=1, provider_id=1, peer_id="p", cpu=2, duration=10)
>>> priced_reward(r, PriceVector(cpu=5))
100
"""

from typing import Final

from ..errors import AmountOverflow
from ..sftypes import MAX_AMOUNT
from ..sftypes.application import Application, PriceVector, RewardMode
from ..sftypes.usage import UsageReport

GB: Final[int] = 10**9


def _bounded(v: int) -> int:
    if v > MAX_AMOUNT:
        raise AmountOverflow(value=v, limit=MAX_AMOUNT)
    return v


def priced_reward(report: UsageReport, prices: PriceVector) -> int:
    byte_weighted = (
        report.memory * prices.memory
        + report.storage * prices.storage
        + report.bandwidth_bytes * prices.bandwidth
    )
    per_second = report.cpu * prices.cpu + report.gpu * prices.gpu + byte_weighted // GB
    return _bounded(report.duration * per_second)


def unit_sum_reward(report: UsageReport) -> int:
    units = report.cpu + report.gpu + report.memory + report.storage + report.bandwidth_bytes // GB
    return _bounded(report.duration * units)


def compute_reward(report: UsageReport, app: Application) -> int:
    """Reward for `report` under `app`'s reward mode and current prices."""
    if app.reward_mode is RewardMode.PRICED:
        return priced_reward(report, app.prices)
    if app.reward_mode is RewardMode.UNIT_SUM:
        return unit_sum_reward(report)
    raise ValueError(f"unknown reward mode {app.reward_mode!r}")  # pragma: no cover


__all__ = ["GB", "priced_reward", "unit_sum_reward", "compute_reward"]
