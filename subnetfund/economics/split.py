from __future__ import annotations
"""
Split rules: divide a claimed reward among treasury / verifier / payee.

Rates are parts per 1000. The verifier share is taken from what is left after
the treasury fee, not from the gross:

    fee          = gross * fee_rate // 1000
    verifier_fee = (gross - fee) * verifier_rate // 1000
    net          = gross - fee - verifier_fee

Integer rounding always leaves the remainder with the payee, so the three
parts sum to the gross exactly.

Example
-------
>>> split_reward(1_000_000, fee_rate=50, verifier_rate=100)
FeeSplit(gross=1000000, fee=50000, verifier_fee=95000, net=855000)
"""


from dataclasses import asdict, dataclass
from typing import Dict, Final

from ..errors import FeeRateTooHigh

Amount = int

RATE_DENOMINATOR: Final[int] = 1000


@dataclass(frozen=True)
class FeeSplit:
    gross: Amount
    fee: Amount
    verifier_fee: Amount
    net: Amount

    def to_dict(self) -> Dict[str, int]:
        return asdict(self)


def check_rate(rate: int, *, name: str = "fee_rate", denominator: int = RATE_DENOMINATOR) -> int:
    if not isinstance(rate, int) or rate < 0:
        raise ValueError(f"{name} must be a non-negative int, got {rate!r}")
    if rate > denominator:
        raise FeeRateTooHigh(rate=rate, ceiling=denominator, name=name)
    return rate


def split_reward(
    gross: Amount,
    fee_rate: int,
    verifier_rate: int = 0,
    *,
    denominator: int = RATE_DENOMINATOR,
) -> FeeSplit:
    if not isinstance(gross, int) or gross < 0:
        raise ValueError(f"gross must be a non-negative int, got {gross!r}")
    check_rate(fee_rate, name="fee_rate", denominator=denominator)
    check_rate(verifier_rate, name="verifier_reward_rate", denominator=denominator)

    fee = gross * fee_rate // denominator
    verifier_fee = (gross - fee) * verifier_rate // denominator
    net = gross - fee - verifier_fee

    assert fee + verifier_fee + net == gross, "split invariant violated"
    assert min(fee, verifier_fee, net) >= 0, "negative split share"

    return FeeSplit(gross=gross, fee=fee, verifier_fee=verifier_fee, net=net)


__all__ = ["RATE_DENOMINATOR", "FeeSplit", "check_rate", "split_reward"]
