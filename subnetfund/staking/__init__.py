from __future__ import annotations

from .verifiers import STAKING_CUSTODY, VerifierStaking

__all__ = ["STAKING_CUSTODY", "VerifierStaking"]
