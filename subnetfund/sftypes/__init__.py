from __future__ import annotations

"""
Lightweight shared types for subnet usage settlement.

Conventions
-----------
- Addresses are 0x-prefixed, lowercase, 20-byte hex strings.
- Application (subject) and provider ids are non-negative ints.
- Monetary values are integer base units (18 decimals by convention).
- Timestamps are UNIX seconds.
"""

from typing import NewType

from .accrual import Accrual, AccrualKey
from .address import NATIVE_ASSET, ZERO_ADDRESS, is_address, normalize_address, normalize_addresses
from .application import Application, PriceVector, RewardMode, SignerPolicy
from .stake import StakeRecord, VerifierStatus
from .usage import SignerSignature, UsageReport

# ────────────────────────────────────────────────────────────────────────────────
# Identifiers & primitives
# ────────────────────────────────────────────────────────────────────────────────

SubjectId = NewType("SubjectId", int)
ProviderId = NewType("ProviderId", int)
Address = NewType("Address", str)
Amount = NewType("Amount", int)
Timestamp = NewType("Timestamp", int)

# Largest value an amount may take; mirrors a 256-bit unsigned accumulator.
MAX_AMOUNT = 2**256 - 1

__all__ = [
    "SubjectId",
    "ProviderId",
    "Address",
    "Amount",
    "Timestamp",
    "MAX_AMOUNT",
    "NATIVE_ASSET",
    "ZERO_ADDRESS",
    "is_address",
    "normalize_address",
    "normalize_addresses",
    "Accrual",
    "AccrualKey",
    "Application",
    "PriceVector",
    "RewardMode",
    "SignerPolicy",
    "StakeRecord",
    "VerifierStatus",
    "SignerSignature",
    "UsageReport",
]
