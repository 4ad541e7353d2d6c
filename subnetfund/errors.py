from __future__ import annotations
# subnetfund/errors.py
"""
Error types for subnet usage settlement. They are lightweight, serializable,
and safe to surface over RPC/logs.

Every error belongs to one of five families:

- AuthorizationError      caller lacks the credential or signer quorum
- StatePreconditionError  operation not valid in the current lifecycle state
- EconomicError           would violate a budget, price or balance invariant
- ConfigurationError      administrative input outside the allowed range
- RequestError            malformed wire input at the RPC boundary

All of them are raised before (or instead of) any state mutation, so a failed
call leaves the stores untouched. None are retried by the core.
"""


from typing import Any, Dict, Mapping, Optional
import json


class SubnetFundError(Exception):
    """Base class for subnetfund domain errors."""

    code: str = "SUBNETFUND_ERROR"

    def __init__(self, message: str = "", *, details: Optional[Mapping[str, Any]] = None) -> None:
        self.message = message or self.__class__.__name__
        self.details = dict(details or {})
        super().__init__(self.__str__())

    def to_dict(self) -> Dict[str, Any]:
        return {"code": self.code, "message": self.message, "details": self.details}

    def __str__(self) -> str:  # pragma: no cover - trivial
        if self.details:
            # Keep this compact and stable for logs
            try:
                packed = json.dumps(self.details, sort_keys=True, separators=(",", ":"))
            except (TypeError, ValueError):
                packed = str(self.details)
            return f"{self.code}: {self.message} [{packed}]"
        return f"{self.code}: {self.message}"


def _with(details: Optional[Mapping[str, Any]], **extra: Any) -> Dict[str, Any]:
    d = dict(details or {})
    for k, v in extra.items():
        if v is not None:
            d.setdefault(k, v)
    return d


# ────────────────────────────────────────────────────────────────────────────────
# Families
# ────────────────────────────────────────────────────────────────────────────────

class AuthorizationError(SubnetFundError):
    code = "SUBNETFUND_UNAUTHORIZED"


class StatePreconditionError(SubnetFundError):
    code = "SUBNETFUND_STATE"


class EconomicError(SubnetFundError):
    code = "SUBNETFUND_ECONOMIC"


class ConfigurationError(SubnetFundError):
    code = "SUBNETFUND_CONFIG"


class RequestError(SubnetFundError):
    code = "SUBNETFUND_REQUEST"


# ────────────────────────────────────────────────────────────────────────────────
# Authorization
# ────────────────────────────────────────────────────────────────────────────────

class NotOwnerOrOperator(AuthorizationError):
    code = "NOT_OWNER_OR_OPERATOR"

    def __init__(self, *, subject_id: Optional[int] = None, caller: Optional[str] = None,
                 message: str = "only the owner or operator can perform this action",
                 details: Optional[Mapping[str, Any]] = None) -> None:
        super().__init__(message, details=_with(details, subject_id=subject_id, caller=caller))


class NotOwner(AuthorizationError):
    """Caller is not the application owner."""
    code = "NOT_OWNER"

    def __init__(self, *, subject_id: Optional[int] = None, caller: Optional[str] = None,
                 message: str = "only the application owner can perform this action",
                 details: Optional[Mapping[str, Any]] = None) -> None:
        super().__init__(message, details=_with(details, subject_id=subject_id, caller=caller))


class NotContractOwner(AuthorizationError):
    """Caller is not the administrator of the service/registry."""
    code = "NOT_CONTRACT_OWNER"

    def __init__(self, *, caller: Optional[str] = None, message: str = "caller is not the contract owner",
                 details: Optional[Mapping[str, Any]] = None) -> None:
        super().__init__(message, details=_with(details, caller=caller))


class NotAuthorizedSigner(AuthorizationError):
    code = "NOT_AUTHORIZED_SIGNER"

    def __init__(self, *, signer: Optional[str] = None, subject_id: Optional[int] = None,
                 message: str = "signer is not authorized for this subject",
                 details: Optional[Mapping[str, Any]] = None) -> None:
        super().__init__(message, details=_with(details, signer=signer, subject_id=subject_id))


class InvalidSignature(AuthorizationError):
    code = "INVALID_SIGNATURE"

    def __init__(self, message: str = "invalid signature", *,
                 details: Optional[Mapping[str, Any]] = None) -> None:
        super().__init__(message, details=details)


class MalformedSignature(InvalidSignature):
    """Signature blob has the wrong total length (fails before any recovery)."""
    code = "MALFORMED_SIGNATURE"

    def __init__(self, *, length: int, expected: Optional[int] = None,
                 message: str = "malformed signature blob",
                 details: Optional[Mapping[str, Any]] = None) -> None:
        super().__init__(message, details=_with(details, length=int(length), expected=expected))


# ────────────────────────────────────────────────────────────────────────────────
# State preconditions
# ────────────────────────────────────────────────────────────────────────────────

class UnknownSubject(StatePreconditionError):
    code = "UNKNOWN_SUBJECT"

    def __init__(self, *, subject_id: int, message: str = "unknown application",
                 details: Optional[Mapping[str, Any]] = None) -> None:
        super().__init__(message, details=_with(details, subject_id=int(subject_id)))


class InactiveProvider(StatePreconditionError):
    code = "INACTIVE_PROVIDER"

    def __init__(self, *, provider_id: int, peer_id: Optional[str] = None,
                 message: str = "provider is not active",
                 details: Optional[Mapping[str, Any]] = None) -> None:
        super().__init__(message, details=_with(details, provider_id=int(provider_id), peer_id=peer_id))


class ProviderJailed(StatePreconditionError):
    code = "PROVIDER_JAILED"

    def __init__(self, *, provider_id: int, message: str = "provider is jailed",
                 details: Optional[Mapping[str, Any]] = None) -> None:
        super().__init__(message, details=_with(details, provider_id=int(provider_id)))


class ProviderNotJailed(StatePreconditionError):
    code = "PROVIDER_NOT_JAILED"

    def __init__(self, *, provider_id: int, message: str = "provider is not jailed",
                 details: Optional[Mapping[str, Any]] = None) -> None:
        super().__init__(message, details=_with(details, provider_id=int(provider_id)))


class RewardLocked(StatePreconditionError):
    code = "REWARD_LOCKED"

    def __init__(self, *, unlock_at: int, now: int, message: str = "reward is locked",
                 details: Optional[Mapping[str, Any]] = None) -> None:
        super().__init__(message, details=_with(details, unlock_at=int(unlock_at), now=int(now)))


class NoRewards(StatePreconditionError):
    code = "NO_REWARDS"

    def __init__(self, message: str = "no rewards", *,
                 details: Optional[Mapping[str, Any]] = None) -> None:
        super().__init__(message, details=details)


class StillLocked(StatePreconditionError):
    code = "STILL_LOCKED"

    def __init__(self, *, release_at: int, now: int, message: str = "exit lock has not elapsed",
                 details: Optional[Mapping[str, Any]] = None) -> None:
        super().__init__(message, details=_with(details, release_at=int(release_at), now=int(now)))


class StaleReport(StatePreconditionError):
    """Report timestamp is not strictly newer than the last accepted one."""
    code = "STALE_REPORT"

    def __init__(self, *, timestamp: int, last_accepted: int, message: str = "stale or replayed report",
                 details: Optional[Mapping[str, Any]] = None) -> None:
        super().__init__(message, details=_with(details, timestamp=int(timestamp), last_accepted=int(last_accepted)))


class DuplicateSymbol(StatePreconditionError):
    code = "DUPLICATE_SYMBOL"

    def __init__(self, *, symbol: str, message: str = "symbol already exists",
                 details: Optional[Mapping[str, Any]] = None) -> None:
        super().__init__(message, details=_with(details, symbol=symbol))


class UnknownParticipant(StatePreconditionError):
    code = "UNKNOWN_PARTICIPANT"

    def __init__(self, *, address: str, message: str = "participant is not registered",
                 details: Optional[Mapping[str, Any]] = None) -> None:
        super().__init__(message, details=_with(details, address=address))


class AlreadyRegistered(StatePreconditionError):
    code = "ALREADY_REGISTERED"

    def __init__(self, *, address: str, message: str = "participant already registered",
                 details: Optional[Mapping[str, Any]] = None) -> None:
        super().__init__(message, details=_with(details, address=address))


class InvalidStatusTransition(StatePreconditionError):
    code = "INVALID_STATUS_TRANSITION"

    def __init__(self, *, address: str, current: str, requested: str,
                 message: str = "status transition not allowed",
                 details: Optional[Mapping[str, Any]] = None) -> None:
        super().__init__(message, details=_with(details, address=address, current=current, requested=requested))


class InvalidVerifierIndex(StatePreconditionError):
    code = "INVALID_VERIFIER_INDEX"

    def __init__(self, *, subject_id: int, index: int, size: int,
                 message: str = "verifier index out of range",
                 details: Optional[Mapping[str, Any]] = None) -> None:
        super().__init__(message, details=_with(details, subject_id=int(subject_id), index=int(index), size=int(size)))


class VerifierStillActive(StatePreconditionError):
    code = "VERIFIER_STILL_ACTIVE"

    def __init__(self, *, address: str, message: str = "verifier is not slashed",
                 details: Optional[Mapping[str, Any]] = None) -> None:
        super().__init__(message, details=_with(details, address=address))


class ReentrantCall(StatePreconditionError):
    code = "REENTRANT_CALL"

    def __init__(self, *, subject_id: int, provider_id: int,
                 message: str = "settlement already in flight for this pair",
                 details: Optional[Mapping[str, Any]] = None) -> None:
        super().__init__(message, details=_with(details, subject_id=int(subject_id), provider_id=int(provider_id)))


class InvalidMerkleProof(StatePreconditionError):
    code = "INVALID_MERKLE_PROOF"

    def __init__(self, *, provider_id: int, message: str = "invalid merkle proof",
                 details: Optional[Mapping[str, Any]] = None) -> None:
        super().__init__(message, details=_with(details, provider_id=int(provider_id)))


# ────────────────────────────────────────────────────────────────────────────────
# Economic
# ────────────────────────────────────────────────────────────────────────────────

class InsufficientBudget(EconomicError):
    code = "INSUFFICIENT_BUDGET"

    def __init__(self, *, subject_id: int, budget: int, spent: int, requested: int,
                 message: str = "insufficient budget",
                 details: Optional[Mapping[str, Any]] = None) -> None:
        d = _with(details, subject_id=int(subject_id))
        d.update({"budget": int(budget), "spent": int(spent), "requested": int(requested)})
        super().__init__(message, details=d)


class PriceChanged(EconomicError):
    code = "PRICE_CHANGED"

    def __init__(self, *, subject_id: int, expected_version: int, current_version: int,
                 message: str = "price schedule changed since the report was prepared",
                 details: Optional[Mapping[str, Any]] = None) -> None:
        d = _with(details, subject_id=int(subject_id))
        d.update({"expected_version": int(expected_version), "current_version": int(current_version)})
        super().__init__(message, details=d)


class TransferFailed(EconomicError):
    code = "TRANSFER_FAILED"

    def __init__(self, message: str = "transfer failed", *, asset: Optional[str] = None,
                 sender: Optional[str] = None, recipient: Optional[str] = None,
                 amount: Optional[int] = None, details: Optional[Mapping[str, Any]] = None) -> None:
        super().__init__(message, details=_with(details, asset=asset, sender=sender,
                                                recipient=recipient, amount=amount))


class AmountOverflow(EconomicError):
    code = "AMOUNT_OVERFLOW"

    def __init__(self, *, value: int, limit: int, message: str = "amount exceeds 256-bit range",
                 details: Optional[Mapping[str, Any]] = None) -> None:
        super().__init__(message, details=_with(details, value=str(value), limit=str(limit)))


class InsufficientStake(EconomicError):
    code = "INSUFFICIENT_STAKE"

    def __init__(self, *, required: int, actual: int, address: Optional[str] = None,
                 message: str = "insufficient stake",
                 details: Optional[Mapping[str, Any]] = None) -> None:
        d = _with(details, address=address)
        d.update({"required": int(required), "actual": int(actual)})
        super().__init__(message, details=d)


# ────────────────────────────────────────────────────────────────────────────────
# Configuration
# ────────────────────────────────────────────────────────────────────────────────

class FeeRateTooHigh(ConfigurationError):
    code = "FEE_RATE_TOO_HIGH"

    def __init__(self, *, rate: int, ceiling: int, name: str = "fee_rate",
                 message: str = "rate must not exceed 100%",
                 details: Optional[Mapping[str, Any]] = None) -> None:
        d = _with(details, name=name)
        d.update({"rate": int(rate), "ceiling": int(ceiling)})
        super().__init__(message, details=d)


class DuplicateVerifier(ConfigurationError):
    """The same address appears more than once in a verifier set."""
    code = "DUPLICATE_VERIFIER"

    def __init__(self, *, address: str, subject_id: Optional[int] = None,
                 message: str = "verifier listed more than once",
                 details: Optional[Mapping[str, Any]] = None) -> None:
        super().__init__(message, details=_with(details, address=address, subject_id=subject_id))


class InvalidConfig(ConfigurationError):
    code = "INVALID_CONFIG"


# ────────────────────────────────────────────────────────────────────────────────
# Request
# ────────────────────────────────────────────────────────────────────────────────

class InvalidRequest(RequestError):
    """A request parameter is missing or cannot be decoded."""
    code = "INVALID_REQUEST"

    def __init__(self, message: str = "invalid request", *, field: Optional[str] = None,
                 details: Optional[Mapping[str, Any]] = None) -> None:
        super().__init__(message, details=_with(details, field=field))


__all__ = [
    "SubnetFundError",
    "AuthorizationError",
    "StatePreconditionError",
    "EconomicError",
    "ConfigurationError",
    "RequestError",
    "NotOwnerOrOperator",
    "NotOwner",
    "NotContractOwner",
    "NotAuthorizedSigner",
    "InvalidSignature",
    "MalformedSignature",
    "UnknownSubject",
    "InactiveProvider",
    "ProviderJailed",
    "ProviderNotJailed",
    "RewardLocked",
    "NoRewards",
    "StillLocked",
    "StaleReport",
    "DuplicateSymbol",
    "UnknownParticipant",
    "AlreadyRegistered",
    "InvalidStatusTransition",
    "InvalidVerifierIndex",
    "VerifierStillActive",
    "ReentrantCall",
    "InvalidMerkleProof",
    "InsufficientBudget",
    "PriceChanged",
    "TransferFailed",
    "AmountOverflow",
    "InsufficientStake",
    "FeeRateTooHigh",
    "DuplicateVerifier",
    "InvalidConfig",
    "InvalidRequest",
]
