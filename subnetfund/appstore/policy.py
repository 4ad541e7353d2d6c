from __future__ import annotations

"""
Authorization predicates over Application records.

These are pure functions: they read the record they are given and never touch
a store, so callers evaluate them under whatever lock protects the record.
"""

from typing import Tuple

from ..errors import NotContractOwner, NotOwner, NotOwnerOrOperator
from ..sftypes.application import Application


def verifier_set(app: Application) -> Tuple[str, ...]:
    """Ordered verifier addresses of `app` (order matters for quorum blobs)."""
    return app.verifiers


def is_authorized_signer(app: Application, addr: str) -> bool:
    a = addr.lower()
    return a == app.owner or a == app.operator or a in app.verifiers


def require_owner(app: Application, caller: str) -> None:
    if not app.is_owner(caller):
        raise NotOwner(subject_id=app.id, caller=caller)


def require_owner_or_operator(app: Application, caller: str) -> None:
    if not app.is_owner_or_operator(caller):
        raise NotOwnerOrOperator(subject_id=app.id, caller=caller)


def require_admin(admin: str, caller: str) -> None:
    if caller.lower() != admin:
        raise NotContractOwner(caller=caller)


__all__ = [
    "verifier_set",
    "is_authorized_signer",
    "require_owner",
    "require_owner_or_operator",
    "require_admin",
]
