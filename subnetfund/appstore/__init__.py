from __future__ import annotations
"""
subnetfund.appstore - application management and the settlement API.

`policy` holds pure authorization predicates and is imported by the
attestation verifier, so the service module is loaded lazily to keep that
import edge acyclic.
"""

import importlib
from typing import Any

from . import policy

__all__ = ["policy", "AppStoreService", "APPSTORE_CUSTODY"]

_LAZY = {"AppStoreService": ".service", "APPSTORE_CUSTODY": ".service"}


def __getattr__(name: str) -> Any:
    if name in _LAZY:
        return getattr(importlib.import_module(_LAZY[name], __name__), name)
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")
