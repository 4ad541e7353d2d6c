from __future__ import annotations

import re
from typing import Iterable, Tuple

_ADDRESS_RE = re.compile(r"^0x[0-9a-fA-F]{40}$")

# Sentinel payment asset meaning "the native coin" rather than a token ledger entry.
NATIVE_ASSET = "0x" + "00" * 20
ZERO_ADDRESS = NATIVE_ASSET


def is_address(s: str) -> bool:
    """Return True iff `s` is a 0x-prefixed 20-byte hex string."""
    return isinstance(s, str) and bool(_ADDRESS_RE.match(s))


def normalize_address(s: str) -> str:
    """Lowercase and validate a 0x address; raises ValueError on bad input."""
    if not is_address(s):
        raise ValueError(f"not a 0x-prefixed 20-byte address: {s!r}")
    return s.lower()


def normalize_addresses(items: Iterable[str]) -> Tuple[str, ...]:
    return tuple(normalize_address(a) for a in items)


__all__ = ["NATIVE_ASSET", "ZERO_ADDRESS", "is_address", "normalize_address", "normalize_addresses"]
