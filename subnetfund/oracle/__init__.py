from __future__ import annotations

from .interfaces import ProviderOracle, VerifierStatusOracle
from .memory import ProviderEntry, ProviderRegistry

__all__ = ["ProviderOracle", "VerifierStatusOracle", "ProviderEntry", "ProviderRegistry"]
