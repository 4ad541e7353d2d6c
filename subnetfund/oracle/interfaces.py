from __future__ import annotations

"""
Read-only views of the external provider and verifier registries.

The settlement core never owns provider identity, node membership or jailing;
it asks these oracles at the moment of each operation. Implementations may be
backed by a chain client, a database or (in tests) `ProviderRegistry`.
"""

from typing import Optional, Protocol, runtime_checkable


@runtime_checkable
class ProviderOracle(Protocol):
    def is_provider_active(self, provider_id: int) -> bool:
        """True iff the provider is registered and currently active."""
        ...

    def is_provider_jailed(self, provider_id: int) -> bool:
        ...

    def resolve_peer(self, provider_id: int, peer_id: str) -> bool:
        """True iff `peer_id` is a node registered under `provider_id`."""
        ...

    def provider_owner(self, provider_id: int) -> Optional[str]:
        """Payout address of the provider, or None if unknown."""
        ...


@runtime_checkable
class VerifierStatusOracle(Protocol):
    def is_slashed(self, address: str) -> bool:
        ...


__all__ = ["ProviderOracle", "VerifierStatusOracle"]
