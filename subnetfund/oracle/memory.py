from __future__ import annotations

"""
In-memory provider registry.

Implements `ProviderOracle` for local wiring and tests: providers are
registered with an owner address, peer nodes are attached to them and the
jailed/active flags can be flipped directly.
"""

from dataclasses import dataclass, field, replace
from threading import RLock
from typing import Dict, List, Optional, Set
import logging

from ..errors import AlreadyRegistered, InactiveProvider
from ..sftypes.address import normalize_address

log = logging.getLogger(__name__)


@dataclass(frozen=True)
class ProviderEntry:
    provider_id: int
    owner: str
    active: bool = True
    jailed: bool = False
    peers: frozenset = field(default_factory=frozenset)


class ProviderRegistry:
    def __init__(self) -> None:
        self._providers: Dict[int, ProviderEntry] = {}
        self._lock = RLock()

    # ---- Mutation ----

    def register_provider(self, provider_id: int, owner: str, peers: Optional[List[str]] = None) -> ProviderEntry:
        with self._lock:
            if provider_id in self._providers:
                raise AlreadyRegistered(address=str(provider_id), message="provider already registered")
            entry = ProviderEntry(provider_id=int(provider_id), owner=normalize_address(owner),
                                  peers=frozenset(peers or ()))
            self._providers[entry.provider_id] = entry
            log.info("provider registered id=%s owner=%s peers=%d", provider_id, entry.owner, len(entry.peers))
            return entry

    def add_peer(self, provider_id: int, peer_id: str) -> None:
        with self._lock:
            e = self._get(provider_id)
            self._providers[provider_id] = replace(e, peers=e.peers | {peer_id})

    def remove_peer(self, provider_id: int, peer_id: str) -> None:
        with self._lock:
            e = self._get(provider_id)
            self._providers[provider_id] = replace(e, peers=e.peers - {peer_id})

    def jail(self, provider_id: int) -> None:
        with self._lock:
            self._providers[provider_id] = replace(self._get(provider_id), jailed=True)
            log.info("provider jailed id=%s", provider_id)

    def unjail(self, provider_id: int) -> None:
        with self._lock:
            self._providers[provider_id] = replace(self._get(provider_id), jailed=False)

    def set_active(self, provider_id: int, active: bool) -> None:
        with self._lock:
            self._providers[provider_id] = replace(self._get(provider_id), active=bool(active))

    # ---- ProviderOracle ----

    def is_provider_active(self, provider_id: int) -> bool:
        e = self._providers.get(provider_id)
        return bool(e and e.active)

    def is_provider_jailed(self, provider_id: int) -> bool:
        e = self._providers.get(provider_id)
        return bool(e and e.jailed)

    def resolve_peer(self, provider_id: int, peer_id: str) -> bool:
        e = self._providers.get(provider_id)
        return bool(e and peer_id in e.peers)

    def provider_owner(self, provider_id: int) -> Optional[str]:
        e = self._providers.get(provider_id)
        return e.owner if e else None

    def peers_of(self, provider_id: int) -> Set[str]:
        return set(self._get(provider_id).peers)

    def _get(self, provider_id: int) -> ProviderEntry:
        e = self._providers.get(provider_id)
        if e is None:
            raise InactiveProvider(provider_id=provider_id, message="provider not registered")
        return e


__all__ = ["ProviderEntry", "ProviderRegistry"]
