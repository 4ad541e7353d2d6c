from __future__ import annotations

from .ledger import DEFAULT_REWARD_PER_SECOND, UPTIME_CUSTODY, ProviderUptime, UptimeAccount
from .merkle import MerkleProof, merkle_proof, merkle_root, merkle_verify, uptime_leaf

__all__ = [
    "DEFAULT_REWARD_PER_SECOND",
    "UPTIME_CUSTODY",
    "ProviderUptime",
    "UptimeAccount",
    "MerkleProof",
    "merkle_proof",
    "merkle_root",
    "merkle_verify",
    "uptime_leaf",
]
