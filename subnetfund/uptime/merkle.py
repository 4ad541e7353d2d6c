from __future__ import annotations

"""
Merkle helpers for uptime attestations.

Domain-separated hashing (SHA3-256):

    LEAF = H(0x00 || leaf_bytes)
    NODE = H(0x01 || left || right)

An odd node at any level is paired with itself. The empty tree root is
H(0x00 || b"").

Uptime leaves are `uint256(provider_id) || uint256(uptime_seconds)`, both
big-endian, so every (provider, uptime) pair has exactly one leaf encoding.
"""

from dataclasses import dataclass
import hashlib
from typing import Iterable, List, Sequence, Tuple

_LEAF_TAG = b"\x00"
_NODE_TAG = b"\x01"


def _h(data: bytes) -> bytes:
    return hashlib.sha3_256(data).digest()


def _leaf_hash(leaf: bytes) -> bytes:
    return _h(_LEAF_TAG + leaf)


def _node_hash(left: bytes, right: bytes) -> bytes:
    return _h(_NODE_TAG + left + right)


def uptime_leaf(provider_id: int, uptime: int) -> bytes:
    if provider_id < 0 or uptime < 0:
        raise ValueError("provider_id and uptime must be non-negative")
    return provider_id.to_bytes(32, "big") + uptime.to_bytes(32, "big")


@dataclass(frozen=True)
class MerkleProof:
    """
    siblings[i] is the sibling hash at level i, bottom to top.
    directions[i] is 0 if the sibling is on the RIGHT, 1 if on the LEFT.
    """
    siblings: Tuple[bytes, ...] = ()
    directions: Tuple[int, ...] = ()

    def to_dict(self) -> dict:
        return {"siblings": ["0x" + s.hex() for s in self.siblings], "directions": list(self.directions)}

    @staticmethod
    def from_dict(d: dict) -> "MerkleProof":
        sib = tuple(bytes.fromhex(s[2:] if s.startswith("0x") else s) for s in d.get("siblings", ()))
        return MerkleProof(siblings=sib, directions=tuple(int(x) for x in d.get("directions", ())))


def merkle_root(leaves: Iterable[bytes]) -> bytes:
    layer: List[bytes] = [_leaf_hash(x) for x in leaves]
    if not layer:
        return _leaf_hash(b"")
    while len(layer) > 1:
        nxt: List[bytes] = []
        for i in range(0, len(layer), 2):
            right = layer[i + 1] if i + 1 < len(layer) else layer[i]
            nxt.append(_node_hash(layer[i], right))
        layer = nxt
    return layer[0]


def merkle_proof(leaves: Sequence[bytes], index: int) -> Tuple[bytes, MerkleProof]:
    """Return (root, proof) for the leaf at `index`."""
    n = len(leaves)
    if not (0 <= index < n):
        raise IndexError(f"index {index} out of range for {n} leaves")

    layer: List[bytes] = [_leaf_hash(x) for x in leaves]
    siblings: List[bytes] = []
    dirs: List[int] = []
    idx = index
    while len(layer) > 1:
        nxt: List[bytes] = []
        for i in range(0, len(layer), 2):
            j = i + 1 if i + 1 < len(layer) else i
            nxt.append(_node_hash(layer[i], layer[j]))
            if idx == i:
                siblings.append(layer[j])
                dirs.append(0)  # sibling on RIGHT
            elif idx == j:
                siblings.append(layer[i])
                dirs.append(1)  # sibling on LEFT
        idx //= 2
        layer = nxt
    return layer[0], MerkleProof(siblings=tuple(siblings), directions=tuple(dirs))


def merkle_verify(root: bytes, leaf: bytes, proof: MerkleProof) -> bool:
    if len(proof.siblings) != len(proof.directions):
        return False
    h = _leaf_hash(leaf)
    for sib, d in zip(proof.siblings, proof.directions):
        if d == 1:
            h = _node_hash(sib, h)
        elif d == 0:
            h = _node_hash(h, sib)
        else:
            return False
    return h == root


__all__ = ["uptime_leaf", "MerkleProof", "merkle_root", "merkle_proof", "merkle_verify"]
