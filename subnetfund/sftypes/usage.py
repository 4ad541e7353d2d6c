from __future__ import annotations

"""
Usage reports and signer/signature pairs.

A UsageReport is what a provider's peer node measured for one application over
`duration` seconds, stamped with `timestamp`. Byte counters (memory, storage,
upload, download) are raw bytes; cpu/gpu are unit counts.
"""

from dataclasses import asdict, dataclass
from typing import Any, Dict, Mapping

from .address import normalize_address

_COUNTERS = ("cpu", "gpu", "memory", "storage", "upload_bytes", "download_bytes", "duration")


@dataclass(frozen=True)
class UsageReport:
    subject_id: int
    provider_id: int
    peer_id: str
    cpu: int = 0
    gpu: int = 0
    memory: int = 0
    storage: int = 0
    upload_bytes: int = 0
    download_bytes: int = 0
    duration: int = 0
    timestamp: int = 0

    def __post_init__(self) -> None:
        for name in _COUNTERS + ("timestamp", "subject_id", "provider_id"):
            v = getattr(self, name)
            if not isinstance(v, int) or isinstance(v, bool) or v < 0:
                raise ValueError(f"{name} must be a non-negative int (got {v!r})")
        if not self.peer_id:
            raise ValueError("peer_id must be non-empty")

    @property
    def bandwidth_bytes(self) -> int:
        return self.upload_bytes + self.download_bytes

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    @staticmethod
    def from_dict(d: Mapping[str, Any]) -> "UsageReport":
        return UsageReport(
            subject_id=int(d["subject_id"]),
            provider_id=int(d["provider_id"]),
            peer_id=str(d["peer_id"]),
            **{k: int(d.get(k, 0)) for k in _COUNTERS},
            timestamp=int(d.get("timestamp", 0)),
        )


@dataclass(frozen=True)
class SignerSignature:
    """An explicit (claimed signer, 65-byte signature) pair."""
    signer: str
    signature: bytes

    def __post_init__(self) -> None:
        object.__setattr__(self, "signer", normalize_address(self.signer))

    def to_dict(self) -> Dict[str, str]:
        return {"signer": self.signer, "signature": "0x" + self.signature.hex()}

    @staticmethod
    def from_dict(d: Mapping[str, Any]) -> "SignerSignature":
        sig = d["signature"]
        if isinstance(sig, str):
            sig = bytes.fromhex(sig[2:] if sig.startswith("0x") else sig)
        return SignerSignature(signer=str(d["signer"]), signature=bytes(sig))


__all__ = ["UsageReport", "SignerSignature"]
