from __future__ import annotations

"""
Canonical sign bytes for usage attestations.

Layout before hashing (every field is uvarint-length-prefixed):

    TAG      = "subnetfund:usage/v1"
    DOMAIN   = name || version || uvarint(chain_id) || verifying_contract (20 bytes)
    TYPE     = "Usage"
    MESSAGE  = uvarint(subject_id) || uvarint(provider_id) || utf8(peer_id)
               || uvarint(cpu) || uvarint(gpu) || uvarint(memory) || uvarint(storage)
               || uvarint(upload_bytes) || uvarint(download_bytes)
               || uvarint(duration) || uvarint(timestamp)

    digest = SHA3-256(raw)

The digest is what signers sign. Binding the chain id and verifying contract
means a signature for one deployment never verifies on another, and length
prefixes make the encoding injective (no two reports share a byte string).
"""

from dataclasses import dataclass
import hashlib
from typing import Iterable, List

from ..sftypes.address import normalize_address
from ..sftypes.usage import UsageReport

SIGN_TAG = b"subnetfund:usage/v1"
TYPE_TAG = b"Usage"


def _uvarint(n: int) -> bytes:
    """LEB128 uvarint (little endian base-128) for compact, unambiguous ints."""
    if n < 0:
        raise ValueError("uvarint expects non-negative int")
    out = bytearray()
    while True:
        b = n & 0x7F
        n >>= 7
        if n:
            out.append(b | 0x80)
        else:
            out.append(b)
            break
    return bytes(out)


def _len_bytes(b: bytes) -> bytes:
    """Length prefix for a bytes field (uvarint length || bytes)."""
    return _uvarint(len(b)) + b


def _fields(parts: Iterable[bytes]) -> bytes:
    return b"".join(_len_bytes(p) for p in parts)


@dataclass(frozen=True)
class SigningDomain:
    name: str = "subnetfund"
    version: str = "1"
    chain_id: int = 1
    verifying_contract: str = "0x" + "00" * 20

    def __post_init__(self) -> None:
        if not self.name:
            raise ValueError("domain name must be non-empty")
        if self.chain_id < 0:
            raise ValueError("chain_id must be non-negative")
        object.__setattr__(self, "verifying_contract", normalize_address(self.verifying_contract))

    def encode(self) -> bytes:
        return _fields([
            self.name.encode("utf-8"),
            self.version.encode("utf-8"),
            _uvarint(self.chain_id),
            bytes.fromhex(self.verifying_contract[2:]),
        ])

    @classmethod
    def from_config(cls, cfg) -> "SigningDomain":
        """Build from a `subnetfund.config.SigningConfig`."""
        return cls(name=cfg.domain_name, version=cfg.domain_version,
                   chain_id=cfg.chain_id, verifying_contract=cfg.verifying_contract)


def encode_usage(report: UsageReport) -> bytes:
    parts: List[bytes] = [
        _uvarint(report.subject_id),
        _uvarint(report.provider_id),
        report.peer_id.encode("utf-8"),
        _uvarint(report.cpu),
        _uvarint(report.gpu),
        _uvarint(report.memory),
        _uvarint(report.storage),
        _uvarint(report.upload_bytes),
        _uvarint(report.download_bytes),
        _uvarint(report.duration),
        _uvarint(report.timestamp),
    ]
    return _fields(parts)


def build_sign_bytes(report: UsageReport, domain: SigningDomain) -> bytes:
    raw = _fields([SIGN_TAG, domain.encode(), TYPE_TAG, encode_usage(report)])
    return hashlib.sha3_256(raw).digest()


__all__ = ["SIGN_TAG", "TYPE_TAG", "SigningDomain", "encode_usage", "build_sign_bytes"]
