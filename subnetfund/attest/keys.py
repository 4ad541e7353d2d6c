from __future__ import annotations

"""
secp256k1 keys, recoverable signatures and addresses (coincurve).

Signatures are 65 bytes `r || s || v`. `v` is the recovery id and may be given
either raw (0/1) or with the conventional +27 offset (27/28). Addresses are
`0x` + the last 20 bytes of SHA3-256 over the 64-byte uncompressed public key
(the 0x04 prefix dropped).
"""

import hashlib
from typing import Union

from coincurve import PrivateKey, PublicKey

from ..errors import InvalidSignature

SIG_LEN = 65


def address_from_public_key(pub: Union[PublicKey, bytes]) -> str:
    if isinstance(pub, bytes):
        pub = PublicKey(pub)
    raw = pub.format(compressed=False)[1:]
    return "0x" + hashlib.sha3_256(raw).digest()[-20:].hex()


def private_key(secret: Union[bytes, str]) -> PrivateKey:
    if isinstance(secret, str):
        secret = bytes.fromhex(secret[2:] if secret.startswith("0x") else secret)
    return PrivateKey(secret)


def address_of(sk: PrivateKey) -> str:
    return address_from_public_key(sk.public_key)


def sign_digest(sk: PrivateKey, digest: bytes, *, offset_v: bool = True) -> bytes:
    """Sign a 32-byte digest; returns `r || s || v` with v in {27, 28} unless `offset_v` is False."""
    if len(digest) != 32:
        raise ValueError("digest must be 32 bytes")
    sig = sk.sign_recoverable(digest, hasher=None)
    if offset_v:
        sig = sig[:64] + bytes([sig[64] + 27])
    return sig


def _normalize_v(signature: bytes) -> bytes:
    if len(signature) != SIG_LEN:
        raise InvalidSignature(f"signature must be {SIG_LEN} bytes", details={"length": len(signature)})
    v = signature[64]
    if v in (27, 28):
        v -= 27
    if v not in (0, 1):
        raise InvalidSignature("invalid recovery id", details={"v": signature[64]})
    return signature[:64] + bytes([v])


def recover_address(digest: bytes, signature: bytes) -> str:
    """Recover the signer address of `signature` over `digest`; raises InvalidSignature."""
    sig = _normalize_v(signature)
    try:
        pub = PublicKey.from_signature_and_message(sig, digest, hasher=None)
    except ValueError as e:
        raise InvalidSignature("signature recovery failed", details={"reason": str(e)}) from e
    return address_from_public_key(pub)


__all__ = [
    "SIG_LEN",
    "PrivateKey",
    "address_from_public_key",
    "private_key",
    "address_of",
    "sign_digest",
    "recover_address",
]
