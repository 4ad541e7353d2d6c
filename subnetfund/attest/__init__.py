from __future__ import annotations

from .encoding import SigningDomain, build_sign_bytes, encode_usage
from .keys import SIG_LEN, address_from_public_key, address_of, private_key, recover_address, sign_digest
from .verifier import AttestationVerifier, Signatures, split_signatures

__all__ = [
    "SigningDomain",
    "build_sign_bytes",
    "encode_usage",
    "SIG_LEN",
    "address_from_public_key",
    "address_of",
    "private_key",
    "recover_address",
    "sign_digest",
    "AttestationVerifier",
    "Signatures",
    "split_signatures",
]
