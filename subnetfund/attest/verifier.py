from __future__ import annotations

"""
Usage attestation verifier.

Checks that a usage report carries the signatures its application's signer
policy demands:

- single     one 65-byte signature recovering to the owner or the operator
- quorum     a concatenated blob of exactly 65 * len(verifiers) bytes; chunk i
             must recover to verifiers[i]. A blob of the wrong length is
             rejected before any recovery is attempted.
- threshold  a list of (signer, signature) pairs; every signature must recover
             to its claimed signer, every signer must be authorized for the
             application, and the number of distinct signers must reach
             `signature_threshold`.

The verifier is stateless; replay protection (strictly increasing report
timestamps) is enforced by the accrual engine that owns `last_report_at`.
"""

from typing import List, Sequence, Tuple, Union
import logging

from .. import metrics
from ..appstore.policy import is_authorized_signer
from ..errors import InvalidSignature, MalformedSignature, NotAuthorizedSigner
from ..sftypes.application import Application, SignerPolicy
from ..sftypes.usage import SignerSignature, UsageReport
from .encoding import SigningDomain, build_sign_bytes
from .keys import SIG_LEN, recover_address

log = logging.getLogger(__name__)

Signatures = Union[bytes, Sequence[SignerSignature]]


def split_signatures(blob: bytes, count: int) -> List[bytes]:
    """Split a concatenated blob into `count` 65-byte chunks, or raise MalformedSignature."""
    expected = SIG_LEN * count
    if len(blob) != expected:
        raise MalformedSignature(length=len(blob), expected=expected)
    return [blob[i:i + SIG_LEN] for i in range(0, expected, SIG_LEN)]


class AttestationVerifier:
    def __init__(self, domain: SigningDomain | None = None) -> None:
        self.domain = domain or SigningDomain()

    def digest(self, report: UsageReport) -> bytes:
        return build_sign_bytes(report, self.domain)

    def verify(self, app: Application, report: UsageReport, signatures: Signatures) -> Tuple[str, ...]:
        """
        Verify `signatures` for `report` under `app`'s signer policy.

        Returns the recovered signer addresses in the order checked. Raises an
        AuthorizationError subclass on any failure.
        """
        with metrics.time_verify():
            digest = self.digest(report)
            policy = app.signer_policy
            if policy is SignerPolicy.SINGLE:
                return (self._verify_single(app, digest, signatures),)
            if policy is SignerPolicy.QUORUM:
                return self._verify_quorum(app, digest, signatures)
            if policy is SignerPolicy.THRESHOLD:
                return self._verify_threshold(app, digest, signatures)
        raise InvalidSignature(f"unsupported signer policy {policy!r}")  # pragma: no cover

    # ---- Policies ----

    def _verify_single(self, app: Application, digest: bytes, signatures: Signatures) -> str:
        if not isinstance(signatures, (bytes, bytearray)):
            raise InvalidSignature("single-signer policy expects one signature blob")
        sig = split_signatures(bytes(signatures), 1)[0]
        signer = recover_address(digest, sig)
        if not app.is_owner_or_operator(signer):
            log.debug("unauthorized usage signer subject=%s signer=%s", app.id, signer)
            raise NotAuthorizedSigner(signer=signer, subject_id=app.id)
        return signer

    def _verify_quorum(self, app: Application, digest: bytes, signatures: Signatures) -> Tuple[str, ...]:
        if not isinstance(signatures, (bytes, bytearray)):
            raise InvalidSignature("quorum policy expects a concatenated signature blob")
        verifiers = app.verifiers
        if not verifiers:
            raise NotAuthorizedSigner(subject_id=app.id, message="application has no verifiers")
        chunks = split_signatures(bytes(signatures), len(verifiers))
        out: List[str] = []
        for i, (chunk, expected) in enumerate(zip(chunks, verifiers)):
            signer = recover_address(digest, chunk)
            if signer != expected:
                raise InvalidSignature("signature does not match verifier",
                                       details={"index": i, "expected": expected, "recovered": signer})
            out.append(signer)
        return tuple(out)

    def _verify_threshold(self, app: Application, digest: bytes, signatures: Signatures) -> Tuple[str, ...]:
        if isinstance(signatures, (bytes, bytearray)):
            raise InvalidSignature("threshold policy expects (signer, signature) pairs")
        seen: List[str] = []
        for pair in signatures:
            signer = recover_address(digest, pair.signature)
            if signer != pair.signer:
                raise InvalidSignature("signature does not match claimed signer",
                                       details={"claimed": pair.signer, "recovered": signer})
            if not is_authorized_signer(app, signer):
                raise NotAuthorizedSigner(signer=signer, subject_id=app.id)
            if signer not in seen:
                seen.append(signer)
        if len(seen) < app.signature_threshold:
            raise NotAuthorizedSigner(subject_id=app.id, message="signature threshold not met",
                                      details={"have": len(seen), "need": app.signature_threshold})
        return tuple(seen)


__all__ = ["Signatures", "split_signatures", "AttestationVerifier"]
