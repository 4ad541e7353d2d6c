from __future__ import annotations

"""
subnetfund.rpc.methods
----------------------

JSON-RPC style method implementations over an `AppStoreService`.

Exposed methods (bind via `make_methods`):
  • subnetfund.listApps
  • subnetfund.getApp
  • subnetfund.getAccrual
  • subnetfund.getPendingReward
  • subnetfund.getVerifier
  • subnetfund.reportUsage
  • subnetfund.claimReward
  • subnetfund.getSettings

Design:
  - Transport-agnostic: `make_methods` returns a dict of callables a JSON-RPC
    dispatcher can register; `build_rest_router` exposes the same callables
    through FastAPI.
  - Parameters use camelCase on the wire; byte strings are 0x-hex.
  - Errors are `SubnetFundError`s; the REST adapter maps them to HTTP codes
    and returns `error.to_dict()` as the detail.

Usage:
    from subnetfund.rpc.methods import make_methods
    methods = make_methods(service)
    dispatcher.register_many(methods)
"""

from typing import Any, Callable, Dict, List, Optional, Sequence

from ..appstore.service import AppStoreService
from ..attest.verifier import Signatures
from ..errors import (AuthorizationError, InvalidRequest, InvalidVerifierIndex, SubnetFundError,
                      UnknownSubject)
from ..sftypes.usage import SignerSignature, UsageReport

# ---- Helpers ---------------------------------------------------------------

_REPORT_FIELDS = {
    "subjectId": "subject_id",
    "providerId": "provider_id",
    "peerId": "peer_id",
    "cpu": "cpu",
    "gpu": "gpu",
    "memory": "memory",
    "storage": "storage",
    "uploadBytes": "upload_bytes",
    "downloadBytes": "download_bytes",
    "duration": "duration",
    "timestamp": "timestamp",
}


def _coerce_int(value: Any, name: str) -> int:
    try:
        iv = int(value)
    except (TypeError, ValueError) as e:
        raise InvalidRequest(f"invalid {name}: must be a non-negative integer", field=name) from e
    if iv < 0:
        raise InvalidRequest(f"invalid {name}: must be a non-negative integer", field=name)
    return iv


def _hex_bytes(value: str, name: str) -> bytes:
    try:
        return bytes.fromhex(value[2:] if value.startswith("0x") else value)
    except (AttributeError, ValueError) as e:
        raise InvalidRequest(f"invalid {name}: expected 0x-hex", field=name) from e


def parse_report(payload: Dict[str, Any]) -> UsageReport:
    kw: Dict[str, Any] = {}
    for wire, attr in _REPORT_FIELDS.items():
        if wire in payload:
            kw[attr] = payload[wire] if attr == "peer_id" else _coerce_int(payload[wire], wire)
    try:
        return UsageReport(**kw)
    except (TypeError, ValueError) as e:
        raise InvalidRequest(f"invalid usage report: {e}", field="report") from e


def _parse_pair(item: Any, i: int) -> SignerSignature:
    try:
        signer, sig = item["signer"], item["signature"]
    except (KeyError, TypeError) as e:
        raise InvalidRequest(f"signatures[{i}] needs signer and signature", field="signatures") from e
    try:
        return SignerSignature(signer=signer, signature=_hex_bytes(sig, "signature"))
    except ValueError as e:
        raise InvalidRequest(f"invalid signatures[{i}]: {e}", field="signatures") from e


def parse_signatures(signature: Optional[str] = None,
                     signatures: Optional[Sequence[Dict[str, str]]] = None) -> Signatures:
    if signatures is not None:
        return [_parse_pair(item, i) for i, item in enumerate(signatures)]
    if signature is None:
        raise InvalidRequest("signature or signatures is required", field="signature")
    return _hex_bytes(signature, "signature")


def _app_view(service: AppStoreService, subject_id: int) -> Dict[str, Any]:
    return service.get_app(subject_id).to_dict()


# ---- JSON-RPC method factory ----------------------------------------------

def make_methods(service: AppStoreService) -> Dict[str, Callable[..., Any]]:
    """
    Build a mapping of JSON-RPC method name -> callable.
    Each callable returns plain JSON-serializable structures.
    """

    def sf_list_apps(*, offset: Optional[int] = 0, limit: Optional[int] = 100) -> Dict[str, Any]:
        off = _coerce_int(offset, "offset")
        lim = _coerce_int(limit, "limit")
        items = [a.to_dict() for a in service.list_apps()[off:off + lim]]
        return {"items": items, "nextOffset": off + len(items)}

    def sf_get_app(*, subjectId: int) -> Dict[str, Any]:
        return _app_view(service, _coerce_int(subjectId, "subjectId"))

    def sf_get_accrual(*, subjectId: int, providerId: int) -> Dict[str, Any]:
        sid = _coerce_int(subjectId, "subjectId")
        if not service.app_exists(sid):
            raise UnknownSubject(subject_id=sid)
        return service.get_accrual(sid, _coerce_int(providerId, "providerId")).to_dict()

    def sf_get_pending_reward(*, subjectId: int, providerId: int) -> Dict[str, Any]:
        sid = _coerce_int(subjectId, "subjectId")
        pid = _coerce_int(providerId, "providerId")
        return {"subjectId": sid, "providerId": pid, "pendingReward": service.get_pending_reward(sid, pid)}

    def sf_get_verifier(*, subjectId: int, index: int) -> Dict[str, Any]:
        sid = _coerce_int(subjectId, "subjectId")
        idx = _coerce_int(index, "index")
        return {"subjectId": sid, "index": idx, "verifier": service.app_verifier(sid, idx)}

    def sf_report_usage(
        *,
        report: Dict[str, Any],
        signature: Optional[str] = None,
        signatures: Optional[List[Dict[str, str]]] = None,
        expectedPriceVersion: Optional[int] = None,
    ) -> Dict[str, Any]:
        ev = service.report_usage(
            parse_report(report),
            parse_signatures(signature, signatures),
            expected_price_version=None if expectedPriceVersion is None
            else _coerce_int(expectedPriceVersion, "expectedPriceVersion"),
        )
        return ev.to_dict()

    def sf_claim_reward(*, providerId: int, subjectId: int) -> Dict[str, Any]:
        plan = service.claim_reward(_coerce_int(providerId, "providerId"), _coerce_int(subjectId, "subjectId"))
        return {
            "subjectId": plan.after.subject_id,
            "providerId": plan.after.provider_id,
            "paid": plan.paid.to_dict() if plan.paid else None,
            "relocked": plan.relocked,
            "nextUnlockAt": plan.next_unlock_at,
        }

    def sf_get_settings() -> Dict[str, Any]:
        return {
            "owner": service.owner,
            "treasury": service.treasury,
            "feeRate": service.fee_rate,
            "verifierRewardRate": service.verifier_reward_rate,
            "rewardLockSeconds": service.reward_lock_seconds,
            "lockMode": service.lock_mode,
        }

    return {
        "subnetfund.listApps": sf_list_apps,
        "subnetfund.getApp": sf_get_app,
        "subnetfund.getAccrual": sf_get_accrual,
        "subnetfund.getPendingReward": sf_get_pending_reward,
        "subnetfund.getVerifier": sf_get_verifier,
        "subnetfund.reportUsage": sf_report_usage,
        "subnetfund.claimReward": sf_claim_reward,
        "subnetfund.getSettings": sf_get_settings,
    }


# ---- REST adapter (FastAPI) ------------------------------------------------

def _status_for(err: SubnetFundError) -> int:
    if isinstance(err, (UnknownSubject, InvalidVerifierIndex)):
        return 404
    if isinstance(err, AuthorizationError):
        return 403
    return 400


def build_rest_router(service: AppStoreService):
    """
    Return a FastAPI APIRouter exposing the settlement API.
    """
    from fastapi import APIRouter, Body, HTTPException, Query

    router = APIRouter()
    methods = make_methods(service)

    def call(name: str, **kwargs: Any) -> Any:
        try:
            return methods[name](**kwargs)
        except SubnetFundError as e:
            raise HTTPException(status_code=_status_for(e), detail=e.to_dict()) from e

    @router.get("/apps")
    def http_list_apps(offset: int = Query(0, ge=0), limit: int = Query(100, ge=1, le=500)):
        return call("subnetfund.listApps", offset=offset, limit=limit)

    @router.get("/apps/{subject_id}")
    def http_get_app(subject_id: int):
        return call("subnetfund.getApp", subjectId=subject_id)

    @router.get("/apps/{subject_id}/accruals/{provider_id}")
    def http_get_accrual(subject_id: int, provider_id: int):
        return call("subnetfund.getAccrual", subjectId=subject_id, providerId=provider_id)

    @router.get("/apps/{subject_id}/verifiers/{index}")
    def http_get_verifier(subject_id: int, index: int):
        return call("subnetfund.getVerifier", subjectId=subject_id, index=index)

    @router.post("/usage")
    def http_report_usage(payload: Dict[str, Any] = Body(...)):
        return call(
            "subnetfund.reportUsage",
            report=payload.get("report", {}),
            signature=payload.get("signature"),
            signatures=payload.get("signatures"),
            expectedPriceVersion=payload.get("expectedPriceVersion"),
        )

    @router.post("/apps/{subject_id}/claim/{provider_id}")
    def http_claim_reward(subject_id: int, provider_id: int):
        return call("subnetfund.claimReward", providerId=provider_id, subjectId=subject_id)

    @router.get("/settings")
    def http_get_settings():
        return call("subnetfund.getSettings")

    return router


__all__ = ["parse_report", "parse_signatures", "make_methods", "build_rest_router"]
