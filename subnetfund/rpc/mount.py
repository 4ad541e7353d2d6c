from __future__ import annotations

"""
subnetfund.rpc.mount
--------------------

Helpers to mount the settlement API into an existing FastAPI app and/or to
register the JSON-RPC methods with your dispatcher.

Typical usage (REST):
    from fastapi import FastAPI
    from subnetfund.rpc.mount import mount_subnetfund
    app = FastAPI()
    mount_subnetfund(app, service, prefix="/subnetfund")

Typical usage (JSON-RPC):
    from subnetfund.rpc.mount import register_jsonrpc
    register_jsonrpc(dispatcher, service)
"""

from typing import Any, Protocol

from .. import metrics
from ..appstore.service import AppStoreService
from .methods import build_rest_router, make_methods


class _JsonRpcDispatcherLike(Protocol):
    """Minimal protocol to support common JSON-RPC dispatchers."""
    def add(self, method: str, func: Any) -> None: ...
    def register(self, method: str, func: Any) -> None: ...


def mount_subnetfund(app: Any, service: AppStoreService, *, prefix: str = "/subnetfund",
                     with_metrics: bool = True) -> None:
    """
    Mount the REST endpoints under `prefix` on a FastAPI app, plus
    `{prefix}/metrics` serving the Prometheus registry when `with_metrics`.
    """
    router = build_rest_router(service)
    app.include_router(router, prefix=prefix, tags=["subnetfund"])
    if with_metrics:
        metrics.mount_fastapi(app, path=f"{prefix}/metrics")


def register_jsonrpc(dispatcher: _JsonRpcDispatcherLike, service: AppStoreService) -> None:
    """
    Register JSON-RPC methods on a dispatcher, preferring `.add(name, fn)` and
    falling back to `.register(name, fn)`.
    """
    for name, fn in make_methods(service).items():
        if hasattr(dispatcher, "add"):
            dispatcher.add(name, fn)
        else:
            dispatcher.register(name, fn)


__all__ = ["mount_subnetfund", "register_jsonrpc"]
