from __future__ import annotations

from .methods import build_rest_router, make_methods, parse_report, parse_signatures
from .mount import mount_subnetfund, register_jsonrpc

RPC_PREFIX = "/subnetfund"

__all__ = [
    "RPC_PREFIX",
    "build_rest_router",
    "make_methods",
    "parse_report",
    "parse_signatures",
    "mount_subnetfund",
    "register_jsonrpc",
]
