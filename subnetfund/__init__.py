from __future__ import annotations
"""
subnetfund - usage metering and reward settlement for compute subnets.

Applications deposit a budget, providers serve them, usage is reported through
off-chain-signed attestations and settled into time-locked rewards that are
split between the provider owner, the application's verifier and a treasury.
Submodules are lazily imported to keep import time minimal.

Public surface (lazily loaded):
- config, errors, metrics
- sftypes, oracle, attest, economics, treasury, staking, store
- appstore, uptime, rpc, cli
"""


from typing import List

from .version import __version__

__all__: List[str] = [
    "__version__",
    # lazily importable subpackages/modules
    "config",
    "errors",
    "metrics",
    "sftypes",
    "oracle",
    "attest",
    "economics",
    "treasury",
    "staking",
    "store",
    "appstore",
    "uptime",
    "rpc",
    "cli",
]

# --- Lazy module loader (PEP 562) -------------------------------------------------
import importlib


_lazy_modules = set(__all__) - {"__version__"}


def __getattr__(name: str):
    if name in _lazy_modules:
        return importlib.import_module(f".{name}", __name__)
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")


def __dir__():
    return sorted(set(globals().keys()) | _lazy_modules)


def get_version() -> str:
    """Return the subnetfund package version string."""
    return __version__
