from __future__ import annotations

"""
Prometheus metrics for subnet usage settlement.

We expose counters and histograms covering:
- usage: attested usage reports by result (accepted / rejected reason)
- rewards: accrued reward amount distribution
- claims: settled claims (paid / relocked) and paid amount distribution
- refunds: jailed-provider refunds back into application budgets
- verifiers: slash events and inactive-verifier removals
- uptime: merkle-attested uptime reports

Amounts are observed in whole tokens (18 decimals) so bucket scales stay
reasonable. A dedicated registry lets embedding apps merge or expose it.
"""


import time
from contextlib import contextmanager
from typing import Optional

from prometheus_client import (CONTENT_TYPE_LATEST, CollectorRegistry, Counter,
                               Histogram, generate_latest)

REGISTRY = CollectorRegistry()

TOKEN_UNIT = 10**18

# ────────────────────────────────────────────────────────────────────────────────
# Label conventions
#   result: "accepted" | error code of the rejection (e.g. "STALE_REPORT")
#   kind:   "paid" | "locked"
# ────────────────────────────────────────────────────────────────────────────────

USAGE_REPORTS = Counter(
    "subnetfund_usage_reports_total",
    "Usage reports processed, by result.",
    labelnames=("result",),
    registry=REGISTRY,
)

CLAIMS = Counter(
    "subnetfund_claims_total",
    "Claim operations that moved funds, by kind.",
    labelnames=("kind",),
    registry=REGISTRY,
)

REFUNDS = Counter(
    "subnetfund_refunds_total",
    "Jailed-provider refunds returned to application budgets.",
    registry=REGISTRY,
)

SLASHES = Counter(
    "subnetfund_verifier_slashes_total",
    "Verifier slash events.",
    registry=REGISTRY,
)

VERIFIER_REMOVALS = Counter(
    "subnetfund_verifier_removals_total",
    "Slashed verifiers pruned from application verifier sets.",
    registry=REGISTRY,
)

UPTIME_REPORTS = Counter(
    "subnetfund_uptime_reports_total",
    "Merkle-attested uptime reports accepted.",
    registry=REGISTRY,
)

_AMOUNT_BUCKETS = (
    0.001,
    0.01,
    0.05,
    0.1,
    0.25,
    0.5,
    1,
    2.5,
    5,
    10,
    25,
    50,
    100,
    250,
    500,
    1000,
)

REWARD_AMOUNT_TOKENS = Histogram(
    "subnetfund_reward_amount_tokens",
    "Distribution of accrued usage rewards (in tokens).",
    buckets=_AMOUNT_BUCKETS,
    registry=REGISTRY,
)

PAYOUT_AMOUNT_TOKENS = Histogram(
    "subnetfund_payout_amount_tokens",
    "Distribution of gross claim payouts (in tokens).",
    buckets=_AMOUNT_BUCKETS,
    registry=REGISTRY,
)

VERIFY_SECONDS = Histogram(
    "subnetfund_attestation_verify_seconds",
    "Time spent verifying usage attestation signatures.",
    buckets=(0.0005, 0.001, 0.005, 0.01, 0.05, 0.1, 0.5, 1.0),
    registry=REGISTRY,
)


def _tokens(amount: int) -> float:
    return float(amount) / TOKEN_UNIT


# ────────────────────────────────────────────────────────────────────────────────
# Recording helpers
# ────────────────────────────────────────────────────────────────────────────────


def record_usage(result: str, reward: int = 0) -> None:
    """Count a processed usage report; observe the reward when accepted."""
    USAGE_REPORTS.labels(result=result).inc()
    if result == "accepted" and reward > 0:
        REWARD_AMOUNT_TOKENS.observe(_tokens(reward))


def record_claim(kind: str, gross: int = 0) -> None:
    CLAIMS.labels(kind=kind).inc()
    if kind == "paid" and gross > 0:
        PAYOUT_AMOUNT_TOKENS.observe(_tokens(gross))


def record_refund() -> None:
    REFUNDS.inc()


def record_slash() -> None:
    SLASHES.inc()


def record_verifier_removed() -> None:
    VERIFIER_REMOVALS.inc()


def record_uptime_report() -> None:
    UPTIME_REPORTS.inc()


@contextmanager
def time_verify():
    """Context manager to observe attestation verification time."""
    start = time.perf_counter()
    try:
        yield
    finally:
        VERIFY_SECONDS.observe(time.perf_counter() - start)


def mount_fastapi(app, path: str = "/metrics", registry: Optional[CollectorRegistry] = None) -> None:
    """Mount a GET {path} endpoint on a FastAPI app to serve metrics."""
    from fastapi import Response

    reg = registry or REGISTRY

    @app.get(path)
    def _metrics():
        return Response(generate_latest(reg), media_type=CONTENT_TYPE_LATEST)


__all__ = [
    "REGISTRY",
    "USAGE_REPORTS",
    "CLAIMS",
    "REFUNDS",
    "SLASHES",
    "VERIFIER_REMOVALS",
    "UPTIME_REPORTS",
    "REWARD_AMOUNT_TOKENS",
    "PAYOUT_AMOUNT_TOKENS",
    "VERIFY_SECONDS",
    "record_usage",
    "record_claim",
    "record_refund",
    "record_slash",
    "record_verifier_removed",
    "record_uptime_report",
    "time_verify",
    "mount_fastapi",
]
