from __future__ import annotations

from typing import Callable, Dict

import pytest
from coincurve import PrivateKey

from subnetfund.appstore.service import APPSTORE_CUSTODY, AppStoreService
from subnetfund.attest.keys import address_of, sign_digest
from subnetfund.config import SubnetFundConfig
from subnetfund.oracle.memory import ProviderRegistry
from subnetfund.sftypes import NATIVE_ASSET
from subnetfund.sftypes.application import PriceVector
from subnetfund.sftypes.events import EventLog
from subnetfund.sftypes.usage import UsageReport
from subnetfund.treasury.ledger import TokenLedger

ETHER = 10**18
START = 1_700_000_000

ADMIN = "0x" + "ad" * 20
TREASURY = "0x" + "7a" * 20
PROVIDER_OWNER = "0x" + "0b" * 20
PROVIDER_ID = 7
PEER = "12D3KooWpeerA"


class FakeClock:
    def __init__(self, now: int = START) -> None:
        self.now = now

    def __call__(self) -> int:
        return self.now

    def advance(self, seconds: int) -> int:
        self.now += seconds
        return self.now


def key(i: int) -> PrivateKey:
    return PrivateKey(bytes([i]) * 32)


@pytest.fixture()
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture()
def keys() -> Dict[str, PrivateKey]:
    return {
        "owner": key(1),
        "operator": key(2),
        "v1": key(3),
        "v2": key(4),
        "v3": key(5),
        "outsider": key(9),
    }


@pytest.fixture()
def addrs(keys) -> Dict[str, str]:
    return {name: address_of(sk) for name, sk in keys.items()}


@pytest.fixture()
def providers() -> ProviderRegistry:
    reg = ProviderRegistry()
    reg.register_provider(PROVIDER_ID, PROVIDER_OWNER, [PEER])
    return reg


@pytest.fixture()
def ledger(addrs) -> TokenLedger:
    led = TokenLedger()
    led.mint(NATIVE_ASSET, addrs["owner"], 1_000 * ETHER)
    return led


@pytest.fixture()
def events() -> EventLog:
    return EventLog()


@pytest.fixture()
def make_service(providers, ledger, events, clock) -> Callable[..., AppStoreService]:
    def _make(**kw) -> AppStoreService:
        kw.setdefault("owner", ADMIN)
        kw.setdefault("treasury", TREASURY)
        kw.setdefault("config", SubnetFundConfig())
        return AppStoreService(providers=providers, ledger=ledger, events=events, clock=clock, **kw)

    return _make


@pytest.fixture()
def service(make_service) -> AppStoreService:
    return make_service()


@pytest.fixture()
def app(service, addrs):
    """A priced application with every resource at 1e-5 ether and a 100 ether budget."""
    p = 10**13
    return service.create_app(
        addrs["owner"],
        name="Render Farm",
        symbol="RND",
        budget=100 * ETHER,
        peer_ids=[PEER],
        prices=PriceVector(cpu=p, gpu=p, memory=p, storage=p, bandwidth=p),
        operator=addrs["operator"],
    )


@pytest.fixture()
def make_report(clock) -> Callable[..., UsageReport]:
    def _make(subject_id: int, **kw) -> UsageReport:
        fields = dict(
            subject_id=subject_id,
            provider_id=PROVIDER_ID,
            peer_id=PEER,
            cpu=10,
            gpu=5,
            memory=10 * 10**9,
            storage=20 * 10**9,
            upload_bytes=10**9,
            download_bytes=2 * 10**9,
            duration=3600,
            timestamp=clock(),
        )
        fields.update(kw)
        return UsageReport(**fields)

    return _make


@pytest.fixture()
def sign(service) -> Callable[..., bytes]:
    """Concatenate 65-byte signatures of `report` by each key, in order."""
    def _sign(report: UsageReport, *sks: PrivateKey) -> bytes:
        digest = service.verifier.digest(report)
        return b"".join(sign_digest(sk, digest) for sk in sks)

    return _sign


__all__ = ["ETHER", "START", "ADMIN", "TREASURY", "PROVIDER_OWNER", "PROVIDER_ID", "PEER",
           "APPSTORE_CUSTODY", "FakeClock", "key"]
