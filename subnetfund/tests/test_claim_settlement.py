from __future__ import annotations

import pytest

from subnetfund.appstore.service import APPSTORE_CUSTODY
from subnetfund.attest.keys import sign_digest
from subnetfund.config import LockConfig, SubnetFundConfig
from subnetfund.errors import AmountOverflow, NoRewards, ProviderJailed, ReentrantCall, RewardLocked, TransferFailed
from subnetfund.sftypes import NATIVE_ASSET
from subnetfund.sftypes.application import PriceVector
from subnetfund.sftypes.events import LockedRewardPaid, RewardClaimed

from .conftest import ADMIN, ETHER, PEER, PROVIDER_ID, PROVIDER_OWNER, TREASURY

REWARD = 1_728_000_000_000_000_000
FEE = 86_400_000_000_000_000
NET = 1_641_600_000_000_000_000
LOCK = 30 * 86_400


@pytest.fixture()
def accrued(service, app, make_report, sign, keys):
    r = make_report(app.id)
    return service.report_usage(r, sign(r, keys["owner"]))


def _bal(ledger, who):
    return ledger.balance_of(NATIVE_ASSET, who)


def test_claim_after_lock_pays_fee_and_net(service, app, accrued, ledger, clock, events):
    custody_before = _bal(ledger, APPSTORE_CUSTODY)
    clock.advance(LOCK)
    plan = service.claim_reward(PROVIDER_ID, app.id)

    assert plan.paid.gross == REWARD
    assert (plan.paid.fee, plan.paid.net) == (FEE, NET)
    assert _bal(ledger, TREASURY) == FEE
    assert _bal(ledger, PROVIDER_OWNER) == NET
    assert _bal(ledger, APPSTORE_CUSTODY) == custody_before - REWARD

    acc = service.get_accrual(app.id, PROVIDER_ID)
    assert (acc.pending_reward, acc.unlock_at, acc.total_claimed) == (0, 0, REWARD)

    paid = events.last(LockedRewardPaid)
    assert paid.payee == PROVIDER_OWNER and paid.net == NET
    claimed = events.last(RewardClaimed)
    assert claimed.amount == NET and claimed.unlock_at == 0


def test_claim_before_unlock_is_rejected(service, app, accrued, clock):
    clock.advance(LOCK - 1)
    with pytest.raises(RewardLocked) as ei:
        service.claim_reward(PROVIDER_ID, app.id)
    assert ei.value.details["unlock_at"] == accrued.unlock_at


def test_second_claim_has_nothing_to_pay(service, app, accrued, clock):
    clock.advance(LOCK)
    service.claim_reward(PROVIDER_ID, app.id)
    with pytest.raises(NoRewards):
        service.claim_reward(PROVIDER_ID, app.id)


def test_claim_without_accrual(service, app):
    with pytest.raises(NoRewards):
        service.claim_reward(PROVIDER_ID, app.id)


def test_next_accrual_opens_a_fresh_window(service, app, accrued, clock, make_report, sign, keys):
    clock.advance(LOCK)
    service.claim_reward(PROVIDER_ID, app.id)
    clock.advance(10)
    r = make_report(app.id)
    ev = service.report_usage(r, sign(r, keys["owner"]))
    assert ev.unlock_at == clock() + LOCK


def test_verifier_fee_goes_to_app_verifier(service, app, accrued, ledger, clock, addrs):
    service.set_verifier_reward_rate(ADMIN, 100)
    clock.advance(LOCK)
    plan = service.claim_reward(PROVIDER_ID, app.id)

    vfee = (REWARD - FEE) * 100 // 1000
    assert plan.paid.verifier_fee == vfee
    assert _bal(ledger, addrs["operator"]) == vfee
    assert _bal(ledger, PROVIDER_OWNER) == REWARD - FEE - vfee
    assert _bal(ledger, TREASURY) == FEE


def test_jailed_provider_cannot_claim(service, app, accrued, providers, clock):
    clock.advance(LOCK)
    providers.jail(PROVIDER_ID)
    with pytest.raises(ProviderJailed):
        service.claim_reward(PROVIDER_ID, app.id)
    assert service.get_pending_reward(app.id, PROVIDER_ID) == REWARD


def test_failed_transfer_restores_accrual(service, app, accrued, ledger, clock):
    clock.advance(LOCK)
    before = service.get_accrual(app.id, PROVIDER_ID)
    custody = _bal(ledger, APPSTORE_CUSTODY)
    ledger.block_recipient(PROVIDER_OWNER)

    with pytest.raises(TransferFailed):
        service.claim_reward(PROVIDER_ID, app.id)

    assert service.get_accrual(app.id, PROVIDER_ID) == before
    assert _bal(ledger, APPSTORE_CUSTODY) == custody
    assert _bal(ledger, TREASURY) == 0

    ledger.unblock_recipient(PROVIDER_OWNER)
    assert service.claim_reward(PROVIDER_ID, app.id).paid.net == NET


def test_any_payout_error_restores_accrual(service, app, accrued, ledger, clock, monkeypatch):
    clock.advance(LOCK)
    before = service.get_accrual(app.id, PROVIDER_ID)

    def overflow(instructions):
        raise AmountOverflow(value=2**256, limit=2**256 - 1)

    monkeypatch.setattr(ledger, "transfer_batch", overflow)
    with pytest.raises(AmountOverflow):
        service.claim_reward(PROVIDER_ID, app.id)
    assert service.get_accrual(app.id, PROVIDER_ID) == before
    assert _bal(ledger, PROVIDER_OWNER) == 0

    monkeypatch.undo()
    assert service.claim_reward(PROVIDER_ID, app.id).paid.net == NET


def test_reentrant_claim_is_rejected(service, app, accrued, ledger, clock, events):
    clock.advance(LOCK)

    nested = []

    def grab_again(ev):
        if isinstance(ev, LockedRewardPaid):
            try:
                service.claim_reward(PROVIDER_ID, app.id)
            except ReentrantCall as e:
                nested.append(e)

    unsubscribe = events.subscribe(grab_again)
    try:
        service.claim_reward(PROVIDER_ID, app.id)
    finally:
        unsubscribe()

    assert len(nested) == 1
    assert _bal(ledger, PROVIDER_OWNER) == NET
    assert _bal(ledger, TREASURY) == FEE
    with pytest.raises(NoRewards):
        service.claim_reward(PROVIDER_ID, app.id)


# --------------------------- rolling lock ---------------------------


@pytest.fixture()
def rolling(make_service, addrs):
    svc = make_service(config=SubnetFundConfig(lock=LockConfig(mode="rolling")))
    a = svc.create_app(addrs["owner"], name="Rolling", symbol="ROL", budget=10 * ETHER, peer_ids=[PEER],
                       prices=PriceVector(cpu=10**9))
    return svc, a


def test_rolling_claim_locks_then_pays(rolling, make_report, keys, ledger, clock):
    svc, a = rolling
    r = make_report(a.id)
    ev = svc.report_usage(r, sign_digest(keys["owner"], svc.verifier.digest(r)))
    assert ev.unlock_at == 0
    gross = ev.reward
    assert gross == 10**9 * 10 * 3600

    first = svc.claim_reward(PROVIDER_ID, a.id)
    assert first.paid is None
    assert first.relocked == gross
    assert first.next_unlock_at == clock() + LOCK
    assert svc.events.last(RewardClaimed).amount == gross

    with pytest.raises(RewardLocked):
        svc.claim_reward(PROVIDER_ID, a.id)

    clock.advance(LOCK)
    second = svc.claim_reward(PROVIDER_ID, a.id)
    assert second.paid.gross == gross
    assert second.relocked == 0
    assert ledger.balance_of(NATIVE_ASSET, PROVIDER_OWNER) == second.paid.net

    with pytest.raises(NoRewards):
        svc.claim_reward(PROVIDER_ID, a.id)
