from __future__ import annotations

import threading

import pytest

from subnetfund.errors import (InactiveProvider, InsufficientBudget, NotAuthorizedSigner, PriceChanged,
                               ProviderJailed, StaleReport, UnknownSubject)
from subnetfund.sftypes.application import PriceVector, RewardMode
from subnetfund.sftypes.events import UsageAccepted

from .conftest import ETHER, PEER, PROVIDER_ID, PROVIDER_OWNER

REFERENCE_REWARD = 1_728_000_000_000_000_000
LOCK = 30 * 86_400


def test_reference_report_accrues_reward(service, app, make_report, sign, keys, clock, events):
    r = make_report(app.id)
    ev = service.report_usage(r, sign(r, keys["owner"]))

    assert ev.reward == REFERENCE_REWARD
    assert ev.pending_reward == REFERENCE_REWARD
    assert ev.unlock_at == clock() + LOCK
    assert service.get_pending_reward(app.id, PROVIDER_ID) == REFERENCE_REWARD
    assert service.get_app(app.id).spent_budget == REFERENCE_REWARD
    assert events.last(UsageAccepted) == ev


def test_operator_may_sign(service, app, make_report, sign, keys):
    r = make_report(app.id)
    assert service.report_usage(r, sign(r, keys["operator"])).reward == REFERENCE_REWARD


def test_lock_is_anchored_to_first_accrual(service, app, make_report, sign, keys, clock):
    first = make_report(app.id)
    unlock = service.report_usage(first, sign(first, keys["owner"])).unlock_at
    clock.advance(3600)
    second = make_report(app.id)
    ev = service.report_usage(second, sign(second, keys["owner"]))
    assert ev.unlock_at == unlock
    assert ev.pending_reward == 2 * REFERENCE_REWARD


def test_replayed_report_is_stale(service, app, make_report, sign, keys):
    r = make_report(app.id)
    sig = sign(r, keys["owner"])
    service.report_usage(r, sig)
    with pytest.raises(StaleReport):
        service.report_usage(r, sig)
    assert service.get_pending_reward(app.id, PROVIDER_ID) == REFERENCE_REWARD


def test_older_timestamp_is_stale(service, app, make_report, sign, keys, clock):
    r = make_report(app.id, timestamp=clock() + 10)
    service.report_usage(r, sign(r, keys["owner"]))
    older = make_report(app.id, timestamp=clock() + 5)
    with pytest.raises(StaleReport):
        service.report_usage(older, sign(older, keys["owner"]))


def test_unknown_application(service, make_report, sign, keys):
    r = make_report(42)
    with pytest.raises(UnknownSubject):
        service.report_usage(r, sign(r, keys["owner"]))


def test_inactive_provider_is_rejected(service, app, providers, make_report, sign, keys):
    providers.set_active(PROVIDER_ID, False)
    r = make_report(app.id)
    with pytest.raises(InactiveProvider):
        service.report_usage(r, sign(r, keys["owner"]))


def test_foreign_peer_is_rejected(service, app, make_report, sign, keys):
    r = make_report(app.id, peer_id="12D3KooWsomeoneElse")
    with pytest.raises(InactiveProvider) as ei:
        service.report_usage(r, sign(r, keys["owner"]))
    assert ei.value.details["peer_id"] == "12D3KooWsomeoneElse"


def test_jailed_provider_is_rejected(service, app, providers, make_report, sign, keys):
    providers.jail(PROVIDER_ID)
    r = make_report(app.id)
    with pytest.raises(ProviderJailed):
        service.report_usage(r, sign(r, keys["owner"]))


def test_provider_checks_run_before_signature_checks(service, app, providers, make_report):
    providers.jail(PROVIDER_ID)
    r = make_report(app.id)
    with pytest.raises(ProviderJailed):
        service.report_usage(r, b"\x00" * 65)


def test_stale_check_runs_before_signature_check(service, app, make_report, sign, keys):
    r = make_report(app.id)
    service.report_usage(r, sign(r, keys["owner"]))
    with pytest.raises(StaleReport):
        service.report_usage(r, sign(r, keys["outsider"]))


def test_unauthorized_signer_changes_nothing(service, app, make_report, sign, keys):
    r = make_report(app.id)
    with pytest.raises(NotAuthorizedSigner):
        service.report_usage(r, sign(r, keys["outsider"]))
    assert service.get_pending_reward(app.id, PROVIDER_ID) == 0
    assert service.get_app(app.id).spent_budget == 0
    # the same report can still be accepted once properly signed
    assert service.report_usage(r, sign(r, keys["owner"])).reward == REFERENCE_REWARD


def test_budget_is_never_overspent(service, addrs, make_report, sign, keys, clock):
    app = service.create_app(addrs["owner"], name="Tiny", symbol="TNY", budget=100, peer_ids=[PEER],
                             reward_mode=RewardMode.UNIT_SUM)
    r = make_report(app.id, cpu=1, gpu=0, memory=0, storage=0, upload_bytes=0, download_bytes=0, duration=60)
    service.report_usage(r, sign(r, keys["owner"]))
    clock.advance(1)
    r2 = make_report(app.id, cpu=1, gpu=0, memory=0, storage=0, upload_bytes=0, download_bytes=0, duration=60)
    with pytest.raises(InsufficientBudget):
        service.report_usage(r2, sign(r2, keys["owner"]))

    after = service.get_app(app.id)
    assert after.spent_budget == 60
    assert after.remaining_budget == 40
    assert service.get_pending_reward(app.id, PROVIDER_ID) == 60


def test_exact_budget_is_accepted(service, addrs, make_report, sign, keys):
    app = service.create_app(addrs["owner"], name="Exact", symbol="EXA", budget=60, peer_ids=[PEER],
                             reward_mode=RewardMode.UNIT_SUM)
    r = make_report(app.id, cpu=1, gpu=0, memory=0, storage=0, upload_bytes=0, download_bytes=0, duration=60)
    service.report_usage(r, sign(r, keys["owner"]))
    assert service.get_app(app.id).remaining_budget == 0


def test_price_change_is_detected(service, app, make_report, sign, keys, addrs):
    v0 = app.price_version
    service.update_pricing(addrs["owner"], app.id, PriceVector(cpu=1))
    r = make_report(app.id)
    with pytest.raises(PriceChanged):
        service.report_usage(r, sign(r, keys["owner"]), expected_price_version=v0)
    ev = service.report_usage(r, sign(r, keys["owner"]), expected_price_version=v0 + 1)
    assert ev.reward == 10 * 3600


def test_zero_reward_report_is_accepted_without_opening_lock(service, app, make_report, sign, keys):
    r = make_report(app.id, duration=0)
    ev = service.report_usage(r, sign(r, keys["owner"]))
    assert ev.reward == 0
    assert ev.unlock_at == 0


def test_usage_across_apps_is_isolated(service, app, addrs, make_report, sign, keys):
    other = service.create_app(addrs["owner"], name="Other", symbol="OTH", budget=ETHER,
                               peer_ids=[PEER], reward_mode=RewardMode.UNIT_SUM)
    r = make_report(other.id, duration=1)
    service.report_usage(r, sign(r, keys["owner"]))
    assert service.get_pending_reward(app.id, PROVIDER_ID) == 0
    assert service.get_app(app.id).spent_budget == 0


def test_failing_subscriber_does_not_undo_accepted_report(service, app, events, make_report, sign, keys):
    def boom(ev):
        raise RuntimeError("subscriber down")

    events.subscribe(boom)
    r = make_report(app.id)
    ev = service.report_usage(r, sign(r, keys["owner"]))

    assert ev.reward == REFERENCE_REWARD
    assert events.last(UsageAccepted) == ev
    assert service.get_pending_reward(app.id, PROVIDER_ID) == REFERENCE_REWARD
    assert service.get_app(app.id).spent_budget == REFERENCE_REWARD


def test_concurrent_reports_never_overspend(service, providers, addrs, make_report, sign, keys):
    # eight providers each report 60 units against a budget that covers five
    app = service.create_app(addrs["owner"], name="Race", symbol="RCE", budget=300,
                             reward_mode=RewardMode.UNIT_SUM)
    pids = list(range(100, 108))
    reports = []
    for pid in pids:
        providers.register_provider(pid, PROVIDER_OWNER, [f"peer-{pid}"])
        r = make_report(app.id, provider_id=pid, peer_id=f"peer-{pid}", cpu=1, gpu=0, memory=0,
                        storage=0, upload_bytes=0, download_bytes=0, duration=60)
        reports.append((r, sign(r, keys["owner"])))

    start = threading.Barrier(len(reports))
    accepted, refused, unexpected = [], [], []

    def submit(report, sig):
        start.wait()
        try:
            accepted.append(service.report_usage(report, sig).provider_id)
        except InsufficientBudget:
            refused.append(report.provider_id)
        except Exception as e:
            unexpected.append(e)

    threads = [threading.Thread(target=submit, args=pair) for pair in reports]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert unexpected == []
    assert len(accepted) == 5
    assert len(refused) == 3
    assert sorted(accepted + refused) == pids
    assert service.get_app(app.id).spent_budget == 300
    assert sum(service.get_pending_reward(app.id, pid) for pid in pids) == 300
