from __future__ import annotations

import pytest

from subnetfund.errors import NoRewards, NotOwner, ProviderNotJailed
from subnetfund.sftypes.events import ProviderRefunded

from .conftest import PROVIDER_ID

REWARD = 1_728_000_000_000_000_000


@pytest.fixture()
def accrued(service, app, make_report, sign, keys):
    r = make_report(app.id)
    return service.report_usage(r, sign(r, keys["owner"]))


def test_refund_returns_reward_to_budget(service, app, accrued, providers, addrs, events):
    providers.jail(PROVIDER_ID)
    amount = service.refund_provider(addrs["owner"], app.id, PROVIDER_ID)

    assert amount == REWARD
    after = service.get_app(app.id)
    assert after.spent_budget == 0
    assert after.remaining_budget == app.budget
    acc = service.get_accrual(app.id, PROVIDER_ID)
    assert (acc.pending_reward, acc.locked_reward, acc.unlock_at) == (0, 0, 0)
    assert events.last(ProviderRefunded).amount == REWARD


def test_refund_requires_jailed_provider(service, app, accrued, addrs):
    with pytest.raises(ProviderNotJailed):
        service.refund_provider(addrs["owner"], app.id, PROVIDER_ID)
    assert service.get_pending_reward(app.id, PROVIDER_ID) == REWARD


@pytest.mark.parametrize("who", ["operator", "outsider"])
def test_refund_is_owner_only(service, app, accrued, providers, addrs, who):
    providers.jail(PROVIDER_ID)
    with pytest.raises(NotOwner):
        service.refund_provider(addrs[who], app.id, PROVIDER_ID)


def test_refund_with_nothing_outstanding(service, app, providers, addrs):
    providers.jail(PROVIDER_ID)
    with pytest.raises(NoRewards):
        service.refund_provider(addrs["owner"], app.id, PROVIDER_ID)


def test_refunded_budget_is_spendable_again(service, app, accrued, providers, addrs, make_report, sign,
                                            keys, clock):
    providers.jail(PROVIDER_ID)
    service.refund_provider(addrs["owner"], app.id, PROVIDER_ID)
    providers.unjail(PROVIDER_ID)
    clock.advance(1)
    r = make_report(app.id)
    ev = service.report_usage(r, sign(r, keys["owner"]))
    assert ev.pending_reward == REWARD
    assert service.get_app(app.id).spent_budget == REWARD
