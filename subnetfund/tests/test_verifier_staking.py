from __future__ import annotations

import pytest

from subnetfund.config import StakeConfig
from subnetfund.errors import (AlreadyRegistered, InsufficientStake, InvalidConfig, InvalidStatusTransition,
                               InvalidVerifierIndex, NotContractOwner, NotOwnerOrOperator, StillLocked,
                               UnknownParticipant, VerifierStillActive)
from subnetfund.sftypes import NATIVE_ASSET
from subnetfund.sftypes.events import VerifierExited, VerifierRemoved
from subnetfund.sftypes.stake import VerifierStatus
from subnetfund.staking.verifiers import STAKING_CUSTODY, VerifierStaking

from .conftest import ADMIN, ETHER, PEER, TREASURY

STAKE = 100 * ETHER
DAY = 86_400


@pytest.fixture()
def staking(ledger, addrs, events, clock) -> VerifierStaking:
    for name in ("v1", "v2", "v3"):
        ledger.mint(NATIVE_ASSET, addrs[name], 1_000 * ETHER)
    return VerifierStaking(owner=ADMIN, ledger=ledger, treasury=TREASURY, events=events, clock=clock)


def _bal(ledger, who):
    return ledger.balance_of(NATIVE_ASSET, who)


# --------------------------- lifecycle ---------------------------


def test_register_locks_stake(staking, ledger, addrs):
    rec = staking.register(addrs["v1"], STAKE, name="v-one", peer_ids=["p1"])
    assert rec.status is VerifierStatus.REGISTERED
    assert rec.peer_ids == ("p1",)
    assert _bal(ledger, STAKING_CUSTODY) == STAKE
    assert _bal(ledger, addrs["v1"]) == 900 * ETHER
    assert staking.is_registered(addrs["v1"])
    assert not staking.is_slashed(addrs["v1"])


def test_register_twice_is_rejected(staking, addrs):
    staking.register(addrs["v1"], STAKE)
    with pytest.raises(AlreadyRegistered):
        staking.register(addrs["v1"], STAKE)


def test_register_below_minimum(staking, addrs):
    with pytest.raises(InsufficientStake):
        staking.register(addrs["v1"], STAKE - 1)


def test_unknown_verifier(staking, addrs):
    with pytest.raises(UnknownParticipant):
        staking.get(addrs["v1"])
    assert not staking.is_slashed(addrs["v1"])


def test_update_peers_by_self_or_owner(staking, addrs):
    staking.register(addrs["v1"], STAKE)
    assert staking.update_peers(addrs["v1"], addrs["v1"], ["a"]).peer_ids == ("a",)
    assert staking.update_peers(ADMIN, addrs["v1"], ["a", "b"]).peer_ids == ("a", "b")
    with pytest.raises(NotOwnerOrOperator):
        staking.update_peers(addrs["v2"], addrs["v1"], [])


def test_slash_is_owner_only_and_saturates(staking, addrs):
    staking.register(addrs["v1"], STAKE)
    with pytest.raises(NotContractOwner):
        staking.slash(addrs["v2"], addrs["v1"], 10)
    assert staking.slash(ADMIN, addrs["v1"], 60).slash_percentage == 60
    rec = staking.slash(ADMIN, addrs["v1"], 60)
    assert rec.slash_percentage == 100
    assert rec.status is VerifierStatus.SLASHED
    assert staking.is_slashed(addrs["v1"])


@pytest.mark.parametrize("pct", [0, 101, -5])
def test_slash_percentage_bounds(staking, addrs, pct):
    staking.register(addrs["v1"], STAKE)
    with pytest.raises(ValueError):
        staking.slash(ADMIN, addrs["v1"], pct)


def test_exit_is_two_step(staking, ledger, addrs, clock, events):
    staking.register(addrs["v1"], STAKE)
    rec = staking.exit(addrs["v1"])
    assert rec.status is VerifierStatus.EXITING

    clock.advance(DAY - 1)
    with pytest.raises(StillLocked):
        staking.exit(addrs["v1"])

    clock.advance(1)
    rec = staking.exit(addrs["v1"])
    assert rec.status is VerifierStatus.EXITED
    assert rec.staked_amount == 0
    assert _bal(ledger, addrs["v1"]) == 1_000 * ETHER
    assert events.last(VerifierExited).released == STAKE

    with pytest.raises(InvalidStatusTransition):
        staking.exit(addrs["v1"])


def test_exit_after_slash_splits_stake(staking, ledger, addrs, clock):
    staking.register(addrs["v1"], STAKE)
    staking.slash(ADMIN, addrs["v1"], 30)
    staking.exit(addrs["v1"])
    clock.advance(DAY)
    staking.exit(addrs["v1"])
    assert _bal(ledger, addrs["v1"]) == 900 * ETHER + 70 * ETHER
    assert _bal(ledger, TREASURY) == 30 * ETHER
    assert _bal(ledger, STAKING_CUSTODY) == 0


def test_slash_while_exiting_keeps_exiting(staking, addrs):
    staking.register(addrs["v1"], STAKE)
    staking.exit(addrs["v1"])
    rec = staking.slash(ADMIN, addrs["v1"], 10)
    assert rec.status is VerifierStatus.EXITING
    assert rec.slash_percentage == 10


def test_exited_verifier_may_register_again(staking, addrs, clock):
    staking.register(addrs["v1"], STAKE)
    staking.exit(addrs["v1"])
    clock.advance(DAY)
    staking.exit(addrs["v1"])
    rec = staking.register(addrs["v1"], STAKE)
    assert rec.status is VerifierStatus.REGISTERED


def test_delete_releases_stake(staking, ledger, addrs):
    staking.register(addrs["v1"], STAKE)
    with pytest.raises(NotContractOwner):
        staking.delete(addrs["v1"], addrs["v1"])
    staking.delete(ADMIN, addrs["v1"])
    assert not staking.is_registered(addrs["v1"])
    assert _bal(ledger, addrs["v1"]) == 1_000 * ETHER


def test_dump_and_load(staking, ledger, addrs, events, clock):
    staking.register(addrs["v1"], STAKE)
    staking.slash(ADMIN, addrs["v1"], 5)
    copy = VerifierStaking(owner=ADMIN, ledger=ledger, config=StakeConfig(), events=events, clock=clock)
    copy.load(staking.dump())
    assert copy.get(addrs["v1"]) == staking.get(addrs["v1"])


# --------------------------- pruning application verifiers ---------------------------


@pytest.fixture()
def guarded(make_service, staking, addrs):
    svc = make_service(verifier_status=staking)
    for name in ("v1", "v2", "v3"):
        staking.register(addrs[name], STAKE)
    app = svc.create_app(addrs["owner"], name="Guarded", symbol="GRD", budget=ETHER, peer_ids=[PEER],
                         verifiers=[addrs["v1"], addrs["v2"], addrs["v3"]])
    return svc, app


def test_slashed_verifier_is_pruned_in_order(guarded, staking, addrs, events):
    svc, app = guarded
    staking.slash(ADMIN, addrs["v2"], 10)
    new = svc.remove_inactive_verifier(app.id, 1)
    assert new.verifiers == (addrs["v1"], addrs["v3"])
    assert svc.app_verifier(app.id, 1) == addrs["v3"]
    ev = events.last(VerifierRemoved)
    assert (ev.index, ev.verifier) == (1, addrs["v2"])


def test_active_verifier_is_kept(guarded, addrs):
    svc, app = guarded
    with pytest.raises(VerifierStillActive):
        svc.remove_inactive_verifier(app.id, 0)
    assert svc.get_app(app.id).verifiers == (addrs["v1"], addrs["v2"], addrs["v3"])


def test_index_out_of_range(guarded):
    svc, app = guarded
    with pytest.raises(InvalidVerifierIndex):
        svc.remove_inactive_verifier(app.id, 3)
    with pytest.raises(InvalidVerifierIndex):
        svc.app_verifier(app.id, 3)


def test_pruning_needs_status_oracle(service, app):
    with pytest.raises(InvalidConfig):
        service.remove_inactive_verifier(app.id, 0)


def test_injected_event_log_is_used(staking, events, addrs):
    assert staking.events is events
    staking.register(addrs["v1"], STAKE)
    assert len(events) == 1
