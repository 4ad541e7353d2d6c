from __future__ import annotations

"""
AppStoreService — the settlement API for budgeted subnet applications.

Owns the application and accrual stores and wires together the attestation
verifier, the accrual and settlement engines, the custody ledger and the
external provider/verifier oracles.

Typical flow
------------
1) Owner calls `create_app(...)`; the budget moves from the owner into the
   custody account on the ledger.
2) Provider nodes submit signed usage: `report_usage(report, signatures)`.
   The reward is debited from the remaining budget and credited to the
   (application, provider) accrual, all in one step.
3) After the lock window, anyone calls `claim_reward(provider_id, subject_id)`;
   fee, verifier fee and net are paid out of custody in one atomic batch.
4) If the provider gets jailed, the owner calls `refund_provider(...)` to put
   the unclaimed reward back into the spendable budget.

Concurrency
-----------
Every entry point that touches an application runs under that application's
`threading.RLock`, so the budget check and the budget debit are never
separated. Administrative setters use their own lock. Claims and refunds also
mark their (application, provider) pair in flight; a re-entrant call for the
same pair (e.g. from an event subscriber) is rejected with ReentrantCall.

All validation happens before any mutation. A claim whose transfer batch
fails restores the accrual it had already committed.
"""

from contextlib import contextmanager
from dataclasses import replace
from threading import Lock, RLock
from typing import Callable, Dict, Iterator, List, Optional, Sequence, Set, Tuple
import logging
import time

from .. import metrics
from ..attest.encoding import SigningDomain
from ..attest.verifier import AttestationVerifier, Signatures
from ..config import SubnetFundConfig
from ..economics.accrual import accrue, check_fresh
from ..economics.pricing import compute_reward
from ..economics.refund import plan_refund
from ..economics.settlement import ClaimPlan, plan_claim
from ..economics.split import check_rate
from ..errors import (InactiveProvider, InvalidConfig, InvalidVerifierIndex, PriceChanged,
                      ProviderJailed, ProviderNotJailed, ReentrantCall, SubnetFundError,
                      VerifierStillActive)
from ..oracle.interfaces import ProviderOracle, VerifierStatusOracle
from ..sftypes.accrual import Accrual
from ..sftypes.address import NATIVE_ASSET, normalize_address, normalize_addresses
from ..sftypes.application import Application, PriceVector, RewardMode, SignerPolicy
from ..sftypes.events import (AppCreated, AppUpdated, EventLog, FeeRateUpdated, LockedRewardPaid,
                              ProviderRefunded, RewardClaimed, RewardLockDurationUpdated,
                              TreasuryUpdated, UsageAccepted, VerifierRemoved,
                              VerifierRewardRateUpdated, VerifiersUpdated)
from ..sftypes.usage import UsageReport
from ..store.accruals import AccrualStore
from ..store.applications import ApplicationStore
from ..treasury.ledger import TokenLedger
from . import policy

log = logging.getLogger(__name__)

# Holder address of application budgets on the custody ledger.
APPSTORE_CUSTODY = "0x" + "a5" * 20


class AppStoreService:
    def __init__(
        self,
        *,
        owner: str,
        providers: ProviderOracle,
        ledger: Optional[TokenLedger] = None,
        verifier_status: Optional[VerifierStatusOracle] = None,
        config: Optional[SubnetFundConfig] = None,
        treasury: Optional[str] = None,
        custody: str = APPSTORE_CUSTODY,
        events: Optional[EventLog] = None,
        clock: Callable[[], int] | None = None,
    ) -> None:
        self.cfg = config or SubnetFundConfig()
        self.cfg.validate()

        self.owner = normalize_address(owner)
        self.custody = normalize_address(custody)
        self.providers = providers
        self.verifier_status = verifier_status
        self.ledger = ledger if ledger is not None else TokenLedger()
        self.events = events if events is not None else EventLog()
        self.verifier = AttestationVerifier(SigningDomain.from_config(self.cfg.signing))
        self._clock = clock or (lambda: int(time.time()))

        self.fee_rate = self.cfg.split.fee_rate
        self.verifier_reward_rate = self.cfg.split.verifier_reward_rate
        self.treasury = normalize_address(treasury or self.cfg.treasury or owner)
        self.reward_lock_seconds = self.cfg.lock.reward_lock_seconds
        self.lock_mode = self.cfg.lock.mode

        self.apps = ApplicationStore()
        self.accruals = AccrualStore()

        self._subject_locks: Dict[int, RLock] = {}
        self._locks_guard = Lock()
        self._admin_lock = RLock()
        self._in_flight: Set[Tuple[int, int]] = set()

    # ────────────────────────────────────────────────────────────────────────
    # Locking helpers
    # ────────────────────────────────────────────────────────────────────────

    def _subject_lock(self, subject_id: int) -> RLock:
        with self._locks_guard:
            lk = self._subject_locks.get(subject_id)
            if lk is None:
                lk = self._subject_locks[subject_id] = RLock()
            return lk

    @contextmanager
    def _settling(self, subject_id: int, provider_id: int) -> Iterator[None]:
        key = (subject_id, provider_id)
        if key in self._in_flight:
            raise ReentrantCall(subject_id=subject_id, provider_id=provider_id)
        self._in_flight.add(key)
        try:
            yield
        finally:
            self._in_flight.discard(key)

    # ────────────────────────────────────────────────────────────────────────
    # Application management
    # ────────────────────────────────────────────────────────────────────────

    def create_app(
        self,
        caller: str,
        *,
        name: str,
        symbol: str,
        budget: int,
        peer_ids: Sequence[str] = (),
        prices: Optional[PriceVector] = None,
        metadata: str = "",
        operator: Optional[str] = None,
        verifier: Optional[str] = None,
        payment_asset: str = NATIVE_ASSET,
        reward_mode: RewardMode = RewardMode.PRICED,
        signer_policy: SignerPolicy = SignerPolicy.SINGLE,
        signature_threshold: int = 1,
        verifiers: Sequence[str] = (),
    ) -> Application:
        owner = normalize_address(caller)
        if not name or not symbol:
            raise ValueError("name and symbol must be non-empty")
        if not isinstance(budget, int) or budget < 0:
            raise ValueError(f"budget must be a non-negative int (got {budget!r})")
        op = normalize_address(operator) if operator else owner
        asset = normalize_address(payment_asset)

        sid = self.apps.reserve_id(symbol)
        try:
            app = Application(
                id=sid,
                owner=owner,
                operator=op,
                verifier=normalize_address(verifier) if verifier else op,
                name=name,
                symbol=symbol,
                budget=budget,
                peer_ids=tuple(peer_ids),
                metadata=metadata,
                payment_asset=asset,
                prices=prices or PriceVector(),
                reward_mode=RewardMode(reward_mode),
                signer_policy=SignerPolicy(signer_policy),
                signature_threshold=signature_threshold,
                verifiers=normalize_addresses(verifiers),
                created_at=self._clock(),
            )
            if budget:
                self.ledger.transfer(asset, owner, self.custody, budget, memo=f"budget:{sid}")
        except (SubnetFundError, ValueError):
            self.apps.release(sid, symbol)
            raise
        self.apps.put(app)

        log.info("app created id=%s symbol=%s owner=%s budget=%d mode=%s policy=%s",
                 sid, symbol, owner, budget, app.reward_mode.value, app.signer_policy.value)
        self.events.emit(AppCreated(subject_id=sid, name=name, symbol=symbol, owner=owner, budget=budget))
        return app

    def _update(self, caller: str, subject_id: int, field: str, value, *, owner_only: bool = True) -> Application:
        with self._subject_lock(subject_id):
            app = self.apps.get(subject_id)
            if owner_only:
                policy.require_owner(app, caller)
            else:
                policy.require_owner_or_operator(app, caller)
            new = _replace(app, field, value)
            self.apps.put(new)
        shown = new.prices.to_dict() if field == "prices" else getattr(new, field)
        if isinstance(shown, tuple):
            shown = list(shown)
        self.events.emit(AppUpdated(subject_id=subject_id, field=field, value=shown))
        return new

    def update_name(self, caller: str, subject_id: int, name: str) -> Application:
        if not name:
            raise ValueError("name must be non-empty")
        return self._update(caller, subject_id, "name", name)

    def update_metadata(self, caller: str, subject_id: int, metadata: str) -> Application:
        return self._update(caller, subject_id, "metadata", metadata)

    def update_operator(self, caller: str, subject_id: int, operator: str) -> Application:
        return self._update(caller, subject_id, "operator", normalize_address(operator))

    def update_peer_ids(self, caller: str, subject_id: int, peer_ids: Sequence[str]) -> Application:
        return self._update(caller, subject_id, "peer_ids", tuple(peer_ids), owner_only=False)

    def update_pricing(self, caller: str, subject_id: int, prices: PriceVector) -> Application:
        """Replace the price vector; bumps `price_version` so in-flight reports can detect it."""
        return self._update(caller, subject_id, "prices", prices)

    def update_signer_policy(self, caller: str, subject_id: int, signer_policy: SignerPolicy,
                             signature_threshold: Optional[int] = None) -> Application:
        with self._subject_lock(subject_id):
            app = self.apps.get(subject_id)
            policy.require_owner(app, caller)
            changes = {"signer_policy": SignerPolicy(signer_policy)}
            if signature_threshold is not None:
                changes["signature_threshold"] = signature_threshold
            new = replace(app, **changes)
            self.apps.put(new)
        self.events.emit(AppUpdated(subject_id=subject_id, field="signer_policy", value=new.signer_policy.value))
        return new

    def update_verifiers(self, caller: str, subject_id: int, verifiers: Sequence[str]) -> Application:
        with self._subject_lock(subject_id):
            app = self.apps.get(subject_id)
            policy.require_owner(app, caller)
            new = app.with_verifiers(verifiers)
            self.apps.put(new)
        self.events.emit(VerifiersUpdated(subject_id=subject_id, verifiers=new.verifiers))
        return new

    # ────────────────────────────────────────────────────────────────────────
    # Usage
    # ────────────────────────────────────────────────────────────────────────

    def report_usage(
        self,
        report: UsageReport,
        signatures: Signatures,
        *,
        expected_price_version: Optional[int] = None,
    ) -> UsageAccepted:
        """
        Validate and accrue one signed usage report.

        Check order: application exists, provider active, peer belongs to the
        provider, provider not jailed, timestamp fresh, price version (when
        given), signatures, reward, budget. Any failure leaves state unchanged.
        """
        try:
            event = self._report_usage(report, signatures, expected_price_version)
        except SubnetFundError as e:
            metrics.record_usage(e.code)
            log.debug("usage rejected subject=%s provider=%s code=%s",
                      report.subject_id, report.provider_id, e.code)
            raise
        metrics.record_usage("accepted", event.reward)
        self.events.emit(event)
        return event

    def _report_usage(self, report: UsageReport, signatures: Signatures,
                      expected_price_version: Optional[int]) -> UsageAccepted:
        sid, pid = report.subject_id, report.provider_id
        with self._subject_lock(sid):
            app = self.apps.get(sid)
            if not self.providers.is_provider_active(pid):
                raise InactiveProvider(provider_id=pid)
            if not self.providers.resolve_peer(pid, report.peer_id):
                raise InactiveProvider(provider_id=pid, peer_id=report.peer_id,
                                       message="peer is not registered to provider")
            if self.providers.is_provider_jailed(pid):
                raise ProviderJailed(provider_id=pid)

            accrual = self.accruals.get(sid, pid)
            check_fresh(accrual, report.timestamp)
            if expected_price_version is not None and expected_price_version != app.price_version:
                raise PriceChanged(subject_id=sid, expected_version=expected_price_version,
                                   current_version=app.price_version)

            self.verifier.verify(app, report, signatures)

            reward = compute_reward(report, app)
            new_app, new_accrual = accrue(
                app, accrual,
                reward=reward,
                timestamp=report.timestamp,
                now=self._clock(),
                lock_seconds=self.reward_lock_seconds,
                mode=self.lock_mode,
            )
            self.apps.put(new_app)
            self.accruals.put(new_accrual)

        log.info("usage accepted subject=%s provider=%s peer=%s reward=%d pending=%d unlock_at=%d",
                 sid, pid, report.peer_id, reward, new_accrual.pending_reward, new_accrual.unlock_at)
        return UsageAccepted(
            subject_id=sid,
            provider_id=pid,
            peer_id=report.peer_id,
            reward=reward,
            pending_reward=new_accrual.pending_reward,
            unlock_at=new_accrual.unlock_at,
            timestamp=report.timestamp,
        )

    # ────────────────────────────────────────────────────────────────────────
    # Settlement
    # ────────────────────────────────────────────────────────────────────────

    def claim_reward(self, provider_id: int, subject_id: int) -> ClaimPlan:
        """
        Pay out what has matured for (subject_id, provider_id).

        Fee goes to the treasury, verifier fee to the application's verifier
        and the net amount to the provider owner. Raises ProviderJailed,
        NoRewards, RewardLocked or TransferFailed; on failure nothing changes.
        """
        with self._subject_lock(subject_id):
            app = self.apps.get(subject_id)
            with self._settling(subject_id, provider_id):
                if self.providers.is_provider_jailed(provider_id):
                    raise ProviderJailed(provider_id=provider_id)
                payee = self.providers.provider_owner(provider_id)
                if payee is None:
                    raise InactiveProvider(provider_id=provider_id, message="provider has no owner on record")

                now = self._clock()
                plan = plan_claim(
                    self.accruals.get(subject_id, provider_id),
                    now=now,
                    lock_seconds=self.reward_lock_seconds,
                    mode=self.lock_mode,
                    fee_rate=self.fee_rate,
                    verifier_rate=self.verifier_reward_rate,
                    asset=app.payment_asset,
                    custody=self.custody,
                    treasury=self.treasury,
                    verifier=app.verifier,
                    payee=payee,
                )

                self.accruals.put(plan.after)
                try:
                    if plan.transfers:
                        self.ledger.transfer_batch(plan.transfers)
                except Exception:
                    self.accruals.put(plan.before)
                    log.info("claim aborted subject=%s provider=%s: payout batch failed", subject_id, provider_id)
                    raise

                if plan.paid is not None:
                    metrics.record_claim("paid", plan.paid.gross)
                    log.info("reward paid subject=%s provider=%s gross=%d fee=%d verifier_fee=%d net=%d",
                             subject_id, provider_id, plan.paid.gross, plan.paid.fee,
                             plan.paid.verifier_fee, plan.paid.net)
                    self.events.emit(LockedRewardPaid(
                        subject_id=subject_id,
                        provider_id=provider_id,
                        gross=plan.paid.gross,
                        fee=plan.paid.fee,
                        verifier_fee=plan.paid.verifier_fee,
                        net=plan.paid.net,
                        payee=normalize_address(payee),
                        verifier=app.verifier,
                    ))
                if plan.relocked:
                    metrics.record_claim("locked")
                    log.info("reward locked subject=%s provider=%s amount=%d unlock_at=%d",
                             subject_id, provider_id, plan.relocked, plan.next_unlock_at)
                amount = plan.relocked if plan.relocked else (plan.paid.net if plan.paid else 0)
                self.events.emit(RewardClaimed(subject_id=subject_id, provider_id=provider_id,
                                               amount=amount, unlock_at=plan.next_unlock_at))
                return plan

    def refund_provider(self, caller: str, subject_id: int, provider_id: int) -> int:
        """Owner returns a jailed provider's unclaimed reward to the budget; returns the amount."""
        with self._subject_lock(subject_id):
            app = self.apps.get(subject_id)
            policy.require_owner(app, caller)
            with self._settling(subject_id, provider_id):
                if not self.providers.is_provider_jailed(provider_id):
                    raise ProviderNotJailed(provider_id=provider_id)
                new_app, new_accrual, amount = plan_refund(app, self.accruals.get(subject_id, provider_id))
                self.apps.put(new_app)
                self.accruals.put(new_accrual)

        metrics.record_refund()
        log.info("provider refunded subject=%s provider=%s amount=%d", subject_id, provider_id, amount)
        self.events.emit(ProviderRefunded(subject_id=subject_id, provider_id=provider_id, amount=amount))
        return amount

    def remove_inactive_verifier(self, subject_id: int, index: int) -> Application:
        """
        Drop the slashed verifier at `index`; later verifiers shift left by one,
        keeping their relative order.
        """
        if self.verifier_status is None:
            raise InvalidConfig("no verifier status oracle configured")
        with self._subject_lock(subject_id):
            app = self.apps.get(subject_id)
            vs = list(policy.verifier_set(app))
            if not (0 <= index < len(vs)):
                raise InvalidVerifierIndex(subject_id=subject_id, index=index, size=len(vs))
            target = vs[index]
            if not self.verifier_status.is_slashed(target):
                raise VerifierStillActive(address=target)
            del vs[index]
            new = app.with_verifiers(vs)
            self.apps.put(new)

        metrics.record_verifier_removed()
        log.info("verifier removed subject=%s index=%d verifier=%s", subject_id, index, target)
        self.events.emit(VerifierRemoved(subject_id=subject_id, index=index, verifier=target))
        return new

    # ────────────────────────────────────────────────────────────────────────
    # Administration (service owner)
    # ────────────────────────────────────────────────────────────────────────

    def set_fee_rate(self, caller: str, rate: int) -> None:
        policy.require_admin(self.owner, caller)
        check_rate(rate, name="fee_rate")
        with self._admin_lock:
            old, self.fee_rate = self.fee_rate, rate
        self.events.emit(FeeRateUpdated(old=old, new=rate))

    def set_verifier_reward_rate(self, caller: str, rate: int) -> None:
        policy.require_admin(self.owner, caller)
        check_rate(rate, name="verifier_reward_rate")
        with self._admin_lock:
            old, self.verifier_reward_rate = self.verifier_reward_rate, rate
        self.events.emit(VerifierRewardRateUpdated(old=old, new=rate))

    def set_treasury(self, caller: str, treasury: str) -> None:
        policy.require_admin(self.owner, caller)
        new = normalize_address(treasury)
        with self._admin_lock:
            old, self.treasury = self.treasury, new
        self.events.emit(TreasuryUpdated(old=old, new=new))

    def set_reward_lock_duration(self, caller: str, seconds: int) -> None:
        policy.require_admin(self.owner, caller)
        if not isinstance(seconds, int) or seconds < 0:
            raise ValueError("lock duration must be a non-negative int")
        with self._admin_lock:
            old, self.reward_lock_seconds = self.reward_lock_seconds, seconds
        self.events.emit(RewardLockDurationUpdated(old=old, new=seconds))

    # ────────────────────────────────────────────────────────────────────────
    # Queries
    # ────────────────────────────────────────────────────────────────────────

    def get_app(self, subject_id: int) -> Application:
        return self.apps.get(subject_id)

    def app_exists(self, subject_id: int) -> bool:
        return self.apps.exists(subject_id)

    def get_accrual(self, subject_id: int, provider_id: int) -> Accrual:
        return self.accruals.get(subject_id, provider_id)

    def get_pending_reward(self, subject_id: int, provider_id: int) -> int:
        return self.accruals.get(subject_id, provider_id).pending_reward

    def app_verifier(self, subject_id: int, index: int) -> str:
        vs = policy.verifier_set(self.apps.get(subject_id))
        if not (0 <= index < len(vs)):
            raise InvalidVerifierIndex(subject_id=subject_id, index=index, size=len(vs))
        return vs[index]

    def list_apps(self) -> List[Application]:
        return self.apps.list()

    # ────────────────────────────────────────────────────────────────────────
    # Persistence
    # ────────────────────────────────────────────────────────────────────────

    def dump(self) -> Dict:
        with self._admin_lock:
            return {
                "settings": {
                    "owner": self.owner,
                    "treasury": self.treasury,
                    "fee_rate": self.fee_rate,
                    "verifier_reward_rate": self.verifier_reward_rate,
                    "reward_lock_seconds": self.reward_lock_seconds,
                    "lock_mode": self.lock_mode,
                },
                **self.apps.dump(),
                **self.accruals.dump(),
                "ledger": self.ledger.dump(),
            }

    def load(self, data: Dict) -> None:
        settings = data.get("settings", {})
        with self._admin_lock:
            self.treasury = normalize_address(settings.get("treasury", self.treasury))
            self.fee_rate = check_rate(int(settings.get("fee_rate", self.fee_rate)), name="fee_rate")
            self.verifier_reward_rate = check_rate(
                int(settings.get("verifier_reward_rate", self.verifier_reward_rate)), name="verifier_reward_rate")
            self.reward_lock_seconds = int(settings.get("reward_lock_seconds", self.reward_lock_seconds))
            self.lock_mode = settings.get("lock_mode", self.lock_mode)
            self.apps = ApplicationStore.load(data)
            self.accruals = AccrualStore.load(data)
            if "ledger" in data:
                self.ledger = TokenLedger.load(data["ledger"])


def _replace(app: Application, field: str, value) -> Application:
    if field == "prices":
        return app.with_prices(value)
    return replace(app, **{field: value})


__all__ = ["APPSTORE_CUSTODY", "AppStoreService"]
