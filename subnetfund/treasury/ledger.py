from __future__ import annotations

"""
Custody ledger — per-asset balances for budgets, rewards and stakes
--------------------------------------------------------------------

Deterministic, storage-agnostic token ledger used by the settlement core as
its payment rail. Every asset (token address, or `NATIVE_ASSET` for the native
coin) has its own balance table keyed by holder address.

Amounts are integer base units. All operations check:
  • Non-negativity
  • Sufficient balance before debits
  • Recipient not blocked (models a token or receiver that reverts)

`transfer_batch` validates the whole batch against a scratch copy of the
balances before moving anything, so a batch either applies completely or not
at all. This is what lets a claim pay treasury, verifier and provider as one
unit.

Concurrency: a coarse `threading.RLock` protects mutating methods.

Persistence is delegated to callers: snapshot with `dump()` and restore with
`load()`. The journal is retained in memory for observability.
"""

from dataclasses import asdict, dataclass, field
from threading import RLock
from typing import Dict, Iterable, List, Optional, Sequence, Set, Tuple
import logging

from ..errors import AmountOverflow, TransferFailed
from ..sftypes import MAX_AMOUNT
from ..sftypes.address import normalize_address

log = logging.getLogger(__name__)

Amount = int


def _ensure_nonneg(x: int, name: str) -> None:
    if not isinstance(x, int) or x < 0:
        raise ValueError(f"{name} must be a non-negative int, got {x!r}")


def _safe_add(a: int, b: int) -> int:
    c = a + b
    if c > MAX_AMOUNT:
        raise AmountOverflow(value=c, limit=MAX_AMOUNT)
    return c


@dataclass(frozen=True)
class TransferInstruction:
    """A single movement of `amount` of `asset` from `sender` to `recipient`."""
    asset: str
    sender: str
    recipient: str
    amount: Amount
    memo: Optional[str] = None

    def to_dict(self) -> Dict:
        return asdict(self)


@dataclass(frozen=True)
class JournalEntry:
    seq: int
    op: str  # "mint" | "transfer"
    asset: str
    sender: Optional[str]
    recipient: str
    amount: Amount
    memo: Optional[str] = None
    meta: Dict[str, str] = field(default_factory=dict)


class TokenLedger:
    """
    In-memory multi-asset balance table.

    Call `dump()` to serialize to a JSON-friendly dict and `load()` to restore.
    """

    def __init__(self) -> None:
        self._balances: Dict[str, Dict[str, Amount]] = {}
        self._blocked: Set[str] = set()
        self._journal: List[JournalEntry] = []
        self._lock = RLock()

    # --- load/save ---

    def dump(self) -> Dict:
        with self._lock:
            return {
                "balances": {
                    asset: {a: v for a, v in sorted(tbl.items()) if v}
                    for asset, tbl in sorted(self._balances.items())
                },
                "blocked": sorted(self._blocked),
            }

    @classmethod
    def load(cls, data: Dict) -> "TokenLedger":
        led = cls()
        for asset, tbl in data.get("balances", {}).items():
            led._balances[normalize_address(asset)] = {normalize_address(a): int(v) for a, v in tbl.items()}
        led._blocked = {normalize_address(a) for a in data.get("blocked", ())}
        return led

    # --- introspection ---

    def balance_of(self, asset: str, holder: str) -> Amount:
        with self._lock:
            return self._balances.get(asset.lower(), {}).get(holder.lower(), 0)

    def total_supply(self, asset: str) -> Amount:
        with self._lock:
            return sum(self._balances.get(asset.lower(), {}).values())

    def journal(self) -> Tuple[JournalEntry, ...]:
        return tuple(self._journal)

    def is_blocked(self, addr: str) -> bool:
        return addr.lower() in self._blocked

    # --- mutations (all locked) ---

    def block_recipient(self, addr: str) -> None:
        """Make every transfer to `addr` fail until unblocked."""
        with self._lock:
            self._blocked.add(normalize_address(addr))

    def unblock_recipient(self, addr: str) -> None:
        with self._lock:
            self._blocked.discard(normalize_address(addr))

    def mint(self, asset: str, to: str, amount: Amount, *, memo: Optional[str] = None) -> JournalEntry:
        """Credit `amount` out of thin air; used to fund accounts in dev and tests."""
        _ensure_nonneg(amount, "amount")
        asset, to = normalize_address(asset), normalize_address(to)
        with self._lock:
            tbl = self._balances.setdefault(asset, {})
            tbl[to] = _safe_add(tbl.get(to, 0), amount)
            return self._record("mint", asset, None, to, amount, memo)

    def transfer(self, asset: str, sender: str, recipient: str, amount: Amount,
                 *, memo: Optional[str] = None) -> JournalEntry:
        return self.transfer_batch([TransferInstruction(asset, sender, recipient, amount, memo)])[0]

    def transfer_batch(self, instructions: Sequence[TransferInstruction]) -> List[JournalEntry]:
        """
        Apply all `instructions` or none of them.

        Raises TransferFailed (insufficient balance, blocked recipient) before
        any balance moves.
        """
        with self._lock:
            scratch: Dict[Tuple[str, str], Amount] = {}

            def bal(asset: str, holder: str) -> Amount:
                k = (asset, holder)
                if k not in scratch:
                    scratch[k] = self._balances.get(asset, {}).get(holder, 0)
                return scratch[k]

            normalized: List[TransferInstruction] = []
            for ins in instructions:
                _ensure_nonneg(ins.amount, "amount")
                asset = normalize_address(ins.asset)
                sender = normalize_address(ins.sender)
                recipient = normalize_address(ins.recipient)
                if recipient in self._blocked:
                    raise TransferFailed("recipient rejected transfer", asset=asset, sender=sender,
                                         recipient=recipient, amount=ins.amount)
                have = bal(asset, sender)
                if have < ins.amount:
                    raise TransferFailed("insufficient balance", asset=asset, sender=sender,
                                         recipient=recipient, amount=ins.amount,
                                         details={"balance": str(have)})
                scratch[(asset, sender)] = have - ins.amount
                scratch[(asset, recipient)] = _safe_add(bal(asset, recipient), ins.amount)
                normalized.append(TransferInstruction(asset, sender, recipient, ins.amount, ins.memo))

            for (asset, holder), v in scratch.items():
                self._balances.setdefault(asset, {})[holder] = v
            return [self._record("transfer", i.asset, i.sender, i.recipient, i.amount, i.memo)
                    for i in normalized]

    def _record(self, op: str, asset: str, sender: Optional[str], recipient: str,
                amount: Amount, memo: Optional[str]) -> JournalEntry:
        je = JournalEntry(seq=len(self._journal) + 1, op=op, asset=asset, sender=sender,
                          recipient=recipient, amount=amount, memo=memo)
        self._journal.append(je)
        log.debug("ledger %s asset=%s from=%s to=%s amount=%d memo=%s",
                  op, asset, sender, recipient, amount, memo)
        return je


def entries_for(journal: Iterable[JournalEntry], holder: str) -> List[JournalEntry]:
    h = holder.lower()
    return [e for e in journal if e.recipient == h or e.sender == h]


__all__ = ["TransferInstruction", "JournalEntry", "TokenLedger", "entries_for"]
