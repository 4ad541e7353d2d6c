from __future__ import annotations

from .ledger import JournalEntry, TokenLedger, TransferInstruction, entries_for

__all__ = ["JournalEntry", "TokenLedger", "TransferInstruction", "entries_for"]
