from __future__ import annotations

from threading import RLock
from typing import Dict, List, Optional

from ..sftypes.accrual import Accrual, AccrualKey


class AccrualStore:
    """
    (subject_id, provider_id) -> Accrual.

    Missing pairs read as an empty accrual; storing an empty accrual keeps the
    entry so the replay guard (`last_report_at`) survives a full claim.
    """

    def __init__(self) -> None:
        self._rows: Dict[AccrualKey, Accrual] = {}
        self._lock = RLock()

    def dump(self) -> Dict:
        with self._lock:
            return {"accruals": [a.to_dict() for _, a in sorted(self._rows.items())]}

    @classmethod
    def load(cls, data: Dict) -> "AccrualStore":
        st = cls()
        for d in data.get("accruals", ()):
            a = Accrual.from_dict(d)
            st._rows[a.key] = a
        return st

    def get(self, subject_id: int, provider_id: int) -> Accrual:
        a = self._rows.get((subject_id, provider_id))
        return a if a is not None else Accrual(subject_id=subject_id, provider_id=provider_id)

    def find(self, subject_id: int, provider_id: int) -> Optional[Accrual]:
        return self._rows.get((subject_id, provider_id))

    def put(self, accrual: Accrual) -> None:
        with self._lock:
            self._rows[accrual.key] = accrual

    def for_subject(self, subject_id: int) -> List[Accrual]:
        with self._lock:
            return [a for (sid, _), a in sorted(self._rows.items()) if sid == subject_id]

    def list(self) -> List[Accrual]:
        with self._lock:
            return [a for _, a in sorted(self._rows.items())]

    def __len__(self) -> int:
        return len(self._rows)


__all__ = ["AccrualStore"]
