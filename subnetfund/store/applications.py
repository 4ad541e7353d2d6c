from __future__ import annotations

"""
In-memory application store.

Applications are never deleted; ids are assigned sequentially from 1. Symbols
are unique across the store (case-sensitive, as registered).
"""

from threading import RLock
from typing import Dict, Iterator, List, Optional

from ..errors import DuplicateSymbol, UnknownSubject
from ..sftypes.application import Application


class ApplicationStore:
    def __init__(self) -> None:
        self._apps: Dict[int, Application] = {}
        self._symbols: Dict[str, int] = {}
        self._next_id = 1
        self._lock = RLock()

    # --- load/save ---

    def dump(self) -> Dict:
        with self._lock:
            return {
                "next_id": self._next_id,
                "applications": [a.to_dict() for _, a in sorted(self._apps.items())],
            }

    @classmethod
    def load(cls, data: Dict) -> "ApplicationStore":
        st = cls()
        for d in data.get("applications", ()):
            app = Application.from_dict(d)
            st._apps[app.id] = app
            st._symbols[app.symbol] = app.id
        st._next_id = int(data.get("next_id", max(st._apps, default=0) + 1))
        return st

    # --- introspection ---

    def get(self, subject_id: int) -> Application:
        app = self._apps.get(subject_id)
        if app is None:
            raise UnknownSubject(subject_id=subject_id)
        return app

    def find(self, subject_id: int) -> Optional[Application]:
        return self._apps.get(subject_id)

    def exists(self, subject_id: int) -> bool:
        return subject_id in self._apps

    def by_symbol(self, symbol: str) -> Optional[Application]:
        sid = self._symbols.get(symbol)
        return self._apps.get(sid) if sid is not None else None

    def list(self) -> List[Application]:
        with self._lock:
            return [a for _, a in sorted(self._apps.items())]

    def __iter__(self) -> Iterator[Application]:
        return iter(self.list())

    def __len__(self) -> int:
        return len(self._apps)

    # --- mutations ---

    def reserve_id(self, symbol: str) -> int:
        """Claim `symbol` and the next id atomically; pair with `put` or `release`."""
        with self._lock:
            if symbol in self._symbols:
                raise DuplicateSymbol(symbol=symbol)
            sid = self._next_id
            self._next_id += 1
            self._symbols[symbol] = sid
            return sid

    def release(self, subject_id: int, symbol: str) -> None:
        """Undo a `reserve_id` whose creation failed before `put`."""
        with self._lock:
            if self._symbols.get(symbol) == subject_id and subject_id not in self._apps:
                del self._symbols[symbol]

    def put(self, app: Application) -> None:
        with self._lock:
            if self._symbols.get(app.symbol) != app.id:
                raise DuplicateSymbol(symbol=app.symbol)
            self._apps[app.id] = app


__all__ = ["ApplicationStore"]
