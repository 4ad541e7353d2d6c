from __future__ import annotations

from .accruals import AccrualStore
from .applications import ApplicationStore

__all__ = ["AccrualStore", "ApplicationStore"]
