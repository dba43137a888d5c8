"""
Process-wide session flags, persisted through the local key/value store.

Held as an explicit object so the prober, the backends and the orchestrator
share one instance and tests can inject their own.
"""

from __future__ import annotations

from datetime import date
from enum import Enum
from typing import Optional

from serve_tracker.local_store import KeyValueStore

FALLBACK_KEY = "useLocalStorageFallback"
WARNING_SHOWN_KEY = "connectionErrorShown"
EXPORT_START_KEY = "exportStartDate"
EXPORT_END_KEY = "exportEndDate"


class BackendProvider(str, Enum):
    REMOTE = "remote"
    LOCAL = "local"


class SessionState:
    def __init__(self, kv: KeyValueStore, provider: BackendProvider = BackendProvider.REMOTE):
        self.kv = kv
        self.provider = BackendProvider(provider)

    @property
    def use_fallback(self) -> bool:
        return self.kv.get(FALLBACK_KEY) == "true"

    @use_fallback.setter
    def use_fallback(self, value: bool) -> None:
        if value:
            self.kv.set(FALLBACK_KEY, "true")
        else:
            self.kv.remove(FALLBACK_KEY)

    @property
    def warning_shown(self) -> bool:
        return self.kv.get(WARNING_SHOWN_KEY) == "true"

    @warning_shown.setter
    def warning_shown(self, value: bool) -> None:
        if value:
            self.kv.set(WARNING_SHOWN_KEY, "true")
        else:
            self.kv.remove(WARNING_SHOWN_KEY)

    def should_use_fallback(self) -> bool:
        """True when configured local-only or the fallback flag is set."""
        if self.provider == BackendProvider.LOCAL:
            return True
        return self.use_fallback

    def get_export_range(self) -> tuple[Optional[date], Optional[date]]:
        return _parse_date(self.kv.get(EXPORT_START_KEY)), _parse_date(
            self.kv.get(EXPORT_END_KEY)
        )

    def set_export_range(self, start: Optional[date], end: Optional[date]) -> None:
        for key, value in ((EXPORT_START_KEY, start), (EXPORT_END_KEY, end)):
            if value is None:
                self.kv.remove(key)
            else:
                self.kv.set(key, value.isoformat())


def _parse_date(value: Optional[str]) -> Optional[date]:
    if not value:
        return None
    try:
        return date.fromisoformat(value[:10])
    except ValueError:
        return None
