from __future__ import annotations

import threading
from datetime import datetime, timedelta, timezone
from typing import Callable

from app.modules.alerts.models import RateLimitEntry, VitalKind

DEFAULT_COOLDOWN = timedelta(minutes=5)


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


class RateLimiter:
    """
    Cooldown ledger for outbound notifications, keyed by (subject, vital kind).

    Only the email channel consults it; live broadcasts are never throttled. State is
    in-memory and lost on restart, which at worst costs one extra notification.
    """

    def __init__(
        self,
        cooldown: timedelta = DEFAULT_COOLDOWN,
        clock: Callable[[], datetime] = _utc_now,
    ) -> None:
        self._cooldown = cooldown
        self._clock = clock
        self._entries: dict[tuple[str, VitalKind], RateLimitEntry] = {}
        self._lock = threading.Lock()

    @property
    def cooldown(self) -> timedelta:
        return self._cooldown

    def should_deliver(
        self, subject_id: int | str, vital_kind: VitalKind, now: datetime | None = None
    ) -> bool:
        now = now or self._clock()
        with self._lock:
            entry = self._entries.get(self._key(subject_id, vital_kind))
        if entry is None:
            return True
        return now - entry.delivered_at >= self._cooldown

    def record_delivery(
        self, subject_id: int | str, vital_kind: VitalKind, now: datetime | None = None
    ) -> None:
        key = self._key(subject_id, vital_kind)
        entry = RateLimitEntry(subject_key=key[0], vital_kind=vital_kind, delivered_at=now or self._clock())
        with self._lock:
            self._entries[key] = entry

    def last_delivery(self, subject_id: int | str, vital_kind: VitalKind) -> datetime | None:
        with self._lock:
            entry = self._entries.get(self._key(subject_id, vital_kind))
        return entry.delivered_at if entry else None

    def prune(self, now: datetime | None = None) -> int:
        """Drop entries whose cooldown has already elapsed."""
        now = now or self._clock()
        with self._lock:
            expired = [
                key
                for key, entry in self._entries.items()
                if now - entry.delivered_at >= self._cooldown
            ]
            for key in expired:
                del self._entries[key]
        return len(expired)

    def forget_subject(self, subject_id: int | str) -> int:
        subject_key = str(subject_id)
        with self._lock:
            keys = [key for key in self._entries if key[0] == subject_key]
            for key in keys:
                del self._entries[key]
        return len(keys)

    def reset(self) -> None:
        with self._lock:
            self._entries.clear()

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    @staticmethod
    def _key(subject_id: int | str, vital_kind: VitalKind) -> tuple[str, VitalKind]:
        return str(subject_id), vital_kind
