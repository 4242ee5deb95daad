from __future__ import annotations

import threading

from app.modules.alerts.models import VitalKind
from app.modules.alerts.schemas import Alert

_KIND_ORDER = {kind: position for position, kind in enumerate(VitalKind)}


class AlertStore:
    """
    Latest alert set per subject, used for dashboard badges.

    Each update replaces the subject's set: a kind missing from the new evaluation has
    returned to normal and is dropped. Alerts a viewer dismissed stay hidden until a
    newer reading produces a new alert id for that kind.
    """

    def __init__(self) -> None:
        self._alerts: dict[str, dict[VitalKind, Alert]] = {}
        self._dismissed: dict[str, set[str]] = {}
        self._lock = threading.Lock()

    def update(self, subject_id: int | str, alerts: list[Alert]) -> list[Alert]:
        subject_key = str(subject_id)
        with self._lock:
            dismissed = self._dismissed.get(subject_key, set())
            # forget dismissals that no longer match anything current
            dismissed &= {alert.id for alert in alerts}
            current = {
                alert.vital_kind: alert for alert in alerts if alert.id not in dismissed
            }
            if current:
                self._alerts[subject_key] = current
            else:
                self._alerts.pop(subject_key, None)
            if dismissed:
                self._dismissed[subject_key] = dismissed
            else:
                self._dismissed.pop(subject_key, None)
            return self._ordered(current)

    def get(self, subject_id: int | str) -> list[Alert]:
        with self._lock:
            return self._ordered(self._alerts.get(str(subject_id), {}))

    def clear(self, subject_id: int | str) -> list[Alert]:
        """Dismiss every active alert for the subject; returns what was cleared."""
        subject_key = str(subject_id)
        with self._lock:
            cleared = self._alerts.pop(subject_key, {})
            if cleared:
                self._dismissed.setdefault(subject_key, set()).update(
                    alert.id for alert in cleared.values()
                )
            return self._ordered(cleared)

    def dismiss(self, subject_id: int | str, alert_id: str) -> bool:
        subject_key = str(subject_id)
        with self._lock:
            current = self._alerts.get(subject_key, {})
            for kind, alert in list(current.items()):
                if alert.id == alert_id:
                    del current[kind]
                    self._dismissed.setdefault(subject_key, set()).add(alert_id)
                    if not current:
                        self._alerts.pop(subject_key, None)
                    return True
        return False

    def forget(self, subject_id: int | str) -> None:
        subject_key = str(subject_id)
        with self._lock:
            self._alerts.pop(subject_key, None)
            self._dismissed.pop(subject_key, None)

    def snapshot(self) -> dict[str, list[Alert]]:
        with self._lock:
            return {
                subject_key: self._ordered(alerts)
                for subject_key, alerts in self._alerts.items()
            }

    def reset(self) -> None:
        with self._lock:
            self._alerts.clear()
            self._dismissed.clear()

    @staticmethod
    def _ordered(alerts: dict[VitalKind, Alert]) -> list[Alert]:
        return sorted(alerts.values(), key=lambda alert: _KIND_ORDER[alert.vital_kind])
