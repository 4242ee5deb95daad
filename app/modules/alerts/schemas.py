from datetime import datetime

from pydantic import Field

from app.modules.alerts.models import Direction, Severity, VitalKind
from app.shared.schemas import CamelModel


def alert_id_for(subject_id: int | str, kind: VitalKind, timestamp: datetime) -> str:
    """Deterministic identity: the same reading and kind always map to the same id."""
    return f"{subject_id}-{kind.value}-{timestamp.isoformat()}"


class Alert(CamelModel):
    """An out-of-range finding for one vital kind of one reading."""

    id: str
    subject_id: int | str
    vital_kind: VitalKind
    value: int
    direction: Direction
    severity: Severity
    timestamp: datetime
    source: str | None = None

    @classmethod
    def build(
        cls,
        subject_id: int | str,
        vital_kind: VitalKind,
        value: int,
        direction: Direction,
        severity: Severity,
        timestamp: datetime,
        source: str | None = None,
    ) -> "Alert":
        return cls(
            id=alert_id_for(subject_id, vital_kind, timestamp),
            subject_id=subject_id,
            vital_kind=vital_kind,
            value=value,
            direction=direction,
            severity=severity,
            timestamp=timestamp,
            source=source,
        )


class AlertEvent(CamelModel):
    """Outbound real-time payload for a single alert."""

    event: str = "vital-alert"
    alert: Alert


class AlertsClearedEvent(CamelModel):
    """Broadcast after a viewer clears or dismisses alerts for a subject."""

    event: str = "alerts-cleared"
    subject_id: int | str
    alert_id: str | None = None


class SubjectAlerts(CamelModel):
    subject_id: int | str
    alerts: list[Alert] = Field(default_factory=list)
    critical: int = 0
    warning: int = 0

    @classmethod
    def from_alerts(cls, subject_id: int | str, alerts: list[Alert]) -> "SubjectAlerts":
        critical = sum(1 for alert in alerts if alert.severity == Severity.CRITICAL)
        return cls(
            subject_id=subject_id,
            alerts=alerts,
            critical=critical,
            warning=len(alerts) - critical,
        )
