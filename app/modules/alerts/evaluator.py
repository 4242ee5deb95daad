from __future__ import annotations

import re
from datetime import datetime

import structlog

from app.modules.alerts.config import RangeSpec, RangeTable
from app.modules.alerts.models import Direction, Severity, VitalKind
from app.modules.alerts.schemas import Alert
from app.modules.vitals.schemas import VitalsReading

log = structlog.get_logger()

_SCALAR_FIELDS: dict[VitalKind, str] = {
    VitalKind.HEART_RATE: "heart_rate",
    VitalKind.PULSE: "pulse",
    VitalKind.SPO2: "spo2",
    VitalKind.ETCO2: "etco2",
    VitalKind.AIRWAY_RESP_RATE: "airway_resp_rate",
}

# Compound "systolic/diastolic[/mean]" strings: (field, component index).
# Only arterial systolic and pulmonary diastolic are evaluated.
_PRESSURE_FIELDS: dict[VitalKind, tuple[str, int]] = {
    VitalKind.ARTERIAL_SYSTOLIC: ("arterial_bp", 0),
    VitalKind.PULMONARY_DIASTOLIC: ("pulmonary_ap", 1),
}

_LEADING_INT = re.compile(r"\s*([+-]?\d+)")


class AlertEvaluator:
    """Compare each measurement of a reading against the range table."""

    def __init__(self, ranges: RangeTable) -> None:
        self._ranges = ranges

    @property
    def ranges(self) -> RangeTable:
        return self._ranges

    def evaluate(self, reading: VitalsReading) -> list[Alert]:
        alerts: list[Alert] = []
        for kind in VitalKind:
            value = self.extract_value(reading, kind)
            if value is None:
                continue
            alert = self.evaluate_kind(
                kind,
                value,
                subject_id=reading.subject_id,
                timestamp=reading.timestamp,
                source=reading.source,
            )
            if alert:
                alerts.append(alert)
        return alerts

    def evaluate_kind(
        self,
        kind: VitalKind,
        value: int,
        subject_id: int | str,
        timestamp: datetime,
        source: str | None = None,
    ) -> Alert | None:
        spec = self._ranges.get(kind)
        if spec is None:
            log.warning("alert range missing, skipping vital", vital_kind=kind.value)
            return None
        outcome = self.classify(spec, value)
        if outcome is None:
            return None
        direction, severity = outcome
        return Alert.build(
            subject_id=subject_id,
            vital_kind=kind,
            value=value,
            direction=direction,
            severity=severity,
            timestamp=timestamp,
            source=source,
        )

    @staticmethod
    def classify(spec: RangeSpec, value: int) -> tuple[Direction, Severity] | None:
        if value < spec.normal_low:
            direction = Direction.LOW
        elif not spec.low_only and value > spec.normal_high:
            direction = Direction.HIGH
        else:
            return None

        if value < spec.critical_low or (not spec.low_only and value > spec.critical_high):
            return direction, Severity.CRITICAL
        return direction, Severity.WARNING

    @classmethod
    def extract_value(cls, reading: VitalsReading, kind: VitalKind) -> int | None:
        field = _SCALAR_FIELDS.get(kind)
        if field:
            return getattr(reading, field)
        field, index = _PRESSURE_FIELDS[kind]
        raw = getattr(reading, field)
        value = cls.parse_pressure_component(raw, index)
        if raw is not None and value is None:
            log.debug(
                "pressure component unreadable",
                vital_kind=kind.value,
                raw=raw,
                subject_id=reading.subject_id,
            )
        return value

    @staticmethod
    def parse_pressure_component(raw: str | None, index: int) -> int | None:
        """Read the integer at `index` of a slash-separated pressure, or None if unreadable."""
        if not raw:
            return None
        parts = str(raw).split("/")
        if index >= len(parts):
            return None
        match = _LEADING_INT.match(parts[index])
        if not match:
            return None
        return int(match.group(1))
