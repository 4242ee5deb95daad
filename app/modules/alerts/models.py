from dataclasses import dataclass
from datetime import datetime
from enum import Enum


class VitalKind(str, Enum):
    """Monitored measurements, declared in evaluation order."""

    HEART_RATE = "HeartRate"
    PULSE = "Pulse"
    SPO2 = "SpO2"
    ARTERIAL_SYSTOLIC = "ArterialSystolic"
    PULMONARY_DIASTOLIC = "PulmonaryDiastolic"
    ETCO2 = "EtCO2"
    AIRWAY_RESP_RATE = "AirwayRespRate"


class Direction(str, Enum):
    LOW = "low"
    HIGH = "high"


class Severity(str, Enum):
    WARNING = "warning"
    CRITICAL = "critical"


@dataclass
class RateLimitEntry:
    subject_key: str
    vital_kind: VitalKind
    delivered_at: datetime


@dataclass
class DispatchReport:
    """Per-reading delivery counters, mostly for logs and tests."""

    broadcast: int = 0
    broadcast_failed: int = 0
    emailed: int = 0
    suppressed: int = 0
    email_failed: int = 0
