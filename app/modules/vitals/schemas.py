import math
from datetime import datetime, timezone
from typing import Any

from pydantic import Field, field_validator, model_validator

from app.shared.schemas import CamelModel

# Short column names used by the monitor capture pipeline and the legacy vitals table,
# plus the dashboard spellings that camelCase aliasing does not produce.
LEGACY_FIELD_NAMES: dict[str, str] = {
    "patient_id": "subject_id",
    "patientId": "subject_id",
    "hr": "heart_rate",
    "abp": "arterial_bp",
    "pap": "pulmonary_ap",
    "awrr": "airway_resp_rate",
    "awRR": "airway_resp_rate",
    "etCO2": "etco2",
    "EtCO2": "etco2",
    "arterialBP": "arterial_bp",
    "pulmonaryAP": "pulmonary_ap",
    "created_at": "timestamp",
    "createdAt": "timestamp",
}

DEFAULT_SUBJECT_ID = 1


def normalize_subject_id(value: int | str) -> int | str:
    """Numeric identifiers are stored as ints so `"7"` and `7` address the same subject."""
    if isinstance(value, str):
        stripped = value.strip()
        if stripped.isdigit():
            return int(stripped)
        return stripped
    return value


def _utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


class VitalsReading(CamelModel):
    """One sample from one subject at one instant. Every measurement is optional."""

    subject_id: int | str
    timestamp: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    source: str | None = None
    heart_rate: int | None = None
    pulse: int | None = None
    spo2: int | None = None
    arterial_bp: str | None = None
    pulmonary_ap: str | None = None
    etco2: int | None = None
    airway_resp_rate: int | None = None

    @field_validator("timestamp")
    @classmethod
    def ensure_utc(cls, value: datetime) -> datetime:
        return _utc(value)

    def is_empty(self) -> bool:
        return all(
            getattr(self, name) is None
            for name in (
                "heart_rate",
                "pulse",
                "spo2",
                "arterial_bp",
                "pulmonary_ap",
                "etco2",
                "airway_resp_rate",
            )
        )


class VitalsReadingCreate(CamelModel):
    """
    Inbound reading from a camera, video, manual or test source.

    Accepts both the short monitor labels (`hr`, `abp`, `awrr`, `patient_id`, ...) and the
    camelCase field names. Extracted values are noisy, so intake is lenient:
    - zero or empty values are treated as missing (zero is never a valid reading here);
    - heart rate and pulse outside (0, 300) and SpO2 outside (0, 100] are dropped;
    - a missing subject falls back to subject 1, a missing source to "manual".
    """

    subject_id: int | str = DEFAULT_SUBJECT_ID
    timestamp: datetime | None = None
    source: str = "manual"
    heart_rate: int | None = None
    pulse: int | None = None
    spo2: int | None = None
    arterial_bp: str | None = None
    pulmonary_ap: str | None = None
    etco2: int | None = None
    airway_resp_rate: int | None = None

    @model_validator(mode="before")
    @classmethod
    def map_legacy_names(cls, data: Any) -> Any:
        if not isinstance(data, dict):
            return data
        mapped = dict(data)
        for legacy, name in LEGACY_FIELD_NAMES.items():
            if legacy in mapped:
                value = mapped.pop(legacy)
                mapped.setdefault(name, value)
        return mapped

    @field_validator("subject_id", mode="before")
    @classmethod
    def default_subject(cls, value: object) -> object:
        if value in (None, "", 0):
            return DEFAULT_SUBJECT_ID
        return value

    @field_validator("subject_id")
    @classmethod
    def coerce_subject(cls, value: int | str) -> int | str:
        return normalize_subject_id(value)

    @field_validator("source", mode="before")
    @classmethod
    def default_source(cls, value: object) -> object:
        return value or "manual"

    # Allow integer/float epoch seconds as timestamp input
    @field_validator("timestamp", mode="before")
    @classmethod
    def parse_epoch_timestamp(cls, value: object) -> object:
        if isinstance(value, (int, float)):
            return datetime.fromtimestamp(value, tz=timezone.utc)
        return value

    @field_validator(
        "heart_rate", "pulse", "spo2", "etco2", "airway_resp_rate", mode="before"
    )
    @classmethod
    def falsy_as_missing(cls, value: object) -> object:
        if value in (None, "", 0):
            return None
        if isinstance(value, str):
            try:
                value = float(value)
            except ValueError:
                return None
        if isinstance(value, float):
            # inf and nan are unreadable captures, not measurements
            if not math.isfinite(value):
                return None
            return round(value) or None
        return value

    @field_validator("arterial_bp", "pulmonary_ap", mode="before")
    @classmethod
    def blank_pressure_as_missing(cls, value: object) -> object:
        if value is None:
            return None
        text = str(value).strip()
        return text or None

    @model_validator(mode="after")
    def drop_out_of_domain(self) -> "VitalsReadingCreate":
        for name in ("heart_rate", "pulse"):
            value = getattr(self, name)
            if value is not None and not 0 < value < 300:
                setattr(self, name, None)
        if self.spo2 is not None and not 0 < self.spo2 <= 100:
            self.spo2 = None
        return self

    def to_reading(self) -> VitalsReading:
        return VitalsReading(
            subject_id=self.subject_id,
            timestamp=self.timestamp or datetime.now(timezone.utc),
            source=self.source,
            heart_rate=self.heart_rate,
            pulse=self.pulse,
            spo2=self.spo2,
            arterial_bp=self.arterial_bp,
            pulmonary_ap=self.pulmonary_ap,
            etco2=self.etco2,
            airway_resp_rate=self.airway_resp_rate,
        )


class VitalUpdateEvent(CamelModel):
    """Real-time push for a freshly stored reading."""

    event: str = "vital-update"
    reading: VitalsReading


class VitalsIngestResponse(CamelModel):
    message: str
    count: int
    alerts: int = 0
