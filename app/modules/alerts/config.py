import json
from pathlib import Path

import structlog
from pydantic import ValidationError, model_validator

from app.core.config import Settings
from app.modules.alerts.models import VitalKind
from app.shared.schemas import CamelModel

log = structlog.get_logger()


class AlertConfigurationError(ValueError):
    """Raised at startup when alert thresholds or channels are misconfigured."""


class RangeSpec(CamelModel):
    normal_low: int
    normal_high: int
    critical_low: int
    critical_high: int
    # Only the low side is checked (SpO2 cannot physiologically exceed 100%).
    low_only: bool = False

    @model_validator(mode="after")
    def check_ordering(self) -> "RangeSpec":
        if not (
            self.critical_low <= self.normal_low <= self.normal_high <= self.critical_high
        ):
            raise ValueError(
                "bounds must satisfy criticalLow <= normalLow <= normalHigh <= criticalHigh"
            )
        return self


class RangeTable:
    """Read-only lookup of normal/critical bounds per vital kind."""

    def __init__(self, ranges: dict[VitalKind, RangeSpec]) -> None:
        self._ranges = dict(ranges)

    def get(self, kind: VitalKind) -> RangeSpec | None:
        return self._ranges.get(kind)

    def kinds(self) -> list[VitalKind]:
        return [kind for kind in VitalKind if kind in self._ranges]

    def merged(self, overrides: dict[VitalKind, RangeSpec]) -> "RangeTable":
        return RangeTable({**self._ranges, **overrides})

    def as_dict(self) -> dict[str, dict[str, int | bool]]:
        return {
            kind.value: self._ranges[kind].model_dump(by_alias=True) for kind in self.kinds()
        }


DEFAULT_RANGES = RangeTable(
    {
        VitalKind.HEART_RATE: RangeSpec(
            normal_low=60, normal_high=100, critical_low=50, critical_high=120
        ),
        VitalKind.PULSE: RangeSpec(
            normal_low=60, normal_high=100, critical_low=50, critical_high=120
        ),
        VitalKind.SPO2: RangeSpec(
            normal_low=90, normal_high=100, critical_low=85, critical_high=100, low_only=True
        ),
        VitalKind.ARTERIAL_SYSTOLIC: RangeSpec(
            normal_low=90, normal_high=120, critical_low=70, critical_high=180
        ),
        VitalKind.PULMONARY_DIASTOLIC: RangeSpec(
            normal_low=4, normal_high=12, critical_low=2, critical_high=20
        ),
        VitalKind.ETCO2: RangeSpec(
            normal_low=35, normal_high=45, critical_low=25, critical_high=55
        ),
        VitalKind.AIRWAY_RESP_RATE: RangeSpec(
            normal_low=12, normal_high=20, critical_low=8, critical_high=25
        ),
    }
)


def parse_range_overrides(payload: object) -> dict[VitalKind, RangeSpec]:
    if not isinstance(payload, dict):
        raise AlertConfigurationError("alert ranges must be a JSON object keyed by vital kind")
    overrides: dict[VitalKind, RangeSpec] = {}
    for key, value in payload.items():
        try:
            kind = VitalKind(key)
        except ValueError as exc:
            raise AlertConfigurationError(f"unknown vital kind in alert ranges: {key}") from exc
        try:
            overrides[kind] = RangeSpec.model_validate(value)
        except ValidationError as exc:
            raise AlertConfigurationError(f"invalid range for {key}: {exc}") from exc
    return overrides


def load_ranges(path: Path | str | None) -> RangeTable:
    """
    Build the range table, merging per-kind overrides from a JSON file over the defaults.

    A missing file falls back to the defaults; an unreadable or invalid file is fatal.
    """
    if not path:
        return DEFAULT_RANGES
    path = Path(path)
    try:
        payload = json.loads(path.read_text())
    except FileNotFoundError:
        log.info("alert ranges file not found, using defaults", path=str(path))
        return DEFAULT_RANGES
    except (OSError, json.JSONDecodeError) as exc:
        log.error("alert ranges load failed", path=str(path), error=str(exc))
        raise AlertConfigurationError(f"cannot read alert ranges from {path}") from exc

    overrides = parse_range_overrides(payload)
    log.info(
        "alert ranges loaded",
        path=str(path),
        overridden=[kind.value for kind in overrides],
    )
    return DEFAULT_RANGES.merged(overrides)


def validate_alert_settings(settings: Settings) -> None:
    if settings.ALERT_EMAIL_COOLDOWN_SECONDS < 0:
        raise AlertConfigurationError("ALERT_EMAIL_COOLDOWN_SECONDS must not be negative")
    if not settings.ALERTS_EMAIL_ENABLED:
        return
    if not settings.ALERT_EMAIL_TO:
        raise AlertConfigurationError("ALERT_EMAIL_TO is required when email alerts are enabled")
    if not settings.SMTP_HOST:
        raise AlertConfigurationError("SMTP_HOST is required when email alerts are enabled")
