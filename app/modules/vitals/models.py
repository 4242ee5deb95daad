from datetime import datetime, timezone

from beanie import Document
from pydantic import Field
from pymongo import IndexModel

from app.modules.vitals.schemas import VitalsReading


class VitalRecord(Document):
    """Persisted monitor reading for one subject."""

    subject_id: int | str
    timestamp: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    source: str = "manual"
    heart_rate: int | None = None
    pulse: int | None = None
    spo2: int | None = None
    arterial_bp: str | None = None
    pulmonary_ap: str | None = None
    etco2: int | None = None
    airway_resp_rate: int | None = None

    class Settings:
        name = "vitals"
        indexes = [
            IndexModel([("subject_id", 1), ("timestamp", -1)]),
            IndexModel([("timestamp", -1)]),
        ]

    @classmethod
    def from_reading(cls, reading: VitalsReading) -> "VitalRecord":
        return cls(**reading.model_dump(exclude={"source"}), source=reading.source or "manual")

    def to_reading(self) -> VitalsReading:
        return VitalsReading.model_validate(self.model_dump(exclude={"id", "revision_id"}))
