from datetime import date, datetime, timezone
from enum import Enum

from beanie import Document, Insert, Replace, Save, Update, before_event
from pydantic import Field
from pymongo import IndexModel


class Gender(str, Enum):
    MALE = "Male"
    FEMALE = "Female"
    OTHER = "Other"


class Patient(Document):
    """Monitored subject; `patient_id` is the identifier readings and alerts refer to."""

    patient_id: int
    patient_name: str = Field(..., min_length=1, max_length=100)
    age: int | None = Field(default=None, ge=0, le=150)
    gender: Gender | None = None
    diagnosis: str | None = Field(default=None, max_length=200)
    admission_date: date | None = None
    bed_id: int | None = None
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    updated_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    class Settings:
        name = "patients"
        indexes = [
            IndexModel([("patient_id", 1)], unique=True),
            IndexModel([("patient_name", 1)]),
        ]

    @before_event(Insert, Replace, Save, Update)
    def _touch(self) -> None:
        self.updated_at = datetime.now(timezone.utc)
