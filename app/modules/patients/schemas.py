from datetime import date, datetime

from pydantic import Field

from app.modules.patients.models import Gender
from app.shared.schemas import CamelModel


class PatientCreate(CamelModel):
    patient_name: str = Field(..., min_length=1, max_length=100)
    age: int | None = Field(default=None, ge=0, le=150)
    gender: Gender | None = None
    diagnosis: str | None = Field(default=None, max_length=200)
    admission_date: date | None = None
    bed_id: int | None = None


class PatientResponse(CamelModel):
    patient_id: int
    patient_name: str
    age: int | None = None
    gender: Gender | None = None
    diagnosis: str | None = None
    admission_date: date | None = None
    bed_id: int | None = None
    created_at: datetime | None = None
