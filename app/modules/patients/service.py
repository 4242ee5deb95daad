from typing import List

from app.core import cache
from app.modules.patients.models import Patient
from app.modules.patients.schemas import PatientCreate
from app.modules.vitals.models import VitalRecord


def _as_patient_id(subject_id: int | str) -> int | None:
    if isinstance(subject_id, int):
        return subject_id
    text = str(subject_id).strip()
    return int(text) if text.isdigit() else None


class PatientService:
    """Minimal patient records backing the subject directory."""

    async def list_patients(self) -> List[Patient]:
        return await Patient.find_all().sort("patient_name").to_list()

    async def get(self, subject_id: int | str) -> Patient | None:
        patient_id = _as_patient_id(subject_id)
        if patient_id is None:
            return None
        return await Patient.find_one(Patient.patient_id == patient_id)

    async def create(self, patient_in: PatientCreate) -> Patient:
        last = await Patient.find_all().sort("-patient_id").first_or_none()
        patient = Patient(
            patient_id=(last.patient_id + 1) if last else 1,
            **patient_in.model_dump(),
        )
        await patient.insert()
        return patient

    async def delete(self, subject_id: int | str) -> bool:
        """Discharge a patient together with their stored readings."""
        patient = await self.get(subject_id)
        if not patient:
            return False
        await VitalRecord.find(VitalRecord.subject_id == patient.patient_id).delete()
        await cache.bump_version(patient.patient_id)
        await patient.delete()
        return True


class PatientDirectory:
    """Resolve display names for notification text."""

    def __init__(self, service: PatientService | None = None) -> None:
        self._service = service or PatientService()

    async def lookup_name(self, subject_id: int | str) -> str | None:
        patient = await self._service.get(subject_id)
        return patient.patient_name if patient else None
