from typing import List

from fastapi import APIRouter, Depends, HTTPException, status

from app.modules.alerts.service import alert_store, rate_limiter
from app.modules.patients.models import Patient
from app.modules.patients.schemas import PatientCreate, PatientResponse
from app.modules.patients.service import PatientService

router = APIRouter()


def _to_response(patient: Patient) -> PatientResponse:
    return PatientResponse.model_validate(patient.model_dump())


@router.get("/", response_model=List[PatientResponse], summary="List patients")
async def list_patients(
    service: PatientService = Depends(PatientService),
) -> List[PatientResponse]:
    return [_to_response(patient) for patient in await service.list_patients()]


@router.get("/{subject_id}", response_model=PatientResponse, summary="Get a patient")
async def read_patient(
    subject_id: str, service: PatientService = Depends(PatientService)
) -> PatientResponse:
    patient = await service.get(subject_id)
    if not patient:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Patient not found")
    return _to_response(patient)


@router.post(
    "/",
    response_model=PatientResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Admit a patient",
)
async def create_patient(
    patient_in: PatientCreate, service: PatientService = Depends(PatientService)
) -> PatientResponse:
    return _to_response(await service.create(patient_in))


@router.delete(
    "/{subject_id}", status_code=status.HTTP_204_NO_CONTENT, summary="Discharge a patient"
)
async def delete_patient(
    subject_id: str, service: PatientService = Depends(PatientService)
) -> None:
    if not await service.delete(subject_id):
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Patient not found")
    alert_store.forget(subject_id)
    rate_limiter.forget_subject(subject_id)
