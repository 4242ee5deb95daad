"""HTTP endpoints for recording and retrieving monitor readings."""

from typing import List

from fastapi import APIRouter, Body, Depends, HTTPException, Query, status
from pydantic import ValidationError

from app.modules.vitals.models import VitalRecord
from app.modules.vitals.schemas import VitalsIngestResponse, VitalsReading, VitalsReadingCreate
from app.modules.vitals.service import VitalService, get_vital_service

router = APIRouter()


def _parse_readings(payload: object) -> List[VitalsReadingCreate]:
    items = payload if isinstance(payload, list) else [payload]
    if not items:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="No data provided")
    try:
        return [VitalsReadingCreate.model_validate(item) for item in items]
    except ValidationError as exc:
        raise HTTPException(
            status_code=422,
            detail=exc.errors(include_url=False, include_context=False),
        ) from exc


@router.post(
    "/",
    response_model=VitalsIngestResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Record one or more monitor readings",
)
async def create_vitals(
    payload: dict | list = Body(
        ...,
        examples=[
            {
                "patient_id": 1,
                "hr": 45,
                "pulse": 45,
                "spo2": 85,
                "abp": "85/60",
                "pap": "15/13",
                "etco2": 50,
                "awrr": 25,
                "source": "test",
            }
        ],
    ),
    service: VitalService = Depends(get_vital_service),
) -> VitalsIngestResponse:
    """Accept a single reading or a list; each is stored, pushed live and checked for alerts."""
    readings = _parse_readings(payload)
    count, alerts = await service.ingest(readings)
    return VitalsIngestResponse(message="Vitals saved successfully", count=count, alerts=alerts)


@router.get("/", response_model=List[VitalRecord], summary="Latest readings across patients")
async def read_recent_vitals(
    limit: int = Query(100, ge=1, le=1000),
    service: VitalService = Depends(get_vital_service),
) -> List[VitalRecord]:
    return await service.get_multi(limit=limit)


@router.get(
    "/{subject_id}/latest",
    response_model=VitalsReading,
    summary="Most recent reading for a patient",
)
async def read_latest_vital(
    subject_id: str, service: VitalService = Depends(get_vital_service)
) -> VitalsReading:
    reading = await service.get_latest(subject_id)
    if not reading:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="No readings found")
    return reading


@router.get("/{subject_id}", response_model=List[VitalRecord], summary="Readings for a patient")
async def read_subject_vitals(
    subject_id: str,
    limit: int = Query(100, ge=1, le=1000),
    skip: int = Query(0, ge=0),
    service: VitalService = Depends(get_vital_service),
) -> List[VitalRecord]:
    return await service.get_multi(subject_id=subject_id, limit=limit, skip=skip)
