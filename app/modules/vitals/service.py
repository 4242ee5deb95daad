from typing import List

import structlog
from pydantic import TypeAdapter

from app.core import cache
from app.modules.alerts.dispatcher import Broadcaster
from app.modules.alerts.manager import GLOBAL_TOPIC, subject_topic
from app.modules.alerts.service import AlertPipeline, alert_manager, alert_pipeline
from app.modules.vitals.models import VitalRecord
from app.modules.vitals.schemas import (
    VitalsReading,
    VitalsReadingCreate,
    VitalUpdateEvent,
    normalize_subject_id,
)

log = structlog.get_logger()

_latest_adapter: TypeAdapter[VitalsReading | None] = TypeAdapter(VitalsReading | None)


class VitalService:
    """Persistence and read layer for readings, plus the live push and alert hook."""

    def __init__(
        self,
        pipeline: AlertPipeline | None = None,
        broadcaster: Broadcaster | None = None,
    ) -> None:
        self._pipeline = pipeline or alert_pipeline
        self._broadcaster = broadcaster or alert_manager

    async def create(self, reading: VitalsReading) -> VitalRecord:
        record = VitalRecord.from_reading(reading)
        await record.insert()
        await cache.bump_version(reading.subject_id)
        return record

    async def ingest(self, readings_in: List[VitalsReadingCreate]) -> tuple[int, int]:
        """
        Store readings in arrival order. For each one:
        1. Persist it.
        2. Push a `vital-update` to the subject and global topics.
        3. Evaluate and deliver alerts.
        Returns (stored readings, alerts raised).
        """
        alert_count = 0
        for reading_in in readings_in:
            reading = reading_in.to_reading()
            await self.create(reading)
            await self._publish_update(reading)
            alerts = await self._pipeline.process(reading)
            alert_count += len(alerts)
        return len(readings_in), alert_count

    async def get_multi(
        self, subject_id: int | str | None = None, limit: int = 100, skip: int = 0
    ) -> List[VitalRecord]:
        """Readings newest-first, optionally for one subject."""
        if subject_id is None:
            query = VitalRecord.find_all()
        else:
            query = VitalRecord.find(VitalRecord.subject_id == normalize_subject_id(subject_id))
        return await query.sort("-timestamp").skip(skip).limit(limit).to_list()

    async def get_latest(self, subject_id: int | str) -> VitalsReading | None:
        subject = normalize_subject_id(subject_id)
        version = await cache.get_version(subject)

        async def _load() -> VitalsReading | None:
            record = (
                await VitalRecord.find(VitalRecord.subject_id == subject)
                .sort("-timestamp")
                .first_or_none()
            )
            return record.to_reading() if record else None

        return await cache.cached_json(
            f"readings:latest:{subject}:v{version}", _load, _latest_adapter
        )

    async def _publish_update(self, reading: VitalsReading) -> None:
        payload = VitalUpdateEvent(reading=reading).to_payload()
        for topic in (GLOBAL_TOPIC, subject_topic(reading.subject_id)):
            try:
                await self._broadcaster.broadcast(topic, payload)
            except Exception as exc:
                log.warning("vital update broadcast failed", topic=topic, error=str(exc))


def get_vital_service() -> VitalService:
    return VitalService()
