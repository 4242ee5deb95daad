"""Fakes and builders shared by the alert tests."""

import asyncio
from datetime import datetime, timedelta, timezone
from typing import Any

from app.modules.vitals.schemas import VitalsReading

READING_TIME = datetime(2024, 5, 1, 8, 30, tzinfo=timezone.utc)

# Every monitored field out of range: seven alerts in evaluation order.
ABNORMAL_VALUES: dict[str, Any] = {
    "heart_rate": 45,
    "pulse": 45,
    "spo2": 85,
    "arterial_bp": "85/60",
    "pulmonary_ap": "15/13",
    "etco2": 50,
    "airway_resp_rate": 25,
}


def make_reading(subject_id: int | str = 1, **values: Any) -> VitalsReading:
    data: dict[str, Any] = {"subject_id": subject_id, "timestamp": READING_TIME, "source": "test"}
    data.update(values)
    return VitalsReading(**data)


class FakeClock:
    def __init__(self, start: datetime = READING_TIME) -> None:
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs: float) -> None:
        self.now += timedelta(**kwargs)


class FakeBroadcaster:
    def __init__(self, fail: bool = False) -> None:
        self.fail = fail
        self.sent: list[tuple[str, dict[str, Any]]] = []

    async def broadcast(self, topic: str, payload: dict[str, Any]) -> int:
        if self.fail:
            raise RuntimeError("transport down")
        self.sent.append((topic, payload))
        return 1

    def topics(self) -> list[str]:
        return [topic for topic, _ in self.sent]


class FakeNotifier:
    def __init__(self, fail: bool = False, accept: bool = True, delay: float = 0) -> None:
        self.fail = fail
        self.accept = accept
        self.delay = delay
        self.messages: list[tuple[str, str, str]] = []

    async def send(self, destination: str, subject: str, body: str) -> bool:
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.fail:
            raise ConnectionError("smtp unreachable")
        self.messages.append((destination, subject, body))
        return self.accept


class FakeDirectory:
    def __init__(self, names: dict[int | str, str] | None = None, fail: bool = False) -> None:
        self.names = names or {}
        self.fail = fail
        self.lookups: list[int | str] = []

    async def lookup_name(self, subject_id: int | str) -> str | None:
        self.lookups.append(subject_id)
        if self.fail:
            raise RuntimeError("directory offline")
        return self.names.get(subject_id)
