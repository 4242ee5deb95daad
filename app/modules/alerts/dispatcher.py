from __future__ import annotations

import asyncio
from collections import Counter
from typing import Any, Protocol

import structlog

from app.modules.alerts.limiter import RateLimiter
from app.modules.alerts.manager import GLOBAL_TOPIC, subject_topic
from app.modules.alerts.models import DispatchReport, VitalKind
from app.modules.alerts.schemas import Alert, AlertEvent
from app.modules.vitals.schemas import VitalsReading

log = structlog.get_logger()

VITAL_LABELS: dict[VitalKind, str] = {
    VitalKind.HEART_RATE: "Heart rate",
    VitalKind.PULSE: "Pulse",
    VitalKind.SPO2: "SpO2",
    VitalKind.ARTERIAL_SYSTOLIC: "Arterial systolic pressure",
    VitalKind.PULMONARY_DIASTOLIC: "Pulmonary diastolic pressure",
    VitalKind.ETCO2: "EtCO2",
    VitalKind.AIRWAY_RESP_RATE: "Airway respiratory rate",
}

VITAL_UNITS: dict[VitalKind, str] = {
    VitalKind.HEART_RATE: "bpm",
    VitalKind.PULSE: "bpm",
    VitalKind.SPO2: "%",
    VitalKind.ARTERIAL_SYSTOLIC: "mmHg",
    VitalKind.PULMONARY_DIASTOLIC: "mmHg",
    VitalKind.ETCO2: "mmHg",
    VitalKind.AIRWAY_RESP_RATE: "/min",
}


class Broadcaster(Protocol):
    async def broadcast(self, topic: str, payload: dict[str, Any]) -> int: ...


class Notifier(Protocol):
    async def send(self, destination: str, subject: str, body: str) -> bool: ...


class SubjectDirectory(Protocol):
    async def lookup_name(self, subject_id: int | str) -> str | None: ...


def placeholder_name(subject_id: int | str) -> str:
    return f"Patient {subject_id}"


def compose_alert_email(alert: Alert, subject_name: str) -> tuple[str, str]:
    label = VITAL_LABELS.get(alert.vital_kind, alert.vital_kind.value)
    unit = VITAL_UNITS.get(alert.vital_kind, "")
    direction = alert.direction.value.upper()
    subject = (
        f"[{alert.severity.value.upper()}] {subject_name}: {label} {alert.direction.value}"
    )
    body = "\n".join(
        [
            "Vital sign alert",
            "",
            f"Patient:   {subject_name} (ID: {alert.subject_id})",
            f"Vital:     {label}",
            f"Value:     {alert.value} {unit}".rstrip(),
            f"Status:    {direction} ({alert.severity.value})",
            f"Recorded:  {alert.timestamp.isoformat()}",
            f"Source:    {alert.source or 'unknown'}",
            "",
            "Further alerts for this vital are held back during the cooldown window.",
        ]
    )
    return subject, body


class NotificationDispatcher:
    """Fan evaluated alerts out to live viewers and, rate limited, to email."""

    def __init__(
        self,
        broadcaster: Broadcaster,
        notifier: Notifier | None,
        directory: SubjectDirectory | None,
        limiter: RateLimiter,
        destination: str | None = None,
        broadcast_enabled: bool = True,
        email_enabled: bool = True,
        email_timeout_seconds: float = 10.0,
    ) -> None:
        self._broadcaster = broadcaster
        self._notifier = notifier
        self._directory = directory
        self._limiter = limiter
        self._destination = destination
        self._broadcast_enabled = broadcast_enabled
        self._email_enabled = email_enabled
        self._email_timeout_seconds = email_timeout_seconds
        self._key_locks: dict[tuple[str, VitalKind], asyncio.Lock] = {}
        self._key_users: Counter[tuple[str, VitalKind]] = Counter()

    @property
    def email_active(self) -> bool:
        return bool(self._email_enabled and self._notifier and self._destination)

    async def dispatch(self, reading: VitalsReading, alerts: list[Alert]) -> DispatchReport:
        """
        Deliver alerts for one reading. Broadcast goes first and is never throttled;
        email follows, one independent attempt per alert. Failures are logged, not raised.
        """
        report = DispatchReport()
        if not alerts:
            return report

        if self._broadcast_enabled:
            await self._broadcast(alerts, report)

        if self.email_active:
            name = await self._resolve_name(reading.subject_id)
            outcomes = await asyncio.gather(
                *(self._email(alert, name) for alert in alerts), return_exceptions=True
            )
            for alert, outcome in zip(alerts, outcomes):
                if isinstance(outcome, BaseException):
                    log.error(
                        "alert email crashed",
                        alert_id=alert.id,
                        error=repr(outcome),
                    )
                    report.email_failed += 1
                elif outcome == "sent":
                    report.emailed += 1
                elif outcome == "suppressed":
                    report.suppressed += 1
                else:
                    report.email_failed += 1

        log.info(
            "alerts dispatched",
            subject_id=reading.subject_id,
            alerts=len(alerts),
            broadcast=report.broadcast,
            emailed=report.emailed,
            suppressed=report.suppressed,
            email_failed=report.email_failed,
        )
        return report

    async def _broadcast(self, alerts: list[Alert], report: DispatchReport) -> None:
        for alert in alerts:
            payload = AlertEvent(alert=alert).to_payload()
            for topic in (subject_topic(alert.subject_id), GLOBAL_TOPIC):
                try:
                    await self._broadcaster.broadcast(topic, payload)
                except Exception as exc:
                    report.broadcast_failed += 1
                    log.warning(
                        "alert broadcast failed",
                        topic=topic,
                        alert_id=alert.id,
                        error=str(exc),
                    )
            report.broadcast += 1

    async def _resolve_name(self, subject_id: int | str) -> str:
        if self._directory is None:
            return placeholder_name(subject_id)
        try:
            name = await self._directory.lookup_name(subject_id)
        except Exception as exc:
            log.warning("subject name lookup failed", subject_id=subject_id, error=str(exc))
            return placeholder_name(subject_id)
        return name or placeholder_name(subject_id)

    async def _email(self, alert: Alert, subject_name: str) -> str:
        key = (str(alert.subject_id), alert.vital_kind)
        lock = self._key_locks.setdefault(key, asyncio.Lock())
        self._key_users[key] += 1
        try:
            # check-and-record must not interleave with another reading for the same key
            async with lock:
                return await self._deliver(alert, subject_name)
        finally:
            self._key_users[key] -= 1
            if not self._key_users[key]:
                del self._key_users[key]
                del self._key_locks[key]

    async def _deliver(self, alert: Alert, subject_name: str) -> str:
        if not self._limiter.should_deliver(alert.subject_id, alert.vital_kind):
            log.debug(
                "alert email suppressed by cooldown",
                alert_id=alert.id,
                vital_kind=alert.vital_kind.value,
            )
            return "suppressed"

        subject, body = compose_alert_email(alert, subject_name)
        try:
            delivered = await asyncio.wait_for(
                self._notifier.send(self._destination, subject, body),
                timeout=self._email_timeout_seconds,
            )
        except asyncio.TimeoutError:
            log.warning(
                "alert email timed out",
                alert_id=alert.id,
                timeout=self._email_timeout_seconds,
            )
            return "failed"
        except Exception as exc:
            log.warning("alert email failed", alert_id=alert.id, error=str(exc))
            return "failed"

        if not delivered:
            log.warning("alert email rejected", alert_id=alert.id)
            return "failed"

        self._limiter.record_delivery(alert.subject_id, alert.vital_kind)
        log.info(
            "alert email sent",
            alert_id=alert.id,
            vital_kind=alert.vital_kind.value,
            severity=alert.severity.value,
        )
        return "sent"
