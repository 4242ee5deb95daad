from datetime import timedelta

import structlog

from app.core.config import Settings, settings
from app.modules.alerts.config import load_ranges
from app.modules.alerts.dispatcher import NotificationDispatcher, SubjectDirectory
from app.modules.alerts.evaluator import AlertEvaluator
from app.modules.alerts.limiter import RateLimiter
from app.modules.alerts.manager import AlertConnectionManager
from app.modules.alerts.notifier import EmailNotifier
from app.modules.alerts.schemas import Alert
from app.modules.alerts.store import AlertStore
from app.modules.patients.service import PatientDirectory
from app.modules.vitals.schemas import VitalsReading

log = structlog.get_logger()


class AlertPipeline:
    """Evaluate a reading, refresh the subject's active alerts and deliver them."""

    def __init__(
        self,
        evaluator: AlertEvaluator,
        store: AlertStore,
        dispatcher: NotificationDispatcher,
    ) -> None:
        self.evaluator = evaluator
        self.store = store
        self.dispatcher = dispatcher

    async def process(self, reading: VitalsReading) -> list[Alert]:
        alerts = self.evaluator.evaluate(reading)
        if reading.is_empty():
            # an extraction miss says nothing about whether vitals returned to normal
            log.debug("empty reading, active alerts kept", subject_id=reading.subject_id)
            return alerts
        self.store.update(reading.subject_id, alerts)
        if alerts:
            await self.dispatcher.dispatch(reading, alerts)
        return alerts


def build_alert_pipeline(
    config: Settings,
    manager: AlertConnectionManager,
    store: AlertStore,
    limiter: RateLimiter,
    directory: SubjectDirectory | None = None,
) -> AlertPipeline:
    notifier = EmailNotifier.from_settings(config) if config.ALERTS_EMAIL_ENABLED else None
    dispatcher = NotificationDispatcher(
        broadcaster=manager,
        notifier=notifier,
        directory=directory,
        limiter=limiter,
        destination=config.ALERT_EMAIL_TO,
        broadcast_enabled=config.ALERTS_BROADCAST_ENABLED,
        email_enabled=config.ALERTS_EMAIL_ENABLED,
        email_timeout_seconds=config.ALERT_EMAIL_TIMEOUT_SECONDS,
    )
    return AlertPipeline(
        evaluator=AlertEvaluator(load_ranges(config.ALERT_RANGES_PATH)),
        store=store,
        dispatcher=dispatcher,
    )


alert_manager = AlertConnectionManager()
alert_store = AlertStore()
rate_limiter = RateLimiter(cooldown=timedelta(seconds=settings.ALERT_EMAIL_COOLDOWN_SECONDS))
alert_pipeline = build_alert_pipeline(
    settings,
    manager=alert_manager,
    store=alert_store,
    limiter=rate_limiter,
    directory=PatientDirectory(),
)
