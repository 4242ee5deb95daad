import pytest

from app.core.config import Settings
from app.modules.alerts.config import DEFAULT_RANGES
from app.modules.alerts.dispatcher import NotificationDispatcher
from app.modules.alerts.evaluator import AlertEvaluator
from app.modules.alerts.limiter import RateLimiter
from app.modules.alerts.manager import AlertConnectionManager
from app.modules.alerts.models import VitalKind
from app.modules.alerts.notifier import EmailNotifier
from app.modules.alerts.service import AlertPipeline, build_alert_pipeline
from app.modules.alerts.store import AlertStore
from tests.modules.alerts.helpers import (
    ABNORMAL_VALUES,
    FakeBroadcaster,
    FakeClock,
    FakeNotifier,
    make_reading,
)


@pytest.fixture
def broadcaster() -> FakeBroadcaster:
    return FakeBroadcaster()


@pytest.fixture
def notifier() -> FakeNotifier:
    return FakeNotifier()


@pytest.fixture
def pipeline(broadcaster: FakeBroadcaster, notifier: FakeNotifier) -> AlertPipeline:
    dispatcher = NotificationDispatcher(
        broadcaster=broadcaster,
        notifier=notifier,
        directory=None,
        limiter=RateLimiter(clock=FakeClock()),
        destination="ward@hospital.test",
    )
    return AlertPipeline(AlertEvaluator(DEFAULT_RANGES), AlertStore(), dispatcher)


@pytest.mark.asyncio
async def test_process_stores_and_dispatches(
    pipeline: AlertPipeline, broadcaster: FakeBroadcaster, notifier: FakeNotifier
) -> None:
    alerts = await pipeline.process(make_reading(1, **ABNORMAL_VALUES))

    assert len(alerts) == 7
    assert pipeline.store.get(1) == alerts
    assert len(broadcaster.sent) == 14
    assert len(notifier.messages) == 7


@pytest.mark.asyncio
async def test_recovery_clears_active_alerts(
    pipeline: AlertPipeline, broadcaster: FakeBroadcaster
) -> None:
    await pipeline.process(make_reading(1, heart_rate=130, spo2=80))
    sent_before = len(broadcaster.sent)

    alerts = await pipeline.process(make_reading(1, heart_rate=130, spo2=97))

    assert [alert.vital_kind for alert in alerts] == [VitalKind.HEART_RATE]
    assert [alert.vital_kind for alert in pipeline.store.get(1)] == [VitalKind.HEART_RATE]
    assert len(broadcaster.sent) == sent_before + 2

    assert await pipeline.process(make_reading(1, heart_rate=80)) == []
    assert pipeline.store.get(1) == []


@pytest.mark.asyncio
async def test_empty_reading_keeps_active_alerts(
    pipeline: AlertPipeline, broadcaster: FakeBroadcaster
) -> None:
    await pipeline.process(make_reading(1, heart_rate=130))
    sent_before = len(broadcaster.sent)

    assert await pipeline.process(make_reading(1)) == []

    assert [alert.vital_kind for alert in pipeline.store.get(1)] == [VitalKind.HEART_RATE]
    assert len(broadcaster.sent) == sent_before


def test_build_alert_pipeline_without_email() -> None:
    config = Settings(ALERTS_EMAIL_ENABLED=False, ALERT_RANGES_PATH=None)

    pipeline = build_alert_pipeline(
        config, AlertConnectionManager(), AlertStore(), RateLimiter()
    )

    assert pipeline.dispatcher.email_active is False
    assert pipeline.evaluator.ranges is DEFAULT_RANGES


def test_build_alert_pipeline_with_email() -> None:
    config = Settings(
        ALERTS_EMAIL_ENABLED=True,
        ALERT_EMAIL_TO="ward@hospital.test",
        SMTP_HOST="smtp.hospital.test",
    )

    pipeline = build_alert_pipeline(
        config, AlertConnectionManager(), AlertStore(), RateLimiter()
    )

    assert pipeline.dispatcher.email_active is True
    assert isinstance(pipeline.dispatcher._notifier, EmailNotifier)
