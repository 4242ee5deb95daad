from datetime import timedelta

from app.modules.alerts.config import DEFAULT_RANGES
from app.modules.alerts.evaluator import AlertEvaluator
from app.modules.alerts.models import VitalKind
from app.modules.alerts.store import AlertStore
from tests.modules.alerts.helpers import READING_TIME, make_reading

_evaluator = AlertEvaluator(DEFAULT_RANGES)


def _alerts(subject_id: int = 1, offset_seconds: int = 0, **values):
    reading = make_reading(
        subject_id, timestamp=READING_TIME + timedelta(seconds=offset_seconds), **values
    )
    return _evaluator.evaluate(reading)


def _kinds(alerts) -> list[VitalKind]:
    return [alert.vital_kind for alert in alerts]


def test_update_replaces_previous_set() -> None:
    store = AlertStore()
    store.update(1, _alerts(heart_rate=130, spo2=80))

    store.update(1, _alerts(offset_seconds=5, heart_rate=131))

    assert _kinds(store.get(1)) == [VitalKind.HEART_RATE]
    assert store.get(1)[0].value == 131


def test_empty_update_clears_subject() -> None:
    store = AlertStore()
    store.update(1, _alerts(heart_rate=130))

    store.update(1, [])

    assert store.get(1) == []
    assert store.snapshot() == {}


def test_get_orders_by_vital_kind() -> None:
    store = AlertStore()
    alerts = _alerts(heart_rate=130, etco2=60, spo2=80)

    store.update(1, list(reversed(alerts)))

    assert _kinds(store.get(1)) == [VitalKind.HEART_RATE, VitalKind.SPO2, VitalKind.ETCO2]


def test_subjects_are_isolated_and_ids_normalized() -> None:
    store = AlertStore()
    store.update(1, _alerts(1, heart_rate=130))
    store.update(2, _alerts(2, spo2=80))

    assert _kinds(store.get("1")) == [VitalKind.HEART_RATE]
    assert _kinds(store.get(2)) == [VitalKind.SPO2]
    assert sorted(store.snapshot()) == ["1", "2"]


def test_clear_returns_and_hides_alerts() -> None:
    store = AlertStore()
    alerts = _alerts(heart_rate=130, spo2=80)
    store.update(1, alerts)

    cleared = store.clear(1)

    assert _kinds(cleared) == [VitalKind.HEART_RATE, VitalKind.SPO2]
    assert store.get(1) == []
    # the same evaluation arriving again does not resurrect dismissed alerts
    store.update(1, alerts)
    assert store.get(1) == []


def test_newer_reading_recreates_cleared_kind() -> None:
    store = AlertStore()
    store.update(1, _alerts(heart_rate=130))
    store.clear(1)

    store.update(1, _alerts(offset_seconds=10, heart_rate=130))

    assert _kinds(store.get(1)) == [VitalKind.HEART_RATE]


def test_dismiss_single_alert() -> None:
    store = AlertStore()
    alerts = _alerts(heart_rate=130, spo2=80)
    store.update(1, alerts)
    hr_alert = alerts[0]

    assert store.dismiss(1, hr_alert.id)
    assert not store.dismiss(1, hr_alert.id)
    assert _kinds(store.get(1)) == [VitalKind.SPO2]

    store.update(1, alerts)
    assert _kinds(store.get(1)) == [VitalKind.SPO2]


def test_dismiss_unknown_alert() -> None:
    store = AlertStore()

    assert not store.dismiss(1, "missing")


def test_forget_and_reset() -> None:
    store = AlertStore()
    alerts = _alerts(heart_rate=130)
    store.update(1, alerts)
    store.clear(1)

    store.forget(1)
    store.update(1, alerts)
    assert _kinds(store.get(1)) == [VitalKind.HEART_RATE]

    store.reset()
    assert store.snapshot() == {}
