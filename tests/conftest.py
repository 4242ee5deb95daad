from datetime import datetime, timezone
from types import SimpleNamespace
from typing import Any, AsyncGenerator

import pytest
from beanie import PydanticObjectId
from httpx import ASGITransport, AsyncClient

from app.core import cache
from app.main import app
from app.modules.alerts.service import alert_manager, alert_store, rate_limiter
from app.modules.patients.models import Patient
from app.modules.vitals.models import VitalRecord


class _FieldProxy:
    """Minimal stand-in for Beanie field proxies used in query expressions."""

    def __init__(self, name: str) -> None:
        self.name = name

    def __eq__(self, other: object) -> tuple[str, str, object]:  # type: ignore[override]
        return ("eq", self.name, other)

    def __ge__(self, other: object) -> tuple[str, str, object]:  # type: ignore[override]
        return ("ge", self.name, other)

    def __le__(self, other: object) -> tuple[str, str, object]:  # type: ignore[override]
        return ("le", self.name, other)

    def __gt__(self, other: object) -> tuple[str, str, object]:  # type: ignore[override]
        return ("gt", self.name, other)

    def __lt__(self, other: object) -> tuple[str, str, object]:  # type: ignore[override]
        return ("lt", self.name, other)


def _install_field_proxies() -> None:
    # These proxies prevent AttributeErrors when code builds expressions like
    # VitalRecord.subject_id == 1 without an initialized Beanie
    VitalRecord.subject_id = _FieldProxy("subject_id")  # type: ignore[attr-defined]
    VitalRecord.timestamp = _FieldProxy("timestamp")  # type: ignore[attr-defined]
    Patient.patient_id = _FieldProxy("patient_id")  # type: ignore[attr-defined]
    Patient.patient_name = _FieldProxy("patient_name")  # type: ignore[attr-defined]
    _dummy_settings = SimpleNamespace(pymongo_collection=None, use_state_management=False)
    # Prevent Beanie from requiring real collection initialization
    if getattr(VitalRecord, "_document_settings", None) is None:
        VitalRecord._document_settings = _dummy_settings  # type: ignore[attr-defined]
    if getattr(Patient, "_document_settings", None) is None:
        Patient._document_settings = _dummy_settings  # type: ignore[attr-defined]


def _extract_filters(expr: object) -> list[tuple[str, str, object]]:
    if isinstance(expr, tuple) and len(expr) == 3:
        op, field, value = expr
        if op in {"eq", "ge", "le", "gt", "lt"}:
            return [(op, field, value)]
    return []


def _filters_from_exprs(exprs: tuple[object, ...]) -> list[tuple[str, str, object]]:
    filters: list[tuple[str, str, object]] = []
    for expr in exprs:
        filters.extend(_extract_filters(expr))
    return filters


class _FakeQuery:
    """Chainable query over an in-memory list of documents."""

    def __init__(
        self, items: list[Any], filters: list[tuple[str, str, object]] | None = None
    ) -> None:
        self._items = items
        self.filters = filters or []
        self._sort_field: str | None = None
        self._descending = False
        self._skip = 0
        self._limit: int | None = None

    def find(self, *exprs: object) -> "_FakeQuery":
        return _FakeQuery(self._items, [*self.filters, *_filters_from_exprs(exprs)])

    def sort(self, sort_spec: str) -> "_FakeQuery":
        self._descending = sort_spec.startswith("-")
        self._sort_field = sort_spec.lstrip("-+")
        return self

    def skip(self, count: int) -> "_FakeQuery":
        self._skip = count
        return self

    def limit(self, count: int) -> "_FakeQuery":
        self._limit = count
        return self

    def _matches(self, document: Any) -> bool:
        for op, field, value in self.filters:
            attr = getattr(document, field, None)
            if op == "eq":
                if attr != value:
                    return False
                continue
            if attr is None:
                return False
            if op == "ge" and not (attr >= value):
                return False
            if op == "le" and not (attr <= value):
                return False
            if op == "gt" and not (attr > value):
                return False
            if op == "lt" and not (attr < value):
                return False
        return True

    async def to_list(self) -> list[Any]:
        items = [document for document in self._items if self._matches(document)]
        if self._sort_field:
            items.sort(
                key=lambda document: getattr(document, self._sort_field),
                reverse=self._descending,
            )
        if self._skip:
            items = items[self._skip :]
        if self._limit is not None:
            items = items[: self._limit]
        return items

    async def first_or_none(self) -> Any | None:
        items = await self.limit(1).to_list()
        return items[0] if items else None

    async def delete(self) -> None:
        matched = [document for document in self._items if self._matches(document)]
        self._items[:] = [
            document
            for document in self._items
            if not any(document is other for other in matched)
        ]


def _patch_document_model(
    monkeypatch: pytest.MonkeyPatch, model: type, items: list[Any]
) -> None:
    async def _insert(self: Any) -> Any:
        if getattr(self, "id", None) is None:
            self.id = PydanticObjectId()
        items.append(self)
        return self

    async def _delete(self: Any) -> None:
        for index, document in enumerate(items):
            if document is self:
                del items[index]
                return

    def _find(*exprs: object) -> _FakeQuery:
        return _FakeQuery(items, _filters_from_exprs(exprs))

    def _find_all() -> _FakeQuery:
        return _FakeQuery(items)

    async def _find_one(*exprs: object) -> Any | None:
        return await _find(*exprs).first_or_none()

    monkeypatch.setattr(model, "insert", _insert, raising=False)
    monkeypatch.setattr(model, "delete", _delete, raising=False)
    monkeypatch.setattr(model, "find", staticmethod(_find), raising=False)
    monkeypatch.setattr(model, "find_all", staticmethod(_find_all), raising=False)
    monkeypatch.setattr(model, "find_one", staticmethod(_find_one), raising=False)


@pytest.fixture
def anyio_backend() -> str:
    return "asyncio"


@pytest.fixture
async def db(monkeypatch: pytest.MonkeyPatch) -> AsyncGenerator[dict[str, Any], None]:
    """
    In-memory replacement for the Mongo collections.

    Yields the backing lists so tests can seed or inspect stored documents directly.
    """
    store: dict[str, Any] = {
        "vitals": [],
        "patients": [],
    }

    _install_field_proxies()
    _patch_document_model(monkeypatch, VitalRecord, store["vitals"])
    _patch_document_model(monkeypatch, Patient, store["patients"])

    # Stub init_db to avoid real connection attempts if invoked elsewhere
    async def _init_db_stub() -> object:
        return SimpleNamespace(close=lambda: None)

    monkeypatch.setattr("app.core.db.init_db", _init_db_stub, raising=False)
    monkeypatch.setattr(cache, "_redis_client", None, raising=False)

    yield store

    store["vitals"].clear()
    store["patients"].clear()


@pytest.fixture
async def client(db: dict[str, Any]) -> AsyncGenerator[AsyncClient, None]:
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as c:
        yield c


@pytest.fixture
def make_patient(db: dict[str, Any]) -> Any:
    async def _make_patient(patient_id: int = 1, **kwargs: Any) -> Patient:
        data = {"patient_id": patient_id, "patient_name": f"Patient Name {patient_id}"}
        data.update(kwargs)
        patient = Patient(**data)
        await patient.insert()
        return patient

    return _make_patient


@pytest.fixture
def make_record(db: dict[str, Any]) -> Any:
    async def _make_record(subject_id: int | str = 1, **kwargs: Any) -> VitalRecord:
        data: dict[str, Any] = {
            "subject_id": subject_id,
            "timestamp": datetime.now(timezone.utc),
        }
        data.update(kwargs)
        record = VitalRecord(**data)
        await record.insert()
        return record

    return _make_record


@pytest.fixture(autouse=True)
def reset_alert_state() -> None:
    """
    Module-level alert state is shared by every request; start each test clean.
    """
    alert_store.reset()
    rate_limiter.reset()
    alert_manager.reset()
    yield
    alert_store.reset()
    rate_limiter.reset()
    alert_manager.reset()
