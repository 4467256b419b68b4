from __future__ import annotations

from datetime import date, datetime, time, timedelta

import pytest
from fastapi.testclient import TestClient

from rehapp.database.session import init_db, make_engine, make_session_factory
from rehapp.main import create_app
from rehapp.schemas.exercise import VideoItem
from rehapp.services.activity_store import SqlActivityLogStore
from rehapp.services.video_catalog import StaticVideoCatalog


class FakeClock:
    """Monotonic and wall clock that only move when the test says so."""

    def __init__(self, start: datetime):
        self.start = start
        self.offset = 0.0

    def advance(self, seconds: float) -> None:
        self.offset += seconds

    def monotonic(self) -> float:
        return 1000.0 + self.offset

    def now(self) -> datetime:
        return self.start + timedelta(seconds=self.offset)

    def today(self) -> date:
        return self.now().date()


class ManualHandle:
    def __init__(self, interval_s, callback):
        self.interval_s = interval_s
        self.callback = callback
        self.active = True

    def cancel(self) -> None:
        self.active = False


class ManualScheduler:
    def __init__(self):
        self.handles: list[ManualHandle] = []

    def call_every(self, interval_s, callback) -> ManualHandle:
        h = ManualHandle(interval_s, callback)
        self.handles.append(h)
        return h

    def fire(self) -> None:
        for h in list(self.handles):
            if h.active:
                h.callback()

    @property
    def active_handles(self) -> list[ManualHandle]:
        return [h for h in self.handles if h.active]


@pytest.fixture
def clock():
    # Midday today, so seeded "N days ago" rows fall on the expected local days.
    return FakeClock(datetime.combine(date.today(), time(12, 0)))


@pytest.fixture
def scheduler():
    return ManualScheduler()


@pytest.fixture
def db_engine(tmp_path):
    engine = make_engine(f"sqlite:///{tmp_path / 'rehapp_test.db'}")
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(db_engine):
    factory = make_session_factory(db_engine)
    init_db(db_engine, factory, seed=True)
    return factory


@pytest.fixture
def store(session_factory):
    return SqlActivityLogStore(session_factory)


@pytest.fixture
def catalog():
    return StaticVideoCatalog(
        [
            VideoItem(id="v1", numero_orden=1, titulo="Elevación de talones", duracion_estimada_minutos=5),
            VideoItem(id="v2", numero_orden=2, titulo="Sentarse y pararse", duracion_estimada_minutos=6),
            VideoItem(id="v3", numero_orden=3, titulo="Marcha en el lugar", duracion_estimada_minutos=4),
        ]
    )


@pytest.fixture
def client(db_engine, clock, scheduler):
    app = create_app(bind=db_engine, clock=clock, scheduler=scheduler, seed=True, configure_logging=False)
    with TestClient(app) as c:
        yield c
