import time
from datetime import date, datetime, timezone

import pytest

from rehapp.core.errors import PersistenceFailure, ValidationError
from rehapp.schemas.activity import ExerciseSessionLog, WalkSession


def _log(**kw):
    base = dict(
        patient_id="p1",
        video_id="v1",
        timestamp=datetime(2026, 3, 10, 9, 30),
        series_completadas=2,
        repeticiones_completadas=10,
        dificultad_percibida=4,
        dolor_durante_ejercicio=2,
    )
    base.update(kw)
    return ExerciseSessionLog(**base)


def test_exercise_log_same_day_overwrites(store):
    store.append_or_update_exercise_log(_log())
    store.append_or_update_exercise_log(_log(timestamp=datetime(2026, 3, 10, 18, 0), dificultad_percibida=7))

    logs = store.list_exercise_logs("p1")
    assert len(logs) == 1
    assert logs[0].dificultad_percibida == 7
    assert logs[0].timestamp == datetime(2026, 3, 10, 18, 0)


def test_exercise_log_other_day_is_new_row(store):
    store.append_or_update_exercise_log(_log())
    store.append_or_update_exercise_log(_log(timestamp=datetime(2026, 3, 11, 9, 0)))
    logs = store.list_exercise_logs("p1")
    assert [l.fecha_realizacion for l in logs] == [date(2026, 3, 11), date(2026, 3, 10)]


def test_exercise_log_day_derived_from_timestamp(store):
    saved = store.append_or_update_exercise_log(_log(timestamp=datetime(2026, 3, 10, 23, 59)))
    assert saved.fecha_realizacion == date(2026, 3, 10)


def test_explicit_day_wins_over_timestamp(store):
    saved = store.append_or_update_exercise_log(_log(fecha_realizacion=date(2026, 3, 9)))
    assert saved.fecha_realizacion == date(2026, 3, 9)


@pytest.mark.parametrize(
    "bad",
    [
        dict(dolor_durante_ejercicio=11),
        dict(dolor_durante_ejercicio=-1),
        dict(dificultad_percibida=0),
        dict(series_completadas=-2),
        dict(video_id=""),
    ],
)
def test_exercise_log_rejected_before_write(store, bad):
    with pytest.raises(ValidationError):
        store.append_or_update_exercise_log(_log(**bad))
    assert store.list_exercise_logs("p1") == []


def test_walk_session_upsert_by_id(store):
    s = WalkSession(id="w-1", patient_id="p1", date=datetime(2026, 3, 10, 8, 0), duration_seconds=60, steps=72)
    store.append_or_update_walk_session(s)
    store.append_or_update_walk_session(s.model_copy(update={"duration_seconds": 300, "pain_level": 9, "stopped_due_to_pain": True}))

    sessions = store.list_walk_sessions("p1")
    assert len(sessions) == 1
    assert sessions[0].duration_seconds == 300
    assert sessions[0].stopped_due_to_pain is True


def test_walk_session_pain_not_clamped(store):
    s = WalkSession(id="w-2", patient_id="p1", date=datetime(2026, 3, 10, 8, 0), pain_level=12)
    with pytest.raises(ValidationError):
        store.append_or_update_walk_session(s)
    assert store.list_walk_sessions("p1") == []


def test_walk_session_cannot_change_owner(store):
    s = WalkSession(id="w-3", patient_id="p1", date=datetime(2026, 3, 10, 8, 0))
    store.append_or_update_walk_session(s)
    with pytest.raises(ValidationError):
        store.append_or_update_walk_session(s.model_copy(update={"patient_id": "p2"}))


def test_list_all_sessions_newest_first(store):
    store.append_or_update_walk_session(WalkSession(id="a", patient_id="p1", date=datetime(2026, 1, 1, 8, 0)))
    store.append_or_update_walk_session(WalkSession(id="b", patient_id="p1", date=datetime(2026, 1, 2, 8, 0)))
    ids = [s.id for s in store.list_walk_sessions("p1")]
    assert ids == ["b", "a"]
    # seeded p2 rows are included when no patient filter is given
    assert len(store.list_walk_sessions()) >= 6


def test_database_error_becomes_persistence_failure(store, db_engine):
    db_engine.dispose()
    with db_engine.begin() as conn:
        conn.exec_driver_sql("DROP TABLE walk_sessions")

    with pytest.raises(PersistenceFailure):
        store.append_or_update_walk_session(WalkSession(id="x", patient_id="p1", date=datetime(2026, 1, 1)))
    with pytest.raises(PersistenceFailure):
        store.list_walk_sessions("p1")


@pytest.fixture
def utc_minus_three(monkeypatch):
    if not hasattr(time, "tzset"):
        pytest.skip("process time zone cannot be switched on this platform")
    monkeypatch.setenv("TZ", "CLT3")
    time.tzset()
    yield
    monkeypatch.undo()
    time.tzset()


def test_utc_timestamp_filed_on_local_day(store, utc_minus_three):
    # 01:30 UTC on the 11th is 22:30 local on the 10th.
    saved = store.append_or_update_exercise_log(
        _log(timestamp=datetime(2026, 3, 11, 1, 30, tzinfo=timezone.utc))
    )
    assert saved.fecha_realizacion == date(2026, 3, 10)
    assert saved.timestamp == datetime(2026, 3, 10, 22, 30)

    stored = store.list_exercise_logs("p1")[0]
    assert stored.fecha_realizacion == date(2026, 3, 10)
    assert stored.timestamp == datetime(2026, 3, 10, 22, 30)

    # A later local-evening submission the same day overwrites it.
    store.append_or_update_exercise_log(_log(timestamp=datetime(2026, 3, 10, 23, 0), dificultad_percibida=9))
    logs = store.list_exercise_logs("p1")
    assert len(logs) == 1
    assert logs[0].dificultad_percibida == 9


def test_aware_walk_start_stored_as_local_time(store, utc_minus_three):
    s = WalkSession(id="w-tz", patient_id="p1", date=datetime(2026, 3, 11, 2, 0, tzinfo=timezone.utc))
    store.append_or_update_walk_session(s)
    assert store.list_walk_sessions("p1")[0].date == datetime(2026, 3, 10, 23, 0)
