import pytest

from rehapp.core.errors import ActiveSessionExists, PersistenceFailure, SessionNotFound
from rehapp.services.session_registry import SessionRegistry
from rehapp.services.walk_session import WalkSessionMachine, WalkState


class Sink:
    def __init__(self, fail=False):
        self.fail = fail
        self.saved = []

    def append_or_update_walk_session(self, session):
        if self.fail:
            raise PersistenceFailure("offline")
        self.saved.append(session)
        return session


@pytest.fixture
def sink():
    return Sink()


@pytest.fixture
def registry(sink, clock, scheduler):
    return SessionRegistry(lambda: WalkSessionMachine(sink, clock=clock, scheduler=scheduler))


def test_second_start_for_same_patient_conflicts(registry):
    machine, _ = registry.start("p1")
    with pytest.raises(ActiveSessionExists) as exc:
        registry.start("p1")
    assert exc.value.session_id == machine.session_id
    assert registry.get(exc.value.session_id) is machine


def test_terminated_session_is_dropped(registry):
    machine, _ = registry.start("p1")
    machine.report_pain(9)
    machine.exit_block()

    assert len(registry) == 0
    with pytest.raises(SessionNotFound):
        registry.get(machine.session_id)

    again, _ = registry.start("p1")
    assert again.session_id != machine.session_id


def test_unsaved_session_kept_for_retry(registry, sink):
    machine, _ = registry.start("p1")
    sink.fail = True
    with pytest.raises(PersistenceFailure):
        machine.stop()

    assert registry.get(machine.session_id) is machine
    # the patient is free to start again while the old record waits for a retry
    other, _ = registry.start("p1")
    registry.discard(other.session_id)

    sink.fail = False
    machine.retry_persist()
    registry.discard(machine.session_id)
    assert len(registry) == 0


def test_shutdown_cancels_timers(registry, scheduler):
    a, _ = registry.start("p1")
    b, _ = registry.start("p2")
    assert len(scheduler.active_handles) == 2

    registry.shutdown()
    assert scheduler.active_handles == []
    assert len(registry) == 0
    assert a.state is WalkState.RUNNING
    assert not b.clock_running


def test_unsaved_sessions_are_capped(sink, clock, scheduler):
    registry = SessionRegistry(
        lambda: WalkSessionMachine(sink, clock=clock, scheduler=scheduler), max_unsaved=2
    )
    sink.fail = True
    ids = []
    for patient in ("p1", "p2", "p3"):
        machine, _ = registry.start(patient)
        ids.append(machine.session_id)
        with pytest.raises(PersistenceFailure):
            machine.stop()

    assert len(registry) == 2
    with pytest.raises(SessionNotFound):
        registry.get(ids[0])
    assert registry.get(ids[1]).needs_persist
    assert registry.get(ids[2]).needs_persist
