from __future__ import annotations

import logging
import threading
from typing import Callable

from rehapp.core.config import settings
from rehapp.core.errors import ActiveSessionExists, SessionNotFound
from rehapp.services.walk_session import TransitionEvent, WalkSessionMachine, WalkState

logger = logging.getLogger(__name__)


class SessionRegistry:
    """
    Owns the in-progress walk session machines of this process.
    At most one machine per patient; terminated machines are dropped and their
    timers cancelled. A terminated machine whose save failed stays reachable for
    a retry, up to `max_unsaved` of them (oldest evicted first).
    """

    def __init__(self, machine_factory: Callable[[], WalkSessionMachine], max_unsaved: int | None = None):
        self._factory = machine_factory
        self._max_unsaved = settings.max_unsaved_sessions if max_unsaved is None else max_unsaved
        self._by_session: dict[str, WalkSessionMachine] = {}
        self._by_patient: dict[str, str] = {}
        # Insertion-ordered: first key is the oldest unsaved session.
        self._unsaved: dict[str, None] = {}
        self._lock = threading.RLock()

    def start(self, patient_id: str) -> tuple[WalkSessionMachine, TransitionEvent]:
        with self._lock:
            current = self._by_patient.get(patient_id)
            if current is not None:
                raise ActiveSessionExists(patient_id, current)
            machine = self._factory()
            machine.add_listener(self._on_transition)
            event = machine.start(patient_id)
            self._by_session[machine.session_id] = machine
            self._by_patient[patient_id] = machine.session_id
        return machine, event

    def get(self, session_id: str) -> WalkSessionMachine:
        with self._lock:
            machine = self._by_session.get(session_id)
        if machine is None:
            raise SessionNotFound(f"No active walk session {session_id}.")
        return machine

    def __len__(self) -> int:
        with self._lock:
            return len(self._by_session)

    def _on_transition(self, event: TransitionEvent) -> None:
        if event.state is not WalkState.TERMINATED:
            return
        with self._lock:
            machine = self._by_session.get(event.session_id)
            if machine is None:
                return
            if self._by_patient.get(machine.patient_id) == machine.session_id:
                self._by_patient.pop(machine.patient_id, None)
            if not machine.needs_persist:
                self._by_session.pop(machine.session_id, None)
                return
            self._unsaved[machine.session_id] = None
            while len(self._unsaved) > self._max_unsaved:
                self._evict_oldest_unsaved()

    def _evict_oldest_unsaved(self) -> None:
        session_id = next(iter(self._unsaved))
        self._unsaved.pop(session_id)
        machine = self._by_session.pop(session_id, None)
        if machine is not None:
            # Last trace of the record; the store never received it.
            logger.error(
                "Dropping unsaved walk session %s: %s",
                session_id,
                machine.to_record().model_dump_json(),
                extra={"session_id": session_id, "patient_id": machine.patient_id},
            )

    def discard(self, session_id: str) -> None:
        with self._lock:
            machine = self._by_session.get(session_id)
            if machine is not None:
                machine.close()
                self._forget(machine)

    def _forget(self, machine: WalkSessionMachine) -> None:
        self._by_session.pop(machine.session_id, None)
        self._unsaved.pop(machine.session_id, None)
        if self._by_patient.get(machine.patient_id) == machine.session_id:
            self._by_patient.pop(machine.patient_id, None)

    def shutdown(self) -> None:
        with self._lock:
            machines = list(self._by_session.values())
            self._by_session.clear()
            self._by_patient.clear()
            self._unsaved.clear()
        for m in machines:
            m.close()
            if m.needs_persist:
                logger.error("Walk session %s was never saved: %s", m.session_id, m.to_record().model_dump_json())
        if machines:
            logger.info("Closed %d in-progress walk sessions on shutdown", len(machines))
