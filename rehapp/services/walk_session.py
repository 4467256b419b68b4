"""
Walk session state machine.

    IDLE -> RUNNING -> AWAITING_PAIN_REPORT -> RUNNING | BLOCKED
    RUNNING | AWAITING_PAIN_REPORT | BLOCKED -> TERMINATED

One instance drives one walking attempt. It owns its elapsed-time clock and its
tick timer; nothing here is module-level state. The record is upserted through
the activity log store on every pain report and on termination.

Safety messaging is decided locally: when a write fails the transition still
completes and `PersistenceFailure` is raised afterwards, carrying the outcome.
"""

from __future__ import annotations

import logging
import math
import threading
import uuid
from dataclasses import dataclass
from enum import Enum
from typing import Callable

from rehapp.core.config import settings
from rehapp.core.errors import PainReportInProgress, PersistenceFailure, SessionStateError, ValidationError
from rehapp.schemas.activity import SessionSnapshot, WalkSession
from rehapp.services.activity_store import ActivityLogStore
from rehapp.services.clock import Clock, Scheduler, TimerHandle, system_clock, thread_scheduler
from rehapp.services.pain_policy import PainResponse, classify

logger = logging.getLogger(__name__)

START_MESSAGE = "¡Excelente! Comienza a caminar a ritmo cómodo. Mantén la respiración constante."
PAIN_PROMPT_MESSAGE = "¿Qué tan fuerte es tu dolor?"
FINISHED_MESSAGE = "Sesión terminada. ¡Buen trabajo!"
BLOCK_EXIT_MESSAGE = "Sesión terminada por dolor. Descansa y avisa a tu equipo si el dolor no cede."

StepEstimator = Callable[[float], int]


class WalkState(str, Enum):
    IDLE = "IDLE"
    RUNNING = "RUNNING"
    AWAITING_PAIN_REPORT = "AWAITING_PAIN_REPORT"
    BLOCKED = "BLOCKED"
    TERMINATED = "TERMINATED"


@dataclass(frozen=True)
class TransitionEvent:
    session_id: str
    state: WalkState
    message: str
    pain: PainResponse | None = None


@dataclass(frozen=True)
class PainOutcome:
    pain: PainResponse
    state: WalkState
    session: WalkSession
    persisted: bool


def linear_step_estimator(steps_per_second: float) -> StepEstimator:
    """Stand-in for a pedometer: steps grow linearly with active walking time."""

    def estimate(elapsed_seconds: float) -> int:
        return math.floor(elapsed_seconds * steps_per_second)

    return estimate


class WalkSessionMachine:
    def __init__(
        self,
        store: ActivityLogStore,
        *,
        clock: Clock = system_clock,
        scheduler: Scheduler = thread_scheduler,
        step_estimator: StepEstimator | None = None,
        tick_interval_s: float | None = None,
        stride_m: float | None = None,
    ):
        self.store = store
        self.clock = clock
        self.scheduler = scheduler
        self.step_estimator = step_estimator or linear_step_estimator(settings.steps_per_second)
        self.tick_interval_s = tick_interval_s if tick_interval_s is not None else settings.tick_interval_sec
        self.stride_m = stride_m if stride_m is not None else settings.stride_m

        self.state = WalkState.IDLE
        self.session_id: str | None = None
        self.patient_id: str | None = None
        self.started_at = None
        self.pain_level = 0
        self.stopped_due_to_pain = False
        self.live_steps = 0

        self._accrued_s = 0.0
        self._resumed_at: float | None = None
        self._timer: TimerHandle | None = None
        self._dirty = False

        self._lock = threading.RLock()
        self._report_lock = threading.Lock()
        self._listeners: list[Callable[[TransitionEvent], None]] = []
        self._tick_listeners: list[Callable[[SessionSnapshot], None]] = []

    # -- listeners -----------------------------------------------------------------

    def add_listener(self, fn: Callable[[TransitionEvent], None]) -> None:
        self._listeners.append(fn)

    def add_tick_listener(self, fn: Callable[[SessionSnapshot], None]) -> None:
        self._tick_listeners.append(fn)

    def _emit(self, event: TransitionEvent) -> None:
        for fn in list(self._listeners):
            try:
                fn(event)
            except Exception:
                logger.exception("Transition listener failed for session %s", event.session_id)

    # -- clock ---------------------------------------------------------------------

    @property
    def elapsed_seconds(self) -> float:
        with self._lock:
            if self._resumed_at is None:
                return self._accrued_s
            return self._accrued_s + max(0.0, self.clock.monotonic() - self._resumed_at)

    @property
    def duration_seconds(self) -> int:
        return math.floor(self.elapsed_seconds)

    @property
    def steps(self) -> int:
        return self.step_estimator(self.duration_seconds)

    @property
    def distance_m(self) -> int:
        return math.floor(self.steps * self.stride_m)

    @property
    def clock_running(self) -> bool:
        return self._resumed_at is not None

    def _resume_clock(self) -> None:
        self._cancel_timer()
        self._resumed_at = self.clock.monotonic()
        self._timer = self.scheduler.call_every(self.tick_interval_s, self._on_tick)

    def _freeze_clock(self) -> None:
        if self._resumed_at is not None:
            self._accrued_s += max(0.0, self.clock.monotonic() - self._resumed_at)
            self._resumed_at = None
        self._cancel_timer()

    def _cancel_timer(self) -> None:
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None

    def _on_tick(self) -> None:
        with self._lock:
            if self.state is not WalkState.RUNNING:
                return
            self.live_steps = self.steps
            snap = self.snapshot()
        for fn in list(self._tick_listeners):
            try:
                fn(snap)
            except Exception:
                logger.exception("Tick listener failed for session %s", self.session_id)

    # -- record --------------------------------------------------------------------

    def to_record(self) -> WalkSession:
        with self._lock:
            if self.session_id is None:
                raise SessionStateError("Session has not started.")
            return WalkSession(
                id=self.session_id,
                patient_id=self.patient_id,
                date=self.started_at,
                duration_seconds=self.duration_seconds,
                steps=self.steps,
                pain_level=self.pain_level,
                stopped_due_to_pain=self.stopped_due_to_pain,
            )

    def snapshot(self) -> SessionSnapshot:
        with self._lock:
            return SessionSnapshot(
                session_id=self.session_id or "",
                patient_id=self.patient_id or "",
                state=self.state.value,
                started_at=self.started_at.isoformat() if self.started_at else "",
                elapsed_seconds=self.duration_seconds,
                steps=self.steps,
                distance_m=self.distance_m,
                pain_level=self.pain_level,
                stopped_due_to_pain=self.stopped_due_to_pain,
            )

    def _persist(self, record: WalkSession) -> PersistenceFailure | None:
        try:
            self.store.append_or_update_walk_session(record)
        except PersistenceFailure as e:
            self._dirty = True
            logger.error("Walk session %s not persisted: %s", record.id, e)
            return e
        self._dirty = False
        return None

    # -- transitions ---------------------------------------------------------------

    def start(self, patient_id: str) -> TransitionEvent:
        if not patient_id:
            raise ValidationError("patient_id is required.")
        with self._lock:
            if self.state is not WalkState.IDLE:
                raise SessionStateError(f"Cannot start a session in state {self.state.value}.")
            self.session_id = str(uuid.uuid4())
            self.patient_id = patient_id
            self.started_at = self.clock.now()
            self.state = WalkState.RUNNING
            self._resume_clock()
        logger.info("Walk session %s started for patient %s", self.session_id, patient_id)
        event = TransitionEvent(self.session_id, WalkState.RUNNING, START_MESSAGE)
        self._emit(event)
        return event

    def open_pain_report(self) -> TransitionEvent:
        with self._lock:
            if self.state is not WalkState.RUNNING:
                raise SessionStateError(f"Cannot report pain in state {self.state.value}.")
            self._freeze_clock()
            self.state = WalkState.AWAITING_PAIN_REPORT
            event = TransitionEvent(self.session_id, self.state, PAIN_PROMPT_MESSAGE)
        self._emit(event)
        return event

    def cancel_pain_report(self) -> TransitionEvent:
        if not self._report_lock.acquire(blocking=False):
            raise PainReportInProgress("A pain report is being processed.")
        try:
            with self._lock:
                if self.state is not WalkState.AWAITING_PAIN_REPORT:
                    raise SessionStateError(f"No pain report to cancel in state {self.state.value}.")
                self.state = WalkState.RUNNING
                self._resume_clock()
                event = TransitionEvent(self.session_id, self.state, "")
        finally:
            self._report_lock.release()
        self._emit(event)
        return event

    def report_pain(self, eva_score: int) -> PainOutcome:
        if isinstance(eva_score, bool) or not isinstance(eva_score, int) or not 0 <= eva_score <= 10:
            raise ValidationError(f"EVA score must be an integer between 0 and 10 (got {eva_score!r}).")
        if not self._report_lock.acquire(blocking=False):
            raise PainReportInProgress("A pain report for this session is still being processed.")
        try:
            with self._lock:
                if self.state not in (WalkState.RUNNING, WalkState.AWAITING_PAIN_REPORT):
                    raise SessionStateError(f"Cannot report pain in state {self.state.value}.")
                self._freeze_clock()
                self.state = WalkState.AWAITING_PAIN_REPORT
                pain = classify(eva_score)
                self.pain_level = eva_score
                self.stopped_due_to_pain = pain.blocks_session
                record = self.to_record()

            if pain.blocks_session:
                logger.warning(
                    "CRITICAL PAIN EVENT: session %s, EVA %s",
                    record.id,
                    eva_score,
                    extra={"session_id": record.id, "patient_id": record.patient_id, "eva": eva_score},
                )
            failure = self._persist(record)

            with self._lock:
                # Only the report that froze the session may move it on.
                if self.state is WalkState.AWAITING_PAIN_REPORT:
                    if pain.blocks_session:
                        # Clock stays frozen until the patient explicitly exits.
                        self.state = WalkState.BLOCKED
                    else:
                        self.state = WalkState.RUNNING
                        self._resume_clock()
                outcome = PainOutcome(pain=pain, state=self.state, session=record, persisted=failure is None)
        finally:
            self._report_lock.release()

        self._emit(TransitionEvent(record.id, outcome.state, pain.message, pain=pain))
        if failure is not None:
            raise PersistenceFailure(str(failure), outcome=outcome) from failure
        return outcome

    def stop(self) -> WalkSession:
        """Voluntary stop. From BLOCKED this is the explicit exit of the block screen."""
        if not self._report_lock.acquire(blocking=False):
            raise PainReportInProgress("Wait for the pending pain report before stopping.")
        try:
            with self._lock:
                blocked = self.state is WalkState.BLOCKED
                if not blocked:
                    if self.state not in (WalkState.RUNNING, WalkState.AWAITING_PAIN_REPORT):
                        raise SessionStateError(f"Cannot stop a session in state {self.state.value}.")
                    self._freeze_clock()
                    self.stopped_due_to_pain = False
                    self.state = WalkState.TERMINATED
                    record = self.to_record()
            if blocked:
                return self.exit_block()
            failure = self._persist(record)
        finally:
            self._report_lock.release()

        logger.info("Walk session %s stopped after %ss", record.id, record.duration_seconds)
        self._emit(TransitionEvent(record.id, WalkState.TERMINATED, FINISHED_MESSAGE))
        if failure is not None:
            raise PersistenceFailure(str(failure), outcome=record) from failure
        return record

    def exit_block(self) -> WalkSession:
        with self._lock:
            if self.state is not WalkState.BLOCKED:
                raise SessionStateError(f"Session is not blocked (state {self.state.value}).")
            self._cancel_timer()
            self.state = WalkState.TERMINATED
            record = self.to_record()
            dirty = self._dirty

        # The blocked record was already written; only retry if that write failed.
        failure = self._persist(record) if dirty else None
        self._emit(TransitionEvent(record.id, WalkState.TERMINATED, BLOCK_EXIT_MESSAGE))
        if failure is not None:
            raise PersistenceFailure(str(failure), outcome=record) from failure
        return record

    def retry_persist(self) -> WalkSession:
        """Re-send the current record after a failed write."""
        record = self.to_record()
        failure = self._persist(record)
        if failure is not None:
            raise PersistenceFailure(str(failure), outcome=record) from failure
        return record

    @property
    def needs_persist(self) -> bool:
        return self._dirty

    def close(self) -> None:
        """Component teardown: stop ticking without changing the session state."""
        with self._lock:
            if self.state is WalkState.RUNNING:
                self._freeze_clock()
            else:
                self._cancel_timer()
