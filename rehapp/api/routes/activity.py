import base64
import logging

from fastapi import APIRouter, HTTPException, status
from fastapi.responses import JSONResponse

from rehapp.api.deps import DbDep, RegistryDep, get_patient
from rehapp.core.config import settings
from rehapp.core.errors import (
    ActiveSessionExists,
    PersistenceFailure,
    SessionNotFound,
    SessionStateError,
    ValidationError,
)
from rehapp.schemas.activity import (
    ActivityStartRequest,
    ActivityStartResponse,
    PainReportRequest,
    PainReportResponse,
    SessionSnapshot,
    SessionStopResponse,
)
from rehapp.services.report_service import build_walk_session_export_json, build_walk_session_pdf_bytes
from rehapp.services.session_registry import SessionRegistry
from rehapp.services.walk_session import PainOutcome, WalkSessionMachine, WalkState

logger = logging.getLogger(__name__)

router = APIRouter()


def _machine(registry: SessionRegistry, session_id: str) -> WalkSessionMachine:
    try:
        return registry.get(session_id)
    except SessionNotFound as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))


def _conflict(e: SessionStateError) -> HTTPException:
    return HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(e))


def _pain_payload(outcome: PainOutcome, snapshot: SessionSnapshot, error: str | None = None) -> PainReportResponse:
    return PainReportResponse(
        accion=outcome.pain.action.wire_name,
        mensaje=outcome.pain.message,
        bloquear_app=outcome.pain.blocks_session,
        persisted=error is None,
        error=error,
        session=snapshot,
    )


def _terminal(machine: WalkSessionMachine, op) -> SessionStopResponse | JSONResponse:
    try:
        op()
    except PersistenceFailure as e:
        # The session is over locally; the client must surface the failed save and retry.
        logger.warning("Walk session %s ended but was not saved", machine.session_id)
        body = SessionStopResponse(persisted=False, error=str(e), session=machine.snapshot())
        return JSONResponse(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, content=body.model_dump())
    except SessionStateError as e:
        raise _conflict(e)
    return SessionStopResponse(session=machine.snapshot())


@router.post("/activity/start", response_model=ActivityStartResponse)
def start_activity(payload: ActivityStartRequest, db: DbDep, registry: RegistryDep):
    patient = get_patient(db, payload.patient_id)
    try:
        machine, event = registry.start(patient.id)
    except ActiveSessionExists as e:
        raise _conflict(e)
    return ActivityStartResponse(
        session_id=machine.session_id,
        state=event.state.value,
        meta_pasos=int(patient.daily_step_goal or settings.default_step_goal),
        mensaje_inicio=event.message,
    )


@router.get("/activity/{session_id}", response_model=SessionSnapshot)
def get_activity(session_id: str, registry: RegistryDep):
    return _machine(registry, session_id).snapshot()


@router.post("/activity/{session_id}/pain-report/open", response_model=SessionSnapshot)
def open_pain_report(session_id: str, registry: RegistryDep):
    machine = _machine(registry, session_id)
    try:
        machine.open_pain_report()
    except SessionStateError as e:
        raise _conflict(e)
    return machine.snapshot()


@router.post("/activity/{session_id}/pain-report/cancel", response_model=SessionSnapshot)
def cancel_pain_report(session_id: str, registry: RegistryDep):
    machine = _machine(registry, session_id)
    try:
        machine.cancel_pain_report()
    except SessionStateError as e:
        raise _conflict(e)
    return machine.snapshot()


@router.post("/activity/report-pain", response_model=PainReportResponse)
def report_pain(payload: PainReportRequest, registry: RegistryDep):
    machine = _machine(registry, payload.session_id)
    try:
        outcome = machine.report_pain(payload.nivel_eva)
    except PersistenceFailure as e:
        # The safety decision still goes back to the patient; only the save failed.
        logger.warning("Pain report for session %s not saved", payload.session_id)
        body = _pain_payload(e.outcome, machine.snapshot(), error=str(e))
        return JSONResponse(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, content=body.model_dump())
    except ValidationError as e:
        raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=str(e))
    except SessionStateError as e:
        raise _conflict(e)
    return _pain_payload(outcome, machine.snapshot())


@router.post("/activity/{session_id}/stop", response_model=SessionStopResponse)
def stop_activity(session_id: str, registry: RegistryDep):
    machine = _machine(registry, session_id)
    return _terminal(machine, machine.stop)


@router.post("/activity/{session_id}/exit-block", response_model=SessionStopResponse)
def exit_block(session_id: str, registry: RegistryDep):
    machine = _machine(registry, session_id)
    return _terminal(machine, machine.exit_block)


@router.post("/activity/{session_id}/retry-save", response_model=SessionStopResponse)
def retry_save(session_id: str, registry: RegistryDep):
    machine = _machine(registry, session_id)
    response = _terminal(machine, machine.retry_persist)
    if isinstance(response, SessionStopResponse) and machine.state is WalkState.TERMINATED:
        registry.discard(session_id)
    return response


@router.get("/activity/sessions/{session_id}/export.json")
def export_session_json(session_id: str, db: DbDep):
    try:
        return build_walk_session_export_json(db, session_id)
    except SessionNotFound as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))


@router.get("/activity/sessions/{session_id}/export.pdf")
def export_session_pdf(session_id: str, db: DbDep):
    try:
        pdf = build_walk_session_pdf_bytes(db, session_id)
    except SessionNotFound as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))
    return {
        "filename": f"rehapp_caminata_{session_id}.pdf",
        "content_type": "application/pdf",
        "base64": base64.b64encode(pdf).decode("utf-8"),
    }
