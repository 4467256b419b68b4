from collections.abc import Generator
from typing import Annotated

from fastapi import Depends, HTTPException, Request, status
from sqlalchemy.orm import Session

from rehapp.models.user import User
from rehapp.services.activity_store import ActivityLogStore
from rehapp.services.clock import Clock
from rehapp.services.session_registry import SessionRegistry
from rehapp.services.video_catalog import StaticVideoCatalog, VideoCatalog


def get_db(request: Request) -> Generator[Session, None, None]:
    db = request.app.state.session_factory()
    try:
        yield db
    finally:
        db.close()


def get_store(request: Request) -> ActivityLogStore:
    return request.app.state.store


def get_catalog(request: Request) -> VideoCatalog:
    return request.app.state.catalog


def get_catalog_snapshot(request: Request) -> VideoCatalog:
    # Aggregations look up one video per log; read the catalog once instead.
    return StaticVideoCatalog(request.app.state.catalog.list_videos())


def get_registry(request: Request) -> SessionRegistry:
    return request.app.state.registry


def get_clock(request: Request) -> Clock:
    return request.app.state.clock


DbDep = Annotated[Session, Depends(get_db)]
StoreDep = Annotated[ActivityLogStore, Depends(get_store)]
CatalogDep = Annotated[VideoCatalog, Depends(get_catalog)]
CatalogSnapshotDep = Annotated[VideoCatalog, Depends(get_catalog_snapshot)]
RegistryDep = Annotated[SessionRegistry, Depends(get_registry)]
ClockDep = Annotated[Clock, Depends(get_clock)]


def get_patient(db: Session, patient_id: str) -> User:
    # Authentication is handled upstream; this only checks the patient exists.
    user = db.get(User, patient_id)
    if not user or user.role != "paciente":
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Patient not found.")
    return user
