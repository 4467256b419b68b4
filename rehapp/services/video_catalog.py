from __future__ import annotations

import json
from typing import Protocol

from sqlalchemy import select
from sqlalchemy.orm import Session, sessionmaker

from rehapp.models.video import ExerciseVideo
from rehapp.schemas.exercise import VideoItem


class VideoCatalog(Protocol):
    def get_video(self, video_id: str) -> VideoItem | None: ...

    def list_videos(self) -> list[VideoItem]: ...


def to_video_item(v: ExerciseVideo) -> VideoItem:
    return VideoItem(
        id=v.id,
        numero_orden=int(v.numero_orden),
        titulo=v.titulo,
        descripcion=v.descripcion or "",
        youtube_video_id=v.youtube_video_id or "",
        tipo_ejercicio=v.tipo_ejercicio or "",
        grupos_musculares=json.loads(v.grupos_musculares_json or "[]"),
        repeticiones_sugeridas=v.repeticiones_sugeridas or "",
        equipamiento_necesario=json.loads(v.equipamiento_necesario_json or "[]"),
        nivel_dificultad=v.nivel_dificultad or "",
        duracion_estimada_minutos=int(v.duracion_estimada_minutos),
    )


class SqlVideoCatalog:
    def __init__(self, session_factory: sessionmaker[Session]):
        self._session_factory = session_factory

    def get_video(self, video_id: str) -> VideoItem | None:
        with self._session_factory() as db:
            v = db.get(ExerciseVideo, video_id)
            return to_video_item(v) if v else None

    def list_videos(self) -> list[VideoItem]:
        with self._session_factory() as db:
            rows = db.scalars(select(ExerciseVideo).order_by(ExerciseVideo.numero_orden.asc())).all()
            return [to_video_item(v) for v in rows]


class StaticVideoCatalog:
    """In-memory catalog, loaded once per request by the aggregation endpoints."""

    def __init__(self, videos: list[VideoItem]):
        self._by_id = {v.id: v for v in videos}

    def get_video(self, video_id: str) -> VideoItem | None:
        return self._by_id.get(video_id)

    def list_videos(self) -> list[VideoItem]:
        return sorted(self._by_id.values(), key=lambda v: v.numero_orden)
