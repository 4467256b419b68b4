import json
from datetime import datetime, timedelta

from sqlalchemy.orm import Session

from rehapp.models.assignment import ExerciseRoutine
from rehapp.models.user import User
from rehapp.models.video import ExerciseVideo
from rehapp.models.walk_session import WalkSessionRecord

DEMO_PATIENTS = [
    dict(id="12345678", name="Paciente Pruebas", age=75, condition="EAP Moderada"),
    dict(id="p1", name="Juan Pérez", age=78, condition="EAP Severa"),
    dict(id="p2", name="Maria González", age=72, condition="EAP Moderada"),
]
DEMO_DOCTOR = dict(id="d1", name="Dr. Silva (Kinesiólogo)")

DEMO_VIDEOS = [
    dict(
        id="v1",
        numero_orden=1,
        titulo="Elevación de talones",
        tipo_ejercicio="fuerza",
        grupos_musculares=["gemelos", "sóleo"],
        repeticiones_sugeridas="2 series x 10",
        equipamiento_necesario=["silla"],
        duracion_estimada_minutos=5,
    ),
    dict(
        id="v2",
        numero_orden=2,
        titulo="Sentarse y pararse de la silla",
        tipo_ejercicio="fuerza",
        grupos_musculares=["cuádriceps", "glúteos"],
        repeticiones_sugeridas="2 series x 8",
        equipamiento_necesario=["silla"],
        duracion_estimada_minutos=6,
    ),
    dict(
        id="v3",
        numero_orden=3,
        titulo="Marcha en el lugar",
        tipo_ejercicio="aeróbico",
        grupos_musculares=["piernas"],
        repeticiones_sugeridas="3 minutos",
        equipamiento_necesario=[],
        duracion_estimada_minutos=4,
    ),
    dict(
        id="v4",
        numero_orden=4,
        titulo="Flexión dorsal de tobillo",
        tipo_ejercicio="movilidad",
        grupos_musculares=["tibial anterior"],
        repeticiones_sugeridas="2 series x 15",
        equipamiento_necesario=["banda elástica"],
        duracion_estimada_minutos=5,
    ),
]


def seed_demo_data(db: Session) -> None:
    for p in DEMO_PATIENTS:
        if not db.get(User, p["id"]):
            db.add(User(role="paciente", daily_step_goal=4500, **p))
    if not db.get(User, DEMO_DOCTOR["id"]):
        db.add(User(role="medico", **DEMO_DOCTOR))

    for v in DEMO_VIDEOS:
        if db.get(ExerciseVideo, v["id"]):
            continue
        v = dict(v)
        db.add(
            ExerciseVideo(
                grupos_musculares_json=json.dumps(v.pop("grupos_musculares"), ensure_ascii=False),
                equipamiento_necesario_json=json.dumps(v.pop("equipamiento_necesario"), ensure_ascii=False),
                nivel_dificultad="basico",
                **v,
            )
        )
    db.commit()

    if not db.get(ExerciseRoutine, "p1"):
        db.add(ExerciseRoutine(patient_id="p1", video_ids_json=json.dumps(["v1", "v2", "v3"])))
        db.commit()

    # A couple of past walks so the clinician dashboard is not empty.
    existing = db.query(WalkSessionRecord).filter(WalkSessionRecord.patient_id == "p2").count()
    if existing == 0:
        base = datetime.now().replace(hour=10, minute=0, second=0, microsecond=0)
        seeds = [(1, 900, 2), (3, 1200, 3), (5, 780, 4), (6, 600, 2)]
        for days_ago, duration, pain in seeds:
            db.add(
                WalkSessionRecord(
                    id=f"seed-p2-{days_ago}",
                    patient_id="p2",
                    started_at=base - timedelta(days=days_ago),
                    duration_seconds=duration,
                    steps=int(duration * 1.2),
                    pain_level=pain,
                    stopped_due_to_pain=False,
                )
            )
        db.commit()
