from __future__ import annotations

from io import BytesIO

from reportlab.lib.pagesizes import letter
from reportlab.lib.units import inch
from reportlab.pdfgen import canvas
from sqlalchemy.orm import Session

from rehapp.core.config import settings
from rehapp.core.errors import SessionNotFound
from rehapp.models.user import User
from rehapp.models.walk_session import WalkSessionRecord
from rehapp.services.pain_policy import classify

DISCLAIMER = "Apoyo a la decisión clínica. No reemplaza el juicio del equipo tratante."


def build_walk_session_export_json(db: Session, session_id: str) -> dict:
    s = db.get(WalkSessionRecord, session_id)
    if s is None:
        raise SessionNotFound(f"Walk session {session_id} not found.")

    patient = db.get(User, s.patient_id)
    tier = classify(int(s.pain_level)) if s.pain_level else None
    return {
        "disclaimer": DISCLAIMER,
        "session": {
            "id": s.id,
            "patient_id": s.patient_id,
            "patient_name": patient.name if patient else None,
            "date": s.started_at.isoformat(),
            "duration_seconds": int(s.duration_seconds),
            "steps": int(s.steps),
            "distance_m": int(s.steps * settings.stride_m),
            "pain_level": int(s.pain_level),
            "pain_action": tier.action.wire_name if tier else None,
            "stopped_due_to_pain": bool(s.stopped_due_to_pain),
            "notes": s.notes,
        },
    }


def build_walk_session_pdf_bytes(db: Session, session_id: str) -> bytes:
    export = build_walk_session_export_json(db, session_id)
    sess = export["session"]

    buf = BytesIO()
    c = canvas.Canvas(buf, pagesize=letter)
    w, h = letter

    y = h - 0.75 * inch
    c.setFont("Helvetica-Bold", 16)
    c.drawString(0.75 * inch, y, f"{settings.app_name} - Informe de caminata")

    y -= 0.3 * inch
    c.setFont("Helvetica", 9)
    c.setFillGray(0.25)
    c.drawString(0.75 * inch, y, export["disclaimer"])
    c.setFillGray(0)

    y -= 0.45 * inch
    c.setFont("Helvetica-Bold", 11)
    c.drawString(0.75 * inch, y, "Resumen de la sesión")

    y -= 0.25 * inch
    c.setFont("Helvetica", 10)
    minutes, seconds = divmod(sess["duration_seconds"], 60)
    lines = [
        f"Sesión: {sess['id']}",
        f"Paciente: {sess.get('patient_name') or '-'} ({sess['patient_id']})",
        f"Fecha: {sess['date']}",
        f"Duración: {minutes}:{seconds:02d}",
        f"Pasos (estimados): {sess['steps']}",
        f"Distancia (estimada): {sess['distance_m']} m",
        f"Dolor EVA: {sess['pain_level']} ({sess['pain_action'] or 'sin reporte'})",
        f"Detenida por dolor: {'sí' if sess['stopped_due_to_pain'] else 'no'}",
    ]
    for line in lines:
        c.drawString(0.75 * inch, y, line)
        y -= 0.2 * inch

    c.showPage()
    c.save()
    return buf.getvalue()
