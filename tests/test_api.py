import base64

from rehapp.core.errors import PersistenceFailure


def _start(client, patient_id="p1"):
    r = client.post("/api/activity/start", json={"patient_id": patient_id})
    assert r.status_code == 200, r.text
    return r.json()["session_id"]


def _fail_writes(monkeypatch, client):
    def unavailable(session):
        raise PersistenceFailure("database is locked")

    monkeypatch.setattr(client.app.state.store, "append_or_update_walk_session", unavailable)


def test_health(client):
    r = client.get("/health")
    assert r.status_code == 200
    assert r.json() == {"status": "ok", "active_sessions": 0}


def test_start_returns_goal_and_message(client):
    r = client.post("/api/activity/start", json={"patient_id": "p1"})
    body = r.json()
    assert body["state"] == "RUNNING"
    assert body["meta_pasos"] == 4500
    assert body["mensaje_inicio"].startswith("¡Excelente!")


def test_start_unknown_patient_is_404(client):
    assert client.post("/api/activity/start", json={"patient_id": "nobody"}).status_code == 404
    assert client.post("/api/activity/start", json={"patient_id": "d1"}).status_code == 404


def test_one_active_session_per_patient(client):
    _start(client, "p1")
    r = client.post("/api/activity/start", json={"patient_id": "p1"})
    assert r.status_code == 409
    # other patients are unaffected
    _start(client, "p2")


def test_critical_pain_blocks_then_exit(client, clock):
    sid = _start(client)
    clock.advance(90)

    r = client.post("/api/activity/report-pain", json={"session_id": sid, "nivel_eva": 9})
    assert r.status_code == 200
    body = r.json()
    assert body["accion"] == "ALTO_INMEDIATO"
    assert body["bloquear_app"] is True
    assert body["session"]["state"] == "BLOCKED"
    assert body["session"]["elapsed_seconds"] == 90

    clock.advance(600)
    assert client.get(f"/api/activity/{sid}").json()["elapsed_seconds"] == 90

    # a blocked session accepts no further pain reports
    r = client.post("/api/activity/report-pain", json={"session_id": sid, "nivel_eva": 2})
    assert r.status_code == 409

    r = client.post(f"/api/activity/{sid}/exit-block")
    assert r.status_code == 200
    assert r.json()["session"]["state"] == "TERMINATED"
    assert client.get(f"/api/activity/{sid}").status_code == 404

    export = client.get(f"/api/activity/sessions/{sid}/export.json").json()["session"]
    assert export["stopped_due_to_pain"] is True
    assert export["pain_level"] == 9
    assert export["duration_seconds"] == 90


def test_low_pain_continues_then_stop(client, clock):
    sid = _start(client)
    clock.advance(65)
    r = client.post("/api/activity/report-pain", json={"session_id": sid, "nivel_eva": 3})
    assert r.json()["accion"] == "CONTINUAR"
    assert r.json()["session"]["state"] == "RUNNING"

    clock.advance(60)
    r = client.post(f"/api/activity/{sid}/stop")
    assert r.status_code == 200
    session = r.json()["session"]
    assert session["state"] == "TERMINATED"
    assert session["elapsed_seconds"] == 125
    assert session["stopped_due_to_pain"] is False

    sessions = client.get("/api/patient/p1/sessions").json()["sessions"]
    assert [s["id"] for s in sessions] == [sid]
    assert sessions[0]["pain_level"] == 3

    volume = client.get("/api/patient/p1/daily-volume").json()
    assert volume["walk_minutes"] == 2


def test_caution_message(client):
    sid = _start(client)
    r = client.post("/api/activity/report-pain", json={"session_id": sid, "nivel_eva": 6})
    assert r.json()["accion"] == "PRECAUCION"
    assert r.json()["bloquear_app"] is False


def test_pain_modal_open_and_cancel(client, clock):
    sid = _start(client)
    clock.advance(10)
    r = client.post(f"/api/activity/{sid}/pain-report/open")
    assert r.json()["state"] == "AWAITING_PAIN_REPORT"
    clock.advance(30)
    r = client.post(f"/api/activity/{sid}/pain-report/cancel")
    assert r.json()["state"] == "RUNNING"
    assert r.json()["elapsed_seconds"] == 10


def test_out_of_range_eva_is_422(client):
    sid = _start(client)
    r = client.post("/api/activity/report-pain", json={"session_id": sid, "nivel_eva": 11})
    assert r.status_code == 422
    assert client.get(f"/api/activity/{sid}").json()["state"] == "RUNNING"


def test_unknown_session_is_404(client):
    r = client.post("/api/activity/report-pain", json={"session_id": "missing", "nivel_eva": 2})
    assert r.status_code == 404


def test_failed_save_still_blocks_patient(client, monkeypatch):
    sid = _start(client)
    _fail_writes(monkeypatch, client)

    r = client.post("/api/activity/report-pain", json={"session_id": sid, "nivel_eva": 9})
    assert r.status_code == 503
    body = r.json()
    assert body["accion"] == "ALTO_INMEDIATO"
    assert body["bloquear_app"] is True
    assert body["persisted"] is False
    assert body["session"]["state"] == "BLOCKED"

    monkeypatch.undo()
    r = client.post(f"/api/activity/{sid}/exit-block")
    assert r.status_code == 200
    export = client.get(f"/api/activity/sessions/{sid}/export.json").json()["session"]
    assert export["stopped_due_to_pain"] is True


def test_failed_stop_can_be_retried(client, monkeypatch, clock):
    sid = _start(client)
    clock.advance(30)
    _fail_writes(monkeypatch, client)

    r = client.post(f"/api/activity/{sid}/stop")
    assert r.status_code == 503
    assert r.json()["persisted"] is False
    assert r.json()["session"]["state"] == "TERMINATED"

    monkeypatch.undo()
    r = client.post(f"/api/activity/{sid}/retry-save")
    assert r.status_code == 200
    assert client.get(f"/api/activity/{sid}").status_code == 404
    assert client.get(f"/api/activity/sessions/{sid}/export.json").json()["session"]["duration_seconds"] == 30

    # the patient can walk again
    _start(client)


def test_pdf_export(client):
    sid = _start(client)
    client.post(f"/api/activity/{sid}/stop")
    body = client.get(f"/api/activity/sessions/{sid}/export.pdf").json()
    assert body["content_type"] == "application/pdf"
    assert base64.b64decode(body["base64"]).startswith(b"%PDF")


def test_export_unknown_session_is_404(client):
    assert client.get("/api/activity/sessions/nope/export.json").status_code == 404


def test_daily_volume_for_new_patient_is_zero(client):
    r = client.get("/api/patient/12345678/daily-volume")
    assert r.json() == {"walk_minutes": 0, "exercise_minutes": 0, "total_minutes": 0, "target_minutes": 60}


def test_today_activity(client):
    r = client.get("/api/patient/12345678/today")
    assert r.json() == {"steps": 0, "distance_m": 0, "step_goal": 4500}


def test_dashboard(client):
    body = client.get("/api/doctor/dashboard").json()
    by_id = {p["id"]: p for p in body["patients"]}

    assert by_id["p2"]["cumplimiento_semanal"] == 4
    assert by_id["p2"]["alerta"] is False
    assert by_id["p2"]["ultimo_dolor_eva"] == 4

    assert by_id["p1"]["alert_codes"] == ["LOW_ADHERENCE"]
    assert by_id["p1"]["alertas"] == ["Baja adherencia (< 3 sesiones)"]
    assert "d1" not in by_id
    assert body["ok_count"] == 1
    assert body["warning_count"] == 2


def test_dashboard_flags_critical_pain(client):
    sid = _start(client, "p2")
    client.post("/api/activity/report-pain", json={"session_id": sid, "nivel_eva": 8})
    client.post(f"/api/activity/{sid}/exit-block")

    body = client.get("/api/doctor/dashboard", params={"sort_by_severity": "true"}).json()
    assert body["patients"][0]["id"] == "p2"
    assert body["patients"][0]["alert_codes"] == ["CRITICAL_PAIN"]
    assert body["critical_count"] == 1


def test_videos_listed_in_order(client):
    videos = client.get("/api/exercises/videos").json()["videos"]
    assert [v["id"] for v in videos] == ["v1", "v2", "v3", "v4"]


def test_routine_defaults_and_update(client):
    r = client.get("/api/exercises/routine/12345678").json()
    assert r["video_ids"] == []
    assert r["schema_version"] == 1
    assert r["config"]["freq_semanal"] == 3

    r = client.put("/api/exercises/routine/12345678", json={"video_ids": ["v4", "v1", "v4"], "config": {"series": 3}})
    assert r.status_code == 200
    assert r.json()["video_ids"] == ["v4", "v1"]

    r = client.get("/api/exercises/routine/12345678").json()
    assert r["video_ids"] == ["v4", "v1"]
    assert r["config"]["series"] == 3


def test_routine_rejects_unknown_video(client):
    r = client.put("/api/exercises/routine/p1", json={"video_ids": ["v1", "v99"]})
    assert r.status_code == 422
    assert client.get("/api/exercises/routine/p1").json()["video_ids"] == ["v1", "v2", "v3"]


def test_exercise_log_overwrite_and_views(client):
    payload = {"patient_id": "p1", "video_id": "v1", "dificultad_percibida": 4, "dolor_durante_ejercicio": 8}
    assert client.post("/api/exercises/logs", json=payload).status_code == 200
    payload["dificultad_percibida"] = 6
    assert client.post("/api/exercises/logs", json=payload).status_code == 200

    assigned = client.get("/api/exercises/assigned/p1").json()
    assert assigned["completed_today"] == 1
    assert assigned["total_assigned"] == 3

    volume = client.get("/api/patient/p1/daily-volume").json()
    assert volume["exercise_minutes"] == 5

    calendar = client.get("/api/doctor/patients/p1/compliance-calendar").json()
    assert [row["video_id"] for row in calendar["rows"]] == ["v1", "v2", "v3"]
    assert calendar["rows"][0]["done"][-1] is True
    assert len(calendar["days"]) == 7

    alerts = client.get("/api/doctor/patients/p1/exercise-pain-alerts").json()["alerts"]
    assert [(a["video_id"], a["dolor_durante_ejercicio"]) for a in alerts] == [("v1", 8)]

    points = client.get("/api/doctor/patients/p1/difficulty").json()["points"]
    assert points == [{"titulo": "Elevación de talones", "avg_dificultad": 6.0}]


def test_exercise_log_validation(client):
    r = client.post("/api/exercises/logs", json={"patient_id": "p1", "video_id": "v1", "dolor_durante_ejercicio": 11})
    assert r.status_code == 422
    r = client.post("/api/exercises/logs", json={"patient_id": "p1", "video_id": "v99"})
    assert r.status_code == 404
