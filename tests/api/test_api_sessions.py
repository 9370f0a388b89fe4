# tests/api/test_api_sessions.py
from datetime import date

from fastapi.testclient import TestClient

from track4health.api.auth import get_current_user
from track4health.main import app

AWARENESS_FORM = {
    "date": "2024-06-01",
    "villageName": "goth ali",
    "ucName": "uc 1",
    "sessionNumber": 2,
    "attendees": [
        {"name": "sara bibi", "fatherHusbandName": "ahmed khan", "age": 30, "gender": "female"},
        {"name": "zainab", "fatherHusbandName": "omar", "dob": "1995-03-10", "gender": "female"},
    ],
}

SCREENING_FORM = {
    "date": "2024-06-01",
    "villageName": "Goth Ali",
    "ucName": "Uc 1",
    "children": [
        {"name": "bilal", "fatherName": "omar", "age": 12, "muac": 10.5},
        {"name": "hamza", "fatherName": "omar", "age": 30, "muac": 13.2},
    ],
}


def test_storage_unavailable_answers_503(fmt_user):
    app.dependency_overrides[get_current_user] = lambda: fmt_user
    try:
        response = TestClient(app).get("/api/v1/awareness-sessions")
    finally:
        app.dependency_overrides.clear()
    assert response.status_code == 503


class TestAwarenessSessions:

    def test_save_session(self, client, mock_sync_service):
        response = client.post("/api/v1/awareness-sessions", json=AWARENESS_FORM)

        assert response.status_code == 201
        data = response.json()
        assert data["synced"] is True
        session = data["session"]
        assert session["villageName"] == "Goth Ali"
        assert session["userDesignation"] == "Field Monitor"
        assert session["createdBy"] == "fmt"
        assert [a["name"] for a in session["attendees"]] == ["Sara Bibi", "Zainab"]
        assert session["attendees"][0]["dob"]
        assert session["attendees"][1]["age"] > 0
        mock_sync_service.push_session.assert_awaited_once()

    def test_saved_offline_is_reported(self, client, mock_sync_service):
        mock_sync_service.push_session.return_value = False
        response = client.post("/api/v1/awareness-sessions", json=AWARENESS_FORM)
        assert response.status_code == 201
        assert response.json()["synced"] is False

    def test_missing_fields(self, client):
        response = client.post("/api/v1/awareness-sessions", json={**AWARENESS_FORM, "attendees": []})
        assert response.status_code == 422
        assert response.json()["detail"] == ["Village name, UC name, and at least one attendee are required"]

    def test_duplicate_attendee(self, client):
        assert client.post("/api/v1/awareness-sessions", json=AWARENESS_FORM).status_code == 201
        response = client.post("/api/v1/awareness-sessions", json=AWARENESS_FORM)
        assert response.status_code == 409
        assert response.json()["detail"].startswith("This attendee already exists for this session and village")

    def test_duplicate_check(self, client):
        client.post("/api/v1/awareness-sessions", json=AWARENESS_FORM)
        check = {"name": "SARA BIBI", "fatherName": "Ahmed Khan", "villageName": "Goth Ali", "date": "2024-06-01"}
        assert client.post("/api/v1/awareness-sessions/duplicate-check", json=check).json() == {"duplicate": True}

        staged = {**check, "name": "Asma", "staged": [{"name": "asma", "fatherName": "ahmed khan"}]}
        assert client.post("/api/v1/awareness-sessions/duplicate-check", json=staged).json() == {"duplicate": True}

        fresh = {**check, "name": "Asma"}
        assert client.post("/api/v1/awareness-sessions/duplicate-check", json=fresh).json() == {"duplicate": False}

    def test_edit_and_delete(self, client):
        session = client.post("/api/v1/awareness-sessions", json=AWARENESS_FORM).json()["session"]
        base = f"/api/v1/awareness-sessions/{session['id']}"

        patched = client.patch(base, json={"villageName": "new town"}).json()
        assert patched["villageName"] == "New Town"
        assert len(patched["attendees"]) == 2

        attendee_id = session["attendees"][0]["id"]
        edit = {"name": "sara", "fatherHusbandName": "ahmed khan", "age": 31}
        edited = client.put(f"{base}/attendees/{attendee_id}", json=edit).json()
        assert edited["age"] == 31
        assert edited["userName"] == "Fmt User"

        rename = {"name": "zainab", "fatherHusbandName": "omar", "age": 29}
        assert client.put(f"{base}/attendees/{attendee_id}", json=rename).status_code == 409
        assert client.delete(f"{base}/attendees/{attendee_id}").status_code == 204

        added = client.post(f"{base}/attendees", json={"name": "asma", "fatherHusbandName": "raza", "age": 22})
        assert added.status_code == 201

        assert client.delete(base).status_code == 204
        assert client.get(base).status_code == 404

    def test_export(self, client):
        assert client.get("/api/v1/awareness-sessions/export").status_code == 404

        client.post("/api/v1/awareness-sessions", json=AWARENESS_FORM)
        response = client.get("/api/v1/awareness-sessions/export", params={"period": "all"})

        assert response.status_code == 200
        assert response.headers["content-disposition"] == f'attachment; filename="export_{date.today().isoformat()}.json"'
        assert response.json()[0]["villageName"] == "Goth Ali"

    def test_range_export_without_dates(self, client):
        response = client.get("/api/v1/awareness-sessions/export", params={"period": "range"})
        assert response.status_code == 422


class TestScreenings:

    def test_status_is_derived_and_filterable(self, client):
        response = client.post("/api/v1/screenings", json=SCREENING_FORM)
        assert response.status_code == 201
        children = response.json()["session"]["children"]
        assert [c["status"] for c in children] == ["SAM", "Normal"]

        assert len(client.get("/api/v1/screenings", params={"status": "SAM"}).json()) == 1
        assert client.get("/api/v1/screenings", params={"status": "MAM"}).json() == []

    def test_status_in_input_is_ignored(self, client):
        form = {**SCREENING_FORM, "children": [{"name": "bilal", "fatherName": "omar", "age": 12, "muac": 14.0, "status": "SAM"}]}
        assert client.post("/api/v1/screenings", json=form).json()["session"]["children"][0]["status"] == "Normal"

    def test_child_age_out_of_range(self, client):
        form = {**SCREENING_FORM, "children": [{"name": "bilal", "fatherName": "omar", "age": 72, "muac": 12.0}]}
        response = client.post("/api/v1/screenings", json=form)
        assert response.status_code == 422
        assert response.json()["detail"] == ["Entry 1: Age must be between 6 and 59 months"]

    def test_update_child_rederives_status(self, client):
        screening = client.post("/api/v1/screenings", json=SCREENING_FORM).json()["session"]
        child = screening["children"][1]

        edit = {"name": child["name"], "fatherName": child["fatherName"], "age": 30, "muac": 12.0}
        response = client.put(f"/api/v1/screenings/{screening['id']}/children/{child['id']}", json=edit)
        assert response.json()["status"] == "MAM"


def test_dashboard(client):
    client.post("/api/v1/awareness-sessions", json=AWARENESS_FORM)
    client.post("/api/v1/screenings", json=SCREENING_FORM)

    data = client.get("/api/v1/dashboard").json()
    assert data["total_attendees"] == 2
    assert data["status_counts"] == {"SAM": 1, "MAM": 0, "Normal": 1}
    assert data["monthly"][0]["month"] == "2024-06"
