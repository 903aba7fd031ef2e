import io

import pandas as pd
import pytest
from fastapi.testclient import TestClient
from sqlalchemy import select

from exam_seating.database import get_db
from exam_seating.main_api import app, get_config
from exam_seating.schema import assignment_table


@pytest.fixture
def client(session_factory, config):
    def override_db():
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_db] = override_db
    app.dependency_overrides[get_config] = lambda: config
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def loaded(client):
    client.post("/rooms", json={"room_name": "A1", "rows": 2, "columns": 3})
    client.post("/rooms", json={"room_name": "B1", "rows": 2, "columns": 2})
    client.post("/exams", json={"exam_id": "E001_10AM", "course_codes": "CS101,MA201", "time_slot": "10AM"})
    client.post("/invigilators", json={"name": "Ada", "courses": "CS101"})
    client.post("/invigilators", json={"name": "Bo", "courses": "PH100"})
    client.post("/invigilators", json={"name": "Cy", "courses": ""})

    roster = pd.DataFrame([
        {"student_id": f"S{n:02d}", "roll_number": f"R{n:02d}", "name": f"Student {n}",
         "course_code": "CS101" if n <= 4 else "MA201"}
        for n in range(1, 7)
    ])
    buffer = io.BytesIO(roster.to_csv(index=False).encode())
    response = client.post("/students/import", files={"file": ("roster.csv", buffer, "text/csv")})
    assert response.json()["inserted"] == 6
    return client


def test_root(client):
    assert client.get("/").status_code == 200


def test_duplicate_room(client):
    assert client.post("/rooms", json={"room_name": "A1", "rows": 1, "columns": 1}).status_code == 201
    response = client.post("/rooms", json={"room_name": "A1", "rows": 1, "columns": 1})
    assert response.status_code == 409
    assert response.json()["code"] == "duplicate"


def test_unknown_exam_is_404(client):
    response = client.post("/exams/NOPE/generate-seating")
    assert response.status_code == 404
    assert response.json() == {
        "status": "error", "code": "exam_not_found", "error": "Exam not found",
        "details": {"exam_id": "NOPE"},
    }


def test_seating_flow(loaded):
    response = loaded.post("/exams/E001_10AM/generate-seating")
    body = response.json()

    assert response.status_code == 200
    assert body["total_assigned"] + body["overflow_count"] == 6

    preview = loaded.get("/exams/E001_10AM/preview").json()
    seated = [s for room in preview["rooms"] for s in room["seats"] if s["student"]]
    assert len(seated) == body["total_assigned"]

    mine = loaded.get("/students/R01/seating").json()
    assert mine["assignments"][0]["exam_id"] == "E001_10AM"
    assert loaded.get("/students/NOPE/seating").status_code == 404


def test_invigilation_flow(loaded):
    loaded.post("/exams/E001_10AM/generate-seating")

    body = loaded.post("/exams/E001_10AM/generate-invigilation?perRoom=1").json()
    assert body["total_assigned"] == 2
    assert "Ada" not in [a["invigilator"] for a in body["assignments"]]

    listing = loaded.get("/exams/E001_10AM/invigilation").json()
    assert [r["room_name"] for r in listing["rooms"]] == ["A1", "B1"]

    duties = loaded.get("/invigilators/2/duties").json()
    assert duties["duties"][0]["room_name"] == "A1"

    assert loaded.post("/exams/E001_10AM/generate-invigilation?perRoom=0").status_code == 400


def test_manual_assignment_endpoints(loaded):
    loaded.post("/exams/E001_10AM/generate-seating")
    loaded.post("/exams/E001_10AM/generate-invigilation")

    conflict = loaded.post("/exams/E001_10AM/assign-room", json={"room_id": 2, "invigilator_id": 2})
    assert conflict.status_code == 409

    moved = loaded.post(
        "/exams/E001_10AM/assign-room", json={"room_id": 2, "invigilator_id": 2, "replace": True}
    )
    assert moved.json()["replaced"] is True

    removed = loaded.delete("/exams/E001_10AM/invigilators/2")
    assert removed.json()["removed"] == 1


def test_import_rejects_bad_file(client):
    buffer = io.BytesIO(b"id,name\n1,x\n")
    response = client.post("/students/import", files={"file": ("bad.csv", buffer, "text/csv")})
    assert response.status_code == 400
    assert response.json()["code"] == "invalid_request"


def test_export_without_seating(loaded):
    response = loaded.get("/exams/E001_10AM/rooms/1/seating.pdf")
    assert response.status_code == 404


def stored_invigilation(session_factory, config):
    table = assignment_table(config.assignment_table)
    with session_factory() as session:
        rows = session.execute(select(table.c.room_id, table.c.invigilator_id).order_by(table.c.id))
        return [tuple(row) for row in rows]


def test_update_records(loaded):
    room = loaded.put("/rooms/1", json={"rows": 3})
    assert room.status_code == 200
    assert (room.json()["room_name"], room.json()["rows"], room.json()["columns"]) == ("A1", 3, 3)

    exam = loaded.put("/exams/E001_10AM", json={"time_slot": "2PM"}).json()
    assert (exam["exam_id"], exam["time_slot"]) == ("E001_10AM", "2PM")

    invigilator = loaded.put("/invigilators/3", json={"courses": "MA201"}).json()
    assert (invigilator["name"], invigilator["courses"]) == ("Cy", "MA201")

    student = loaded.put("/students/1", json={"name": "Renamed", "semester": 4}).json()
    assert (student["roll_number"], student["name"], student["semester"]) == ("R01", "Renamed", 4)
    assert loaded.get("/students").json()[0]["name"] == "Renamed"


def test_update_rejects_values_held_by_another_record(loaded):
    room = loaded.put("/rooms/1", json={"room_name": "B1"})
    assert room.status_code == 409
    assert room.json()["code"] == "duplicate"

    student = loaded.put("/students/1", json={"roll_number": "R02"})
    assert student.status_code == 409

    assert loaded.put("/rooms/1", json={"room_name": "A1"}).status_code == 200
    assert [r["room_name"] for r in loaded.get("/rooms").json()] == ["A1", "B1"]


@pytest.mark.parametrize("method, path", [
    ("PUT", "/rooms/99"),
    ("DELETE", "/rooms/99"),
    ("PUT", "/exams/NOPE"),
    ("DELETE", "/exams/NOPE"),
    ("PUT", "/invigilators/99"),
    ("DELETE", "/invigilators/99"),
    ("PUT", "/students/99"),
    ("DELETE", "/students/99"),
])
def test_unknown_record_is_404(client, method, path):
    response = client.request(method, path, json={})
    assert response.status_code == 404
    assert response.json()["code"] == "not_found"


def test_delete_room_drops_its_assignments(loaded, session_factory, config):
    loaded.post("/exams/E001_10AM/generate-seating")
    loaded.post("/exams/E001_10AM/generate-invigilation")

    assert loaded.delete("/rooms/1").json() == {"status": "ok", "deleted": 1}

    assert [r["room_name"] for r in loaded.get("/rooms").json()] == ["B1"]
    preview = loaded.get("/exams/E001_10AM/preview").json()
    assert [r["room_name"] for r in preview["rooms"]] == ["B1"]
    assert [room_id for room_id, _ in stored_invigilation(session_factory, config)] == [2]


def test_delete_exam_drops_its_assignments(loaded, session_factory, config):
    loaded.post("/exams/E001_10AM/generate-seating")
    loaded.post("/exams/E001_10AM/generate-invigilation")

    assert loaded.delete("/exams/E001_10AM").json()["status"] == "ok"

    assert loaded.get("/exams").json() == []
    assert loaded.get("/students/R01/seating").json()["assignments"] == []
    assert stored_invigilation(session_factory, config) == []
    assert loaded.post("/exams/E001_10AM/generate-seating").status_code == 404


def test_delete_invigilator_and_student(loaded, session_factory, config):
    loaded.post("/exams/E001_10AM/generate-seating")
    loaded.post("/exams/E001_10AM/generate-invigilation")

    assert loaded.delete("/invigilators/2").json()["deleted"] == 2
    assert [i["name"] for i in loaded.get("/invigilators").json()] == ["Ada", "Cy"]
    assert 2 not in [inv for _, inv in stored_invigilation(session_factory, config)]
    assert loaded.get("/invigilators/2/duties").status_code == 404

    assert loaded.delete("/students/1").json()["deleted"] == 1
    assert loaded.get("/students/R01/seating").status_code == 404
    preview = loaded.get("/exams/E001_10AM/preview").json()
    assert len([s for room in preview["rooms"] for s in room["seats"] if s["student"]]) == 5


def test_import_with_taken_roll_number(loaded):
    roster = pd.DataFrame([{"student_id": "S99", "roll_number": "R01", "name": "Late", "course_code": "CS101"}])
    buffer = io.BytesIO(roster.to_csv(index=False).encode())

    response = loaded.post("/students/import", files={"file": ("late.csv", buffer, "text/csv")})

    assert response.status_code == 200
    assert (response.json()["inserted"], response.json()["skipped_duplicates"]) == (0, 1)
