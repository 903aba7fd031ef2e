from pathlib import Path

import pandas as pd
from reportlab.lib.pagesizes import A4
from reportlab.pdfgen import canvas

from exam_seating.db_models import RoomDB, SeatAssignmentDB, StudentDB
from exam_seating.exceptions import RecordNotFoundError
from exam_seating.layouts import parse_seat_id
from exam_seating.seating_service import get_exam


def _seat_order(seat_id):
    # row-major, unparseable ids last
    coords = parse_seat_id(seat_id)
    return (0,) + coords if coords else (1, 0, 0)


def room_seating_rows(db, exam_id, room_id):
    exam = get_exam(db, exam_id)
    room = db.query(RoomDB).filter(RoomDB.id == room_id).first()
    if not room:
        raise RecordNotFoundError(f"Room id {room_id} not found")

    allocations = (
        db.query(SeatAssignmentDB, StudentDB)
        .join(StudentDB, SeatAssignmentDB.student_id == StudentDB.id)
        .filter(SeatAssignmentDB.exam_id == exam.id)
        .filter(SeatAssignmentDB.room_id == room.id)
        .all()
    )

    if not allocations:
        raise RecordNotFoundError("No seating found. Generate seating first.")

    allocations.sort(key=lambda pair: _seat_order(pair[0].seat_id))

    data = [
        {
            "seat_id": alloc.seat_id,
            "roll_number": student.roll_number,
            "student_id": student.student_id,
            "name": student.name,
            "course_code": student.course_code,
        }
        for alloc, student in allocations
    ]
    return exam, room, data


def export_seating_excel(db, exam_id, room_id, export_dir):
    exam, room, data = room_seating_rows(db, exam_id, room_id)

    export_dir = Path(export_dir)
    export_dir.mkdir(parents=True, exist_ok=True)

    file_path = export_dir / f"seating_{exam.exam_id}_{room.room_name}.xlsx"
    pd.DataFrame(data).to_excel(file_path, index=False)
    return file_path


def export_seating_pdf(db, exam_id, room_id, export_dir):
    exam, room, data = room_seating_rows(db, exam_id, room_id)

    export_dir = Path(export_dir)
    export_dir.mkdir(parents=True, exist_ok=True)

    file_path = export_dir / f"seating_{exam.exam_id}_{room.room_name}.pdf"

    c = canvas.Canvas(str(file_path), pagesize=A4)
    width, height = A4

    y = height - 50
    c.setFont("Helvetica-Bold", 14)
    c.drawString(50, y, f"Seating Arrangement - {exam.exam_id} - Room {room.room_name}")
    y -= 18
    c.setFont("Helvetica", 10)
    c.drawString(50, y, f"{exam.date or ''} {exam.time_slot or ''}".strip())
    y -= 24

    c.drawString(50, y, "Seat")
    c.drawString(110, y, "Roll No")
    c.drawString(210, y, "Name")
    c.drawString(420, y, "Course")
    y -= 15

    c.line(50, y, 550, y)
    y -= 15

    for row in data:
        if y < 60:
            c.showPage()
            c.setFont("Helvetica", 10)
            y = height - 50

        c.drawString(50, y, row["seat_id"])
        c.drawString(110, y, str(row["roll_number"]))
        c.drawString(210, y, row["name"][:32])
        c.drawString(420, y, row["course_code"])
        y -= 15

    c.save()
    return file_path
