import logging
import math
from collections import defaultdict

from exam_seating.allocator import allocate_seats
from exam_seating.database import atomic
from exam_seating.db_models import ExamDB, RoomDB, SeatAssignmentDB, StudentDB
from exam_seating.exceptions import ExamNotFoundError, NoCoursesError, RecordNotFoundError
from exam_seating.layouts import build_seats, parse_seat_id, seat_id_for
from exam_seating.locks import exam_locks

logger = logging.getLogger(__name__)

# smallest grid shown for a room whose size is unknown
MIN_PREVIEW_SEATS = 30


def get_exam(db, exam_id):
    exam = db.query(ExamDB).filter(ExamDB.exam_id == exam_id).first()
    if not exam:
        raise ExamNotFoundError(exam_id)
    return exam


def generate_seating(db, exam_id, locks=exam_locks):
    """
    Seat every student of the exam's courses and replace the exam's stored
    seat assignments with the new set.
    """
    exam = get_exam(db, exam_id)
    courses = exam.course_list
    if not courses:
        raise NoCoursesError(exam_id)

    log_ctx = {"exam_id": exam_id}

    with locks.hold(exam_id):
        students = (
            db.query(StudentDB)
            .filter(StudentDB.course_code.in_(courses))
            .order_by(StudentDB.student_id)
            .all()
        )
        rooms = db.query(RoomDB).order_by(RoomDB.room_name).all()

        logger.info(
            "Seating %d students across %d rooms", len(students), len(rooms), extra=log_ctx
        )

        plan = allocate_seats(
            [s.to_model() for s in students],
            [r.to_model() for r in rooms],
        )

        with atomic(db, "Seating regeneration", exam_id):
            db.query(SeatAssignmentDB).filter(SeatAssignmentDB.exam_id == exam.id).delete()
            db.add_all([
                SeatAssignmentDB(
                    exam_id=exam.id,
                    room_id=p.room.id,
                    seat_id=p.seat.seat_id,
                    student_id=p.student.id,
                )
                for p in plan.placements
            ])

    logger.info(
        "Seated %d students, %d overflow", plan.total_assigned, plan.overflow_count, extra=log_ctx
    )

    return {
        "status": "ok",
        "exam_id": exam_id,
        "total_assigned": plan.total_assigned,
        "overflow_count": plan.overflow_count,
        "overflow": [
            {"id": s.id, "name": s.name, "course": s.course_code}
            for s in plan.overflow
        ],
    }


def seating_for_student(db, roll_number):
    student = db.query(StudentDB).filter(StudentDB.roll_number == roll_number).first()
    if not student:
        raise RecordNotFoundError("Student not found", details={"roll_number": roll_number})

    rows = (
        db.query(SeatAssignmentDB, ExamDB, RoomDB)
        .join(ExamDB, SeatAssignmentDB.exam_id == ExamDB.id)
        .join(RoomDB, SeatAssignmentDB.room_id == RoomDB.id)
        .filter(SeatAssignmentDB.student_id == student.id)
        .order_by(ExamDB.date, ExamDB.time_slot)
        .all()
    )

    return {
        "student": {
            "id": student.id,
            "student_id": student.student_id,
            "roll_number": student.roll_number,
            "name": student.name,
        },
        "assignments": [
            {
                "exam_id": exam.exam_id,
                "date": exam.date,
                "time_slot": exam.time_slot,
                "room_name": room.room_name,
                "seat_id": sa.seat_id,
            }
            for sa, exam, room in rows
        ],
    }


def room_grid(room, assigned):
    """
    Lay stored seat assignments of one room onto a full grid.

    The grid covers the room's declared size and every seat id that parses to
    a position outside it. Seat ids that do not parse fill the first free cells.
    """
    coords = [parse_seat_id(seat_id) for seat_id, _ in assigned]
    rows = max([room.rows or 0] + [c[0] for c in coords if c])
    cols = max([room.columns or 0] + [c[1] for c in coords if c])

    if not rows or not cols:
        capacity = max(len(assigned), MIN_PREVIEW_SEATS)
        rows = max(rows, math.ceil(math.sqrt(capacity)))
        cols = max(cols, math.ceil(capacity / rows))

    cells = {
        seat.seat_id: {"seat_id": seat.seat_id, "row": seat.row, "col": seat.col, "student": None}
        for seat in build_seats(rows, cols)
    }

    unplaced = []
    for (_, student), coord in zip(assigned, coords):
        cell = cells.get(seat_id_for(*coord)) if coord else None
        if cell is None or cell["student"] is not None:
            unplaced.append(student)
        else:
            cell["student"] = student

    free = [cell for cell in cells.values() if cell["student"] is None]
    for cell, student in zip(free, unplaced):
        cell["student"] = student

    return {
        "room_id": room.id,
        "room_name": room.room_name,
        "rows": rows,
        "cols": cols,
        "seats": list(cells.values()),
        "unplaced": unplaced[len(free):],
    }


def exam_preview(db, exam_id):
    exam = get_exam(db, exam_id)
    rooms = db.query(RoomDB).order_by(RoomDB.room_name).all()

    rows = (
        db.query(SeatAssignmentDB, StudentDB)
        .join(StudentDB, SeatAssignmentDB.student_id == StudentDB.id)
        .filter(SeatAssignmentDB.exam_id == exam.id)
        .order_by(SeatAssignmentDB.id)
        .all()
    )

    by_room = defaultdict(list)
    for sa, student in rows:
        by_room[sa.room_id].append(
            (sa.seat_id, {"name": student.name, "roll_number": student.roll_number})
        )

    return {
        "exam_id": exam_id,
        "rooms": [room_grid(room, by_room.get(room.id, [])) for room in rooms],
    }
