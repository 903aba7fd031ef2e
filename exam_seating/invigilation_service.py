import logging

from sqlalchemy import delete, func, insert, select

from exam_seating.database import atomic
from exam_seating.db_models import ExamDB, InvigilatorDB, RoomDB, SeatAssignmentDB
from exam_seating.exceptions import (
    AssignmentConflictError, InvalidRequestError, RecordNotFoundError,
)
from exam_seating.invigilation import allocate_invigilators, subject_tokens
from exam_seating.locks import exam_locks
from exam_seating.schema import assignment_table
from exam_seating.seating_service import get_exam

logger = logging.getLogger(__name__)

exams = ExamDB.__table__
rooms_t = RoomDB.__table__
invigilators_t = InvigilatorDB.__table__


def rooms_used_by_exam(db, exam):
    rooms = (
        db.query(RoomDB)
        .join(SeatAssignmentDB, SeatAssignmentDB.room_id == RoomDB.id)
        .filter(SeatAssignmentDB.exam_id == exam.id)
        .distinct()
        .order_by(RoomDB.room_name)
        .all()
    )
    return [room.to_model() for room in rooms]


def slot_load_counts(db, table, exam):
    """
    Assignments each invigilator holds across all exams of the same time slot,
    including the exam's own rows that are about to be replaced.
    """
    if exam.time_slot is None:
        return {}

    stmt = (
        select(table.c.invigilator_id, func.count())
        .select_from(table.join(exams, exams.c.id == table.c.exam_id))
        .where(exams.c.time_slot == exam.time_slot)
        .group_by(table.c.invigilator_id)
    )
    return {invigilator_id: count for invigilator_id, count in db.execute(stmt)}


def assign_invigilators(db, exam_id, config, per_room=None, locks=exam_locks):
    """
    Regenerate the invigilator assignments for every room the exam's students
    sit in. Existing assignments of the exam are replaced.
    """
    per_room = config.per_room if per_room is None else per_room
    if per_room < 1:
        raise InvalidRequestError("per_room must be a positive integer", details={"per_room": per_room})

    exam = get_exam(db, exam_id)
    table = assignment_table(config.assignment_table)
    log_ctx = {"exam_id": exam_id}

    with locks.hold(exam_id):
        rooms = rooms_used_by_exam(db, exam)
        invigilators = [inv.to_model() for inv in db.query(InvigilatorDB).order_by(InvigilatorDB.id).all()]
        counts = slot_load_counts(db, table, exam)
        tokens = subject_tokens(exam.course_codes, config.match_all_subject_codes)

        logger.info(
            "Assigning %d per room to %d rooms from %d invigilators (subject %s)",
            per_room, len(rooms), len(invigilators), ",".join(tokens) or "none",
            extra=log_ctx,
        )

        plan = allocate_invigilators(rooms, invigilators, tokens, counts, per_room)
        rows = [
            {"exam_id": exam.id, "room_id": room.id, "invigilator_id": inv.id}
            for room, inv in plan.pairs()
        ]

        with atomic(db, "Invigilator regeneration", exam_id):
            db.execute(delete(table).where(table.c.exam_id == exam.id))
            if rows:
                db.execute(insert(table), rows)

    logger.info("Assigned %d invigilators", plan.total_assigned, extra=log_ctx)

    return {
        "status": "ok",
        "exam_id": exam_id,
        "total_assigned": plan.total_assigned,
        "assignments": [
            {
                "room_id": room.id,
                "room": room.room_name,
                "invigilator_id": inv.id,
                "invigilator": inv.name,
            }
            for room, inv in plan.pairs()
        ],
        "unfilled_rooms": [shortfall.to_dict() for shortfall in plan.unfilled],
    }


def invigilation_for_exam(db, exam_id, config):
    exam = get_exam(db, exam_id)
    table = assignment_table(config.assignment_table)

    stmt = (
        select(
            table.c.room_id,
            rooms_t.c.room_name,
            table.c.invigilator_id,
            invigilators_t.c.name,
            invigilators_t.c.courses,
        )
        .select_from(
            table.join(rooms_t, rooms_t.c.id == table.c.room_id)
            .join(invigilators_t, invigilators_t.c.id == table.c.invigilator_id)
        )
        .where(table.c.exam_id == exam.id)
        .order_by(rooms_t.c.room_name, table.c.id)
    )

    grouped = {}
    for row in db.execute(stmt):
        room = grouped.setdefault(row.room_id, {
            "room_id": row.room_id,
            "room_name": row.room_name,
            "invigilators": [],
        })
        room["invigilators"].append({
            "invigilator_id": row.invigilator_id,
            "name": row.name,
            "courses": row.courses,
        })

    return {"exam_id": exam_id, "rooms": list(grouped.values())}


def invigilator_duties(db, invigilator_id, config):
    invigilator = db.query(InvigilatorDB).filter(InvigilatorDB.id == invigilator_id).first()
    if not invigilator:
        raise RecordNotFoundError(f"Invigilator id {invigilator_id} not found")

    table = assignment_table(config.assignment_table)
    stmt = (
        select(
            table.c.id,
            exams.c.exam_id,
            exams.c.date,
            exams.c.time_slot,
            table.c.room_id,
            rooms_t.c.room_name,
        )
        .select_from(
            table.join(exams, exams.c.id == table.c.exam_id)
            .join(rooms_t, rooms_t.c.id == table.c.room_id)
        )
        .where(table.c.invigilator_id == invigilator_id)
        .order_by(exams.c.date, exams.c.time_slot, table.c.id)
    )

    return {
        "invigilator_id": invigilator_id,
        "name": invigilator.name,
        "duties": [
            {
                "assign_id": row.id,
                "exam_id": row.exam_id,
                "date": row.date,
                "time_slot": row.time_slot,
                "room_id": row.room_id,
                "room_name": row.room_name,
            }
            for row in db.execute(stmt)
        ],
    }


def assign_invigilator(db, exam_id, room_id, invigilator_id, config, replace=False, locks=exam_locks):
    """
    Put one invigilator in one room of an exam.

    Without ``replace`` an invigilator who already serves the exam is refused.
    With it, their previous room for the exam is dropped first.
    """
    exam = get_exam(db, exam_id)
    if not db.query(RoomDB).filter(RoomDB.id == room_id).first():
        raise RecordNotFoundError(f"Room id {room_id} not found")
    if not db.query(InvigilatorDB).filter(InvigilatorDB.id == invigilator_id).first():
        raise RecordNotFoundError(f"Invigilator id {invigilator_id} not found")

    table = assignment_table(config.assignment_table)
    same_pair = (table.c.exam_id == exam.id) & (table.c.invigilator_id == invigilator_id)

    with locks.hold(exam_id):
        existing = db.execute(select(table.c.id, table.c.room_id).where(same_pair)).first()
        if existing is not None and not replace:
            raise AssignmentConflictError(
                "Invigilator already assigned for this exam",
                details={"invigilator_id": invigilator_id, "room_id": existing.room_id},
            )

        with atomic(db, "Manual invigilator assignment", exam_id):
            if existing is not None:
                db.execute(delete(table).where(same_pair))
            result = db.execute(
                insert(table).values(exam_id=exam.id, room_id=room_id, invigilator_id=invigilator_id)
            )
            assignment_id = result.inserted_primary_key[0]

    logger.info(
        "Invigilator %s assigned to room %s%s", invigilator_id, room_id,
        " (replaced)" if existing is not None else "", extra={"exam_id": exam_id},
    )

    return {
        "status": "ok",
        "assignment_id": assignment_id,
        "exam_id": exam_id,
        "room_id": room_id,
        "invigilator_id": invigilator_id,
        "replaced": existing is not None,
    }


def unassign_invigilator(db, exam_id, invigilator_id, config, locks=exam_locks):
    exam = get_exam(db, exam_id)
    table = assignment_table(config.assignment_table)

    with locks.hold(exam_id):
        with atomic(db, "Invigilator removal", exam_id):
            result = db.execute(
                delete(table)
                .where(table.c.exam_id == exam.id)
                .where(table.c.invigilator_id == invigilator_id)
            )

    return {"status": "ok", "exam_id": exam_id, "removed": result.rowcount}
