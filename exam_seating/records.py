import logging

from sqlalchemy import delete

from exam_seating.database import atomic
from exam_seating.db_models import ExamDB, InvigilatorDB, RoomDB, SeatAssignmentDB, StudentDB
from exam_seating.exceptions import DuplicateRecordError, RecordNotFoundError
from exam_seating.locks import exam_locks
from exam_seating.schema import assignment_table

logger = logging.getLogger(__name__)

# columns that must stay unique when a record is edited
UNIQUE_COLUMNS = {
    StudentDB: ("student_id", "roll_number"),
    RoomDB: ("room_name",),
    ExamDB: ("exam_id",),
    InvigilatorDB: (),
}


def get_record(db, model, label, **filters):
    record = db.query(model).filter_by(**filters).first()
    if record is None:
        raise RecordNotFoundError(f"{label} not found", details=filters)
    return record


def update_record(db, record, changes, label):
    """
    Apply changes to a stored record.

    A change that would give the record a value another record already holds
    in a unique column raises DuplicateRecordError before anything is written.
    """
    model = type(record)
    for column in UNIQUE_COLUMNS[model]:
        value = changes.get(column)
        if value is None or value == getattr(record, column):
            continue
        clash = db.query(model).filter(getattr(model, column) == value, model.id != record.id).first()
        if clash:
            raise DuplicateRecordError(f"{label} {column} {value} already exists", details={column: value})

    with atomic(db, f"{label} update"):
        for key, value in changes.items():
            setattr(record, key, value)

    db.refresh(record)
    logger.info("Updated %s %s: %s", label, record.id, ", ".join(sorted(changes)))
    return record


def _delete_with(db, record, label, dependents, exam_id="-"):
    record_id = record.id
    with atomic(db, f"{label} delete", exam_id):
        for stmt in dependents:
            db.execute(stmt)
        db.delete(record)
    logger.info("Deleted %s %s", label, record_id, extra={"exam_id": exam_id})
    return {"status": "ok", "deleted": record_id}


def delete_student(db, student_id):
    student = get_record(db, StudentDB, "Student", id=student_id)
    return _delete_with(db, student, "Student", [
        delete(SeatAssignmentDB).where(SeatAssignmentDB.student_id == student.id),
    ])


def delete_room(db, room_id, config):
    room = get_record(db, RoomDB, "Room", id=room_id)
    table = assignment_table(config.assignment_table)
    return _delete_with(db, room, "Room", [
        delete(SeatAssignmentDB).where(SeatAssignmentDB.room_id == room.id),
        delete(table).where(table.c.room_id == room.id),
    ])


def delete_invigilator(db, invigilator_id, config):
    invigilator = get_record(db, InvigilatorDB, "Invigilator", id=invigilator_id)
    table = assignment_table(config.assignment_table)
    return _delete_with(db, invigilator, "Invigilator", [
        delete(table).where(table.c.invigilator_id == invigilator.id),
    ])


def delete_exam(db, exam_id, config, locks=exam_locks):
    exam = get_record(db, ExamDB, "Exam", exam_id=exam_id)
    table = assignment_table(config.assignment_table)
    with locks.hold(exam_id):
        return _delete_with(db, exam, "Exam", [
            delete(SeatAssignmentDB).where(SeatAssignmentDB.exam_id == exam.id),
            delete(table).where(table.c.exam_id == exam.id),
        ], exam_id)
