import logging
import zipfile
from pathlib import Path

import pandas as pd

from exam_seating.database import atomic
from exam_seating.db_models import StudentDB
from exam_seating.exceptions import InvalidRequestError

logger = logging.getLogger(__name__)

REQUIRED_COLUMNS = {"student_id", "roll_number", "name", "course_code"}


def read_student_frame(source, filename=None):
    """Read an .xlsx or .csv roster into a DataFrame with normalised headers."""
    name = str(filename or source)

    try:
        if Path(name).suffix.lower() == ".csv":
            df = pd.read_csv(source, dtype=str)
        else:
            df = pd.read_excel(source, dtype=str)
    except (ValueError, OSError, zipfile.BadZipFile) as e:
        raise InvalidRequestError(f"Student file read failed: {e}")

    df.columns = [str(c).strip().lower().replace(" ", "_") for c in df.columns]

    if not REQUIRED_COLUMNS.issubset(df.columns):
        missing = sorted(REQUIRED_COLUMNS - set(df.columns))
        raise InvalidRequestError(f"Missing columns: {missing}", details={"missing": missing})

    return df.fillna("")


def _semester(value):
    value = str(value).strip()
    if not value:
        return None
    try:
        return int(float(value))
    except ValueError:
        raise InvalidRequestError(f"Bad semester value: {value!r}")


def import_students(db, source, filename=None):
    """
    Insert the roster's students.

    Rows without a student_id, or whose student_id or roll_number is already
    stored (or appeared earlier in the file), are skipped and counted. Nothing
    is written when any row is invalid.
    """
    df = read_student_frame(source, filename)

    known_ids = {sid for (sid,) in db.query(StudentDB.student_id).all()}
    known_rolls = {roll for (roll,) in db.query(StudentDB.roll_number).all()}
    students = []
    skipped = 0

    for _, row in df.iterrows():
        student_id = str(row["student_id"]).strip()
        roll_number = str(row["roll_number"]).strip()
        if not student_id or student_id in known_ids or roll_number in known_rolls:
            skipped += 1
            continue

        students.append(StudentDB(
            student_id=student_id,
            roll_number=roll_number,
            name=str(row["name"]).strip(),
            course_code=str(row["course_code"]).strip(),
            branch=str(row.get("branch", "")).strip() or None,
            semester=_semester(row.get("semester", "")),
        ))
        known_ids.add(student_id)
        known_rolls.add(roll_number)

    with atomic(db, "Student import"):
        db.add_all(students)

    logger.info("Imported %d students, skipped %d", len(students), skipped)

    return {"inserted": len(students), "skipped_duplicates": skipped}
