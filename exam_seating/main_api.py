from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Depends, File, Query, Request, UploadFile
from fastapi.responses import FileResponse, JSONResponse
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from exam_seating import invigilation_service, records, seating_service
from exam_seating.config import get_settings
from exam_seating.database import engine, get_db
from exam_seating.db_models import ExamDB, InvigilatorDB, RoomDB, StudentDB
from exam_seating.exceptions import AllocationError, DuplicateRecordError
from exam_seating.exports import export_seating_excel, export_seating_pdf
from exam_seating.schema import build_config, init_db
from exam_seating.student_import import import_students


@asynccontextmanager
async def lifespan(app: FastAPI):
    config = build_config(engine, get_settings())
    init_db(engine, config)
    app.state.config = config
    yield


app = FastAPI(title="Exam Seating API", lifespan=lifespan)


def get_config(request: Request):
    return request.app.state.config


@app.exception_handler(AllocationError)
async def allocation_error_handler(request: Request, exc: AllocationError):
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


class RoomCreate(BaseModel):
    room_name: str
    rows: int = Field(0, ge=0)
    columns: int = Field(0, ge=0)
    floor: Optional[str] = None
    total_capacity: Optional[int] = None
    bench_capacity: Optional[int] = None


class ExamCreate(BaseModel):
    exam_id: str
    course_codes: str
    date: Optional[str] = None
    time_slot: Optional[str] = None
    total_students: Optional[int] = None


class InvigilatorCreate(BaseModel):
    name: str
    courses: str = ""
    availability: Optional[str] = None
    load_score: int = 0


# edits: fields left out or sent as null keep their stored value
class RoomUpdate(BaseModel):
    room_name: Optional[str] = None
    rows: Optional[int] = Field(None, ge=0)
    columns: Optional[int] = Field(None, ge=0)
    floor: Optional[str] = None
    total_capacity: Optional[int] = None
    bench_capacity: Optional[int] = None


class ExamUpdate(BaseModel):
    exam_id: Optional[str] = None
    course_codes: Optional[str] = None
    date: Optional[str] = None
    time_slot: Optional[str] = None
    total_students: Optional[int] = None


class InvigilatorUpdate(BaseModel):
    name: Optional[str] = None
    courses: Optional[str] = None
    availability: Optional[str] = None
    load_score: Optional[int] = None


class StudentUpdate(BaseModel):
    student_id: Optional[str] = None
    roll_number: Optional[str] = None
    name: Optional[str] = None
    course_code: Optional[str] = None
    branch: Optional[str] = None
    semester: Optional[int] = None


class AssignRoomRequest(BaseModel):
    room_id: int
    invigilator_id: int
    replace: bool = False


def room_dict(r):
    return {
        "id": r.id,
        "room_name": r.room_name,
        "floor": r.floor,
        "rows": r.rows,
        "columns": r.columns,
        "total_capacity": r.total_capacity,
        "bench_capacity": r.bench_capacity,
    }


def exam_dict(e):
    return {
        "id": e.id,
        "exam_id": e.exam_id,
        "date": e.date,
        "time_slot": e.time_slot,
        "course_codes": e.course_codes,
        "total_students": e.total_students,
    }


def invigilator_dict(i):
    return {"id": i.id, "name": i.name, "courses": i.courses, "availability": i.availability}


def student_dict(s):
    return {
        "id": s.id,
        "student_id": s.student_id,
        "roll_number": s.roll_number,
        "name": s.name,
        "course_code": s.course_code,
        "branch": s.branch,
        "semester": s.semester,
    }


@app.get("/")
def root():
    return {"message": "Exam Seating API is running"}


@app.get("/rooms")
def get_rooms(db: Session = Depends(get_db)):
    rooms = db.query(RoomDB).order_by(RoomDB.room_name).all()
    return [room_dict(r) for r in rooms]


@app.post("/rooms", status_code=201)
def create_room(req: RoomCreate, db: Session = Depends(get_db)):
    if db.query(RoomDB).filter(RoomDB.room_name == req.room_name).first():
        raise DuplicateRecordError(f"Room {req.room_name} already exists")

    room = RoomDB(**req.model_dump())
    db.add(room)
    db.commit()
    db.refresh(room)
    return {"id": room.id, "room_name": room.room_name, "seats": room.rows * room.columns}


@app.put("/rooms/{room_id}")
def update_room(room_id: int, req: RoomUpdate, db: Session = Depends(get_db)):
    room = records.get_record(db, RoomDB, "Room", id=room_id)
    room = records.update_record(db, room, req.model_dump(exclude_none=True), "Room")
    return room_dict(room)


@app.delete("/rooms/{room_id}")
def delete_room(room_id: int, db: Session = Depends(get_db), config=Depends(get_config)):
    return records.delete_room(db, room_id, config)


@app.get("/exams")
def get_exams(db: Session = Depends(get_db)):
    exams = db.query(ExamDB).order_by(ExamDB.date, ExamDB.id).all()
    return [exam_dict(e) for e in exams]


@app.post("/exams", status_code=201)
def create_exam(req: ExamCreate, db: Session = Depends(get_db)):
    if db.query(ExamDB).filter(ExamDB.exam_id == req.exam_id).first():
        raise DuplicateRecordError(f"Exam {req.exam_id} already exists")

    exam = ExamDB(**req.model_dump())
    db.add(exam)
    db.commit()
    db.refresh(exam)
    return {"id": exam.id, "exam_id": exam.exam_id}


@app.put("/exams/{exam_id}")
def update_exam(exam_id: str, req: ExamUpdate, db: Session = Depends(get_db)):
    exam = records.get_record(db, ExamDB, "Exam", exam_id=exam_id)
    exam = records.update_record(db, exam, req.model_dump(exclude_none=True), "Exam")
    return exam_dict(exam)


@app.delete("/exams/{exam_id}")
def delete_exam(exam_id: str, db: Session = Depends(get_db), config=Depends(get_config)):
    return records.delete_exam(db, exam_id, config)


@app.get("/invigilators")
def get_invigilators(db: Session = Depends(get_db)):
    invigilators = db.query(InvigilatorDB).order_by(InvigilatorDB.id).all()
    return [invigilator_dict(i) for i in invigilators]


@app.post("/invigilators", status_code=201)
def create_invigilator(req: InvigilatorCreate, db: Session = Depends(get_db)):
    invigilator = InvigilatorDB(**req.model_dump())
    db.add(invigilator)
    db.commit()
    db.refresh(invigilator)
    return {"id": invigilator.id, "name": invigilator.name}


@app.put("/invigilators/{invigilator_id}")
def update_invigilator(invigilator_id: int, req: InvigilatorUpdate, db: Session = Depends(get_db)):
    invigilator = records.get_record(db, InvigilatorDB, "Invigilator", id=invigilator_id)
    invigilator = records.update_record(db, invigilator, req.model_dump(exclude_none=True), "Invigilator")
    return invigilator_dict(invigilator)


@app.delete("/invigilators/{invigilator_id}")
def delete_invigilator(invigilator_id: int, db: Session = Depends(get_db), config=Depends(get_config)):
    return records.delete_invigilator(db, invigilator_id, config)


@app.get("/students")
def get_students(db: Session = Depends(get_db)):
    students = db.query(StudentDB).order_by(StudentDB.student_id).all()
    return [student_dict(s) for s in students]


@app.put("/students/{student_pk}")
def update_student(student_pk: int, req: StudentUpdate, db: Session = Depends(get_db)):
    student = records.get_record(db, StudentDB, "Student", id=student_pk)
    student = records.update_record(db, student, req.model_dump(exclude_none=True), "Student")
    return student_dict(student)


@app.delete("/students/{student_pk}")
def delete_student(student_pk: int, db: Session = Depends(get_db)):
    return records.delete_student(db, student_pk)


@app.post("/students/import")
def import_students_from_file(file: UploadFile = File(...), db: Session = Depends(get_db)):
    result = import_students(db, file.file, file.filename)
    return {"message": "Student import completed", **result}


@app.get("/students/{roll_number}/seating")
def student_seating(roll_number: str, db: Session = Depends(get_db)):
    return seating_service.seating_for_student(db, roll_number)


@app.post("/exams/{exam_id}/generate-seating")
def generate_seating(exam_id: str, db: Session = Depends(get_db)):
    return seating_service.generate_seating(db, exam_id)


@app.get("/exams/{exam_id}/preview")
def exam_preview(exam_id: str, db: Session = Depends(get_db)):
    return seating_service.exam_preview(db, exam_id)


@app.post("/exams/{exam_id}/generate-invigilation")
def generate_invigilation(
    exam_id: str,
    per_room: Optional[int] = Query(None, alias="perRoom"),
    db: Session = Depends(get_db),
    config=Depends(get_config),
):
    return invigilation_service.assign_invigilators(db, exam_id, config, per_room=per_room)


@app.get("/exams/{exam_id}/invigilation")
def exam_invigilation(exam_id: str, db: Session = Depends(get_db), config=Depends(get_config)):
    return invigilation_service.invigilation_for_exam(db, exam_id, config)


@app.post("/exams/{exam_id}/assign-room")
def assign_room(
    exam_id: str,
    req: AssignRoomRequest,
    db: Session = Depends(get_db),
    config=Depends(get_config),
):
    return invigilation_service.assign_invigilator(
        db, exam_id, req.room_id, req.invigilator_id, config, replace=req.replace
    )


@app.delete("/exams/{exam_id}/invigilators/{invigilator_id}")
def unassign(exam_id: str, invigilator_id: int, db: Session = Depends(get_db), config=Depends(get_config)):
    return invigilation_service.unassign_invigilator(db, exam_id, invigilator_id, config)


@app.get("/invigilators/{invigilator_id}/duties")
def duties(invigilator_id: int, db: Session = Depends(get_db), config=Depends(get_config)):
    return invigilation_service.invigilator_duties(db, invigilator_id, config)


@app.get("/exams/{exam_id}/rooms/{room_id}/seating.xlsx")
def seating_excel(exam_id: str, room_id: int, db: Session = Depends(get_db)):
    file_path = export_seating_excel(db, exam_id, room_id, get_settings().EXPORT_DIR)
    return FileResponse(
        path=str(file_path),
        filename=file_path.name,
        media_type="application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"
    )


@app.get("/exams/{exam_id}/rooms/{room_id}/seating.pdf")
def seating_pdf(exam_id: str, room_id: int, db: Session = Depends(get_db)):
    file_path = export_seating_pdf(db, exam_id, room_id, get_settings().EXPORT_DIR)
    return FileResponse(
        path=str(file_path),
        filename=file_path.name,
        media_type="application/pdf"
    )
