from sqlalchemy import Column, Integer, String, ForeignKey, UniqueConstraint
from sqlalchemy.orm import relationship

from exam_seating.database import Base
from exam_seating.models import Student, Room, Invigilator


class StudentDB(Base):
    __tablename__ = "students"

    id = Column(Integer, primary_key=True, index=True)
    student_id = Column(String, unique=True, nullable=False)
    roll_number = Column(String, unique=True, index=True, nullable=False)
    name = Column(String, nullable=False)
    course_code = Column(String, index=True, nullable=False)
    branch = Column(String, nullable=True)
    semester = Column(Integer, nullable=True)

    def to_model(self):
        return Student(
            id=self.id,
            name=self.name,
            course_code=self.course_code,
            student_id=self.student_id,
            roll_number=self.roll_number,
        )


class RoomDB(Base):
    __tablename__ = "rooms"

    id = Column(Integer, primary_key=True, index=True)
    room_name = Column(String, unique=True, index=True, nullable=False)
    floor = Column(String, nullable=True)
    total_capacity = Column(Integer, nullable=True)
    bench_capacity = Column(Integer, nullable=True)

    # seat grid: rows x columns, seat ids r{row}c{col}
    rows = Column(Integer, nullable=False, default=0)
    columns = Column(Integer, nullable=False, default=0)

    def to_model(self):
        return Room(id=self.id, room_name=self.room_name, rows=self.rows, columns=self.columns)


class ExamDB(Base):
    __tablename__ = "exams"

    id = Column(Integer, primary_key=True, index=True)
    exam_id = Column(String, unique=True, index=True, nullable=False)
    date = Column(String, nullable=True)
    time_slot = Column(String, nullable=True)

    # comma separated, e.g. "CS101,CS102"
    course_codes = Column(String, nullable=False, default="")
    total_students = Column(Integer, nullable=True)

    @property
    def course_list(self):
        return [code.strip() for code in (self.course_codes or "").split(",") if code.strip()]


class InvigilatorDB(Base):
    __tablename__ = "invigilators"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String, nullable=False)
    courses = Column(String, nullable=True)
    availability = Column(String, nullable=True)
    load_score = Column(Integer, nullable=True, default=0)

    def to_model(self):
        return Invigilator(id=self.id, name=self.name, courses=self.courses)


class SeatAssignmentDB(Base):
    __tablename__ = "seat_assignments"
    __table_args__ = (
        UniqueConstraint("exam_id", "room_id", "seat_id", name="uq_seat_per_exam"),
        UniqueConstraint("exam_id", "student_id", name="uq_student_per_exam"),
    )

    id = Column(Integer, primary_key=True, index=True)

    exam_id = Column(Integer, ForeignKey("exams.id"), index=True, nullable=False)
    room_id = Column(Integer, ForeignKey("rooms.id"), nullable=False)
    seat_id = Column(String, nullable=False)
    student_id = Column(Integer, ForeignKey("students.id"), nullable=False)

    exam = relationship("ExamDB")
    room = relationship("RoomDB")
    student = relationship("StudentDB")
