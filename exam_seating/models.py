class Student:
    def __init__(self, id, name, course_code, student_id=None, roll_number=None):
        self.id = id
        self.name = name
        self.course_code = course_code
        self.student_id = student_id
        self.roll_number = roll_number

    def __repr__(self):
        return f"Student({self.id}, {self.course_code})"


class Room:
    def __init__(self, id, room_name, rows, columns):
        self.id = id
        self.room_name = room_name
        self.rows = rows or 0
        self.columns = columns or 0

    def __repr__(self):
        return f"Room({self.room_name}, {self.rows}x{self.columns})"


class Seat:
    def __init__(self, row, col, seat_id):
        self.row = row
        self.col = col
        self.seat_id = seat_id

    def __repr__(self):
        return f"Seat({self.seat_id})"


class Invigilator:
    def __init__(self, id, name, courses=""):
        self.id = id
        self.name = name
        self.courses = courses or ""

    def __repr__(self):
        return f"Invigilator({self.id}, {self.name})"
