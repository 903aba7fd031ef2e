import logging
from collections import OrderedDict

from exam_seating.layouts import build_seats, are_adjacent

logger = logging.getLogger(__name__)


class Placement:
    def __init__(self, room, seat, student):
        self.room = room
        self.seat = seat
        self.student = student

    def __repr__(self):
        return f"Placement({self.room.room_name}, {self.seat.seat_id}, {self.student.id})"


class RoomMap:
    """Seats of one room plus who already sits where."""

    def __init__(self, room):
        self.room = room
        self.seats = build_seats(room.rows, room.columns)
        self.assigned = {}  # seat_id -> (seat, student)

    def find_seat(self, student):
        for seat in self.seats:
            if seat.seat_id in self.assigned:
                continue
            if self._conflicts(seat, student):
                continue
            return seat
        return None

    def _conflicts(self, seat, student):
        for other_seat, other in self.assigned.values():
            if other.course_code == student.course_code and are_adjacent(seat, other_seat):
                return True
        return False

    def take(self, seat, student):
        self.assigned[seat.seat_id] = (seat, student)


class SeatingPlan:
    def __init__(self, placements, overflow):
        self.placements = placements
        self.overflow = overflow

    @property
    def total_assigned(self):
        return len(self.placements)

    @property
    def overflow_count(self):
        return len(self.overflow)


def group_by_course(students):
    """Group students by course code, largest cohort first."""
    groups = OrderedDict()
    for student in students:
        groups.setdefault(student.course_code, []).append(student)

    # sorted() is stable, so equal-sized cohorts keep first-seen order
    return sorted(groups.values(), key=len, reverse=True)


def allocate_seats(students, rooms):
    """
    Greedy placement of students into room grids.

    Rooms are tried in the order given and seats in row-major order. A seat is
    rejected when a student of the same course already sits next to it in the
    same room. Students that fit nowhere end up in the overflow list.
    """
    room_maps = [RoomMap(room) for room in rooms]
    placements = []
    overflow = []

    for group in group_by_course(students):
        for student in group:
            placed = False
            for room_map in room_maps:
                seat = room_map.find_seat(student)
                if seat is None:
                    continue

                room_map.take(seat, student)
                placements.append(Placement(room_map.room, seat, student))
                placed = True
                break

            if not placed:
                overflow.append(student)

    if overflow:
        logger.warning(
            "%d of %d students could not be seated", len(overflow), len(students)
        )

    return SeatingPlan(placements, overflow)
