from exam_seating.allocator import allocate_seats, group_by_course
from exam_seating.layouts import are_adjacent
from exam_seating.models import Room, Student


def make_students(course, count, start=1):
    return [Student(id=f"{course}-{n}", name=f"{course} {n}", course_code=course)
            for n in range(start, start + count)]


def seat_map(plan):
    return {p.student.id: (p.room.room_name, p.seat.seat_id) for p in plan.placements}


def assert_no_same_course_neighbours(plan):
    for i, a in enumerate(plan.placements):
        for b in plan.placements[i + 1:]:
            if a.room is b.room and a.student.course_code == b.student.course_code:
                assert not are_adjacent(a.seat, b.seat), (a, b)


def test_two_by_two_room_example():
    cs101 = make_students("CS101", 3)
    cs102 = make_students("CS102", 1)
    plan = allocate_seats(cs102 + cs101, [Room(1, "R1", 2, 2)])

    assert plan.total_assigned == 3
    assert plan.overflow_count == 1
    assert [s.id for s in plan.overflow] == ["CS101-3"]
    assert seat_map(plan) == {
        "CS101-1": ("R1", "r1c1"),
        "CS101-2": ("R1", "r2c2"),
        "CS102-1": ("R1", "r1c2"),
    }


def test_largest_group_placed_first():
    groups = group_by_course(make_students("SMALL", 1) + make_students("BIG", 3))
    assert [g[0].course_code for g in groups] == ["BIG", "SMALL"]

    plan = allocate_seats(make_students("SMALL", 1) + make_students("BIG", 3), [Room(1, "R1", 3, 3)])
    assert seat_map(plan)["BIG-1"] == ("R1", "r1c1")


def test_equal_groups_keep_first_seen_order():
    groups = group_by_course(make_students("B", 2) + make_students("A", 2))
    assert [g[0].course_code for g in groups] == ["B", "A"]


def test_different_courses_may_sit_together():
    plan = allocate_seats(make_students("X", 1) + make_students("Y", 1), [Room(1, "R1", 1, 2)])
    assert plan.overflow == []
    assert sorted(seat for _, seat in seat_map(plan).values()) == ["r1c1", "r1c2"]


def test_rooms_filled_in_given_order():
    rooms = [Room(1, "A", 1, 3), Room(2, "B", 1, 3)]
    plan = allocate_seats(make_students("X", 3), rooms)

    assert seat_map(plan) == {
        "X-1": ("A", "r1c1"),
        "X-2": ("A", "r1c3"),
        "X-3": ("B", "r1c1"),
    }


def test_empty_room_is_skipped():
    rooms = [Room(1, "A", 0, 0), Room(2, "B", None, 4), Room(3, "C", 1, 1)]
    plan = allocate_seats(make_students("X", 2), rooms)

    assert seat_map(plan) == {"X-1": ("C", "r1c1")}
    assert [s.id for s in plan.overflow] == ["X-2"]


def test_no_rooms_everyone_overflows():
    students = make_students("X", 2)
    plan = allocate_seats(students, [])
    assert plan.total_assigned == 0
    assert plan.overflow == students


def test_mixed_cohorts_invariants():
    students = (
        make_students("MA101", 17)
        + make_students("PH201", 9)
        + make_students("CH110", 12)
        + make_students("EE300", 4)
    )
    rooms = [Room(1, "Hall A", 4, 5), Room(2, "Hall B", 3, 4), Room(3, "Lab", 2, 2)]
    plan = allocate_seats(students, rooms)

    assert plan.total_assigned + plan.overflow_count == len(students)
    assert_no_same_course_neighbours(plan)

    seats = [(p.room.id, p.seat.seat_id) for p in plan.placements]
    assert len(seats) == len(set(seats))


def test_allocation_is_deterministic():
    students = make_students("A", 5) + make_students("B", 5)
    rooms = [Room(1, "R1", 3, 3)]
    assert seat_map(allocate_seats(students, rooms)) == seat_map(allocate_seats(students, rooms))
